"""Builds the x402 payment client from a Solana keypair."""

import logging
from typing import Optional, Sequence

from solders.keypair import Keypair
from x402 import x402Client
from x402.http import x402HTTPClient
from x402.mechanisms.svm import KeypairSigner
from x402.mechanisms.svm.exact.register import register_exact_svm_client

logger = logging.getLogger(__name__)


def build_payment_client(
    private_key_base58: Optional[str] = None,
    keypair_bytes: Optional[Sequence[int]] = None,
) -> x402HTTPClient:
    """Registers the exact SVM scheme for the given keypair and wraps it for HTTP use.

    Args:
        private_key_base58: Base58 encoded 64-byte secret key.
        keypair_bytes: The same secret as a byte array (Solana CLI keyfile format).

    Raises:
        ValueError: If neither form of the key is provided.
    """
    if private_key_base58 is None:
        if keypair_bytes is None:
            raise ValueError("A Solana private key or keypair file is required to pay for requests.")
        private_key_base58 = str(Keypair.from_bytes(bytes(keypair_bytes)))

    signer = KeypairSigner.from_base58(private_key_base58)
    client = x402Client()
    register_exact_svm_client(client, signer)
    logger.info(f"x402 payer wallet: {signer.address}")
    return x402HTTPClient(client)
