"""Interface for clients that perform paid requests.

Defines the contract for sending one request through the x402 two-phase
handshake (request, 402 quote, signed resend, settlement).
"""

import abc

from metquery.domain.models.payment import CallResult, Endpoint


class PaidRequestClient(abc.ABC):
    """Abstract Base Class for paid request execution."""

    @abc.abstractmethod
    async def send(self, endpoint: Endpoint) -> CallResult:
        """Performs the full pay-then-fetch exchange for one endpoint.

        Args:
            endpoint: The request target.

        Returns:
            A CallResult with the payload, the price paid and the settlement.

        Raises:
            ProtocolError: If the first response is not 402 Payment Required.
            PaymentError: If signing fails or the paid resend is not 200.
            PaidRequestError: For transport failures (timeouts, refused connections).
        """
        pass

    async def aclose(self) -> None:
        """Releases underlying connections."""
        pass
