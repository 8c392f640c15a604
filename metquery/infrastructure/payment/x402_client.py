"""Concrete implementation of the PaidRequestClient interface over x402.

Performs the two HTTP exchanges itself with httpx so that each phase can be
checked and classified, and delegates quote parsing, payment signing and
settlement decoding to the x402 library's HTTP client.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from metquery.domain.catalog import BASE_URL
from metquery.domain.errors import (
    FailureKind, PaidRequestError, PaymentError, ProtocolError, classify_exception,
)
from metquery.domain.interfaces.paid_client import PaidRequestClient
from metquery.domain.models.common import USDC_DECIMALS, UsdcAmount
from metquery.domain.models.payment import CallResult, Endpoint

logger = logging.getLogger(__name__)

PAYMENT_REQUIRED = 402
SUCCESS = 200


class X402PaidClient(PaidRequestClient):
    """x402 implementation of the PaidRequestClient interface."""

    def __init__(
        self,
        payment_client: Any,
        base_url: str = BASE_URL,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the client.

        Args:
            payment_client: An `x402.http.x402HTTPClient` with a signer registered.
            base_url: Host of the paid API.
            timeout: Client-side timeout in seconds. None leaves timing out
                to the remote gateway (which answers 504).
            transport: Optional httpx transport, used by tests.
        """
        self.payment_client = payment_client
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)
        logger.info(f"X402PaidClient initialized for {self.base_url}")

    async def send(self, endpoint: Endpoint) -> CallResult:
        """Performs request -> 402 quote -> signed resend -> settlement."""
        where = str(endpoint)

        # Step 1: initial request, expected to be refused with a price quote
        initial = await self._request(endpoint)
        if initial.status_code != PAYMENT_REQUIRED:
            raise ProtocolError(initial.status_code, endpoint=where, detail=initial.text)

        # Step 2: parse payment requirements
        payment_required = self._parse_quote(initial, where)
        price = self._price_of(payment_required, where)
        logger.debug(f"{where}: quoted ${price} USDC")

        # Step 3: sign the payment
        try:
            payload = await self.payment_client.create_payment_payload(payment_required)
            payment_headers = self.payment_client.encode_payment_signature_header(payload)
        except Exception as e:
            kind = classify_exception(e)
            logger.warning(f"{where}: payment signing failed ({kind.value}): {e}")
            raise PaymentError(f"Payment signing failed: {e}", endpoint=where, kind=kind) from e

        # Step 4: resend with the payment attached
        paid = await self._request(endpoint, extra_headers=payment_headers)
        if paid.status_code != SUCCESS:
            raise PaymentError(
                f"Payment failed ({paid.status_code})",
                status_code=paid.status_code,
                endpoint=where,
                detail=paid.text,
            )
        try:
            body = paid.json()
        except ValueError as e:
            raise PaymentError(
                "Paid response was not JSON", status_code=paid.status_code,
                endpoint=where, detail=paid.text, kind=FailureKind.PROTOCOL_MISMATCH,
            ) from e

        # Step 5: settlement proof from the response headers
        settlement = self._parse_settlement(paid, where)
        data = body.get("data") if isinstance(body, dict) else body
        return CallResult(data=data, price=price, settlement=settlement, endpoint=endpoint)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, endpoint: Endpoint, extra_headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        headers = dict(extra_headers or {})
        kwargs: Dict[str, Any] = {"headers": headers}
        if endpoint.params:
            kwargs["params"] = endpoint.params
        if endpoint.body is not None:
            kwargs["json"] = endpoint.body
        try:
            return await self._http.request(endpoint.method, endpoint.path, **kwargs)
        except httpx.TimeoutException as e:
            raise PaidRequestError(FailureKind.TIMEOUT, f"Request timed out: {e}", endpoint=str(endpoint)) from e
        except httpx.TransportError as e:
            raise PaidRequestError(FailureKind.NETWORK, f"Request failed: {e}", endpoint=str(endpoint)) from e

    def _parse_quote(self, response: httpx.Response, where: str) -> Any:
        try:
            body = response.json()
        except ValueError:
            body = None
        try:
            return self.payment_client.get_payment_required_response(
                lambda name: response.headers.get(name), body,
            )
        except Exception as e:
            raise ProtocolError(
                response.status_code, endpoint=where, detail=response.text,
                message=f"Malformed payment quote: {e}",
            ) from e

    def _price_of(self, payment_required: Any, where: str) -> UsdcAmount:
        try:
            raw_amount = payment_required.accepts[0].amount
        except (AttributeError, IndexError, TypeError) as e:
            raise ProtocolError(
                PAYMENT_REQUIRED, endpoint=where, message=f"Payment quote has no accepted amount: {e}",
            ) from e
        return UsdcAmount(Decimal(str(raw_amount)) / (Decimal(10) ** USDC_DECIMALS))

    def _parse_settlement(self, response: httpx.Response, where: str) -> Any:
        try:
            return self.payment_client.get_payment_settle_response(lambda name: response.headers.get(name))
        except Exception as e:
            # Data was delivered and paid for; a missing receipt only costs us the tx id.
            logger.warning(f"{where}: could not decode settlement header: {e}")
            return None
