"""Failure model for paid requests.

Every failure raised by a PaidRequestClient carries a FailureKind. The
resilience layer decides whether to retry by looking at the kind only, so
all mapping from HTTP statuses and third-party exceptions to kinds lives in
this module.
"""

import enum
from typing import FrozenSet, Optional

BODY_EXCERPT_LIMIT = 500


class FailureKind(enum.Enum):
    """Closed set of reasons a paid call can fail."""
    TIMEOUT = "timeout"                      # 504 from the gateway, or a client timeout
    UNAVAILABLE = "unavailable"              # 503
    SERVER_ERROR = "server_error"            # 500
    RATE_LIMITED = "rate_limited"            # 429, including the signer's chain RPC
    PROTOCOL_MISMATCH = "protocol_mismatch"  # handshake did not follow the 402 -> 200 shape
    PAYMENT_REJECTED = "payment_rejected"    # paid resend returned any other status
    NETWORK = "network"                      # connection could not be established


TRANSIENT_KINDS: FrozenSet[FailureKind] = frozenset({
    FailureKind.TIMEOUT,
    FailureKind.UNAVAILABLE,
    FailureKind.SERVER_ERROR,
    FailureKind.RATE_LIMITED,
})

_STATUS_KINDS = {
    504: FailureKind.TIMEOUT,
    503: FailureKind.UNAVAILABLE,
    500: FailureKind.SERVER_ERROR,
    429: FailureKind.RATE_LIMITED,
}

_RATE_LIMIT_MARKERS = ("429", "too many requests")


def classify_status(status_code: Optional[int], default: FailureKind) -> FailureKind:
    """Maps an HTTP status to a FailureKind, or `default` if it is not a transient status."""
    if status_code is None:
        return default
    return _STATUS_KINDS.get(status_code, default)


def classify_exception(exc: BaseException) -> FailureKind:
    """Maps an exception raised while signing a payment to a FailureKind.

    The signer talks to a Solana RPC node that rate limits aggressively; the
    x402 library surfaces those as plain exceptions, so only their status
    attribute or message can be inspected.
    """
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if isinstance(status, int) and status in _STATUS_KINDS:
        return _STATUS_KINDS[status]
    message = str(exc).lower()
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return FailureKind.RATE_LIMITED
    return FailureKind.PAYMENT_REJECTED


def excerpt(text: str, limit: int = BODY_EXCERPT_LIMIT) -> str:
    """Truncates a response body for diagnostics."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class PaidRequestError(Exception):
    """Base class for failures of a paid request."""

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        detail: str = "",
    ):
        self.kind = kind
        self.endpoint = endpoint
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        return self.kind in TRANSIENT_KINDS

    def describe(self) -> str:
        """Short diagnostic line: endpoint, kind/status and a truncated message."""
        status = f" {self.status_code}" if self.status_code is not None else ""
        where = f"{self.endpoint}: " if self.endpoint else ""
        return f"{where}[{self.kind.value}{status}] {excerpt(str(self), 200)}"


class ProtocolError(PaidRequestError):
    """The first response was not `402 Payment Required`."""

    def __init__(
        self,
        status_code: int,
        endpoint: Optional[str] = None,
        detail: str = "",
        message: Optional[str] = None,
    ):
        kind = classify_status(status_code, FailureKind.PROTOCOL_MISMATCH)
        super().__init__(
            kind,
            message or f"Expected 402, got {status_code}",
            endpoint=endpoint,
            status_code=status_code,
            detail=excerpt(detail),
        )


class PaymentError(PaidRequestError):
    """The paid resend did not succeed, or the payment could not be signed."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        detail: str = "",
        kind: Optional[FailureKind] = None,
    ):
        detail = excerpt(detail)
        super().__init__(
            kind or classify_status(status_code, FailureKind.PAYMENT_REJECTED),
            f"{message}: {detail}" if detail else message,
            endpoint=endpoint,
            status_code=status_code,
            detail=detail,
        )
