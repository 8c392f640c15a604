"""Domain models for paid calls.

Includes the request target, the result of a settled call, the retry and
fallback policies applied around calls, and run-level accounting summaries.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple
from urllib.parse import urlencode

from metquery.domain.errors import TRANSIENT_KINDS, FailureKind
from metquery.domain.models.common import JSONDocument, SettlementTx, UsdcAmount

BackoffFn = Callable[[int], float]  # attempt index (0-based) -> delay in seconds


@dataclass(frozen=True)
class Endpoint:
    """An opaque request target on the paid API."""
    path: str
    method: str = "GET"
    body: Optional[Dict[str, Any]] = None    # JSON body for POST
    params: Optional[Dict[str, Any]] = None  # Extra query parameters for GET

    @classmethod
    def post(cls, path: str, body: Dict[str, Any]) -> "Endpoint":
        return cls(path=path, method="POST", body=body)

    def __str__(self) -> str:
        if not self.params:
            return f"{self.method} {self.path}"
        sep = "&" if "?" in self.path else "?"
        return f"{self.method} {self.path}{sep}{urlencode(self.params)}"


@dataclass(frozen=True)
class CallResult:
    """Outcome of one successful paid call."""
    data: JSONDocument
    price: UsdcAmount
    settlement: Any = None
    endpoint: Optional[Endpoint] = None
    label: Optional[str] = None
    used_fallback: bool = False

    @property
    def settlement_tx(self) -> Optional[SettlementTx]:
        """Transaction id from the settlement receipt, if the server sent one."""
        if self.settlement is None:
            return None
        if isinstance(self.settlement, dict):
            tx = self.settlement.get("transaction")
        else:
            tx = getattr(self.settlement, "transaction", None)
        return SettlementTx(tx) if tx else None

    def tagged(self, label: str, used_fallback: bool) -> "CallResult":
        return replace(self, label=label, used_fallback=used_fallback)


def fixed_backoff(seconds: float) -> BackoffFn:
    """Same delay before every retry."""
    def backoff(attempt: int) -> float:
        return seconds
    return backoff


def linear_backoff(step_seconds: float) -> BackoffFn:
    """Delay grows by `step_seconds` per attempt: step, 2*step, 3*step..."""
    def backoff(attempt: int) -> float:
        return (attempt + 1) * step_seconds
    return backoff


@dataclass(frozen=True)
class RetryPolicy:
    """Value Object representing retry configuration for one call site."""
    max_retries: int = 0
    backoff: BackoffFn = field(default=fixed_backoff(3.0))
    transient_kinds: FrozenSet[FailureKind] = TRANSIENT_KINDS

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {self.max_retries}")

    def is_transient(self, kind: FailureKind) -> bool:
        return kind in self.transient_kinds


NO_RETRY = RetryPolicy(max_retries=0)


@dataclass(frozen=True)
class FallbackEntry:
    endpoint: Endpoint
    label: str


@dataclass(frozen=True)
class FallbackPlan:
    """Ordered alternates tried until one succeeds."""
    entries: Tuple[FallbackEntry, ...]

    @classmethod
    def of(cls, *pairs: Tuple[Endpoint, str]) -> "FallbackPlan":
        return cls(tuple(FallbackEntry(endpoint, label) for endpoint, label in pairs))

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class RunSummary:
    """End-of-run cost report."""
    total_cost: UsdcAmount
    call_count: int


@dataclass(frozen=True)
class RunOutcome:
    """Result of a top-level command; the entry point maps it to an exit code."""
    ok: bool
    summary: Optional[RunSummary] = None
    error: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1
