"""Domain Events related to paid API calls and resilience.

Examples include events for when calls are throttled, retried, fail, fall
back to an alternate endpoint, or settle.
"""

from dataclasses import dataclass, field
from decimal import Decimal
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class PaidCallInitiated(DomainEvent):
    """Event triggered when a paid call is about to be made."""
    label: str
    endpoint: str
    attempt_number: int = 1
    timestamp: float = field(default_factory=time.time)


@dataclass
class PaidCallSucceeded(DomainEvent):
    """Event triggered when a paid call settles."""
    label: str
    endpoint: str
    latency_ms: float
    price: Decimal
    settlement_tx: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class PaidCallFailed(DomainEvent):
    """Event triggered when a paid call fails definitively (after retries)."""
    label: str
    endpoint: str
    error_kind: str
    error_message: str
    status_code: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class CallThrottled(DomainEvent):
    """Event triggered when a call waits for the pacing interval."""
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a transient failure."""
    label: str
    endpoint: str
    attempt_number: int
    delay_seconds: float
    error_kind: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class FallbackTriggered(DomainEvent):
    """Event triggered when a fallback plan moves on to its next entry."""
    failed_label: str
    next_label: str
    reason: str
    timestamp: float = field(default_factory=time.time)


def dispatch_event(event: DomainEvent) -> None:
    """Publishes an event. Events currently go to the debug log only."""
    logger.debug(f"EVENT: {event}")
