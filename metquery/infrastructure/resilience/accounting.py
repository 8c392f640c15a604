"""Running cost totals for one CLI run.

Only settled calls are recorded: the x402 facilitator never charges for an
exchange that did not end in a 200, so failed and retried attempts cost
nothing and must not appear in the totals.
"""

import logging
from decimal import Decimal

from metquery.domain.models.payment import RunSummary

logger = logging.getLogger(__name__)


class RunAccounting:
    """Process-scoped cost and call counters."""

    def __init__(self):
        self._total_cost = Decimal("0")
        self._call_count = 0

    def record(self, price: Decimal) -> None:
        """Adds one settled call to the totals."""
        self._total_cost += Decimal(price)
        self._call_count += 1
        logger.debug(f"Recorded payment of ${price} USDC (calls={self._call_count}, total=${self._total_cost})")

    def summary(self) -> RunSummary:
        return RunSummary(total_cost=self._total_cost, call_count=self._call_count)
