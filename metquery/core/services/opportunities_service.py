"""Application Service for the smart money opportunities report.

/markets/opportunities is the better query but times out under load, so
the report falls back to /markets/high-conviction.
"""

import logging

from metquery.domain import catalog
from metquery.domain.errors import FailureKind
from metquery.domain.interfaces.user_interface import UserInterface
from metquery.domain.models.payment import FallbackPlan, RetryPolicy, fixed_backoff
from metquery.infrastructure.resilience.api_retry import FallbackRouter

logger = logging.getLogger(__name__)

# Only gateway timeouts are worth waiting out here; other errors mean the query itself is wrong.
OPPORTUNITIES_POLICY = RetryPolicy(
    max_retries=1,
    backoff=fixed_backoff(3.0),
    transient_kinds=frozenset({FailureKind.TIMEOUT, FailureKind.UNAVAILABLE}),
)

OPPORTUNITIES_PLAN = FallbackPlan.of(
    (catalog.MARKET_OPPORTUNITIES, "opportunities"),
    (catalog.HIGH_CONVICTION_MARKETS, "high-conviction"),
)


class OpportunitiesService:
    def __init__(self, router: FallbackRouter, ui: UserInterface, policy: RetryPolicy = OPPORTUNITIES_POLICY):
        self.router = router
        self.ui = ui
        self.policy = policy

    async def run(self) -> bool:
        """Prints the first market list either endpoint returns.

        Returns:
            False if every endpoint timed out.
        """
        self.ui.display_heading("Smart Money Opportunities")
        result = await self.router.execute_with_fallback(OPPORTUNITIES_PLAN, self.policy)
        if result is None:
            self.ui.display_error(
                "Both endpoints timed out. Server may be under heavy load.\n"
                "Try again in a few minutes, or use a narrower query."
            )
            return False

        self.ui.display_payment(result)
        self.ui.display_json(result.data, title="Full Response Data")
        return True
