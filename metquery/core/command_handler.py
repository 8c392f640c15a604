"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) and delegates the
work to the report services. Every command returns a RunOutcome and ends
with the run's cost summary, whether it succeeded or not.
"""

import logging
from typing import Awaitable, Optional

from metquery.core.services.hyperliquid_service import HyperliquidService
from metquery.core.services.meteora_service import MeteoraService
from metquery.core.services.opportunities_service import OpportunitiesService
from metquery.core.services.query_service import QueryService
from metquery.domain.errors import PaidRequestError
from metquery.domain.interfaces.user_interface import UserInterface
from metquery.domain.models.payment import NO_RETRY, Endpoint, RetryPolicy, RunOutcome
from metquery.infrastructure.resilience.accounting import RunAccounting

logger = logging.getLogger(__name__)


class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        query_service: QueryService,
        opportunities_service: OpportunitiesService,
        hyperliquid_service: HyperliquidService,
        meteora_service: MeteoraService,
        accounting: RunAccounting,
        ui: UserInterface,
    ):
        self.query_service = query_service
        self.opportunities_service = opportunities_service
        self.hyperliquid_service = hyperliquid_service
        self.meteora_service = meteora_service
        self.accounting = accounting
        self.ui = ui

    async def handle_query(self, endpoint: Endpoint, policy: RetryPolicy = NO_RETRY) -> RunOutcome:
        logger.info(f"Handling 'query' command for {endpoint}")
        return await self._run("query", self.query_service.run_query(endpoint, policy))

    async def handle_insiders(self) -> RunOutcome:
        return await self._run("insiders", self.query_service.run_insiders())

    async def handle_early_wallets(self) -> RunOutcome:
        return await self._run("early-wallets", self.query_service.run_early_wallets(), summary_title="COMBINED COST")

    async def handle_opportunities(self) -> RunOutcome:
        return await self._run("opportunities", self.opportunities_service.run())

    async def handle_hl_pressure(self) -> RunOutcome:
        return await self._run("hl-pressure", self.hyperliquid_service.run_pressure())

    async def handle_hl_bias(self) -> RunOutcome:
        return await self._run("hl-bias", self.hyperliquid_service.run_directional_bias())

    async def handle_meteora_yield(self, from_step: int = 1) -> RunOutcome:
        logger.info(f"Handling 'meteora-yield' command from step {from_step}")
        return await self._run("meteora-yield", self.meteora_service.run(from_step))

    async def _run(self, command: str, work: Awaitable[object], summary_title: str = "COST SUMMARY") -> RunOutcome:
        """Awaits one report and turns its result into a RunOutcome.

        A report that returns False has already told the user why. A
        PaidRequestError escaping the report is the run's fatal error.
        """
        error: Optional[str] = None
        try:
            result = await work
            ok = result is not False
        except PaidRequestError as e:
            logger.error(f"'{command}' failed: {e.describe()}")
            error = e.describe()
            self.ui.display_error(f"{command} failed: {error}")
            ok = False

        summary = self.accounting.summary()
        self.ui.display_summary(summary, title=summary_title)
        return RunOutcome(ok=ok, summary=summary, error=error)
