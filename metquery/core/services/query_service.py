"""Application Service for single paid queries and simple query sequences."""

import logging
from typing import Dict

from metquery.domain import catalog
from metquery.domain.interfaces.user_interface import UserInterface
from metquery.domain.models.common import JSONDocument
from metquery.domain.models.payment import NO_RETRY, Endpoint, RetryPolicy
from metquery.infrastructure.resilience.api_retry import RetryOrchestrator

logger = logging.getLogger(__name__)

EARLY_WALLET_CATEGORIES = ("Crypto", "Tech")


class QueryService:
    """Runs ad hoc queries, the insiders listing and the early-wallet scan."""

    def __init__(self, orchestrator: RetryOrchestrator, ui: UserInterface):
        self.orchestrator = orchestrator
        self.ui = ui

    async def run_query(self, endpoint: Endpoint, policy: RetryPolicy = NO_RETRY) -> JSONDocument:
        """Queries one endpoint and prints its payment and payload."""
        self.ui.display_output(f"Querying: {endpoint}")
        result = await self.orchestrator.execute(endpoint, "Query", policy)
        self.ui.display_payment(result)
        self.ui.display_json(result.data, title="Data")
        return result.data

    async def run_insiders(self) -> JSONDocument:
        """Lists global insider candidates on Polymarket."""
        endpoint = catalog.INSIDERS
        self.ui.display_heading("Polymarket Global Insider Candidates")
        self.ui.display_output(f"Endpoint: {endpoint.method} {endpoint.path}")
        self.ui.display_output("Params: " + ", ".join(f"{k}={v}" for k, v in (endpoint.params or {}).items()))
        result = await self.orchestrator.execute(endpoint, "Insiders")
        self.ui.display_payment(result)
        self.ui.display_json(result.data)
        return result.data

    async def run_early_wallets(self) -> Dict[str, JSONDocument]:
        """Combines ROI top performers with per-category niche experts.

        High 7d ROI suggests early entries; wallets that dominate a niche by
        category Sharpe tend to be early movers there. Calls run in order and
        the first failure ends the scan.
        """
        steps = [("roi", "Top Performers by ROI (7d)", catalog.TOP_PERFORMERS_ROI)]
        steps += [
            (category.lower(), f"Niche Experts: {category}", catalog.niche_experts(category))
            for category in EARLY_WALLET_CATEGORIES
        ]

        results: Dict[str, JSONDocument] = {}
        for key, title, endpoint in steps:
            self.ui.display_heading(title)
            result = await self.orchestrator.execute(endpoint, title)
            results[key] = result.data
            self.ui.display_payment(result)
            self.ui.display_json(result.data)
        return results
