"""Application Service for the Meteora yield analysis.

Four throttled steps, each feeding the next:

1. Top pools by fees (24h), falling back to top pools by volume.
2. Fee analysis for the top 5 pools.
3. Top LPs by volume (7d).
4. Full profile for the top 3 LPs.

Steps 2 and 4 query one endpoint per pool/LP; a failure there only loses
that row. A failure in steps 1 or 3 leaves nothing to analyse and ends the run.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from metquery.core.services.payload import dict_rows, number
from metquery.domain import catalog
from metquery.domain.errors import PaidRequestError
from metquery.domain.interfaces.user_interface import UserInterface
from metquery.domain.models.common import JSONDocument
from metquery.domain.models.payment import FallbackPlan, RetryPolicy, linear_backoff
from metquery.infrastructure.resilience.api_retry import FallbackRouter, RetryOrchestrator

logger = logging.getLogger(__name__)

METEORA_POLICY = RetryPolicy(max_retries=3, backoff=linear_backoff(5.0))

POOLS_FOR_FEE_ANALYSIS = 5
LPS_FOR_PROFILE = 3
# DAMM v2 pools charge steep anti-sniper fees right after launch, inflating fees relative to volume.
ANOMALOUS_FEE_RATIO = 0.20

TOP_POOLS_PLAN = FallbackPlan.of(
    (catalog.meteora_top_pools("fees"), "Step 1: Top Pools by Fees (24h)"),
    (catalog.meteora_top_pools("volume"), "Step 1 (Fallback): Top Pools by Volume (24h)"),
)


def token_pair(record: Dict[str, Any], sep: str = " / ", unknown: str = "unknown pair") -> str:
    """DLMM pools name their tokens x/y, DAMM pools a/b."""
    if record.get("token_x") and record.get("token_y"):
        return f"{record['token_x']}{sep}{record['token_y']}"
    if record.get("token_a") and record.get("token_b"):
        return f"{record['token_a']}{sep}{record['token_b']}"
    return unknown


def fee_volume_ratio(pool: Dict[str, Any], fees: Dict[str, Any]) -> Optional[float]:
    volume = number(pool.get("volume_usd"))
    if volume <= 0:
        return None
    return number(fees.get("total_fees_claimed")) / volume


def is_anomalous_fee_ratio(ratio: Optional[float]) -> bool:
    return ratio is not None and ratio > ANOMALOUS_FEE_RATIO


class MeteoraService:
    def __init__(
        self,
        orchestrator: RetryOrchestrator,
        router: FallbackRouter,
        ui: UserInterface,
        policy: RetryPolicy = METEORA_POLICY,
    ):
        self.orchestrator = orchestrator
        self.router = router
        self.ui = ui
        self.policy = policy

    async def run(self, from_step: int = 1) -> bool:
        """Runs the analysis; `from_step=3` skips the pool steps and starts at the LPs.

        Returns:
            False if the top pools could not be fetched by either ordering.
        """
        if from_step not in (1, 3):
            raise ValueError(f"from_step must be 1 or 3, got {from_step}")
        self.ui.display_heading("METEORA YIELD ANALYSIS")
        if from_step == 1:
            pools = await self.fetch_top_pools()
            if pools is None:
                self.ui.display_error("Could not fetch top pools (sorted by fees or by volume). Try again later.")
                return False
            self.show_top_pools(pools)
            fee_results = await self.fetch_fee_analyses(pools[:POOLS_FOR_FEE_ANALYSIS])
            self.show_fee_analyses(fee_results)
        else:
            self.ui.display_info("Continuing from step 3 (steps 1-2 skipped).")

        lps = await self.fetch_top_lps()
        self.show_top_lps(lps)
        await self.show_lp_profiles(lps[:LPS_FOR_PROFILE])
        return True

    # --- Step 1 ---

    async def fetch_top_pools(self) -> Optional[List[Dict[str, Any]]]:
        result = await self.router.execute_with_fallback(TOP_POOLS_PLAN, self.policy)
        if result is None:
            return None
        if result.used_fallback:
            self.ui.display_output("  sort_by=fees failed, fell back to sort_by=volume")
        return dict_rows(result.data)

    def show_top_pools(self, pools: List[Dict[str, Any]]) -> None:
        self.ui.display_heading(f"Top {len(pools)} Pools")
        for i, p in enumerate(pools, start=1):
            self.ui.display_output(f"  #{i} | {p.get('pool_type') or '?'} | {token_pair(p)}")
            self.ui.display_output(f"     Pool: {p.get('pool_address')}")
            self.ui.display_output(
                f"     Volume: ${number(p.get('volume_usd')):,} | Fees: ${number(p.get('total_fees_usd')):,} | "
                f"LPs: {p.get('unique_lps', '?')} | Events: {p.get('event_count', '?')}"
            )

    # --- Step 2 ---

    async def fetch_fee_analyses(self, pools: List[Dict[str, Any]]) -> List[Tuple[Dict[str, Any], Optional[JSONDocument]]]:
        self.ui.display_heading(f"FEE ANALYSIS FOR TOP {len(pools)} POOLS")
        results = []
        for pool in pools:
            address = pool.get("pool_address")
            endpoint = catalog.meteora_fee_analysis(address, pool.get("pool_type"))
            try:
                result = await self.orchestrator.execute(endpoint, f"Fee Analysis: {address}", self.policy)
                results.append((pool, result.data))
            except PaidRequestError as e:
                self.ui.display_output(f"  Failed for {address}: {e.describe()}")
                results.append((pool, None))
        return results

    def show_fee_analyses(self, fee_results: List[Tuple[Dict[str, Any], Optional[JSONDocument]]]) -> None:
        self.ui.display_heading("Fee Analysis Summary")
        for pool, fees in fee_results:
            self.ui.display_output(f"\n  Pool: {pool.get('pool_address')}")
            self.ui.display_output(f"  Pair: {token_pair(pool)} ({pool.get('pool_type') or '?'})")
            if not isinstance(fees, dict):
                self.ui.display_output("  Fee data unavailable.")
                continue
            self.ui.display_output(f"  Total Fees Claimed (24h): ${number(fees.get('total_fees_claimed')):,}")
            self.ui.display_output(f"  Unique Claimers: {fees.get('unique_claimers', '?')}")
            claimers = fees.get("top_claimers")
            if isinstance(claimers, list):
                self.ui.display_output("  Top Fee Claimers:")
                for c in claimers[:5]:
                    who = c.get("owner") or c.get("wallet") or "?"
                    amount = c.get("fees_claimed", c.get("total_fees"))
                    self.ui.display_output(f"    - {who}: ${number(amount):,}")
            ratio = fee_volume_ratio(pool, fees)
            if is_anomalous_fee_ratio(ratio):
                self.ui.display_warning(
                    f"Fee/Volume ratio is {ratio * 100:.1f}% for {pool.get('pool_address')} "
                    "-- likely DAMM v2 anti-sniper fee artifact"
                )

    # --- Step 3 ---

    async def fetch_top_lps(self) -> List[Dict[str, Any]]:
        result = await self.orchestrator.execute(catalog.METEORA_TOP_LPS, "Step 3: Top LPs by Volume (7d)", self.policy)
        return dict_rows(result.data)

    def show_top_lps(self, lps: List[Dict[str, Any]]) -> None:
        self.ui.display_heading(f"TOP {len(lps)} LPs BY VOLUME (7d)")
        for i, lp in enumerate(lps, start=1):
            self.ui.display_output(f"  #{i} | {lp.get('owner')}")
            self.ui.display_output(
                f"     Volume: ${number(lp.get('total_volume_usd')):,} | Pools: {lp.get('pool_count', '?')} | "
                f"Events: {lp.get('event_count', '?')} | Types: {', '.join(lp.get('pool_types') or [])}"
            )

    # --- Step 4 ---

    async def show_lp_profiles(self, lps: List[Dict[str, Any]]) -> None:
        self.ui.display_heading(f"LP PROFILES (TOP {len(lps)})")
        for lp in lps:
            owner = lp.get("owner")
            try:
                result = await self.orchestrator.execute(catalog.meteora_lp_profile(owner), f"LP Profile: {owner}", self.policy)
            except PaidRequestError as e:
                self.ui.display_output(f"  Failed for {owner}: {e.describe()}")
                continue
            self._show_profile(owner, result.data if isinstance(result.data, dict) else {})

    def _show_profile(self, owner: str, profile: Dict[str, Any]) -> None:
        self.ui.display_output(f"\n  Owner: {owner}")
        summary = profile.get("summary")
        if isinstance(summary, dict):
            self.ui.display_output(f"  Total Volume: ${number(summary.get('total_volume_usd')):,}")
            self.ui.display_output(f"  Pool Count: {summary.get('pool_count', '?')}")
            self.ui.display_output(f"  Event Count: {summary.get('event_count', '?')}")
            self.ui.display_output(f"  Pool Types: {', '.join(summary.get('pool_types') or [])}")
        breakdown = profile.get("pool_breakdown")
        if isinstance(breakdown, list):
            self.ui.display_output(f"  Pool Breakdown ({len(breakdown)} pools):")
            for pb in breakdown[:5]:
                self.ui.display_output(f"    - {pb.get('pool_address')} ({pb.get('pool_type') or '?'})")
                self.ui.display_output(
                    f"      {token_pair(pb, sep='/', unknown='?/?')} | Vol: ${number(pb.get('volume_usd')):,} | "
                    f"Events: {pb.get('event_count', '?')}"
                )
        events = profile.get("recent_events")
        if isinstance(events, list):
            self.ui.display_output(f"  Recent Events (last {min(len(events), 10)}):")
            for ev in events[:10]:
                self.ui.display_output(
                    f"    - {ev.get('event_type')} | ${number(ev.get('usd_total')):,} | "
                    f"Pool: {ev.get('pool_address')} | {ev.get('timestamp')}"
                )
                if ev.get("tx_id"):
                    self.ui.display_output(f"      TX: {ev['tx_id']}")