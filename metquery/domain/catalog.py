"""Endpoints of the MetEngine API used by the reports.

Paths and parameters are defined by the remote service. Known quirks:

- /meteora/lps/top accepts only timeframe=7d or 30d.
- /meteora/pools/top with sort_by=fees intermittently returns 500.
- /markets/opportunities regularly times out (504) on the gateway.
- /hl/pressure/* may return all-zero pressure; /hl/trades/whales and
  /hl/smart-wallets/signals reconstruct the directional bias instead.
- /hl/smart-wallets/signals often returns empty on short timeframes.
"""

from typing import Optional

from metquery.domain.models.payment import Endpoint

BASE_URL = "https://agent.metengine.xyz"

PLATFORM_STATS = Endpoint("/api/v1/platform/stats", params={"timeframe": "24h"})

# --- Polymarket ---
INSIDERS = Endpoint(
    "/api/v1/wallets/insiders",
    params={"limit": 50, "min_score": 50, "max_wallet_age_days": 60},
)
TOP_PERFORMERS_ROI = Endpoint(
    "/api/v1/wallets/top-performers",
    params={"timeframe": "7d", "metric": "roi", "min_trades": 10, "limit": 25},
)
MARKET_OPPORTUNITIES = Endpoint(
    "/api/v1/markets/opportunities",
    params={"min_signal_strength": "moderate", "min_smart_wallets": 3, "limit": 20},
)
HIGH_CONVICTION_MARKETS = Endpoint(
    "/api/v1/markets/high-conviction",
    params={"min_smart_wallets": 5, "min_avg_score": 65, "limit": 20},
)


def niche_experts(category: str) -> Endpoint:
    return Endpoint(
        "/api/v1/wallets/niche-experts",
        params={
            "category": category,
            "min_category_trades": 10,
            "sort_by": "category_sharpe",
            "limit": 15,
        },
    )


# --- Hyperliquid ---
HL_PRESSURE_PAIRS = Endpoint("/api/v1/hl/pressure/pairs")
HL_PRESSURE_SUMMARY = Endpoint("/api/v1/hl/pressure/summary")
HL_WHALE_TRADES = Endpoint(
    "/api/v1/hl/trades/whales",
    params={"min_usd": 50000, "timeframe": "24h", "limit": 200},
)
HL_SMART_SIGNALS = Endpoint(
    "/api/v1/hl/smart-wallets/signals",
    params={"timeframe": "7d", "min_score": 60, "limit": 50},
)


# --- Meteora ---
def meteora_top_pools(sort_by: str) -> Endpoint:
    return Endpoint(
        "/api/v1/meteora/pools/top",
        params={"sort_by": sort_by, "timeframe": "24h", "limit": 10},
    )


def meteora_fee_analysis(pool_address: str, pool_type: Optional[str] = None) -> Endpoint:
    params = {"pool_address": pool_address}
    if pool_type:
        params["pool_type"] = pool_type
    params["timeframe"] = "24h"
    return Endpoint("/api/v1/meteora/pools/fee-analysis", params=params)


METEORA_TOP_LPS = Endpoint(
    "/api/v1/meteora/lps/top",
    params={"sort_by": "volume", "timeframe": "7d", "limit": 10},
)


def meteora_lp_profile(owner: str) -> Endpoint:
    return Endpoint.post(
        "/api/v1/meteora/lps/profile",
        {"owner": owner, "pool_type": "all", "events_limit": 20},
    )
