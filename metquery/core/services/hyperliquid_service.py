"""Application Service for Hyperliquid long/short pressure reports.

Two reports, each joining two independent endpoints fetched concurrently:

- pressure: /hl/pressure/pairs and /hl/pressure/summary
- directional bias: /hl/trades/whales and /hl/smart-wallets/signals, used
  when the pressure endpoints come back all zeros.

Whale trades use Hyperliquid's raw `side` field: "A" means the taker bought
(aggressor on the ask, bullish pressure) and "B" means the taker sold.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from metquery.core.services.payload import dict_rows, number
from metquery.domain import catalog
from metquery.domain.interfaces.user_interface import UserInterface
from metquery.domain.models.common import JSONDocument
from metquery.domain.models.payment import CallResult
from metquery.infrastructure.resilience.api_retry import RetryOrchestrator
from metquery.infrastructure.resilience.fan_out import join_isolated

logger = logging.getLogger(__name__)

TAKER_BUY = "A"
TAKER_SELL = "B"
TOP_TRADES_PER_COIN = 5


def _usd(value: float) -> str:
    return f"${value:,.0f}"


def direction_of(imbalance: float, positive: str, negative: str) -> str:
    if imbalance > 0:
        return positive
    if imbalance < 0:
        return negative
    return "NEUTRAL"


def ratio_label(numerator: float, denominator: float) -> str:
    """Ratio to two decimals; `Inf` for a zero denominator, `N/A` when both are zero."""
    if denominator > 0:
        return f"{numerator / denominator:.2f}"
    return "Inf" if numerator > 0 else "N/A"


def _coins_of(data: JSONDocument) -> List[Dict[str, Any]]:
    return dict_rows(data.get("coins")) if isinstance(data, dict) else []


def rank_pressure_pairs(coins: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Orders coins by absolute long/short pressure imbalance, largest first."""
    return sorted(
        coins,
        key=lambda c: abs(number(c.get("long_pressure")) - number(c.get("short_pressure"))),
        reverse=True,
    )


def _percent(coin: Dict[str, Any], key: str) -> float:
    return number(coin.get(key), default=50.0)


def percent_imbalance(coin: Dict[str, Any]) -> float:
    """Long minus short percentage; a missing or unparseable percentage counts as 50."""
    return _percent(coin, "long_percent") - _percent(coin, "short_percent")


def rank_pressure_summary(coins: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(coins, key=lambda c: abs(percent_imbalance(c)), reverse=True)


@dataclass
class CoinFlow:
    """Whale taker volume on one coin."""
    coin: str
    buy_volume: float = 0.0
    sell_volume: float = 0.0
    buy_count: int = 0
    sell_count: int = 0
    trades: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total_volume(self) -> float:
        return self.buy_volume + self.sell_volume

    @property
    def imbalance(self) -> float:
        return self.buy_volume - self.sell_volume

    def share(self, volume: float) -> str:
        total = self.total_volume
        return f"{volume / total * 100:.1f}" if total > 0 else "0.0"

    def top_trades(self, limit: int = TOP_TRADES_PER_COIN) -> List[Dict[str, Any]]:
        return sorted(self.trades, key=lambda t: number(t.get("usd_value")), reverse=True)[:limit]


def aggregate_whale_trades(trades: Sequence[Dict[str, Any]]) -> List[CoinFlow]:
    """Groups trades per coin and orders coins by absolute buy/sell imbalance.

    Trades whose side is neither A nor B are kept in the coin's trade list
    but counted on neither side.
    """
    flows: Dict[str, CoinFlow] = {}
    for trade in trades:
        coin = str(trade.get("coin"))
        flow = flows.setdefault(coin, CoinFlow(coin=coin))
        flow.trades.append(trade)
        side = trade.get("side")
        if side == TAKER_BUY:
            flow.buy_volume += number(trade.get("usd_value"))
            flow.buy_count += 1
        elif side == TAKER_SELL:
            flow.sell_volume += number(trade.get("usd_value"))
            flow.sell_count += 1
    return sorted(flows.values(), key=lambda f: abs(f.imbalance), reverse=True)


class HyperliquidService:
    def __init__(self, orchestrator: RetryOrchestrator, ui: UserInterface):
        self.orchestrator = orchestrator
        self.ui = ui

    async def run_pressure(self) -> None:
        self.ui.display_heading("Hyperliquid Long/Short Pressure Analysis")
        pairs, summary = await join_isolated(
            ("pressure/pairs", self.orchestrator.execute(catalog.HL_PRESSURE_PAIRS, "pressure/pairs")),
            ("pressure/summary", self.orchestrator.execute(catalog.HL_PRESSURE_SUMMARY, "pressure/summary")),
        )
        if pairs is not None:
            self._show_pressure_pairs(pairs)
        if summary is not None:
            self._show_pressure_summary(summary)
        if pairs is None and summary is None:
            self.ui.display_warning("Neither pressure endpoint returned data.")

    async def run_directional_bias(self) -> None:
        self.ui.display_heading("Hyperliquid Directional Bias (whale trades and smart wallet signals)")
        self.ui.display_output("Reconstructing directional bias from whale trades and smart wallet signals.")
        whales, signals = await join_isolated(
            ("trades/whales", self.orchestrator.execute(catalog.HL_WHALE_TRADES, "trades/whales")),
            ("smart-wallets/signals", self.orchestrator.execute(catalog.HL_SMART_SIGNALS, "smart-wallets/signals")),
        )
        if whales is not None:
            self._show_whale_flows(whales)
        if signals is not None:
            self._show_signals(signals)
        if whales is None and signals is None:
            self.ui.display_warning("Neither whale trades nor smart wallet signals returned data.")

    # --- pressure ---

    def _show_pressure_pairs(self, result: CallResult) -> None:
        self.ui.display_heading("pressure/pairs")
        self.ui.display_payment(result)
        ranked = rank_pressure_pairs(_coins_of(result.data))
        self.ui.display_output(f"Coins returned: {len(ranked)}, sorted by biggest long/short imbalance")
        for coin in ranked:
            long_p, short_p = number(coin.get("long_pressure")), number(coin.get("short_pressure"))
            imbalance = long_p - short_p
            self.ui.display_output(f"  {coin.get('coin')}")
            self.ui.display_output(f"    Long pressure:  {long_p:,}")
            self.ui.display_output(f"    Short pressure: {short_p:,}")
            self.ui.display_output(
                f"    Imbalance:      {abs(imbalance):,} ({direction_of(imbalance, 'LONG-HEAVY', 'SHORT-HEAVY')})"
            )
            self.ui.display_output(f"    L/S ratio:      {ratio_label(long_p, short_p)}")
            self.ui.display_output(f"    Long avg entry:  {coin.get('long_avg_entry')}")
            self.ui.display_output(f"    Short avg entry: {coin.get('short_avg_entry')}")
            self.ui.display_output(
                f"    Smart longs:  {coin.get('long_smart_count')}  |  Smart shorts: {coin.get('short_smart_count')}"
            )
        self.ui.display_json(result.data, title="pressure/pairs raw JSON")

    def _show_pressure_summary(self, result: CallResult) -> None:
        self.ui.display_heading("pressure/summary")
        self.ui.display_payment(result)
        ranked = rank_pressure_summary(_coins_of(result.data))
        self.ui.display_output(f"Coins returned: {len(ranked)}, sorted by biggest percentage imbalance")
        for coin in ranked:
            pct = percent_imbalance(coin)
            self.ui.display_output(f"  {coin.get('coin')}")
            self.ui.display_output(
                f"    Long:  {coin.get('long_pressure', 'N/A')} ({_percent(coin, 'long_percent'):.1f}%)"
            )
            self.ui.display_output(
                f"    Short: {coin.get('short_pressure', 'N/A')} ({_percent(coin, 'short_percent'):.1f}%)"
            )
            self.ui.display_output(
                f"    Imbalance: {abs(pct):.1f}% {direction_of(pct, 'LONG-HEAVY', 'SHORT-HEAVY')}"
            )
        self.ui.display_json(result.data, title="pressure/summary raw JSON")

    # --- directional bias ---

    def _show_whale_flows(self, result: CallResult) -> None:
        self.ui.display_heading("Whale Trades (>=50k USD, last 24h)")
        self.ui.display_payment(result)
        trades = dict_rows(result.data)
        self.ui.display_output(f"Total whale trades: {len(trades)}")
        sides = sorted({str(t.get("side")) for t in trades})
        directions = sorted({str(t.get("direction")) for t in trades})
        self.ui.display_output(f"Side values found: {', '.join(sides)}")
        self.ui.display_output(f"Direction values found: {', '.join(directions)}")

        flows = aggregate_whale_trades(trades)
        for flow in flows:
            imbalance = flow.imbalance
            self.ui.display_output(f"  {flow.coin}")
            self.ui.display_output(
                f"    Buy volume (A):  {_usd(flow.buy_volume)}  ({flow.share(flow.buy_volume)}%)  [{flow.buy_count} trades]"
            )
            self.ui.display_output(
                f"    Sell volume (B): {_usd(flow.sell_volume)}  ({flow.share(flow.sell_volume)}%)  [{flow.sell_count} trades]"
            )
            self.ui.display_output(
                f"    Net imbalance:   {_usd(abs(imbalance))} "
                f"{direction_of(imbalance, 'BUY-HEAVY (bullish)', 'SELL-HEAVY (bearish)')}"
            )
            self.ui.display_output(f"    Buy/Sell ratio:  {ratio_label(flow.buy_volume, flow.sell_volume)}")
            top = flow.top_trades()
            self.ui.display_output(f"    Top {len(top)} trades:")
            for t in top:
                side = {TAKER_BUY: "BUY", TAKER_SELL: "SELL"}.get(t.get("side"), str(t.get("side")))
                self.ui.display_output(
                    f"      {side} | {_usd(number(t.get('usd_value')))} | {t.get('coin')}@{t.get('price')} | "
                    f"dir={t.get('direction')} | trader: {t.get('trader')} | score: {t.get('smart_score')} | "
                    f"closed_pnl: ${number(t.get('closed_pnl')):,} | {t.get('timestamp')}"
                )

        self.ui.display_table(
            ["Coin", "Buy Vol ($)", "Sell Vol ($)", "Imbalance ($)", "Direction", "B/S Ratio"],
            [
                [
                    flow.coin,
                    f"{flow.buy_volume:,.0f}",
                    f"{flow.sell_volume:,.0f}",
                    f"{abs(flow.imbalance):,.0f}",
                    direction_of(flow.imbalance, "BUY-HEAVY", "SELL-HEAVY"),
                    ratio_label(flow.buy_volume, flow.sell_volume),
                ]
                for flow in flows
            ],
            title="IMBALANCE SUMMARY",
        )
        self.ui.display_json(trades, title="Whale trades raw JSON")

    def _show_signals(self, result: CallResult) -> None:
        self.ui.display_heading("Smart Wallet Directional Signals (7d, score>=60)")
        self.ui.display_payment(result)
        signals = dict_rows(result.data)
        self.ui.display_output(f"Total signals: {len(signals)}")
        if not signals:
            self.ui.display_output("(No signals returned -- this endpoint often returns empty on shorter timeframes.)")
            return
        for s in sorted(signals, key=lambda s: number(s.get("total_volume")), reverse=True):
            self.ui.display_output(f"  {s.get('coin')}")
            self.ui.display_output(f"    Direction:          {s.get('direction')}")
            self.ui.display_output(f"    Smart wallet count: {s.get('smart_wallet_count')}")
            self.ui.display_output(f"    Total volume:       ${number(s.get('total_volume')):,}")
            self.ui.display_output(f"    Avg score:          {s.get('avg_score')}")
        self.ui.display_json(signals, title="Smart wallet signals raw JSON")
