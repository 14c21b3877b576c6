"""
Cross-source arbitrage detection.

Turns a batch of fetch outcomes into a single ArbitrageAnalysis. The
detector is pure apart from the wall-clock timestamp it stamps on its
output: no retries, no I/O, no state carried between calls.
"""

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass

from dexarb.config.constants import (
    DEFAULT_MIN_PRICE_DIFF_PERCENT,
    DEFAULT_MIN_PROFIT_THRESHOLD,
    DEFAULT_SLIPPAGE_PERCENT,
)
from dexarb.core.types import (
    ArbitrageAnalysis,
    FetchOk,
    FetchOutcome,
    NormalizedQuote,
    ProfitBreakdown,
    TradeRecommendation,
)
from dexarb.strategy.calculator import (
    calculate_net_profit,
    calculate_potential_profit,
    calculate_price_difference,
    determine_direction,
)
from dexarb.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


REASON_INSUFFICIENT_DATA = "Insufficient valid price data from sources"
REASON_SAME_SOURCE = "Best buy and sell prices are from the same source"


@dataclass(slots=True, frozen=True)
class DetectionConfig:
    """Detection thresholds."""

    min_price_diff_percent: float = DEFAULT_MIN_PRICE_DIFF_PERCENT
    slippage_percent: float = DEFAULT_SLIPPAGE_PERCENT
    min_profit_threshold: float = DEFAULT_MIN_PROFIT_THRESHOLD

    def __post_init__(self) -> None:
        if self.min_price_diff_percent < 0:
            raise ValueError("min_price_diff_percent must be >= 0")
        if not 0 <= self.slippage_percent < 100:
            raise ValueError("slippage_percent must be in [0, 100)")


def valid_quotes(outcomes: Iterable[FetchOutcome]) -> list[NormalizedQuote]:
    """
    Successful quotes with a usable price, one per source.

    When a source appears more than once the most recent observation
    wins. The result is ordered by source id so that downstream scans
    never depend on completion order.
    """
    latest: dict[str, NormalizedQuote] = {}
    for outcome in outcomes:
        if not isinstance(outcome, FetchOk) or not outcome.quote.has_price:
            continue
        quote = outcome.quote
        current = latest.get(quote.source_id)
        if current is None or quote.observed_at_ms >= current.observed_at_ms:
            latest[quote.source_id] = quote
    return [latest[source_id] for source_id in sorted(latest)]


def recommend(meets_threshold: bool, is_profitable: bool) -> TradeRecommendation:
    """Derive the trade recommendation from the two independent flags."""
    if not meets_threshold:
        return TradeRecommendation.NO_TRADE_BELOW_THRESHOLD
    if not is_profitable:
        return TradeRecommendation.NO_TRADE_UNPROFITABLE_AFTER_COST
    return TradeRecommendation.PROFITABLE


_REASONS = {
    TradeRecommendation.NO_TRADE_BELOW_THRESHOLD: "Price difference below threshold",
    TradeRecommendation.NO_TRADE_UNPROFITABLE_AFTER_COST: "Opportunity unprofitable after transaction cost",
    TradeRecommendation.PROFITABLE: "Profitable after slippage and transaction cost",
}


class ArbitrageDetector:
    """
    Finds the best buy/sell pair among valid quotes and models its profit.

    ``has_opportunity`` (the price gap clears the threshold) and
    ``is_profitable_after_cost`` are reported separately; a gap can be
    wide enough to flag and still lose money after slippage and cost.
    """

    __slots__ = ("_config",)

    def __init__(self, config: DetectionConfig | None = None) -> None:
        self._config = config or DetectionConfig()

    @property
    def config(self) -> DetectionConfig:
        return self._config

    def analyze(
        self,
        outcomes: Iterable[FetchOutcome],
        trade_amount_base: float,
        cost_per_leg_quote: float,
    ) -> ArbitrageAnalysis:
        """
        Analyze one batch of fetch outcomes.

        Args:
            outcomes: Outcomes from every source, failures included.
            trade_amount_base: Base units to trade (> 0).
            cost_per_leg_quote: Transaction cost per swap in quote units (>= 0).

        Returns:
            ArbitrageAnalysis for the batch.

        Raises:
            ValueError: If the trade amount or cost is out of range.
        """
        if not math.isfinite(trade_amount_base) or trade_amount_base <= 0:
            raise ValueError(f"trade_amount_base must be > 0, got {trade_amount_base}")
        if not math.isfinite(cost_per_leg_quote) or cost_per_leg_quote < 0:
            raise ValueError(f"cost_per_leg_quote must be >= 0, got {cost_per_leg_quote}")

        generated_at = get_timestamp_ms()
        quotes = valid_quotes(outcomes)

        if len(quotes) < 2:
            return ArbitrageAnalysis(
                has_opportunity=False,
                generated_at_ms=generated_at,
                valid_source_count=len(quotes),
                all_quotes=tuple(quotes),
                reason=REASON_INSUFFICIENT_DATA,
            )

        best_buy = quotes[0]
        best_sell = quotes[0]
        for quote in quotes:
            if quote.price_base_in_quote < best_buy.price_base_in_quote:
                best_buy = quote
            if quote.price_base_in_quote > best_sell.price_base_in_quote:
                best_sell = quote

        if best_buy.source_id == best_sell.source_id:
            return ArbitrageAnalysis(
                has_opportunity=False,
                generated_at_ms=generated_at,
                valid_source_count=len(quotes),
                all_quotes=tuple(quotes),
                reason=REASON_SAME_SOURCE,
            )

        direction = determine_direction(
            best_buy.source_id,
            best_buy.price_base_in_quote,
            best_sell.source_id,
            best_sell.price_base_in_quote,
        )
        diff = calculate_price_difference(direction.buy_price, direction.sell_price)
        meets_threshold = diff >= self._config.min_price_diff_percent

        potential = calculate_potential_profit(
            direction.buy_price,
            direction.sell_price,
            trade_amount_base,
            self._config.slippage_percent,
        )
        net = calculate_net_profit(
            potential.gross_profit,
            cost_per_leg_quote,
            self._config.min_profit_threshold,
        )
        recommendation = recommend(meets_threshold, net.is_profitable)

        profit = ProfitBreakdown(
            trade_amount_base=trade_amount_base,
            effective_buy_price=potential.effective_buy_price,
            effective_sell_price=potential.effective_sell_price,
            cost_to_buy=potential.cost_to_buy,
            revenue_from_sell=potential.revenue_from_sell,
            gross=potential.gross_profit,
            gas_cost=net.total_cost,
            net=net.net_profit,
            min_profit_threshold=self._config.min_profit_threshold,
            profit_after_slippage_percent=potential.profit_percent,
            profit_after_cost_percent=net.profit_after_cost_percent,
        )

        logger.debug(
            f"Buy {direction.buy_from} @ {direction.buy_price:.6f}, "
            f"sell {direction.sell_to} @ {direction.sell_price:.6f}, "
            f"diff {diff:.4f}%, net {net.net_profit:.4f}"
        )

        return ArbitrageAnalysis(
            has_opportunity=meets_threshold,
            generated_at_ms=generated_at,
            valid_source_count=len(quotes),
            all_quotes=tuple(quotes),
            direction=direction,
            price_diff_percent=diff,
            meets_threshold=meets_threshold,
            profit=profit,
            recommendation=recommendation,
            reason=_REASONS[recommendation],
        )
