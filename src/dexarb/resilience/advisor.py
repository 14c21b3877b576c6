"""
Advisory parameter tuning.

Derives suggested adjustments to trading parameters from recent error
patterns. Suggestions are reported, never applied.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Final

from dexarb.core.types import ErrorCategory


MAX_SUGGESTED_SLIPPAGE_PERCENT: Final[float] = 2.0

SLIPPAGE_ERRORS_TRIGGER: Final[int] = 2
LIQUIDITY_ERRORS_TRIGGER: Final[int] = 3
LOW_PROFIT_TRIGGER: Final[int] = 5


@dataclass(slots=True, frozen=True)
class TradingParameters:
    """Tunable subset of the detection configuration."""

    slippage_percent: float
    trade_size: float
    min_price_diff_percent: float


@dataclass(slots=True, frozen=True)
class ParameterAdvice:
    """Suggested parameters with the reasons behind each change."""

    current: TradingParameters
    suggested: TradingParameters
    reasons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_changes(self) -> bool:
        return self.current != self.suggested

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": {
                "slippage_percent": self.current.slippage_percent,
                "trade_size": self.current.trade_size,
                "min_price_diff_percent": self.current.min_price_diff_percent,
            },
            "suggested": {
                "slippage_percent": self.suggested.slippage_percent,
                "trade_size": self.suggested.trade_size,
                "min_price_diff_percent": self.suggested.min_price_diff_percent,
            },
            "reasons": list(self.reasons),
        }


def suggest_parameters(
    patterns: Mapping[ErrorCategory, int],
    current: TradingParameters,
    low_profit_opportunities: int = 0,
) -> ParameterAdvice:
    """
    Suggest parameter adjustments from error patterns.

    Args:
        patterns: Recent error counts per category.
        current: Parameters currently in use.
        low_profit_opportunities: Opportunities rejected on cost.

    Returns:
        ParameterAdvice; ``suggested`` equals ``current`` when nothing
        warrants a change.
    """
    slippage = current.slippage_percent
    trade_size = current.trade_size
    min_diff = current.min_price_diff_percent
    reasons: list[str] = []

    slippage_errors = patterns.get(ErrorCategory.SLIPPAGE, 0)
    if slippage_errors > SLIPPAGE_ERRORS_TRIGGER:
        slippage = min(slippage * 1.5, MAX_SUGGESTED_SLIPPAGE_PERCENT)
        reasons.append(f"{slippage_errors} slippage errors: widen slippage tolerance")

    liquidity_errors = patterns.get(ErrorCategory.LIQUIDITY, 0)
    if liquidity_errors > LIQUIDITY_ERRORS_TRIGGER:
        trade_size = trade_size * 0.8
        reasons.append(f"{liquidity_errors} liquidity errors: reduce trade size")

    if low_profit_opportunities > LOW_PROFIT_TRIGGER:
        min_diff = min_diff * 1.2
        reasons.append(
            f"{low_profit_opportunities} opportunities unprofitable after cost: "
            "raise minimum price difference"
        )

    return ParameterAdvice(
        current=current,
        suggested=TradingParameters(
            slippage_percent=slippage,
            trade_size=trade_size,
            min_price_diff_percent=min_diff,
        ),
        reasons=tuple(reasons),
    )
