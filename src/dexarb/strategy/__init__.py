"""Arbitrage detection and profit modelling."""

from dexarb.strategy.calculator import (
    calculate_net_profit,
    calculate_potential_profit,
    calculate_price_difference,
    determine_direction,
)
from dexarb.strategy.detector import ArbitrageDetector, DetectionConfig


__all__ = [
    "ArbitrageDetector",
    "DetectionConfig",
    "calculate_net_profit",
    "calculate_potential_profit",
    "calculate_price_difference",
    "determine_direction",
]
