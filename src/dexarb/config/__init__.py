"""Configuration module for the arbitrage scanner."""

from dexarb.config.constants import (
    BASE_CHAIN_ID,
    BASE_RPC_URL,
    DEFAULT_MIN_PRICE_DIFF_PERCENT,
    DEFAULT_SLIPPAGE_PERCENT,
)


__all__ = [
    "BASE_CHAIN_ID",
    "BASE_RPC_URL",
    "DEFAULT_MIN_PRICE_DIFF_PERCENT",
    "DEFAULT_SLIPPAGE_PERCENT",
]
