"""Core module containing the event bus, errors and type definitions."""

from dexarb.core.errors import (
    ConfigurationError,
    DexArbError,
    PairNotConfiguredError,
    RetryExhaustedError,
)
from dexarb.core.event_bus import Event, EventBus, EventType
from dexarb.core.types import (
    ArbitrageAnalysis,
    ErrorCategory,
    ErrorDiagnosis,
    FetchFailed,
    FetchOk,
    FetchOutcome,
    NormalizedQuote,
    PricePoint,
    TradeRecommendation,
)


__all__ = [
    "ArbitrageAnalysis",
    "ConfigurationError",
    "DexArbError",
    "ErrorCategory",
    "ErrorDiagnosis",
    "Event",
    "EventBus",
    "EventType",
    "FetchFailed",
    "FetchOk",
    "FetchOutcome",
    "NormalizedQuote",
    "PairNotConfiguredError",
    "PricePoint",
    "RetryExhaustedError",
    "TradeRecommendation",
]
