"""
Type definitions for the arbitrage scanner.

This module contains all dataclasses, enums and Protocol definitions
used throughout the application. Records produced by the pipeline are
frozen: they are built once per cycle and never mutated.
"""

import math
from dataclasses import dataclass, field
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, Protocol


# =============================================================================
# Enums
# =============================================================================


class ErrorCategory(str, Enum):
    """Closed failure taxonomy."""

    NETWORK = "network_error"
    CONTRACT = "contract_error"
    PRICE = "price_error"
    LIQUIDITY = "liquidity_error"
    GAS = "gas_error"
    SLIPPAGE = "slippage_error"
    CONFIGURATION = "configuration_error"
    LOGIC = "logic_error"
    UNKNOWN = "unknown_error"


class TradeRecommendation(str, Enum):
    """Outcome classification of an arbitrage analysis."""

    NO_TRADE_BELOW_THRESHOLD = "NO_TRADE_BELOW_THRESHOLD"
    NO_TRADE_UNPROFITABLE_AFTER_COST = "NO_TRADE_UNPROFITABLE_AFTER_COST"
    PROFITABLE = "PROFITABLE"


class HealthStatus(str, Enum):
    """Rolling health of the pipeline."""

    HEALTHY = "healthy"
    WARNING = "warning"
    DEGRADED = "degraded"
    CRITICAL = "critical"


# =============================================================================
# Market Data Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class PricePoint:
    """
    Raw quote as read from a liquidity source.

    ``raw_sqrt_price`` is the pool's ``sqrtPriceX96``. Zero is a valid
    reading (uninitialized pool) and normalizes to a zero price.
    """

    source_id: str
    raw_sqrt_price: int
    base_decimals: int
    quote_decimals: int


@dataclass(slots=True, frozen=True)
class Slot0State:
    """Decoded slot0 state of a concentrated-liquidity pool."""

    sqrt_price_x96: int
    tick: int


@dataclass(slots=True, frozen=True)
class NormalizedQuote:
    """
    Comparable quote from one source.

    ``price_quote_in_base`` is ``None`` when the base price is zero; the
    reciprocal is undefined and must not leak into comparisons as inf.
    ``liquidity_raw`` is in source-native units and is not comparable
    across sources.
    """

    source_id: str
    price_base_in_quote: float
    price_quote_in_base: float | None
    liquidity_raw: int
    observed_at_ms: int
    tick: int = 0
    raw_sqrt_price: int = 0
    address: str = ""

    @property
    def has_price(self) -> bool:
        """Check if the quote carries a usable, well-defined price."""
        return (
            self.price_quote_in_base is not None
            and self.price_base_in_quote > 0
            and math.isfinite(self.price_base_in_quote)
        )

    def to_dict(self) -> dict[str, Any]:
        """Export as a plain dict."""
        return {
            "source_id": self.source_id,
            "address": self.address,
            "price_base_in_quote": self.price_base_in_quote,
            "price_quote_in_base": self.price_quote_in_base,
            "liquidity_raw": str(self.liquidity_raw),
            "tick": self.tick,
            "raw_sqrt_price": str(self.raw_sqrt_price),
            "observed_at_ms": self.observed_at_ms,
        }


@dataclass(slots=True, frozen=True)
class FetchOk:
    """Successful fetch of one source."""

    quote: NormalizedQuote

    @property
    def source_id(self) -> str:
        return self.quote.source_id

    @property
    def ok(self) -> bool:
        return True


@dataclass(slots=True, frozen=True)
class FetchFailed:
    """Source-scoped fetch failure."""

    source_id: str
    message: str
    code: str | None = None
    diagnosis: "ErrorDiagnosis | None" = None

    @property
    def ok(self) -> bool:
        return False


FetchOutcome = FetchOk | FetchFailed


# =============================================================================
# Analysis Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class ArbitrageDirection:
    """Best-buy / best-sell pairing between two sources."""

    buy_from: str
    buy_price: float
    sell_to: str
    sell_price: float


@dataclass(slots=True, frozen=True)
class ProfitBreakdown:
    """Profitability of a two-leg round trip, in quote units."""

    trade_amount_base: float
    effective_buy_price: float
    effective_sell_price: float
    cost_to_buy: float
    revenue_from_sell: float
    gross: float
    gas_cost: float
    net: float
    min_profit_threshold: float
    profit_after_slippage_percent: float
    profit_after_cost_percent: float

    @property
    def is_profitable_after_cost(self) -> bool:
        """Net profit clears the configured threshold."""
        return self.net > self.min_profit_threshold


@dataclass(slots=True, frozen=True)
class ArbitrageAnalysis:
    """
    Result of one detection cycle.

    ``has_opportunity`` (the price gap clears the threshold) and
    ``is_profitable_after_cost`` are independent flags. With fewer than
    two valid distinct sources only ``reason`` and
    ``valid_source_count`` are populated.
    """

    has_opportunity: bool
    generated_at_ms: int
    valid_source_count: int
    all_quotes: tuple[NormalizedQuote, ...] = ()
    direction: ArbitrageDirection | None = None
    price_diff_percent: float | None = None
    meets_threshold: bool = False
    profit: ProfitBreakdown | None = None
    recommendation: TradeRecommendation | None = None
    reason: str | None = None

    @property
    def is_profitable_after_cost(self) -> bool:
        """Check if the round trip is profitable after two-leg cost."""
        return self.profit is not None and self.profit.is_profitable_after_cost

    @property
    def is_complete(self) -> bool:
        """Check if a direction and profit model were computed."""
        return self.direction is not None and self.profit is not None

    def to_dict(self) -> dict[str, Any]:
        """Export as a plain dict suitable for structured logging."""
        data: dict[str, Any] = {
            "has_opportunity": self.has_opportunity,
            "is_profitable_after_cost": self.is_profitable_after_cost,
            "valid_source_count": self.valid_source_count,
            "generated_at_ms": self.generated_at_ms,
            "reason": self.reason,
            "recommendation": self.recommendation.value if self.recommendation else None,
            "price_diff_percent": self.price_diff_percent,
            "meets_threshold": self.meets_threshold,
            "all_quotes": [q.to_dict() for q in self.all_quotes],
            "direction": None,
            "profit": None,
        }
        if self.direction is not None:
            data["direction"] = {
                "buy_from": self.direction.buy_from,
                "buy_price": self.direction.buy_price,
                "sell_to": self.direction.sell_to,
                "sell_price": self.direction.sell_price,
            }
        if self.profit is not None:
            data["profit"] = {
                "trade_amount_base": self.profit.trade_amount_base,
                "gross": self.profit.gross,
                "gas_cost": self.profit.gas_cost,
                "net": self.profit.net,
                "is_profitable_after_cost": self.profit.is_profitable_after_cost,
                "profit_after_slippage_percent": self.profit.profit_after_slippage_percent,
            }
        return data


# =============================================================================
# Diagnostic Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class RootCause:
    """Static root-cause description for a failure category."""

    cause: str
    details: str
    possible_reasons: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class Recommendation:
    """Advisory remediation. Plain text, never executed."""

    priority: str
    action: str
    reasoning: str
    expected_improvement: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "priority": self.priority,
            "action": self.action,
            "reasoning": self.reasoning,
            "expected_improvement": self.expected_improvement,
        }


@dataclass(slots=True, frozen=True)
class ErrorDiagnosis:
    """Classification of a single failure."""

    category: ErrorCategory
    severity: int
    root_cause: RootCause
    recommendations: tuple[Recommendation, ...]
    error_message: str
    timestamp_ms: int
    error_code: str | None = None
    context: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    requires_authorization: bool = True

    @property
    def source_id(self) -> str | None:
        """Source the failure is attributed to, if any."""
        value = self.context.get("source_id")
        return str(value) if value is not None else None

    def to_dict(self) -> dict[str, Any]:
        """Export as a plain dict."""
        return {
            "category": self.category.value,
            "severity": self.severity,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "timestamp_ms": self.timestamp_ms,
            "root_cause": {
                "cause": self.root_cause.cause,
                "details": self.root_cause.details,
                "possible_reasons": list(self.root_cause.possible_reasons),
            },
            "recommendations": [r.to_dict() for r in self.recommendations],
            "requires_authorization": self.requires_authorization,
            "context": {k: v for k, v in self.context.items() if _is_plain(v)},
        }


@dataclass(slots=True)
class RetryState:
    """
    Per-invocation retry bookkeeping.

    Owned by a single wrapped call and discarded when it terminates.
    """

    attempt: int = 0
    last_error: BaseException | None = None
    next_delay_ms: float = 0.0
    diagnoses: list[ErrorDiagnosis] = field(default_factory=list)

    @property
    def retries(self) -> int:
        """Retries performed after the initial attempt."""
        return max(self.attempt - 1, 0)


def _is_plain(value: object) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


# =============================================================================
# Protocols (Interfaces)
# =============================================================================


class PoolStateReader(Protocol):
    """Network collaborator that reads pool state."""

    async def get_slot0(self, address: str) -> Slot0State:
        """Read price/tick state of a pool."""
        ...

    async def get_liquidity(self, address: str) -> int:
        """Read current in-range liquidity of a pool."""
        ...

    async def get_gas_price(self) -> int:
        """Read the current network gas price in wei."""
        ...
