"""
Failure taxonomy.

Classification is a pure function of ``(message, code, context)``:
an ordered rule table is evaluated top to bottom and the first match
wins, with ``UNKNOWN`` as the guaranteed fallback. Severities, root
causes and recommendations are static lookups keyed by category.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Final

from dexarb.core.types import ErrorCategory, ErrorDiagnosis, Recommendation, RootCause
from dexarb.utils.time import get_timestamp_ms


@dataclass(slots=True, frozen=True)
class ClassificationRule:
    """
    One entry of the ordered classification table.

    A rule matches when the lowercased message contains any keyword,
    the error code is one of ``codes``, or the context ``operation`` is
    one of ``operations``.
    """

    category: ErrorCategory
    keywords: tuple[str, ...] = ()
    codes: frozenset[str] = frozenset()
    operations: frozenset[str] = frozenset()

    def matches(self, message: str, code: str, operation: str) -> bool:
        if code and code in self.codes:
            return True
        if operation and operation in self.operations:
            return True
        return any(keyword in message for keyword in self.keywords)


CLASSIFICATION_RULES: Final[tuple[ClassificationRule, ...]] = (
    ClassificationRule(
        ErrorCategory.NETWORK,
        keywords=("network", "timeout", "timed out", "connection"),
        codes=frozenset({"NETWORK_ERROR", "TIMEOUT"}),
    ),
    ClassificationRule(
        ErrorCategory.CONTRACT,
        keywords=("contract", "revert", "execution reverted"),
        codes=frozenset({"CALL_EXCEPTION"}),
    ),
    ClassificationRule(
        ErrorCategory.PRICE,
        keywords=("price", "sqrtprice", "slot0"),
        operations=frozenset({"price_fetch"}),
    ),
    ClassificationRule(
        ErrorCategory.LIQUIDITY,
        keywords=("liquidity", "insufficient"),
    ),
    ClassificationRule(
        ErrorCategory.GAS,
        keywords=("gas", "fee"),
        codes=frozenset({"INSUFFICIENT_FUNDS"}),
    ),
    ClassificationRule(
        ErrorCategory.SLIPPAGE,
        keywords=("slippage", "price impact", "too much"),
    ),
    ClassificationRule(
        ErrorCategory.CONFIGURATION,
        keywords=("config", "invalid address", "unknown pair"),
        codes=frozenset({"CONFIG_ERROR"}),
    ),
    ClassificationRule(
        ErrorCategory.LOGIC,
        keywords=(
            "cannot read",
            "undefined",
            "null",
            "nan",
            "nonetype",
            "has no attribute",
            "division by zero",
        ),
    ),
)


SEVERITY: Final[Mapping[ErrorCategory, int]] = MappingProxyType(
    {
        ErrorCategory.NETWORK: 3,
        ErrorCategory.CONTRACT: 4,
        ErrorCategory.PRICE: 3,
        ErrorCategory.LIQUIDITY: 4,
        ErrorCategory.GAS: 3,
        ErrorCategory.SLIPPAGE: 2,
        ErrorCategory.CONFIGURATION: 5,
        ErrorCategory.LOGIC: 5,
        ErrorCategory.UNKNOWN: 3,
    }
)

RETRYABLE_CATEGORIES: Final[frozenset[ErrorCategory]] = frozenset(
    {
        ErrorCategory.NETWORK,
        ErrorCategory.GAS,
        ErrorCategory.PRICE,
    }
)


ROOT_CAUSES: Final[Mapping[ErrorCategory, RootCause]] = MappingProxyType(
    {
        ErrorCategory.NETWORK: RootCause(
            cause="Network connectivity or RPC endpoint issue",
            details="The connection to the blockchain RPC endpoint failed or timed out",
            possible_reasons=(
                "RPC endpoint is down or overloaded",
                "Network latency is too high",
                "Rate limiting from the RPC provider",
                "Internet connectivity issues",
            ),
        ),
        ErrorCategory.CONTRACT: RootCause(
            cause="Smart contract execution failure",
            details="The smart contract call failed during execution",
            possible_reasons=(
                "Contract address is incorrect",
                "Pool interface does not match the expected selectors",
                "Contract state has changed",
                "Insufficient permissions or allowances",
            ),
        ),
        ErrorCategory.PRICE: RootCause(
            cause="Price data retrieval or calculation error",
            details="Failed to fetch or calculate accurate price data",
            possible_reasons=(
                "Pool address is incorrect or pool doesn't exist",
                "sqrtPriceX96 value is invalid or zero",
                "Decimal calculations are incorrect",
                "Pool has no liquidity",
            ),
        ),
        ErrorCategory.LIQUIDITY: RootCause(
            cause="Insufficient liquidity in pool",
            details="The trading pool lacks sufficient liquidity for the trade",
            possible_reasons=(
                "Trade size exceeds available liquidity",
                "Pool is new with minimal deposits",
                "Liquidity has been withdrawn",
                "Price range has no active positions",
            ),
        ),
        ErrorCategory.GAS: RootCause(
            cause="Gas estimation or payment failure",
            details="Transaction gas requirements could not be met",
            possible_reasons=(
                "Gas price spiked during execution",
                "Gas limit too low for operation",
                "Wallet has insufficient ETH for gas",
                "Network congestion causing high fees",
            ),
        ),
        ErrorCategory.SLIPPAGE: RootCause(
            cause="Price slippage exceeded tolerance",
            details="The actual execution price deviated too much from expected",
            possible_reasons=(
                "Trade size too large for pool depth",
                "Other trades executed during transaction",
                "Slippage tolerance set too tight",
                "Price manipulation or sandwich attack",
            ),
        ),
        ErrorCategory.CONFIGURATION: RootCause(
            cause="Configuration parameter error",
            details="One or more configuration parameters are invalid",
            possible_reasons=(
                "Token address is incorrect",
                "Pool address doesn't exist",
                "DEX configuration mismatch",
                "Network configuration wrong",
            ),
        ),
        ErrorCategory.LOGIC: RootCause(
            cause="Code logic or data handling error",
            details="The code encountered an unexpected data state",
            possible_reasons=(
                "None value not handled",
                "Index out of range",
                "Type mismatch in calculations",
                "Coroutine not awaited",
            ),
        ),
        ErrorCategory.UNKNOWN: RootCause(
            cause="Unidentified error",
            details="The error does not match known patterns",
            possible_reasons=(
                "New type of error not yet categorized",
                "External dependency failure",
                "Unexpected edge case",
                "Environment-specific issue",
            ),
        ),
    }
)


RECOMMENDATIONS: Final[Mapping[ErrorCategory, tuple[Recommendation, ...]]] = MappingProxyType(
    {
        ErrorCategory.NETWORK: (
            Recommendation(
                priority="high",
                action="Switch to backup RPC endpoint",
                reasoning="Primary RPC may be experiencing issues",
                expected_improvement="Network reliability +50%",
            ),
            Recommendation(
                priority="medium",
                action="Implement exponential backoff retry",
                reasoning="Temporary network issues may resolve with retries",
                expected_improvement="Success rate +30%",
            ),
        ),
        ErrorCategory.CONTRACT: (
            Recommendation(
                priority="high",
                action="Verify contract address and pool interface",
                reasoning="Contract interaction failed",
                expected_improvement="Eliminates contract errors",
            ),
            Recommendation(
                priority="medium",
                action="Add contract existence validation",
                reasoning="Validate contract before interaction",
                expected_improvement="Prevents invalid contract calls",
            ),
        ),
        ErrorCategory.PRICE: (
            Recommendation(
                priority="high",
                action="Add sqrtPriceX96 validation",
                reasoning="Invalid price data causes calculation errors",
                expected_improvement="Price calculation reliability +95%",
            ),
            Recommendation(
                priority="medium",
                action="Implement price sanity checks",
                reasoning="Detect anomalous prices before use",
                expected_improvement="Prevents bad trade decisions",
            ),
        ),
        ErrorCategory.LIQUIDITY: (
            Recommendation(
                priority="high",
                action="Check liquidity before trade analysis",
                reasoning="Low liquidity pools are unsuitable for large trades",
                expected_improvement="Trade success rate +40%",
            ),
            Recommendation(
                priority="medium",
                action="Implement dynamic trade sizing",
                reasoning="Adjust trade size based on available liquidity",
                expected_improvement="Slippage reduction -60%",
            ),
        ),
        ErrorCategory.GAS: (
            Recommendation(
                priority="high",
                action="Implement dynamic gas pricing",
                reasoning="Static gas settings may be outdated",
                expected_improvement="Gas cost optimization +20%",
            ),
            Recommendation(
                priority="medium",
                action="Add gas buffer margin",
                reasoning="Gas estimates can be inaccurate",
                expected_improvement="Transaction success rate +15%",
            ),
        ),
        ErrorCategory.SLIPPAGE: (
            Recommendation(
                priority="high",
                action="Adjust slippage tolerance dynamically",
                reasoning="Fixed slippage may not suit all market conditions",
                expected_improvement="Trade execution rate +25%",
            ),
            Recommendation(
                priority="medium",
                action="Implement trade splitting",
                reasoning="Large trades cause more slippage",
                expected_improvement="Slippage cost reduction -40%",
            ),
        ),
        ErrorCategory.CONFIGURATION: (
            Recommendation(
                priority="critical",
                action="Validate all configuration on startup",
                reasoning="Invalid config causes runtime failures",
                expected_improvement="Eliminates config-related crashes",
            ),
        ),
        ErrorCategory.LOGIC: (
            Recommendation(
                priority="critical",
                action="Add explicit None checks",
                reasoning="Unhandled None values cause crashes",
                expected_improvement="Runtime stability +80%",
            ),
            Recommendation(
                priority="high",
                action="Implement input validation",
                reasoning="Invalid inputs should fail fast",
                expected_improvement="Error detection +50%",
            ),
        ),
        ErrorCategory.UNKNOWN: (
            Recommendation(
                priority="medium",
                action="Add detailed error logging",
                reasoning="Unknown errors need more context",
                expected_improvement="Debugging efficiency +100%",
            ),
        ),
    }
)


def classify(
    message: str,
    code: str | int | None = None,
    context: Mapping[str, Any] | None = None,
) -> ErrorCategory:
    """
    Map a failure to exactly one category.

    Args:
        message: Error message (case-insensitive).
        code: Optional error code.
        context: Optional call context; only ``operation`` is consulted.

    Returns:
        First matching category, or ``ErrorCategory.UNKNOWN``.
    """
    text = (message or "").lower()
    code_str = str(code) if code is not None else ""
    operation = str((context or {}).get("operation") or "")

    for rule in CLASSIFICATION_RULES:
        if rule.matches(text, code_str, operation):
            return rule.category

    return ErrorCategory.UNKNOWN


def error_message(error: BaseException) -> str:
    """Message of an exception, falling back to its type name."""
    return str(error) or type(error).__name__


def error_code(error: BaseException) -> str | None:
    """Code attached to an exception, if any."""
    code = getattr(error, "code", None)
    return str(code) if code is not None else None


def classify_exception(
    error: BaseException,
    context: Mapping[str, Any] | None = None,
) -> ErrorCategory:
    """Classify an exception by its message and ``code`` attribute."""
    return classify(error_message(error), error_code(error), context)


def is_retryable(category: ErrorCategory) -> bool:
    """Check if failures of a category are worth retrying."""
    return category in RETRYABLE_CATEGORIES


def diagnose(
    error: BaseException,
    context: Mapping[str, Any] | None = None,
) -> ErrorDiagnosis:
    """
    Build a full diagnosis for a failure.

    Args:
        error: The failure to diagnose.
        context: Call context (operation, source_id, attempt, ...).

    Returns:
        Immutable diagnosis with category, severity, root cause and
        static recommendations.
    """
    context = dict(context or {})
    category = classify_exception(error, context)

    return ErrorDiagnosis(
        category=category,
        severity=SEVERITY[category],
        root_cause=ROOT_CAUSES[category],
        recommendations=RECOMMENDATIONS[category],
        error_message=error_message(error),
        error_code=error_code(error),
        timestamp_ms=get_timestamp_ms(),
        context=MappingProxyType(context),
    )
