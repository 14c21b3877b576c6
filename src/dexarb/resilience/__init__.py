"""Failure classification, retries and diagnostics."""

from dexarb.resilience.advisor import ParameterAdvice, TradingParameters, suggest_parameters
from dexarb.resilience.context import ResilienceContext
from dexarb.resilience.diagnostics import DiagnosticsAggregator, DiagnosticsReport
from dexarb.resilience.taxonomy import classify, classify_exception, diagnose, is_retryable
from dexarb.resilience.wrapper import ResilienceWrapper, RetryPolicy


__all__ = [
    "DiagnosticsAggregator",
    "DiagnosticsReport",
    "ParameterAdvice",
    "ResilienceContext",
    "ResilienceWrapper",
    "RetryPolicy",
    "TradingParameters",
    "classify",
    "classify_exception",
    "diagnose",
    "is_retryable",
    "suggest_parameters",
]
