"""
Exception hierarchy for pipeline-level faults.

Source-level failures never surface as exceptions; they are contained
as ``FetchFailed`` outcomes. Only configuration faults and exhausted
retries propagate to the caller of the pipeline.
"""

from typing import Any

from dexarb.core.types import ErrorCategory, ErrorDiagnosis, Recommendation


class DexArbError(Exception):
    """Base exception for scanner errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ConfigurationError(DexArbError):
    """Invalid or missing configuration."""

    def __init__(self, message: str, code: str | None = "CONFIG_ERROR") -> None:
        super().__init__(message, code=code)


class PairNotConfiguredError(ConfigurationError):
    """Requested trading pair has no configured sources."""

    def __init__(self, pair: str, available: list[str] | None = None) -> None:
        self.pair = pair
        self.available = available or []
        super().__init__(f"unknown pair '{pair}' is not configured")


class SourceTimeoutError(DexArbError):
    """A single source did not answer within its timeout."""

    def __init__(self, message: str, code: str | None = "TIMEOUT") -> None:
        super().__init__(message, code=code)


class ResilienceError(DexArbError):
    """Base class for errors raised by the resilience layer."""

    pass


class RetryExhaustedError(ResilienceError):
    """
    Raised when a wrapped operation cannot be completed.

    Carries everything needed to render full diagnostics without
    querying the wrapper again: the original error, the call context,
    the number of attempts made, the last diagnosis, every diagnosis
    produced along the way and the accumulated recommendations.
    """

    def __init__(
        self,
        original_error: BaseException,
        *,
        context: dict[str, Any],
        attempts: int,
        diagnosis: ErrorDiagnosis,
        diagnoses: tuple[ErrorDiagnosis, ...],
        recommendations: tuple[Recommendation, ...],
        deadline_exceeded: bool = False,
    ) -> None:
        message = str(original_error) or type(original_error).__name__
        super().__init__(message, code=getattr(original_error, "code", None))
        self.original_error = original_error
        self.context = context
        self.attempts = attempts
        self.diagnosis = diagnosis
        self.diagnoses = diagnoses
        self.recommendations = recommendations
        self.deadline_exceeded = deadline_exceeded

    @property
    def category(self) -> ErrorCategory:
        """Category of the last classified failure."""
        return self.diagnosis.category

    @property
    def severity(self) -> int:
        """Severity of the last classified failure."""
        return self.diagnosis.severity

    @property
    def retry_count(self) -> int:
        """Number of retries performed after the initial attempt."""
        return max(self.attempts - 1, 0)

    def to_dict(self) -> dict[str, Any]:
        """Export the failure with its diagnostic context."""
        return {
            "message": str(self),
            "code": self.code,
            "error_type": type(self.original_error).__name__,
            "attempts": self.attempts,
            "retry_count": self.retry_count,
            "deadline_exceeded": self.deadline_exceeded,
            "context": dict(self.context),
            "diagnosis": self.diagnosis.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
        }
