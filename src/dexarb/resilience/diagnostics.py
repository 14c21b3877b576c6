"""
Rolling diagnostics and pipeline health.

Keeps a bounded history of recent diagnoses and derives a health score
from the share of failed analyses. Appends are serialized with a lock
so the aggregator can be fed from event handlers, worker threads or
the event loop alike.
"""

import logging
import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any

from dexarb.config.constants import DEFAULT_DIAGNOSTICS_HISTORY_LIMIT, DEFAULT_UNTRUSTED_SOURCE_ERRORS
from dexarb.core.event_bus import Event, EventBus, EventType
from dexarb.core.types import (
    ArbitrageAnalysis,
    ErrorCategory,
    ErrorDiagnosis,
    HealthStatus,
    TradeRecommendation,
)


logger = logging.getLogger(__name__)


# (error rate strictly above, status, score), evaluated top to bottom
HEALTH_THRESHOLDS: tuple[tuple[float, HealthStatus, int], ...] = (
    (0.5, HealthStatus.CRITICAL, 20),
    (0.3, HealthStatus.DEGRADED, 50),
    (0.1, HealthStatus.WARNING, 75),
)


def health_for_error_rate(error_rate: float) -> tuple[HealthStatus, int]:
    """Map an error rate in [0, 1] to a health status and score."""
    for threshold, status, score in HEALTH_THRESHOLDS:
        if error_rate > threshold:
            return status, score
    return HealthStatus.HEALTHY, 100


@dataclass(slots=True, frozen=True)
class DiagnosticsReport:
    """Point-in-time summary of recent failures."""

    total_analyses: int
    successful_diagnoses: int
    history_size: int
    error_rate: float
    error_rate_by_category: dict[ErrorCategory, float]
    health_score: int
    health_status: HealthStatus
    recent: tuple[ErrorDiagnosis, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_analyses": self.total_analyses,
            "successful_diagnoses": self.successful_diagnoses,
            "history_size": self.history_size,
            "error_rate": self.error_rate,
            "error_rate_by_category": {
                category.value: rate for category, rate in self.error_rate_by_category.items()
            },
            "health_score": self.health_score,
            "health_status": self.health_status.value,
            "recent": [d.to_dict() for d in self.recent],
        }


class DiagnosticsAggregator:
    """
    Bounded, lock-guarded diagnosis history.

    ``total_analyses`` counts every observed outcome: each recorded
    diagnosis plus each recorded success. The error rate is the number
    of diagnoses retained in the history over that total.
    """

    def __init__(self, history_limit: int = DEFAULT_DIAGNOSTICS_HISTORY_LIMIT) -> None:
        """
        Initialize aggregator.

        Args:
            history_limit: Maximum diagnoses retained; oldest evicted first.
        """
        if history_limit < 1:
            raise ValueError(f"history_limit must be >= 1, got {history_limit}")

        self._history: deque[ErrorDiagnosis] = deque(maxlen=history_limit)
        self._lock = threading.Lock()
        self._total_analyses = 0
        self._successful_diagnoses = 0
        self._low_profit_opportunities = 0

        # Bound once so detach can find the same objects
        self._diagnosed_handler = self._on_diagnosed
        self._succeeded_handler = self._on_succeeded

    @property
    def history_limit(self) -> int:
        return self._history.maxlen or 0

    @property
    def total_analyses(self) -> int:
        return self._total_analyses

    @property
    def low_profit_opportunities(self) -> int:
        """Opportunities above the price threshold that failed the cost check."""
        return self._low_profit_opportunities

    def history(self) -> list[ErrorDiagnosis]:
        """Snapshot of the retained diagnoses, oldest first."""
        with self._lock:
            return list(self._history)

    def record(self, diagnosis: ErrorDiagnosis) -> None:
        """Append a diagnosis, evicting the oldest past the cap."""
        with self._lock:
            self._history.append(diagnosis)
            self._total_analyses += 1
            self._successful_diagnoses += 1

    def record_success(self, count: int = 1) -> None:
        """Count successful operations toward the analysis total."""
        with self._lock:
            self._total_analyses += count

    def record_analysis(self, analysis: ArbitrageAnalysis) -> None:
        """Track opportunities that were rejected on cost."""
        if analysis.recommendation is TradeRecommendation.NO_TRADE_UNPROFITABLE_AFTER_COST:
            with self._lock:
                self._low_profit_opportunities += 1

    def error_patterns(self) -> Counter[ErrorCategory]:
        """Counts of retained diagnoses per category."""
        with self._lock:
            return Counter(d.category for d in self._history)

    def untrusted_sources(self, min_errors: int = DEFAULT_UNTRUSTED_SOURCE_ERRORS) -> list[str]:
        """
        Sources whose retained failures reach ``min_errors``.

        Informational only: nothing is excluded automatically.
        """
        with self._lock:
            counts = Counter(d.source_id for d in self._history if d.source_id)
        return sorted(source for source, n in counts.items() if n >= min_errors)

    def report(self, recent: int = 5) -> DiagnosticsReport:
        """
        Build a health report.

        Args:
            recent: Number of most recent diagnoses to include.

        Returns:
            DiagnosticsReport for the current history.
        """
        with self._lock:
            history = list(self._history)
            total = self._total_analyses
            successful = self._successful_diagnoses

        if total == 0:
            error_rate = 0.0
            by_category: dict[ErrorCategory, float] = {}
        else:
            error_rate = min(len(history) / total, 1.0)
            counts = Counter(d.category for d in history)
            by_category = {category: n / total for category, n in counts.items()}

        status, score = health_for_error_rate(error_rate)

        return DiagnosticsReport(
            total_analyses=total,
            successful_diagnoses=successful,
            history_size=len(history),
            error_rate=error_rate,
            error_rate_by_category=by_category,
            health_score=score,
            health_status=status,
            recent=tuple(history[-recent:]) if recent > 0 else (),
        )

    def reset(self) -> None:
        """Clear history and counters."""
        with self._lock:
            self._history.clear()
            self._total_analyses = 0
            self._successful_diagnoses = 0
            self._low_profit_opportunities = 0

    # =========================================================================
    # Event Bus Integration
    # =========================================================================

    def attach(self, event_bus: EventBus) -> None:
        """Subscribe to diagnosis and success events."""
        event_bus.subscribe_sync(EventType.ERROR_DIAGNOSED, self._diagnosed_handler)
        event_bus.subscribe_sync(EventType.OPERATION_SUCCEEDED, self._succeeded_handler)

    def detach(self, event_bus: EventBus) -> None:
        event_bus.unsubscribe(EventType.ERROR_DIAGNOSED, self._diagnosed_handler)
        event_bus.unsubscribe(EventType.OPERATION_SUCCEEDED, self._succeeded_handler)

    def _on_diagnosed(self, event: Event[ErrorDiagnosis]) -> None:
        self.record(event.payload)

    def _on_succeeded(self, event: Event[dict[str, Any]]) -> None:
        self.record_success()
