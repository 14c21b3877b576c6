"""
Metrics collection for scanner monitoring.

Keeps a rolling window of latency samples per named stage, free-form
counters, and running totals of what each detection cycle produced.
Everything lives in memory and is bounded.
"""

import time
from collections import Counter, defaultdict, deque
from dataclasses import asdict, dataclass
from typing import Any

from dexarb.core.types import ArbitrageAnalysis


def _rank(ordered: list[int], fraction: float) -> int:
    return ordered[min(int(len(ordered) * fraction), len(ordered) - 1)]


@dataclass(frozen=True)
class LatencyStats:
    """Summary of one latency window, in microseconds."""

    min_us: int = 0
    max_us: int = 0
    avg_us: float = 0.0
    p50_us: int = 0
    p95_us: int = 0
    p99_us: int = 0
    count: int = 0

    @classmethod
    def from_samples(cls, samples: deque[int] | list[int]) -> "LatencyStats":
        if not samples:
            return cls()
        ordered = sorted(samples)
        return cls(
            min_us=ordered[0],
            max_us=ordered[-1],
            avg_us=sum(ordered) / len(ordered),
            p50_us=_rank(ordered, 0.50),
            p95_us=_rank(ordered, 0.95),
            p99_us=_rank(ordered, 0.99),
            count=len(ordered),
        )


@dataclass
class CycleStats:
    """Running totals over completed and failed cycles."""

    cycles: int = 0
    failed_cycles: int = 0
    opportunities: int = 0
    profitable_opportunities: int = 0
    insufficient_data: int = 0
    source_failures: int = 0
    best_price_diff_percent: float = 0.0
    best_net_profit: float | None = None

    @property
    def opportunity_rate(self) -> float:
        """Share of completed cycles that flagged an opportunity."""
        return self.opportunities / self.cycles if self.cycles > 0 else 0.0

    def absorb(self, analysis: ArbitrageAnalysis, failed_sources: int) -> None:
        self.cycles += 1
        self.source_failures += failed_sources

        if analysis.direction is None:
            self.insufficient_data += 1
            return

        if analysis.price_diff_percent is not None:
            self.best_price_diff_percent = max(self.best_price_diff_percent, analysis.price_diff_percent)
        if analysis.profit is not None and (
            self.best_net_profit is None or analysis.profit.net > self.best_net_profit
        ):
            self.best_net_profit = analysis.profit.net

        if analysis.has_opportunity:
            self.opportunities += 1
            self.profitable_opportunities += int(analysis.is_profitable_after_cost)


class MetricsCollector:
    """
    In-memory store for scanner metrics.

    Latency names used by the pipeline are ``source_fetch`` (one per
    source call), ``fetch_cycle`` and ``analysis`` (one per cycle).
    """

    def __init__(self, latency_window_size: int = 1000) -> None:
        self._window_size = latency_window_size
        self._latencies: defaultdict[str, deque[int]] = defaultdict(self._new_window)
        self._counters: Counter[str] = Counter()
        self._cycle_stats = CycleStats()
        self._started_at = time.monotonic()

    def _new_window(self) -> deque[int]:
        return deque(maxlen=self._window_size)

    def record_latency(self, name: str, latency_us: int) -> None:
        self._latencies[name].append(latency_us)

    def increment_counter(self, name: str, value: int = 1) -> None:
        self._counters[name] += value

    def get_counter(self, name: str) -> int:
        return self._counters[name]

    def record_cycle(self, analysis: ArbitrageAnalysis, failed_sources: int = 0) -> None:
        """
        Fold one completed cycle into the running totals.

        Args:
            analysis: The cycle's analysis.
            failed_sources: Sources that produced no quote this cycle.
        """
        self._cycle_stats.absorb(analysis, failed_sources)

    def record_cycle_failure(self) -> None:
        """Count a cycle that ended in a pipeline-level error."""
        self._cycle_stats.failed_cycles += 1

    def get_latency_stats(self, name: str) -> LatencyStats:
        return LatencyStats.from_samples(self._latencies.get(name, []))

    def get_all_latency_stats(self) -> dict[str, LatencyStats]:
        return {name: LatencyStats.from_samples(window) for name, window in self._latencies.items()}

    @property
    def cycle_stats(self) -> CycleStats:
        return self._cycle_stats

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started_at

    def to_dict(self) -> dict[str, Any]:
        """Snapshot of every metric as plain JSON-friendly data."""
        return {
            "uptime_seconds": self.uptime_seconds,
            "counters": dict(self._counters),
            "latencies": {name: asdict(stats) for name, stats in self.get_all_latency_stats().items()},
            "cycles": {
                **asdict(self._cycle_stats),
                "opportunity_rate": self._cycle_stats.opportunity_rate,
            },
        }

    def reset(self) -> None:
        self._latencies.clear()
        self._counters.clear()
        self._cycle_stats = CycleStats()
        self._started_at = time.monotonic()
