#!/usr/bin/env python3
"""
Per-cycle CPU latency benchmark.

Measures internal latencies for the per-cycle CPU path: price
normalization, detection and failure classification.
"""

import sys
from pathlib import Path

# Allow running from a checkout without installing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dexarb.config.constants import Q96
from dexarb.core.types import FetchFailed, FetchOk, NormalizedQuote
from dexarb.pricing.normalizer import normalize
from dexarb.resilience.taxonomy import diagnose
from dexarb.strategy.detector import ArbitrageDetector, DetectionConfig
from dexarb.telemetry.metrics import LatencyStats
from dexarb.utils.time import format_duration_us, get_timestamp_ms, monotonic_us


# sqrtPriceX96 of a 2500 USDC/WETH pool (18/6 decimals)
SQRT_PRICE_2500 = int((2500.0 * 10.0**-12) ** 0.5 * Q96)


def benchmark_normalization(iterations: int = 10000) -> LatencyStats:
    """Benchmark sqrtPriceX96 normalization."""
    latencies: list[int] = []

    for i in range(iterations):
        raw = SQRT_PRICE_2500 + i
        start = monotonic_us()
        normalize(raw, 18, 6)
        latencies.append(monotonic_us() - start)

    return LatencyStats.from_samples(latencies)


def benchmark_detection(iterations: int = 10000, sources: int = 4) -> LatencyStats:
    """Benchmark a full detection pass over several sources."""
    detector = ArbitrageDetector(DetectionConfig())
    now_ms = get_timestamp_ms()
    latencies: list[int] = []

    for i in range(iterations):
        outcomes = [
            FetchOk(
                NormalizedQuote(
                    source_id=f"source-{n}",
                    price_base_in_quote=2500.0 + n * 5.0 + (i % 10),
                    price_quote_in_base=1.0 / (2500.0 + n * 5.0 + (i % 10)),
                    liquidity_raw=10**18,
                    observed_at_ms=now_ms,
                )
            )
            for n in range(sources)
        ]
        outcomes.append(FetchFailed(source_id="source-down", message="connection refused", code="NETWORK_ERROR"))

        start = monotonic_us()
        detector.analyze(outcomes, 1.0, 0.05)
        latencies.append(monotonic_us() - start)

    return LatencyStats.from_samples(latencies)


def benchmark_classification(iterations: int = 10000) -> LatencyStats:
    """Benchmark error classification and diagnosis."""
    errors = [
        ConnectionError("connection refused"),
        ValueError("execution reverted"),
        RuntimeError("insufficient liquidity for swap"),
        RuntimeError("something unexpected"),
    ]
    latencies: list[int] = []

    for i in range(iterations):
        error = errors[i % len(errors)]
        start = monotonic_us()
        diagnose(error, {"operation": "price_fetch", "source_id": "Uniswap V3"})
        latencies.append(monotonic_us() - start)

    return LatencyStats.from_samples(latencies)


def format_stats(stats: LatencyStats) -> str:
    fields = ("min_us", "avg_us", "p50_us", "p95_us", "p99_us", "max_us")
    return ", ".join(f"{name[:-3]}={format_duration_us(getattr(stats, name))}" for name in fields)


def main() -> int:
    """Run every benchmark and print its latency profile."""
    print("=" * 70)
    print("  LATENCY BENCHMARK")
    print("=" * 70)
    print()

    # Warm up
    print("Warming up...")
    benchmark_normalization(100)
    benchmark_detection(100)
    benchmark_classification(100)
    print()

    print("Running benchmarks...")
    print()

    print("1. Price Normalization (10,000 runs)")
    print(f"   {format_stats(benchmark_normalization(10000))}")
    print()

    print("2. Detection, 4 sources + 1 failure (10,000 runs)")
    print(f"   {format_stats(benchmark_detection(10000))}")
    print()

    print("3. Error Classification (10,000 runs)")
    print(f"   {format_stats(benchmark_classification(10000))}")
    print()

    return 0


if __name__ == "__main__":
    sys.exit(main())
