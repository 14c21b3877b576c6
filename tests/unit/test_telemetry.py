"""
Unit tests for metrics, reporting, logging and the event bus.
"""

import io
import logging
from pathlib import Path

import orjson
import pytest

from dexarb.core.event_bus import Event, EventBus, EventType
from dexarb.resilience.advisor import TradingParameters, suggest_parameters
from dexarb.resilience.diagnostics import DiagnosticsAggregator
from dexarb.resilience.taxonomy import diagnose
from dexarb.strategy.detector import ArbitrageDetector, DetectionConfig
from dexarb.telemetry.logger import AsyncLogger, MicrosecondFormatter
from dexarb.telemetry.metrics import MetricsCollector
from dexarb.telemetry.reporter import AnalysisReporter, to_json
from tests.mocks.quotes import make_failed, make_ok


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_latency_stats(self) -> None:
        metrics = MetricsCollector()
        for value in (100, 200, 300, 400):
            metrics.record_latency("source_fetch", value)

        stats = metrics.get_latency_stats("source_fetch")

        assert stats.count == 4
        assert stats.min_us == 100
        assert stats.max_us == 400
        assert stats.avg_us == 250.0

    def test_unknown_latency(self) -> None:
        assert MetricsCollector().get_latency_stats("missing").count == 0

    def test_latency_window(self) -> None:
        metrics = MetricsCollector(latency_window_size=2)
        for value in (1, 2, 3):
            metrics.record_latency("x", value)

        assert metrics.get_latency_stats("x").min_us == 2

    def test_counters(self) -> None:
        metrics = MetricsCollector()
        metrics.increment_counter("cycles")
        metrics.increment_counter("cycles", 2)

        assert metrics.get_counter("cycles") == 3
        assert metrics.get_counter("other") == 0

    def test_record_cycle(self, detector: ArbitrageDetector) -> None:
        metrics = MetricsCollector()
        profitable = ArbitrageDetector(DetectionConfig(slippage_percent=0.0)).analyze(
            [make_ok("A", 3000.0), make_ok("B", 3030.0)], 1.0, 0.01
        )
        insufficient = detector.analyze([make_ok("A", 3000.0), make_failed("B")], 1.0, 0.01)

        metrics.record_cycle(profitable)
        metrics.record_cycle(insufficient, failed_sources=1)
        metrics.record_cycle_failure()

        stats = metrics.cycle_stats
        assert stats.cycles == 2
        assert stats.failed_cycles == 1
        assert stats.opportunities == 1
        assert stats.profitable_opportunities == 1
        assert stats.insufficient_data == 1
        assert stats.source_failures == 1
        assert stats.best_price_diff_percent == pytest.approx(30.0 / 3015.0 * 100.0)
        assert stats.best_net_profit == pytest.approx(29.98)
        assert stats.opportunity_rate == 0.5

    def test_to_dict_and_reset(self) -> None:
        metrics = MetricsCollector()
        metrics.record_latency("analysis", 10)
        metrics.record_cycle_failure()

        data = metrics.to_dict()
        assert data["latencies"]["analysis"]["count"] == 1
        assert data["cycles"]["failed_cycles"] == 1

        metrics.reset()
        assert metrics.cycle_stats.failed_cycles == 0
        assert metrics.get_all_latency_stats() == {}


class TestAnalysisReporter:
    """Tests for AnalysisReporter."""

    def test_render_opportunity(self) -> None:
        reporter = AnalysisReporter(quote_symbol="USDC")
        analysis = ArbitrageDetector(DetectionConfig(slippage_percent=0.0)).analyze(
            [make_ok("Uniswap V3", 3000.0), make_ok("Aerodrome CL", 3030.0)], 1.0, 0.01
        )

        text = reporter.render_analysis(analysis, "WETH/USDC")

        assert "WETH/USDC" in text
        assert "Buy  on Uniswap V3" in text
        assert "Sell on Aerodrome CL" in text
        assert "USDC" in text
        assert "PROFITABLE" in text

    def test_render_insufficient(self, detector: ArbitrageDetector) -> None:
        analysis = detector.analyze([make_ok("A", 3000.0)], 1.0, 0.0)

        text = AnalysisReporter().render_analysis(analysis)

        assert "No opportunity: Insufficient valid price data" in text

    def test_render_diagnosis(self) -> None:
        diagnosis = diagnose(ConnectionError("connection refused"), {"source_id": "Aerodrome CL"})

        text = AnalysisReporter().render_diagnosis(diagnosis)

        assert text.startswith("[network_error] severity 3/5")
        assert "Source: Aerodrome CL" in text
        assert "Switch to backup RPC endpoint" in text

    def test_render_health(self) -> None:
        aggregator = DiagnosticsAggregator()
        aggregator.record(diagnose(ConnectionError("connection refused")))

        text = AnalysisReporter().render_health(aggregator.report())

        assert text.startswith("Health: CRITICAL (20/100)")
        assert "network_error" in text

    def test_render_advice(self) -> None:
        current = TradingParameters(slippage_percent=0.5, trade_size=1.0, min_price_diff_percent=0.1)
        reporter = AnalysisReporter()

        assert "no changes" in reporter.render_advice(suggest_parameters({}, current))

        advice = suggest_parameters({}, current, low_profit_opportunities=6)
        assert "min_price_diff_percent: 0.1 -> 0.12" in reporter.render_advice(advice)

    def test_status_line_and_summary(self) -> None:
        metrics = MetricsCollector()
        reporter = AnalysisReporter(metrics=metrics)

        assert reporter.get_status_line().startswith("Cycles: 0")
        assert "SESSION SUMMARY" in reporter.render_summary()
        assert AnalysisReporter().get_status_line() == ""

    def test_emit(self) -> None:
        output = io.StringIO()

        AnalysisReporter(output=output).emit("hello")

        assert output.getvalue() == "hello\n"

    def test_to_json(self, detector: ArbitrageDetector) -> None:
        analysis = detector.analyze([make_ok("A", 3000.0), make_ok("B", 3030.0)], 1.0, 0.01)

        data = orjson.loads(to_json(analysis.to_dict(), pretty=True))

        assert data["direction"]["sell_to"] == "B"


class TestEventBus:
    """Tests for EventBus."""

    @pytest.mark.asyncio
    async def test_async_and_sync_handlers(self) -> None:
        bus = EventBus()
        seen: list[str] = []

        async def on_async(event: Event) -> None:
            seen.append(f"async:{event.payload}")

        bus.subscribe(EventType.CYCLE_COMPLETE, on_async)
        bus.subscribe_sync(EventType.CYCLE_COMPLETE, lambda e: seen.append(f"sync:{e.payload}"))

        await bus.publish(Event(type=EventType.CYCLE_COMPLETE, payload=1))

        assert seen == ["sync:1", "async:1"]
        assert bus.handler_count(EventType.CYCLE_COMPLETE) == 2

    @pytest.mark.asyncio
    async def test_handler_errors_isolated(self) -> None:
        bus = EventBus()
        seen: list[int] = []

        def broken(event: Event) -> None:
            raise RuntimeError("boom")

        bus.subscribe_sync(EventType.SOURCE_FAILED, broken, priority=10)
        bus.subscribe_sync(EventType.SOURCE_FAILED, lambda e: seen.append(e.payload))

        await bus.publish(Event(type=EventType.SOURCE_FAILED, payload=7))

        assert seen == [7]

    def test_unsubscribe_and_clear(self) -> None:
        bus = EventBus()

        def handler(event: Event) -> None:
            pass

        bus.subscribe_sync(EventType.OPPORTUNITY_FOUND, handler)

        assert bus.unsubscribe(EventType.OPPORTUNITY_FOUND, handler) is True
        assert bus.unsubscribe(EventType.OPPORTUNITY_FOUND, handler) is False

        bus.subscribe_sync(EventType.OPPORTUNITY_FOUND, handler)
        bus.clear()
        assert bus.handler_count(EventType.OPPORTUNITY_FOUND) == 0

    def test_async_handler_required(self) -> None:
        with pytest.raises(TypeError):
            EventBus().subscribe(EventType.CYCLE_COMPLETE, lambda e: None)

    @pytest.mark.asyncio
    async def test_published_count(self) -> None:
        bus = EventBus()

        await bus.publish(Event(type=EventType.RETRY_SCHEDULED, payload={}))
        bus.publish_sync(Event(type=EventType.RETRY_SCHEDULED, payload={}))

        assert bus.published_count(EventType.RETRY_SCHEDULED) == 2
        assert bus.published_count(EventType.CYCLE_COMPLETE) == 0

    def test_event_timestamp(self) -> None:
        assert Event(type=EventType.CYCLE_COMPLETE, payload=None).timestamp_ms > 0


class TestAsyncLogger:
    """Tests for the queue-based logger."""

    def test_writes_debug_to_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "scanner.log"

        with AsyncLogger(name="dexarb.test_logger", level=logging.WARNING, log_file=log_file) as async_logger:
            assert async_logger.running is True
            async_logger.logger.debug("quote fetched")

        assert async_logger.running is False
        content = log_file.read_text(encoding="utf-8")
        assert "DEBUG" in content
        assert "quote fetched" in content

    def test_microsecond_timestamps(self) -> None:
        record = logging.LogRecord("dexarb", logging.INFO, __file__, 1, "msg", None, None)
        record.created = 1704067200.123456

        stamp = MicrosecondFormatter().formatTime(record, "%H:%M:%S")

        assert len(stamp.rsplit(".", 1)[1]) == 6
