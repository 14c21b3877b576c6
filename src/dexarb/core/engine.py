"""
Main scanner orchestrator.

Wires the chain client, aggregator, detector and resilience context
together and runs either a single fetch-and-analyze cycle or a
continuous monitor loop.
"""

import asyncio
import logging
import signal
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dexarb.chain.client import ChainClient
from dexarb.chain.rate_limiter import RateLimiter
from dexarb.config.pools import PoolRegistry, load_registry
from dexarb.config.settings import Settings
from dexarb.core.errors import DexArbError, RetryExhaustedError
from dexarb.core.event_bus import Event, EventType
from dexarb.core.types import ArbitrageAnalysis, ErrorDiagnosis, FetchFailed, FetchOutcome, PoolStateReader
from dexarb.pricing.aggregator import QuoteAggregator
from dexarb.pricing.fetcher import SourceQuoteFetcher
from dexarb.pricing.gas import GasEstimator, resolve_native_price
from dexarb.resilience.advisor import ParameterAdvice, TradingParameters, suggest_parameters
from dexarb.resilience.context import ResilienceContext
from dexarb.resilience.diagnostics import DiagnosticsAggregator
from dexarb.resilience.taxonomy import diagnose
from dexarb.strategy.detector import ArbitrageDetector, valid_quotes
from dexarb.telemetry.logger import AsyncLogger, setup_logging
from dexarb.telemetry.metrics import MetricsCollector
from dexarb.telemetry.reporter import AnalysisReporter
from dexarb.utils.time import LatencyTimer


logger = logging.getLogger(__name__)


class ArbitrageEngine:
    """
    Scanner orchestrator.

    Manages the lifecycle of:
    - Chain connectivity
    - Parallel quote aggregation with retries
    - Arbitrage detection and cost estimation
    - Diagnostics, telemetry and reporting
    """

    def __init__(
        self,
        settings: Settings,
        client: PoolStateReader | None = None,
        registry: PoolRegistry | None = None,
        resilience: ResilienceContext | None = None,
        metrics: MetricsCollector | None = None,
        reporter: AnalysisReporter | None = None,
        configure_logging: bool = False,
    ) -> None:
        """
        Initialize the engine.

        Args:
            settings: Application settings.
            client: Pool state reader; a ChainClient is created when omitted.
            registry: Pair registry; loaded from settings when omitted.
            resilience: Resilience context; built from settings when omitted.
            metrics: Metrics collector.
            reporter: Console reporter.
            configure_logging: Install the queue-based logger on setup.
        """
        self._settings = settings
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._configure_logging = configure_logging

        self._client = client
        self._owns_client = client is None
        self._registry = registry
        self._resilience = resilience or ResilienceContext.create(
            policy=settings.retry_policy,
            history_limit=settings.diagnostics_history_limit,
        )
        self._metrics = metrics or MetricsCollector()
        self._reporter = reporter

        # Initialized in setup
        self._aggregator: QuoteAggregator | None = None
        self._detector: ArbitrageDetector | None = None
        self._gas: GasEstimator | None = None
        self._async_logger: AsyncLogger | None = None
        self._is_setup = False
        self._is_shutdown = False

    async def setup(self) -> None:
        """Initialize all components and validate configuration."""
        if self._is_setup:
            return

        if self._configure_logging:
            self._async_logger = setup_logging(
                level=self._settings.log_level,
                log_file=self._settings.log_file,
            )

        logger.info("Initializing arbitrage scanner...")

        if self._registry is None:
            self._registry = load_registry(self._settings.pools_file)
        pair = self._registry.get_pair(self._settings.pair)
        logger.info(f"Scanning {pair.name} across {len(pair.sources)} sources")

        if self._client is None:
            self._client = ChainClient(
                rpc_url=self._settings.rpc_url,
                rate_limiter=RateLimiter(self._settings.requests_per_second),
                timeout_s=self._settings.source_timeout_s,
            )

        if self._reporter is None:
            self._reporter = AnalysisReporter(metrics=self._metrics, quote_symbol=pair.quote.symbol)

        self._aggregator = QuoteAggregator(
            fetcher=SourceQuoteFetcher(self._client),
            registry=self._registry,
            resilience=self._resilience.wrapper,
            source_timeout_s=self._settings.source_timeout_s,
            metrics=self._metrics,
        )
        self._detector = ArbitrageDetector(self._settings.detection_config)
        self._gas = GasEstimator(self._client, gas_limit=self._settings.swap_gas_limit)

        self._is_setup = True
        logger.info("Scanner initialization complete")

    # =========================================================================
    # Cycle
    # =========================================================================

    async def run_cycle(
        self,
        pair: str | None = None,
        trade_size: float | None = None,
    ) -> ArbitrageAnalysis:
        """
        Run one fetch-and-analyze cycle.

        Args:
            pair: Pair to scan (default: settings pair).
            trade_size: Base units to model (default: settings trade size).

        Returns:
            Analysis of the cycle. Source failures are contained in it.

        Raises:
            ConfigurationError: If the pair is not configured.
            RetryExhaustedError: If the gas estimate could not be obtained.
        """
        if not self._is_setup:
            await self.setup()
        assert self._aggregator is not None and self._detector is not None

        pair = pair or self._settings.pair
        trade_size = self._settings.trade_size if trade_size is None else trade_size
        deadline = asyncio.get_running_loop().time() + self._settings.cycle_timeout_s

        with LatencyTimer() as cycle_timer:
            outcomes = await self._aggregator.aggregate(pair, deadline=deadline)
            cost_per_leg = await self._cost_per_leg(pair, outcomes, deadline)

            with LatencyTimer() as analysis_timer:
                analysis = self._detector.analyze(outcomes, trade_size, cost_per_leg)

        failed = [outcome for outcome in outcomes if isinstance(outcome, FetchFailed)]
        self._metrics.record_latency("fetch_cycle", cycle_timer.latency_us)
        self._metrics.record_latency("analysis", analysis_timer.latency_us)
        self._metrics.record_cycle(analysis, failed_sources=len(failed))
        self._resilience.diagnostics.record_analysis(analysis)

        await self._publish_cycle(analysis, failed)
        self._log_analysis(pair, analysis)
        return analysis

    async def _cost_per_leg(self, pair: str, outcomes: list[FetchOutcome], deadline: float) -> float:
        """Per-leg transaction cost in quote units."""
        if self._settings.gas_cost_per_leg_quote is not None:
            return self._settings.gas_cost_per_leg_quote

        # Nothing to price without two valid quotes
        if len(valid_quotes(outcomes)) < 2:
            return 0.0

        assert self._gas is not None and self._registry is not None
        native_price = resolve_native_price(
            self._registry.get_pair(pair),
            outcomes,
            override=self._settings.native_price_quote,
        )
        gas = self._gas
        estimate = await self._resilience.wrapper.call(
            lambda: gas.estimate(native_price),
            {"operation": "gas_estimate"},
            deadline=deadline,
        )
        return estimate.cost_quote

    async def _publish_cycle(self, analysis: ArbitrageAnalysis, failed: list[FetchFailed]) -> None:
        bus = self._resilience.event_bus
        for outcome in failed:
            await bus.publish(Event(type=EventType.SOURCE_FAILED, payload=outcome, source=outcome.source_id))
        if analysis.has_opportunity:
            await bus.publish(Event(type=EventType.OPPORTUNITY_FOUND, payload=analysis, source="engine"))
        await bus.publish(Event(type=EventType.CYCLE_COMPLETE, payload=analysis, source="engine"))

    def _log_analysis(self, pair: str, analysis: ArbitrageAnalysis) -> None:
        if analysis.direction is None or analysis.profit is None:
            logger.info(f"{pair}: no opportunity ({analysis.reason}, {analysis.valid_source_count} valid sources)")
            return

        logger.info(
            f"{pair}: buy {analysis.direction.buy_from} @ {analysis.direction.buy_price:.6f} "
            f"sell {analysis.direction.sell_to} @ {analysis.direction.sell_price:.6f} "
            f"diff={analysis.price_diff_percent:.4f}% net={analysis.profit.net:+.4f} "
            f"-> {analysis.recommendation.value if analysis.recommendation else 'n/a'}"
        )

    # =========================================================================
    # Failure Reporting
    # =========================================================================

    def _report_failure(self, error: DexArbError) -> ErrorDiagnosis:
        """Log a pipeline-level failure with its full diagnosis."""
        if isinstance(error, RetryExhaustedError):
            diagnosis = error.diagnosis
            attempts = f" after {error.attempts} attempt(s)"
            if error.deadline_exceeded:
                attempts += ", deadline exceeded"
        else:
            diagnosis = diagnose(error, {"operation": "cycle"})
            attempts = ""

        logger.warning(
            f"Cycle failed{attempts}: [{diagnosis.category.value}] "
            f"severity {diagnosis.severity}/5: {diagnosis.error_message}"
        )
        if diagnosis.severity >= 4:
            logger.warning(f"Root cause: {diagnosis.root_cause.cause} ({diagnosis.root_cause.details})")
        for rec in diagnosis.recommendations:
            logger.info(f"Recommendation [{rec.priority}]: {rec.action}")
        return diagnosis

    def advise(self) -> ParameterAdvice:
        """Advisory parameter adjustments from recent error patterns."""
        diagnostics = self._resilience.diagnostics
        return suggest_parameters(
            diagnostics.error_patterns(),
            TradingParameters(
                slippage_percent=self._settings.slippage_percent,
                trade_size=self._settings.trade_size,
                min_price_diff_percent=self._settings.min_price_diff_percent,
            ),
            low_profit_opportunities=diagnostics.low_profit_opportunities,
        )

    def _log_health(self) -> None:
        assert self._reporter is not None
        diagnostics = self._resilience.diagnostics
        report = diagnostics.report()
        logger.info(f"Health {report.health_status.value} ({report.health_score}/100)")

        untrusted = diagnostics.untrusted_sources()
        if untrusted:
            logger.warning(f"Sources with repeated failures: {', '.join(untrusted)}")

        advice = self.advise()
        if advice.has_changes:
            self._reporter.emit(self._reporter.render_advice(advice))

    # =========================================================================
    # Run Modes
    # =========================================================================

    async def monitor(
        self,
        interval: float | None = None,
        max_cycles: int | None = None,
    ) -> int:
        """
        Scan continuously until shut down.

        Pipeline-level errors are reported and the loop moves on to the
        next cycle. Cancellation ends the loop.

        Args:
            interval: Pause between cycles in seconds (default: settings).
            max_cycles: Stop after this many cycles (default: unbounded).

        Returns:
            Number of cycles run.
        """
        if not self._is_setup:
            await self.setup()
        assert self._reporter is not None

        interval = self._settings.poll_interval_s if interval is None else interval
        advice_every = self._settings.advice_every_cycles
        self._running = True
        cycles = 0

        while self._running:
            cycles += 1
            try:
                analysis = await self.run_cycle()
            except DexArbError as e:
                self._metrics.record_cycle_failure()
                self._report_failure(e)
            else:
                if analysis.has_opportunity:
                    self._reporter.emit(self._reporter.render_analysis(analysis, self._settings.pair))

            self._reporter.emit(self._reporter.get_status_line())

            if cycles % advice_every == 0:
                self._log_health()

            if max_cycles is not None and cycles >= max_cycles:
                break

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
                break
            except TimeoutError:
                pass

        self._running = False
        return cycles

    async def run(self) -> None:
        """Run a single cycle or the monitor loop, per settings."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._handle_shutdown)

        try:
            await self.setup()
            assert self._reporter is not None

            if self._settings.monitor:
                logger.info(f"Starting monitor loop every {self._settings.poll_interval_s}s")
                await self.monitor()
                return

            analysis = await self.run_cycle()
            self._reporter.emit(self._reporter.render_analysis(analysis, self._settings.pair))

            report = self._resilience.diagnostics.report()
            if report.history_size:
                for diagnosis in report.recent:
                    self._reporter.emit(self._reporter.render_diagnosis(diagnosis))
                self._reporter.emit(self._reporter.render_health(report))

        except RetryExhaustedError as e:
            self._report_failure(e)
            assert self._reporter is not None
            self._reporter.emit(self._reporter.render_diagnosis(e.diagnosis))
            raise

        except Exception as e:
            logger.error(f"Engine error: {e}")
            raise

        finally:
            await self.shutdown()

    def _handle_shutdown(self) -> None:
        """Handle shutdown signal."""
        logger.info("Shutdown signal received")
        self._running = False
        self._shutdown_event.set()

    async def shutdown(self) -> None:
        """Gracefully shut down the engine. Safe to call repeatedly."""
        if self._is_shutdown:
            return
        self._is_shutdown = True
        self._running = False
        self._shutdown_event.set()

        logger.info("Shutting down scanner...")

        if self._reporter and self._metrics.cycle_stats.cycles > 1:
            self._reporter.emit(self._reporter.render_summary())

        if self._owns_client and isinstance(self._client, ChainClient):
            await self._client.close()

        logger.info("Scanner shutdown complete")

        if self._async_logger:
            self._async_logger.stop()
            self._async_logger = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def diagnostics(self) -> DiagnosticsAggregator:
        return self._resilience.diagnostics

    @property
    def resilience(self) -> ResilienceContext:
        return self._resilience


@asynccontextmanager
async def create_engine(
    settings: Settings,
    client: PoolStateReader | None = None,
    registry: PoolRegistry | None = None,
    resilience: ResilienceContext | None = None,
) -> AsyncIterator[ArbitrageEngine]:
    """
    Create and manage engine lifecycle.

    Usage:
        async with create_engine(settings) as engine:
            analysis = await engine.run_cycle()
    """
    engine = ArbitrageEngine(settings, client=client, registry=registry, resilience=resilience)

    try:
        await engine.setup()
        yield engine
    finally:
        await engine.shutdown()
