"""
Parallel multi-source quote aggregation.

Fans one fetch task out per configured source and joins them all.
A slow or failing source delays the batch but never aborts its
siblings: every source ends up as exactly one outcome, failures
included, in configuration order.
"""

import asyncio
import logging
from typing import Any

from dexarb.config.constants import DEFAULT_SOURCE_TIMEOUT
from dexarb.config.pools import PairConfig, PoolRegistry, SourceConfig
from dexarb.core.errors import RetryExhaustedError, SourceTimeoutError
from dexarb.core.types import FetchFailed, FetchOk, FetchOutcome, NormalizedQuote
from dexarb.pricing.fetcher import SourceQuoteFetcher
from dexarb.resilience.taxonomy import error_code, error_message
from dexarb.resilience.wrapper import ResilienceWrapper
from dexarb.telemetry.metrics import MetricsCollector
from dexarb.utils.time import LatencyTimer


logger = logging.getLogger(__name__)


class QuoteAggregator:
    """
    Fetches every source of a pair concurrently.

    Features:
    - Full fan-out/fan-in with ``asyncio.gather``
    - Per-attempt source timeout
    - Optional retries through a ResilienceWrapper, sharing the
      caller's cycle deadline
    """

    def __init__(
        self,
        fetcher: SourceQuoteFetcher,
        registry: PoolRegistry,
        resilience: ResilienceWrapper | None = None,
        source_timeout_s: float = DEFAULT_SOURCE_TIMEOUT,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """
        Initialize aggregator.

        Args:
            fetcher: Single-source fetcher.
            registry: Pair and pool configuration.
            resilience: Optional wrapper applied to each source fetch.
            source_timeout_s: Timeout for one fetch attempt in seconds.
            metrics: Optional collector for per-source latency.
        """
        if source_timeout_s <= 0:
            raise ValueError(f"source_timeout_s must be > 0, got {source_timeout_s}")

        self._fetcher = fetcher
        self._registry = registry
        self._resilience = resilience
        self._source_timeout_s = source_timeout_s
        self._metrics = metrics

    async def aggregate(self, pair: str, deadline: float | None = None) -> list[FetchOutcome]:
        """
        Fetch every configured source of a pair.

        Args:
            pair: Pair name, e.g. ``"WETH/USDC"``.
            deadline: Absolute event loop time bounding retries.

        Returns:
            One outcome per configured source, in configuration order.

        Raises:
            PairNotConfiguredError: If the pair is unknown. Raised before
                any network call.
        """
        config = self._registry.get_pair(pair)

        outcomes = await asyncio.gather(
            *(self._fetch_source(source, config, deadline) for source in config.sources)
        )

        failed = sum(1 for outcome in outcomes if not outcome.ok)
        if failed:
            logger.warning(f"{config.name}: {failed}/{len(outcomes)} sources failed")

        return list(outcomes)

    async def _fetch_source(
        self,
        source: SourceConfig,
        pair: PairConfig,
        deadline: float | None,
    ) -> FetchOutcome:
        with LatencyTimer() as timer:
            if self._resilience is None:
                outcome = await self._fetch_unwrapped(source)
            else:
                outcome = await self._fetch_wrapped(source, pair, deadline)

        if self._metrics is not None:
            self._metrics.record_latency("source_fetch", timer.latency_us)

        if isinstance(outcome, FetchFailed):
            logger.warning(f"Source {source.source_id} failed: {outcome.message}")

        return outcome

    async def _fetch_unwrapped(self, source: SourceConfig) -> FetchOutcome:
        try:
            quote = await self._attempt(source)
        except Exception as e:
            return FetchFailed(source_id=source.source_id, message=error_message(e), code=error_code(e))
        return FetchOk(quote)

    async def _fetch_wrapped(
        self,
        source: SourceConfig,
        pair: PairConfig,
        deadline: float | None,
    ) -> FetchOutcome:
        assert self._resilience is not None

        context: dict[str, Any] = {
            "operation": "price_fetch",
            "source_id": source.source_id,
            "pair": pair.name,
            "address": source.address,
        }
        try:
            quote = await self._resilience.call(
                lambda: self._attempt(source),
                context,
                deadline=deadline,
            )
        except RetryExhaustedError as e:
            return FetchFailed(
                source_id=source.source_id,
                message=str(e),
                code=e.code,
                diagnosis=e.diagnosis,
            )
        return FetchOk(quote)

    async def _attempt(self, source: SourceConfig) -> NormalizedQuote:
        """One timed fetch attempt."""
        try:
            return await asyncio.wait_for(
                self._fetcher.fetch_quote(source),
                timeout=self._source_timeout_s,
            )
        except TimeoutError as e:
            raise SourceTimeoutError(
                f"request timeout after {self._source_timeout_s}s from {source.source_id}"
            ) from e
