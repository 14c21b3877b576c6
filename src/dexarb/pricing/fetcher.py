"""
Single-source quote fetching.

Each fetch issues exactly two concurrent reads against one pool (price
state and liquidity), joins them and normalizes the result. There are
no retries here; callers that want them run ``fetch_quote`` under a
ResilienceWrapper.
"""

import asyncio
import logging

from dexarb.config.pools import SourceConfig
from dexarb.core.types import FetchFailed, FetchOk, FetchOutcome, NormalizedQuote, PoolStateReader
from dexarb.pricing.normalizer import normalize_oriented
from dexarb.resilience.taxonomy import error_code, error_message
from dexarb.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


class SourceQuoteFetcher:
    """Reads and normalizes one source's quote."""

    __slots__ = ("_reader",)

    def __init__(self, reader: PoolStateReader) -> None:
        """
        Initialize fetcher.

        Args:
            reader: Network collaborator exposing pool state reads.
        """
        self._reader = reader

    @property
    def reader(self) -> PoolStateReader:
        return self._reader

    async def fetch_quote(self, source: SourceConfig) -> NormalizedQuote:
        """
        Fetch and normalize a quote, raising on any failure.

        Both reads are awaited to completion before the first failure is
        re-raised, so a failing read never leaves its sibling running.

        Raises:
            Exception: Whatever the reader raised.
        """
        slot0, liquidity = await asyncio.gather(
            self._reader.get_slot0(source.address),
            self._reader.get_liquidity(source.address),
            return_exceptions=True,
        )
        for result in (slot0, liquidity):
            if isinstance(result, BaseException):
                raise result

        price, inverse = normalize_oriented(
            slot0.sqrt_price_x96,
            source.base_decimals,
            source.quote_decimals,
            source.token0_is_base,
        )

        return NormalizedQuote(
            source_id=source.source_id,
            price_base_in_quote=price,
            price_quote_in_base=inverse,
            liquidity_raw=liquidity,
            observed_at_ms=get_timestamp_ms(),
            tick=slot0.tick,
            raw_sqrt_price=slot0.sqrt_price_x96,
            address=source.address,
        )

    async def fetch(self, source: SourceConfig) -> FetchOutcome:
        """
        Fetch a quote, containing any failure as ``FetchFailed``.

        Returns:
            FetchOk on success, FetchFailed carrying message and code otherwise.
        """
        try:
            quote = await self.fetch_quote(source)
        except Exception as e:
            logger.debug(f"Fetch from {source.source_id} failed: {e!r}")
            return FetchFailed(source_id=source.source_id, message=error_message(e), code=error_code(e))
        return FetchOk(quote)
