"""
Async Ethereum JSON-RPC client.

Reads concentrated-liquidity pool state with raw ``eth_call`` requests
and decodes the returned words by hand, which avoids pulling in a full
ABI codec for three fixed-layout reads.

Optimized for polling with:
- Connection pooling and keep-alive
- Fast JSON encoding and parsing with orjson
- Integrated rate limiting
"""

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiohttp
import orjson
from pydantic import ValidationError

from dexarb.chain.models import EthCall, RpcRequest, RpcResponse
from dexarb.chain.rate_limiter import RateLimiter
from dexarb.config.constants import (
    BASE_RPC_URL,
    DEFAULT_REQUEST_TIMEOUT,
    LIQUIDITY_SELECTOR,
    SLOT0_SELECTOR,
    UINT128_MASK,
    UINT160_MASK,
)
from dexarb.core.types import Slot0State


logger = logging.getLogger(__name__)

WORD_HEX_CHARS = 64


class ChainClientError(Exception):
    """Base exception for chain client errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ChainRPCError(ChainClientError):
    """The node answered with a JSON-RPC error."""

    pass


class ChainContractError(ChainClientError):
    """The call succeeded but the contract returned nothing usable."""

    pass


# =============================================================================
# ABI Word Decoding
# =============================================================================


def decode_words(data: str) -> list[int]:
    """
    Split ABI-encoded return data into unsigned 256-bit words.

    Args:
        data: Hex string, with or without ``0x`` prefix.

    Returns:
        List of words as unsigned ints.
    """
    body = data[2:] if data.startswith(("0x", "0X")) else data
    if len(body) % WORD_HEX_CHARS:
        raise ValueError(f"malformed return data: {len(body)} hex chars is not a word multiple")
    return [int(body[i : i + WORD_HEX_CHARS], 16) for i in range(0, len(body), WORD_HEX_CHARS)]


def to_signed(word: int, bits: int = 256) -> int:
    """Interpret an unsigned word as two's complement."""
    if word >= 1 << (bits - 1):
        return word - (1 << bits)
    return word


def decode_slot0(data: str) -> Slot0State:
    """
    Decode the leading words of a ``slot0()`` return value.

    Only ``sqrtPriceX96`` (uint160) and ``tick`` (int24) are read; the
    trailing words differ between pool implementations.
    """
    words = decode_words(data)
    if len(words) < 2:
        raise ValueError(f"slot0 returned {len(words)} words, expected at least 2")
    return Slot0State(
        sqrt_price_x96=words[0] & UINT160_MASK,
        tick=to_signed(words[1]),
    )


def decode_liquidity(data: str) -> int:
    """Decode a ``liquidity()`` return value (uint128)."""
    words = decode_words(data)
    if not words:
        raise ValueError("liquidity returned no data")
    return words[0] & UINT128_MASK


# =============================================================================
# Client
# =============================================================================


class ChainClient:
    """
    Async JSON-RPC client for pool state reads.

    Features:
    - Single session with connection pooling
    - orjson request bodies and response parsing
    - Shared token-bucket rate limiting
    - Typed errors carrying classification codes
    """

    def __init__(
        self,
        rpc_url: str = BASE_RPC_URL,
        rate_limiter: RateLimiter | None = None,
        timeout_s: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        """
        Initialize the chain client.

        Args:
            rpc_url: HTTP(S) JSON-RPC endpoint.
            rate_limiter: Optional rate limiter instance.
            timeout_s: Per-request timeout in seconds.
        """
        self._rpc_url = rpc_url
        self._rate_limiter = rate_limiter or RateLimiter()
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._session: aiohttp.ClientSession | None = None
        self._ids = itertools.count(1)

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=50,
                limit_per_host=20,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._session

    async def close(self) -> None:
        """Close the client session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "ChainClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    @asynccontextmanager
    async def _request_context(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Map transport failures onto client errors."""
        session = await self._get_session()
        try:
            yield session
        except aiohttp.ClientError as e:
            raise ChainClientError(f"Network error: {e}", code="NETWORK_ERROR") from e
        except TimeoutError as e:
            raise ChainClientError(
                f"Network error: request timeout after {self._timeout.total}s",
                code="NETWORK_ERROR",
            ) from e

    async def _rpc(self, method: str, params: list[Any] | None = None) -> Any:
        """
        Make a JSON-RPC call.

        Args:
            method: RPC method name.
            params: Positional parameters.

        Returns:
            The ``result`` member of the response.

        Raises:
            ChainRPCError: On a JSON-RPC error response.
            ChainClientError: On network, HTTP or decoding errors.
        """
        await self._rate_limiter.acquire()

        request = RpcRequest(id=next(self._ids), method=method, params=params or [])
        body = orjson.dumps(request.model_dump())

        async with self._request_context() as session:
            async with session.post(self._rpc_url, data=body) as response:
                return await self._handle_response(response, method)

    async def _handle_response(self, response: aiohttp.ClientResponse, method: str) -> Any:
        """Parse and validate response."""
        raw = await response.read()

        if response.status >= 400:
            raise ChainClientError(
                f"Network error: HTTP {response.status} from RPC for {method}",
                code="NETWORK_ERROR",
            )

        try:
            envelope = RpcResponse.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as e:
            raise ChainClientError(f"Invalid RPC response for {method}: {e}") from e

        if envelope.error is not None:
            message = envelope.error.message
            code = "CALL_EXCEPTION" if "revert" in message.lower() else str(envelope.error.code)
            raise ChainRPCError(f"RPC error {envelope.error.code}: {message}", code=code)

        return envelope.result

    async def eth_call(self, address: str, data: str) -> str:
        """
        Execute a read-only contract call at the latest block.

        Raises:
            ChainContractError: If the call returned no data.
        """
        call = EthCall(to=address, data=data)
        result = await self._rpc("eth_call", [call.model_dump(), "latest"])

        if not isinstance(result, str) or result in ("0x", ""):
            raise ChainContractError(
                f"empty result from contract {address}: not a deployed pool",
                code="CALL_EXCEPTION",
            )
        return result

    # =========================================================================
    # Pool State
    # =========================================================================

    async def get_slot0(self, address: str) -> Slot0State:
        """Read ``sqrtPriceX96`` and ``tick`` from a pool."""
        data = await self.eth_call(address, SLOT0_SELECTOR)
        try:
            return decode_slot0(data)
        except ValueError as e:
            raise ChainContractError(f"contract {address} slot0 decode failed: {e}") from e

    async def get_liquidity(self, address: str) -> int:
        """Read the in-range liquidity of a pool."""
        data = await self.eth_call(address, LIQUIDITY_SELECTOR)
        try:
            return decode_liquidity(data)
        except ValueError as e:
            raise ChainContractError(f"contract {address} liquidity decode failed: {e}") from e

    # =========================================================================
    # Network State
    # =========================================================================

    async def get_gas_price(self) -> int:
        """Get the current gas price in wei."""
        result = await self._rpc("eth_gasPrice")
        return _parse_quantity(result, "eth_gasPrice")

    async def get_chain_id(self) -> int:
        """Get the chain id of the connected network."""
        result = await self._rpc("eth_chainId")
        return _parse_quantity(result, "eth_chainId")

    async def ping(self) -> float:
        """
        Measure round-trip latency to the RPC endpoint.

        Returns:
            Latency in milliseconds.
        """
        loop = asyncio.get_running_loop()
        start = loop.time()
        await self.get_chain_id()
        return (loop.time() - start) * 1000


def _parse_quantity(value: Any, method: str) -> int:
    if not isinstance(value, str):
        raise ChainClientError(f"Invalid RPC response for {method}: expected hex quantity")
    try:
        return int(value, 16)
    except ValueError as e:
        raise ChainClientError(f"Invalid RPC response for {method}: {value!r}") from e
