"""
Unit tests for the JSON-RPC chain client.

Tests ABI word decoding, response handling and the error codes the
client attaches for classification.
"""

from unittest.mock import AsyncMock

import orjson
import pytest

from dexarb.chain.client import (
    ChainClient,
    ChainClientError,
    ChainContractError,
    ChainRPCError,
    decode_liquidity,
    decode_slot0,
    decode_words,
    to_signed,
)
from dexarb.chain.models import RpcRequest, RpcResponse
from dexarb.config.constants import LIQUIDITY_SELECTOR, SLOT0_SELECTOR
from dexarb.core.types import ErrorCategory
from dexarb.resilience.taxonomy import classify_exception


POOL = "0xd0b53D9277642d899DF5C87A3966A349A798F224"


def word(value: int) -> str:
    """Encode an int as one 32-byte ABI word (two's complement)."""
    return f"{value % (1 << 256):064x}"


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    def __init__(self, body: object, status: int = 200) -> None:
        self.status = status
        self._raw = body if isinstance(body, bytes) else orjson.dumps(body)

    async def read(self) -> bytes:
        return self._raw


class TestDecoding:
    """Tests for ABI word decoding."""

    def test_decode_words(self) -> None:
        data = "0x" + word(1) + word(2)

        assert decode_words(data) == [1, 2]

    def test_decode_words_without_prefix(self) -> None:
        assert decode_words(word(7)) == [7]

    def test_decode_words_malformed(self) -> None:
        with pytest.raises(ValueError, match="malformed"):
            decode_words("0x1234")

    def test_to_signed(self) -> None:
        assert to_signed(5) == 5
        assert to_signed((1 << 256) - 1) == -1
        assert to_signed((1 << 256) - 200_000) == -200_000

    def test_decode_slot0(self) -> None:
        sqrt_price = 3_961_408_125_713_216_879_677_197_516_800
        data = "0x" + word(sqrt_price) + word(-197_000) + word(0) * 5

        state = decode_slot0(data)

        assert state.sqrt_price_x96 == sqrt_price
        assert state.tick == -197_000

    def test_decode_slot0_too_short(self) -> None:
        with pytest.raises(ValueError):
            decode_slot0("0x" + word(1))

    def test_decode_liquidity(self) -> None:
        assert decode_liquidity("0x" + word(123_456_789)) == 123_456_789

    def test_decode_liquidity_empty(self) -> None:
        with pytest.raises(ValueError):
            decode_liquidity("0x")


class TestModels:
    """Tests for JSON-RPC envelope models."""

    def test_request_defaults(self) -> None:
        request = RpcRequest(id=1, method="eth_gasPrice")

        assert request.model_dump() == {"jsonrpc": "2.0", "id": 1, "method": "eth_gasPrice", "params": []}

    def test_response_error(self) -> None:
        response = RpcResponse.model_validate(
            {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "execution reverted"}}
        )

        assert response.is_error
        assert response.error is not None
        assert response.error.code == -32000


class TestHandleResponse:
    """Tests for ChainClient._handle_response."""

    @pytest.mark.asyncio
    async def test_result(self) -> None:
        client = ChainClient()

        result = await client._handle_response(FakeResponse({"jsonrpc": "2.0", "id": 1, "result": "0x10"}), "eth_gasPrice")

        assert result == "0x10"

    @pytest.mark.asyncio
    async def test_http_error_is_network(self) -> None:
        client = ChainClient()

        with pytest.raises(ChainClientError) as exc_info:
            await client._handle_response(FakeResponse(b"Too Many Requests", status=429), "eth_call")

        assert exc_info.value.code == "NETWORK_ERROR"
        assert classify_exception(exc_info.value) is ErrorCategory.NETWORK

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        client = ChainClient()

        with pytest.raises(ChainClientError, match="Invalid RPC response"):
            await client._handle_response(FakeResponse(b"<html>"), "eth_call")

    @pytest.mark.asyncio
    async def test_revert_is_contract_error(self) -> None:
        client = ChainClient()
        body = {"jsonrpc": "2.0", "id": 1, "error": {"code": 3, "message": "execution reverted"}}

        with pytest.raises(ChainRPCError) as exc_info:
            await client._handle_response(FakeResponse(body), "eth_call")

        assert exc_info.value.code == "CALL_EXCEPTION"
        assert classify_exception(exc_info.value) is ErrorCategory.CONTRACT

    @pytest.mark.asyncio
    async def test_other_rpc_error_keeps_code(self) -> None:
        client = ChainClient()
        body = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "limit exceeded"}}

        with pytest.raises(ChainRPCError) as exc_info:
            await client._handle_response(FakeResponse(body), "eth_call")

        assert exc_info.value.code == "-32005"


class TestPoolReads:
    """Tests for pool state reads with the transport mocked out."""

    @pytest.mark.asyncio
    async def test_get_slot0(self) -> None:
        client = ChainClient()
        client._rpc = AsyncMock(return_value="0x" + word(2**96) + word(10))

        state = await client.get_slot0(POOL)

        assert state.sqrt_price_x96 == 2**96
        assert state.tick == 10
        method, params = client._rpc.call_args.args
        assert method == "eth_call"
        assert params == [{"to": POOL, "data": SLOT0_SELECTOR}, "latest"]

    @pytest.mark.asyncio
    async def test_get_liquidity(self) -> None:
        client = ChainClient()
        client._rpc = AsyncMock(return_value="0x" + word(42))

        assert await client.get_liquidity(POOL) == 42
        assert client._rpc.call_args.args[1][0]["data"] == LIQUIDITY_SELECTOR

    @pytest.mark.asyncio
    async def test_empty_result_is_contract_error(self) -> None:
        client = ChainClient()
        client._rpc = AsyncMock(return_value="0x")

        with pytest.raises(ChainContractError) as exc_info:
            await client.get_slot0(POOL)

        assert classify_exception(exc_info.value, {"operation": "price_fetch"}) is ErrorCategory.CONTRACT

    @pytest.mark.asyncio
    async def test_malformed_result(self) -> None:
        client = ChainClient()
        client._rpc = AsyncMock(return_value="0xdead")

        with pytest.raises(ChainContractError, match="decode failed"):
            await client.get_slot0(POOL)

    @pytest.mark.asyncio
    async def test_get_gas_price(self) -> None:
        client = ChainClient()
        client._rpc = AsyncMock(return_value="0x3b9aca00")

        assert await client.get_gas_price() == 1_000_000_000

    @pytest.mark.asyncio
    async def test_bad_quantity(self) -> None:
        client = ChainClient()
        client._rpc = AsyncMock(return_value=None)

        with pytest.raises(ChainClientError):
            await client.get_chain_id()

    @pytest.mark.asyncio
    async def test_close_without_session(self) -> None:
        async with ChainClient() as client:
            assert client.rpc_url.startswith("https://")
