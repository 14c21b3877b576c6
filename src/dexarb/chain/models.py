"""
Pydantic models for JSON-RPC envelopes.

Responses are validated before use so that a malformed reply surfaces
as a client error instead of a ``KeyError`` deep in the decoder.
"""

from typing import Any

from pydantic import BaseModel, Field

from dexarb.config.constants import JSONRPC_VERSION


class RpcRequest(BaseModel):
    """Outgoing JSON-RPC request."""

    jsonrpc: str = JSONRPC_VERSION
    id: int
    method: str
    params: list[Any] = Field(default_factory=list)


class RpcErrorBody(BaseModel):
    """``error`` member of a failed JSON-RPC response."""

    code: int
    message: str
    data: Any = None


class RpcResponse(BaseModel):
    """JSON-RPC response envelope."""

    jsonrpc: str = JSONRPC_VERSION
    id: int | str | None = None
    result: Any = None
    error: RpcErrorBody | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


class EthCall(BaseModel):
    """Call object for ``eth_call``."""

    to: str
    data: str

    model_config = {"frozen": True}
