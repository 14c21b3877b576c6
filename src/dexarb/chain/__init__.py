"""On-chain JSON-RPC access."""

from dexarb.chain.client import ChainClient, ChainClientError, ChainContractError, ChainRPCError
from dexarb.chain.rate_limiter import RateLimiter, TokenBucket


__all__ = [
    "ChainClient",
    "ChainClientError",
    "ChainContractError",
    "ChainRPCError",
    "RateLimiter",
    "TokenBucket",
]
