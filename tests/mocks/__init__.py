"""Mock implementations for testing."""

from tests.mocks.chain import MockChainClient, price_to_sqrt_price_x96
from tests.mocks.quotes import make_failed, make_ok, make_quote


__all__ = [
    "MockChainClient",
    "make_failed",
    "make_ok",
    "make_quote",
    "price_to_sqrt_price_x96",
]
