"""Quote fetching, normalization and cost estimation."""

from dexarb.pricing.aggregator import QuoteAggregator
from dexarb.pricing.fetcher import SourceQuoteFetcher
from dexarb.pricing.gas import GasEstimate, GasEstimator
from dexarb.pricing.normalizer import normalize, normalize_oriented, sqrt_price_x96_to_price


__all__ = [
    "GasEstimate",
    "GasEstimator",
    "QuoteAggregator",
    "SourceQuoteFetcher",
    "normalize",
    "normalize_oriented",
    "sqrt_price_x96_to_price",
]
