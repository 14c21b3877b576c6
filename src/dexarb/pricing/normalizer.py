"""
Square-root price normalization.

Concentrated-liquidity pools publish ``sqrtPriceX96 = sqrt(price) * 2^96``
where ``price`` is token1-per-token0 in raw (integer) units. This module
turns that into a decimal price comparable across pools whose tokens
use different decimal precision.

Precision note: the division by 2^96 is done in double precision. For
comparing prices across venues this is more than enough; settlement
math would need exact integer arithmetic instead.
"""

from dexarb.config.constants import Q96
from dexarb.core.types import PricePoint
from dexarb.utils.math import safe_reciprocal


def sqrt_price_x96_to_price(
    raw_sqrt_price: int,
    base_decimals: int,
    quote_decimals: int,
) -> float:
    """
    Convert a raw sqrtPriceX96 into a decimal quote-per-base price.

    Args:
        raw_sqrt_price: Pool sqrtPriceX96 (unsigned).
        base_decimals: Decimals of the base token (token0).
        quote_decimals: Decimals of the quote token (token1).

    Returns:
        Price of one base token in quote tokens. ``0.0`` for a zero input.

    Raises:
        ValueError: If the raw value is negative.
    """
    if raw_sqrt_price < 0:
        raise ValueError(f"invalid sqrtPriceX96 {raw_sqrt_price}: must be unsigned")
    if raw_sqrt_price == 0:
        return 0.0

    sqrt_price = raw_sqrt_price / Q96
    return sqrt_price * sqrt_price * 10.0 ** (base_decimals - quote_decimals)


def normalize(
    raw_sqrt_price: int,
    base_decimals: int,
    quote_decimals: int,
) -> tuple[float, float | None]:
    """
    Normalize a raw sqrtPriceX96 into a directional price and its inverse.

    Args:
        raw_sqrt_price: Pool sqrtPriceX96 (unsigned).
        base_decimals: Decimals of the base token.
        quote_decimals: Decimals of the quote token.

    Returns:
        ``(price_base_in_quote, price_quote_in_base)``. The inverse is
        ``None`` when the base price is zero.
    """
    price = sqrt_price_x96_to_price(raw_sqrt_price, base_decimals, quote_decimals)
    return price, safe_reciprocal(price)


def normalize_oriented(
    raw_sqrt_price: int,
    base_decimals: int,
    quote_decimals: int,
    token0_is_base: bool = True,
) -> tuple[float, float | None]:
    """
    Normalize a pool price whose token ordering may not match the pair.

    Pools order tokens by address, so the base asset is not always
    token0. When it is token1 the pool price is base-per-quote and the
    two outputs swap.
    """
    if token0_is_base:
        return normalize(raw_sqrt_price, base_decimals, quote_decimals)

    quote_in_base, base_in_quote = normalize(raw_sqrt_price, quote_decimals, base_decimals)
    if base_in_quote is None:
        return 0.0, None
    return base_in_quote, quote_in_base


def normalize_point(point: PricePoint) -> tuple[float, float | None]:
    """Normalize a :class:`PricePoint`."""
    return normalize(point.raw_sqrt_price, point.base_decimals, point.quote_decimals)
