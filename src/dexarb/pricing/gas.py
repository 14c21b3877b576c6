"""
Transaction cost estimation.

Converts the network gas price into a per-swap cost in quote units:
``gas_price_wei * gas_limit / 1e18 * native_price_in_quote``.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from dexarb.config.constants import DEFAULT_SWAP_GAS_LIMIT, FALLBACK_NATIVE_PRICE_QUOTE, WEI_PER_ETHER, WEI_PER_GWEI
from dexarb.config.pools import PairConfig
from dexarb.core.types import FetchOk, FetchOutcome, PoolStateReader


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class GasEstimate:
    """Per-leg transaction cost."""

    gas_price_wei: int
    gas_limit: int
    native_price_quote: float
    cost_native: float
    cost_quote: float

    @property
    def gas_price_gwei(self) -> float:
        return self.gas_price_wei / WEI_PER_GWEI


def native_price_from_outcomes(
    outcomes: Iterable[FetchOutcome],
    fallback: float = FALLBACK_NATIVE_PRICE_QUOTE,
) -> float:
    """
    Price of the native asset in quote units.

    Uses the first valid quote, which is correct when the pair's base
    asset is the wrapped native token.
    """
    for outcome in outcomes:
        if isinstance(outcome, FetchOk) and outcome.quote.has_price:
            return outcome.quote.price_base_in_quote
    logger.warning(f"No valid quote for native price, using fallback {fallback}")
    return fallback


def resolve_native_price(
    pair: PairConfig,
    outcomes: Iterable[FetchOutcome],
    override: float | None = None,
    fallback: float = FALLBACK_NATIVE_PRICE_QUOTE,
) -> float:
    """
    Price of the gas token in the pair's quote units.

    A configured override wins. The pair's own quotes are used only when
    its base asset is native; for any other base (cbBTC/USDC, say) the
    base price says nothing about gas, so the fallback applies.
    """
    if override is not None:
        return override
    if pair.base_is_native:
        return native_price_from_outcomes(outcomes, fallback)
    logger.warning(
        f"{pair.name}: base {pair.base.symbol} is not the gas token and no native price "
        f"is configured, using fallback {fallback}"
    )
    return fallback


def estimate_cost(gas_price_wei: int, gas_limit: int, native_price_quote: float) -> GasEstimate:
    """Per-leg cost for a given gas price."""
    if gas_price_wei < 0:
        raise ValueError(f"invalid gas price {gas_price_wei}")
    cost_native = gas_price_wei * gas_limit / WEI_PER_ETHER
    return GasEstimate(
        gas_price_wei=gas_price_wei,
        gas_limit=gas_limit,
        native_price_quote=native_price_quote,
        cost_native=cost_native,
        cost_quote=cost_native * native_price_quote,
    )


class GasEstimator:
    """Reads the live gas price and prices one swap leg."""

    __slots__ = ("_reader", "_gas_limit")

    def __init__(self, reader: PoolStateReader, gas_limit: int = DEFAULT_SWAP_GAS_LIMIT) -> None:
        """
        Initialize estimator.

        Args:
            reader: Network collaborator exposing ``get_gas_price``.
            gas_limit: Gas units assumed per swap.
        """
        self._reader = reader
        self._gas_limit = gas_limit

    async def estimate(self, native_price_quote: float) -> GasEstimate:
        """
        Estimate the cost of one swap leg.

        Args:
            native_price_quote: Native asset price in quote units.
        """
        gas_price = await self._reader.get_gas_price()
        estimate = estimate_cost(gas_price, self._gas_limit, native_price_quote)
        logger.debug(
            f"Gas {estimate.gas_price_gwei:.4f} gwei x {self._gas_limit} "
            f"= {estimate.cost_quote:.6f} per leg"
        )
        return estimate
