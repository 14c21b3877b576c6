"""
Arbitrage profit calculation.

Pure functions for the two-source round trip: buy the base asset on
the cheaper source, sell it on the dearer one. Slippage is modelled as
a symmetric adverse move on both legs and transaction cost as a fixed
amount per leg.
"""

from dataclasses import dataclass

from dexarb.core.types import ArbitrageDirection
from dexarb.utils.math import percent, safe_divide


@dataclass(slots=True, frozen=True)
class PotentialProfit:
    """Gross result of a round trip after slippage, before cost."""

    trade_amount: float
    effective_buy_price: float
    effective_sell_price: float
    cost_to_buy: float
    revenue_from_sell: float
    gross_profit: float
    profit_percent: float


@dataclass(slots=True, frozen=True)
class NetProfit:
    """Round trip result after two-leg cost."""

    gross_profit: float
    total_cost: float
    net_profit: float
    is_profitable: bool
    profit_after_cost_percent: float


def calculate_price_difference(price_a: float, price_b: float) -> float:
    """
    Symmetric percentage difference between two prices.

    Uses the average of the two prices as the denominator, so swapping
    the operands yields the same value.

    Returns:
        ``|a - b| / avg(a, b) * 100``, or ``0.0`` when either price is zero.
    """
    if price_a == 0 or price_b == 0:
        return 0.0
    average = (price_a + price_b) / 2
    return safe_divide(abs(price_a - price_b), average) * 100.0


def determine_direction(
    source_a: str,
    price_a: float,
    source_b: str,
    price_b: float,
) -> ArbitrageDirection:
    """Buy where the base asset is cheaper, sell where it is dearer."""
    if price_a < price_b:
        return ArbitrageDirection(buy_from=source_a, buy_price=price_a, sell_to=source_b, sell_price=price_b)
    return ArbitrageDirection(buy_from=source_b, buy_price=price_b, sell_to=source_a, sell_price=price_a)


def calculate_potential_profit(
    buy_price: float,
    sell_price: float,
    trade_amount: float,
    slippage_percent: float,
) -> PotentialProfit:
    """
    Gross profit of a round trip after slippage.

    Args:
        buy_price: Quote-per-base price on the buy source.
        sell_price: Quote-per-base price on the sell source.
        trade_amount: Base units traded.
        slippage_percent: Adverse move per leg (0.5 == 0.5%).

    Returns:
        PotentialProfit in quote units.
    """
    slippage = percent(slippage_percent)
    effective_buy = buy_price * (1 + slippage)
    effective_sell = sell_price * (1 - slippage)

    cost_to_buy = trade_amount * effective_buy
    revenue_from_sell = trade_amount * effective_sell
    gross = revenue_from_sell - cost_to_buy

    return PotentialProfit(
        trade_amount=trade_amount,
        effective_buy_price=effective_buy,
        effective_sell_price=effective_sell,
        cost_to_buy=cost_to_buy,
        revenue_from_sell=revenue_from_sell,
        gross_profit=gross,
        profit_percent=safe_divide(gross, cost_to_buy) * 100.0,
    )


def calculate_net_profit(
    gross_profit: float,
    cost_per_leg: float,
    min_profit_threshold: float,
) -> NetProfit:
    """
    Apply the two-leg cost model.

    Args:
        gross_profit: Gross profit in quote units.
        cost_per_leg: Transaction cost per swap in quote units.
        min_profit_threshold: Net profit that must be exceeded.

    Returns:
        NetProfit; ``is_profitable`` is ``net > min_profit_threshold``.
    """
    total_cost = cost_per_leg * 2
    net = gross_profit - total_cost

    return NetProfit(
        gross_profit=gross_profit,
        total_cost=total_cost,
        net_profit=net,
        is_profitable=net > min_profit_threshold,
        profit_after_cost_percent=(net / gross_profit * 100.0) if gross_profit > 0 else 0.0,
    )
