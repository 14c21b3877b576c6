"""
DEX Cross-Pool Arbitrage Scanner.

An asynchronous scanner that samples concentrated-liquidity pool prices
from several on-chain sources, normalizes them and flags arbitrage
that survives slippage and transaction cost, with classified,
retrying error handling around every network read.
"""

__version__ = "1.0.0"
