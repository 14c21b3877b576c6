"""
Scanner constants and configuration defaults.

This module contains all hardcoded values used throughout the scanner.
Values are organized by category for easy maintenance and auditing.
"""

from typing import Final


# =============================================================================
# Network Endpoints
# =============================================================================

BASE_RPC_URL: Final[str] = "https://mainnet.base.org"

BASE_CHAIN_ID: Final[int] = 8453

JSONRPC_VERSION: Final[str] = "2.0"

# Default per-request HTTP timeout (seconds)
DEFAULT_REQUEST_TIMEOUT: Final[float] = 10.0


# =============================================================================
# Pool Contract Selectors
# =============================================================================

# keccak("slot0()")[:4]
SLOT0_SELECTOR: Final[str] = "0x3850c7bd"

# keccak("liquidity()")[:4]
LIQUIDITY_SELECTOR: Final[str] = "0x1a686502"


# =============================================================================
# Fixed-Point Math
# =============================================================================

# sqrtPriceX96 = sqrt(price) * 2^96
Q96: Final[int] = 2**96

UINT160_MASK: Final[int] = (1 << 160) - 1
UINT128_MASK: Final[int] = (1 << 128) - 1

WEI_PER_ETHER: Final[int] = 10**18
WEI_PER_GWEI: Final[int] = 10**9


# =============================================================================
# Arbitrage Defaults
# =============================================================================

# Minimum price difference (percent) to flag an opportunity
DEFAULT_MIN_PRICE_DIFF_PERCENT: Final[float] = 0.1

# Trade size in base units used for profitability estimates
DEFAULT_TRADE_SIZE: Final[float] = 1.0

# Assumed adverse price movement per leg (percent)
DEFAULT_SLIPPAGE_PERCENT: Final[float] = 0.5

# Net profit (quote units) required after two-leg cost
DEFAULT_MIN_PROFIT_THRESHOLD: Final[float] = 1.0

# Typical gas units for a single swap
DEFAULT_SWAP_GAS_LIMIT: Final[int] = 250_000

# Native asset price used when no live quote is available
FALLBACK_NATIVE_PRICE_QUOTE: Final[float] = 2500.0

# Base symbols whose quotes double as the gas token price
NATIVE_TOKEN_SYMBOLS: Final[frozenset[str]] = frozenset({"ETH", "WETH"})


# =============================================================================
# Resilience Defaults
# =============================================================================

DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_RETRY_BASE_DELAY_MS: Final[int] = 1000

DEFAULT_SOURCE_TIMEOUT: Final[float] = 10.0  # seconds
DEFAULT_CYCLE_TIMEOUT: Final[float] = 30.0  # seconds

# Rolling diagnosis history cap
DEFAULT_DIAGNOSTICS_HISTORY_LIMIT: Final[int] = 100

# Failures within the history before a source is flagged as untrusted
DEFAULT_UNTRUSTED_SOURCE_ERRORS: Final[int] = 3


# =============================================================================
# Rate Limiting
# =============================================================================

# Public RPC endpoints throttle aggressively
DEFAULT_REQUESTS_PER_SECOND: Final[int] = 10


# =============================================================================
# Logging & Telemetry
# =============================================================================

LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Monitor loop interval (seconds)
DEFAULT_POLL_INTERVAL: Final[float] = 5.0

# Monitor cycles between advisory parameter reports
DEFAULT_ADVICE_EVERY_CYCLES: Final[int] = 10

# Maximum log queue size
MAX_LOG_QUEUE_SIZE: Final[int] = 10_000
