"""
Application settings with environment variable support.

Uses Pydantic Settings for type-safe configuration with automatic
environment variable loading and validation.
"""

import warnings
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dexarb.config.constants import (
    BASE_RPC_URL,
    DEFAULT_ADVICE_EVERY_CYCLES,
    DEFAULT_CYCLE_TIMEOUT,
    DEFAULT_DIAGNOSTICS_HISTORY_LIMIT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MIN_PRICE_DIFF_PERCENT,
    DEFAULT_MIN_PROFIT_THRESHOLD,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUESTS_PER_SECOND,
    DEFAULT_RETRY_BASE_DELAY_MS,
    DEFAULT_SLIPPAGE_PERCENT,
    DEFAULT_SOURCE_TIMEOUT,
    DEFAULT_SWAP_GAS_LIMIT,
    DEFAULT_TRADE_SIZE,
)
from dexarb.resilience.wrapper import RetryPolicy
from dexarb.strategy.detector import DetectionConfig


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or a
    ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        # Every numeric knob must be a finite number
        allow_inf_nan=False,
    )

    # =========================================================================
    # Network Configuration
    # =========================================================================

    rpc_url: str = Field(
        default=BASE_RPC_URL,
        description="JSON-RPC endpoint of the chain to scan",
    )

    requests_per_second: int = Field(
        default=DEFAULT_REQUESTS_PER_SECOND,
        ge=1,
        le=1000,
        description="Sustained RPC request rate",
    )

    source_timeout_s: float = Field(
        default=DEFAULT_SOURCE_TIMEOUT,
        gt=0.0,
        le=120.0,
        description="Timeout for a single source fetch attempt in seconds",
    )

    cycle_timeout_s: float = Field(
        default=DEFAULT_CYCLE_TIMEOUT,
        gt=0.0,
        le=600.0,
        description="Deadline for one fetch-and-analyze cycle, retries included",
    )

    # =========================================================================
    # Market Configuration
    # =========================================================================

    pair: str = Field(
        default="WETH/USDC",
        description="Trading pair to scan (BASE/QUOTE)",
    )

    pools_file: Path | None = Field(
        default=None,
        description="JSON file with pair and pool definitions, replaces built-ins",
    )

    # =========================================================================
    # Arbitrage Configuration
    # =========================================================================

    min_price_diff_percent: float = Field(
        default=DEFAULT_MIN_PRICE_DIFF_PERCENT,
        ge=0.0,
        le=100.0,
        description="Minimum cross-source price difference (percent) to flag",
    )

    trade_size: float = Field(
        default=DEFAULT_TRADE_SIZE,
        gt=0.0,
        description="Trade size in base units for profitability estimates",
    )

    slippage_percent: float = Field(
        default=DEFAULT_SLIPPAGE_PERCENT,
        ge=0.0,
        lt=100.0,
        description="Assumed adverse price movement per leg (percent)",
    )

    min_profit_threshold_quote: float = Field(
        default=DEFAULT_MIN_PROFIT_THRESHOLD,
        ge=0.0,
        description="Net profit in quote units required after two-leg cost",
    )

    swap_gas_limit: int = Field(
        default=DEFAULT_SWAP_GAS_LIMIT,
        ge=21_000,
        le=5_000_000,
        description="Gas units assumed per swap leg",
    )

    gas_cost_per_leg_quote: float | None = Field(
        default=None,
        ge=0.0,
        description="Fixed per-leg cost in quote units; skips live gas estimation",
    )

    native_price_quote: float | None = Field(
        default=None,
        gt=0.0,
        description="Gas token price in quote units; required for accurate costs when the base is not native",
    )

    # =========================================================================
    # Resilience
    # =========================================================================

    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=0,
        le=10,
        description="Retries after the initial attempt for retryable failures",
    )

    retry_base_delay_ms: int = Field(
        default=DEFAULT_RETRY_BASE_DELAY_MS,
        ge=0,
        le=60_000,
        description="Base backoff delay in milliseconds",
    )

    exponential_backoff: bool = Field(
        default=True,
        description="Double the backoff delay on each retry",
    )

    diagnostics_history_limit: int = Field(
        default=DEFAULT_DIAGNOSTICS_HISTORY_LIMIT,
        ge=1,
        le=10_000,
        description="Number of diagnoses kept for health reporting",
    )

    # =========================================================================
    # Operation Mode
    # =========================================================================

    monitor: bool = Field(
        default=False,
        description="Scan continuously instead of running a single cycle",
    )

    poll_interval_s: float = Field(
        default=DEFAULT_POLL_INTERVAL,
        gt=0.0,
        description="Pause between monitor cycles in seconds",
    )

    advice_every_cycles: int = Field(
        default=DEFAULT_ADVICE_EVERY_CYCLES,
        ge=1,
        description="Report parameter advice every N monitor cycles",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )

    log_file: str | None = Field(
        default=None,
        description="Optional log file path",
    )

    use_uvloop: bool = Field(
        default=True,
        description="Use uvloop for improved async performance",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("rpc_url", mode="after")
    @classmethod
    def validate_rpc_url(cls, v: str) -> str:
        """Only HTTP transports are supported."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"rpc_url must be an http(s) URL, got {v!r}")
        return v

    @field_validator("pair", mode="after")
    @classmethod
    def validate_pair(cls, v: str) -> str:
        """Normalize pair names to upper case BASE/QUOTE."""
        base, sep, quote = v.strip().partition("/")
        if not sep or not base or not quote:
            raise ValueError(f"pair must look like BASE/QUOTE, got {v!r}")
        return f"{base.upper()}/{quote.upper()}"

    @field_validator("min_profit_threshold_quote", mode="after")
    @classmethod
    def validate_profit_threshold(cls, v: float) -> float:
        """Warn if profit threshold is very low."""
        if v < 0.01:
            warnings.warn(
                f"Profit threshold {v} is very low, rounding noise will read as profit",
                stacklevel=2,
            )
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def retry_policy(self) -> RetryPolicy:
        """Retry policy for wrapped network operations."""
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay_ms=self.retry_base_delay_ms,
            exponential_backoff=self.exponential_backoff,
        )

    @property
    def detection_config(self) -> DetectionConfig:
        """Thresholds for the arbitrage detector."""
        return DetectionConfig(
            min_price_diff_percent=self.min_price_diff_percent,
            slippage_percent=self.slippage_percent,
            min_profit_threshold=self.min_profit_threshold_quote,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded only once.
    Clear cache with `get_settings.cache_clear()` if needed.
    """
    return Settings()
