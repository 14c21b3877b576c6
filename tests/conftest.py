"""
Pytest configuration and shared fixtures.

Provides reusable test fixtures for all test modules.
"""

import pytest

from dexarb.config.pools import PairConfig, PoolRegistry, SourceConfig, TokenConfig
from dexarb.config.settings import Settings
from dexarb.resilience.context import ResilienceContext
from dexarb.resilience.wrapper import RetryPolicy
from dexarb.strategy.detector import ArbitrageDetector, DetectionConfig
from tests.mocks.chain import AERO_ADDRESS, UNI_ADDRESS, MockChainClient


# =============================================================================
# Registry Fixtures
# =============================================================================


@pytest.fixture
def weth() -> TokenConfig:
    return TokenConfig(symbol="WETH", address="0x4200000000000000000000000000000000000006", decimals=18)


@pytest.fixture
def usdc() -> TokenConfig:
    return TokenConfig(symbol="USDC", address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", decimals=6)


@pytest.fixture
def pair_config(weth: TokenConfig, usdc: TokenConfig) -> PairConfig:
    """WETH/USDC with two sources."""
    return PairConfig(
        base=weth,
        quote=usdc,
        sources=[
            SourceConfig(source_id="Uniswap V3", address=UNI_ADDRESS, fee_tier=500, base_decimals=18, quote_decimals=6),
            SourceConfig(source_id="Aerodrome CL", address=AERO_ADDRESS, fee_tier=100, base_decimals=18, quote_decimals=6),
        ],
    )


@pytest.fixture
def registry(pair_config: PairConfig) -> PoolRegistry:
    return PoolRegistry([pair_config])


# =============================================================================
# Chain Fixtures
# =============================================================================


@pytest.fixture
def mock_chain() -> MockChainClient:
    """Mock chain with a 1% spread between the two sources."""
    chain = MockChainClient()
    chain.set_price(UNI_ADDRESS, 2500.0)
    chain.set_price(AERO_ADDRESS, 2525.0)
    return chain


# =============================================================================
# Resilience Fixtures
# =============================================================================


class RecordingSleep:
    """Records backoff delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def resilience(fake_sleep: RecordingSleep) -> ResilienceContext:
    """Resilience context with the default policy and no real sleeping."""
    return ResilienceContext.create(policy=RetryPolicy(), sleep=fake_sleep)


# =============================================================================
# Strategy Fixtures
# =============================================================================


@pytest.fixture
def detector() -> ArbitrageDetector:
    """Detector with default thresholds."""
    return ArbitrageDetector(DetectionConfig())


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file, with a fixed leg cost."""
    return Settings(
        _env_file=None,
        pair="WETH/USDC",
        trade_size=1.0,
        slippage_percent=0.1,
        min_price_diff_percent=0.1,
        min_profit_threshold_quote=1.0,
        gas_cost_per_leg_quote=0.5,
        cycle_timeout_s=30.0,
        source_timeout_s=1.0,
        poll_interval_s=0.01,
        use_uvloop=False,
    )
