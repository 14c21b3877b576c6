"""
Unit tests for settings and the pool registry.

Tests validation, pair lookup and JSON pool files.
"""

import orjson
import pytest
from pydantic import ValidationError

from dexarb.config.pools import (
    DEFAULT_PAIRS,
    PairConfig,
    PoolRegistry,
    SourceConfig,
    TokenConfig,
    default_registry,
    load_registry,
)
from dexarb.config.settings import Settings
from dexarb.core.errors import ConfigurationError, PairNotConfiguredError


def pools_document() -> dict:
    return {
        "pairs": [
            {
                "base": {"symbol": "WETH", "address": "0x4200000000000000000000000000000000000006", "decimals": 18},
                "quote": {"symbol": "DAI", "address": "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb", "decimals": 18},
                "sources": [
                    {
                        "source_id": "Uniswap V3",
                        "address": "0x1111111111111111111111111111111111111111",
                        "fee_tier": 3000,
                        "base_decimals": 18,
                        "quote_decimals": 18,
                    },
                    {
                        "source_id": "Aerodrome CL",
                        "address": "0x2222222222222222222222222222222222222222",
                        "base_decimals": 18,
                        "quote_decimals": 18,
                        "token0_is_base": False,
                    },
                ],
            }
        ]
    }


class TestPoolModels:
    """Tests for token/source/pair models."""

    def test_invalid_address(self) -> None:
        with pytest.raises(ValidationError):
            TokenConfig(symbol="WETH", address="0x123", decimals=18)

    def test_fee_percent(self) -> None:
        source = SourceConfig(
            source_id="Uniswap V3",
            address="0x1111111111111111111111111111111111111111",
            fee_tier=500,
            base_decimals=18,
            quote_decimals=6,
        )

        assert source.fee_percent == 0.05

    def test_duplicate_source_rejected(self, weth: TokenConfig, usdc: TokenConfig) -> None:
        source = SourceConfig(
            source_id="Uniswap V3",
            address="0x1111111111111111111111111111111111111111",
            base_decimals=18,
            quote_decimals=6,
        )

        with pytest.raises(ValidationError, match="duplicate"):
            PairConfig(base=weth, quote=usdc, sources=[source, source])

    def test_mismatched_decimals_rejected(self, weth: TokenConfig, usdc: TokenConfig) -> None:
        source = SourceConfig(
            source_id="Uniswap V3",
            address="0x1111111111111111111111111111111111111111",
            base_decimals=18,
            quote_decimals=18,
        )

        with pytest.raises(ValidationError, match="decimals"):
            PairConfig(base=weth, quote=usdc, sources=[source])

    def test_native_base_inferred(self, pair_config: PairConfig, usdc: TokenConfig) -> None:
        cbbtc = TokenConfig(symbol="cbBTC", address="0xcbB7C0000aB88B473b1f5aFd9ef808440eed33Bf", decimals=8)

        assert pair_config.base_is_native is True
        assert PairConfig(base=cbbtc, quote=usdc).base_is_native is False
        assert PairConfig(base=cbbtc, quote=usdc, native_is_base=True).base_is_native is True
        assert pair_config.model_copy(update={"native_is_base": False}).base_is_native is False


class TestPoolRegistry:
    """Tests for PoolRegistry."""

    def test_default_registry(self) -> None:
        registry = default_registry()

        assert len(registry) == len(DEFAULT_PAIRS)
        assert "WETH/USDC" in registry
        assert len(registry.get_pair("WETH/USDC").sources) == 2

    def test_case_insensitive_lookup(self, registry: PoolRegistry) -> None:
        assert registry.get_pair(" weth/usdc ").name == "WETH/USDC"

    def test_unknown_pair(self, registry: PoolRegistry) -> None:
        with pytest.raises(PairNotConfiguredError) as exc_info:
            registry.get_pair("FOO/BAR")

        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.code == "CONFIG_ERROR"
        assert exc_info.value.available == ["WETH/USDC"]

    def test_duplicate_pair(self, pair_config: PairConfig) -> None:
        with pytest.raises(ConfigurationError):
            PoolRegistry([pair_config, pair_config])

    def test_from_dict(self) -> None:
        registry = PoolRegistry.from_dict(pools_document())

        pair = registry.get_pair("WETH/DAI")
        assert pair.sources[0].fee_tier == 3000
        assert pair.sources[1].token0_is_base is False

    def test_from_dict_invalid(self) -> None:
        document = pools_document()
        document["pairs"][0]["sources"][0]["address"] = "not-an-address"

        with pytest.raises(ConfigurationError, match="invalid pool config"):
            PoolRegistry.from_dict(document)

    def test_from_json(self, tmp_path) -> None:
        path = tmp_path / "pools.json"
        path.write_bytes(orjson.dumps(pools_document()))

        registry = load_registry(path)

        assert registry.pairs() == ["WETH/DAI"]

    def test_from_json_missing(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            PoolRegistry.from_json(tmp_path / "missing.json")

    def test_from_json_malformed(self, tmp_path) -> None:
        path = tmp_path / "pools.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError, match="not valid JSON"):
            PoolRegistry.from_json(path)

    def test_from_json_not_object(self, tmp_path) -> None:
        path = tmp_path / "pools.json"
        path.write_text("[]")

        with pytest.raises(ConfigurationError, match="must contain an object"):
            PoolRegistry.from_json(path)

    def test_load_registry_default(self) -> None:
        assert "WETH/USDBC" in load_registry(None)


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert settings.pair == "WETH/USDC"
        assert settings.max_retries == 3
        assert settings.retry_base_delay_ms == 1000
        assert settings.gas_cost_per_leg_quote is None

    def test_pair_normalized(self) -> None:
        assert Settings(_env_file=None, pair=" weth/usdc").pair == "WETH/USDC"

    @pytest.mark.parametrize("pair", ["WETHUSDC", "/USDC", "WETH/"])
    def test_pair_invalid(self, pair: str) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, pair=pair)

    def test_rpc_url_scheme(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, rpc_url="wss://mainnet.base.org")

    def test_trade_size_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, trade_size=0)

    @pytest.mark.parametrize(
        "field",
        ["trade_size", "poll_interval_s", "min_profit_threshold_quote", "gas_cost_per_leg_quote", "native_price_quote"],
    )
    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_rejected(self, field: str, value: float) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_non_finite_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRADE_SIZE", "inf")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_low_profit_threshold_warns(self) -> None:
        with pytest.warns(UserWarning, match="very low"):
            Settings(_env_file=None, min_profit_threshold_quote=0.001)

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_RETRIES", "5")
        monkeypatch.setenv("MONITOR", "true")

        settings = Settings(_env_file=None)

        assert settings.max_retries == 5
        assert settings.monitor is True

    def test_retry_policy(self) -> None:
        settings = Settings(_env_file=None, max_retries=2, retry_base_delay_ms=250, exponential_backoff=False)

        policy = settings.retry_policy

        assert policy.max_retries == 2
        assert policy.base_delay_ms == 250
        assert policy.exponential_backoff is False

    def test_detection_config(self, settings: Settings) -> None:
        config = settings.detection_config

        assert config.min_price_diff_percent == settings.min_price_diff_percent
        assert config.slippage_percent == settings.slippage_percent
        assert config.min_profit_threshold == settings.min_profit_threshold_quote
