"""
Pair and pool registry.

Maps a pair name (``BASE/QUOTE``) to the liquidity sources quoting it.
Built-in defaults cover Base mainnet; a JSON file with the same shape
can replace them. Everything is validated at load time so that a typo
in an address fails on startup rather than as a revert mid-scan.
"""

import re
from pathlib import Path
from typing import Any

import orjson
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from dexarb.config.constants import NATIVE_TOKEN_SYMBOLS
from dexarb.core.errors import ConfigurationError, PairNotConfiguredError


ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def _validate_address(value: str) -> str:
    if not ADDRESS_PATTERN.match(value):
        raise ValueError(f"invalid address {value!r}")
    return value


class TokenConfig(BaseModel):
    """ERC-20 token as used by a pair."""

    symbol: str
    address: str
    decimals: int = Field(ge=0, le=36)

    model_config = {"frozen": True}

    @field_validator("address")
    @classmethod
    def check_address(cls, v: str) -> str:
        return _validate_address(v)


class SourceConfig(BaseModel):
    """One pool quoting a pair."""

    source_id: str = Field(min_length=1)
    address: str
    fee_tier: int = Field(default=0, ge=0)
    base_decimals: int = Field(ge=0, le=36)
    quote_decimals: int = Field(ge=0, le=36)
    token0_is_base: bool = True

    model_config = {"frozen": True}

    @field_validator("address")
    @classmethod
    def check_address(cls, v: str) -> str:
        return _validate_address(v)

    @property
    def fee_percent(self) -> float:
        """Pool fee in percent (fee tiers are hundredths of a basis point)."""
        return self.fee_tier / 10_000


class PairConfig(BaseModel):
    """A trading pair and every source quoting it."""

    base: TokenConfig
    quote: TokenConfig
    sources: list[SourceConfig] = Field(default_factory=list)
    # None infers from the base symbol
    native_is_base: bool | None = None

    model_config = {"frozen": True}

    @property
    def name(self) -> str:
        return f"{self.base.symbol}/{self.quote.symbol}"

    @property
    def base_is_native(self) -> bool:
        """Whether the base asset is the chain's gas token (or its wrapper)."""
        if self.native_is_base is not None:
            return self.native_is_base
        return self.base.symbol.upper() in NATIVE_TOKEN_SYMBOLS

    @model_validator(mode="after")
    def check_sources(self) -> "PairConfig":
        seen: set[str] = set()
        for source in self.sources:
            if source.source_id in seen:
                raise ValueError(f"duplicate source_id {source.source_id!r} in {self.name}")
            seen.add(source.source_id)
            if (source.base_decimals, source.quote_decimals) != (
                self.base.decimals,
                self.quote.decimals,
            ):
                raise ValueError(
                    f"source {source.source_id!r} decimals do not match {self.name} tokens"
                )
        return self


class PoolRegistry:
    """Lookup of configured pairs by name."""

    def __init__(self, pairs: list[PairConfig]) -> None:
        self._pairs: dict[str, PairConfig] = {}
        for pair in pairs:
            key = pair.name.upper()
            if key in self._pairs:
                raise ConfigurationError(f"pair {pair.name} configured twice")
            self._pairs[key] = pair

    def get_pair(self, name: str) -> PairConfig:
        """
        Get a pair by name (case-insensitive).

        Raises:
            PairNotConfiguredError: If the pair is unknown.
        """
        pair = self._pairs.get(name.strip().upper())
        if pair is None:
            raise PairNotConfiguredError(name, available=self.pairs())
        return pair

    def pairs(self) -> list[str]:
        """Names of all configured pairs."""
        return [pair.name for pair in self._pairs.values()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().upper() in self._pairs

    def __len__(self) -> int:
        return len(self._pairs)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PoolRegistry":
        """
        Build a registry from ``{"pairs": [...]}``.

        Raises:
            ConfigurationError: If the data does not validate.
        """
        try:
            pairs = [PairConfig.model_validate(item) for item in data.get("pairs", [])]
        except ValidationError as e:
            raise ConfigurationError(f"invalid pool config: {e}") from e
        return cls(pairs)

    @classmethod
    def from_json(cls, path: str | Path) -> "PoolRegistry":
        """
        Load a registry from a JSON file.

        Raises:
            ConfigurationError: If the file is missing or malformed.
        """
        try:
            data = orjson.loads(Path(path).read_bytes())
        except FileNotFoundError as e:
            raise ConfigurationError(f"pool config file not found: {path}") from e
        except orjson.JSONDecodeError as e:
            raise ConfigurationError(f"pool config file {path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"pool config file {path} must contain an object")
        return cls.from_dict(data)


# =============================================================================
# Built-in Base Mainnet Pools
# =============================================================================

WETH = TokenConfig(symbol="WETH", address="0x4200000000000000000000000000000000000006", decimals=18)
USDC = TokenConfig(symbol="USDC", address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", decimals=6)
USDBC = TokenConfig(symbol="USDbC", address="0xd9aAEc86B65D86f6A7B5B1b0c42FFA531710b6CA", decimals=6)

DEFAULT_PAIRS: list[PairConfig] = [
    PairConfig(
        base=WETH,
        quote=USDC,
        sources=[
            SourceConfig(
                source_id="Uniswap V3",
                address="0xd0b53D9277642d899DF5C87A3966A349A798F224",
                fee_tier=500,
                base_decimals=18,
                quote_decimals=6,
            ),
            SourceConfig(
                source_id="Aerodrome CL",
                address="0xb2cc224c1c9feE385f8ad6a55b4d94E92359DC59",
                fee_tier=100,
                base_decimals=18,
                quote_decimals=6,
            ),
        ],
    ),
    PairConfig(
        base=WETH,
        quote=USDBC,
        sources=[
            SourceConfig(
                source_id="Uniswap V3",
                address="0x4C36388bE6F416A29C8d8Eee81C771cE6bE14B18",
                fee_tier=500,
                base_decimals=18,
                quote_decimals=6,
            ),
            SourceConfig(
                source_id="Aerodrome CL",
                address="0xBb5DFE1380333CEE4C2EeBd7202c80dE2256AdF4",
                fee_tier=100,
                base_decimals=18,
                quote_decimals=6,
            ),
        ],
    ),
]


def default_registry() -> PoolRegistry:
    """Registry with the built-in pairs."""
    return PoolRegistry(DEFAULT_PAIRS)


def load_registry(pools_file: str | Path | None = None) -> PoolRegistry:
    """Load pools from a file when given, otherwise the built-ins."""
    if pools_file is None:
        return default_registry()
    return PoolRegistry.from_json(pools_file)
