"""
Configuration loading and validation for the cross-DEX scanner.

The YAML file holds one catalog per network (tokens, venues, base assets)
plus engine parameters. Environment variables (optionally read from a
``.env`` file) override the scalar settings and can add the optional
Balancer vault and Curve router venues.
"""

import copy
import os
import re
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from crossdex_arbitrage.exceptions import ConfigurationError

from .config_schema import DexSettings
from .live_costs import GasFallbacks
from .opportunity_math import to_smallest_units
from .retry import RetryPolicy
from .types import TokenRef, VenueConfig, VenueKind

DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    "configs",
    "dex_base.yaml",
)

# env var -> (section, key); section None means top level
ENV_OVERRIDES: Dict[str, Tuple[Optional[str], str]] = {
    "NETWORK": (None, "network"),
    "CONTRACT_ADDRESS": (None, "contract_address"),
    "TRADE_AMOUNT": ("engine", "trade_amount"),
    "MIN_PROFIT": ("engine", "min_profit"),
    "CHECK_INTERVAL": ("engine", "check_interval_ms"),
    "QUOTE_TIMEOUT_MS": ("engine", "quote_timeout_ms"),
    "CYCLE_TIMEOUT_MS": ("engine", "cycle_timeout_ms"),
    "MAX_RETRIES": ("engine", "max_retries"),
    "RETRY_BASE_DELAY_MS": ("engine", "retry_base_delay_ms"),
    "COOLDOWN_MS": ("engine", "cooldown_ms"),
    "SCAN_ONLY": ("engine", "scan_only"),
    "SAFETY_MARGIN_BPS": ("engine", "safety_margin_bps"),
}

POOL_ID_ENV = re.compile(r"^BALANCER_POOLID_([A-Z0-9]+)_([A-Z0-9]+)$")

BALANCER_VENUE_NAME = "Balancer"
CURVE_VENUE_NAME = "Curve"


class ConfigError(ConfigurationError):
    """Raised when config is invalid or missing required fields."""

    pass


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise ConfigError(f"Invalid boolean value: {value!r}")


def apply_env_overrides(
    config_dict: Dict[str, Any], env: Mapping[str, str]
) -> Dict[str, Any]:
    """
    Return a copy of ``config_dict`` with environment overrides applied.

    Empty variables are ignored. ``RPC_URL`` overrides the selected
    network's endpoint; ``BALANCER_VAULT`` (with ``BALANCER_POOLID_<A>_<B>``
    entries) and ``CURVE_ROUTER`` add or replace the optional venues.
    """
    result = copy.deepcopy(config_dict)

    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value is None or value == "":
            continue
        target = result if section is None else result.setdefault(section, {})
        if not isinstance(target, dict):
            raise ConfigError(f"Config section '{section}' must be a mapping")
        target[key] = _parse_bool(value) if key == "scan_only" else value.strip()

    network_name = result.get("network")
    networks = result.get("networks")
    if not isinstance(networks, dict) or network_name not in networks:
        # Schema validation reports the problem
        return result
    network = networks[network_name]
    if not isinstance(network, dict):
        return result

    rpc_url = env.get("RPC_URL")
    if rpc_url:
        network["rpc_url"] = rpc_url.strip()

    vault = env.get("BALANCER_VAULT")
    if vault:
        pool_ids = {}
        for var, value in env.items():
            match = POOL_ID_ENV.match(var)
            if match and value:
                pool_ids[f"{match.group(1)}/{match.group(2)}"] = value.strip()
        _upsert_venue(
            network,
            {
                "name": BALANCER_VENUE_NAME,
                "kind": VenueKind.BATCH_VAULT_ROUTER.value,
                "address": vault.strip(),
                "pool_ids": pool_ids,
            },
        )

    curve = env.get("CURVE_ROUTER")
    if curve:
        _upsert_venue(
            network,
            {
                "name": CURVE_VENUE_NAME,
                "kind": VenueKind.CURVE_ROUTER.value,
                "address": curve.strip(),
            },
        )

    return result


def _upsert_venue(network: Dict[str, Any], venue: Dict[str, Any]):
    venues = network.setdefault("venues", [])
    for i, existing in enumerate(venues):
        if isinstance(existing, dict) and existing.get("name") == venue["name"]:
            venues[i] = venue
            return
    venues.append(venue)


class DexConfig:
    """
    Resolved configuration for one network.

    Attributes:
        settings: Validated raw settings
        network_name: Selected network key
        chain_id: EVM chain id
        rpc_url: HTTP(S) RPC endpoint
        contract_address: Settlement contract (None disables live gas estimates)
        tokens: Symbol -> TokenRef
        venues: Enabled venues in configuration order
        native_token: Wrapped native token
        bridge_token: Two-hop routing asset (defaults to the native token)
        base_assets: Assets each round trip starts and ends in
        catalog: Tokens paired with every base asset
    """

    def __init__(self, settings: DexSettings):
        self.settings = settings
        self.network_name: str = settings.network
        network = settings.networks[settings.network]

        self.chain_id: int = network.chain_id
        self.rpc_url: str = network.rpc_url
        self.contract_address: Optional[str] = settings.contract_address

        self.tokens: Dict[str, TokenRef] = {
            symbol: TokenRef(address=t.address, symbol=symbol, decimals=t.decimals)
            for symbol, t in network.tokens.items()
        }
        self.venues: List[VenueConfig] = [
            VenueConfig(
                name=v.name,
                kind=v.kind,
                address=v.address,
                fee_tiers=tuple(v.fee_tiers),
                factory_address=v.factory,
                quoter_version=v.quoter_version,
                pool_ids=dict(v.pool_ids),
            )
            for v in network.venues
            if v.enabled
        ]
        if not self.venues:
            raise ConfigError(f"Network '{self.network_name}' has no enabled venues")

        self.native_token: TokenRef = self.tokens[network.native_token]
        self.bridge_token: TokenRef = self.tokens[
            network.bridge_token or network.native_token
        ]
        self.base_assets: List[TokenRef] = [self.tokens[s] for s in network.base_assets]
        catalog = network.catalog if network.catalog is not None else list(network.tokens)
        self.catalog: List[TokenRef] = [self.tokens[s] for s in catalog]

        engine = settings.engine
        self.trade_amount: Decimal = engine.trade_amount
        self.min_profit: Decimal = engine.min_profit
        self.check_interval_ms: int = engine.check_interval_ms
        self.quote_timeout_ms: int = engine.quote_timeout_ms
        self.cycle_timeout_ms: Optional[int] = engine.cycle_timeout_ms
        self.cooldown_ms: int = engine.cooldown_ms
        self.scan_only: bool = engine.scan_only
        self.safety_margin_bps: int = engine.safety_margin_bps
        self.price_cache_ttl: float = engine.price_cache_ttl

        for base in self.base_assets:
            if self.trade_amount_for(base) <= 0:
                raise ConfigError(
                    f"trade_amount {self.trade_amount} is below one unit of {base.symbol}"
                )

    @classmethod
    def from_dict(
        cls, config_dict: Dict[str, Any], env: Optional[Mapping[str, str]] = None
    ) -> "DexConfig":
        """
        Validate a config dictionary (after env overrides) and resolve it.

        Raises:
            ConfigError: If the config is invalid
        """
        if not isinstance(config_dict, dict):
            raise ConfigError("Config must be a dictionary")
        if env is not None:
            config_dict = apply_env_overrides(config_dict, env)
        try:
            settings = DexSettings(**config_dict)
        except ValidationError as e:
            raise ConfigError(f"Invalid config: {e}") from e
        except TypeError as e:
            raise ConfigError(f"Invalid config: {e}") from e
        return cls(settings)

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.settings.engine.max_retries,
            base_delay_ms=self.settings.engine.retry_base_delay_ms,
        )

    @property
    def venue_timeout_ms(self) -> int:
        """Per-venue bound for one quote: a full retry schedule of ``quote_timeout_ms`` calls."""
        return self.retry_policy.budget_ms(self.quote_timeout_ms)

    @property
    def gas_fallbacks(self) -> GasFallbacks:
        engine = self.settings.engine
        return GasFallbacks(
            gas_units=engine.gas_fallback_units,
            gas_price_gwei=engine.gas_fallback_gwei,
            native_price=engine.native_fallback_price,
        )

    def trade_amount_for(self, base: TokenRef) -> int:
        """Trade input in ``base`` smallest units."""
        return to_smallest_units(self.trade_amount, base.decimals)

    def min_profit_for(self, base: TokenRef) -> int:
        """Minimum net profit in ``base`` smallest units."""
        return to_smallest_units(self.min_profit, base.decimals)

    def pairs(self) -> List[Tuple[TokenRef, TokenRef]]:
        """(base, token) combinations to scan, skipping a token paired with itself."""
        return [
            (base, token)
            for base in self.base_assets
            for token in self.catalog
            if not base.same_as(token)
        ]

    def summary(self) -> str:
        return (
            f"network={self.network_name} (chain {self.chain_id}) "
            f"venues={[v.name for v in self.venues]} "
            f"pairs={len(self.pairs())} trade_amount={self.trade_amount} "
            f"min_profit={self.min_profit} scan_only={self.scan_only}"
        )


def load_config(
    config_path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> DexConfig:
    """
    Load and validate config from a YAML file plus environment overrides.

    Args:
        config_path: Path to config YAML file (default: bundled dex_base.yaml)
        env: Environment mapping; when None, ``.env`` is loaded with
            python-dotenv and ``os.environ`` is used
        dotenv_path: Explicit ``.env`` path (default: search upwards)

    Returns:
        Validated DexConfig instance

    Raises:
        ConfigError: If config invalid or file not found
    """
    config_path = config_path or DEFAULT_CONFIG_PATH
    if not os.path.exists(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError("Config file must contain a YAML dictionary")

    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    return DexConfig.from_dict(config_dict, env=env)
