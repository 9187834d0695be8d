"""
Configuration schema validation using Pydantic
"""

from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from web3 import Web3

from .types import VenueKind, pair_key


def _checksum(value: str) -> str:
    # Catalog addresses are copied from explorers in mixed case; accept any case
    if not isinstance(value, str) or not Web3.is_address(value.lower()):
        raise ValueError(f"Invalid address: {value!r}")
    return Web3.to_checksum_address(value.lower())


class TokenSchema(BaseModel):
    """ERC-20 token entry"""

    address: str = Field(description="Token contract address")
    decimals: int = Field(ge=0, le=18, description="Token decimals")

    @field_validator("address")
    @classmethod
    def validate_address(cls, v):
        return _checksum(v)

    model_config = {"extra": "forbid"}


class VenueSchema(BaseModel):
    """Liquidity venue entry"""

    name: str = Field(min_length=1, description="Venue identifier")
    kind: VenueKind = Field(description="Quoting interface shape")
    address: str = Field(description="Quoter, router or vault address")
    fee_tiers: List[int] = Field(default_factory=list)
    factory: Optional[str] = Field(default=None, description="V3 factory for pool probes")
    quoter_version: Literal[1, 2] = 1
    pool_ids: Dict[str, str] = Field(
        default_factory=dict, description="Pair key (SYMA/SYMB) -> bytes32 pool id"
    )
    enabled: bool = True

    @field_validator("address", "factory")
    @classmethod
    def validate_addresses(cls, v):
        if v is None:
            return v
        return _checksum(v)

    @field_validator("fee_tiers")
    @classmethod
    def validate_fee_tiers(cls, v):
        for fee in v:
            if fee <= 0 or fee >= 1_000_000:
                raise ValueError(f"Fee tier out of range: {fee}")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate fee tiers: {v}")
        return sorted(v)

    @field_validator("pool_ids")
    @classmethod
    def validate_pool_ids(cls, v):
        normalized = {}
        for key, pool_id in v.items():
            symbols = key.split("/")
            if len(symbols) != 2 or not all(symbols):
                raise ValueError(f"Pool id key must look like 'USDC/DAI': {key}")
            raw = pool_id[2:] if pool_id.startswith("0x") else pool_id
            if len(raw) != 64:
                raise ValueError(f"Pool id for {key} must be 32 bytes of hex")
            try:
                bytes.fromhex(raw)
            except ValueError as e:
                raise ValueError(f"Pool id for {key} is not hex") from e
            normalized[pair_key(*symbols)] = "0x" + raw.lower()
        return normalized

    @model_validator(mode="after")
    def validate_kind_params(self):
        if self.kind.uses_fee_tiers and not self.fee_tiers:
            raise ValueError(f"Venue '{self.name}' ({self.kind.value}) needs fee_tiers")
        if self.factory and self.kind not in (
            VenueKind.SINGLE_HOP_QUOTER,
            VenueKind.MULTI_HOP_QUOTER,
        ):
            raise ValueError(f"Venue '{self.name}': factory only applies to quoters")
        return self

    model_config = {"extra": "forbid"}


class NetworkSchema(BaseModel):
    """One chain's token and venue catalog"""

    chain_id: int = Field(ge=1, description="EVM chain id")
    rpc_url: str = Field(min_length=1, description="HTTP(S) RPC endpoint")
    native_token: str = Field(description="Symbol of the wrapped native token")
    bridge_token: Optional[str] = Field(
        default=None, description="Symbol routed through for two-hop quotes"
    )
    base_assets: List[str] = Field(min_length=1, description="Assets traded from and back to")
    catalog: Optional[List[str]] = Field(
        default=None, description="Tokens paired with each base asset (default: all)"
    )
    tokens: Dict[str, TokenSchema] = Field(min_length=1)
    venues: List[VenueSchema] = Field(min_length=1)

    @field_validator("rpc_url")
    @classmethod
    def validate_rpc_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"rpc_url must be HTTP(S): {v}")
        return v

    @model_validator(mode="after")
    def validate_symbols(self):
        known = set(self.tokens)
        referenced = [self.native_token, *self.base_assets, *(self.catalog or [])]
        if self.bridge_token:
            referenced.append(self.bridge_token)
        missing = sorted({s for s in referenced if s not in known})
        if missing:
            raise ValueError(f"Unknown token symbols: {missing}")

        names = [v.name for v in self.venues]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate venue names: {duplicates}")

        for venue in self.venues:
            for key in venue.pool_ids:
                unknown = [s for s in key.split("/") if s not in {t.upper() for t in known}]
                if unknown:
                    raise ValueError(
                        f"Venue '{venue.name}' pool id references unknown tokens {unknown}"
                    )
        return self

    model_config = {"extra": "forbid"}


class EngineSchema(BaseModel):
    """Scan loop and evaluation parameters"""

    trade_amount: Decimal = Field(
        gt=0, default=Decimal("10"), description="Human amount of each base asset"
    )
    min_profit: Decimal = Field(
        ge=0, default=Decimal("0.5"), description="Human minimum net profit"
    )
    check_interval_ms: int = Field(ge=0, le=3_600_000, default=5000)
    quote_timeout_ms: int = Field(ge=1, le=60_000, default=1500)
    cycle_timeout_ms: Optional[int] = Field(ge=1, default=None)
    max_retries: int = Field(ge=1, le=10, default=3)
    retry_base_delay_ms: int = Field(ge=0, le=60_000, default=1000)
    cooldown_ms: int = Field(ge=0, le=3_600_000, default=30_000)
    scan_only: bool = True
    safety_margin_bps: int = Field(ge=0, le=10_000, default=1000)
    price_cache_ttl: float = Field(ge=0, default=60.0)
    gas_fallback_units: int = Field(ge=1, default=500_000)
    gas_fallback_gwei: int = Field(ge=0, default=20)
    native_fallback_price: int = Field(
        gt=0, default=2000, description="Settlement tokens per native token"
    )

    model_config = {"extra": "forbid"}


class DexSettings(BaseModel):
    """Complete scanner configuration schema"""

    network: str = Field(min_length=1, description="Selected network name")
    contract_address: Optional[str] = Field(
        default=None, description="Settlement contract used for gas estimates"
    )
    engine: EngineSchema = Field(default_factory=EngineSchema)
    networks: Dict[str, NetworkSchema] = Field(min_length=1)

    @field_validator("contract_address")
    @classmethod
    def validate_contract_address(cls, v):
        if v is None or v == "":
            return None
        return _checksum(v)

    @model_validator(mode="after")
    def validate_network(self):
        if self.network not in self.networks:
            raise ValueError(
                f"Unknown network '{self.network}' (known: {sorted(self.networks)})"
            )
        return self

    model_config = {
        "extra": "forbid",
        "validate_assignment": True,
    }
