"""
Configuration loader for cosmwasm-simulate.

- Reads environment variables (optionally from `.env`) via pydantic-settings.
- Describes the genesis file (accounts and staking tables) with pydantic models.
- Exposes a cached `get_settings()` accessor.

Environment variables (prefix ``CWSIM_``):
    CWSIM_CHAIN_ID                (str, default "Oraichain")
    CWSIM_DENOM                   (str, default "orai")
    CWSIM_BLOCK_HEIGHT            (int, default 12345)      initial height of every instance
    CWSIM_BLOCK_TIME              (int, default 1571797419) fixed block time (seconds)
    CWSIM_CONTRACT_BALANCE        (int, default 10^16)      seeded balance of each contract
    CWSIM_GAS_LIMIT               (int, default 5 * 10^14)  gas budget of each instance
    CWSIM_CANONICAL_LENGTH        (int, default 54)         canonical address length
    CWSIM_MAX_CALL_DEPTH          (int, default 64)         cross-contract dispatch depth
    CWSIM_WATCH_INTERVAL          (float, default 1.0)      hot-reload polling (seconds)
    CWSIM_FETCH_TIMEOUT           (float, default 10.0)     custom fetch query timeout
    CWSIM_CONTRACT_FOLDER         (str, default "contract")
    CWSIM_SCHEMA_FOLDER           (str, default "schema")
    CWSIM_GENESIS_FILE            (path, optional)
    CWSIM_LOG_LEVEL               (str, default "INFO")
    CWSIM_LOG_FORMAT              ("json" | "console", default "json")

Genesis file (JSON)::

    {
      "accounts": [{"address": "alice", "balance": [{"denom": "orai", "amount": "100"}]}],
      "staking": {
        "bonded_denom": "orai",
        "validators": [{"address": "val1", "commission": "0.05"}],
        "delegations": [{"delegator": "alice", "validator": "val1",
                         "amount": {"denom": "orai", "amount": "10"}}]
      }
    }

Without a genesis file a single ``fake_sender_addr`` account with no balance
is configured.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError
from .runtime.querier import FullDelegation, StakingQuerier, Validator
from .runtime.types import Coin

SENDER_ADDR = "fake_sender_addr"


# ----------------------------- Genesis models ------------------------------ #


class CoinSpec(BaseModel):
    denom: str
    amount: int = Field(ge=0)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v):
        # amounts travel as decimal strings
        if isinstance(v, str):
            return int(v.strip())
        return v

    def to_coin(self) -> Coin:
        return Coin(denom=self.denom, amount=self.amount)


class AccountSpec(BaseModel):
    address: str = Field(min_length=1)
    balance: List[CoinSpec] = Field(default_factory=list)


class ValidatorSpec(BaseModel):
    address: str
    commission: str = "0"
    max_commission: str = "0"
    max_change_rate: str = "0"


class DelegationSpec(BaseModel):
    delegator: str
    validator: str
    amount: CoinSpec
    can_redelegate: Optional[CoinSpec] = None
    accumulated_rewards: List[CoinSpec] = Field(default_factory=list)


class StakingSpec(BaseModel):
    bonded_denom: str = ""
    validators: List[ValidatorSpec] = Field(default_factory=list)
    delegations: List[DelegationSpec] = Field(default_factory=list)

    def to_querier(self) -> StakingQuerier:
        return StakingQuerier(
            bonded_denom=self.bonded_denom,
            validators=[Validator(**v.model_dump()) for v in self.validators],
            delegations=[
                FullDelegation(
                    delegator=d.delegator,
                    validator=d.validator,
                    amount=d.amount.to_coin(),
                    can_redelegate=d.can_redelegate.to_coin() if d.can_redelegate else None,
                    accumulated_rewards=tuple(c.to_coin() for c in d.accumulated_rewards),
                )
                for d in self.delegations
            ],
        )


class Genesis(BaseModel):
    accounts: List[AccountSpec] = Field(default_factory=list)
    staking: StakingSpec = Field(default_factory=StakingSpec)

    @field_validator("accounts")
    @classmethod
    def _unique_addresses(cls, v: List[AccountSpec]) -> List[AccountSpec]:
        seen = set()
        for acct in v:
            if acct.address in seen:
                raise ValueError(f"duplicate account address: {acct.address}")
            seen.add(acct.address)
        return v

    @classmethod
    def default(cls) -> "Genesis":
        return cls(accounts=[AccountSpec(address=SENDER_ADDR)])

    def default_account(self) -> str:
        """Lexicographically first configured address."""
        if not self.accounts:
            return SENDER_ADDR
        return min(a.address for a in self.accounts)


def load_genesis(path: Optional[Union[str, Path]]) -> Genesis:
    """Load and validate a genesis file. Any problem is a ConfigError."""
    if path is None:
        return Genesis.default()
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read genesis file {p}: {e}", data={"path": str(p)}) from e
    except ValueError as e:
        raise ConfigError(f"genesis file {p} is not valid JSON: {e}", data={"path": str(p)}) from e
    try:
        genesis = Genesis.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"malformed genesis file {p}: {e}", data={"path": str(p)}) from e
    if not genesis.accounts:
        genesis.accounts = Genesis.default().accounts
    return genesis


# -------------------------------- Settings --------------------------------- #


class Settings(BaseSettings):
    chain_id: str = Field("Oraichain", description="Chain id reported in every Env")
    denom: str = Field("orai", description="Native denom used for contract balances")
    block_height: int = Field(12345, ge=0, description="Initial block height of each instance")
    block_time: int = Field(1_571_797_419, ge=0, description="Fixed block time (seconds)")
    contract_balance: int = Field(10_000_000_000_000_000, ge=0)
    gas_limit: int = Field(500_000_000_000_000, ge=0, description="Gas budget of each instance")
    canonical_length: int = Field(54, gt=0)
    max_call_depth: int = Field(64, ge=1)
    watch_interval: float = Field(1.0, gt=0)
    fetch_timeout: float = Field(10.0, gt=0)
    contract_folder: str = "contract"
    schema_folder: str = "schema"
    genesis_file: Optional[Path] = None
    log_level: str = Field("INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_format: str = Field("json", description='"json" or "console"')

    model_config = SettingsConfigDict(
        env_prefix="CWSIM_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    @field_validator("canonical_length")
    @classmethod
    def _even_length(cls, v: int) -> int:
        if v % 2:
            raise ValueError("canonical_length must be even")
        return v

    @field_validator("log_format", mode="before")
    @classmethod
    def _normalize_format(cls, v):
        v = str(v or "json").strip().lower()
        if v not in ("json", "console"):
            raise ValueError('log_format must be "json" or "console"')
        return v

    def genesis(self) -> Genesis:
        return load_genesis(self.genesis_file)


def load_settings(**overrides) -> Settings:
    """Build settings from env plus explicit overrides; invalid values are ConfigError."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigError(f"invalid settings: {e}") from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return load_settings()


__all__ = [
    "SENDER_ADDR",
    "CoinSpec",
    "AccountSpec",
    "ValidatorSpec",
    "DelegationSpec",
    "StakingSpec",
    "Genesis",
    "load_genesis",
    "Settings",
    "load_settings",
    "get_settings",
]
