"""
Configuration loaded from environment variables. Fail-fast on invalid values.
"""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import Field


class ConfigurationError(Exception):
    """Fatal startup misconfiguration. The loop must never enter RUNNING."""
    pass


class Config(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "frozen": True, "extra": "ignore"}

    # Network + credentials (key required only for live execution)
    rpc_url: str = "https://sepolia.base.org"
    chain_id: int = 84532  # Base Sepolia
    private_key: str = Field(default="", description="Signing key (hex) for live execution")
    execution_mode: Literal["simulation", "live"] = "simulation"

    # Detection
    # Fraction, 0.003 = 0.3% minimum price divergence between two venues
    min_divergence: float = Field(default=0.003, gt=0, lt=1)
    trade_size_usd: float = Field(default=1000.0, gt=0)
    # Fee cost model: USD per gwei of current gas price
    gas_usd_per_gwei: float = Field(default=0.001, ge=0)

    # Decision
    min_profit_usd: float = Field(default=5.0, ge=0)
    max_gas_price_gwei: float = Field(default=50.0, gt=0)

    # Timing
    no_opportunity_backoff_sec: float = Field(default=5.0, ge=0)
    cycle_interval_sec: float = Field(default=10.0, ge=0)
    simulated_execution_delay_sec: float = Field(default=1.5, ge=0)
    receipt_timeout_sec: float = Field(default=120.0, gt=0)

    # Gas
    gas_per_swap: int = Field(default=150_000, gt=0)
    gas_cache_sec: float = 10.0
    default_gas_gwei: float = Field(default=1.0, ge=0)

    # Venues: comma-separated V2 pair addresses. Empty = simulated pools.
    venue_pairs: str = ""
    venue_names: str = ""
    simulated_price_jitter: float = Field(default=0.0, ge=0, lt=1)
    token_decimals0: int = Field(default=18, ge=0, le=36)
    token_decimals1: int = Field(default=6, ge=0, le=36)
    arb_contract_address: str = ""
    slippage_bps: int = Field(default=50, ge=0, le=10_000)

    # Advisory (optional, never required for a decision)
    openai_api_key: str = ""
    advisory_model: str = "gpt-3.5-turbo"
    advisory_base_url: str = ""
    advisory_timeout_sec: float = Field(default=8.0, gt=0)
    advisory_temperature: float = Field(default=0.3, ge=0, le=2.0)

    # Output
    ledger_path: str = ""
    log_level: str = "INFO"

    @property
    def is_live(self) -> bool:
        return self.execution_mode == "live"

    @property
    def pair_addresses(self) -> list[str]:
        return [a.strip() for a in self.venue_pairs.split(",") if a.strip()]

    @property
    def pair_names(self) -> list[str]:
        return [n.strip() for n in self.venue_names.split(",") if n.strip()]


def validate_config(cfg: Config) -> Config:
    """
    Cross-field checks pydantic cannot express per field.
    Raises ConfigurationError; callers treat it as fatal at startup.
    """
    if cfg.is_live and not cfg.private_key:
        raise ConfigurationError("PRIVATE_KEY required for live execution mode")
    if cfg.is_live and not cfg.arb_contract_address:
        raise ConfigurationError("ARB_CONTRACT_ADDRESS required for live execution mode")
    if cfg.is_live and len(cfg.pair_addresses) < 2:
        raise ConfigurationError("VENUE_PAIRS must list at least two pair addresses for live execution")
    names = cfg.pair_names
    if names and len(names) != len(cfg.pair_addresses):
        raise ConfigurationError(
            f"VENUE_NAMES has {len(names)} entries for {len(cfg.pair_addresses)} pair addresses"
        )
    return cfg


def load_config() -> Config:
    """Load and validate config from environment. Raises on invalid values."""
    return Config()
