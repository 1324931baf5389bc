"""
Configuration for the Raydium swap pipeline.

All settings are loaded from environment variables (or a ``.env`` file) with
Pydantic v2 BaseSettings validation.

Usage:
    from raydium_swap.config import get_settings
    settings = get_settings()
    swap_config = settings.swap.to_swap_config()
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import (
    DynamicComputeLimit,
    DynamicMultiplier,
    FixedComputeLimit,
    FixedCuPrice,
    JitoTip,
    SwapConfig,
)


# =============================================================================
# ENUMS
# =============================================================================

class LogLevel(str, Enum):
    """Logging level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class PriorityFeeMode(str, Enum):
    NONE = "none"
    FIXED_CU_PRICE = "fixed_cu_price"
    DYNAMIC_MULTIPLIER = "dynamic_multiplier"
    JITO_TIP = "jito_tip"


class ComputeLimitMode(str, Enum):
    NONE = "none"
    DYNAMIC = "dynamic"
    FIXED = "fixed"


# =============================================================================
# BASE CONFIGURATION
# =============================================================================

class BaseConfig(BaseSettings):
    """Base configuration with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


# =============================================================================
# SOLANA RPC CONFIGURATION
# =============================================================================

class SolanaRPCSettings(BaseConfig):
    """Solana RPC connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SOLANA_",
        env_file=".env",
        extra="ignore",
    )

    rpc_url: AnyHttpUrl = Field(
        default="https://api.mainnet-beta.solana.com",
        description="RPC endpoint used for account reads and simulation",
    )

    commitment: str = Field(
        default="confirmed",
        pattern="^(processed|confirmed|finalized)$",
        description="Commitment level for simulation",
    )

    timeout: int = Field(
        default=30,
        ge=5,
        le=120,
        description="RPC request timeout in seconds",
    )


# =============================================================================
# RAYDIUM API CONFIGURATION
# =============================================================================

class RaydiumApiSettings(BaseConfig):
    """Raydium API v3 configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RAYDIUM_API_",
        env_file=".env",
        extra="ignore",
    )

    base_url: AnyHttpUrl = Field(
        default="https://api-v3.raydium.io",
        description="Raydium API v3 base URL",
    )

    timeout: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="API request timeout in seconds",
    )

    market_keys_by_api: bool = Field(
        default=False,
        description="Fetch OpenBook market keys from the API instead of decoding the market account",
    )


# =============================================================================
# SWAP CONFIGURATION
# =============================================================================

class SwapSettings(BaseConfig):
    """Default swap behaviour; per-call overrides win over these."""

    model_config = SettingsConfigDict(
        env_prefix="SWAP_",
        env_file=".env",
        extra="ignore",
    )

    slippage_bps: int = Field(
        default=50,
        ge=0,
        le=10000,
        description="Default slippage tolerance in basis points",
    )

    priority_fee_mode: PriorityFeeMode = Field(
        default=PriorityFeeMode.NONE,
        description="How the priority fee is paid",
    )

    priority_fee_value: Optional[int] = Field(
        default=None,
        ge=0,
        description="cu-price in micro-lamports, multiplier, or tip in lamports depending on mode",
    )

    compute_limit_mode: ComputeLimitMode = Field(
        default=ComputeLimitMode.NONE,
        description="How the compute unit limit is set",
    )

    compute_limit_value: Optional[int] = Field(
        default=None,
        ge=0,
        le=2**32 - 1,
        description="Fixed compute unit limit",
    )

    compute_unit_margin: int = Field(
        default=50_000,
        ge=0,
        le=1_400_000,
        description="Units added on top of simulated consumption",
    )

    wrap_and_unwrap_sol: Optional[bool] = Field(
        default=None,
        description="Wrap SOL input and unwrap SOL output (unset means yes)",
    )

    as_legacy_transaction: Optional[bool] = Field(
        default=None,
        description="Assemble legacy messages instead of v0 (unset means legacy)",
    )

    @model_validator(mode="after")
    def validate_mode_values(self) -> "SwapSettings":
        if self.priority_fee_mode != PriorityFeeMode.NONE and self.priority_fee_value is None:
            raise ValueError(f"priority_fee_value required when priority_fee_mode is {self.priority_fee_mode.value}")
        if self.compute_limit_mode == ComputeLimitMode.FIXED and self.compute_limit_value is None:
            raise ValueError("compute_limit_value required when compute_limit_mode is fixed")
        return self

    def to_swap_config(self) -> SwapConfig:
        priority_fee: Any = None
        if self.priority_fee_mode == PriorityFeeMode.FIXED_CU_PRICE:
            priority_fee = FixedCuPrice(self.priority_fee_value)
        elif self.priority_fee_mode == PriorityFeeMode.DYNAMIC_MULTIPLIER:
            priority_fee = DynamicMultiplier(self.priority_fee_value)
        elif self.priority_fee_mode == PriorityFeeMode.JITO_TIP:
            priority_fee = JitoTip(self.priority_fee_value)

        compute_limit: Any = None
        if self.compute_limit_mode == ComputeLimitMode.DYNAMIC:
            compute_limit = DynamicComputeLimit()
        elif self.compute_limit_mode == ComputeLimitMode.FIXED:
            compute_limit = FixedComputeLimit(self.compute_limit_value)

        return SwapConfig(
            priority_fee=priority_fee,
            compute_limit=compute_limit,
            wrap_and_unwrap_sol=self.wrap_and_unwrap_sol,
            as_legacy_transaction=self.as_legacy_transaction,
        )


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

class LoggingSettings(BaseConfig):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )

    format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        description="Log message format",
    )

    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log date format",
    )

    file_enabled: bool = Field(
        default=False,
        description="Enable file logging",
    )

    file_path: Path = Field(
        default=Path("logs/raydium_swap.log"),
        description="Log file path",
    )

    file_max_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        ge=1024,
        description="Max log file size in bytes",
    )

    file_backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of backup log files",
    )


# =============================================================================
# ROOT SETTINGS
# =============================================================================

class Settings(BaseConfig):
    """
    Main settings aggregating all configuration sections.

    Usage:
        settings = get_settings()
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    solana: SolanaRPCSettings = Field(default_factory=SolanaRPCSettings)
    raydium_api: RaydiumApiSettings = Field(default_factory=RaydiumApiSettings)
    swap: SwapSettings = Field(default_factory=SwapSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Clear settings cache and reload from environment."""
    get_settings.cache_clear()
    return get_settings()
