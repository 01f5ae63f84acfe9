"""Pydantic schema for configuration validation.

All config values are validated at startup. Typos and invalid values
fail fast with clear error messages.

Usage:
    from src.config_schema import load_validated_config, AppConfig
    config = load_validated_config("config/config.yaml")
    # config is now a validated AppConfig instance
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .registry.constants import MAX_BASIS_POINTS
from .registry.models import is_valid_account_id


# =============================================================================
# BASE MODEL WITH STRICT VALIDATION
# =============================================================================

class StrictModel(BaseModel):
    """Base model that rejects unknown fields (catches typos)."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# REGISTRY MODELS
# =============================================================================

class ContractMetadataConfig(StrictModel):
    """Registry-level descriptive metadata returned by nft_metadata()."""

    spec: str = Field(default="nft-1.0.0", description="Metadata standard version")
    name: str = Field(default="Token Registry", description="Human-readable registry name")
    symbol: str = Field(default="TKN", description="Short ticker-like symbol")
    icon: str | None = None
    base_uri: str | None = None
    reference: str | None = None
    reference_hash: str | None = None


class RoyaltyBackfillConfig(StrictModel):
    """Opt-in legacy royalty repair, run when a given type label is declared.

    Disabled by default. When enabled, declaring `trigger_type` adds
    `basis_points` for `account_id` to every registered token's royalty table.
    """

    enabled: bool = False
    trigger_type: str = Field(default="", description="Type label that triggers the backfill")
    account_id: str = Field(default="", description="Account receiving the backfilled royalty")
    basis_points: int = Field(default=0, ge=0, le=MAX_BASIS_POINTS)

    @model_validator(mode="after")
    def _check_enabled_fields(self) -> "RoyaltyBackfillConfig":
        if self.enabled:
            if not self.trigger_type:
                raise ValueError("royalty_backfill.trigger_type is required when enabled")
            if not is_valid_account_id(self.account_id):
                raise ValueError(
                    f"royalty_backfill.account_id '{self.account_id}' is not a valid account id"
                )
        return self


class RegistryConfig(StrictModel):
    """Token registry configuration."""

    owner_id: str = Field(
        default="registry.near",
        description="Account allowed to run administrative operations",
    )
    unlocked: bool | None = Field(
        default=None,
        description="If unset, every initially declared type starts locked",
    )
    supply_cap_by_type: dict[str, int] = Field(
        default_factory=dict,
        description="Initial type declarations: type label -> supply cap",
    )
    use_storage_fees: bool = Field(
        default=True,
        description="When false, accounts get free_mints free creations",
    )
    free_mints: int = Field(default=0, ge=0, description="Free creations per account")
    max_royalty_entries: int = Field(
        default=10,
        gt=0,
        description="Maximum accounts in one token's royalty table",
    )
    royalty_backfill: RoyaltyBackfillConfig = Field(default_factory=RoyaltyBackfillConfig)
    metadata: ContractMetadataConfig = Field(default_factory=ContractMetadataConfig)

    @field_validator("owner_id")
    @classmethod
    def _owner_is_account(cls, v: str) -> str:
        if not is_valid_account_id(v):
            raise ValueError(f"owner_id '{v}' is not a valid account id")
        return v

    @field_validator("supply_cap_by_type")
    @classmethod
    def _caps_non_negative(cls, v: dict[str, int]) -> dict[str, int]:
        for token_type, cap in v.items():
            if cap < 0:
                raise ValueError(f"supply cap for '{token_type}' must be >= 0, got {cap}")
        return v


# =============================================================================
# STORAGE MODEL
# =============================================================================

class StorageConfig(StrictModel):
    """Key-value storage backend configuration."""

    backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Storage backend for registry state",
    )
    path: str = Field(
        default="registry.db",
        description="SQLite database file (sqlite backend only)",
    )
    entry_overhead_bytes: int = Field(
        default=40,
        ge=0,
        description="Fixed bytes charged per stored record on top of key and value",
    )
    retry_max: int = Field(
        default=5,
        ge=1,
        description="Max attempts on 'database is locked' errors",
    )
    retry_base: float = Field(
        default=0.1,
        gt=0,
        description="Base backoff delay in seconds",
    )
    retry_max_delay: float = Field(
        default=5.0,
        gt=0,
        description="Backoff delay cap in seconds",
    )


# =============================================================================
# PAGINATION MODEL
# =============================================================================

class PaginationConfig(StrictModel):
    """Enumeration settings."""

    chunk_size: int = Field(
        default=100,
        gt=0,
        description="Page size used by full-collection iteration",
    )


# =============================================================================
# LOGGING MODEL
# =============================================================================

class LoggingConfig(StrictModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Level for the standard library logger",
    )
    events_enabled: bool = Field(
        default=False,
        description="Write registry events to a JSONL file",
    )
    events_file: str = Field(
        default="registry_events.jsonl",
        description="JSONL file for registry events",
    )


# =============================================================================
# ROOT CONFIG MODEL
# =============================================================================

class AppConfig(StrictModel):
    """Root configuration model.

    All fields have sensible defaults, so an empty config file is valid.
    """

    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# LOADING FUNCTIONS
# =============================================================================

def load_validated_config(config_path: str | Path = "config/config.yaml") -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to config YAML file.

    Returns:
        Validated AppConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        pydantic.ValidationError: If config is invalid (with detailed error message).
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw_config = yaml.safe_load(f) or {}

    return AppConfig.model_validate(raw_config)


def validate_config_dict(config_dict: dict[str, Any]) -> AppConfig:
    """Validate a configuration dictionary.

    Args:
        config_dict: Configuration as a dictionary.

    Returns:
        Validated AppConfig instance.

    Raises:
        pydantic.ValidationError: If config is invalid.
    """
    return AppConfig.model_validate(config_dict)


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "AppConfig",
    "RegistryConfig",
    "ContractMetadataConfig",
    "RoyaltyBackfillConfig",
    "StorageConfig",
    "PaginationConfig",
    "LoggingConfig",
    "load_validated_config",
    "validate_config_dict",
]
