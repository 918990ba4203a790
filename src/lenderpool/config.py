"""
Pool Configuration

Settings for a lender pool, loadable from YAML (``lenderpool.yaml``).
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from lenderpool.constants import (
    DEFAULT_CHAIN_MAX_HOPS,
    DEFAULT_CUSTODY_ACCOUNT,
    DEFAULT_PRINCIPAL_DECIMALS,
)
from lenderpool.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "lenderpool.yaml"


class PoolConfig(BaseModel):
    """Configuration for a :class:`~lenderpool.pool.PoolLedger`."""

    custody_account: str = Field(
        default=DEFAULT_CUSTODY_ACCOUNT, description="Account holding custodied principal"
    )
    principal_asset: str = Field(default="USDT", description="Symbol of the principal asset")
    principal_decimals: int = Field(default=DEFAULT_PRINCIPAL_DECIMALS, ge=0, le=36)
    chain_max_hops: int = Field(
        default=DEFAULT_CHAIN_MAX_HOPS, ge=1, description="Max predecessor links walked"
    )
    invest_deposits: bool = Field(
        default=True, description="Invest new principal in the yield strategy, if any"
    )

    @field_validator("custody_account", "principal_asset")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ConfigError("custody_account and principal_asset must not be empty")
        return v


def load_config(path: Path) -> PoolConfig:
    """Load a pool configuration from a YAML file.

    Args:
        path: Path to the config file or a directory containing one.

    Returns:
        Parsed PoolConfig.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path.is_dir():
        path = path / CONFIG_FILENAME
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        config = PoolConfig(**data.get("pool", data))
    except ConfigError:
        raise
    except Exception as exc:
        raise ConfigError(f"Failed to load config: {exc}") from exc
    logger.debug("Loaded pool config from %s", path)
    return config


def save_config(config: PoolConfig, path: Path) -> Path:
    """Write ``config`` as YAML under a top-level ``pool`` key."""
    if path.is_dir():
        path = path / CONFIG_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump({"pool": config.model_dump(mode="json")}, f, default_flow_style=False, sort_keys=True)
    logger.info("Saved pool config to %s", path)
    return path
