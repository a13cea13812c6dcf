"""
Purchasing Configuration Schema.

Defines the structure and sensible defaults for kernel settings.  Values
can be overridden from a YAML file, a plain dict, or environment variables:

    config = PurchasingConfig.from_yaml("purchasing.yaml")
    config = PurchasingConfig.from_env(config)
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Self

import yaml

from purchasing_kernel.logging_config import get_logger

logger = get_logger("config")

# Environment variable -> field name
ENV_OVERRIDES: dict[str, str] = {
    "PURCHASING_DATABASE_URL": "database_url",
    "PURCHASING_LOG_LEVEL": "log_level",
    "PURCHASING_MAX_CONFLICT_RETRIES": "max_conflict_retries",
}


@dataclass(frozen=True)
class PurchasingConfig:
    """
    Configuration schema for the purchasing kernel.

    Field defaults suit a single-node development setup; production
    deployments override ``database_url`` with a PostgreSQL URL.
    """

    # Database
    database_url: str = "sqlite:///purchasing.db"
    echo_sql: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    sqlite_busy_timeout: float = 30.0

    # Order numbering
    order_number_prefix: str = "PO"
    order_number_width: int = 4

    # Conflict handling
    max_conflict_retries: int = 3
    retry_backoff_seconds: float = 0.05

    # Listing
    default_page_size: int = 50
    max_page_size: int = 200

    log_level: str = "INFO"

    def __post_init__(self):
        if not self.order_number_prefix:
            raise ValueError("order_number_prefix must be non-empty")
        if self.order_number_width < 1:
            raise ValueError(
                f"order_number_width must be >= 1, got {self.order_number_width}"
            )
        if self.max_conflict_retries < 0:
            raise ValueError(
                f"max_conflict_retries must be >= 0, got {self.max_conflict_retries}"
            )
        if self.retry_backoff_seconds < 0:
            raise ValueError(
                f"retry_backoff_seconds must be >= 0, got {self.retry_backoff_seconds}"
            )
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError(
                "default_page_size must be between 1 and max_page_size "
                f"({self.default_page_size} / {self.max_page_size})"
            )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with default values."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a dictionary (e.g. parsed YAML)."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown purchasing config keys: {unknown}")
        logger.info(
            "purchasing_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Load config from a YAML file.

        The file may hold the settings at top level or under a
        ``purchasing:`` key.
        """
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        if "purchasing" in raw:
            raw = raw["purchasing"] or {}
        return cls.from_dict(raw)

    @classmethod
    def from_env(cls, base: "PurchasingConfig | None" = None) -> Self:
        """Apply ``PURCHASING_*`` environment overrides on top of ``base``."""
        config = base or cls()
        overrides: dict[str, Any] = {}
        for env_name, field_name in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            if field_name == "max_conflict_retries":
                overrides[field_name] = int(value)
            else:
                overrides[field_name] = value
        if overrides:
            logger.info(
                "purchasing_config_env_overrides",
                extra={"fields": sorted(overrides)},
            )
            config = replace(config, **overrides)
        return config
