"""
Configuration module for tiercache.

This module defines the CacheConfig class, the single configuration object
shared by the store, the state managers, the request cache and the
background tasks. Defaults reproduce the production deployment of the ERP
client (30 minute default TTL, 1000 entries, hourly cleanup, 30 second
snapshot interval).

Classes:
    CacheConfig: Global cache settings

Functions:
    now_ms: Wall clock in milliseconds since epoch (the default clock)

Example:
    Basic configuration:
        >>> from tiercache.core.config import CacheConfig
        >>> config = CacheConfig(max_entries=500, persistence_dir=Path(".cache"))
        >>> config.validate()

    Loading from a deployment file:
        >>> config = CacheConfig.from_toml("tiercache.toml")
"""

from __future__ import annotations

import time
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from ..utils.error_handling import ConfigurationError

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

Clock = Callable[[], float]


def now_ms() -> float:
    """Current wall-clock time in milliseconds since epoch."""
    return time.time() * 1000.0


@dataclass(slots=True)
class CacheConfig:
    # Entry store
    default_ttl_ms: float = 30 * MINUTE_MS
    max_entries: int = 1000
    max_bytes: int = 50 * 1024 * 1024  # 50MB

    # Page state
    page_state_ttl_ms: float = DAY_MS

    # Cleanup
    cleanup_enabled: bool = True
    cleanup_interval_s: float = 3600.0
    cleanup_max_age_ms: float = 7 * DAY_MS
    cleanup_max_entries: int = 10000

    # Auto-save
    auto_save_enabled: bool = True
    auto_save_interval_s: float = 30.0
    debounce_delay_s: float = 1.0
    max_retries: int = 3

    # Durable persistence; None keeps durable copies in memory only
    persistence_dir: Path | None = None

    # Visibility
    throttle_ms: float = 100.0
    prevent_auto_refresh: bool = True

    def validate(self) -> None:
        """Validate configuration and raise ConfigurationError on issues.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        if self.default_ttl_ms < 0:
            raise ConfigurationError(
                "Default TTL must be non-negative",
                context={"field": "default_ttl_ms", "value": self.default_ttl_ms},
            )

        if self.max_entries <= 0:
            raise ConfigurationError(
                "Maximum entry count must be positive",
                context={"field": "max_entries", "value": self.max_entries},
            )

        if self.max_bytes <= 0:
            raise ConfigurationError(
                "Byte budget must be positive",
                context={"field": "max_bytes", "value": self.max_bytes},
            )

        for name in ("cleanup_interval_s", "auto_save_interval_s"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(
                    "Intervals must be positive", context={"field": name, "value": value}
                )

        if self.debounce_delay_s < 0 or self.throttle_ms < 0:
            raise ConfigurationError(
                "Debounce and throttle delays must be non-negative",
                context={"debounce_delay_s": self.debounce_delay_s, "throttle_ms": self.throttle_ms},
            )

        if self.max_retries < 0:
            raise ConfigurationError(
                "Retry count must be non-negative",
                context={"field": "max_retries", "value": self.max_retries},
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> CacheConfig:
        """Build a config from a plain mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown cache settings: {', '.join(unknown)}", context={"unknown": unknown}
            )

        values = dict(data)
        if values.get("persistence_dir") is not None:
            values["persistence_dir"] = Path(values["persistence_dir"])

        config = cls(**values)
        config.validate()
        return config

    @classmethod
    def from_toml(cls, path: Path | str) -> CacheConfig:
        """Read the ``[cache]`` table of a TOML deployment file."""
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(
                f"Cannot read configuration file: {e}", context={"path": str(path)}
            ) from e
        return cls.from_mapping(data.get("cache", {}))
