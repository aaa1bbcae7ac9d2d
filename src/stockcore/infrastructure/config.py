"""Runtime settings, read from ``STOCKCORE_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path
from typing import Mapping

from stockcore.domain.service.retry_policy import RetryPolicy

ENV_PREFIX = "STOCKCORE_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:

    data_dir: Path = Path("data")
    reservation_ttl_seconds: int = 600
    max_conflict_retries: int = 3
    backoff_base_ms: int = 10
    scan_interval_seconds: float = 30.0
    expiry_horizon_days: int = 3
    cache_staleness_ms: int = 1000
    processed_retention_days: int = 7
    log_level: str = "INFO"
    log_json: bool = False

    def __post_init__(self) -> None:
        if self.reservation_ttl_seconds <= 0:
            raise ValueError(f"{ENV_PREFIX}RESERVATION_TTL_SECONDS must be positive")
        if self.max_conflict_retries < 0:
            raise ValueError(f"{ENV_PREFIX}MAX_CONFLICT_RETRIES cannot be negative")
        if self.backoff_base_ms < 0:
            raise ValueError(f"{ENV_PREFIX}BACKOFF_BASE_MS cannot be negative")
        if self.scan_interval_seconds <= 0:
            raise ValueError(f"{ENV_PREFIX}SCAN_INTERVAL_SECONDS must be positive")
        if self.expiry_horizon_days < 0:
            raise ValueError(f"{ENV_PREFIX}EXPIRY_HORIZON_DAYS cannot be negative")
        if self.cache_staleness_ms < 0:
            raise ValueError(f"{ENV_PREFIX}CACHE_STALENESS_MS cannot be negative")
        if self.processed_retention_days <= 0:
            raise ValueError(f"{ENV_PREFIX}PROCESSED_RETENTION_DAYS must be positive")

    # --- Derived values -------------------------------------------------------

    @property
    def reservation_ttl(self) -> timedelta:
        return timedelta(seconds=self.reservation_ttl_seconds)

    @property
    def expiry_horizon(self) -> timedelta:
        return timedelta(days=self.expiry_horizon_days)

    @property
    def cache_staleness(self) -> float:
        return self.cache_staleness_ms / 1000

    @property
    def processed_retention(self) -> timedelta:
        return timedelta(days=self.processed_retention_days)

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_conflict_retries,
            base_delay=self.backoff_base_ms / 1000,
        )

    def with_overrides(self, **changes: object) -> Settings:
        """Copy with every non-None override applied (CLI options)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    # --- Factory --------------------------------------------------------------

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        defaults = Settings()

        def read(name: str, cast, default):
            raw = env.get(ENV_PREFIX + name)
            if raw is None:
                return default
            try:
                return cast(raw.strip())
            except ValueError as exc:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{name}: {raw!r}") from exc

        return Settings(
            data_dir=read("DATA_DIR", Path, defaults.data_dir),
            reservation_ttl_seconds=read(
                "RESERVATION_TTL_SECONDS", int, defaults.reservation_ttl_seconds
            ),
            max_conflict_retries=read("MAX_CONFLICT_RETRIES", int, defaults.max_conflict_retries),
            backoff_base_ms=read("BACKOFF_BASE_MS", int, defaults.backoff_base_ms),
            scan_interval_seconds=read(
                "SCAN_INTERVAL_SECONDS", float, defaults.scan_interval_seconds
            ),
            expiry_horizon_days=read("EXPIRY_HORIZON_DAYS", int, defaults.expiry_horizon_days),
            cache_staleness_ms=read("CACHE_STALENESS_MS", int, defaults.cache_staleness_ms),
            processed_retention_days=read(
                "PROCESSED_RETENTION_DAYS", int, defaults.processed_retention_days
            ),
            log_level=read("LOG_LEVEL", str.upper, defaults.log_level),
            log_json=read("LOG_JSON", _parse_bool, defaults.log_json),
        )


def _parse_bool(raw: str) -> bool:
    value = raw.lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(raw)
