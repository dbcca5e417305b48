"""TOML config loading and profiles."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir(config_dir: Path | None = None) -> Path:
    if config_dir is not None:
        return config_dir
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    config_dir = _find_config_dir(config_dir)
    default_path = config_dir / "default.toml"
    if not default_path.exists():
        return {}
    base = _load_toml(default_path)
    if profile:
        profile_path = config_dir / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    """Return Settings instance from merged config."""
    raw = load_config(profile, config_dir)
    return Settings.from_dict(raw)


class Settings:
    """Application settings from TOML config."""

    def __init__(
        self,
        *,
        fetch: dict[str, Any] | None = None,
        scan: dict[str, Any] | None = None,
        polymarket: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.fetch = fetch or {}
        self.scan = scan or {}
        self.polymarket = polymarket or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            fetch=raw.get("fetch"),
            scan=raw.get("scan"),
            polymarket=raw.get("polymarket"),
            logging=raw.get("logging"),
        )

    # Convenience accessors with defaults
    @property
    def base_interval_sec(self) -> float:
        return float(self.fetch.get("base_interval_sec", 1.5))

    @property
    def jitter_sec(self) -> float:
        return float(self.fetch.get("jitter_sec", 1.0))

    @property
    def max_retries(self) -> int:
        return int(self.fetch.get("max_retries", 4))

    @property
    def backoff_base_sec(self) -> float:
        return float(self.fetch.get("backoff_base_sec", 3.0))

    @property
    def retry_jitter_sec(self) -> float:
        return min(1.0, float(self.fetch.get("retry_jitter_sec", 1.0)))

    @property
    def timeout_sec(self) -> float:
        return float(self.fetch.get("timeout_sec", 30.0))

    @property
    def proxy_url(self) -> str | None:
        """Configured proxy, else HTTP_PROXY from the environment. "none" disables."""
        value = self.fetch.get("proxy_url") or os.environ.get("HTTP_PROXY", "")
        if not value or value.lower() == "none":
            return None
        return value

    @property
    def concurrency(self) -> int:
        return max(1, int(self.scan.get("concurrency", 5)))

    @property
    def arbitrage_threshold(self) -> float:
        return float(self.scan.get("arbitrage_threshold", 0.001))

    @property
    def insider_timeout_sec(self) -> float:
        return float(self.scan.get("insider_timeout_sec", 5.0))

    @property
    def gamma_api_base(self) -> str:
        return self.polymarket.get("gamma_api_base", "https://gamma-api.polymarket.com")

    @property
    def clob_api_base(self) -> str:
        return self.polymarket.get("clob_api_base", "https://clob.polymarket.com")

    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)


def configure_logging(settings: Settings) -> None:
    """Configure structlog with settings. Call once at application entry."""
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
