"""Typed configuration — single source of truth for all exporter runtime settings.

Loading priority (highest to lowest):
  1. Explicit init kwargs (programmatic overrides, tests)
  2. Environment variables: ECOBEE_EXPORTER_<SECTION>__<KEY>  (double-underscore separator)
  3. Config file: ECOBEE_EXPORTER_CONFIG_FILE env var, or conf/settings.toml at project root
  4. Model field defaults

Example env overrides:
  ECOBEE_EXPORTER_ECOBEE__APP_KEY=abc123
  ECOBEE_EXPORTER_EXPORTER__METRIC_PREFIX=house
  ECOBEE_EXPORTER_LOGGING__LEVEL=DEBUG
"""

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# Derive project root from this file's location: src/ecobee_exporter/config.py → ../../..
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_DEFAULT_CONFIG = _PROJECT_ROOT / "conf" / "settings.toml"

_METRIC_PREFIX_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")


def _config_file() -> Path:
    """Resolve the config file path.

    Returns ECOBEE_EXPORTER_CONFIG_FILE if set (raises FileNotFoundError if
    missing), otherwise returns the bundled default at conf/settings.toml.
    """
    if env_val := os.environ.get("ECOBEE_EXPORTER_CONFIG_FILE"):
        p = Path(env_val)
        if not p.is_file():
            raise FileNotFoundError(f"ECOBEE_EXPORTER_CONFIG_FILE not found: {p}")
        return p
    return _DEFAULT_CONFIG


# ---------------------------------------------------------------------------
# Section models — each maps to a [section] in conf/settings.toml
# ---------------------------------------------------------------------------


class EcobeeSettings(BaseModel):
    """Credentials and transport options for the ecobee cloud API."""

    # The application key issued by the ecobee developer portal (OAuth client_id).
    app_key: str = ""
    # Seeds the token cache on first start; afterwards the cache holds the rotated token.
    refresh_token: str | None = None
    token_cache: Path = Path.home() / ".config" / "ecobee-exporter" / "tokens.json"
    api_base_url: str = "https://api.ecobee.com"
    timeout_seconds: float = 30.0

    @field_validator("timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {v}")
        return v

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class ExporterSettings(BaseModel):
    """Metric naming and the HTTP endpoint Prometheus scrapes."""

    # Prometheus metric names must be unique per registry: one prefix per collector.
    metric_prefix: str = "ecobee"
    listen_address: str = "0.0.0.0"
    port: int = 9098
    telemetry_path: str = "/metrics"

    @field_validator("metric_prefix")
    @classmethod
    def _valid_prefix(cls, v: str) -> str:
        if not _METRIC_PREFIX_RE.match(v):
            raise ValueError(f"metric_prefix must be a valid Prometheus metric name, got {v!r}")
        return v

    @field_validator("telemetry_path")
    @classmethod
    def _absolute_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"telemetry_path must start with '/', got {v!r}")
        return v


class LoggingSettings(BaseModel):
    """Logging verbosity and output format."""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"

    @field_validator("level", mode="before")
    @classmethod
    def _normalise_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"level must be one of {sorted(valid)}, got {v!r}")
        return v.upper()


# ---------------------------------------------------------------------------
# Root settings class
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """All exporter runtime settings, fully resolved and validated."""

    ecobee: EcobeeSettings = EcobeeSettings()
    exporter: ExporterSettings = ExporterSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = SettingsConfigDict(
        env_prefix="ECOBEE_EXPORTER_",
        env_nested_delimiter="__",  # ECOBEE_EXPORTER_ECOBEE__APP_KEY → ecobee.app_key
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # TOML + env only; credentials come from the environment or the config file.
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=_config_file()),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide Settings instance (loaded once, cached thereafter).

    Tests should call ``get_settings.cache_clear()`` before each test that
    patches environment variables or the config file.
    """
    return Settings()
