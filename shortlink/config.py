"""Configuration management for the shortlink service.

This module loads the static service configuration once at startup using
Pydantic BaseSettings with a YAML file source and environment variable
overrides.

Flow Diagram — load_settings()
==============================
::
    ┌─────────────┐
    │  Call load_ │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ init kwargs │
    │ (tests/CLI) │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ SHORTLINK_* │
    │ environment │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ config.yaml │
    │ (YAML file) │
    └──────┬──────┘
    VALID?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Raise   │  │ Return  │
│ Config  │  │ Settings│
│ Error   │  │         │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Write config.yaml**::
    base:
      website: "http://s.example.com"
      port: 8080
      length: 6
      cacheTime: 10
    redis:
      addr: "127.0.0.1"
      port: 6379
      pwd: ""

**Step 2 — Load settings**::
    from shortlink.config import load_settings
    settings = load_settings()

**Step 3 — Access values**::
    print(settings.base.website)
    print(settings.cache_ttl_seconds)

Key Behaviours
===============
- Precedence: explicit kwargs, then ``SHORTLINK_<SECTION>__<FIELD>`` env vars,
  then the YAML file.
- The YAML path defaults to ``config.yaml`` in the working directory and can be
  changed with ``SHORTLINK_CONFIG_FILE``.
- Every field of the ``base`` and ``redis`` sections without a default is
  required; missing or malformed values raise ConfigError.

Classes:
    BaseSection:  Public website, listen port, code length, cache TTL.
    RedisSection:  Durable store connection parameters.
    LogSection:  Logging level.
    Settings:  Root settings model.
"""

__all__ = [
    "CONFIG_FILE_ENV",
    "DEFAULT_CONFIG_FILE",
    "BaseSection",
    "LogSection",
    "RedisSection",
    "Settings",
    "get_settings",
    "load_settings",
]

import os
from contextvars import ContextVar
from functools import lru_cache

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from shortlink.exceptions import ConfigError

CONFIG_FILE_ENV = "SHORTLINK_CONFIG_FILE"
DEFAULT_CONFIG_FILE = "config.yaml"

# Path passed to load_settings(), seen by the YAML source of that call only.
_config_file: ContextVar[str | None] = ContextVar("shortlink_config_file", default=None)


class BaseSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Public base of short URLs and host of the fallback redirect, without trailing "/".
    website: str = Field(..., min_length=1)
    port: int = Field(..., gt=0, lt=65536)
    length: int = Field(..., gt=0, le=64)
    cache_time: int = Field(..., alias="cacheTime", gt=0, description="Local cache TTL in minutes")
    host: str = "0.0.0.0"
    drain_timeout: float = Field(5.0, alias="drainTimeout", ge=0)


class RedisSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    addr: str = Field(..., min_length=1)
    port: int = Field(..., gt=0, lt=65536)
    pwd: str
    db: int = Field(0, ge=0)
    prefix: str = "short"
    socket_timeout: float | None = Field(None, alias="socketTimeout", gt=0)


class LogSection(BaseModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level {v!r}")
        return level


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SHORTLINK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    base: BaseSection
    redis: RedisSection
    log: LogSection = LogSection()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        yaml_file = _resolve_config_file()
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
        )

    @property
    def cache_ttl_seconds(self) -> float:
        return float(self.base.cache_time * 60)

    @property
    def store_address(self) -> str:
        return f"{self.redis.addr}:{self.redis.port}"


def load_settings(config_file: str | None = None) -> Settings:
    """Load and validate the service configuration.

    Args:
        config_file: Optional YAML path; overrides ``SHORTLINK_CONFIG_FILE``.

    Returns:
        Settings: Validated configuration.

    Raises:
        ConfigError: If a required field is missing or a value cannot be parsed.
    """
    token = _config_file.set(config_file)
    try:
        return Settings()
    except (ValidationError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid configuration in {_resolve_config_file()}: {exc}") from exc
    finally:
        _config_file.reset(token)


def _resolve_config_file() -> str:
    return _config_file.get() or os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
