"""Configuration for the gateway, loaded from YAML with environment overrides.

Environment variables use the ``GATEWAY_`` prefix and ``__`` between levels,
e.g. ``GATEWAY_DREMIO__PASSWORD`` or ``GATEWAY_SMILE__URL``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .dispatcher import FailurePolicy
from .exceptions import ConfigurationError
from .retry import RetryPolicy


class _Section(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DremioSettings(_Section):
    """Dremio connection and table layout."""

    host: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    object_store: str = Field(alias="objectstore", min_length=1)
    request_table: str = Field(alias="requesttable", min_length=1)
    sample_table: str = Field(alias="sampletable", min_length=1)
    port: int = 32010
    tls: bool = False
    routing_tag: str | None = None
    routing_queue: str | None = None
    barcode_column: str | None = None


class SmileSettings(_Section):
    """SMILE (NATS JetStream) connection and subject filters."""

    url: str = Field(min_length=1)
    cert_path: str = Field(alias="certpath", min_length=1)
    key_path: str = Field(alias="keypath", min_length=1)
    consumer: str = Field(min_length=1)
    password: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    new_request_filter: str = Field(alias="newrequestfilter", min_length=1)
    update_request_filter: str = Field(alias="updaterequestfilter", min_length=1)
    update_sample_filter: str = Field(alias="updatesamplefilter", min_length=1)

    @field_validator("cert_path", "key_path")
    @classmethod
    def _expand_env(cls, value: str) -> str:
        return os.path.expandvars(value)


class DispatcherSettings(_Section):
    max_concurrency: int = Field(default=32, ge=1)
    failure_policy: FailurePolicy = FailurePolicy.ACK
    max_deliveries: int = Field(default=5, ge=1)
    retry_attempts: int = Field(default=1, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_attempts,
            base_delay=self.retry_base_delay,
            max_delay=max(60.0, self.retry_base_delay),
        )


class LoggingSettings(_Section):
    level: str = "INFO"
    metrics_port: int | None = None

    @field_validator("level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()


class GatewaySettings(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    dremio: DremioSettings
    smile: SmileSettings
    dispatcher: DispatcherSettings = Field(default_factory=DispatcherSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # environment wins over the file
        return env_settings, init_settings

    @classmethod
    def from_yaml(cls, path: Path) -> GatewaySettings:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} does not contain a mapping")
        return cls(**data)


def _describe(error: dict[str, Any]) -> str:
    name = ".".join(str(part) for part in error["loc"])
    if error["type"] in ("missing", "string_too_short"):
        return f"Missing {name} property"
    return f"Invalid {name} property: {error['msg']}"


def load_settings(path: str | Path) -> GatewaySettings:
    """Read and validate the configuration file at *path*.

    Raises:
        ConfigurationError: If the file cannot be read or parsed, or a
            required property is missing, empty or invalid. The message names
            the first offending property, e.g. ``Missing dremio.host property``.
    """
    path = Path(path)
    try:
        return GatewaySettings.from_yaml(path)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse config file {path}: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(_describe(e.errors()[0])) from e
