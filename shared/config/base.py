"""Environment-backed settings shared by causal search processes."""

import threading
from enum import Enum
from typing import Any, ClassVar, TypeVar

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ConfigT = TypeVar("ConfigT", bound="BaseConfiguration")

REDACTED = "***REDACTED***"


class Environment(str, Enum):
    """Deployment environment a search process runs in."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class BaseConfiguration(BaseSettings):
    """Settings read from process environment variables and an optional ``.env``.

    Subclasses add their own fields and extend ``validate_configuration`` with
    soft checks. Hard constraints belong in field validators so that bad
    values fail at construction.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Field name fragments whose values never leave the process in clear text
    sensitive_markers: ClassVar[tuple[str, ...]] = ("password", "token", "secret")

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment of the running process",
    )
    version: str = Field(default="1.0.0", description="Settings schema version")

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    def is_sensitive(self, field_name: str) -> bool:
        lowered = field_name.lower()
        return any(marker in lowered for marker in self.sensitive_markers)

    def to_dict(self, exclude_sensitive: bool = True) -> dict[str, Any]:
        """Dump settings as plain values, masking sensitive fields by default."""
        data = self.model_dump(mode="json")
        if not exclude_sensitive:
            return data
        return {
            name: REDACTED if self.is_sensitive(name) else value
            for name, value in data.items()
        }

    def validate_configuration(self) -> list[str]:
        """Return human-readable problems with otherwise valid settings."""
        return []


class ConfigurationManager:
    """Thread-safe registry of named settings objects."""

    def __init__(self):
        self._configurations: dict[str, BaseConfiguration] = {}
        self._lock = threading.Lock()

    def register_configuration(self, name: str, config: BaseConfiguration) -> None:
        with self._lock:
            self._configurations[name] = config

    def get_configuration(self, name: str) -> BaseConfiguration | None:
        with self._lock:
            return self._configurations.get(name)

    def unregister_configuration(self, name: str) -> BaseConfiguration | None:
        with self._lock:
            return self._configurations.pop(name, None)

    def get_or_create(self, name: str, config_cls: type[ConfigT]) -> ConfigT:
        """Return the settings registered under ``name``, loading them on first use."""
        with self._lock:
            config = self._configurations.get(name)
            if config is None:
                config = config_cls()
                self._configurations[name] = config
        if not isinstance(config, config_cls):
            raise TypeError(
                f"Configuration {name!r} is {type(config).__name__}, "
                f"expected {config_cls.__name__}"
            )
        return config

    def get_all_configurations(self) -> dict[str, dict[str, Any]]:
        """Redacted snapshot of every registered configuration."""
        with self._lock:
            items = list(self._configurations.items())
        return {name: config.to_dict() for name, config in items}

    def validate_all_configurations(self) -> dict[str, list[str]]:
        """Map each configuration with problems to its list of issues."""
        with self._lock:
            items = list(self._configurations.items())
        results = {}
        for name, config in items:
            issues = config.validate_configuration()
            if issues:
                results[name] = issues
        return results


config_manager = ConfigurationManager()
