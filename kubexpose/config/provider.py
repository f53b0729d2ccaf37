"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import Field, dataclass, fields, replace
from typing import Any, Dict, Optional, Protocol

import yaml

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ControllerConfig:
    """Controller configuration."""
    kubeconfig: Optional[str] = None
    namespace: Optional[str] = None
    workers: int = 1
    watch_timeout: int = 600
    cache_sync_timeout: float = 60.0
    request_timeout: float = 30.0
    ingress_class_name: Optional[str] = None
    log_level: str = "INFO"

    def validate(self) -> None:
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if self.watch_timeout < 1:
            raise ValueError("watch_timeout must be >= 1")
        if self.cache_sync_timeout <= 0:
            raise ValueError("cache_sync_timeout must be > 0")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")


@dataclass
class QueueConfig:
    """Retry backoff configuration."""
    base_delay: float = 0.005
    max_delay: float = 1000.0
    qps: float = 10.0
    burst: int = 100

    def validate(self) -> None:
        if self.base_delay <= 0 or self.max_delay < self.base_delay:
            raise ValueError("queue delays require 0 < base_delay <= max_delay")
        if self.qps <= 0 or self.burst < 1:
            raise ValueError("queue rate requires qps > 0 and burst >= 1")


@dataclass
class HealthConfig:
    """Probe endpoint configuration."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8081

    def validate(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError("health port must be between 1 and 65535")


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_controller_config(self) -> ControllerConfig:
        """Get controller configuration."""
        ...

    def get_queue_config(self) -> QueueConfig:
        """Get queue configuration."""
        ...

    def get_health_config(self) -> HealthConfig:
        """Get health endpoint configuration."""
        ...


def _optional(value: Optional[str]) -> Optional[str]:
    return value or None


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_controller_config(self) -> ControllerConfig:
        """Get controller configuration from environment variables."""
        config = ControllerConfig(
            kubeconfig=_optional(os.getenv("KUBECONFIG")),
            namespace=_optional(os.getenv("WATCH_NAMESPACE")),
            workers=int(os.getenv("WORKERS", "1")),
            watch_timeout=int(os.getenv("WATCH_TIMEOUT", "600")),
            cache_sync_timeout=float(os.getenv("CACHE_SYNC_TIMEOUT", "60")),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),
            ingress_class_name=_optional(os.getenv("INGRESS_CLASS_NAME")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
        config.validate()
        return config

    def get_queue_config(self) -> QueueConfig:
        """Get queue configuration from environment variables."""
        config = QueueConfig(
            base_delay=float(os.getenv("QUEUE_BASE_DELAY", "0.005")),
            max_delay=float(os.getenv("QUEUE_MAX_DELAY", "1000")),
            qps=float(os.getenv("QUEUE_QPS", "10")),
            burst=int(os.getenv("QUEUE_BURST", "100")),
        )
        config.validate()
        return config

    def get_health_config(self) -> HealthConfig:
        """Get health endpoint configuration from environment variables."""
        config = HealthConfig(
            enabled=os.getenv("HEALTH_ENABLED", "true").lower() == "true",
            host=os.getenv("HEALTH_HOST", "0.0.0.0"),
            port=int(os.getenv("HEALTH_PORT", "8081")),
        )
        config.validate()
        return config


class YamlConfigProvider:
    """
    File-based configuration provider.

    The file holds up to three sections, each optional:

        controller: {namespace: web, workers: 4}
        queue: {base_delay: 0.01}
        health: {port: 9090}

    Keys missing from the file fall back to the environment provider.
    """

    def __init__(self, path: str, fallback: Optional[ConfigProvider] = None):
        self.path = path
        self.fallback = fallback or EnvConfigProvider()

        with open(path, "r") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"{path}: invalid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        self._data: Dict[str, Any] = data

    def _coerce(self, section: str, field: Field, value: Any) -> Any:
        """Check a file value against the type of the field's default."""
        if field.default is None:
            expected = str
            if value is None:
                return None
        else:
            expected = type(field.default)

        # bool is an int subclass; only accept it where a bool is expected
        if isinstance(value, bool) and expected is not bool:
            raise ValueError(f"{self.path}: '{section}.{field.name}' must be {expected.__name__}")
        if expected is float and isinstance(value, int):
            return float(value)
        if not isinstance(value, expected):
            raise ValueError(
                f"{self.path}: '{section}.{field.name}' must be {expected.__name__}, "
                f"got {type(value).__name__}"
            )
        return value

    def _section(self, name: str, base):
        section = self._data.get(name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"{self.path}: section '{name}' must be a mapping")

        known = {f.name: f for f in fields(base)}
        unknown = set(section) - set(known)
        if unknown:
            raise ValueError(f"{self.path}: unknown keys in '{name}': {', '.join(sorted(unknown))}")

        values = {key: self._coerce(name, known[key], value) for key, value in section.items()}
        config = replace(base, **values)
        config.validate()
        return config

    def get_controller_config(self) -> ControllerConfig:
        return self._section("controller", self.fallback.get_controller_config())

    def get_queue_config(self) -> QueueConfig:
        return self._section("queue", self.fallback.get_queue_config())

    def get_health_config(self) -> HealthConfig:
        return self._section("health", self.fallback.get_health_config())


def get_config_provider() -> ConfigProvider:
    """Pick the file provider when CONFIG_FILE is set, the environment otherwise."""
    path = os.getenv("CONFIG_FILE")
    if path:
        return YamlConfigProvider(path)
    return EnvConfigProvider()
