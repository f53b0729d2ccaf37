"""
Config - Black Box Interface

Purpose: Typed controller settings from the environment or a YAML file
Interface: get_config_provider(), ConfigProvider
Hidden: Variable names, parsing and validation rules
"""

from .provider import (
    ConfigProvider,
    ControllerConfig,
    EnvConfigProvider,
    HealthConfig,
    QueueConfig,
    YamlConfigProvider,
    get_config_provider,
)

__all__ = [
    "ConfigProvider",
    "ControllerConfig",
    "EnvConfigProvider",
    "HealthConfig",
    "QueueConfig",
    "YamlConfigProvider",
    "get_config_provider",
]
