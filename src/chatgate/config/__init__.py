"""Configuration module for chatgate."""

from chatgate.config.loader import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigStore,
    EnvVarNotFoundError,
    load_config,
)
from chatgate.config.models import (
    AppConfig,
    BridgeConfig,
    ChatConfig,
    DatabaseConfig,
    LLMConfig,
    LoggingConfig,
    SchedulerConfig,
    ServerConfig,
    WebhookConfig,
)

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "EnvVarNotFoundError",
    # Functions
    "load_config",
    # Stores
    "ConfigStore",
    # Models
    "AppConfig",
    "BridgeConfig",
    "ChatConfig",
    "DatabaseConfig",
    "LLMConfig",
    "LoggingConfig",
    "SchedulerConfig",
    "ServerConfig",
    "WebhookConfig",
]
