"""Configuration loader with environment variable expansion."""

import asyncio
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from chatgate.config.models import AppConfig, WebhookConfig

# Regex pattern for environment variable: matches ${VAR_NAME} exactly
ENV_VAR_PATTERN = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigFileNotFoundError(ConfigError):
    """Raised when the configuration file is not found."""


class ConfigParseError(ConfigError):
    """Raised when the YAML file cannot be parsed."""


class EnvVarNotFoundError(ConfigError):
    """Raised when an environment variable is not found."""


def expand_env_vars(data: Any) -> Any:
    """Expand environment variables in the configuration data.

    Only expands complete string values matching ${VAR_NAME} pattern.
    Does not expand partial matches like "prefix${VAR}suffix".

    Args:
        data: Configuration data (dict, list, or scalar value).

    Returns:
        Data with environment variables expanded.

    Raises:
        EnvVarNotFoundError: If an environment variable is not defined.
    """
    if isinstance(data, dict):
        return {key: expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        match = ENV_VAR_PATTERN.match(data)
        if match:
            var_name = match.group(1)
            value = os.environ.get(var_name)
            if value is None:
                raise EnvVarNotFoundError(
                    f"Environment variable '{var_name}' not found"
                )
            return value
        return data
    else:
        return data


def read_raw_config(path: Path) -> dict[str, Any]:
    """Read the YAML document without expanding environment variables.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The parsed document, or an empty dict for an empty file.

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
        ConfigParseError: If the YAML cannot be parsed or is not a mapping.
    """
    if not path.exists():
        raise ConfigFileNotFoundError(f"Configuration file not found: {path}")

    try:
        with open(path) as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Failed to parse YAML: {e}") from e

    if raw_data is None:
        raw_data = {}
    if not isinstance(raw_data, dict):
        raise ConfigParseError("Configuration root must be a mapping")
    return raw_data


def load_config(path: Path) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Variables in a ``.env`` file next to the configuration file are loaded
    first; variables already set in the environment take precedence.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Validated AppConfig instance.

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
        ConfigParseError: If the YAML cannot be parsed.
        EnvVarNotFoundError: If an environment variable is not defined.
        ValidationError: If the configuration fails Pydantic validation.
    """
    raw_data = read_raw_config(path)
    load_dotenv(path.parent / ".env", override=False)
    expanded_data = expand_env_vars(raw_data)
    return AppConfig(**expanded_data)


class ConfigStore:
    """Writes admin changes back into the YAML configuration file.

    Only the sections managed at runtime (allowed groups, trigger words and
    webhooks) are rewritten. Everything else, including unexpanded ``${VAR}``
    placeholders, is preserved as found on disk.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def update_allowed_groups(self, groups: list[str]) -> None:
        await self._update_section("chat", "allowed_groups", list(groups))

    async def update_trigger_words(self, trigger_words: list[str]) -> None:
        await self._update_section("chat", "trigger_words", list(trigger_words))

    async def update_webhooks(self, webhooks: list[WebhookConfig]) -> None:
        data = [webhook.model_dump(exclude_none=True) for webhook in webhooks]
        await self._update_section(None, "webhooks", data)

    async def _update_section(self, section: str | None, key: str, value: Any) -> None:
        async with self._lock:
            raw_data = read_raw_config(self._path)
            target = raw_data
            if section is not None:
                target = raw_data.setdefault(section, {})
            target[key] = value
            # Write a sibling file and swap it in, so a failed dump never
            # leaves a truncated config behind.
            tmp_path = self._path.with_name(f".{self._path.name}.tmp")
            try:
                with open(tmp_path, "w") as f:
                    yaml.safe_dump(raw_data, f, sort_keys=False, allow_unicode=True)
                os.replace(tmp_path, self._path)
            finally:
                tmp_path.unlink(missing_ok=True)
