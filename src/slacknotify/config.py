"""
Configuration management for slacknotify.

This module handles loading and merging configuration from multiple sources:
1. Built-in defaults (lowest priority)
2. Project-level config file (.slack-notify/config.yaml)
3. Environment variables
4. CLI arguments (highest priority, handled at CLI level)

Environment Variables:
    SLACKNOTIFY_CONFIG: Path to config file (default: .slack-notify/config.yaml)
    SLACKNOTIFY_WEBHOOK_BASE_URL: Incoming webhook base URL
    SLACKNOTIFY_WEBHOOK_TOKEN: Webhook token (T000/B000/XXXX)
    SLACKNOTIFY_CHANNEL: Channel override (#channel-name)
    SLACKNOTIFY_TEMPLATE: Custom template name
    SLACKNOTIFY_TEMPLATE_DIR: Directory holding custom templates
    SLACKNOTIFY_RDECK_BASE: Rundeck base install path
    SLACKNOTIFY_TIMEOUT_SECONDS: HTTP timeout for webhook delivery
"""

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


# =============================================================================
# Default Configuration
# =============================================================================

DEFAULT_WEBHOOK_BASE_URL = "https://hooks.slack.com/services"
DEFAULT_TEMPLATE_DIR = "${rdeck.base}/libext/templates"

DEFAULT_CONFIG = {
    # Incoming webhook endpoint
    "webhook_base_url": DEFAULT_WEBHOOK_BASE_URL,
    "webhook_token": None,

    # Optional channel override (#channel-name)
    "channel": None,

    # Custom template lookup; empty template means the built-in message
    "template": None,
    "template_dir": DEFAULT_TEMPLATE_DIR,

    # Value substituted for ${rdeck.base}
    "rdeck_base": ".",

    # Delivery
    "timeout_seconds": 30,

    # Logging (CLI only)
    "logging": {
        "level": "info",
        "format": "console",
    },
}

# Environment variable prefix
ENV_PREFIX = "SLACKNOTIFY_"

# Mapping of environment variables to config paths
ENV_VAR_MAP = {
    "SLACKNOTIFY_CONFIG": None,  # Special: path to config file itself
    "SLACKNOTIFY_WEBHOOK_BASE_URL": "webhook_base_url",
    "SLACKNOTIFY_WEBHOOK_TOKEN": "webhook_token",
    "SLACKNOTIFY_CHANNEL": "channel",
    "SLACKNOTIFY_TEMPLATE": "template",
    "SLACKNOTIFY_TEMPLATE_DIR": "template_dir",
    "SLACKNOTIFY_RDECK_BASE": "rdeck_base",
    "SLACKNOTIFY_TIMEOUT_SECONDS": "timeout_seconds",
    "SLACKNOTIFY_LOG_LEVEL": "logging.level",
}


# =============================================================================
# Configuration Class
# =============================================================================

class Config:
    """
    Configuration manager for slacknotify.

    Loads configuration from multiple sources and provides access to settings.
    Configuration precedence (highest to lowest):
    1. Explicit overrides (passed to methods)
    2. Environment variables
    3. Project config file
    4. Built-in defaults

    Attributes:
        config_path: Path to the loaded config file (if any)
        project_root: Root directory of the project (where .slack-notify/ lives)

    Example:
        >>> config = Config()
        >>> config.get("webhook_base_url")
        'https://hooks.slack.com/services'
        >>> config.get("logging.level")
        'info'
    """

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        project_root: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize configuration.

        Args:
            config_path: Explicit path to config file. If None, searches for
                .slack-notify/config.yaml in project_root or current directory.
            project_root: Project root directory. If None, uses current directory.
        """
        self.project_root = Path(project_root) if project_root else Path.cwd()

        if config_path:
            self.config_path = Path(config_path)
        else:
            env_config = os.environ.get("SLACKNOTIFY_CONFIG")
            if env_config:
                self.config_path = Path(env_config)
            else:
                self.config_path = self.project_root / ".slack-notify" / "config.yaml"

        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load and merge configuration from all sources.

        Returns:
            Merged configuration dictionary.
        """
        config = _deep_copy(DEFAULT_CONFIG)

        if self.config_path.exists():
            with open(self.config_path, "r") as f:
                file_config = yaml.safe_load(f) or {}
            config = _deep_merge(config, file_config)

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to config."""
        for env_var, config_path in ENV_VAR_MAP.items():
            if config_path is None:
                continue

            value = os.environ.get(env_var)
            if value is not None:
                _set_nested(config, config_path, value)

        return config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value by dot-separated key path.

        Args:
            key: Dot-separated key path (e.g., "logging.level")
            default: Default value if key not found.

        Returns:
            Configuration value or default.
        """
        return _get_nested(self._config, key, default)

    def as_dict(self) -> Dict[str, Any]:
        """Return the full configuration as a dictionary."""
        return _deep_copy(self._config)

    def __repr__(self) -> str:
        return f"Config(config_path={self.config_path}, project_root={self.project_root})"


# =============================================================================
# Per-call settings
# =============================================================================

@dataclass(frozen=True)
class NotifierSettings:
    """Immutable webhook settings handed to a single notification call."""

    webhook_base_url: Optional[str] = DEFAULT_WEBHOOK_BASE_URL
    webhook_token: Optional[str] = None
    channel: Optional[str] = None
    template: Optional[str] = None
    template_dir: Optional[str] = DEFAULT_TEMPLATE_DIR
    rdeck_base: str = "."
    timeout_seconds: Optional[float] = 30.0

    @classmethod
    def from_config(cls, config: Config) -> "NotifierSettings":
        """Build settings from a loaded Config."""
        return cls(
            webhook_base_url=_to_optional_str(config.get("webhook_base_url")),
            webhook_token=_to_optional_str(config.get("webhook_token")),
            channel=_to_optional_str(config.get("channel")),
            template=_to_optional_str(config.get("template")),
            template_dir=_to_optional_str(config.get("template_dir")),
            rdeck_base=_to_optional_str(config.get("rdeck_base")) or ".",
            timeout_seconds=_to_timeout(config.get("timeout_seconds")),
        )


def _to_optional_str(value: Any) -> Optional[str]:
    """Convert scalar config values to str, keeping None."""
    if value is None:
        return None
    return str(value)


def _to_timeout(value: Any) -> Optional[float]:
    """Convert a timeout value; zero, negative or unparsable means no timeout."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_config(
    config_path: Optional[Union[str, Path]] = None,
    project_root: Optional[Union[str, Path]] = None,
) -> Config:
    """
    Load configuration.

    A fresh Config is returned on every call so concurrent notifications
    never observe each other's settings.

    Args:
        config_path: Explicit path to config file.
        project_root: Project root directory.

    Returns:
        Config instance.
    """
    return Config(config_path=config_path, project_root=project_root)


def init_config(
    project_root: Optional[Union[str, Path]] = None,
    overwrite: bool = False,
    **kwargs: Any,
) -> Path:
    """
    Initialize a new project configuration file.

    Creates .slack-notify/config.yaml with default values, optionally
    customized with provided kwargs.

    Args:
        project_root: Project root directory. Defaults to current directory.
        overwrite: If True, overwrite existing config file.
        **kwargs: Configuration values to set (e.g., channel="#ops").

    Returns:
        Path to created config file.

    Raises:
        FileExistsError: If config file exists and overwrite=False.

    Example:
        >>> init_config(webhook_token="T000/B000/XXXX")
        PosixPath('.slack-notify/config.yaml')
    """
    root = Path(project_root) if project_root else Path.cwd()
    config_path = root / ".slack-notify" / "config.yaml"

    if config_path.exists() and not overwrite:
        raise FileExistsError(
            f"Config file already exists: {config_path}. "
            "Use overwrite=True to replace."
        )

    config_data = _deep_copy(DEFAULT_CONFIG)
    for key, value in kwargs.items():
        if isinstance(value, dict) and key in config_data:
            config_data[key] = _deep_merge(config_data[key], value)
        else:
            config_data[key] = value

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.dump(config_data, f, default_flow_style=False, sort_keys=False)

    return config_path


# =============================================================================
# Helper Functions
# =============================================================================

def _deep_copy(d: Dict[str, Any]) -> Dict[str, Any]:
    """Create a deep copy of a dictionary."""
    return copy.deepcopy(d)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, with override taking precedence.

    Args:
        base: Base dictionary.
        override: Dictionary with values to override.

    Returns:
        Merged dictionary.
    """
    result = _deep_copy(base)

    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _get_nested(d: Dict[str, Any], key: str, default: Any = None) -> Any:
    """
    Get a nested dictionary value using dot notation.

    Args:
        d: Dictionary to search.
        key: Dot-separated key path (e.g., "a.b.c").
        default: Default value if not found.

    Returns:
        Value at key path or default.
    """
    value = d
    for k in key.split("."):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default
    return value


def _set_nested(d: Dict[str, Any], key: str, value: Any) -> None:
    """Set a nested dictionary value using dot notation."""
    keys = key.split(".")

    for k in keys[:-1]:
        if k not in d:
            d[k] = {}
        d = d[k]

    d[keys[-1]] = value
