"""
Command handlers for slacknotify CLI.

This module contains the implementation of each CLI command.
"""

from __future__ import annotations

import dataclasses
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from tabulate import tabulate

from slacknotify.config import (
    DEFAULT_TEMPLATE_DIR,
    DEFAULT_WEBHOOK_BASE_URL,
    Config,
    NotifierSettings,
    get_config,
    init_config,
)
from slacknotify.log import configure_logging
from slacknotify.messages import TRIGGER_COLORS, status_label
from slacknotify.notifications import NotificationError, SlackNotifier, mask_token


# =============================================================================
# Helper Functions
# =============================================================================

def prompt_yes_no(message: str) -> bool:
    """Prompt user for yes/no confirmation."""
    answer = input(message).strip().lower()
    return answer in ("y", "yes")


def get_configured_config(args: Any) -> Config:
    """Get Config instance with CLI overrides."""
    config_path = getattr(args, "config", None)
    return get_config(config_path=config_path)


def setup_logging(args: Any, config: Config) -> None:
    """Configure logging from CLI flags, falling back to config values."""
    level = getattr(args, "log_level", None) or config.get("logging.level", "info")
    fmt = getattr(args, "log_format", None) or config.get("logging.format", "console")
    configure_logging(level=level, fmt=fmt)


def get_settings(args: Any, config: Config) -> NotifierSettings:
    """Build notifier settings from config plus per-command overrides."""
    settings = NotifierSettings.from_config(config)
    overrides = {}
    for arg_name, field_name in (
        ("channel", "channel"),
        ("template", "template"),
        ("template_dir", "template_dir"),
    ):
        value = getattr(args, arg_name, None)
        if value is not None:
            overrides[field_name] = value
    if overrides:
        settings = dataclasses.replace(settings, **overrides)
    return settings


def load_mapping(path: Optional[str]) -> Dict[str, Any]:
    """
    Load a JSON or YAML mapping from a file.

    Args:
        path: File path. None yields an empty mapping.

    Returns:
        Parsed mapping.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file does not contain a mapping.
    """
    if not path:
        return {}

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    with open(file_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping in {file_path}, got {type(data).__name__}")
    return data


def _load_message_inputs(args: Any) -> Optional[tuple]:
    """Load execution data and plugin config; print and return None on error."""
    try:
        execution_data = load_mapping(args.execution)
        plugin_config = load_mapping(args.plugin_config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return None
    return execution_data, plugin_config


# =============================================================================
# Commands
# =============================================================================

def cmd_init(args: Any) -> int:
    """Initialize project configuration."""
    config_path = Path(".slack-notify/config.yaml")

    if config_path.exists() and not args.force:
        print(f"Configuration file already exists: {config_path}")
        if not prompt_yes_no("Overwrite? [y/N]: "):
            print("Aborted.")
            return 0

    print("Initializing slacknotify configuration...\n")
    print("Enter configuration values (press Enter for defaults):\n")

    base_url = (
        input(f"WebHook base URL [{DEFAULT_WEBHOOK_BASE_URL}]: ").strip()
        or DEFAULT_WEBHOOK_BASE_URL
    )
    token = input("WebHook token (T000/B000/XXXX, or leave empty to use SLACKNOTIFY_WEBHOOK_TOKEN): ").strip()
    channel = input("Channel override (optional, e.g. #ops): ").strip()

    print("\nCustom template (optional, press Enter for the built-in message):")
    template = input("  Template name: ").strip()
    template_dir = DEFAULT_TEMPLATE_DIR
    if template:
        template_dir = (
            input(f"  Template directory [{DEFAULT_TEMPLATE_DIR}]: ").strip()
            or DEFAULT_TEMPLATE_DIR
        )

    path = init_config(
        overwrite=True,
        webhook_base_url=base_url,
        webhook_token=token or None,
        channel=channel or None,
        template=template or None,
        template_dir=template_dir,
    )

    print(f"\nConfiguration saved to: {path}")
    if token:
        print(f"WebHook token: {mask_token(token)}")
    return 0


def cmd_triggers(args: Any) -> int:
    """List supported triggers."""
    rows = [
        [kind.value, color, status_label(kind.value)]
        for kind, color in TRIGGER_COLORS.items()
    ]
    print(tabulate(rows, headers=["Trigger", "Color", "Status"], tablefmt="simple"))
    return 0


def cmd_render(args: Any) -> int:
    """Render the message for a trigger and print it."""
    config = get_configured_config(args)
    setup_logging(args, config)

    inputs = _load_message_inputs(args)
    if inputs is None:
        return 1
    execution_data, plugin_config = inputs

    notifier = SlackNotifier(get_settings(args, config))
    try:
        message = notifier.render(args.trigger, execution_data, plugin_config)
    except NotificationError as exc:
        print(f"[failed] {exc}", file=sys.stderr)
        return 1

    print(message.rstrip("\n"))
    return 0


def cmd_post(args: Any) -> int:
    """Render and send a notification."""
    config = get_configured_config(args)
    setup_logging(args, config)

    inputs = _load_message_inputs(args)
    if inputs is None:
        return 1
    execution_data, plugin_config = inputs

    notifier = SlackNotifier(get_settings(args, config))
    try:
        notifier.post_notification(args.trigger, execution_data, plugin_config)
    except NotificationError as exc:
        print(f"[failed] {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1

    print(f"[ok] {args.trigger} notification delivered")
    return 0
