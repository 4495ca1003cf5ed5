"""
Main CLI entry point for slacknotify.

This module provides the main command-line interface with subcommands
for configuring, previewing and sending notifications.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from slacknotify import __version__
from slacknotify.messages import TriggerKind


TRIGGER_CHOICES = [kind.value for kind in TriggerKind]


def create_parser() -> argparse.ArgumentParser:
    """
    Create the main argument parser with all subcommands.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="slacknotify",
        description="Send Rundeck job notifications to a Slack incoming webhook.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  slacknotify init                                    Initialize project configuration
  slacknotify triggers                                List supported triggers
  slacknotify render --trigger start -e exec.json     Preview the rendered message
  slacknotify post --trigger failure -e exec.json     Send a notification

For more information on a command, run: slacknotify <command> --help
""",
    )

    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"slacknotify {__version__}",
    )

    # Global options
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to config file (default: .slack-notify/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level override. Defaults to config logging.level or info.",
    )
    parser.add_argument(
        "--log-format",
        choices=["console", "json"],
        default=None,
        help="Log format override. Defaults to config logging.format or console.",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # init
    init_parser = subparsers.add_parser(
        "init",
        help="Initialize project configuration",
        description="Create or update the project configuration file.",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing configuration",
    )

    # triggers
    subparsers.add_parser(
        "triggers",
        help="List supported triggers with their color and status text",
    )

    # render / post share their message arguments
    for name, help_text in (
        ("render", "Render the message for a trigger without sending it"),
        ("post", "Render and send a notification"),
    ):
        command_parser = subparsers.add_parser(name, help=help_text)
        command_parser.add_argument(
            "--trigger", "-t",
            required=True,
            choices=TRIGGER_CHOICES,
            help="Job notification trigger",
        )
        command_parser.add_argument(
            "--execution", "-e",
            metavar="PATH",
            help="JSON or YAML file with the execution data",
        )
        command_parser.add_argument(
            "--plugin-config",
            metavar="PATH",
            help="JSON or YAML file with the plugin configuration map",
        )
        command_parser.add_argument(
            "--channel",
            metavar="NAME",
            help="Channel override (e.g. #ops)",
        )
        command_parser.add_argument(
            "--template",
            metavar="NAME",
            help="Custom template name",
        )
        command_parser.add_argument(
            "--template-dir",
            metavar="PATH",
            help="Directory holding custom templates (supports ${rdeck.base}, $RDECK_BASE)",
        )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    from slacknotify.cli import commands

    try:
        if args.command == "init":
            return commands.cmd_init(args)

        elif args.command == "triggers":
            return commands.cmd_triggers(args)

        elif args.command == "render":
            return commands.cmd_render(args)

        elif args.command == "post":
            return commands.cmd_post(args)

        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nAborted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
