"""Command-line interface for slacknotify."""
