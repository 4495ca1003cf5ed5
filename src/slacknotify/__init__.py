"""
slacknotify - Slack incoming-webhook notifications for Rundeck job events.

Renders a message for a job lifecycle event (start, success, failure,
average duration exceeded, retryable failure) and posts it to a Slack
incoming webhook:
- Built-in or operator-supplied Jinja2 message templates
- Layered configuration from YAML and environment variables
- Typed errors for every delivery failure
"""

from slacknotify._version import __version__

from slacknotify.config import Config, NotifierSettings, get_config
from slacknotify.messages import TriggerKind, TriggerStyle
from slacknotify.resolver import ResolvedTemplate, TemplateSource, resolve_template
from slacknotify.notifications import (
    DeliveryRejectedError,
    InvalidTriggerError,
    MalformedUrlError,
    NotificationConfigError,
    NotificationError,
    ResponseReadError,
    SlackNotifier,
    TemplateRenderError,
    WebhookConnectionError,
    post_notification,
)

__all__ = [
    # Version
    "__version__",
    # Config
    "Config",
    "NotifierSettings",
    "get_config",
    # Triggers
    "TriggerKind",
    "TriggerStyle",
    # Templates
    "ResolvedTemplate",
    "TemplateSource",
    "resolve_template",
    # Notifications
    "SlackNotifier",
    "post_notification",
    # Errors
    "NotificationError",
    "NotificationConfigError",
    "InvalidTriggerError",
    "TemplateRenderError",
    "MalformedUrlError",
    "WebhookConnectionError",
    "ResponseReadError",
    "DeliveryRejectedError",
]
