"""
Slack incoming-webhook notifications for job lifecycle events.

This module provides:
- Typed errors for every way a notification can fail
- Per-call trigger style lookup and message rendering
- Form-encoded HTTP delivery and response classification
- Token masking for anything that reaches the logs
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import quote_plus, urlsplit

import requests
import structlog
from jinja2 import TemplateNotFound, TemplateSyntaxError

from slacknotify.config import NotifierSettings, get_config
from slacknotify.messages import TriggerStyle, build_trigger_styles, parse_trigger
from slacknotify.resolver import (
    ResolvedTemplate,
    build_environment,
    resolve_template,
    search_path_strings,
)


logger = structlog.get_logger()

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=UTF-8"
PAYLOAD_FIELD = "payload"
OK_RESPONSE = "ok"

MASK_KEEP_CHARS = 6
MASK_MARKER = "…"


# =============================================================================
# Errors
# =============================================================================

class NotificationError(Exception):
    """Base class for notification failures."""


class NotificationConfigError(NotificationError, ValueError):
    """Raised when the webhook URL or token is not configured."""


class InvalidTriggerError(NotificationError, ValueError):
    """Raised for a missing or unrecognized trigger name."""


class TemplateRenderError(NotificationError):
    """
    Raised when the message template cannot be loaded or rendered.

    Attributes:
        stage: "load" when the template could not be found or parsed,
            "merge" when rendering it against the context failed.
    """

    def __init__(self, message: str, stage: str):
        super().__init__(message)
        self.stage = stage


class MalformedUrlError(NotificationError):
    """Raised when base URL and token do not form a valid URL."""


class WebhookConnectionError(NotificationError):
    """Raised when the request could not be sent."""


class ResponseReadError(NotificationError):
    """Raised when the response body cannot be read as UTF-8 text."""


class DeliveryRejectedError(NotificationError):
    """
    Raised when the webhook answers with anything other than "ok".

    Attributes:
        response_text: Raw response body.
        payload: URL-encoded form body that was sent.
        status_code: HTTP status of the response, if known.
    """

    def __init__(self, response_text: str, payload: str, status_code: Optional[int] = None):
        super().__init__(
            f"Unknown status returned from Slack API: [{response_text}].\n{payload}"
        )
        self.response_text = response_text
        self.payload = payload
        self.status_code = status_code


# =============================================================================
# Helpers
# =============================================================================

def mask_token(token: Optional[str]) -> str:
    """
    Mask a webhook token for logging.

    Keeps the first six characters of each "/"-separated segment.

    Example:
        >>> mask_token("T1111111/B2222222/CCCCCCCCCCCC")
        'T11111…/B22222…/CCCCCC…'
    """
    if token is None:
        return "None"
    parts = []
    for part in token.split("/"):
        if len(part) > MASK_KEEP_CHARS:
            part = part[:MASK_KEEP_CHARS] + MASK_MARKER
        parts.append(part)
    return "/".join(parts)


def url_encode(message: str) -> str:
    """Form-encode a string as UTF-8 (spaces become "+")."""
    return quote_plus(message, encoding="utf-8")


def build_form_body(message: str) -> str:
    """Return the request body carrying message as the payload field."""
    return f"{PAYLOAD_FIELD}={url_encode(message)}"


def build_webhook_url(base_url: str, token: str) -> str:
    """
    Join base URL and token into the webhook endpoint.

    Raises:
        MalformedUrlError: If the result is not an absolute http(s) URL.
    """
    url = f"{base_url}/{token}"
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise MalformedUrlError(f"Slack API URL is malformed: [{exc}].") from exc
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise MalformedUrlError(
            f"Slack API URL is malformed: [no http(s) scheme or host in '{base_url}']."
        )
    return url


def build_render_context(
    trigger: str,
    color: str,
    execution_data: Optional[Mapping[str, Any]],
    config: Optional[Mapping[str, Any]],
    channel: Optional[str] = None,
) -> Dict[str, Any]:
    """Assemble the variables available to the message template."""
    context: Dict[str, Any] = {
        "trigger": trigger,
        "color": color,
        "executionData": execution_data if execution_data is not None else {},
        "config": config if config is not None else {},
    }
    if channel:
        context["channel"] = channel
    return context


# =============================================================================
# Notifier
# =============================================================================

class SlackNotifier:
    """Render and deliver job notifications to a Slack incoming webhook."""

    def __init__(
        self,
        settings: NotifierSettings,
        session_factory: Callable[[], requests.Session] = requests.Session,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.environ = environ

    def post_notification(
        self,
        trigger: Optional[str],
        execution_data: Optional[Mapping[str, Any]],
        config: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Send a message when a job notification event is raised.

        Args:
            trigger: Name of the job notification event.
            execution_data: Job execution data from the orchestrator.
            config: Plugin configuration from the orchestrator.

        Returns:
            True if the webhook answered "ok".

        Raises:
            NotificationConfigError: Webhook URL or token not set.
            InvalidTriggerError: Unknown trigger.
            TemplateRenderError: Template could not be loaded or rendered.
            MalformedUrlError: URL could not be built.
            WebhookConnectionError: Request could not be sent.
            ResponseReadError: Response could not be decoded.
            DeliveryRejectedError: Response was not "ok".
        """
        self._check_settings()
        message = self.render(trigger, execution_data, config)

        settings = self.settings
        logger.debug(
            "Posting notification",
            base_url=settings.webhook_base_url,
            token=mask_token(settings.webhook_token),
        )
        url = build_webhook_url(settings.webhook_base_url, settings.webhook_token)
        response_text, status_code = self.invoke_webhook(url, message)

        if response_text.strip() == OK_RESPONSE:
            logger.info("Notification delivered", trigger=trigger, status_code=status_code)
            return True

        logger.warning(
            "Non-ok response from webhook",
            response=response_text,
            status_code=status_code,
        )
        raise DeliveryRejectedError(
            response_text=response_text,
            payload=build_form_body(message),
            status_code=status_code,
        )

    def render(
        self,
        trigger: Optional[str],
        execution_data: Optional[Mapping[str, Any]] = None,
        config: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Render the message for a trigger without sending it.

        Raises:
            InvalidTriggerError: Unknown trigger.
            TemplateRenderError: Template could not be loaded or rendered.
        """
        kind = parse_trigger(trigger)
        if kind is None:
            raise InvalidTriggerError(f"Unknown trigger type: [{trigger}].")

        settings = self.settings
        resolved = resolve_template(
            settings.template,
            settings.template_dir,
            rdeck_base=settings.rdeck_base,
            environ=self.environ,
        )
        styles = build_trigger_styles(resolved.name)
        style = styles[kind]
        logger.debug(
            "Resolved notification template",
            trigger=kind.value,
            template=style.template,
            search_path=search_path_strings(resolved.source),
            channel=settings.channel,
        )

        return self._render_message(resolved, style, kind.value, execution_data, config)

    def _check_settings(self) -> None:
        settings = self.settings
        if not settings.webhook_base_url or not settings.webhook_token:
            raise NotificationConfigError("URL or Token not set")

    def _render_message(
        self,
        resolved: ResolvedTemplate,
        style: TriggerStyle,
        trigger: str,
        execution_data: Optional[Mapping[str, Any]],
        config: Optional[Mapping[str, Any]],
    ) -> str:
        env = build_environment(resolved.source)
        context = build_render_context(
            trigger,
            style.color,
            execution_data,
            config,
            channel=self.settings.channel,
        )

        try:
            template = env.get_template(style.template)
        except (TemplateNotFound, TemplateSyntaxError, OSError, UnicodeDecodeError) as exc:
            raise TemplateRenderError(
                f"Error loading Slack notification message template: [{exc}].",
                stage="load",
            ) from exc

        try:
            return template.render(**context)
        except Exception as exc:
            raise TemplateRenderError(
                f"Error merging Slack notification message template: [{exc}].",
                stage="merge",
            ) from exc

    def invoke_webhook(self, url: str, message: str) -> Tuple[str, Optional[int]]:
        """
        POST the message as a form-encoded payload field.

        The response body is returned whatever the HTTP status, since the
        webhook reports errors in the body text.

        Returns:
            (response_text, status_code)
        """
        body = build_form_body(message).encode("utf-8")
        headers = {"Content-Type": FORM_CONTENT_TYPE}

        with self.session_factory() as session:
            try:
                response = session.post(
                    url,
                    data=body,
                    headers=headers,
                    timeout=self.settings.timeout_seconds,
                )
            except (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema,
                    requests.exceptions.InvalidSchema) as exc:
                raise MalformedUrlError(
                    f"Slack API URL is malformed: [{self._scrub(exc)}]."
                ) from exc
            except requests.RequestException as exc:
                raise WebhookConnectionError(
                    f"Error putting data to Slack URL: [{self._scrub(exc)}]."
                ) from exc

            with response:
                status_code = response.status_code
                try:
                    content = response.content or b""
                    text = content.decode("utf-8")
                except (UnicodeDecodeError, requests.RequestException) as exc:
                    raise ResponseReadError(
                        f"Error reading Slack API response: [{self._scrub(exc)}]."
                    ) from exc

        return text, status_code

    def _scrub(self, exc: BaseException) -> str:
        """Exception text with the raw token replaced by its masked form."""
        text = str(exc)
        token = self.settings.webhook_token
        if token:
            text = text.replace(token, mask_token(token))
        return text


def post_notification(
    trigger: Optional[str],
    execution_data: Optional[Mapping[str, Any]],
    config: Optional[Mapping[str, Any]] = None,
    settings: Optional[NotifierSettings] = None,
) -> bool:
    """
    Send one notification.

    Settings default to those loaded from the project config file and
    environment.
    """
    if settings is None:
        settings = NotifierSettings.from_config(get_config())
    return SlackNotifier(settings).post_notification(trigger, execution_data, config)
