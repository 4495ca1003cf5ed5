"""Shared fixtures for slacknotify tests."""

import os

import pytest
import structlog

from slacknotify.config import NotifierSettings
from slacknotify.notifications import SlackNotifier


TEST_TOKEN = "T111111/B222222/CCCCCCCCCCCCCCCCCCCC"
TEST_BASE = "https://hooks.slack.com/services"


class FakeResponse:
    """Stand-in for requests.Response that records whether it was closed."""

    def __init__(self, text="ok", status_code=200, content=None):
        self.status_code = status_code
        self.content = content if content is not None else text.encode("utf-8")
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True
        return False


class FakeSession:
    """Stand-in for requests.Session capturing every POST."""

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.requests = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True
        return False

    def post(self, url, data=None, headers=None, timeout=None):
        self.requests.append(
            {"url": url, "data": data, "headers": dict(headers or {}), "timeout": timeout}
        )
        if self.error is not None:
            raise self.error
        return self.response


class SessionFactory:
    """Callable handing out one FakeSession and counting how often it was asked."""

    def __init__(self, session):
        self.session = session
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.session


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    """Keep host settings out of the tests."""
    for name in list(os.environ):
        if name.startswith("SLACKNOTIFY_") or name == "RDECK_BASE":
            monkeypatch.delenv(name, raising=False)
    yield
    structlog.reset_defaults()


@pytest.fixture
def execution_data():
    return {
        "id": "1",
        "href": "http://rundeck.example/execution/1",
        "project": "demo",
        "user": "test-user",
        "argstring": "-env prod",
        "succeededNodeListString": "node1,node2",
        "job": {
            "name": "HelloWorld",
            "group": "ops",
            "href": "http://rundeck.example/job/1",
        },
    }


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def session_factory(fake_session):
    return SessionFactory(fake_session)


@pytest.fixture
def settings():
    return NotifierSettings(webhook_base_url=TEST_BASE, webhook_token=TEST_TOKEN)


@pytest.fixture
def notifier(settings, session_factory):
    return SlackNotifier(settings, session_factory=session_factory, environ={})
