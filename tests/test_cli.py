"""Tests for CLI parser and command handlers."""

import json
from argparse import Namespace
from pathlib import Path

import pytest
import yaml
from structlog.testing import capture_logs

from conftest import TEST_TOKEN, FakeResponse, FakeSession, SessionFactory
from slacknotify.cli import commands
from slacknotify.cli.main import create_parser, main
from slacknotify.notifications import SlackNotifier


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch):
    """Keep the CLI from reconfiguring structlog and keep log lines off stdout."""
    monkeypatch.setattr(commands, "configure_logging", lambda **_kwargs: None)
    with capture_logs():
        yield


@pytest.fixture
def project(tmp_path, monkeypatch):
    """Run commands from an empty project directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def execution_file(project, execution_data):
    path = project / "execution.json"
    path.write_text(json.dumps(execution_data), encoding="utf-8")
    return path


def _patch_session(monkeypatch, session):
    monkeypatch.setattr(
        commands,
        "SlackNotifier",
        lambda settings: SlackNotifier(settings, session_factory=SessionFactory(session)),
    )


def test_parser_post_args():
    parser = create_parser()
    args = parser.parse_args(
        [
            "--log-level", "debug",
            "post",
            "--trigger", "failure",
            "--execution", "exec.json",
            "--plugin-config", "cfg.yaml",
            "--channel", "#ops",
            "--template", "custom.j2",
            "--template-dir", "${rdeck.base}/tpl",
        ]
    )
    assert args.command == "post"
    assert args.trigger == "failure"
    assert args.execution == "exec.json"
    assert args.plugin_config == "cfg.yaml"
    assert args.channel == "#ops"
    assert args.template == "custom.j2"
    assert args.template_dir == "${rdeck.base}/tpl"
    assert args.log_level == "debug"


def test_parser_rejects_unknown_trigger():
    with pytest.raises(SystemExit):
        create_parser().parse_args(["post", "--trigger", "bogus"])


def test_main_without_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_triggers_lists_all_kinds(capsys):
    assert main(["triggers"]) == 0
    out = capsys.readouterr().out
    for expected in ("start", "success", "failure", "avgduration", "retryablefailure",
                     "Average exceeded", "Retry Failure", "danger", "good"):
        assert expected in out


def test_render_prints_message(project, execution_file, capsys):
    assert main(["render", "--trigger", "success", "--execution", str(execution_file)]) == 0

    message = json.loads(capsys.readouterr().out)
    assert message["attachments"][0]["color"] == "good"


def test_render_channel_override(project, execution_file, capsys):
    assert main(["render", "-t", "start", "-e", str(execution_file), "--channel", "#ops"]) == 0
    assert json.loads(capsys.readouterr().out)["channel"] == "#ops"


def test_render_missing_execution_file(project, capsys):
    assert main(["render", "--trigger", "start", "--execution", "missing.json"]) == 1
    assert "File not found" in capsys.readouterr().err


def test_render_rejects_non_mapping_file(project, capsys):
    (project / "list.yaml").write_text("- a\n- b\n", encoding="utf-8")
    assert main(["render", "--trigger", "start", "--execution", "list.yaml"]) == 1
    assert "Expected a mapping" in capsys.readouterr().err


def test_post_success(project, execution_file, monkeypatch, capsys):
    monkeypatch.setenv("SLACKNOTIFY_WEBHOOK_TOKEN", TEST_TOKEN)
    session = FakeSession()
    _patch_session(monkeypatch, session)

    assert main(["post", "--trigger", "success", "--execution", str(execution_file)]) == 0
    assert "[ok]" in capsys.readouterr().out
    assert session.requests[0]["url"].endswith(TEST_TOKEN)


def test_post_rejected(project, execution_file, monkeypatch, capsys):
    monkeypatch.setenv("SLACKNOTIFY_WEBHOOK_TOKEN", TEST_TOKEN)
    _patch_session(monkeypatch, FakeSession(response=FakeResponse("invalid_payload")))

    assert main(["post", "--trigger", "failure", "--execution", str(execution_file)]) == 1
    err = capsys.readouterr().err
    assert "DeliveryRejectedError" in err
    assert "invalid_payload" in err


def test_post_without_token(project, execution_file, monkeypatch, capsys):
    session = FakeSession()
    _patch_session(monkeypatch, session)

    assert main(["post", "--trigger", "start", "--execution", str(execution_file)]) == 1
    assert "URL or Token not set" in capsys.readouterr().err
    assert session.requests == []


def test_post_uses_config_file(project, execution_file, monkeypatch):
    config_dir = project / ".slack-notify"
    config_dir.mkdir()
    with open(config_dir / "config.yaml", "w") as f:
        yaml.dump({"webhook_base_url": "https://chat.example/hooks", "webhook_token": "abc"}, f)
    session = FakeSession()
    _patch_session(monkeypatch, session)

    assert main(["post", "--trigger", "start", "--execution", str(execution_file)]) == 0
    assert session.requests[0]["url"] == "https://chat.example/hooks/abc"


def test_get_settings_applies_overrides(project):
    args = Namespace(config=None, channel="#x", template=None, template_dir="/tpl")
    settings = commands.get_settings(args, commands.get_configured_config(args))
    assert settings.channel == "#x"
    assert settings.template is None
    assert settings.template_dir == "/tpl"


def test_cmd_init_writes_config(project, monkeypatch, capsys):
    answers = iter(
        [
            "",
            TEST_TOKEN,
            "#ops",
            "custom.j2",
            "",
        ]
    )
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(answers))

    assert commands.cmd_init(Namespace(force=False)) == 0

    config_path = Path(project) / ".slack-notify" / "config.yaml"
    with open(config_path) as f:
        data = yaml.safe_load(f)
    assert data["webhook_base_url"] == "https://hooks.slack.com/services"
    assert data["webhook_token"] == TEST_TOKEN
    assert data["channel"] == "#ops"
    assert data["template"] == "custom.j2"
    assert data["template_dir"] == "${rdeck.base}/libext/templates"

    out = capsys.readouterr().out
    assert TEST_TOKEN not in out
    assert "T11111…" in out


def test_cmd_init_declines_overwrite(project, monkeypatch):
    config_dir = project / ".slack-notify"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("channel: '#keep'\n")
    monkeypatch.setattr("builtins.input", lambda _prompt="": "n")

    assert commands.cmd_init(Namespace(force=False)) == 0
    assert "#keep" in (config_dir / "config.yaml").read_text()
