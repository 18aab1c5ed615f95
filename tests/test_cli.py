from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from fakes import FakeTransport
from kommanderctl import cli
from kommanderctl.api import Client

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    return tmp_path


@pytest.fixture
def transport(monkeypatch: pytest.MonkeyPatch) -> FakeTransport:
    fake = FakeTransport()
    monkeypatch.setattr(cli, "Client", lambda config, **kwargs: Client(config, transport=fake, **kwargs))
    return fake


def test_profiles_command():
    result = runner.invoke(cli.app, ["profiles"])
    assert result.exit_code == 0
    assert "kommander: Kommander media server" in result.stdout
    assert "kommander_explicit:" in result.stdout
    assert "call_timeline" in result.stdout


def test_profile_override_warning_is_printed(isolated_xdg: Path):
    source = Path(cli.__file__).parent / "profiles" / "kommander.yaml"
    override = isolated_xdg / "cfg" / "kommanderctl" / "profiles" / "kommander.yaml"
    override.parent.mkdir(parents=True)
    override.write_text(source.read_text(encoding="utf-8"), encoding="utf-8")

    result = runner.invoke(cli.app, ["profiles"])
    assert result.exit_code == 0
    assert "Warning: User profile 'kommander' overrides packaged profile" in result.stderr


def test_actions_command():
    result = runner.invoke(cli.app, ["actions"])
    assert result.exit_code == 0
    assert "CallTimeline" in result.stdout.splitlines()

    result = runner.invoke(cli.app, ["actions", "--profile", "kommander_explicit"])
    assert result.exit_code == 0
    assert "CallTimeline" not in result.stdout.splitlines()
    assert "Lock" in result.stdout.splitlines()


def test_actions_unknown_profile():
    result = runner.invoke(cli.app, ["actions", "--profile", "missing"])
    assert result.exit_code == 1
    assert "Error: Unknown profile 'missing'" in result.stderr


def test_encode_command():
    result = runner.invoke(cli.app, ["encode", "SetVolume", "40"])
    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"KommanderMsg": "KommanderMsg_Volume", "params": {"volume": 40}}


def test_encode_with_extra_options():
    result = runner.invoke(cli.app, ["encode", "CallTimeline", "2", "-o", "status=pause"])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["params"] == {"index": 1, "status": 2}


def test_encode_error_is_clean():
    result = runner.invoke(cli.app, ["encode", "callPlan", "40"])
    assert result.exit_code == 1
    assert "Error: plan must be within 1..32, got 40" in result.stderr
    assert "Traceback" not in result.stdout
    assert "Traceback" not in result.stderr


def test_encode_bad_option_syntax():
    result = runner.invoke(cli.app, ["encode", "CallTimeline", "2", "-o", "status"])
    assert result.exit_code == 2


def test_send_command(transport: FakeTransport):
    result = runner.invoke(
        cli.app,
        ["send", "callPlan", "3", "--url", "ws://192.168.0.10:1702", "--settle", "0"],
    )
    assert result.exit_code == 0
    assert result.stdout.startswith("Sent ")
    sent = [json.loads(text) for text in transport.latest.sent]
    assert sent[0]["KommanderMsg"] == "KommanderMsg_Authentication"
    assert sent[-1] == {
        "KommanderMsg": "KommanderMsg_IndexInvokePrePlan",
        "params": {"index": 2, "onlySetReal": True},
    }
    assert transport.latest.closed_with == 1000


def test_send_uses_config_file(transport: FakeTransport, tmp_path: Path):
    config = tmp_path / "config.yaml"
    config.write_text("url: ws://10.0.0.5:1702\nprofile: kommander_explicit\n", encoding="utf-8")

    result = runner.invoke(cli.app, ["send", "Lock", "on", "--config", str(config), "--settle", "0"])
    assert result.exit_code == 0
    assert transport.urls == ["ws://10.0.0.5:1702"]
    assert json.loads(transport.latest.sent[-1])["params"] == {"lock": True}


def test_send_requires_url(transport: FakeTransport):
    result = runner.invoke(cli.app, ["send", "MediaLibrary"])
    assert result.exit_code == 1
    assert "Error: A target URL is required" in result.stderr
    assert transport.urls == []


def test_send_rejects_bad_url(transport: FakeTransport):
    result = runner.invoke(cli.app, ["send", "MediaLibrary", "--url", "http://nope"])
    assert result.exit_code == 1
    assert "Error: Invalid URL provided" in result.stderr
    assert transport.urls == []


def test_monitor_prints_variables(transport: FakeTransport):
    result = runner.invoke(
        cli.app,
        ["monitor", "--url", "ws://192.168.0.10:1702", "--watch", "data.state=status_var", "--duration", "0"],
    )
    assert result.exit_code == 0
    assert "device_play_state=stop" in result.stdout.splitlines()
    assert "status_var=" in result.stdout.splitlines()
    assert "[connecting]" in result.stderr


def test_monitor_bad_watch_syntax(transport: FakeTransport):
    result = runner.invoke(cli.app, ["monitor", "--url", "ws://host", "--watch", "data.state"])
    assert result.exit_code == 2
