from pathlib import Path

import pytest

from chat_relay import __main__ as cli


@pytest.fixture
def captured(monkeypatch):
    seen = {}
    monkeypatch.setattr(cli, "run", lambda settings: seen.setdefault("settings", settings))
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)
    for name in ("PORT", "HOST", "MESSAGES_FILE", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    return seen


def test_flags_override_environment(captured, monkeypatch, tmp_path):
    monkeypatch.setenv("PORT", "6000")
    assert cli.main(["--port", "7000", "--messages-file", str(tmp_path / "h.json"), "--log-level", "debug"]) == 0
    settings = captured["settings"]
    assert settings.port == 7000
    assert settings.messages_file == tmp_path / "h.json"
    assert settings.log_level == "DEBUG"


def test_environment_used_without_flags(captured, monkeypatch):
    monkeypatch.setenv("PORT", "6000")
    monkeypatch.setenv("HOST", "127.0.0.1")
    cli.main([])
    assert captured["settings"].port == 6000
    assert captured["settings"].host == "127.0.0.1"
    assert captured["settings"].messages_file == Path("messages.json")


def test_invalid_environment_exits_with_error(captured, monkeypatch, capsys):
    monkeypatch.setenv("PORT", "nope")
    assert cli.main([]) == 2
    assert "PORT" in capsys.readouterr().err
    assert "settings" not in captured
