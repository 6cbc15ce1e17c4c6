"""Tests for the channel read in scripts/inspect_backup.py."""

import importlib.util
from pathlib import Path
from types import SimpleNamespace

import pytest

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "inspect_backup.py"


@pytest.fixture
def script(monkeypatch):
    spec = importlib.util.spec_from_file_location("inspect_backup", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    monkeypatch.setattr(module.time, "sleep", lambda seconds: None)
    return module


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        return self.responses.pop(0)


def response(status, body):
    return SimpleNamespace(status_code=status, json=lambda: body)


class TestRecentMessages:
    def test_returns_contents_newest_first(self, script):
        session = FakeSession(response(200, [{"content": "new"}, {"content": "old"}, {}]))

        assert script.recent_messages(session, "555") == ["new", "old", ""]
        assert session.requests == [
            ("https://discord.com/api/v10/channels/555/messages", {"limit": 50}),
        ]

    def test_waits_out_rate_limit(self, script):
        session = FakeSession(
            response(429, {"retry_after": 0.5}),
            response(200, [{"content": "backup"}]),
        )
        assert script.recent_messages(session, "555") == ["backup"]
        assert len(session.requests) == 2

    def test_gives_up_after_repeated_rate_limits(self, script, capsys):
        session = FakeSession(*[response(429, {"retry_after": 0.1})] * script.RATE_LIMIT_RETRIES)
        with pytest.raises(SystemExit):
            script.recent_messages(session, "555")
        assert "Still rate limited" in capsys.readouterr().out

    def test_missing_access_exits_with_hint(self, script, capsys):
        session = FakeSession(response(403, {"message": "Missing Access"}))
        with pytest.raises(SystemExit) as exc:
            script.recent_messages(session, "555")
        assert exc.value.code == 1
        assert "cannot read message history" in capsys.readouterr().out

    def test_session_carries_bot_token(self, script):
        session = script.bot_session("abc")
        assert session.headers["Authorization"] == "Bot abc"
