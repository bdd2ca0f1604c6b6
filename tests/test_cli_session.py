from __future__ import annotations

import io

import pytest

from loyal_openclaw.cli.session import TerminalSession, format_prompt
from loyal_openclaw.errors import SetupAborted


def _session(monkeypatch, text: str) -> tuple[TerminalSession, io.StringIO]:
    monkeypatch.setattr("loyal_openclaw.cli.session.os.path.exists", lambda path: False)
    out = io.StringIO()
    return TerminalSession(stdin=io.StringIO(text), stdout=out), out


def test_format_prompt_shows_default() -> None:
    assert format_prompt("Server URL", "http://x") == "Server URL [http://x]: "
    assert format_prompt("Model ID") == "Model ID: "


def test_ask_returns_default_on_empty_answer(monkeypatch) -> None:
    session, out = _session(monkeypatch, "\n  custom  \n")

    assert session.ask("Select", "2") == "2"
    assert session.ask("Select", "2") == "custom"
    assert out.getvalue() == "Select [2]: Select [2]: "


def test_confirm_reprompts_until_yes_or_no(monkeypatch) -> None:
    session, out = _session(monkeypatch, "maybe\nN\n\n")

    assert session.confirm("Store key?", True) is False
    assert session.confirm("Store key?", True) is True
    assert "Please answer y or n." in out.getvalue()


def test_closed_input_aborts(monkeypatch) -> None:
    session, _ = _session(monkeypatch, "")

    with pytest.raises(SetupAborted, match="no interactive input available"):
        session.ask("Select")
