"""Interactive prompts for the setup flow."""

from __future__ import annotations

import os
import sys
from typing import Protocol, TextIO

from loyal_openclaw.errors import SetupAborted

TTY_PATH = "/dev/tty"
_YES = {"y", "yes"}
_NO = {"n", "no"}


class InteractiveSession(Protocol):
    def ask(self, prompt: str, default: str = "") -> str: ...

    def confirm(self, prompt: str, default: bool = False) -> bool: ...


def format_prompt(prompt: str, default: str = "") -> str:
    suffix = f" [{default}]" if default else ""
    return f"{prompt}{suffix}: "


class TerminalSession:
    """Reads answers from the controlling terminal.

    When stdin is redirected (``curl ... | python -m ...``) prompts go to
    ``/dev/tty`` so the operator can still answer them.
    """

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self._input = stdin or sys.stdin
        self._output = stdout or sys.stdout
        self._owned: list[TextIO] = []
        if not self._input.isatty() and os.path.exists(TTY_PATH):
            try:
                tty_in = open(TTY_PATH, encoding="utf-8")
            except OSError:
                return
            try:
                tty_out = open(TTY_PATH, "w", encoding="utf-8")
            except OSError:
                tty_in.close()
                return
            self._input, self._output = tty_in, tty_out
            self._owned = [tty_in, tty_out]

    def __enter__(self) -> "TerminalSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        for stream in self._owned:
            stream.close()
        self._owned = []

    def _readline(self, prompt: str) -> str:
        self._output.write(prompt)
        self._output.flush()
        try:
            line = self._input.readline()
        except KeyboardInterrupt as exc:
            raise SetupAborted("setup cancelled") from exc
        if not line:
            raise SetupAborted("no interactive input available")
        return line.strip()

    def ask(self, prompt: str, default: str = "") -> str:
        return self._readline(format_prompt(prompt, default)) or default or ""

    def confirm(self, prompt: str, default: bool = False) -> bool:
        hint = "Y/n" if default else "y/N"
        while True:
            answer = self._readline(f"{prompt} [{hint}]: ").lower()
            if not answer:
                return default
            if answer in _YES:
                return True
            if answer in _NO:
                return False
            print("Please answer y or n.", file=self._output)
