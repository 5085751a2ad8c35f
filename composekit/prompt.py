"""Interactive prompts for user input."""

from __future__ import annotations

import getpass
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence, TextIO

_INVALID_REPLY = "Sorry, your reply was invalid"


class UI(ABC):
    """Asks the user for input."""

    @abstractmethod
    def select(self, message: str, options: Sequence[str]) -> int:
        """Let the user pick one of ``options``; return its index."""

    @abstractmethod
    def input(self, message: str, default_value: str = "") -> str:
        """Ask for a line of text, falling back to ``default_value``."""

    @abstractmethod
    def confirm(self, message: str, default_value: bool = False) -> bool:
        """Ask a yes or no question."""

    @abstractmethod
    def password(self, message: str) -> str:
        """Ask for text without echoing it."""


@dataclass
class User(UI):
    """Prompts on a terminal, or on the given streams when set.

    Reading past the end of input raises EOFError.
    """

    stdin: Optional[TextIO] = None
    stdout: Optional[TextIO] = None

    @property
    def _in(self) -> TextIO:
        return self.stdin if self.stdin is not None else sys.stdin

    @property
    def _out(self) -> TextIO:
        return self.stdout if self.stdout is not None else sys.stdout

    def _ask(self, prompt: str) -> str:
        out = self._out
        out.write(prompt)
        out.flush()
        line = self._in.readline()
        if not line:
            raise EOFError("no input available")
        return line.rstrip("\r\n")

    def _say(self, text: str) -> None:
        self._out.write(text + "\n")

    def select(self, message: str, options: Sequence[str]) -> int:
        if not options:
            raise ValueError("please provide options to select from")
        self._say(f"? {message}")
        for number, option in enumerate(options, start=1):
            self._say(f"  {number}) {option}")
        while True:
            reply = self._ask(f"  Choose 1-{len(options)} [1]: ").strip()
            if not reply:
                return 0
            if reply.isdigit() and 1 <= int(reply) <= len(options):
                return int(reply) - 1
            if reply in options:
                return list(options).index(reply)
            self._say(_INVALID_REPLY)

    def input(self, message: str, default_value: str = "") -> str:
        suffix = f" ({default_value})" if default_value else ""
        reply = self._ask(f"? {message}{suffix} ")
        return reply if reply else default_value

    def confirm(self, message: str, default_value: bool = False) -> bool:
        hint = "(Y/n)" if default_value else "(y/N)"
        while True:
            reply = self._ask(f"? {message} {hint} ").strip().lower()
            if not reply:
                return default_value
            if reply in ("y", "yes"):
                return True
            if reply in ("n", "no"):
                return False
            self._say(_INVALID_REPLY)

    def password(self, message: str) -> str:
        prompt = f"? {message} "
        if self.stdin is None:
            return getpass.getpass(prompt, stream=self.stdout)
        return self._ask(prompt)