"""A small text spinner used to show that a task is still running."""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass, field
from typing import List

_BRAILLE_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")
_BRAILLE_DONE = "⠿"
_PLAIN_FRAME = "-"

# Frames advance once more than this many milliseconds have passed since creation.
_FRAME_MILLISECONDS = 100


def _on_windows() -> bool:
    return sys.platform.startswith("win")


def _default_chars() -> List[str]:
    return [_PLAIN_FRAME] if _on_windows() else list(_BRAILLE_FRAMES)


def _default_done() -> str:
    return _PLAIN_FRAME if _on_windows() else _BRAILLE_DONE


@dataclass
class Spinner:
    """Cycles through ``chars`` each time it is rendered with ``str()``.

    Once stopped it always renders as ``done``.
    """

    chars: List[str] = field(default_factory=_default_chars)
    done: str = field(default_factory=_default_done)
    index: int = 0
    started: float = field(default_factory=time.monotonic)
    stopped: bool = False

    def __str__(self) -> str:
        if self.stopped:
            return self.done
        elapsed_ms = int((time.monotonic() - self.started) * 1000)
        if elapsed_ms > _FRAME_MILLISECONDS:
            self.index = (self.index + 1) % len(self.chars)
        return self.chars[self.index]

    def stop(self) -> None:
        """Freeze the spinner on its ``done`` character."""
        self.stopped = True