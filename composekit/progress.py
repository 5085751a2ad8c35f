"""Progress writers: plain, terminal and no-op renderings of progress events."""

from __future__ import annotations

import contextlib
import contextvars
import shutil
import sys
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from concurrent.futures import CancelledError
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, TextIO, TypeVar, Union

from composekit.events import Event, EventStatus
from composekit.spinner import Spinner

_TICK = 0.1

_ESC = "\x1b["
_UP = _ESC + "1A"
_DOWN = _ESC + "1B"
_COLUMN0 = _ESC + "0G"
_HIDE = _ESC + "?25l"
_SHOW = _ESC + "?25h"
_RESET = _ESC + "0m"
_WHITE = _ESC + "37m"
_BLUE = _ESC + "34m"
_RED = _ESC + "31m"
_YELLOW = _ESC + "33m"

_STATUS_COLORS = {
    EventStatus.DONE: _BLUE,
    EventStatus.ERROR: _RED,
    EventStatus.WARNING: _YELLOW,
}

T = TypeVar("T")


class ProgressMode(str, Enum):
    """How progress is rendered."""

    AUTO = "auto"
    TTY = "tty"
    PLAIN = "plain"


default_mode = ProgressMode.AUTO


def _apply(text: str, color: str) -> str:
    return color + text + _RESET


def _flush(out: TextIO) -> None:
    flush = getattr(out, "flush", None)
    if flush is not None:
        flush()


def _cancelled(cancel: Optional[threading.Event]) -> bool:
    return cancel is not None and cancel.is_set()


class Writer(ABC):
    """Receives progress events and renders them."""

    @abstractmethod
    def start(self, cancel: Optional[threading.Event] = None) -> None:
        """Render until stopped; raise CancelledError if ``cancel`` is set first."""

    @abstractmethod
    def stop(self) -> None:
        """Ask a running :meth:`start` to finish."""

    @abstractmethod
    def event(self, e: Event) -> None:
        """Record one event."""

    @abstractmethod
    def events(self, events: Iterable[Event]) -> None:
        """Record several events."""

    @abstractmethod
    def tail_msgf(self, msg: str, *args: Any) -> None:
        """Record a message to show after the events."""


@dataclass
class NoopWriter(Writer):
    """A writer that discards everything."""

    def start(self, cancel: Optional[threading.Event] = None) -> None:
        return None

    def stop(self) -> None:
        return None

    def event(self, e: Event) -> None:
        return None

    def events(self, events: Iterable[Event]) -> None:
        return None

    def tail_msgf(self, msg: str, *args: Any) -> None:
        return None


class PlainWriter(Writer):
    """Writes each event as a plain line of text."""

    def __init__(self, out: TextIO) -> None:
        self.out = out
        self._done = threading.Event()

    def start(self, cancel: Optional[threading.Event] = None) -> None:
        while not self._done.wait(_TICK):
            if _cancelled(cancel):
                raise CancelledError("progress cancelled")
        self._done.clear()

    def stop(self) -> None:
        self._done.set()

    def event(self, e: Event) -> None:
        print(e.id, e.text, e.status_text, file=self.out)

    def events(self, events: Iterable[Event]) -> None:
        for e in events:
            self.event(e)

    def tail_msgf(self, msg: str, *args: Any) -> None:
        print(msg, *args, file=self.out)


class TTYWriter(Writer):
    """Redraws a live block of event lines on a terminal."""

    def __init__(
        self,
        out: TextIO,
        terminal_width: Optional[int] = None,
        color: Optional[bool] = None,
    ) -> None:
        self.out = out
        self.terminal_width = terminal_width
        self.color = color if color is not None else not sys.platform.startswith("win")
        self._events: Dict[str, Event] = {}
        self._event_ids: List[str] = []
        self._repeated = False
        self._num_lines = 0
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._tail_events: List[str] = []

    def start(self, cancel: Optional[threading.Event] = None) -> None:
        while True:
            if self._done.wait(_TICK):
                self._done.clear()
                self._print()
                self._print_tail_events()
                return
            if _cancelled(cancel):
                self._print()
                self._print_tail_events()
                raise CancelledError("progress cancelled")
            self._print()

    def stop(self) -> None:
        self._done.set()

    def event(self, e: Event) -> None:
        with self._lock:
            if e.id not in self._event_ids:
                self._event_ids.append(e.id)
            last = self._events.get(e.id)
            if last is not None:
                if e.status in (EventStatus.DONE, EventStatus.ERROR, EventStatus.WARNING):
                    if last.status != e.status:
                        last.stop()
                last.status = e.status
                last.text = e.text
                last.status_text = e.status_text
                # a parent may be set or unset, but never swapped, to avoid flicker
                if last.parent_id == "" or e.parent_id == "":
                    last.parent_id = e.parent_id
            else:
                fresh = replace(e, start_time=time.monotonic(), end_time=e.end_time, spinner=Spinner())
                if fresh.status in (EventStatus.DONE, EventStatus.ERROR):
                    fresh.stop()
                self._events[e.id] = fresh

    def events(self, events: Iterable[Event]) -> None:
        for e in events:
            self.event(e)

    def tail_msgf(self, msg: str, *args: Any) -> None:
        """Queue a printf-style message to print once rendering ends."""
        with self._lock:
            self._tail_events.append(msg % args if args else msg)

    def _width(self) -> int:
        if self.terminal_width is not None:
            return self.terminal_width
        return shutil.get_terminal_size().columns

    def _print_tail_events(self) -> None:
        with self._lock:
            for msg in self._tail_events:
                print(msg, file=self.out)
            _flush(self.out)

    def _print(self) -> None:
        with self._lock:
            if not self._event_ids:
                return
            width = self._width()
            cursor = _UP * (self._num_lines + 1)
            if not self._repeated:
                cursor += _DOWN
            self._repeated = True
            self.out.write(cursor + _COLUMN0)
            self.out.write(_HIDE)
            try:
                done = num_done(self._events)
                first_line = f"[+] Running {done}/{self._num_lines}"
                if self._num_lines != 0 and done == self._num_lines:
                    first_line = _apply(first_line, _BLUE)
                print(first_line, file=self.out)

                status_padding = 0
                for event_id in self._event_ids:
                    event = self._events[event_id]
                    status_padding = max(status_padding, len(f"{event.id} {event.text}"))
                    if event.parent_id:
                        status_padding -= 2

                count = 0
                for event_id in self._event_ids:
                    event = self._events[event_id]
                    if event.parent_id:
                        continue
                    self.out.write(line_text(event, "", width, status_padding, self.color))
                    count += 1
                    for child_id in self._event_ids:
                        child = self._events[child_id]
                        if child.parent_id == event.id:
                            self.out.write(line_text(child, "  ", width, status_padding, self.color))
                            count += 1
                self._num_lines = count
            finally:
                self.out.write(_SHOW)
                _flush(self.out)


def line_text(event: Event, pad: str, terminal_width: int, status_padding: int, color: bool) -> str:
    """Render one event line, with elapsed time aligned to the right."""
    now = time.monotonic()
    start = event.start_time if event.start_time is not None else now
    if event.status == EventStatus.WORKING:
        end = now
    else:
        end = event.end_time if event.end_time is not None else start
    elapsed = end - start

    text_len = len(f"{event.id} {event.text}")
    padding = max(status_padding - text_len, 0)
    # long statuses (errors) would wrap and break the layout
    max_status_len = terminal_width - text_len - status_padding - 15
    status = event.status_text
    if max_status_len > 0 and len(status) > max_status_len:
        status = status[:max_status_len] + "..."
    spinner = str(event.spinner) if event.spinner is not None else ""
    text = f"{pad} {spinner} {event.id} {event.text}{' ' * padding} {status}"
    timer = f"{elapsed:.1f}s\n"
    line = align(text, timer, terminal_width)
    if color:
        return _apply(line, _STATUS_COLORS.get(event.status, _WHITE))
    return line


def num_done(events: Union[Mapping[str, Event], Iterable[Event]]) -> int:
    """Count the events whose status is DONE."""
    values = events.values() if isinstance(events, Mapping) else events
    return sum(1 for e in values if e.status == EventStatus.DONE)


def align(left: str, right: str, width: int) -> str:
    """Pad ``left`` so that ``right`` ends at column ``width``."""
    field_width = abs(width - len(right) - 1)
    return f"{left:<{field_width}} {right}"


_current: contextvars.ContextVar[Optional[Writer]] = contextvars.ContextVar(
    "composekit_progress_writer", default=None
)


@contextlib.contextmanager
def use_writer(writer: Writer) -> Iterator[Writer]:
    """Make ``writer`` the current writer within the block."""
    token = _current.set(writer)
    try:
        yield writer
    finally:
        _current.reset(token)


def current_writer() -> Writer:
    """Return the current writer, or a no-op writer when none is set."""
    writer = _current.get()
    return writer if writer is not None else NoopWriter()


def _is_terminal(out: TextIO) -> bool:
    isatty = getattr(out, "isatty", None)
    try:
        return bool(isatty()) if isatty is not None else False
    except (OSError, ValueError):
        return False


def new_writer(out: TextIO, mode: Optional[Union[ProgressMode, str]] = None) -> Writer:
    """Return a writer suited to ``out`` and the rendering ``mode``.

    A terminal writer needs ``out`` to be a terminal; ValueError otherwise.
    """
    chosen = ProgressMode(mode if mode is not None else default_mode)
    terminal = _is_terminal(out)
    if chosen is ProgressMode.TTY or (chosen is ProgressMode.AUTO and terminal):
        if not terminal:
            raise ValueError("provided file is not a console")
        return TTYWriter(out)
    return PlainWriter(out)


def run_with_status(func: Callable[[], T], out: Optional[TextIO] = None) -> T:
    """Run ``func`` while a progress writer renders; return what it returns.

    Inside ``func`` the writer is available from :func:`current_writer`.
    """
    writer = new_writer(out if out is not None else sys.stderr)
    renderer = threading.Thread(target=writer.start, daemon=True)
    renderer.start()
    try:
        with use_writer(writer):
            return func()
    finally:
        writer.stop()
        renderer.join()


def run(func: Callable[[], Any], out: Optional[TextIO] = None) -> None:
    """Run ``func`` while a progress writer renders."""
    run_with_status(func, out)