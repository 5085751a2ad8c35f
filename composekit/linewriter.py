"""A writer that joins written chunks and hands complete lines to a consumer."""

from __future__ import annotations

from typing import Callable, Union

Data = Union[bytes, bytearray, memoryview, str]


class SplitWriter:
    """Collects written data and calls ``consumer`` once per complete line.

    Lines are passed without their trailing newline. Whatever is left
    unterminated is passed on :meth:`close`.
    """

    def __init__(self, consumer: Callable[[str], None]) -> None:
        self._consumer = consumer
        self._buffer = bytearray()

    def write(self, data: Data) -> int:
        """Append ``data`` and emit every complete line; return its length."""
        chunk = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self._buffer += chunk
        while (index := self._buffer.find(b"\n")) >= 0:
            line = bytes(self._buffer[:index])
            del self._buffer[: index + 1]
            self._consumer(line.decode("utf-8", errors="replace"))
        return len(data)

    def close(self) -> None:
        """Emit any remaining partial line."""
        if not self._buffer:
            return
        rest = bytes(self._buffer)
        self._buffer.clear()
        self._consumer(rest.decode("utf-8", errors="replace"))

    def __enter__(self) -> "SplitWriter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def get_writer(consumer: Callable[[str], None]) -> SplitWriter:
    """Return a writer that splits its input by line and feeds ``consumer``."""
    return SplitWriter(consumer)