"""A byte buffer that is safe to share between threads."""

from __future__ import annotations

import threading
import time
from typing import Union


class SafeBuffer:
    """Thread-safe FIFO byte buffer: writes append, reads consume."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data = bytearray()

    def read(self, size: int = -1) -> bytes:
        """Consume and return up to ``size`` bytes (all when negative)."""
        with self._lock:
            if size is None or size < 0:
                size = len(self._data)
            chunk = bytes(self._data[:size])
            del self._data[:size]
            return chunk

    def write(self, data: Union[bytes, bytearray, memoryview, str]) -> int:
        """Append ``data`` and return the number of items written."""
        chunk = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        with self._lock:
            self._data += chunk
        return len(data)

    def getvalue(self) -> bytes:
        """Return the unread bytes without consuming them."""
        with self._lock:
            return bytes(self._data)

    def text(self) -> str:
        """Return the unread content decoded as UTF-8."""
        return self.getvalue().decode("utf-8", errors="replace")

    def flush(self) -> None:
        """Wait until any write in progress on another thread has completed."""
        self._lock.acquire()
        self._lock.release()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def wait_for(self, needle: str, timeout: float = 2.0, interval: float = 0.02) -> str:
        """Wait until the content written so far contains ``needle``.

        Content is drained from the buffer while waiting. Returns everything
        collected; raises TimeoutError if ``needle`` did not show up in time.
        """
        target = needle.encode("utf-8")
        collected = bytearray()
        deadline = time.monotonic() + timeout
        while True:
            collected += self.read()
            if target in collected:
                return collected.decode("utf-8", errors="replace")
            if time.monotonic() >= deadline:
                break
            time.sleep(interval)
        contents = collected.decode("utf-8", errors="replace")
        raise TimeoutError(
            f"Buffer did not contain {needle!r}\n============\n{contents}\n============"
        )