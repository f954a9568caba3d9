"""A write syncer that buffers writes in memory and flushes them periodically."""

from __future__ import annotations

import threading
from typing import Any, List, Optional

from zaplog.clock import DEFAULT_CLOCK
from zaplog.errors import combine_errors

DEFAULT_BUFFER_SIZE = 256 * 1024
DEFAULT_FLUSH_INTERVAL = 30.0


def _sync(ws: Any) -> None:
    sync = getattr(ws, "sync", None)
    if callable(sync):
        sync()
        return
    flush = getattr(ws, "flush", None)
    if callable(flush):
        flush()


class BufferedWriteSyncer:
    """Buffers writes before passing them on to a wrapped write syncer.

    Data is flushed when the buffer would overflow, every ``flush_interval``
    (seconds or timedelta), on sync() and on stop(). ``size`` defaults to
    256 kB and ``flush_interval`` to 30 seconds. Safe for concurrent use.
    """

    def __init__(
        self,
        ws: Any,
        size: int = 0,
        flush_interval: Any = 0,
        clock: Any = None,
    ) -> None:
        self.ws = ws
        self.size = size
        self.flush_interval = flush_interval
        self.clock = clock
        self._lock = threading.Lock()
        self._initialized = False
        self._stopped = False
        self._buf = bytearray()
        self._capacity = 0
        self._err: Optional[BaseException] = None
        self._ticker: Any = None
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> "BufferedWriteSyncer":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    def _initialize(self) -> None:
        self._capacity = self.size or DEFAULT_BUFFER_SIZE
        interval = self.flush_interval or DEFAULT_FLUSH_INTERVAL
        if self.clock is None:
            self.clock = DEFAULT_CLOCK
        self._ticker = self.clock.new_ticker(interval)
        self._initialized = True
        self._thread = threading.Thread(
            target=self._flush_loop, name="buffered-write-syncer", daemon=True
        )
        self._thread.start()

    def _flush_loop(self) -> None:
        while self._ticker.wait():
            try:
                self.sync()
            except Exception:
                # Write errors are kept and reported by the next sync or stop.
                pass

    def _available(self) -> int:
        return self._capacity - len(self._buf)

    def _write_out(self, data: bytes) -> None:
        try:
            self.ws.write(data)
        except Exception as exc:
            self._err = exc
            raise

    def _flush(self) -> None:
        if self._err is not None:
            raise self._err
        if not self._buf:
            return
        self._write_out(bytes(self._buf))
        self._buf.clear()

    def _buffered_write(self, data: bytes) -> int:
        written = 0
        while len(data) > self._available() and self._err is None:
            if not self._buf:
                # Large writes bypass an empty buffer.
                chunk = len(data)
                self._write_out(data)
            else:
                chunk = self._available()
                self._buf += data[:chunk]
                self._flush()
            written += chunk
            data = data[chunk:]
        if self._err is not None:
            raise self._err
        self._buf += data
        return written + len(data)

    def write(self, data: bytes) -> int:
        """Buffer ``data``; returns the number of bytes accepted.

        A write that does not fit first flushes what is already buffered,
        so that entries are never split across flushes.
        """
        data = bytes(data)
        with self._lock:
            if not self._initialized:
                self._initialize()
            if len(data) > self._available() and self._buf:
                self._flush()
            return self._buffered_write(data)

    def sync(self) -> None:
        """Flush buffered data and sync the wrapped write syncer."""
        with self._lock:
            failures: List[BaseException] = []
            if self._initialized:
                try:
                    self._flush()
                except Exception as exc:
                    failures.append(exc)
            try:
                _sync(self.ws)
            except Exception as exc:
                failures.append(exc)
        err = combine_errors(*failures)
        if err is not None:
            raise err

    def stop(self) -> None:
        """Stop periodic flushing and flush what remains.

        Does nothing if nothing was ever written or if already stopped.
        """
        with self._lock:
            if not self._initialized or self._stopped:
                return
            self._stopped = True
            self._ticker.stop()
        # Joined outside the lock: the flush loop may need it to finish.
        if self._thread is not None:
            self._thread.join()
        self.sync()