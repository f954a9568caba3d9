import io
import threading
from datetime import timedelta

import pytest

from zaplog.buffered_write_syncer import BufferedWriteSyncer


class FailWriter:
    def write(self, data):
        raise OSError("failed")

    def sync(self):
        pass


class CountingWriter:
    def __init__(self):
        self.data = bytearray()
        self.syncs = 0

    def write(self, data):
        self.data += data
        return len(data)

    def sync(self):
        self.syncs += 1


class MockTicker:
    def __init__(self, interval):
        self.interval = interval
        self._cond = threading.Condition()
        self._pending = False
        self._busy = False
        self._stopped = False

    def wait(self, timeout=None):
        with self._cond:
            self._busy = False
            self._cond.notify_all()
            while not self._pending and not self._stopped:
                self._cond.wait()
            if self._stopped:
                return False
            self._pending = False
            self._busy = True
            return True

    def stop(self):
        with self._cond:
            self._stopped = True
            self._cond.notify_all()

    def fire(self):
        with self._cond:
            self._pending = True
            self._cond.notify_all()
            self._cond.wait_for(lambda: not self._pending and not self._busy, timeout=5)


class MockClock:
    def __init__(self):
        self.tickers = []
        self.elapsed = timedelta(0)

    def now(self):
        return self.elapsed

    def new_ticker(self, interval):
        ticker = MockTicker(interval)
        self.tickers.append(ticker)
        return ticker

    def add(self, delta):
        self.elapsed += delta
        for ticker in self.tickers:
            if delta >= ticker.interval:
                ticker.fire()


def write_foo(ws):
    assert ws.write(b"foo") == 3


def test_sync_flushes():
    buf = io.BytesIO()
    ws = BufferedWriteSyncer(buf)
    write_foo(ws)
    assert buf.getvalue() == b""
    ws.sync()
    assert buf.getvalue() == b"foo"
    ws.stop()
    assert buf.getvalue() == b"foo"


def test_stop_flushes():
    buf = io.BytesIO()
    ws = BufferedWriteSyncer(buf)
    write_foo(ws)
    assert buf.getvalue() == b""
    ws.stop()
    assert buf.getvalue() == b"foo"


def test_stop_races_with_flush():
    buf = io.BytesIO()
    ws = BufferedWriteSyncer(buf, flush_interval=0.001)
    write_foo(ws)
    ws.stop()
    assert buf.getvalue() == b"foo"


def test_stop_twice():
    ws = BufferedWriteSyncer(FailWriter())
    write_foo(ws)
    with pytest.raises(OSError, match="failed"):
        ws.stop()
    assert ws.stop() is None


def test_wrap_twice():
    buf = io.BytesIO()
    inner = BufferedWriteSyncer(buf)
    ws = BufferedWriteSyncer(inner)
    write_foo(ws)
    assert buf.getvalue() == b""
    ws.sync()
    assert buf.getvalue() == b"foo"
    ws.stop()
    inner.stop()
    assert buf.getvalue() == b"foo"


def test_small_buffer():
    buf = io.BytesIO()
    ws = BufferedWriteSyncer(buf, size=5)
    write_foo(ws)
    assert buf.getvalue() == b""
    write_foo(ws)
    assert buf.getvalue() == b"foo"
    ws.stop()
    assert buf.getvalue() == b"foofoo"


def test_large_write_to_empty_buffer_goes_straight_through():
    buf = io.BytesIO()
    ws = BufferedWriteSyncer(buf, size=2)
    assert ws.write(b"abcdef") == 6
    assert buf.getvalue() == b"abcdef"
    ws.stop()
    assert buf.getvalue() == b"abcdef"


def test_flush_error():
    ws = BufferedWriteSyncer(FailWriter(), size=4)
    assert ws.write(b"foo") == 3
    with pytest.raises(OSError):
        ws.write(b"foo")
    with pytest.raises(OSError):
        ws.stop()


def test_flush_timer():
    buf = io.BytesIO()
    clock = MockClock()
    ws = BufferedWriteSyncer(
        buf, size=6, flush_interval=timedelta(microseconds=1), clock=clock
    )
    write_foo(ws)
    clock.add(timedelta(microseconds=10))
    assert buf.getvalue() == b"foo"

    write_foo(ws)
    clock.add(timedelta(microseconds=10))
    assert buf.getvalue() == b"foofoo"
    ws.stop()
    assert buf.getvalue() == b"foofoo"


def test_stop_without_write_does_nothing():
    writer = CountingWriter()
    ws = BufferedWriteSyncer(writer)
    ws.stop()
    assert writer.syncs == 0
    assert writer.data == b""


def test_sync_without_write_syncs_wrapped():
    writer = CountingWriter()
    ws = BufferedWriteSyncer(writer)
    ws.sync()
    assert writer.syncs == 1
    assert writer.data == b""


def test_context_manager_stops():
    writer = CountingWriter()
    with BufferedWriteSyncer(writer) as ws:
        write_foo(ws)
        assert writer.data == b""
    assert writer.data == b"foo"
    assert writer.syncs == 1