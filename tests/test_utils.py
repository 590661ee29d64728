import io

from fireflyrt.utils import read_all, read_all_into, read_into, write_all


class TrickleReader:
    """A stream that hands out at most ``step`` bytes per read."""

    def __init__(self, data, step):
        self._data = bytes(data)
        self._step = step

    def read(self, size=-1):
        n = self._step if size < 0 else min(size, self._step)
        chunk, self._data = self._data[:n], self._data[n:]
        return chunk


class TrickleWriter:
    def __init__(self, step, capacity=None):
        self.data = bytearray()
        self._step = step
        self._capacity = capacity

    def write(self, chunk):
        n = self._step
        if self._capacity is not None:
            n = min(n, self._capacity - len(self.data))
        part = bytes(chunk[:n])
        self.data += part
        return len(part)


def test_read_all():
    given = bytes([1, 2, 3, 4])
    assert read_all(io.BytesIO(given)) == given


def test_read_all_many_chunks():
    given = bytes(range(256)) * 3
    assert read_all(TrickleReader(given, 7)) == given


def test_read_all_empty():
    assert read_all(io.BytesIO(b"")) == b""


def test_read_all_into_replaces_buffer():
    buf = bytearray(b"old contents")
    read_all_into(io.BytesIO(b"new"), buf)
    assert buf == bytearray(b"new")


def test_read_into_fills_buffer():
    buf = bytearray(5)
    n = read_into(TrickleReader(b"abcdefgh", 2), buf)
    assert n == 5
    assert buf == bytearray(b"abcde")


def test_read_into_short_stream():
    buf = bytearray(10)
    n = read_into(io.BytesIO(b"xyz"), buf)
    assert n == 3
    assert buf[:3] == bytearray(b"xyz")
    assert buf[3:] == bytearray(7)


def test_write_all_partial_writes():
    sink = TrickleWriter(3)
    data = b"hello world"
    assert write_all(sink, data) == len(data)
    assert bytes(sink.data) == data


def test_write_all_stops_when_stream_full():
    sink = TrickleWriter(4, capacity=6)
    assert write_all(sink, b"0123456789") == 6
    assert bytes(sink.data) == b"012345"