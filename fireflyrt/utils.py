"""Helpers for draining and filling byte streams."""

from __future__ import annotations

from typing import Protocol

CHUNK_SIZE = 64


class Readable(Protocol):
    def read(self, size: int = -1) -> bytes: ...


class Writable(Protocol):
    def write(self, data: bytes) -> int | None: ...


def read_all(stream: Readable) -> bytes:
    """Read the stream until it is exhausted and return everything read."""
    buf = bytearray()
    read_all_into(stream, buf)
    return bytes(buf)


def read_all_into(stream: Readable, buf: bytearray) -> None:
    """Replace the contents of ``buf`` with everything left in the stream."""
    del buf[:]
    while chunk := stream.read(CHUNK_SIZE):
        buf += chunk


def read_into(stream: Readable, buf: bytearray | memoryview) -> int:
    """Fill ``buf`` from the stream as far as it goes.

    Returns the number of bytes read, which is less than the buffer size
    only if the stream ended first.
    """
    with memoryview(buf) as view:
        total = len(view)
        filled = 0
        while filled < total:
            chunk = stream.read(total - filled)
            if not chunk:
                break
            view[filled : filled + len(chunk)] = chunk
            filled += len(chunk)
    return filled


def write_all(stream: Writable, data: bytes) -> int:
    """Write ``data`` to the stream, retrying partial writes.

    Stops early if the stream accepts nothing. Returns the number of bytes written.
    """
    with memoryview(bytes(data)) as view:
        written = 0
        while written < len(view):
            count = stream.write(view[written:])
            if not count:
                break
            written += count
    return written