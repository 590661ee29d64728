"""A short circular history of per-frame values."""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

T = TypeVar("T")

BUF_SIZE = 5
MAX_DRIFT = BUF_SIZE // 2


class RingBuf(Generic[T]):
    """Keeps a few recent frames and a small look-ahead of frame values.

    Recent frames can be replayed, and frames arriving early are not lost.
    """

    def __init__(self) -> None:
        self.frame = 0
        self._data: list[Optional[tuple[int, T]]] = [None] * BUF_SIZE

    def advance(self) -> None:
        """Move on to the next frame."""
        self.frame += 1

    def insert(self, frame: int, val: T) -> None:
        """Store the value for a frame; frames too far from the current one are dropped."""
        if abs(self.frame - frame) > MAX_DRIFT:
            return
        self._data[frame % BUF_SIZE] = (frame, val)

    def get_current(self) -> Optional[T]:
        """Return the value for the current frame, if known."""
        return self.get(self.frame)

    def get(self, frame: int) -> Optional[T]:
        """Return the value stored for ``frame`` or None if it is unknown or out of range."""
        if abs(self.frame - frame) > MAX_DRIFT:
            return None
        entry = self._data[frame % BUF_SIZE]
        if entry is None or entry[0] != frame:
            return None
        return entry[1]