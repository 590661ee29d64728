"""Network messages exchanged between devices and their wire encoding."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Union

from .errors import DeserializeError, EmptyBufferInError, EmptyBufferOutError, SerializeError

MSG_SIZE = 64
NAME_CAPACITY = 16
MENU_BUTTON = 0b10000

_U8_MAX = 0xFF
_U16_MAX = 0xFFFF
_U32_MAX = 0xFFFF_FFFF
_USIZE_MAX = 0xFFFF_FFFF_FFFF_FFFF
_I16_MIN = -0x8000
_I16_MAX = 0x7FFF


@dataclass(frozen=True)
class FullID:
    """The author and app identifiers that name an app."""

    author: str
    app: str

    def __str__(self) -> str:
        return f"{self.author}.{self.app}"


@dataclass(frozen=True)
class InputState:
    """A snapshot of the touch pad and buttons."""

    pad: Optional[tuple[int, int]] = None
    buttons: int = 0

    @property
    def s(self) -> bool:
        return bool(self.buttons & 0b1)

    @property
    def e(self) -> bool:
        return bool(self.buttons & 0b10)

    @property
    def w(self) -> bool:
        return bool(self.buttons & 0b100)

    @property
    def n(self) -> bool:
        return bool(self.buttons & 0b1000)

    @property
    def menu(self) -> bool:
        return bool(self.buttons & MENU_BUTTON)

    def merge(self, other: InputState) -> InputState:
        """Combine two inputs: a button is pressed if pressed in either."""
        pad = self.pad if self.pad is not None else other.pad
        return InputState(pad=pad, buttons=self.buttons | other.buttons)


@dataclass(frozen=True)
class Input:
    """Input as sent over the network."""

    pad: Optional[tuple[int, int]] = None
    buttons: int = 0

    @classmethod
    def from_input_state(cls, state: InputState) -> Input:
        return cls(pad=state.pad, buttons=state.buttons)

    def to_input_state(self) -> InputState:
        return InputState(pad=self.pad, buttons=self.buttons)


class Action(enum.IntEnum):
    """A system action all devices perform instead of rendering the frame."""

    NONE = 0
    RESTART = 1
    EXIT = 2


@dataclass(frozen=True)
class FrameState:
    """The state of one device for one frame."""

    frame: int
    input: Input = field(default_factory=Input)
    rand: int = 0
    action: Action = Action.NONE


@dataclass(frozen=True)
class Intro:
    """A device introducing itself to peers."""

    name: str
    version: int


@dataclass(frozen=True)
class Start:
    """Launch an app, with the sender's app-specific info."""

    id: FullID
    badges: tuple[int, ...] = ()
    scores: tuple[int, ...] = ()
    stash: bytes = b""
    seed: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "badges", tuple(self.badges))
        object.__setattr__(self, "scores", tuple(self.scores))
        object.__setattr__(self, "stash", bytes(self.stash))


@dataclass(frozen=True)
class Ready:
    """The sender accepted the peer list of the given size."""

    peers: int


class ReqKind(enum.IntEnum):
    HELLO = 0
    INTRO = 1
    START = 2
    STATE = 3
    DISCONNECT = 4


@dataclass(frozen=True)
class Req:
    """A request sent unprompted; ``frame`` is used only by STATE requests."""

    kind: ReqKind
    frame: int = 0


Message = Union[Req, Intro, Start, FrameState, Ready]


class _Writer:
    def __init__(self) -> None:
        self.buf = bytearray()

    def _varint(self, value: int) -> None:
        while value >= 0x80:
            self.buf.append((value & 0x7F) | 0x80)
            value >>= 7
        self.buf.append(value)

    def uint(self, value: int, limit: int, what: str) -> None:
        if not 0 <= value <= limit:
            raise SerializeError(f"{what} out of range: {value}")
        self._varint(value)

    def u8(self, value: int) -> None:
        if not 0 <= value <= _U8_MAX:
            raise SerializeError(f"u8 out of range: {value}")
        self.buf.append(value)

    def u16(self, value: int) -> None:
        self.uint(value, _U16_MAX, "u16")

    def u32(self, value: int) -> None:
        self.uint(value, _U32_MAX, "u32")

    def i16(self, value: int) -> None:
        if not _I16_MIN <= value <= _I16_MAX:
            raise SerializeError(f"i16 out of range: {value}")
        self._varint(((value << 1) ^ (value >> 15)) & _U16_MAX)

    def length(self, value: int) -> None:
        self._varint(value)

    def raw(self, data: bytes) -> None:
        self.length(len(data))
        self.buf += data

    def string(self, text: str, capacity: Optional[int] = None) -> None:
        data = text.encode("utf-8")
        if capacity is not None and len(data) > capacity:
            raise SerializeError(f"string longer than {capacity} bytes")
        self.raw(data)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def byte(self) -> int:
        if self._pos >= len(self._data):
            raise DeserializeError("unexpected end of input")
        value = self._data[self._pos]
        self._pos += 1
        return value

    def take(self, count: int) -> bytes:
        end = self._pos + count
        if end > len(self._data):
            raise DeserializeError("unexpected end of input")
        chunk = self._data[self._pos : end]
        self._pos = end
        return chunk

    def uint(self, max_bytes: int, limit: int) -> int:
        result = 0
        for shift in range(0, 7 * max_bytes, 7):
            b = self.byte()
            result |= (b & 0x7F) << shift
            if not b & 0x80:
                if result > limit:
                    raise DeserializeError("bad varint")
                return result
        raise DeserializeError("bad varint")

    def u8(self) -> int:
        return self.byte()

    def u16(self) -> int:
        return self.uint(3, _U16_MAX)

    def u32(self) -> int:
        return self.uint(5, _U32_MAX)

    def i16(self) -> int:
        zig = self.u16()
        return (zig >> 1) ^ -(zig & 1)

    def length(self) -> int:
        return self.uint(10, _USIZE_MAX)

    def raw(self) -> bytes:
        return self.take(self.length())

    def string(self, capacity: Optional[int] = None) -> str:
        data = self.raw()
        if capacity is not None and len(data) > capacity:
            raise DeserializeError(f"string longer than {capacity} bytes")
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as err:
            raise DeserializeError("bad utf-8") from err

    def option_flag(self) -> bool:
        tag = self.byte()
        if tag not in (0, 1):
            raise DeserializeError("bad option")
        return tag == 1


def _write_full_id(w: _Writer, full_id: FullID) -> None:
    w.string(full_id.author)
    w.string(full_id.app)


def _read_full_id(r: _Reader) -> FullID:
    return FullID(author=r.string(), app=r.string())


def _write_frame_state(w: _Writer, state: FrameState) -> None:
    w.u32(state.frame)
    pad = state.input.pad
    if pad is None:
        w.u8(0)
    else:
        w.u8(1)
        x, y = pad
        w.i16(x)
        w.i16(y)
    w.u8(state.input.buttons)
    w.u32(state.rand)
    w.u32(Action(state.action).value)


def _read_frame_state(r: _Reader) -> FrameState:
    frame = r.u32()
    pad = (r.i16(), r.i16()) if r.option_flag() else None
    buttons = r.u8()
    rand = r.u32()
    tag = r.u32()
    try:
        action = Action(tag)
    except ValueError as err:
        raise DeserializeError("bad enum") from err
    return FrameState(frame=frame, input=Input(pad=pad, buttons=buttons), rand=rand, action=action)


def _write_resp(w: _Writer, msg: Message) -> None:
    if isinstance(msg, Intro):
        w.u32(0)
        w.string(msg.name, NAME_CAPACITY)
        w.u16(msg.version)
    elif isinstance(msg, Start):
        w.u32(1)
        _write_full_id(w, msg.id)
        w.length(len(msg.badges))
        for badge in msg.badges:
            w.u16(badge)
        w.length(len(msg.scores))
        for score in msg.scores:
            w.i16(score)
        w.raw(msg.stash)
        w.u32(msg.seed)
    elif isinstance(msg, FrameState):
        w.u32(2)
        _write_frame_state(w, msg)
    elif isinstance(msg, Ready):
        w.u32(3)
        w.u8(msg.peers)
    else:
        raise SerializeError(f"not a message: {msg!r}")


def _read_resp(r: _Reader) -> Message:
    tag = r.u32()
    if tag == 0:
        return Intro(name=r.string(NAME_CAPACITY), version=r.u16())
    if tag == 1:
        full_id = _read_full_id(r)
        badges = tuple(r.u16() for _ in range(r.length()))
        scores = tuple(r.i16() for _ in range(r.length()))
        stash = r.raw()
        return Start(id=full_id, badges=badges, scores=scores, stash=stash, seed=r.u32())
    if tag == 2:
        return _read_frame_state(r)
    if tag == 3:
        return Ready(peers=r.u8())
    raise DeserializeError("bad enum")


def encode_message(msg: Message) -> bytes:
    """Encode a message into its wire form, at most MSG_SIZE bytes long."""
    w = _Writer()
    if isinstance(msg, Req):
        w.u32(0)
        w.u32(ReqKind(msg.kind).value)
        if msg.kind == ReqKind.STATE:
            w.u32(msg.frame)
    else:
        w.u32(1)
        _write_resp(w, msg)
    if len(w.buf) > MSG_SIZE:
        raise SerializeError("serialize buffer full")
    if not w.buf:
        raise EmptyBufferOutError()
    return bytes(w.buf)


def decode_message(data: bytes) -> Message:
    """Decode a message from its wire form.

    The bare advertisement ``HELLO`` decodes as a hello request.
    """
    if not data:
        raise EmptyBufferInError()
    if bytes(data) == b"HELLO":
        return Req(ReqKind.HELLO)
    r = _Reader(data)
    tag = r.u32()
    if tag == 0:
        kind_tag = r.u32()
        try:
            kind = ReqKind(kind_tag)
        except ValueError as err:
            raise DeserializeError("bad enum") from err
        frame = r.u32() if kind == ReqKind.STATE else 0
        return Req(kind, frame)
    if tag == 1:
        return _read_resp(r)
    raise DeserializeError("bad enum")