"""Discovery of nearby devices and establishing a multiplayer connection."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Any, Hashable, Optional, Protocol

from .connection import Connection, Peer
from .errors import DisconnectedError, PeerListFullError
from .message import Intro, Message, Req, ReqKind, decode_message, encode_message

MILLISECOND = 1_000_000
ADVERTISE_EVERY = 100 * MILLISECOND
MAX_PEERS = 7
ANONYMOUS = "anonymous"
UNKNOWN_NAME = "???"
INCOMPATIBLE_VERSIONS = "devices have incompatible OS versions; please, update."
# How many incoming messages are handled per update.
_RECV_PER_UPDATE = 4

_NAME_RE = re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*")
_MAX_NAME_LEN = 16


class Device(Protocol):
    def now(self) -> int: ...

    def log_error(self, tag: str, msg: Any) -> None: ...


class Network(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def advertise(self) -> None: ...

    def local_addr(self) -> Hashable: ...

    def send(self, addr: Hashable, data: bytes) -> None: ...

    def recv(self) -> Optional[tuple[Hashable, bytes]]: ...


class ConnectStatus(enum.Enum):
    """What the user decided to do with the connector."""

    STOPPED = "stopped"
    CANCELLED = "cancelled"
    FINISHED = "finished"


@dataclass(frozen=True)
class MyInfo:
    """How the local device introduces itself."""

    name: str
    version: int


@dataclass(frozen=True)
class PeerInfo:
    """A discovered device that introduced itself."""

    addr: Hashable
    name: str
    version: int


def _safe_name(name: str) -> str:
    """Return the name if it is a valid device name, otherwise a placeholder."""
    if len(name.encode("utf-8")) <= _MAX_NAME_LEN and _NAME_RE.fullmatch(name):
        return name
    return ANONYMOUS


class Connector:
    """Finds nearby devices and gathers their intros before going multiplayer.

    Times are integer nanoseconds as returned by ``device.now()``.
    """

    def __init__(self, me: MyInfo, net: Network) -> None:
        self.me = me
        self.net = net
        self.last_advertisement: Optional[int] = None
        self.peer_addrs: list[Hashable] = []
        self.peer_infos: list[PeerInfo] = []
        self.started = False
        self.stopped = False
        self.status: Optional[ConnectStatus] = None

    def pause(self) -> None:
        """Stop announcing and accepting new connections."""
        self.stopped = True

    def cancel(self) -> None:
        """Stop all network operations, telling the known peers we leave."""
        self.stopped = True
        self._send_disconnect()
        self.net.stop()

    def validate(self) -> None:
        """Raise ValueError if some peer runs an incompatible OS version."""
        if any(peer.version != self.me.version for peer in self.peer_infos):
            raise ValueError(INCOMPATIBLE_VERSIONS)

    def finalize(self) -> Connection:
        """Turn the gathered peers into a connection, ordered by address."""
        peers = [Peer(addr=info.addr, name=info.name) for info in self.peer_infos]
        peers.append(Peer(addr=None, name=self.me.name))
        local_addr = self.net.local_addr()
        peers.sort(key=lambda p: local_addr if p.addr is None else p.addr)
        return Connection(peers=peers, net=self.net)

    def update(self, device: Device) -> None:
        """Start the network if needed, advertise and handle incoming messages."""
        if not self.started:
            self.started = True
            self.net.start()
        if not self.stopped:
            self._advertise(device.now())
        for _ in range(_RECV_PER_UPDATE):
            received = self.net.recv()
            if received is None:
                break
            addr, raw = received
            self._handle_message(addr, raw)

    def _advertise(self, now: int) -> None:
        if self.last_advertisement is not None and now - self.last_advertisement < ADVERTISE_EVERY:
            return
        self.last_advertisement = now
        self.net.advertise()

    def _handle_message(self, addr: Hashable, raw: bytes) -> None:
        msg: Message = decode_message(raw)
        if isinstance(msg, Req):
            if msg.kind == ReqKind.HELLO:
                self._handle_hello(addr)
            elif msg.kind == ReqKind.INTRO:
                self._send_intro(addr)
            elif msg.kind == ReqKind.DISCONNECT:
                self._handle_disconnect(addr)
        elif isinstance(msg, Intro):
            self._handle_intro(addr, msg)

    def _handle_hello(self, addr: Hashable) -> None:
        if not self.stopped and addr not in self.peer_addrs:
            if len(self.peer_addrs) >= MAX_PEERS:
                raise PeerListFullError()
            self.peer_addrs.append(addr)
        self._send_intro(addr)

    def _handle_intro(self, addr: Hashable, intro: Intro) -> None:
        if self.stopped:
            return
        if any(info.addr == addr for info in self.peer_infos):
            return
        if len(self.peer_infos) >= MAX_PEERS:
            raise PeerListFullError()
        self.peer_infos.append(PeerInfo(addr=addr, name=_safe_name(intro.name), version=intro.version))

    def _handle_disconnect(self, addr: Hashable) -> None:
        name = UNKNOWN_NAME
        for info in self.peer_infos:
            if info.addr == addr:
                name = info.name
                self.peer_infos.remove(info)
                break
        if addr in self.peer_addrs:
            self.peer_addrs.remove(addr)
        if self.stopped:
            raise DisconnectedError(name)

    def _send_intro(self, addr: Hashable) -> None:
        intro = Intro(name=_safe_name(self.me.name), version=self.me.version)
        self.net.send(addr, encode_message(intro))

    def _send_disconnect(self) -> None:
        raw = encode_message(Req(ReqKind.DISCONNECT))
        for addr in self.peer_addrs:
            self.net.send(addr, raw)