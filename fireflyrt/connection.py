"""The multiplayer connection that lives while the launcher is running."""

from __future__ import annotations

import enum
from contextlib import closing
from dataclasses import dataclass
from typing import Any, Hashable, Optional, Protocol

from .errors import (
    NetcodeError,
    PeerListFullError,
    StashFileError,
    StatsError,
    StatsFileError,
    UnknownPeerError,
)
from .frame_syncer import FrameSyncer, FSPeer
from .message import FullID, Message, Req, ReqKind, Start, decode_message, encode_message
from .utils import read_all, read_into, write_all

MILLISECOND = 1_000_000
SYNC_EVERY = 100 * MILLISECOND
READY_EVERY = 100 * MILLISECOND
START_TIMEOUT = 10_000 * MILLISECOND
MAX_PEERS = 8
MAX_NAME_LEN = 16
# How many incoming messages are handled per update.
_RECV_PER_UPDATE = 4


class Stream(Protocol):
    def read(self, size: int = -1) -> bytes: ...

    def write(self, data: bytes) -> int | None: ...

    def close(self) -> None: ...


class Dir(Protocol):
    """A directory on the device; missing files raise FileNotFoundError."""

    def open_file(self, name: str) -> Stream: ...

    def create_file(self, name: str) -> Stream: ...

    def append_file(self, name: str) -> Stream: ...


class Device(Protocol):
    """The device services a connection needs.

    ``open_dir`` raises OSError (FileNotFoundError if missing);
    ``decode_stats`` raises ValueError for malformed data and returns an object
    with ``badges`` (items having ``done``) and ``scores`` (items having ``me``).
    """

    def now(self) -> int: ...

    def random(self) -> int: ...

    def log_error(self, tag: str, msg: Any) -> None: ...

    def log_debug(self, tag: str, msg: Any) -> None: ...

    def open_dir(self, path: list[str]) -> Dir: ...

    def decode_stats(self, raw: bytes) -> Any: ...


class Network(Protocol):
    def send(self, addr: Hashable, data: bytes) -> None: ...

    def recv(self) -> Optional[tuple[Hashable, bytes]]: ...

    def stop(self) -> None: ...


@dataclass(frozen=True)
class AppIntro:
    """App-specific info a peer shares before launching the app."""

    badges: tuple[int, ...] = ()
    scores: tuple[int, ...] = ()
    stash: bytes = b""
    seed: int = 0


@dataclass
class Peer:
    """A connected device; ``addr`` is None for the local device."""

    addr: Optional[Hashable]
    name: str
    intro: Optional[AppIntro] = None

    @property
    def ready(self) -> bool:
        """True when the peer is ready to start the chosen app."""
        return self.intro is not None


class ConnectionStatus(enum.Enum):
    WAITING = "waiting"
    READY = "ready"
    LAUNCHING = "launching"
    TIMEOUT = "timeout"


@dataclass
class Connection:
    """Keeps devices connected in the launcher and launches an app for everyone.

    Times are integer nanoseconds as returned by ``device.now()``.
    """

    peers: list[Peer]
    net: Network
    app: Optional[FullID] = None
    seed: Optional[int] = None
    last_sync: Optional[int] = None
    last_ready: Optional[int] = None
    started_at: Optional[int] = None

    def __post_init__(self) -> None:
        self.peers = list(self.peers)
        if len(self.peers) > MAX_PEERS:
            raise PeerListFullError()

    def update(self, device: Device) -> ConnectionStatus:
        """Exchange messages with peers and report how far the launch got."""
        if self.started_at is not None and device.now() - self.started_at > START_TIMEOUT:
            # Report the timeout only once.
            self.started_at = None
            return ConnectionStatus.TIMEOUT
        try:
            self._update_inner(device)
        except NetcodeError as err:
            device.log_error("netcode", err)
        if all(peer.ready for peer in self.peers):
            return ConnectionStatus.LAUNCHING
        return ConnectionStatus.WAITING if self.app is None else ConnectionStatus.READY

    def disconnect(self) -> None:
        """Leave multiplayer."""
        self.net.stop()

    def set_app(self, device: Device, app: FullID) -> None:
        """Pick the app to launch and announce it; a second pick is ignored."""
        if self.app is not None:
            return
        seed = self._get_seed(device)
        intro = make_intro(device, app, seed)
        self._broadcast(self._start_message(app, intro))
        self.app = app
        self.started_at = device.now()
        self._get_me().intro = intro

    def finalize(self, device: Device) -> FrameSyncer:
        """Turn the connection into a frame syncer for the launched app."""
        if self.app is None or self.seed is None:
            raise ValueError("no app has been chosen")
        peers = []
        shared_seed = 0
        for peer in self.peers:
            intro = peer.intro
            if intro is None:
                raise ValueError(f"peer {peer.name} is not ready")
            friend_id = None if peer.addr is None else get_friend_id(device, peer.name)
            peers.append(
                FSPeer(
                    addr=peer.addr,
                    name=peer.name,
                    friend_id=friend_id,
                    badges=intro.badges,
                    scores=intro.scores,
                    stash=intro.stash,
                )
            )
            shared_seed ^= intro.seed
        return FrameSyncer(
            peers=peers,
            net=self.net,
            app=self.app,
            device_seed=self.seed,
            shared_seed=shared_seed,
        )

    def _get_seed(self, device: Device) -> int:
        """The startup seed, fetched from the true RNG once and cached."""
        if self.seed is None:
            self.seed = device.random()
        return self.seed

    def _update_inner(self, device: Device) -> None:
        now = device.now()
        self._sync(now)
        self._send_ready(now)
        for _ in range(_RECV_PER_UPDATE):
            received = self.net.recv()
            if received is None:
                break
            addr, raw = received
            self._handle_message(device, addr, raw)

    def _sync(self, now: int) -> None:
        """Ask other devices whether they already started."""
        if self.last_sync is not None and now - self.last_sync < SYNC_EVERY:
            return
        self.last_sync = now
        self._broadcast(Req(ReqKind.START))

    def _send_ready(self, now: int) -> None:
        """Tell other devices we are ready, once the app to launch is known."""
        if self.app is None:
            return
        if self.last_ready is not None and now - self.last_ready < READY_EVERY:
            return
        self.last_ready = now
        intro = self._get_me().intro
        if intro is None:
            raise LookupError("the local device has no intro")
        self._broadcast(self._start_message(self.app, intro))

    def _get_me(self) -> Peer:
        for peer in self.peers:
            if peer.addr is None:
                return peer
        raise LookupError("could not find the current device in the list of peers")

    def _get_peer(self, addr: Hashable) -> Optional[Peer]:
        return next((p for p in self.peers if p.addr is not None and p.addr == addr), None)

    def _handle_message(self, device: Device, addr: Hashable, raw: bytes) -> None:
        if not any(peer.addr == addr for peer in self.peers):
            raise UnknownPeerError()
        msg: Message = decode_message(raw)
        if isinstance(msg, Req):
            if msg.kind == ReqKind.START:
                self._handle_start_req(addr)
        elif isinstance(msg, Start):
            self._handle_start_resp(device, msg, addr)

    def _handle_start_req(self, addr: Hashable) -> None:
        """Answer a peer asking whether we are ready to start an app."""
        if self.app is None:
            return
        intro = self._get_me().intro
        if intro is None:
            return
        self.net.send(addr, encode_message(self._start_message(self.app, intro)))

    def _handle_start_resp(self, device: Device, start: Start, addr: Hashable) -> None:
        """A peer is ready to start an app: pick the same app and remember its intro."""
        self.set_app(device, start.id)
        peer = self._get_peer(addr)
        if peer is not None:
            peer.intro = AppIntro(
                badges=start.badges,
                scores=start.scores,
                stash=start.stash,
                seed=start.seed,
            )

    def _broadcast(self, msg: Message) -> None:
        raw = encode_message(msg)
        for peer in self.peers:
            if peer.addr is not None:
                self.net.send(peer.addr, raw)

    @staticmethod
    def _start_message(app: FullID, intro: AppIntro) -> Start:
        return Start(
            id=app,
            badges=intro.badges,
            scores=intro.scores,
            stash=intro.stash,
            seed=intro.seed,
        )


def _append_friend(stream: Stream, name: bytes) -> None:
    with closing(stream):
        stream.write(bytes([len(name)]))
        write_all(stream, name)


def get_friend_id(device: Device, device_name: str) -> Optional[int]:
    """The index of the device in the friends list, adding it if it is new."""
    name = device_name.encode("utf-8")
    if len(name) > MAX_NAME_LEN:
        return None
    try:
        sys_dir = device.open_dir(["sys"])
    except OSError:
        return None
    try:
        stream = sys_dir.open_file("friends")
    except OSError:
        try:
            _append_friend(sys_dir.create_file("friends"), name)
        except OSError:
            return None
        return 1

    index = 1
    with closing(stream):
        while True:
            try:
                head = stream.read(1)
            except OSError:
                break
            if not head:
                break
            size = head[0]
            if size == 0:
                continue
            entry = bytearray(size)
            try:
                read_into(stream, entry)
            except OSError:
                return None
            if bytes(entry) == name:
                return index
            index += 1

    try:
        _append_friend(sys_dir.append_file("friends"), name)
    except OSError:
        return None
    return index + 1


def make_intro(device: Device, app_id: FullID, seed: int) -> AppIntro:
    """Collect the local badges, scores and stash of the app into an intro."""
    try:
        app_dir = device.open_dir(["data", app_id.author, app_id.app])
    except OSError as err:
        raise StashFileError(err) from err

    try:
        with closing(app_dir.open_file("stash")) as stream:
            stash = read_all(stream)
    except FileNotFoundError:
        stash = b""
    except OSError as err:
        raise StashFileError(err) from err

    try:
        stream = app_dir.open_file("stats")
    except FileNotFoundError:
        return AppIntro(stash=stash, seed=seed)
    except OSError as err:
        raise StatsFileError(err) from err
    try:
        with closing(stream):
            raw = read_all(stream)
    except OSError as err:
        raise StatsError("cannot read stats file") from err
    if not raw:
        raise StatsError("file is empty")
    try:
        stats = device.decode_stats(raw)
    except ValueError as err:
        raise StatsError("cannot decode stats") from err

    return AppIntro(
        badges=tuple(badge.done for badge in stats.badges),
        scores=tuple(score.me[0] for score in stats.scores),
        stash=stash,
        seed=seed,
    )