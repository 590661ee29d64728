"""Frame-by-frame state synchronisation between devices in a multiplayer game."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Hashable, Optional, Protocol

from .errors import FrameTimeoutError, NetcodeError, PeerListFullError, UnexpectedRequestError, UnknownPeerError
from .message import (
    Action,
    FrameState,
    FullID,
    InputState,
    Message,
    Req,
    ReqKind,
    Start,
    decode_message,
    encode_message,
)
from .ring import RingBuf

if TYPE_CHECKING:
    from .connection import Connection

SECOND = 1_000_000_000
SYNC_EVERY = 2 * SECOND
FRAME_TIMEOUT = 5 * SECOND
FIRST_TIMEOUT = 10 * SECOND
MAX_PEERS = 8
# How many incoming messages are handled per update.
_RECV_PER_UPDATE = 4


class Device(Protocol):
    def now(self) -> int: ...

    def log_error(self, tag: str, msg: Any) -> None: ...

    def log_debug(self, tag: str, msg: Any) -> None: ...


class Network(Protocol):
    def send(self, addr: Hashable, data: bytes) -> None: ...

    def recv(self) -> Optional[tuple[Hashable, bytes]]: ...


@dataclass
class FSPeer:
    """A device taking part in the game; ``addr`` is None for the local device."""

    addr: Optional[Hashable]
    name: str
    friend_id: Optional[int] = None
    states: RingBuf[FrameState] = field(default_factory=RingBuf)
    badges: tuple[int, ...] = ()
    scores: tuple[int, ...] = ()
    stash: bytes = b""


@dataclass
class FrameSyncer:
    """Keeps the frame states of all peers in step while an app runs.

    Times are integer nanoseconds as returned by ``device.now()``.
    """

    peers: list[FSPeer]
    net: Network
    app: FullID
    device_seed: int = 0
    shared_seed: int = 0
    frame: int = 0
    last_sync: Optional[int] = None
    last_advance: Optional[int] = None

    def __post_init__(self) -> None:
        self.peers = list(self.peers)
        if len(self.peers) > MAX_PEERS:
            raise PeerListFullError()

    def ready(self) -> bool:
        """True if the state of the current frame is known for every peer."""
        return all(peer.states.get_current() is not None for peer in self.peers)

    def into_connection(self) -> Connection:
        """Turn back into a connection so that another app can be launched."""
        from .connection import Connection, Peer

        peers = [Peer(addr=peer.addr, name=peer.name, intro=None) for peer in self.peers]
        return Connection(peers=peers, net=self.net)

    def get_combined_input(self) -> InputState:
        """Input of all peers combined: a button is pressed if any peer presses it."""
        combined = InputState()
        for peer in self.peers:
            state = peer.states.get_current()
            if state is not None:
                combined = combined.merge(state.input.to_input_state())
        return combined

    def get_seed(self) -> int:
        """The combined random seed of all peers, never zero."""
        seed = 0
        for peer in self.peers:
            state = peer.states.get_current()
            if state is not None:
                seed ^= state.rand
        return seed or 1

    def update(self, device: Device) -> None:
        """Exchange messages with peers.

        Raises FrameTimeoutError if the peers took too long to send their states.
        Other network problems are logged.
        """
        if self.last_advance is None:
            raise RuntimeError("advance must be called before update")
        timeout = FIRST_TIMEOUT if self.frame <= 2 else FRAME_TIMEOUT
        if device.now() - self.last_advance > timeout:
            raise FrameTimeoutError()
        try:
            self._update_inner(device)
        except NetcodeError as err:
            device.log_error("netcode", err)

    def get_action(self) -> Action:
        """The system action requested by any peer, once all peers' states are known."""
        action = Action.NONE
        for peer in self.peers:
            state = peer.states.get_current()
            if state is None:
                return Action.NONE
            if state.action != Action.NONE:
                action = state.action
        return action

    def advance(self, device: Device, state: FrameState) -> None:
        """Go to the next frame and set (and broadcast) the local state for the frame after it."""
        self.frame += 1
        for peer in self.peers:
            peer.states.advance()

        if self.frame == 1:
            first = dataclasses.replace(state, frame=1)
            self._set_my_state(first)
            self._broadcast_state(device, first)
        state = dataclasses.replace(state, frame=self.frame + 1)
        self._set_my_state(state)
        self._broadcast_state(device, state)
        self.last_advance = device.now()

    def _set_my_state(self, state: FrameState) -> None:
        me = self._get_me()
        me.states.insert(state.frame, state)

    def _broadcast_state(self, device: Device, state: FrameState) -> None:
        try:
            raw = encode_message(state)
        except NetcodeError as err:
            device.log_error("netcode", err)
            return
        for peer in self.peers:
            if peer.addr is None:
                continue
            try:
                self.net.send(peer.addr, raw)
            except NetcodeError as err:
                device.log_error("netcode", err)
        self.last_sync = device.now()

    def _update_inner(self, device: Device) -> None:
        for _ in range(_RECV_PER_UPDATE):
            received = self.net.recv()
            if received is None:
                break
            addr, raw = received
            self._handle_message(addr, raw)
        self._sync(device)

    def _sync(self, device: Device) -> None:
        """Ask every peer whose current state is unknown to send it."""
        now = device.now()
        if self.last_sync is not None and now - self.last_sync < SYNC_EVERY:
            return
        device.log_debug("netcode", "requesting sync")
        self.last_sync = now
        raw = encode_message(Req(ReqKind.STATE, self.frame))
        for peer in self.peers:
            if peer.addr is None:
                continue
            if peer.states.get_current() is None:
                self.net.send(peer.addr, raw)

    def _handle_message(self, addr: Hashable, raw: bytes) -> None:
        if not any(peer.addr == addr for peer in self.peers):
            raise UnknownPeerError()
        msg: Message = decode_message(raw)
        if isinstance(msg, Req):
            self._handle_req(addr, msg)
        else:
            self._handle_resp(addr, msg)

    def _handle_req(self, addr: Hashable, req: Req) -> None:
        if req.kind == ReqKind.STATE:
            self._handle_state_req(addr, req.frame)
        elif req.kind == ReqKind.START:
            self._handle_start_req(addr)
        else:
            raise UnexpectedRequestError()

    def _handle_start_req(self, addr: Hashable) -> None:
        me = self._get_me()
        resp = Start(
            id=self.app,
            badges=me.badges,
            scores=me.scores,
            stash=me.stash,
            seed=self.device_seed,
        )
        self.net.send(addr, encode_message(resp))

    def _handle_state_req(self, addr: Hashable, frame: int) -> None:
        state = self._get_me().states.get(frame)
        if state is not None:
            self.net.send(addr, encode_message(state))

    def _handle_resp(self, addr: Hashable, resp: Message) -> None:
        if not isinstance(resp, FrameState):
            return
        for peer in self.peers:
            if peer.addr == addr:
                peer.states.insert(resp.frame, resp)

    def _get_me(self) -> FSPeer:
        for peer in self.peers:
            if peer.addr is None:
                return peer
        raise LookupError("the list of peers doesn't have the local device")