import pytest

from fireflyrt.connection import Connection
from fireflyrt.connector import (
    ADVERTISE_EVERY,
    MAX_PEERS,
    ConnectStatus,
    Connector,
    MyInfo,
    PeerInfo,
)
from fireflyrt.errors import DisconnectedError, PeerListFullError
from fireflyrt.message import Intro, Req, ReqKind, decode_message, encode_message


class FakeNet:
    def __init__(self, local=50):
        self.local = local
        self.started = 0
        self.stopped = 0
        self.adverts = 0
        self.sent = []
        self.inbox = []

    def start(self):
        self.started += 1

    def stop(self):
        self.stopped += 1

    def advertise(self):
        self.adverts += 1

    def local_addr(self):
        return self.local

    def send(self, addr, data):
        self.sent.append((addr, data))

    def recv(self):
        if self.inbox:
            return self.inbox.pop(0)
        return None


class FakeDevice:
    def __init__(self):
        self.time = 0
        self.errors = []

    def now(self):
        return self.time

    def log_error(self, tag, msg):
        self.errors.append((tag, msg))


def make(name="alice", version=1):
    net = FakeNet()
    return Connector(MyInfo(name, version), net), net, FakeDevice()


def test_update_starts_once_and_rate_limits_advertising():
    conn, net, dev = make()
    conn.update(dev)
    conn.update(dev)
    assert net.started == 1
    assert net.adverts == 1
    dev.time = ADVERTISE_EVERY
    conn.update(dev)
    assert net.adverts == 2


def test_paused_does_not_advertise():
    conn, net, dev = make()
    conn.pause()
    conn.update(dev)
    assert conn.stopped is True
    assert net.adverts == 0


def test_hello_registers_peer_and_replies_with_intro():
    conn, net, dev = make()
    net.inbox.append((7, b"HELLO"))
    conn.update(dev)
    assert conn.peer_addrs == [7]
    assert len(net.sent) == 1
    addr, raw = net.sent[0]
    assert addr == 7
    assert decode_message(raw) == Intro(name="alice", version=1)


def test_own_invalid_name_sent_as_anonymous():
    conn, net, dev = make(name="Bad Name!")
    net.inbox.append((7, encode_message(Req(ReqKind.INTRO))))
    conn.update(dev)
    assert decode_message(net.sent[0][1]) == Intro(name="anonymous", version=1)
    assert conn.peer_addrs == []


def test_intro_adds_peer_info_once():
    conn, net, dev = make()
    raw = encode_message(Intro(name="bob", version=1))
    net.inbox.extend([(3, raw), (3, raw)])
    conn.update(dev)
    assert conn.peer_infos == [PeerInfo(addr=3, name="bob", version=1)]


def test_intro_with_invalid_name_becomes_anonymous():
    conn, net, dev = make()
    net.inbox.append((3, encode_message(Intro(name="BOB", version=2))))
    conn.update(dev)
    assert conn.peer_infos[0].name == "anonymous"
    assert conn.peer_infos[0].version == 2


def test_intro_ignored_when_paused():
    conn, net, dev = make()
    conn.pause()
    net.inbox.append((3, encode_message(Intro(name="bob", version=1))))
    conn.update(dev)
    assert conn.peer_infos == []


def test_at_most_four_messages_per_update():
    conn, net, dev = make()
    net.inbox.extend((addr, b"HELLO") for addr in range(6))
    conn.update(dev)
    assert conn.peer_addrs == [0, 1, 2, 3]
    assert len(net.inbox) == 2


def test_peer_list_full():
    conn, net, dev = make()
    conn.peer_addrs.extend(range(MAX_PEERS))
    net.inbox.append((99, b"HELLO"))
    with pytest.raises(PeerListFullError):
        conn.update(dev)


def test_disconnect_removes_peer():
    conn, net, dev = make()
    conn.peer_addrs.append(3)
    conn.peer_infos.append(PeerInfo(3, "bob", 1))
    net.inbox.append((3, encode_message(Req(ReqKind.DISCONNECT))))
    conn.update(dev)
    assert conn.peer_addrs == []
    assert conn.peer_infos == []


def test_disconnect_when_stopped_raises_with_name():
    conn, net, dev = make()
    conn.peer_addrs.append(3)
    conn.peer_infos.append(PeerInfo(3, "bob", 1))
    conn.pause()
    net.inbox.append((3, encode_message(Req(ReqKind.DISCONNECT))))
    with pytest.raises(DisconnectedError) as exc:
        conn.update(dev)
    assert exc.value.name == "bob"


def test_disconnect_of_unknown_peer_when_stopped():
    conn, net, dev = make()
    conn.pause()
    net.inbox.append((9, encode_message(Req(ReqKind.DISCONNECT))))
    with pytest.raises(DisconnectedError) as exc:
        conn.update(dev)
    assert exc.value.name == "???"


def test_cancel_notifies_peers_and_stops_network():
    conn, net, dev = make()
    conn.peer_addrs.extend([4, 5])
    conn.cancel()
    assert conn.stopped is True
    assert net.stopped == 1
    assert [addr for addr, _ in net.sent] == [4, 5]
    assert all(decode_message(raw) == Req(ReqKind.DISCONNECT) for _, raw in net.sent)


def test_validate_versions():
    conn, _, _ = make(version=1)
    conn.peer_infos.append(PeerInfo(3, "bob", 1))
    assert conn.validate() is None
    conn.peer_infos.append(PeerInfo(4, "eve", 2))
    with pytest.raises(ValueError, match="incompatible OS versions"):
        conn.validate()


def test_finalize_orders_peers_by_address():
    conn, net, _ = make()
    conn.peer_infos.extend([PeerInfo(80, "carol", 1), PeerInfo(20, "bob", 1)])
    result = conn.finalize()
    assert isinstance(result, Connection)
    assert [p.addr for p in result.peers] == [20, None, 80]
    assert [p.name for p in result.peers] == ["bob", "alice", "carol"]
    assert all(p.intro is None for p in result.peers)
    assert result.net is net
    assert result.app is None


def test_status_starts_unset_and_is_assignable():
    conn, _, _ = make()
    assert conn.status is None
    conn.status = ConnectStatus.FINISHED
    assert conn.status is ConnectStatus.FINISHED