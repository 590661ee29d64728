"""Errors raised by the multiplayer netcode."""

from __future__ import annotations

from typing import Any


class NetcodeError(Exception):
    """Base class of all netcode errors."""


class SerializeError(NetcodeError):
    def __init__(self, cause: Any) -> None:
        self.cause = cause
        super().__init__(f"serialization error: {cause}")


class DeserializeError(NetcodeError):
    def __init__(self, cause: Any) -> None:
        self.cause = cause
        super().__init__(f"deserialization error: {cause}")


class NetworkError(NetcodeError):
    def __init__(self, cause: Any) -> None:
        self.cause = cause
        super().__init__(f"network error: {cause}")


class EmptyBufferInError(NetcodeError):
    def __init__(self) -> None:
        super().__init__("received empty message")


class EmptyBufferOutError(NetcodeError):
    def __init__(self) -> None:
        super().__init__("serializer produced empty message")


class PeerListFullError(NetcodeError):
    def __init__(self) -> None:
        super().__init__("cannot connect more devices")


class UnknownPeerError(NetcodeError):
    def __init__(self) -> None:
        super().__init__("received message from unknown peer")


class FrameTimeoutError(NetcodeError):
    def __init__(self) -> None:
        super().__init__("timed out waiting for frame state")


class UnexpectedRequestError(NetcodeError):
    def __init__(self) -> None:
        super().__init__("unexpected request")


class DisconnectedError(NetcodeError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"device disconnected: {name}")


class StatsError(NetcodeError):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class StatsFileError(NetcodeError):
    def __init__(self, cause: Any) -> None:
        self.cause = cause
        super().__init__(f"cannot open stats file: {cause}")


class StashFileError(NetcodeError):
    def __init__(self, cause: Any) -> None:
        self.cause = cause
        super().__init__(f"cannot open stash file: {cause}")