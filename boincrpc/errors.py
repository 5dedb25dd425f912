from __future__ import annotations

"""Typed failures raised by the GUI RPC session, transport and reply checks."""


class RpcError(RuntimeError):
    """Base class for every failure surfaced by this package."""


class ConnectError(RpcError):
    """Raised when the TCP connection to the daemon cannot be opened."""


class NetworkError(RpcError):
    """Raised when I/O fails on an established connection."""


class ConnectionClosedError(NetworkError):
    """Raised when the daemon closes the stream before a frame completes."""


class DataParseError(RpcError):
    """Raised for malformed frames and replies that lack the requested data."""


class AuthError(RpcError):
    """Raised when the daemon rejects or requires authentication."""


class StatusError(RpcError):
    """Raised when a reply carries a numeric ``<status>`` code."""

    def __init__(self, code: int) -> None:
        super().__init__(f"daemon returned status {code}")
        self.code = code


class InvalidURLError(RpcError):
    """Raised when the daemon reports a missing or invalid URL."""


class AlreadyAttachedError(RpcError):
    """Raised when the daemon is already attached to the requested project."""


class NullStateError(RpcError):
    """Raised on internal state violations; these indicate a bug, not bad input."""
