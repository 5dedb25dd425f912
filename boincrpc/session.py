from __future__ import annotations

"""One authenticated TCP session with a GUI RPC daemon.

A session owns a single socket and serves one request at a time; the protocol
carries no correlation id, so callers must serialize access (the `Transport`
does). Any failure closes the socket for good and the session is never
reused.
"""

import asyncio
import logging

from .auth import compute_nonce_hash
from .config import Endpoint
from .element import Element, text_element
from .errors import AuthError, ConnectError, DataParseError, NetworkError
from .wire import FrameDecoder, decode_reply, encode_request, read_frame

logger = logging.getLogger(__name__)


class DaemonSession:
    """Socket transport and handshake for the framed XML protocol."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        endpoint: Endpoint | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._reader = reader
        self._writer = writer
        self._decoder = FrameDecoder()
        self._broken = False
        self.authenticated = False

    @classmethod
    async def connect(cls, endpoint: Endpoint) -> DaemonSession:
        """Open a connection to `endpoint` and authenticate when a password is set."""
        logger.debug("connecting to %s", endpoint.address)
        try:
            reader, writer = await asyncio.open_connection(endpoint.host, endpoint.port)
        except OSError as exc:
            raise ConnectError(f"failed to connect to {endpoint.address}: {exc}") from exc

        session = cls(reader, writer, endpoint=endpoint)
        if endpoint.password is None:
            return session

        try:
            await session._authenticate(endpoint.password)
        except BaseException:
            await session.close()
            raise
        return session

    @property
    def closed(self) -> bool:
        return self._broken

    async def _authenticate(self, password: str) -> None:
        if self.authenticated:
            return

        reply = await self.query(Element("auth1"))
        nonce_node = _find_last(reply, "nonce")
        if nonce_node is None or nonce_node.any_text is None:
            if _find_last(reply, "unauthorized") is not None:
                raise AuthError("daemon refused to issue an authentication nonce")
            raise DataParseError("auth1 reply did not contain a nonce")

        request = Element("auth2")
        request.append(text_element("nonce_hash", compute_nonce_hash(nonce_node.any_text, password)))
        reply = await self.query(request)

        if _find_last(reply, "unauthorized") is not None:
            raise AuthError("invalid password")
        if _find_last(reply, "authorized") is None:
            raise AuthError("daemon did not confirm authorization")
        self.authenticated = True
        logger.debug("authenticated with %s", self.endpoint.address if self.endpoint else "daemon")

    async def query(self, request: Element) -> list[Element]:
        """Send one operation and return the children of the matching reply."""
        if self._broken:
            raise NetworkError("session is closed")

        # Nothing has touched the socket yet if the request cannot be framed.
        payload = encode_request(request)
        try:
            await self._send_all(payload)
            frame = await read_frame(self._reader, self._decoder)
            return decode_reply(frame)
        except BaseException:
            # A half-written request or half-read reply cannot be resynchronized.
            self._abort()
            raise

    async def _send_all(self, payload: bytes) -> None:
        logger.debug("sending frame (%d bytes)", len(payload))
        try:
            self._writer.write(payload)
            await self._writer.drain()
        except OSError as exc:
            raise NetworkError(f"socket write failed: {exc}") from exc

    def _abort(self) -> None:
        self._broken = True
        self._writer.close()

    async def close(self) -> None:
        if self._writer.is_closing():
            self._broken = True
            return
        self._broken = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError:
            pass


def _find_last(children: list[Element], name: str) -> Element | None:
    found = None
    for child in children:
        if child.name == name:
            found = child
    return found
