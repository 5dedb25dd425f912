from __future__ import annotations

"""Frame codec for the GUI RPC wire format.

Every request and reply is one XML document wrapped in an envelope tag and
terminated by a single 0x03 byte. There is no length prefix, so readers buffer
until the delimiter shows up.
"""

import asyncio
import logging

from .element import Element, parse_element
from .errors import ConnectionClosedError, NetworkError

logger = logging.getLogger(__name__)

REQUEST_TAG = "boinc_gui_rpc_request"
REPLY_TAG = "boinc_gui_rpc_reply"
FRAME_DELIMITER = b"\x03"

DEFAULT_READ_SIZE = 4096


def encode_request(operation: Element) -> bytes:
    """Wrap one operation element in the request envelope and terminate it."""
    body = operation.to_xml()
    frame = f"<{REQUEST_TAG}>\n{body}\n</{REQUEST_TAG}>\n"
    return frame.encode("utf-8") + FRAME_DELIMITER


def decode_reply(frame: bytes) -> list[Element]:
    """Parse one reply frame body and return the envelope's children.

    The envelope itself carries no payload. A root other than the reply
    envelope is tolerated with a warning so older daemons still work.
    """
    root = parse_element(frame)
    if root.name != REPLY_TAG:
        logger.warning("reply root is %r, expected %r", root.name, REPLY_TAG)
    return root.children


class FrameDecoder:
    """Accumulate arbitrarily chunked bytes and split out complete frames."""

    def __init__(self) -> None:
        self._in_buffer = b""

    @property
    def pending(self) -> int:
        """Number of buffered bytes that do not yet form a complete frame."""
        return len(self._in_buffer)

    def feed(self, chunk: bytes) -> list[bytes]:
        self._in_buffer += chunk
        frames: list[bytes] = []
        while True:
            end = self._in_buffer.find(FRAME_DELIMITER)
            if end < 0:
                return frames
            frames.append(self._in_buffer[:end])
            self._in_buffer = self._in_buffer[end + 1 :]


async def read_frame(
    reader: asyncio.StreamReader,
    decoder: FrameDecoder,
    *,
    read_size: int = DEFAULT_READ_SIZE,
) -> bytes:
    """Read from `reader` until exactly one frame is complete.

    The protocol is strictly request/reply, so a second frame arriving in the
    same read means the stream is out of step and is reported as a failure.
    """
    while True:
        try:
            chunk = await reader.read(read_size)
        except OSError as exc:
            raise NetworkError(f"socket read failed: {exc}") from exc
        if not chunk:
            raise ConnectionClosedError(
                "connection closed by daemon before frame delimiter"
            )

        frames = decoder.feed(chunk)
        if not frames:
            continue
        if len(frames) > 1 or decoder.pending:
            raise NetworkError("daemon sent data beyond the expected reply frame")
        logger.debug("received frame (%d bytes)", len(frames[0]))
        return frames[0]
