from __future__ import annotations

import hashlib
import socket
import threading
import time
from typing import Callable, Iterator, Mapping, Union

import pytest

from boincrpc.element import Element, parse_element

Reply = Union[str, bytes, None]
Handler = Callable[[Element], Reply]


def wrap_reply(body: str) -> bytes:
    return f"<boinc_gui_rpc_reply>\n{body}\n</boinc_gui_rpc_reply>\n\x03".encode("utf-8")


class FakeDaemon(threading.Thread):
    """Loopback TCP server speaking the framed GUI RPC protocol.

    `replies` maps operation names to reply bodies (wrapped in the reply
    envelope), raw bytes (sent verbatim) or None (drop the connection).
    """

    def __init__(
        self,
        replies: Mapping[str, Reply] | Handler,
        *,
        password: str | None = None,
        require_auth: bool = False,
        nonce: str = "1700000000.123456",
        hangup_on: set[str] | None = None,
        chunk_size: int | None = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(daemon=True)
        if callable(replies):
            self.handler: Handler = replies
        else:
            table = dict(replies)
            self.handler = lambda op: table.get(op.name, "<error>unknown operation</error>")
        self.password = password
        self.require_auth = require_auth or password is not None
        self.nonce = nonce
        self.hangup_on = hangup_on or set()
        self.chunk_size = chunk_size
        self.delay = delay

        self.requests: list[Element] = []
        self.connections = 0
        self.pipelined = False
        self.error: Exception | None = None

        self._stop_event = threading.Event()
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(4)
        self._listener.settimeout(0.1)
        self.port = self._listener.getsockname()[1]

    @property
    def operation_names(self) -> list[str]:
        return [op.name for op in self.requests]

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> None:
        try:
            while not self._stop_event.is_set():
                try:
                    conn, _ = self._listener.accept()
                except socket.timeout:
                    continue
                self.connections += 1
                with conn:
                    try:
                        self._serve(conn)
                    except OSError:
                        # The client may drop the connection mid-reply.
                        pass
        except Exception as exc:  # pragma: no cover - test helper diagnostics
            self.error = exc
        finally:
            self._listener.close()

    def _send(self, conn: socket.socket, payload: bytes) -> None:
        if not self.chunk_size:
            conn.sendall(payload)
            return
        for start in range(0, len(payload), self.chunk_size):
            conn.sendall(payload[start : start + self.chunk_size])
            time.sleep(0.001)

    def _serve(self, conn: socket.socket) -> None:
        conn.settimeout(0.1)
        buffer = b""
        authorized = False
        nonce_sent = False
        while not self._stop_event.is_set():
            try:
                chunk = conn.recv(4096)
            except socket.timeout:
                continue
            except OSError:
                return
            if not chunk:
                return
            buffer += chunk
            while b"\x03" in buffer:
                frame, buffer = buffer.split(b"\x03", 1)
                if buffer:
                    self.pipelined = True
                envelope = parse_element(frame)
                op = envelope.children[0]
                self.requests.append(op)

                if op.name == "auth1":
                    nonce_sent = True
                    self._send(conn, wrap_reply(f"<nonce>{self.nonce}</nonce>"))
                    continue
                if op.name == "auth2":
                    expected = hashlib.md5(
                        (self.nonce + (self.password or "")).encode("utf-8")
                    ).hexdigest()
                    hash_node = op.find("nonce_hash")
                    if nonce_sent and hash_node is not None and hash_node.text == expected:
                        authorized = True
                        self._send(conn, wrap_reply("<authorized/>"))
                    else:
                        self._send(conn, wrap_reply("<unauthorized/>"))
                    continue
                if self.require_auth and not authorized:
                    self._send(conn, wrap_reply("<unauthorized/>"))
                    continue

                if self.delay:
                    time.sleep(self.delay)
                reply = self.handler(op)
                if reply is None:
                    return
                payload = reply if isinstance(reply, bytes) else wrap_reply(reply)
                self._send(conn, payload)
                if op.name in self.hangup_on:
                    return


@pytest.fixture
def fake_daemon() -> Iterator[Callable[..., FakeDaemon]]:
    daemons: list[FakeDaemon] = []

    def _start(replies: Mapping[str, Reply] | Handler, **kwargs: object) -> FakeDaemon:
        daemon = FakeDaemon(replies, **kwargs)  # type: ignore[arg-type]
        daemon.start()
        daemons.append(daemon)
        return daemon

    yield _start

    for daemon in daemons:
        daemon.stop()
        daemon.join(timeout=5.0)
        assert not daemon.is_alive()
        if daemon.error:
            raise daemon.error


@pytest.fixture
def closed_port() -> int:
    """A loopback port with nothing listening on it."""
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    return port
