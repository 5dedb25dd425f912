from __future__ import annotations

"""Readiness-gated, single-in-flight access to one daemon session.

The transport is always in exactly one of three states:

- `Connecting`: the handshake has not finished (or not started yet)
- `Ready`: a live, authenticated session is available
- `Failed`: a terminal error; it is reported on every later poll

State lives behind one `threading.Lock` that is only ever *tried*, never
waited on. A caller that finds the lock taken is told "not ready yet" and
polls again later; that is the only backpressure, there is no queue.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from .config import Endpoint
from .element import Element
from .errors import NetworkError, NullStateError
from .session import DaemonSession
from .wire import encode_request

logger = logging.getLogger(__name__)


@dataclass
class Connecting:
    pending: asyncio.Task | None = None


@dataclass
class Ready:
    session: DaemonSession


@dataclass
class Failed:
    error: BaseException


TransportState = Union[Connecting, Ready, Failed]


@dataclass
class HandshakeStarted:
    task: asyncio.Task


@dataclass
class HandshakeSucceeded:
    session: DaemonSession


@dataclass
class HandshakeFailed:
    error: BaseException


@dataclass
class QuerySucceeded:
    session: DaemonSession


@dataclass
class QueryFailed:
    error: BaseException


@dataclass
class TransportClosed:
    error: BaseException


TransportEvent = Union[
    HandshakeStarted,
    HandshakeSucceeded,
    HandshakeFailed,
    QuerySucceeded,
    QueryFailed,
    TransportClosed,
]


def transition(state: TransportState, event: TransportEvent) -> TransportState:
    """Map (state, event) to the next state.

    `Failed` is absorbing. Events that make no sense for the current state
    are internal defects and raise `NullStateError`.
    """
    if isinstance(state, Failed):
        return state

    if isinstance(event, TransportClosed):
        return Failed(event.error)

    if isinstance(state, Connecting):
        if isinstance(event, HandshakeStarted) and state.pending is None:
            return Connecting(event.task)
        if isinstance(event, HandshakeSucceeded) and state.pending is not None:
            return Ready(event.session)
        if isinstance(event, HandshakeFailed):
            return Failed(event.error)

    if isinstance(state, Ready):
        if isinstance(event, QuerySucceeded) and event.session is state.session:
            return state
        if isinstance(event, QueryFailed):
            return Failed(event.error)

    raise NullStateError(
        f"invalid transition from {type(state).__name__} on {type(event).__name__}"
    )


def _handshake_error(task: asyncio.Task) -> BaseException | None:
    if task.cancelled():
        return NetworkError("handshake cancelled")
    return task.exception()


def _replay(error: BaseException) -> BaseException:
    """Copy a stored failure so each caller raises, and annotates, its own instance."""
    cls = type(error)
    fresh = cls.__new__(cls, *error.args)
    fresh.__dict__.update(error.__dict__)
    return fresh


SessionFactory = Callable[[Endpoint], Awaitable[DaemonSession]]


class Transport:
    """Async service wrapper around a lazily connected `DaemonSession`."""

    def __init__(
        self,
        endpoint: Endpoint,
        *,
        poll_interval: float = 0.01,
        session_factory: SessionFactory | None = None,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.endpoint = endpoint
        self.poll_interval = poll_interval
        self._session_factory: SessionFactory = session_factory or DaemonSession.connect
        self._lock = threading.Lock()
        self._state: TransportState | None = Connecting()

    @property
    def state(self) -> TransportState | None:
        """Current state snapshot; informational only, read without the lock."""
        return self._state

    def _apply(self, event: TransportEvent) -> None:
        if self._state is None:
            raise NullStateError("transport state is empty")
        previous = type(self._state).__name__
        self._state = transition(self._state, event)
        logger.debug(
            "transport %s: %s --%s--> %s",
            self.endpoint.address,
            previous,
            type(event).__name__,
            type(self._state).__name__,
        )

    def poll_ready(self) -> bool:
        """Advance the state machine one step without blocking.

        Returns True when a request may be issued, False when the caller
        should poll again later, and raises the stored error once the
        transport has failed. Must be called from a running event loop.
        """
        if not self._lock.acquire(blocking=False):
            return False
        try:
            return self._poll_locked()
        finally:
            self._lock.release()

    def _poll_locked(self) -> bool:
        state = self._state
        if isinstance(state, Ready):
            return True
        if isinstance(state, Failed):
            raise _replay(state.error) from state.error
        if isinstance(state, Connecting):
            if state.pending is None:
                loop = asyncio.get_running_loop()
                self._apply(HandshakeStarted(loop.create_task(self._session_factory(self.endpoint))))
                return False
            if not state.pending.done():
                return False
            error = _handshake_error(state.pending)
            if error is None:
                self._apply(HandshakeSucceeded(state.pending.result()))
                return True
            self._apply(HandshakeFailed(error))
            raise _replay(error) from error
        raise NullStateError("transport state is empty")

    def _pending_handshake(self) -> asyncio.Task | None:
        state = self._state
        if isinstance(state, Connecting) and state.pending is not None:
            if not state.pending.done():
                return state.pending
        return None

    async def ready(self) -> None:
        """Poll cooperatively until the transport is ready or has failed."""
        while not self.poll_ready():
            pending = self._pending_handshake()
            if pending is not None:
                # asyncio.wait never cancels the awaited task, even if we are.
                await asyncio.wait({pending})
            else:
                await asyncio.sleep(self.poll_interval)

    async def _acquire(self) -> None:
        while not self._lock.acquire(blocking=False):
            await asyncio.sleep(self.poll_interval)

    async def call(self, request: Element) -> list[Element]:
        """Run one request on the ready session and return the reply children.

        Any failure, including cancellation while the request is in flight,
        leaves the transport in `Failed` for good.
        """
        # A request that cannot be framed is the caller's error, not a transport failure.
        encode_request(request)

        await self._acquire()
        try:
            state = self._state
            if isinstance(state, Failed):
                raise _replay(state.error) from state.error
            if not isinstance(state, Ready):
                raise NullStateError("transport is not ready; await ready() first")

            try:
                reply = await state.session.query(request)
            except Exception as exc:
                self._apply(QueryFailed(exc))
                raise
            except BaseException:
                self._apply(QueryFailed(NetworkError("query abandoned")))
                raise
            self._apply(QuerySucceeded(state.session))
            return reply
        finally:
            self._lock.release()

    async def aclose(self) -> None:
        """Close any live session and fail the transport permanently."""
        await self._acquire()
        try:
            state = self._state
            if isinstance(state, Ready):
                await state.session.close()
            elif isinstance(state, Connecting) and state.pending is not None:
                await _discard_handshake(state.pending)
            self._apply(TransportClosed(NetworkError("transport closed")))
        finally:
            self._lock.release()

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


async def _discard_handshake(task: asyncio.Task) -> None:
    """Cancel a pending handshake, closing the session if it already finished."""
    if not task.done():
        task.cancel()
        await asyncio.wait({task})
    if task.cancelled():
        return
    if task.exception() is None:
        await task.result().close()
