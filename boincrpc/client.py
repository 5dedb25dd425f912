from __future__ import annotations

"""High-level GUI RPC client.

Every public method is one remote procedure: build the request element,
wait for the transport to become ready, run the request, then validate the
reply and decode the requested payload.
"""

import dataclasses
import sys
from typing import Any, Sequence, TextIO, Type, TypeVar

from .codec import (
    account_manager_rpc_request,
    exchange_versions_request,
    get_messages_request,
    get_results_request,
    set_language_request,
    set_mode_request,
)
from .config import Endpoint
from .element import Element
from .models import (
    CLIENT_VERSION,
    AccountManagerInfo,
    Component,
    HostInfo,
    Message,
    ProjectInfo,
    RunMode,
    TaskResult,
    VersionInfo,
)
from .reply import extract_int, extract_list, extract_object, verify_reply
from .transport import Transport

T = TypeVar("T")


class BoincClient:
    """Client for one daemon, driven through a `Transport`."""

    def __init__(
        self,
        transport: Transport,
        *,
        verbose: bool = False,
        verbose_stream: TextIO | None = None,
    ) -> None:
        self.transport = transport
        self.verbose = verbose
        self.verbose_stream = verbose_stream

    @classmethod
    def from_endpoint(
        cls,
        endpoint: Endpoint,
        *,
        poll_interval: float = 0.01,
        verbose: bool = False,
        verbose_stream: TextIO | None = None,
    ) -> BoincClient:
        """Create a client with its own transport for `endpoint`."""
        return cls(
            Transport(endpoint, poll_interval=poll_interval),
            verbose=verbose,
            verbose_stream=verbose_stream,
        )

    async def __aenter__(self) -> BoincClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.transport.aclose()

    def _verbose_log(self, message: str) -> None:
        """Emit verbose diagnostic lines when `verbose=True`."""
        if not self.verbose:
            return
        stream = self.verbose_stream if self.verbose_stream is not None else sys.stderr
        try:
            stream.write(f"[boincrpc] {message}\n")
            stream.flush()
        except (OSError, ValueError):
            pass

    def _trace(self, direction: str, elements: Sequence[Element]) -> None:
        """Emit compact traces naming the top-level tags of a request or reply."""
        if not self.verbose:
            return
        names = [element.name for element in elements]
        self._verbose_log(f"{direction} {', '.join(names) if names else '<empty>'}")

    async def _query(self, request: Element) -> list[Element]:
        await self.transport.ready()
        self._trace("->", [request])
        reply = await self.transport.call(request)
        self._trace("<-", reply)
        return reply

    async def _get_object(self, request: Element, object_tag: str, cls: Type[T]) -> T:
        return extract_object(await self._query(request), object_tag, cls)

    async def _get_list(
        self, request: Element, list_tag: str, item_tag: str, cls: Type[T]
    ) -> list[T]:
        return extract_list(await self._query(request), list_tag, item_tag, cls)

    async def exchange_versions(self, info: VersionInfo | None = None) -> VersionInfo:
        """Announce `info` (this client's version by default) and return the daemon's."""
        if info is None:
            info = dataclasses.replace(CLIENT_VERSION)
        return await self._get_object(
            exchange_versions_request(info), "server_version", VersionInfo
        )

    async def get_host_info(self) -> HostInfo:
        return await self._get_object(Element("get_host_info"), "host_info", HostInfo)

    async def get_projects(self) -> list[ProjectInfo]:
        """List every project the daemon knows about, attached or not."""
        return await self._get_list(
            Element("get_all_projects_list"), "projects", "project", ProjectInfo
        )

    async def get_account_manager_info(self) -> AccountManagerInfo:
        return await self._get_object(
            Element("acct_mgr_info"), "acct_mgr_info", AccountManagerInfo
        )

    async def get_account_manager_rpc_status(self) -> int:
        """Poll the last account manager RPC; returns its ``error_num``."""
        reply = await self._query(Element("acct_mgr_rpc_poll"))
        return extract_int(reply, "acct_mgr_rpc_reply", "error_num")

    async def connect_to_account_manager(self, url: str, name: str, password: str) -> bool:
        """Start attaching to an account manager; returns the success flag."""
        reply = await self._query(account_manager_rpc_request(url, name, password))
        return verify_reply(reply)

    async def get_messages(self, seqno: int = 0) -> list[Message]:
        """Fetch event-log messages newer than `seqno`."""
        return await self._get_list(get_messages_request(seqno), "msgs", "msg", Message)

    async def get_results(self, active_only: bool = False) -> list[TaskResult]:
        return await self._get_list(
            get_results_request(active_only), "results", "result", TaskResult
        )

    async def set_mode(
        self, component: Component, mode: RunMode, duration: float = 0.0
    ) -> None:
        """Change the run mode of `component` for `duration` seconds (0 = until changed)."""
        verify_reply(await self._query(set_mode_request(component, mode, duration)))

    async def set_language(self, language: str) -> None:
        verify_reply(await self._query(set_language_request(language)))
