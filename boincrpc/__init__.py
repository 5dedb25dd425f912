"""Asyncio client for the BOINC GUI RPC protocol."""

from .client import BoincClient
from .config import DEFAULT_PORT, Endpoint, load_endpoint
from .element import Element, parse_element
from .errors import (
    AlreadyAttachedError,
    AuthError,
    ConnectError,
    ConnectionClosedError,
    DataParseError,
    InvalidURLError,
    NetworkError,
    NullStateError,
    RpcError,
    StatusError,
)
from .models import (
    AccountManagerInfo,
    ActiveTask,
    Component,
    CpuSched,
    DockerType,
    HostInfo,
    Message,
    ProcessState,
    ProjectInfo,
    ResultState,
    RunMode,
    TaskResult,
    VersionInfo,
)
from .session import DaemonSession
from .transport import Transport

__all__ = [
    "BoincClient",
    "DEFAULT_PORT",
    "Endpoint",
    "load_endpoint",
    "Element",
    "parse_element",
    "AlreadyAttachedError",
    "AuthError",
    "ConnectError",
    "ConnectionClosedError",
    "DataParseError",
    "InvalidURLError",
    "NetworkError",
    "NullStateError",
    "RpcError",
    "StatusError",
    "AccountManagerInfo",
    "ActiveTask",
    "Component",
    "CpuSched",
    "DockerType",
    "HostInfo",
    "Message",
    "ProcessState",
    "ProjectInfo",
    "ResultState",
    "RunMode",
    "TaskResult",
    "VersionInfo",
    "DaemonSession",
    "Transport",
]
