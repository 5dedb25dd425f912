from __future__ import annotations

"""Endpoint configuration for GUI RPC connections.

An endpoint is resolved once, from explicit arguments first and the
environment second, and is immutable afterwards.
"""

import os
from dataclasses import dataclass, field

from .auth import load_password

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 31416


@dataclass(frozen=True)
class Endpoint:
    """Host/port/password triple identifying one daemon instance."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    password: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host must be a non-empty string")
        if not 0 < self.port < 65536:
            raise ValueError(f"port out of range: {self.port}")

    @property
    def address(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


def parse_address(address: str, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    """Split ``host``, ``host:port`` or ``[v6addr]:port`` into host and port."""
    address = address.strip()
    if not address:
        raise ValueError("address cannot be empty")

    if address.startswith("["):
        close = address.find("]")
        if close < 0:
            raise ValueError(f"unterminated IPv6 address: {address}")
        host = address[1:close]
        rest = address[close + 1 :]
        if not rest:
            return host, default_port
        if not rest.startswith(":"):
            raise ValueError(f"improper address specification: {address}")
        port_text = rest[1:]
    elif address.count(":") == 1:
        host, port_text = address.split(":", 1)
    else:
        # Bare hostnames and unbracketed IPv6 literals carry no port.
        return address, default_port

    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in address: {address}") from None
    return host, port


def load_endpoint(
    address: str | None = None,
    *,
    password: str | None = None,
    password_file: str | None = None,
    search_default_files: bool = True,
) -> Endpoint:
    """Build an `Endpoint` from arguments, ``BOINC_RPC_HOST`` and password files."""
    resolved_address = address or os.environ.get("BOINC_RPC_HOST") or DEFAULT_HOST
    host, port = parse_address(resolved_address)
    resolved_password = load_password(
        password=password,
        password_file=password_file,
        search_default_files=search_default_files,
    )
    return Endpoint(host=host, port=port, password=resolved_password)
