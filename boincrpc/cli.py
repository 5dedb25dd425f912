from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from importlib.metadata import PackageNotFoundError, version as package_version
from typing import Any

from .client import BoincClient
from .config import DEFAULT_HOST, DEFAULT_PORT, Endpoint, load_endpoint
from .errors import RpcError
from .models import Component, RunMode


def _resolve_client_version() -> str:
    try:
        return package_version("boincrpc")
    except PackageNotFoundError:
        return "0.0.0"


def _to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, list):
        return [_to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_jsonable(item) for key, item in value.items()}
    return value


def _emit_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(_to_jsonable(payload), indent=2, sort_keys=True) + "\n")


def _add_verbose_argument(
    parser: argparse.ArgumentParser, *, default: object = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default,
        help="Enable verbose protocol tracing",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="boinc-rpc",
        description="Command-line client for the BOINC GUI RPC protocol.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_resolve_client_version()}",
    )
    _add_verbose_argument(parser, default=False)
    parser.add_argument(
        "--host",
        default=None,
        help=(
            "Daemon address as host[:port] "
            f"(default: $BOINC_RPC_HOST or {DEFAULT_HOST}:{DEFAULT_PORT})"
        ),
    )
    parser.add_argument(
        "--password",
        default=None,
        help="GUI RPC password override (default: $BOINC_RPC_PASSWORD or gui_rpc_auth.cfg)",
    )
    parser.add_argument(
        "--password-file",
        default=None,
        help="Path to a gui_rpc_auth.cfg-style password file",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up after this many seconds (default: wait indefinitely)",
    )

    subparsers = parser.add_subparsers(dest="action", required=True)

    for name, help_text in (
        ("version", "Exchange versions with the daemon"),
        ("host-info", "Show host hardware and OS information"),
        ("projects", "List all projects known to the daemon"),
        ("account-manager", "Show account manager information"),
        ("account-manager-status", "Poll the last account manager RPC"),
        ("dump", "Dump version, account manager, projects, results and messages"),
    ):
        simple = subparsers.add_parser(name, help=help_text)
        _add_verbose_argument(simple, default=argparse.SUPPRESS)

    attach = subparsers.add_parser(
        "attach-account-manager", help="Attach the daemon to an account manager"
    )
    _add_verbose_argument(attach, default=argparse.SUPPRESS)
    attach.add_argument("url")
    attach.add_argument("name")
    attach.add_argument("account_password")

    messages = subparsers.add_parser("messages", help="Show event-log messages")
    _add_verbose_argument(messages, default=argparse.SUPPRESS)
    messages.add_argument(
        "--seqno",
        type=int,
        default=0,
        help="Only show messages newer than this sequence number",
    )

    results = subparsers.add_parser("results", help="List tasks")
    _add_verbose_argument(results, default=argparse.SUPPRESS)
    results.add_argument(
        "--active-only",
        action="store_true",
        help="Only list tasks that currently hold a slot",
    )

    set_mode = subparsers.add_parser("set-mode", help="Change a run mode")
    _add_verbose_argument(set_mode, default=argparse.SUPPRESS)
    set_mode.add_argument("component", choices=[c.value for c in Component])
    set_mode.add_argument("mode", choices=[m.value for m in RunMode])
    set_mode.add_argument(
        "--duration",
        type=float,
        default=0.0,
        help="Seconds before reverting; 0 keeps the mode until changed",
    )

    set_language = subparsers.add_parser("set-language", help="Set the daemon language")
    _add_verbose_argument(set_language, default=argparse.SUPPRESS)
    set_language.add_argument("language")

    return parser


async def _run_action(client: BoincClient, ns: argparse.Namespace) -> Any:
    if ns.action == "version":
        return await client.exchange_versions()
    if ns.action == "host-info":
        return await client.get_host_info()
    if ns.action == "projects":
        return await client.get_projects()
    if ns.action == "account-manager":
        return await client.get_account_manager_info()
    if ns.action == "account-manager-status":
        return {"error_num": await client.get_account_manager_rpc_status()}
    if ns.action == "attach-account-manager":
        success = await client.connect_to_account_manager(
            ns.url, ns.name, ns.account_password
        )
        return {"success": success}
    if ns.action == "messages":
        return await client.get_messages(ns.seqno)
    if ns.action == "results":
        return await client.get_results(ns.active_only)
    if ns.action == "set-mode":
        await client.set_mode(Component(ns.component), RunMode(ns.mode), ns.duration)
        return {"success": True}
    if ns.action == "set-language":
        await client.set_language(ns.language)
        return {"success": True}
    if ns.action == "dump":
        return {
            "version": await client.exchange_versions(),
            "account_manager": await client.get_account_manager_info(),
            "projects": await client.get_projects(),
            "results": await client.get_results(False),
            "messages": await client.get_messages(0),
        }
    raise ValueError(f"unknown action {ns.action!r}")


async def _execute(endpoint: Endpoint, ns: argparse.Namespace, verbose: bool) -> Any:
    async with BoincClient.from_endpoint(endpoint, verbose=verbose) as client:
        operation = _run_action(client, ns)
        if ns.timeout is None:
            return await operation
        return await asyncio.wait_for(operation, ns.timeout)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    verbose = bool(getattr(ns, "verbose", False))
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="[boincrpc] %(name)s: %(message)s",
        )

    if ns.timeout is not None and ns.timeout <= 0:
        sys.stderr.write("error: --timeout must be positive\n")
        return 2

    try:
        endpoint = load_endpoint(
            ns.host, password=ns.password, password_file=ns.password_file
        )
        payload = asyncio.run(_execute(endpoint, ns, verbose))
    except asyncio.TimeoutError:
        sys.stderr.write(f"error: timed out after {ns.timeout:.1f}s\n")
        return 2
    except (ValueError, RpcError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2

    _emit_json(payload)
    return 0
