from __future__ import annotations

"""Mapping between typed records and GUI RPC element trees.

Each record class has a `RecordSpec` listing, per attribute, the child tag it
lives in and how its text is converted. Decoding is deliberately lenient so
newer daemons keep working with this client:

- unknown child tags are ignored
- when a tag that should appear once is repeated, the last one wins
- a value that fails to convert leaves only that attribute as None

Encoding omits absent (None) attributes entirely rather than emitting empty
placeholders.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Type, TypeVar

from .element import Element, text_element
from .models import (
    AccountManagerInfo,
    ActiveTask,
    Component,
    DockerType,
    HostInfo,
    Message,
    ProjectInfo,
    RunMode,
    TaskResult,
    VersionInfo,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUE_WORDS = {"1", "true"}
_FALSE_WORDS = {"0", "false"}


@dataclass(frozen=True)
class FieldSpec:
    """How one record attribute maps to one child element."""

    attr: str
    tag: str
    kind: str
    target: Any = None
    item_tag: str | None = None


@dataclass(frozen=True)
class RecordSpec:
    """Default element tag and field table for one record class."""

    tag: str
    fields: tuple[FieldSpec, ...]

    def field_for_tag(self, tag: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.tag == tag:
                return spec
        return None


def _field(
    attr: str,
    kind: str = "text",
    *,
    tag: str | None = None,
    target: Any = None,
    item_tag: str | None = None,
) -> FieldSpec:
    return FieldSpec(attr=attr, tag=tag or attr, kind=kind, target=target, item_tag=item_tag)


# ---------------------------------------------------------------------------
# Value conversion, one parser/formatter pair per field kind.
# ---------------------------------------------------------------------------
def _stripped_text(node: Element) -> str | None:
    return None if node.text is None else node.text.strip()


def _parse_int(node: Element, spec: FieldSpec) -> int | None:  # noqa: ARG001
    text = _stripped_text(node)
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def _parse_float(node: Element, spec: FieldSpec) -> float | None:  # noqa: ARG001
    text = _stripped_text(node)
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _parse_bool(node: Element, spec: FieldSpec) -> bool | None:  # noqa: ARG001
    text = (_stripped_text(node) or "").lower()
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    return None


def _parse_text(node: Element, spec: FieldSpec) -> str:  # noqa: ARG001
    value = node.any_text
    return "" if value is None else value.strip()


def _parse_flag(node: Element, spec: FieldSpec) -> bool:  # noqa: ARG001
    return True


def _parse_enum(node: Element, spec: FieldSpec) -> Enum | None:
    text = _stripped_text(node)
    if text is None:
        return None
    try:
        return spec.target(text)
    except ValueError:
        return None


def _parse_record(node: Element, spec: FieldSpec) -> Any:
    return decode(spec.target, node)


def _parse_list(node: Element, spec: FieldSpec) -> list[str]:
    items: list[str] = []
    for child in node.children:
        if child.name == spec.item_tag and child.any_text is not None:
            items.append(child.any_text.strip())
    return items


_PARSERS: dict[str, Callable[[Element, FieldSpec], Any]] = {
    "int": _parse_int,
    "float": _parse_float,
    "bool": _parse_bool,
    "text": _parse_text,
    "cdata": _parse_text,
    "flag": _parse_flag,
    "enum": _parse_enum,
    "record": _parse_record,
    "list": _parse_list,
}


def _format_field(spec: FieldSpec, value: Any) -> Element | None:
    kind = spec.kind
    if kind in {"int", "float"}:
        return text_element(spec.tag, value)
    if kind == "bool":
        return text_element(spec.tag, "1" if value else "0")
    if kind == "text":
        return Element(spec.tag, text=str(value) or None)
    if kind == "cdata":
        return Element(spec.tag, cdata=str(value))
    if kind == "flag":
        return Element(spec.tag) if value else None
    if kind == "enum":
        return text_element(spec.tag, value.value)
    if kind == "record":
        return encode(value, spec.tag)
    if kind == "list":
        return Element(
            spec.tag,
            children=[text_element(spec.item_tag or "item", item) for item in value],
        )
    raise ValueError(f"unknown field kind {kind!r} for {spec.attr}")


# ---------------------------------------------------------------------------
# Record tables.
# ---------------------------------------------------------------------------
VERSION_INFO_SPEC = RecordSpec(
    "server_version",
    (
        _field("major", "int"),
        _field("minor", "int"),
        _field("release", "int"),
        _field("name"),
    ),
)

HOST_INFO_SPEC = RecordSpec(
    "host_info",
    (
        _field("tz_shift", "int", tag="timezone"),
        _field("domain_name"),
        _field("serialnum"),
        _field("ip_addr"),
        _field("host_cpid"),
        _field("p_ncpus", "int"),
        _field("p_vendor"),
        _field("p_model"),
        _field("p_features"),
        _field("p_fpops", "float"),
        _field("p_iops", "float"),
        _field("p_membw", "float"),
        _field("p_calculated", "float"),
        _field("p_vm_extensions_disabled", "bool"),
        _field("m_nbytes", "float"),
        _field("m_cache", "float"),
        _field("m_swap", "float"),
        _field("d_total", "float"),
        _field("d_free", "float"),
        _field("os_name"),
        _field("os_version"),
        _field("docker_version"),
        _field("docker_type", "enum", target=DockerType),
        _field("docker_compose_version"),
        _field("docker_compose_type", "enum", target=DockerType),
        _field("product_name"),
        _field("mac_address"),
        _field("virtualbox_version"),
        _field("num_opencl_cpu_platforms", "int"),
    ),
)

PROJECT_INFO_SPEC = RecordSpec(
    "project",
    (
        _field("name"),
        _field("summary"),
        _field("url"),
        _field("general_area"),
        _field("specific_area"),
        _field("description"),
        _field("home"),
        _field("platforms", "list", item_tag="platform"),
        _field("image"),
    ),
)

ACCOUNT_MANAGER_INFO_SPEC = RecordSpec(
    "acct_mgr_info",
    (
        _field("url", tag="acct_mgr_url"),
        _field("name", tag="acct_mgr_name"),
        _field("have_credentials", "flag"),
        _field("cookie_required", "flag"),
        _field("cookie_failure_url"),
    ),
)

MESSAGE_SPEC = RecordSpec(
    "msg",
    (
        _field("project_name", tag="project"),
        _field("priority", "int", tag="pri"),
        _field("msg_number", "int", tag="seqno"),
        _field("body", "cdata"),
        _field("timestamp", "int", tag="time"),
    ),
)

ACTIVE_TASK_SPEC = RecordSpec(
    "active_task",
    (
        _field("active_task_state"),
        _field("app_version_num"),
        _field("slot", "int"),
        _field("pid", "int"),
        _field("scheduler_state"),
        _field("checkpoint_cpu_time", "float"),
        _field("fraction_done", "float"),
        _field("current_cpu_time", "float"),
        _field("elapsed_time", "float"),
        _field("swap_size", "float"),
        _field("working_set_size", "float"),
        _field("working_set_size_smoothed", "float"),
        _field("page_fault_rate", "float"),
        _field("bytes_sent", "float"),
        _field("bytes_received", "float"),
        _field("progress_rate", "float"),
    ),
)

TASK_RESULT_SPEC = RecordSpec(
    "result",
    (
        _field("name"),
        _field("wu_name"),
        _field("platform"),
        _field("version_num", "int"),
        _field("plan_class"),
        _field("project_url"),
        _field("final_cpu_time", "float"),
        _field("final_elapsed_time", "float"),
        _field("exit_status", "int"),
        _field("state", "int"),
        _field("report_deadline", "float"),
        _field("received_time", "float"),
        _field("estimated_cpu_time_remaining", "float"),
        _field("completed_time", "float"),
        _field("active_task", "record", target=ActiveTask),
    ),
)

RECORD_SPECS: dict[type, RecordSpec] = {
    VersionInfo: VERSION_INFO_SPEC,
    HostInfo: HOST_INFO_SPEC,
    ProjectInfo: PROJECT_INFO_SPEC,
    AccountManagerInfo: ACCOUNT_MANAGER_INFO_SPEC,
    Message: MESSAGE_SPEC,
    ActiveTask: ACTIVE_TASK_SPEC,
    TaskResult: TASK_RESULT_SPEC,
}


def record_spec(cls: type) -> RecordSpec:
    try:
        return RECORD_SPECS[cls]
    except KeyError:
        raise TypeError(f"no element mapping registered for {cls.__name__}") from None


def decode(cls: Type[T], node: Element) -> T:
    """Build a `cls` record from the children of `node`."""
    spec = record_spec(cls)
    values: dict[str, Any] = {}
    seen: Counter[str] = Counter()

    for child in node.children:
        field_spec = spec.field_for_tag(child.name)
        if field_spec is None:
            continue
        seen[child.name] += 1
        values[field_spec.attr] = _PARSERS[field_spec.kind](child, field_spec)

    for tag, count in seen.items():
        if count > 1:
            logger.warning(
                "Expected 1 child with name %r in <%s>, found %d; using the last one",
                tag,
                node.name,
                count,
            )
    return cls(**values)


def encode(record: Any, tag: str | None = None) -> Element:
    """Build an element for `record`, omitting attributes that are None."""
    spec = record_spec(type(record))
    node = Element(tag or spec.tag)
    for field_spec in spec.fields:
        value = getattr(record, field_spec.attr)
        if value is None:
            continue
        child = _format_field(field_spec, value)
        if child is not None:
            node.append(child)
    return node


# ---------------------------------------------------------------------------
# Request elements, one per remote procedure.
# ---------------------------------------------------------------------------
_MODE_OPERATIONS = {
    Component.CPU: "set_run_mode",
    Component.GPU: "set_gpu_mode",
    Component.NETWORK: "set_network_mode",
}


def exchange_versions_request(info: VersionInfo) -> Element:
    return encode(info, "exchange_versions")


def get_messages_request(seqno: int) -> Element:
    if seqno < 0:
        raise ValueError("seqno cannot be negative")
    node = Element("get_messages")
    node.append(text_element("seqno", seqno))
    return node


def get_results_request(active_only: bool) -> Element:
    node = Element("get_results")
    if active_only:
        node.append(text_element("active_only", 1))
    return node


def account_manager_rpc_request(url: str, name: str, password: str) -> Element:
    node = Element("acct_mgr_rpc")
    node.append(text_element("url", url))
    node.append(text_element("name", name))
    node.append(text_element("password", password))
    return node


def set_mode_request(component: Component, mode: RunMode, duration: float) -> Element:
    """Build ``set_{run,gpu,network}_mode``; a zero duration means permanent."""
    if duration < 0:
        raise ValueError("duration cannot be negative")
    node = Element(_MODE_OPERATIONS[Component(component)])
    node.append(text_element("duration", duration))
    node.append(Element(RunMode(mode).value))
    return node


def set_language_request(language: str) -> Element:
    if not language.strip():
        raise ValueError("language cannot be empty")
    node = Element("set_language")
    node.append(text_element("language", language))
    return node
