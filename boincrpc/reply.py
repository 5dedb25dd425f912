from __future__ import annotations

"""Classification of daemon replies into success or typed failures."""

from typing import Sequence, Type, TypeVar

from .codec import decode
from .element import Element
from .errors import (
    AlreadyAttachedError,
    AuthError,
    DataParseError,
    InvalidURLError,
    RpcError,
    StatusError,
)

T = TypeVar("T")

# Reported when a <status> element carries something other than an integer.
UNKNOWN_STATUS = 9999

_KNOWN_ERRORS: dict[str, type[RpcError]] = {
    "unauthorized": AuthError,
    "Missing authenticator": AuthError,
    "Missing URL": InvalidURLError,
    "Already attached to project": AlreadyAttachedError,
}


def _status_code(node: Element) -> int:
    text = (node.text or "").strip()
    try:
        return int(text)
    except ValueError:
        return UNKNOWN_STATUS


def verify_reply(children: Sequence[Element]) -> bool:
    """Scan reply children in document order and raise on the first failure.

    Returns whether a ``<success/>`` tag was seen. A success tag does not stop
    the scan, since replies may carry success alongside a payload.
    """
    success = False
    for node in children:
        if node.name == "success":
            success = True
        elif node.name == "status":
            raise StatusError(_status_code(node))
        elif node.name == "unauthorized":
            raise AuthError("unauthorized")
        elif node.name == "error":
            message = (node.any_text or "").strip()
            if not message:
                raise DataParseError("unknown error")
            raise _KNOWN_ERRORS.get(message, DataParseError)(message)
    return success


def extract_object(children: Sequence[Element], tag: str, cls: Type[T]) -> T:
    """Verify a reply and decode the first child named `tag` as `cls`."""
    verify_reply(children)
    for child in children:
        if child.name == tag:
            return decode(cls, child)
    raise DataParseError("object not found")


def extract_list(
    children: Sequence[Element], list_tag: str, item_tag: str, cls: Type[T]
) -> list[T]:
    """Verify a reply and decode every `item_tag` inside `list_tag` blocks."""
    verify_reply(children)
    found = False
    items: list[T] = []
    for child in children:
        if child.name != list_tag:
            continue
        found = True
        for item in child.children:
            if item.name == item_tag:
                items.append(decode(cls, item))
    if not found:
        raise DataParseError("objects not found")
    return items


def extract_int(
    children: Sequence[Element], container_tag: str, value_tag: str
) -> int:
    """Verify a reply and return the last integer `value_tag` in `container_tag`."""
    verify_reply(children)
    value: int | None = None
    for child in children:
        if child.name != container_tag:
            continue
        for node in child.children:
            if node.name == value_tag:
                try:
                    value = int((node.text or "").strip())
                except ValueError:
                    value = None
    if value is None:
        raise DataParseError(f"{container_tag} node not found")
    return value
