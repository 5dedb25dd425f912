from __future__ import annotations

"""Element trees, the only payload representation of GUI RPC frames.

Nodes keep child order and allow repeated child names. Character data is
split into plain text (entity-unescaped) and raw CDATA payload, because the
daemon wraps free-form strings such as message bodies in CDATA sections.
"""

import re
from dataclasses import dataclass, field
from xml.parsers import expat
from xml.sax.saxutils import escape

from .errors import DataParseError


@dataclass
class Element:
    """One named node with optional text/CDATA payload and ordered children."""

    name: str
    text: str | None = None
    cdata: str | None = None
    children: list[Element] = field(default_factory=list)

    @property
    def any_text(self) -> str | None:
        """CDATA payload when present, otherwise plain text."""
        if self.cdata is not None:
            return self.cdata
        return self.text

    def find(self, name: str) -> Element | None:
        for child in self.children:
            if child.name == name:
                return child
        return None

    def find_all(self, name: str) -> list[Element]:
        return [child for child in self.children if child.name == name]

    def append(self, child: Element) -> Element:
        self.children.append(child)
        return child

    def to_xml(self) -> str:
        parts: list[str] = []
        _write_element(self, parts)
        return "".join(parts)

    def __str__(self) -> str:
        return self.to_xml()


# Characters XML 1.0 forbids in character data. This includes the 0x03 frame
# delimiter, which must never appear inside a serialized request.
_INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def _check_characters(element: Element, value: str) -> str:
    match = _INVALID_XML_CHARS.search(value)
    if match is not None:
        raise ValueError(
            f"<{element.name}> contains a character not allowed in XML: {match.group()!r}"
        )
    return value


def _write_cdata(value: str) -> str:
    # "]]>" cannot appear inside one CDATA section; split it across two.
    return "<![CDATA[" + value.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _write_element(element: Element, out: list[str]) -> None:
    if element.text is None and element.cdata is None and not element.children:
        out.append(f"<{element.name}/>")
        return

    out.append(f"<{element.name}>")
    if element.text is not None:
        out.append(escape(_check_characters(element, element.text)))
    if element.cdata is not None:
        out.append(_write_cdata(_check_characters(element, element.cdata)))
    if element.children:
        out.append("\n")
        for child in element.children:
            _write_element(child, out)
            out.append("\n")
    out.append(f"</{element.name}>")


class _TreeBuilder:
    """Expat callback target assembling `Element` nodes."""

    def __init__(self) -> None:
        self.root: Element | None = None
        self._stack: list[tuple[Element, list[str], list[str] | None]] = []
        self._in_cdata = False

    def start(self, name: str, attrs: dict[str, str]) -> None:  # noqa: ARG002
        self._stack.append((Element(name), [], None))

    def end(self, name: str) -> None:  # noqa: ARG002
        element, text_parts, cdata_parts = self._stack.pop()
        text = "".join(text_parts)
        element.text = text if text.strip() else None
        if cdata_parts is not None:
            element.cdata = "".join(cdata_parts)

        if self._stack:
            self._stack[-1][0].children.append(element)
        else:
            self.root = element

    def characters(self, data: str) -> None:
        if not self._stack:
            return
        _, text_parts, cdata_parts = self._stack[-1]
        if self._in_cdata and cdata_parts is not None:
            cdata_parts.append(data)
        else:
            text_parts.append(data)

    def start_cdata(self) -> None:
        self._in_cdata = True
        if self._stack:
            element, text_parts, cdata_parts = self._stack[-1]
            if cdata_parts is None:
                self._stack[-1] = (element, text_parts, [])

    def end_cdata(self) -> None:
        self._in_cdata = False


def parse_element(data: bytes | str) -> Element:
    """Parse one XML document and return its root element.

    Raises `DataParseError` for anything expat rejects, including invalid
    UTF-8 and documents without a root element.
    """
    builder = _TreeBuilder()
    parser = expat.ParserCreate()
    parser.StartElementHandler = builder.start
    parser.EndElementHandler = builder.end
    parser.CharacterDataHandler = builder.characters
    parser.StartCdataSectionHandler = builder.start_cdata
    parser.EndCdataSectionHandler = builder.end_cdata

    try:
        parser.Parse(data, True)
    except expat.ExpatError as exc:
        raise DataParseError(f"XML error: {exc}") from exc

    if builder.root is None:
        raise DataParseError("XML document has no root element")
    return builder.root


def text_element(name: str, value: object | None = None) -> Element:
    """Build a leaf element whose text is the string form of `value`."""
    return Element(name, text=None if value is None else str(value))
