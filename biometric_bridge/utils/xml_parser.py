from __future__ import annotations

import xml.etree.ElementTree as ET
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

from biometric_bridge.utils.errors import MalformedDocument


@dataclass
class ParsedElement:
    """
    One XML element, with attributes and text kept apart.

    Drivers put some fields in attributes (qScore) and others in element
    text (the base64 payload), so the two are never merged. Children are
    grouped by tag; same-named siblings stay in document order.
    """

    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    children: Dict[str, List["ParsedElement"]] = field(default_factory=dict)

    def attr(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)

    def children_named(self, name: str) -> List["ParsedElement"]:
        return list(self.children.get(name, ()))

    def child(self, name: str) -> Optional["ParsedElement"]:
        found = self.children.get(name)
        return found[0] if found else None

    def iter_children(self) -> Iterator["ParsedElement"]:
        for group in self.children.values():
            yield from group

    def find(self, name: str, max_depth: int = 2) -> Optional["ParsedElement"]:
        """Breadth-first search for `name`, the element itself being depth 0."""
        queue = deque([(self, 0)])
        while queue:
            node, depth = queue.popleft()
            if node.tag == name:
                return node
            if depth < max_depth:
                queue.extend((c, depth + 1) for c in node.iter_children())
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tag": self.tag,
            "attributes": dict(self.attributes),
            "text": self.text,
            "children": {
                name: [c.to_dict() for c in group]
                for name, group in self.children.items()
            },
        }


def _local_name(tag: str) -> str:
    # "{urn:ns}Resp" -> "Resp"
    return tag.rsplit("}", 1)[-1]


def _convert(element: ET.Element) -> ParsedElement:
    node = ParsedElement(
        tag=_local_name(element.tag),
        attributes={_local_name(k): v for k, v in element.attrib.items()},
        text=(element.text or "").strip(),
    )
    for sub in element:
        if not isinstance(sub.tag, str):
            continue  # comments and processing instructions
        child = _convert(sub)
        node.children.setdefault(child.tag, []).append(child)
    return node


def parse_document(markup: Union[str, bytes, None]) -> ParsedElement:
    if isinstance(markup, bytes):
        try:
            markup = markup.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedDocument(f"Response is not valid UTF-8: {e}") from e

    if markup is None or not markup.strip():
        raise MalformedDocument("Empty response from RDService")

    try:
        root = ET.fromstring(markup.strip().encode("utf-8"))
    except ET.ParseError as e:
        raise MalformedDocument(f"Failed to parse RDService response: {e}") from e

    return _convert(root)
