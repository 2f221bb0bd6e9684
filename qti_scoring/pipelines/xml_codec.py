"""
XML Codec
qti_scoring/pipelines/xml_codec.py

Thin wrapper over xml.etree.ElementTree used for every QTI document:
parse to an owned mutable tree, read namespaced tags, and serialize back
with deterministic indentation.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from copy import deepcopy
from typing import Iterator, Optional, Tuple

from qti_scoring.core.exceptions import ScoringFailure

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


def parse_document(text: str, reason: str) -> ET.Element:
    """Parse ``text`` into a fresh element tree, failing with ``reason``."""
    try:
        return ET.fromstring(text)
    except ET.ParseError as exc:
        raise ScoringFailure(f"{reason}: {exc}") from exc


def split_tag(tag: str) -> Tuple[Optional[str], str]:
    """'{ns}name' -> ('ns', 'name'); 'name' -> (None, 'name')."""
    if tag.startswith("{"):
        namespace, _, local = tag[1:].partition("}")
        return namespace, local
    return None, tag


def qualify(namespace: Optional[str], local: str) -> str:
    return f"{{{namespace}}}{local}" if namespace else local


def children(element: ET.Element, namespace: Optional[str], local: str) -> Iterator[ET.Element]:
    """Direct children named ``local`` in ``namespace``."""
    return iter(element.findall(qualify(namespace, local)))


def text_content(element: Optional[ET.Element]) -> str:
    """Flattened text of ``element`` and all of its descendants."""
    if element is None:
        return ""
    return "".join(element.itertext())


def _with_default_namespace(root: ET.Element, namespace: str) -> ET.Element:
    """Copy of ``root`` with ``namespace`` dropped from tags and declared on the root."""
    prefix = f"{{{namespace}}}"
    clone = deepcopy(root)
    for element in clone.iter():
        if isinstance(element.tag, str) and element.tag.startswith(prefix):
            element.tag = element.tag[len(prefix):]
    attrib = {"xmlns": namespace, **clone.attrib}
    clone.attrib.clear()
    clone.attrib.update(attrib)
    return clone


def serialize_document(root: ET.Element, namespace: Optional[str], indent: str = "  ") -> str:
    """
    Serialize ``root`` with its namespace as the default namespace.

    Whitespace-only text is re-indented on every call, so serializing the
    same tree twice gives identical output.
    """
    ET.indent(root, space=indent)
    target = _with_default_namespace(root, namespace) if namespace else root
    try:
        body = ET.tostring(target, encoding="unicode")
    except (TypeError, ValueError) as exc:
        raise ScoringFailure(f"failed to serialize results: {exc}") from exc
    return XML_DECLARATION + body + "\n"
