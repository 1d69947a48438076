"""OPML 2.0 outline codec.

the root node is written as the single top-level `<outline>` in `<body>`.
a body holding several outlines decodes under a root named after the head
title. icons have no opml equivalent and travel in the `_icons` extension
attribute (space separated), following the `_note` / `_status` convention of
outliners that extend opml.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Optional

from ..core.models import MindMap, TreeBuilder, is_known_icon
from ..errors import DecodeError
from ._common import parse_xml, to_xml_bytes

log = logging.getLogger(__name__)

NAME = "OPML"
VERSION = "2.0"
ICONS_ATTR = "_icons"


def decode(data: bytes) -> MindMap:
    root = parse_xml(data, NAME)
    if root.tag != "opml":
        raise DecodeError(f"expected <opml> root element, found <{root.tag}>", location=root.tag)

    title = ""
    body: Optional[ET.Element] = None
    for i, child in enumerate(root):
        if child.tag == "head":
            title_elem = child.find("title")
            if title_elem is not None and title_elem.text:
                title = title_elem.text.strip()
        elif child.tag == "body":
            body = child
        else:
            raise DecodeError(f"unexpected element <{child.tag}>", location=f"opml/{child.tag}[{i}]")

    if body is None:
        raise DecodeError("missing <body>", location="opml")

    outlines = []
    for i, child in enumerate(body):
        if child.tag != "outline":
            raise DecodeError(f"unexpected element <{child.tag}>", location=f"opml/body/{child.tag}[{i}]")
        outlines.append((child, f"opml/body/outline[{i}]"))

    builder = TreeBuilder()
    if len(outlines) == 1:
        elem, location = outlines[0]
        _decode_outline(elem, builder, None, location)
    else:
        root_id = builder.add(title)
        for elem, location in outlines:
            _decode_outline(elem, builder, root_id, location)
    return builder.build()


def _decode_outline(elem: ET.Element, builder: TreeBuilder, parent_id: Optional[str], location: str) -> None:
    text = elem.get("text")
    if text is None:
        text = elem.get("title", "")

    icons = []
    for icon in elem.get(ICONS_ATTR, "").split():
        if is_known_icon(icon):
            icons.append(icon)
        else:
            log.warning("dropping unknown icon %r at %s", icon, location)

    node_id = builder.add(text, parent_id=parent_id, icons=icons)
    for i, child in enumerate(elem):
        child_location = f"{location}/{child.tag}[{i}]"
        if child.tag != "outline":
            raise DecodeError(f"unexpected element <{child.tag}>", location=child_location)
        _decode_outline(child, builder, node_id, child_location)


def encode(mindmap: MindMap) -> bytes:
    root = ET.Element("opml", version=VERSION)
    head = ET.SubElement(root, "head")
    ET.SubElement(head, "title").text = mindmap.root.content
    body = ET.SubElement(root, "body")
    _encode_outline(mindmap, mindmap.root_id, body)
    return to_xml_bytes(root)


def _encode_outline(mindmap: MindMap, node_id: str, parent: ET.Element) -> None:
    node = mindmap.nodes[node_id]
    elem = ET.SubElement(parent, "outline", text=node.content)
    if node.icons:
        elem.set(ICONS_ATTR, " ".join(node.icons))
    for child_id in node.children:
        _encode_outline(mindmap, child_id, elem)
