"""FreeMind `.mm` codec, also the default for unknown extensions.

    <map version="1.0.1">
      <node ID="..." TEXT="..." CREATED="ms" MODIFIED="ms">
        <icon BUILTIN="idea"/>
        <node .../>
      </node>
    </map>

icons are native. presentation elements (fonts, edges, clouds, links...) are
skipped; any other element fails the decode.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Optional

from ..core.models import MindMap, TreeBuilder, is_known_icon
from ..errors import DecodeError
from ._common import parse_int, parse_xml, to_xml_bytes

log = logging.getLogger(__name__)

NAME = "FreeMind"
VERSION = "1.0.1"

_MAP_IGNORED = {"attribute_registry"}
_NODE_IGNORED = {
    "font", "edge", "cloud", "hook", "arrowlink", "linktarget",
    "attribute", "attribute_layout",
}


def decode(data: bytes) -> MindMap:
    root = parse_xml(data, NAME)
    if root.tag != "map":
        raise DecodeError(f"expected <map> root element, found <{root.tag}>", location=root.tag)

    top_nodes = []
    for i, child in enumerate(root):
        if child.tag == "node":
            top_nodes.append(child)
        elif child.tag not in _MAP_IGNORED:
            raise DecodeError(f"unexpected element <{child.tag}>", location=f"map/{child.tag}[{i}]")

    if len(top_nodes) != 1:
        raise DecodeError(f"expected exactly one root <node>, found {len(top_nodes)}", location="map")

    builder = TreeBuilder()
    _decode_node(top_nodes[0], builder, None, "map/node")
    return builder.build()


def _decode_node(elem: ET.Element, builder: TreeBuilder, parent_id: Optional[str], location: str) -> None:
    text = elem.get("TEXT")
    icons: list[str] = []
    children: list[tuple[ET.Element, str]] = []

    for i, child in enumerate(elem):
        child_location = f"{location}/{child.tag}[{i}]"
        if child.tag == "node":
            children.append((child, child_location))
        elif child.tag == "icon":
            icon = child.get("BUILTIN")
            if not icon:
                raise DecodeError("<icon> without BUILTIN attribute", location=child_location)
            if is_known_icon(icon):
                icons.append(icon)
            else:
                log.warning("dropping unknown freemind icon %r at %s", icon, child_location)
        elif child.tag == "richcontent":
            if child.get("TYPE", "NODE") == "NODE" and text is None:
                text = _rich_text(child)
        elif child.tag not in _NODE_IGNORED:
            raise DecodeError(f"unexpected element <{child.tag}>", location=child_location)

    node_id = builder.add(
        text or "",
        parent_id=parent_id,
        source_id=elem.get("ID"),
        icons=icons,
        created=parse_int(elem.get("CREATED")),
        modified=parse_int(elem.get("MODIFIED")),
    )
    for child, child_location in children:
        _decode_node(child, builder, node_id, child_location)


def _rich_text(elem: ET.Element) -> str:
    """plain text of an html richcontent block, one line per paragraph."""
    lines = []
    for block in elem.iter():
        if block.tag in ("p", "li", "h1", "h2", "h3", "div") and not any(
            c.tag in ("p", "li", "div") for c in block
        ):
            lines.append(" ".join("".join(block.itertext()).split()))
    if not lines:
        lines.append(" ".join("".join(elem.itertext()).split()))
    return "\n".join(line for line in lines if line)


def encode(mindmap: MindMap) -> bytes:
    root = ET.Element("map", version=VERSION)
    _encode_node(mindmap, mindmap.root_id, root)
    return to_xml_bytes(root)


def _encode_node(mindmap: MindMap, node_id: str, parent: ET.Element) -> None:
    node = mindmap.nodes[node_id]
    elem = ET.SubElement(parent, "node")
    elem.set("CREATED", str(node.created))
    elem.set("ID", node.id)
    elem.set("MODIFIED", str(node.modified))
    elem.set("TEXT", node.content)
    for icon in node.icons:
        ET.SubElement(elem, "icon", BUILTIN=icon)
    for child_id in node.children:
        _encode_node(mindmap, child_id, elem)
