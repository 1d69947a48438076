"""SimpleMind `.smmx` codec.

the document is a flat list of topics linked by parent id:

    <!DOCTYPE simplemind-mindmaps>
    <simplemind-mindmaps doc-version="3">
      <mindmap>
        <meta><guid guid="..."/><title text="..."/></meta>
        <topics>
          <topic id="0" parent="-1" guid="..." x="0" y="0" text="Line one\\NLine two">
            <icons><icon name="idea"/></icons>
          </topic>
        </topics>
        <relations/>
      </mindmap>
    </simplemind-mindmaps>

newlines are stored as a literal `\\N` and a literal backslash as `\\\\`.
our node id travels in `guid`.
SimpleMind also ships the same xml zipped; that variant is not supported.
"""

from __future__ import annotations

import logging
import re
import uuid
import xml.etree.ElementTree as ET
from collections import defaultdict
from typing import Optional

from ..core.models import MindMap, TreeBuilder, is_known_icon
from ..errors import DecodeError, UnsupportedVariant
from ._common import parse_xml, to_xml_bytes
from .sniff import Variant, ZIP_OR_TEXT, sniff

log = logging.getLogger(__name__)

NAME = "SimpleMind"
DOC_VERSION = "3"
DOCTYPE = "<!DOCTYPE simplemind-mindmaps>"
ROOT_PARENT = "-1"
NEWLINE = "\\N"
_ESCAPED = re.compile(r"\\(\\|N)")

_MINDMAP_IGNORED = {"meta", "relations"}
_TOPIC_IGNORED = {"style", "layout", "link", "note", "image", "children"}


def escape_text(text: str) -> str:
    """newlines become `\\N`; a backslash is doubled so typed `\\N` survives."""
    return text.replace("\\", "\\\\").replace("\n", NEWLINE)


def unescape_text(text: str) -> str:
    # a lone backslash not followed by `\` or `N` is kept as written
    return _ESCAPED.sub(lambda m: "\n" if m.group(1) == "N" else "\\", text)


def decode(data: bytes) -> MindMap:
    if sniff(data, ZIP_OR_TEXT) is Variant.ZIP:
        raise UnsupportedVariant(NAME, "zip")

    root = parse_xml(data, NAME)
    if root.tag != "simplemind-mindmaps":
        raise DecodeError(f"expected <simplemind-mindmaps> root element, found <{root.tag}>", location=root.tag)
    mindmap_elem = root.find("mindmap")
    if mindmap_elem is None:
        raise DecodeError("missing <mindmap>", location="simplemind-mindmaps")

    topics_elem: Optional[ET.Element] = None
    for i, child in enumerate(mindmap_elem):
        if child.tag == "topics":
            topics_elem = child
        elif child.tag not in _MINDMAP_IGNORED:
            raise DecodeError(f"unexpected element <{child.tag}>", location=f"mindmap/{child.tag}[{i}]")
    if topics_elem is None:
        raise DecodeError("missing <topics>", location="mindmap")

    return _build_tree(_read_topics(topics_elem))


def _read_topics(topics_elem: ET.Element) -> list[dict]:
    topics = []
    seen: set[str] = set()
    for i, elem in enumerate(topics_elem):
        location = f"mindmap/topics/topic[{i}]"
        if elem.tag != "topic":
            raise DecodeError(f"unexpected element <{elem.tag}>", location=location)

        topic_id = elem.get("id")
        parent = elem.get("parent")
        if not topic_id or parent is None:
            raise DecodeError("topic needs id and parent attributes", location=location)
        if topic_id in seen:
            raise DecodeError(f"duplicate topic id {topic_id}", location=location)
        seen.add(topic_id)

        topics.append({
            "id": topic_id,
            "parent": parent,
            "guid": elem.get("guid"),
            "text": unescape_text(elem.get("text", "")),
            "icons": _read_icons(elem, location),
            "location": location,
        })
    return topics


def _read_icons(elem: ET.Element, location: str) -> list[str]:
    icons = []
    for i, child in enumerate(elem):
        if child.tag == "icons":
            for icon_elem in child:
                name = icon_elem.get("name", "")
                if icon_elem.tag == "icon" and is_known_icon(name):
                    icons.append(name)
                else:
                    log.warning("dropping unknown icon %r at %s", name, location)
        elif child.tag not in _TOPIC_IGNORED:
            raise DecodeError(f"unexpected element <{child.tag}>", location=f"{location}/{child.tag}[{i}]")
    return icons


def _build_tree(topics: list[dict]) -> MindMap:
    roots = [t for t in topics if t["parent"] == ROOT_PARENT]
    if len(roots) != 1:
        raise DecodeError(f"expected exactly one central topic, found {len(roots)}", location="mindmap/topics")

    by_id = {t["id"]: t for t in topics}
    children = defaultdict(list)
    for topic in topics:
        if topic["parent"] == ROOT_PARENT:
            continue
        if topic["parent"] not in by_id:
            raise DecodeError(f"parent {topic['parent']} does not exist", location=topic["location"])
        children[topic["parent"]].append(topic)

    builder = TreeBuilder()
    reached = 0
    stack: list[tuple[dict, Optional[str]]] = [(roots[0], None)]
    while stack:
        topic, parent_id = stack.pop()
        reached += 1
        node_id = builder.add(topic["text"], parent_id=parent_id, source_id=topic["guid"], icons=topic["icons"])
        stack.extend((child, node_id) for child in reversed(children[topic["id"]]))

    if reached != len(topics):
        raise DecodeError(
            f"{len(topics) - reached} topics are not connected to the central topic",
            location="mindmap/topics",
        )
    return builder.build()


def encode(mindmap: MindMap) -> bytes:
    root = ET.Element("simplemind-mindmaps", {"generator": "brainmap", "doc-version": DOC_VERSION})
    mindmap_elem = ET.SubElement(root, "mindmap")

    meta = ET.SubElement(mindmap_elem, "meta")
    ET.SubElement(meta, "guid", guid=uuid.uuid4().hex.upper())
    ET.SubElement(meta, "title", text=mindmap.root.content)

    topics = ET.SubElement(mindmap_elem, "topics")
    numbering = {node.id: str(i) for i, node in enumerate(mindmap.walk())}
    for node in mindmap.walk():
        topic = ET.SubElement(topics, "topic", {
            "id": numbering[node.id],
            "parent": numbering[node.parent] if node.parent is not None else ROOT_PARENT,
            "guid": node.id,
            "x": f"{node.x:.2f}",
            "y": f"{node.y:.2f}",
            "text": escape_text(node.content),
        })
        if node.icons:
            icons = ET.SubElement(topic, "icons")
            for icon in node.icons:
                ET.SubElement(icons, "icon", name=icon)

    ET.SubElement(mindmap_elem, "relations")
    return to_xml_bytes(root, doctype=DOCTYPE)
