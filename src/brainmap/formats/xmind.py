"""XMind `.xmind` codec.

an .xmind file is a zip archive. current XMind writes the sheets to
`content.json`; XMind 8 and older wrote `content.xml`. both are read, only
the first sheet is used, and `content.json` is what gets written.

icons travel as markers. the ones with an XMind counterpart use it
(`priority-1`, `task-done`, `flag-red`...); the rest are written as
`brainmap-<icon>`. other XMind markers are dropped with a warning, and so are
detached (floating) topics.
"""

from __future__ import annotations

import json
import logging
import uuid
import xml.etree.ElementTree as ET
from typing import Any, Optional

from .. import __version__
from ..core.models import MindMap, TreeBuilder, is_known_icon
from ..errors import DecodeError
from ._common import local_name, parse_xml, read_zip_member, write_zip
from .sniff import Variant, ZIP_OR_TEXT, sniff

log = logging.getLogger(__name__)

NAME = "XMind"
CONTENT_JSON = "content.json"
CONTENT_XML = "content.xml"
XML_NS = "urn:xmind:xmap:xmlns:content:2.0"
_NS = f"{{{XML_NS}}}"
CUSTOM_MARKER_PREFIX = "brainmap-"

ICON_TO_MARKER = {
    **{f"full-{n}": f"priority-{n}" for n in range(1, 10)},
    "button_ok": "task-done",
    "flag": "flag-red",
    "flag-orange": "flag-orange",
    "flag-yellow": "flag-yellow",
    "flag-blue": "flag-blue",
    "flag-green": "flag-green",
    "ksmiletris": "smiley-smile",
    "smiley-angry": "smiley-angry",
    "smiley-oh": "smiley-surprise",
    "smily_bad": "smiley-cry",
}
MARKER_TO_ICON = {v: k for k, v in ICON_TO_MARKER.items()}

# xml topic children that carry presentation or annotations only
_XML_TOPIC_IGNORED = {"notes", "labels", "position", "extensions", "numbering", "boundaries", "summaries", "image"}


def decode(data: bytes) -> MindMap:
    if sniff(data, ZIP_OR_TEXT) is not Variant.ZIP:
        raise DecodeError("not an XMind archive (missing zip signature)", location="header")
    member, content = read_zip_member(data, (CONTENT_JSON, CONTENT_XML), NAME)
    builder = TreeBuilder()
    if member == CONTENT_JSON:
        _decode_json(content, builder)
    else:
        _decode_xml(content, builder)
    return builder.build()


# --- content.json ---

def _decode_json(content: bytes, builder: TreeBuilder) -> None:
    try:
        sheets = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"malformed {CONTENT_JSON}: {e}", location=CONTENT_JSON) from e

    if not isinstance(sheets, list) or not sheets:
        raise DecodeError("expected a non-empty list of sheets", location=CONTENT_JSON)
    if len(sheets) > 1:
        log.info("xmind workbook has %d sheets, reading the first", len(sheets))

    sheet = sheets[0]
    if not isinstance(sheet, dict) or not isinstance(sheet.get("rootTopic"), dict):
        raise DecodeError("sheet has no rootTopic object", location="sheets[0]")
    _decode_json_topic(sheet["rootTopic"], builder, None, "sheets[0].rootTopic")


def _decode_json_topic(topic: dict, builder: TreeBuilder, parent_id: Optional[str], location: str) -> None:
    title = topic.get("title", "")
    if not isinstance(title, str):
        raise DecodeError("topic title must be a string", location=f"{location}.title")

    icons = _markers_to_icons(_json_list(topic, "markers", location), location)
    node_id = builder.add(title, parent_id=parent_id, source_id=_optional_str(topic.get("id")), icons=icons)

    children = topic.get("children", {})
    if not isinstance(children, dict):
        raise DecodeError("children must be an object", location=f"{location}.children")
    detached = _json_list(children, "detached", f"{location}.children")
    if detached:
        log.warning("dropping %d detached topics at %s", len(detached), location)

    for i, child in enumerate(_json_list(children, "attached", f"{location}.children")):
        child_location = f"{location}.children.attached[{i}]"
        if not isinstance(child, dict):
            raise DecodeError("topic must be an object", location=child_location)
        _decode_json_topic(child, builder, node_id, child_location)


def _json_list(obj: dict, key: str, location: str) -> list:
    value = obj.get(key, [])
    if not isinstance(value, list):
        raise DecodeError(f"{key} must be a list", location=f"{location}.{key}")
    return value


def _markers_to_icons(markers: list, location: str) -> list[str]:
    marker_ids = []
    for i, marker in enumerate(markers):
        if not isinstance(marker, dict) or not isinstance(marker.get("markerId"), str):
            raise DecodeError("marker needs a markerId string", location=f"{location}.markers[{i}]")
        marker_ids.append(marker["markerId"])
    return _marker_ids_to_icons(marker_ids, location)


def _marker_ids_to_icons(marker_ids: list[str], location: str) -> list[str]:
    icons = []
    for marker_id in marker_ids:
        if marker_id in MARKER_TO_ICON:
            icons.append(MARKER_TO_ICON[marker_id])
        elif marker_id.startswith(CUSTOM_MARKER_PREFIX) and is_known_icon(marker_id[len(CUSTOM_MARKER_PREFIX):]):
            icons.append(marker_id[len(CUSTOM_MARKER_PREFIX):])
        else:
            log.warning("dropping xmind marker %r at %s", marker_id, location)
    return icons


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


# --- content.xml (XMind 8) ---

def _decode_xml(content: bytes, builder: TreeBuilder) -> None:
    root = parse_xml(content, NAME, member=CONTENT_XML)
    if root.tag != f"{_NS}xmap-content":
        raise DecodeError(f"expected xmap-content root element, found {root.tag}", location=CONTENT_XML)
    sheet = root.find(f"{_NS}sheet")
    if sheet is None:
        raise DecodeError("no sheet element", location="xmap-content")
    topic = sheet.find(f"{_NS}topic")
    if topic is None:
        raise DecodeError("sheet has no root topic", location="xmap-content/sheet[0]")
    _decode_xml_topic(topic, builder, None, "xmap-content/sheet[0]/topic")


def _decode_xml_topic(elem: ET.Element, builder: TreeBuilder, parent_id: Optional[str], location: str) -> None:
    title = ""
    marker_ids: list[str] = []
    attached: list[tuple[ET.Element, str]] = []

    for i, child in enumerate(elem):
        # xhtml:img, svg and friends live outside the content namespace
        if not child.tag.startswith(_NS):
            continue
        name = local_name(child.tag)
        child_location = f"{location}/{name}[{i}]"
        if name == "title":
            title = child.text or ""
        elif name == "marker-refs":
            marker_ids.extend(ref.get("marker-id", "") for ref in child if local_name(ref.tag) == "marker-ref")
        elif name == "children":
            for j, group in enumerate(child):
                group_location = f"{child_location}/topics[{j}]"
                if local_name(group.tag) != "topics":
                    raise DecodeError(f"unexpected element {local_name(group.tag)}", location=group_location)
                if group.get("type", "attached") != "attached":
                    log.warning("dropping %s topics at %s", group.get("type"), group_location)
                    continue
                for k, sub in enumerate(group):
                    sub_location = f"{group_location}/topic[{k}]"
                    if sub.tag != f"{_NS}topic":
                        raise DecodeError(f"unexpected element {local_name(sub.tag)}", location=sub_location)
                    attached.append((sub, sub_location))
        elif name not in _XML_TOPIC_IGNORED:
            raise DecodeError(f"unexpected element {name}", location=child_location)

    icons = _marker_ids_to_icons(marker_ids, location)
    node_id = builder.add(title, parent_id=parent_id, source_id=elem.get("id"), icons=icons)
    for sub, sub_location in attached:
        _decode_xml_topic(sub, builder, node_id, sub_location)


# --- encode ---

def encode(mindmap: MindMap) -> bytes:
    sheet = {
        "id": uuid.uuid4().hex,
        "class": "sheet",
        "title": mindmap.root.content or "Sheet 1",
        "rootTopic": _encode_topic(mindmap, mindmap.root_id),
    }
    sheet["rootTopic"]["structureClass"] = "org.xmind.ui.map.unbalanced"
    metadata = {"creator": {"name": "brainmap", "version": __version__}}
    manifest = {"file-entries": {CONTENT_JSON: {}, "metadata.json": {}}}
    return write_zip({
        CONTENT_JSON: _dump([sheet]),
        "metadata.json": _dump(metadata),
        "manifest.json": _dump(manifest),
    })


def _encode_topic(mindmap: MindMap, node_id: str) -> dict:
    node = mindmap.nodes[node_id]
    topic: dict[str, Any] = {"id": node.id, "class": "topic", "title": node.content}
    if node.icons:
        topic["markers"] = [
            {"markerId": ICON_TO_MARKER.get(icon, CUSTOM_MARKER_PREFIX + icon)} for icon in node.icons
        ]
    if node.children:
        topic["children"] = {"attached": [_encode_topic(mindmap, cid) for cid in node.children]}
    return topic


def _dump(obj: Any) -> bytes:
    return json.dumps(obj, ensure_ascii=False, indent=2).encode("utf-8")
