"""MindManager `.mmap` codec.

an .mmap file is a zip archive whose `Document.xml` holds the topic tree:

    <ap:Map xmlns:ap="http://schemas.mindjet.com/MindManager/Application/2003">
      <ap:OneTopic>
        <ap:Topic OId="...">
          <ap:Text PlainText="..."/>
          <ap:IconMarkers><ap:IconMarker IconType="urn:mindjet:Flag"/></ap:IconMarkers>
          <ap:SubTopics><ap:Topic .../></ap:SubTopics>
        </ap:Topic>
      </ap:OneTopic>
    </ap:Map>

icons with a mindjet equivalent use it; the rest are written as
`urn:brainmap:icon:<name>`. mindjet icons without an equivalent are dropped
with a warning.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Optional

from ..core.models import MindMap, TreeBuilder, is_known_icon
from ..errors import DecodeError
from ._common import local_name, parse_xml, read_zip_member, to_xml_bytes, write_zip
from .sniff import Variant, ZIP_OR_TEXT, sniff

log = logging.getLogger(__name__)

NAME = "MindManager"
NS = "http://schemas.mindjet.com/MindManager/Application/2003"
_NS = f"{{{NS}}}"
DOCUMENT = "Document.xml"
CUSTOM_ICON_PREFIX = "urn:brainmap:icon:"

ICON_TO_MINDJET = {
    **{f"full-{n}": f"urn:mindjet:Priority{n}" for n in range(1, 10)},
    "flag": "urn:mindjet:Flag",
    "button_ok": "urn:mindjet:TickGreen",
    "yes": "urn:mindjet:TickYellow",
    "button_cancel": "urn:mindjet:CrossRed",
}
MINDJET_TO_ICON = {v: k for k, v in ICON_TO_MINDJET.items()}

# topic children that carry formatting, tasks or attachments rather than tree content
_TOPIC_IGNORED = {
    "Task", "Hyperlink", "HyperlinkGroup", "NotesGroup", "SubTopicShape",
    "DefaultSubTopicShape", "Color", "Offset", "TopicViewGroup", "TopicLayout",
    "FloatingTopics", "Callouts", "TextLabels", "Attachments", "Image",
    "Font", "Line", "Fill", "Shape", "TopicDataGroup",
}

ET.register_namespace("ap", NS)


def decode(data: bytes) -> MindMap:
    if sniff(data, ZIP_OR_TEXT) is not Variant.ZIP:
        raise DecodeError("not a MindManager archive (missing zip signature)", location="header")
    _, xml_bytes = read_zip_member(data, (DOCUMENT,), NAME)
    root = parse_xml(xml_bytes, NAME, member=DOCUMENT)

    if root.tag != f"{_NS}Map":
        raise DecodeError(f"expected ap:Map root element, found {root.tag}", location=DOCUMENT)

    # map-level siblings of OneTopic are document settings (styles, relationships)
    one_topic = root.find(f"{_NS}OneTopic")
    if one_topic is None:
        raise DecodeError("no OneTopic element found", location="ap:Map")
    topics = [c for c in one_topic if c.tag == f"{_NS}Topic"]
    if len(topics) != 1:
        raise DecodeError(f"expected one central Topic, found {len(topics)}", location="ap:Map/ap:OneTopic")

    builder = TreeBuilder()
    _decode_topic(topics[0], builder, None, "ap:Map/ap:OneTopic/ap:Topic")
    return builder.build()


def _decode_topic(elem: ET.Element, builder: TreeBuilder, parent_id: Optional[str], location: str) -> None:
    text = ""
    icons: list[str] = []
    subtopics: list[tuple[ET.Element, str]] = []

    for i, child in enumerate(elem):
        name = local_name(child.tag)
        child_location = f"{location}/ap:{name}[{i}]"
        if not child.tag.startswith(_NS):
            raise DecodeError(f"element outside the MindManager namespace: {child.tag}", location=child_location)
        if name == "Text":
            text = child.get("PlainText", "")
        elif name == "IconMarkers":
            icons.extend(_decode_icons(child, child_location))
        elif name == "SubTopics":
            for j, sub in enumerate(child):
                sub_location = f"{child_location}/ap:{local_name(sub.tag)}[{j}]"
                if sub.tag != f"{_NS}Topic":
                    raise DecodeError(f"unexpected element in SubTopics: {sub.tag}", location=sub_location)
                subtopics.append((sub, sub_location))
        elif name not in _TOPIC_IGNORED:
            raise DecodeError(f"unexpected element ap:{name}", location=child_location)

    node_id = builder.add(text, parent_id=parent_id, source_id=elem.get("OId"), icons=icons)
    for sub, sub_location in subtopics:
        _decode_topic(sub, builder, node_id, sub_location)


def _decode_icons(elem: ET.Element, location: str) -> list[str]:
    icons = []
    for marker in elem:
        if marker.tag != f"{_NS}IconMarker":
            continue
        icon_type = marker.get("IconType", "")
        if icon_type in MINDJET_TO_ICON:
            icons.append(MINDJET_TO_ICON[icon_type])
        elif icon_type.startswith(CUSTOM_ICON_PREFIX) and is_known_icon(icon_type[len(CUSTOM_ICON_PREFIX):]):
            icons.append(icon_type[len(CUSTOM_ICON_PREFIX):])
        else:
            log.warning("dropping mindmanager icon %r at %s", icon_type, location)
    return icons


def encode(mindmap: MindMap) -> bytes:
    root = ET.Element(f"{_NS}Map")
    one_topic = ET.SubElement(root, f"{_NS}OneTopic")
    one_topic.append(_build_topic_elem(mindmap, mindmap.root_id))
    return write_zip({DOCUMENT: to_xml_bytes(root)})


def _build_topic_elem(mindmap: MindMap, node_id: str) -> ET.Element:
    node = mindmap.nodes[node_id]
    elem = ET.Element(f"{_NS}Topic")
    elem.set("OId", node.id)

    text_elem = ET.SubElement(elem, f"{_NS}Text")
    text_elem.set("PlainText", node.content)

    if node.icons:
        icons_elem = ET.SubElement(elem, f"{_NS}IconMarkers")
        for icon in node.icons:
            marker = ET.SubElement(icons_elem, f"{_NS}IconMarker")
            marker.set("IconType", ICON_TO_MINDJET.get(icon, CUSTOM_ICON_PREFIX + icon))

    if node.children:
        subtopics_elem = ET.SubElement(elem, f"{_NS}SubTopics")
        for child_id in node.children:
            subtopics_elem.append(_build_topic_elem(mindmap, child_id))

    return elem
