"""MindNode `.mindnode` codec.

a .mindnode document is a package whose `contents.xml` is a property list.
it usually arrives zipped; a bare xml or binary plist is accepted as well.
brainmap writes a binary plist, which keeps carriage returns in titles.

    mindMap
      mainNodes: [{nodeID, title: {text}, subnodes: [...], brainmapIcons: [...]}]

the first main node becomes the root and any further main nodes are attached
under it. MindNode has no icon vocabulary, so icons live in `brainmapIcons`,
a key MindNode itself leaves alone.
"""

from __future__ import annotations

import logging
import plistlib
import xml.parsers.expat
from typing import Any, Optional

from ..core.models import MindMap, TreeBuilder, is_known_icon
from ..errors import DecodeError
from ._common import read_zip_member, write_zip
from .sniff import Variant, ZIP_OR_PLIST, sniff

log = logging.getLogger(__name__)

NAME = "MindNode"
CONTENTS = "contents.xml"
ICONS_KEY = "brainmapIcons"


def decode(data: bytes) -> MindMap:
    variant = sniff(data, ZIP_OR_PLIST)
    if variant is Variant.ZIP:
        _, data = read_zip_member(data, (CONTENTS,), NAME)
    contents = _load_plist(data)

    mindmap_dict = contents.get("mindMap") if isinstance(contents, dict) else None
    if not isinstance(mindmap_dict, dict):
        raise DecodeError("property list has no mindMap dictionary", location=CONTENTS)
    main_nodes = mindmap_dict.get("mainNodes")
    if not isinstance(main_nodes, list) or not main_nodes:
        raise DecodeError("mindMap has no mainNodes", location="mindMap")

    builder = TreeBuilder()
    root_id = _decode_node(main_nodes[0], builder, None, "mindMap.mainNodes[0]")
    for i, extra in enumerate(main_nodes[1:], start=1):
        _decode_node(extra, builder, root_id, f"mindMap.mainNodes[{i}]")
    if len(main_nodes) > 1:
        log.info("attached %d extra main nodes under the root", len(main_nodes) - 1)
    return builder.build()


def _load_plist(data: bytes) -> Any:
    try:
        return plistlib.loads(data)
    except (plistlib.InvalidFileException, xml.parsers.expat.ExpatError, ValueError) as e:
        raise DecodeError(f"malformed {NAME} property list: {e}", location=CONTENTS) from e


def _decode_node(entry: Any, builder: TreeBuilder, parent_id: Optional[str], location: str) -> str:
    if not isinstance(entry, dict):
        raise DecodeError("node must be a dictionary", location=location)

    raw_icons = entry.get(ICONS_KEY, [])
    if not isinstance(raw_icons, list):
        raise DecodeError(f"{ICONS_KEY} must be an array", location=f"{location}.{ICONS_KEY}")
    icons = []
    for icon in raw_icons:
        if isinstance(icon, str) and is_known_icon(icon):
            icons.append(icon)
        else:
            log.warning("dropping unknown icon %r at %s", icon, location)

    node_id = builder.add(
        _title_text(entry.get("title"), location),
        parent_id=parent_id,
        source_id=entry.get("nodeID") if isinstance(entry.get("nodeID"), str) else None,
        icons=icons,
    )

    subnodes = entry.get("subnodes", [])
    if not isinstance(subnodes, list):
        raise DecodeError("subnodes must be an array", location=f"{location}.subnodes")
    for i, sub in enumerate(subnodes):
        _decode_node(sub, builder, node_id, f"{location}.subnodes[{i}]")
    return node_id


def _title_text(title: Any, location: str) -> str:
    # older documents store the title as a plain string
    if title is None:
        return ""
    if isinstance(title, str):
        return title
    if isinstance(title, dict) and isinstance(title.get("text", ""), str):
        return title.get("text", "")
    raise DecodeError("title must be a string or a dictionary with text", location=f"{location}.title")


def encode(mindmap: MindMap) -> bytes:
    contents = {"mindMap": {"mainNodes": [_encode_node(mindmap, mindmap.root_id)]}}
    return write_zip({CONTENTS: plistlib.dumps(contents, fmt=plistlib.FMT_BINARY)})


def _encode_node(mindmap: MindMap, node_id: str) -> dict:
    node = mindmap.nodes[node_id]
    entry: dict[str, Any] = {
        "nodeID": node.id,
        "title": {"text": node.content},
        "subnodes": [_encode_node(mindmap, cid) for cid in node.children],
    }
    if node.icons:
        entry[ICONS_KEY] = list(node.icons)
    return entry
