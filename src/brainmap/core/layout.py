"""tree layout: derive node geometry from the tree shape.

children sit in a column to the right of their parent. every child gets a
vertical band as tall as its subtree, so siblings never overlap, and each
parent is centred on its children. the root is anchored at (0, 0).
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import MindMap, Node


# --- configuration ---

NODE_HEIGHT = 30
H_GAP = 50
V_GAP = 20
MIN_NODE_WIDTH = 100
CHAR_WIDTH = 8
ICON_WIDTH = 20
NODE_PADDING = 20


@dataclass(frozen=True)
class LayoutConfig:
    node_height: float = NODE_HEIGHT
    h_gap: float = H_GAP
    v_gap: float = V_GAP
    min_node_width: float = MIN_NODE_WIDTH
    char_width: float = CHAR_WIDTH
    icon_width: float = ICON_WIDTH
    padding: float = NODE_PADDING

    @property
    def row_height(self) -> float:
        return self.node_height + self.v_gap


DEFAULT_CONFIG = LayoutConfig()


def node_width(node: Node, config: LayoutConfig = DEFAULT_CONFIG) -> float:
    """estimated rendered width: longest text line plus icons and padding."""
    longest = max((len(line) for line in node.content.split("\n")), default=0)
    measured = longest * config.char_width + len(node.icons) * config.icon_width + config.padding
    return max(measured, config.min_node_width)


def compute_layout(mindmap: MindMap, config: LayoutConfig = DEFAULT_CONFIG) -> MindMap:
    """assign x, y, width and height to every node in place and return the map."""
    for node in mindmap.nodes.values():
        node.width = node_width(node, config)
        node.height = config.node_height

    bands = _band_heights(mindmap, config)
    stack = [(mindmap.root_id, 0.0, 0.0)]
    while stack:
        node_id, x, start_y = stack.pop()
        node = mindmap.nodes[node_id]
        node.x = x
        node.y = start_y + (bands[node_id] - config.row_height) / 2

        child_x = x + node.width + config.h_gap
        current_y = start_y
        for child_id in node.children:
            stack.append((child_id, child_x, current_y))
            current_y += bands[child_id]

    root = mindmap.root
    dx, dy = -root.x, -root.y
    if dx or dy:
        for node in mindmap.nodes.values():
            node.x += dx
            node.y += dy
    return mindmap


def _band_heights(mindmap: MindMap, config: LayoutConfig) -> dict[str, float]:
    """height of the vertical band each subtree occupies, children before parents."""
    bands: dict[str, float] = {}
    for node in reversed(list(mindmap.walk())):
        total = sum(bands[cid] for cid in node.children)
        bands[node.id] = max(total, config.row_height)
    return bands


def subtree_bounds(mindmap: MindMap, node_id: str) -> tuple[float, float, float, float]:
    """(left, top, right, bottom) of a laid-out subtree."""
    nodes = list(mindmap.walk(node_id))
    left = min(n.x for n in nodes)
    top = min(n.y for n in nodes)
    right = max(n.x + n.width for n in nodes)
    bottom = max(n.y + n.height for n in nodes)
    return left, top, right, bottom
