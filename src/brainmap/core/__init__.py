"""core primitives shared between frontends."""

from .models import (
    ICONS,
    MindMap,
    Navigation,
    Node,
    TreeBuilder,
    is_known_icon,
)
from .layout import DEFAULT_CONFIG, LayoutConfig, compute_layout, node_width, subtree_bounds

__all__ = [
    # models
    "ICONS",
    "MindMap",
    "Navigation",
    "Node",
    "TreeBuilder",
    "is_known_icon",
    # layout
    "DEFAULT_CONFIG",
    "LayoutConfig",
    "compute_layout",
    "node_width",
    "subtree_bounds",
]
