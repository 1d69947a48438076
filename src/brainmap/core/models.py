"""core data model for brainmap.

a mind map is a tree of nodes indexed by id, plus the selected node that
doubles as the keyboard navigation cursor.
"""

from __future__ import annotations

import copy
import time
import uuid
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Iterator, Optional

from ..errors import InvalidOperation, NotFound


# --- configuration ---

# freemind builtin icon names, the vocabulary every codec maps to and from
ICONS: tuple[str, ...] = (
    "idea", "help", "yes", "messagebox_warning", "stop-sign", "closed", "info",
    "button_ok", "button_cancel",
    "full-1", "full-2", "full-3", "full-4", "full-5",
    "full-6", "full-7", "full-8", "full-9", "full-0",
    "stop", "prepare", "go", "back", "forward", "up", "down", "attach",
    "ksmiletris", "smiley-neutral", "smiley-oh", "smiley-angry", "smily_bad",
    "clanbomber", "desktop_new", "gohome", "folder", "korn", "Mail", "kmail",
    "list", "edit", "kaddressbook", "knotify", "password", "pencil", "wizard",
    "xmag", "bell", "bookmark", "penguin", "licq", "freemind_butterfly",
    "broken-line", "calendar", "clock", "hourglass", "launch",
    "flag-black", "flag-blue", "flag-green", "flag-orange", "flag-pink",
    "flag", "flag-yellow",
    "family", "female1", "female2", "male1", "male2", "fema", "group",
)

_ICON_SET = frozenset(ICONS)


class Navigation(Enum):
    PARENT = "parent"
    FIRST_CHILD = "first-child"
    PREVIOUS_SIBLING = "previous-sibling"
    NEXT_SIBLING = "next-sibling"

    @classmethod
    def parse(cls, value: str) -> Navigation:
        """accept canonical names and the arrow-key aliases (left/right/up/down)."""
        key = value.strip().lower().replace("_", "-")
        try:
            return _NAVIGATION_ALIASES[key]
        except KeyError:
            pass
        try:
            return cls(key)
        except ValueError:
            raise InvalidOperation(f"unknown navigation direction: {value}") from None


_NAVIGATION_ALIASES = {
    "left": Navigation.PARENT,
    "right": Navigation.FIRST_CHILD,
    "up": Navigation.PREVIOUS_SIBLING,
    "down": Navigation.NEXT_SIBLING,
}


def is_known_icon(icon: str) -> bool:
    return icon in _ICON_SET


@dataclass
class Node:
    """single node in the mind map."""

    id: str
    content: str = ""
    children: list[str] = field(default_factory=list)
    parent: Optional[str] = None
    icons: list[str] = field(default_factory=list)
    created: int = field(default_factory=lambda: _now_ms())
    modified: int = field(default_factory=lambda: _now_ms())

    # derived by the layout engine, never persisted
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def touch(self) -> None:
        self.modified = _now_ms()

    def to_dict(self) -> dict:
        """serialize to dict for json."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> Node:
        """deserialize from dict."""
        d = d.copy()
        d["children"] = list(d.get("children", []))
        d["icons"] = list(d.get("icons", []))
        return cls(**d)


@dataclass
class MindMap:
    """the full document: node index, root and selection."""

    nodes: dict[str, Node]
    root_id: str
    selected_node_id: str

    @classmethod
    def new(cls, root_content: str = "") -> MindMap:
        """create a map holding only an empty root."""
        root = Node(id=_generate_id())
        root.content = root_content
        return cls(nodes={root.id: root}, root_id=root.id, selected_node_id=root.id)

    # --- lookup ---

    @property
    def root(self) -> Node:
        return self.nodes[self.root_id]

    @property
    def selected(self) -> Node:
        return self.nodes[self.selected_node_id]

    def get(self, node_id: str) -> Node:
        """resolve a node id or raise NotFound."""
        node = self.nodes.get(node_id)
        if node is None:
            raise NotFound(node_id)
        return node

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def walk(self, node_id: Optional[str] = None) -> Iterator[Node]:
        """yield nodes depth-first in child order, starting at the root."""
        stack = [node_id or self.root_id]
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def depth(self, node_id: str) -> int:
        """distance from root."""
        depth = 0
        node = self.get(node_id)
        while node.parent is not None:
            depth += 1
            node = self.nodes[node.parent]
        return depth

    def siblings_of(self, node_id: str) -> list[str]:
        """ids of the parent's children, including node_id itself."""
        node = self.get(node_id)
        if node.parent is None:
            return [node_id]
        return self.nodes[node.parent].children

    def new_id(self) -> str:
        """allocate an id not yet used in this map."""
        while True:
            candidate = _generate_id()
            if candidate not in self.nodes:
                return candidate

    # --- mutation ---

    def add_child(self, parent_id: str, content: str) -> str:
        """append a new node as the last child of parent_id and select it."""
        parent = self.get(parent_id)
        node = Node(id=self.new_id(), content=content, parent=parent_id)
        self.nodes[node.id] = node
        parent.children.append(node.id)
        self.selected_node_id = node.id
        return node.id

    def add_sibling(self, node_id: str, content: str) -> str:
        """insert a new node right after node_id and select it.

        the root has no siblings, so this is rejected for the root.
        """
        node = self.get(node_id)
        if node.parent is None:
            raise InvalidOperation("cannot add a sibling to the root node")
        parent = self.nodes[node.parent]
        new = Node(id=self.new_id(), content=content, parent=parent.id)
        self.nodes[new.id] = new
        parent.children.insert(parent.children.index(node_id) + 1, new.id)
        self.selected_node_id = new.id
        return new.id

    def change_node(self, node_id: str, content: str) -> None:
        node = self.get(node_id)
        node.content = content
        node.touch()

    def remove_node(self, node_id: str) -> str:
        """delete a node and all its descendants.

        returns the former parent id. a selection inside the removed subtree
        moves to that parent.
        """
        node = self.get(node_id)
        if node.parent is None:
            raise InvalidOperation("cannot delete the root node")

        parent = self.nodes[node.parent]
        to_delete = self._collect_descendants(node_id)
        to_delete.add(node_id)

        parent.children = [cid for cid in parent.children if cid != node_id]
        for nid in to_delete:
            del self.nodes[nid]

        if self.selected_node_id in to_delete:
            self.selected_node_id = parent.id
        return parent.id

    def _collect_descendants(self, node_id: str) -> set[str]:
        """collect all descendant node ids."""
        descendants: set[str] = set()
        pending = list(self.nodes[node_id].children)
        while pending:
            cid = pending.pop()
            descendants.add(cid)
            pending.extend(self.nodes[cid].children)
        return descendants

    def select_node(self, node_id: str) -> str:
        self.get(node_id)
        self.selected_node_id = node_id
        return node_id

    def navigate(self, direction: Navigation) -> str:
        """move the cursor along tree adjacency; moving past a boundary is a no-op."""
        current = self.nodes.get(self.selected_node_id)
        if current is None:
            return self.selected_node_id

        next_id: Optional[str] = None
        if direction is Navigation.PARENT:
            next_id = current.parent
        elif direction is Navigation.FIRST_CHILD:
            next_id = current.children[0] if current.children else None
        elif current.parent is not None:
            siblings = self.nodes[current.parent].children
            idx = siblings.index(current.id)
            if direction is Navigation.NEXT_SIBLING and idx + 1 < len(siblings):
                next_id = siblings[idx + 1]
            elif direction is Navigation.PREVIOUS_SIBLING and idx > 0:
                next_id = siblings[idx - 1]

        if next_id is not None:
            self.selected_node_id = next_id
        return self.selected_node_id

    def add_icon(self, node_id: str, icon: str) -> None:
        node = self.get(node_id)
        if not is_known_icon(icon):
            raise InvalidOperation(f"unknown icon: {icon}")
        node.icons.append(icon)
        node.touch()

    def remove_last_icon(self, node_id: str) -> None:
        """pop the last icon. a node without icons is left untouched."""
        node = self.get(node_id)
        if node.icons:
            node.icons.pop()
            node.touch()

    # --- integrity ---

    def validate(self) -> None:
        """check the tree invariants, raising InvalidOperation on the first violation."""
        if self.root_id not in self.nodes:
            raise InvalidOperation(f"root {self.root_id} is missing")
        if self.nodes[self.root_id].parent is not None:
            raise InvalidOperation("root node has a parent")

        seen: set[str] = set()
        stack = [self.root_id]
        while stack:
            nid = stack.pop()
            if nid in seen:
                raise InvalidOperation(f"node {nid} is reachable twice (cycle or shared child)")
            seen.add(nid)
            node = self.nodes[nid]
            for cid in node.children:
                child = self.nodes.get(cid)
                if child is None:
                    raise InvalidOperation(f"node {nid} lists missing child {cid}")
                if child.parent != nid:
                    raise InvalidOperation(f"node {cid} does not point back to parent {nid}")
                stack.append(cid)

        orphans = set(self.nodes) - seen
        if orphans:
            raise InvalidOperation(f"unreachable nodes: {', '.join(sorted(orphans))}")
        if self.selected_node_id not in self.nodes:
            raise InvalidOperation(f"selected node {self.selected_node_id} is missing")

    # --- serialization ---

    def copy(self) -> MindMap:
        return copy.deepcopy(self)

    def structure(self) -> tuple:
        """(content, icons, children) tuple tree, ignoring ids and geometry."""
        def build(nid: str) -> tuple:
            node = self.nodes[nid]
            return (node.content, tuple(node.icons), tuple(build(c) for c in node.children))
        return build(self.root_id)

    def to_dict(self) -> dict:
        """serialize to dict for json."""
        return {
            "nodes": {nid: n.to_dict() for nid, n in self.nodes.items()},
            "root_id": self.root_id,
            "selected_node_id": self.selected_node_id,
        }

    @classmethod
    def from_dict(cls, d: dict) -> MindMap:
        """deserialize from dict."""
        mindmap = cls(
            nodes={nid: Node.from_dict(nd) for nid, nd in d.get("nodes", {}).items()},
            root_id=d["root_id"],
            selected_node_id=d.get("selected_node_id", d["root_id"]),
        )
        mindmap.validate()
        return mindmap

    def __repr__(self) -> str:
        return f"MindMap({self.root.content!r}, {len(self.nodes)} nodes)"


class TreeBuilder:
    """incremental construction of a MindMap for the codecs.

    keeps ids from the source file when they are present and unique, and
    allocates fresh ones otherwise.
    """

    def __init__(self) -> None:
        self._mindmap: Optional[MindMap] = None

    def add(
        self,
        content: str,
        parent_id: Optional[str] = None,
        source_id: Optional[str] = None,
        icons: Optional[list[str]] = None,
        created: Optional[int] = None,
        modified: Optional[int] = None,
    ) -> str:
        mindmap = self._mindmap
        if mindmap is None:
            if parent_id is not None:
                raise InvalidOperation("the first node added must be the root")
            node_id = source_id or _generate_id()
        else:
            if parent_id is None:
                raise InvalidOperation("a map has exactly one root")
            if source_id and source_id not in mindmap.nodes:
                node_id = source_id
            else:
                node_id = mindmap.new_id()

        node = Node(id=node_id, content=content, parent=parent_id, icons=list(icons or []))
        if created is not None:
            node.created = created
        if modified is not None:
            node.modified = modified

        if mindmap is None:
            self._mindmap = MindMap(nodes={node_id: node}, root_id=node_id, selected_node_id=node_id)
        else:
            parent = mindmap.get(parent_id)
            mindmap.nodes[node_id] = node
            parent.children.append(node_id)
        return node_id

    @property
    def started(self) -> bool:
        return self._mindmap is not None

    def build(self) -> MindMap:
        if self._mindmap is None:
            raise InvalidOperation("no root node was added")
        self._mindmap.validate()
        return self._mindmap


def _generate_id() -> str:
    """generate a short unique id."""
    return uuid.uuid4().hex[:8]


def _now_ms() -> int:
    return int(time.time() * 1000)
