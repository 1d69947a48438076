"""tests for mind map data models."""

import pytest

from brainmap.core.models import (
    ICONS,
    MindMap,
    Navigation,
    Node,
    TreeBuilder,
    is_known_icon,
)
from brainmap.errors import InvalidOperation, NotFound


class TestNode:
    """tests for Node."""

    def test_defaults(self):
        """new node is an empty leaf with timestamps."""
        node = Node(id="abc12345")
        assert node.content == ""
        assert node.is_leaf
        assert node.icons == []
        assert node.created > 0
        assert node.modified >= node.created

    def test_roundtrip_serialization(self):
        """node survives to_dict/from_dict."""
        original = Node(id="abc12345", content="text", parent="p1", icons=["idea", "flag"])
        original.children.append("c1")
        restored = Node.from_dict(original.to_dict())
        assert restored == original
        assert restored.children is not original.children

    def test_touch_updates_modified(self):
        node = Node(id="abc12345", modified=1)
        node.touch()
        assert node.modified > 1


class TestMindMapNew:
    """tests for constructing and looking up nodes."""

    def test_new_has_single_selected_root(self):
        mindmap = MindMap.new()
        assert len(mindmap) == 1
        assert mindmap.root.parent is None
        assert mindmap.root.content == ""
        assert mindmap.selected_node_id == mindmap.root_id
        assert len(mindmap.root_id) == 8  # uuid hex[:8]

    def test_get_unknown_raises_not_found(self):
        mindmap = MindMap.new()
        with pytest.raises(NotFound) as exc:
            mindmap.get("missing")
        assert exc.value.node_id == "missing"

    def test_walk_is_depth_first_in_child_order(self, sample_map):
        contents = [n.content for n in sample_map.walk()]
        assert contents == ["Project", "Research", "Build", "Ship it\nby friday"]

    def test_depth(self, sample_map):
        build = sample_map.root.children[1]
        leaf = sample_map.nodes[build].children[0]
        assert sample_map.depth(sample_map.root_id) == 0
        assert sample_map.depth(leaf) == 2


class TestAddNodes:
    """tests for add_child and add_sibling."""

    def test_add_child_appends_and_selects(self):
        mindmap = MindMap.new()
        a = mindmap.add_child(mindmap.root_id, "A")
        b = mindmap.add_child(mindmap.root_id, "B")
        assert mindmap.root.children == [a, b]
        assert mindmap.nodes[a].parent == mindmap.root_id
        assert mindmap.selected_node_id == b

    def test_add_child_unknown_parent(self):
        mindmap = MindMap.new()
        with pytest.raises(NotFound):
            mindmap.add_child("nope", "A")
        assert len(mindmap) == 1

    def test_add_sibling_inserts_after(self):
        """sibling goes directly after the reference node."""
        mindmap = MindMap.new()
        a = mindmap.add_child(mindmap.root_id, "A")
        c = mindmap.add_child(mindmap.root_id, "C")
        b = mindmap.add_sibling(a, "B")
        assert mindmap.root.children == [a, b, c]
        assert mindmap.selected_node_id == b

    def test_add_sibling_to_root_rejected(self):
        mindmap = MindMap.new()
        with pytest.raises(InvalidOperation):
            mindmap.add_sibling(mindmap.root_id, "X")
        assert len(mindmap) == 1

    def test_new_ids_are_unique(self):
        mindmap = MindMap.new()
        for i in range(50):
            mindmap.add_child(mindmap.root_id, str(i))
        assert len(set(mindmap.nodes)) == 51


class TestChangeAndRemove:
    """tests for change_node and remove_node."""

    def test_change_node(self, sample_map):
        node_id = sample_map.root.children[0]
        sample_map.change_node(node_id, "Reading")
        assert sample_map.nodes[node_id].content == "Reading"

    def test_change_node_preserves_children_and_icons(self, sample_map):
        build = sample_map.root.children[1]
        children = list(sample_map.nodes[build].children)
        sample_map.change_node(build, "Make")
        assert sample_map.nodes[build].children == children
        assert sample_map.nodes[build].icons == ["flag"]

    def test_remove_node_removes_subtree(self, sample_map):
        """exactly the subtree goes, with no dangling references."""
        research, build = sample_map.root.children
        leaf = sample_map.nodes[build].children[0]
        parent = sample_map.remove_node(build)

        assert parent == sample_map.root_id
        assert build not in sample_map
        assert leaf not in sample_map
        assert sample_map.root.children == [research]
        sample_map.validate()

    def test_remove_root_rejected(self, sample_map):
        with pytest.raises(InvalidOperation):
            sample_map.remove_node(sample_map.root_id)
        assert len(sample_map) == 4

    def test_remove_moves_selection_to_parent(self, sample_map):
        build = sample_map.root.children[1]
        leaf = sample_map.nodes[build].children[0]
        sample_map.select_node(leaf)
        sample_map.remove_node(build)
        assert sample_map.selected_node_id == sample_map.root_id

    def test_remove_keeps_selection_outside_subtree(self, sample_map):
        research, build = sample_map.root.children
        sample_map.select_node(research)
        sample_map.remove_node(build)
        assert sample_map.selected_node_id == research

    def test_remove_unknown(self, sample_map):
        with pytest.raises(NotFound):
            sample_map.remove_node("missing")


class TestNavigation:
    """tests for select_node and navigate."""

    def test_select_unknown_keeps_selection(self, sample_map):
        with pytest.raises(NotFound):
            sample_map.select_node("missing")
        assert sample_map.selected_node_id == sample_map.root_id

    def test_sibling_navigation_stops_at_end(self):
        """new -> A -> sibling B; next from A lands on B and stays there."""
        mindmap = MindMap.new()
        a = mindmap.add_child(mindmap.root_id, "A")
        b = mindmap.add_sibling(a, "B")
        assert mindmap.root.children == [a, b]

        mindmap.select_node(a)
        assert mindmap.navigate(Navigation.NEXT_SIBLING) == b
        assert mindmap.navigate(Navigation.NEXT_SIBLING) == b
        assert mindmap.navigate(Navigation.PREVIOUS_SIBLING) == a
        assert mindmap.navigate(Navigation.PREVIOUS_SIBLING) == a

    def test_parent_and_first_child(self, sample_map):
        build = sample_map.root.children[1]
        leaf = sample_map.nodes[build].children[0]
        sample_map.select_node(build)
        assert sample_map.navigate(Navigation.FIRST_CHILD) == leaf
        assert sample_map.navigate(Navigation.FIRST_CHILD) == leaf
        assert sample_map.navigate(Navigation.PARENT) == build
        assert sample_map.navigate(Navigation.PARENT) == sample_map.root_id
        assert sample_map.navigate(Navigation.PARENT) == sample_map.root_id

    def test_root_has_no_siblings(self, sample_map):
        assert sample_map.navigate(Navigation.NEXT_SIBLING) == sample_map.root_id

    @pytest.mark.parametrize("alias,expected", [
        ("left", Navigation.PARENT),
        ("Right", Navigation.FIRST_CHILD),
        ("up", Navigation.PREVIOUS_SIBLING),
        ("down", Navigation.NEXT_SIBLING),
        ("next_sibling", Navigation.NEXT_SIBLING),
        ("first-child", Navigation.FIRST_CHILD),
    ])
    def test_parse(self, alias, expected):
        assert Navigation.parse(alias) is expected

    def test_parse_unknown(self):
        with pytest.raises(InvalidOperation):
            Navigation.parse("sideways")


class TestIcons:
    """tests for add_icon and remove_last_icon."""

    def test_vocabulary(self):
        assert is_known_icon("idea")
        assert is_known_icon("full-1")
        assert not is_known_icon("trash")
        assert len(ICONS) == len(set(ICONS))

    def test_add_icon_appends(self, sample_map):
        research = sample_map.root.children[0]
        sample_map.add_icon(research, "idea")
        assert sample_map.nodes[research].icons == ["idea", "full-1", "idea"]

    def test_add_unknown_icon(self, sample_map):
        research = sample_map.root.children[0]
        with pytest.raises(InvalidOperation):
            sample_map.add_icon(research, "unicorn")
        assert sample_map.nodes[research].icons == ["idea", "full-1"]

    def test_remove_last_icon(self, sample_map):
        research = sample_map.root.children[0]
        sample_map.remove_last_icon(research)
        assert sample_map.nodes[research].icons == ["idea"]

    def test_remove_last_icon_empty_is_noop(self, sample_map):
        modified = sample_map.root.modified
        sample_map.remove_last_icon(sample_map.root_id)
        assert sample_map.root.icons == []
        assert sample_map.root.modified == modified


class TestValidate:
    """tests for invariant checking and serialization."""

    def test_sample_is_valid(self, sample_map):
        sample_map.validate()

    def test_missing_child(self, sample_map):
        sample_map.root.children.append("ghost")
        with pytest.raises(InvalidOperation):
            sample_map.validate()

    def test_orphan(self, sample_map):
        sample_map.nodes["orphan"] = Node(id="orphan", parent=sample_map.root_id)
        with pytest.raises(InvalidOperation):
            sample_map.validate()

    def test_wrong_back_pointer(self, sample_map):
        research = sample_map.root.children[0]
        sample_map.nodes[research].parent = "elsewhere"
        with pytest.raises(InvalidOperation):
            sample_map.validate()

    def test_copy_is_independent(self, sample_map):
        snapshot = sample_map.copy()
        sample_map.add_child(sample_map.root_id, "later")
        assert len(snapshot) == 4
        assert len(sample_map) == 5

    def test_roundtrip_serialization(self, sample_map):
        restored = MindMap.from_dict(sample_map.to_dict())
        assert restored.structure() == sample_map.structure()
        assert set(restored.nodes) == set(sample_map.nodes)
        assert restored.selected_node_id == sample_map.selected_node_id


class TestTreeBuilder:
    """tests for TreeBuilder."""

    def test_keeps_unique_source_ids(self):
        builder = TreeBuilder()
        root = builder.add("root", source_id="r")
        child = builder.add("child", parent_id=root, source_id="c")
        mindmap = builder.build()
        assert (root, child) == ("r", "c")
        assert mindmap.root.children == ["c"]

    def test_duplicate_source_id_gets_fresh_id(self):
        builder = TreeBuilder()
        root = builder.add("root", source_id="x")
        child = builder.add("child", parent_id=root, source_id="x")
        assert child != "x"
        assert len(builder.build()) == 2

    def test_second_root_rejected(self):
        builder = TreeBuilder()
        builder.add("root")
        with pytest.raises(InvalidOperation):
            builder.add("another root")

    def test_empty_build_rejected(self):
        with pytest.raises(InvalidOperation):
            TreeBuilder().build()
