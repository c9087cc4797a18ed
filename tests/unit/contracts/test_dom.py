"""
Tier 0: Data Model Contract Tests

These tests pin down the tree model before any parsing code: arena-owned
nodes, tag lookup with memoisation, traversal and verbatim reassembly.
"""

import pytest
from gedtree.dom import NodeArena
from gedtree.lines import Line


def make_tree():
    """
    0 @I1@ INDI
    1 NAME John /Smith/
    2 GIVN John
    1 BIRT
    1 NAME Johnny
    """
    arena = NodeArena()
    root = arena.new(0, Line("0 @I1@ INDI", 0, "\n"), "INDI", "", key="I1")
    name = root.add_child(arena.new(1, Line("1 NAME John /Smith/", 12, "\n"), "NAME", "John /Smith/"))
    name.add_child(arena.new(2, Line("2 GIVN John", 32, "\n"), "GIVN", "John"))
    root.add_child(arena.new(1, Line("1 BIRT", 44, "\n"), "BIRT"))
    root.add_child(arena.new(1, Line("1 NAME Johnny", 51, "\n"), "NAME", "Johnny"))
    return arena, root


class TestNodeCreation:
    def test_arena_assigns_ids_in_creation_order(self):
        arena, root = make_tree()
        assert [node.id for node in arena] == [0, 1, 2, 3, 4]
        assert len(arena) == 5
        assert arena[0] is root

    def test_node_fields(self):
        _, root = make_tree()
        assert root.level == 0
        assert root.key == "I1"
        assert root.tag == "INDI"
        assert root.data == ""
        assert root.pos == 0

    def test_kind_by_level(self):
        arena, root = make_tree()
        assert root.kind == "record"
        assert root.children[0].kind == "field"
        assert root.children[0].children[0].kind == "item"
        deep = arena.new(3, Line("3 MAP", 0), "MAP")
        assert deep.kind == "item"

    def test_add_child_links_parent(self):
        _, root = make_tree()
        name = root.children[0]
        assert name.parent is root
        assert root.parent is None

    def test_add_child_rejects_other_arena(self):
        _, root = make_tree()
        stranger = NodeArena().new(1, Line("1 SEX M", 0), "SEX", "M")
        with pytest.raises(ValueError, match="different arena"):
            root.add_child(stranger)

    def test_leaf_node_is_truthy(self):
        arena, _ = make_tree()
        leaf = arena[2]
        assert len(leaf) == 0
        assert leaf

    def test_document_backpointer_defaults_to_none(self):
        _, root = make_tree()
        assert root.document is None


class TestTagLookup:
    def test_get_returns_first_match(self):
        _, root = make_tree()
        assert root.get("NAME").data == "John /Smith/"

    def test_get_missing_returns_none(self):
        _, root = make_tree()
        assert root.get("DEAT") is None

    def test_get_is_memoized(self):
        _, root = make_tree()
        first = root.get("NAME")
        # Reorder the children: a memoised lookup keeps returning the first hit.
        root.child_ids.reverse()
        assert root.get("NAME") is first

    def test_get_all(self):
        _, root = make_tree()
        assert [n.data for n in root.get_all("NAME")] == ["John /Smith/", "Johnny"]

    def test_getitem_and_contains(self):
        _, root = make_tree()
        assert root["BIRT"].tag == "BIRT"
        assert "BIRT" in root
        assert "DEAT" not in root
        with pytest.raises(KeyError):
            root["DEAT"]

    def test_nested_lookup(self):
        _, root = make_tree()
        assert root.get("NAME").get("GIVN").data == "John"


class TestTreeTraversal:
    def test_tree_traversal_depth_first(self):
        _, root = make_tree()
        tags = [n.tag for n in root.depth_first()]
        assert tags == ["INDI", "NAME", "GIVN", "BIRT", "NAME"]

    def test_tree_traversal_breadth_first(self):
        _, root = make_tree()
        tags = [n.tag for n in root.breadth_first()]
        assert tags == ["INDI", "NAME", "BIRT", "NAME", "GIVN"]

    def test_iterating_a_node_yields_children(self):
        _, root = make_tree()
        assert [n.tag for n in root] == ["NAME", "BIRT", "NAME"]
        assert len(root) == 3


class TestReassembly:
    def test_assemble_in_file_order(self):
        _, root = make_tree()
        assert root.assemble() == (
            "0 @I1@ INDI\n1 NAME John /Smith/\n2 GIVN John\n1 BIRT\n1 NAME Johnny\n"
        )

    def test_raw_lines_include_verbatim_buffer(self):
        arena = NodeArena()
        item = arena.new(3, Line("3 MAP", 0, "\n"), "MAP")
        item.lines = [Line("4 LATI N1", 6, "\n"), Line("4 LONG E2", 16, "")]
        assert [line.text for line in item.raw_lines()] == ["3 MAP", "4 LATI N1", "4 LONG E2"]
        assert item.assemble() == "3 MAP\n4 LATI N1\n4 LONG E2"
