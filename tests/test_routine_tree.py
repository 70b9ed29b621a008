from conftest import container, leaf, shape
from node_models import ContainerNode
from routine_tree import ROOT, MutationStatus, RoutineTree


class TestLookup:
    def test_get_node_finds_nested_nodes(self, sample_tree):
        assert sample_tree.get_node("f").id == "f"
        assert sample_tree.get_node("g").tool_id == "rapid-move"

    def test_get_node_unknown_is_none(self, sample_tree):
        assert sample_tree.get_node("nope") is None

    def test_get_parent(self, sample_tree):
        assert sample_tree.get_parent("f").id == "e"
        assert sample_tree.get_parent("b").id == "a"

    def test_get_parent_of_root_level_and_unknown_is_none(self, sample_tree):
        assert sample_tree.get_parent("a") is None
        assert sample_tree.get_parent("nope") is None

    def test_is_descendant(self, sample_tree):
        assert sample_tree.is_descendant("a", "f")
        assert sample_tree.is_descendant("c", "d")
        assert not sample_tree.is_descendant("a", "a")
        assert not sample_tree.is_descendant("c", "b")
        assert not sample_tree.is_descendant("g", "a")

    def test_ids_are_depth_first(self, sample_tree):
        assert sample_tree.ids() == ["a", "b", "c", "d", "e", "f", "g"]


class TestInsert:
    def test_huge_index_appends_at_root(self, sample_tree):
        status = sample_tree.insert_node(leaf("z"), ROOT, 10_000)
        assert status is MutationStatus.OK
        assert [n.id for n in sample_tree.roots] == ["a", "g", "z"]

    def test_huge_index_appends_in_container(self, sample_tree):
        sample_tree.insert_node(leaf("z"), "c", 99)
        assert [n.id for n in sample_tree.get_node("c").children] == ["d", "e", "z"]

    def test_negative_index_clamps_to_front(self, sample_tree):
        sample_tree.insert_node(leaf("z"), "a", -5)
        assert sample_tree.get_node("a").children[0].id == "z"

    def test_none_parent_means_root(self, sample_tree):
        sample_tree.insert_node(leaf("z"), None, 1)
        assert [n.id for n in sample_tree.roots] == ["a", "z", "g"]

    def test_insert_under_leaf_is_rejected(self, sample_tree):
        before = shape(sample_tree)
        assert sample_tree.insert_node(leaf("z"), "g") is MutationStatus.NOT_CONTAINER
        assert shape(sample_tree) == before
        assert not hasattr(sample_tree.get_node("g"), "children")

    def test_insert_under_unknown_parent_is_rejected(self, sample_tree):
        before = shape(sample_tree)
        assert sample_tree.insert_node(leaf("z"), "missing") is MutationStatus.NOT_FOUND
        assert shape(sample_tree) == before

    def test_duplicate_id_is_rejected(self, sample_tree):
        before = shape(sample_tree)
        assert sample_tree.insert_node(leaf("b"), ROOT) is MutationStatus.DUPLICATE_ID
        assert shape(sample_tree) == before
        assert sample_tree.ids() == ["a", "b", "c", "d", "e", "f", "g"]

    def test_subtree_with_clashing_descendant_is_rejected(self, sample_tree):
        incoming = container("z", leaf("y"), leaf("f"))
        assert sample_tree.insert_node(incoming, "a") is MutationStatus.DUPLICATE_ID
        assert sample_tree.get_node("z") is None

    def test_reinserting_attached_container_under_descendant_is_rejected(self, sample_tree):
        before = shape(sample_tree)
        node = sample_tree.get_node("a")
        assert sample_tree.insert_node(node, "c") is MutationStatus.DUPLICATE_ID
        assert shape(sample_tree) == before
        assert len(list(sample_tree.walk())) == 7


class TestRemove:
    def test_remove_returns_subtree(self, sample_tree):
        removed = sample_tree.remove_node("c")
        assert isinstance(removed, ContainerNode)
        assert [n.id for n in removed.walk()] == ["c", "d", "e", "f"]

    def test_remove_cascades_to_descendants(self, sample_tree):
        sample_tree.remove_node("a")
        for node_id in "abcdef":
            assert sample_tree.get_node(node_id) is None
        assert sample_tree.ids() == ["g"]

    def test_remove_unknown_is_none(self, sample_tree):
        before = shape(sample_tree)
        assert sample_tree.remove_node("missing") is None
        assert shape(sample_tree) == before


class TestMove:
    def test_move_into_container_at_index(self, sample_tree):
        assert sample_tree.move_node("g", "c", 0) is MutationStatus.OK
        assert [n.id for n in sample_tree.get_node("c").children] == ["g", "d", "e"]
        assert [n.id for n in sample_tree.roots] == ["a"]

    def test_move_to_root_keeps_identity(self, sample_tree):
        node = sample_tree.get_node("f")
        assert sample_tree.move_node("f", ROOT, 0) is MutationStatus.OK
        assert sample_tree.roots[0] is node
        assert sample_tree.get_node("e").children == []

    def test_move_onto_itself_is_rejected(self, sample_tree):
        before = shape(sample_tree)
        assert sample_tree.move_node("c", "c") is MutationStatus.SELF_MOVE
        assert shape(sample_tree) == before

    def test_move_into_descendant_is_rejected(self, sample_tree):
        before = shape(sample_tree)
        assert sample_tree.move_node("a", "e") is MutationStatus.CYCLE
        assert sample_tree.move_node("c", "e", 0) is MutationStatus.CYCLE
        assert shape(sample_tree) == before

    def test_move_into_leaf_leaves_tree_untouched(self, sample_tree):
        before = shape(sample_tree)
        assert sample_tree.move_node("b", "g") is MutationStatus.NOT_CONTAINER
        assert shape(sample_tree) == before

    def test_move_unknown_node(self, sample_tree):
        assert sample_tree.move_node("missing", "a") is MutationStatus.NOT_FOUND

    def test_rejection_is_falsy(self, sample_tree):
        assert not sample_tree.move_node("a", "a")
        assert sample_tree.move_node("b", ROOT)


class TestReorder:
    def test_swap_with_later_sibling(self, sample_tree):
        assert sample_tree.reorder_sibling("d", 1) is MutationStatus.OK
        assert [n.id for n in sample_tree.get_node("c").children] == ["e", "d"]

    def test_swap_with_earlier_sibling_at_root(self, sample_tree):
        sample_tree.reorder_sibling("g", -1)
        assert [n.id for n in sample_tree.roots] == ["g", "a"]

    def test_boundaries_are_rejected(self, sample_tree):
        before = shape(sample_tree)
        assert sample_tree.reorder_sibling("a", -1) is MutationStatus.AT_BOUNDARY
        assert sample_tree.reorder_sibling("g", 1) is MutationStatus.AT_BOUNDARY
        assert sample_tree.reorder_sibling("f", 1) is MutationStatus.AT_BOUNDARY
        assert shape(sample_tree) == before

    def test_unknown_id(self, sample_tree):
        assert sample_tree.reorder_sibling("missing", 1) is MutationStatus.NOT_FOUND


class TestEnumeration:
    def test_each_container_is_depth_first(self, sample_tree):
        seen = []
        sample_tree.each_container(lambda node: seen.append(node.id))
        assert seen == ["a", "c", "e"]

    def test_each_container_skips_unknown_kinds(self, catalog):
        tree = RoutineTree([container("x", tool_id="retired-kind"), container("y")], catalog)
        seen = []
        tree.each_container(lambda node: seen.append(node.id))
        assert seen == ["y"]

    def test_counts(self, sample_tree):
        assert sample_tree.counts() == (4, 7)

    def test_counts_empty(self, catalog):
        assert RoutineTree(catalog=catalog).counts() == (0, 0)
