import pytest

from node_models import ContainerNode, LeafNode
from routine import RoutineDocument
from routine_tree import RoutineTree
from tools import default_catalog


@pytest.fixture(autouse=True)
def isolated_files(tmp_path, monkeypatch):
    """Keep logs, snapshots and exports inside the test's temp directory."""
    monkeypatch.setenv("PROBE_BUILDER_LOG", str(tmp_path / "activity.log"))
    monkeypatch.setenv("PROBE_BUILDER_STATE", str(tmp_path / "routine.json"))
    monkeypatch.setenv("PROBE_BUILDER_EXPORT", str(tmp_path / "routine.nc"))
    return tmp_path


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def document(catalog):
    return RoutineDocument(catalog=catalog)


def leaf(node_id, tool_id="rapid-move", **params):
    return LeafNode(id=node_id, tool_id=tool_id, params=params or {"X": 0, "Y": 0, "Z": 25})


def container(node_id, *children, tool_id="folder", **params):
    return ContainerNode(
        id=node_id,
        tool_id=tool_id,
        params=params or {"name": node_id, "note": ""},
        children=list(children),
    )


def shape(tree: RoutineTree):
    """Nested (id, children) tuples describing the structure of a forest."""

    def describe(node):
        return (node.id, tuple(describe(child) for child in getattr(node, "children", ())))

    return tuple(describe(root) for root in tree.roots)


@pytest.fixture
def sample_tree(catalog):
    """
    a (folder)
      b (leaf)
      c (folder)
        d (leaf)
        e (while)
          f (leaf)
    g (leaf)
    """
    return RoutineTree(
        [
            container(
                "a",
                leaf("b"),
                container(
                    "c",
                    leaf("d"),
                    container("e", leaf("f"), tool_id="while-block", left="#100", op="LT", right="3"),
                ),
            ),
            leaf("g"),
        ],
        catalog,
    )
