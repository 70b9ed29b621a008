from __future__ import annotations

from enum import Enum
from typing import Callable, Iterator, List, Optional

from catalog import Catalog
from node_models import ContainerNode, RoutineNode

ROOT = "root"


class MutationStatus(Enum):
    OK = "ok"
    NOT_FOUND = "not found"
    NOT_CONTAINER = "not a container"
    SELF_MOVE = "cannot move a node into itself"
    CYCLE = "cannot move a node into its own descendant"
    AT_BOUNDARY = "already at the edge"
    UNKNOWN_TOOL = "unknown tool"
    DUPLICATE_ID = "id already in the routine"

    def __bool__(self) -> bool:
        return self is MutationStatus.OK


def _is_root(parent_id: Optional[str]) -> bool:
    return not parent_id or parent_id == ROOT


def _clamp(index: Optional[int], length: int) -> int:
    if index is None:
        return length
    return max(0, min(index, length))


class RoutineTree:
    """Ordered forest of routine nodes.

    Nodes carry no parent links, so ancestry is always found by walking from
    the roots. Lookups are linear in the size of the forest.
    """

    def __init__(self, roots: Optional[List[RoutineNode]] = None, catalog: Optional[Catalog] = None) -> None:
        self.roots: List[RoutineNode] = list(roots) if roots else []
        self.catalog = catalog

    def walk(self) -> Iterator[RoutineNode]:
        for root in self.roots:
            yield from root.walk()

    def _walk_with_parent(
        self, nodes: List[RoutineNode], parent: Optional[ContainerNode] = None
    ) -> Iterator[tuple[RoutineNode, Optional[ContainerNode]]]:
        for node in nodes:
            yield node, parent
            if isinstance(node, ContainerNode):
                yield from self._walk_with_parent(node.children, node)

    def ids(self) -> List[str]:
        return [node.id for node in self.walk()]

    def get_node(self, node_id: str) -> Optional[RoutineNode]:
        for node in self.walk():
            if node.id == node_id:
                return node
        return None

    def get_parent(self, node_id: str) -> Optional[ContainerNode]:
        """Return the containing node; ``None`` for root-level or unknown ids."""
        for node, parent in self._walk_with_parent(self.roots):
            if node.id == node_id:
                return parent
        return None

    def siblings_of(self, node_id: str) -> Optional[List[RoutineNode]]:
        for node, parent in self._walk_with_parent(self.roots):
            if node.id == node_id:
                return parent.children if parent is not None else self.roots
        return None

    def resolve_container(self, parent_id: Optional[str]) -> tuple[Optional[List[RoutineNode]], MutationStatus]:
        if _is_root(parent_id):
            return self.roots, MutationStatus.OK
        parent = self.get_node(parent_id)
        if parent is None:
            return None, MutationStatus.NOT_FOUND
        if not isinstance(parent, ContainerNode):
            return None, MutationStatus.NOT_CONTAINER
        return parent.children, MutationStatus.OK

    def insert_node(
        self, node: RoutineNode, parent_id: Optional[str] = ROOT, index: Optional[int] = None
    ) -> MutationStatus:
        target, status = self.resolve_container(parent_id)
        if target is None:
            return status
        existing = set(self.ids())
        if any(incoming.id in existing for incoming in node.walk()):
            return MutationStatus.DUPLICATE_ID
        target.insert(_clamp(index, len(target)), node)
        return MutationStatus.OK

    def remove_node(self, node_id: str) -> Optional[RoutineNode]:
        siblings = self.siblings_of(node_id)
        if siblings is None:
            return None
        for position, node in enumerate(siblings):
            if node.id == node_id:
                return siblings.pop(position)
        return None

    def is_descendant(self, ancestor_id: str, node_id: str) -> bool:
        ancestor = self.get_node(ancestor_id)
        if not isinstance(ancestor, ContainerNode):
            return False
        return any(node.id == node_id for child in ancestor.children for node in child.walk())

    def move_node(
        self, node_id: str, target_parent_id: Optional[str] = ROOT, index: Optional[int] = None
    ) -> MutationStatus:
        if node_id == target_parent_id:
            return MutationStatus.SELF_MOVE
        if not _is_root(target_parent_id) and self.is_descendant(node_id, target_parent_id):
            return MutationStatus.CYCLE
        if self.get_node(node_id) is None:
            return MutationStatus.NOT_FOUND
        # Validate the destination before detaching so a rejected move
        # leaves the tree untouched.
        target, status = self.resolve_container(target_parent_id)
        if target is None:
            return status
        node = self.remove_node(node_id)
        target.insert(_clamp(index, len(target)), node)
        return MutationStatus.OK

    def reorder_sibling(self, node_id: str, direction: int) -> MutationStatus:
        siblings = self.siblings_of(node_id)
        if siblings is None:
            return MutationStatus.NOT_FOUND
        position = next(i for i, node in enumerate(siblings) if node.id == node_id)
        swap = position + direction
        if swap < 0 or swap >= len(siblings):
            return MutationStatus.AT_BOUNDARY
        siblings[position], siblings[swap] = siblings[swap], siblings[position]
        return MutationStatus.OK

    def _resolves_to_container(self, node: RoutineNode) -> bool:
        if self.catalog is None:
            return node.is_container
        return self.catalog.is_container(node.tool_id)

    def each_container(self, visit: Callable[[ContainerNode], None]) -> None:
        for node in self.walk():
            if isinstance(node, ContainerNode) and self._resolves_to_container(node):
                visit(node)

    def counts(self) -> tuple[int, int]:
        """Return ``(operations, total)``; operations are non-container nodes."""
        total = 0
        operations = 0
        for node in self.walk():
            total += 1
            if not self._resolves_to_container(node):
                operations += 1
        return operations, total
