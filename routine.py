"""Routine document: the node forest plus per-node view state.

All UI-facing mutations go through :class:`RoutineDocument` so that view
state keyed by node id is pruned whenever its node leaves the forest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Mapping, Optional

from activity_log import log_event
from catalog import Catalog, create_node
from gcode import generate_program
from node_models import ContainerNode, LeafNode, ParamValue, RoutineNode, new_node_id
from routine_tree import ROOT, MutationStatus, RoutineTree


@dataclass
class ViewState:
    collapsed: bool = False
    expanded: bool = False

    @property
    def is_default(self) -> bool:
        return not self.collapsed and not self.expanded


@dataclass
class RoutineDocument:
    catalog: Catalog
    tree: RoutineTree = field(default_factory=RoutineTree)
    view: Dict[str, ViewState] = field(default_factory=dict)
    target_parent_id: str = ROOT
    show_gcode: bool = False

    def __post_init__(self) -> None:
        if self.tree.catalog is None:
            self.tree.catalog = self.catalog

    # ------------------------------------------------------------------
    # Queries

    def get_node(self, node_id: str) -> Optional[RoutineNode]:
        return self.tree.get_node(node_id)

    @property
    def roots(self) -> List[RoutineNode]:
        return self.tree.roots

    def display_name(self, node: RoutineNode) -> str:
        spec = self.catalog.get(node.tool_id)
        if spec is None:
            return node.tool_id
        if spec.container:
            name = node.params.get("name")
            if name:
                return str(name)
        return spec.name

    def counts(self) -> tuple[int, int]:
        return self.tree.counts()

    def each_container(self, visit: Callable[[ContainerNode], None]) -> None:
        self.tree.each_container(visit)

    def containers(self) -> List[ContainerNode]:
        found: List[ContainerNode] = []
        self.tree.each_container(found.append)
        return found

    def move_destinations(self, node_id: str) -> List[ContainerNode]:
        """Containers ``node_id`` may move into: not itself, not below itself."""
        return [
            container
            for container in self.containers()
            if container.id != node_id and not self.tree.is_descendant(node_id, container.id)
        ]

    def delete_prompt(self, node_id: str) -> Optional[str]:
        node = self.get_node(node_id)
        if node is None:
            return None
        extra = ""
        if isinstance(node, ContainerNode) and node.children:
            extra = f" It contains {len(node.children)} item(s)."
        return f'Delete "{self.display_name(node)}"?{extra}'

    def is_collapsed(self, node_id: str) -> bool:
        state = self.view.get(node_id)
        return bool(state and state.collapsed)

    def is_expanded(self, node_id: str) -> bool:
        state = self.view.get(node_id)
        return bool(state and state.expanded)

    def generate(self, today: Optional[date] = None) -> str:
        return generate_program(self.tree.roots, self.catalog, today=today)

    # ------------------------------------------------------------------
    # Mutations

    def _record(self, action: str, status: MutationStatus, detail: str) -> MutationStatus:
        log_event("ok" if status else "rejected", action, f"{detail} ({status.value})")
        return status

    def add(self, tool_id: str, destination: Optional[str] = None) -> Optional[RoutineNode]:
        spec = self.catalog.get(tool_id)
        if spec is None:
            self._record("add", MutationStatus.UNKNOWN_TOOL, tool_id)
            return None
        node = create_node(spec)
        parent_id = destination if destination is not None else self.target_parent_id
        status = self.tree.insert_node(node, parent_id)
        self._record("add", status, f"{tool_id} {node.id} -> {parent_id}")
        return node if status else None

    def update_params(self, node_id: str, patch: Mapping[str, ParamValue]) -> MutationStatus:
        node = self.get_node(node_id)
        if node is None:
            return self._record("update", MutationStatus.NOT_FOUND, node_id)
        node.params = {**node.params, **patch}
        return self._record("update", MutationStatus.OK, f"{node_id} {sorted(patch)}")

    def move(self, node_id: str, destination: Optional[str] = ROOT, index: Optional[int] = None) -> MutationStatus:
        status = self.tree.move_node(node_id, destination, index)
        return self._record("move", status, f"{node_id} -> {destination or ROOT}")

    def remove(self, node_id: str) -> Optional[RoutineNode]:
        """Detach a subtree and prune every view entry that referred to it.

        Confirmation is the caller's job; this removes unconditionally.
        """
        removed = self.tree.remove_node(node_id)
        if removed is None:
            self._record("remove", MutationStatus.NOT_FOUND, node_id)
            return None
        gone = {node.id for node in removed.walk()}
        for stale_id in gone & self.view.keys():
            del self.view[stale_id]
        if self.target_parent_id in gone:
            self.target_parent_id = ROOT
        self._record("remove", MutationStatus.OK, f"{node_id} ({len(gone)} node(s))")
        return removed

    def reorder(self, node_id: str, direction: int) -> MutationStatus:
        status = self.tree.reorder_sibling(node_id, direction)
        return self._record("reorder", status, f"{node_id} {direction:+d}")

    def set_target_parent(self, node_id: Optional[str]) -> MutationStatus:
        if not node_id or node_id == ROOT:
            self.target_parent_id = ROOT
            return MutationStatus.OK
        node = self.get_node(node_id)
        if node is None:
            return MutationStatus.NOT_FOUND
        if not isinstance(node, ContainerNode):
            return MutationStatus.NOT_CONTAINER
        self.target_parent_id = node_id
        return MutationStatus.OK

    def _view_for(self, node_id: str) -> ViewState:
        return self.view.setdefault(node_id, ViewState())

    def _tidy_view(self, node_id: str) -> None:
        state = self.view.get(node_id)
        if state is not None and state.is_default:
            del self.view[node_id]

    def set_collapsed(self, node_id: str, collapsed: bool) -> None:
        if self.get_node(node_id) is None:
            return
        self._view_for(node_id).collapsed = collapsed
        self._tidy_view(node_id)

    def toggle_collapsed(self, node_id: str) -> None:
        self.set_collapsed(node_id, not self.is_collapsed(node_id))

    def toggle_expanded(self, node_id: str) -> None:
        if self.get_node(node_id) is None:
            return
        state = self._view_for(node_id)
        state.expanded = not state.expanded
        self._tidy_view(node_id)

    def seed_demo(self) -> bool:
        """Populate an empty document with a small example routine."""
        if self.tree.roots:
            return False
        setup = ContainerNode(new_node_id(), "folder", {"name": "Setup A", "note": ""})
        setup.children += [
            LeafNode(new_node_id(), "set-work-offset", {"offset": "G54", "P": "1"}),
            LeafNode(new_node_id(), "single-touch-axis", {"axis": "X", "distance": -10, "feed": 10}),
        ]
        loop = ContainerNode(new_node_id(), "while-block", {"left": "#100", "op": "LT", "right": "3"})
        loop.children.append(
            LeafNode(
                new_node_id(),
                "web-pocket",
                {"mode": "auto", "X": 0, "Y": 0, "Z": "", "W": 20, "L": 15, "feed": 10},
            )
        )
        approach = LeafNode(new_node_id(), "safe-approach", {"X": 0, "Y": 0, "Z": 25, "feed": 1000})
        self.tree.roots += [setup, loop, approach]
        log_event("ok", "seed", "demo routine")
        return True
