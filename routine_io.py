import json
import os
from pathlib import Path
from typing import Any, List, Optional, Set

from activity_log import log_event
from catalog import Catalog
from node_models import ContainerNode, LeafNode, RoutineNode
from routine import RoutineDocument, ViewState
from routine_tree import RoutineTree

SNAPSHOT_VERSION = 2
DEFAULT_STATE_PATH = "probe_routine.json"
DEFAULT_EXPORT_PATH = "probe_routine.nc"


class SnapshotError(ValueError):
    """Raised when a stored routine cannot be turned back into a document."""


def get_state_path() -> Path:
    return Path(os.getenv("PROBE_BUILDER_STATE", DEFAULT_STATE_PATH)).expanduser()


def get_export_path() -> Path:
    return Path(os.getenv("PROBE_BUILDER_EXPORT", DEFAULT_EXPORT_PATH)).expanduser()


def node_to_dict(node: RoutineNode) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": node.id,
        "toolId": node.tool_id,
        "params": dict(node.params),
    }
    if isinstance(node, ContainerNode):
        data["children"] = [node_to_dict(child) for child in node.children]
    return data


def to_snapshot(document: RoutineDocument) -> dict[str, Any]:
    """Serialize the forest and its view state.

    Keys match the browser build's storage layout so existing routines load
    unchanged.
    """
    return {
        "version": SNAPSHOT_VERSION,
        "tree": [node_to_dict(node) for node in document.roots],
        "collapsed": [node_id for node_id, state in document.view.items() if state.collapsed],
        "expanded": [node_id for node_id, state in document.view.items() if state.expanded],
        "targetParentId": document.target_parent_id,
        "showGCode": document.show_gcode,
    }


def node_from_dict(data: Any, catalog: Catalog, seen: Set[str]) -> RoutineNode:
    if not isinstance(data, dict):
        raise SnapshotError(f"Expected a node object, got {type(data).__name__}")
    node_id = data.get("id")
    tool_id = data.get("toolId")
    if not isinstance(node_id, str) or not node_id:
        raise SnapshotError("Node is missing a string 'id'")
    if not isinstance(tool_id, str) or not tool_id:
        raise SnapshotError(f"Node {node_id} is missing a string 'toolId'")
    if node_id in seen:
        raise SnapshotError(f"Duplicate node id {node_id}")
    seen.add(node_id)

    params = data.get("params") or {}
    if not isinstance(params, dict):
        raise SnapshotError(f"Node {node_id} has non-object params")

    children = data.get("children")
    if children is None and not catalog.is_container(tool_id):
        return LeafNode(id=node_id, tool_id=tool_id, params=dict(params))
    if children is None:
        # Older snapshots may omit an empty children list.
        children = []
    if not isinstance(children, list):
        raise SnapshotError(f"Node {node_id} has non-list children")
    return ContainerNode(
        id=node_id,
        tool_id=tool_id,
        params=dict(params),
        children=[node_from_dict(child, catalog, seen) for child in children],
    )


def _id_list(data: dict, key: str) -> List[str]:
    value = data.get(key, [])
    if not isinstance(value, list):
        raise SnapshotError(f"'{key}' must be a list of ids")
    return [item for item in value if isinstance(item, str)]


def from_snapshot(data: Any, catalog: Catalog) -> RoutineDocument:
    if not isinstance(data, dict):
        raise SnapshotError("Snapshot must be a JSON object")
    raw_tree = data.get("tree", [])
    if not isinstance(raw_tree, list):
        raise SnapshotError("'tree' must be a list")

    seen: Set[str] = set()
    roots = [node_from_dict(item, catalog, seen) for item in raw_tree]
    document = RoutineDocument(catalog=catalog, tree=RoutineTree(roots, catalog))

    for node_id in _id_list(data, "collapsed"):
        if node_id in seen:
            document.view.setdefault(node_id, ViewState()).collapsed = True
    for node_id in _id_list(data, "expanded"):
        if node_id in seen:
            document.view.setdefault(node_id, ViewState()).expanded = True

    target = data.get("targetParentId")
    if isinstance(target, str):
        document.set_target_parent(target)
    show_gcode = data.get("showGCode")
    if isinstance(show_gcode, bool):
        document.show_gcode = show_gcode
    return document


def dumps(document: RoutineDocument) -> str:
    return json.dumps(to_snapshot(document), indent=2, ensure_ascii=False) + "\n"


def loads(text: str, catalog: Catalog) -> RoutineDocument:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"invalid JSON: {exc}") from exc
    return from_snapshot(data, catalog)


def save_document(document: RoutineDocument, path: Optional[Path] = None) -> Path:
    target = (path or get_state_path()).expanduser()
    target.write_text(dumps(document), encoding="utf-8")
    log_event("ok", "save", str(target))
    return target


def load_document(catalog: Catalog, path: Optional[Path] = None) -> RoutineDocument:
    target = (path or get_state_path()).expanduser()
    try:
        document = loads(target.read_text(encoding="utf-8"), catalog)
    except (OSError, SnapshotError) as exc:
        log_event("fail", "load", f"{target}: {exc}")
        raise
    log_event("ok", "load", str(target))
    return document


def export_program(document: RoutineDocument, path: Optional[Path] = None) -> Path:
    target = (path or get_export_path()).expanduser()
    target.write_text(document.generate(), encoding="utf-8")
    log_event("ok", "export", str(target))
    return target
