from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Union
import uuid

# Parameter values are plain scalars; None and "" both mean "left empty".
ParamValue = Optional[Union[int, float, str]]


def new_node_id() -> str:
    return f"op_{uuid.uuid4().hex}"


@dataclass
class RoutineNode:
    id: str
    tool_id: str
    params: Dict[str, ParamValue] = field(default_factory=dict)

    @property
    def is_container(self) -> bool:
        return False

    def walk(self) -> Iterator["RoutineNode"]:
        """Yield this node, then every descendant depth-first."""
        yield self


@dataclass
class LeafNode(RoutineNode):
    """A single operation; never owns children."""


@dataclass
class ContainerNode(RoutineNode):
    # Always present, even when empty, so the shape never depends on a
    # later catalog lookup.
    children: List[RoutineNode] = field(default_factory=list)

    @property
    def is_container(self) -> bool:
        return True

    def walk(self) -> Iterator[RoutineNode]:
        yield self
        for child in self.children:
            yield from child.walk()
