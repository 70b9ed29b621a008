from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterator, Literal, Mapping, Optional, Sequence, Union

from node_models import ContainerNode, LeafNode, ParamValue, RoutineNode, new_node_id

if TYPE_CHECKING:
    from gcode import EmitContext

Category = Literal["org", "setup", "probe"]
FieldType = Literal["number", "text", "select", "radio"]
EmitResult = Union[str, Sequence[Any]]
EmitCallback = Callable[[RoutineNode, "EmitContext"], EmitResult]

CATEGORY_TITLES: dict[str, str] = {
    "org": "Organization",
    "setup": "Setup",
    "probe": "Probe Ops",
}

_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class FieldOption:
    value: str
    label: str


@dataclass(frozen=True)
class FieldSpec:
    """Describes one inline-editor input for a parameter."""

    key: str
    type: FieldType = "number"
    label: Optional[str] = None
    step: Optional[float] = None
    options: tuple[FieldOption, ...] = ()
    help: Optional[str] = None

    @property
    def display_label(self) -> str:
        return self.label or label_from_key(self.key)


@dataclass(frozen=True)
class ToolSpec:
    id: str
    name: str
    icon: str
    description: str
    category: Category
    emit: EmitCallback
    default_params: Mapping[str, ParamValue] = field(default_factory=dict)
    parameter_options: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    fields: tuple[FieldSpec, ...] = ()
    container: bool = False

    def editor_fields(self, node: RoutineNode) -> tuple[FieldSpec, ...]:
        if self.fields:
            return self.fields
        return tuple(FieldSpec(key=key) for key in node.params)


class Catalog:
    """Registry of tool kinds keyed by their stable id."""

    def __init__(self, specs: Sequence[ToolSpec] = ()) -> None:
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: ToolSpec) -> ToolSpec:
        if spec.id in self._specs:
            raise ValueError(f"Tool '{spec.id}' is already registered")
        for key, options in spec.parameter_options.items():
            if key not in spec.default_params:
                raise ValueError(f"Tool '{spec.id}' lists options for unknown parameter '{key}'")
            default = spec.default_params[key]
            if str(default) not in options:
                raise ValueError(
                    f"Tool '{spec.id}' default {key}={default!r} is not one of {list(options)}"
                )
        self._specs[spec.id] = spec
        return spec

    def get(self, tool_id: str) -> Optional[ToolSpec]:
        return self._specs.get(tool_id)

    def is_container(self, tool_id: str) -> bool:
        spec = self._specs.get(tool_id)
        return bool(spec and spec.container)

    def by_category(self) -> dict[str, list[ToolSpec]]:
        grouped: dict[str, list[ToolSpec]] = {key: [] for key in CATEGORY_TITLES}
        for spec in self._specs.values():
            grouped.setdefault(spec.category, []).append(spec)
        return grouped

    def __contains__(self, tool_id: object) -> bool:
        return tool_id in self._specs

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)


def create_node(spec: ToolSpec) -> RoutineNode:
    """Clone the tool's defaults under a fresh id."""
    params = dict(spec.default_params)
    if spec.container:
        return ContainerNode(id=new_node_id(), tool_id=spec.id, params=params)
    return LeafNode(id=new_node_id(), tool_id=spec.id, params=params)


def label_from_key(key: str) -> str:
    spaced = "".join(f" {ch}" if ch.isupper() else ch for ch in key).strip()
    return spaced[:1].upper() + spaced[1:]


def coerce_field_value(spec: FieldSpec, raw: str) -> ParamValue:
    """Convert editor text into a parameter value.

    Number fields keep an empty entry as ``""`` and read the leading number
    otherwise, so ``"12abc"`` becomes ``12``. Text with no leading number
    becomes ``0``. Every other field type stores the text unchanged.
    """
    if spec.type != "number":
        return raw
    text = raw.strip()
    if text == "":
        return ""
    match = _LEADING_NUMBER.match(text)
    if match is None:
        return 0
    number = float(match.group(0))
    if number.is_integer():
        return int(number)
    return number
