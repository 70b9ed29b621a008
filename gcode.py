"""Context-carrying G-code emitter for routine trees.

Every catalog kind owns an ``emit`` callback. Container callbacks decide
where their children go by calling :func:`emit_children` themselves; the
emitter never recurses on its own. Indentation, loop numbering and label
allocation are tracked by :class:`EmitContext` so the callbacks stay
declarative::

    def emit_while(node, ctx):
        i = ctx.loop_index()
        return [f"WHILE [...] DO{i}", emit_children(node, ctx), f"END{i}", ""]
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Iterable, List, Optional

from catalog import Catalog
from node_models import RoutineNode

INDENT_UNIT = "  "
LABEL_SEED = 1000
MAX_LOOP_INDEX = 9
PROGRAM_NAME = "PROBE_ROUTINE.NC"


class LabelCounter:
    """Label allocator shared by every context forked from one root."""

    def __init__(self, seed: int = LABEL_SEED) -> None:
        self.value = seed

    def take(self) -> int:
        current = self.value
        self.value += 1
        return current


class EmittedLines(list):
    """Lines that are already indented and must be spliced verbatim."""


@dataclass(frozen=True)
class EmitContext:
    catalog: Catalog
    indent: int = 0
    loop_depth: int = 0
    labels: LabelCounter = field(default_factory=LabelCounter)

    def line(self, text: str) -> str:
        return f"{INDENT_UNIT * self.indent}{text}"

    def next_label(self) -> str:
        return str(self.labels.take())

    def loop_index(self) -> int:
        return min(self.loop_depth + 1, MAX_LOOP_INDEX)

    def fork(self, delta: int = 1) -> "EmitContext":
        return replace(
            self,
            indent=self.indent + delta,
            loop_depth=self.loop_depth + (1 if delta > 0 else 0),
        )


def emit_node(node: RoutineNode, ctx: EmitContext) -> List[str]:
    spec = ctx.catalog.get(node.tool_id)
    if spec is None:
        return [ctx.line(f"; Unknown node {node.tool_id}")]
    raw = spec.emit(node, ctx)
    items = [raw] if isinstance(raw, (str, EmittedLines)) else list(raw)
    lines: List[str] = []
    for item in items:
        if isinstance(item, EmittedLines):
            lines.extend(item)
        elif item is None:
            lines.append(ctx.line(""))
        else:
            lines.append(ctx.line(str(item)))
    return lines


def emit_children(node: RoutineNode, ctx: EmitContext, indent_delta: int = 1) -> EmittedLines:
    out = EmittedLines()
    for child in getattr(node, "children", ()):
        out.extend(emit_node(child, ctx.fork(indent_delta)))
    return out


def program_header(today: Optional[date] = None) -> List[str]:
    stamp = (today or date.today()).strftime("%m/%d/%Y")
    return [
        ";Renishaw Probe Routine - Generated by Probe Builder",
        f";Program: {PROGRAM_NAME}",
        f";Date: {stamp}",
        "",
        ";Initialize program",
        "G0 G17 G40 G49 G80 G90",
        "",
    ]


def program_footer() -> List[str]:
    return [
        ";End of probe routine",
        "G0 G53 Z0.",
        "M30",
        "",
    ]


def generate_program(
    roots: Iterable[RoutineNode],
    catalog: Catalog,
    *,
    today: Optional[date] = None,
) -> str:
    ctx = EmitContext(catalog=catalog)
    body: List[str] = []
    for node in roots:
        body.extend(emit_node(node, ctx))
    return "\n".join(program_header(today) + body + program_footer())
