"""Built-in probe routine tools and their G-code templates."""

from __future__ import annotations

from catalog import Catalog, FieldOption, FieldSpec, ToolSpec
from gcode import EmitContext, emit_children
from node_models import ParamValue, RoutineNode

COMPARISON_OPS = ("EQ", "NE", "GT", "GE", "LT", "LE")


def _fmt(value: ParamValue) -> str:
    return "" if value is None else str(value)


def _options(*values: str) -> tuple[FieldOption, ...]:
    return tuple(FieldOption(value, value) for value in values)


def _condition(node: RoutineNode) -> str:
    p = node.params
    return f"[{_fmt(p.get('left'))} {_fmt(p.get('op'))} {_fmt(p.get('right'))}]"


def emit_folder(node: RoutineNode, ctx: EmitContext) -> list:
    name = _fmt(node.params.get("name")) or "SECTION"
    banner = name.upper()
    return [
        f";===== {banner} =====",
        emit_children(node, ctx, 0),
        f";===== END {banner} =====",
        "",
    ]


def emit_if_block(node: RoutineNode, ctx: EmitContext) -> list:
    label = ctx.next_label()
    return [
        f"IF {_condition(node)} GOTO {label}",
        "; (IF false → skip children)",
        f"GOTO {label}_END",
        f"N{label}",
        emit_children(node, ctx, 1),
        f"N{label}_END",
        "",
    ]


def emit_while_block(node: RoutineNode, ctx: EmitContext) -> list:
    index = ctx.loop_index()
    return [
        f"WHILE {_condition(node)} DO{index}",
        emit_children(node, ctx, 1),
        f"END{index}",
        "",
    ]


def emit_work_offset(node: RoutineNode, ctx: EmitContext) -> list:
    offset = _fmt(node.params.get("offset"))
    if offset == "G154":
        offset += f" P{_fmt(node.params.get('P'))}"
    return [offset, ""]


def emit_tool_change(node: RoutineNode, ctx: EmitContext) -> list:
    p = node.params
    return [
        f"T{_fmt(p.get('toolNumber'))} M6",
        f"S{_fmt(p.get('spindleSpeed'))} M3",
        _fmt(p.get("coolant")),
        "",
    ]


def emit_rapid_move(node: RoutineNode, ctx: EmitContext) -> list:
    p = node.params
    return [f"G0 X{_fmt(p.get('X'))} Y{_fmt(p.get('Y'))} Z{_fmt(p.get('Z'))}", ""]


def emit_single_touch(node: RoutineNode, ctx: EmitContext) -> list:
    p = node.params
    axis = _fmt(p.get("axis", "X")).upper()
    distance = _fmt(p.get("distance", -10))
    feed = _fmt(p.get("feed", 10))
    return [f"G65 P9811 {axis}{distance} F{feed}", ""]


def is_pocket(params: dict) -> bool:
    """Pocket when forced, or in auto mode whenever a Z depth is given."""
    mode = params.get("mode")
    if mode == "pocket":
        return True
    return mode == "auto" and params.get("Z") not in ("", None)


def emit_web_pocket(node: RoutineNode, ctx: EmitContext) -> list:
    p = node.params
    words = ["G65 P9812", f"X{_fmt(p.get('X'))}", f"Y{_fmt(p.get('Y'))}"]
    if is_pocket(p):
        words.append(f"Z{_fmt(p.get('Z'))}")
    words += [f"W{_fmt(p.get('W'))}", f"L{_fmt(p.get('L'))}", f"F{_fmt(p.get('feed'))}"]
    return [" ".join(words), ""]


def emit_safe_approach(node: RoutineNode, ctx: EmitContext) -> list:
    p = node.params
    return [
        f"G65 P9810 X{_fmt(p.get('X'))} Y{_fmt(p.get('Y'))} Z{_fmt(p.get('Z'))} F{_fmt(p.get('feed'))}",
        "",
    ]


_CONDITION_FIELDS = (
    FieldSpec("left", "text", "Left"),
    FieldSpec("op", "select", "Operator", options=_options(*COMPARISON_OPS)),
    FieldSpec("right", "text", "Right"),
)

_XYZ_FIELDS = (
    FieldSpec("X", step=0.001),
    FieldSpec("Y", step=0.001),
    FieldSpec("Z", step=0.001),
)

BUILTIN_TOOLS: tuple[ToolSpec, ...] = (
    # Organization / containers
    ToolSpec(
        id="folder",
        name="Folder",
        icon="📁",
        description="Organize operations",
        category="org",
        container=True,
        emit=emit_folder,
        default_params={"name": "New Section", "note": ""},
        fields=(FieldSpec("name", "text", "Name"), FieldSpec("note", "text", "Note")),
    ),
    ToolSpec(
        id="if-block",
        name="IF Block",
        icon="🧩",
        description="Conditional block",
        category="org",
        container=True,
        emit=emit_if_block,
        default_params={"left": "#100", "op": "GT", "right": "#101"},
        parameter_options={"op": COMPARISON_OPS},
        fields=_CONDITION_FIELDS,
    ),
    ToolSpec(
        id="while-block",
        name="WHILE Loop",
        icon="🔁",
        description="Loop while condition is true",
        category="org",
        container=True,
        emit=emit_while_block,
        default_params={"left": "#100", "op": "LT", "right": "10"},
        parameter_options={"op": COMPARISON_OPS},
        fields=_CONDITION_FIELDS,
    ),
    # Setup
    ToolSpec(
        id="set-work-offset",
        name="Work Offset",
        icon="🎯",
        description="Set active work offset",
        category="setup",
        emit=emit_work_offset,
        default_params={"offset": "G54", "P": "1"},
        parameter_options={
            "offset": ("G54", "G55", "G56", "G57", "G154"),
            "P": ("1", "2", "3", "4", "5"),
        },
        fields=(
            FieldSpec("offset", "select", "Offset", options=_options("G54", "G55", "G56", "G57", "G154")),
            FieldSpec(
                "P",
                "select",
                "P (for G154)",
                options=_options("1", "2", "3", "4", "5"),
                help="Only used when offset is G154.",
            ),
        ),
    ),
    ToolSpec(
        id="tool-change",
        name="Tool Change",
        icon="🔧",
        description="Change to specified tool",
        category="setup",
        emit=emit_tool_change,
        default_params={"toolNumber": 1, "spindleSpeed": 1000, "coolant": "M8"},
        parameter_options={"coolant": ("M8", "M7", "M9")},
        fields=(
            FieldSpec("toolNumber", label="Tool Number", step=1),
            FieldSpec("spindleSpeed", label="Spindle Speed", step=1),
            FieldSpec("coolant", "select", "Coolant", options=_options("M8", "M7", "M9")),
        ),
    ),
    ToolSpec(
        id="rapid-move",
        name="Rapid Move",
        icon="⚡",
        description="G0 rapid positioning",
        category="setup",
        emit=emit_rapid_move,
        default_params={"X": 0, "Y": 0, "Z": 25},
        fields=_XYZ_FIELDS,
    ),
    # Probe ops
    ToolSpec(
        id="single-touch-axis",
        name="Single Touch (P9811)",
        icon="📍",
        description="Single-axis touch: choose X, Y or Z",
        category="probe",
        emit=emit_single_touch,
        default_params={"axis": "X", "distance": -10, "feed": 10},
        parameter_options={"axis": ("X", "Y", "Z")},
        fields=(
            FieldSpec("axis", "radio", "Axis", options=_options("X", "Y", "Z"), help="P9811 takes exactly one axis."),
            FieldSpec("distance", label="Touch Distance", step=0.001),
            FieldSpec("feed", label="Feed (F)", step=1),
        ),
    ),
    ToolSpec(
        id="web-pocket",
        name="Web / Pocket (P9812)",
        icon="🧱",
        description="Rectangular web or pocket probing",
        category="probe",
        emit=emit_web_pocket,
        default_params={"mode": "auto", "X": 0, "Y": 0, "Z": "", "W": 20, "L": 15, "feed": 10},
        parameter_options={"mode": ("auto", "web", "pocket")},
        fields=(
            FieldSpec(
                "mode",
                "radio",
                "Mode",
                options=(
                    FieldOption("auto", "Auto (Z→Pocket)"),
                    FieldOption("web", "Web"),
                    FieldOption("pocket", "Pocket"),
                ),
                help="Auto: blank Z=Web, set Z=Pocket.",
            ),
            FieldSpec("X", step=0.001),
            FieldSpec("Y", step=0.001),
            FieldSpec("Z", label="Z (Pocket only)", step=0.001),
            FieldSpec("W", label="Width (W)", step=0.001),
            FieldSpec("L", label="Length (L)", step=0.001),
            FieldSpec("feed", label="Feed (F)", step=1),
        ),
    ),
    ToolSpec(
        id="safe-approach",
        name="Safe Approach (P9810)",
        icon="🛡️",
        description="G65 P9810 safe positioning",
        category="probe",
        emit=emit_safe_approach,
        default_params={"X": 0, "Y": 0, "Z": 25, "feed": 1000},
        fields=_XYZ_FIELDS + (FieldSpec("feed", label="Feed (F)", step=1),),
    ),
)


def default_catalog() -> Catalog:
    return Catalog(BUILTIN_TOOLS)
