from __future__ import annotations

from pathlib import Path
import sys
from typing import Optional, Sequence

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Footer, Header, Input, Label, OptionList, Select, Static, TextArea, Tree
from textual.widgets.option_list import Option, OptionDoesNotExist
from textual.widgets.tree import TreeNode
from rich.text import Text

from activity_log import reset_activity_log
from catalog import CATEGORY_TITLES, FieldSpec, coerce_field_value
from node_models import ContainerNode, ParamValue, RoutineNode
from routine import RoutineDocument
from routine_io import SnapshotError, export_program, get_state_path, load_document, save_document
from routine_tree import ROOT
from tools import default_catalog


class RoutineTreeView(Tree[object]):
    """Tree widget whose node data is a routine node id or a parameter line."""

    def process_label(self, label) -> Text:
        if isinstance(label, str):
            return Text.from_markup(label, justify="left")
        return label


class PickerScreen(ModalScreen[Optional[str]]):
    """Modal list of choices; dismisses with the chosen option id."""

    DEFAULT_CSS = """
    PickerScreen {
        align: center middle;
    }

    #picker-panel {
        min-width: 40;
        max-width: 70;
        height: auto;
        max-height: 80%;
        background: $panel;
        border: round $secondary;
        padding: 1 2 1 2;
    }

    #picker-title {
        content-align: center middle;
        text-style: bold;
        padding-bottom: 1;
    }

    #picker-list {
        border: none;
        background: $surface;
        padding: 0;
    }

    #picker-list > .option-list--option-highlighted {
        background: $accent;
        color: $text;
        text-style: bold;
    }
    """

    def __init__(self, title: str, options: Sequence[Option], current: Optional[str] = None) -> None:
        super().__init__()
        self._title = title
        self._options = list(options)
        self._current = current

    def compose(self) -> ComposeResult:
        with Vertical(id="picker-panel"):
            yield Static(self._title, id="picker-title")
            yield OptionList(*self._options, id="picker-list")

    def on_mount(self) -> None:
        option_list = self.query_one("#picker-list", OptionList)
        option_list.focus()
        if self._current is None:
            return
        try:
            option_list.highlighted = option_list.get_option_index(self._current)
        except OptionDoesNotExist:
            return
        option_list.scroll_to_highlight()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        self.dismiss(event.option_id)

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            event.stop()
            self.dismiss(None)


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no prompt shown before destructive edits."""

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-panel {
        width: 60;
        height: auto;
        background: $panel;
        border: round $error;
        padding: 1 2;
    }

    #confirm-hint {
        color: $text-muted;
        padding-top: 1;
    }
    """

    def __init__(self, prompt: str) -> None:
        super().__init__()
        self._prompt = prompt

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-panel"):
            yield Static(self._prompt, id="confirm-prompt")
            yield Static("y = delete · n / Esc = keep", id="confirm-hint")

    def on_key(self, event: events.Key) -> None:
        if event.key == "y":
            event.stop()
            self.dismiss(True)
        elif event.key in ("n", "escape"):
            event.stop()
            self.dismiss(False)


class ParamEditorScreen(ModalScreen[Optional[dict]]):
    """Form with one input per catalog field; dismisses with a parameter patch."""

    DEFAULT_CSS = """
    ParamEditorScreen {
        align: center middle;
    }

    #param-editor-panel {
        width: 64;
        height: auto;
        max-height: 90%;
        background: $panel;
        border: round $secondary;
        padding: 1 2;
    }

    #param-editor-title {
        text-style: bold;
        padding-bottom: 1;
    }

    .param-help {
        color: $text-muted;
    }

    #param-apply {
        margin-top: 1;
    }
    """

    def __init__(self, title: str, fields: Sequence[FieldSpec], params: dict[str, ParamValue]) -> None:
        super().__init__()
        self._title = title
        self._fields = list(fields)
        self._params = dict(params)

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="param-editor-panel"):
            yield Static(self._title, id="param-editor-title")
            for index, field in enumerate(self._fields):
                yield Label(field.display_label)
                current = self._params.get(field.key)
                text = "" if current is None else str(current)
                if field.options:
                    choices = [(option.label, option.value) for option in field.options]
                    if text not in {option.value for option in field.options}:
                        choices.append((text or "(empty)", text))
                    yield Select(choices, value=text, allow_blank=False, id=f"param-{index}")
                else:
                    yield Input(value=text, placeholder=field.display_label, id=f"param-{index}")
                if field.help:
                    yield Static(field.help, classes="param-help")
            yield Button("Apply", id="param-apply", variant="primary")
            yield Static("Enter or Apply to save · Esc to cancel", classes="param-help")

    def on_mount(self) -> None:
        inputs = list(self.query("Input, Select"))
        if inputs:
            inputs[0].focus()

    def gather_patch(self) -> dict[str, ParamValue]:
        patch: dict[str, ParamValue] = {}
        for index, field in enumerate(self._fields):
            widget = self.query_one(f"#param-{index}")
            if isinstance(widget, Select):
                patch[field.key] = widget.value
            elif isinstance(widget, Input):
                patch[field.key] = coerce_field_value(field, widget.value)
        return patch

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dismiss(self.gather_patch())

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "param-apply":
            event.stop()
            self.dismiss(self.gather_patch())

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            event.stop()
            self.dismiss(None)


class ProbeBuilderApp(App[None]):
    """Textual editor for probe routines with live G-code output."""

    TITLE = "Probe Builder"

    CSS = """
    #routine-tree {
        width: 1fr;
    }
    #gcode-panel {
        width: 1fr;
        border-left: solid $secondary;
    }
    """

    BINDINGS = [
        Binding("q", "request_quit", "Quit", show=False),
        Binding("a", "add_operation", "Add"),
        Binding("t", "choose_target", "Add to"),
        Binding("e", "edit_params", "Edit"),
        Binding("d", "toggle_details", "Details"),
        Binding("m", "move_node", "Move"),
        Binding("left_square_bracket", "reorder(-1)", "Up", key_display="["),
        Binding("right_square_bracket", "reorder(1)", "Down", key_display="]"),
        Binding("x", "delete_node", "Delete"),
        Binding("delete", "delete_node", "Delete", show=False),
        Binding("g", "toggle_gcode", "G-code"),
        Binding("s", "save", "Save", show=False),
        Binding("o", "open", "Reload", show=False),
        Binding("w", "export", "Export .nc"),
    ]

    def __init__(self, state_path: str | Path | None = None, *, document: RoutineDocument | None = None) -> None:
        super().__init__()
        self.title = "Probe Builder"
        self.catalog = document.catalog if document is not None else default_catalog()
        self.document = document if document is not None else RoutineDocument(catalog=self.catalog)
        self._tree_widget: Optional[RoutineTreeView] = None
        self._gcode_widget: Optional[TextArea] = None
        self._state_path: Path = Path(state_path).expanduser() if state_path else get_state_path()
        self._load_on_mount = document is None
        # Cleared by a successful reload or an explicit save.
        self._autosave_blocked = False
        reset_activity_log()

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal():
            tree = RoutineTreeView("Routine", id="routine-tree")
            tree.show_root = False
            self._tree_widget = tree
            yield tree
            gcode = TextArea("", read_only=True, id="gcode-panel")
            self._gcode_widget = gcode
            yield gcode
        yield Footer()

    def on_mount(self) -> None:
        problem: Optional[str] = None
        if self._load_on_mount and self._state_path.exists():
            problem = self._load_routine(self._state_path)
            self._autosave_blocked = problem is not None
        if self.document.seed_demo():
            self._persist()
        self.rebuild_tree()
        self.require_tree().focus()
        if problem:
            self.bell()
            self.show_status(problem)

    # ------------------------------------------------------------------
    # Tree rendering

    def require_tree(self) -> RoutineTreeView:
        if self._tree_widget is None:
            raise RuntimeError("Tree widget not initialised")
        return self._tree_widget

    def rebuild_tree(self, select_id: Optional[str] = None) -> None:
        tree = self.require_tree()
        select_id = select_id or self.get_selected_node_id()
        tree.clear()
        for index, node in enumerate(self.document.roots, start=1):
            self.populate_tree(tree.root, node, [index])
        tree.root.expand()
        target = self._find_tree_node(select_id) if select_id else None
        if target is not None:
            self._select_tree_node_without_toggle(target)
        tree.refresh(layout=True)
        self.refresh_gcode()
        self.show_status()

    def populate_tree(self, parent: TreeNode[object], node: RoutineNode, path: list[int]) -> None:
        label = self._format_node_label(node, path)
        expanded = self.document.is_expanded(node.id)
        if isinstance(node, ContainerNode):
            tree_node = parent.add(label, data=node.id, expand=not self.document.is_collapsed(node.id))
        elif expanded:
            tree_node = parent.add(label, data=node.id, expand=True)
        else:
            parent.add_leaf(label, data=node.id)
            return
        if expanded:
            for key, value in node.params.items():
                shown = "" if value is None else str(value)
                line = tree_node.add_leaf(
                    Text(f"  {key} = {shown}", style="dim italic"),
                    data={"kind": "param", "node_id": node.id, "key": key},
                )
                line.allow_expand = False
        if isinstance(node, ContainerNode):
            for index, child in enumerate(node.children, start=1):
                self.populate_tree(tree_node, child, path + [index])

    def _format_node_label(self, node: RoutineNode, path: list[int]) -> Text:
        spec = self.catalog.get(node.tool_id)
        number = "#" + ".".join(str(part) for part in path)
        if spec is None:
            return Text.assemble((f"{number} ", "dim"), "• ", (node.tool_id, "bold red"), ("  unknown tool", "dim"))
        if isinstance(node, ContainerNode):
            icon = "📁" if self.document.is_collapsed(node.id) else "📂"
            detail = f"{len(node.children)} items"
        else:
            icon = spec.icon
            detail = spec.description
        label = Text.assemble(
            (f"{number} ", "dim"),
            f"{icon} ",
            (self.document.display_name(node), "bold"),
            (f"  {detail}", "dim"),
        )
        if node.id == self.document.target_parent_id:
            label.append("  ← add here", style="italic green")
        return label

    def _find_tree_node(self, node_id: str) -> Optional[TreeNode[object]]:
        stack = [self.require_tree().root]
        while stack:
            tree_node = stack.pop()
            if tree_node.data == node_id:
                return tree_node
            stack.extend(tree_node.children)
        return None

    def _select_tree_node_without_toggle(self, node: TreeNode[object]) -> None:
        tree = self.require_tree()
        auto_expand_initial = tree.auto_expand
        if auto_expand_initial:
            tree.auto_expand = False

            def _restore_auto_expand() -> None:
                tree.auto_expand = auto_expand_initial

            self.call_after_refresh(_restore_auto_expand)
        tree.select_node(node)

    def get_selected_node_id(self) -> Optional[str]:
        cursor = self.require_tree().cursor_node
        if cursor is None:
            return None
        data = cursor.data
        if isinstance(data, dict) and data.get("kind") == "param":
            return data["node_id"]
        return data if isinstance(data, str) else None

    def _require_selection(self) -> Optional[RoutineNode]:
        node_id = self.get_selected_node_id()
        node = self.document.get_node(node_id) if node_id else None
        if node is None:
            self.bell()
            self.show_status("No node selected.")
        return node

    def on_tree_node_expanded(self, event: Tree.NodeExpanded[object]) -> None:
        self._sync_collapsed(event.node, collapsed=False)

    def on_tree_node_collapsed(self, event: Tree.NodeCollapsed[object]) -> None:
        self._sync_collapsed(event.node, collapsed=True)

    def _sync_collapsed(self, tree_node: TreeNode[object], *, collapsed: bool) -> None:
        node_id = tree_node.data
        if not isinstance(node_id, str) or self.document.is_collapsed(node_id) == collapsed:
            return
        node = self.document.get_node(node_id)
        if not isinstance(node, ContainerNode):
            return
        self.document.set_collapsed(node_id, collapsed)
        path = self._tree_path(tree_node)
        tree_node.set_label(self._format_node_label(node, path))
        self._persist()

    def _tree_path(self, tree_node: TreeNode[object]) -> list[int]:
        path: list[int] = []
        current = tree_node
        while current.parent is not None:
            siblings = [child for child in current.parent.children if isinstance(child.data, str)]
            path.append(siblings.index(current) + 1)
            current = current.parent
        return list(reversed(path))

    # ------------------------------------------------------------------
    # Status, output and persistence

    def show_status(self, message: str | None = None) -> None:
        operations, total = self.document.counts()
        target = self.document.get_node(self.document.target_parent_id)
        target_name = self.document.display_name(target) if target else "Root"
        summary = f"{operations} operations · {total} items | Add to: {target_name}"
        self.sub_title = f"{message} · {summary}" if message else summary

    def refresh_gcode(self) -> None:
        panel = self._gcode_widget
        if panel is None:
            return
        panel.display = self.document.show_gcode
        if self.document.show_gcode:
            panel.load_text(self.document.generate())

    def _persist(self, *, explicit: bool = False) -> None:
        if self._autosave_blocked and not explicit:
            return
        try:
            save_document(self.document, self._state_path)
            self._autosave_blocked = False
        except OSError as exc:
            self.bell()
            self.show_status(f"Failed to save {self._state_path}: {exc}")

    def _load_routine(self, path: Path) -> Optional[str]:
        """Replace the document from ``path``; return an error message on failure."""
        try:
            self.document = load_document(self.catalog, path)
        except (OSError, SnapshotError) as exc:
            return f"Failed to load {path}: {exc}"
        return None

    def _modal_open(self) -> bool:
        return isinstance(self.screen, ModalScreen)

    def _after_mutation(self, message: str, select_id: Optional[str] = None) -> None:
        self._persist()
        self.rebuild_tree(select_id)
        self.show_status(message)

    # ------------------------------------------------------------------
    # Actions

    def action_request_quit(self) -> None:
        if self._modal_open():
            return
        self.exit()

    def action_add_operation(self) -> None:
        if self._modal_open():
            return
        options: list[Option] = []
        for category, specs in self.catalog.by_category().items():
            if not specs:
                continue
            options.append(Option(Text(CATEGORY_TITLES.get(category, category), style="bold"), disabled=True))
            for spec in specs:
                options.append(
                    Option(Text.assemble(f"  {spec.icon} ", (spec.name, "bold"), (f"  {spec.description}", "dim")), id=spec.id)
                )

        def _apply(tool_id: Optional[str]) -> None:
            if not tool_id:
                return
            node = self.document.add(tool_id)
            if node is None:
                self.bell()
                self.show_status("Cannot add here.")
                return
            self._after_mutation(f"Added {self.document.display_name(node)}.", node.id)

        self.push_screen(PickerScreen("Add operation", options), _apply)

    def _destination_options(self, containers: Sequence[ContainerNode]) -> list[Option]:
        options = [Option("📂 Root", id=ROOT)]
        for container in containers:
            options.append(Option(f"📁 {self.document.display_name(container)}", id=container.id))
        return options

    def action_choose_target(self) -> None:
        if self._modal_open():
            return

        def _apply(target_id: Optional[str]) -> None:
            if not target_id:
                return
            if self.document.set_target_parent(target_id):
                self._after_mutation("Add-to target updated.")

        options = self._destination_options(self.document.containers())
        self.push_screen(PickerScreen("Add new operations to", options, self.document.target_parent_id), _apply)

    def action_edit_params(self) -> None:
        if self._modal_open():
            return
        node = self._require_selection()
        if node is None:
            return
        spec = self.catalog.get(node.tool_id)
        if spec is None:
            self.bell()
            self.show_status(f"Unknown tool {node.tool_id}; nothing to edit.")
            return

        def _apply(patch: Optional[dict]) -> None:
            if patch is None:
                return
            self.document.update_params(node.id, patch)
            self._after_mutation("Parameters updated.", node.id)

        title = f"{spec.icon} {self.document.display_name(node)}"
        self.push_screen(ParamEditorScreen(title, spec.editor_fields(node), node.params), _apply)

    def action_toggle_details(self) -> None:
        if self._modal_open():
            return
        node = self._require_selection()
        if node is None:
            return
        self.document.toggle_expanded(node.id)
        self._after_mutation("Details shown." if self.document.is_expanded(node.id) else "Details hidden.", node.id)

    def action_move_node(self) -> None:
        if self._modal_open():
            return
        node = self._require_selection()
        if node is None:
            return

        def _apply(destination: Optional[str]) -> None:
            if not destination:
                return
            status = self.document.move(node.id, destination)
            if not status:
                self.bell()
                self.show_status(f"Move rejected: {status.value}.")
                return
            self._after_mutation("Moved.", node.id)

        options = self._destination_options(self.document.move_destinations(node.id))
        self.push_screen(PickerScreen(f"Move {self.document.display_name(node)} to", options), _apply)

    def action_reorder(self, direction: int) -> None:
        if self._modal_open():
            return
        node = self._require_selection()
        if node is None:
            return
        status = self.document.reorder(node.id, direction)
        if not status:
            self.bell()
            self.show_status(f"Not moved: {status.value}.")
            return
        self._after_mutation("Reordered.", node.id)

    def action_delete_node(self) -> None:
        if self._modal_open():
            return
        node = self._require_selection()
        if node is None:
            return
        prompt = self.document.delete_prompt(node.id) or "Delete?"

        def _apply(confirmed: Optional[bool]) -> None:
            if not confirmed:
                self.show_status("Nothing deleted.")
                return
            parent = self.document.tree.get_parent(node.id)
            self.document.remove(node.id)
            self._after_mutation("Deleted.", parent.id if parent else None)

        self.push_screen(ConfirmScreen(prompt), _apply)

    def action_toggle_gcode(self) -> None:
        if self._modal_open():
            return
        self.document.show_gcode = not self.document.show_gcode
        self._persist()
        self.refresh_gcode()
        self.show_status("G-code shown." if self.document.show_gcode else "G-code hidden.")

    def action_save(self) -> None:
        if self._modal_open():
            return
        self._persist(explicit=True)
        self.show_status(f"Saved to {self._state_path}")

    def action_open(self) -> None:
        if self._modal_open():
            return
        if not self._state_path.exists():
            self.bell()
            self.show_status(f"{self._state_path} not found.")
            return
        problem = self._load_routine(self._state_path)
        if problem:
            self.bell()
            self.show_status(problem)
            return
        self._autosave_blocked = False
        self.rebuild_tree()
        self.show_status(f"Loaded {self._state_path}")

    def action_export(self) -> None:
        if self._modal_open():
            return
        try:
            path = export_program(self.document)
        except OSError as exc:
            self.bell()
            self.show_status(f"Export failed: {exc}")
            return
        self.show_status(f"Exported {path}")


def main() -> None:
    initial_path = sys.argv[1] if len(sys.argv) > 1 else None
    ProbeBuilderApp(initial_path).run()


if __name__ == "__main__":
    main()
