import pytest

from catalog import Catalog, FieldSpec, ToolSpec, coerce_field_value, create_node, label_from_key
from gcode import generate_program
from node_models import ContainerNode, LeafNode
from tools import BUILTIN_TOOLS


def _dwell(node, ctx):
    return f"G4 P{node.params['seconds']}"


DWELL = ToolSpec(
    id="dwell",
    name="Dwell",
    icon="⏱",
    description="Pause",
    category="setup",
    emit=_dwell,
    default_params={"seconds": 2},
)


class TestCatalog:
    def test_builtin_kinds(self, catalog):
        assert len(catalog) == len(BUILTIN_TOOLS)
        assert {spec.id for spec in catalog if spec.container} == {"folder", "if-block", "while-block"}

    def test_by_category_keeps_registration_order(self, catalog):
        grouped = catalog.by_category()
        assert list(grouped) == ["org", "setup", "probe"]
        assert [spec.id for spec in grouped["probe"]] == ["single-touch-axis", "web-pocket", "safe-approach"]

    def test_duplicate_id_is_rejected(self, catalog):
        with pytest.raises(ValueError):
            catalog.register(catalog.get("folder"))

    def test_default_outside_options_is_rejected(self):
        bad = ToolSpec(
            id="bad",
            name="Bad",
            icon="x",
            description="",
            category="setup",
            emit=_dwell,
            default_params={"coolant": "M99"},
            parameter_options={"coolant": ("M7", "M8")},
        )
        with pytest.raises(ValueError):
            Catalog([bad])

    def test_options_for_unknown_parameter_are_rejected(self):
        bad = ToolSpec(
            id="bad",
            name="Bad",
            icon="x",
            description="",
            category="setup",
            emit=_dwell,
            parameter_options={"coolant": ("M7",)},
        )
        with pytest.raises(ValueError):
            Catalog([bad])

    def test_new_kind_needs_only_registration(self, catalog):
        catalog.register(DWELL)
        node = create_node(DWELL)
        assert "G4 P2" in generate_program([node], catalog).split("\n")

    def test_unknown_lookup(self, catalog):
        assert catalog.get("nope") is None
        assert "nope" not in catalog
        assert not catalog.is_container("nope")


class TestCreateNode:
    def test_container_shape(self, catalog):
        node = create_node(catalog.get("while-block"))
        assert isinstance(node, ContainerNode)
        assert node.children == []
        assert node.params == {"left": "#100", "op": "LT", "right": "10"}

    def test_leaf_shape(self, catalog):
        node = create_node(catalog.get("rapid-move"))
        assert isinstance(node, LeafNode)
        assert not hasattr(node, "children")
        assert not node.is_container

    def test_defaults_are_cloned(self, catalog):
        spec = catalog.get("rapid-move")
        node = create_node(spec)
        node.params["X"] = 99
        assert spec.default_params["X"] == 0

    def test_ids_are_unique(self, catalog):
        spec = catalog.get("folder")
        ids = {create_node(spec).id for _ in range(200)}
        assert len(ids) == 200
        assert all(node_id.startswith("op_") for node_id in ids)


class TestFields:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("", ""),
            ("  ", ""),
            ("12", 12),
            ("-10", -10),
            ("1.25", 1.25),
            ("abc", 0),
            ("12abc", 12),
            ("3.", 3),
            (".5mm", 0.5),
            ("2e3", 2000),
        ],
    )
    def test_number_coercion(self, raw, expected):
        assert coerce_field_value(FieldSpec("X"), raw) == expected

    def test_text_passes_through(self):
        assert coerce_field_value(FieldSpec("left", "text"), " #100 ") == " #100 "

    def test_labels_from_keys(self):
        assert label_from_key("toolNumber") == "Tool Number"
        assert label_from_key("X") == "X"
        assert FieldSpec("spindleSpeed").display_label == "Spindle Speed"

    def test_editor_fields_fall_back_to_params(self, catalog):
        catalog.register(DWELL)
        node = create_node(DWELL)
        assert [field.key for field in DWELL.editor_fields(node)] == ["seconds"]

    def test_builtin_options_match_fields(self, catalog):
        for spec in catalog:
            for field in spec.fields:
                if field.options and field.key in spec.parameter_options:
                    assert tuple(o.value for o in field.options) == spec.parameter_options[field.key]
