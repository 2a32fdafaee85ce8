"""Tests for patch validation, application, diffing and optimization."""

import copy

import pytest

from page_editor.models import PatchOp, PatchOperation
from page_editor.services.patch_engine import (
    PatchApplicationError,
    PatchValidationError,
    apply_patch,
    apply_to_page,
    build_pointer,
    create_operation_patch,
    create_patch,
    is_valid_patch,
    json_equal,
    optimize_patches,
    validate_patch,
)
from tests.helpers.factories import make_grouped_page, make_node, make_page


def wire(patches):
    return [p.to_wire() for p in patches]


class TestValidation:
    """Malformed entries are rejected before anything is applied."""

    @pytest.mark.parametrize(
        "entry",
        [
            {"op": "add", "value": 1},
            {"op": "add", "path": "/a"},
            {"op": "replace", "path": "/a"},
            {"op": "move", "path": "/a"},
            {"op": "copy", "path": "/a", "from": "a"},
            {"op": "bogus", "path": "/a", "value": 1},
            {"op": "remove", "path": ""},
        ],
    )
    def test_malformed_entry(self, entry):
        with pytest.raises(PatchValidationError) as exc_info:
            validate_patch([entry])
        assert exc_info.value.index == 0

    def test_reports_index_of_bad_entry(self):
        patch = [{"op": "add", "path": "/a", "value": 1}, {"op": "remove"}]
        with pytest.raises(PatchValidationError) as exc_info:
            validate_patch(patch)
        assert exc_info.value.index == 1
        assert is_valid_patch(patch) is False

    def test_null_is_a_valid_value(self):
        assert is_valid_patch([{"op": "add", "path": "/a", "value": None}])


class TestApplyPatch:
    """RFC 6902 operations over a copy."""

    def test_add_and_append(self):
        doc = {"a": 1, "list": [1, 2]}
        result = apply_patch(doc, [
            {"op": "add", "path": "/b", "value": 2},
            {"op": "add", "path": "/list/-", "value": 3},
            {"op": "add", "path": "/list/0", "value": 0},
        ])
        assert result == {"a": 1, "b": 2, "list": [0, 1, 2, 3]}
        assert doc == {"a": 1, "list": [1, 2]}

    def test_remove_replace_move_copy(self):
        doc = {"a": {"x": 1}, "b": [1, 2, 3]}
        result = apply_patch(doc, [
            {"op": "replace", "path": "/a/x", "value": 5},
            {"op": "remove", "path": "/b/0"},
            {"op": "move", "from": "/b/1", "path": "/b/0"},
            {"op": "copy", "from": "/a", "path": "/c"},
        ])
        assert result == {"a": {"x": 5}, "b": [3, 2], "c": {"x": 5}}

    def test_escaped_pointer_tokens(self):
        doc = {"a/b": 1, "m~n": 2}
        result = apply_patch(doc, [
            {"op": "replace", "path": build_pointer("a/b"), "value": 3},
            {"op": "replace", "path": "/m~0n", "value": 4},
        ])
        assert result == {"a/b": 3, "m~n": 4}

    def test_test_operation(self):
        assert apply_patch({"a": 1}, [{"op": "test", "path": "/a", "value": 1.0}]) == {"a": 1}
        with pytest.raises(PatchApplicationError):
            apply_patch({"a": 1}, [{"op": "test", "path": "/a", "value": True}])

    def test_failure_reports_index_and_leaves_input_untouched(self):
        doc = {"a": [1, 2]}
        original = copy.deepcopy(doc)
        with pytest.raises(PatchApplicationError) as exc_info:
            apply_patch(doc, [
                {"op": "add", "path": "/a/-", "value": 3},
                {"op": "remove", "path": "/missing"},
            ])
        assert exc_info.value.index == 1
        assert doc == original

    @pytest.mark.parametrize("path", ["/list/5", "/list/01", "/list/x"])
    def test_invalid_array_index(self, path):
        with pytest.raises(PatchApplicationError):
            apply_patch({"list": [1, 2]}, [{"op": "replace", "path": path, "value": 0}])

    def test_move_into_own_child_fails(self):
        with pytest.raises(PatchApplicationError):
            apply_patch({"a": {"b": {}}}, [{"op": "move", "from": "/a", "path": "/a/b/c"}])

    def test_invalid_page_result_fails(self, three_nodes):
        patch = [{"op": "replace", "path": "/components/0/id", "value": "b"}]
        with pytest.raises(PatchApplicationError):
            apply_to_page(three_nodes, patch)


class TestGenericDiff:
    """create_patch produces a patch that reproduces the target."""

    @pytest.mark.parametrize(
        "before,after",
        [
            ({"a": 1, "b": {"c": 2}}, {"a": 1, "b": {"c": 3, "d": 4}}),
            ({"a": 1, "b": 2}, {"b": 2}),
            ({"a": 1}, {"a": True}),
            ({"tags": ["x", "y", "z"]}, {"tags": ["y", "z", "w"]}),
            ({"tags": [1, 2, 3]}, {"tags": [3, 2, 1]}),
            (
                {"items": [{"id": "a", "v": 1}, {"id": "b", "v": 2}, {"id": "c", "v": 3}]},
                {"items": [{"id": "c", "v": 3}, {"id": "d", "v": 4}, {"id": "a", "v": 9}]},
            ),
        ],
    )
    def test_patch_reproduces_target(self, before, after):
        patch = create_patch(before, after)
        assert json_equal(apply_patch(before, patch), after)

    def test_identical_documents_produce_no_patch(self):
        assert create_patch({"a": [1, {"b": 2}]}, {"a": [1.0, {"b": 2}]}) == []

    def test_keyed_reorder_is_a_single_move(self):
        before = [{"id": "a"}, {"id": "b"}, {"id": "c"}]
        after = [{"id": "c"}, {"id": "a"}, {"id": "b"}]
        assert wire(create_patch(before, after)) == [{"op": "move", "from": "/2", "path": "/0"}]

    def test_bool_change_is_a_replace(self):
        assert wire(create_patch({"a": 1}, {"a": True})) == [{"op": "replace", "path": "/a", "value": True}]

    def test_page_diff(self, three_nodes):
        after = three_nodes.model_copy(update={"name": "Renamed", "components": three_nodes.components[::-1]})
        patch = create_patch(three_nodes, after)
        assert apply_to_page(three_nodes, patch).to_dict() == after.to_dict()


class TestJsonEqual:
    """Number and boolean comparison rules."""

    def test_ints_equal_floats(self):
        assert json_equal(1, 1.0)

    def test_bools_are_not_numbers(self):
        assert not json_equal(True, 1)
        assert not json_equal(0, False)

    def test_nested(self):
        assert json_equal({"a": [1, {"b": 2.0}]}, {"a": [1.0, {"b": 2}]})


class TestOptimize:
    """Consecutive same-path replaces collapse."""

    def test_collapses_runs(self):
        patches = [
            PatchOperation(op=PatchOp.REPLACE, path="/a", value=1),
            PatchOperation(op=PatchOp.REPLACE, path="/a", value=2),
            PatchOperation(op=PatchOp.REPLACE, path="/b", value=3),
            PatchOperation(op=PatchOp.REPLACE, path="/a", value=4),
        ]
        assert wire(optimize_patches(patches)) == [
            {"op": "replace", "path": "/a", "value": 2},
            {"op": "replace", "path": "/b", "value": 3},
            {"op": "replace", "path": "/a", "value": 4},
        ]

    def test_other_ops_break_runs(self):
        patches = [
            {"op": "replace", "path": "/a", "value": 1},
            {"op": "add", "path": "/a", "value": 2},
            {"op": "replace", "path": "/a", "value": 3},
        ]
        assert len(optimize_patches(patches)) == 3


def _round_trip(before, result):
    assert result.ok, result.message
    patch = create_operation_patch(result.operation, before, result.page)
    assert apply_to_page(before, patch).to_dict() == result.page.to_dict()
    return patch


class TestOperationPatches:
    """Operation-derived patches reproduce the committed page."""

    def test_add(self, document, three_nodes):
        patch = _round_trip(three_nodes, document.add_node(three_nodes, "button", component_id="btn"))
        assert wire(patch)[0]["path"] == "/components/-"

    def test_remove(self, document, three_nodes):
        patch = _round_trip(three_nodes, document.remove_node(three_nodes, "b"))
        assert wire(patch) == [{"op": "remove", "path": "/components/1"}]

    def test_remove_dissolving_group(self, document):
        page = make_grouped_page()
        patch = _round_trip(page, document.remove_node(page, "a"))
        assert [p.op for p in patch] == [PatchOp.REMOVE, PatchOp.REPLACE, PatchOp.REMOVE]
        assert patch[-1].path == "/groups/g1"

    def test_update(self, document, three_nodes):
        patch = _round_trip(three_nodes, document.set_position(three_nodes, "c", 5, 6))
        assert wire(patch)[0]["op"] == "replace"
        assert wire(patch)[0]["path"] == "/components/2"

    def test_move(self, document, three_nodes):
        patch = _round_trip(three_nodes, document.move_node(three_nodes, "a", 2))
        assert wire(patch) == [{"op": "move", "from": "/components/0", "path": "/components/2"}]

    def test_duplicate(self, document, three_nodes):
        patch = _round_trip(three_nodes, document.duplicate_node(three_nodes, "a", new_id="a2"))
        assert wire(patch)[0]["path"] == "/components/1"

    def test_group_and_ungroup(self, document, three_nodes):
        grouped = document.group_nodes(three_nodes, ["a", "c"], group_id="g1")
        patch = _round_trip(three_nodes, grouped)
        assert patch[-1].to_wire()["op"] == "add"
        assert patch[-1].path == "/groups/g1"

        _round_trip(grouped.page, document.ungroup_nodes(grouped.page, "g1"))

    def test_bulk_uses_generic_diff(self, document):
        page = make_page(make_node("a", tablet={"x": 5}), make_node("b", mobile={"y": 3}))
        _round_trip(page, document.reset_breakpoint(page, "tablet"))
