"""Unit tests for batch dependency ordering and back-reference resolution."""

import pytest

from vibe_coding_mcp.batch import Operation
from vibe_coding_mcp.batch import resolve_references
from vibe_coding_mcp.batch import sort_by_dependencies
from vibe_coding_mcp.batch.resolver import assign_operation_ids
from vibe_coding_mcp.batch.resolver import generate_operation_id
from vibe_coding_mcp.exceptions import CircularDependencyError
from vibe_coding_mcp.exceptions import ValidationError


def op(op_id, depends_on=None, tool="echo", **params):
    return Operation(id=op_id, tool=tool, params=params, depends_on=depends_on or [])


def ids(operations):
    return [o.id for o in operations]


class TestOperationIds:
    def test_generated_id_strips_tool_prefix(self):
        assert generate_operation_id(2, "muse_session_history") == "op_2_session_history"
        assert generate_operation_id(0, "echo") == "op_0_echo"

    def test_missing_ids_are_assigned_by_position(self):
        ops = [Operation(tool="muse_git"), op("named"), Operation(tool="echo")]
        assert ids(assign_operation_ids(ops)) == ["op_0_git", "named", "op_2_echo"]

    def test_assignment_does_not_mutate_input(self):
        original = Operation(tool="echo")
        assign_operation_ids([original])
        assert original.id is None

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate operation id: a"):
            assign_operation_ids([op("a"), op("a")])


class TestSortByDependencies:
    def test_independent_operations_keep_input_order(self):
        assert ids(sort_by_dependencies([op("c"), op("a"), op("b")])) == ["c", "a", "b"]

    def test_dependencies_come_first(self):
        ordered = sort_by_dependencies([op("b", ["a"]), op("a")])
        assert ids(ordered) == ["a", "b"]

    def test_diamond(self):
        ops = [op("d", ["b", "c"]), op("b", ["a"]), op("c", ["a"]), op("a")]
        ordered = ids(sort_by_dependencies(ops))
        assert ordered[0] == "a"
        assert ordered[-1] == "d"
        assert set(ordered[1:3]) == {"b", "c"}

    def test_depends_on_alias_accepted(self):
        operation = Operation.model_validate({"id": "b", "tool": "echo", "dependsOn": ["a", "a"]})
        assert operation.depends_on == ["a"]

    def test_two_node_cycle(self):
        with pytest.raises(CircularDependencyError) as exc_info:
            sort_by_dependencies([op("a", ["b"]), op("b", ["a"])])
        assert set(exc_info.value.details["unresolved_operations"]) == {"a", "b"}

    def test_self_dependency_is_a_cycle(self):
        with pytest.raises(CircularDependencyError):
            sort_by_dependencies([op("a", ["a"])])

    def test_cycle_behind_valid_prefix(self):
        ops = [op("root"), op("x", ["root", "y"]), op("y", ["x"])]
        with pytest.raises(CircularDependencyError) as exc_info:
            sort_by_dependencies(ops)
        assert "root" not in exc_info.value.details["unresolved_operations"]

    def test_unknown_dependency_ignored_by_default(self):
        assert ids(sort_by_dependencies([op("a", ["ghost"]), op("b")])) == ["a", "b"]

    def test_unknown_dependency_rejected_in_strict_mode(self):
        with pytest.raises(ValidationError, match="unknown operation"):
            sort_by_dependencies([op("a", ["ghost"])], strict=True)


class TestResolveReferences:
    def test_reference_replaced_with_result(self):
        resolved = resolve_references({"data": "$a", "plain": 1}, {"a": {"x": 1}})
        assert resolved == {"data": {"x": 1}, "plain": 1}

    def test_unknown_reference_left_literal(self):
        assert resolve_references({"data": "$missing"}, {"a": 1}) == {"data": "$missing"}

    def test_resolution_is_shallow(self):
        params = {"nested": {"inner": "$a"}, "items": ["$a"]}
        assert resolve_references(params, {"a": 1}) == params

    def test_input_not_mutated(self):
        params = {"data": "$a"}
        resolve_references(params, {"a": 5})
        assert params == {"data": "$a"}

    def test_none_result_is_substituted(self):
        assert resolve_references({"data": "$a"}, {"a": None}) == {"data": None}
