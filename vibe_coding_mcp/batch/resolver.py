"""Dependency and back-reference resolution for batch operations."""

from collections import deque
from typing import Any

from ..exceptions import CircularDependencyError
from ..exceptions import ValidationError
from .models import Operation

REFERENCE_PREFIX = "$"


def generate_operation_id(index: int, tool: str) -> str:
    """Default id for an operation: ``op_<index>_<tool without muse_ prefix>``."""
    short_name = tool[len("muse_") :] if tool.startswith("muse_") else tool
    return f"op_{index}_{short_name}"


def assign_operation_ids(operations: list[Operation]) -> list[Operation]:
    """Return copies of ``operations`` that all carry an id.

    Raises:
        ValidationError: if two operations share an id
    """
    assigned = []
    seen: set[str] = set()
    for index, op in enumerate(operations):
        op_id = op.id or generate_operation_id(index, op.tool)
        if op_id in seen:
            raise ValidationError(f"Duplicate operation id: {op_id}", field="id", value=op_id)
        seen.add(op_id)
        assigned.append(op.model_copy(update={"id": op_id}))
    return assigned


def sort_by_dependencies(operations: list[Operation], strict: bool = False) -> list[Operation]:
    """Order operations so every operation follows its dependencies.

    Kahn's algorithm seeded in input order, so independent operations keep
    their submitted order. Dependencies on ids outside the batch are ignored
    unless ``strict`` is set.

    Raises:
        CircularDependencyError: if the dependency graph has a cycle
        ValidationError: on duplicate ids, or unknown dependencies in strict mode
    """
    ops = assign_operation_ids(operations)
    by_id = {op.id: op for op in ops}
    dependents: dict[str, list[str]] = {op.id: [] for op in ops}
    in_degree = dict.fromkeys(by_id, 0)

    unknown = []
    for op in ops:
        for dep_id in op.depends_on:
            if dep_id not in by_id:
                unknown.append(dep_id)
                continue
            dependents[dep_id].append(op.id)
            in_degree[op.id] += 1

    if unknown and strict:
        raise ValidationError(
            f"Operations depend on unknown operation(s): {sorted(set(unknown))}",
            field="depends_on",
            value=sorted(set(unknown)),
        )

    queue = deque(op_id for op_id, degree in in_degree.items() if degree == 0)
    ordered: list[Operation] = []
    while queue:
        current = queue.popleft()
        ordered.append(by_id[current])
        for neighbor in dependents[current]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    if len(ordered) != len(ops):
        raise CircularDependencyError([op_id for op_id, degree in in_degree.items() if degree > 0])
    return ordered


def resolve_references(params: dict[str, Any], completed: dict[str, Any]) -> dict[str, Any]:
    """Substitute top-level ``"$<id>"`` strings with completed results.

    Nested containers are passed through untouched, and a reference to an id
    missing from ``completed`` stays a literal string.
    """
    resolved = dict(params)
    for key, value in params.items():
        if isinstance(value, str) and value.startswith(REFERENCE_PREFIX):
            ref_id = value[len(REFERENCE_PREFIX) :]
            if ref_id in completed:
                resolved[key] = completed[ref_id]
    return resolved
