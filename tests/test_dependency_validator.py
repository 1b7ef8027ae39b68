"""
Tests for task dependency validation.

Tests circular dependency detection and subtask consistency.
"""

from typing import Optional

import pytest

from planmyday.core.exceptions import BusinessLogicError
from planmyday.models.task import Task
from planmyday.utils.dependency_validator import DependencyValidator


def create_test_task(
    task_id: str,
    parent_id: Optional[str] = None,
    depends_on: Optional[list[str]] = None,
) -> Task:
    """Helper function to create a test task with required fields."""
    return Task(
        id=task_id,
        title=f"Task {task_id}",
        parent_task_id=parent_id,
        depends_on=depends_on or [],
    )


def test_valid_dependencies_pass():
    a = create_test_task("a")
    b = create_test_task("b", depends_on=["a"])
    c = create_test_task("c")
    validator = DependencyValidator([a, b, c])

    validator.validate_dependencies("c", ["a", "b"])


def test_empty_dependencies_pass():
    validator = DependencyValidator([create_test_task("a")])

    validator.validate_dependencies("a", [])


def test_self_dependency_rejected():
    validator = DependencyValidator([create_test_task("a")])

    with pytest.raises(BusinessLogicError, match="cannot depend on itself"):
        validator.validate_dependencies("a", ["a"])


def test_duplicate_dependencies_rejected():
    validator = DependencyValidator([create_test_task("a"), create_test_task("b")])

    with pytest.raises(BusinessLogicError, match="Duplicate"):
        validator.validate_dependencies("a", ["b", "b"])


def test_missing_dependency_rejected():
    validator = DependencyValidator([create_test_task("a")])

    with pytest.raises(BusinessLogicError, match="not found"):
        validator.validate_dependencies("a", ["ghost"])


def test_direct_cycle_detected():
    a = create_test_task("a")
    b = create_test_task("b", depends_on=["a"])
    validator = DependencyValidator([a, b])

    with pytest.raises(BusinessLogicError, match="Circular dependency"):
        validator.validate_dependencies("a", ["b"])


def test_indirect_cycle_through_dependency_map_detected():
    a = create_test_task("a")
    b = create_test_task("b")
    c = create_test_task("c", depends_on=["b"])
    validator = DependencyValidator([a, b, c], {"b": ["a"]})

    with pytest.raises(BusinessLogicError, match="Circular dependency"):
        validator.validate_dependencies("a", ["c"])


def test_subtask_cannot_depend_on_parent():
    parent = create_test_task("parent")
    child = create_test_task("child", parent_id="parent")
    validator = DependencyValidator([parent, child])

    with pytest.raises(BusinessLogicError, match="parent"):
        validator.validate_dependencies("child", ["parent"])


def test_subtask_cannot_depend_on_other_parents_subtask():
    child = create_test_task("child", parent_id="p1")
    stranger = create_test_task("stranger", parent_id="p2")
    validator = DependencyValidator([create_test_task("p1"), create_test_task("p2"), child, stranger])

    with pytest.raises(BusinessLogicError, match="same parent"):
        validator.validate_dependencies("child", ["stranger"])


def test_subtask_may_depend_on_sibling():
    first = create_test_task("first", parent_id="p")
    second = create_test_task("second", parent_id="p")
    validator = DependencyValidator([create_test_task("p"), first, second])

    validator.validate_dependencies("second", ["first"])


def test_find_cycles_reports_tasks_in_cycle():
    a = create_test_task("a", depends_on=["b"])
    b = create_test_task("b", depends_on=["a"])
    c = create_test_task("c")

    assert sorted(DependencyValidator([a, b, c]).find_cycles()) == ["a", "b"]
