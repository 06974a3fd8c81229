from uuid import uuid4

import pytest
from pydantic import ValidationError

from workgraph import Result, UnitStatus, WorkflowStatus, WorkUnit
from workgraph.exceptions import InvalidTransitionError


def _unit(status: UnitStatus = UnitStatus.QUEUED) -> WorkUnit:
    return WorkUnit(workflow_id=uuid4(), kind="noop", status=status)


@pytest.mark.parametrize(
    ("current", "target"),
    (
        (UnitStatus.QUEUED, UnitStatus.READY),
        (UnitStatus.QUEUED, UnitStatus.SKIPPED),
        (UnitStatus.QUEUED, UnitStatus.QUEUED),
        (UnitStatus.READY, UnitStatus.READY),
        (UnitStatus.READY, UnitStatus.IN_PROGRESS),
        (UnitStatus.IN_PROGRESS, UnitStatus.COMPLETED),
        (UnitStatus.IN_PROGRESS, UnitStatus.FAILED),
    ),
)
def test_allowed_transitions(current, target):
    unit = _unit(current)
    unit.transition(target)

    assert unit.status is target


@pytest.mark.parametrize(
    ("current", "target"),
    (
        (UnitStatus.READY, UnitStatus.QUEUED),
        (UnitStatus.IN_PROGRESS, UnitStatus.QUEUED),
        (UnitStatus.QUEUED, UnitStatus.IN_PROGRESS),
        (UnitStatus.QUEUED, UnitStatus.COMPLETED),
        (UnitStatus.READY, UnitStatus.SKIPPED),
        (UnitStatus.COMPLETED, UnitStatus.FAILED),
        (UnitStatus.FAILED, UnitStatus.QUEUED),
        (UnitStatus.SKIPPED, UnitStatus.READY),
        (UnitStatus.COMPLETED, UnitStatus.COMPLETED),
    ),
)
def test_rejected_transitions(current, target):
    unit = _unit(current)

    with pytest.raises(InvalidTransitionError, match=current.value):
        unit.transition(target)

    assert unit.status is current


def test_terminal_statuses():
    assert {status for status in UnitStatus if status.terminal} == {
        UnitStatus.COMPLETED,
        UnitStatus.FAILED,
        UnitStatus.SKIPPED,
    }
    assert {status for status in WorkflowStatus if status.terminal} == {
        WorkflowStatus.COMPLETED,
        WorkflowStatus.FAILED,
    }


def test_unit_defaults():
    unit = _unit()

    assert unit.status is UnitStatus.QUEUED
    assert unit.step_number == 1
    assert unit.dependencies == frozenset()
    assert unit.progress is None
    assert unit.result_ref is None


def test_dependency_results_are_not_serialized():
    unit = _unit()
    unit.dependency_results = [Result(unit_id=uuid4(), data="{}")]

    assert "dependency_results" not in unit.model_dump()


def test_result_is_immutable():
    result = Result(unit_id=uuid4(), data='{"area": 1}')

    with pytest.raises(ValidationError):
        result.data = "{}"


def test_step_number_must_be_positive():
    with pytest.raises(ValidationError):
        WorkUnit(workflow_id=uuid4(), kind="noop", step_number=0)
