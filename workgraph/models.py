"""
Entities moved through the engine: work units, their results and the workflows
owning them.
"""

import logging
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from .exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)


class UnitStatus(str, Enum):
    QUEUED = "queued"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


class WorkflowStatus(str, Enum):
    INITIAL = "initial"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (WorkflowStatus.COMPLETED, WorkflowStatus.FAILED)


_TERMINAL_STATUSES = frozenset(
    {UnitStatus.COMPLETED, UnitStatus.FAILED, UnitStatus.SKIPPED}
)

# queued and ready may be re-asserted so that re-evaluating an unchanged unit is
# a no-op rather than an error
_TRANSITIONS: dict[UnitStatus, frozenset[UnitStatus]] = {
    UnitStatus.QUEUED: frozenset(
        {UnitStatus.QUEUED, UnitStatus.READY, UnitStatus.SKIPPED}
    ),
    UnitStatus.READY: frozenset({UnitStatus.READY, UnitStatus.IN_PROGRESS}),
    UnitStatus.IN_PROGRESS: frozenset({UnitStatus.COMPLETED, UnitStatus.FAILED}),
    UnitStatus.COMPLETED: frozenset(),
    UnitStatus.FAILED: frozenset(),
    UnitStatus.SKIPPED: frozenset(),
}


class Result(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    unit_id: UUID
    data: str
    """The handler's output, serialized as JSON."""

    model_config = ConfigDict(frozen=True)


class WorkUnit(BaseModel):
    """
    One schedulable step of a workflow.

    `dependencies` holds the ids of sibling units that must complete before this
    unit may run. `dependency_results` is only populated by the Executor right
    before the unit's handler is invoked and is never persisted.
    """

    id: UUID = Field(default_factory=uuid4)
    workflow_id: UUID
    step_number: PositiveInt = 1
    kind: str
    status: UnitStatus = UnitStatus.QUEUED
    dependencies: frozenset[UUID] = Field(default_factory=frozenset)
    input: Any = None
    progress: str | None = None
    result_ref: UUID | None = None

    dependency_results: list[Result] = Field(default_factory=list, exclude=True)

    model_config = ConfigDict(validate_assignment=True)

    transitions: ClassVar[dict[UnitStatus, frozenset[UnitStatus]]] = _TRANSITIONS

    def can_transition(self, status: UnitStatus) -> bool:
        return status in self.transitions[self.status]

    def transition(self, status: UnitStatus) -> None:
        if not self.can_transition(status):
            raise InvalidTransitionError(self.id, self.status.value, status.value)

        if status is not self.status:
            logger.debug(
                "Unit %s (%s): %s -> %s",
                self.id,
                self.kind,
                self.status.value,
                status.value,
            )

        self.status = status


class Workflow(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    client_id: str
    name: str | None = None
    status: WorkflowStatus = WorkflowStatus.INITIAL
    final_result: str | None = None
    """The aggregated report, serialized as JSON. Absent until first aggregated."""

    model_config = ConfigDict(validate_assignment=True)
