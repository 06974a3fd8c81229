import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_core import from_json

from .exceptions import ResultNotFoundError, WorkflowNotFoundError
from .models import UnitStatus, WorkflowStatus

if TYPE_CHECKING:  # pragma: no cover
    from .models import WorkUnit
    from .store import Store

logger = logging.getLogger(__name__)


class _ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UnitSummary(_ReportModel):
    id: UUID
    kind: str
    status: UnitStatus
    result: Any = None
    error: str | None = None


class ReportSummary(_ReportModel):
    completed_tasks: int = 0
    failed_tasks: int = 0


class WorkflowReport(_ReportModel):
    units: list[UnitSummary] = Field(default_factory=list)
    summary: ReportSummary = Field(default_factory=ReportSummary)
    success: bool = True

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class Aggregator:
    """
    Folds the outcome of every unit in a workflow into its final report.

    Completed units contribute their parsed result; every other unit counts as
    failed and contributes its progress text as the error. Re-running rebuilds the
    report from the current unit states.
    """

    def __init__(self, store: "Store") -> None:
        self.store = store

    async def aggregate(self, workflow_id: UUID) -> WorkflowReport:
        workflow = await self.store.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)

        report = WorkflowReport()
        for unit in await self.store.get_units_by_workflow(workflow_id):
            report.units.append(await self._summarize(unit, report.summary))

        report.success = report.summary.failed_tasks == 0

        workflow.final_result = report.to_json()
        workflow.status = (
            WorkflowStatus.COMPLETED if report.success else WorkflowStatus.FAILED
        )
        await self.store.save_workflow(workflow)

        logger.info(
            "Aggregated workflow %s: %d completed, %d failed",
            workflow_id,
            report.summary.completed_tasks,
            report.summary.failed_tasks,
        )
        return report

    async def _summarize(
        self, unit: "WorkUnit", summary: ReportSummary
    ) -> UnitSummary:
        unit_summary = UnitSummary(id=unit.id, kind=unit.kind, status=unit.status)

        if unit.status is UnitStatus.COMPLETED and unit.result_ref is not None:
            result = await self.store.get_result(unit.result_ref)
            if result is None:
                raise ResultNotFoundError(unit.result_ref)

            unit_summary.result = from_json(result.data)
            summary.completed_tasks += 1
        else:
            unit_summary.error = unit.progress
            summary.failed_tasks += 1

        return unit_summary
