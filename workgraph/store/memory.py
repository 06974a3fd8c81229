from typing import TYPE_CHECKING

from anyio.lowlevel import checkpoint

from .base import Store

if TYPE_CHECKING:  # pragma: no cover
    from uuid import UUID

    from workgraph.models import Result, UnitStatus, Workflow, WorkUnit


class MemoryStore(Store):
    """
    A process-local Store. Records are copied on the way in and on the way out, so
    callers only ever observe state through explicit saves, like any other store.
    """

    def __init__(self) -> None:
        self._units: dict["UUID", "WorkUnit"] = {}
        self._workflows: dict["UUID", "Workflow"] = {}
        self._results: dict["UUID", "Result"] = {}

    async def get_unit(self, unit_id: "UUID") -> "WorkUnit | None":
        await checkpoint()

        if (unit := self._units.get(unit_id)) is None:
            return None

        return unit.model_copy(deep=True)

    async def get_units_by_status(self, status: "UnitStatus") -> list["WorkUnit"]:
        await checkpoint()
        return [
            unit.model_copy(deep=True)
            for unit in self._units.values()
            if unit.status is status
        ]

    async def get_units_by_workflow(self, workflow_id: "UUID") -> list["WorkUnit"]:
        await checkpoint()
        return [
            unit.model_copy(deep=True)
            for unit in self._units.values()
            if unit.workflow_id == workflow_id
        ]

    async def save_unit(self, unit: "WorkUnit") -> None:
        await checkpoint()
        # dependency results are transient
        self._units[unit.id] = unit.model_copy(
            update={"dependency_results": []}, deep=True
        )

    async def get_workflow(self, workflow_id: "UUID") -> "Workflow | None":
        await checkpoint()

        if (workflow := self._workflows.get(workflow_id)) is None:
            return None

        return workflow.model_copy(deep=True)

    async def save_workflow(self, workflow: "Workflow") -> None:
        await checkpoint()
        self._workflows[workflow.id] = workflow.model_copy(deep=True)

    async def get_result(self, result_id: "UUID") -> "Result | None":
        await checkpoint()
        return self._results.get(result_id)

    async def save_result(self, result: "Result") -> None:
        await checkpoint()
        # results are immutable once written
        self._results.setdefault(result.id, result)
