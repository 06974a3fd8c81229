from typing import TYPE_CHECKING

from pydantic_core import from_json

from .exceptions import WorkflowNotFoundError

if TYPE_CHECKING:  # pragma: no cover
    from typing import Any
    from uuid import UUID

    from .aggregator import Aggregator
    from .models import Workflow, WorkflowStatus, WorkUnit
    from .store import Store


class WorkflowService:
    """Read-side access to workflows, their units and their final reports."""

    def __init__(self, store: "Store", aggregator: "Aggregator") -> None:
        self.store = store
        self.aggregator = aggregator

    async def get_workflow(self, workflow_id: "UUID") -> "Workflow":
        workflow = await self.store.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)

        return workflow

    async def get_status(self, workflow_id: "UUID") -> "WorkflowStatus":
        return (await self.get_workflow(workflow_id)).status

    async def get_units(self, workflow_id: "UUID") -> list["WorkUnit"]:
        await self.get_workflow(workflow_id)
        return await self.store.get_units_by_workflow(workflow_id)

    async def get_results(self, workflow_id: "UUID") -> "dict[str, Any] | None":
        """
        Return the workflow's final report, (re)building it first when the workflow
        has settled. Returns `None` while the workflow is still running.
        """
        workflow = await self.get_workflow(workflow_id)
        units = await self.store.get_units_by_workflow(workflow_id)

        if workflow.status.terminal or all(unit.status.terminal for unit in units):
            await self.aggregator.aggregate(workflow_id)
            workflow = await self.get_workflow(workflow_id)

        if workflow.final_result is None:
            return None

        return from_json(workflow.final_result)
