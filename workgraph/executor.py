import logging
from typing import TYPE_CHECKING

from pydantic_core import to_json

from .evaluator import derive_workflow_status
from .exceptions import (
    ResultNotFoundError,
    UnitNotFoundError,
    UnitNotReadyError,
    WorkflowNotFoundError,
)
from .models import Result, UnitStatus

if TYPE_CHECKING:  # pragma: no cover
    from uuid import UUID

    from .aggregator import Aggregator
    from .handlers import HandlerRegistry
    from .models import WorkUnit
    from .store import Store

logger = logging.getLogger(__name__)


class Executor:
    """
    Runs ready units through their registered handler and records the outcome.

    If an Aggregator is given, the workflow's final report is rebuilt whenever a
    run leaves the workflow in a terminal status.
    """

    def __init__(
        self,
        store: "Store",
        registry: "HandlerRegistry",
        aggregator: "Aggregator | None" = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.aggregator = aggregator

    async def run(self, unit: "WorkUnit") -> Result:
        if unit.status is not UnitStatus.READY:
            raise UnitNotReadyError(unit.id)

        unit.transition(UnitStatus.IN_PROGRESS)
        unit.progress = "starting job..."
        await self.store.save_unit(unit)

        try:
            unit.dependency_results = await self._load_dependency_results(unit)
            output = await self.registry.invoke(unit)

            result = Result(
                unit_id=unit.id,
                data=to_json({} if output is None else output).decode(),
            )
            await self.store.save_result(result)
        except Exception as e:
            logger.error(
                "Error running %s job for unit %s: %s", unit.kind, unit.id, e
            )

            unit.transition(UnitStatus.FAILED)
            unit.progress = str(e) or type(e).__name__
            await self.store.save_unit(unit)

            await self._update_workflow(unit.workflow_id)
            raise

        unit.result_ref = result.id
        unit.transition(UnitStatus.COMPLETED)
        unit.progress = None
        await self.store.save_unit(unit)

        await self._update_workflow(unit.workflow_id)
        return result

    async def _load_dependency_results(self, unit: "WorkUnit") -> list[Result]:
        results: list[Result] = []

        for dependency_id in sorted(unit.dependencies):
            dependency = await self.store.get_unit(dependency_id)
            if dependency is None:
                raise UnitNotFoundError(dependency_id)
            elif dependency.result_ref is None:
                continue

            result = await self.store.get_result(dependency.result_ref)
            if result is None:
                raise ResultNotFoundError(dependency.result_ref)

            results.append(result)

        return results

    async def _update_workflow(self, workflow_id: "UUID") -> None:
        workflow = await self.store.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)

        units = await self.store.get_units_by_workflow(workflow_id)
        workflow.status = derive_workflow_status(units)
        await self.store.save_workflow(workflow)

        if self.aggregator is not None and workflow.status.terminal:
            await self.aggregator.aggregate(workflow_id)
