import logging
from typing import TYPE_CHECKING

from .exceptions import UnitNotFoundError, WorkflowNotFoundError
from .models import UnitStatus, WorkflowStatus

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable

    from .models import WorkUnit
    from .store import Store

logger = logging.getLogger(__name__)


def derive_workflow_status(units: "Iterable[WorkUnit]") -> WorkflowStatus:
    """
    Any failed unit fails the workflow; only a workflow whose units all completed
    is completed. Skipped units never count as completed.
    """
    statuses = [unit.status for unit in units]

    if UnitStatus.FAILED in statuses:
        return WorkflowStatus.FAILED
    elif all(status is UnitStatus.COMPLETED for status in statuses):
        return WorkflowStatus.COMPLETED

    return WorkflowStatus.IN_PROGRESS


class DependencyEvaluator:
    """
    Decides whether a queued unit may run.

    A unit is held back while any sibling at a strictly smaller step number is
    still unresolved, regardless of explicit dependencies. Past that barrier it is
    ready once every dependency completed, skipped as soon as one failed, and left
    queued otherwise.
    """

    def __init__(self, store: "Store", skipped_unblocks_steps: bool = False) -> None:
        self.store = store

        done = {UnitStatus.COMPLETED, UnitStatus.FAILED}
        if skipped_unblocks_steps:
            done.add(UnitStatus.SKIPPED)

        self._step_done_statuses = frozenset(done)

    async def prepare(self, unit: "WorkUnit") -> UnitStatus:
        """Evaluate a unit, persist its new status and return it."""
        if await self.store.get_workflow(unit.workflow_id) is None:
            raise WorkflowNotFoundError(unit.workflow_id)

        siblings = await self.store.get_units_by_workflow(unit.workflow_id)

        if any(
            sibling.step_number < unit.step_number
            and sibling.status not in self._step_done_statuses
            for sibling in siblings
        ):
            return await self._settle(unit, UnitStatus.QUEUED)

        if not unit.dependencies:
            return await self._settle(unit, UnitStatus.READY)

        dependencies = await self._load_dependencies(unit)

        if failed := next(
            (dep for dep in dependencies if dep.status is UnitStatus.FAILED), None
        ):
            logger.info(
                "Skipping unit %s (%s): dependency %s failed",
                unit.id,
                unit.kind,
                failed.id,
            )
            return await self._settle(
                unit,
                UnitStatus.SKIPPED,
                progress=f"skipped: dependency {failed.id} ({failed.kind}) failed",
            )
        elif all(dep.status is UnitStatus.COMPLETED for dep in dependencies):
            return await self._settle(unit, UnitStatus.READY)

        return await self._settle(unit, UnitStatus.QUEUED)

    async def _load_dependencies(self, unit: "WorkUnit") -> list["WorkUnit"]:
        # sort for a deterministic pick when reporting the failed dependency
        dependency_ids = sorted(unit.dependencies)
        dependencies = await self.store.get_units(dependency_ids)

        for dependency_id, dependency in zip(
            dependency_ids, dependencies, strict=True
        ):
            if dependency is None:
                raise UnitNotFoundError(dependency_id)

        return dependencies

    async def _settle(
        self, unit: "WorkUnit", status: UnitStatus, progress: str | None = None
    ) -> UnitStatus:
        unit.transition(status)
        if progress is not None:
            unit.progress = progress

        await self.store.save_unit(unit)
        return status
