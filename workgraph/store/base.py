from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable
    from uuid import UUID

    from workgraph.models import Result, UnitStatus, Workflow, WorkUnit


class Store(ABC):
    """
    Persistence contract for units, workflows and results.

    Finders return `None` (or an empty list) when nothing matches; raising the
    appropriate lookup error is left to the caller. Saved records must be visible
    to the very next read.
    """

    @abstractmethod
    async def get_unit(self, unit_id: "UUID") -> "WorkUnit | None":
        raise NotImplementedError()

    async def get_units(self, unit_ids: "Iterable[UUID]") -> list["WorkUnit | None"]:
        """Fetch several units, preserving the order of the given ids."""
        return [await self.get_unit(unit_id) for unit_id in unit_ids]

    @abstractmethod
    async def get_units_by_status(self, status: "UnitStatus") -> list["WorkUnit"]:
        raise NotImplementedError()

    @abstractmethod
    async def get_units_by_workflow(self, workflow_id: "UUID") -> list["WorkUnit"]:
        raise NotImplementedError()

    @abstractmethod
    async def save_unit(self, unit: "WorkUnit") -> None:
        raise NotImplementedError()

    @abstractmethod
    async def get_workflow(self, workflow_id: "UUID") -> "Workflow | None":
        raise NotImplementedError()

    @abstractmethod
    async def save_workflow(self, workflow: "Workflow") -> None:
        raise NotImplementedError()

    @abstractmethod
    async def get_result(self, result_id: "UUID") -> "Result | None":
        raise NotImplementedError()

    @abstractmethod
    async def save_result(self, result: "Result") -> None:
        raise NotImplementedError()

    async def close(self) -> None:
        """Release any resources held by the store."""
