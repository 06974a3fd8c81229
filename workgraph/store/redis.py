from contextlib import contextmanager
from typing import TYPE_CHECKING
from uuid import UUID

from redis.exceptions import RedisError

from workgraph.config import Config
from workgraph.exceptions import StoreError
from workgraph.models import Result, UnitStatus, Workflow, WorkUnit
from workgraph.serialization import SignedZstdSerializer

from .base import Store

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Iterator

    from redis.asyncio import Redis

    from workgraph.serialization import Serializer


@contextmanager
def _translate_errors(op: str) -> "Iterator[None]":
    try:
        yield
    except RedisError as e:
        raise StoreError(f"Redis {op} failed: {e}") from e


class RedisStore(Store):
    """
    A Store backed by Redis (or any RESP compatible server). Records are kept as
    signed, compressed pydantic JSON; each workflow and each unit status is indexed
    by a set of unit ids.

    The client must be created with `decode_responses=False`.

    ```python
    store = RedisStore(Redis.from_url("redis://localhost:6379/0"))
    ```
    """

    def __init__(
        self,
        client: "Redis",
        serializer: "Serializer | None" = None,
        prefix: str = "workgraph",
    ) -> None:
        self.client = client
        self.serializer: "Serializer" = serializer or SignedZstdSerializer(
            Config().serialization_secret
        )
        self.prefix = prefix

    def _unit_key(self, unit_id: UUID) -> str:
        return f"{self.prefix}:unit:{unit_id}"

    def _status_key(self, status: UnitStatus) -> str:
        return f"{self.prefix}:status:{status.value}"

    def _workflow_key(self, workflow_id: UUID) -> str:
        return f"{self.prefix}:workflow:{workflow_id}"

    def _workflow_units_key(self, workflow_id: UUID) -> str:
        return f"{self.prefix}:workflow:{workflow_id}:units"

    def _result_key(self, result_id: UUID) -> str:
        return f"{self.prefix}:result:{result_id}"

    async def _load_units(self, unit_ids: "Iterable[bytes | UUID]") -> list[WorkUnit]:
        keys = [
            self._unit_key(UUID(uid.decode()) if isinstance(uid, bytes) else uid)
            for uid in unit_ids
        ]
        if not keys:
            return []

        with _translate_errors("MGET"):
            raw_units: list[bytes | None] = await self.client.mget(keys)

        units = [
            self.serializer.load(raw, WorkUnit) for raw in raw_units if raw is not None
        ]
        return sorted(units, key=lambda unit: unit.step_number)

    async def get_unit(self, unit_id: UUID) -> WorkUnit | None:
        with _translate_errors("GET"):
            raw: bytes | None = await self.client.get(self._unit_key(unit_id))

        return None if raw is None else self.serializer.load(raw, WorkUnit)

    async def get_units_by_status(self, status: UnitStatus) -> list[WorkUnit]:
        with _translate_errors("SMEMBERS"):
            unit_ids: set[bytes] = await self.client.smembers(
                self._status_key(status)
            )

        # the index may briefly lag a concurrent save, the record is authoritative
        return [
            unit for unit in await self._load_units(unit_ids) if unit.status is status
        ]

    async def get_units_by_workflow(self, workflow_id: UUID) -> list[WorkUnit]:
        with _translate_errors("SMEMBERS"):
            unit_ids: set[bytes] = await self.client.smembers(
                self._workflow_units_key(workflow_id)
            )

        return await self._load_units(unit_ids)

    async def save_unit(self, unit: WorkUnit) -> None:
        member = str(unit.id)

        with _translate_errors("transaction"):
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(self._unit_key(unit.id), self.serializer.dump(unit))
                pipe.sadd(self._workflow_units_key(unit.workflow_id), member)
                for status in UnitStatus:
                    if status is not unit.status:
                        pipe.srem(self._status_key(status), member)
                pipe.sadd(self._status_key(unit.status), member)
                await pipe.execute()

    async def get_workflow(self, workflow_id: UUID) -> Workflow | None:
        with _translate_errors("GET"):
            raw: bytes | None = await self.client.get(self._workflow_key(workflow_id))

        return None if raw is None else self.serializer.load(raw, Workflow)

    async def save_workflow(self, workflow: Workflow) -> None:
        with _translate_errors("SET"):
            await self.client.set(
                self._workflow_key(workflow.id), self.serializer.dump(workflow)
            )

    async def get_result(self, result_id: UUID) -> Result | None:
        with _translate_errors("GET"):
            raw: bytes | None = await self.client.get(self._result_key(result_id))

        return None if raw is None else self.serializer.load(raw, Result)

    async def save_result(self, result: Result) -> None:
        with _translate_errors("SET"):
            # results are immutable once written
            await self.client.set(
                self._result_key(result.id), self.serializer.dump(result), nx=True
            )

    async def close(self) -> None:
        await self.client.aclose()
