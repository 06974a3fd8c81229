import pytest

from workgraph import HandlerRegistry, MemoryStore, UnitStatus, Workflow, WorkUnit


@pytest.fixture(
    params=[
        pytest.param(("asyncio", {"use_uvloop": False}), id="asyncio"),
        pytest.param(
            ("trio", {"restrict_keyboard_interrupt_to_checkpoints": True}), id="trio"
        ),
    ],
    scope="session",
)
def anyio_backend(request):
    return request.param


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def registry():
    registry = HandlerRegistry()

    @registry.register("noop")
    async def _noop(unit: WorkUnit) -> dict[str, str]:
        return {"kind": unit.kind}

    @registry.register("boom")
    async def _boom(unit: WorkUnit) -> None:
        raise RuntimeError("boom")

    return registry


@pytest.fixture
async def workflow(store):
    workflow = Workflow(client_id="client-1")
    await store.save_workflow(workflow)
    return workflow


@pytest.fixture
def add_unit(store, workflow):
    """Persist a unit of the shared workflow, bypassing the state machine."""

    async def _add_unit(
        kind: str = "noop",
        step_number: int = 1,
        depends_on: tuple[WorkUnit, ...] = (),
        status: UnitStatus = UnitStatus.QUEUED,
        **fields,
    ) -> WorkUnit:
        unit = WorkUnit(
            workflow_id=workflow.id,
            kind=kind,
            step_number=step_number,
            dependencies=frozenset(dep.id for dep in depends_on),
            status=status,
            **fields,
        )
        await store.save_unit(unit)
        return unit

    return _add_unit


@pytest.fixture
def set_status(store):
    async def _set_status(unit: WorkUnit, status: UnitStatus) -> WorkUnit:
        updated = unit.model_copy(update={"status": status})
        await store.save_unit(updated)
        return updated

    return _set_status
