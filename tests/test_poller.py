import json
import threading
import time
from uuid import uuid4

import anyio
import pytest

from workgraph import (
    Aggregator,
    DependencyEvaluator,
    Executor,
    Poller,
    UnitStatus,
    WorkflowStatus,
    WorkUnit,
)


@pytest.fixture
def make_poller(store, registry):
    def _make_poller(**kwargs) -> Poller:
        aggregator = Aggregator(store)
        return Poller(
            store,
            DependencyEvaluator(store),
            Executor(store, registry, aggregator=aggregator),
            **kwargs,
        )

    return _make_poller


@pytest.mark.anyio
async def test_batches_bound_concurrency(make_poller, registry, add_unit):
    running = 0
    peak = 0

    @registry.register("slow")
    async def _slow(unit: WorkUnit) -> None:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await anyio.sleep(0.05)
        running -= 1

    for _ in range(25):
        await add_unit(kind="slow", status=UnitStatus.READY)

    report = await make_poller(batch_size=10).run_cycle()

    assert report.dispatched == 25
    assert report.batches == 3
    assert report.run_errors == 0
    assert peak == 10


@pytest.mark.anyio
async def test_sync_handlers_run_concurrently(make_poller, registry, add_unit):
    lock = threading.Lock()
    running = 0
    peak = 0

    @registry.register("blocking")
    def _blocking(unit: WorkUnit) -> None:
        nonlocal running, peak
        with lock:
            running += 1
            peak = max(peak, running)
        time.sleep(0.1)
        with lock:
            running -= 1

    for _ in range(10):
        await add_unit(kind="blocking", status=UnitStatus.READY)

    report = await make_poller(batch_size=10).run_cycle()

    assert report.dispatched == 10
    assert report.run_errors == 0
    assert peak > 1


@pytest.mark.anyio
async def test_cycle_prepares_then_dispatches(make_poller, store, add_unit):
    unit = await add_unit()

    report = await make_poller().run_cycle()

    assert report.prepared == 1
    assert report.dispatched == 1
    assert (await store.get_unit(unit.id)).status is UnitStatus.COMPLETED


@pytest.mark.anyio
async def test_unit_errors_do_not_abort_cycle(make_poller, store, add_unit):
    failing = await add_unit(kind="boom")
    unregistered = await add_unit(kind="unknown")
    healthy = [await add_unit() for _ in range(3)]

    report = await make_poller().run_cycle()

    assert report.dispatched == 5
    assert report.run_errors == 2
    assert (await store.get_unit(failing.id)).status is UnitStatus.FAILED
    assert (await store.get_unit(unregistered.id)).status is UnitStatus.FAILED
    for unit in healthy:
        assert (await store.get_unit(unit.id)).status is UnitStatus.COMPLETED


@pytest.mark.anyio
async def test_prepare_errors_do_not_abort_cycle(make_poller, store, add_unit):
    orphan = WorkUnit(workflow_id=uuid4(), kind="noop")
    await store.save_unit(orphan)
    unit = await add_unit()

    report = await make_poller().run_cycle()

    assert report.prepare_errors == 1
    assert report.prepared == 1
    assert (await store.get_unit(orphan.id)).status is UnitStatus.QUEUED
    assert (await store.get_unit(unit.id)).status is UnitStatus.COMPLETED


@pytest.mark.anyio
async def test_store_fetch_errors_propagate(make_poller, store, monkeypatch):
    async def _unavailable(status):
        raise ConnectionError("store is down")

    monkeypatch.setattr(store, "get_units_by_status", _unavailable)

    with pytest.raises(ConnectionError):
        await make_poller().run()


@pytest.mark.anyio
async def test_dependency_chain_scenario(make_poller, store, workflow, add_unit):
    a = await add_unit(step_number=1)
    b = await add_unit(step_number=2, depends_on=(a,))
    c = await add_unit(step_number=3, depends_on=(a, b))
    poller = make_poller()

    await poller.run_cycle()
    assert (await store.get_unit(a.id)).status is UnitStatus.COMPLETED
    assert (await store.get_unit(b.id)).status is UnitStatus.QUEUED

    await poller.run_cycle()
    assert (await store.get_unit(b.id)).status is UnitStatus.COMPLETED
    assert (await store.get_unit(c.id)).status is UnitStatus.QUEUED

    await poller.run_cycle()
    assert (await store.get_unit(c.id)).status is UnitStatus.COMPLETED

    stored_workflow = await store.get_workflow(workflow.id)
    final_result = json.loads(stored_workflow.final_result)

    assert stored_workflow.status is WorkflowStatus.COMPLETED
    assert final_result["success"] is True
    assert final_result["summary"]["completedTasks"] == 3


@pytest.mark.anyio
async def test_failed_root_scenario(make_poller, store, workflow, add_unit):
    a = await add_unit(kind="boom", step_number=1)
    b = await add_unit(step_number=2, depends_on=(a,))
    c = await add_unit(step_number=3, depends_on=(a, b))
    poller = make_poller()

    for _ in range(3):
        await poller.run_cycle()

    assert (await store.get_unit(a.id)).status is UnitStatus.FAILED
    assert (await store.get_unit(b.id)).status is UnitStatus.SKIPPED
    # a skipped unit at an earlier step keeps holding later steps back
    assert (await store.get_unit(c.id)).status is UnitStatus.QUEUED
    assert (await store.get_workflow(workflow.id)).status is WorkflowStatus.FAILED


@pytest.mark.anyio
async def test_run_until_stopped(make_poller, store, workflow, add_unit):
    a = await add_unit(step_number=1)
    await add_unit(step_number=2, depends_on=(a,))
    poller = make_poller(poll_interval=0.01)

    with anyio.fail_after(5):
        async with anyio.create_task_group() as tg:
            tg.start_soon(poller.run)

            while (
                await store.get_workflow(workflow.id)
            ).status is not WorkflowStatus.COMPLETED:
                await anyio.sleep(0.01)

            assert poller.running
            poller.stop()

    assert not poller.running


@pytest.mark.anyio
async def test_stop_skips_sleep(make_poller, registry, add_unit):
    poller = make_poller(poll_interval=60)

    @registry.register("stopper")
    async def _stopper(unit: WorkUnit) -> None:
        poller.stop()

    await add_unit(kind="stopper")

    with anyio.fail_after(1):
        await poller.run()

    assert not poller.running


@pytest.mark.anyio
async def test_run_is_not_reentrant(make_poller):
    poller = make_poller(poll_interval=0.01)

    async with anyio.create_task_group() as tg:
        tg.start_soon(poller.run)
        await anyio.sleep(0.02)

        with pytest.raises(RuntimeError, match="already running"):
            await poller.run()

        poller.stop()


@pytest.mark.anyio
async def test_batch_size_must_be_positive(store, registry):
    with pytest.raises(ValueError):
        Poller(
            store,
            DependencyEvaluator(store),
            Executor(store, registry),
            batch_size=0,
        )
