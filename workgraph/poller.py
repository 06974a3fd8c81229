import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import anyio

from .models import UnitStatus

if TYPE_CHECKING:  # pragma: no cover
    from .evaluator import DependencyEvaluator
    from .executor import Executor
    from .models import WorkUnit
    from .store import Store

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CycleReport:
    prepared: int = 0
    prepare_errors: int = 0
    dispatched: int = 0
    run_errors: int = 0
    batches: int = 0


class Poller:
    """
    The scheduling loop. Each cycle evaluates every queued unit, then runs every
    ready unit in sequential batches of at most `batch_size` concurrent units.

    Errors raised while evaluating or running a single unit are logged and never
    abort the cycle. Errors raised while fetching units from the store propagate
    out of `run`.
    """

    def __init__(
        self,
        store: "Store",
        evaluator: "DependencyEvaluator",
        executor: "Executor",
        batch_size: int = 10,
        poll_interval: float = 0.1,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be a positive integer.")

        self.store = store
        self.evaluator = evaluator
        self.executor = executor
        self.batch_size = batch_size
        self.poll_interval = poll_interval

        self._stopped = False
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """
        Request the loop to exit. Takes effect once the current cycle, including any
        in-flight batch, is over.
        """
        self._stopped = True

    async def run(self) -> None:
        if self._running:
            raise RuntimeError("Poller is already running.")

        self._stopped = False
        self._running = True
        logger.info(
            "Poller started (batch size %d, interval %ss)",
            self.batch_size,
            self.poll_interval,
        )

        try:
            while not self._stopped:
                await self.run_cycle()

                if self._stopped:
                    break

                await anyio.sleep(self.poll_interval)
        finally:
            self._running = False
            logger.info("Poller stopped")

    async def run_cycle(self) -> CycleReport:
        report = CycleReport()

        for unit in await self.store.get_units_by_status(UnitStatus.QUEUED):
            try:
                await self.evaluator.prepare(unit)
            except Exception:
                report.prepare_errors += 1
                logger.exception("Error preparing unit %s", unit.id)
            else:
                report.prepared += 1

        ready = await self.store.get_units_by_status(UnitStatus.READY)

        for i in range(0, len(ready), self.batch_size):
            batch = ready[i : i + self.batch_size]
            report.batches += 1

            async with anyio.create_task_group() as tg:
                for unit in batch:
                    tg.start_soon(self._run_unit, unit, report)

        if report.dispatched:
            logger.debug(
                "Cycle dispatched %d units in %d batches (%d failed)",
                report.dispatched,
                report.batches,
                report.run_errors,
            )

        return report

    async def _run_unit(self, unit: "WorkUnit", report: CycleReport) -> None:
        report.dispatched += 1

        try:
            await self.executor.run(unit)
        except Exception:
            report.run_errors += 1
            logger.exception("Error running unit %s", unit.id)
