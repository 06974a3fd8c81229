import logging
import warnings
import weakref
from typing import TYPE_CHECKING

import sniffio
from anyio.from_thread import start_blocking_portal

from .aggregator import Aggregator
from .config import Config
from .evaluator import DependencyEvaluator
from .executor import Executor
from .poller import Poller
from .service import WorkflowService

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Callable
    from concurrent.futures import Future
    from contextlib import AbstractContextManager
    from typing import Any

    from anyio.from_thread import BlockingPortal

    from .blueprint import Blueprint
    from .handlers import HandlerRegistry
    from .models import Workflow
    from .store import Store

logger = logging.getLogger(__name__)


class Supervisor:
    """
    Wires a store and a handler registry into a running engine.

    From async code, `await supervisor.serve()` runs the poller until `stop()` is
    called. From sync code, `start()` runs it on a background event loop thread and
    `shutdown()` stops it, waiting for the in-flight cycle to finish.
    """

    def __init__(
        self,
        store: "Store",
        registry: "HandlerRegistry",
        async_config: dict[str, "Any"] | None = None,
        **settings: "Any",
    ) -> None:
        self.config = Config(**settings)

        self.store = store
        self.registry = registry

        self.aggregator = Aggregator(store)
        self.evaluator = DependencyEvaluator(
            store, skipped_unblocks_steps=self.config.skipped_unblocks_steps
        )
        self.executor = Executor(
            store,
            registry,
            aggregator=(
                self.aggregator if self.config.aggregate_on_completion else None
            ),
        )
        self.poller = Poller(
            store,
            self.evaluator,
            self.executor,
            batch_size=self.config.batch_size,
            poll_interval=self.config.poll_interval,
        )
        self.service = WorkflowService(store, self.aggregator)

        self._async_config = dict(async_config or {})
        self._portal_cm: "AbstractContextManager[BlockingPortal] | None" = None
        self._poller_future: "Future[None] | None" = None
        self.async_portal: "BlockingPortal | None" = None

        self._is_shutdown = False
        # also runs at interpreter exit, and detaches once called
        self._finalizer = weakref.finalize(
            self, Supervisor._shutdown, weakref.ref(self)
        )

    async def submit(
        self, blueprint: "Blueprint", client_id: str, input: "Any" = None
    ) -> "Workflow":
        if not blueprint.resolved:
            blueprint.resolve()

        return await blueprint.submit(self.store, client_id, input=input)

    async def serve(self) -> None:
        await self.poller.run()

    def stop(self) -> None:
        self.poller.stop()

    def start(self) -> None:
        try:
            sniffio.current_async_library()
            raise RuntimeError(
                "Starting the Supervisor from within an event loop is forbidden as it"
                " dispatches to an external event loop. Use `await .serve()` instead."
            )
        except sniffio.AsyncLibraryNotFoundError:
            pass

        if self._portal_cm is not None:
            raise RuntimeError("Supervisor is already started.")

        async_config = dict(self._async_config)
        backend = async_config.pop("backend", "asyncio")
        self._portal_cm = start_blocking_portal(backend, async_config)
        self.async_portal = self._portal_cm.__enter__()
        logger.info("Supervisor started on a %s portal thread", backend)
        self._poller_future = self.async_portal.start_task_soon(
            self.serve, name="workgraph:poller"
        )

    @staticmethod
    def _shutdown(instance_ref: "Callable[[], Supervisor | None]") -> None:
        # static using a weakref to prevent reference cycles
        if (instance := instance_ref()) and not instance._is_shutdown:
            instance.poller.stop()

            try:
                if instance._poller_future is not None:
                    instance._poller_future.result()

                if instance._portal_cm is not None:
                    instance._portal_cm.__exit__(None, None, None)
            except Exception as e:
                warnings.warn(
                    f"An exception occurred while shutting down the Supervisor: {e}",
                    stacklevel=2,
                )

            instance._is_shutdown = True

    def shutdown(self) -> None:
        self._finalizer()
