"""
Workflow construction: turns a declarative list of steps into a persisted graph of
queued work units.
"""

import logging
from typing import TYPE_CHECKING, Any

import networkx as nx
from networkx import generate_network_text
from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from .exceptions import (
    CyclicBlueprintError,
    DependencyOrderError,
    DuplicateStepError,
    UnknownDependencyError,
    UnresolvedBlueprintError,
)
from .models import Workflow, WorkUnit

if TYPE_CHECKING:  # pragma: no cover
    from .store import Store

logger = logging.getLogger(__name__)


class StepDefinition(BaseModel):
    name: str
    kind: str
    step_number: PositiveInt = 1
    depends_on: frozenset[str] = Field(default_factory=frozenset)

    model_config = ConfigDict(extra="forbid", frozen=True)


class Topology:
    def __init__(self, *, digraph: "nx.DiGraph", order: list[StepDefinition]) -> None:
        self.digraph = digraph
        self.order = order

    def __str__(self) -> str:
        labels = nx.relabel_nodes(
            self.digraph, {step: f"{step.name} [{step.kind}]" for step in self.order}
        )
        return "\n".join(generate_network_text(labels, vertical_chains=True))


class Blueprint(BaseModel):
    """
    A reusable workflow definition. Accepts the same shape a YAML or JSON document
    would load into:

    ```python
    blueprint = Blueprint.model_validate(
        {
            "name": "analysis",
            "steps": [
                {"name": "area", "kind": "polygon_area", "step_number": 1},
                {"name": "report", "kind": "report", "step_number": 2,
                 "depends_on": ["area"]},
            ],
        }
    ).resolve()
    workflow = await blueprint.submit(store, client_id="client", input=geojson)
    ```
    """

    name: str
    steps: list[StepDefinition]

    model_config = ConfigDict(extra="forbid")

    _topology: Topology | None = None

    @classmethod
    def from_steps(cls, name: str, *steps: StepDefinition) -> "Blueprint":
        return cls(name=name, steps=list(steps))

    def resolve(self) -> "Blueprint":
        steps_by_name: dict[str, StepDefinition] = {}

        for step in self.steps:
            if step.name in steps_by_name:
                raise DuplicateStepError(step.name)

            steps_by_name[step.name] = step

        digraph = nx.DiGraph()
        digraph.add_nodes_from(self.steps)

        # edges point from a dependency to the step waiting on it
        for step in self.steps:
            for dependency_name in step.depends_on:
                if (dependency := steps_by_name.get(dependency_name)) is None:
                    raise UnknownDependencyError(step.name, dependency_name)

                digraph.add_edge(dependency, step)

        try:
            order = list(nx.topological_sort(digraph))
        except nx.NetworkXUnfeasible as e:
            cycles = nx.simple_cycles(digraph)

            # Sort cycles by length for better error reporting
            sorted_cycles = sorted(
                (tuple(step.name for step in cycle) for cycle in cycles), key=len
            )

            raise CyclicBlueprintError(sorted_cycles) from e

        # a dependency on a later step could never be satisfied, since the later step
        # is itself held back until this one resolves
        for dependency, step in digraph.edges:
            if dependency.step_number > step.step_number:
                raise DependencyOrderError(step.name, dependency.name)

        self._topology = Topology(digraph=digraph, order=order)
        return self

    @property
    def resolved(self) -> bool:
        return self._topology is not None

    @property
    def topology(self) -> Topology:
        if not self.resolved:
            raise UnresolvedBlueprintError()

        return self._topology

    def build(
        self, client_id: str, input: Any = None
    ) -> tuple[Workflow, list[WorkUnit]]:
        """Create the workflow and its queued units, without persisting them."""
        workflow = Workflow(client_id=client_id, name=self.name)
        units: dict[str, WorkUnit] = {}

        for step in self.topology.order:
            units[step.name] = WorkUnit(
                workflow_id=workflow.id,
                step_number=step.step_number,
                kind=step.kind,
                input=input,
                dependencies=frozenset(units[dep].id for dep in step.depends_on),
            )

        return workflow, list(units.values())

    async def submit(
        self, store: "Store", client_id: str, input: Any = None
    ) -> Workflow:
        workflow, units = self.build(client_id, input)

        await store.save_workflow(workflow)
        for unit in units:
            await store.save_unit(unit)

        logger.info(
            "Submitted workflow %s (%s) with %d units",
            workflow.id,
            self.name,
            len(units),
        )
        return workflow
