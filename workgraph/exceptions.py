from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from typing import Any
    from uuid import UUID


class WorkgraphError(Exception):
    def __init__(self, *args: "Any", **kwargs: "Any") -> None:
        super().__init__(*args, **kwargs)


##
## LOOKUP
##


class NotFoundError(WorkgraphError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class WorkflowNotFoundError(NotFoundError):
    def __init__(self, workflow_id: "UUID") -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow '{workflow_id}' not found.")


class UnitNotFoundError(NotFoundError):
    def __init__(self, unit_id: "UUID") -> None:
        self.unit_id = unit_id
        super().__init__(f"Unit '{unit_id}' not found.")


class ResultNotFoundError(NotFoundError):
    def __init__(self, result_id: "UUID") -> None:
        self.result_id = result_id
        super().__init__(f"Result '{result_id}' not found.")


##
## UNIT EXECUTION
##


class UnitExecutionError(WorkgraphError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidTransitionError(UnitExecutionError):
    def __init__(self, unit_id: "UUID", current: str, target: str) -> None:
        super().__init__(
            f"Unit '{unit_id}' cannot transition from '{current}' to '{target}'."
        )


class UnitNotReadyError(UnitExecutionError):
    def __init__(self, unit_id: "UUID") -> None:
        self.unit_id = unit_id
        super().__init__(f"Unit '{unit_id}' is not ready to run.")


class UnregisteredHandlerError(UnitExecutionError):
    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(
            f"No handler found for unit kind '{kind}'."
            f" Register one with `@registry.register({kind!r})`."
        )


##
## BLUEPRINT RESOLUTION
##


class BlueprintError(WorkgraphError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class UnresolvedBlueprintError(BlueprintError):
    def __init__(self) -> None:
        super().__init__("Blueprints must be resolved before they can be used.")


class DuplicateStepError(BlueprintError):
    def __init__(self, step_name: str) -> None:
        super().__init__(f"Step '{step_name}' is defined more than once.")


class UnknownDependencyError(BlueprintError):
    def __init__(self, step_name: str, dependency: str) -> None:
        super().__init__(
            f"Step '{step_name}' depends on '{dependency}', which is not defined."
        )


class DependencyOrderError(BlueprintError):
    def __init__(self, step_name: str, dependency: str) -> None:
        super().__init__(
            f"Step '{step_name}' cannot depend on '{dependency}', which runs at a"
            " later step number."
        )


class CyclicBlueprintError(BlueprintError):
    def __init__(self, cycles: list[tuple[str, ...]]) -> None:
        cycle_str = "\n  ".join(" -> ".join(cycle) for cycle in cycles)
        super().__init__(
            "Blueprints cannot contain dependency cycles. Offending cycles:\n"
            f"  {cycle_str}"
        )


##
## STORAGE
##


class StoreError(WorkgraphError):
    def __init__(self, message: str) -> None:
        super().__init__(message)


class TamperedDataError(StoreError):
    def __init__(self) -> None:
        super().__init__("Deserialization failed due to signature mismatch.")
