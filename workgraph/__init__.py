from fast_depends import Depends

from .aggregator import Aggregator, WorkflowReport
from .blueprint import Blueprint, StepDefinition
from .config import Config
from .evaluator import DependencyEvaluator, derive_workflow_status
from .executor import Executor
from .handlers import HandlerRegistry
from .models import Result, UnitStatus, Workflow, WorkflowStatus, WorkUnit
from .poller import CycleReport, Poller
from .service import WorkflowService
from .store import MemoryStore, Store
from .supervisor import Supervisor

__all__ = [
    "Depends",
    "Aggregator",
    "WorkflowReport",
    "Blueprint",
    "StepDefinition",
    "Config",
    "DependencyEvaluator",
    "derive_workflow_status",
    "Executor",
    "HandlerRegistry",
    "Result",
    "UnitStatus",
    "Workflow",
    "WorkflowStatus",
    "WorkUnit",
    "CycleReport",
    "Poller",
    "WorkflowService",
    "MemoryStore",
    "Store",
    "Supervisor",
]
