"""API dependency injection."""

from typing import Annotated

from fastapi import Depends, Query

from taskrules.engine.orchestrator import ExecutionOrchestrator
from taskrules.engine.scanner import TriggerScanner
from taskrules.messaging.handler import TaskEventHandler
from taskrules.schemas.common import PaginationParams
from taskrules.services import Services, get_services
from taskrules.storage.rule_store import RuleStore
from taskrules.storage.task_store import TaskStore


def get_app_services() -> Services:
    """Get the Redis-backed services."""
    return get_services()


ServicesDep = Annotated[Services, Depends(get_app_services)]


def get_rule_store(services: ServicesDep) -> RuleStore:
    return services.rules


def get_task_store(services: ServicesDep) -> TaskStore:
    return services.tasks


def get_orchestrator(services: ServicesDep) -> ExecutionOrchestrator:
    return services.orchestrator


def get_scanner(services: ServicesDep) -> TriggerScanner:
    return services.scanner


def get_task_event_handler(services: ServicesDep) -> TaskEventHandler:
    return TaskEventHandler(services.scanner, services.idempotency)


# Type aliases for dependency injection
RuleStoreDep = Annotated[RuleStore, Depends(get_rule_store)]
TaskStoreDep = Annotated[TaskStore, Depends(get_task_store)]
OrchestratorDep = Annotated[ExecutionOrchestrator, Depends(get_orchestrator)]
ScannerDep = Annotated[TriggerScanner, Depends(get_scanner)]
EventHandlerDep = Annotated[TaskEventHandler, Depends(get_task_event_handler)]


def get_pagination(
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
) -> PaginationParams:
    """Get pagination parameters from query."""
    return PaginationParams(page=page, page_size=page_size)


PaginationDep = Annotated[PaginationParams, Depends(get_pagination)]
