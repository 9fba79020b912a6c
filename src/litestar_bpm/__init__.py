"""Litestar BPM - Process automation control plane for Litestar.

This package starts, tracks and terminates process instances and their user
tasks on an external workflow engine, and keeps a locally owned shadow record
of them consistent with the engine's live and historic stores.

Key Features:
    - Start and terminate reconciliation with idempotent local transitions
    - Status resolution across the engine's live and historic stores
    - Append-only task claim history
    - Camunda 7 REST and in-memory engine gateways
    - Optimistic concurrency on shadow rows
    - Litestar plugin with dependency injection

Example:
    >>> from litestar_bpm import InMemoryEngine, LifecycleTracker, StatusResolver
    >>>
    >>> engine = InMemoryEngine()
    >>> engine.deploy("approval-process")
    >>> tracker = LifecycleTracker(engine, store)
    >>> instance_id = await tracker.start("approval-process", "ORDER-001", {"amount": 5000})
    >>> status = await StatusResolver(engine).resolve(instance_id)
    >>> status.is_ended
    False
"""

from __future__ import annotations

from litestar_bpm.__metadata__ import __project__, __version__
from litestar_bpm.core import (
    SYSTEM_PRINCIPAL,
    ActiveInstanceView,
    AssignmentStatus,
    DefinitionSummary,
    DefinitionValidation,
    EngineGateway,
    HistoricStatus,
    InstanceStatus,
    LiveStatus,
    ResolvedStatus,
    ShadowStore,
    TaskView,
    TerminateMatchPolicy,
)
from litestar_bpm.db import SQLAlchemyShadowStore, TaskAssignmentModel, WorkflowInstanceModel
from litestar_bpm.engine import CamundaRestGateway, InMemoryEngine
from litestar_bpm.exceptions import (
    ConcurrentUpdateError,
    EngineError,
    EngineRequestError,
    EngineUnavailableError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
    ProcessControlError,
    ProcessDefinitionNotFoundError,
    ProcessInstanceNotFoundError,
    StoreUnavailableError,
    TaskNotFoundError,
    TrackingDegradedError,
)
from litestar_bpm.plugin import ProcessControlConfig, ProcessControlPlugin
from litestar_bpm.principal import normalize_principal, principal_from_connection
from litestar_bpm.tracking import LifecycleTracker, ProcessCatalog, StatusResolver, TaskLifecycleTracker

__all__ = (
    "SYSTEM_PRINCIPAL",
    "ActiveInstanceView",
    "AssignmentStatus",
    "CamundaRestGateway",
    "ConcurrentUpdateError",
    "DefinitionSummary",
    "DefinitionValidation",
    "EngineError",
    "EngineGateway",
    "EngineRequestError",
    "EngineUnavailableError",
    "HistoricStatus",
    "InMemoryEngine",
    "InstanceStatus",
    "InvalidInputError",
    "InvalidTransitionError",
    "LifecycleTracker",
    "LiveStatus",
    "NotFoundError",
    "ProcessCatalog",
    "ProcessControlConfig",
    "ProcessControlError",
    "ProcessControlPlugin",
    "ProcessDefinitionNotFoundError",
    "ProcessInstanceNotFoundError",
    "ResolvedStatus",
    "SQLAlchemyShadowStore",
    "ShadowStore",
    "StatusResolver",
    "StoreUnavailableError",
    "TaskAssignmentModel",
    "TaskLifecycleTracker",
    "TaskNotFoundError",
    "TaskView",
    "TerminateMatchPolicy",
    "TrackingDegradedError",
    "WorkflowInstanceModel",
    "__project__",
    "__version__",
    "normalize_principal",
    "principal_from_connection",
)
