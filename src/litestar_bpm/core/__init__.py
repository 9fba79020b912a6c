"""Core domain module for litestar-bpm.

This module exports the types, records, views and collaborator protocols that the
trackers are built on.
"""

from __future__ import annotations

from litestar_bpm.core.models import (
    ActiveInstanceView,
    DefinitionSummary,
    DefinitionValidation,
    HistoricProcessInstanceRecord,
    HistoricStatus,
    HistoricTaskRecord,
    LiveStatus,
    ProcessDefinitionRecord,
    ProcessInstanceRecord,
    ResolvedStatus,
    TaskRecord,
    TaskView,
)
from litestar_bpm.core.protocols import EngineGateway, ShadowStore
from litestar_bpm.core.types import (
    SYSTEM_PRINCIPAL,
    TERMINAL_INSTANCE_STATUSES,
    AssignmentStatus,
    InstanceStatus,
    TerminateMatchPolicy,
    Variables,
)

__all__ = [
    "SYSTEM_PRINCIPAL",
    "TERMINAL_INSTANCE_STATUSES",
    "ActiveInstanceView",
    "AssignmentStatus",
    "DefinitionSummary",
    "DefinitionValidation",
    "EngineGateway",
    "HistoricProcessInstanceRecord",
    "HistoricStatus",
    "HistoricTaskRecord",
    "InstanceStatus",
    "LiveStatus",
    "ProcessDefinitionRecord",
    "ProcessInstanceRecord",
    "ResolvedStatus",
    "ShadowStore",
    "TaskRecord",
    "TaskView",
    "TerminateMatchPolicy",
    "Variables",
]
