"""Database persistence layer for litestar-bpm.

This module provides SQLAlchemy models, repositories and the shadow store
implementation that records which process instances and task claims went
through the control plane.
"""

from __future__ import annotations

from litestar_bpm.db.models import TaskAssignmentModel, WorkflowInstanceModel
from litestar_bpm.db.repositories import TaskAssignmentRepository, WorkflowInstanceRepository
from litestar_bpm.db.store import SQLAlchemyShadowStore

__all__ = [
    "SQLAlchemyShadowStore",
    "TaskAssignmentModel",
    "TaskAssignmentRepository",
    "WorkflowInstanceModel",
    "WorkflowInstanceRepository",
]
