"""SQLAlchemy models for the shadow store.

This module defines the locally-owned mirror of engine state:
- WorkflowInstanceModel: One row per process instance started through the control plane
- TaskAssignmentModel: One row per task claim made through the control plane

Both tables carry a ``row_version`` column used by SQLAlchemy's optimistic
concurrency check, so a write based on a stale read raises ``StaleDataError``
instead of silently overwriting a concurrent update.
"""

from __future__ import annotations

from datetime import datetime

from advanced_alchemy.base import UUIDAuditBase
from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import Enum, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from litestar_bpm.core.types import TERMINAL_INSTANCE_STATUSES, AssignmentStatus, InstanceStatus

__all__ = [
    "TaskAssignmentModel",
    "WorkflowInstanceModel",
]


class WorkflowInstanceModel(UUIDAuditBase):
    """Shadow record of a process instance started through the control plane.

    The engine owns the authoritative execution state; this row is a
    best-effort mirror that is allowed to drift.

    Attributes:
        process_instance_id: Engine identifier returned by the start call.
        process_definition_key: Key of the started definition. Immutable.
        business_key: Caller-supplied correlation key. Immutable.
        status: Tracked lifecycle status.
        started_by: Principal who started the instance, or ``"system"``.
        started_at: When the instance was started. Never changed.
        completed_at: When the instance reached a terminal status. Set once.
        row_version: Optimistic concurrency counter maintained by SQLAlchemy.
    """

    __tablename__ = "bpm_workflow_instances"
    __table_args__ = (
        Index("ix_bpm_workflow_instances_process_instance_id", "process_instance_id", unique=True),
        Index("ix_bpm_workflow_instances_business_key", "business_key"),
        Index("ix_bpm_workflow_instances_status", "status"),
        Index("ix_bpm_workflow_instances_started_by", "started_by"),
    )

    process_instance_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    process_definition_key: Mapped[str] = mapped_column(String(255))
    business_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[InstanceStatus] = mapped_column(
        Enum(InstanceStatus, native_enum=False, length=50),
        default=InstanceStatus.ACTIVE,
    )
    started_by: Mapped[str] = mapped_column(String(255))
    started_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": row_version}

    @property
    def is_terminal(self) -> bool:
        """Whether the row has reached a status that carries ``completed_at``."""
        return self.status in TERMINAL_INSTANCE_STATUSES


class TaskAssignmentModel(UUIDAuditBase):
    """Shadow record of a task claim.

    Every claim appends a row; a task that is claimed, released and claimed again
    has several rows. The engine remains the arbiter of who really holds a task.

    Attributes:
        task_id: Engine task identifier. Not unique across rows.
        process_instance_id: Engine instance that owns the task.
        assignee: Principal who claimed the task.
        task_name: Task name copied from the engine at claim time.
        due_date: Due date copied from the engine at claim time.
        status: Tracked assignment status.
        completed_at: When the assignment was completed.
        row_version: Optimistic concurrency counter maintained by SQLAlchemy.
    """

    __tablename__ = "bpm_task_assignments"
    __table_args__ = (
        Index("ix_bpm_task_assignments_task_id", "task_id"),
        Index("ix_bpm_task_assignments_assignee_status", "assignee", "status"),
        Index("ix_bpm_task_assignments_process_instance_id", "process_instance_id"),
    )

    task_id: Mapped[str] = mapped_column(String(255))
    process_instance_id: Mapped[str] = mapped_column(String(255))
    assignee: Mapped[str] = mapped_column(String(255))
    task_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    status: Mapped[AssignmentStatus] = mapped_column(
        Enum(AssignmentStatus, native_enum=False, length=50),
        default=AssignmentStatus.CLAIMED,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": row_version}
