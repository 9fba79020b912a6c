"""Repository implementations for the shadow store.

This module provides async repositories for the shadow tables using
advanced-alchemy's repository pattern.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from advanced_alchemy.repository import SQLAlchemyAsyncRepository
from sqlalchemy import and_, select

from litestar_bpm.core.types import AssignmentStatus
from litestar_bpm.db.models import TaskAssignmentModel, WorkflowInstanceModel

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = [
    "TaskAssignmentRepository",
    "WorkflowInstanceRepository",
]


class WorkflowInstanceRepository(SQLAlchemyAsyncRepository[WorkflowInstanceModel]):
    """Repository for workflow instance shadow rows.

    Provides lookups by engine instance id and business key.
    """

    model_type = WorkflowInstanceModel

    async def list_in_start_order(self) -> Sequence[WorkflowInstanceModel]:
        """List all rows, oldest start first.

        Returns:
            All workflow instance rows ordered by ``started_at`` then ``created_at``.
        """
        stmt = select(WorkflowInstanceModel).order_by(
            WorkflowInstanceModel.started_at,
            WorkflowInstanceModel.created_at,
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_by_process_instance_id(self, process_instance_id: str) -> WorkflowInstanceModel | None:
        """Get the row tracking an engine instance.

        Args:
            process_instance_id: The engine instance identifier.

        Returns:
            The row or None if the instance is not tracked.
        """
        stmt = select(WorkflowInstanceModel).where(WorkflowInstanceModel.process_instance_id == process_instance_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_business_key(self, business_key: str) -> Sequence[WorkflowInstanceModel]:
        """Find rows started with a business key.

        Args:
            business_key: The correlation key.

        Returns:
            Matching rows, oldest start first.
        """
        stmt = (
            select(WorkflowInstanceModel)
            .where(WorkflowInstanceModel.business_key == business_key)
            .order_by(WorkflowInstanceModel.started_at)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class TaskAssignmentRepository(SQLAlchemyAsyncRepository[TaskAssignmentModel]):
    """Repository for task assignment shadow rows."""

    model_type = TaskAssignmentModel

    async def find_by_assignee_and_status(
        self,
        assignee: str,
        status: AssignmentStatus,
    ) -> Sequence[TaskAssignmentModel]:
        """Find a user's assignments in a status.

        Args:
            assignee: The assignee to filter by.
            status: The status to filter by.

        Returns:
            Matching rows, newest first.
        """
        stmt = (
            select(TaskAssignmentModel)
            .where(
                and_(
                    TaskAssignmentModel.assignee == assignee,
                    TaskAssignmentModel.status == status,
                )
            )
            .order_by(TaskAssignmentModel.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def find_by_task(self, task_id: str) -> Sequence[TaskAssignmentModel]:
        """Find the claim history of a task.

        Args:
            task_id: The engine task identifier.

        Returns:
            All rows for the task, oldest first.
        """
        stmt = (
            select(TaskAssignmentModel)
            .where(TaskAssignmentModel.task_id == task_id)
            .order_by(TaskAssignmentModel.created_at)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
