"""SQLAlchemy-backed shadow store.

This module adapts the advanced-alchemy repositories to the
:class:`~litestar_bpm.core.protocols.ShadowStore` protocol and translates
database failures into the control plane's exception taxonomy.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from advanced_alchemy.exceptions import RepositoryError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from litestar_bpm.db.repositories import TaskAssignmentRepository, WorkflowInstanceRepository
from litestar_bpm.exceptions import ConcurrentUpdateError, StoreUnavailableError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from litestar_bpm.core.types import AssignmentStatus
    from litestar_bpm.db.models import TaskAssignmentModel, WorkflowInstanceModel

__all__ = ["SQLAlchemyShadowStore"]


def _is_stale(exc: BaseException) -> bool:
    return isinstance(exc, StaleDataError) or isinstance(exc.__cause__, StaleDataError)


class SQLAlchemyShadowStore:
    """Shadow store persisting rows through an async SQLAlchemy session.

    Writes are committed immediately by default, so a tracked row is durable
    as soon as the tracker call returns. Pass ``auto_commit=False`` to leave
    transaction control to the caller; writes are then only flushed.

    A failed write rolls the session back.

    Attributes:
        session: SQLAlchemy async session for database operations.
        auto_commit: Whether each write commits the session.
    """

    def __init__(self, session: AsyncSession, *, auto_commit: bool = True) -> None:
        """Initialize the store.

        Args:
            session: SQLAlchemy async session.
            auto_commit: Whether each write commits the session.
        """
        self.session = session
        self.auto_commit = auto_commit

        self._instance_repo = WorkflowInstanceRepository(session=session)
        self._assignment_repo = TaskAssignmentRepository(session=session)

    @asynccontextmanager
    async def _translate_errors(self, action: str) -> AsyncIterator[None]:
        try:
            yield
        except (RepositoryError, SQLAlchemyError) as exc:
            await self.session.rollback()
            if _is_stale(exc):
                raise ConcurrentUpdateError(action) from exc
            raise StoreUnavailableError(action, exc) from exc

    async def _save(self, row: WorkflowInstanceModel | TaskAssignmentModel) -> None:
        self.session.add(row)
        if self.auto_commit:
            await self.session.commit()
            await self.session.refresh(row)
        else:
            await self.session.flush()

    async def add_workflow_instance(self, row: WorkflowInstanceModel) -> WorkflowInstanceModel:
        """Insert a new workflow instance row.

        Args:
            row: The unsaved row.

        Returns:
            The persisted row.
        """
        async with self._translate_errors("insert workflow instance"):
            return await self._instance_repo.add(row, auto_commit=self.auto_commit)

    async def update_workflow_instance(self, row: WorkflowInstanceModel) -> WorkflowInstanceModel:
        """Persist changes to a loaded workflow instance row.

        Args:
            row: A row previously returned by this store.

        Returns:
            The updated row.

        Raises:
            ConcurrentUpdateError: If the row changed since it was loaded.
        """
        async with self._translate_errors("update workflow instance"):
            await self._save(row)
            return row

    async def list_workflow_instances(self) -> Sequence[WorkflowInstanceModel]:
        """List all workflow instance rows, oldest start first."""
        async with self._translate_errors("list workflow instances"):
            return await self._instance_repo.list_in_start_order()

    async def get_workflow_instance_by_process_instance_id(
        self,
        process_instance_id: str,
    ) -> WorkflowInstanceModel | None:
        """Find the row tracking an engine instance."""
        async with self._translate_errors("look up workflow instance"):
            return await self._instance_repo.get_by_process_instance_id(process_instance_id)

    async def find_workflow_instances_by_business_key(self, business_key: str) -> Sequence[WorkflowInstanceModel]:
        """Find rows started with a business key."""
        async with self._translate_errors("look up workflow instances by business key"):
            return await self._instance_repo.find_by_business_key(business_key)

    async def add_task_assignment(self, row: TaskAssignmentModel) -> TaskAssignmentModel:
        """Insert a new task assignment row.

        Args:
            row: The unsaved row.

        Returns:
            The persisted row.
        """
        async with self._translate_errors("insert task assignment"):
            return await self._assignment_repo.add(row, auto_commit=self.auto_commit)

    async def update_task_assignment(self, row: TaskAssignmentModel) -> TaskAssignmentModel:
        """Persist changes to a loaded task assignment row.

        Raises:
            ConcurrentUpdateError: If the row changed since it was loaded.
        """
        async with self._translate_errors("update task assignment"):
            await self._save(row)
            return row

    async def find_task_assignments(
        self,
        assignee: str,
        status: AssignmentStatus,
    ) -> Sequence[TaskAssignmentModel]:
        """Find a user's assignment rows in a status, newest first."""
        async with self._translate_errors("look up task assignments"):
            return await self._assignment_repo.find_by_assignee_and_status(assignee, status)

    async def find_task_assignments_by_task(self, task_id: str) -> Sequence[TaskAssignmentModel]:
        """Find every assignment row of a task, oldest first."""
        async with self._translate_errors("look up task assignments by task"):
            return await self._assignment_repo.find_by_task(task_id)
