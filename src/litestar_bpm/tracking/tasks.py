"""Claim and complete mirroring for user tasks."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from litestar_bpm.core.models import TaskView
from litestar_bpm.core.types import AssignmentStatus
from litestar_bpm.db.models import TaskAssignmentModel
from litestar_bpm.exceptions import (
    ProcessControlError,
    StoreUnavailableError,
    TaskNotFoundError,
    TrackingDegradedError,
)
from litestar_bpm.tracking._validation import blank_to_none, require_identifier

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from litestar_bpm.core.models import HistoricTaskRecord
    from litestar_bpm.core.protocols import EngineGateway, ShadowStore

__all__ = ["TaskLifecycleTracker"]

logger = logging.getLogger(__name__)


class TaskLifecycleTracker:
    """Mirrors user task claims and completions into the shadow store.

    Assignment rows are append-only history: every claim adds a row and a
    completion closes every open claim the completing user holds on the task.
    The engine stays the arbiter of who actually holds a task.

    Attributes:
        engine: The engine owning the tasks.
        store: The shadow store holding assignment rows.
    """

    def __init__(self, engine: EngineGateway, store: ShadowStore) -> None:
        """Initialize the tracker.

        Args:
            engine: The engine gateway.
            store: The shadow store.
        """
        self.engine = engine
        self.store = store

    async def list_user_tasks(self, user_id: str) -> list[TaskView]:
        """List the tasks a user holds or may claim.

        Assigned tasks come first, followed by candidate tasks. A task that is
        in both lists is reported once, as claimed.

        Args:
            user_id: The user to list tasks for.

        Returns:
            Task views, each task id at most once.
        """
        require_identifier("user_id", user_id)

        assigned = await self.engine.list_tasks_by_assignee(user_id)
        candidates = await self.engine.list_tasks_by_candidate_user(user_id)

        views: dict[str, TaskView] = {}
        for task in assigned:
            views.setdefault(task.id, TaskView.from_record(task, is_claimed=True))
        for task in candidates:
            views.setdefault(task.id, TaskView.from_record(task, is_claimed=False))
        return list(views.values())

    async def get_task(self, task_id: str) -> TaskView | None:
        """Get a task with its variables.

        Args:
            task_id: Engine identifier of the task.

        Returns:
            The task view, or ``None`` if the engine has no such task.
        """
        require_identifier("task_id", task_id)

        task = await self.engine.get_task(task_id)
        if task is None:
            return None
        try:
            variables = await self.engine.get_task_variables(task_id)
        except TaskNotFoundError:
            return None
        return TaskView.from_record(task, is_claimed=task.assignee is not None, variables=variables)

    async def claim(self, task_id: str, user_id: str) -> TaskAssignmentModel:
        """Claim a task for a user and record the claim.

        Args:
            task_id: Engine identifier of the task.
            user_id: The claiming user.

        Returns:
            The new assignment row.

        Raises:
            InvalidInputError: If an identifier is blank.
            TrackingDegradedError: If the claim succeeded but could not be recorded.
        """
        require_identifier("task_id", task_id)
        require_identifier("user_id", user_id)

        await self.engine.claim_task(task_id, user_id)
        logger.info("Task %s claimed by %s", task_id, user_id)

        try:
            task = await self.engine.get_task(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            return await self.store.add_task_assignment(
                TaskAssignmentModel(
                    task_id=task_id,
                    process_instance_id=task.process_instance_id,
                    assignee=user_id,
                    task_name=task.name,
                    due_date=task.due_date,
                    status=AssignmentStatus.CLAIMED,
                )
            )
        except ProcessControlError as exc:
            logger.error("Task %s claimed by %s but the claim was not recorded", task_id, user_id, exc_info=True)
            raise TrackingDegradedError("claim", task_id, exc) from exc

    async def complete(
        self,
        task_id: str,
        user_id: str,
        variables: Mapping[str, Any] | None = None,
        comment: str | None = None,
    ) -> None:
        """Complete a task and close the user's claim on it.

        Args:
            task_id: Engine identifier of the task.
            user_id: The completing user.
            variables: Variables to submit. Empty or missing variables complete
                the task without submitting any.
            comment: Comment recorded against the task before completion.

        Raises:
            InvalidInputError: If an identifier is blank.
            TaskNotFoundError: If the engine has no such task.
            TrackingDegradedError: If the task completed but its claim rows could not be closed.
        """
        require_identifier("task_id", task_id)
        require_identifier("user_id", user_id)

        task = await self.engine.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        if blank_to_none(comment) is not None:
            await self.engine.add_comment(task_id, task.process_instance_id, comment)

        if variables:
            await self.engine.complete_task(task_id, dict(variables))
        else:
            await self.engine.complete_task(task_id)
        logger.info("Task %s completed by %s", task_id, user_id)

        try:
            await self._close_claims(task_id, user_id)
        except StoreUnavailableError as exc:
            logger.error("Task %s completed but its claim rows were not closed", task_id, exc_info=True)
            raise TrackingDegradedError("complete", task_id, exc) from exc

    async def delegate(self, task_id: str, from_user_id: str, to_user_id: str) -> None:
        """Delegate a task to another user.

        Args:
            task_id: Engine identifier of the task.
            from_user_id: The user handing the task over.
            to_user_id: The user receiving it.
        """
        require_identifier("task_id", task_id)
        require_identifier("to_user_id", to_user_id)

        await self.engine.delegate_task(task_id, to_user_id)
        logger.info("Task %s delegated from %s to %s", task_id, from_user_id, to_user_id)

    async def task_history(self, process_instance_id: str) -> list[HistoricTaskRecord]:
        """List the finished tasks of an instance, most recently ended first."""
        require_identifier("process_instance_id", process_instance_id)
        return await self.engine.list_historic_tasks(process_instance_id)

    async def claim_history(self, task_id: str) -> Sequence[TaskAssignmentModel]:
        """List every recorded claim on a task, oldest first.

        Args:
            task_id: Engine identifier of the task.

        Returns:
            Assignment rows of all users, open and closed.
        """
        require_identifier("task_id", task_id)
        return await self.store.find_task_assignments_by_task(task_id)

    async def _close_claims(self, task_id: str, user_id: str) -> int:
        rows = [
            row
            for row in await self.store.find_task_assignments_by_task(task_id)
            if row.assignee == user_id and row.status == AssignmentStatus.CLAIMED
        ]
        if not rows:
            logger.debug("No claim row for task %s and %s", task_id, user_id)
            return 0

        completed_at = datetime.now(timezone.utc)
        for row in rows:
            row.status = AssignmentStatus.COMPLETED
            row.completed_at = completed_at
            await self.store.update_task_assignment(row)
        return len(rows)
