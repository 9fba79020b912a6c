"""Core protocols for litestar-bpm.

This module defines the Protocol-based interfaces of the two collaborators the
trackers reconcile: the external workflow engine and the local shadow store.
Using Protocol keeps the trackers independent of any concrete engine client or
database layer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from litestar_bpm.core.models import (
        HistoricProcessInstanceRecord,
        HistoricTaskRecord,
        ProcessDefinitionRecord,
        ProcessInstanceRecord,
        TaskRecord,
    )
    from litestar_bpm.core.types import AssignmentStatus, Variables
    from litestar_bpm.db.models import TaskAssignmentModel, WorkflowInstanceModel

__all__ = ["EngineGateway", "ShadowStore"]


@runtime_checkable
class EngineGateway(Protocol):
    """Protocol for the external engine that owns process and task execution.

    Implementations raise :class:`~litestar_bpm.exceptions.EngineUnavailableError`
    on transport failures and the :class:`~litestar_bpm.exceptions.NotFoundError`
    family when a referenced resource does not exist. Lookups that may
    legitimately find nothing return ``None`` instead.

    Example:
        >>> instance_id = await engine.start_process_instance_by_key(
        ...     "approval-process", {"amount": 5000}, business_key="ORDER-001"
        ... )
        >>> await engine.get_process_instance(instance_id)
        ProcessInstanceRecord(id=..., process_definition_id=..., business_key='ORDER-001', ...)
    """

    async def start_process_instance_by_key(
        self,
        key: str,
        variables: Variables,
        business_key: str | None = None,
    ) -> str:
        """Start the latest version of a definition.

        Callers that have no business key must omit the argument rather than
        pass ``None``.

        Args:
            key: Process definition key.
            variables: Initial process variables.
            business_key: Correlation key stored with the instance.

        Returns:
            The engine identifier of the new instance.

        Raises:
            ProcessDefinitionNotFoundError: If no definition has this key.
        """
        ...

    async def get_process_instance(self, instance_id: str) -> ProcessInstanceRecord | None:
        """Look up an instance in the live store."""
        ...

    async def get_process_variables(self, instance_id: str) -> Variables:
        """Return the variables of a live instance.

        Raises:
            ProcessInstanceNotFoundError: If the instance is not live.
        """
        ...

    async def get_historic_process_instance(self, instance_id: str) -> HistoricProcessInstanceRecord | None:
        """Look up an instance in the historic store."""
        ...

    async def delete_process_instance(self, instance_id: str, reason: str | None) -> None:
        """Delete a live instance.

        Raises:
            ProcessInstanceNotFoundError: If the instance is not live.
        """
        ...

    async def list_latest_process_definitions(self) -> list[ProcessDefinitionRecord]:
        """Return the latest version of every definition, ordered by name ascending."""
        ...

    async def get_process_definition_xml(self, definition_id: str) -> str | None:
        """Return the BPMN 2.0 XML of a definition version.

        Returns:
            The XML document, or ``None`` if the definition or its model does not exist.
        """
        ...

    async def count_active_process_instances(self, definition_id: str) -> int:
        """Count the active (not suspended) live instances of a definition version."""
        ...

    async def list_active_process_instances(self, definition_id: str) -> list[ProcessInstanceRecord]:
        """List the active live instances of a definition version."""
        ...

    async def list_tasks_by_assignee(self, user_id: str) -> list[TaskRecord]:
        """List tasks assigned to a user, newest first."""
        ...

    async def list_tasks_by_candidate_user(self, user_id: str) -> list[TaskRecord]:
        """List unassigned tasks a user may claim, newest first."""
        ...

    async def get_task(self, task_id: str) -> TaskRecord | None:
        """Look up a runtime task."""
        ...

    async def get_task_variables(self, task_id: str) -> Variables:
        """Return the variables visible from a task.

        Raises:
            TaskNotFoundError: If the task does not exist.
        """
        ...

    async def claim_task(self, task_id: str, user_id: str) -> None:
        """Assign a task to a user.

        Raises:
            TaskNotFoundError: If the task does not exist.
            EngineRequestError: If the task is already claimed by someone else.
        """
        ...

    async def complete_task(self, task_id: str, variables: Variables | None = None) -> None:
        """Complete a task, optionally submitting variables.

        Callers without variables must omit the argument.

        Raises:
            TaskNotFoundError: If the task does not exist.
        """
        ...

    async def add_comment(self, task_id: str, process_instance_id: str, message: str) -> None:
        """Attach a comment to a task and its owning instance."""
        ...

    async def delegate_task(self, task_id: str, user_id: str) -> None:
        """Delegate a task to another user."""
        ...

    async def list_historic_tasks(self, process_instance_id: str) -> list[HistoricTaskRecord]:
        """List historic tasks of an instance, most recently ended first."""
        ...


@runtime_checkable
class ShadowStore(Protocol):
    """Protocol for the local store of tracked instances and assignments.

    Rows are never deleted. Updates must be rejected with
    :class:`~litestar_bpm.exceptions.ConcurrentUpdateError` when the row was
    modified since it was read, and any other storage failure must surface as
    :class:`~litestar_bpm.exceptions.StoreUnavailableError`.
    """

    async def add_workflow_instance(self, row: WorkflowInstanceModel) -> WorkflowInstanceModel:
        """Insert a new workflow instance row."""
        ...

    async def update_workflow_instance(self, row: WorkflowInstanceModel) -> WorkflowInstanceModel:
        """Persist changes made to a previously loaded workflow instance row."""
        ...

    async def list_workflow_instances(self) -> Sequence[WorkflowInstanceModel]:
        """List all workflow instance rows, oldest start first."""
        ...

    async def get_workflow_instance_by_process_instance_id(
        self,
        process_instance_id: str,
    ) -> WorkflowInstanceModel | None:
        """Find the row tracking an engine instance."""
        ...

    async def find_workflow_instances_by_business_key(self, business_key: str) -> Sequence[WorkflowInstanceModel]:
        """Find rows started with a business key."""
        ...

    async def add_task_assignment(self, row: TaskAssignmentModel) -> TaskAssignmentModel:
        """Insert a new task assignment row."""
        ...

    async def update_task_assignment(self, row: TaskAssignmentModel) -> TaskAssignmentModel:
        """Persist changes made to a previously loaded task assignment row."""
        ...

    async def find_task_assignments(
        self,
        assignee: str,
        status: AssignmentStatus,
    ) -> Sequence[TaskAssignmentModel]:
        """Find a user's assignment rows in a given status, newest first."""
        ...

    async def find_task_assignments_by_task(self, task_id: str) -> Sequence[TaskAssignmentModel]:
        """Find every assignment row of a task, oldest first."""
        ...
