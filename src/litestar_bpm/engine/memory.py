"""Local in-memory workflow engine.

This module provides an in-process implementation of the
:class:`~litestar_bpm.core.protocols.EngineGateway` protocol, suitable for
development, testing and demos. It does not interpret BPMN: instances only end
and tasks only appear when the caller says so, through the helper methods that
are not part of the gateway protocol (``deploy``, ``create_task``,
``end_process_instance``, ``suspend_process_instance``).

Like a real engine it keeps two disjoint stores: running instances live in the
runtime store, and move to the historic store once they end or are deleted.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import uuid4

from litestar_bpm.core.models import (
    HistoricProcessInstanceRecord,
    HistoricTaskRecord,
    ProcessDefinitionRecord,
    ProcessInstanceRecord,
    TaskRecord,
)
from litestar_bpm.exceptions import (
    EngineRequestError,
    ProcessDefinitionNotFoundError,
    ProcessInstanceNotFoundError,
    TaskNotFoundError,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from litestar_bpm.core.types import Variables

__all__ = ["Comment", "InMemoryEngine"]


def _duration_in_millis(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() * 1000)


@dataclass(frozen=True)
class Comment:
    """A comment recorded against a task."""

    task_id: str
    process_instance_id: str
    message: str
    time: datetime


@dataclass
class _LiveInstance:
    record: ProcessInstanceRecord
    start_time: datetime
    variables: Variables = field(default_factory=dict)


@dataclass
class _LiveTask:
    record: TaskRecord
    sequence: int
    candidate_users: set[str] = field(default_factory=set)
    variables: Variables = field(default_factory=dict)


class InMemoryEngine:
    """In-memory engine with separate live and historic stores.

    Attributes:
        comments: Comments added through :meth:`add_comment`, in insertion order.
    """

    def __init__(self) -> None:
        """Initialize an empty engine."""
        self._definitions: dict[str, list[ProcessDefinitionRecord]] = {}
        self._models: dict[str, str] = {}
        self._live: dict[str, _LiveInstance] = {}
        self._historic: dict[str, HistoricProcessInstanceRecord] = {}
        self._tasks: dict[str, _LiveTask] = {}
        self._historic_tasks: dict[str, list[HistoricTaskRecord]] = {}
        self._sequence = itertools.count()
        self.comments: list[Comment] = []

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    # ==================== Test and development helpers ====================

    def deploy(
        self,
        key: str,
        name: str | None = None,
        description: str | None = None,
        bpmn_xml: str | None = None,
    ) -> ProcessDefinitionRecord:
        """Deploy a new version of a process definition.

        Args:
            key: Process definition key.
            name: Display name, defaults to the key.
            description: Optional description.
            bpmn_xml: BPMN 2.0 XML served back by :meth:`get_process_definition_xml`.

        Returns:
            The deployed definition version.
        """
        versions = self._definitions.setdefault(key, [])
        version = len(versions) + 1
        definition = ProcessDefinitionRecord(
            id=f"{key}:{version}:{uuid4()}",
            key=key,
            name=name or key,
            version=version,
            deployment_id=str(uuid4()),
            description=description,
        )
        versions.append(definition)
        if bpmn_xml is not None:
            self._models[definition.id] = bpmn_xml
        return definition

    def create_task(
        self,
        process_instance_id: str,
        name: str,
        *,
        assignee: str | None = None,
        candidate_users: Iterable[str] = (),
        due_date: datetime | None = None,
        priority: int = 50,
        description: str | None = None,
    ) -> TaskRecord:
        """Create a user task in a live instance, as reaching a user task would.

        Raises:
            ProcessInstanceNotFoundError: If the instance is not live.
        """
        instance = self._require_live(process_instance_id)
        task = TaskRecord(
            id=str(uuid4()),
            name=name,
            process_instance_id=process_instance_id,
            process_definition_id=instance.record.process_definition_id,
            description=description,
            assignee=assignee,
            create_time=self._now(),
            due_date=due_date,
            priority=priority,
        )
        self._tasks[task.id] = _LiveTask(
            record=task,
            sequence=next(self._sequence),
            candidate_users=set(candidate_users),
        )
        return task

    def end_process_instance(self, instance_id: str) -> HistoricProcessInstanceRecord:
        """Finish a live instance normally, as reaching an end event would."""
        return self._move_to_history(instance_id, delete_reason=None)

    def suspend_process_instance(self, instance_id: str) -> None:
        """Suspend a live instance."""
        instance = self._require_live(instance_id)
        instance.record = replace(instance.record, is_suspended=True)

    # ==================== Process instances ====================

    async def start_process_instance_by_key(
        self,
        key: str,
        variables: Variables,
        business_key: str | None = None,
    ) -> str:
        """Start the latest deployed version of ``key``."""
        versions = self._definitions.get(key)
        if not versions:
            raise ProcessDefinitionNotFoundError(key)

        instance_id = str(uuid4())
        self._live[instance_id] = _LiveInstance(
            record=ProcessInstanceRecord(
                id=instance_id,
                process_definition_id=versions[-1].id,
                business_key=business_key,
            ),
            start_time=self._now(),
            variables=dict(variables),
        )
        return instance_id

    async def get_process_instance(self, instance_id: str) -> ProcessInstanceRecord | None:
        instance = self._live.get(instance_id)
        return instance.record if instance else None

    async def get_process_variables(self, instance_id: str) -> Variables:
        return dict(self._require_live(instance_id).variables)

    async def get_historic_process_instance(self, instance_id: str) -> HistoricProcessInstanceRecord | None:
        return self._historic.get(instance_id)

    async def delete_process_instance(self, instance_id: str, reason: str | None) -> None:
        self._move_to_history(instance_id, delete_reason=reason)

    async def list_latest_process_definitions(self) -> list[ProcessDefinitionRecord]:
        latest = [versions[-1] for versions in self._definitions.values()]
        return sorted(latest, key=lambda d: (d.name or "", d.key))

    async def get_process_definition_xml(self, definition_id: str) -> str | None:
        return self._models.get(definition_id)

    async def count_active_process_instances(self, definition_id: str) -> int:
        return len(await self.list_active_process_instances(definition_id))

    async def list_active_process_instances(self, definition_id: str) -> list[ProcessInstanceRecord]:
        return [
            instance.record
            for instance in self._live.values()
            if instance.record.process_definition_id == definition_id and not instance.record.is_suspended
        ]

    # ==================== Tasks ====================

    async def list_tasks_by_assignee(self, user_id: str) -> list[TaskRecord]:
        return self._newest_first(task for task in self._tasks.values() if task.record.assignee == user_id)

    async def list_tasks_by_candidate_user(self, user_id: str) -> list[TaskRecord]:
        return self._newest_first(
            task for task in self._tasks.values() if task.record.assignee is None and user_id in task.candidate_users
        )

    async def get_task(self, task_id: str) -> TaskRecord | None:
        task = self._tasks.get(task_id)
        return task.record if task else None

    async def get_task_variables(self, task_id: str) -> Variables:
        task = self._require_task(task_id)
        variables = dict(self._live[task.record.process_instance_id].variables)
        variables.update(task.variables)
        return variables

    async def claim_task(self, task_id: str, user_id: str) -> None:
        task = self._require_task(task_id)
        current = task.record.assignee
        if current is not None and current != user_id:
            raise EngineRequestError("claim_task", 409, f"Task '{task_id}' is already claimed by '{current}'")
        task.record = replace(task.record, assignee=user_id)

    async def complete_task(self, task_id: str, variables: Variables | None = None) -> None:
        task = self._require_task(task_id)
        if variables:
            self._live[task.record.process_instance_id].variables.update(variables)
        self._archive_task(task, delete_reason="completed")

    async def add_comment(self, task_id: str, process_instance_id: str, message: str) -> None:
        self._require_task(task_id)
        self.comments.append(Comment(task_id, process_instance_id, message, self._now()))

    async def delegate_task(self, task_id: str, user_id: str) -> None:
        task = self._require_task(task_id)
        task.record = replace(task.record, assignee=user_id)

    async def list_historic_tasks(self, process_instance_id: str) -> list[HistoricTaskRecord]:
        tasks = self._historic_tasks.get(process_instance_id, [])
        return sorted(tasks, key=lambda t: t.end_time or datetime.min.replace(tzinfo=timezone.utc), reverse=True)

    # ==================== Internals ====================

    def _require_live(self, instance_id: str) -> _LiveInstance:
        instance = self._live.get(instance_id)
        if instance is None:
            raise ProcessInstanceNotFoundError(instance_id)
        return instance

    def _require_task(self, task_id: str) -> _LiveTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    @staticmethod
    def _newest_first(tasks: Iterable[_LiveTask]) -> list[TaskRecord]:
        return [task.record for task in sorted(tasks, key=lambda t: t.sequence, reverse=True)]

    def _archive_task(self, task: _LiveTask, delete_reason: str) -> None:
        del self._tasks[task.record.id]
        ended = self._now()
        started = task.record.create_time or ended
        self._historic_tasks.setdefault(task.record.process_instance_id, []).append(
            HistoricTaskRecord(
                id=task.record.id,
                name=task.record.name,
                assignee=task.record.assignee,
                start_time=started,
                end_time=ended,
                duration_in_millis=_duration_in_millis(started, ended),
                delete_reason=delete_reason,
            )
        )

    def _move_to_history(self, instance_id: str, delete_reason: str | None) -> HistoricProcessInstanceRecord:
        instance = self._live.pop(instance_id, None)
        if instance is None:
            raise ProcessInstanceNotFoundError(instance_id)

        for task in [t for t in self._tasks.values() if t.record.process_instance_id == instance_id]:
            self._archive_task(task, delete_reason="deleted")

        end_time = self._now()
        historic = HistoricProcessInstanceRecord(
            id=instance_id,
            process_definition_id=instance.record.process_definition_id,
            business_key=instance.record.business_key,
            start_time=instance.start_time,
            end_time=end_time,
            duration_in_millis=_duration_in_millis(instance.start_time, end_time),
            delete_reason=delete_reason,
        )
        self._historic[instance_id] = historic
        return historic
