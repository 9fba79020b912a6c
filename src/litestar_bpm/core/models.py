"""Concrete data models for litestar-bpm.

Engine records are what an :class:`~litestar_bpm.core.protocols.EngineGateway`
returns. Views are what the trackers hand back to their callers; they are never
persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, TypeAlias

from litestar_bpm.core.types import Variables

__all__ = [
    "ActiveInstanceView",
    "DefinitionSummary",
    "DefinitionValidation",
    "HistoricProcessInstanceRecord",
    "HistoricStatus",
    "HistoricTaskRecord",
    "LiveStatus",
    "ProcessDefinitionRecord",
    "ProcessInstanceRecord",
    "ResolvedStatus",
    "TaskRecord",
    "TaskView",
]


@dataclass(frozen=True)
class ProcessDefinitionRecord:
    """A deployed process definition.

    Attributes:
        id: Engine identifier of this definition version.
        key: Process key shared by all versions.
        name: Display name.
        version: Version number within the key.
        deployment_id: Identifier of the deployment that contained it.
        description: Optional description.
        is_suspended: Whether new instances are currently blocked.
    """

    id: str
    key: str
    name: str | None
    version: int
    deployment_id: str | None = None
    description: str | None = None
    is_suspended: bool = False


@dataclass(frozen=True)
class ProcessInstanceRecord:
    """A process instance from the engine's live store."""

    id: str
    process_definition_id: str
    business_key: str | None = None
    is_suspended: bool = False


@dataclass(frozen=True)
class HistoricProcessInstanceRecord:
    """A process instance from the engine's historic store.

    Attributes:
        id: Engine identifier of the instance.
        process_definition_id: Definition the instance ran.
        business_key: Business key given at start, if any.
        start_time: When the instance started.
        end_time: When it ended, or ``None`` if the engine keeps history for running instances.
        duration_in_millis: Run time reported by the engine.
        delete_reason: Reason given when the instance was deleted.
    """

    id: str
    process_definition_id: str
    business_key: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_in_millis: int | None = None
    delete_reason: str | None = None


@dataclass(frozen=True)
class TaskRecord:
    """A user task from the engine's runtime store."""

    id: str
    name: str | None
    process_instance_id: str
    process_definition_id: str | None = None
    description: str | None = None
    assignee: str | None = None
    create_time: datetime | None = None
    due_date: datetime | None = None
    priority: int = 50


@dataclass(frozen=True)
class HistoricTaskRecord:
    """A user task from the engine's historic store."""

    id: str
    name: str | None
    assignee: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_in_millis: int | None = None
    delete_reason: str | None = None


@dataclass(frozen=True)
class LiveStatus:
    """Status of an instance that is still in the engine's live store."""

    process_instance_id: str
    process_definition_id: str
    business_key: str | None
    is_suspended: bool
    variables: Variables = field(default_factory=dict)
    is_ended: Literal[False] = False


@dataclass(frozen=True)
class HistoricStatus:
    """Status of an instance that has moved to the engine's historic store."""

    process_instance_id: str
    process_definition_id: str
    business_key: str | None
    start_time: datetime | None
    end_time: datetime | None
    duration_in_millis: int | None
    delete_reason: str | None
    is_ended: Literal[True] = True


ResolvedStatus: TypeAlias = LiveStatus | HistoricStatus
"""Result of a status lookup; absence is represented by ``None``."""


@dataclass(frozen=True)
class TaskView:
    """A task as presented to a user's task list.

    Attributes:
        is_claimed: ``True`` when the task came from the user's assigned tasks,
            ``False`` when the user is only a candidate.
        variables: Task variables, only filled in by detail lookups.
    """

    id: str
    name: str | None
    process_instance_id: str
    process_definition_id: str | None
    description: str | None
    assignee: str | None
    create_time: datetime | None
    due_date: datetime | None
    priority: int
    is_claimed: bool
    variables: Variables | None = None

    @classmethod
    def from_record(cls, task: TaskRecord, *, is_claimed: bool, variables: Variables | None = None) -> TaskView:
        """Build a view from an engine task record."""
        return cls(
            id=task.id,
            name=task.name,
            process_instance_id=task.process_instance_id,
            process_definition_id=task.process_definition_id,
            description=task.description,
            assignee=task.assignee,
            create_time=task.create_time,
            due_date=task.due_date,
            priority=task.priority,
            is_claimed=is_claimed,
            variables=variables,
        )


@dataclass(frozen=True)
class DefinitionSummary:
    """Latest version of a process definition with its active instance count."""

    id: str
    key: str
    name: str | None
    version: int
    deployment_id: str | None
    description: str | None
    is_suspended: bool
    active_instance_count: int


@dataclass(frozen=True)
class ActiveInstanceView:
    """An active live instance together with its current variables."""

    id: str
    process_definition_id: str
    business_key: str | None
    is_suspended: bool
    variables: Variables


@dataclass(frozen=True)
class DefinitionValidation:
    """Structural checks run against the BPMN model of a definition version.

    A model is valid when it has at least one start event and one end event.
    Tasks are reported but not required.

    Attributes:
        process_definition_id: The checked definition version.
        valid: Whether the model passed the required checks.
        has_start_event: Whether the model contains a start event.
        has_end_event: Whether the model contains an end event.
        has_tasks: Whether the model contains any task.
        error: Why the model could not be checked at all.
        warnings: Failed required checks, in check order.
    """

    process_definition_id: str
    valid: bool
    has_start_event: bool = False
    has_end_event: bool = False
    has_tasks: bool = False
    error: str | None = None
    warnings: tuple[str, ...] = ()
