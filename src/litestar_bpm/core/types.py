"""Core type definitions for litestar-bpm.

This module defines the enums and type aliases shared by the shadow store,
the engine gateways and the trackers.
"""

from __future__ import annotations

import sys
from enum import Enum, auto
from typing import Any, TypeAlias

# StrEnum backport for Python < 3.11
if sys.version_info >= (3, 11):
    from enum import StrEnum
else:

    class StrEnum(str, Enum):
        """String enumeration compatibility for Python < 3.11."""

        def __str__(self) -> str:
            return str(self.value)

        @staticmethod
        def _generate_next_value_(name: str, start: int, count: int, last_values: list[Any]) -> str:
            return name.lower()


__all__ = [
    "SYSTEM_PRINCIPAL",
    "TERMINAL_INSTANCE_STATUSES",
    "AssignmentStatus",
    "InstanceStatus",
    "TerminateMatchPolicy",
    "Variables",
]


SYSTEM_PRINCIPAL = "system"
"""Principal recorded when no authenticated identity is available."""


class InstanceStatus(StrEnum):
    """Status of a tracked workflow instance.

    Attributes:
        ACTIVE: The instance was started and is believed to be running.
        COMPLETED: The engine reported the instance as finished.
        SUSPENDED: The instance is suspended in the engine.
        TERMINATED: The instance was deleted through this control plane.
    """

    ACTIVE = auto()
    COMPLETED = auto()
    SUSPENDED = auto()
    TERMINATED = auto()


TERMINAL_INSTANCE_STATUSES = frozenset({InstanceStatus.COMPLETED, InstanceStatus.TERMINATED})
"""Statuses that carry a ``completed_at`` timestamp."""


class AssignmentStatus(StrEnum):
    """Status of a tracked task assignment.

    Attributes:
        PENDING: Not yet claimed. Never created by the trackers.
        CLAIMED: The assignee claimed the task through this control plane.
        COMPLETED: The assignee completed the task.
    """

    PENDING = auto()
    CLAIMED = auto()
    COMPLETED = auto()


class TerminateMatchPolicy(StrEnum):
    """How a terminate call finds the shadow row to close.

    Attributes:
        INSTANCE_ID: Match the row whose stored engine instance id equals the
            terminated instance.
        ANY_BUSINESS_KEY: Match the first row that has any business key. Kept
            for compatibility with deployments that never stored instance ids;
            it can close the wrong row when several instances are active.
    """

    INSTANCE_ID = auto()
    ANY_BUSINESS_KEY = auto()


Variables: TypeAlias = dict[str, Any]
"""Type alias for process and task variable mappings."""
