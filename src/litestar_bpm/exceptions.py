"""Exception hierarchy for litestar-bpm."""

from __future__ import annotations

__all__ = (
    "ConcurrentUpdateError",
    "EngineError",
    "EngineRequestError",
    "EngineUnavailableError",
    "InvalidInputError",
    "InvalidTransitionError",
    "NotFoundError",
    "ProcessControlError",
    "ProcessDefinitionNotFoundError",
    "ProcessInstanceNotFoundError",
    "StoreUnavailableError",
    "TaskNotFoundError",
    "TrackingDegradedError",
)


class ProcessControlError(Exception):
    """Base exception for all litestar-bpm errors.

    All exceptions raised by litestar-bpm inherit from this class, so callers
    can catch every control-plane failure with a single except clause.
    """


class NotFoundError(ProcessControlError):
    """Raised when a referenced engine resource does not exist."""


class ProcessDefinitionNotFoundError(NotFoundError):
    """Raised when no deployed process definition matches a key.

    Attributes:
        key: The process definition key that was not found.
    """

    def __init__(self, key: str) -> None:
        """Initialize the exception with the definition key.

        Args:
            key: The process definition key that was not found.
        """
        self.key = key
        super().__init__(f"Process definition '{key}' not found")


class ProcessInstanceNotFoundError(NotFoundError):
    """Raised when the engine has no process instance with the given id.

    Attributes:
        instance_id: The engine identifier of the missing instance.
    """

    def __init__(self, instance_id: str) -> None:
        """Initialize the exception with instance details.

        Args:
            instance_id: The engine identifier of the missing instance.
        """
        self.instance_id = instance_id
        super().__init__(f"Process instance '{instance_id}' not found")


class TaskNotFoundError(NotFoundError):
    """Raised when the engine has no task with the given id.

    Attributes:
        task_id: The engine identifier of the missing task.
    """

    def __init__(self, task_id: str) -> None:
        """Initialize the exception with task details.

        Args:
            task_id: The engine identifier of the missing task.
        """
        self.task_id = task_id
        super().__init__(f"Task '{task_id}' not found")


class EngineError(ProcessControlError):
    """Base exception for failures talking to the external workflow engine."""


class EngineUnavailableError(EngineError):
    """Raised when the engine cannot be reached or does not answer in time.

    Attributes:
        operation: The gateway operation that failed.
        cause: The underlying transport exception, if any.
    """

    def __init__(self, operation: str, cause: Exception | None = None) -> None:
        """Initialize the exception with transport details.

        Args:
            operation: The gateway operation that failed.
            cause: The underlying transport exception, if any.
        """
        self.operation = operation
        self.cause = cause
        msg = f"Engine unavailable during '{operation}'"
        if cause:
            msg += f": {cause}"
        super().__init__(msg)


class EngineRequestError(EngineError):
    """Raised when the engine answers but rejects the request.

    Attributes:
        operation: The gateway operation that failed.
        status_code: HTTP status code returned by the engine.
        detail: Error message reported by the engine, if any.
    """

    def __init__(self, operation: str, status_code: int, detail: str | None = None) -> None:
        """Initialize the exception with the engine's response details.

        Args:
            operation: The gateway operation that failed.
            status_code: HTTP status code returned by the engine.
            detail: Error message reported by the engine, if any.
        """
        self.operation = operation
        self.status_code = status_code
        self.detail = detail
        msg = f"Engine rejected '{operation}' with status {status_code}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class StoreUnavailableError(ProcessControlError):
    """Raised when the shadow store cannot be read or written.

    Attributes:
        action: Description of the store action that failed.
        cause: The underlying database exception, if any.
    """

    def __init__(self, action: str, cause: Exception | None = None) -> None:
        """Initialize the exception with store details.

        Args:
            action: Description of the store action that failed.
            cause: The underlying database exception, if any.
        """
        self.action = action
        self.cause = cause
        msg = f"Shadow store failed to {action}"
        if cause:
            msg += f": {cause}"
        super().__init__(msg)


class ConcurrentUpdateError(StoreUnavailableError):
    """Raised when a shadow row was changed by someone else since it was read.

    The write was rejected by the row version check and can be retried after
    reloading the row.
    """

    def __init__(self, action: str) -> None:
        """Initialize the exception.

        Args:
            action: Description of the store action that was rejected.
        """
        self.action = action
        self.cause = None
        ProcessControlError.__init__(self, f"Shadow store rejected a stale write while trying to {action}")


class InvalidInputError(ProcessControlError):
    """Raised when a required identifier is missing or blank.

    Attributes:
        field: Name of the offending argument.
    """

    def __init__(self, field: str, reason: str = "must not be empty") -> None:
        """Initialize the exception.

        Args:
            field: Name of the offending argument.
            reason: Why the value was rejected.
        """
        self.field = field
        super().__init__(f"'{field}' {reason}")


class InvalidTransitionError(ProcessControlError):
    """Raised when a shadow record is asked to move to a status it cannot reach.

    Attributes:
        record_id: Identifier of the shadow record.
        from_status: The record's current status.
        to_status: The requested status.
    """

    def __init__(self, record_id: str, from_status: str, to_status: str) -> None:
        """Initialize the exception with transition details.

        Args:
            record_id: Identifier of the shadow record.
            from_status: The record's current status.
            to_status: The requested status.
        """
        self.record_id = record_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid transition of '{record_id}' from '{from_status}' to '{to_status}'")


class TrackingDegradedError(ProcessControlError):
    """Raised when the engine action succeeded but local tracking did not.

    The engine is the source of truth, so the engine side effect is never undone
    when this is raised. Callers may re-apply the local step later.

    Attributes:
        operation: The tracker operation that degraded (``start``, ``terminate``, ...).
        reference: Engine identifier the operation acted on.
        cause: The exception raised by the shadow store or follow-up engine query.
    """

    def __init__(self, operation: str, reference: str, cause: Exception) -> None:
        """Initialize the exception.

        Args:
            operation: The tracker operation that degraded.
            reference: Engine identifier the operation acted on.
            cause: The underlying failure.
        """
        self.operation = operation
        self.reference = reference
        self.cause = cause
        super().__init__(f"'{operation}' succeeded in the engine for '{reference}' but tracking failed: {cause}")

    @property
    def retryable(self) -> bool:
        """Whether re-applying the local step is expected to succeed."""
        return isinstance(self.cause, ConcurrentUpdateError)
