"""Start and terminate reconciliation.

:class:`LifecycleTracker` drives process instances through the engine and
mirrors each successful engine action into the shadow store. The engine call
always comes first and is the side effect of record:

- an engine failure aborts the operation before anything is written locally
- a shadow store failure after an engine success is logged and raised as
  :class:`~litestar_bpm.exceptions.TrackingDegradedError`; the engine action is
  neither undone nor retried

Every local transition is idempotent, so a degraded operation can be repaired
by re-applying only its local step (see :meth:`LifecycleTracker.reconcile_termination`).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from litestar_bpm.core.types import SYSTEM_PRINCIPAL, InstanceStatus, TerminateMatchPolicy
from litestar_bpm.db.models import WorkflowInstanceModel
from litestar_bpm.exceptions import InvalidTransitionError, StoreUnavailableError, TrackingDegradedError
from litestar_bpm.principal import normalize_principal
from litestar_bpm.tracking._validation import blank_to_none, require_identifier

if TYPE_CHECKING:
    from collections.abc import Mapping

    from litestar_bpm.core.protocols import EngineGateway, ShadowStore

__all__ = ["LifecycleTracker"]

logger = logging.getLogger(__name__)


class LifecycleTracker:
    """Starts and terminates process instances and keeps their shadow rows in step.

    Attributes:
        engine: The engine that executes the processes.
        store: The shadow store holding one row per started instance.
        match_policy: How :meth:`terminate` finds the row to close.
        system_principal: Principal recorded when the caller supplies none.

    Example:
        >>> tracker = LifecycleTracker(engine, store)
        >>> instance_id = await tracker.start(
        ...     "approval-process", "ORDER-001", {"amount": 5000}, principal="alice"
        ... )
        >>> await tracker.terminate(instance_id, "done")
    """

    def __init__(
        self,
        engine: EngineGateway,
        store: ShadowStore,
        *,
        match_policy: TerminateMatchPolicy = TerminateMatchPolicy.INSTANCE_ID,
        system_principal: str = SYSTEM_PRINCIPAL,
    ) -> None:
        """Initialize the tracker.

        Args:
            engine: The engine gateway.
            store: The shadow store.
            match_policy: How terminate finds the row to close.
            system_principal: Principal recorded when the caller supplies none.
        """
        self.engine = engine
        self.store = store
        self.match_policy = match_policy
        self.system_principal = system_principal

    async def start(
        self,
        process_definition_key: str,
        business_key: str | None = None,
        variables: Mapping[str, Any] | None = None,
        principal: str | None = None,
    ) -> str:
        """Start a process instance and record it.

        A blank business key is treated as absent, in which case the engine is
        called without a business key argument at all.

        Args:
            process_definition_key: Key of the definition to start.
            business_key: Optional correlation key.
            variables: Initial process variables.
            principal: Who is starting the instance. Falls back to the system
                principal when missing or blank.

        Returns:
            The engine identifier of the started instance.

        Raises:
            InvalidInputError: If ``process_definition_key`` is blank.
            TrackingDegradedError: If the instance started but could not be recorded.
        """
        require_identifier("process_definition_key", process_definition_key)
        business_key = blank_to_none(business_key)
        started_by = normalize_principal(principal, self.system_principal)
        engine_variables = dict(variables) if variables else {}

        if business_key is None:
            instance_id = await self.engine.start_process_instance_by_key(process_definition_key, engine_variables)
        else:
            instance_id = await self.engine.start_process_instance_by_key(
                process_definition_key,
                engine_variables,
                business_key=business_key,
            )
        logger.info(
            "Started %s instance %s (business key: %s) for %s",
            process_definition_key,
            instance_id,
            business_key,
            started_by,
        )

        try:
            await self._record_start(instance_id, process_definition_key, business_key, started_by)
        except StoreUnavailableError as exc:
            logger.error("Instance %s started but could not be tracked", instance_id, exc_info=True)
            raise TrackingDegradedError("start", instance_id, exc) from exc
        return instance_id

    async def terminate(self, process_instance_id: str, reason: str | None = None) -> None:
        """Delete an instance in the engine and close its shadow row.

        The engine delete is unconditional. Finding no row to close is not an
        error, and a row that is already terminated is left as it is.

        Args:
            process_instance_id: Engine identifier of the instance.
            reason: Delete reason passed to the engine.

        Raises:
            InvalidInputError: If ``process_instance_id`` is blank.
            TrackingDegradedError: If the instance was deleted but its row could not be closed.
        """
        require_identifier("process_instance_id", process_instance_id)

        await self.engine.delete_process_instance(process_instance_id, reason)
        logger.info("Deleted instance %s (reason: %s)", process_instance_id, reason)

        try:
            await self._apply_termination(process_instance_id)
        except StoreUnavailableError as exc:
            logger.error("Instance %s deleted but its shadow row was not closed", process_instance_id, exc_info=True)
            raise TrackingDegradedError("terminate", process_instance_id, exc) from exc

    async def reconcile_termination(self, process_instance_id: str) -> bool:
        """Re-apply only the local step of :meth:`terminate`.

        Args:
            process_instance_id: Engine identifier of the deleted instance.

        Returns:
            Whether a row was changed.

        Raises:
            InvalidInputError: If ``process_instance_id`` is blank.
            StoreUnavailableError: If the row could not be read or written.
        """
        require_identifier("process_instance_id", process_instance_id)
        return await self._apply_termination(process_instance_id)

    async def record_completion(self, process_instance_id: str) -> bool:
        """Record that the engine finished an instance normally.

        Args:
            process_instance_id: Engine identifier of the finished instance.

        Returns:
            Whether a row was changed. ``False`` if the instance is untracked or
            already completed.

        Raises:
            InvalidInputError: If ``process_instance_id`` is blank.
            InvalidTransitionError: If the row is in another terminal status.
        """
        require_identifier("process_instance_id", process_instance_id)

        row = await self.store.get_workflow_instance_by_process_instance_id(process_instance_id)
        if row is None or row.status == InstanceStatus.COMPLETED:
            return False
        if row.status != InstanceStatus.ACTIVE:
            raise InvalidTransitionError(str(row.id), row.status, InstanceStatus.COMPLETED)

        await self._close(row, InstanceStatus.COMPLETED)
        logger.info("Recorded completion of instance %s", process_instance_id)
        return True

    async def _record_start(
        self,
        instance_id: str,
        process_definition_key: str,
        business_key: str | None,
        started_by: str,
    ) -> WorkflowInstanceModel:
        existing = await self.store.get_workflow_instance_by_process_instance_id(instance_id)
        if existing is not None:
            logger.warning("Instance %s is already tracked by row %s", instance_id, existing.id)
            return existing

        return await self.store.add_workflow_instance(
            WorkflowInstanceModel(
                process_instance_id=instance_id,
                process_definition_key=process_definition_key,
                business_key=business_key,
                status=InstanceStatus.ACTIVE,
                started_by=started_by,
                started_at=datetime.now(timezone.utc),
            )
        )

    async def _find_row_to_terminate(self, process_instance_id: str) -> WorkflowInstanceModel | None:
        if self.match_policy == TerminateMatchPolicy.INSTANCE_ID:
            return await self.store.get_workflow_instance_by_process_instance_id(process_instance_id)

        rows = await self.store.list_workflow_instances()
        return next((row for row in rows if row.business_key is not None), None)

    async def _apply_termination(self, process_instance_id: str) -> bool:
        row = await self._find_row_to_terminate(process_instance_id)
        if row is None:
            logger.info("No tracked row for instance %s", process_instance_id)
            return False
        if row.status == InstanceStatus.TERMINATED:
            return False
        if row.status != InstanceStatus.ACTIVE:
            logger.warning(
                "Not terminating row %s for instance %s: status is %s",
                row.id,
                process_instance_id,
                row.status,
            )
            return False

        await self._close(row, InstanceStatus.TERMINATED)
        return True

    async def _close(self, row: WorkflowInstanceModel, status: InstanceStatus) -> None:
        row.status = status
        row.completed_at = datetime.now(timezone.utc)
        await self.store.update_workflow_instance(row)
