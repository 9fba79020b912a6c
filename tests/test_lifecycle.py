"""Tests for LifecycleTracker start and terminate reconciliation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from litestar_bpm.core.types import SYSTEM_PRINCIPAL, InstanceStatus, TerminateMatchPolicy
from litestar_bpm.exceptions import (
    ConcurrentUpdateError,
    EngineUnavailableError,
    InvalidInputError,
    InvalidTransitionError,
    ProcessInstanceNotFoundError,
    StoreUnavailableError,
    TrackingDegradedError,
)
from litestar_bpm.tracking.lifecycle import LifecycleTracker

if TYPE_CHECKING:
    from litestar_bpm.db.store import SQLAlchemyShadowStore


@pytest.fixture
def tracker(mock_engine: AsyncMock, store: SQLAlchemyShadowStore) -> LifecycleTracker:
    """Create a tracker over the mocked engine and the SQLite store."""
    return LifecycleTracker(mock_engine, store)


# =============================================================================
# Start
# =============================================================================


@pytest.mark.unit
class TestStartEngineCall:
    """Tests for how start calls the engine."""

    @pytest.mark.parametrize("business_key", [None, "", "   ", "\t"])
    async def test_blank_business_key_uses_two_argument_form(
        self,
        tracker: LifecycleTracker,
        mock_engine: AsyncMock,
        business_key: str | None,
    ) -> None:
        await tracker.start("simple-process", business_key, {"priority": "high"})

        mock_engine.start_process_instance_by_key.assert_awaited_once_with("simple-process", {"priority": "high"})

    @pytest.mark.parametrize("business_key", ["ORDER-001", " padded "])
    async def test_business_key_uses_three_argument_form(
        self,
        tracker: LifecycleTracker,
        mock_engine: AsyncMock,
        business_key: str,
    ) -> None:
        await tracker.start("approval-process", business_key, {"amount": 5000})

        mock_engine.start_process_instance_by_key.assert_awaited_once_with(
            "approval-process", {"amount": 5000}, business_key=business_key
        )

    async def test_missing_variables_become_empty_mapping(
        self,
        tracker: LifecycleTracker,
        mock_engine: AsyncMock,
    ) -> None:
        await tracker.start("simple-process")

        mock_engine.start_process_instance_by_key.assert_awaited_once_with("simple-process", {})

    async def test_simple_process_scenario(self, tracker: LifecycleTracker, mock_engine: AsyncMock) -> None:
        """start("simple-process", None, {"priority": "high"}) never passes a business key."""
        await tracker.start("simple-process", None, {"priority": "high"})

        args, kwargs = mock_engine.start_process_instance_by_key.await_args
        assert args == ("simple-process", {"priority": "high"})
        assert kwargs == {}

    @pytest.mark.parametrize("key", ["", "   "])
    async def test_blank_definition_key_is_rejected(
        self,
        tracker: LifecycleTracker,
        mock_engine: AsyncMock,
        key: str,
    ) -> None:
        with pytest.raises(InvalidInputError):
            await tracker.start(key)

        mock_engine.start_process_instance_by_key.assert_not_awaited()


@pytest.mark.integration
class TestStartTracking:
    """Tests for the shadow row written by start."""

    async def test_returns_engine_instance_id(self, tracker: LifecycleTracker) -> None:
        assert await tracker.start("approval-process", "ORDER-001", principal="alice") == "p-1"

    async def test_writes_active_row(self, tracker: LifecycleTracker, store: SQLAlchemyShadowStore) -> None:
        before = datetime.now(timezone.utc)

        await tracker.start("approval-process", "ORDER-001", {"amount": 5000}, principal="alice")

        row = await store.get_workflow_instance_by_process_instance_id("p-1")
        assert row is not None
        assert row.status == InstanceStatus.ACTIVE
        assert row.process_definition_key == "approval-process"
        assert row.business_key == "ORDER-001"
        assert row.started_by == "alice"
        assert row.started_at >= before
        assert row.completed_at is None

    async def test_blank_business_key_stored_as_null(
        self, tracker: LifecycleTracker, store: SQLAlchemyShadowStore
    ) -> None:
        await tracker.start("simple-process", "   ")

        row = await store.get_workflow_instance_by_process_instance_id("p-1")
        assert row.business_key is None

    @pytest.mark.parametrize("principal", [None, "", "  "])
    async def test_missing_principal_recorded_as_system(
        self,
        tracker: LifecycleTracker,
        store: SQLAlchemyShadowStore,
        principal: str | None,
    ) -> None:
        await tracker.start("simple-process", principal=principal)

        row = await store.get_workflow_instance_by_process_instance_id("p-1")
        assert row.started_by == SYSTEM_PRINCIPAL

    async def test_custom_system_principal(self, mock_engine: AsyncMock, store: SQLAlchemyShadowStore) -> None:
        tracker = LifecycleTracker(mock_engine, store, system_principal="scheduler")

        await tracker.start("simple-process")

        row = await store.get_workflow_instance_by_process_instance_id("p-1")
        assert row.started_by == "scheduler"

    async def test_reapplied_start_reuses_row(self, tracker: LifecycleTracker, store: SQLAlchemyShadowStore) -> None:
        await tracker.start("approval-process", "ORDER-001", principal="alice")
        await tracker.start("approval-process", "ORDER-001", principal="bob")

        rows = await store.list_workflow_instances()
        assert len(rows) == 1
        assert rows[0].started_by == "alice"

    async def test_engine_failure_writes_nothing(
        self,
        tracker: LifecycleTracker,
        mock_engine: AsyncMock,
        store: SQLAlchemyShadowStore,
    ) -> None:
        mock_engine.start_process_instance_by_key.side_effect = EngineUnavailableError("start_process_instance_by_key")

        with pytest.raises(EngineUnavailableError):
            await tracker.start("approval-process", "ORDER-001")

        assert await store.list_workflow_instances() == []


@pytest.mark.unit
class TestStartDegraded:
    """Tests for start when the shadow write fails."""

    async def test_store_failure_is_degraded(self, mock_engine: AsyncMock, mock_store: AsyncMock) -> None:
        mock_store.add_workflow_instance.side_effect = StoreUnavailableError("insert workflow instance")
        tracker = LifecycleTracker(mock_engine, mock_store)

        with pytest.raises(TrackingDegradedError) as exc_info:
            await tracker.start("approval-process", "ORDER-001")

        assert exc_info.value.operation == "start"
        assert exc_info.value.reference == "p-1"
        assert exc_info.value.retryable is False
        mock_engine.delete_process_instance.assert_not_awaited()

    async def test_store_failure_is_logged(
        self,
        mock_engine: AsyncMock,
        mock_store: AsyncMock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        mock_store.add_workflow_instance.side_effect = StoreUnavailableError("insert workflow instance")
        tracker = LifecycleTracker(mock_engine, mock_store)

        with caplog.at_level("ERROR", logger="litestar_bpm.tracking.lifecycle"), pytest.raises(TrackingDegradedError):
            await tracker.start("approval-process")

        assert "p-1" in caplog.text


# =============================================================================
# Terminate
# =============================================================================


@pytest.mark.integration
class TestTerminate:
    """Tests for terminate."""

    async def test_deletes_in_engine_and_closes_row(
        self,
        tracker: LifecycleTracker,
        mock_engine: AsyncMock,
        store: SQLAlchemyShadowStore,
    ) -> None:
        await tracker.start("approval-process", "ORDER-001", principal="alice")

        await tracker.terminate("p-1", "done")

        mock_engine.delete_process_instance.assert_awaited_once_with("p-1", "done")
        row = await store.get_workflow_instance_by_process_instance_id("p-1")
        assert row.status == InstanceStatus.TERMINATED
        assert row.completed_at is not None

    async def test_without_reason(self, tracker: LifecycleTracker, mock_engine: AsyncMock) -> None:
        await tracker.terminate("p-9")

        mock_engine.delete_process_instance.assert_awaited_once_with("p-9", None)

    async def test_untracked_instance_succeeds(
        self,
        tracker: LifecycleTracker,
        mock_engine: AsyncMock,
        store: SQLAlchemyShadowStore,
    ) -> None:
        await tracker.terminate("p-unknown", "cleanup")

        mock_engine.delete_process_instance.assert_awaited_once()
        assert await store.list_workflow_instances() == []

    async def test_matches_only_the_terminated_instance(
        self,
        tracker: LifecycleTracker,
        store: SQLAlchemyShadowStore,
        make_instance_row,
    ) -> None:
        now = datetime.now(timezone.utc)
        await store.add_workflow_instance(make_instance_row("p-1", "ORDER-001", started_at=now - timedelta(hours=1)))
        await store.add_workflow_instance(make_instance_row("p-2", "ORDER-002", started_at=now))

        await tracker.terminate("p-2", "done")

        first = await store.get_workflow_instance_by_process_instance_id("p-1")
        second = await store.get_workflow_instance_by_process_instance_id("p-2")
        assert first.status == InstanceStatus.ACTIVE
        assert first.completed_at is None
        assert second.status == InstanceStatus.TERMINATED

    async def test_any_business_key_policy_closes_first_keyed_row(
        self,
        mock_engine: AsyncMock,
        store: SQLAlchemyShadowStore,
        make_instance_row,
    ) -> None:
        now = datetime.now(timezone.utc)
        await store.add_workflow_instance(make_instance_row("p-0", None, started_at=now - timedelta(hours=2)))
        await store.add_workflow_instance(make_instance_row("p-1", "ORDER-001", started_at=now - timedelta(hours=1)))
        await store.add_workflow_instance(make_instance_row("p-2", "ORDER-002", started_at=now))
        tracker = LifecycleTracker(mock_engine, store, match_policy=TerminateMatchPolicy.ANY_BUSINESS_KEY)

        await tracker.terminate("p-2", "done")

        statuses = {r.process_instance_id: r.status for r in await store.list_workflow_instances()}
        assert statuses == {
            "p-0": InstanceStatus.ACTIVE,
            "p-1": InstanceStatus.TERMINATED,
            "p-2": InstanceStatus.ACTIVE,
        }

    async def test_reapplied_terminate_keeps_completed_at(
        self,
        tracker: LifecycleTracker,
        store: SQLAlchemyShadowStore,
    ) -> None:
        await tracker.start("approval-process", "ORDER-001")
        await tracker.terminate("p-1", "done")
        row = await store.get_workflow_instance_by_process_instance_id("p-1")
        completed_at, row_version = row.completed_at, row.row_version

        await tracker.terminate("p-1", "done again")

        row = await store.get_workflow_instance_by_process_instance_id("p-1")
        assert row.status == InstanceStatus.TERMINATED
        assert row.completed_at == completed_at
        assert row.row_version == row_version

    async def test_completed_row_is_left_alone(
        self,
        tracker: LifecycleTracker,
        store: SQLAlchemyShadowStore,
        make_instance_row,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        finished = make_instance_row("p-1", status=InstanceStatus.COMPLETED)
        finished.completed_at = datetime.now(timezone.utc)
        await store.add_workflow_instance(finished)

        with caplog.at_level("WARNING", logger="litestar_bpm.tracking.lifecycle"):
            await tracker.terminate("p-1", "done")

        row = await store.get_workflow_instance_by_process_instance_id("p-1")
        assert row.status == InstanceStatus.COMPLETED
        assert "p-1" in caplog.text

    async def test_engine_failure_leaves_row_active(
        self,
        tracker: LifecycleTracker,
        mock_engine: AsyncMock,
        store: SQLAlchemyShadowStore,
    ) -> None:
        await tracker.start("approval-process", "ORDER-001")
        mock_engine.delete_process_instance.side_effect = ProcessInstanceNotFoundError("p-1")

        with pytest.raises(ProcessInstanceNotFoundError):
            await tracker.terminate("p-1", "done")

        row = await store.get_workflow_instance_by_process_instance_id("p-1")
        assert row.status == InstanceStatus.ACTIVE
        assert row.completed_at is None

    async def test_blank_id_is_rejected(self, tracker: LifecycleTracker, mock_engine: AsyncMock) -> None:
        with pytest.raises(InvalidInputError):
            await tracker.terminate("  ", "done")

        mock_engine.delete_process_instance.assert_not_awaited()


@pytest.mark.unit
class TestTerminateDegraded:
    """Tests for terminate when the shadow update fails."""

    async def test_conflict_is_retryable(
        self,
        mock_engine: AsyncMock,
        mock_store: AsyncMock,
        make_instance_row,
    ) -> None:
        mock_store.get_workflow_instance_by_process_instance_id.return_value = make_instance_row("p-1")
        mock_store.update_workflow_instance.side_effect = ConcurrentUpdateError("update workflow instance")
        tracker = LifecycleTracker(mock_engine, mock_store)

        with pytest.raises(TrackingDegradedError) as exc_info:
            await tracker.terminate("p-1", "done")

        assert exc_info.value.operation == "terminate"
        assert exc_info.value.reference == "p-1"
        assert exc_info.value.retryable is True
        mock_engine.delete_process_instance.assert_awaited_once_with("p-1", "done")

    async def test_lookup_failure_is_degraded(self, mock_engine: AsyncMock, mock_store: AsyncMock) -> None:
        mock_store.get_workflow_instance_by_process_instance_id.side_effect = StoreUnavailableError("look up")
        tracker = LifecycleTracker(mock_engine, mock_store)

        with pytest.raises(TrackingDegradedError) as exc_info:
            await tracker.terminate("p-1")

        assert exc_info.value.retryable is False


# =============================================================================
# Local transitions
# =============================================================================


@pytest.mark.integration
class TestLocalTransitions:
    """Tests for reconcile_termination and record_completion."""

    async def test_reconcile_after_degraded_terminate(
        self,
        mock_engine: AsyncMock,
        store: SQLAlchemyShadowStore,
    ) -> None:
        tracker = LifecycleTracker(mock_engine, store)
        await tracker.start("approval-process", "ORDER-001")

        assert await tracker.reconcile_termination("p-1") is True
        assert await tracker.reconcile_termination("p-1") is False
        mock_engine.delete_process_instance.assert_not_awaited()

        row = await store.get_workflow_instance_by_process_instance_id("p-1")
        assert row.status == InstanceStatus.TERMINATED

    async def test_record_completion(self, tracker: LifecycleTracker, store: SQLAlchemyShadowStore) -> None:
        await tracker.start("approval-process", "ORDER-001")

        assert await tracker.record_completion("p-1") is True
        assert await tracker.record_completion("p-1") is False

        row = await store.get_workflow_instance_by_process_instance_id("p-1")
        assert row.status == InstanceStatus.COMPLETED
        assert row.completed_at is not None

    async def test_record_completion_of_untracked_instance(self, tracker: LifecycleTracker) -> None:
        assert await tracker.record_completion("p-unknown") is False

    async def test_record_completion_after_termination(self, tracker: LifecycleTracker) -> None:
        await tracker.start("approval-process", "ORDER-001")
        await tracker.terminate("p-1", "done")

        with pytest.raises(InvalidTransitionError) as exc_info:
            await tracker.record_completion("p-1")

        assert exc_info.value.from_status == InstanceStatus.TERMINATED
        assert exc_info.value.to_status == InstanceStatus.COMPLETED
