"""Shared test fixtures for litestar-bpm test suite."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from litestar_bpm.core.protocols import EngineGateway, ShadowStore
from litestar_bpm.core.types import InstanceStatus
from litestar_bpm.db.models import WorkflowInstanceModel
from litestar_bpm.db.store import SQLAlchemyShadowStore
from litestar_bpm.engine.memory import InMemoryEngine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Create an async SQLite in-memory engine with the shadow tables."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(WorkflowInstanceModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the test engine."""
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_maker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Create an async session for testing."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def store(async_session: AsyncSession) -> SQLAlchemyShadowStore:
    """Create a shadow store on the test session."""
    return SQLAlchemyShadowStore(async_session)


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def memory_engine() -> InMemoryEngine:
    """Create an in-memory engine with the sample definitions deployed."""
    engine = InMemoryEngine()
    engine.deploy("approval-process", "Approval Process", description="Two-step approval")
    engine.deploy("simple-process", "Simple Process")
    return engine


@pytest.fixture
def mock_engine() -> AsyncMock:
    """Create an engine mock that enforces the gateway interface."""
    engine = AsyncMock(spec=EngineGateway)
    engine.start_process_instance_by_key.return_value = "p-1"
    engine.get_process_instance.return_value = None
    engine.get_historic_process_instance.return_value = None
    return engine


@pytest.fixture
def mock_store() -> AsyncMock:
    """Create a shadow store mock that enforces the store interface."""
    store = AsyncMock(spec=ShadowStore)
    store.get_workflow_instance_by_process_instance_id.return_value = None
    store.list_workflow_instances.return_value = []
    store.find_task_assignments.return_value = []
    store.find_task_assignments_by_task.return_value = []
    return store


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def make_instance_row():
    """Build unsaved workflow instance rows with sensible defaults."""

    def _make(
        process_instance_id: str | None = "p-1",
        business_key: str | None = "ORDER-001",
        status: InstanceStatus = InstanceStatus.ACTIVE,
        started_at: datetime | None = None,
    ) -> WorkflowInstanceModel:
        return WorkflowInstanceModel(
            process_instance_id=process_instance_id,
            process_definition_key="approval-process",
            business_key=business_key,
            status=status,
            started_by="alice",
            started_at=started_at or datetime.now(timezone.utc),
        )

    return _make
