"""Minimal example of litestar-bpm integration.

This example exposes start, status, terminate and task endpoints on top of the
ProcessControlPlugin. Without ``BPM_ENGINE_URL`` it runs against the in-memory
engine with an ``order-approval`` definition deployed; set it to a Camunda 7
REST root (e.g. ``http://localhost:8080/engine-rest``) to drive a real engine.

Run with:
    cd examples/minimal
    litestar run

Or:
    uvicorn app:app --reload
"""

from __future__ import annotations

import os
from typing import Any

from advanced_alchemy.extensions.litestar import SQLAlchemyAsyncConfig, SQLAlchemyPlugin
from litestar import Controller, Litestar, get, post
from litestar.exceptions import NotFoundException

from litestar_bpm import (
    DefinitionValidation,
    InMemoryEngine,
    LifecycleTracker,
    ProcessCatalog,
    ProcessControlConfig,
    ProcessControlPlugin,
    StatusResolver,
    TaskLifecycleTracker,
)

# =============================================================================
# Engine
# =============================================================================

ENGINE_URL = os.environ.get("BPM_ENGINE_URL")

ORDER_APPROVAL_BPMN = """<definitions xmlns="http://www.omg.org/spec/BPMN/20100524/MODEL" id="order-approval-defs">
  <process id="order-approval" isExecutable="true">
    <startEvent id="received" />
    <userTask id="approve" name="Approve order" />
    <endEvent id="done" />
  </process>
</definitions>
"""

memory_engine = InMemoryEngine()
memory_engine.deploy(
    "order-approval",
    "Order Approval",
    description="Approve customer orders above a threshold",
    bpmn_xml=ORDER_APPROVAL_BPMN,
)


# =============================================================================
# Controllers
# =============================================================================


class ProcessController(Controller):
    """Start, inspect and terminate process instances."""

    path = "/processes"

    @get("/definitions")
    async def list_definitions(self, process_catalog: ProcessCatalog) -> list[dict[str, Any]]:
        """List deployed definitions with their active instance counts."""
        return [
            {"key": d.key, "name": d.name, "version": d.version, "active": d.active_instance_count}
            for d in await process_catalog.list_definitions()
        ]

    @get("/definitions/{definition_id:str}/diagram", media_type="application/xml")
    async def diagram(self, definition_id: str, process_catalog: ProcessCatalog) -> str:
        """Export the BPMN XML of a definition version."""
        bpmn_xml = await process_catalog.export_definition(definition_id)
        if bpmn_xml is None:
            raise NotFoundException(f"No BPMN model for {definition_id}")
        return bpmn_xml

    @post("/definitions/{definition_id:str}/validate")
    async def validate(self, definition_id: str, process_catalog: ProcessCatalog) -> DefinitionValidation:
        """Check a definition version for start and end events."""
        return await process_catalog.validate_definition(definition_id)

    @post("/{key:str}/start")
    async def start(
        self,
        key: str,
        data: dict[str, Any],
        lifecycle_tracker: LifecycleTracker,
        principal: str,
    ) -> dict[str, str]:
        """Start an instance of a definition."""
        instance_id = await lifecycle_tracker.start(
            key,
            data.get("business_key"),
            data.get("variables"),
            principal,
        )
        return {"process_instance_id": instance_id}

    @get("/{instance_id:str}")
    async def status(self, instance_id: str, status_resolver: StatusResolver) -> dict[str, Any]:
        """Report whether an instance is still running."""
        status = await status_resolver.resolve(instance_id)
        if status is None:
            raise NotFoundException(f"Process instance {instance_id} not found")
        return {"process_instance_id": instance_id, "is_ended": status.is_ended}

    @post("/{instance_id:str}/terminate")
    async def terminate(self, instance_id: str, data: dict[str, Any], lifecycle_tracker: LifecycleTracker) -> None:
        """Terminate an instance."""
        await lifecycle_tracker.terminate(instance_id, data.get("reason"))


class TaskController(Controller):
    """List, claim and complete user tasks."""

    path = "/tasks"

    @get("/")
    async def my_tasks(self, task_tracker: TaskLifecycleTracker, principal: str) -> list[dict[str, Any]]:
        """List the caller's assigned and claimable tasks."""
        return [
            {"id": t.id, "name": t.name, "process_instance_id": t.process_instance_id, "is_claimed": t.is_claimed}
            for t in await task_tracker.list_user_tasks(principal)
        ]

    @post("/{task_id:str}/claim")
    async def claim(self, task_id: str, task_tracker: TaskLifecycleTracker, principal: str) -> dict[str, str]:
        """Claim a task for the caller."""
        row = await task_tracker.claim(task_id, principal)
        return {"assignment_id": str(row.id)}

    @post("/{task_id:str}/complete")
    async def complete(
        self,
        task_id: str,
        data: dict[str, Any],
        task_tracker: TaskLifecycleTracker,
        principal: str,
    ) -> None:
        """Complete a task, optionally with variables and a comment."""
        await task_tracker.complete(task_id, principal, data.get("variables"), data.get("comment"))


# =============================================================================
# Application
# =============================================================================

db_config = SQLAlchemyAsyncConfig(
    connection_string="sqlite+aiosqlite:///bpm.sqlite",
    create_all=True,
)

app = Litestar(
    route_handlers=[ProcessController, TaskController],
    plugins=[
        SQLAlchemyPlugin(config=db_config),
        ProcessControlPlugin(
            ProcessControlConfig(
                engine=None if ENGINE_URL else memory_engine,
                engine_url=ENGINE_URL,
            )
        ),
    ],
)
