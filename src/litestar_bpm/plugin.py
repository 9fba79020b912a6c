"""Litestar plugin for process control integration.

This module provides the ProcessControlPlugin, which wires an engine gateway,
the shadow store and the trackers into a Litestar application through
dependency injection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from litestar import Request  # noqa: TC002 - needed for DI
from litestar.di import Provide
from litestar.plugins import InitPluginProtocol
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002 - needed for DI

from litestar_bpm.core.protocols import EngineGateway
from litestar_bpm.core.types import SYSTEM_PRINCIPAL, TerminateMatchPolicy
from litestar_bpm.db.store import SQLAlchemyShadowStore
from litestar_bpm.engine.camunda import CamundaRestGateway
from litestar_bpm.engine.memory import InMemoryEngine
from litestar_bpm.principal import principal_from_connection
from litestar_bpm.tracking import LifecycleTracker, ProcessCatalog, StatusResolver, TaskLifecycleTracker

if TYPE_CHECKING:
    from litestar.config.app import AppConfig

__all__ = ["ProcessControlConfig", "ProcessControlPlugin"]


@dataclass
class ProcessControlConfig:
    """Configuration for the ProcessControlPlugin.

    Attributes:
        engine: Optional pre-configured engine gateway. Takes precedence over
            ``engine_url``.
        engine_url: Root of a Camunda 7 REST API. When set and no ``engine`` is
            given, a CamundaRestGateway is created and closed on shutdown.
            When neither is set, an InMemoryEngine is used.
        engine_timeout: Request timeout in seconds for the created REST gateway.
        terminate_match_policy: How terminate finds the shadow row to close.
        system_principal: Principal recorded when no user is authenticated.
        store_auto_commit: Whether shadow store writes commit the request's session.
        dependency_key_engine: Dependency key of the engine gateway.
        dependency_key_principal: Dependency key of the resolved principal.
        dependency_key_lifecycle_tracker: Dependency key of the LifecycleTracker.
        dependency_key_status_resolver: Dependency key of the StatusResolver.
        dependency_key_task_tracker: Dependency key of the TaskLifecycleTracker.
        dependency_key_process_catalog: Dependency key of the ProcessCatalog.

    The trackers that write to the shadow store depend on a ``db_session``
    dependency, as provided by advanced-alchemy's ``SQLAlchemyPlugin``.
    """

    engine: EngineGateway | None = None
    engine_url: str | None = None
    engine_timeout: float = 10.0
    terminate_match_policy: TerminateMatchPolicy = TerminateMatchPolicy.INSTANCE_ID
    system_principal: str = SYSTEM_PRINCIPAL
    store_auto_commit: bool = True
    dependency_key_engine: str = "process_engine"
    dependency_key_principal: str = "principal"
    dependency_key_lifecycle_tracker: str = "lifecycle_tracker"
    dependency_key_status_resolver: str = "status_resolver"
    dependency_key_task_tracker: str = "task_tracker"
    dependency_key_process_catalog: str = "process_catalog"


class ProcessControlPlugin(InitPluginProtocol):
    """Litestar plugin for process control.

    Example:
        Using the trackers in route handlers::

            from advanced_alchemy.extensions.litestar import SQLAlchemyAsyncConfig, SQLAlchemyPlugin
            from litestar import Litestar, post

            from litestar_bpm import LifecycleTracker, ProcessControlConfig, ProcessControlPlugin


            @post("/processes/{key:str}/start")
            async def start_process(key: str, lifecycle_tracker: LifecycleTracker, principal: str) -> dict:
                instance_id = await lifecycle_tracker.start(key, principal=principal)
                return {"process_instance_id": instance_id}


            app = Litestar(
                route_handlers=[start_process],
                plugins=[
                    SQLAlchemyPlugin(config=SQLAlchemyAsyncConfig(connection_string="sqlite+aiosqlite:///bpm.db")),
                    ProcessControlPlugin(ProcessControlConfig(engine_url="http://localhost:8080/engine-rest")),
                ],
            )
    """

    __slots__ = ("_config", "_engine")

    def __init__(self, config: ProcessControlConfig | None = None) -> None:
        """Initialize the plugin.

        Args:
            config: Optional configuration for the plugin.
        """
        self._config = config or ProcessControlConfig()
        self._engine: EngineGateway | None = None

    @property
    def engine(self) -> EngineGateway:
        """Get the engine gateway.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._engine is None:
            msg = "ProcessControlPlugin has not been initialized. Access engine after app startup."
            raise RuntimeError(msg)
        return self._engine

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Register the engine, principal and tracker dependencies.

        Args:
            app_config: The Litestar application configuration.

        Returns:
            The modified application configuration.
        """
        config = self._config

        if config.engine is not None:
            self._engine = config.engine
        elif config.engine_url:
            gateway = CamundaRestGateway(config.engine_url, timeout=config.engine_timeout)
            app_config.on_shutdown.append(gateway.aclose)
            self._engine = gateway
        else:
            self._engine = InMemoryEngine()

        def provide_engine() -> EngineGateway:
            return self.engine

        def provide_principal(request: Request) -> str:
            return principal_from_connection(request, config.system_principal)

        def provide_lifecycle_tracker(db_session: AsyncSession) -> LifecycleTracker:
            return LifecycleTracker(
                self.engine,
                SQLAlchemyShadowStore(db_session, auto_commit=config.store_auto_commit),
                match_policy=config.terminate_match_policy,
                system_principal=config.system_principal,
            )

        def provide_status_resolver() -> StatusResolver:
            return StatusResolver(self.engine)

        def provide_task_tracker(db_session: AsyncSession) -> TaskLifecycleTracker:
            return TaskLifecycleTracker(
                self.engine,
                SQLAlchemyShadowStore(db_session, auto_commit=config.store_auto_commit),
            )

        def provide_process_catalog() -> ProcessCatalog:
            return ProcessCatalog(self.engine)

        providers: dict[str, Any] = {
            config.dependency_key_engine: provide_engine,
            config.dependency_key_principal: provide_principal,
            config.dependency_key_lifecycle_tracker: provide_lifecycle_tracker,
            config.dependency_key_status_resolver: provide_status_resolver,
            config.dependency_key_task_tracker: provide_task_tracker,
            config.dependency_key_process_catalog: provide_process_catalog,
        }
        for key, provider in providers.items():
            app_config.dependencies[key] = Provide(provider, sync_to_thread=False)

        return app_config
