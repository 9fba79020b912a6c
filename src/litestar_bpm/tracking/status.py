"""Live and historic status resolution."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from litestar_bpm.core.models import HistoricStatus, LiveStatus
from litestar_bpm.exceptions import ProcessInstanceNotFoundError
from litestar_bpm.tracking._validation import require_identifier

if TYPE_CHECKING:
    from litestar_bpm.core.models import ResolvedStatus
    from litestar_bpm.core.protocols import EngineGateway

__all__ = ["StatusResolver"]

logger = logging.getLogger(__name__)


class StatusResolver:
    """Answers "is this instance still running" across the engine's two stores.

    The live store is queried first and wins whenever it has the instance. Only
    when it does not is the historic store consulted.

    Attributes:
        engine: The engine to query.
    """

    def __init__(self, engine: EngineGateway) -> None:
        """Initialize the resolver.

        Args:
            engine: The engine gateway.
        """
        self.engine = engine

    async def resolve(self, process_instance_id: str) -> ResolvedStatus | None:
        """Resolve the current status of an instance.

        Args:
            process_instance_id: Engine identifier of the instance.

        Returns:
            A :class:`~litestar_bpm.core.models.LiveStatus` if the instance is
            running, a :class:`~litestar_bpm.core.models.HistoricStatus` if it
            has ended, or ``None`` if the engine does not know it.

        Raises:
            InvalidInputError: If ``process_instance_id`` is blank.
        """
        require_identifier("process_instance_id", process_instance_id)

        live = await self.engine.get_process_instance(process_instance_id)
        if live is not None:
            try:
                variables = await self.engine.get_process_variables(process_instance_id)
            except ProcessInstanceNotFoundError:
                logger.debug("Instance %s left the live store while being resolved", process_instance_id)
            else:
                return LiveStatus(
                    process_instance_id=live.id,
                    process_definition_id=live.process_definition_id,
                    business_key=live.business_key,
                    is_suspended=live.is_suspended,
                    variables=variables,
                )

        historic = await self.engine.get_historic_process_instance(process_instance_id)
        if historic is None:
            return None
        return HistoricStatus(
            process_instance_id=historic.id,
            process_definition_id=historic.process_definition_id,
            business_key=historic.business_key,
            start_time=historic.start_time,
            end_time=historic.end_time,
            duration_in_millis=historic.duration_in_millis,
            delete_reason=historic.delete_reason,
        )
