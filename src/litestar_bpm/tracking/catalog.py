"""Read-only views over deployed definitions, their models and running instances."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING

from litestar_bpm.core.models import ActiveInstanceView, DefinitionSummary, DefinitionValidation
from litestar_bpm.exceptions import ProcessInstanceNotFoundError
from litestar_bpm.tracking._validation import require_identifier

if TYPE_CHECKING:
    from litestar_bpm.core.protocols import EngineGateway

__all__ = ["ProcessCatalog"]

logger = logging.getLogger(__name__)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _is_task(name: str) -> bool:
    return name == "task" or name.endswith("Task")


class ProcessCatalog:
    """Lists deployed definitions and the instances running them."""

    def __init__(self, engine: EngineGateway) -> None:
        self.engine = engine

    async def list_definitions(self) -> list[DefinitionSummary]:
        """List the latest version of every definition with its active instance count.

        Returns:
            Summaries ordered by name ascending.
        """
        definitions = await self.engine.list_latest_process_definitions()
        return [
            DefinitionSummary(
                id=definition.id,
                key=definition.key,
                name=definition.name,
                version=definition.version,
                deployment_id=definition.deployment_id,
                description=definition.description,
                is_suspended=definition.is_suspended,
                active_instance_count=await self.engine.count_active_process_instances(definition.id),
            )
            for definition in definitions
        ]

    async def list_active_instances(self, process_definition_id: str) -> list[ActiveInstanceView]:
        """List the active instances of a definition version with their variables.

        Instances that end while being listed are left out.
        """
        require_identifier("process_definition_id", process_definition_id)

        views = []
        for instance in await self.engine.list_active_process_instances(process_definition_id):
            try:
                variables = await self.engine.get_process_variables(instance.id)
            except ProcessInstanceNotFoundError:
                continue
            views.append(
                ActiveInstanceView(
                    id=instance.id,
                    process_definition_id=instance.process_definition_id,
                    business_key=instance.business_key,
                    is_suspended=instance.is_suspended,
                    variables=variables,
                )
            )
        return views

    async def export_definition(self, process_definition_id: str) -> str | None:
        """Return the BPMN 2.0 XML a definition version was deployed with.

        Args:
            process_definition_id: Engine identifier of the definition version.

        Returns:
            The XML document, or ``None`` if the engine has no such definition or model.
        """
        require_identifier("process_definition_id", process_definition_id)

        bpmn_xml = await self.engine.get_process_definition_xml(process_definition_id)
        if bpmn_xml is None:
            logger.warning("No BPMN model for process definition %s", process_definition_id)
        return bpmn_xml

    async def validate_definition(self, process_definition_id: str) -> DefinitionValidation:
        """Check the deployed model of a definition version for start and end events.

        A missing definition or an unreadable model is reported through
        ``error`` on an invalid result rather than raised.

        Args:
            process_definition_id: Engine identifier of the definition version.

        Returns:
            The result of the checks.
        """
        bpmn_xml = await self.export_definition(process_definition_id)
        if bpmn_xml is None:
            return DefinitionValidation(
                process_definition_id=process_definition_id,
                valid=False,
                error=f"No BPMN model found for process definition {process_definition_id}",
            )

        try:
            root = ET.fromstring(bpmn_xml)
        except ET.ParseError as exc:
            logger.warning("Malformed BPMN model for process definition %s: %s", process_definition_id, exc)
            return DefinitionValidation(
                process_definition_id=process_definition_id,
                valid=False,
                error=f"Malformed BPMN XML: {exc}",
            )

        names = {_local_name(element.tag) for element in root.iter()}
        has_start_event = "startEvent" in names
        has_end_event = "endEvent" in names

        warnings = []
        if not has_start_event:
            warnings.append("Process is missing a start event")
        if not has_end_event:
            warnings.append("Process is missing an end event")

        return DefinitionValidation(
            process_definition_id=process_definition_id,
            valid=has_start_event and has_end_event,
            has_start_event=has_start_event,
            has_end_event=has_end_event,
            has_tasks=any(_is_task(name) for name in names),
            warnings=tuple(warnings),
        )
