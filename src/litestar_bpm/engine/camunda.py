"""Camunda 7 REST engine gateway.

This module implements the :class:`~litestar_bpm.core.protocols.EngineGateway`
protocol on top of the Camunda 7 REST API using an ``httpx.AsyncClient``.

Error mapping:
    - transport failures, timeouts and 502/503/504 responses raise
      :class:`~litestar_bpm.exceptions.EngineUnavailableError`
    - 404 responses either return ``None`` (lookups) or raise the matching
      :class:`~litestar_bpm.exceptions.NotFoundError` subclass
    - any other error response raises :class:`~litestar_bpm.exceptions.EngineRequestError`
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx

from litestar_bpm.core.models import (
    HistoricProcessInstanceRecord,
    HistoricTaskRecord,
    ProcessDefinitionRecord,
    ProcessInstanceRecord,
    TaskRecord,
)
from litestar_bpm.exceptions import (
    EngineRequestError,
    EngineUnavailableError,
    ProcessDefinitionNotFoundError,
    ProcessInstanceNotFoundError,
    TaskNotFoundError,
)

if TYPE_CHECKING:
    from litestar_bpm.core.types import Variables

__all__ = ["CamundaRestGateway", "decode_variables", "encode_variables"]

logger = logging.getLogger(__name__)

_UNAVAILABLE_STATUS_CODES = frozenset({502, 503, 504})
_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"


def parse_datetime(value: str | None) -> datetime | None:
    """Parse a Camunda timestamp such as ``2013-01-23T13:42:42.000+0200``."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    elif len(value) > 5 and value[-5] in "+-" and value[-3] != ":":
        value = f"{value[:-2]}:{value[-2:]}"
    return datetime.fromisoformat(value)


def format_datetime(value: datetime) -> str:
    """Format a timestamp the way Camunda expects (millisecond precision, ``+hhmm`` offset)."""
    return value.strftime(_DATE_FORMAT)[:-3] + value.strftime("%z")


def _typed_value(value: Any) -> dict[str, Any]:
    if value is None:
        return {"value": None, "type": "Null"}
    if isinstance(value, bool):
        return {"value": value, "type": "Boolean"}
    if isinstance(value, int):
        return {"value": value, "type": "Integer" if _INT32_MIN <= value <= _INT32_MAX else "Long"}
    if isinstance(value, float):
        return {"value": value, "type": "Double"}
    if isinstance(value, datetime):
        return {"value": format_datetime(value), "type": "Date"}
    if isinstance(value, (dict, list)):
        return {"value": json.dumps(value), "type": "Json"}
    return {"value": str(value), "type": "String"}


def encode_variables(variables: Variables) -> dict[str, dict[str, Any]]:
    """Encode a plain mapping as Camunda typed variable values."""
    return {name: _typed_value(value) for name, value in variables.items()}


def decode_variables(payload: dict[str, dict[str, Any]]) -> Variables:
    """Decode Camunda typed variable values into a plain mapping."""
    variables: Variables = {}
    for name, typed in payload.items():
        value = typed.get("value")
        kind = typed.get("type")
        if kind == "Json" and isinstance(value, str):
            value = json.loads(value)
        elif kind == "Date" and isinstance(value, str):
            value = parse_datetime(value)
        variables[name] = value
    return variables


def _error_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    return body.get("message") if isinstance(body, dict) else None


class CamundaRestGateway:
    """Engine gateway talking to the Camunda 7 REST API.

    The synchronous instance delete endpoint takes no reason, so the reason
    passed to :meth:`delete_process_instance` is only logged. Historic records
    of instances deleted through this gateway therefore carry no
    ``delete_reason``.

    Attributes:
        base_url: Root of the REST API, e.g. ``http://localhost:8080/engine-rest``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            base_url: Root of the REST API. Required unless ``client`` is given.
            timeout: Request timeout in seconds for the client created here.
            client: A preconfigured client. The gateway does not close clients
                it did not create.
        """
        if client is None and not base_url:
            msg = "CamundaRestGateway needs either a base_url or a client"
            raise ValueError(msg)
        self.base_url = base_url or str(client.base_url)  # type: ignore[union-attr]
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this gateway created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _send(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TransportError as exc:
            logger.warning("Engine call %s %s failed: %s", method, path, exc)
            raise EngineUnavailableError(operation, exc) from exc

        if response.status_code in _UNAVAILABLE_STATUS_CODES:
            raise EngineUnavailableError(operation, EngineRequestError(operation, response.status_code))
        return response

    @staticmethod
    def _raise_for_error(operation: str, response: httpx.Response) -> None:
        if response.is_error:
            raise EngineRequestError(operation, response.status_code, _error_detail(response))

    # ==================== Process instances ====================

    async def start_process_instance_by_key(
        self,
        key: str,
        variables: Variables,
        business_key: str | None = None,
    ) -> str:
        body: dict[str, Any] = {"variables": encode_variables(variables)}
        if business_key is not None:
            body["businessKey"] = business_key

        response = await self._send("start_process_instance_by_key", "POST", f"/process-definition/key/{key}/start", json=body)
        if response.status_code == 404:
            raise ProcessDefinitionNotFoundError(key)
        self._raise_for_error("start_process_instance_by_key", response)
        return response.json()["id"]

    async def get_process_instance(self, instance_id: str) -> ProcessInstanceRecord | None:
        response = await self._send("get_process_instance", "GET", f"/process-instance/{instance_id}")
        if response.status_code == 404:
            return None
        self._raise_for_error("get_process_instance", response)
        return self._to_instance(response.json())

    async def get_process_variables(self, instance_id: str) -> Variables:
        response = await self._send(
            "get_process_variables",
            "GET",
            f"/process-instance/{instance_id}/variables",
            params={"deserializeValues": "false"},
        )
        if response.status_code == 404:
            raise ProcessInstanceNotFoundError(instance_id)
        self._raise_for_error("get_process_variables", response)
        return decode_variables(response.json())

    async def get_historic_process_instance(self, instance_id: str) -> HistoricProcessInstanceRecord | None:
        response = await self._send("get_historic_process_instance", "GET", f"/history/process-instance/{instance_id}")
        if response.status_code == 404:
            return None
        self._raise_for_error("get_historic_process_instance", response)
        data = response.json()
        return HistoricProcessInstanceRecord(
            id=data["id"],
            process_definition_id=data["processDefinitionId"],
            business_key=data.get("businessKey"),
            start_time=parse_datetime(data.get("startTime")),
            end_time=parse_datetime(data.get("endTime")),
            duration_in_millis=data.get("durationInMillis"),
            delete_reason=data.get("deleteReason"),
        )

    async def delete_process_instance(self, instance_id: str, reason: str | None) -> None:
        # The synchronous delete endpoint has no reason parameter; the reason is only logged.
        response = await self._send(
            "delete_process_instance",
            "DELETE",
            f"/process-instance/{instance_id}",
            params={"failIfNotExists": "true"},
        )
        if response.status_code == 404:
            raise ProcessInstanceNotFoundError(instance_id)
        self._raise_for_error("delete_process_instance", response)
        logger.info("Deleted engine instance %s (reason: %s)", instance_id, reason)

    async def list_latest_process_definitions(self) -> list[ProcessDefinitionRecord]:
        response = await self._send(
            "list_latest_process_definitions",
            "GET",
            "/process-definition",
            params={"latestVersion": "true", "sortBy": "name", "sortOrder": "asc"},
        )
        self._raise_for_error("list_latest_process_definitions", response)
        return [
            ProcessDefinitionRecord(
                id=item["id"],
                key=item["key"],
                name=item.get("name"),
                version=item["version"],
                deployment_id=item.get("deploymentId"),
                description=item.get("description"),
                is_suspended=item.get("suspended", False),
            )
            for item in response.json()
        ]

    async def get_process_definition_xml(self, definition_id: str) -> str | None:
        response = await self._send(
            "get_process_definition_xml",
            "GET",
            f"/process-definition/{definition_id}/xml",
        )
        if response.status_code == 404:
            return None
        self._raise_for_error("get_process_definition_xml", response)
        return response.json().get("bpmn20Xml")

    async def count_active_process_instances(self, definition_id: str) -> int:
        response = await self._send(
            "count_active_process_instances",
            "GET",
            "/process-instance/count",
            params={"processDefinitionId": definition_id, "active": "true"},
        )
        self._raise_for_error("count_active_process_instances", response)
        return int(response.json()["count"])

    async def list_active_process_instances(self, definition_id: str) -> list[ProcessInstanceRecord]:
        response = await self._send(
            "list_active_process_instances",
            "GET",
            "/process-instance",
            params={"processDefinitionId": definition_id, "active": "true"},
        )
        self._raise_for_error("list_active_process_instances", response)
        return [self._to_instance(item) for item in response.json()]

    # ==================== Tasks ====================

    async def list_tasks_by_assignee(self, user_id: str) -> list[TaskRecord]:
        return await self._list_tasks("list_tasks_by_assignee", {"assignee": user_id})

    async def list_tasks_by_candidate_user(self, user_id: str) -> list[TaskRecord]:
        return await self._list_tasks("list_tasks_by_candidate_user", {"candidateUser": user_id})

    async def get_task(self, task_id: str) -> TaskRecord | None:
        response = await self._send("get_task", "GET", f"/task/{task_id}")
        if response.status_code == 404:
            return None
        self._raise_for_error("get_task", response)
        return self._to_task(response.json())

    async def get_task_variables(self, task_id: str) -> Variables:
        response = await self._send(
            "get_task_variables",
            "GET",
            f"/task/{task_id}/variables",
            params={"deserializeValues": "false"},
        )
        self._raise_task_not_found(task_id, response)
        self._raise_for_error("get_task_variables", response)
        return decode_variables(response.json())

    async def claim_task(self, task_id: str, user_id: str) -> None:
        response = await self._send("claim_task", "POST", f"/task/{task_id}/claim", json={"userId": user_id})
        self._raise_task_not_found(task_id, response)
        self._raise_for_error("claim_task", response)

    async def complete_task(self, task_id: str, variables: Variables | None = None) -> None:
        body: dict[str, Any] = {}
        if variables:
            body["variables"] = encode_variables(variables)
        response = await self._send("complete_task", "POST", f"/task/{task_id}/complete", json=body)
        self._raise_task_not_found(task_id, response)
        self._raise_for_error("complete_task", response)

    async def add_comment(self, task_id: str, process_instance_id: str, message: str) -> None:
        response = await self._send(
            "add_comment",
            "POST",
            f"/task/{task_id}/comment/create",
            json={"message": message, "processInstanceId": process_instance_id},
        )
        self._raise_task_not_found(task_id, response)
        self._raise_for_error("add_comment", response)

    async def delegate_task(self, task_id: str, user_id: str) -> None:
        response = await self._send("delegate_task", "POST", f"/task/{task_id}/delegate", json={"userId": user_id})
        self._raise_task_not_found(task_id, response)
        self._raise_for_error("delegate_task", response)

    async def list_historic_tasks(self, process_instance_id: str) -> list[HistoricTaskRecord]:
        response = await self._send(
            "list_historic_tasks",
            "GET",
            "/history/task",
            params={"processInstanceId": process_instance_id, "sortBy": "endTime", "sortOrder": "desc"},
        )
        self._raise_for_error("list_historic_tasks", response)
        return [
            HistoricTaskRecord(
                id=item["id"],
                name=item.get("name"),
                assignee=item.get("assignee"),
                start_time=parse_datetime(item.get("startTime")),
                end_time=parse_datetime(item.get("endTime")),
                duration_in_millis=item.get("duration"),
                delete_reason=item.get("deleteReason"),
            )
            for item in response.json()
        ]

    # ==================== Internals ====================

    async def _list_tasks(self, operation: str, params: dict[str, Any]) -> list[TaskRecord]:
        response = await self._send(
            operation,
            "GET",
            "/task",
            params={**params, "sortBy": "created", "sortOrder": "desc"},
        )
        self._raise_for_error(operation, response)
        return [self._to_task(item) for item in response.json()]

    @staticmethod
    def _raise_task_not_found(task_id: str, response: httpx.Response) -> None:
        if response.status_code == 404:
            raise TaskNotFoundError(task_id)

    @staticmethod
    def _to_instance(data: dict[str, Any]) -> ProcessInstanceRecord:
        return ProcessInstanceRecord(
            id=data["id"],
            process_definition_id=data["definitionId"],
            business_key=data.get("businessKey"),
            is_suspended=data.get("suspended", False),
        )

    @staticmethod
    def _to_task(data: dict[str, Any]) -> TaskRecord:
        return TaskRecord(
            id=data["id"],
            name=data.get("name"),
            process_instance_id=data["processInstanceId"],
            process_definition_id=data.get("processDefinitionId"),
            description=data.get("description"),
            assignee=data.get("assignee"),
            create_time=parse_datetime(data.get("created")),
            due_date=parse_datetime(data.get("due")),
            priority=data.get("priority", 50),
        )
