# civreg/client/api.py
"""
REST client for the staff and citizen pages.

Reads degrade quietly: a network failure (or an error response) on `list`,
`get` or `stats` is logged and comes back as an empty result, the way the
pages show an empty table. Mutations raise `ApiError` carrying the server's
`error` message. Nothing is retried.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from civreg.core.config import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response (or network failure) on a mutation."""

    def __init__(self, message: str, status_code: int | None = None, detail: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


class ActionBlocked(Exception):
    """Client-side validation failed; no request was sent."""

    def __init__(self, missing: List[str], message: str | None = None):
        super().__init__(message or f"Missing required field: {', '.join(missing)}")
        self.missing = list(missing)


def error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict):
        msg = body.get("error")
        if isinstance(msg, str) and msg.strip():
            return msg
    return "Unknown error"


def _unwrap(body: Any) -> Any:
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _unwrap_list(body: Any) -> List[Dict[str, Any]]:
    data = _unwrap(body)
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        # older endpoints wrap the list under the resource name ({"permits": [...]})
        for value in data.values():
            if isinstance(value, list):
                return value
    return []


class RegistryClient:
    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._token = settings.api_token if token is None else token
        self._timeout = timeout or settings.http_timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            return await client.request(method, path, headers=self._headers(), **kwargs)

    async def _mutate(self, method: str, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._send(method, path, json=body)
        except httpx.RequestError as e:
            raise ApiError(f"Request failed: {e}") from e
        if not response.is_success:
            raise ApiError(error_message(response), status_code=response.status_code, detail=response.text)
        return _unwrap(response.json())

    async def _read(self, path: str, params: Dict[str, Any] | None = None) -> Any:
        try:
            response = await self._send("GET", path, params=params)
        except httpx.RequestError as e:
            logger.error("Error fetching %s: %s", path, e)
            return None
        if not response.is_success:
            logger.error("Error fetching %s: %s %s", path, response.status_code, error_message(response))
            return None
        return response.json()

    async def list(self, resource: str, **filters) -> List[Dict[str, Any]]:
        """Every matching row: follows `pagination.hasNext` until the last page."""
        params = {k: v for k, v in filters.items() if v not in (None, "")}
        rows: List[Dict[str, Any]] = []
        page = 1
        while True:
            body = await self._read(f"/api/{resource}", {**params, "page": page})
            if body is None:
                return []
            rows.extend(_unwrap_list(body))
            pagination = body.get("pagination") if isinstance(body, dict) else None
            if not isinstance(pagination, dict) or not pagination.get("hasNext"):
                return rows
            if page >= int(pagination.get("totalPages") or page):
                return rows
            page += 1

    async def get(self, resource: str, request_id: str) -> Optional[Dict[str, Any]]:
        body = await self._read(f"/api/{resource}/{request_id}")
        return _unwrap(body) if body is not None else None

    async def stats(self, resource: str) -> Dict[str, Any]:
        body = await self._read(f"/api/{resource}/stats")
        data = _unwrap(body) if body is not None else None
        return data if isinstance(data, dict) else {}

    async def submit(self, resource: str, **fields) -> Dict[str, Any]:
        return await self._mutate("POST", f"/api/{resource}", fields)

    async def update_status(self, resource: str, request_id: str, status: str, **fields) -> Dict[str, Any]:
        body = {k: v for k, v in fields.items() if v is not None}
        body["status"] = status
        return await self._mutate("PUT", f"/api/{resource}/{request_id}/status", body)

    async def update(self, resource: str, request_id: str, **fields) -> Dict[str, Any]:
        return await self._mutate("PATCH", f"/api/{resource}/{request_id}", fields)

    async def acknowledge(self, resource: str, request_id: str, acknowledged_by: str, remarks: str | None = None):
        if not (acknowledged_by or "").strip():
            raise ActionBlocked(["acknowledgedBy"], "Please enter your name to acknowledge")
        body = {"acknowledgedBy": acknowledged_by.strip()}
        if remarks:
            body["remarks"] = remarks
        return await self._mutate("PATCH", f"/api/{resource}/{request_id}/acknowledge", body)

    async def override(self, resource: str, request_id: str, action: str, reason: str, new_amount: float | None = None):
        if not (reason or "").strip():
            raise ActionBlocked(["reason"], "Please provide a reason for this override")
        body: Dict[str, Any] = {"action": action, "reason": reason.strip()}
        if action == "adjust_fee":
            if new_amount is None:
                raise ActionBlocked(["newAmount"], "Please enter the new amount")
            body["newAmount"] = new_amount
        return await self._mutate("POST", f"/api/{resource}/{request_id}/override", body)
