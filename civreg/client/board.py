# civreg/client/board.py
"""
The list page pattern every staff screen follows: fetch into local state,
filter and sort in memory, run one mutation, then refetch the whole list.
"""
import logging
from typing import Any, Dict, List, Optional

from civreg.client.api import ActionBlocked, ApiError, RegistryClient
from civreg.lifecycle.actions import Action, available_actions, find_action
from civreg.lifecycle.definitions import get_lifecycle
from civreg.lifecycle.progress import StatusView, render_status
from civreg.utils.filtering import filter_items, sort_items

logger = logging.getLogger(__name__)


class RequestBoard:
    def __init__(
        self,
        client: RegistryClient,
        kind: str,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "-createdAt",
    ):
        lc = get_lifecycle(kind)
        if lc is None:
            raise ValueError(f"Unknown request type: {kind}")
        self.client = client
        self.lifecycle = lc
        self.status = status
        self.priority = priority
        self.search = search
        self.sort = sort
        self.items: List[Dict[str, Any]] = []
        self.stats: Dict[str, Any] = {}
        self.error: Optional[str] = None
        self.busy = False

    @property
    def resource(self) -> str:
        return self.lifecycle.resource

    async def load(self) -> List[Dict[str, Any]]:
        # the status filter goes to the server; search stays local
        self.items = await self.client.list(self.resource, status=self.status, priority=self.priority)
        self.stats = await self.client.stats(self.resource)
        return self.items

    async def set_filters(self, **filters) -> List[Dict[str, Any]]:
        for key in ("status", "priority", "search", "sort"):
            if key in filters:
                setattr(self, key, filters[key])
        return await self.load()

    def visible(self) -> List[Dict[str, Any]]:
        rows = filter_items(self.items, self.status, self.priority, self.search, self.lifecycle.search_fields)
        return sort_items(rows, self.sort)

    def find(self, request_id: str) -> Dict[str, Any]:
        for item in self.items:
            if item.get("id") == request_id:
                return item
        raise KeyError(request_id)

    def view(self, item: Dict[str, Any]) -> StatusView:
        return render_status(self.lifecycle.kind, item.get("status"))

    def actions(self, item: Dict[str, Any]) -> List[Action]:
        return available_actions(self.lifecycle.kind, item.get("status"))

    async def _mutate(self, call, *args, **kwargs) -> Dict[str, Any]:
        self.busy = True
        self.error = None
        try:
            result = await call(*args, **kwargs)
        except ApiError as e:
            self.error = e.message
            logger.warning("%s mutation failed: %s", self.lifecycle.title, e.message)
            raise
        finally:
            self.busy = False
        await self.load()
        return result

    async def run_action(self, request_id: str, key: str, **payload) -> Dict[str, Any]:
        item = self.find(request_id)
        action = find_action(self.lifecycle.kind, item.get("status"), key)
        if action is None:
            raise ActionBlocked([], f"Action {key!r} is not available for status {item.get('status')}")
        missing = action.validate(payload)
        if missing:
            raise ActionBlocked(missing)
        return await self._mutate(self.client.update_status, self.resource, request_id, **action.body(payload))

    async def acknowledge(self, request_id: str, acknowledged_by: str, remarks: str | None = None):
        if not (acknowledged_by or "").strip():
            raise ActionBlocked(["acknowledgedBy"], "Please enter your name to acknowledge")
        return await self._mutate(self.client.acknowledge, self.resource, request_id, acknowledged_by, remarks)

    async def override(self, request_id: str, action: str, reason: str, new_amount: float | None = None):
        if not (reason or "").strip():
            raise ActionBlocked(["reason"], "Please provide a reason for this override")
        return await self._mutate(self.client.override, self.resource, request_id, action, reason, new_amount)
