# civreg/api/routes/requests.py
from fastapi import APIRouter, Query, Depends, Request
from typing import Optional
from civreg.api.deps import get_current_user, require_role, get_resource
from civreg.core.config import settings
from civreg.core.rate_limit import limiter, SUBMIT_LIMIT
from civreg.core.security import STAFF_ROLES
from civreg.lifecycle.definitions import Lifecycle
from civreg.models.request import AcknowledgePayload, OverridePayload, StatusUpdate
from civreg.services import request_service as svc
from civreg.services.override_service import apply_override

router = APIRouter()

@router.get("/{resource}")
async def list_requests(
    lc: Lifecycle = Depends(get_resource),
    current=Depends(get_current_user),
    status: Optional[str] = None, priority: Optional[str] = None, search: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=settings.max_page_size, alias="pageSize"),
    sort: Optional[str] = Query("-createdAt"),
):
    return await svc.list_requests(lc, current, status, priority, search, page, page_size, sort)

# declared before /{request_id} so "stats" is not read as an id
@router.get("/{resource}/stats")
async def request_stats(lc: Lifecycle = Depends(get_resource), current=Depends(get_current_user)):
    return await svc.stats(lc, current)

@router.get("/{resource}/{request_id}")
async def get_request(request_id: str, lc: Lifecycle = Depends(get_resource), current=Depends(get_current_user)):
    return {"success": True, "data": await svc.get_request(lc, request_id, current)}

@router.post("/{resource}", status_code=201)
@limiter.limit(SUBMIT_LIMIT)
async def submit_request(request: Request, payload: dict, lc: Lifecycle = Depends(get_resource), current=Depends(get_current_user)):
    data = await svc.create_request(lc, payload, current)
    return {"success": True, "message": f"{lc.title} submitted successfully", "data": data}

@router.api_route("/{resource}/{request_id}/status", methods=["PUT", "PATCH"])
async def update_status(
    request_id: str, payload: StatusUpdate,
    lc: Lifecycle = Depends(get_resource), current=Depends(require_role(STAFF_ROLES)),
):
    data = await svc.update_status(lc, request_id, payload.model_dump(by_alias=True, exclude_none=True), current)
    return {"success": True, "message": "Status updated successfully", "data": data}

@router.api_route("/{resource}/{request_id}/acknowledge", methods=["PATCH", "POST"])
async def acknowledge(
    request_id: str, payload: AcknowledgePayload,
    lc: Lifecycle = Depends(get_resource), current=Depends(require_role(STAFF_ROLES)),
):
    data = await svc.acknowledge(lc, request_id, payload.acknowledged_by, payload.remarks, current)
    return {"success": True, "message": f"{lc.title} acknowledged", "data": data}

@router.post("/{resource}/{request_id}/override")
async def override(
    request_id: str, payload: OverridePayload,
    lc: Lifecycle = Depends(get_resource), current=Depends(require_role(["ADMIN"])),
):
    return await apply_override(lc, request_id, payload.action, payload.reason, payload.new_amount, current)

@router.api_route("/{resource}/{request_id}", methods=["PUT", "PATCH"])
async def update_request(
    request_id: str, payload: dict,
    lc: Lifecycle = Depends(get_resource), current=Depends(require_role(STAFF_ROLES)),
):
    data = await svc.update_request(lc, request_id, payload, current)
    return {"success": True, "message": f"{lc.title} updated successfully", "data": data}
