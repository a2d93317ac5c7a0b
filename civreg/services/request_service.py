# civreg/services/request_service.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, get_args

from fastapi import HTTPException

from civreg.core.config import settings
from civreg.lifecycle.definitions import Lifecycle, lifecycle_for_resource, normalize_status
from civreg.lifecycle.progress import render_status
from civreg.models.common import PERMIT_FEES, REGISTRATION_FEES, Priority
from civreg.models.request import StateEvent
from civreg.repositories import requests_repo as repo
from civreg.utils.filtering import build_query
from civreg.utils.pagination import paginate

logger = logging.getLogger(__name__)

# Fields staff may set together with a status change or through the generic update.
AUX_FIELDS = {
    "remarks", "notes", "adminNotes", "orNumber", "receiptNumber", "paymentMethod",
    "rejectionReason", "cancellationReason", "resolutionNotes", "inspectionNotes",
    "installationNotes", "meterNumber", "connectionSize", "scheduledDate",
    "assignedStaffId", "assignedStaffName", "assignedEngineerId", "assignedEngineerName",
    "inspectorId", "inspectorName", "installerId", "installerName",
    "estimatedRepairTime", "estimatedCost", "actualCost", "priority", "acknowledgedBy",
    "issuedBy", "receivedBy",
}

# Never taken from a citizen submission.
PROTECTED_FIELDS = {
    "_id", "id", "status", "stateHistory", "overrides", "createdAt", "updatedAt",
    "requesterId", "amountDue", "orNumber", "paymentStatus", "pickupStatus",
}

REQUIRED_ON_CREATE = {
    "death_registration": ("deceasedName", "dateOfDeath"),
    "burial_permit": ("deceasedName", "permitType"),
    "certificate_request": ("certificateType",),
    "water_connection": ("applicantFirstName", "applicantLastName", "propertyAddress"),
    "water_issue": ("location", "description"),
    "drainage": ("location", "description"),
    "amenity_reservation": ("amenityName", "reservationDate"),
    "ris": ("requestingOffice", "purpose"),
    "issuance": ("issuedTo",),
}

PICKUP_STATUS = {
    ("death_registration", "FOR_PICKUP"): "READY_FOR_PICKUP",
    ("death_registration", "CLAIMED"): "CLAIMED",
    ("burial_permit", "ISSUED"): "READY",
    ("burial_permit", "CLAIMED"): "CLAIMED",
    ("certificate_request", "READY_FOR_PICKUP"): "READY_FOR_PICKUP",
    ("certificate_request", "CLAIMED"): "CLAIMED",
}

PAYMENT_STATUSES = {"PAID", "PAYMENT_VERIFIED"}

SORT_FIELDS = {"createdAt", "updatedAt", "status", "priority"}


def ensure_transition(lc: Lifecycle, old: str, new: str):
    if normalize_status(new) not in lc.allowed_from(old):
        raise HTTPException(status_code=400, detail=f"Transition not allowed: {lc.wire_status(old)} → {lc.wire_status(new)}")


def resolve(resource: str) -> Lifecycle:
    lc = lifecycle_for_resource(resource)
    if lc is None:
        raise HTTPException(status_code=404, detail=f"Unknown resource: {resource}")
    return lc


def make_reference(lc: Lifecycle, now: datetime) -> str:
    return f"{lc.reference_prefix}-{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


def present(lc: Lifecycle, doc: Dict[str, Any]) -> Dict[str, Any]:
    """Wire form of a stored request: no `_id`, statuses as the type shows them, plus the status view."""
    out = {k: v for k, v in doc.items() if k != "_id"}
    out["status"] = lc.wire_status(doc.get("status"))
    if isinstance(doc.get("stateHistory"), list):
        out["stateHistory"] = [
            {**ev, "fromStatus": lc.wire_status(ev.get("fromStatus")), "toStatus": lc.wire_status(ev.get("toStatus"))}
            for ev in doc["stateHistory"]
        ]
    out["statusView"] = render_status(lc.kind, doc.get("status")).wire()
    return out


def _scope(current: dict) -> Dict[str, Any]:
    # citizens only ever see their own requests
    if current.get("role") == "CITIZEN":
        return {"requesterId": current["id"]}
    return {}


def _aux(lc: Lifecycle, payload: Dict[str, Any]) -> Dict[str, Any]:
    out = {k: v for k, v in (payload or {}).items() if k in AUX_FIELDS and v is not None}
    if "priority" in out:
        if not lc.has_priority:
            out.pop("priority")
        else:
            out["priority"] = _priority(out["priority"])
    return out


def _priority(value: Any) -> str:
    p = str(value or "MEDIUM").strip().upper()
    if p not in get_args(Priority):
        raise HTTPException(400, f"Invalid priority. Must be one of: {', '.join(get_args(Priority))}")
    return p


def _missing(payload: Dict[str, Any], fields) -> list:
    return [f for f in fields if not str(payload.get(f) or "").strip()]


async def _load(lc: Lifecycle, request_id: str, current: Optional[dict] = None) -> dict:
    doc = await repo.find_by_id(lc.collection, request_id)
    scope = _scope(current or {})
    if not doc or any(doc.get(k) != v for k, v in scope.items()):
        raise HTTPException(404, f"{lc.title} not found")
    return doc


async def list_requests(
    lc: Lifecycle, current: dict, status: Optional[str] = None, priority: Optional[str] = None,
    search: Optional[str] = None, page: int = 1, page_size: int = 20, sort: Optional[str] = "-createdAt",
) -> Dict[str, Any]:
    filt = build_query(status, priority, search, lc.search_fields)
    filt.update(_scope(current))

    sort_field, sort_dir = ("createdAt", -1)
    if sort:
        if sort.startswith("-"): sort_field, sort_dir = (sort[1:], -1)
        else: sort_field, sort_dir = (sort, 1)
    if sort_field not in SORT_FIELDS | {lc.reference_field}:
        sort_field = "createdAt"

    total = await repo.count(lc.collection, filt)
    pm = paginate(total, page, page_size, settings.max_page_size)
    docs = await repo.list_paginated(lc.collection, filt, sort_field, sort_dir, pm.skip, pm.page_size)
    return {"success": True, "data": [present(lc, d) for d in docs], "pagination": pm.wire()}


async def get_request(lc: Lifecycle, request_id: str, current: dict) -> Dict[str, Any]:
    return present(lc, await _load(lc, request_id, current))


async def create_request(lc: Lifecycle, payload: Dict[str, Any], current: dict) -> Dict[str, Any]:
    data = {k: v for k, v in (payload or {}).items() if v is not None and k not in PROTECTED_FIELDS}
    for k in set(lc.timestamps.values()) | {f for f, _ in lc.deadlines.values()} | {lc.reference_field}:
        data.pop(k, None)

    missing = _missing(data, REQUIRED_ON_CREATE.get(lc.kind, ()))
    if missing:
        raise HTTPException(422, f"Missing required field: {', '.join(missing)}")

    now = datetime.now(timezone.utc)
    doc: Dict[str, Any] = {
        "id": uuid.uuid4().hex,
        lc.reference_field: make_reference(lc, now),
        **data,
        "status": lc.initial,
        "requesterId": current["id"],
        "requesterName": data.get("requesterName") or current["name"],
        "createdAt": now,
        "updatedAt": now,
        "stateHistory": [StateEvent(
            to_status=lc.initial, at=now, by_user_id=current["id"], by_user_name=current["name"]
        ).wire()],
        "overrides": [],
    }

    if lc.kind == "death_registration":
        rtype = str(data.get("registrationType") or "REGULAR").strip().upper()
        if rtype not in REGISTRATION_FEES:
            raise HTTPException(400, "Invalid registration type. Must be REGULAR or DELAYED")
        doc.update(registrationType=rtype, amountDue=REGISTRATION_FEES[rtype], paymentStatus="UNPAID")
    elif lc.kind == "burial_permit":
        ptype = str(data.get("permitType") or "").strip().upper()
        if ptype not in PERMIT_FEES:
            raise HTTPException(400, "Invalid permit type. Must be BURIAL, CREMATION, or EXHUMATION")
        doc.update(permitType=ptype, amountDue=PERMIT_FEES[ptype], paymentStatus="UNPAID", pickupStatus="NOT_READY")
    if lc.has_priority:
        doc["priority"] = _priority(data.get("priority"))

    await repo.insert(lc.collection, doc)
    logger.info("%s %s submitted by %s", lc.title, doc[lc.reference_field], current["id"])
    return present(lc, doc)


async def update_status(lc: Lifecycle, request_id: str, payload: Dict[str, Any], current: dict) -> Dict[str, Any]:
    doc = await _load(lc, request_id)
    raw = (payload or {}).get("status")
    new = normalize_status(raw)
    if not lc.knows(new):
        allowed = ", ".join(lc.wire_status(s) for s in lc.statuses)
        raise HTTPException(400, f"Invalid status value: {raw}. Must be one of: {allowed}")
    old = normalize_status(doc.get("status"))
    ensure_transition(lc, old, new)

    missing = lc.missing_requirements(new, payload)
    if missing:
        raise HTTPException(422, f"Missing required field: {' or '.join(missing)}")

    now = datetime.now(timezone.utc)
    set_ops: Dict[str, Any] = {**_aux(lc, payload), "status": new, "updatedAt": now}
    if new == "REJECTED" and not set_ops.get("rejectionReason") and set_ops.get("remarks"):
        set_ops["rejectionReason"] = set_ops["remarks"]
    if lc.timestamps.get(new):
        set_ops[lc.timestamps[new]] = now
    if new in lc.deadlines:
        field, hours = lc.deadlines[new]
        set_ops[field] = now + timedelta(hours=hours)
    if new in PAYMENT_STATUSES:
        set_ops["paymentStatus"] = "PAID"
    if (lc.kind, new) in PICKUP_STATUS:
        set_ops["pickupStatus"] = PICKUP_STATUS[(lc.kind, new)]

    ev = StateEvent(
        from_status=old, to_status=new, at=now, by_user_id=current["id"],
        by_user_name=current["name"], remarks=payload.get("remarks"),
    )
    ops = {"$set": set_ops, "$push": {"stateHistory": ev.wire()}}
    if not await repo.update_if_status(lc.collection, request_id, doc.get("status"), ops):
        raise HTTPException(409, f"{lc.title} was changed by someone else; reload and try again")
    logger.info("%s %s: %s → %s by %s", lc.title, request_id, old, new, current["id"])
    return present(lc, await repo.find_by_id(lc.collection, request_id))


async def update_request(lc: Lifecycle, request_id: str, payload: Dict[str, Any], current: dict) -> Dict[str, Any]:
    doc = await _load(lc, request_id)
    if payload.get("status") is not None and normalize_status(payload["status"]) != normalize_status(doc.get("status")):
        return await update_status(lc, request_id, payload, current)
    aux = _aux(lc, payload)
    if not aux:
        return present(lc, doc)
    await repo.update_by_id(lc.collection, request_id, {"$set": {**aux, "updatedAt": datetime.now(timezone.utc)}})
    logger.info("%s %s updated by %s: %s", lc.title, request_id, current["id"], sorted(aux))
    return present(lc, await repo.find_by_id(lc.collection, request_id))


async def acknowledge(lc: Lifecycle, request_id: str, acknowledged_by: Optional[str], remarks: Optional[str], current: dict):
    if not lc.acknowledge_status:
        raise HTTPException(400, f"{lc.title} does not support acknowledgement")
    name = (acknowledged_by or "").strip()
    if not name:
        raise HTTPException(422, "acknowledgedBy is required")
    payload = {"status": lc.acknowledge_status, "acknowledgedBy": name}
    if remarks:
        payload["remarks"] = remarks
    return await update_status(lc, request_id, payload, current)


async def stats(lc: Lifecycle, current: dict) -> Dict[str, Any]:
    scope = _scope(current)
    by_status: Dict[str, int] = {}
    open_count = 0
    for s in lc.statuses:
        n = await repo.count(lc.collection, {**scope, "status": s})
        by_status[lc.wire_status(s)] = n
        if not lc.is_terminal(s):
            open_count += n
    data: Dict[str, Any] = {
        "total": await repo.count(lc.collection, scope),
        "byStatus": by_status,
        "open": open_count,
    }
    if lc.has_priority:
        data["byPriority"] = {p: await repo.count(lc.collection, {**scope, "priority": p}) for p in get_args(Priority)}
    return {"success": True, "data": data}
