# civreg/services/override_service.py
"""
Administrative overrides.

An override skips the forward-only rules of a lifecycle (approve straight to
the final stage, reject from anywhere, waive or adjust the fee, expedite,
reset). Every override must carry a reason and leaves an audit entry on the
request, in `audit_logs` and in the log.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException

from civreg.lifecycle.definitions import Lifecycle, normalize_status
from civreg.models.request import OverrideEntry, StateEvent
from civreg.repositories import requests_repo as repo
from civreg.services.request_service import PICKUP_STATUS, present

logger = logging.getLogger(__name__)

MESSAGES = {
    "approve": "Admin Override - Approved",
    "reject": "Admin Override - Rejected",
    "waive_fee": "Admin Override - Fee Waived",
    "adjust_fee": "Admin Override - Fee Adjusted",
    "expedite": "Admin Override - Expedited",
    "reset_status": "Admin Override - Status Reset",
}


async def apply_override(
    lc: Lifecycle, request_id: str, action: str, reason: Optional[str],
    new_amount: Optional[float], current: dict,
) -> Dict[str, Any]:
    if not lc.override_actions:
        raise HTTPException(400, f"{lc.title} does not support overrides")
    action = (action or "").strip().lower()
    if action not in lc.override_actions:
        raise HTTPException(400, f"Invalid override action. Must be one of: {', '.join(lc.override_actions)}")
    reason = (reason or "").strip()
    if not reason:
        raise HTTPException(422, "Override reason is required")
    if action == "adjust_fee" and (new_amount is None or new_amount < 0):
        raise HTTPException(422, "newAmount is required for adjust_fee and cannot be negative")

    doc = await repo.find_by_id(lc.collection, request_id)
    if not doc:
        raise HTTPException(404, f"{lc.title} not found")

    now = datetime.now(timezone.utc)
    prev_status = normalize_status(doc.get("status"))
    prev_amount = doc.get("amountDue")
    set_ops: Dict[str, Any] = {"updatedAt": now, "remarks": f"{MESSAGES[action]}: {reason}"}

    target = lc.override_targets.get(action)
    if target:
        set_ops["status"] = target
        if lc.timestamps.get(target):
            set_ops[lc.timestamps[target]] = now
        if (lc.kind, target) in PICKUP_STATUS:
            set_ops["pickupStatus"] = PICKUP_STATUS[(lc.kind, target)]
        if target == "REJECTED":
            set_ops["rejectionReason"] = reason

    if action == "reset_status":
        for field in set(lc.timestamps.values()):
            set_ops[field] = None
        if "pickupStatus" in doc:
            set_ops["pickupStatus"] = "NOT_READY"
    if action == "waive_fee":
        set_ops.update(amountDue=0.0, paymentStatus="WAIVED")
    if action == "adjust_fee":
        set_ops["amountDue"] = float(new_amount)

    entry = OverrideEntry(
        action=action, reason=reason, by_user_id=current["id"], by_user_name=current["name"], at=now,
        previous_status=prev_status, new_status=target or prev_status,
        previous_amount=prev_amount, new_amount=set_ops.get("amountDue"),
    ).wire()

    push: Dict[str, Any] = {"overrides": entry}
    if target and target != prev_status:
        push["stateHistory"] = StateEvent(
            from_status=prev_status, to_status=target, at=now, by_user_id=current["id"],
            by_user_name=current["name"], remarks=set_ops["remarks"], override=True,
        ).wire()

    if not await repo.update_if_status(lc.collection, request_id, doc.get("status"), {"$set": set_ops, "$push": push}):
        raise HTTPException(409, f"{lc.title} was changed by someone else; reload and try again")
    await repo.insert_audit({
        "id": uuid.uuid4().hex,
        "kind": lc.kind,
        "requestId": request_id,
        "event": f"{lc.kind.upper()}_OVERRIDE_{action.upper()}",
        **entry,
    })
    logger.info("Admin override %s on %s %s by %s: %s", action, lc.title, request_id, current["id"], reason)

    return {
        "success": True,
        "message": f'Administrative override "{action}" executed successfully',
        "data": present(lc, await repo.find_by_id(lc.collection, request_id)),
        "audit": entry,
    }
