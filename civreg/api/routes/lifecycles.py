# civreg/api/routes/lifecycles.py
from fastapi import APIRouter, HTTPException
from typing import Optional
from civreg.lifecycle.actions import available_actions
from civreg.lifecycle.definitions import LIFECYCLES, get_lifecycle
from civreg.lifecycle.progress import render_status

router = APIRouter()

def _describe(lc) -> dict:
    return {
        "kind": lc.kind,
        "title": lc.title,
        "resource": lc.resource,
        "initial": lc.wire_status(lc.initial),
        "forward": [lc.wire_status(s) for s in lc.forward],
        "transitions": {
            lc.wire_status(s): sorted(lc.wire_status(t) for t in targets)
            for s, targets in lc.transitions().items()
        },
        "terminal": [lc.wire_status(s) for s in lc.statuses if lc.is_terminal(s)],
        "overrideActions": list(lc.override_actions),
    }

@router.get("")
async def list_lifecycles():
    return {"success": True, "data": [_describe(lc) for lc in LIFECYCLES.values()]}

@router.get("/{kind}")
async def get_lifecycle_table(kind: str):
    lc = get_lifecycle(kind)
    if lc is None:
        raise HTTPException(404, f"Unknown request type: {kind}")
    return {"success": True, "data": _describe(lc)}

@router.get("/{kind}/render")
async def render(kind: str, status: Optional[str] = None):
    # unknown kinds and statuses still render (neutral view)
    view = render_status(kind, status)
    actions = [
        {"key": a.key, "label": a.label, "toStatus": a.to_status, "requires": list(a.requires)}
        for a in available_actions(kind, status)
    ]
    return {"success": True, "data": {**view.wire(), "actions": actions}}
