# civreg/lifecycle/progress.py
"""
Status rendering shared by every request type.

`render_status` is a pure lookup: status -> badge tone, label and progress.
It never raises; values it does not recognise get the neutral badge and no
progress.
"""
from typing import Any, Dict, NamedTuple, Optional

from civreg.lifecycle.definitions import get_lifecycle, normalize_status
from civreg.models.common import CamelModel


class Tone(NamedTuple):
    name: str
    bg: str
    text: str
    border: str
    badge: str
    hex: str


TONES: Dict[str, Tone] = {
    "success": Tone("success", "bg-green-100", "text-green-800", "border-green-200", "bg-green-500", "#4CAF50"),
    "info": Tone("info", "bg-blue-100", "text-blue-800", "border-blue-200", "bg-blue-500", "#4A90E2"),
    "warning": Tone("warning", "bg-yellow-100", "text-yellow-800", "border-yellow-200", "bg-yellow-500", "#FDD835"),
    "attention": Tone("attention", "bg-orange-100", "text-orange-800", "border-orange-200", "bg-orange-500", "#FDA811"),
    "danger": Tone("danger", "bg-red-100", "text-red-800", "border-red-200", "bg-red-500", "#F44336"),
    "processing": Tone("processing", "bg-purple-100", "text-purple-800", "border-purple-200", "bg-purple-500", "#9C27B0"),
    "neutral": Tone("neutral", "bg-gray-100", "text-gray-800", "border-gray-200", "bg-gray-500", "#9E9E9E"),
}

NEUTRAL = TONES["neutral"]

STATUS_TONES: Dict[str, str] = {
    # applications / registrations
    "DRAFT": "neutral",
    "SUBMITTED": "warning",
    "PENDING_VERIFICATION": "warning",
    "VERIFIED": "info",
    "FOR_PAYMENT": "attention",
    "PAID": "processing",
    "PROCESSING": "info",
    "REGISTERED": "processing",
    "ISSUED": "success",
    "FOR_PICKUP": "success",
    "READY_FOR_PICKUP": "success",
    "CLAIMED": "neutral",
    "COMPLETED": "success",
    "RETURNED": "warning",
    "EXPIRED": "neutral",
    "REJECTED": "danger",
    "CANCELLED": "danger",
    # water / drainage
    "PENDING": "warning",
    "ACKNOWLEDGED": "info",
    "ASSIGNED": "info",
    "IN_PROGRESS": "processing",
    "ONGOING": "processing",
    "RESOLVED": "success",
    "CLOSED": "neutral",
    "FOR_INSPECTION": "attention",
    "INSPECTED": "info",
    "FOR_APPROVAL": "attention",
    "APPROVED": "success",
    "PAYMENT_VERIFIED": "processing",
    "FOR_INSTALLATION": "attention",
    "INSTALLED": "info",
    "ACTIVE": "success",
    # reservations / supplies
    "PENDING_REVIEW": "warning",
    "AWAITING_PAYMENT": "attention",
    "CHECKED_IN": "info",
    "PENDING_APPROVAL": "warning",
    "NO_STOCK": "attention",
}


class StatusView(CamelModel):
    kind: Optional[str] = None
    status: str
    label: str
    tone: str
    badge_color: str
    css: Dict[str, str]
    progress_percent: Optional[int] = None
    terminal: bool = False
    known: bool = False


def _label(status: str) -> str:
    return status.replace("_", " ").title()


def render_status(kind: Any, status: Any) -> StatusView:
    lc = get_lifecycle(kind)
    raw = status.strip() if isinstance(status, str) else ""
    s = normalize_status(status)

    if lc is not None:
        known = lc.knows(s)
    else:
        known = s in STATUS_TONES
    tone = TONES[STATUS_TONES.get(s, "neutral")] if known else NEUTRAL

    progress = None
    terminal = False
    if lc is not None and known:
        pos = lc.rank(s)
        if pos is not None:
            progress = round(100 * (pos + 1) / len(lc.forward))
        terminal = lc.is_terminal(s)

    return StatusView(
        kind=lc.kind if lc else None,
        status=(lc.wire_status(s) if lc else s) if known else raw,
        label=_label(s) if known else (raw or "Unknown"),
        tone=tone.name,
        badge_color=tone.hex,
        css={"bg": tone.bg, "text": tone.text, "border": tone.border, "badge": tone.badge},
        progress_percent=progress,
        terminal=terminal,
        known=known,
    )


def progress_percent(kind: Any, status: Any) -> Optional[int]:
    return render_status(kind, status).progress_percent


def badge_color(kind: Any, status: Any) -> str:
    return render_status(kind, status).badge_color
