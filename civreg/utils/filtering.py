# civreg/utils/filtering.py
"""List filtering, in memory for the client and as a Mongo filter for the server."""
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from civreg.lifecycle.definitions import normalize_status


def _matches_search(item: Dict[str, Any], needle: str, fields: Sequence[str]) -> bool:
    for f in fields:
        v = item.get(f)
        if v is not None and needle in str(v).casefold():
            return True
    return False


def filter_items(
    items: Iterable[Dict[str, Any]],
    status: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    fields: Sequence[str] = (),
) -> List[Dict[str, Any]]:
    """Status and priority compare after normalization; search is a case-insensitive substring."""
    want_status = normalize_status(status) if status else None
    want_priority = (priority or "").strip().upper() or None
    needle = (search or "").strip().casefold()
    out = []
    for item in items:
        if want_status and normalize_status(item.get("status")) != want_status:
            continue
        if want_priority and str(item.get("priority") or "").upper() != want_priority:
            continue
        if needle and not _matches_search(item, needle, fields):
            continue
        out.append(item)
    return out


def sort_items(items: List[Dict[str, Any]], sort: Optional[str] = "-createdAt") -> List[Dict[str, Any]]:
    field, reverse = (sort or "-createdAt", False)
    if field.startswith("-"):
        field, reverse = field[1:], True
    present = [i for i in items if i.get(field) is not None]
    missing = [i for i in items if i.get(field) is None]
    try:
        ordered = sorted(present, key=lambda i: i[field], reverse=reverse)
    except TypeError:
        # mixed types (e.g. numbers and strings) only compare as text
        ordered = sorted(present, key=lambda i: str(i[field]), reverse=reverse)
    return ordered + missing


def build_query(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    fields: Sequence[str] = (),
) -> Dict[str, Any]:
    filt: Dict[str, Any] = {}
    if status:
        filt["status"] = normalize_status(status)
    if priority:
        filt["priority"] = priority.strip().upper()
    needle = (search or "").strip()
    if needle and fields:
        rx = re.escape(needle)
        filt["$or"] = [{f: {"$regex": rx, "$options": "i"}} for f in fields]
    return filt
