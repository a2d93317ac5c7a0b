# civreg/repositories/requests_repo.py
from typing import Dict, Any, List
from civreg.core.db import get_db


def _coll(collection: str):
    return get_db()[collection]


async def find_by_id(collection: str, request_id: str) -> dict | None:
    return await _coll(collection).find_one({"id": request_id})


async def insert(collection: str, doc: dict):
    await _coll(collection).insert_one(doc)


async def update_by_id(collection: str, request_id: str, ops: Dict[str,Any]):
    return await _coll(collection).update_one({"id": request_id}, ops)


async def update_if_status(collection: str, request_id: str, status: Any, ops: Dict[str,Any]) -> bool:
    """Applies `ops` only while the stored status is still `status`."""
    res = await _coll(collection).update_one({"id": request_id, "status": status}, ops)
    return res.matched_count > 0


async def list_paginated(collection: str, filt: Dict[str,Any], sort_field: str, sort_dir: int, skip: int, limit: int) -> List[dict]:
    cur = _coll(collection).find(filt).sort(sort_field, sort_dir).skip(skip).limit(limit)
    return await cur.to_list(length=limit)


async def count(collection: str, filt: Dict[str,Any]) -> int:
    return await _coll(collection).count_documents(filt)


async def insert_audit(entry: dict):
    await get_db().audit_logs.insert_one(entry)
