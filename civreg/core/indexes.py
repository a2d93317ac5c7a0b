# civreg/core/indexes.py
import logging
from civreg.core.db import get_db
from civreg.lifecycle.definitions import LIFECYCLES, normalize_status

logger = logging.getLogger(__name__)

async def ensure_core_indexes(db):
    for lc in LIFECYCLES.values():
        coll = db[lc.collection]
        await coll.create_index("id", unique=True)
        await coll.create_index(lc.reference_field, unique=True)
        await coll.create_index([("status",1)])
        await coll.create_index([("createdAt",-1)])
        await coll.create_index([("requesterId",1)])
        if lc.has_priority:
            await coll.create_index([("priority",1)])

    await db.audit_logs.create_index([("requestId",1),("at",-1)])
    await db.audit_logs.create_index([("kind",1)])
    await db.audit_logs.create_index([("byUserId",1)])

async def migrate_status_values(db):
    """Rewrites stored statuses to their canonical spelling (lower case permits, `Canceled`, ...)."""
    for lc in LIFECYCLES.values():
        coll = db[lc.collection]
        await coll.update_many({"status":{"$exists":False}}, {"$set":{"status":lc.initial}})
        for value in await coll.distinct("status"):
            fixed = normalize_status(value)
            if fixed != value and lc.knows(fixed):
                res = await coll.update_many({"status":value}, {"$set":{"status":fixed}})
                logger.info("Migrated %s %s → %s (%s docs)", lc.collection, value, fixed, res.modified_count)

async def startup_tasks():
    db = get_db()
    await ensure_core_indexes(db)
    await migrate_status_values(db)
