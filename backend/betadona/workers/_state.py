"""Last successful run of each scheduled worker, kept in `worker_state`.

A restarted process reads it to avoid repeating a daily job that already
succeeded.
"""

from datetime import timedelta
from typing import Any

import betadona.database as _db
from betadona.utils import ensure_utc, utcnow


async def last_success(worker_id: str) -> dict | None:
    return await _db.db.worker_state.find_one({"_id": worker_id})


async def record_success(worker_id: str, **details: Any) -> None:
    """Stamp the worker as having just succeeded, with optional run details."""
    await _db.db.worker_state.update_one(
        {"_id": worker_id},
        {"$set": {"succeeded_at": utcnow(), **details}},
        upsert=True,
    )


async def succeeded_within(worker_id: str, window: timedelta) -> bool:
    doc = await last_success(worker_id)
    if not doc or not doc.get("succeeded_at"):
        return False
    return utcnow() - ensure_utc(doc["succeeded_at"]) < window
