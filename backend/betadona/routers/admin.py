"""Admin endpoints: manual settlement runs and run history."""

import logging
import time as _time

from fastapi import APIRouter, Depends, HTTPException, Query

import betadona.database as _db
from betadona.models.settlement import SettlementOutcome, SettlementRequest
from betadona.services.auth_service import get_admin_user
from betadona.workers.matchday_settlement import settle_matchday

logger = logging.getLogger("betadona.admin")
router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/settlement")
async def trigger_settlement(body: SettlementRequest, admin=Depends(get_admin_user)):
    """Run matchday settlement now (defaults: yesterday, configured league)."""
    logger.info(
        "Admin %s triggered settlement: date=%s league=%s",
        admin["_id"], body.target_date, body.league_id,
    )

    t0 = _time.monotonic()
    report = await settle_matchday(target_date=body.target_date, league_id=body.league_id)
    duration_ms = int((_time.monotonic() - t0) * 1000)

    if report.outcome == SettlementOutcome.already_running:
        raise HTTPException(status_code=409, detail="Settlement for this day is already running.")
    if report.outcome == SettlementOutcome.provider_error:
        raise HTTPException(status_code=502, detail=f"Results provider failed: {report.error}")

    return {"success": report.success, "duration_ms": duration_ms, **report.model_dump(mode="json")}


@router.get("/settlement/runs")
async def list_settlement_runs(
    limit: int = Query(20, ge=1, le=100),
    admin=Depends(get_admin_user),
):
    runs = await _db.db.settlement_runs.find().sort("started_at", -1).limit(limit).to_list(length=limit)
    return [{"id": r["_id"], **{k: v for k, v in r.items() if k != "_id"}} for r in runs]
