"""
backend/betadona/workers/matchday_settlement.py

Purpose:
    Matchday settlement: fetch yesterday's finished fixtures, grade pending
    bets against them, then credit each player's net result to the standings
    and reset the weekly allowance.

Notes:
    - A provider failure aborts the run before any bet or profile is touched.
    - Bets are written one by one and only while still pending, so a re-run
      never re-grades a settled bet.
    - Each settled bet is credited to total_points once (`credited` flag);
      the allowance reset happens once per settlement_id ("<league>:<date>"),
      so a re-run only tops up bets settled since.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

import betadona.database as _db
from betadona.config import settings
from betadona.models.settlement import (
    RunStatus,
    SettledBet,
    SettlementOutcome,
    SettlementReport,
)
from betadona.providers.base import BaseResultsProvider, ProviderError
from betadona.services import bet_service, profile_service
from betadona.services.grading_service import UngradeableSelection, find_fixture, grade_bet
from betadona.utils import utcnow, yesterday_utc
from betadona.workers._state import record_success, succeeded_within

logger = logging.getLogger("betadona.matchday_settlement")

_STATE_KEY = "matchday_settlement"
# A run stuck in "running" longer than this is considered crashed and may be retried.
_STALE_RUN_AFTER = timedelta(hours=2)


def settlement_id_for(league_id: int, target_date: date) -> str:
    return f"{league_id}:{target_date.isoformat()}"


async def _claim_run(settlement_id: str, league_id: int, target_date: date) -> bool:
    """Mark the run as running. False when another invocation holds it."""
    now = utcnow()
    try:
        await _db.db.settlement_runs.find_one_and_update(
            {
                "_id": settlement_id,
                "$or": [
                    {"status": {"$ne": RunStatus.running.value}},
                    {"started_at": {"$lt": now - _STALE_RUN_AFTER}},
                ],
            },
            {
                "$set": {
                    "league_id": league_id,
                    "target_date": target_date.isoformat(),
                    "status": RunStatus.running.value,
                    "started_at": now,
                    "error": None,
                },
                "$inc": {"attempts": 1},
            },
            upsert=True,
        )
    except DuplicateKeyError:
        return False
    return True


async def _finish_run(report: SettlementReport, run_status: RunStatus) -> None:
    await _db.db.settlement_runs.update_one(
        {"_id": report.settlement_id},
        {"$set": {
            "status": run_status.value,
            "outcome": report.outcome.value,
            "finished_at": utcnow(),
            "fixtures_found": report.fixtures_found,
            "bets_processed": report.bets_processed,
            "users_updated": report.users_updated,
            "error": report.error,
        }},
    )


async def settle_matchday(
    target_date: Optional[date] = None,
    league_id: Optional[int] = None,
    provider: Optional[BaseResultsProvider] = None,
) -> SettlementReport:
    """Run one settlement for a league and calendar day (default: yesterday)."""
    if provider is None:
        from betadona.providers.api_football import results_provider
        provider = results_provider

    target_date = target_date or yesterday_utc()
    league_id = league_id or settings.SETTLEMENT_LEAGUE_ID
    settlement_id = settlement_id_for(league_id, target_date)
    report = SettlementReport(
        settlement_id=settlement_id,
        league_id=league_id,
        target_date=target_date,
        outcome=SettlementOutcome.completed,
    )

    if not await _claim_run(settlement_id, league_id, target_date):
        logger.warning("Settlement %s is already running, skipping", settlement_id)
        report.outcome = SettlementOutcome.already_running
        return report

    logger.info("Starting matchday settlement %s", settlement_id)

    # ---- Step 1: finished fixtures ----
    try:
        fixtures = await provider.get_finished_fixtures(league_id, target_date)
    except ProviderError as exc:
        logger.error("Settlement %s aborted, provider error: %s", settlement_id, exc)
        report.outcome = SettlementOutcome.provider_error
        report.error = str(exc)
        await _finish_run(report, RunStatus.failed)
        return report

    report.fixtures_found = len(fixtures)
    if not fixtures:
        logger.info("No finished fixtures for %s", settlement_id)
        report.outcome = SettlementOutcome.no_fixtures
        await _finish_run(report, RunStatus.completed)
        return report

    # ---- Step 2: grade pending bets ----
    pending = await bet_service.get_pending_bets()
    logger.info("Found %d finished fixtures and %d pending bets", len(fixtures), len(pending))

    for bet in pending:
        bet_id = str(bet["_id"])
        fixture = find_fixture(bet, fixtures)
        if fixture is None:
            report.bets_unmatched += 1
            logger.debug("No matching fixture found for bet %s", bet_id)
            continue

        try:
            bet_status, payout = grade_bet(bet, fixture)
        except UngradeableSelection as exc:
            report.bets_ungradeable += 1
            logger.warning("Bet %s left pending, cannot grade: %s", bet_id, exc)
            continue

        try:
            written = await bet_service.mark_settled(bet, bet_status, payout, settlement_id)
        except PyMongoError as exc:
            report.bets_failed += 1
            logger.error("Error updating bet %s: %s", bet_id, exc)
            continue
        if not written:
            logger.info("Bet %s was settled concurrently, skipping", bet_id)
            continue

        report.processed_bets.append(SettledBet(
            bet_id=bet_id,
            user_id=bet["user_id"],
            status=bet_status.value,
            payout=payout,
            fixture=fixture.label,
        ))
        logger.info("Bet %s processed: %s, payout: %.2f", bet_id, bet_status.value, payout)

    report.bets_processed = len(report.processed_bets)

    # ---- Step 3: standings ----
    # Credits every settled bet not yet counted, including bets graded by an
    # interrupted attempt or retried after a failed write.
    standings = await profile_service.apply_standings(settlement_id)
    report.updated_users = standings.updated
    report.users_updated = len(standings.updated)
    report.users_failed = len(standings.failed)

    await _finish_run(report, RunStatus.completed)
    logger.info(
        "Matchday settlement %s completed. Processed %d bets (%d unmatched, %d ungradeable, "
        "%d failed), updated %d users (%d failed, %d already applied)",
        settlement_id, report.bets_processed, report.bets_unmatched,
        report.bets_ungradeable, report.bets_failed, report.users_updated,
        report.users_failed, standings.skipped,
    )
    return report


async def run_scheduled_settlement() -> None:
    """Daily cron entry point. Smart sleep: at most one run per 20 hours."""
    if await succeeded_within(_STATE_KEY, timedelta(hours=20)):
        logger.debug("Smart sleep: matchday settlement ran recently")
        return

    report = await settle_matchday()
    if report.success:
        await record_success(
            _STATE_KEY,
            settlement_id=report.settlement_id,
            outcome=report.outcome.value,
        )
