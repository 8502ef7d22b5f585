"""Caller-ID pool, number, selection, usage and reputation operations.

All functions take an AsyncSession and flush but do not commit; wrap calls in
db.connection.get_db() (or your own transaction) to persist them.

Every reputation_score change goes through update_reputation, which appends
one CallerIdReputationEvent per call. Writes to a CallerIdNumber are guarded
by its version_id; a concurrent writer surfaces as ConflictError.

Usage:
    async with get_db() as db:
        number = await caller_id_service.select_caller_id_for_lead(
            db, pool_id, lead_phone="+15551234567", campaign_id="c-1"
        )
        if number is not None:
            log = await caller_id_service.record_call_start(
                db, number.id, lead_id, "c-1", "+15551234567"
            )
"""
import logging
import random
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional, Union
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

import db.repositories.caller_id_activity as activity_repo
import db.repositories.caller_id_numbers as number_repo
import db.repositories.caller_id_pools as pool_repo
from caller_id.phone import extract_area_code
from caller_id.reputation import (
    ANSWERED_CALL_BOOST,
    BLOCK_PENALTY,
    FLAG_PENALTY,
    UNBLOCK_RECOVERY,
    clamp_score,
    reputation_level,
)
from caller_id.rotation import select_number
from clock import as_utc, utcnow
from db.models import (
    REPUTATION_EVENT_TYPES,
    CallerIdNumber,
    CallerIdPool,
    CallerIdReputationEvent,
    CallerIdUsageLog,
)
from errors import ConflictError, NotFoundError
from schemas.caller_id import (
    AreaCodeCount,
    CallerIdOverview,
    CallOutcome,
    ImportResult,
    NumberCreate,
    NumberStats,
    NumberUpdate,
    PoolCreate,
    PoolStats,
    PoolSummary,
    PoolUpdate,
    ReputationEventView,
)

logger = logging.getLogger(__name__)

RECENT_EVENTS_LIMIT = 10


async def _flush_number(session: AsyncSession, number: CallerIdNumber) -> None:
    try:
        await session.flush()
    except StaleDataError as exc:
        raise ConflictError(
            f"Caller ID number {number.id} was modified concurrently; retry"
        ) from exc


# ---------------------------------------------------------------------------
# Pools
# ---------------------------------------------------------------------------


async def create_pool(session: AsyncSession, data: PoolCreate) -> CallerIdPool:
    if await pool_repo.get_by_name(session, data.name) is not None:
        raise ConflictError(f'Pool with name "{data.name}" already exists')
    try:
        pool = await pool_repo.add(session, CallerIdPool(**data.model_dump()))
    except IntegrityError as exc:
        raise ConflictError(f'Pool with name "{data.name}" already exists') from exc
    logger.info("Created caller ID pool %s (%s)", pool.name, pool.rotation_strategy)
    return pool


async def list_pools(session: AsyncSession) -> list[PoolSummary]:
    """All pools by name, each with total / active / flagged number counts."""
    pools = await pool_repo.list_pools(session)
    counts = await pool_repo.status_counts(session)
    summaries = []
    for pool in pools:
        by_status = counts.get(pool.id, {})
        summaries.append(
            PoolSummary(
                id=pool.id,
                name=pool.name,
                is_active=pool.is_active,
                rotation_strategy=pool.rotation_strategy,
                total_numbers=sum(by_status.values()),
                active_numbers=by_status.get("active", 0),
                flagged_numbers=by_status.get("flagged", 0),
            )
        )
    return summaries


async def get_pool(
    session: AsyncSession, pool_id: UUID, with_numbers: bool = False
) -> CallerIdPool:
    pool = await pool_repo.get_by_id(session, pool_id, with_numbers=with_numbers)
    if pool is None:
        raise NotFoundError(f"Pool {pool_id} not found")
    return pool


async def update_pool(session: AsyncSession, pool_id: UUID, data: PoolUpdate) -> CallerIdPool:
    pool = await get_pool(session, pool_id)
    changes = data.model_dump(exclude_unset=True)
    new_name = changes.get("name")
    if new_name and new_name != pool.name:
        if await pool_repo.get_by_name(session, new_name) is not None:
            raise ConflictError(f'Pool with name "{new_name}" already exists')
    for key, value in changes.items():
        setattr(pool, key, value)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise ConflictError(f"Pool {pool_id} update conflicts with an existing pool") from exc
    return pool


async def delete_pool(session: AsyncSession, pool_id: UUID) -> None:
    await get_pool(session, pool_id)
    await pool_repo.delete_pool(session, pool_id)


async def get_pool_stats(session: AsyncSession, pool_id: UUID) -> PoolStats:
    await get_pool(session, pool_id)
    numbers = await number_repo.list_by_pool(session, pool_id)

    by_status = Counter(n.status for n in numbers)
    by_area_code = Counter(n.area_code for n in numbers)
    average = 0
    if numbers:
        average = int(sum(n.reputation_score for n in numbers) / len(numbers) + 0.5)

    return PoolStats(
        total_numbers=len(numbers),
        active_numbers=by_status["active"],
        cooling_down_numbers=by_status["cooling_down"],
        flagged_numbers=by_status["flagged"],
        blocked_numbers=by_status["blocked"],
        inactive_numbers=by_status["inactive"],
        average_reputation_score=average,
        total_calls_today=sum(n.calls_today for n in numbers),
        area_codes=[
            AreaCodeCount(area_code=code, count=count)
            for code, count in by_area_code.most_common()
        ],
    )


async def get_overview(session: AsyncSession) -> CallerIdOverview:
    totals = await number_repo.status_totals(session)
    return CallerIdOverview(
        total_pools=await pool_repo.count_pools(session),
        total_numbers=sum(totals.values()),
        active_numbers=totals.get("active", 0),
        flagged_numbers=totals.get("flagged", 0),
    )


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


async def add_number(
    session: AsyncSession, pool_id: UUID, data: NumberCreate
) -> CallerIdNumber:
    """Add a number to a pool; its area code is derived from the phone number."""
    await get_pool(session, pool_id)

    area_code = extract_area_code(data.phone_number)
    if not area_code:
        raise ConflictError(f"Could not extract area code from {data.phone_number}")

    if await number_repo.get_in_pool(session, pool_id, data.phone_number) is not None:
        raise ConflictError(f'Number "{data.phone_number}" already exists in this pool')

    number = CallerIdNumber(
        pool_id=pool_id,
        phone_number=data.phone_number,
        area_code=area_code,
        state=data.state,
        city=data.city,
        status=data.status,
        reputation_score=100,
        reputation_level=reputation_level(100),
    )
    try:
        return await number_repo.add(session, number)
    except IntegrityError as exc:
        raise ConflictError(
            f'Number "{data.phone_number}" already exists in this pool'
        ) from exc


async def import_numbers(
    session: AsyncSession,
    pool_id: UUID,
    numbers: list[Union[NumberCreate, dict]],
) -> ImportResult:
    """Add many numbers; each one succeeds or fails on its own."""
    await get_pool(session, pool_id)

    result = ImportResult()
    for item in numbers:
        phone = item.get("phone_number") if isinstance(item, dict) else item.phone_number
        try:
            data = NumberCreate.model_validate(item)
            await add_number(session, pool_id, data)
            result.success += 1
        except (ConflictError, ValidationError) as exc:
            result.failed += 1
            result.errors.append(f"{phone}: {exc}")

    if result.failed:
        logger.warning(
            "Imported %d numbers into pool %s, %d failed",
            result.success,
            pool_id,
            result.failed,
        )
    return result


async def list_numbers(
    session: AsyncSession,
    pool_id: UUID,
    status: Optional[str] = None,
    area_code: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[CallerIdNumber], int]:
    return await number_repo.list_numbers(
        session, pool_id, status=status, area_code=area_code, limit=limit, offset=offset
    )


async def get_number(session: AsyncSession, number_id: UUID) -> CallerIdNumber:
    number = await number_repo.get_by_id(session, number_id)
    if number is None:
        raise NotFoundError(f"Caller ID number {number_id} not found")
    return number


async def update_number(
    session: AsyncSession, number_id: UUID, data: NumberUpdate
) -> CallerIdNumber:
    number = await get_number(session, number_id)
    changes = data.model_dump(exclude_unset=True)

    new_status = changes.get("status")
    if new_status and new_status != number.status and number.status not in ("active", "inactive"):
        raise ConflictError(
            f"Cannot set {number.status} number {number_id} to {new_status}; "
            "use unblock or wait for the cooldown"
        )

    for key, value in changes.items():
        setattr(number, key, value)
    await _flush_number(session, number)
    return number


async def delete_number(session: AsyncSession, number_id: UUID) -> None:
    await get_number(session, number_id)
    await number_repo.delete_number(session, number_id)


async def get_number_stats(session: AsyncSession, number_id: UUID) -> NumberStats:
    number = await get_number(session, number_id)
    events = await activity_repo.list_reputation_events(
        session, number_id, limit=RECENT_EVENTS_LIMIT
    )
    answer_rate = 0.0
    if number.total_calls > 0:
        answer_rate = number.answered_calls / number.total_calls * 100

    return NumberStats(
        total_calls=number.total_calls,
        answered_calls=number.answered_calls,
        answer_rate=answer_rate,
        calls_today=number.calls_today,
        reputation_score=number.reputation_score,
        reputation_level=number.reputation_level,
        last_used_at=number.last_used_at,
        recent_events=[ReputationEventView.model_validate(e) for e in events],
    )


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


async def select_caller_id_for_lead(
    session: AsyncSession,
    pool_id: UUID,
    lead_phone: str,
    campaign_id: Optional[str] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> Optional[CallerIdNumber]:
    """Pick the caller ID to present when dialing lead_phone.

    Returns None when the pool is inactive or has no selectable number; the
    caller should skip or defer the call. Raises NotFoundError for an unknown
    pool.
    """
    pool = await get_pool(session, pool_id)
    if not pool.is_active:
        logger.debug("Pool %s is inactive, no caller ID for campaign %s", pool_id, campaign_id)
        return None

    now = as_utc(now) or utcnow()
    candidates = await number_repo.get_selection_candidates(session, pool_id)
    selected = select_number(candidates, pool, extract_area_code(lead_phone), now, rng)
    if selected is None:
        logger.warning("No available numbers in pool %s", pool_id)
    return selected


# ---------------------------------------------------------------------------
# Usage tracking
# ---------------------------------------------------------------------------


async def record_call_start(
    session: AsyncSession,
    number_id: UUID,
    lead_id: Optional[str],
    campaign_id: Optional[str],
    destination_number: str,
    call_uuid: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CallerIdUsageLog:
    """Count one call against the number and open its usage log."""
    now = as_utc(now) or utcnow()
    number = await get_number(session, number_id)

    number.calls_today += 1
    number.total_calls += 1
    number.last_used_at = now
    await _flush_number(session, number)

    log = CallerIdUsageLog(
        caller_id_number_id=number.id,
        caller_id_phone_number=number.phone_number,
        campaign_id=campaign_id,
        lead_id=lead_id,
        destination_number=destination_number,
        destination_area_code=extract_area_code(destination_number),
        call_uuid=call_uuid,
        created_at=now,
    )
    return await activity_repo.add_usage_log(session, log)


async def record_call_result(
    session: AsyncSession,
    usage_log_id: UUID,
    result: str,
    duration: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[CallerIdUsageLog]:
    """Close a usage log with the call's outcome.

    An unknown log is ignored (returns None). An answered call counts toward
    the number's answered_calls and earns a small reputation boost.
    """
    outcome = CallOutcome(usage_log_id=usage_log_id, result=result, duration=duration)

    log = await activity_repo.get_usage_log(session, outcome.usage_log_id)
    if log is None:
        logger.warning("Call result for unknown usage log %s ignored", usage_log_id)
        return None
    if log.call_result is not None:
        raise ConflictError(f"Usage log {usage_log_id} already has result {log.call_result}")

    log.call_result = outcome.result
    log.call_duration = outcome.duration
    log.was_answered = outcome.result == "answered"
    await session.flush()

    if log.was_answered and log.caller_id_number_id is not None:
        number = await get_number(session, log.caller_id_number_id)
        number.answered_calls += 1
        await _flush_number(session, number)
        await update_reputation(
            session,
            number.id,
            "call_answered",
            ANSWERED_CALL_BOOST,
            source="system",
            now=now,
        )
    return log


# ---------------------------------------------------------------------------
# Reputation
# ---------------------------------------------------------------------------


async def update_reputation(
    session: AsyncSession,
    number_id: UUID,
    event_type: str,
    score_change: int,
    source: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CallerIdNumber:
    """Apply a score delta (clamped to 0..100) and append its audit event."""
    if event_type not in REPUTATION_EVENT_TYPES:
        raise ConflictError(f"Unknown reputation event type: {event_type}")

    now = as_utc(now) or utcnow()
    number = await get_number(session, number_id)
    previous_score = number.reputation_score
    new_score = clamp_score(previous_score + score_change)

    number.reputation_score = new_score
    number.reputation_level = reputation_level(new_score)
    await _flush_number(session, number)
    await activity_repo.add_reputation_event(
        session,
        CallerIdReputationEvent(
            caller_id_number_id=number.id,
            event_type=event_type,
            score_change=score_change,
            previous_score=previous_score,
            new_score=new_score,
            source=source,
            notes=notes,
            created_at=now,
        ),
    )

    if new_score != previous_score:
        logger.info(
            "Reputation of %s %d -> %d (%s, %s)",
            number.phone_number,
            previous_score,
            new_score,
            event_type,
            number.reputation_level,
        )
    return number


async def flag_number(
    session: AsyncSession,
    number_id: UUID,
    reason: Optional[str] = None,
    source: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CallerIdNumber:
    """Take a number out of rotation as flagged, with a -20 reputation penalty."""
    now = as_utc(now) or utcnow()
    number = await get_number(session, number_id)
    if number.status not in ("active", "cooling_down", "flagged"):
        raise ConflictError(f"Cannot flag {number.status} number {number_id}")

    number.status = "flagged"
    number.flagged_count += 1
    number.last_flagged_at = now
    await _flush_number(session, number)

    return await update_reputation(
        session, number_id, "manual_flag", FLAG_PENALTY, source=source, notes=reason, now=now
    )


async def block_number(
    session: AsyncSession,
    number_id: UUID,
    reason: Optional[str] = None,
    source: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CallerIdNumber:
    """Take a number out of rotation as carrier-blocked (-50 reputation).

    Only unblock_number brings it back.
    """
    now = as_utc(now) or utcnow()
    number = await get_number(session, number_id)
    if number.status not in ("active", "cooling_down", "flagged"):
        raise ConflictError(f"Cannot block {number.status} number {number_id}")

    number.status = "blocked"
    number.cooldown_until = None
    await _flush_number(session, number)

    return await update_reputation(
        session, number_id, "carrier_block", BLOCK_PENALTY, source=source, notes=reason, now=now
    )


async def unblock_number(
    session: AsyncSession, number_id: UUID, now: Optional[datetime] = None
) -> CallerIdNumber:
    """Return a flagged or blocked number to rotation (+10 reputation)."""
    number = await get_number(session, number_id)
    if number.status not in ("flagged", "blocked"):
        raise ConflictError(f"Cannot unblock {number.status} number {number_id}")

    number.status = "active"
    await _flush_number(session, number)

    return await update_reputation(
        session,
        number_id,
        "recovery",
        UNBLOCK_RECOVERY,
        source="admin",
        notes="Manually unblocked",
        now=now,
    )


async def cool_down_number(
    session: AsyncSession,
    number_id: UUID,
    source: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CallerIdNumber:
    """Suspend an active number for its pool's cooldown_minutes.

    The number comes back through process_cooldowns. The score is unchanged
    but the suspension is recorded as a cooldown event.
    """
    now = as_utc(now) or utcnow()
    number = await get_number(session, number_id)
    if number.status != "active":
        raise ConflictError(f"Cannot cool down {number.status} number {number_id}")

    pool = await get_pool(session, number.pool_id)
    number.status = "cooling_down"
    number.cooldown_until = now + timedelta(minutes=pool.cooldown_minutes)
    await _flush_number(session, number)

    return await update_reputation(
        session,
        number_id,
        "cooldown",
        0,
        source=source,
        notes=f"Cooling down until {number.cooldown_until.isoformat()}",
        now=now,
    )


async def get_reputation_history(
    session: AsyncSession, number_id: UUID, limit: Optional[int] = None
) -> list[CallerIdReputationEvent]:
    return await activity_repo.list_reputation_events(session, number_id, limit=limit)


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


async def reset_daily_counters(session: AsyncSession, pool_id: Optional[UUID] = None) -> int:
    """Zero calls_today for every number (or one pool's). Safe to re-run."""
    count = await number_repo.reset_daily_counters(session, pool_id)
    logger.info("Daily caller ID counters reset (%d numbers)", count)
    return count


async def process_cooldowns(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """Return every number whose cooldown has passed to active. No events are written."""
    now = as_utc(now) or utcnow()
    count = await number_repo.release_expired_cooldowns(session, now)
    if count:
        logger.info("Released %d caller ID numbers from cooldown", count)
    return count
