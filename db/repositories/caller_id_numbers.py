"""Caller-ID number repository: lookups, filtered listings and bulk sweeps."""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from db.models import CallerIdNumber, CallerIdReputationEvent, CallerIdUsageLog

logger = logging.getLogger(__name__)

# Statuses that may be handed to the rotation engine; cooling_down numbers are
# further filtered on cooldown_until.
SELECTION_STATUSES = ("active", "cooling_down")


async def get_by_id(session: AsyncSession, number_id: UUID) -> Optional[CallerIdNumber]:
    """Return the number (with its pool loaded), or None."""
    result = await session.execute(
        select(CallerIdNumber)
        .where(CallerIdNumber.id == number_id)
        .options(selectinload(CallerIdNumber.pool))
    )
    return result.scalar_one_or_none()


async def get_in_pool(
    session: AsyncSession, pool_id: UUID, phone_number: str
) -> Optional[CallerIdNumber]:
    result = await session.execute(
        select(CallerIdNumber)
        .where(CallerIdNumber.pool_id == pool_id)
        .where(CallerIdNumber.phone_number == phone_number)
    )
    return result.scalar_one_or_none()


async def list_by_pool(session: AsyncSession, pool_id: UUID) -> list[CallerIdNumber]:
    result = await session.execute(
        select(CallerIdNumber).where(CallerIdNumber.pool_id == pool_id)
    )
    return list(result.scalars().all())


async def get_selection_candidates(
    session: AsyncSession, pool_id: UUID
) -> list[CallerIdNumber]:
    """Return numbers of a pool whose status allows selection."""
    result = await session.execute(
        select(CallerIdNumber)
        .where(CallerIdNumber.pool_id == pool_id)
        .where(CallerIdNumber.status.in_(SELECTION_STATUSES))
        .order_by(CallerIdNumber.created_at, CallerIdNumber.phone_number)
    )
    return list(result.scalars().all())


async def list_numbers(
    session: AsyncSession,
    pool_id: UUID,
    status: Optional[str] = None,
    area_code: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[CallerIdNumber], int]:
    """Return one page of a pool's numbers plus the total matching count."""
    filters = [CallerIdNumber.pool_id == pool_id]
    if status:
        filters.append(CallerIdNumber.status == status)
    if area_code:
        filters.append(CallerIdNumber.area_code == area_code)

    total = await session.scalar(
        select(func.count()).select_from(CallerIdNumber).where(*filters)
    )
    result = await session.execute(
        select(CallerIdNumber)
        .where(*filters)
        .order_by(CallerIdNumber.area_code, CallerIdNumber.phone_number)
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total or 0


async def status_totals(session: AsyncSession) -> dict[str, int]:
    """Return {status: count} across every pool."""
    result = await session.execute(
        select(CallerIdNumber.status, func.count()).group_by(CallerIdNumber.status)
    )
    return {status: count for status, count in result.all()}


async def add(session: AsyncSession, number: CallerIdNumber) -> CallerIdNumber:
    session.add(number)
    await session.flush()
    return number


async def delete_number(session: AsyncSession, number_id: UUID) -> None:
    """Remove a number and its reputation events; usage logs keep their history."""
    await session.execute(
        update(CallerIdUsageLog)
        .where(CallerIdUsageLog.caller_id_number_id == number_id)
        .values(caller_id_number_id=None)
        .execution_options(synchronize_session="fetch")
    )
    await session.execute(
        delete(CallerIdReputationEvent)
        .where(CallerIdReputationEvent.caller_id_number_id == number_id)
        .execution_options(synchronize_session="fetch")
    )
    await session.execute(
        delete(CallerIdNumber)
        .where(CallerIdNumber.id == number_id)
        .execution_options(synchronize_session="fetch")
    )
    await session.flush()


async def reset_daily_counters(session: AsyncSession, pool_id: Optional[UUID] = None) -> int:
    """Zero calls_today (optionally for one pool). Returns rows touched."""
    stmt = update(CallerIdNumber).where(CallerIdNumber.calls_today != 0)
    if pool_id is not None:
        stmt = stmt.where(CallerIdNumber.pool_id == pool_id)
    result = await session.execute(
        stmt.values(calls_today=0).execution_options(synchronize_session="fetch")
    )
    await session.flush()
    return result.rowcount or 0


async def release_expired_cooldowns(session: AsyncSession, now: datetime) -> int:
    """Flip cooling_down numbers whose cooldown has passed back to active."""
    result = await session.execute(
        update(CallerIdNumber)
        .where(CallerIdNumber.status == "cooling_down")
        .where(CallerIdNumber.cooldown_until <= now)
        .values(status="active", cooldown_until=None)
        .execution_options(synchronize_session="fetch")
    )
    await session.flush()
    return result.rowcount or 0
