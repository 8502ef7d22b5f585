"""Caller-ID pool repository: lookup, per-status counts and pool removal."""
import logging
from collections import defaultdict
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from db.models import (
    CallerIdNumber,
    CallerIdPool,
    CallerIdReputationEvent,
    CallerIdUsageLog,
)

logger = logging.getLogger(__name__)


async def get_by_id(
    session: AsyncSession, pool_id: UUID, with_numbers: bool = False
) -> Optional[CallerIdPool]:
    """Return the pool with this id, or None. Optionally eager-load its numbers."""
    stmt = select(CallerIdPool).where(CallerIdPool.id == pool_id)
    if with_numbers:
        stmt = stmt.options(selectinload(CallerIdPool.numbers))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_by_name(session: AsyncSession, name: str) -> Optional[CallerIdPool]:
    result = await session.execute(select(CallerIdPool).where(CallerIdPool.name == name))
    return result.scalar_one_or_none()


async def list_pools(session: AsyncSession) -> list[CallerIdPool]:
    result = await session.execute(select(CallerIdPool).order_by(CallerIdPool.name))
    return list(result.scalars().all())


async def count_pools(session: AsyncSession) -> int:
    return await session.scalar(select(func.count()).select_from(CallerIdPool)) or 0


async def add(session: AsyncSession, pool: CallerIdPool) -> CallerIdPool:
    session.add(pool)
    await session.flush()
    return pool


async def status_counts(session: AsyncSession) -> dict[UUID, dict[str, int]]:
    """Return {pool_id: {status: count}} for every pool that has numbers."""
    result = await session.execute(
        select(CallerIdNumber.pool_id, CallerIdNumber.status, func.count())
        .group_by(CallerIdNumber.pool_id, CallerIdNumber.status)
    )
    counts: dict[UUID, dict[str, int]] = defaultdict(dict)
    for pool_id, status, count in result.all():
        counts[pool_id][status] = count
    return counts


async def delete_pool(session: AsyncSession, pool_id: UUID) -> None:
    """Remove a pool, its numbers and their reputation events.

    Usage logs are history and survive with their number reference nulled.
    """
    number_ids = select(CallerIdNumber.id).where(CallerIdNumber.pool_id == pool_id)
    await session.execute(
        update(CallerIdUsageLog)
        .where(CallerIdUsageLog.caller_id_number_id.in_(number_ids))
        .values(caller_id_number_id=None)
        .execution_options(synchronize_session="fetch")
    )
    await session.execute(
        delete(CallerIdReputationEvent)
        .where(CallerIdReputationEvent.caller_id_number_id.in_(number_ids))
        .execution_options(synchronize_session="fetch")
    )
    removed = await session.execute(
        delete(CallerIdNumber)
        .where(CallerIdNumber.pool_id == pool_id)
        .execution_options(synchronize_session="fetch")
    )
    await session.execute(
        delete(CallerIdPool)
        .where(CallerIdPool.id == pool_id)
        .execution_options(synchronize_session="fetch")
    )
    await session.flush()
    logger.info("Deleted pool %s with %d numbers", pool_id, removed.rowcount or 0)
