"""Caller-ID usage logs and reputation events (both append-only)."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import CallerIdReputationEvent, CallerIdUsageLog

logger = logging.getLogger(__name__)


async def add_usage_log(session: AsyncSession, log: CallerIdUsageLog) -> CallerIdUsageLog:
    session.add(log)
    await session.flush()
    return log


async def get_usage_log(session: AsyncSession, log_id: UUID) -> Optional[CallerIdUsageLog]:
    return await session.get(CallerIdUsageLog, log_id)


async def add_reputation_event(
    session: AsyncSession, event: CallerIdReputationEvent
) -> CallerIdReputationEvent:
    """Append an event as the next seq of its number."""
    last_seq = await session.scalar(
        select(func.coalesce(func.max(CallerIdReputationEvent.seq), 0))
        .where(CallerIdReputationEvent.caller_id_number_id == event.caller_id_number_id)
    )
    event.seq = last_seq + 1
    session.add(event)
    await session.flush()
    return event


async def list_reputation_events(
    session: AsyncSession, number_id: UUID, limit: Optional[int] = None
) -> list[CallerIdReputationEvent]:
    """Return a number's reputation events, newest first."""
    stmt = (
        select(CallerIdReputationEvent)
        .where(CallerIdReputationEvent.caller_id_number_id == number_id)
        .order_by(
            CallerIdReputationEvent.created_at.desc(),
            CallerIdReputationEvent.seq.desc(),
        )
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
