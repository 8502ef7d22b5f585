"""Lead score repository: upsert by lead, priority queue and listings."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import LeadScore

logger = logging.getLogger(__name__)


async def get_by_lead_id(session: AsyncSession, lead_id: str) -> Optional[LeadScore]:
    """Return the LeadScore for this lead, or None."""
    result = await session.execute(select(LeadScore).where(LeadScore.lead_id == lead_id))
    return result.scalar_one_or_none()


async def get_by_lead_ids(session: AsyncSession, lead_ids: list[str]) -> list[LeadScore]:
    if not lead_ids:
        return []
    result = await session.execute(select(LeadScore).where(LeadScore.lead_id.in_(lead_ids)))
    return list(result.scalars().all())


async def upsert(session: AsyncSession, data: dict) -> LeadScore:
    """Insert or overwrite the score for data["lead_id"] (dedup key).

    data dict keys: lead_id, campaign_id, organization_id, overall_score,
    contact_probability, conversion_probability, priority, best_time_slots,
    preferred_timezone, features, model_version, scored_at, expires_at

    campaign_id and organization_id are only set on insert.
    """
    score = await get_by_lead_id(session, data["lead_id"])
    if score is None:
        score = LeadScore(**data)
        session.add(score)
    else:
        for key, value in data.items():
            if key in ("lead_id", "campaign_id", "organization_id"):
                continue
            setattr(score, key, value)
    await session.flush()
    return score


async def get_priority_queue(
    session: AsyncSession,
    campaign_id: str,
    now: datetime,
    lead_ids: Optional[list[str]] = None,
    limit: int = 100,
    min_score: int = 0,
) -> list[LeadScore]:
    """Return live (non-expired) scores of a campaign, best first."""
    stmt = (
        select(LeadScore)
        .where(LeadScore.campaign_id == campaign_id)
        .where(LeadScore.overall_score >= min_score)
        .where(or_(LeadScore.expires_at.is_(None), LeadScore.expires_at > now))
    )
    if lead_ids:
        stmt = stmt.where(LeadScore.lead_id.in_(lead_ids))
    stmt = stmt.order_by(LeadScore.overall_score.desc(), LeadScore.scored_at).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_scores(
    session: AsyncSession,
    campaign_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    min_score: Optional[int] = None,
    max_score: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[LeadScore], int]:
    """Return one page of scores plus the total matching count."""
    filters = []
    if campaign_id:
        filters.append(LeadScore.campaign_id == campaign_id)
    if organization_id:
        filters.append(LeadScore.organization_id == organization_id)
    if min_score is not None:
        filters.append(LeadScore.overall_score >= min_score)
    if max_score is not None:
        filters.append(LeadScore.overall_score <= max_score)

    total = await session.scalar(select(func.count()).select_from(LeadScore).where(*filters))
    result = await session.execute(
        select(LeadScore)
        .where(*filters)
        .order_by(LeadScore.overall_score.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total or 0
