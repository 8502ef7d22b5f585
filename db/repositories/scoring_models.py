"""Scoring model repository: lookup by scope and activation bookkeeping."""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ScoringModel
from schemas.scoring_model import OrganizationScope, Scope

logger = logging.getLogger(__name__)


def _in_scope(scope: Scope):
    if isinstance(scope, OrganizationScope):
        return ScoringModel.organization_id == scope.organization_id
    return ScoringModel.organization_id.is_(None)


async def get_by_id(session: AsyncSession, model_id: UUID) -> Optional[ScoringModel]:
    """Return the ScoringModel with this id, or None."""
    return await session.get(ScoringModel, model_id)


async def get_active(session: AsyncSession, scope: Scope) -> Optional[ScoringModel]:
    """Return the active model of a scope, or None."""
    result = await session.execute(
        select(ScoringModel)
        .where(_in_scope(scope))
        .where(ScoringModel.is_active == True)
        .order_by(ScoringModel.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def list_models(
    session: AsyncSession, organization_id: Optional[str] = None
) -> list[ScoringModel]:
    """Return models (default first, newest first), optionally for one organization."""
    stmt = select(ScoringModel)
    if organization_id:
        stmt = stmt.where(ScoringModel.organization_id == organization_id)
    stmt = stmt.order_by(ScoringModel.is_default.desc(), ScoringModel.created_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def add(session: AsyncSession, model: ScoringModel) -> ScoringModel:
    session.add(model)
    await session.flush()
    return model


async def deactivate_scope(session: AsyncSession, scope: Scope) -> int:
    """Deactivate every active model in a scope. Returns the count deactivated."""
    result = await session.execute(
        update(ScoringModel)
        .where(_in_scope(scope))
        .where(ScoringModel.is_active == True)
        .values(is_active=False)
        .execution_options(synchronize_session="fetch")
    )
    await session.flush()
    return result.rowcount or 0


async def increment_leads_scored(
    session: AsyncSession, model: ScoringModel, count: int = 1
) -> None:
    """Atomically bump the model's leads_scored counter by count."""
    await session.execute(
        update(ScoringModel)
        .where(ScoringModel.id == model.id)
        .values(leads_scored=ScoringModel.leads_scored + count)
        .execution_options(synchronize_session=False)
    )
    await session.refresh(model, attribute_names=["leads_scored"])
