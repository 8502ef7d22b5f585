"""Lead scoring operations over a database session.

All functions take an AsyncSession and flush but do not commit; wrap calls in
db.connection.get_db() (or your own transaction) to persist them.

Usage:
    async with get_db() as db:
        score = await scoring_service.score_lead(db, lead)
        queue = await scoring_service.get_priority_queue(db, campaign_id="c-1")
"""
import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.scores as score_repo
import db.repositories.scoring_models as model_repo
import settings
from clock import as_utc, utcnow
from db.models import LeadScore, ScoringModel
from errors import ConflictError, NotFoundError
from schemas.lead import BestTimeSlot, BestTimeToCall, LeadData, ScoreResult
from schemas.scoring_model import (
    DefaultScope,
    FeatureWeights,
    ScoringModelCreate,
    ScoringPolicy,
    scope_of,
)
from scoring.defaults import (
    DEFAULT_DAY_OF_WEEK_MULTIPLIERS,
    DEFAULT_DISPOSITION_SCORES,
    DEFAULT_FEATURE_WEIGHTS,
    DEFAULT_TIME_SLOT_MULTIPLIERS,
)
from scoring.engine import calculate_score, find_next_good_time
from scoring.features import local_wall_clock

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def _score_row(lead: LeadData, result: ScoreResult, model: ScoringModel, now: datetime) -> dict:
    return {
        "lead_id": lead.id,
        "campaign_id": lead.campaign_id,
        "organization_id": lead.organization_id,
        "overall_score": result.overall_score,
        "contact_probability": result.contact_probability,
        "conversion_probability": result.conversion_probability,
        "priority": result.priority,
        "best_time_slots": [s.model_dump() for s in result.best_time_slots],
        "preferred_timezone": result.features.timezone,
        "features": result.features.model_dump(),
        "model_version": model.version,
        "scored_at": now,
        "expires_at": now + timedelta(hours=settings.SCORE_TTL_HOURS),
    }


async def score_lead(
    session: AsyncSession, lead: LeadData, now: Optional[datetime] = None
) -> LeadScore:
    """Score one lead against its organization's active model and store it."""
    now = as_utc(now) or utcnow()
    model = await get_active_model(session, lead.organization_id)
    result = calculate_score(lead, ScoringPolicy.model_validate(model), now)

    score = await score_repo.upsert(session, _score_row(lead, result, model, now))
    await model_repo.increment_leads_scored(session, model)
    return score


async def score_leads_batch(
    session: AsyncSession, leads: list[LeadData], now: Optional[datetime] = None
) -> list[LeadScore]:
    """Score many leads against one model, resolved from the first lead's organization."""
    if not leads:
        return []
    now = as_utc(now) or utcnow()
    model = await get_active_model(session, leads[0].organization_id)
    policy = ScoringPolicy.model_validate(model)

    scores = []
    for lead in leads:
        result = calculate_score(lead, policy, now)
        scores.append(await score_repo.upsert(session, _score_row(lead, result, model, now)))

    await model_repo.increment_leads_scored(session, model, count=len(leads))
    logger.info("Scored %d leads with model %s v%s", len(leads), model.name, model.version)
    return scores


# ---------------------------------------------------------------------------
# Priority queue / best time
# ---------------------------------------------------------------------------


async def get_priority_queue(
    session: AsyncSession,
    campaign_id: str,
    lead_ids: Optional[list[str]] = None,
    limit: Optional[int] = None,
    min_score: int = 0,
    now: Optional[datetime] = None,
) -> list[LeadScore]:
    """Return the dialing order for a campaign: live scores, highest first."""
    return await score_repo.get_priority_queue(
        session,
        campaign_id,
        now=as_utc(now) or utcnow(),
        lead_ids=lead_ids,
        limit=limit if limit is not None else settings.PRIORITY_QUEUE_LIMIT,
        min_score=min_score,
    )


async def get_best_time_to_call(
    session: AsyncSession, lead_id: str, now: Optional[datetime] = None
) -> BestTimeToCall:
    """Check the lead's stored best-time slots against its current local time.

    A lead that was never scored is always callable.
    """
    score = await score_repo.get_by_lead_id(session, lead_id)
    if score is None or score.best_time_slots is None:
        return BestTimeToCall(best_slots=[], current_is_good=True)

    now = as_utc(now) or utcnow()
    slots = [BestTimeSlot.model_validate(s) for s in score.best_time_slots]
    local_now = local_wall_clock(now, score.preferred_timezone)
    current_is_good, next_good_time = find_next_good_time(slots, local_now)
    return BestTimeToCall(
        best_slots=slots,
        current_is_good=current_is_good,
        next_good_time=next_good_time,
    )


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


async def get_lead_score(session: AsyncSession, lead_id: str) -> Optional[LeadScore]:
    return await score_repo.get_by_lead_id(session, lead_id)


async def get_lead_scores(session: AsyncSession, lead_ids: list[str]) -> list[LeadScore]:
    return await score_repo.get_by_lead_ids(session, lead_ids)


async def list_scores(
    session: AsyncSession,
    campaign_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    min_score: Optional[int] = None,
    max_score: Optional[int] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> tuple[list[LeadScore], int]:
    return await score_repo.list_scores(
        session,
        campaign_id=campaign_id,
        organization_id=organization_id,
        min_score=min_score,
        max_score=max_score,
        limit=limit if limit is not None else settings.SCORE_LIST_LIMIT,
        offset=offset,
    )


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


async def get_active_model(
    session: AsyncSession, organization_id: Optional[str] = None
) -> ScoringModel:
    """Return the organization's active model, else the system default.

    The default model is seeded on first use.
    """
    if organization_id:
        org_model = await model_repo.get_active(session, scope_of(organization_id))
        if org_model is not None:
            return org_model

    default_model = await model_repo.get_active(session, DefaultScope())
    if default_model is None:
        default_model = await create_default_model(session)
    return default_model


async def create_default_model(session: AsyncSession) -> ScoringModel:
    """Seed the built-in policy as the active system default."""
    model = ScoringModel(
        name="Default Scoring Model",
        version="1.0.0",
        description="Default lead scoring model with standard weights",
        feature_weights=dict(DEFAULT_FEATURE_WEIGHTS),
        disposition_scores=dict(DEFAULT_DISPOSITION_SCORES),
        time_slot_multipliers=list(DEFAULT_TIME_SLOT_MULTIPLIERS),
        day_of_week_multipliers=list(DEFAULT_DAY_OF_WEEK_MULTIPLIERS),
        is_active=True,
        is_default=True,
    )
    try:
        await model_repo.add(session, model)
    except IntegrityError as exc:
        # Another caller seeded (or activated) a default model first
        raise ConflictError("An active default scoring model already exists") from exc
    logger.info("Seeded default scoring model %s", model.id)
    return model


async def create_model(session: AsyncSession, data: ScoringModelCreate) -> ScoringModel:
    """Create an inactive scoring model; unspecified policy parts use the defaults."""
    weights = data.feature_weights or FeatureWeights()
    model = ScoringModel(
        name=data.name,
        version=data.version,
        description=data.description,
        organization_id=data.organization_id,
        feature_weights=weights.model_dump(),
        disposition_scores=dict(data.disposition_scores or DEFAULT_DISPOSITION_SCORES),
        time_slot_multipliers=list(data.time_slot_multipliers or DEFAULT_TIME_SLOT_MULTIPLIERS),
        day_of_week_multipliers=list(
            data.day_of_week_multipliers or DEFAULT_DAY_OF_WEEK_MULTIPLIERS
        ),
        high_priority_threshold=data.high_priority_threshold,
        low_priority_threshold=data.low_priority_threshold,
        max_dial_attempts=data.max_dial_attempts,
        is_active=False,
        is_default=False,
    )
    return await model_repo.add(session, model)


async def list_models(
    session: AsyncSession, organization_id: Optional[str] = None
) -> list[ScoringModel]:
    return await model_repo.list_models(session, organization_id)


async def get_model(session: AsyncSession, model_id: UUID) -> ScoringModel:
    model = await model_repo.get_by_id(session, model_id)
    if model is None:
        raise NotFoundError(f"Scoring model {model_id} not found")
    return model


async def activate_model(session: AsyncSession, model_id: UUID) -> ScoringModel:
    """Make a model the single active one of its scope.

    Siblings are deactivated before the target is activated, inside the
    caller's transaction. A concurrent activation in the same scope violates
    uq_scoring_models_active_scope and is reported as ConflictError.
    """
    model = await get_model(session, model_id)
    scope = scope_of(model.organization_id)
    try:
        deactivated = await model_repo.deactivate_scope(session, scope)
        model.is_active = True
        await session.flush()
    except IntegrityError as exc:
        raise ConflictError(
            f"Concurrent activation in scope {scope.kind}; retry the activation"
        ) from exc
    logger.info(
        "Activated scoring model %s (%s scope, %d deactivated)",
        model.id,
        scope.kind,
        deactivated,
    )
    return model
