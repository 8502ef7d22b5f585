"""SQLAlchemy 2.0 ORM models for the lead scoring and caller-ID core.

Covers 6 tables:
  - scoring: scoring_models, lead_scores
  - caller id: caller_id_pools, caller_id_numbers, caller_id_usage_logs,
               caller_id_reputation_events
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    UUID,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    false,
    true,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    # Server-side timestamps are fetched on flush; lazy loads are not
    # available under AsyncSession.
    __mapper_args__ = {"eager_defaults": True}


# ---------------------------------------------------------------------------
# Enumerated values used in CHECK constraints
# ---------------------------------------------------------------------------

ROTATION_STRATEGIES = ("round_robin", "random", "weighted", "least_recently_used")
CALLER_ID_STATUSES = ("active", "cooling_down", "flagged", "blocked", "inactive")
REPUTATION_LEVELS = ("excellent", "good", "fair", "poor", "critical")
CALL_RESULTS = ("answered", "no_answer", "busy", "failed", "voicemail")
REPUTATION_EVENT_TYPES = (
    "spam_report",
    "carrier_block",
    "low_answer_rate",
    "manual_flag",
    "recovery",
    "verification_passed",
    "verification_failed",
    "call_answered",
    "daily_reset",
    "cooldown",
)
PRIORITY_TIERS = ("high", "normal", "low")


def _in_check(column: str, values: tuple[str, ...], nullable: bool = False) -> str:
    clause = f"{column} IN (" + ", ".join(f"'{v}'" for v in values) + ")"
    if nullable:
        return f"{column} IS NULL OR {clause}"
    return clause


# ===========================================================================
# Scoring
# ===========================================================================


class ScoringModel(Base):
    """scoring_models: weighted scoring policy, default or per organization."""

    __tablename__ = "scoring_models"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[str] = mapped_column(Text, nullable=False, default="1.0.0")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    organization_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)

    # Policy
    feature_weights: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    disposition_scores: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    # 24 hourly multipliers, index = hour
    time_slot_multipliers: Mapped[list[float]] = mapped_column(JSON, nullable=False)
    # 7 multipliers, index 0 = Sunday
    day_of_week_multipliers: Mapped[list[float]] = mapped_column(JSON, nullable=False)

    # Thresholds
    high_priority_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=70)
    low_priority_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    max_dial_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    # Performance metrics
    accuracy: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    precision: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    recall: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    leads_scored: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    # Status
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    is_default: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    trained_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# At most one active model per scope: organization_id, or '' for the default scope.
Index(
    "uq_scoring_models_active_scope",
    func.coalesce(ScoringModel.__table__.c.organization_id, ""),
    unique=True,
    postgresql_where=ScoringModel.__table__.c.is_active == true(),
    sqlite_where=ScoringModel.__table__.c.is_active == true(),
)


class LeadScore(Base):
    """lead_scores: latest computed score per lead (overwritten on rescoring)."""

    __tablename__ = "lead_scores"
    __table_args__ = (
        CheckConstraint(
            "overall_score BETWEEN 0 AND 100", name="ck_lead_score_overall_range"
        ),
        CheckConstraint(
            _in_check("priority", PRIORITY_TIERS, nullable=True),
            name="ck_lead_score_priority",
        ),
        Index("ix_lead_scores_campaign_score", "campaign_id", "overall_score"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lead_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    campaign_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    organization_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Scores
    overall_score: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    contact_probability: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    conversion_probability: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    priority: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Best time
    best_time_slots: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(
        JSON, nullable=True
    )
    preferred_timezone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Snapshot of the features the score was computed from
    features: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Model info
    model_version: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    scored_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# ===========================================================================
# Caller ID
# ===========================================================================


class CallerIdPool(Base):
    """caller_id_pools: a named set of outbound numbers with a rotation policy."""

    __tablename__ = "caller_id_pools"
    __table_args__ = (
        CheckConstraint(
            _in_check("rotation_strategy", ROTATION_STRATEGIES),
            name="ck_caller_id_pool_rotation_strategy",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    local_presence_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    rotation_strategy: Mapped[str] = mapped_column(
        Text, nullable=False, default="round_robin", server_default="round_robin"
    )
    max_calls_per_number: Mapped[int] = mapped_column(
        Integer, nullable=False, default=50, server_default="50"
    )
    cooldown_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=60, server_default="60"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Relationships
    numbers: Mapped[list["CallerIdNumber"]] = relationship(
        "CallerIdNumber", back_populates="pool", passive_deletes=True
    )


class CallerIdNumber(Base):
    """caller_id_numbers: one presentable outbound number and its health."""

    __tablename__ = "caller_id_numbers"
    __table_args__ = (
        UniqueConstraint("pool_id", "phone_number", name="uq_caller_id_number_pool_phone"),
        CheckConstraint(
            _in_check("status", CALLER_ID_STATUSES), name="ck_caller_id_number_status"
        ),
        CheckConstraint(
            _in_check("reputation_level", REPUTATION_LEVELS),
            name="ck_caller_id_number_reputation_level",
        ),
        CheckConstraint(
            "reputation_score BETWEEN 0 AND 100",
            name="ck_caller_id_number_reputation_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    phone_number: Mapped[str] = mapped_column(Text, nullable=False)
    area_code: Mapped[str] = mapped_column(String(3), nullable=False, index=True)
    state: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pool_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("caller_id_pools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="active", server_default="active"
    )
    reputation_level: Mapped[str] = mapped_column(
        Text, nullable=False, default="excellent", server_default="excellent"
    )
    reputation_score: Mapped[int] = mapped_column(
        Integer, nullable=False, default=100, server_default="100"
    )
    calls_today: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    total_calls: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    answered_calls: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    flagged_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    last_used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cooldown_until: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_flagged_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata", JSON, nullable=True
    )
    # Optimistic concurrency token; a lost race raises StaleDataError on flush
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # Plain UPDATEs (no RETURNING) keep the rowcount-based version check
    # reliable on every driver.
    __mapper_args__ = {"version_id_col": version_id, "eager_defaults": "auto"}

    # Relationship
    pool: Mapped["CallerIdPool"] = relationship("CallerIdPool", back_populates="numbers")


class CallerIdUsageLog(Base):
    """caller_id_usage_logs: one row per outbound call presenting a number."""

    __tablename__ = "caller_id_usage_logs"
    __table_args__ = (
        CheckConstraint(
            _in_check("call_result", CALL_RESULTS, nullable=True),
            name="ck_caller_id_usage_call_result",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    caller_id_number_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("caller_id_numbers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    caller_id_phone_number: Mapped[str] = mapped_column(Text, nullable=False)
    campaign_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    lead_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    destination_number: Mapped[str] = mapped_column(Text, nullable=False)
    destination_area_code: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    was_answered: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    call_duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    call_result: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    call_uuid: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class CallerIdReputationEvent(Base):
    """caller_id_reputation_events: append-only audit of reputation changes."""

    __tablename__ = "caller_id_reputation_events"
    __table_args__ = (
        CheckConstraint(
            _in_check("event_type", REPUTATION_EVENT_TYPES),
            name="ck_caller_id_reputation_event_type",
        ),
        UniqueConstraint(
            "caller_id_number_id", "seq", name="uq_caller_id_reputation_event_seq"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    caller_id_number_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("caller_id_numbers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Per-number insertion order; breaks created_at ties when reading history
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(Text, nullable=False)
    score_change: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_score: Mapped[int] = mapped_column(Integer, nullable=False)
    new_score: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "Base",
    # scoring
    "ScoringModel",
    "LeadScore",
    # caller id
    "CallerIdPool",
    "CallerIdNumber",
    "CallerIdUsageLog",
    "CallerIdReputationEvent",
]
