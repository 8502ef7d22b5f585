"""Caller-ID pool, number and reputation schemas."""
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

RotationStrategy = Literal["round_robin", "random", "weighted", "least_recently_used"]
CallerIdStatus = Literal["active", "cooling_down", "flagged", "blocked", "inactive"]
ReputationLevel = Literal["excellent", "good", "fair", "poor", "critical"]
CallResult = Literal["answered", "no_answer", "busy", "failed", "voicemail"]
ReputationEventType = Literal[
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
]

E164_PATTERN = r"^\+?[1-9]\d{9,14}$"


class PoolCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    is_active: bool = True
    local_presence_enabled: bool = True
    rotation_strategy: RotationStrategy = "round_robin"
    max_calls_per_number: int = Field(default=50, ge=1, le=1000)
    cooldown_minutes: int = Field(default=60, ge=0, le=1440)


class PoolUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    local_presence_enabled: Optional[bool] = None
    rotation_strategy: Optional[RotationStrategy] = None
    max_calls_per_number: Optional[int] = Field(default=None, ge=1, le=1000)
    cooldown_minutes: Optional[int] = Field(default=None, ge=0, le=1440)


class NumberCreate(BaseModel):
    phone_number: str = Field(pattern=E164_PATTERN)
    state: Optional[str] = None
    city: Optional[str] = None
    # Only these two may be chosen at creation; the rest are reached via
    # flag / unblock / cooldown.
    status: Literal["active", "inactive"] = "active"


class NumberUpdate(BaseModel):
    # Administrative on/off only; flagged, blocked and cooling_down have
    # their own operations.
    status: Optional[Literal["active", "inactive"]] = None
    state: Optional[str] = None
    city: Optional[str] = None


class CallOutcome(BaseModel):
    usage_log_id: UUID
    result: CallResult
    duration: Optional[int] = Field(default=None, ge=0)


class ImportResult(BaseModel):
    success: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)


class AreaCodeCount(BaseModel):
    area_code: str
    count: int


class PoolStats(BaseModel):
    total_numbers: int
    active_numbers: int
    cooling_down_numbers: int
    flagged_numbers: int
    blocked_numbers: int
    inactive_numbers: int
    average_reputation_score: int
    total_calls_today: int
    area_codes: List[AreaCodeCount] = Field(default_factory=list)


class PoolSummary(BaseModel):
    id: UUID
    name: str
    is_active: bool
    rotation_strategy: RotationStrategy
    total_numbers: int
    active_numbers: int
    flagged_numbers: int


class CallerIdOverview(BaseModel):
    total_pools: int
    total_numbers: int
    active_numbers: int
    flagged_numbers: int


class ReputationEventView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_type: ReputationEventType
    score_change: int
    previous_score: int
    new_score: int
    source: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class NumberStats(BaseModel):
    total_calls: int
    answered_calls: int
    answer_rate: float  # percent
    calls_today: int
    reputation_score: int
    reputation_level: ReputationLevel
    last_used_at: Optional[datetime] = None
    recent_events: List[ReputationEventView] = Field(default_factory=list)
