"""Lead input and scoring output schemas."""
from datetime import datetime
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field


class DispositionRecord(BaseModel):
    code: str
    created_at: datetime
    call_duration: Optional[int] = None  # seconds


class LeadData(BaseModel):
    id: str
    phone_number: str
    timezone: Optional[str] = None
    state: Optional[str] = None  # two-letter US state code
    dial_attempts: int = Field(default=0, ge=0)
    last_dialed_at: Optional[datetime] = None
    dispositions: List[DispositionRecord] = Field(default_factory=list)
    campaign_id: Optional[str] = None
    organization_id: Optional[str] = None


class BestTimeSlot(BaseModel):
    day_of_week: int = Field(ge=0, le=6)  # 0 = Sunday
    hour: int = Field(ge=0, le=23)
    probability: float = Field(ge=0, le=1)


class ScoreFeatures(BaseModel):
    dial_attempts: int
    recency_days: int
    previous_outcomes: Dict[str, int] = Field(default_factory=dict)
    last_call_duration: float = 0
    timezone: str
    days_since_last_contact: int = 0
    total_contacts: int = 0
    positive_outcomes: int = 0
    negative_outcomes: int = 0


PriorityTier = Literal["high", "normal", "low"]


class ScoreResult(BaseModel):
    lead_id: str
    overall_score: int = Field(ge=0, le=100)
    contact_probability: float = Field(ge=0, le=1)
    conversion_probability: Optional[float] = Field(default=None, ge=0, le=1)
    best_time_slots: List[BestTimeSlot] = Field(default_factory=list, max_length=10)
    features: ScoreFeatures
    priority: PriorityTier = "normal"


class BestTimeToCall(BaseModel):
    best_slots: List[BestTimeSlot] = Field(default_factory=list)
    current_is_good: bool
    next_good_time: Optional[datetime] = None
