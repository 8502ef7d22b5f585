"""Scoring model (policy) schemas.

ScoringPolicy is the typed view the engine computes with: hour and weekday
multipliers are fixed-length lists, disposition scores a mapping where an
unknown code scores 0.
"""
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

from scoring.defaults import (
    DEFAULT_DAY_OF_WEEK_MULTIPLIERS,
    DEFAULT_DISPOSITION_SCORES,
    DEFAULT_TIME_SLOT_MULTIPLIERS,
)

HOURS_PER_DAY = 24
DAYS_PER_WEEK = 7


class FeatureWeights(BaseModel):
    dial_attempts: float = -5  # penalty per attempt
    recency_days: float = 2  # boost for recent contact
    previous_outcomes: float = 15  # disposition history
    time_of_day: float = 10
    day_of_week: float = 5
    area_code_match: float = 5
    timezone: float = 10
    call_duration: float = 3
    total_contacts: float = -2
    positive_outcome_ratio: float = 20


def _as_multiplier_list(value: Any, size: int) -> Any:
    """Accept either a list or a {"0": 1.0, ...} mapping; missing keys are neutral."""
    if isinstance(value, dict):
        return [float(value.get(str(i), value.get(i, 1.0))) for i in range(size)]
    return value


def _validate_disposition_scores(value: Dict[str, float]) -> Dict[str, float]:
    for code, score in value.items():
        if not -100 <= score <= 100:
            raise ValueError(f"disposition score for {code} must be within [-100, 100]")
    return value


class ScoringPolicy(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    version: str = "1.0.0"
    feature_weights: FeatureWeights = Field(default_factory=FeatureWeights)
    disposition_scores: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_DISPOSITION_SCORES)
    )
    time_slot_multipliers: List[float] = Field(
        default_factory=lambda: list(DEFAULT_TIME_SLOT_MULTIPLIERS),
        min_length=HOURS_PER_DAY,
        max_length=HOURS_PER_DAY,
    )
    day_of_week_multipliers: List[float] = Field(
        default_factory=lambda: list(DEFAULT_DAY_OF_WEEK_MULTIPLIERS),
        min_length=DAYS_PER_WEEK,
        max_length=DAYS_PER_WEEK,
    )
    high_priority_threshold: int = 70
    low_priority_threshold: int = 30
    max_dial_attempts: int = 5

    @field_validator("time_slot_multipliers", mode="before")
    @classmethod
    def _hours(cls, value: Any) -> Any:
        return _as_multiplier_list(value, HOURS_PER_DAY)

    @field_validator("day_of_week_multipliers", mode="before")
    @classmethod
    def _days(cls, value: Any) -> Any:
        return _as_multiplier_list(value, DAYS_PER_WEEK)

    @field_validator("disposition_scores")
    @classmethod
    def _disposition_range(cls, value: Dict[str, float]) -> Dict[str, float]:
        return _validate_disposition_scores(value)

    def disposition_score(self, code: str) -> float:
        return self.disposition_scores.get(code, 0)


class ScoringModelCreate(BaseModel):
    name: str
    version: str = "1.0.0"
    description: Optional[str] = None
    organization_id: Optional[str] = None
    feature_weights: Optional[FeatureWeights] = None
    disposition_scores: Optional[Dict[str, float]] = None
    time_slot_multipliers: Optional[List[float]] = Field(
        default=None, min_length=HOURS_PER_DAY, max_length=HOURS_PER_DAY
    )
    day_of_week_multipliers: Optional[List[float]] = Field(
        default=None, min_length=DAYS_PER_WEEK, max_length=DAYS_PER_WEEK
    )
    high_priority_threshold: int = Field(default=70, ge=0, le=100)
    low_priority_threshold: int = Field(default=30, ge=0, le=100)
    max_dial_attempts: int = Field(default=5, ge=1)

    @field_validator("disposition_scores")
    @classmethod
    def _disposition_range(cls, value: Optional[Dict[str, float]]) -> Optional[Dict[str, float]]:
        if value is None:
            return value
        return _validate_disposition_scores(value)


# ---------------------------------------------------------------------------
# Activation scope
# ---------------------------------------------------------------------------


class DefaultScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["default"] = "default"


class OrganizationScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["organization"] = "organization"
    organization_id: str


Scope = Union[DefaultScope, OrganizationScope]


def scope_of(organization_id: Optional[str]) -> Scope:
    """Map a model's (nullable) organization_id onto its activation scope."""
    if organization_id:
        return OrganizationScope(organization_id=organization_id)
    return DefaultScope()
