"""Deterministic lead score calculation.

Given the same lead, policy and `now`, calculate_score always returns the
same result; the only time dependence is the lead's local hour and weekday at
the moment of scoring.
"""
import math
from datetime import datetime
from typing import Optional, Sequence

from dateutil.relativedelta import relativedelta

from schemas.lead import BestTimeSlot, LeadData, ScoreFeatures, ScoreResult
from schemas.scoring_model import ScoringPolicy
from scoring.defaults import (
    BASE_SCORE,
    BUSINESS_HOURS,
    GOOD_SLOT_PROBABILITY,
    MAX_BEST_TIME_SLOTS,
    RECENCY_WINDOW_DAYS,
)
from scoring.features import day_of_week, extract_features, local_wall_clock


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def classify_priority(overall_score: int, policy: ScoringPolicy) -> str:
    if overall_score >= policy.high_priority_threshold:
        return "high"
    if overall_score <= policy.low_priority_threshold:
        return "low"
    return "normal"


def _disposition_term(features: ScoreFeatures, policy: ScoringPolicy) -> float:
    """Average disposition score over the lead's history, scaled by its weight."""
    total_outcomes = sum(features.previous_outcomes.values())
    if total_outcomes == 0:
        return 0.0
    weighted = sum(
        policy.disposition_score(code) * count
        for code, count in features.previous_outcomes.items()
    )
    return (weighted / total_outcomes) * (policy.feature_weights.previous_outcomes / 10)


def calculate_best_time_slots(
    time_slot_multipliers: Sequence[float],
    day_of_week_multipliers: Sequence[float],
) -> list[BestTimeSlot]:
    """Rank every business-hour slot of the week by contact probability.

    Only slots at or above GOOD_SLOT_PROBABILITY are kept; at most
    MAX_BEST_TIME_SLOTS are returned, best first.
    """
    slots = []
    for day in range(7):
        for hour in BUSINESS_HOURS:
            probability = min(
                1.0, time_slot_multipliers[hour] * day_of_week_multipliers[day] / 1.5
            )
            if probability >= GOOD_SLOT_PROBABILITY:
                slots.append(
                    BestTimeSlot(
                        day_of_week=day,
                        hour=hour,
                        probability=_round_half_up(probability * 100) / 100,
                    )
                )
    slots.sort(key=lambda s: s.probability, reverse=True)
    return slots[:MAX_BEST_TIME_SLOTS]


def calculate_score(lead: LeadData, policy: ScoringPolicy, now: datetime) -> ScoreResult:
    features = extract_features(lead, now)
    weights = policy.feature_weights

    score: float = BASE_SCORE

    # Over-dialed leads lose priority
    score += features.dial_attempts * weights.dial_attempts

    # Recent contact boosts, decaying linearly to zero over the window
    recency = max(0, RECENCY_WINDOW_DAYS - features.recency_days) / RECENCY_WINDOW_DAYS
    score += recency * weights.recency_days * 10

    score += _disposition_term(features, policy)

    local_now = local_wall_clock(now, features.timezone)
    time_multiplier = policy.time_slot_multipliers[local_now.hour]
    day_multiplier = policy.day_of_week_multipliers[day_of_week(local_now)]
    score *= time_multiplier
    score *= day_multiplier

    overall_score = int(_clamp(_round_half_up(score), 0, 100))
    contact_probability = _clamp(
        overall_score / 100 * time_multiplier * day_multiplier, 0.0, 1.0
    )

    decided = features.positive_outcomes + features.negative_outcomes
    conversion_probability = (
        features.positive_outcomes / decided if decided > 0 else 0.5
    )

    return ScoreResult(
        lead_id=lead.id,
        overall_score=overall_score,
        contact_probability=contact_probability,
        conversion_probability=conversion_probability,
        best_time_slots=calculate_best_time_slots(
            policy.time_slot_multipliers, policy.day_of_week_multipliers
        ),
        features=features,
        priority=classify_priority(overall_score, policy),
    )


def find_next_good_time(
    slots: Sequence[BestTimeSlot], local_now: datetime
) -> tuple[bool, Optional[datetime]]:
    """Return (current_is_good, next_good_time) for a lead's stored slots.

    local_now must already be on the lead's wall clock. The next good time is
    the nearest slot by day distance, then by hour; a slot earlier today
    counts as next week. next_good_time is None when the current hour is good
    or there is no good slot at all.
    """
    current_day = day_of_week(local_now)
    current_hour = local_now.hour
    good_slots = [s for s in slots if s.probability >= GOOD_SLOT_PROBABILITY]

    if any(s.day_of_week == current_day and s.hour == current_hour for s in good_slots):
        return True, None
    if not good_slots:
        return False, None

    def _distance(slot: BestTimeSlot) -> tuple[int, int]:
        days_ahead = (slot.day_of_week - current_day) % 7
        if days_ahead == 0 and slot.hour <= current_hour:
            days_ahead = 7
        return days_ahead, slot.hour

    next_slot = min(good_slots, key=_distance)
    days_ahead, _ = _distance(next_slot)
    next_time = local_now + relativedelta(
        days=days_ahead, hour=next_slot.hour, minute=0, second=0, microsecond=0
    )
    return False, next_time
