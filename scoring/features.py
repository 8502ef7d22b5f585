"""Feature extraction from a lead's dial and disposition history."""
import logging
from collections import Counter
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import settings
from clock import as_utc
from schemas.lead import LeadData, ScoreFeatures
from scoring.defaults import NEGATIVE_DISPOSITIONS, POSITIVE_DISPOSITIONS, STATE_TIMEZONES

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 60 * 60 * 24


def infer_timezone(state: Optional[str], default: Optional[str] = None) -> str:
    """Map a US state code to its IANA timezone, else the configured default."""
    fallback = default or settings.DEFAULT_LEAD_TIMEZONE
    if not state:
        return fallback
    return STATE_TIMEZONES.get(state.strip().upper(), fallback)


def local_wall_clock(now: datetime, timezone_name: Optional[str]) -> datetime:
    """Return now on the wall clock of timezone_name.

    An unknown or malformed timezone falls back to the server-local clock.
    """
    if timezone_name:
        try:
            return now.astimezone(ZoneInfo(timezone_name))
        except (ZoneInfoNotFoundError, ValueError, OSError):
            logger.debug("Unknown timezone %r, using server-local time", timezone_name)
    return now.astimezone()


def day_of_week(moment: datetime) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return (moment.weekday() + 1) % 7


def extract_features(lead: LeadData, now: datetime) -> ScoreFeatures:
    recency_days = 0
    if lead.last_dialed_at is not None:
        elapsed = (now - as_utc(lead.last_dialed_at)).total_seconds()
        recency_days = max(0, int(elapsed // _SECONDS_PER_DAY))

    outcomes = Counter(d.code for d in lead.dispositions)
    positive = sum(n for code, n in outcomes.items() if code in POSITIVE_DISPOSITIONS)
    negative = sum(n for code, n in outcomes.items() if code in NEGATIVE_DISPOSITIONS)
    total_duration = sum(d.call_duration or 0 for d in lead.dispositions)
    total_contacts = len(lead.dispositions)

    return ScoreFeatures(
        dial_attempts=lead.dial_attempts,
        recency_days=recency_days,
        previous_outcomes=dict(outcomes),
        last_call_duration=total_duration / total_contacts if total_contacts else 0,
        timezone=lead.timezone or infer_timezone(lead.state),
        days_since_last_contact=recency_days,
        total_contacts=total_contacts,
        positive_outcomes=positive,
        negative_outcomes=negative,
    )
