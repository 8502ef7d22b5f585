"""Built-in scoring policy seeded into the system default model."""

DEFAULT_FEATURE_WEIGHTS = {
    "dial_attempts": -5,  # penalize many attempts
    "recency_days": 2,  # boost recent contacts
    "previous_outcomes": 15,  # weight disposition history
    "time_of_day": 10,
    "day_of_week": 5,
    "area_code_match": 5,  # local presence
    "timezone": 10,
    "call_duration": 3,
    "total_contacts": -2,  # many contacts = slightly negative
    "positive_outcome_ratio": 20,
}

DEFAULT_DISPOSITION_SCORES = {
    # Positive
    "SALE": 100,
    "APPOINTMENT": 80,
    "INTERESTED": 60,
    "CALLBACK": 40,
    # Neutral
    "NOT_HOME": 0,
    "NO_ANSWER": -5,
    "BUSY": -5,
    "VOICEMAIL": -10,
    # Negative
    "NOT_INTERESTED": -30,
    "DO_NOT_CALL": -100,
    "WRONG_NUMBER": -100,
    "DISCONNECTED": -100,
    "DECEASED": -100,
}

# Index = hour of day (0-23)
DEFAULT_TIME_SLOT_MULTIPLIERS = (
    0.1, 0.1, 0.1, 0.1, 0.1, 0.2,
    0.3, 0.5, 0.7, 1.0, 1.2, 1.2,
    0.8, 1.0, 1.1, 1.1, 1.2, 1.3,
    1.2, 1.0, 0.8, 0.5, 0.2, 0.1,
)

# Index = day of week, 0 = Sunday
DEFAULT_DAY_OF_WEEK_MULTIPLIERS = (0.3, 1.0, 1.1, 1.2, 1.1, 0.9, 0.4)

POSITIVE_DISPOSITIONS = frozenset({"SALE", "APPOINTMENT", "INTERESTED", "CALLBACK"})
NEGATIVE_DISPOSITIONS = frozenset(
    {"NOT_INTERESTED", "DO_NOT_CALL", "WRONG_NUMBER", "DISCONNECTED"}
)

# Business hours considered for best-time slots (inclusive)
BUSINESS_HOURS = range(8, 21)
GOOD_SLOT_PROBABILITY = 0.7
MAX_BEST_TIME_SLOTS = 10

BASE_SCORE = 50
RECENCY_WINDOW_DAYS = 30

STATE_TIMEZONES = {
    # Pacific
    "CA": "America/Los_Angeles",
    "WA": "America/Los_Angeles",
    "OR": "America/Los_Angeles",
    "NV": "America/Los_Angeles",
    # Mountain
    "AZ": "America/Phoenix",
    "MT": "America/Denver",
    "ID": "America/Denver",
    "WY": "America/Denver",
    "UT": "America/Denver",
    "CO": "America/Denver",
    "NM": "America/Denver",
    # Central
    "TX": "America/Chicago",
    "OK": "America/Chicago",
    "KS": "America/Chicago",
    "NE": "America/Chicago",
    "SD": "America/Chicago",
    "ND": "America/Chicago",
    "MN": "America/Chicago",
    "WI": "America/Chicago",
    "IL": "America/Chicago",
    "IA": "America/Chicago",
    "MO": "America/Chicago",
    "AR": "America/Chicago",
    "LA": "America/Chicago",
    "MS": "America/Chicago",
    "AL": "America/Chicago",
    "TN": "America/Chicago",
    # Eastern
    "NY": "America/New_York",
    "PA": "America/New_York",
    "NJ": "America/New_York",
    "MA": "America/New_York",
    "CT": "America/New_York",
    "RI": "America/New_York",
    "VT": "America/New_York",
    "NH": "America/New_York",
    "ME": "America/New_York",
    "FL": "America/New_York",
    "GA": "America/New_York",
    "SC": "America/New_York",
    "NC": "America/New_York",
    "VA": "America/New_York",
    "WV": "America/New_York",
    "MD": "America/New_York",
    "DE": "America/New_York",
    "DC": "America/New_York",
    "OH": "America/New_York",
    "MI": "America/New_York",
    "IN": "America/New_York",
    "KY": "America/New_York",
    # Non-contiguous
    "HI": "Pacific/Honolulu",
    "AK": "America/Anchorage",
}
