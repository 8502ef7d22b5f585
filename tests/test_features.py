"""Unit tests for scoring.features."""
from datetime import datetime, timedelta, timezone

from schemas.lead import DispositionRecord, LeadData
from scoring.features import day_of_week, extract_features, infer_timezone, local_wall_clock

NOW = datetime(2026, 10, 12, 14, 0, tzinfo=timezone.utc)


def _disposition(code, duration=None, days_ago=1):
    return DispositionRecord(
        code=code, created_at=NOW - timedelta(days=days_ago), call_duration=duration
    )


class TestInferTimezone:
    def test_known_state(self):
        assert infer_timezone("CA") == "America/Los_Angeles"
        assert infer_timezone("AZ") == "America/Phoenix"

    def test_lowercase_and_whitespace(self):
        assert infer_timezone(" tx ") == "America/Chicago"

    def test_unknown_state_uses_default(self):
        assert infer_timezone("ZZ") == "America/New_York"
        assert infer_timezone(None, default="America/Denver") == "America/Denver"


class TestLocalWallClock:
    def test_converts_to_lead_timezone(self):
        local = local_wall_clock(NOW, "America/New_York")
        assert local.hour == 10
        assert day_of_week(local) == 1  # Monday

    def test_invalid_timezone_falls_back_without_raising(self):
        local = local_wall_clock(NOW, "Not/AZone")
        assert local == NOW

    def test_day_of_week_sunday_is_zero(self):
        assert day_of_week(datetime(2026, 10, 18, 12, tzinfo=timezone.utc)) == 0
        assert day_of_week(datetime(2026, 10, 17, 12, tzinfo=timezone.utc)) == 6


class TestExtractFeatures:
    def test_never_dialed_lead(self):
        lead = LeadData(id="lead-1", phone_number="+15551234567")
        features = extract_features(lead, NOW)

        assert features.dial_attempts == 0
        assert features.recency_days == 0
        assert features.previous_outcomes == {}
        assert features.total_contacts == 0
        assert features.last_call_duration == 0
        assert features.timezone == "America/New_York"

    def test_history_counts(self):
        lead = LeadData(
            id="lead-2",
            phone_number="+13125550100",
            state="IL",
            dial_attempts=4,
            last_dialed_at=NOW - timedelta(days=15, hours=6),
            dispositions=[
                _disposition("NO_ANSWER"),
                _disposition("NO_ANSWER"),
                _disposition("CALLBACK", duration=120),
                _disposition("NOT_INTERESTED", duration=30),
                _disposition("MYSTERY_CODE"),
            ],
        )
        features = extract_features(lead, NOW)

        assert features.recency_days == 15
        assert features.days_since_last_contact == 15
        assert features.previous_outcomes == {
            "NO_ANSWER": 2,
            "CALLBACK": 1,
            "NOT_INTERESTED": 1,
            "MYSTERY_CODE": 1,
        }
        assert features.positive_outcomes == 1
        assert features.negative_outcomes == 1
        assert features.total_contacts == 5
        # Missing durations count as zero in the average
        assert features.last_call_duration == 30
        assert features.timezone == "America/Chicago"

    def test_explicit_timezone_wins_over_state(self):
        lead = LeadData(
            id="lead-3", phone_number="+13125550100", state="IL", timezone="America/Denver"
        )
        assert extract_features(lead, NOW).timezone == "America/Denver"

    def test_future_last_dialed_is_not_negative(self):
        lead = LeadData(
            id="lead-4", phone_number="+15551234567", last_dialed_at=NOW + timedelta(days=2)
        )
        assert extract_features(lead, NOW).recency_days == 0

    def test_naive_last_dialed_treated_as_utc(self):
        lead = LeadData(
            id="lead-5",
            phone_number="+15551234567",
            last_dialed_at=datetime(2026, 10, 2, 14, 0),
        )
        assert extract_features(lead, NOW).recency_days == 10
