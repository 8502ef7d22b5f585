"""Reputation score arithmetic."""

MIN_SCORE = 0
MAX_SCORE = 100

# (lower bound, level), checked top-down
REPUTATION_THRESHOLDS = (
    (90, "excellent"),
    (70, "good"),
    (50, "fair"),
    (30, "poor"),
)

# Fixed deltas applied by the service operations
FLAG_PENALTY = -20
BLOCK_PENALTY = -50
UNBLOCK_RECOVERY = 10
ANSWERED_CALL_BOOST = 1


def clamp_score(value: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, value))


def reputation_level(score: int) -> str:
    for lower_bound, level in REPUTATION_THRESHOLDS:
        if score >= lower_bound:
            return level
    return "critical"
