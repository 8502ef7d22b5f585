"""Caller-ID selection: candidate filtering, local presence and rotation.

These functions work on already-fetched numbers and never touch the
database, so the whole selection is deterministic given `now` and `rng`.
"""
import random
from datetime import datetime, timezone
from typing import Optional, Sequence

from clock import as_utc
from db.models import CallerIdNumber, CallerIdPool

_NEVER_USED = datetime.min.replace(tzinfo=timezone.utc)


def is_selectable(number: CallerIdNumber, now: datetime) -> bool:
    """active, or cooling_down with a cooldown that has already passed."""
    if number.status == "active":
        return True
    if number.status == "cooling_down" and number.cooldown_until is not None:
        return as_utc(number.cooldown_until) <= now
    return False


def _last_used(number: CallerIdNumber) -> datetime:
    return as_utc(number.last_used_at) or _NEVER_USED


def _weighted_pick(numbers: Sequence[CallerIdNumber], rng: random.Random) -> CallerIdNumber:
    """Cumulative draw weighted by reputation_score."""
    total = sum(n.reputation_score for n in numbers)
    if total <= 0:
        return numbers[0]
    r = rng.random() * total
    upto = 0.0
    for number in numbers:
        upto += number.reputation_score
        if r < upto:
            return number
    return numbers[-1]


def apply_rotation_strategy(
    numbers: Sequence[CallerIdNumber],
    strategy: str,
    rng: Optional[random.Random] = None,
) -> Optional[CallerIdNumber]:
    """Pick one number according to the pool's rotation strategy.

    round_robin and least_recently_used both return the number used longest
    ago (never-used numbers first).
    """
    if not numbers:
        return None
    rng = rng or random.Random()

    if strategy in ("round_robin", "least_recently_used"):
        return min(numbers, key=_last_used)
    if strategy == "random":
        return rng.choice(list(numbers))
    if strategy == "weighted":
        return _weighted_pick(numbers, rng)
    return numbers[0]


def select_number(
    numbers: Sequence[CallerIdNumber],
    pool: CallerIdPool,
    destination_area_code: Optional[str],
    now: datetime,
    rng: Optional[random.Random] = None,
) -> Optional[CallerIdNumber]:
    """Choose the caller ID to present for one outbound call.

    Returns None for an inactive pool or when no number is selectable. When
    every candidate has reached max_calls_per_number the least-used one is
    still returned.
    """
    if not pool.is_active:
        return None

    candidates = [n for n in numbers if is_selectable(n, now)]
    if not candidates:
        return None

    # Local presence is best-effort: no match keeps the full candidate set
    if pool.local_presence_enabled and destination_area_code:
        local = [n for n in candidates if n.area_code == destination_area_code]
        if local:
            candidates = local

    selected = apply_rotation_strategy(candidates, pool.rotation_strategy, rng)
    if selected.calls_today < pool.max_calls_per_number:
        return selected

    under_cap = [n for n in candidates if n.calls_today < pool.max_calls_per_number]
    if under_cap:
        return apply_rotation_strategy(under_cap, pool.rotation_strategy, rng)
    return min(candidates, key=lambda n: n.calls_today)
