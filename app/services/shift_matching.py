from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, time

from app.services.reconcile_types import DEFAULT_CONFIG, Shift, minutes_of_day

DEFAULT_SHIFT_MATCH_TOLERANCE_MINUTES = DEFAULT_CONFIG.shift_match_tolerance_minutes


def find_best_shift(
    check_in_time: datetime | time,
    shifts: Sequence[Shift],
    *,
    tolerance_minutes: int = DEFAULT_SHIFT_MATCH_TOLERANCE_MINUTES,
) -> Shift | None:
    """Nearest start time within tolerance; the first shift wins ties."""
    if not shifts:
        return None

    candidate_minutes = minutes_of_day(check_in_time)
    best_shift: Shift | None = None
    best_diff: int | None = None
    for shift in shifts:
        diff = abs(candidate_minutes - shift.start_minutes)
        if diff > tolerance_minutes:
            continue
        if best_diff is None or diff < best_diff:
            best_shift = shift
            best_diff = diff
    return best_shift


def compute_late_minutes(check_in_time: datetime | time, shift: Shift) -> int:
    return max(0, minutes_of_day(check_in_time) - shift.start_minutes)
