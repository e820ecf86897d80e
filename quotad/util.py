from __future__ import annotations

import math
import os
from datetime import datetime, timedelta

from .constants import SECONDS_PER_DAY


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def end_of_week(now: float) -> datetime:
    """Next Sunday 23:59:59.999 in local time (today, if today is Sunday)."""
    dt = datetime.fromtimestamp(now)
    days_ahead = (6 - dt.weekday()) % 7
    return (dt + timedelta(days=days_ahead)).replace(
        hour=23, minute=59, second=59, microsecond=999000
    )


def days_until_end_of_week(now: float) -> int:
    remaining = end_of_week(now).timestamp() - now
    return int(remaining // SECONDS_PER_DAY)


def time_remaining_text(now: float) -> str:
    remaining = max(int(end_of_week(now).timestamp() - now), 0)
    days, rest = divmod(remaining, SECONDS_PER_DAY)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60
    return f"{days} days, {hours} hours, {minutes} minutes"


def trial_seconds_remaining(trial_start: float, trial_days: int, now: float) -> float:
    return max(trial_start + trial_days * SECONDS_PER_DAY - now, 0.0)


def whole_days(seconds: float) -> int:
    if seconds <= 0:
        return 0
    return int(math.ceil(seconds / SECONDS_PER_DAY))


def format_date(epoch: float) -> str:
    return datetime.fromtimestamp(epoch).strftime("%Y-%m-%d %H:%M")
