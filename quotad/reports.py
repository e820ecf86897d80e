"""Channel report formatting (IRC bold/colour codes included)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Sequence

from .constants import (
    IRC_BOLD as B,
    IRC_COLOR as C,
    IRC_CYAN,
    IRC_GREEN,
    IRC_PURPLE,
    IRC_RED,
    IRC_RESET as R,
)
from .util import time_remaining_text, trial_seconds_remaining, whole_days

if TYPE_CHECKING:
    from .accounts import Account
    from .config import BotRuntimeConfig


def format_size(num_bytes: int | float) -> str:
    n = float(num_bytes)
    if n >= 1024**4:
        return f"{n / 1024**4:.1f}TB"
    if n >= 1024**3:
        return f"{n / 1024**3:.1f}GB"
    if n >= 1024**2:
        return f"{n / 1024**2:.1f}MB"
    return f"{n / 1024:.1f}KB"


def _gb(value: float) -> str:
    return f"{float(value):g}"


def _rank(i: int, passing: bool) -> str:
    color = IRC_GREEN if passing else IRC_RED
    return f"[ {color}{i:02d}{R} ]"


def _verdict(passing: bool) -> str:
    if passing:
        return f"{IRC_GREEN}{B}PASSING{B}{R}"
    return f"{IRC_RED}{B}FAILING{B}{R}"


def quota_block(accounts: Sequence[Account], cfg: BotRuntimeConfig, now: float) -> list[str]:
    threshold = cfg.quota_threshold_bytes
    lines = [
        f"{B}WEEKLY QUOTA:{B} [ {len(accounts)} Users - {time_remaining_text(now)} Remaining"
        f" - (Min {B}{_gb(cfg.quota_gb)}GB{B}) ]"
    ]
    for i, a in enumerate(accounts, 1):
        passing = a.week_bytes >= threshold
        lines.append(
            f"{_rank(i, passing)} {a.username}/{a.group} ( {B}{format_size(a.week_bytes)} Up{B} )"
            f" is currently {_verdict(passing)}."
        )
    return lines


def trial_days_left(a: Account, cfg: BotRuntimeConfig, now: float) -> int:
    start = a.trial_start if a.trial_start is not None else a.added
    if start is None:
        return int(a.days_remaining or 0)
    return whole_days(trial_seconds_remaining(start, int(a.trial_days or cfg.trial_days), now))


def trial_block(accounts: Sequence[Account], cfg: BotRuntimeConfig, now: float) -> list[str]:
    threshold = cfg.trial_threshold_bytes
    lines = [
        f"{B}TRIAL QUOTA:{B} [ Trial List - {len(accounts)} Trialing"
        f" - (Min {B}{_gb(cfg.trial_quota_gb)}GB{B}) ]"
    ]
    for i, a in enumerate(accounts, 1):
        passing = a.week_bytes >= threshold
        lines.append(
            f"{_rank(i, passing)} {a.username}/{a.group} ( {B}{format_size(a.week_bytes)} Up{B} )"
            f" is currently {_verdict(passing)}. ({trial_days_left(a, cfg, now)} Days Remaining)"
        )
    return lines


def status_report(
    quota: Sequence[Account], trial: Sequence[Account], cfg: BotRuntimeConfig, now: float
) -> list[str]:
    return [*quota_block(quota, cfg, now), "", *trial_block(trial, cfg, now)]


def daily_report(accounts: Iterable[Account]) -> list[str]:
    users = list(accounts)
    if not users:
        return ["No uploads recorded for the day."]

    lines = [f"{B}{IRC_CYAN}TOP UPLOADERS FOR THE DAY{B}{C}: [ {B}{len(users)}{B} Users ]"]
    total_files = 0
    total_bytes = 0
    for i, a in enumerate(users, 1):
        total_files += a.day_files
        total_bytes += a.day_bytes
        lines.append(
            f"[ {B}{IRC_PURPLE}{i:02d}{B}{C} ] {B}{a.username}{B}"
            f" - ({B}{a.day_files}{B} Files) - ({B}{format_size(a.day_bytes)}{B})"
        )
    lines.append(
        f"{B}{IRC_CYAN}TOTAL UPLOADS FOR THE DAY{B}{C}: ( {B}{total_files}{B} Files )"
        f" - ( {B}{format_size(total_bytes)}{B} )"
    )
    return lines
