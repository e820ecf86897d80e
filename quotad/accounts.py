from __future__ import annotations

from dataclasses import dataclass

from .constants import STATUS_NAMES, STATUS_QUOTA


@dataclass
class Account:
    username: str
    group: str = "Unknown"
    ratio: int = 0
    flags: str = ""
    week_bytes: int = 0
    day_bytes: int = 0
    week_files: int = 0
    day_files: int = 0
    status: int = STATUS_QUOTA
    passed_trial: bool = False
    days_remaining: int | None = None
    trial_start: int | None = None
    # Trial length for this account; None means the configured default.
    trial_days: int | None = None
    added: int | None = None
    last_updated: int | None = None

    @property
    def status_name(self) -> str:
        return STATUS_NAMES.get(self.status, str(self.status))
