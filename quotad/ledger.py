"""Account lifecycle: Trial, Quota and Disabled transitions.

Transitions happen only from a sweep, a staff control command, or record
import. Every read-modify-write of one account holds that account's lock, so
a sweep and a control command never interleave on the same username.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Callable

from .accounts import Account
from .constants import STATUS_DISABLED, STATUS_QUOTA, STATUS_TRIAL
from .reports import format_size
from .util import days_until_end_of_week, trial_seconds_remaining, whole_days

if TYPE_CHECKING:
    from .config import BotRuntimeConfig
    from .records import UserRecord, UserRecords
    from .store import AccountStore


class AccountLedger:
    def __init__(
        self,
        config: BotRuntimeConfig,
        store: AccountStore,
        records: UserRecords,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.store = store
        self.records = records
        self.clock = clock
        self.log = logging.getLogger("quotad.ledger")

        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def account_lock(self, username: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(username)
            if lock is None:
                lock = self._locks[username] = threading.RLock()
            return lock

    def _now(self) -> int:
        return int(self.clock())

    def _save(self, acct: Account, now: int) -> None:
        acct.last_updated = now
        self.store.upsert(acct)

    # Sweep

    def sweep(self) -> None:
        # Snapshot both lists first; a trial promoted here waits for the next sweep.
        trial = self.store.by_status(STATUS_TRIAL) if self.config.trial_enabled else []
        quota = self.store.by_status(STATUS_QUOTA) if self.config.quota_enabled else []
        for acct in trial:
            self._evaluate_one(acct.username, STATUS_TRIAL, self.evaluate_trial)
        for acct in quota:
            self._evaluate_one(acct.username, STATUS_QUOTA, self.evaluate_quota)

    def _evaluate_one(
        self, username: str, status: int, fn: Callable[[Account, int], None]
    ) -> None:
        try:
            with self.account_lock(username):
                # Re-read under the lock; a control command may have moved it.
                acct = self.store.get(username)
                if acct is None or acct.status != status:
                    return
                fn(acct, self._now())
        except Exception:
            self.log.exception("Evaluation failed for %s", username)

    def evaluate_trial(self, acct: Account, now: int) -> None:
        length = int(acct.trial_days or self.config.trial_days)
        start = acct.trial_start if acct.trial_start is not None else acct.added
        if start is None:
            start = now

        remaining = trial_seconds_remaining(start, length, now)
        if remaining > 0:
            days = whole_days(remaining)
            if acct.days_remaining != days or acct.trial_start != start:
                acct.days_remaining = days
                acct.trial_start = start
                self._save(acct, now)
            self.log.info("Trial %s: %s days remaining", acct.username, days)
            return

        if acct.week_bytes >= self.config.trial_threshold_bytes:
            acct.status = STATUS_QUOTA
            acct.passed_trial = True
            acct.days_remaining = days_until_end_of_week(now)
            self._save(acct, now)
            self.log.info("Trial %s: passed, promoted to quota", acct.username)
        elif self.config.fail_back_to_trial:
            self._restart_trial(acct, now)
            self._save(acct, now)
            self.log.info("Trial %s: failed, trial restarted", acct.username)
        else:
            self._disable(acct, now, "Trial failure", self.config.trial_fail_flags)

    def evaluate_quota(self, acct: Account, now: int) -> None:
        days = days_until_end_of_week(now)
        if acct.days_remaining != days:
            acct.days_remaining = days
            self._save(acct, now)
            self.log.info("Quota %s: days remaining corrected to %s", acct.username, days)

        if days > 0:
            return

        if acct.week_bytes >= self.config.quota_threshold_bytes:
            if not acct.passed_trial:
                acct.passed_trial = True
                self._save(acct, now)
            self.log.debug("Quota %s: passed for the week", acct.username)
        elif self.config.fail_back_to_trial:
            self._restart_trial(acct, now)
            self._save(acct, now)
            self.log.info("Quota %s: failed, moved back to trial", acct.username)
        else:
            self._disable(acct, now, "Quota failure", self.config.quota_fail_flags)

    def _restart_trial(self, acct: Account, now: int) -> None:
        acct.status = STATUS_TRIAL
        acct.trial_start = now
        acct.trial_days = int(self.config.trial_days)
        acct.days_remaining = int(self.config.trial_days)

    def _disable(self, acct: Account, now: int, reason: str, flags: str) -> None:
        try:
            self.records.append_flags(acct.username, flags)
            self.log.info("Added flags %r to %s", flags, acct.username)
        except Exception:
            self.log.exception("Failed to add flags to %s after %s", acct.username, reason.lower())

        try:
            stats = f"Uploaded: {format_size(acct.week_bytes)}"
            self.records.write_farewell(acct.username, reason, stats, False)
        except Exception:
            self.log.exception("Failed to write farewell for %s", acct.username)

        acct.status = STATUS_DISABLED
        acct.passed_trial = False
        acct.days_remaining = None
        self._save(acct, now)
        self.log.warning("Disabled %s: %s", acct.username, reason)

    # Control commands. Each returns the updated account, or None if unknown.

    def start_trial(self, username: str) -> Account | None:
        with self.account_lock(username):
            acct = self.store.get(username)
            if acct is None:
                return None
            now = self._now()
            self._restart_trial(acct, now)
            acct.passed_trial = False
            self._save(acct, now)
            self.log.info("Control: %s set to trial", username)
            return acct

    def set_quota(self, username: str) -> Account | None:
        with self.account_lock(username):
            acct = self.store.get(username)
            if acct is None:
                return None
            now = self._now()
            acct.status = STATUS_QUOTA
            acct.passed_trial = True
            acct.days_remaining = days_until_end_of_week(now)
            self._save(acct, now)
            self.log.info("Control: %s set to quota", username)
            return acct

    def extend_trial(self, username: str, days: int) -> Account | None:
        """Restart the countdown of a Trial account at `days`; other states are left alone."""
        if days <= 0:
            raise ValueError("days must be positive")
        with self.account_lock(username):
            acct = self.store.get(username)
            if acct is None or acct.status != STATUS_TRIAL:
                return acct
            now = self._now()
            acct.trial_start = now
            acct.trial_days = days
            acct.days_remaining = days
            self._save(acct, now)
            self.log.info("Control: %s trial extended to %s days", username, days)
            return acct

    def mark_for_deletion(self, username: str) -> None:
        self.records.append_flags(username, self.config.delete_flags)
        self.log.info("Control: %s marked for deletion", username)

    # Import

    def import_record(self, rec: UserRecord) -> Account:
        """Create or refresh an account from its user record.

        Known accounts keep their status; only counters are refreshed.
        """
        with self.account_lock(rec.username):
            now = self._now()
            acct = self.store.get(rec.username)
            if acct is None:
                acct = Account(username=rec.username, added=rec.added or now)
                if self.config.default_status == "trial":
                    self._restart_trial(acct, now)
                else:
                    acct.status = STATUS_QUOTA
                    acct.days_remaining = days_until_end_of_week(now)
                self.log.info("Imported %s as %s", rec.username, acct.status_name)

            acct.group = rec.group
            acct.ratio = rec.ratio
            acct.flags = rec.flags
            acct.week_bytes = rec.week_bytes
            acct.week_files = rec.week_files
            acct.day_bytes = rec.day_bytes
            acct.day_files = rec.day_files
            if rec.added:
                acct.added = rec.added
            self._save(acct, now)
            return acct

    def forget(self, username: str) -> bool:
        with self.account_lock(username):
            return self.store.delete(username)
