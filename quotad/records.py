"""FTP daemon user record files.

One file per user, named after the user, holding lines such as::

    GROUP Members 1
    FLAGS 3
    RATIO 0
    WKUP 12 2048000 60
    DAYUP 2 512000 10
    ADDED 1700000000 staff

Transfer counters are stored in KiB.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

from .constants import REC_ADDED, REC_DAYUP, REC_FLAGS, REC_GROUP, REC_RATIO, REC_WKUP
from .util import expand_path

if TYPE_CHECKING:
    from .config import BotRuntimeConfig
    from .ledger import AccountLedger


class RecordError(RuntimeError):
    pass


@dataclass(frozen=True)
class UserRecord:
    username: str
    group: str = "Unknown"
    flags: str = ""
    ratio: int = 0
    week_files: int = 0
    week_bytes: int = 0
    day_files: int = 0
    day_bytes: int = 0
    added: int | None = None


def _int(values: list[str], idx: int) -> int:
    try:
        return int(values[idx])
    except (IndexError, ValueError):
        return 0


def parse_user_record(username: str, text: str) -> UserRecord:
    fields: dict[str, object] = {}
    for line in text.splitlines():
        words = line.split()
        if not words:
            continue
        key, values = words[0], words[1:]
        if key == REC_GROUP and values and "group" not in fields:
            fields["group"] = values[0]
        elif key == REC_FLAGS:
            fields["flags"] = values[0] if values else ""
        elif key == REC_RATIO:
            fields["ratio"] = _int(values, 0)
        elif key == REC_WKUP:
            fields["week_files"] = _int(values, 0)
            fields["week_bytes"] = _int(values, 1) * 1024
        elif key == REC_DAYUP:
            fields["day_files"] = _int(values, 0)
            fields["day_bytes"] = _int(values, 1) * 1024
        elif key == REC_ADDED:
            fields["added"] = _int(values, 0) or None
    return UserRecord(username=username, **fields)  # type: ignore[arg-type]


def _check_username(username: str) -> None:
    if not username or "/" in username or username.startswith("."):
        raise RecordError(f"invalid username {username!r}")


class UserRecords:
    """Reads user records and applies the two mutations the ledger needs."""

    def __init__(self, users_dir: str | None, bye_dir: str | None, tmp_dir: str | None = None) -> None:
        self.users_dir = Path(expand_path(users_dir)) if users_dir else None
        self.bye_dir = Path(expand_path(bye_dir)) if bye_dir else None
        self.tmp_dir = Path(expand_path(tmp_dir)) if tmp_dir else None
        self.log = logging.getLogger("quotad.records")

    @classmethod
    def from_config(cls, cfg: BotRuntimeConfig) -> UserRecords:
        return cls(cfg.users_dir, cfg.bye_dir, cfg.tmp_dir)

    def _user_path(self, username: str) -> Path:
        if self.users_dir is None:
            raise RecordError("users_dir is not configured")
        _check_username(username)
        return self.users_dir / username

    def read(self, username: str) -> UserRecord:
        path = self._user_path(username)
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise RecordError(f"cannot read user file {path}: {e}") from e
        return parse_user_record(username, text)

    def iter_records(self) -> Iterator[UserRecord]:
        if self.users_dir is None:
            return
        for entry in sorted(self.users_dir.iterdir()):
            if not entry.is_file() or entry.name.endswith(".lock") or entry.name.startswith("."):
                continue
            try:
                yield self.read(entry.name)
            except RecordError as e:
                self.log.warning("Skipping user file %s: %s", entry.name, e)

    def append_flags(self, username: str, flags: str) -> None:
        """Prepend `flags` to the FLAGS value, rewriting the file atomically."""
        path = self._user_path(username)
        try:
            lines = path.read_text(encoding="utf-8").split("\n")
        except OSError as e:
            raise RecordError(f"cannot read user file {path}: {e}") from e

        prefix = REC_FLAGS + " "
        current = next((ln.split()[1] for ln in lines if ln.startswith(prefix) and len(ln.split()) > 1), "")
        kept = [ln for ln in lines if not ln.startswith(prefix)]
        while kept and kept[-1] == "":
            kept.pop()
        kept.append(f"{prefix}{flags}{current}")

        tmp_dir = self.tmp_dir or path.parent
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f"{username}.", suffix=".tmp", dir=tmp_dir)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write("\n".join(kept) + "\n")
            shutil.copymode(path, tmp_name)
            shutil.move(tmp_name, path)
        except OSError as e:
            raise RecordError(f"cannot rewrite user file {path}: {e}") from e

    def write_farewell(self, username: str, reason: str, stats: str, is_policy_failure: bool) -> Path:
        if self.bye_dir is None:
            raise RecordError("bye_dir is not configured")
        _check_username(username)
        path = self.bye_dir / f"{username}.bye"
        lines = [f"You were deleted because of {reason.lower()}.", f"Stats: {stats}"]
        if is_policy_failure:
            lines.append(f"Policy: {reason}")
        try:
            path.write_text("\n".join(lines) + "\n", encoding="utf-8")
            os.chmod(path, 0o666)
        except OSError as e:
            raise RecordError(f"cannot write farewell {path}: {e}") from e
        self.log.info("Wrote farewell for %s (%s)", username, reason)
        return path


def sync_accounts(records: UserRecords, ledger: AccountLedger, cfg: BotRuntimeConfig) -> int:
    """Import every user record into the ledger; returns the number imported."""
    if records.users_dir is None:
        return 0

    skip = set(cfg.user_skip)
    excluded = set(cfg.excluded_groups)
    count = 0
    for rec in records.iter_records():
        if rec.username in skip:
            continue
        if cfg.deleted_flag and cfg.deleted_flag in rec.flags:
            if ledger.forget(rec.username):
                ledger.log.info("Removed %s: deletion flag set", rec.username)
            continue
        if rec.group in excluded:
            continue
        try:
            ledger.import_record(rec)
            count += 1
        except Exception:
            ledger.log.exception("Import failed for %s", rec.username)
    return count
