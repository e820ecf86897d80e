from __future__ import annotations

from dataclasses import dataclass

from .constants import (
    DEFAULT_CONTROL_TRIGGER,
    DEFAULT_STATUS_TRIGGER,
    FISH_KEY_MAX,
    FISH_KEY_MIN,
)


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ChannelBinding:
    name: str
    key: str


@dataclass(frozen=True)
class BotRuntimeConfig:
    config_path: str | None = None

    # IRC server
    host: str = ""
    port: int = 6697
    tls: bool = True
    tls_verify: bool = False
    nickname: str = "quotad"
    realname: str = "StatsBot"
    connect_password: str | None = None
    reconnect_delay_s: float = 0.0

    # Monitored channels, each with its own FiSH key
    channels: tuple[ChannelBinding, ...] = ()

    # Staff
    staff_channels: tuple[str, ...] = ()
    staff_key: str | None = None
    staff_users: tuple[str, ...] = ()

    # Daily leaderboard
    show_daily_report: bool = True
    announce_channels: tuple[str, ...] = ()
    announce_key: str | None = None
    daily_report_interval_s: float = 24 * 3600.0
    daily_report_limit: int = 10

    # Commands
    status_trigger: str = DEFAULT_STATUS_TRIGGER
    control_trigger: str = DEFAULT_CONTROL_TRIGGER
    status_limit: int = 25

    # Ledger
    sweep_interval_s: float = 900.0
    default_status: str = "quota"
    trial_enabled: bool = True
    trial_days: int = 7
    trial_quota_gb: float = 10.0
    trial_fail_flags: str = "6"
    quota_enabled: bool = True
    quota_gb: float = 50.0
    quota_fail_flags: str = "6"
    fail_back_to_trial: bool = False
    delete_flags: str = "6"
    deleted_flag: str = "6"

    # Records and storage
    users_dir: str | None = None
    bye_dir: str | None = None
    tmp_dir: str | None = None
    database_path: str | None = None
    user_skip: tuple[str, ...] = ()
    excluded_groups: tuple[str, ...] = ()

    log_level: str = "INFO"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None

    @property
    def monitored_channels(self) -> tuple[str, ...]:
        return tuple(b.name for b in self.channels)

    @property
    def trial_threshold_bytes(self) -> int:
        return int(float(self.trial_quota_gb) * 1024**3)

    @property
    def quota_threshold_bytes(self) -> int:
        return int(float(self.quota_gb) * 1024**3)


def _key_ok(key: str | None) -> bool:
    return isinstance(key, str) and FISH_KEY_MIN <= len(key) <= FISH_KEY_MAX


def validate_config(cfg: BotRuntimeConfig) -> None:
    """Refuse to start without the fields monitoring depends on.

    Raises ConfigError naming every problem found.
    """

    problems: list[str] = []

    if not str(cfg.host).strip():
        problems.append("server.host is required")
    if not str(cfg.nickname).strip():
        problems.append("server.nickname is required")
    if not (0 < int(cfg.port) < 65536):
        problems.append(f"server.port out of range: {cfg.port}")
    if not cfg.channels:
        problems.append("server.channels must list at least one channel")
    for b in cfg.channels:
        if not b.name:
            problems.append("server.channels entry without a name")
        elif not _key_ok(b.key):
            problems.append(f"key for {b.name} must be {FISH_KEY_MIN}-{FISH_KEY_MAX} characters")
    if not cfg.staff_users:
        problems.append("staff.users must list at least one nick")
    if not cfg.staff_channels:
        problems.append("staff.channels must list at least one channel")
    if not _key_ok(cfg.staff_key):
        problems.append(f"staff.key must be {FISH_KEY_MIN}-{FISH_KEY_MAX} characters")
    if cfg.announce_channels and not _key_ok(cfg.announce_key):
        problems.append(f"announce.key must be {FISH_KEY_MIN}-{FISH_KEY_MAX} characters")
    if cfg.default_status not in ("quota", "trial"):
        problems.append(f"accounts.default_status must be 'quota' or 'trial', not {cfg.default_status!r}")
    if int(cfg.trial_days) <= 0:
        problems.append("trial.days must be positive")
    if float(cfg.sweep_interval_s) <= 0:
        problems.append("quota.sweep_interval_s must be positive")

    if problems:
        raise ConfigError("; ".join(problems))
