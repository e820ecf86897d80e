from __future__ import annotations

import argparse
import os
import sys
import tomllib
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

from .config import BotRuntimeConfig, ChannelBinding, ConfigError, validate_config
from .logging_config import configure_logging
from .paths import default_config_path, default_database_path, ensure_private_dir
from .service import BotService

# (table, key) in the TOML file -> BotRuntimeConfig field
_TABLE_FIELDS: dict[tuple[str, str], str] = {
    ("server", "host"): "host",
    ("server", "port"): "port",
    ("server", "tls"): "tls",
    ("server", "tls_verify"): "tls_verify",
    ("server", "nickname"): "nickname",
    ("server", "realname"): "realname",
    ("server", "password"): "connect_password",
    ("server", "reconnect_delay_s"): "reconnect_delay_s",
    ("staff", "channels"): "staff_channels",
    ("staff", "key"): "staff_key",
    ("staff", "users"): "staff_users",
    ("announce", "enabled"): "show_daily_report",
    ("announce", "channels"): "announce_channels",
    ("announce", "key"): "announce_key",
    ("announce", "interval_s"): "daily_report_interval_s",
    ("announce", "limit"): "daily_report_limit",
    ("commands", "status_trigger"): "status_trigger",
    ("commands", "control_trigger"): "control_trigger",
    ("commands", "status_limit"): "status_limit",
    ("trial", "enabled"): "trial_enabled",
    ("trial", "days"): "trial_days",
    ("trial", "quota_gb"): "trial_quota_gb",
    ("trial", "fail_flags"): "trial_fail_flags",
    ("quota", "enabled"): "quota_enabled",
    ("quota", "quota_gb"): "quota_gb",
    ("quota", "fail_flags"): "quota_fail_flags",
    ("quota", "fail_back_to_trial"): "fail_back_to_trial",
    ("quota", "sweep_interval_s"): "sweep_interval_s",
    ("accounts", "default_status"): "default_status",
    ("accounts", "delete_flags"): "delete_flags",
    ("accounts", "deleted_flag"): "deleted_flag",
    ("accounts", "user_skip"): "user_skip",
    ("accounts", "excluded_groups"): "excluded_groups",
    ("paths", "users_dir"): "users_dir",
    ("paths", "bye_dir"): "bye_dir",
    ("paths", "tmp_dir"): "tmp_dir",
    ("paths", "database"): "database_path",
    ("logging", "level"): "log_level",
    ("logging", "console"): "log_console",
    ("logging", "file"): "log_file",
    ("logging", "format"): "log_format",
    ("logging", "datefmt"): "log_datefmt",
}

_TUPLE_FIELDS = {
    f.name for f in fields(BotRuntimeConfig) if str(f.type).startswith("tuple[str")
}
_OPTIONAL_FIELDS = {
    f.name for f in fields(BotRuntimeConfig) if "None" in str(f.type)
}


def load_toml(path: str) -> dict:
    with open(path, "rb") as f:
        return tomllib.load(f)


def apply_config_data(cfg: BotRuntimeConfig, data: dict[str, Any]) -> BotRuntimeConfig:
    updates: dict[str, Any] = {}

    for (table, key), name in _TABLE_FIELDS.items():
        section = data.get(table)
        if isinstance(section, dict) and key in section:
            updates[name] = section[key]

    server = data.get("server")
    if isinstance(server, dict) and isinstance(server.get("channels"), list):
        bindings = []
        for entry in server["channels"]:
            if not isinstance(entry, dict):
                raise ConfigError("server.channels entries must be tables with name and key")
            bindings.append(ChannelBinding(name=str(entry.get("name", "")), key=str(entry.get("key", ""))))
        updates["channels"] = tuple(bindings)

    for name in list(updates):
        value = updates[name]
        if name in _TUPLE_FIELDS:
            if isinstance(value, str):
                value = [value]
            updates[name] = tuple(str(x) for x in value)
        elif name in _OPTIONAL_FIELDS and value == "":
            updates[name] = None

    return replace(cfg, **updates) if updates else cfg


def _write_default_config(config_path: str) -> None:
    cfg_dir = os.path.dirname(config_path)
    if cfg_dir:
        ensure_private_dir(Path(cfg_dir))

    content = f"""# quotad configuration (TOML)
#
# This file was created on first run.
# Edit it, then start quotad again.

[server]
host = ""
port = 6697
tls = true
# Verify the server certificate (many private networks use self-signed ones).
tls_verify = false
nickname = "quotad"
realname = "StatsBot"
# Sent as PASS before registering (e.g. bouncer or services login).
password = ""
# Seconds to wait before reconnecting after the connection drops (0 exits).
reconnect_delay_s = 0.0

# Monitored channels. Each has its own FiSH key (4-56 characters).
# [[server.channels]]
# name = "#stats"
# key = "changeme"

[staff]
channels = []
key = ""
users = []

[announce]
# Daily top uploaders leaderboard.
enabled = true
channels = []
key = ""
interval_s = 86400.0
limit = 10

[commands]
status_trigger = "!top"
control_trigger = "!ft"
status_limit = 25

[trial]
enabled = true
days = 7
quota_gb = 10.0
fail_flags = "6"

[quota]
enabled = true
quota_gb = 50.0
fail_flags = "6"
fail_back_to_trial = false
sweep_interval_s = 900.0

[accounts]
# Status given to accounts seen for the first time: "quota" or "trial".
default_status = "quota"
# Flags added by the staff delete command.
delete_flags = "6"
# Accounts whose FLAGS contain this are removed from the ledger.
deleted_flag = "6"
user_skip = []
excluded_groups = []

[paths]
users_dir = ""
bye_dir = ""
tmp_dir = ""
database = {str(default_database_path())!r}

[logging]
level = "INFO"
console = true
file = ""
format = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
datefmt = ""
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(content)
    try:
        os.chmod(config_path, 0o600)
    except OSError:
        pass


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="quotad", description="Run the upload quota IRC operator")
    p.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to a TOML config file (created on first run)",
    )
    p.add_argument("--database", default=None, help="Account database path override")
    p.add_argument("--users-dir", default=None, help="User record directory override")
    p.add_argument(
        "--sweep-interval",
        type=float,
        default=None,
        help="Seconds between ledger sweeps",
    )
    p.add_argument(
        "--check",
        action="store_true",
        help="Validate the configuration and exit",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )
    return p


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    config_path = str(args.config)
    if not os.path.exists(config_path):
        _write_default_config(config_path)
        print(
            "Created a default quotad config. Edit it before starting:\n"
            f"- Config: {config_path}\n"
            "\nThen re-run quotad.",
            file=sys.stderr,
        )
        raise SystemExit(0)

    cfg = BotRuntimeConfig(config_path=config_path)
    try:
        cfg = apply_config_data(cfg, load_toml(config_path))
    except (OSError, tomllib.TOMLDecodeError, ConfigError) as e:
        print(f"quotad: cannot load {config_path}: {e}", file=sys.stderr)
        raise SystemExit(2)

    if args.database is not None:
        cfg = replace(cfg, database_path=str(args.database))
    if args.users_dir is not None:
        cfg = replace(cfg, users_dir=str(args.users_dir))
    if args.sweep_interval is not None:
        cfg = replace(cfg, sweep_interval_s=float(args.sweep_interval))
    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))

    configure_logging(cfg, override_level=args.log_level, override_file=args.log_file)

    try:
        validate_config(cfg)
    except ConfigError as e:
        print(f"quotad: invalid configuration: {e}", file=sys.stderr)
        raise SystemExit(2)

    if args.check:
        print("Configuration OK", file=sys.stderr)
        return

    svc = BotService(cfg)
    svc.start()
    svc.run_forever()


if __name__ == "__main__":
    main()
