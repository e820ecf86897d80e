import tomllib

import pytest

from quotad.cli import apply_config_data
from quotad.config import BotRuntimeConfig, ChannelBinding, ConfigError, validate_config

from conftest import make_config

SAMPLE = """
[server]
host = "irc.example.net"
port = 7000
tls = false
nickname = "statsbot"
password = ""

[[server.channels]]
name = "#stats"
key = "statskey1"

[[server.channels]]
name = "#other"
key = "otherkey"

[staff]
channels = ["#staff"]
key = "staffkey1"
users = ["boss", "helper"]

[announce]
channels = "#announce"
key = "announcekey"

[trial]
days = 14
quota_gb = 20

[quota]
fail_back_to_trial = true

[paths]
users_dir = "/srv/ftp/users"
tmp_dir = ""

[logging]
level = "DEBUG"
"""


def test_apply_config_data_maps_tables() -> None:
    cfg = apply_config_data(BotRuntimeConfig(), tomllib.loads(SAMPLE))

    assert cfg.host == "irc.example.net"
    assert cfg.port == 7000
    assert cfg.tls is False
    assert cfg.nickname == "statsbot"
    assert cfg.connect_password is None
    assert cfg.channels == (ChannelBinding("#stats", "statskey1"), ChannelBinding("#other", "otherkey"))
    assert cfg.monitored_channels == ("#stats", "#other")
    assert cfg.staff_users == ("boss", "helper")
    assert cfg.announce_channels == ("#announce",)
    assert cfg.trial_days == 14
    assert cfg.trial_threshold_bytes == 20 * 1024**3
    assert cfg.fail_back_to_trial is True
    assert cfg.users_dir == "/srv/ftp/users"
    assert cfg.tmp_dir is None
    assert cfg.log_level == "DEBUG"
    validate_config(cfg)


def test_bad_channel_entry() -> None:
    with pytest.raises(ConfigError):
        apply_config_data(BotRuntimeConfig(), {"server": {"channels": ["#stats"]}})


def test_validate_accepts_complete_config() -> None:
    validate_config(make_config())


def test_validate_reports_every_missing_field() -> None:
    with pytest.raises(ConfigError) as exc:
        validate_config(BotRuntimeConfig())
    text = str(exc.value)
    for field in ("server.host", "server.channels", "staff.users", "staff.channels", "staff.key"):
        assert field in text


def test_validate_rejects_short_channel_key() -> None:
    cfg = make_config(channels=(ChannelBinding("#stats", "abc"),))
    with pytest.raises(ConfigError, match="#stats"):
        validate_config(cfg)


def test_validate_requires_announce_key_when_announcing() -> None:
    with pytest.raises(ConfigError, match="announce.key"):
        validate_config(make_config(announce_key=None))
    validate_config(make_config(announce_key=None, announce_channels=()))
