from dataclasses import replace
from datetime import datetime

import pytest

from quotad import fish
from quotad.config import BotRuntimeConfig, ChannelBinding
from quotad.ledger import AccountLedger
from quotad.store import SqliteAccountStore

# Wednesday and Sunday noon, local time.
WEDNESDAY = int(datetime(2026, 10, 14, 12, 0).timestamp())
SUNDAY = int(datetime(2026, 10, 18, 12, 0).timestamp())
DAY = 24 * 3600
GB = 1024**3

STATS_KEY = "statskey1"
STAFF_KEY = "staffkey1"
ANNOUNCE_KEY = "announcekey"


def make_config(**overrides) -> BotRuntimeConfig:
    cfg = BotRuntimeConfig(
        host="irc.example.net",
        nickname="quotad",
        channels=(ChannelBinding("#stats", STATS_KEY),),
        staff_channels=("#staff",),
        staff_key=STAFF_KEY,
        staff_users=("boss",),
        announce_channels=("#announce",),
        announce_key=ANNOUNCE_KEY,
        trial_days=7,
        trial_quota_gb=10.0,
        quota_gb=50.0,
        log_console=False,
    )
    return replace(cfg, **overrides)


class FakeRecords:
    def __init__(self, fail: bool = False) -> None:
        self.flags: list[tuple[str, str]] = []
        self.farewells: list[tuple[str, str, str, bool]] = []
        self.fail = fail

    def append_flags(self, username, flags):
        if self.fail:
            raise OSError("disk full")
        self.flags.append((username, flags))

    def write_farewell(self, username, reason, stats, is_policy_failure):
        self.farewells.append((username, reason, stats, is_policy_failure))


class FakeSender:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send_encrypted(self, channel, text, key):
        self.sent.append((channel, fish.encode(text, key), key))
        return True

    def texts(self) -> list[str]:
        return [fish.decode(env, key) for _, env, key in self.sent]


class Clock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def config() -> BotRuntimeConfig:
    return make_config()


@pytest.fixture
def store():
    s = SqliteAccountStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def records() -> FakeRecords:
    return FakeRecords()


@pytest.fixture
def clock() -> Clock:
    return Clock(WEDNESDAY)


@pytest.fixture
def ledger(config, store, records, clock) -> AccountLedger:
    return AccountLedger(config, store, records, clock=clock)
