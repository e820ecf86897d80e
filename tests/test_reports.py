import re

from quotad.accounts import Account
from quotad.constants import STATUS_TRIAL
from quotad.reports import daily_report, format_size, status_report

from conftest import DAY, GB, WEDNESDAY, make_config


def _plain(line: str) -> str:
    return re.sub(r"\x03\d{0,2}|[\x02\x0f]", "", line)


def test_format_size_units() -> None:
    assert format_size(0) == "0.0KB"
    assert format_size(512 * 1024) == "512.0KB"
    assert format_size(3 * 1024**2 // 2) == "1.5MB"
    assert format_size(50 * GB) == "50.0GB"
    assert format_size(2 * 1024**4) == "2.0TB"


def test_status_report_layout() -> None:
    cfg = make_config()
    quota = [Account("alice", group="Members", week_bytes=60 * GB)]
    trial = [
        Account("tom", group="Trials", week_bytes=GB, status=STATUS_TRIAL, trial_start=WEDNESDAY - DAY)
    ]
    lines = [_plain(line) for line in status_report(quota, trial, cfg, WEDNESDAY)]

    assert lines[0] == (
        "WEEKLY QUOTA: [ 1 Users - 4 days, 11 hours, 59 minutes Remaining - (Min 50GB) ]"
    )
    assert lines[1] == "[ 01 ] alice/Members ( 60.0GB Up ) is currently PASSING."
    assert lines[2] == ""
    assert lines[3] == "TRIAL QUOTA: [ Trial List - 1 Trialing - (Min 10GB) ]"
    assert lines[4] == "[ 01 ] tom/Trials ( 1.0GB Up ) is currently FAILING. (6 Days Remaining)"


def test_status_report_with_no_accounts() -> None:
    lines = [_plain(line) for line in status_report([], [], make_config(), WEDNESDAY)]
    assert len(lines) == 3
    assert "0 Users" in lines[0]
    assert "0 Trialing" in lines[2]


def test_daily_report_totals() -> None:
    users = [
        Account("alice", day_bytes=2 * GB, day_files=10),
        Account("bob", day_bytes=GB, day_files=5),
    ]
    lines = [_plain(line) for line in daily_report(users)]
    assert lines == [
        "TOP UPLOADERS FOR THE DAY: [ 2 Users ]",
        "[ 01 ] alice - (10 Files) - (2.0GB)",
        "[ 02 ] bob - (5 Files) - (1.0GB)",
        "TOTAL UPLOADS FOR THE DAY: ( 15 Files ) - ( 3.0GB )",
    ]


def test_daily_report_empty() -> None:
    assert daily_report([]) == ["No uploads recorded for the day."]
