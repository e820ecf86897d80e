import threading
from dataclasses import replace

from quotad.accounts import Account
from quotad.scheduler import DailyReportJob, PeriodicTask, Scheduler

from conftest import ANNOUNCE_KEY, GB, FakeSender


def test_periodic_task_runs_until_cancelled() -> None:
    ran = threading.Event()
    task = PeriodicTask("tick", 0.01, ran.set)
    task.start()
    assert ran.wait(2)
    task.cancel()
    assert task.cancelled
    assert not task._thread.is_alive()


def test_run_once_logs_and_survives_errors(caplog) -> None:
    def boom():
        raise RuntimeError("nope")

    PeriodicTask("boom", 60, boom).run_once()
    assert "Scheduled task boom failed" in caplog.text


def test_scheduler_stop_cancels_all() -> None:
    sched = Scheduler()
    a = sched.every("a", 60, lambda: None)
    b = sched.every("b", 60, lambda: None)
    sched.start()
    sched.stop()
    assert a.cancelled and b.cancelled


def test_daily_report_broadcasts_to_every_announce_channel(config, store) -> None:
    cfg = replace(config, announce_channels=("#announce", "#lobby"))
    store.upsert(Account("alice", day_bytes=2 * GB, day_files=3))
    store.upsert(Account("idle"))
    sender = FakeSender()

    DailyReportJob(cfg, store, sender)()

    channels = [ch for ch, _, _ in sender.sent]
    assert channels == ["#announce"] * 3 + ["#lobby"] * 3
    assert all(key == ANNOUNCE_KEY for _, _, key in sender.sent)
    texts = sender.texts()
    assert "TOP UPLOADERS FOR THE DAY" in texts[0]
    assert "alice" in texts[1]
    assert not any("idle" in t for t in texts)


def test_daily_report_skipped_without_uploads(config, store) -> None:
    store.upsert(Account("idle"))
    sender = FakeSender()
    DailyReportJob(config, store, sender)()
    assert sender.sent == []


def test_daily_report_skipped_without_channels_or_key(config, store) -> None:
    store.upsert(Account("alice", day_bytes=GB, day_files=1))
    sender = FakeSender()
    DailyReportJob(replace(config, announce_channels=()), store, sender)()
    DailyReportJob(replace(config, announce_key=None), store, sender)()
    DailyReportJob(replace(config, show_daily_report=False), store, sender)()
    assert sender.sent == []
