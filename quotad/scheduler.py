from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable

from .reports import daily_report

if TYPE_CHECKING:
    from .config import BotRuntimeConfig
    from .router import ReplySender
    from .store import AccountStore


class PeriodicTask:
    """Runs `fn` every `interval_s` seconds on its own thread until cancelled."""

    def __init__(self, name: str, interval_s: float, fn: Callable[[], None]) -> None:
        self.name = name
        self.interval_s = float(interval_s)
        self.fn = fn
        self.log = logging.getLogger("quotad.scheduler")
        self._cancelled = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name=f"quotad-{self.name}", daemon=True)
        self._thread.start()
        self.log.info("Scheduled %s every %ss", self.name, self.interval_s)

    def run_once(self) -> None:
        try:
            self.fn()
        except Exception:
            self.log.exception("Scheduled task %s failed", self.name)

    def _loop(self) -> None:
        # wait() returns True once cancelled.
        while not self._cancelled.wait(self.interval_s):
            self.run_once()

    def cancel(self, timeout: float | None = 5.0) -> None:
        self._cancelled.set()
        t = self._thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout)


class Scheduler:
    def __init__(self) -> None:
        self.tasks: list[PeriodicTask] = []
        self.log = logging.getLogger("quotad.scheduler")

    def every(self, name: str, interval_s: float, fn: Callable[[], None]) -> PeriodicTask:
        task = PeriodicTask(name, interval_s, fn)
        self.tasks.append(task)
        return task

    def start(self) -> None:
        for task in self.tasks:
            task.start()

    def stop(self) -> None:
        for task in self.tasks:
            task.cancel()
        self.log.info("Scheduler stopped (%s tasks)", len(self.tasks))


class DailyReportJob:
    """Broadcasts the top daily uploaders to every announce channel."""

    def __init__(self, config: BotRuntimeConfig, store: AccountStore, sender: ReplySender) -> None:
        self.config = config
        self.store = store
        self.sender = sender
        self.log = logging.getLogger("quotad.scheduler")

    @property
    def enabled(self) -> bool:
        cfg = self.config
        return bool(cfg.show_daily_report and cfg.announce_channels and cfg.announce_key)

    def __call__(self) -> None:
        if not self.enabled:
            self.log.debug("Daily report disabled or no announce channels/key")
            return

        users = self.store.top_daily(int(self.config.daily_report_limit))
        if not users:
            self.log.info("No uploads recorded for the day; report skipped")
            return

        lines = daily_report(users)
        for channel in self.config.announce_channels:
            for line in lines:
                self.sender.send_encrypted(channel, line, self.config.announce_key)
        self.log.info(
            "Daily report sent to %s channel(s), %s users",
            len(self.config.announce_channels),
            len(users),
        )
