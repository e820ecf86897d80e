from __future__ import annotations

import logging
import signal
import threading
import time
from pathlib import Path
from typing import Callable

from . import __version__
from .config import BotRuntimeConfig, validate_config
from .ledger import AccountLedger
from .link import ChannelLink
from .paths import default_database_path, ensure_private_dir
from .records import UserRecords, sync_accounts
from .router import CommandRouter
from .scheduler import DailyReportJob, Scheduler
from .store import AccountStore, SqliteAccountStore
from .util import expand_path


class BotService:
    def __init__(
        self,
        config: BotRuntimeConfig,
        *,
        store: AccountStore | None = None,
        records: UserRecords | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        validate_config(config)
        self.config = config
        self.log = logging.getLogger("quotad.bot")
        self._shutdown = threading.Event()

        if store is None:
            path = expand_path(config.database_path or str(default_database_path()))
            if path != ":memory:":
                ensure_private_dir(Path(path).parent)
            store = SqliteAccountStore(path)
        self.store = store
        self.records = records or UserRecords.from_config(config)

        self.ledger = AccountLedger(config, self.store, self.records, clock=clock)
        self.link = ChannelLink(config, on_close=self._on_link_closed)
        self.router = CommandRouter(config, self.ledger, self.store, self.link, clock=clock)
        self.link.on_message = self.router.handle_message

        self.scheduler = Scheduler()
        self.sweep_task = self.scheduler.every("sweep", config.sweep_interval_s, self.sweep)
        self.report_task = None
        self.daily_report = DailyReportJob(config, self.store, self.link)
        if self.daily_report.enabled:
            self.report_task = self.scheduler.every(
                "daily-report", config.daily_report_interval_s, self.daily_report
            )
        elif config.show_daily_report:
            self.log.warning("Daily report enabled but no announce channels or key configured")

    def sweep(self) -> None:
        imported = sync_accounts(self.records, self.ledger, self.config)
        self.log.info("Sweep: %s records imported", imported)
        self.ledger.sweep()

    def start(self) -> None:
        self.log.info("quotad %s starting", __version__)
        imported = sync_accounts(self.records, self.ledger, self.config)
        self.log.info("Initial import: %s accounts", imported)
        self.link.connect()
        self.scheduler.start()

    def _on_link_closed(self) -> None:
        delay = float(self.config.reconnect_delay_s)
        if self._shutdown.is_set():
            return
        if delay <= 0:
            self.log.error("Connection lost; shutting down")
            self.stop()
            return

        self.log.warning("Connection lost; reconnecting in %ss", delay)
        while not self._shutdown.wait(delay):
            try:
                self.link.connect()
                return
            except OSError as e:
                self.log.warning("Reconnect failed: %s", e)

    def run_forever(self) -> None:
        if not self.link.connected:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self.stop())
        signal.signal(signal.SIGTERM, lambda *_: self.stop())

        while not self._shutdown.is_set():
            time.sleep(0.25)

    def stop(self) -> None:
        if self._shutdown.is_set():
            return
        self._shutdown.set()
        self.scheduler.stop()
        self.link.close()
        self.log.info("quotad stopped")
