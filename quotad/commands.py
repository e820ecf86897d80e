"""Staff control commands: ``<trigger> <verb> <username> [<arg>]``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .constants import CONTROL_VERBS, STATUS_TRIAL
from .util import format_date

if TYPE_CHECKING:
    from .router import CommandRouter


class ControlCommandHandler:
    def __init__(self, router: CommandRouter) -> None:
        self.router = router
        self.ledger = router.ledger
        self.log = router.log

    @property
    def usage(self) -> str:
        verbs = "|".join(CONTROL_VERBS)
        return f"Usage: {self.router.config.control_trigger} <{verbs}> <username> [<days>]"

    def handle(self, channel: str, key: str, sender: str, text: str) -> None:
        parts = text.split()
        verb = parts[1].lower() if len(parts) > 1 else ""
        username = parts[2] if len(parts) > 2 else ""
        arg = parts[3] if len(parts) > 3 else None

        def reply(line: str) -> None:
            self.router.reply(channel, line, key)

        if not username:
            reply(self.usage)
            return
        if verb not in CONTROL_VERBS:
            reply('Invalid command. Use "trial", "quota", "extend", or "delete".')
            return

        days = 0
        if verb == "extend":
            try:
                days = int(arg)  # type: ignore[arg-type]
            except (TypeError, ValueError):
                days = 0
            if days <= 0:
                reply("Invalid number of days.")
                return

        self.log.info("Control %s %s by %s in %s", verb, username, sender, channel)

        # Failures are logged, never answered in channel.
        try:
            if verb == "delete":
                self.ledger.mark_for_deletion(username)
                reply(f"User {username} marked for deletion.")
                return

            if verb == "trial":
                acct = self.ledger.start_trial(username)
                if acct is not None:
                    reply(
                        f"User {username} updated to trial: {acct.days_remaining} days"
                        f" starting {format_date(acct.trial_start or 0)}."
                    )
            elif verb == "quota":
                acct = self.ledger.set_quota(username)
                if acct is not None:
                    reply(f"User {username} updated to quota: {acct.days_remaining} days left this week.")
            else:
                acct = self.ledger.extend_trial(username, days)
                if acct is not None and acct.status != STATUS_TRIAL:
                    reply(f"User {username} is not on trial; nothing changed.")
                elif acct is not None:
                    reply(f"User {username}'s trial extended: {days} days from now.")

            if acct is None:
                reply(f"User {username} not found.")
        except Exception:
            self.log.exception("Failed to process %s for %s", verb, username)
