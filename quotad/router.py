from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable, Protocol

from . import fish
from .commands import ControlCommandHandler
from .constants import STATUS_QUOTA, STATUS_TRIAL
from .reports import status_report

if TYPE_CHECKING:
    from .config import BotRuntimeConfig
    from .ledger import AccountLedger
    from .protocol import ChannelMessage
    from .store import AccountStore

REFUSAL = "This command is not allowed in this channel."


class ReplySender(Protocol):
    def send_encrypted(self, channel: str, text: str, key: str | None) -> bool: ...


class CommandRouter:
    """
    Turns decrypted channel messages into ledger queries and control actions.

    This class is responsible for:
    - Decrypting inbound FiSH envelopes with the channel key
    - Authorizing the channel (monitored or staff) and, for control
      commands, the sender (staff nick in a staff channel)
    - Answering the status query
    - Handing staff control commands to ControlCommandHandler
    - Encrypting every reply with the key the message arrived under
    """

    def __init__(
        self,
        config: BotRuntimeConfig,
        ledger: AccountLedger,
        store: AccountStore,
        sender: ReplySender,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.ledger = ledger
        self.store = store
        self.sender = sender
        self.clock = clock
        self.log = logging.getLogger("quotad.router")
        self.commands = ControlCommandHandler(self)

        self._monitored = {c.lower() for c in config.monitored_channels}
        self._staff = {c.lower() for c in config.staff_channels}
        self._staff_users = {n.casefold() for n in config.staff_users}

    def reply(self, channel: str, text: str, key: str) -> None:
        self.sender.send_encrypted(channel, text, key)

    def is_staff_channel(self, channel: str) -> bool:
        return channel.lower() in self._staff

    def is_staff_user(self, nick: str) -> bool:
        return nick.casefold() in self._staff_users

    def is_authorized_channel(self, channel: str) -> bool:
        c = channel.lower()
        return c in self._monitored or c in self._staff

    def _is_control(self, text: str) -> bool:
        trigger = self.config.control_trigger
        return text == trigger or text.startswith(trigger + " ")

    def handle_message(self, msg: ChannelMessage, key: str) -> None:
        if not fish.is_envelope(msg.text):
            self.log.debug("Ignoring unencrypted line in %s from %s", msg.channel, msg.sender)
            return
        try:
            text = fish.decode(msg.text, key).strip()
        except fish.MalformedEnvelope as e:
            self.log.warning("Undecryptable message in %s from %s: %s", msg.channel, msg.sender, e)
            return

        is_status = text == self.config.status_trigger
        is_control = self._is_control(text)
        if not (is_status or is_control):
            return

        if not self.is_authorized_channel(msg.channel):
            self.reply(msg.channel, REFUSAL, key)
            self.log.error("Command from %s in unauthorized channel %s", msg.sender, msg.channel)
            return

        if is_status:
            self.status_query(msg.channel, key)
            return

        if self.is_staff_channel(msg.channel) and self.is_staff_user(msg.sender):
            self.commands.handle(msg.channel, key, msg.sender, text)
        else:
            self.log.info("Ignoring control command from %s in %s", msg.sender, msg.channel)

    def status_query(self, channel: str, key: str) -> None:
        try:
            limit = int(self.config.status_limit)
            quota = self.store.by_status(STATUS_QUOTA, limit)
            trial = self.store.by_status(STATUS_TRIAL, limit)
        except Exception:
            self.log.exception("Status query failed")
            return

        for line in status_report(quota, trial, self.config, self.clock()):
            self.reply(channel, line, key)
        self.log.info("Status query answered in %s (%s quota, %s trial)", channel, len(quota), len(trial))
