from __future__ import annotations

import codecs
import logging
import socket
import ssl
import threading
from typing import Any, Callable

from . import fish
from .config import BotRuntimeConfig
from .protocol import (
    ChannelMessage,
    Keepalive,
    LineBuffer,
    Other,
    join_cmd,
    nick_cmd,
    parse_line,
    pass_cmd,
    pong_cmd,
    privmsg_cmd,
    user_cmd,
)

MessageHandler = Callable[[ChannelMessage, str], None]


class ChannelLink:
    """
    One persistent IRC connection.

    Responsible for:
    - Connecting (optionally over TLS), registering, joining channels
    - Splitting received chunks into lines
    - Answering keepalives before anything else in the same chunk
    - Resolving the FiSH key of a channel
    - Encrypting and sending channel replies
    """

    def __init__(
        self,
        config: BotRuntimeConfig,
        *,
        on_message: MessageHandler | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.config = config
        self.log = logging.getLogger("quotad.link")
        self.on_message = on_message
        self.on_close = on_close

        self._sock: Any = None
        self._send_lock = threading.Lock()
        self._buffer = LineBuffer()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._reader: threading.Thread | None = None
        self._closing = threading.Event()

        self._bindings = {b.name.lower(): b.key for b in config.channels}
        self._staff = {c.lower() for c in config.staff_channels}
        self._announce = {c.lower() for c in config.announce_channels}

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def key_for(self, channel: str) -> str | None:
        c = channel.lower()
        if c in self._bindings:
            return self._bindings[c]
        if c in self._staff:
            return self.config.staff_key
        if c in self._announce:
            return self.config.announce_key
        return None

    def _open_socket(self) -> socket.socket:
        sock = socket.create_connection((self.config.host, int(self.config.port)))
        if not self.config.tls:
            return sock
        ctx = ssl.create_default_context()
        if not self.config.tls_verify:
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
        return ctx.wrap_socket(sock, server_hostname=self.config.host)

    def connect(self) -> None:
        self.log.info(
            "Connecting to %s:%s tls=%s", self.config.host, self.config.port, self.config.tls
        )
        self._closing.clear()
        self.attach(self._open_socket())
        self._reader = threading.Thread(
            target=self._read_loop, name="quotad-link", daemon=True
        )
        self._reader.start()

    def attach(self, sock: Any) -> None:
        """Register and join on an already connected socket."""
        self._sock = sock
        self._buffer = LineBuffer()
        self._decoder.reset()

        cfg = self.config
        if cfg.connect_password:
            self.send_raw(pass_cmd(cfg.connect_password))
        self.send_raw(nick_cmd(cfg.nickname))
        self.send_raw(user_cmd(cfg.nickname, cfg.realname))

        for name in cfg.monitored_channels:
            self.log.info("Joining channel %s", name)
            self.send_raw(join_cmd(name))
        for name in cfg.staff_channels:
            self.log.info("Joining staff channel %s", name)
            self.send_raw(join_cmd(name))

    def close(self) -> None:
        self._closing.set()
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.close()
        except OSError as e:
            self.log.debug("Socket close failed: %s", e)

    def send_raw(self, line: str) -> bool:
        sock = self._sock
        if sock is None:
            self.log.warning("Send while disconnected dropped")
            return False
        data = line.encode("utf-8")
        try:
            with self._send_lock:
                sock.sendall(data)
            return True
        except OSError as e:
            self.log.warning("Send failed bytes=%s err=%s", len(data), e)
            return False

    def send_encrypted(self, channel: str, text: str, key: str | None) -> bool:
        try:
            fish.check_key(key)
            envelope = fish.encode(text, key)  # type: ignore[arg-type]
        except fish.EnvelopeError as e:
            self.log.error("Dropping message to %s: %s", channel, e)
            return False
        return self.send_raw(privmsg_cmd(channel, envelope))

    def _read_loop(self) -> None:
        while not self._closing.is_set():
            sock = self._sock
            if sock is None:
                break
            try:
                data = sock.recv(4096)
            except (OSError, ValueError) as e:
                if not self._closing.is_set():
                    self.log.warning("Receive failed: %s", e)
                break
            if not data:
                self.log.warning("Connection closed by server")
                break
            self.handle_data(data)

        was_closing = self._closing.is_set()
        self.close()
        if not was_closing and self.on_close is not None:
            self.on_close()

    def handle_data(self, data: bytes | str) -> None:
        text = self._decoder.decode(data) if isinstance(data, bytes) else data
        events = [parse_line(line) for line in self._buffer.feed(text)]

        for ev in events:
            if isinstance(ev, Keepalive):
                self.send_raw(pong_cmd(ev.token))

        for ev in events:
            if isinstance(ev, Keepalive):
                continue
            try:
                self._dispatch(ev)
            except Exception:
                self.log.exception("Line handler failed")

    def _dispatch(self, ev: ChannelMessage | Other) -> None:
        if isinstance(ev, Other):
            if ev.command == "ERROR":
                self.log.error("Server error: %s", " ".join(ev.params))
            elif ev.command == "001":
                self.log.info("Registered as %s", self.config.nickname)
            return

        key = self.key_for(ev.channel)
        if not key:
            self.log.warning("No FiSH key for channel %s; message dropped", ev.channel)
            return

        if self.on_message is not None:
            self.on_message(ev, key)
