"""IRC line grammar: framing, parsing into typed events, command builders."""

from __future__ import annotations

from dataclasses import dataclass, field

CRLF = "\r\n"


@dataclass(frozen=True)
class Keepalive:
    token: str


@dataclass(frozen=True)
class ChannelMessage:
    sender: str
    channel: str
    text: str


@dataclass(frozen=True)
class Other:
    command: str
    params: tuple[str, ...] = ()
    prefix: str | None = None


Event = Keepalive | ChannelMessage | Other


@dataclass
class LineBuffer:
    """Accumulates chunks and yields complete lines.

    A trailing partial line is kept until the next chunk completes it.
    Lines are stripped; empty lines are dropped.
    """

    _pending: str = field(default="")

    def feed(self, chunk: str) -> list[str]:
        data = self._pending + chunk
        *complete, self._pending = data.split("\n")
        return [s for s in (line.strip() for line in complete) if s]

    @property
    def pending(self) -> str:
        return self._pending


def nick_from_prefix(prefix: str) -> str:
    return prefix.split("!", 1)[0].split("@", 1)[0]


def split_line(line: str) -> tuple[str | None, str, tuple[str, ...]]:
    """Split a raw line into (prefix, COMMAND, params); trailing is the last param."""
    prefix = None
    rest = line
    if rest.startswith(":"):
        prefix, _, rest = rest[1:].partition(" ")
        rest = rest.lstrip(" ")

    trailing = None
    if " :" in rest:
        rest, trailing = rest.split(" :", 1)
    elif rest.startswith(":"):
        rest, trailing = "", rest[1:]

    words = rest.split()
    command = words[0].upper() if words else ""
    params = list(words[1:])
    if trailing is not None:
        params.append(trailing)
    return prefix, command, tuple(params)


def parse_line(line: str) -> Event:
    prefix, command, params = split_line(line)

    if command == "PING":
        return Keepalive(params[0] if params else "")

    if command == "PRIVMSG" and prefix and len(params) >= 2:
        return ChannelMessage(
            sender=nick_from_prefix(prefix),
            channel=params[0],
            text=params[-1],
        )

    return Other(command=command, params=params, prefix=prefix)


def _check(*parts: str) -> None:
    for p in parts:
        if "\r" in p or "\n" in p:
            raise ValueError("IRC line parts must not contain CR or LF")


def build(command: str, *params: str, trailing: str | None = None) -> str:
    _check(command, *params)
    words = [command, *params]
    if trailing is not None:
        _check(trailing)
        words.append(":" + trailing)
    return " ".join(words) + CRLF


def pass_cmd(password: str) -> str:
    return build("PASS", password)


def nick_cmd(nick: str) -> str:
    return build("NICK", nick)


def user_cmd(user: str, realname: str) -> str:
    return build("USER", user, "0", "*", trailing=realname)


def join_cmd(channel: str) -> str:
    return build("JOIN", channel)


def pong_cmd(token: str) -> str:
    return build("PONG", trailing=token)


def privmsg_cmd(target: str, text: str) -> str:
    return build("PRIVMSG", target, trailing=text)
