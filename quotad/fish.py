"""FiSH (Blowfish-CBC) message envelopes.

Wire format: ``+OK *`` followed by base64(IV || ciphertext). The plaintext is
NUL padded, first to a multiple of 3 bytes and then to a multiple of the
8 byte block size, and encrypted with padding disabled at the cipher layer.
On decode ``*`` is accepted in place of the base64 ``=`` padding character.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.hazmat.decrepit.ciphers.algorithms import Blowfish
from cryptography.hazmat.primitives.ciphers import Cipher, modes

from .constants import (
    FISH_BLOCK_SIZE,
    FISH_CBC_INDICATOR,
    FISH_IV_LEN,
    FISH_KEY_MAX,
    FISH_KEY_MIN,
    FISH_MARKER,
    FISH_PREFIXES,
)


class EnvelopeError(ValueError):
    pass


class EncodeFailure(EnvelopeError):
    """The cipher layer refused to encrypt; the outbound message is dropped."""


class MalformedEnvelope(EnvelopeError):
    """Input is not a decodable FiSH CBC envelope for the given key."""


class InvalidKey(EnvelopeError):
    pass


def prepare_key(key: str) -> bytes:
    return key.encode("utf-8")[:FISH_KEY_MAX]


def check_key(key) -> None:
    if not isinstance(key, str):
        raise InvalidKey("key must be a string")
    if not (FISH_KEY_MIN <= len(key) <= FISH_KEY_MAX):
        raise InvalidKey(f"key must be {FISH_KEY_MIN}-{FISH_KEY_MAX} characters long")


def pad(data: bytes) -> bytes:
    # Multiple of 3 first, then whole blocks; an empty message still gets one block.
    data = data + b"\0" * (-len(data) % 3)
    data = data + b"\0" * (-len(data) % FISH_BLOCK_SIZE)
    return data or b"\0" * FISH_BLOCK_SIZE


def unpad(data: bytes) -> bytes:
    return data.rstrip(b"\0")


def _cipher(key: bytes, iv: bytes) -> Cipher:
    return Cipher(Blowfish(key), modes.CBC(iv))


def cbc_encrypt(data: bytes, key: bytes, iv: bytes) -> bytes:
    enc = _cipher(key, iv).encryptor()
    return enc.update(data) + enc.finalize()


def cbc_decrypt(data: bytes, key: bytes, iv: bytes) -> bytes:
    dec = _cipher(key, iv).decryptor()
    return dec.update(data) + dec.finalize()


def encode(plaintext: str, key: str, *, iv: bytes | None = None) -> str:
    iv = iv or os.urandom(FISH_IV_LEN)
    try:
        ct = cbc_encrypt(pad(plaintext.encode("utf-8")), prepare_key(key), iv)
    except Exception as e:
        raise EncodeFailure(f"encryption failed: {e}") from e
    return FISH_MARKER + base64.b64encode(iv + ct).decode("ascii")


def is_envelope(text: str) -> bool:
    return text.startswith(FISH_PREFIXES)


def decode(envelope: str, key: str) -> str:
    for prefix in FISH_PREFIXES:
        if envelope.startswith(prefix):
            body = envelope[len(prefix):].strip()
            break
    else:
        raise MalformedEnvelope("missing FiSH marker")

    if body.startswith(FISH_CBC_INDICATOR):
        body = body[len(FISH_CBC_INDICATOR):]
    body = body.replace("*", "=")

    try:
        raw = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEnvelope(f"invalid base64: {e}") from e

    iv, ct = raw[:FISH_IV_LEN], raw[FISH_IV_LEN:]
    if len(iv) != FISH_IV_LEN or not ct or len(ct) % FISH_BLOCK_SIZE:
        raise MalformedEnvelope(f"bad payload length {len(raw)}")

    try:
        plain = cbc_decrypt(ct, prepare_key(key), iv)
    except Exception as e:
        raise MalformedEnvelope(f"decryption failed: {e}") from e

    try:
        return unpad(plain).decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedEnvelope("plaintext is not UTF-8 (wrong key?)") from e
