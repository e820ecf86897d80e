import base64

import pytest

from quotad import fish
from quotad.constants import FISH_MARKER


def test_round_trip_status_query() -> None:
    env = fish.encode("status-query", "secret")
    assert fish.decode(env, "secret") == "status-query"


@pytest.mark.parametrize("key", ["abcd", "secret", "k" * 56, "ключ-key"])
@pytest.mark.parametrize("message", ["", "x", "hello world", "päivää 🌍", "a" * 300])
def test_round_trip_various(key: str, message: str) -> None:
    assert fish.decode(fish.encode(message, key), key) == message


def test_long_key_is_truncated_on_both_sides() -> None:
    long_key = "k" * 56 + "ignored-tail"
    env = fish.encode("hi", long_key)
    assert fish.decode(env, "k" * 56) == "hi"


def test_encode_output_is_marker_plus_base64() -> None:
    env = fish.encode("abc", "secret")
    assert env.startswith(FISH_MARKER)
    raw = base64.b64decode(env[len(FISH_MARKER):].replace("*", "="), validate=True)
    assert len(raw) >= 16
    assert (len(raw) - 8) % 8 == 0


def test_fresh_iv_per_message() -> None:
    assert fish.encode("same", "secret") != fish.encode("same", "secret")


def test_fixed_iv_is_deterministic() -> None:
    iv = b"\x01" * 8
    assert fish.encode("same", "secret", iv=iv) == fish.encode("same", "secret", iv=iv)


def test_decode_accepts_star_as_padding() -> None:
    env = fish.encode("abc", "secret")
    assert env.endswith("=")
    starred = FISH_MARKER + env[len(FISH_MARKER):].replace("=", "*")
    assert fish.decode(starred, "secret") == "abc"


def test_decode_accepts_legacy_prefix_and_missing_cbc_indicator() -> None:
    env = fish.encode("abc", "secret")
    body = env[len(FISH_MARKER):]
    assert fish.decode("+OK " + body, "secret") == "abc"
    assert fish.decode("mcps *" + body, "secret") == "abc"


def test_pad_multiple_of_three_then_block() -> None:
    assert fish.pad(b"") == b"\0" * 8
    assert fish.pad(b"a") == b"a" + b"\0" * 7
    assert fish.pad(b"x" * 6) == b"x" * 6 + b"\0" * 2
    # 8 -> 9 (multiple of 3) -> 16
    assert fish.pad(b"x" * 8) == b"x" * 8 + b"\0" * 8


@pytest.mark.parametrize(
    "envelope",
    [
        "hello there",
        "+OK *not base64!!",
        "+OK *" + base64.b64encode(b"short").decode(),
        "+OK *" + base64.b64encode(b"\0" * 8 + b"abc").decode(),
        "+OK *" + base64.b64encode(b"\0" * 8).decode(),
    ],
)
def test_decode_rejects_malformed(envelope: str) -> None:
    with pytest.raises(fish.MalformedEnvelope):
        fish.decode(envelope, "secret")


def test_encode_with_empty_key_fails() -> None:
    with pytest.raises(fish.EncodeFailure):
        fish.encode("hello", "")


def test_check_key_range() -> None:
    with pytest.raises(fish.InvalidKey):
        fish.check_key("abc")
    with pytest.raises(fish.InvalidKey):
        fish.check_key("k" * 57)
    with pytest.raises(fish.InvalidKey):
        fish.check_key(None)
    fish.check_key("abcd")
    fish.check_key("k" * 56)


def test_blowfish_known_answer_zero_key() -> None:
    # With a zero IV the first CBC block equals the ECB result.
    ct = fish.cbc_encrypt(b"\0" * 8, b"\0" * 8, b"\0" * 8)
    assert ct.hex() == "4ef997456198dd78"


def test_blowfish_known_answer_cbc() -> None:
    key = bytes.fromhex("0123456789ABCDEFF0E1D2C3B4A59687")
    iv = bytes.fromhex("FEDCBA9876543210")
    data = fish.pad(b"7654321 Now is the time for ")
    expected = (
        "6b77b4d63006dee605b156e27403979358deb9e7154616d959f1652bd5ff92cc"
    )
    assert fish.cbc_encrypt(data, key, iv).hex() == expected
    assert fish.cbc_decrypt(bytes.fromhex(expected), key, iv) == data
