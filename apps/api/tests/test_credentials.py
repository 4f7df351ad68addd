"""Tests for app id and token format checks."""
from __future__ import annotations

import random
import string

import pytest

from agora_viewer.services.credentials import is_valid_app_id, is_valid_token

HEX = "0123456789abcdefABCDEF"


def test_any_32_hex_characters_are_a_valid_app_id():
    rng = random.Random(7)
    for _ in range(50):
        candidate = "".join(rng.choice(HEX) for _ in range(32))
        assert is_valid_app_id(candidate)


def test_app_id_is_trimmed_before_matching():
    assert is_valid_app_id("  0123456789ABCDEF0123456789abcdef \n")


@pytest.mark.parametrize(
    "value",
    [
        "",
        "0123456789abcdef0123456789abcde",  # 31
        "0123456789abcdef0123456789abcdef0",  # 33
        "0123456789abcdef0123456789abcdeg",
        "0123456789abcdef 123456789abcdef",
        None,
        12345,
    ],
)
def test_invalid_app_ids(value):
    assert not is_valid_app_id(value)


def test_non_hex_characters_are_rejected():
    rng = random.Random(11)
    others = [ch for ch in string.ascii_letters + string.punctuation if ch not in HEX]
    for _ in range(20):
        chars = [rng.choice(HEX) for _ in range(32)]
        chars[rng.randrange(32)] = rng.choice(others)
        assert not is_valid_app_id("".join(chars))


def test_token_with_version_prefix_and_length_is_valid():
    assert is_valid_token("007" + "x" * 60)
    assert is_valid_token("006" + "a" * 48)


@pytest.mark.parametrize(
    "token",
    [
        "",
        None,
        42,
        "008" + "x" * 60,
        "x007" + "x" * 60,
        "007" + "x" * 47,  # exactly 50 characters
    ],
)
def test_invalid_tokens(token):
    assert not is_valid_token(token)
