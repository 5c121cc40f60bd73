from datetime import timedelta

import jwt
import pytest

from core.auth import extract_bearer_token
from core.security import (
    InvalidTokenError,
    TokenSigner,
    generate_code,
    hash_email,
    is_valid_email,
    normalize_email,
)

SECRET = "unit-test-secret-that-is-long-enough-for-hs256"


def test_generate_code_is_six_digits():
    for _ in range(200):
        code = generate_code()
        assert len(code) == 6
        assert code.isdigit()


def test_generate_code_keeps_leading_zeros(monkeypatch):
    monkeypatch.setattr("core.security.secrets.randbelow", lambda n: 42)
    assert generate_code() == "000042"


def test_hash_email_normalizes():
    assert hash_email("  A@B.com ") == hash_email("a@b.com")
    assert len(hash_email("a@b.com")) == 64


@pytest.mark.parametrize(
    "email,ok",
    [
        ("a@b.com", True),
        ("first.last+tag@sub.example.org", True),
        ("no-at-sign.com", False),
        ("a@b", False),
        ("a@b.c", False),
        ("", False),
    ],
)
def test_is_valid_email(email, ok):
    assert is_valid_email(normalize_email(email)) is ok


def test_token_round_trip_and_expiry(clock):
    signer = TokenSigner(SECRET, timedelta(hours=24), clock=clock)
    token = signer.issue("User@Example.com")

    assert signer.email_of(token) == "user@example.com"
    assert signer.is_valid(token)

    clock.advance(hours=23, minutes=59)
    assert signer.is_valid(token)

    clock.advance(minutes=1)
    assert not signer.is_valid(token)
    with pytest.raises(InvalidTokenError):
        signer.email_of(token)


def test_token_with_wrong_signature_is_rejected(clock):
    signer = TokenSigner(SECRET, timedelta(hours=1), clock=clock)
    other = TokenSigner("another-secret-that-is-also-long-enough-xx", timedelta(hours=1), clock=clock)

    assert not signer.is_valid(other.issue("a@b.com"))
    assert not signer.is_valid("not-a-token")


def test_token_for_other_purpose_is_rejected(clock):
    signer = TokenSigner(SECRET, timedelta(hours=1), clock=clock)
    forged = jwt.encode(
        {"sub": "a@b.com", "exp": int(clock().timestamp()) + 3600, "type": "session"},
        SECRET,
        algorithm="HS256",
    )
    assert not signer.is_valid(forged)


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc.def", "abc.def"),
        ("bearer abc.def", "abc.def"),
        ("Basic abc", None),
        ("Bearer", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected
