import pytest

from auth import (
    generate_token,
    hash_password,
    token_from_headers,
    verify_password,
    verify_token,
)
from config import get_settings


def test_password_hash_round_trip():
    hashed = hash_password("secret123")
    assert hashed.startswith("$2")
    assert verify_password("secret123", hashed)
    assert not verify_password("secret124", hashed)
    assert not verify_password("secret123", "not-a-bcrypt-hash")


def test_token_carries_user_identity():
    token = generate_token(42, "ada@example.com")
    assert verify_token(token) == {"id": 42, "email": "ada@example.com"}


def test_tampered_token_is_rejected():
    token = generate_token(42, "ada@example.com")
    tampered = ("f" if token[0] != "f" else "g") + token[1:]
    assert verify_token(tampered) is None
    assert verify_token("garbage") is None


def test_bearer_header_wins_over_cookie():
    assert token_from_headers("Bearer abc", "cookie") == "abc"
    assert token_from_headers("bearer  abc ", None) == "abc"
    assert token_from_headers("Basic abc", "cookie") == "cookie"
    assert token_from_headers(None, None) is None


def test_missing_secret_fails_fast(monkeypatch):
    monkeypatch.delenv("FINTRACK_AUTH_SECRET", raising=False)
    get_settings.cache_clear()
    try:
        with pytest.raises(RuntimeError):
            get_settings()
    finally:
        monkeypatch.undo()
        get_settings.cache_clear()
