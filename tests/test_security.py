import dataclasses

import pytest
from fastapi import HTTPException
from jose import jwt

from api import security
from api.settings import settings


def test_tokens_carry_subject_and_type() -> None:
    access = security.decode_token(security.create_token("admin", security.ACCESS))
    refresh = security.decode_token(security.create_token("admin", security.REFRESH))
    assert access["sub"] == refresh["sub"] == "admin"
    assert access["type"] == security.ACCESS
    assert refresh["type"] == security.REFRESH
    assert refresh["exp"] > access["exp"]


def test_decode_rejects_tampered_or_foreign_tokens() -> None:
    forged = jwt.encode({"sub": "admin", "type": "access"}, "other-secret", algorithm=settings.ALGORITHM)
    with pytest.raises(HTTPException) as exc:
        security.decode_token(forged)
    assert exc.value.status_code == 401

    with pytest.raises(HTTPException):
        security.decode_token("not-a-jwt")


def test_require_admin() -> None:
    assert security.require_admin(security.create_token("admin", security.ACCESS)) == "admin"

    with pytest.raises(HTTPException) as exc:
        security.require_admin(security.create_token("admin", security.REFRESH))
    assert exc.value.status_code == 401

    with pytest.raises(HTTPException) as exc:
        security.require_admin(security.create_token("mallory", security.ACCESS))
    assert exc.value.status_code == 403


def test_authenticate_admin_without_configured_hash(monkeypatch) -> None:
    monkeypatch.setattr(security, "settings", dataclasses.replace(settings, ADMIN_PASSWORD_HASH=""))
    assert not security.authenticate_admin("admin", "anything")


def test_authenticate_admin_checks_username_and_password(monkeypatch) -> None:
    monkeypatch.setattr(security, "settings", dataclasses.replace(settings, ADMIN_PASSWORD_HASH="stored"))
    monkeypatch.setattr(security, "verify_password", lambda plain, hashed: plain == "secret" and hashed == "stored")

    assert security.authenticate_admin("admin", "secret")
    assert not security.authenticate_admin("admin", "wrong")
    assert not security.authenticate_admin("root", "secret")


def test_malformed_hash_never_verifies() -> None:
    assert not security.verify_password("secret", "not-a-bcrypt-hash")


def test_issue_token_pair() -> None:
    pair = security.issue_token_pair("admin")
    assert security.decode_token(pair["access_token"], security.ACCESS)["sub"] == "admin"
    assert security.decode_token(pair["refresh_token"], security.REFRESH)["sub"] == "admin"
    with pytest.raises(HTTPException):
        security.decode_token(pair["access_token"], security.REFRESH)


def test_hash_password_verifies() -> None:
    hashed = security.hash_password("secret")
    assert security.verify_password("secret", hashed)
    assert not security.verify_password("wrong", hashed)
