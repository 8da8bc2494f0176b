# Admin auth for catalogue edits and collection triggers.
# One admin account from env (bcrypt hash), bearer JWTs in two flavours.

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.hash import bcrypt

from .settings import settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

ACCESS = "access"
REFRESH = "refresh"


def _lifetime(token_type: str) -> timedelta:
    minutes = (
        settings.REFRESH_TOKEN_EXPIRE_MINUTES if token_type == REFRESH
        else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    return timedelta(minutes=minutes)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# ------------------------------ Passwords ------------------------------ #
def hash_password(plain_password: str) -> str:
    """Produce a value suitable for ADMIN_PASSWORD_HASH."""
    return bcrypt.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    # malformed hashes raise inside passlib; treat them as a mismatch
    try:
        return bcrypt.verify(plain_password, password_hash)
    except (ValueError, TypeError):
        return False


def authenticate_admin(username: str, password: str) -> bool:
    """False when no hash is configured, so login stays closed by default."""
    if not settings.ADMIN_PASSWORD_HASH or username != settings.ADMIN_USERNAME:
        return False
    return verify_password(password, settings.ADMIN_PASSWORD_HASH)


# -------------------------------- Tokens ------------------------------- #
def create_token(subject: str, token_type: str = ACCESS) -> str:
    issued = datetime.now(tz=timezone.utc)
    claims = {
        "sub": subject,
        "type": token_type,
        "iat": int(issued.timestamp()),
        "exp": int((issued + _lifetime(token_type)).timestamp()),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def issue_token_pair(subject: str) -> Dict[str, str]:
    return {
        "access_token": create_token(subject, ACCESS),
        "refresh_token": create_token(subject, REFRESH),
    }


def decode_token(token: str, expected_type: Optional[str] = None) -> dict:
    """
    Verify signature and expiry; with expected_type also check the "type" claim.
    Any failure is a 401.
    """
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as exc:
        raise _unauthorized("Invalid or expired token") from exc
    if expected_type and claims.get("type") != expected_type:
        raise _unauthorized(f"Expected a {expected_type} token")
    return claims


def require_admin(token: str = Depends(oauth2_scheme)) -> str:
    """Route guard: access token whose subject is the configured admin (else 403)."""
    subject = decode_token(token, ACCESS).get("sub")
    if subject != settings.ADMIN_USERNAME:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return subject
