"""
Identity-provider token handling (PyJWT, HS256).

The provider signs bearer tokens with the shared ``JWT_SECRET_KEY``; the
portal only verifies them. Required claims are ``sub`` (user id) and
``exp``; ``email`` is optional. ``iss`` / ``aud`` are enforced only when
``JWT_ISSUER`` / ``JWT_AUDIENCE`` are configured. Tokens that carry a
``type`` claim must be access tokens.

``generate_access_token`` mints tokens in the same shape for the
``flask issue-token`` command and the test suite.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from clienthub.services.identity import Identity

ALGORITHM = "HS256"


def _secret() -> str:
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def generate_access_token(user_id: str, email: str | None = None, expires_in: int | None = None) -> str:
    cfg = current_app.config
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else cfg.get("JWT_ACCESS_EXPIRES", 3600)
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=lifetime),
        "jti": uuid.uuid4().hex,
    }
    if email:
        payload["email"] = email
    if cfg.get("JWT_ISSUER"):
        payload["iss"] = cfg["JWT_ISSUER"]
    if cfg.get("JWT_AUDIENCE"):
        payload["aud"] = cfg["JWT_AUDIENCE"]
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Verified payload; raises ``jwt.InvalidTokenError`` subclasses on failure."""
    cfg = current_app.config
    required = ["sub", "exp"]
    kwargs = {}
    if cfg.get("JWT_ISSUER"):
        kwargs["issuer"] = cfg["JWT_ISSUER"]
        required.append("iss")
    if cfg.get("JWT_AUDIENCE"):
        kwargs["audience"] = cfg["JWT_AUDIENCE"]
        required.append("aud")

    payload = jwt.decode(
        token,
        _secret(),
        algorithms=[ALGORITHM],
        leeway=cfg.get("JWT_LEEWAY", 0),
        options={"require": required},
        **kwargs,
    )
    if payload.get("type", "access") != "access":
        raise jwt.InvalidTokenError(f"Expected an access token, got {payload.get('type')!r}")
    if not str(payload["sub"]).strip():
        raise jwt.InvalidTokenError("Empty subject")
    return payload


def identity_from_token(token: str) -> Identity:
    payload = decode_token(token)
    return Identity(user_id=str(payload["sub"]), email=payload.get("email"))
