"""
Authentication utilities for the web API.

User sessions are HS256 JWTs issued by the auth service and shared with us
via JWT_SECRET. The payload carries:
- sub: database user id (string)
- sid: auth-provider session id, used to clean up push subscriptions on logout

The cron endpoint is authorized separately by the CRON_SECRET shared secret.
"""

import hmac
import os
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import HTTPException, Request

from core.config import get_cron_secret
from core.exceptions import AuthorizationError, ConfigurationError

JWT_SECRET = os.environ.get("JWT_SECRET")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = 24

CRON_TOKEN_HEADER = "x-vercel-cron-auth-token"


def create_jwt(user_id: int, session_id: str | None = None) -> str:
    """
    Create a signed session token.

    The auth service issues tokens in production; this is used by local
    tooling and tests.
    """
    if not JWT_SECRET:
        raise ValueError("JWT_SECRET environment variable not set")

    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(hours=JWT_EXPIRATION_HOURS),
    }
    if session_id:
        payload["sid"] = session_id
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_jwt(token: str) -> dict | None:
    """
    Verify and decode a JWT token.

    Returns:
        Decoded payload dict if valid, None if invalid
    """
    if not JWT_SECRET:
        raise ValueError("JWT_SECRET environment variable not set")

    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return None


async def get_current_user(request: Request) -> dict:
    """
    FastAPI dependency to get the current authenticated user.

    Reads the session cookie, falling back to an Authorization: Bearer token.

    Returns:
        {"user_id": int, "session_id": str | None}

    Raises:
        HTTPException: 401 if not authenticated or invalid token
    """
    token = request.cookies.get("session") or _bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = verify_jwt(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return {"user_id": user_id, "session_id": payload.get("sid")}


def verify_cron_request(request: Request) -> None:
    """
    Check the shared cron secret.

    Accepts either `Authorization: Bearer <CRON_SECRET>` or
    `x-vercel-cron-auth-token: <CRON_SECRET>`. An unset CRON_SECRET rejects
    every request.

    Raises:
        AuthorizationError: If neither header carries the secret
    """
    try:
        secret = get_cron_secret()
    except ConfigurationError as e:
        raise AuthorizationError(str(e)) from e

    candidates = (_bearer_token(request), request.headers.get(CRON_TOKEN_HEADER))
    for candidate in candidates:
        if candidate and hmac.compare_digest(candidate.encode(), secret.encode()):
            return

    raise AuthorizationError("Missing or invalid cron secret")
