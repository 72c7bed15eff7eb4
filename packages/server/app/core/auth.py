"""
Identity verification for the note generation API.

Supports:
- Bearer ID tokens verified against an identity provider's JWKS (RS256)
- Locally signed tokens (HS256) for development and tests
- Subject-level revocation markers in Redis (written on account cleanup)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

import jwt
import structlog
from fastapi import Depends
from fastapi.security import APIKeyHeader

from app.core.config import get_settings
from app.core.errors import Unauthenticated
from app.core.redis import get_redis

log = structlog.get_logger()
settings = get_settings()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

BEARER_PREFIX = "Bearer "
REVOKED_KEY_PREFIX = "auth:revoked_before:"


@dataclass(frozen=True)
class Identity:
    """The verified caller."""

    subject: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    issued_at: Optional[int] = None


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

@lru_cache
def _jwks_client(url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(url, cache_keys=True)


def create_jwt(
    subject: str,
    *,
    email: str | None = None,
    name: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a locally signed ID token (development mode only)."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {"sub": subject, "iat": now, "exp": exp}
    if email:
        payload["email"] = email
    if name:
        payload["name"] = name
    if settings.identity_issuer:
        payload["iss"] = settings.identity_issuer
    if settings.identity_audience:
        payload["aud"] = settings.identity_audience
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_id_token(token: str) -> dict:
    """Decode and verify an ID token. Raises jwt.PyJWTError on failure.

    jwt.PyJWKClientError (also a PyJWTError) means the key set could not be
    fetched; callers treat that as a provider fault, not a bad token.
    """
    if settings.identity_jwks_url:
        key = _jwks_client(settings.identity_jwks_url).get_signing_key_from_jwt(token).key
        algorithms = ["RS256"]
    else:
        key = settings.secret_key
        algorithms = [settings.jwt_algorithm]

    return jwt.decode(
        token,
        key,
        algorithms=algorithms,
        audience=settings.identity_audience or None,
        issuer=settings.identity_issuer or None,
        options={"require": ["sub", "iat", "exp"]},
    )


def parse_bearer(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise Unauthenticated()
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthenticated()
    return token


# ---------------------------------------------------------------------------
# Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_subject_tokens(subject: str, at: datetime | None = None) -> None:
    """Reject every token for ``subject`` issued at or before ``at``."""
    at = at or datetime.now(timezone.utc)
    redis = await get_redis()
    await redis.setex(
        f"{REVOKED_KEY_PREFIX}{subject}",
        settings.token_revocation_ttl_seconds,
        str(int(at.timestamp())),
    )


async def tokens_revoked_before(subject: str) -> Optional[int]:
    """Epoch second of the subject's revocation marker, if any."""
    redis = await get_redis()
    value = await redis.get(f"{REVOKED_KEY_PREFIX}{subject}")
    return int(value) if value is not None else None


# ---------------------------------------------------------------------------
# Authentication dependency
# ---------------------------------------------------------------------------

async def verify(authorization: Optional[str]) -> Identity:
    """Turn an Authorization header into a verified Identity."""
    token = parse_bearer(authorization)
    try:
        payload = decode_id_token(token)
    except jwt.PyJWKClientError:
        raise
    except jwt.PyJWTError as exc:
        log.info("auth.token_rejected", reason=type(exc).__name__)
        raise Unauthenticated()

    subject = payload["sub"]
    issued_at = int(payload["iat"])
    revoked_before = await tokens_revoked_before(subject)
    if revoked_before is not None and issued_at <= revoked_before:
        log.info("auth.token_revoked", subject=subject)
        raise Unauthenticated("Session has been revoked")

    return Identity(
        subject=subject,
        email=payload.get("email"),
        display_name=payload.get("name"),
        issued_at=issued_at,
    )


async def get_identity(
    authorization: Optional[str] = Depends(api_key_header),
) -> Identity:
    """Main authentication dependency."""
    return await verify(authorization)
