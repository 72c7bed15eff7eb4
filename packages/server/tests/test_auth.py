"""
Tests for identity verification and the HTTP boundary middleware.

Covers:
- Local token creation and verification
- Bearer header parsing
- Subject revocation markers (mocked Redis)
- Identity provider (JWKS) faults
- CORS, pre-flight, security headers and internal error middleware
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import jwt as pyjwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.auth import (
    create_jwt,
    decode_id_token,
    parse_bearer,
    revoke_subject_tokens,
    tokens_revoked_before,
    verify,
)
from app.core.errors import Unauthenticated
from app.core.middleware import (
    SECURITY_HEADERS,
    CORSHeadersMiddleware,
    InternalErrorMiddleware,
    SecurityHeadersMiddleware,
    preflight_response,
)


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_create_and_decode(self):
        token = create_jwt("user-a", email="a@example.com", name="Ada")
        payload = decode_id_token(token)
        assert payload["sub"] == "user-a"
        assert payload["email"] == "a@example.com"
        assert payload["name"] == "Ada"

    def test_expired_jwt_raises(self):
        token = create_jwt("user-a", expires_delta=timedelta(seconds=-1))
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_id_token(token)

    def test_tampered_jwt_raises(self):
        token = create_jwt("user-a")
        header, payload, signature = token.split(".")
        middle = len(signature) // 2
        flipped = "A" if signature[middle] != "A" else "B"
        tampered = ".".join([header, payload, signature[:middle] + flipped + signature[middle + 1:]])
        with pytest.raises(pyjwt.InvalidSignatureError):
            decode_id_token(tampered)

    def test_missing_subject_raises(self, settings):
        now = datetime.now(timezone.utc)
        token = pyjwt.encode(
            {"iat": now, "exp": now + timedelta(minutes=5)},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(pyjwt.MissingRequiredClaimError):
            decode_id_token(token)

    def test_audience_enforced_when_configured(self, settings, monkeypatch):
        token = create_jwt("user-a")
        monkeypatch.setattr(settings, "identity_audience", "notegen-app")
        with pytest.raises(pyjwt.PyJWTError):
            decode_id_token(token)

    def test_audience_round_trip(self, settings, monkeypatch):
        monkeypatch.setattr(settings, "identity_audience", "notegen-app")
        monkeypatch.setattr(settings, "identity_issuer", "https://issuer.example")
        payload = decode_id_token(create_jwt("user-a"))
        assert payload["aud"] == "notegen-app"
        assert payload["iss"] == "https://issuer.example"


# ---------------------------------------------------------------------------
# Unit Tests: Bearer header parsing
# ---------------------------------------------------------------------------

class TestParseBearer:
    @pytest.mark.parametrize("header", [None, "", "Basic abc", "bearer abc", "Bearer ", "Bearer    "])
    def test_rejects_malformed_headers(self, header):
        with pytest.raises(Unauthenticated) as exc_info:
            parse_bearer(header)
        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    def test_extracts_token(self):
        assert parse_bearer("Bearer abc.def.ghi") == "abc.def.ghi"


# ---------------------------------------------------------------------------
# Unit Tests: verify()
# ---------------------------------------------------------------------------

class TestVerify:
    @pytest.mark.asyncio
    async def test_valid_token_yields_identity(self, redis_store):
        token = create_jwt("user-a", email="a@example.com", name="Ada")
        identity = await verify(f"Bearer {token}")
        assert identity.subject == "user-a"
        assert identity.email == "a@example.com"
        assert identity.display_name == "Ada"
        assert identity.issued_at is not None

    @pytest.mark.asyncio
    async def test_garbage_token_is_unauthenticated(self, redis_store):
        with pytest.raises(Unauthenticated):
            await verify("Bearer not-a-jwt")

    @pytest.mark.asyncio
    async def test_token_issued_before_revocation_is_rejected(self, redis_store):
        token = create_jwt("user-a")
        await revoke_subject_tokens("user-a", at=datetime.now(timezone.utc) + timedelta(seconds=1))
        with pytest.raises(Unauthenticated) as exc_info:
            await verify(f"Bearer {token}")
        assert exc_info.value.message == "Session has been revoked"

    @pytest.mark.asyncio
    async def test_revocation_is_per_subject(self, redis_store):
        await revoke_subject_tokens("user-b", at=datetime.now(timezone.utc) + timedelta(seconds=1))
        identity = await verify(f"Bearer {create_jwt('user-a')}")
        assert identity.subject == "user-a"

    @pytest.mark.asyncio
    async def test_jwks_fetch_failure_is_not_unauthenticated(self, settings, monkeypatch, redis_store):
        monkeypatch.setattr(settings, "identity_jwks_url", "https://keys.example/jwks.json")
        jwks = MagicMock()
        jwks.get_signing_key_from_jwt.side_effect = pyjwt.PyJWKClientError("unreachable")
        with patch("app.core.auth._jwks_client", return_value=jwks):
            with pytest.raises(pyjwt.PyJWKClientError):
                await verify(f"Bearer {create_jwt('user-a')}")


# ---------------------------------------------------------------------------
# Unit Tests: Revocation markers (mocked Redis)
# ---------------------------------------------------------------------------

class TestRevocation:
    @pytest.mark.asyncio
    async def test_revoke_and_read(self, settings):
        mock_redis = AsyncMock()
        mock_redis.setex = AsyncMock()
        mock_redis.get = AsyncMock(return_value="1700000000")
        at = datetime.fromtimestamp(1700000000, tz=timezone.utc)

        with patch("app.core.auth.get_redis", return_value=mock_redis):
            await revoke_subject_tokens("user-a", at=at)
            mock_redis.setex.assert_called_once_with(
                "auth:revoked_before:user-a",
                settings.token_revocation_ttl_seconds,
                "1700000000",
            )
            assert await tokens_revoked_before("user-a") == 1700000000

    @pytest.mark.asyncio
    async def test_no_marker(self):
        mock_redis = AsyncMock()
        mock_redis.get = AsyncMock(return_value=None)
        with patch("app.core.auth.get_redis", return_value=mock_redis):
            assert await tokens_revoked_before("user-a") is None


# ---------------------------------------------------------------------------
# Integration Tests: Middleware
# ---------------------------------------------------------------------------

class TestSecurityHeadersMiddleware:
    def test_headers_present(self):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"ok": True}

        client = TestClient(app)
        resp = client.get("/test")
        assert resp.status_code == 200
        for header, value in SECURITY_HEADERS.items():
            assert resp.headers.get(header) == value


class TestCORS:
    def _make_app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(CORSHeadersMiddleware, allow_origin="*")

        @app.options("/test")
        async def preflight():
            return preflight_response("GET, POST")

        @app.get("/test")
        async def get_test():
            return {"ok": True}

        return app

    def test_origin_on_normal_response(self):
        resp = TestClient(self._make_app()).get("/test")
        assert resp.headers["Access-Control-Allow-Origin"] == "*"

    def test_preflight_is_empty_204(self):
        resp = TestClient(self._make_app()).options("/test")
        assert resp.status_code == 204
        assert resp.content == b""
        assert resp.headers["Access-Control-Allow-Methods"] == "GET, POST"
        assert resp.headers["Access-Control-Allow-Headers"] == "Content-Type, Authorization"
        assert resp.headers["Access-Control-Allow-Origin"] == "*"


class TestInternalErrorMiddleware:
    def test_unexpected_error_is_collapsed(self):
        app = FastAPI()
        app.add_middleware(InternalErrorMiddleware)

        @app.get("/boom")
        async def boom():
            raise RuntimeError("connection string postgres://secret")

        resp = TestClient(app).get("/boom")
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"]["code"] == "INTERNAL"
        assert body["error"]["message"] == "Internal server error"
        assert "secret" not in resp.text
