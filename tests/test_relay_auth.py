"""
Tests for the hourly relay bearer token.

Covers token derivation, verification across hour boundaries and the
FastAPI dependency guarding the relay and publish endpoints.
"""

import hashlib

import pytest

from src.social.relay_auth import (
    HOUR_SECONDS,
    derive_relay_token,
    hour_bucket,
    verify_relay_token,
)


class TestTokenDerivation:
    """Tests for derive_relay_token and hour_bucket."""

    def test_matches_sha256_of_secret_and_bucket(self):
        expected = hashlib.sha256(b"s3cret:474552").hexdigest()
        assert derive_relay_token("s3cret", 474552) == expected

    def test_same_inputs_give_same_token(self):
        assert derive_relay_token("s3cret", 10) == derive_relay_token("s3cret", 10)

    def test_token_is_lowercase_hex(self):
        token = derive_relay_token("s3cret", 10)
        assert len(token) == 64
        assert token == token.lower()
        int(token, 16)

    def test_different_hours_give_different_tokens(self):
        assert derive_relay_token("s3cret", 10) != derive_relay_token("s3cret", 11)

    def test_different_secrets_give_different_tokens(self):
        assert derive_relay_token("a", 10) != derive_relay_token("b", 10)

    def test_hour_bucket_floors_unix_seconds(self):
        assert hour_bucket(0) == 0
        assert hour_bucket(HOUR_SECONDS - 1) == 0
        assert hour_bucket(HOUR_SECONDS) == 1
        assert hour_bucket(1_708_000_123.9) == 1_708_000_123 // HOUR_SECONDS

    def test_default_bucket_is_current_hour(self):
        assert derive_relay_token("s3cret") == derive_relay_token("s3cret", hour_bucket())


class TestTokenVerification:
    """Tests for verify_relay_token."""

    def test_accepts_token_within_same_hour(self):
        start = 100 * HOUR_SECONDS
        token = derive_relay_token("s3cret", hour_bucket(start))

        assert verify_relay_token(token, "s3cret", now=start)
        assert verify_relay_token(token, "s3cret", now=start + HOUR_SECONDS - 1)

    def test_rejects_token_after_hour_rollover(self):
        start = 100 * HOUR_SECONDS
        token = derive_relay_token("s3cret", hour_bucket(start))

        assert not verify_relay_token(token, "s3cret", now=start + HOUR_SECONDS)

    def test_rejects_wrong_secret(self):
        token = derive_relay_token("other", hour_bucket(0))
        assert not verify_relay_token(token, "s3cret", now=0)

    def test_rejects_garbage(self):
        assert not verify_relay_token("not-a-token", "s3cret")


class TestRelayTokenDependency:
    """Tests for the bearer check on the relay endpoints."""

    def test_missing_header_is_401(self, client):
        response = client.post("/api/scheduled-posts/publish")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized access"}

    def test_non_bearer_header_is_401(self, client, relay_token):
        response = client.post(
            "/api/scheduled-posts/twitter",
            headers={"Authorization": f"Token {relay_token}"},
            json={"content": "hi"},
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized access"}

    def test_wrong_token_is_403(self, client):
        response = client.post(
            "/api/scheduled-posts/linkedin",
            headers={"Authorization": "Bearer " + "0" * 64},
            json={"content": "hi"},
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Invalid API token"}

    def test_previous_hour_token_is_403(self, client):
        stale = derive_relay_token("test-relay-secret", hour_bucket() - 1)

        response = client.post(
            "/api/scheduled-posts/twitter",
            headers={"Authorization": f"Bearer {stale}"},
            json={"content": "hi"},
        )

        assert response.status_code == 403

    def test_valid_token_reaches_handler(self, client, relay_headers):
        response = client.post(
            "/api/scheduled-posts/twitter",
            headers=relay_headers,
            json={},
        )

        # Past the auth check, the handler rejects the empty body
        assert response.status_code == 400
        assert response.json() == {"error": "Missing required parameters"}


@pytest.mark.asyncio
async def test_dependency_raises_relay_error_for_missing_header():
    from app.auth.relay import require_relay_token
    from app.exceptions import RelayError

    with pytest.raises(RelayError) as exc_info:
        await require_relay_token(authorization=None)

    assert exc_info.value.status_code == 401
