"""
Tests for credential lookup.

Covers account table alias fallback, Twitter token field variants,
incomplete rows and LinkedIn profile id lookup.
"""

import pytest

from conftest import FakeSupabaseClient
from src.social.credentials import (
    CredentialIncomplete,
    CredentialNotFound,
    CredentialResolver,
    extract_credential,
)
from src.types.social import LinkedInCredential, SocialPlatform, TwitterCredential


def _resolver(client: FakeSupabaseClient) -> CredentialResolver:
    return CredentialResolver(
        client=client,
        account_tables=["Account", "account", "accounts"],
        user_tables=["User", "user", "users"],
    )


class TestExtractCredential:
    """Tests for pulling token material out of an account row."""

    def test_twitter_oauth_fields(self):
        credential = extract_credential(
            {"oauth_token": "tok", "oauth_token_secret": "sec"},
            SocialPlatform.TWITTER,
        )
        assert credential == TwitterCredential(oauth_token="tok", oauth_token_secret="sec")

    def test_twitter_alternate_field_names(self):
        credential = extract_credential(
            {"access_token": "tok", "access_secret": "sec"},
            SocialPlatform.TWITTER,
        )
        assert credential.oauth_token == "tok"
        assert credential.oauth_token_secret == "sec"

    def test_twitter_first_present_field_wins(self):
        credential = extract_credential(
            {"oauth_token": None, "access_token": "second", "token": "third", "token_secret": "sec"},
            SocialPlatform.TWITTER,
        )
        assert credential.oauth_token == "second"

    def test_twitter_missing_secret_is_incomplete(self):
        with pytest.raises(CredentialIncomplete) as exc_info:
            extract_credential({"oauth_token": "tok"}, SocialPlatform.TWITTER)

        assert "Need both token and secret" in exc_info.value.message

    def test_linkedin_access_token(self):
        credential = extract_credential({"access_token": "li-token"}, SocialPlatform.LINKEDIN)
        assert credential == LinkedInCredential(access_token="li-token")

    def test_linkedin_empty_token_is_incomplete(self):
        with pytest.raises(CredentialIncomplete):
            extract_credential({"access_token": ""}, SocialPlatform.LINKEDIN)


class TestCredentialResolver:
    """Tests for CredentialResolver against the fake store."""

    @pytest.mark.asyncio
    async def test_resolves_from_first_table(self):
        client = FakeSupabaseClient(tables={
            "Account": [
                {"userId": "u1", "provider": "twitter", "oauth_token": "tok", "oauth_token_secret": "sec"},
            ],
        })

        credential = await _resolver(client).resolve("u1", SocialPlatform.TWITTER)

        assert credential == TwitterCredential(oauth_token="tok", oauth_token_secret="sec")
        assert client.ops("select") == ["Account"]

    @pytest.mark.asyncio
    async def test_falls_back_to_later_alias(self):
        client = FakeSupabaseClient(tables={
            "accounts": [
                {"userId": "u1", "provider": "linkedin", "access_token": "li"},
            ],
        })

        credential = await _resolver(client).resolve("u1", SocialPlatform.LINKEDIN)

        assert credential == LinkedInCredential(access_token="li")
        assert client.ops("select") == ["Account", "account", "accounts"]

    @pytest.mark.asyncio
    async def test_empty_table_falls_through_to_next_alias(self):
        client = FakeSupabaseClient(tables={
            "Account": [],
            "account": [
                {"userId": "u1", "provider": "twitter", "token": "tok", "token_secret": "sec"},
            ],
        })

        credential = await _resolver(client).resolve("u1", SocialPlatform.TWITTER)

        assert credential.oauth_token == "tok"

    @pytest.mark.asyncio
    async def test_only_matches_requested_provider(self):
        client = FakeSupabaseClient(tables={
            "Account": [
                {"userId": "u1", "provider": "linkedin", "access_token": "li"},
            ],
        })

        with pytest.raises(CredentialNotFound) as exc_info:
            await _resolver(client).resolve("u1", SocialPlatform.TWITTER)

        assert exc_info.value.message == (
            "Could not find twitter credentials for user u1. Tried multiple table names."
        )
        assert exc_info.value.user_id == "u1"

    @pytest.mark.asyncio
    async def test_incomplete_row_is_reported_with_user(self):
        client = FakeSupabaseClient(tables={
            "Account": [{"userId": "u1", "provider": "twitter", "oauth_token": "tok"}],
        })

        with pytest.raises(CredentialIncomplete) as exc_info:
            await _resolver(client).resolve("u1", SocialPlatform.TWITTER)

        assert exc_info.value.user_id == "u1"

    @pytest.mark.asyncio
    async def test_lookup_does_not_write(self):
        client = FakeSupabaseClient(tables={
            "Account": [{"userId": "u1", "provider": "linkedin", "access_token": "li"}],
        })

        await _resolver(client).resolve("u1", SocialPlatform.LINKEDIN)

        assert client.ops("update") == []
        assert client.ops("insert") == []


class TestLinkedInProfileLookup:
    """Tests for get_linkedin_profile_id."""

    @pytest.mark.asyncio
    async def test_returns_profile_id(self):
        client = FakeSupabaseClient(tables={
            "user": [{"id": "u1", "linkedinProfileId": "abc123"}],
        })

        assert await _resolver(client).get_linkedin_profile_id("u1") == "abc123"

    @pytest.mark.asyncio
    async def test_missing_field_returns_none(self):
        client = FakeSupabaseClient(tables={"User": [{"id": "u1"}]})

        assert await _resolver(client).get_linkedin_profile_id("u1") is None

    @pytest.mark.asyncio
    async def test_missing_user_returns_none(self):
        client = FakeSupabaseClient(tables={"User": []})

        assert await _resolver(client).get_linkedin_profile_id("u1") is None
