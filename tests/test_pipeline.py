"""
Tests for the scheduled post publishing pipeline.

The unit tests drive the pipeline with in-process publishers. The
end-to-end tests route the pipeline's relay calls into the FastAPI app and
script the Twitter and LinkedIn APIs behind it.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import httpx
import pytest

from conftest import RELAY_SECRET, FakeSupabaseClient, make_post_row
from src.social.credentials import CredentialResolver, get_credential_resolver
from src.social.pipeline import PublishingPipeline
from src.social.platforms.base import PublishError
from src.social.platforms.linkedin import LinkedInPlatform, get_linkedin_platform
from src.social.platforms.twitter import TwitterPlatform, get_twitter_platform
from src.social.relay import RelayClient, ScheduledPublisher, build_relay_publishers
from src.social.store import ScheduledPostStore, StoreError
from src.types.social import PostStatus, PublishResult, SocialPlatform

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

TWITTER_ACCOUNT = {
    "userId": "user-1",
    "provider": "twitter",
    "oauth_token": "user-token",
    "oauth_token_secret": "user-secret",
}
LINKEDIN_ACCOUNT = {"userId": "user-1", "provider": "linkedin", "access_token": "li-token"}


class RecordingPublisher(ScheduledPublisher):
    """Publisher that records calls and returns or raises as configured."""

    def __init__(self, platform: SocialPlatform, error: Optional[Exception] = None) -> None:
        self.platform = platform
        self.error = error
        self.calls: List[str] = []

    async def publish(self, post, credential) -> PublishResult:
        self.calls.append(post.id)
        if self.error is not None:
            raise self.error
        return PublishResult(id=f"{self.platform.value}-{post.id}")


def _client(posts, accounts=None) -> FakeSupabaseClient:
    return FakeSupabaseClient(tables={
        "scheduled_post": posts,
        "Account": accounts if accounts is not None else [TWITTER_ACCOUNT, LINKEDIN_ACCOUNT],
        "User": [{"id": "user-1", "linkedinProfileId": "abc123"}],
    })


def _pipeline(client: FakeSupabaseClient, publishers=None) -> PublishingPipeline:
    if publishers is None:
        publishers = {
            SocialPlatform.TWITTER: RecordingPublisher(SocialPlatform.TWITTER),
            SocialPlatform.LINKEDIN: RecordingPublisher(SocialPlatform.LINKEDIN),
        }
    return PublishingPipeline(
        store=ScheduledPostStore(client=client, tables=["scheduled_post"]),
        resolver=CredentialResolver(client=client, account_tables=["Account"], user_tables=["User"]),
        publishers=publishers,
    )


def _row(client: FakeSupabaseClient, post_id: str) -> dict:
    return next(row for row in client.tables["scheduled_post"] if row["id"] == post_id)


# =============================================================================
# Tick Behaviour
# =============================================================================


class TestRunTick:
    """Tests for PublishingPipeline.run_tick."""

    @pytest.mark.asyncio
    async def test_no_due_posts(self):
        client = _client([make_post_row(scheduled_for=NOW + timedelta(hours=1))])

        summary = await _pipeline(client).run_tick(NOW)

        assert summary.success is True
        assert summary.message == "No pending posts to process"
        assert summary.processed == 0
        assert client.ops("update") == []

    @pytest.mark.asyncio
    async def test_publishes_due_rows_and_counts(self):
        client = _client([
            make_post_row("tw", scheduled_for=NOW - timedelta(seconds=1)),
            make_post_row("li", platform="linkedin", scheduled_for=NOW),
        ])

        summary = await _pipeline(client).run_tick(NOW)

        assert summary.message == "Processed 2 posts"
        assert (summary.processed, summary.posted, summary.failed) == (2, 2, 0)
        assert _row(client, "tw")["status"] == "posted"
        assert _row(client, "tw")["postId"] == "twitter-tw"
        assert _row(client, "li")["postId"] == "linkedin-li"

    @pytest.mark.asyncio
    async def test_future_rows_are_not_selected(self):
        twitter = RecordingPublisher(SocialPlatform.TWITTER)
        client = _client([
            make_post_row("due", scheduled_for=NOW),
            make_post_row("later", scheduled_for=NOW + timedelta(seconds=1)),
        ])

        await _pipeline(client, {SocialPlatform.TWITTER: twitter}).run_tick(NOW)

        assert twitter.calls == ["due"]
        assert _row(client, "later")["status"] == "pending"

    @pytest.mark.asyncio
    async def test_terminal_rows_are_never_reprocessed(self):
        posted = make_post_row("posted", status="posted", scheduled_for=NOW - timedelta(days=1))
        posted["postId"] = "tw-original"
        failed = make_post_row("failed", status="failed", scheduled_for=NOW - timedelta(days=1))
        failed["error"] = "earlier failure"
        twitter = RecordingPublisher(SocialPlatform.TWITTER)
        client = _client([posted, failed])

        for _ in range(3):
            await _pipeline(client, {SocialPlatform.TWITTER: twitter}).run_tick(NOW)

        assert twitter.calls == []
        assert _row(client, "posted")["postId"] == "tw-original"
        assert _row(client, "failed")["status"] == "failed"
        assert _row(client, "failed")["error"] == "earlier failure"

    @pytest.mark.asyncio
    async def test_missing_credential_marks_row_failed(self):
        twitter = RecordingPublisher(SocialPlatform.TWITTER)
        client = _client([make_post_row("p")], accounts=[])

        summary = await _pipeline(client, {SocialPlatform.TWITTER: twitter}).run_tick(NOW)

        assert summary.failed == 1
        assert twitter.calls == []
        row = _row(client, "p")
        assert row["status"] == "failed"
        assert "Could not find twitter credentials for user user-1" in row["error"]

    @pytest.mark.asyncio
    async def test_incomplete_credential_marks_row_failed(self):
        client = _client([make_post_row("p")], accounts=[
            {"userId": "user-1", "provider": "twitter", "oauth_token": "only-token"},
        ])

        await _pipeline(client).run_tick(NOW)

        assert "Need both token and secret" in _row(client, "p")["error"]

    @pytest.mark.asyncio
    async def test_unsupported_platform_is_failed_without_credential_lookup(self):
        client = _client([make_post_row("p", platform="mastodon")])

        await _pipeline(client).run_tick(NOW)

        row = _row(client, "p")
        assert row["status"] == "failed"
        assert row["error"] == "Unsupported platform: mastodon"
        assert "Account" not in client.ops("select")

    @pytest.mark.asyncio
    async def test_publish_error_is_recorded_and_tick_continues(self):
        twitter = RecordingPublisher(
            SocialPlatform.TWITTER,
            error=PublishError("API error: {\"error\":\"Twitter API error: 403\"}"),
        )
        linkedin = RecordingPublisher(SocialPlatform.LINKEDIN)
        client = _client([
            make_post_row("tw", scheduled_for=NOW - timedelta(minutes=2)),
            make_post_row("li", platform="linkedin", scheduled_for=NOW - timedelta(minutes=1)),
        ])

        summary = await _pipeline(
            client, {SocialPlatform.TWITTER: twitter, SocialPlatform.LINKEDIN: linkedin}
        ).run_tick(NOW)

        assert (summary.posted, summary.failed) == (1, 1)
        assert _row(client, "tw")["status"] == "failed"
        assert _row(client, "tw")["error"].startswith("API error: ")
        assert _row(client, "li")["status"] == "posted"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_recorded(self):
        twitter = RecordingPublisher(SocialPlatform.TWITTER, error=RuntimeError("boom"))
        client = _client([make_post_row("p")])

        summary = await _pipeline(client, {SocialPlatform.TWITTER: twitter}).run_tick(NOW)

        assert summary.failed == 1
        assert _row(client, "p")["error"] == "boom"

    @pytest.mark.asyncio
    async def test_malformed_row_does_not_abort_the_tick(self):
        bad = make_post_row("bad", scheduled_for=NOW - timedelta(minutes=2))
        bad["content"] = None
        twitter = RecordingPublisher(SocialPlatform.TWITTER)
        client = _client([bad, make_post_row("good", scheduled_for=NOW - timedelta(minutes=1))])

        summary = await _pipeline(client, {SocialPlatform.TWITTER: twitter}).run_tick(NOW)

        assert twitter.calls == ["good"]
        assert summary.posted == 1
        assert _row(client, "good")["status"] == "posted"
        assert _row(client, "bad")["status"] == "failed"
        assert _row(client, "bad")["error"].startswith("Invalid scheduled post: content")

    @pytest.mark.asyncio
    async def test_read_failure_propagates(self):
        client = FakeSupabaseClient(tables={})

        with pytest.raises(StoreError):
            await _pipeline(client).run_tick(NOW)

    @pytest.mark.asyncio
    async def test_write_back_failure_does_not_stop_the_tick(self):
        twitter = RecordingPublisher(SocialPlatform.TWITTER)
        client = _client([
            make_post_row("a", scheduled_for=NOW - timedelta(minutes=2)),
            make_post_row("b", scheduled_for=NOW - timedelta(minutes=1)),
        ])
        client.fail_ops.add("update")
        pipeline = _pipeline(client, {SocialPlatform.TWITTER: twitter})

        summary = await pipeline.run_tick(NOW)

        assert sorted(twitter.calls) == ["a", "b"]
        assert summary.posted == 2
        assert [outcome.status for outcome in pipeline.last_outcomes] == [PostStatus.POSTED] * 2
        # Rows stay pending, so a later tick will publish them again
        assert _row(client, "a")["status"] == "pending"

    @pytest.mark.asyncio
    async def test_overlapping_ticks_publish_twice(self):
        """
        Known gap: two ticks that read the same pending row both publish it.

        Only the first terminal write-back lands; the second is a no-op
        because write-backs are gated on the row still being pending.
        """
        both_read = asyncio.Event()

        class BlockingPublisher(RecordingPublisher):
            async def publish(self, post, credential):
                self.calls.append(post.id)
                if len(self.calls) < 2:
                    await asyncio.wait_for(both_read.wait(), timeout=5)
                else:
                    both_read.set()
                return PublishResult(id=f"tw-{len(self.calls)}")

        twitter = BlockingPublisher(SocialPlatform.TWITTER)
        client = _client([make_post_row("p", scheduled_for=NOW - timedelta(seconds=1))])
        pipeline_a = _pipeline(client, {SocialPlatform.TWITTER: twitter})
        pipeline_b = _pipeline(client, {SocialPlatform.TWITTER: twitter})

        first, second = await asyncio.gather(pipeline_a.run_tick(NOW), pipeline_b.run_tick(NOW))

        assert twitter.calls == ["p", "p"]
        assert first.posted == 1 and second.posted == 1
        assert client.ops("update") == ["scheduled_post", "scheduled_post"]
        row = _row(client, "p")
        assert row["status"] == "posted"
        assert row["postId"] in {"tw-1", "tw-2"}


# =============================================================================
# End-to-End Through the Relay
# =============================================================================


class PlatformApi:
    """Scripted Twitter/LinkedIn/CDN responses keyed by (method, url)."""

    def __init__(self, routes) -> None:
        self.routes = routes
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, str(request.url)))
        if route is None:
            return httpx.Response(404)
        return route.pop(0) if isinstance(route, list) else route

    def sent(self, method: str, url: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and str(r.url) == url]


@pytest.fixture
def relay_world(app):
    """
    Wire a pipeline to the app's relay routes.

    Returns a factory taking the store rows and the scripted platform API.
    """

    def build(posts, api: PlatformApi):
        client = _client(posts)
        resolver = CredentialResolver(client=client, account_tables=["Account"], user_tables=["User"])
        transport = httpx.MockTransport(api)

        app.dependency_overrides[get_twitter_platform] = lambda: TwitterPlatform(
            consumer_key="test-consumer-key",
            consumer_secret="test-consumer-secret",
            transport=transport,
        )
        app.dependency_overrides[get_linkedin_platform] = lambda: LinkedInPlatform(transport=transport)
        app.dependency_overrides[get_credential_resolver] = lambda: resolver

        relay = RelayClient(
            base_url="http://relay.test",
            api_secret=RELAY_SECRET,
            transport=httpx.ASGITransport(app=app),
        )
        pipeline = PublishingPipeline(
            store=ScheduledPostStore(client=client, tables=["scheduled_post"]),
            resolver=resolver,
            publishers=build_relay_publishers(relay),
        )
        return pipeline, client

    return build


UGC_URL = f"{LinkedInPlatform.API_BASE}/ugcPosts"


class TestEndToEnd:
    """A tick publishing through the relay endpoints."""

    @pytest.mark.asyncio
    async def test_due_tweet_is_posted(self, relay_world):
        api = PlatformApi({
            ("POST", TwitterPlatform.TWEETS_URL): httpx.Response(201, json={"data": {"id": "1790"}}),
        })
        now = datetime.now(timezone.utc)
        pipeline, client = relay_world([make_post_row("p", scheduled_for=now - timedelta(seconds=1))], api)

        summary = await pipeline.run_tick(now)

        assert summary.posted == 1
        row = _row(client, "p")
        assert row["status"] == "posted"
        assert row["postId"] == "1790"
        tweet = api.sent("POST", TwitterPlatform.TWEETS_URL)[0]
        assert 'oauth_token="user-token"' in tweet.headers["Authorization"]

    @pytest.mark.asyncio
    async def test_linkedin_author_rejection_falls_back(self, relay_world):
        api = PlatformApi({
            ("POST", UGC_URL): [
                httpx.Response(422, text='{"message": "Author field invalid"}'),
                httpx.Response(201, json={"id": "urn:li:share:88"}),
            ],
        })
        pipeline, client = relay_world([make_post_row("p", platform="linkedin")], api)

        await pipeline.run_tick(NOW)

        attempts = api.sent("POST", UGC_URL)
        assert len(attempts) == 2
        assert json.loads(attempts[0].content)["author"] == "urn:li:person:abc123"
        assert "author" not in json.loads(attempts[1].content)
        row = _row(client, "p")
        assert row["status"] == "posted"
        assert row["postId"] == "urn:li:share:88"

    @pytest.mark.asyncio
    async def test_unreachable_media_posts_text_only(self, relay_world):
        api = PlatformApi({
            ("GET", "https://cdn.test/missing.png"): httpx.Response(404),
            ("POST", TwitterPlatform.TWEETS_URL): httpx.Response(201, json={"data": {"id": "1791"}}),
        })
        pipeline, client = relay_world(
            [make_post_row("p", media_url="https://cdn.test/missing.png")], api
        )

        await pipeline.run_tick(NOW)

        assert _row(client, "p")["status"] == "posted"
        assert pipeline.last_outcomes[0].result.has_media is False
        assert api.sent("POST", TwitterPlatform.UPLOAD_URL) == []

    @pytest.mark.asyncio
    async def test_platform_rejection_marks_row_failed(self, relay_world):
        api = PlatformApi({
            ("POST", TwitterPlatform.TWEETS_URL): httpx.Response(
                403, json={"detail": "You are not allowed to create a Tweet with duplicate content."}
            ),
        })
        pipeline, client = relay_world([make_post_row("p")], api)

        summary = await pipeline.run_tick(NOW)

        assert summary.failed == 1
        row = _row(client, "p")
        assert row["status"] == "failed"
        assert row["error"].startswith("API error: ")
        assert "duplicate content" in row["error"]
