"""
HTTP tests for the matching, chat and admin routers.
The database and Redis dependencies are overridden per test.
"""

import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from swipematch.config import settings
from swipematch.core.dependencies import get_redis_service
from swipematch.db.redis import RedisService
from swipematch.db.session import get_db
from swipematch.main import app

from conftest import TODAY


class InMemoryRedis:
    """Implements the handful of Upstash commands RedisService uses."""

    def __init__(self):
        self.values = {}
        self.ttls = {}

    def get(self, key):
        return self.values.get(key)

    def setex(self, key, seconds, value):
        self.values[key] = value
        self.ttls[key] = seconds

    def ttl(self, key):
        return self.ttls.get(key, -2)

    def incr(self, key):
        self.values[key] = str(int(self.values.get(key, "0")) + 1)
        return int(self.values[key])

    def ping(self):
        return "PONG"


@pytest.fixture
def redis():
    return InMemoryRedis()


@pytest.fixture
async def client(session_maker, redis):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_service] = lambda: RedisService(client=redis)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def as_user(user):
    return {"X-User-Id": str(user.id)}


API = settings.API_V1_PREFIX


# ==================== Basics ====================

async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


async def test_missing_user_header(client):
    response = await client.get(f"{API}/matching/matches")
    assert response.status_code == 401


async def test_malformed_user_header(client):
    response = await client.get(f"{API}/matching/matches", headers={"X-User-Id": "not-a-uuid"})
    assert response.status_code == 400


async def test_unknown_user(client):
    response = await client.get(f"{API}/matching/matches", headers={"X-User-Id": str(uuid.uuid4())})
    assert response.status_code == 401


# ==================== Matching ====================

async def test_swipe_flow_creates_match(client, factory):
    alice = await factory.user(username="alice")
    bob = await factory.user(username="bob", gender="male")

    first = await client.post(
        f"{API}/matching/swipe",
        json={"swiped_id": str(bob.id), "swipe_type": "like"},
        headers=as_user(alice),
    )
    assert first.status_code == 200
    assert first.json()["is_match"] is False

    second = await client.post(
        f"{API}/matching/swipe",
        json={"swiped_id": str(alice.id), "swipe_type": "super_like"},
        headers=as_user(bob),
    )
    body = second.json()
    assert body["is_match"] is True
    match_id = body["match_id"]

    matches = await client.get(f"{API}/matching/matches", headers=as_user(alice))
    assert matches.json()["total"] == 1
    assert matches.json()["matches"][0]["partner_id"] == str(bob.id)

    check = await client.get(f"{API}/matching/matches/with/{alice.id}", headers=as_user(bob))
    assert check.json()["matched"] is True

    again = await client.post(
        f"{API}/matching/swipe",
        json={"swiped_id": str(bob.id), "swipe_type": "like"},
        headers=as_user(alice),
    )
    assert again.status_code == 409
    assert again.json()["error"] == "conflict"

    unmatch = await client.delete(f"{API}/matching/matches/{match_id}", headers=as_user(alice))
    assert unmatch.status_code == 200
    assert unmatch.json()["is_active"] is False


async def test_self_swipe_is_bad_request(client, factory):
    alice = await factory.user(username="alice")

    response = await client.post(
        f"{API}/matching/swipe",
        json={"swiped_id": str(alice.id), "swipe_type": "like"},
        headers=as_user(alice),
    )

    assert response.status_code == 400
    assert response.json() == {"error": "invalid_operation", "detail": "Cannot swipe on yourself."}


async def test_invalid_swipe_type(client, factory):
    alice = await factory.user(username="alice")
    bob = await factory.user(username="bob", gender="male")

    response = await client.post(
        f"{API}/matching/swipe",
        json={"swiped_id": str(bob.id), "swipe_type": "maybe"},
        headers=as_user(alice),
    )

    assert response.status_code == 422


async def test_swipe_limit(client, factory, redis):
    alice = await factory.user(username="alice")
    bob = await factory.user(username="bob", gender="male")
    redis.setex(f"ratelimit:swipe:{alice.id}", 3600, str(settings.SWIPE_LIMIT_PER_DAY))

    response = await client.post(
        f"{API}/matching/swipe",
        json={"swiped_id": str(bob.id), "swipe_type": "like"},
        headers=as_user(alice),
    )

    assert response.status_code == 429


async def test_feed_without_preferences(client, factory):
    alice = await factory.user(username="alice")

    response = await client.get(f"{API}/matching/feed", headers=as_user(alice))

    assert response.status_code == 412
    assert response.json()["error"] == "not_configured"


async def test_feed_returns_candidates(client, factory):
    alex = await factory.user(username="alex", gender="male")
    await factory.preference(alex, preferred_gender="female", min_age=18, max_age=99)
    bea = await factory.user(username="bea", gender="female", age=TODAY.year - 1990)

    response = await client.get(f"{API}/matching/feed", params={"page": 0, "page_size": 5}, headers=as_user(alex))

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["user_id"] == str(bea.id)
    assert 0 <= body["items"][0]["compatibility_score"] <= 100


async def test_feed_rejects_oversized_page(client, factory):
    alex = await factory.user(username="alex", gender="male")
    await factory.preference(alex)

    response = await client.get(
        f"{API}/matching/feed",
        params={"page_size": settings.FEED_MAX_PAGE_SIZE + 1},
        headers=as_user(alex),
    )

    assert response.status_code == 400


async def test_activity_summary(client, factory):
    alice = await factory.user(username="alice")
    bob = await factory.user(username="bob", gender="male")
    await client.post(
        f"{API}/matching/swipe",
        json={"swiped_id": str(bob.id), "swipe_type": "like"},
        headers=as_user(alice),
    )

    response = await client.get(f"{API}/matching/summary", headers=as_user(bob))

    assert response.json()["likes_received"] == 1
    assert response.json()["swipes"] == 0


# ==================== Chat ====================

async def test_chat_flow(client, factory):
    alice = await factory.user(username="alice")
    bob = await factory.user(username="bob", gender="male")
    match = await factory.match(alice, bob)

    sent = await client.post(
        f"{API}/chat/{match.id}/messages", json={"content": "hello bob"}, headers=as_user(alice)
    )
    assert sent.status_code == 201

    unread = await client.get(f"{API}/chat/unread", headers=as_user(bob))
    assert unread.json()["unread"] == 1

    read = await client.post(f"{API}/chat/{match.id}/read", headers=as_user(bob))
    assert read.json() == {"updated": 1}
    read_again = await client.post(f"{API}/chat/{match.id}/read", headers=as_user(bob))
    assert read_again.json() == {"updated": 0}

    found = await client.get(f"{API}/chat/{match.id}/search", params={"q": "BOB"}, headers=as_user(bob))
    assert [m["content"] for m in found.json()] == ["hello bob"]

    await client.delete(f"{API}/matching/matches/{match.id}", headers=as_user(bob))

    blocked = await client.post(
        f"{API}/chat/{match.id}/messages", json={"content": "still there?"}, headers=as_user(alice)
    )
    assert blocked.status_code == 400

    history = await client.get(f"{API}/chat/{match.id}/messages", headers=as_user(alice))
    assert history.status_code == 200
    assert history.json()["total"] == 1


async def test_chat_hidden_from_outsider(client, factory):
    alice = await factory.user(username="alice")
    bob = await factory.user(username="bob", gender="male")
    mallory = await factory.user(username="mallory")
    match = await factory.match(alice, bob)

    response = await client.get(f"{API}/chat/{match.id}/messages", headers=as_user(mallory))

    assert response.status_code == 404


# ==================== Admin ====================

OPERATOR_KEY = "ops-secret"


@pytest.fixture
def operator(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", OPERATOR_KEY)
    return {"X-Admin-Key": OPERATOR_KEY}


async def test_admin_refuses_anonymous_calls(client, factory, operator):
    alice = await factory.user(username="alice")
    bob = await factory.user(username="bob", gender="male")
    match = await factory.match(alice, bob)
    await client.post(f"{API}/chat/{match.id}/messages", json={"content": "hi"}, headers=as_user(alice))

    retention = await client.delete(f"{API}/admin/messages", params={"older_than_days": 0})
    purge = await client.delete(f"{API}/admin/matches/{match.id}")
    wrong_key = await client.delete(f"{API}/admin/matches/{match.id}", headers={"X-Admin-Key": "guess"})
    as_app_user = await client.delete(f"{API}/admin/matches/{match.id}", headers=as_user(alice))

    assert retention.status_code == 401
    assert purge.status_code == 401
    assert wrong_key.status_code == 401
    assert as_app_user.status_code == 401

    history = await client.get(f"{API}/chat/{match.id}/messages", headers=as_user(bob))
    assert history.json()["total"] == 1


async def test_admin_disabled_without_configured_key(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_KEY", None)

    response = await client.get(f"{API}/admin/analytics/top-senders", headers={"X-Admin-Key": ""})

    assert response.status_code == 403


async def test_admin_purge_and_reports(client, factory, operator):
    alice = await factory.user(username="alice")
    bob = await factory.user(username="bob", gender="male")
    match = await factory.match(alice, bob)
    await client.post(f"{API}/chat/{match.id}/messages", json={"content": "hi"}, headers=as_user(alice))

    top = await client.get(f"{API}/admin/analytics/top-senders", headers=operator)
    assert top.json()[0]["username"] == "alice"

    delay = await client.get(f"{API}/admin/analytics/first-message-delay", headers=operator)
    assert delay.json()["matches"] == 1

    stats = await client.get(f"{API}/admin/analytics/match-statistics", headers=operator)
    assert {row["username"]: row["active_matches"] for row in stats.json()} == {"alice": 1, "bob": 1}

    purge = await client.delete(f"{API}/admin/matches/{match.id}", headers=operator)
    assert purge.json() == {"deleted": 1}

    missing = await client.delete(f"{API}/admin/matches/{match.id}", headers=operator)
    assert missing.status_code == 404


async def test_mark_single_message_read(client, factory):
    alice = await factory.user(username="alice")
    bob = await factory.user(username="bob", gender="male")
    match = await factory.match(alice, bob)
    sent = await client.post(f"{API}/chat/{match.id}/messages", json={"content": "hi"}, headers=as_user(alice))
    message_id = sent.json()["id"]

    by_sender = await client.post(f"{API}/chat/messages/{message_id}/read", headers=as_user(alice))
    assert by_sender.status_code == 404

    by_recipient = await client.post(f"{API}/chat/messages/{message_id}/read", headers=as_user(bob))
    assert by_recipient.status_code == 200
    assert by_recipient.json()["is_read"] is True
