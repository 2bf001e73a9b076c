"""HTTP API tests against the in-memory container."""
import uuid

import httpx
import pytest

from app.auth import encode_access
from app.container import build_container
from app.main import create_app
from tests.conftest import build_profile


@pytest.fixture
def container(settings, profile_store, conversation_store):
    return build_container(
        settings,
        profile_store=profile_store,
        conversation_store=conversation_store,
    )


@pytest.fixture
async def client(container):
    app = create_app(container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def _headers(user_id):
    return {"Authorization": f"Bearer {encode_access(user_id)}"}


class TestAuth:

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/matches")
        assert response.status_code == 401
        assert response.json()["error"]["kind"] == "authentication_error"

    @pytest.mark.asyncio
    async def test_expired_token(self, client, stored_pair):
        alex, _ = stored_pair
        token = encode_access(alex.id, ttl_minutes=-10)
        response = await client.get("/api/v1/matches", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestHealth:

    @pytest.mark.asyncio
    async def test_liveness(self, client):
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_deep_with_memory_backend(self, client):
        body = (await client.get("/health/deep")).json()
        assert body["status"] == "healthy"
        assert body["database"] == "not_configured"


class TestMatchFlow:

    @pytest.mark.asyncio
    async def test_mutual_like_end_to_end(self, client, profile_store):
        """A (25, into women) and B (24, female, into men) like each other."""
        a = build_profile(display_name="A", age=25, gender="male", interested_in="women")
        b = build_profile(display_name="B", age=24, gender="female", interested_in="men")
        await profile_store.add(a)
        await profile_store.add(b)

        own = await client.post(f"/api/v1/matches/like/{b.id}", headers=_headers(b.id))
        assert own.status_code == 400
        assert own.json()["error"]["kind"] == "self_like"

        liked = await client.post(f"/api/v1/matches/like/{a.id}", headers=_headers(b.id))
        assert liked.json()["is_match"] is False

        matched = await client.post(f"/api/v1/matches/like/{b.id}", headers=_headers(a.id))
        body = matched.json()
        assert body["is_match"] is True
        assert body["match"]["is_active"] is True
        assert body["match"]["last_message"]["text"] == "You matched with B! Start the conversation."

        for viewer, other in ((a, b), (b, a)):
            listing = (await client.get("/api/v1/matches", headers=_headers(viewer.id))).json()
            assert len(listing) == 1
            assert listing[0]["user"]["id"] == str(other.id)

    @pytest.mark.asyncio
    async def test_duplicate_like_conflict(self, client, stored_pair):
        alex, bella = stored_pair
        await client.post(f"/api/v1/matches/like/{bella.id}", headers=_headers(alex.id))
        again = await client.post(f"/api/v1/matches/like/{bella.id}", headers=_headers(alex.id))
        assert again.status_code == 409
        assert again.json()["error"]["kind"] == "duplicate_like"

    @pytest.mark.asyncio
    async def test_super_like_requires_premium(self, client, stored_pair):
        alex, bella = stored_pair
        response = await client.post(f"/api/v1/matches/super-like/{bella.id}", headers=_headers(alex.id))
        assert response.status_code == 403
        assert response.json()["error"]["kind"] == "permission_denied"

    @pytest.mark.asyncio
    async def test_unmatch(self, client, active_match, stored_pair):
        alex, _ = stored_pair
        response = await client.post(
            f"/api/v1/matches/{active_match.id}/unmatch", headers=_headers(alex.id)
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False
        listing = await client.get("/api/v1/matches", headers=_headers(alex.id))
        assert listing.json() == []


class TestMessages:

    @pytest.mark.asyncio
    async def test_send_and_fetch(self, client, active_match, stored_pair):
        alex, bella = stored_pair
        sent = await client.post(
            "/api/v1/messages",
            json={"match_id": str(active_match.id), "text": "hi"},
            headers=_headers(alex.id),
        )
        assert sent.status_code == 201
        assert set(sent.json()) == {"id", "matchId", "seq", "text", "senderId", "timestamp", "isRead"}

        bella_view = (await client.get(f"/api/v1/messages/{active_match.id}", headers=_headers(bella.id))).json()
        hi = next(m for m in bella_view if m["text"] == "hi")
        assert hi["sender"] == "match"
        assert hi["isRead"] is True

        alex_view = (await client.get(f"/api/v1/messages/{active_match.id}", headers=_headers(alex.id))).json()
        hi = next(m for m in alex_view if m["text"] == "hi")
        assert hi["sender"] == "user"
        assert hi["isRead"] is True

    @pytest.mark.asyncio
    async def test_outsider_cannot_fetch(self, client, active_match):
        response = await client.get(f"/api/v1/messages/{active_match.id}", headers=_headers(uuid.uuid4()))
        assert response.status_code == 403
        assert response.json()["error"]["kind"] == "not_authorized"

    @pytest.mark.asyncio
    async def test_too_long_message(self, client, active_match, stored_pair):
        alex, _ = stored_pair
        response = await client.post(
            "/api/v1/messages",
            json={"match_id": str(active_match.id), "text": "x" * 1001},
            headers=_headers(alex.id),
        )
        assert response.status_code == 422
        assert response.json()["error"]["kind"] == "message_too_long"


class TestCandidatesAndProfiles:

    @pytest.mark.asyncio
    async def test_candidates_page(self, client, stored_pair):
        alex, bella = stored_pair
        response = await client.get("/api/v1/candidates", headers=_headers(alex.id))
        body = response.json()
        assert response.status_code == 200
        assert [u["id"] for u in body["users"]] == [str(bella.id)]
        assert body["total"] == 1
        assert body["users"][0]["common_interests"] == ["coffee", "music"]
        assert body["scoring"] == "canonical"

    @pytest.mark.asyncio
    async def test_candidates_quick_scoring(self, client, stored_pair):
        alex, _ = stored_pair
        response = await client.get("/api/v1/candidates?scoring=quick", headers=_headers(alex.id))
        body = response.json()
        assert response.status_code == 200
        assert body["scoring"] == "quick"
        # 50 base + 20 age + 2/3 shared interests × 30 + 10 same relationship type
        assert body["users"][0]["compatibility_score"] == 100

    @pytest.mark.asyncio
    async def test_unknown_category_rejected(self, client, stored_pair):
        alex, _ = stored_pair
        response = await client.get("/api/v1/candidates?category=skydiving", headers=_headers(alex.id))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_preferences_round_trip(self, client, stored_pair):
        alex, _ = stored_pair
        update = {"age_min": 21, "age_max": 30, "distance": 25, "relationship_type": "serious"}
        put = await client.put("/api/v1/profiles/me/preferences", json=update, headers=_headers(alex.id))
        assert put.status_code == 200

        got = await client.get("/api/v1/profiles/me/preferences", headers=_headers(alex.id))
        assert got.json() == {**update, "distance": 25.0}

    @pytest.mark.asyncio
    async def test_preferences_reject_inverted_range(self, client, stored_pair):
        alex, _ = stored_pair
        response = await client.put(
            "/api/v1/profiles/me/preferences",
            json={"age_min": 40, "age_max": 30},
            headers=_headers(alex.id),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_profile_patch_rejects_unknown_fields(self, client, stored_pair):
        alex, _ = stored_pair
        response = await client.patch(
            "/api/v1/profiles/me", json={"is_premium": True}, headers=_headers(alex.id)
        )
        assert response.status_code == 422
        assert response.json()["error"]["kind"] == "validation_error"

    @pytest.mark.asyncio
    async def test_profile_patch_applies_known_fields(self, client, stored_pair):
        alex, _ = stored_pair
        response = await client.patch(
            "/api/v1/profiles/me",
            json={"bio": "Coffee first.", "interests": ["coffee", "food"]},
            headers=_headers(alex.id),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["bio"] == "Coffee first."
        assert body["interests"] == ["coffee", "food"]

    @pytest.mark.asyncio
    async def test_profile_patch_rejects_fifth_interest(self, client, stored_pair):
        alex, _ = stored_pair
        response = await client.patch(
            "/api/v1/profiles/me",
            json={"interests": ["coffee", "food", "music", "travel", "gaming"]},
            headers=_headers(alex.id),
        )
        assert response.status_code == 422
