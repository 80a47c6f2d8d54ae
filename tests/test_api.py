from io import BytesIO

import httpx
import pytest
import pytest_asyncio
from PIL import Image

from app.client import ApiError, FeedClient
from app.main import app as fastapi_app
from app.dependencies import create_access_token


def jpeg_source() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (1200, 800), "green").save(buffer, format="PNG")
    return buffer.getvalue()


@pytest_asyncio.fixture
async def seeded(db, hierarchy, make_user):
    alice = await make_user("alice", hierarchy.bscs)
    bob = await make_user("bob", hierarchy.bscs)
    await db.commit()
    return alice, bob


async def test_feed_requires_a_session(client):
    resp = await client.get("/api/v1/posts/")

    assert resp.status_code == 401
    assert resp.json()["error"] == "UNAUTHORIZED"


async def test_invalid_session_token(client):
    resp = await client.get("/api/v1/posts/", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401


async def test_session_without_user_row(client, auth_headers):
    resp = await client.get("/api/v1/posts/", headers=auth_headers("user_ghost"))

    assert resp.status_code == 404
    assert resp.json()["error"] == "VIEWER_NOT_FOUND"


async def test_overlong_post_is_a_field_error(client, seeded, auth_headers):
    alice, _ = seeded

    resp = await client.post(
        "/api/v1/posts/", json={"content": "x" * 513}, headers=auth_headers(alice.id)
    )

    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["field"] == "content"


async def test_campus_feed_is_unavailable(client, seeded, auth_headers):
    alice, _ = seeded

    resp = await client.get("/api/v1/posts/", params={"type": "campus"}, headers=auth_headers(alice.id))

    assert resp.status_code == 422
    assert resp.json()["field"] == "type"


async def test_follow_flow(client, seeded, auth_headers):
    alice, bob = seeded
    headers = auth_headers(alice.id)

    await client.post("/api/v1/posts/", json={"content": "bob here"}, headers=auth_headers(bob.id))

    assert (await client.post(f"/api/v1/users/{bob.id}/follow", headers=headers)).status_code == 200
    again = await client.post(f"/api/v1/users/{bob.id}/follow", headers=headers)
    assert again.status_code == 409

    feed = (await client.get("/api/v1/posts/", headers=headers)).json()
    assert [p["content"] for p in feed] == ["bob here"]

    for _ in range(2):
        resp = await client.delete(f"/api/v1/users/{bob.id}/follow", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["is_following"] is False

    profile = (await client.get("/api/v1/users/bob", headers=headers)).json()
    assert profile["followers_count"] == 0


async def test_public_endpoints(client, seeded):
    search = await client.get("/api/v1/users/search", params={"query": "ali"})
    taken = await client.get("/api/v1/users/username-taken", params={"username": "bob"})
    programs = await client.get("/api/v1/programs/")

    assert [u["username"] for u in search.json()] == ["alice"]
    assert taken.json() == {"username": "bob", "taken": True}
    assert len(programs.json()["programs"]) == 4


async def test_upload_endpoint_rejects_bad_tokens(client):
    resp = await client.put("/api/v1/uploads/some/path.jpg", params={"token": "bad"}, content=b"x")
    assert resp.status_code == 401

    empty = await client.put("/api/v1/uploads/some/path.jpg", params={"token": "bad"}, content=b"")
    assert empty.status_code == 422
    assert empty.json()["field"] == "file"


# ─── Client workflow ─────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def feed_client(client, seeded):
    alice, _ = seeded
    transport = httpx.ASGITransport(app=fastapi_app)
    async with FeedClient("http://test", create_access_token(alice.id), transport=transport) as feed:
        yield feed


async def test_submit_post_with_one_broken_image(feed_client, storage):
    assert await feed_client.get_posts("all") == []

    result = await feed_client.submit_post(
        "Enrollment is open!", type="all", images=[jpeg_source(), b"not an image"]
    )

    assert result.post["content"] == "Enrollment is open!"
    assert len(result.uploaded) == 1
    assert not result.complete
    (failure,) = result.failures
    assert failure.stage == "compress"
    assert failure.order == 1

    # The cached empty page was dropped
    (post,) = await feed_client.get_posts("all")
    assert post["id"] == result.post["id"]
    assert [image["storage_path"] for image in post["images"]] == result.uploaded
    assert await storage.exists(result.uploaded[0])


async def test_submit_post_rejected(feed_client):
    with pytest.raises(ApiError) as exc:
        await feed_client.submit_post("   ")

    assert exc.value.status_code == 422
    assert exc.value.field == "content"


async def test_follow_invalidates_following_cache(feed_client, client, seeded, auth_headers):
    _, bob = seeded
    assert await feed_client.get_posts("following") == []
    await client.post("/api/v1/posts/", json={"content": "new from bob"}, headers=auth_headers(bob.id))

    # Still cached
    assert await feed_client.get_posts("following") == []

    await feed_client.follow(bob.id)
    posts = await feed_client.get_posts("following")
    assert [p["content"] for p in posts] == ["new from bob"]


async def test_mention_candidates(feed_client):
    candidates = await feed_client.mention_candidates("@b")
    assert [c["username"] for c in candidates] == ["bob"]
