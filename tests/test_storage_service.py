import httpx
import pytest

from app.core.config import settings
from app.core.exceptions import Unauthorized, UpstreamFailure, ValidationError
from app.services.storage_service import SupabaseStorageService


# ─── Local ───────────────────────────────────────────────────────────────────

async def test_local_signed_upload_roundtrip(storage):
    signed = await storage.create_signed_upload("post-1/a.jpg")

    assert signed.path == "post-1/a.jpg"
    assert signed.upload_url == f"{settings.API_V1_STR}/uploads/post-1/a.jpg?token={signed.token}"
    assert not await storage.exists("post-1/a.jpg")

    await storage.upload_to_signed("post-1/a.jpg", signed.token, b"data")

    assert await storage.exists("post-1/a.jpg")
    assert storage.public_url("post-1/a.jpg") == "/uploads/post-1/a.jpg"


async def test_local_token_is_single_use(storage):
    signed = await storage.create_signed_upload("post-1/a.jpg")
    await storage.upload_to_signed("post-1/a.jpg", signed.token, b"data")

    with pytest.raises(Unauthorized):
        await storage.upload_to_signed("post-1/a.jpg", signed.token, b"other")


async def test_local_token_is_bound_to_its_path(storage):
    signed = await storage.create_signed_upload("post-1/a.jpg")

    with pytest.raises(Unauthorized):
        await storage.upload_to_signed("post-1/b.jpg", signed.token, b"data")
    with pytest.raises(Unauthorized):
        await storage.upload_to_signed("post-1/a.jpg", "not-a-token", b"data")


async def test_local_rejects_path_traversal(storage):
    with pytest.raises(ValidationError):
        await storage.create_signed_upload("../outside.jpg")


# ─── Supabase ────────────────────────────────────────────────────────────────

SUPABASE_URL = "https://kabsu.supabase.co"


@pytest.fixture
def supabase_settings(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_URL", SUPABASE_URL)
    monkeypatch.setattr(settings, "SUPABASE_KEY", "service-key")
    monkeypatch.setattr(settings, "SUPABASE_BUCKET", "posts")


def supabase(handler) -> SupabaseStorageService:
    return SupabaseStorageService(transport=httpx.MockTransport(handler))


async def test_supabase_requires_credentials(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_URL", None)
    with pytest.raises(RuntimeError):
        SupabaseStorageService()


async def test_supabase_create_signed_upload(supabase_settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"url": "/object/upload/sign/posts/p/1.jpg?token=abc123"})

    signed = await supabase(handler).create_signed_upload("p/1.jpg")

    assert signed.token == "abc123"
    assert signed.upload_url == f"{SUPABASE_URL}/storage/v1/object/upload/sign/posts/p/1.jpg?token=abc123"
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/storage/v1/object/upload/sign/posts/p/1.jpg"
    assert seen[0].headers["apikey"] == "service-key"


async def test_supabase_signing_failure(supabase_settings):
    service = supabase(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(UpstreamFailure) as exc:
        await service.create_signed_upload("p/1.jpg")
    assert exc.value.provider == "storage"


async def test_supabase_upload_to_signed(supabase_settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"Key": "posts/p/1.jpg"})

    await supabase(handler).upload_to_signed("p/1.jpg", "abc123", b"jpeg", "image/jpeg")

    assert seen[0].method == "PUT"
    assert seen[0].url.params["token"] == "abc123"
    assert seen[0].content == b"jpeg"


@pytest.mark.parametrize("status, expected", [(200, True), (400, False), (404, False)])
async def test_supabase_exists(supabase_settings, status, expected):
    service = supabase(lambda request: httpx.Response(status))
    assert await service.exists("p/1.jpg") is expected


async def test_supabase_exists_server_error(supabase_settings):
    service = supabase(lambda request: httpx.Response(503))
    with pytest.raises(UpstreamFailure):
        await service.exists("p/1.jpg")


async def test_supabase_network_error(supabase_settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamFailure) as exc:
        await supabase(handler).exists("p/1.jpg")
    assert "connection refused" in exc.value.message


def test_supabase_public_url(supabase_settings):
    service = supabase(lambda request: httpx.Response(200))
    assert service.public_url("p/1.jpg") == f"{SUPABASE_URL}/storage/v1/object/public/posts/p/1.jpg"
