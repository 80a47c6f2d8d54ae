"""Image storage: local filesystem in development, Supabase Storage in production.

- PRODUCTION=false → LocalStorageService (saves to server/uploads/, tokens are signed JWTs)
- PRODUCTION=true  → SupabaseStorageService (Supabase Storage signed upload URLs)

Images never pass through our API in production: the server mints a signed
upload descriptor and the caller PUTs the bytes to ``upload_url`` itself.
"""

import os
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from urllib.parse import parse_qs, urlparse

import httpx
from jose import JWTError, jwt

from app.core.config import settings
from app.core.exceptions import Unauthorized, UpstreamFailure, ValidationError
from app.core.logging import logger
from app.schemas import SignedUpload


class BaseStorageService(ABC):
    """Abstract base for file storage backends."""

    @abstractmethod
    async def create_signed_upload(self, rel_path: str) -> SignedUpload:
        """Mint a descriptor allowing one upload to ``rel_path``."""
        ...

    @abstractmethod
    async def upload_to_signed(
        self, rel_path: str, token: str, content: bytes, content_type: str = "image/jpeg"
    ) -> None:
        """Upload bytes using a descriptor's token."""
        ...

    @abstractmethod
    async def exists(self, rel_path: str) -> bool:
        ...

    @abstractmethod
    def public_url(self, rel_path: str) -> str:
        ...


# ──────────────────────────────────────────────────────────────────────────────
# LOCAL STORAGE (development)
# ──────────────────────────────────────────────────────────────────────────────

class LocalStorageService(BaseStorageService):
    """Save files to local uploads/ directory. Used in dev mode."""

    TOKEN_SCOPE = "storage:upload"

    def __init__(self, upload_root: str = None):
        # server/uploads/  (relative to server/ root)
        self.upload_root = upload_root or settings.UPLOAD_DIR or os.path.join(
            os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
            "uploads",
        )
        os.makedirs(self.upload_root, exist_ok=True)

    def _full_path(self, rel_path: str) -> str:
        full_path = os.path.abspath(os.path.join(self.upload_root, rel_path))
        if not full_path.startswith(os.path.abspath(self.upload_root) + os.sep):
            raise ValidationError("path", f"Invalid storage path: {rel_path}")
        return full_path

    async def create_signed_upload(self, rel_path: str) -> SignedUpload:
        self._full_path(rel_path)
        expire = datetime.utcnow() + timedelta(seconds=settings.SIGNED_UPLOAD_EXPIRE_SECONDS)
        token = jwt.encode(
            {"path": rel_path, "scope": self.TOKEN_SCOPE, "exp": expire},
            settings.JWT_SECRET,
            algorithm="HS256",
        )
        return SignedUpload(
            path=rel_path,
            token=token,
            upload_url=f"{settings.API_V1_STR}/uploads/{rel_path}?token={token}",
        )

    async def upload_to_signed(
        self, rel_path: str, token: str, content: bytes, content_type: str = "image/jpeg"
    ) -> None:
        try:
            claims = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
        except JWTError:
            raise Unauthorized("Invalid or expired upload token")

        if claims.get("scope") != self.TOKEN_SCOPE or claims.get("path") != rel_path:
            raise Unauthorized("Upload token does not match this path")

        full_path = self._full_path(rel_path)
        if os.path.exists(full_path):
            raise Unauthorized("Upload token already used")

        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "wb") as f:
            f.write(content)

        logger.info(f"Saved locally: {full_path} ({len(content)} bytes, {content_type})")

    async def exists(self, rel_path: str) -> bool:
        return os.path.exists(self._full_path(rel_path))

    def public_url(self, rel_path: str) -> str:
        # Served by the StaticFiles mount in main.py
        return f"/uploads/{rel_path}"


# ──────────────────────────────────────────────────────────────────────────────
# SUPABASE STORAGE (production)
# ──────────────────────────────────────────────────────────────────────────────

class SupabaseStorageService(BaseStorageService):
    """Supabase Storage signed uploads. Used in production."""

    def __init__(self, transport=None):
        if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
            raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set for production storage.")
        self.base_url = f"{settings.SUPABASE_URL}/storage/v1"
        self.bucket = settings.SUPABASE_BUCKET
        self.headers = {
            "apikey": settings.SUPABASE_KEY,
            "Authorization": f"Bearer {settings.SUPABASE_KEY}",
        }
        self.transport = transport

    def _client(self, timeout: float = 30.0) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    def public_url(self, rel_path: str) -> str:
        return f"{self.base_url}/object/public/{self.bucket}/{rel_path}"

    async def create_signed_upload(self, rel_path: str) -> SignedUpload:
        url = f"{self.base_url}/object/upload/sign/{self.bucket}/{rel_path}"

        try:
            async with self._client() as client:
                resp = await client.post(url, headers=self.headers)
        except httpx.HTTPError as e:
            logger.error(f"Supabase signing failed for {rel_path}: {e}")
            raise UpstreamFailure("storage", str(e)) from e

        if resp.status_code not in (200, 201):
            logger.error(f"Supabase signing failed ({resp.status_code}): {resp.text}")
            raise UpstreamFailure("storage", f"Could not sign upload: HTTP {resp.status_code}")

        # {"url": "/object/upload/sign/<bucket>/<path>?token=..."}
        signed = resp.json()["url"]
        token = parse_qs(urlparse(signed).query).get("token", [""])[0]
        if not token:
            raise UpstreamFailure("storage", "Signed upload URL has no token")

        return SignedUpload(path=rel_path, token=token, upload_url=f"{self.base_url}{signed}")

    async def upload_to_signed(
        self, rel_path: str, token: str, content: bytes, content_type: str = "image/jpeg"
    ) -> None:
        url = f"{self.base_url}/object/upload/sign/{self.bucket}/{rel_path}"
        headers = {"Content-Type": content_type}

        try:
            async with self._client(timeout=60.0) as client:
                resp = await client.put(url, params={"token": token}, content=content, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamFailure("storage", str(e)) from e

        if resp.status_code not in (200, 201):
            logger.error(f"Supabase upload failed ({resp.status_code}): {resp.text}")
            raise UpstreamFailure("storage", f"File upload failed: HTTP {resp.status_code}")

        logger.info(f"Uploaded to Supabase: {rel_path}")

    async def exists(self, rel_path: str) -> bool:
        url = f"{self.base_url}/object/{self.bucket}/{rel_path}"

        try:
            async with self._client() as client:
                resp = await client.head(url, headers=self.headers)
        except httpx.HTTPError as e:
            raise UpstreamFailure("storage", str(e)) from e

        if resp.status_code == 200:
            return True
        if resp.status_code in (400, 404):
            return False

        logger.error(f"Supabase exists check failed ({resp.status_code}) for {rel_path}")
        raise UpstreamFailure("storage", f"HTTP {resp.status_code}")


# ──────────────────────────────────────────────────────────────────────────────
# Singleton: implementation chosen by the PRODUCTION flag
# ──────────────────────────────────────────────────────────────────────────────

def _create_storage_service() -> BaseStorageService:
    if settings.PRODUCTION:
        logger.info("Storage: Supabase (production mode)")
        return SupabaseStorageService()
    else:
        logger.info("Storage: Local filesystem (dev mode)")
        return LocalStorageService()


storage_service = _create_storage_service()
