"""Async client for the feed API.

``submit_post`` runs the caller's half of the submission workflow: create
the post, compress and upload every image concurrently, confirm the uploads,
then drop cached pages that the new post makes stale. Image problems never
raise; they are collected per image in ``SubmissionResult.failures``.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from app.client.images import ImageCompressionError, compress_image
from app.core.config import settings
from app.schemas import ImageFailure, SignedUpload

POSTS_URL = f"{settings.API_V1_STR}/posts/"
USERS_URL = f"{settings.API_V1_STR}/users"


class ApiError(Exception):
    """Error response from the API, e.g. a field-level validation error."""

    def __init__(self, status_code: int, code: str, message: str, field: Optional[str] = None):
        super().__init__(f"{status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message
        self.field = field


@dataclass
class SubmissionResult:
    post: dict
    uploaded: List[str] = field(default_factory=list)
    failures: List[ImageFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


class FeedClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        upload_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
            timeout=30.0,
        )
        # Separate client: the session token must not reach the storage provider
        self._uploads = httpx.AsyncClient(
            base_url=base_url,
            transport=upload_transport or transport,
            timeout=60.0,
        )
        self._feed_cache: Dict[Tuple[str, int], List[dict]] = {}
        self._profile_cache: Dict[Tuple[str, int], List[dict]] = {}

    async def __aenter__(self) -> "FeedClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._api.aclose()
        await self._uploads.aclose()

    async def _call(self, method: str, url: str, **kwargs) -> Any:
        resp = await self._api.request(method, url, **kwargs)
        if resp.is_error:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            raise ApiError(
                resp.status_code,
                body.get("error", "HTTP_ERROR"),
                body.get("message") or body.get("detail") or resp.text,
                body.get("field"),
            )
        return resp.json()

    # ─── Reads (cached) ──────────────────────────────────────────────────────

    async def get_posts(self, scope: str = "following", page: int = 1, refresh: bool = False) -> List[dict]:
        key = (scope, page)
        if refresh or key not in self._feed_cache:
            self._feed_cache[key] = await self._call(
                "GET", POSTS_URL, params={"type": scope, "page": page}
            )
        return self._feed_cache[key]

    async def get_user_posts(self, username: str, page: int = 1, refresh: bool = False) -> List[dict]:
        key = (username, page)
        if refresh or key not in self._profile_cache:
            self._profile_cache[key] = await self._call(
                "GET", f"{USERS_URL}/{username}/posts", params={"page": page}
            )
        return self._profile_cache[key]

    def invalidate_feed(self, scope: Optional[str] = None) -> None:
        for key in list(self._feed_cache):
            if scope is None or key[0] == scope:
                del self._feed_cache[key]

    def invalidate_profiles(self) -> None:
        self._profile_cache.clear()

    # ─── Users ───────────────────────────────────────────────────────────────

    async def mention_candidates(self, name: str) -> List[dict]:
        return await self._call("GET", f"{USERS_URL}/mentions", params={"name": name})

    async def follow(self, user_id: str) -> dict:
        result = await self._call("POST", f"{USERS_URL}/{user_id}/follow")
        self.invalidate_feed("following")
        self.invalidate_profiles()
        return result

    async def unfollow(self, user_id: str) -> dict:
        result = await self._call("DELETE", f"{USERS_URL}/{user_id}/follow")
        self.invalidate_feed("following")
        self.invalidate_profiles()
        return result

    # ─── Submission workflow ─────────────────────────────────────────────────

    async def submit_post(
        self, content: str, type: str = "following", images: Sequence[bytes] = ()
    ) -> SubmissionResult:
        """
        Create a post and attach ``images`` (raw bytes, in display order).

        Raises ApiError when the post itself is rejected; nothing is written
        in that case.
        """
        submission = await self._call(
            "POST",
            POSTS_URL,
            json={
                "type": type,
                "content": content,
                # Everything is re-encoded as JPEG before upload
                "images": [{"order": i, "content_type": "image/jpeg"} for i in range(len(images))],
            },
        )
        post = submission["post"]
        failures = [ImageFailure(**failure) for failure in submission["failures"]]
        descriptors = [SignedUpload(**signed) for signed in submission["signed_urls"]]

        outcomes = await asyncio.gather(
            *(self._compress_and_upload(images[d.order], d) for d in descriptors)
        )
        uploaded = [d.path for d, failure in zip(descriptors, outcomes) if failure is None]
        failures.extend(failure for failure in outcomes if failure is not None)

        attached: List[str] = []
        if uploaded:
            try:
                confirmation = await self._call(
                    "POST",
                    f"{POSTS_URL}{post['id']}/images/confirm",
                    json={"paths": uploaded},
                )
                attached = confirmation["uploaded"]
                missing = confirmation["missing"]
            except (ApiError, httpx.HTTPError) as e:
                missing = uploaded
                message = str(e)
            else:
                message = "Upload not found in storage"
            failures.extend(ImageFailure(path=path, stage="confirm", message=message) for path in missing)

        self.invalidate_feed(type)
        self.invalidate_profiles()
        return SubmissionResult(post=post, uploaded=attached, failures=failures)

    async def _compress_and_upload(self, data: bytes, descriptor: SignedUpload) -> Optional[ImageFailure]:
        try:
            compressed = await asyncio.to_thread(compress_image, data)
        except ImageCompressionError as e:
            return ImageFailure(path=descriptor.path, order=descriptor.order, stage="compress", message=str(e))

        try:
            resp = await self._uploads.put(
                descriptor.upload_url,
                content=compressed,
                headers={"Content-Type": "image/jpeg"},
            )
        except httpx.HTTPError as e:
            return ImageFailure(path=descriptor.path, order=descriptor.order, stage="upload", message=str(e))

        if resp.is_error:
            return ImageFailure(
                path=descriptor.path,
                order=descriptor.order,
                stage="upload",
                message=f"HTTP {resp.status_code}",
            )
        return None
