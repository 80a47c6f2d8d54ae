"""Identity provider adapter.

Profile data (display name, avatar, verification badge) lives with the
identity provider, not in our tables. ClerkIdentityProvider talks to the
Clerk Backend API over HTTP.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List

import httpx

from app.core.config import settings
from app.core.exceptions import UpstreamFailure
from app.core.logging import logger
from app.schemas import ProfileRecord


class BaseIdentityProvider(ABC):
    """Abstract base for identity provider backends."""

    @abstractmethod
    async def get_users_by_ids(self, user_ids: Iterable[str]) -> List[ProfileRecord]:
        """Batch lookup. Unknown ids are simply absent from the result."""
        ...

    @abstractmethod
    async def get_users_by_username(self, username: str) -> List[ProfileRecord]:
        ...

    @abstractmethod
    async def search_users(self, query: str, limit: int = 10) -> List[ProfileRecord]:
        """Partial match on name, username or email."""
        ...

    @abstractmethod
    async def update_user_metadata(self, user_id: str, patch: dict) -> ProfileRecord:
        """Merge ``patch`` into the user's public metadata."""
        ...

    async def get_profiles_map(self, user_ids: Iterable[str]) -> Dict[str, ProfileRecord]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        return {profile.id: profile for profile in await self.get_users_by_ids(ids)}


def profile_from_clerk(data: dict) -> ProfileRecord:
    """Map a Clerk user object onto a ProfileRecord."""
    metadata = data.get("public_metadata") or {}
    return ProfileRecord(
        id=data["id"],
        username=data.get("username"),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        image_url=data.get("image_url"),
        is_verified=bool(metadata.get("is_verified", False)),
        public_metadata=metadata,
    )


class ClerkIdentityProvider(BaseIdentityProvider):
    """Clerk Backend API client."""

    # Clerk caps list endpoints at 500 users per request
    MAX_PAGE = 500

    def __init__(self, api_url: str = None, secret_key: str = None, transport=None):
        self.base_url = (api_url or settings.CLERK_API_URL).rstrip("/")
        self.secret_key = secret_key or settings.CLERK_SECRET_KEY
        self.transport = transport
        if not self.secret_key:
            logger.warning("CLERK_SECRET_KEY is not set; identity lookups will fail")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.secret_key}"},
            timeout=15.0,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, **kwargs):
        try:
            async with self._client() as client:
                resp = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Clerk request {method} {path} failed: {e}")
            raise UpstreamFailure("identity", str(e)) from e

        if resp.status_code != 200:
            logger.error(f"Clerk {method} {path} returned {resp.status_code}: {resp.text}")
            raise UpstreamFailure("identity", f"HTTP {resp.status_code}")

        return resp.json()

    async def get_users_by_ids(self, user_ids: Iterable[str]) -> List[ProfileRecord]:
        ids = list(user_ids)
        profiles: List[ProfileRecord] = []
        for start in range(0, len(ids), self.MAX_PAGE):
            chunk = ids[start:start + self.MAX_PAGE]
            params = [("user_id", user_id) for user_id in chunk]
            params.append(("limit", str(len(chunk))))
            data = await self._request("GET", "/users", params=params)
            profiles.extend(profile_from_clerk(item) for item in data)
        return profiles

    async def get_users_by_username(self, username: str) -> List[ProfileRecord]:
        data = await self._request("GET", "/users", params={"username": username})
        return [profile_from_clerk(item) for item in data]

    async def search_users(self, query: str, limit: int = 10) -> List[ProfileRecord]:
        data = await self._request("GET", "/users", params={"query": query, "limit": limit})
        return [profile_from_clerk(item) for item in data]

    async def update_user_metadata(self, user_id: str, patch: dict) -> ProfileRecord:
        data = await self._request(
            "PATCH", f"/users/{user_id}/metadata", json={"public_metadata": patch}
        )
        logger.info(f"Updated identity metadata for {user_id}: {sorted(patch)}")
        return profile_from_clerk(data)


identity_provider: BaseIdentityProvider = ClerkIdentityProvider()
