"""Shared fixtures: in-memory database, fake identity provider, local storage."""

import itertools
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Dict, Iterable, List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.database import Base, get_db
from app.dependencies import create_access_token, get_identity, get_storage
from app.main import app as fastapi_app
from app.models import Campus, College, Follow, Post, PostType, Program, User
from app.schemas import ProfileRecord
from app.services.identity_service import BaseIdentityProvider
from app.services.storage_service import LocalStorageService

BASE_TIME = datetime(2026, 1, 5, 8, 0, 0)


class FakeIdentityProvider(BaseIdentityProvider):
    """In-memory identity provider."""

    def __init__(self):
        self.profiles: Dict[str, ProfileRecord] = {}
        self.metadata_updates: List[tuple] = []
        self.lookups: List[List[str]] = []

    def add(self, user_id: str, username: str, is_verified: bool = False) -> ProfileRecord:
        profile = ProfileRecord(
            id=user_id,
            username=username,
            first_name=username.title(),
            last_name="Cruz",
            image_url=f"https://img.example.com/{username}.png",
            is_verified=is_verified,
        )
        self.profiles[user_id] = profile
        return profile

    async def get_users_by_ids(self, user_ids: Iterable[str]) -> List[ProfileRecord]:
        ids = list(user_ids)
        self.lookups.append(ids)
        return [self.profiles[user_id] for user_id in ids if user_id in self.profiles]

    async def get_users_by_username(self, username: str) -> List[ProfileRecord]:
        return [p for p in self.profiles.values() if p.username == username]

    async def search_users(self, query: str, limit: int = 10) -> List[ProfileRecord]:
        query = query.lower()
        matches = [
            p for p in self.profiles.values()
            if query in p.name.lower() or query in (p.username or "").lower()
        ]
        return matches[:limit]

    async def update_user_metadata(self, user_id: str, patch: dict) -> ProfileRecord:
        self.metadata_updates.append((user_id, patch))
        profile = self.profiles[user_id]
        profile.public_metadata.update(patch)
        return profile


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def storage(tmp_path):
    return LocalStorageService(upload_root=str(tmp_path / "uploads"))


@pytest_asyncio.fixture
async def hierarchy(db):
    """Two campuses; the main one has two colleges."""
    main = Campus(slug="main", name="Main Campus")
    other = Campus(slug="imus", name="Imus Campus")
    db.add_all([main, other])
    await db.flush()

    ceit = College(campus_id=main.id, slug="ceit", name="College of Engineering and IT")
    cas = College(campus_id=main.id, slug="cas", name="College of Arts and Sciences")
    imus_cs = College(campus_id=other.id, slug="dcs", name="Department of Computer Studies")
    db.add_all([ceit, cas, imus_cs])
    await db.flush()

    bscs = Program(college_id=ceit.id, slug="bscs", name="BS Computer Science")
    bsit = Program(college_id=ceit.id, slug="bsit", name="BS Information Technology")
    bspsych = Program(college_id=cas.id, slug="bspsych", name="BS Psychology")
    imus_bscs = Program(college_id=imus_cs.id, slug="bscs", name="BS Computer Science")
    db.add_all([bscs, bsit, bspsych, imus_bscs])
    await db.flush()

    return SimpleNamespace(
        main=main,
        other=other,
        ceit=ceit,
        cas=cas,
        imus_cs=imus_cs,
        bscs=bscs,
        bsit=bsit,
        bspsych=bspsych,
        imus_bscs=imus_bscs,
    )


@pytest.fixture
def make_user(db, identity):
    async def _make(username: str, program=None, verified: bool = False, in_identity: bool = True) -> User:
        user = User(
            id=f"user_{username}",
            username=username,
            program_id=program.id if program is not None else None,
        )
        db.add(user)
        await db.flush()
        if in_identity:
            identity.add(user.id, username, is_verified=verified)
        return user

    return _make


@pytest.fixture
def make_post(db):
    minutes = itertools.count(1)

    async def _make(user: User, content: str = "Hello Kabsu", created_at: datetime = None, **kwargs) -> Post:
        post = Post(
            user_id=user.id,
            content=content,
            type=kwargs.pop("type", PostType.following),
            created_at=created_at or BASE_TIME + timedelta(minutes=next(minutes)),
            **kwargs,
        )
        db.add(post)
        await db.flush()
        return post

    return _make


@pytest.fixture
def follow(db):
    async def _follow(follower: User, followee: User) -> None:
        db.add(Follow(follower_id=follower.id, followee_id=followee.id))
        await db.flush()

    return _follow


# ─── API ─────────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(session_factory, identity, storage):
    """HTTP client bound to the app. Commit seeded rows before calling it."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_identity] = lambda: identity
    fastapi_app.dependency_overrides[get_storage] = lambda: storage

    transport = httpx.ASGITransport(app=fastapi_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers
