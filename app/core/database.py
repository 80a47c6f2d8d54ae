"""Async SQLAlchemy engine, session factory and declarative base."""

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings

# Query params libpq understands but asyncpg rejects
_LIBPQ_ONLY_PARAMS = {"sslmode", "channel_binding", "pgbouncer"}


def normalize_database_url(url: str) -> str:
    """
    Turn a Supabase connection string into an asyncpg one.

    ``postgresql://`` gets the ``+asyncpg`` driver, ``sslmode=require``
    becomes ``ssl=require`` and the other libpq-only params are dropped.
    Non-Postgres URLs are returned unchanged.
    """
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if not url.startswith(("postgresql://", "postgresql+asyncpg://")):
        return url

    parts = urlsplit(url.replace("postgresql://", "postgresql+asyncpg://", 1))
    params = []
    for key, value in parse_qsl(parts.query):
        if key == "sslmode" and value == "require":
            params.append(("ssl", "require"))
        elif key not in _LIBPQ_ONLY_PARAMS:
            params.append((key, value))
    return urlunsplit(parts._replace(query=urlencode(params)))


def _connect_args(url: str) -> dict:
    # Supabase's transaction pooler (port 6543) cannot hold prepared statements
    if url.startswith("postgresql+asyncpg://") and ":6543/" in url:
        return {"statement_cache_size": 0}
    return {}


db_url = normalize_database_url(settings.DATABASE_URL)

engine = create_async_engine(
    db_url,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    connect_args=_connect_args(db_url),
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


async def init_models() -> None:
    """Create missing tables. Alembic owns schema changes after the first deploy."""
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """Dependency that provides an async database session, committed on success."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
