from datetime import timedelta

import pytest

from app.core.database import normalize_database_url
from app.core.exceptions import ScopeUnavailable, Unauthorized, UpstreamFailure
from app.dependencies import create_access_token, decode_session_token


@pytest.mark.parametrize(
    "url, expected",
    [
        (
            "postgresql://u:p@db.supabase.co:5432/postgres?sslmode=require",
            "postgresql+asyncpg://u:p@db.supabase.co:5432/postgres?ssl=require",
        ),
        (
            "postgres://u:p@pooler.supabase.com:6543/postgres?pgbouncer=true&channel_binding=require",
            "postgresql+asyncpg://u:p@pooler.supabase.com:6543/postgres",
        ),
        ("sqlite+aiosqlite:///./kabsu.db", "sqlite+aiosqlite:///./kabsu.db"),
    ],
)
def test_normalize_database_url(url, expected):
    assert normalize_database_url(url) == expected


def test_session_token_roundtrip():
    session = decode_session_token(create_access_token("user_abc"))
    assert session.user_id == "user_abc"


def test_expired_session_token():
    token = create_access_token("user_abc", expires_delta=timedelta(seconds=-5))
    with pytest.raises(Unauthorized):
        decode_session_token(token)


def test_error_payloads():
    assert ScopeUnavailable("campus").to_dict() == {
        "success": False,
        "error": "VALIDATION_ERROR",
        "message": "The 'campus' feed is not available",
        "field": "type",
    }
    failure = UpstreamFailure("identity", "HTTP 500")
    assert failure.status_code == 502
    assert failure.message == "identity: HTTP 500"
