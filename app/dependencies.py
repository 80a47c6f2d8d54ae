"""Session verification and service dependencies.

Handlers never read ambient auth state: they receive an explicit ``Session``
(or ``None``) from these dependencies and pass ``session.user_id`` on to the
services.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.core.exceptions import Unauthorized
from app.services.identity_service import BaseIdentityProvider, identity_provider
from app.services.storage_service import BaseStorageService, storage_service


@dataclass
class Session:
    user_id: str
    claims: dict = field(default_factory=dict)


# ─── Session tokens ──────────────────────────────────────────────────────────

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a session token. Production tokens come from the identity provider."""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES))
    payload = {
        "sub": user_id,
        "exp": expire,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_session_token(token: str) -> Session:
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise Unauthorized("Invalid or expired token")

    user_id = claims.get("sub")
    if not user_id:
        raise Unauthorized("Invalid or expired token")

    return Session(user_id=user_id, claims=claims)


# ─── Auth dependencies ───────────────────────────────────────────────────────

async def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[Session]:
    """Current session, or None for anonymous callers."""
    if credentials is None:
        return None
    return decode_session_token(credentials.credentials)


async def require_session(session: Optional[Session] = Depends(get_session)) -> Session:
    if session is None:
        raise Unauthorized()
    return session


# ─── External collaborators ──────────────────────────────────────────────────

def get_identity() -> BaseIdentityProvider:
    return identity_provider


def get_storage() -> BaseStorageService:
    return storage_service
