"""User endpoints: search, mentions, follow graph, onboarding, profiles."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies import Session, get_identity, get_session, get_storage, require_session
from app.schemas import (
    BioUpdate,
    FollowResponse,
    MentionCandidate,
    OnboardRequest,
    PostResponse,
    UsernameTakenResponse,
    UserProfileResponse,
    UserSearchResult,
)
from app.services.feed_service import feed_service
from app.services.identity_service import BaseIdentityProvider
from app.services.storage_service import BaseStorageService
from app.services.user_service import user_service

router = APIRouter()


@router.get("/search", response_model=List[UserSearchResult])
async def search_users(
    query: str = Query("", description="Partial name or username"),
    session: Optional[Session] = Depends(get_session),
    identity: BaseIdentityProvider = Depends(get_identity),
):
    """Search users by name (public)."""
    return await user_service.search_users(identity, query)


@router.get("/mentions", response_model=List[MentionCandidate])
async def get_to_mention_users(
    name: str = Query("", description="Partial username typed after '@'"),
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
    identity: BaseIdentityProvider = Depends(get_identity),
):
    """Mention candidates for the post composer."""
    return await user_service.get_to_mention_users(db, identity, session.user_id, name)


@router.get("/username-taken", response_model=UsernameTakenResponse)
async def is_username_taken(
    username: str = Query(...),
    db: AsyncSession = Depends(get_db),
    identity: BaseIdentityProvider = Depends(get_identity),
):
    """Check whether a username is in use (public)."""
    taken = await user_service.is_username_taken(db, identity, username)
    return UsernameTakenResponse(username=username, taken=taken)


@router.post("/onboard", response_model=UserProfileResponse)
async def onboard(
    data: OnboardRequest,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
    identity: BaseIdentityProvider = Depends(get_identity),
):
    """Create the caller's user record with a username and program."""
    return await user_service.onboard_user(
        db, identity, session.user_id, data.username, data.program_id
    )


@router.patch("/me/bio", response_model=UserProfileResponse)
async def update_bio(
    data: BioUpdate,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
    identity: BaseIdentityProvider = Depends(get_identity),
):
    """Update the caller's bio."""
    return await user_service.update_bio(db, identity, session.user_id, data.bio)


@router.post("/{user_id}/follow", response_model=FollowResponse)
async def follow_user(
    user_id: str,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    """Follow a user."""
    await user_service.follow_user(db, session.user_id, user_id)
    return FollowResponse(user_id=user_id, is_following=True)


@router.delete("/{user_id}/follow", response_model=FollowResponse)
async def unfollow_user(
    user_id: str,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    """Unfollow a user. Succeeds even if not following."""
    await user_service.unfollow_user(db, session.user_id, user_id)
    return FollowResponse(user_id=user_id, is_following=False)


@router.get("/{username}", response_model=UserProfileResponse)
async def get_user_profile(
    username: str,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
    identity: BaseIdentityProvider = Depends(get_identity),
):
    """Profile with follow counts."""
    return await user_service.get_user_profile(db, identity, session.user_id, username)


@router.get("/{username}/posts", response_model=List[PostResponse])
async def get_user_posts(
    username: str,
    page: int = Query(1),
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
    identity: BaseIdentityProvider = Depends(get_identity),
    storage: BaseStorageService = Depends(get_storage),
):
    """A user's posts, newest first."""
    return await feed_service.get_user_posts(
        db, identity, storage, session.user_id, username, page
    )


@router.get("/{username}/followers", response_model=List[UserSearchResult])
async def get_followers(
    username: str,
    page: int = Query(1),
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
    identity: BaseIdentityProvider = Depends(get_identity),
):
    return await user_service.get_followers(db, identity, username, page)


@router.get("/{username}/following", response_model=List[UserSearchResult])
async def get_following(
    username: str,
    page: int = Query(1),
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
    identity: BaseIdentityProvider = Depends(get_identity),
):
    return await user_service.get_following(db, identity, username, page)
