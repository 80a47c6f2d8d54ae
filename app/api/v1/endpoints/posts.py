"""Post endpoints: feed, create, edit, delete, image confirmation."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies import Session, get_identity, get_storage, require_session
from app.schemas import (
    ConfirmUploads,
    PostCreate,
    PostRecord,
    PostResponse,
    PostSubmission,
    PostUpdate,
    UploadConfirmation,
)
from app.services.feed_service import FeedScope, feed_service
from app.services.identity_service import BaseIdentityProvider
from app.services.post_service import post_service
from app.services.storage_service import BaseStorageService

router = APIRouter()


@router.get("/", response_model=List[PostResponse])
async def get_posts(
    type: FeedScope = Query(FeedScope.following, description="Feed scope"),
    page: int = Query(1, description="1-based page number, 10 posts per page"),
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
    identity: BaseIdentityProvider = Depends(get_identity),
    storage: BaseStorageService = Depends(get_storage),
):
    """Viewer's feed for a scope, newest first."""
    return await feed_service.resolve_feed(db, identity, storage, session.user_id, type, page)


@router.post("/", response_model=PostSubmission, status_code=201)
async def create_post(
    data: PostCreate,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
    storage: BaseStorageService = Depends(get_storage),
):
    """Create a post. Returns one signed upload descriptor per declared image."""
    return await post_service.submit_post(db, storage, session.user_id, data)


@router.post("/{post_id}/images/confirm", response_model=UploadConfirmation)
async def confirm_post_images(
    post_id: UUID,
    data: ConfirmUploads,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
    storage: BaseStorageService = Depends(get_storage),
):
    """Attach the images the caller finished uploading."""
    return await post_service.confirm_uploads(db, storage, session.user_id, post_id, data.paths)


@router.patch("/{post_id}", response_model=PostRecord)
async def update_post(
    post_id: UUID,
    data: PostUpdate,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    """Edit a post's content (author only)."""
    return await post_service.update_post(db, session.user_id, post_id, data.content)


@router.delete("/{post_id}")
async def delete_post(
    post_id: UUID,
    session: Session = Depends(require_session),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete a post (author only)."""
    await post_service.delete_post(db, session.user_id, post_id)
    return {"success": True, "message": "Post deleted"}
