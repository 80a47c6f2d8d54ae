"""Post submission pipeline and author-only post mutations.

Submitting a post is a sequence of independently observable steps:

1. validate content and declared images (nothing is written on failure)
2. persist the post and reserve one image row per declared image, then commit
3. mint one signed upload descriptor per image
4. the caller compresses and uploads each image straight to storage
5. the caller confirms the paths it uploaded
6. the caller drops its cached feed and profile pages

The post text is durable after step 2 whatever happens to the images. Each
image fails or succeeds on its own; failures come back as ``ImageFailure``
entries rather than exceptions.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.exceptions import NotFound, Unauthorized, UpstreamFailure, ValidationError, ViewerNotFound
from app.core.logging import logger
from app.models.post import Post
from app.models.post_image import PostImage
from app.models.user import User
from app.schemas import (
    ImageDeclaration,
    ImageFailure,
    PostCreate,
    PostRecord,
    PostSubmission,
    SignedUpload,
    UploadConfirmation,
)
from app.services.storage_service import BaseStorageService

MAX_CONTENT_LENGTH = 512

# ─── Content-type mapping ────────────────────────────────────────────────────
IMAGE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def validate_content(content: Optional[str]) -> str:
    """Return the trimmed content or raise a field-level ValidationError."""
    content = (content or "").strip()
    if not content:
        raise ValidationError("content", "Post cannot be empty.")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(
            "content", f"Post cannot be longer than {MAX_CONTENT_LENGTH} characters."
        )
    return content


def validate_images(images: List[ImageDeclaration]) -> List[ImageDeclaration]:
    if len(images) > settings.MAX_POST_IMAGES:
        raise ValidationError(
            "images", f"A post can have at most {settings.MAX_POST_IMAGES} images."
        )
    for image in images:
        if image.content_type not in IMAGE_EXTENSIONS:
            raise ValidationError(
                "images",
                f"Invalid image type '{image.content_type}'. "
                f"Allowed: {', '.join(IMAGE_EXTENSIONS)}",
            )
    return sorted(images, key=lambda image: image.order)


class PostService:
    """Creates, edits and soft-deletes posts."""

    async def submit_post(
        self,
        db: AsyncSession,
        storage: BaseStorageService,
        viewer_id: Optional[str],
        data: PostCreate,
    ) -> PostSubmission:
        if not viewer_id:
            raise Unauthorized()
        content = validate_content(data.content)
        images = validate_images(data.images)

        if await db.get(User, viewer_id) is None:
            raise ViewerNotFound()

        post = Post(user_id=viewer_id, content=content, type=data.type)
        db.add(post)
        await db.flush()

        reserved = []
        for declaration in images:
            image = PostImage(
                post_id=post.id,
                storage_path=f"{post.id}/{uuid.uuid4()}{IMAGE_EXTENSIONS[declaration.content_type]}",
                order=declaration.order,
            )
            db.add(image)
            reserved.append(image)

        # The post must be durable before any descriptor leaves the server
        await db.commit()
        logger.info(f"Post {post.id} created by {viewer_id} ({post.type.value}, {len(reserved)} images)")

        signed_urls: List[SignedUpload] = []
        failures: List[ImageFailure] = []
        for image in reserved:
            try:
                signed = await storage.create_signed_upload(image.storage_path)
                signed_urls.append(signed.model_copy(update={"order": image.order}))
            except UpstreamFailure as e:
                logger.warning(f"Could not sign upload {image.storage_path}: {e.message}")
                failures.append(
                    ImageFailure(
                        path=image.storage_path,
                        order=image.order,
                        stage="sign",
                        message=e.message,
                    )
                )

        return PostSubmission(
            post=PostRecord.model_validate(post),
            signed_urls=signed_urls,
            failures=failures,
        )

    async def confirm_uploads(
        self,
        db: AsyncSession,
        storage: BaseStorageService,
        viewer_id: Optional[str],
        post_id: uuid.UUID,
        paths: List[str],
    ) -> UploadConfirmation:
        """Attach the images whose objects are now present in storage."""
        if not viewer_id:
            raise Unauthorized()

        result = await db.execute(
            select(Post)
            .options(selectinload(Post.images))
            .execution_options(populate_existing=True)
            .where(Post.id == post_id, Post.user_id == viewer_id, Post.deleted_at.is_(None))
        )
        post = result.scalar_one_or_none()
        if not post:
            raise NotFound("Post not found")

        wanted = set(paths)
        confirmation = UploadConfirmation(post_id=post.id)
        for image in post.images:
            if image.storage_path not in wanted:
                continue
            wanted.discard(image.storage_path)

            if not image.is_uploaded:
                try:
                    present = await storage.exists(image.storage_path)
                except UpstreamFailure as e:
                    logger.warning(f"Could not check upload {image.storage_path}: {e.message}")
                    present = False
                if not present:
                    confirmation.missing.append(image.storage_path)
                    continue
                image.uploaded_at = datetime.utcnow()
            confirmation.uploaded.append(image.storage_path)

        if wanted:
            logger.warning(f"Post {post.id}: confirm called with unknown paths {sorted(wanted)}")
            confirmation.missing.extend(sorted(wanted))

        await db.flush()
        logger.info(
            f"Post {post.id}: {len(confirmation.uploaded)} images attached, "
            f"{len(confirmation.missing)} missing"
        )
        return confirmation

    async def update_post(
        self,
        db: AsyncSession,
        viewer_id: Optional[str],
        post_id: uuid.UUID,
        content: str,
    ) -> PostRecord:
        """Edit a post's content (author only)."""
        if not viewer_id:
            raise Unauthorized()
        content = validate_content(content)

        post = await self._get_own_post(db, viewer_id, post_id)
        post.content = content
        post.updated_at = datetime.utcnow()
        await db.flush()

        logger.info(f"Post {post.id} updated by {viewer_id}")
        return PostRecord.model_validate(post)

    async def delete_post(
        self,
        db: AsyncSession,
        viewer_id: Optional[str],
        post_id: uuid.UUID,
    ) -> None:
        """Soft-delete a post (author only). Rows are never removed."""
        if not viewer_id:
            raise Unauthorized()

        post = await self._get_own_post(db, viewer_id, post_id)
        post.deleted_at = datetime.utcnow()
        await db.flush()

        logger.info(f"Post {post.id} deleted by {viewer_id}")

    @staticmethod
    async def _get_own_post(db: AsyncSession, viewer_id: str, post_id: uuid.UUID) -> Post:
        result = await db.execute(
            select(Post).where(
                Post.id == post_id,
                Post.user_id == viewer_id,
                Post.deleted_at.is_(None),
            )
        )
        post = result.scalar_one_or_none()
        if not post:
            raise NotFound("Post not found")
        return post


post_service = PostService()
