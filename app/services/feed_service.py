"""Feed visibility resolver.

A feed is the viewer's own posts plus the posts of every author the scope
lets them see. Each scope maps to a clause builder: a pure function from the
viewer row to a SQL condition on ``Post.user_id``. The builders only
compose subqueries, so every feed is served by a single posts query.

Pagination is offset based (page size 10). A post inserted while a reader
pages through a feed shifts later pages by one; readers may see a post twice
or miss one. That is accepted rather than fixed with cursors.
"""

import enum
from itertools import chain
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy import ColumnElement, Select, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from app.core.config import settings
from app.core.exceptions import NotFound, ScopeUnavailable, Unauthorized, ValidationError, ViewerNotFound
from app.core.logging import logger
from app.models.college import College
from app.models.follow import Follow
from app.models.post import Post
from app.models.program import Program
from app.models.user import User
from app.schemas import AuthorResponse, ImageResponse, MentionResponse, PostResponse
from app.services.identity_service import BaseIdentityProvider
from app.services.mentions import extract_mention_ids, render_mentions
from app.services.storage_service import BaseStorageService

PAGE_SIZE = 10

POST_LOAD_OPTIONS = (selectinload(Post.user), selectinload(Post.images))


class FeedScope(str, enum.Enum):
    following = "following"
    program = "program"
    college = "college"
    campus = "campus"
    all = "all"


# ─── Clause builders ─────────────────────────────────────────────────────────

def _own_posts(viewer: User) -> ColumnElement:
    return Post.user_id == viewer.id


def all_clause(viewer: User) -> ColumnElement:
    return true()


def following_clause(viewer: User) -> ColumnElement:
    followees = select(Follow.followee_id).where(Follow.follower_id == viewer.id)
    return or_(_own_posts(viewer), Post.user_id.in_(followees))


def program_clause(viewer: User) -> ColumnElement:
    # Not onboarded yet: no program, so nobody shares it
    if viewer.program_id is None:
        return _own_posts(viewer)

    members = select(User.id).where(User.program_id == viewer.program_id)
    return or_(_own_posts(viewer), Post.user_id.in_(members))


def college_clause(viewer: User) -> ColumnElement:
    if viewer.program_id is None:
        return _own_posts(viewer)

    viewer_program = aliased(Program)
    college_id = (
        select(viewer_program.college_id)
        .where(viewer_program.id == viewer.program_id)
        .scalar_subquery()
    )
    members = (
        select(User.id)
        .join(Program, User.program_id == Program.id)
        .where(Program.college_id == college_id)
    )
    return or_(_own_posts(viewer), Post.user_id.in_(members))


def campus_clause(viewer: User) -> ColumnElement:
    if viewer.program_id is None:
        return _own_posts(viewer)

    viewer_program = aliased(Program)
    viewer_college = aliased(College)
    campus_id = (
        select(viewer_college.campus_id)
        .join(viewer_program, viewer_program.college_id == viewer_college.id)
        .where(viewer_program.id == viewer.program_id)
        .scalar_subquery()
    )
    members = (
        select(User.id)
        .join(Program, User.program_id == Program.id)
        .join(College, Program.college_id == College.id)
        .where(College.campus_id == campus_id)
    )
    return or_(_own_posts(viewer), Post.user_id.in_(members))


SCOPE_CLAUSES: Dict[FeedScope, Callable[[User], ColumnElement]] = {
    FeedScope.following: following_clause,
    FeedScope.program: program_clause,
    FeedScope.college: college_clause,
    FeedScope.campus: campus_clause,
    FeedScope.all: all_clause,
}


def paginate(query: Select, page: int) -> Select:
    return (
        query.order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * PAGE_SIZE)
        .limit(PAGE_SIZE)
    )


def feed_query(viewer: User, scope: FeedScope, page: int) -> Select:
    """Page ``page`` of the viewer's feed for ``scope``, newest first."""
    query = (
        select(Post)
        .options(*POST_LOAD_OPTIONS)
        .execution_options(populate_existing=True)
        .where(Post.deleted_at.is_(None), SCOPE_CLAUSES[scope](viewer))
    )
    return paginate(query, page)


def check_page(page: int) -> None:
    if page < 1:
        raise ValidationError("page", "Page must be 1 or greater")


# ─── Service ─────────────────────────────────────────────────────────────────

class FeedService:
    """Resolves feeds and turns post rows into API responses."""

    def __init__(self, campus_scope_enabled: Optional[bool] = None):
        if campus_scope_enabled is None:
            campus_scope_enabled = settings.FEED_CAMPUS_SCOPE_ENABLED
        self.campus_scope_enabled = campus_scope_enabled

    async def resolve_feed(
        self,
        db: AsyncSession,
        identity: BaseIdentityProvider,
        storage: BaseStorageService,
        viewer_id: Optional[str],
        scope: FeedScope,
        page: int = 1,
    ) -> List[PostResponse]:
        """
        Posts the viewer may see under ``scope``.

        Raises Unauthorized / ViewerNotFound before the feed query runs.
        """
        if not viewer_id:
            raise Unauthorized()
        check_page(page)
        try:
            scope = FeedScope(scope)
        except ValueError:
            raise ValidationError("type", f"Unknown feed type: {scope}")
        if scope is FeedScope.campus and not self.campus_scope_enabled:
            raise ScopeUnavailable(scope.value)

        viewer = await db.get(User, viewer_id)
        if viewer is None:
            logger.warning(f"Session for {viewer_id} has no user row")
            raise ViewerNotFound()

        result = await db.execute(feed_query(viewer, scope, page))
        posts = result.scalars().all()

        logger.debug(f"Feed {scope.value} page {page} for {viewer_id}: {len(posts)} posts")
        return await self.present_posts(db, identity, storage, posts)

    async def get_user_posts(
        self,
        db: AsyncSession,
        identity: BaseIdentityProvider,
        storage: BaseStorageService,
        viewer_id: Optional[str],
        username: str,
        page: int = 1,
    ) -> List[PostResponse]:
        """A profile's posts, newest first."""
        if not viewer_id:
            raise Unauthorized()
        check_page(page)

        result = await db.execute(select(User).where(User.username == username))
        author = result.scalar_one_or_none()
        if author is None:
            raise NotFound("User not found")

        query = (
            select(Post)
            .options(*POST_LOAD_OPTIONS)
            .execution_options(populate_existing=True)
            .where(Post.deleted_at.is_(None), Post.user_id == author.id)
        )
        result = await db.execute(paginate(query, page))
        return await self.present_posts(db, identity, storage, result.scalars().all())

    async def present_posts(
        self,
        db: AsyncSession,
        identity: BaseIdentityProvider,
        storage: BaseStorageService,
        posts: Iterable[Post],
    ) -> List[PostResponse]:
        """
        Enrich posts with author profiles, uploaded images and mentions.

        Posts must be loaded with ``POST_LOAD_OPTIONS``. A post whose author
        the identity provider does not know is dropped and logged.
        """
        posts = list(posts)
        if not posts:
            return []

        profiles = await identity.get_profiles_map(post.user_id for post in posts)
        usernames = await self._mention_usernames(
            db, chain.from_iterable(extract_mention_ids(post.content) for post in posts)
        )

        responses = []
        for post in posts:
            profile = profiles.get(post.user_id)
            if profile is None:
                logger.error(
                    f"Data consistency: author {post.user_id} of post {post.id} "
                    f"is unknown to the identity provider; post skipped"
                )
                continue

            mentioned = extract_mention_ids(post.content)
            responses.append(
                PostResponse(
                    id=post.id,
                    user_id=post.user_id,
                    type=post.type,
                    content=post.content,
                    display_content=render_mentions(post.content, usernames),
                    created_at=post.created_at,
                    updated_at=post.updated_at,
                    author=AuthorResponse(
                        id=post.user_id,
                        username=post.user.username,
                        name=profile.name,
                        image_url=profile.image_url,
                        is_verified=profile.is_verified,
                        program_id=post.user.program_id,
                    ),
                    images=[
                        ImageResponse(
                            storage_path=image.storage_path,
                            order=image.order,
                            url=storage.public_url(image.storage_path),
                        )
                        for image in post.images
                        if image.is_uploaded
                    ],
                    mentions=[
                        MentionResponse(id=user_id, username=usernames[user_id])
                        for user_id in mentioned
                        if user_id in usernames
                    ],
                )
            )

        return responses

    @staticmethod
    async def _mention_usernames(db: AsyncSession, user_ids: Iterable[str]) -> Dict[str, str]:
        ids = set(user_ids)
        if not ids:
            return {}
        result = await db.execute(select(User.id, User.username).where(User.id.in_(ids)))
        return {user_id: username for user_id, username in result.all()}


feed_service = FeedService()
