"""User-facing operations: follow graph, search, mention lookup, onboarding."""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AlreadyExists, NotFound, Unauthorized, ValidationError, ViewerNotFound
from app.core.logging import logger
from app.models.campus import Campus
from app.models.college import College
from app.models.follow import Follow
from app.models.program import Program
from app.models.user import User
from app.schemas import (
    CampusResponse,
    CollegeResponse,
    MentionCandidate,
    ProgramOptionsResponse,
    ProgramResponse,
    UserProfileResponse,
    UserSearchResult,
)
from app.services.identity_service import BaseIdentityProvider

MENTION_LIMIT = 10
SEARCH_LIMIT = 10
FOLLOW_PAGE_SIZE = 20
MAX_BIO_LENGTH = 256


class UserService:
    """Follow graph and user lookups."""

    # ─── Follow graph ────────────────────────────────────────────────────────

    async def follow_user(self, db: AsyncSession, viewer_id: Optional[str], user_id: str) -> None:
        if not viewer_id:
            raise Unauthorized()
        if viewer_id == user_id:
            raise ValidationError("user_id", "You cannot follow yourself")

        if await db.get(User, user_id) is None:
            raise NotFound("User not found")

        if await self.is_following(db, viewer_id, user_id):
            raise AlreadyExists("Already following user")

        # A concurrent follow can still win between the check and the insert
        try:
            async with db.begin_nested():
                await db.execute(insert(Follow).values(follower_id=viewer_id, followee_id=user_id))
        except IntegrityError:
            raise AlreadyExists("Already following user")
        logger.info(f"{viewer_id} followed {user_id}")

    async def unfollow_user(self, db: AsyncSession, viewer_id: Optional[str], user_id: str) -> None:
        """Remove the edge if present. Unfollowing twice is not an error."""
        if not viewer_id:
            raise Unauthorized()

        result = await db.execute(
            delete(Follow).where(Follow.follower_id == viewer_id, Follow.followee_id == user_id)
        )
        await db.flush()
        if result.rowcount:
            logger.info(f"{viewer_id} unfollowed {user_id}")

    @staticmethod
    async def is_following(db: AsyncSession, follower_id: str, followee_id: str) -> bool:
        result = await db.execute(
            select(Follow.follower_id).where(
                Follow.follower_id == follower_id, Follow.followee_id == followee_id
            )
        )
        return result.first() is not None

    async def get_followers(
        self, db: AsyncSession, identity: BaseIdentityProvider, username: str, page: int = 1
    ) -> List[UserSearchResult]:
        user = await self._get_by_username(db, username)
        return await self._follow_page(
            db, identity, Follow.follower_id, Follow.followee_id == user.id, page
        )

    async def get_following(
        self, db: AsyncSession, identity: BaseIdentityProvider, username: str, page: int = 1
    ) -> List[UserSearchResult]:
        user = await self._get_by_username(db, username)
        return await self._follow_page(
            db, identity, Follow.followee_id, Follow.follower_id == user.id, page
        )

    async def _follow_page(self, db, identity, column, condition, page: int) -> List[UserSearchResult]:
        if page < 1:
            raise ValidationError("page", "Page must be 1 or greater")
        result = await db.execute(
            select(column)
            .where(condition)
            .order_by(Follow.created_at.desc(), column.desc())
            .offset((page - 1) * FOLLOW_PAGE_SIZE)
            .limit(FOLLOW_PAGE_SIZE)
        )
        user_ids = result.scalars().all()
        profiles = await identity.get_profiles_map(user_ids)
        return [
            self._search_result(profiles[user_id])
            for user_id in user_ids
            if user_id in profiles
        ]

    # ─── Search & mentions ───────────────────────────────────────────────────

    async def search_users(self, identity: BaseIdentityProvider, query: str) -> List[UserSearchResult]:
        """Partial-name search through the identity provider."""
        query = (query or "").strip()
        if not query:
            return []
        profiles = await identity.search_users(query, limit=SEARCH_LIMIT)
        return [self._search_result(profile) for profile in profiles]

    async def get_to_mention_users(
        self,
        db: AsyncSession,
        identity: BaseIdentityProvider,
        viewer_id: Optional[str],
        name: str,
    ) -> List[MentionCandidate]:
        """Users whose username contains ``name``, for the mention picker."""
        if not viewer_id:
            raise Unauthorized()
        name = (name or "").strip().lstrip("@")
        if not name:
            return []

        result = await db.execute(
            select(User)
            .where(User.username.icontains(name, autoescape=True), User.id != viewer_id)
            .order_by(User.username)
            .limit(MENTION_LIMIT)
        )
        users = result.scalars().all()
        profiles = await identity.get_profiles_map(user.id for user in users)

        candidates = []
        for user in users:
            profile = profiles.get(user.id)
            if profile is None:
                logger.error(f"Data consistency: user {user.id} is unknown to the identity provider")
                continue
            candidates.append(
                MentionCandidate(
                    id=user.id,
                    username=user.username,
                    name=profile.name,
                    image_url=profile.image_url,
                    is_verified=profile.is_verified,
                )
            )
        return candidates

    # ─── Profiles ────────────────────────────────────────────────────────────

    async def get_user_profile(
        self,
        db: AsyncSession,
        identity: BaseIdentityProvider,
        viewer_id: Optional[str],
        username: str,
    ) -> UserProfileResponse:
        if not viewer_id:
            raise Unauthorized()
        user = await self._get_by_username(db, username)
        return await self._profile_response(db, identity, viewer_id, user)

    async def onboard_user(
        self,
        db: AsyncSession,
        identity: BaseIdentityProvider,
        viewer_id: Optional[str],
        username: str,
        program_id: UUID,
    ) -> UserProfileResponse:
        """Create or update the viewer's row and record their program."""
        if not viewer_id:
            raise Unauthorized()
        username = username.strip()
        if not username:
            raise ValidationError("username", "Username cannot be empty.")

        if await db.get(Program, program_id) is None:
            raise NotFound("Program not found")

        result = await db.execute(
            select(User.id).where(User.username == username, User.id != viewer_id)
        )
        if result.first() is not None:
            raise AlreadyExists("Username already taken")

        user = await db.get(User, viewer_id)
        if user is None:
            user = User(id=viewer_id, username=username, program_id=program_id)
            db.add(user)
        else:
            user.username = username
            user.program_id = program_id
        await db.flush()

        # A failure here rolls the row back with the request
        await identity.update_user_metadata(viewer_id, {"program_id": str(program_id)})
        logger.info(f"User onboarded: {viewer_id} as @{username} in program {program_id}")

        return await self._profile_response(db, identity, viewer_id, user)

    async def update_bio(
        self,
        db: AsyncSession,
        identity: BaseIdentityProvider,
        viewer_id: Optional[str],
        bio: str,
    ) -> UserProfileResponse:
        if not viewer_id:
            raise Unauthorized()
        bio = (bio or "").strip()
        if len(bio) > MAX_BIO_LENGTH:
            raise ValidationError("bio", f"Bio cannot be longer than {MAX_BIO_LENGTH} characters.")

        user = await db.get(User, viewer_id)
        if user is None:
            raise ViewerNotFound()

        user.bio = bio or None
        await db.flush()
        await identity.update_user_metadata(viewer_id, {"bio": bio})

        return await self._profile_response(db, identity, viewer_id, user)

    async def is_username_taken(
        self, db: AsyncSession, identity: BaseIdentityProvider, username: str
    ) -> bool:
        result = await db.execute(select(User.id).where(User.username == username))
        if result.first() is not None:
            return True
        return len(await identity.get_users_by_username(username)) > 0

    # ─── Organization hierarchy ──────────────────────────────────────────────

    async def get_program_options(self, db: AsyncSession) -> ProgramOptionsResponse:
        campuses = await db.execute(select(Campus).order_by(Campus.name))
        colleges = await db.execute(select(College).order_by(College.name))
        programs = await db.execute(select(Program).order_by(Program.name))

        return ProgramOptionsResponse(
            campuses=[CampusResponse.model_validate(c) for c in campuses.scalars().all()],
            colleges=[CollegeResponse.model_validate(c) for c in colleges.scalars().all()],
            programs=[ProgramResponse.model_validate(p) for p in programs.scalars().all()],
        )

    # ─── Helpers ─────────────────────────────────────────────────────────────

    @staticmethod
    async def _get_by_username(db: AsyncSession, username: str) -> User:
        result = await db.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFound("User not found")
        return user

    async def _profile_response(
        self, db: AsyncSession, identity: BaseIdentityProvider, viewer_id: str, user: User
    ) -> UserProfileResponse:
        profiles = await identity.get_profiles_map([user.id])
        profile = profiles.get(user.id)
        if profile is None:
            logger.error(f"Data consistency: user {user.id} is unknown to the identity provider")
            raise NotFound("User not found")

        followers = await db.execute(
            select(func.count()).select_from(Follow).where(Follow.followee_id == user.id)
        )
        following = await db.execute(
            select(func.count()).select_from(Follow).where(Follow.follower_id == user.id)
        )

        return UserProfileResponse(
            id=user.id,
            username=user.username,
            name=profile.name,
            image_url=profile.image_url,
            is_verified=profile.is_verified,
            bio=user.bio,
            program_id=user.program_id,
            followers_count=followers.scalar() or 0,
            following_count=following.scalar() or 0,
            is_following=viewer_id != user.id and await self.is_following(db, viewer_id, user.id),
            created_at=user.created_at,
        )

    @staticmethod
    def _search_result(profile) -> UserSearchResult:
        return UserSearchResult(
            id=profile.id,
            username=profile.username,
            name=profile.name,
            image_url=profile.image_url,
            is_verified=profile.is_verified,
        )


user_service = UserService()
