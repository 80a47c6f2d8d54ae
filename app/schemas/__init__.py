"""Pydantic schemas for request/response validation."""

from typing import Optional, List
from uuid import UUID
from datetime import datetime

from pydantic import BaseModel, Field

from app.models.post import PostType


# ─── Identity ────────────────────────────────────────────────────────────────

class ProfileRecord(BaseModel):
    """A user as the identity provider knows them."""

    id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None
    is_verified: bool = False
    public_metadata: dict = Field(default_factory=dict)

    @property
    def name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or (self.username or "")


class AuthorResponse(BaseModel):
    id: str
    username: str
    name: str
    image_url: Optional[str] = None
    is_verified: bool = False
    program_id: Optional[UUID] = None


# ─── Posts ───────────────────────────────────────────────────────────────────

class ImageDeclaration(BaseModel):
    order: int = Field(0, ge=0)
    content_type: str = "image/jpeg"


class PostCreate(BaseModel):
    type: PostType = PostType.following
    content: str
    images: List[ImageDeclaration] = Field(default_factory=list)


class PostUpdate(BaseModel):
    content: str


class SignedUpload(BaseModel):
    """Single-use credential for uploading one object straight to storage."""

    path: str
    token: str
    upload_url: str
    order: Optional[int] = None


class ImageFailure(BaseModel):
    path: Optional[str] = None
    order: Optional[int] = None
    stage: str  # sign, compress, upload or confirm
    message: str


class ImageResponse(BaseModel):
    storage_path: str
    order: int
    url: str


class MentionResponse(BaseModel):
    id: str
    username: str


class PostResponse(BaseModel):
    id: UUID
    user_id: str
    type: PostType
    content: str
    display_content: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    author: AuthorResponse
    images: List[ImageResponse] = Field(default_factory=list)
    mentions: List[MentionResponse] = Field(default_factory=list)


class PostRecord(BaseModel):
    id: UUID
    user_id: str
    type: PostType
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class PostSubmission(BaseModel):
    post: PostRecord
    signed_urls: List[SignedUpload] = Field(default_factory=list)
    failures: List[ImageFailure] = Field(default_factory=list)


class ConfirmUploads(BaseModel):
    paths: List[str]


class UploadConfirmation(BaseModel):
    post_id: UUID
    uploaded: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)


# ─── Users ───────────────────────────────────────────────────────────────────

class UserSearchResult(BaseModel):
    id: str
    username: Optional[str] = None
    name: str
    image_url: Optional[str] = None
    is_verified: bool = False


class MentionCandidate(BaseModel):
    id: str
    username: str
    name: str
    image_url: Optional[str] = None
    is_verified: bool = False


class UserProfileResponse(BaseModel):
    id: str
    username: str
    name: str
    image_url: Optional[str] = None
    is_verified: bool = False
    bio: Optional[str] = None
    program_id: Optional[UUID] = None
    followers_count: int = 0
    following_count: int = 0
    is_following: bool = False
    created_at: datetime


class OnboardRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    program_id: UUID


class BioUpdate(BaseModel):
    bio: str


class FollowResponse(BaseModel):
    user_id: str
    is_following: bool


class UsernameTakenResponse(BaseModel):
    username: str
    taken: bool


# ─── Organization hierarchy ──────────────────────────────────────────────────

class CampusResponse(BaseModel):
    id: UUID
    slug: str
    name: str

    class Config:
        from_attributes = True


class CollegeResponse(BaseModel):
    id: UUID
    campus_id: UUID
    slug: str
    name: str

    class Config:
        from_attributes = True


class ProgramResponse(BaseModel):
    id: UUID
    college_id: UUID
    slug: str
    name: str

    class Config:
        from_attributes = True


class ProgramOptionsResponse(BaseModel):
    campuses: List[CampusResponse]
    colleges: List[CollegeResponse]
    programs: List[ProgramResponse]
