"""Post model."""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Enum, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class PostType(str, enum.Enum):
    """Audience an author picks for a post. Mirrors the feed scopes."""

    following = "following"
    program = "program"
    college = "college"
    campus = "campus"
    all = "all"


class Post(Base):
    __tablename__ = "posts"
    __table_args__ = (Index("ix_posts_user_created", "user_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(String(512), nullable=False)
    type: Mapped[PostType] = mapped_column(
        Enum(PostType, name="post_type"),
        default=PostType.following,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    user = relationship("User", back_populates="posts")
    images = relationship(
        "PostImage", back_populates="post", order_by="PostImage.order"
    )
