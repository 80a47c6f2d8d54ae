"""User model.

``id`` is the identity provider's user id; profile data (display name,
avatar, verification) stays with the identity provider.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    program_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("programs.id"), nullable=True, index=True
    )
    bio: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    program = relationship("Program", back_populates="users")
    posts = relationship("Post", back_populates="user")
