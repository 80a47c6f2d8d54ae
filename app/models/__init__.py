"""SQLAlchemy models package."""

from app.models.campus import Campus
from app.models.college import College
from app.models.program import Program
from app.models.user import User
from app.models.post import Post, PostType
from app.models.post_image import PostImage
from app.models.follow import Follow

__all__ = ["Campus", "College", "Program", "User", "Post", "PostType", "PostImage", "Follow"]
