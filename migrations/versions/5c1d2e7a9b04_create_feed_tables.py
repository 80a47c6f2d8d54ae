"""create feed tables

Revision ID: 5c1d2e7a9b04
Revises:
Create Date: 2026-10-19 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1d2e7a9b04'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

post_type = sa.Enum("following", "program", "college", "campus", "all", name="post_type")


def upgrade() -> None:
    """Create the organization hierarchy, users, posts, images and follow edges."""
    op.create_table(
        "campuses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("slug", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "colleges",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("campus_id", sa.Uuid(), sa.ForeignKey("campuses.id"), nullable=False),
        sa.Column("slug", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("campus_id", "slug", name="uq_colleges_campus_slug"),
    )
    op.create_index("ix_colleges_campus_id", "colleges", ["campus_id"])
    op.create_table(
        "programs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("college_id", sa.Uuid(), sa.ForeignKey("colleges.id"), nullable=False),
        sa.Column("slug", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.UniqueConstraint("college_id", "slug", name="uq_programs_college_slug"),
    )
    op.create_index("ix_programs_college_id", "programs", ["college_id"])
    op.create_table(
        "users",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("program_id", sa.Uuid(), sa.ForeignKey("programs.id"), nullable=True),
        sa.Column("bio", sa.String(256), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_program_id", "users", ["program_id"])
    op.create_table(
        "posts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.String(512), nullable=False),
        sa.Column("type", post_type, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_posts_created_at", "posts", ["created_at"])
    op.create_index("ix_posts_user_created", "posts", ["user_id", "created_at"])
    op.create_table(
        "post_images",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("post_id", sa.Uuid(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("storage_path", sa.String(1000), nullable=False, unique=True),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_post_images_post_id", "post_images", ["post_id"])
    op.create_table(
        "follows",
        sa.Column("follower_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("followee_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_follows_followee_id", "follows", ["followee_id"])


def downgrade() -> None:
    op.drop_table("follows")
    op.drop_table("post_images")
    op.drop_table("posts")
    post_type.drop(op.get_bind(), checkfirst=True)
    op.drop_table("users")
    op.drop_table("programs")
    op.drop_table("colleges")
    op.drop_table("campuses")
