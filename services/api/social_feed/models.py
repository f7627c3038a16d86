"""
SQLAlchemy ORM models for TiDB.

Tables:
  user_profiles     — user profiles (+ legacy serialised friend list)
  friendships       — social graph edges (requester → addressee, with status)
  communities       — communities, with a denormalised member counter
  community_members — user × community membership with a role
  publications      — posts, with a per-post visibility level
  comments          — comments on publications (threaded via parent_id)
  reactions         — polymorphic likes on publications and comments
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import Mapped, mapped_column

from social_feed.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# Case-sensitive on MySQL. utf8mb4_bin still pads trailing spaces, so the
# planner adds an exact binary comparison on top (see planner._exact).
_BinaryLabel = String(20).with_variant(
    mysql.VARCHAR(20, charset="utf8mb4", collation="utf8mb4_bin"), "mysql"
)
_BinaryId = String(36).with_variant(
    mysql.VARCHAR(36, charset="utf8mb4", collation="utf8mb4_bin"), "mysql"
)


class FriendshipStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    BLOCKED = "blocked"


class MemberRole:
    CREATOR = "creator"
    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"


class LikeableType:
    POST = "post"
    COMMENT = "comment"


COMMUNITY_CATEGORIES = (
    "Deportes", "Arte", "Musica", "Lectura", "Tecnologia", "Naturaleza",
    "Voluntariado", "Gaming", "Fotografia", "Cocina", "Baile", "Meditacion",
)


class UserProfile(Base):
    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    # Legacy JSON-serialised list of friend ids. Only read when
    # FRIEND_GRAPH_SOURCE=profile_blob; the friendships table is canonical.
    friends: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )


class Friendship(Base):
    __tablename__ = "friendships"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    requester_id: Mapped[str] = mapped_column(String(36), nullable=False)
    addressee_id: Mapped[str] = mapped_column(String(36), nullable=False)
    # Canonical unordered pair: min/max of (requester_id, addressee_id)
    user_low_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_high_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(
        _BinaryLabel, default=FriendshipStatus.PENDING, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        # One edge per unordered pair, whoever asked first
        UniqueConstraint("user_low_id", "user_high_id", name="uq_friendship_pair"),
        Index("idx_friendships_requester", "requester_id", "status"),
        Index("idx_friendships_addressee", "addressee_id", "status"),
    )

    @classmethod
    def between(
        cls, requester_id: str, addressee_id: str, status: str = FriendshipStatus.PENDING
    ) -> "Friendship":
        low, high = sorted((requester_id, addressee_id))
        return cls(
            requester_id=requester_id,
            addressee_id=addressee_id,
            user_low_id=low,
            user_high_id=high,
            status=status,
        )

    def other_side(self, user_id: str) -> str:
        return self.addressee_id if self.requester_id == user_id else self.requester_id


class Community(Base):
    __tablename__ = "communities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    creator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    tags: Mapped[Optional[list]] = mapped_column(JSON)
    community_image_url: Mapped[Optional[str]] = mapped_column(String(500))
    # Starts at 1: the creator's own membership
    members_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_communities_creator", "creator_id"),
        Index("idx_communities_category", "category"),
    )


class CommunityMember(Base):
    __tablename__ = "community_members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    community_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("communities.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), default=MemberRole.MEMBER, nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("community_id", "user_id", name="unique_community_member"),
        Index("idx_community_members_user", "user_id"),
    )


class Publication(Base):
    __tablename__ = "publications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(_BinaryId, nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(20), default="text", nullable=False)
    visibility: Mapped[str] = mapped_column(_BinaryLabel, default="public", nullable=False)
    likes_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comments_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    shares_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # 'metadata' is reserved on declarative classes
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        # Feed scan: active rows newest-first, optionally per author
        Index("idx_publications_feed", "is_active", "created_at", "id"),
        Index("idx_publications_author", "user_id", "visibility"),
    )


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("publications.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("comments.id", ondelete="CASCADE")
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    likes_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_comments_post", "post_id"),)


class Reaction(Base):
    __tablename__ = "reactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    likeable_type: Mapped[str] = mapped_column(String(20), nullable=False)  # 'post' | 'comment'
    likeable_id: Mapped[str] = mapped_column(String(36), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "likeable_type", "likeable_id", name="uq_reaction_per_user"
        ),
        Index("idx_reactions_target", "likeable_type", "likeable_id"),
    )
