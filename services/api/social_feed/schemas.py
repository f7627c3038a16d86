"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ──────────────────────────── Users ───────────────────────────────────────

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    display_name: Optional[str] = None


class UserResponse(BaseModel):
    user_id: str
    username: str
    display_name: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class FriendListResponse(BaseModel):
    user_id: str
    friends: list[str]


# ──────────────────────────── Friendships ─────────────────────────────────

class FriendshipCreate(BaseModel):
    addressee_id: str


class BlockRequest(BaseModel):
    blocked_id: str


class FriendshipResponse(BaseModel):
    id: str
    requester_id: str
    addressee_id: str
    status: str

    class Config:
        from_attributes = True


# ──────────────────────────── Communities ─────────────────────────────────

class CommunityCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    category: str
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class CommunityResponse(BaseModel):
    id: str
    creator_id: str
    name: str
    category: str
    description: Optional[str]
    tags: Optional[list[str]]
    members_count: int

    class Config:
        from_attributes = True


class MembershipResponse(BaseModel):
    community_id: str
    user_id: str
    is_member: bool
    role: Optional[str] = None


# ──────────────────────────── Publications ────────────────────────────────

class PublicationCreate(BaseModel):
    content: str = Field(..., min_length=1)
    type: Literal["text", "image", "video", "link"] = "text"
    visibility: Literal["public", "friends", "private"] = "public"
    metadata: Optional[dict[str, Any]] = None


class PublicationView(_CamelModel):
    """The public projection of a publication — nothing internal leaks."""
    id: str
    author_id: str
    content: Optional[str]
    type: str
    visibility: str
    like_count: int
    comment_count: int
    share_count: int
    metadata: Optional[dict[str, Any]]
    created_at: datetime
    updated_at: datetime


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)
    parent_id: Optional[str] = None


class CommentResponse(BaseModel):
    id: str
    post_id: str
    user_id: str
    parent_id: Optional[str]
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class ReactionRequest(BaseModel):
    target_type: Literal["post", "comment"]
    target_id: str


# ──────────────────────────── Feed ────────────────────────────────────────

class Pagination(_CamelModel):
    total: int
    page: int
    page_size: int
    page_count: int


class FeedResponse(_CamelModel):
    items: list[PublicationView]
    pagination: Pagination
