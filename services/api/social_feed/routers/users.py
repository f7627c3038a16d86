"""
User profile endpoints:
  POST /users              — create a user profile
  GET  /users/{id}         — fetch a user profile
  GET  /users/{id}/friends — accepted friends, in either edge direction
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from social_feed.database import get_db
from social_feed.deps import get_graph
from social_feed.graph import SocialGraphStore
from social_feed.models import UserProfile
from social_feed.schemas import FriendListResponse, UserCreate, UserResponse

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, db: AsyncSession = Depends(get_db)):
    with tracer.start_as_current_span("create_user"):
        existing = await db.execute(
            select(UserProfile).where(UserProfile.username == body.username)
        )
        if existing.scalar_one_or_none():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Username '{body.username}' already taken",
            )

        user = UserProfile(username=body.username, display_name=body.display_name)
        db.add(user)
        await db.flush()
        await db.refresh(user)  # load server-generated created_at

        logger.info("Created user %s (id=%s)", user.username, user.user_id)
        return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await db.get(UserProfile, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/{user_id}/friends", response_model=FriendListResponse)
async def list_friends(user_id: str, graph: SocialGraphStore = Depends(get_graph)):
    friend_ids = await graph.friend_ids_of(user_id)
    return FriendListResponse(user_id=user_id, friends=sorted(friend_ids))
