"""
Friendship write paths:
  POST /friendships              — send a friend request (acting user → addressee)
  POST /friendships/{id}/accept  — addressee accepts a pending request
  POST /friendships/{id}/reject  — addressee rejects a pending request
  POST /friendships/block        — block a user (replaces any existing edge)

At most one edge exists per unordered pair; the uq_friendship_pair constraint
enforces it even when two requests race.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from social_feed.database import get_db
from social_feed.deps import require_user
from social_feed.models import Friendship, FriendshipStatus, UserProfile
from social_feed.schemas import BlockRequest, FriendshipCreate, FriendshipResponse

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _edge_between(db: AsyncSession, a: str, b: str):
    low, high = sorted((a, b))
    result = await db.execute(
        select(Friendship).where(
            Friendship.user_low_id == low, Friendship.user_high_id == high
        )
    )
    return result.scalar_one_or_none()


async def _flush_or_conflict(db: AsyncSession) -> None:
    try:
        await db.flush()
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A friendship between these users already exists",
        )


@router.post("/", response_model=FriendshipResponse, status_code=status.HTTP_201_CREATED)
async def request_friendship(
    body: FriendshipCreate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("request_friendship"):
        if body.addressee_id == user_id:
            raise HTTPException(status_code=400, detail="Cannot befriend yourself")
        if not await db.get(UserProfile, body.addressee_id):
            raise HTTPException(status_code=404, detail="User not found")

        if await _edge_between(db, user_id, body.addressee_id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A friendship between these users already exists",
            )

        edge = Friendship.between(user_id, body.addressee_id)
        db.add(edge)
        await _flush_or_conflict(db)
        logger.info("%s sent a friend request to %s", user_id, body.addressee_id)
        return edge


async def _respond(db: AsyncSession, friendship_id: str, user_id: str, new_status: str):
    edge = await db.get(Friendship, friendship_id)
    # Only the addressee may respond; to anyone else the request doesn't exist
    if (
        edge is None
        or edge.addressee_id != user_id
        or edge.status != FriendshipStatus.PENDING
    ):
        raise HTTPException(status_code=404, detail="Friend request not found")
    edge.status = new_status
    await db.flush()
    logger.info("Friendship %s %s by %s", friendship_id, new_status, user_id)
    return edge


@router.post("/{friendship_id}/accept", response_model=FriendshipResponse)
async def accept_friendship(
    friendship_id: str,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await _respond(db, friendship_id, user_id, FriendshipStatus.ACCEPTED)


@router.post("/{friendship_id}/reject", response_model=FriendshipResponse)
async def reject_friendship(
    friendship_id: str,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    return await _respond(db, friendship_id, user_id, FriendshipStatus.REJECTED)


@router.post("/block", response_model=FriendshipResponse)
async def block_user(
    body: BlockRequest,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("block_user"):
        if body.blocked_id == user_id:
            raise HTTPException(status_code=400, detail="Cannot block yourself")

        edge = await _edge_between(db, user_id, body.blocked_id)
        if edge is None:
            edge = Friendship.between(user_id, body.blocked_id, FriendshipStatus.BLOCKED)
            db.add(edge)
        else:
            # The blocker becomes the requester so the edge records who blocked
            edge.requester_id = user_id
            edge.addressee_id = body.blocked_id
            edge.status = FriendshipStatus.BLOCKED
        await _flush_or_conflict(db)
        logger.info("%s blocked %s", user_id, body.blocked_id)
        return edge
