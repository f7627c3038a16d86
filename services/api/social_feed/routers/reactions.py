"""
Polymorphic reactions (likes) on publications and comments:
  POST   /reactions — like a target; idempotent
  DELETE /reactions — remove a like; idempotent

Liking requires the target to be visible to the acting user: a comment is
visible when its publication is. Hidden targets answer 404 like missing ones.
Unliking only needs the reaction row.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from social_feed.database import get_db
from social_feed.deps import get_feed_service, require_user
from social_feed.exceptions import PublicationNotFound
from social_feed.feed_service import FeedService
from social_feed.models import Comment, LikeableType, Publication, Reaction
from social_feed.schemas import ReactionRequest

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def _counter_target(target_type: str):
    return Publication if target_type == LikeableType.POST else Comment


async def _ensure_visible(
    service: FeedService, db: AsyncSession, user_id: str, body: ReactionRequest
) -> None:
    if body.target_type == LikeableType.POST:
        await service.get_publication(user_id, body.target_id)
        return

    comment = await db.get(Comment, body.target_id)
    if comment is None or not comment.is_active:
        raise HTTPException(status_code=404, detail="Comment not found")
    try:
        await service.get_publication(user_id, comment.post_id)
    except PublicationNotFound:
        raise HTTPException(status_code=404, detail="Comment not found")


@router.post("/", status_code=status.HTTP_204_NO_CONTENT)
async def add_reaction(
    body: ReactionRequest,
    user_id: str = Depends(require_user),
    service: FeedService = Depends(get_feed_service),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("add_reaction"):
        await _ensure_visible(service, db, user_id, body)

        existing = await db.execute(
            select(Reaction.id).where(
                Reaction.user_id == user_id,
                Reaction.likeable_type == body.target_type,
                Reaction.likeable_id == body.target_id,
            )
        )
        if existing.first():
            return  # already liked

        db.add(
            Reaction(
                user_id=user_id,
                likeable_type=body.target_type,
                likeable_id=body.target_id,
            )
        )
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent request liked it first
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already liked")

        model = _counter_target(body.target_type)
        await db.execute(
            update(model)
            .where(model.id == body.target_id)
            .values(likes_count=model.likes_count + 1)
        )
        logger.info("%s liked %s %s", user_id, body.target_type, body.target_id)


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
async def remove_reaction(
    body: ReactionRequest,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Unlike without a visibility check: a like can be withdrawn after the
    target stops being visible to the user."""
    with tracer.start_as_current_span("remove_reaction"):
        result = await db.execute(
            delete(Reaction).where(
                Reaction.user_id == user_id,
                Reaction.likeable_type == body.target_type,
                Reaction.likeable_id == body.target_id,
            )
        )
        if result.rowcount:
            model = _counter_target(body.target_type)
            await db.execute(
                update(model)
                .where(model.id == body.target_id, model.likes_count > 0)
                .values(likes_count=model.likes_count - 1)
            )
