"""
Publication endpoints:
  POST /publications                 — publish as the acting user
  GET  /publications/{id}            — fetch one, if the viewer may see it
  POST /publications/{id}/comments   — comment on a visible publication

A publication the viewer may not see answers 404 exactly like one that
doesn't exist.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from social_feed.database import get_db
from social_feed.deps import get_feed_service, get_viewer, require_user
from social_feed.feed_service import FeedService, to_view
from social_feed.models import Comment, Publication
from social_feed.schemas import (
    CommentCreate,
    CommentResponse,
    PublicationCreate,
    PublicationView,
)
from social_feed.visibility import ViewerContext

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("/", response_model=PublicationView, status_code=status.HTTP_201_CREATED)
async def create_publication(
    body: PublicationCreate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("create_publication") as span:
        publication = Publication(
            user_id=user_id,
            content=body.content,
            type=body.type,
            visibility=body.visibility,
            meta=body.metadata or {},
        )
        db.add(publication)
        await db.flush()
        await db.refresh(publication)  # load server-generated timestamps

        span.set_attribute("publication.id", publication.id)
        span.set_attribute("publication.visibility", publication.visibility)
        logger.info("Publication %s created by %s", publication.id, user_id)
        return to_view(publication)


@router.get("/{publication_id}", response_model=PublicationView)
async def get_publication(
    publication_id: str,
    viewer: ViewerContext = Depends(get_viewer),
    service: FeedService = Depends(get_feed_service),
):
    publication = await service.get_publication(viewer.user_id, publication_id)
    return to_view(publication)


@router.post(
    "/{publication_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    publication_id: str,
    body: CommentCreate,
    user_id: str = Depends(require_user),
    service: FeedService = Depends(get_feed_service),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("create_comment"):
        await service.get_publication(user_id, publication_id)

        if body.parent_id is not None:
            parent = await db.get(Comment, body.parent_id)
            if parent is None or not parent.is_active or parent.post_id != publication_id:
                raise HTTPException(status_code=404, detail="Parent comment not found")

        comment = Comment(
            post_id=publication_id,
            user_id=user_id,
            parent_id=body.parent_id,
            content=body.content,
        )
        db.add(comment)
        await db.flush()
        await db.refresh(comment)

        await db.execute(
            update(Publication)
            .where(Publication.id == publication_id)
            .values(comments_count=Publication.comments_count + 1)
        )
        return comment
