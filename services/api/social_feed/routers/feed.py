"""
Feed retrieval endpoint — GET /feed?page=<n>&page_size=<n>[&author_id=<id>]

The viewer comes from the X-User-Id header (absent = anonymous). Visibility
is resolved by the database through the planner's predicate, so the total
and the page both reflect exactly what this viewer may see.
"""
import asyncio
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from opentelemetry import trace

from social_feed.config import Settings
from social_feed.deps import get_feed_service, get_settings, get_viewer
from social_feed.exceptions import DependencyUnavailable
from social_feed.feed_service import FeedRequest, FeedService
from social_feed.schemas import FeedResponse, Pagination
from social_feed.telemetry import DEPENDENCY_ERRORS_TOTAL, FEED_LATENCY, FEED_REQUESTS_TOTAL
from social_feed.visibility import ViewerContext

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.get("/", response_model=FeedResponse)
async def get_feed(
    page: int = Query(1, description="1-based page number"),
    page_size: Optional[int] = Query(None, description="Items per page (clamped)"),
    author_id: Optional[str] = Query(None, description="Only this author's posts"),
    viewer: ViewerContext = Depends(get_viewer),
    service: FeedService = Depends(get_feed_service),
    settings: Settings = Depends(get_settings),
):
    start_time = time.time()
    request = FeedRequest(
        page=page,
        page_size=page_size if page_size is not None else settings.feed_default_page_size,
        author_id=author_id,
        viewer_id=viewer.user_id,
    )

    try:
        # On timeout the query task is cancelled and the session rolled back;
        # the caller gets a retryable error, never a partial page.
        result = await asyncio.wait_for(
            service.get_feed(request), timeout=settings.feed_query_timeout_seconds
        )
    except asyncio.TimeoutError as exc:
        DEPENDENCY_ERRORS_TOTAL.labels(component="storage").inc()
        logger.warning(
            "Feed query timed out after %.1fs (viewer=%s)",
            settings.feed_query_timeout_seconds,
            viewer.user_id or "anonymous",
        )
        raise DependencyUnavailable("storage", "feed query timed out") from exc

    FEED_REQUESTS_TOTAL.labels(
        viewer="anonymous" if viewer.is_anonymous else "authenticated"
    ).inc()
    FEED_LATENCY.observe(time.time() - start_time)

    return FeedResponse(
        items=result.items,
        pagination=Pagination(
            total=result.total,
            page=result.page,
            page_size=result.page_size,
            page_count=result.page_count,
        ),
    )
