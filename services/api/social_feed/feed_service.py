"""
Feed service — visibility-scoped, paginated publication feed.

  1. Resolve the viewer's friend set (empty for anonymous viewers).
  2. Plan: visibility predicate ∧ is_active ∧ optional author filter.
  3. Counted, paginated read ordered by created_at DESC, id ASC.
  4. Shape rows into PublicationView.

The total is counted over the filtered set, so page counts are exact.
"""
import logging
import math
from dataclasses import dataclass
from typing import Optional

from opentelemetry import trace

from social_feed.exceptions import FeedValidationError, PublicationNotFound
from social_feed.graph import SocialGraph
from social_feed.models import Publication
from social_feed.planner import plan_feed_query
from social_feed.repository import PublicationRepository
from social_feed.schemas import PublicationView
from social_feed.visibility import ViewerContext, can_view

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class FeedRequest:
    page: int = 1
    page_size: int = 10
    author_id: Optional[str] = None
    viewer_id: Optional[str] = None


@dataclass(frozen=True)
class FeedPage:
    items: list
    page: int
    page_size: int
    total: int

    @property
    def page_count(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


def to_view(publication: Publication) -> PublicationView:
    return PublicationView(
        id=publication.id,
        author_id=publication.user_id,
        content=publication.content,
        type=publication.type,
        visibility=publication.visibility,
        like_count=publication.likes_count,
        comment_count=publication.comments_count,
        share_count=publication.shares_count,
        metadata=publication.meta,
        created_at=publication.created_at,
        updated_at=publication.updated_at,
    )


class FeedService:
    def __init__(
        self,
        graph: SocialGraph,
        publications: PublicationRepository,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
    ) -> None:
        self.graph = graph
        self.publications = publications
        self.max_page_size = max_page_size

    def _validate(self, request: FeedRequest) -> int:
        """Reject non-positive paging; clamp page_size to the maximum."""
        if not isinstance(request.page, int) or request.page < 1:
            raise FeedValidationError(f"page must be >= 1, got {request.page!r}")
        if not isinstance(request.page_size, int) or request.page_size < 1:
            raise FeedValidationError(
                f"page_size must be >= 1, got {request.page_size!r}"
            )
        return min(request.page_size, self.max_page_size)

    async def _friend_ids(self, viewer: ViewerContext) -> set[str]:
        if viewer.is_anonymous:
            return set()
        return await self.graph.friend_ids_of(viewer.user_id)

    async def get_feed(self, request: FeedRequest) -> FeedPage:
        page_size = self._validate(request)
        viewer = ViewerContext.of(request.viewer_id)

        with tracer.start_as_current_span("feed.get_feed") as span:
            span.set_attribute("feed.anonymous", viewer.is_anonymous)
            span.set_attribute("feed.page", request.page)
            span.set_attribute("feed.page_size", page_size)

            with tracer.start_as_current_span("feed.resolve_friends"):
                friend_ids = await self._friend_ids(viewer)

            plan = plan_feed_query(viewer.user_id, friend_ids, request.author_id)

            with tracer.start_as_current_span("feed.read"):
                total, rows = await self.publications.count_and_page(
                    plan, offset=(request.page - 1) * page_size, limit=page_size
                )

            span.set_attribute("feed.total", total)
            span.set_attribute("feed.returned", len(rows))
            logger.debug(
                "Feed resolved: viewer=%s author=%s friends=%d total=%d page=%d",
                viewer.user_id or "anonymous",
                request.author_id,
                len(friend_ids),
                total,
                request.page,
            )
            return FeedPage(
                items=[to_view(row) for row in rows],
                page=request.page,
                page_size=page_size,
                total=total,
            )

    async def get_publication(
        self, viewer_id: Optional[str], publication_id: str
    ) -> Publication:
        """Fetch one publication the viewer may see.

        Missing, inactive and hidden publications all raise the same
        PublicationNotFound, so callers can't probe for hidden posts.
        """
        viewer = ViewerContext.of(viewer_id)
        publication = await self.publications.get(publication_id)
        if publication is None or publication.is_active is not True:
            raise PublicationNotFound(publication_id)
        friend_ids = await self._friend_ids(viewer)
        if not can_view(publication, viewer.user_id, friend_ids):
            raise PublicationNotFound(publication_id)
        return publication
