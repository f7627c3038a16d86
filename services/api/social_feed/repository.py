"""
Publication storage executor.

Runs the planner's predicate as a counted, paginated read. Count and page
are issued on the caller's session, i.e. inside the same transaction as the
friend-set read, so one feed request sees one snapshot.
"""
import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from social_feed.exceptions import DependencyUnavailable
from social_feed.models import Publication
from social_feed.planner import FeedQueryPlan
from social_feed.telemetry import DEPENDENCY_ERRORS_TOTAL

logger = logging.getLogger(__name__)


class PublicationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def count_and_page(
        self, plan: FeedQueryPlan, offset: int, limit: int
    ) -> tuple[int, list[Publication]]:
        where = plan.where_clause()
        try:
            total = await self.session.scalar(
                select(func.count()).select_from(Publication).where(where)
            )
            rows = await self.session.scalars(
                select(Publication)
                .where(where)
                .order_by(*plan.order_by)
                .offset(offset)
                .limit(limit)
            )
            return int(total or 0), list(rows.all())
        except SQLAlchemyError as exc:
            DEPENDENCY_ERRORS_TOTAL.labels(component="storage").inc()
            logger.error("Publication query failed: %s", exc)
            raise DependencyUnavailable("storage", str(exc)) from exc

    async def get(self, publication_id: str) -> Optional[Publication]:
        try:
            return await self.session.get(Publication, publication_id)
        except SQLAlchemyError as exc:
            DEPENDENCY_ERRORS_TOTAL.labels(component="storage").inc()
            logger.error("Publication lookup failed (id=%s): %s", publication_id, exc)
            raise DependencyUnavailable("storage", str(exc)) from exc
