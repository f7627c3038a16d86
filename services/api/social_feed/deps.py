"""
FastAPI dependencies shared by the routers.

The viewer identity arrives in the X-User-Id header, set by the auth gateway
in front of this service after it has verified the caller. No header means
an anonymous viewer.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from social_feed.config import Settings
from social_feed.database import get_db
from social_feed.feed_service import FeedService
from social_feed.graph import SocialGraphStore, graph_store_for
from social_feed.repository import PublicationRepository
from social_feed.visibility import ViewerContext


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_viewer(x_user_id: Optional[str] = Header(None)) -> ViewerContext:
    return ViewerContext.of(x_user_id)


def require_user(viewer: ViewerContext = Depends(get_viewer)) -> str:
    if viewer.is_anonymous:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required"
        )
    return viewer.user_id


def get_graph(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> SocialGraphStore:
    return graph_store_for(db, settings.friend_graph_source)


def get_feed_service(
    db: AsyncSession = Depends(get_db),
    graph: SocialGraphStore = Depends(get_graph),
    settings: Settings = Depends(get_settings),
) -> FeedService:
    return FeedService(
        graph=graph,
        publications=PublicationRepository(db),
        max_page_size=settings.feed_max_page_size,
    )
