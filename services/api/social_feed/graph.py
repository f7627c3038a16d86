"""
Social graph store — friend sets and community membership.

Two friend sources share one interface:

  SocialGraphStore         friendships table; an accepted edge in either
                           direction makes two users friends.
  LegacyProfileGraphStore  JSON friend list stored on user_profiles.friends.
                           A corrupt list is logged and treated as "no friends"
                           so the viewer still gets the public feed.

Membership always comes from community_members. Storage errors surface as
DependencyUnavailable; missing users simply have no friends.
"""
import json
import logging
from typing import Optional, Protocol

from opentelemetry import trace
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from social_feed.exceptions import DataIntegrityError, DependencyUnavailable
from social_feed.models import CommunityMember, Friendship, FriendshipStatus, UserProfile
from social_feed.telemetry import DEPENDENCY_ERRORS_TOTAL, FRIEND_GRAPH_DEGRADED_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class SocialGraph(Protocol):
    async def friend_ids_of(self, user_id: str) -> set[str]: ...

    async def is_friend(self, a: str, b: str) -> bool: ...

    async def is_member(self, community_id: str, user_id: str) -> bool: ...


def parse_friend_blob(raw: Optional[str]) -> set[str]:
    """Decode a serialised friend list. Raises DataIntegrityError if corrupt."""
    if raw is None or raw == "":
        return set()
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise DataIntegrityError(f"friend list is not valid JSON: {exc}") from exc
    if not isinstance(decoded, list):
        raise DataIntegrityError(
            f"friend list must be a JSON array, got {type(decoded).__name__}"
        )
    if not all(isinstance(fid, str) and fid for fid in decoded):
        raise DataIntegrityError("friend list contains non-string ids")
    return set(decoded)


class SocialGraphStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _execute(self, stmt):
        try:
            return await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            DEPENDENCY_ERRORS_TOTAL.labels(component="social_graph").inc()
            logger.error("Social graph query failed: %s", exc)
            raise DependencyUnavailable("social_graph", str(exc)) from exc

    async def friend_ids_of(self, user_id: str) -> set[str]:
        with tracer.start_as_current_span("graph.friend_ids_of") as span:
            rows = await self._execute(
                select(Friendship.requester_id, Friendship.addressee_id).where(
                    Friendship.status == FriendshipStatus.ACCEPTED,
                    or_(
                        Friendship.requester_id == user_id,
                        Friendship.addressee_id == user_id,
                    ),
                )
            )
            friend_ids = {
                addressee if requester == user_id else requester
                for requester, addressee in rows.all()
            }
            friend_ids.discard(user_id)
            span.set_attribute("graph.friend_count", len(friend_ids))
            return friend_ids

    async def is_friend(self, a: str, b: str) -> bool:
        if a == b:
            return False
        low, high = sorted((a, b))
        row = await self._execute(
            select(Friendship.id).where(
                Friendship.user_low_id == low,
                Friendship.user_high_id == high,
                Friendship.status == FriendshipStatus.ACCEPTED,
            )
        )
        return row.first() is not None

    async def member_role(self, community_id: str, user_id: str) -> Optional[str]:
        row = await self._execute(
            select(CommunityMember.role).where(
                CommunityMember.community_id == community_id,
                CommunityMember.user_id == user_id,
            )
        )
        return row.scalar_one_or_none()

    async def is_member(self, community_id: str, user_id: str) -> bool:
        return await self.member_role(community_id, user_id) is not None

    async def member_ids_of(self, community_id: str) -> set[str]:
        rows = await self._execute(
            select(CommunityMember.user_id).where(
                CommunityMember.community_id == community_id
            )
        )
        return set(rows.scalars().all())


class LegacyProfileGraphStore(SocialGraphStore):
    """Friend sets from the serialised list on the user's profile."""

    async def friend_ids_of(self, user_id: str) -> set[str]:
        with tracer.start_as_current_span("graph.friend_ids_of.profile_blob") as span:
            row = await self._execute(
                select(UserProfile.friends).where(UserProfile.user_id == user_id)
            )
            raw = row.scalar_one_or_none()
            try:
                friend_ids = parse_friend_blob(raw)
            except DataIntegrityError as exc:
                FRIEND_GRAPH_DEGRADED_TOTAL.inc()
                logger.warning(
                    "Corrupt friend list for user %s (%s) — using empty friend set",
                    user_id,
                    exc,
                )
                span.set_attribute("graph.degraded", True)
                return set()
            friend_ids.discard(user_id)
            span.set_attribute("graph.friend_count", len(friend_ids))
            return friend_ids

    async def is_friend(self, a: str, b: str) -> bool:
        if a == b:
            return False
        return b in await self.friend_ids_of(a)


def graph_store_for(session: AsyncSession, source: str) -> SocialGraphStore:
    if source == "profile_blob":
        return LegacyProfileGraphStore(session)
    return SocialGraphStore(session)
