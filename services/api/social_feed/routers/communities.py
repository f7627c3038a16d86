"""
Community endpoints:
  POST /communities                        — create; the creator is the first member
  POST /communities/{id}/members           — join as a plain member
  GET  /communities/{id}/members/{user_id} — membership check
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from social_feed.database import get_db
from social_feed.deps import get_graph, require_user
from social_feed.graph import SocialGraphStore
from social_feed.models import COMMUNITY_CATEGORIES, Community, CommunityMember, MemberRole
from social_feed.schemas import CommunityCreate, CommunityResponse, MembershipResponse

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("/", response_model=CommunityResponse, status_code=status.HTTP_201_CREATED)
async def create_community(
    body: CommunityCreate,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a community and its creator membership in one transaction.

    members_count starts at 1 and the 'creator' role is only ever written
    here, so every community has exactly one creator.
    """
    with tracer.start_as_current_span("create_community"):
        if body.category not in COMMUNITY_CATEGORIES:
            raise HTTPException(
                status_code=422,
                detail=f"Unknown category '{body.category}'",
            )

        community = Community(
            creator_id=user_id,
            name=body.name,
            description=body.description,
            category=body.category,
            tags=body.tags,
            members_count=1,
        )
        db.add(community)
        await db.flush()  # materialise community.id

        db.add(
            CommunityMember(
                community_id=community.id, user_id=user_id, role=MemberRole.CREATOR
            )
        )
        await db.flush()

        logger.info("Community %s created by %s", community.id, user_id)
        return community


@router.post(
    "/{community_id}/members",
    response_model=MembershipResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join_community(
    community_id: str,
    user_id: str = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("join_community"):
        community = await db.get(Community, community_id)
        if community is None or not community.is_active:
            raise HTTPException(status_code=404, detail="Community not found")

        db.add(
            CommunityMember(
                community_id=community_id, user_id=user_id, role=MemberRole.MEMBER
            )
        )
        try:
            await db.flush()
        except IntegrityError:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail="Already a member"
            )

        # Increment in SQL so concurrent joins don't lose updates
        await db.execute(
            update(Community)
            .where(Community.id == community_id)
            .values(members_count=Community.members_count + 1)
        )
        logger.info("%s joined community %s", user_id, community_id)
        return MembershipResponse(
            community_id=community_id,
            user_id=user_id,
            is_member=True,
            role=MemberRole.MEMBER,
        )


@router.get("/{community_id}/members/{user_id}", response_model=MembershipResponse)
async def get_membership(
    community_id: str,
    user_id: str,
    graph: SocialGraphStore = Depends(get_graph),
):
    role = await graph.member_role(community_id, user_id)
    return MembershipResponse(
        community_id=community_id,
        user_id=user_id,
        is_member=role is not None,
        role=role,
    )
