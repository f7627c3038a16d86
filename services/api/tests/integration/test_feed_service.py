import pytest
from sqlalchemy.exc import OperationalError

from social_feed.exceptions import DependencyUnavailable, FeedValidationError, PublicationNotFound
from social_feed.feed_service import FeedRequest, FeedService
from social_feed.graph import SocialGraphStore
from social_feed.repository import PublicationRepository


def feed_service(session, max_page_size=100) -> FeedService:
    return FeedService(
        graph=SocialGraphStore(session),
        publications=PublicationRepository(session),
        max_page_size=max_page_size,
    )


def ids(page):
    return [item.id for item in page.items]


@pytest.mark.asyncio
async def test_friend_scenario(session, make):
    make.edge("u1", "u2")
    make.publication("p1", "u2", "friends", minutes=1)
    make.publication("p2", "u2", "private", minutes=2)
    make.publication("p3", "u3", "public", minutes=3)
    await session.flush()

    service = feed_service(session)

    as_friend = await service.get_feed(FeedRequest(viewer_id="u1"))
    assert ids(as_friend) == ["p3", "p1"]
    assert as_friend.total == 2

    anonymous = await service.get_feed(FeedRequest())
    assert ids(anonymous) == ["p3"]
    assert anonymous.total == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("viewer", ["u1", "u2", None])
async def test_own_author_feed_counts_only_active(session, make, viewer):
    n = 0
    for visibility, count in (("public", 3), ("friends", 2), ("private", 1)):
        for _ in range(count):
            n += 1
            make.publication(f"a{n}", "u1", visibility, minutes=n)
        make.publication(f"inactive-{visibility}", "u1", visibility, minutes=50, is_active=False)
    make.publication("other", "u2", "public", minutes=60)
    await session.flush()

    page = await feed_service(session).get_feed(
        FeedRequest(author_id="u1", viewer_id=viewer, page_size=50)
    )
    if viewer == "u1":
        assert page.total == 6
    elif viewer == "u2":
        # a stranger sees the author's public posts only
        assert page.total == 3
    else:
        assert page.total == 3
    assert all(item.author_id == "u1" for item in page.items)


@pytest.mark.asyncio
async def test_anonymous_sees_only_active_public(session, make):
    make.publication("pub", "u1", "public", minutes=1)
    make.publication("pub-off", "u1", "public", minutes=2, is_active=False)
    make.publication("fr", "u1", "friends", minutes=3)
    make.publication("pr", "u1", "private", minutes=4)
    make.publication("odd", "u1", "PUBLIC", minutes=5)
    await session.flush()

    page = await feed_service(session).get_feed(FeedRequest())
    assert ids(page) == ["pub"]


@pytest.mark.asyncio
async def test_unknown_visibility_hidden_from_author(session, make):
    make.publication("weird", "u1", "unlisted")
    await session.flush()

    page = await feed_service(session).get_feed(FeedRequest(viewer_id="u1"))
    assert page.total == 0


@pytest.mark.asyncio
async def test_nonexistent_author_is_an_empty_page(session, make):
    make.publication("p1", "u1", "public")
    await session.flush()

    page = await feed_service(session).get_feed(FeedRequest(author_id="ghost"))
    assert page.items == []
    assert page.total == 0
    assert page.page_count == 0


@pytest.mark.asyncio
async def test_pagination_is_stable_across_pages(session, make):
    make.edge("viewer", "friend")
    # Few distinct timestamps, so ordering leans on the id tie-break
    for i in range(37):
        author = "friend" if i % 3 else "stranger"
        visibility = "friends" if author == "friend" and i % 2 else "public"
        make.publication(f"p{i:02d}", author, visibility, minutes=i % 4)
    make.publication("hidden", "stranger", "friends", minutes=3)
    await session.flush()

    service = feed_service(session)
    full = await service.get_feed(FeedRequest(viewer_id="viewer", page_size=100))
    assert full.total == 37

    collected = []
    for page_number in range(1, 9):
        page = await service.get_feed(
            FeedRequest(viewer_id="viewer", page=page_number, page_size=5)
        )
        assert page.total == 37
        assert page.page_count == 8
        collected.extend(ids(page))

    assert collected == ids(full)
    assert len(set(collected)) == len(collected)

    # created_at descending, then id ascending
    keys = [(item.created_at, item.id) for item in full.items]
    for (t1, id1), (t2, id2) in zip(keys, keys[1:]):
        assert t1 > t2 or (t1 == t2 and id1 < id2)


@pytest.mark.asyncio
@pytest.mark.parametrize("page, page_size", [(0, 10), (-1, 10), (1, 0), (1, -5)])
async def test_rejects_non_positive_paging(session, page, page_size):
    with pytest.raises(FeedValidationError):
        await feed_service(session).get_feed(FeedRequest(page=page, page_size=page_size))


@pytest.mark.asyncio
async def test_page_size_is_clamped(session, make):
    for i in range(5):
        make.publication(f"p{i}", "u1", minutes=i)
    await session.flush()

    page = await feed_service(session, max_page_size=3).get_feed(FeedRequest(page_size=1000))
    assert page.page_size == 3
    assert len(page.items) == 3
    assert page.page_count == 2


@pytest.mark.asyncio
async def test_view_exposes_public_fields_only(session, make):
    make.publication("p1", "u1")
    await session.flush()

    page = await feed_service(session).get_feed(FeedRequest())
    dumped = page.items[0].model_dump(by_alias=True)
    assert set(dumped) == {
        "id", "authorId", "content", "type", "visibility", "likeCount",
        "commentCount", "shareCount", "metadata", "createdAt", "updatedAt",
    }


class _BrokenSession:
    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("server has gone away"))

    async def scalar(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("server has gone away"))

    async def scalars(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("server has gone away"))


@pytest.mark.asyncio
async def test_storage_failure_is_reported_not_swallowed(session):
    service = FeedService(
        graph=SocialGraphStore(session),
        publications=PublicationRepository(_BrokenSession()),
    )
    with pytest.raises(DependencyUnavailable) as excinfo:
        await service.get_feed(FeedRequest(viewer_id="u1"))
    assert excinfo.value.component == "storage"


@pytest.mark.asyncio
async def test_graph_failure_fails_the_request(session):
    service = FeedService(
        graph=SocialGraphStore(_BrokenSession()),
        publications=PublicationRepository(session),
    )
    with pytest.raises(DependencyUnavailable):
        await service.get_feed(FeedRequest(viewer_id="u1"))
    # anonymous viewers never touch the graph
    page = await service.get_feed(FeedRequest())
    assert page.total == 0


@pytest.mark.asyncio
async def test_get_publication_hides_like_missing(session, make):
    make.edge("u1", "u2")
    make.publication("fr", "u2", "friends")
    make.publication("pr", "u2", "private")
    make.publication("off", "u2", "public", is_active=False)
    await session.flush()

    service = feed_service(session)
    assert (await service.get_publication("u1", "fr")).id == "fr"
    for viewer, pub_id in [("u1", "pr"), ("u3", "fr"), (None, "fr"), ("u2", "off"), ("u1", "nope")]:
        with pytest.raises(PublicationNotFound):
            await service.get_publication(viewer, pub_id)
