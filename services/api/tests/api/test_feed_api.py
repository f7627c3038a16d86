import asyncio

import pytest
from sqlalchemy import update

from social_feed.deps import get_feed_service
from social_feed.models import Comment


async def create_user(client, username):
    resp = await client.post("/users/", json={"username": username})
    assert resp.status_code == 201, resp.text
    return resp.json()["user_id"]


async def befriend(client, a, b):
    resp = await client.post(
        "/friendships/", json={"addressee_id": b}, headers={"X-User-Id": a}
    )
    assert resp.status_code == 201, resp.text
    edge_id = resp.json()["id"]
    resp = await client.post(f"/friendships/{edge_id}/accept", headers={"X-User-Id": b})
    assert resp.status_code == 200, resp.text
    return edge_id


async def publish(client, author, visibility, content="hello"):
    resp = await client.post(
        "/publications/",
        json={"content": content, "visibility": visibility},
        headers={"X-User-Id": author},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


@pytest.mark.asyncio
async def test_feed_respects_visibility(api_client):
    u1 = await create_user(api_client, "alice")
    u2 = await create_user(api_client, "bob")
    u3 = await create_user(api_client, "carol")
    await befriend(api_client, u1, u2)

    p1 = await publish(api_client, u2, "friends")
    p2 = await publish(api_client, u2, "private")
    p3 = await publish(api_client, u3, "public")

    resp = await api_client.get("/feed/", headers={"X-User-Id": u1})
    assert resp.status_code == 200
    body = resp.json()
    assert {item["id"] for item in body["items"]} == {p1, p3}
    assert p2 not in {item["id"] for item in body["items"]}
    assert body["pagination"] == {"total": 2, "page": 1, "pageSize": 10, "pageCount": 1}
    assert set(body["items"][0]) == {
        "id", "authorId", "content", "type", "visibility", "likeCount",
        "commentCount", "shareCount", "metadata", "createdAt", "updatedAt",
    }

    resp = await api_client.get("/feed/")
    assert [item["id"] for item in resp.json()["items"]] == [p3]

    resp = await api_client.get("/feed/", params={"author_id": u2}, headers={"X-User-Id": u2})
    assert resp.json()["pagination"]["total"] == 2


@pytest.mark.asyncio
async def test_paging_validation_and_clamp(api_client):
    resp = await api_client.get("/feed/", params={"page": 0})
    assert resp.status_code == 422

    resp = await api_client.get("/feed/", params={"page_size": 0})
    assert resp.status_code == 422

    resp = await api_client.get("/feed/", params={"page_size": 5000})
    assert resp.status_code == 200
    assert resp.json()["pagination"]["pageSize"] == 100


@pytest.mark.asyncio
async def test_hidden_publication_looks_missing(api_client):
    owner = await create_user(api_client, "owner")
    other = await create_user(api_client, "other")
    private_id = await publish(api_client, owner, "private")

    resp = await api_client.get(f"/publications/{private_id}", headers={"X-User-Id": owner})
    assert resp.status_code == 200
    assert resp.json()["authorId"] == owner

    hidden = await api_client.get(f"/publications/{private_id}", headers={"X-User-Id": other})
    missing = await api_client.get("/publications/does-not-exist", headers={"X-User-Id": other})
    assert hidden.status_code == missing.status_code == 404
    assert hidden.json() == missing.json()


@pytest.mark.asyncio
async def test_friendship_pair_is_unique(api_client):
    u1 = await create_user(api_client, "dana")
    u2 = await create_user(api_client, "eli")

    resp = await api_client.post("/friendships/", json={"addressee_id": u2}, headers={"X-User-Id": u1})
    assert resp.status_code == 201
    edge_id = resp.json()["id"]

    for requester, addressee in ((u1, u2), (u2, u1)):
        resp = await api_client.post(
            "/friendships/", json={"addressee_id": addressee}, headers={"X-User-Id": requester}
        )
        assert resp.status_code == 409

    # only the addressee may accept
    resp = await api_client.post(f"/friendships/{edge_id}/accept", headers={"X-User-Id": u1})
    assert resp.status_code == 404

    resp = await api_client.post(f"/friendships/{edge_id}/accept", headers={"X-User-Id": u2})
    assert resp.json()["status"] == "accepted"

    resp = await api_client.get(f"/users/{u2}/friends")
    assert resp.json()["friends"] == [u1]

    resp = await api_client.post("/friendships/block", json={"blocked_id": u1}, headers={"X-User-Id": u2})
    assert resp.json()["status"] == "blocked"
    resp = await api_client.get(f"/users/{u2}/friends")
    assert resp.json()["friends"] == []


@pytest.mark.asyncio
async def test_self_friendship_and_anonymous_writes_rejected(api_client):
    u1 = await create_user(api_client, "fay")
    resp = await api_client.post("/friendships/", json={"addressee_id": u1}, headers={"X-User-Id": u1})
    assert resp.status_code == 400

    resp = await api_client.post("/publications/", json={"content": "x"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_community_creator_membership(api_client):
    creator = await create_user(api_client, "gus")
    joiner = await create_user(api_client, "hana")

    resp = await api_client.post(
        "/communities/",
        json={"name": "Runners", "category": "Deportes", "tags": ["outdoor"]},
        headers={"X-User-Id": creator},
    )
    assert resp.status_code == 201, resp.text
    community = resp.json()
    assert community["members_count"] == 1

    resp = await api_client.get(f"/communities/{community['id']}/members/{creator}")
    assert resp.json() == {
        "community_id": community["id"], "user_id": creator, "is_member": True, "role": "creator",
    }

    resp = await api_client.post(f"/communities/{community['id']}/members", headers={"X-User-Id": joiner})
    assert resp.status_code == 201
    resp = await api_client.post(f"/communities/{community['id']}/members", headers={"X-User-Id": joiner})
    assert resp.status_code == 409

    resp = await api_client.get(f"/communities/{community['id']}/members/{joiner}")
    assert resp.json()["role"] == "member"

    resp = await api_client.post(
        "/communities/", json={"name": "X", "category": "Nope"}, headers={"X-User-Id": creator}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_reactions_require_visibility(api_client):
    author = await create_user(api_client, "ivan")
    friend = await create_user(api_client, "joe")
    stranger = await create_user(api_client, "kim")
    await befriend(api_client, author, friend)
    post_id = await publish(api_client, author, "friends")

    like = {"target_type": "post", "target_id": post_id}
    resp = await api_client.post("/reactions/", json=like, headers={"X-User-Id": friend})
    assert resp.status_code == 204
    resp = await api_client.post("/reactions/", json=like, headers={"X-User-Id": friend})
    assert resp.status_code == 204

    resp = await api_client.post("/reactions/", json=like, headers={"X-User-Id": stranger})
    assert resp.status_code == 404

    resp = await api_client.get(f"/publications/{post_id}", headers={"X-User-Id": author})
    assert resp.json()["likeCount"] == 1

    resp = await api_client.post(
        f"/publications/{post_id}/comments", json={"content": "nice"}, headers={"X-User-Id": friend}
    )
    assert resp.status_code == 201
    comment_id = resp.json()["id"]

    resp = await api_client.post(
        f"/publications/{post_id}/comments", json={"content": "hi"}, headers={"X-User-Id": stranger}
    )
    assert resp.status_code == 404

    comment_like = {"target_type": "comment", "target_id": comment_id}
    resp = await api_client.post("/reactions/", json=comment_like, headers={"X-User-Id": stranger})
    assert resp.status_code == 404
    resp = await api_client.post("/reactions/", json=comment_like, headers={"X-User-Id": author})
    assert resp.status_code == 204

    resp = await api_client.request("DELETE", "/reactions/", json=like, headers={"X-User-Id": friend})
    assert resp.status_code == 204
    resp = await api_client.get(f"/publications/{post_id}", headers={"X-User-Id": author})
    body = resp.json()
    assert body["likeCount"] == 0
    assert body["commentCount"] == 1


class _SlowFeedService:
    async def get_feed(self, request):
        await asyncio.sleep(5)


@pytest.mark.asyncio
async def test_feed_timeout_is_retryable_503(api_client, app, test_settings):
    test_settings.feed_query_timeout_seconds = 0.05
    app.dependency_overrides[get_feed_service] = lambda: _SlowFeedService()
    try:
        resp = await api_client.get("/feed/")
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "1"


@pytest.mark.asyncio
async def test_reply_to_inactive_comment_is_rejected(api_client, app):
    author = await create_user(api_client, "lena")
    post_id = await publish(api_client, author, "public")

    resp = await api_client.post(
        f"/publications/{post_id}/comments", json={"content": "first"}, headers={"X-User-Id": author}
    )
    parent_id = resp.json()["id"]

    resp = await api_client.post(
        f"/publications/{post_id}/comments",
        json={"content": "reply", "parent_id": parent_id},
        headers={"X-User-Id": author},
    )
    assert resp.status_code == 201

    async with app.state.db.session() as session:
        await session.execute(
            update(Comment).where(Comment.id == parent_id).values(is_active=False)
        )

    resp = await api_client.post(
        f"/publications/{post_id}/comments",
        json={"content": "late reply", "parent_id": parent_id},
        headers={"X-User-Id": author},
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_unlike_after_target_is_hidden(api_client):
    author = await create_user(api_client, "mona")
    friend = await create_user(api_client, "nico")
    await befriend(api_client, author, friend)
    post_id = await publish(api_client, author, "friends")

    like = {"target_type": "post", "target_id": post_id}
    resp = await api_client.post("/reactions/", json=like, headers={"X-User-Id": friend})
    assert resp.status_code == 204

    resp = await api_client.post("/friendships/block", json={"blocked_id": friend}, headers={"X-User-Id": author})
    assert resp.json()["status"] == "blocked"
    resp = await api_client.post("/reactions/", json=like, headers={"X-User-Id": friend})
    assert resp.status_code == 404

    resp = await api_client.request("DELETE", "/reactions/", json=like, headers={"X-User-Id": friend})
    assert resp.status_code == 204
    resp = await api_client.get(f"/publications/{post_id}", headers={"X-User-Id": author})
    assert resp.json()["likeCount"] == 0
