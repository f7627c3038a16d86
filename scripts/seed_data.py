#!/usr/bin/env python3
"""
Seed script — creates a realistic dataset for exercising feed visibility.

Creates:
  • 8 users
  • A friendship graph (requests sent, most accepted, some left pending)
  • 6 posts per user with a mix of public / friends / private visibility
  • 2 communities with a few members
  • Some likes across visible posts

Run against a running API:
  python scripts/seed_data.py --api-url http://localhost:8000

The viewer is passed as X-User-Id, standing in for the auth gateway.
"""
import argparse
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional


BASE_USERS = [
    ("alice_ai", "Alice Chen"),
    ("bob_builder", "Bob Martinez"),
    ("carol_codes", "Carol Singh"),
    ("dave_designs", "Dave Kim"),
    ("eve_engineer", "Eve Johnson"),
    ("frank_feeds", "Frank Williams"),
    ("grace_graphs", "Grace Li"),
    ("henry_hpc", "Henry Brown"),
]

SAMPLE_POSTS = [
    "Morning run along the river, 10k in the bag.",
    "Finished a great book on distributed systems this weekend.",
    "Anyone up for a board game night on Friday?",
    "New recipe attempt: sourdough, round three.",
    "Photos from the hike are finally sorted.",
    "Thinking about joining the volunteering group this month.",
    "Private note to self: call the landlord.",
    "Only sharing this with friends: I got the job!",
    "Meditation streak: 30 days.",
    "The new dance class is harder than it looks.",
]

VISIBILITY_MIX = ["public", "public", "public", "friends", "friends", "private"]


@dataclass
class ApiClient:
    base_url: str

    def _send(self, method: str, path: str, data: Optional[dict], user_id: Optional[str]) -> dict:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if user_id:
            headers["X-User-Id"] = user_id
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(url, data=body, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                raw = resp.read()
                return json.loads(raw) if raw else {}
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def post(self, path: str, data: Optional[dict] = None, user_id: Optional[str] = None) -> dict:
        return self._send("POST", path, data, user_id)

    def get(self, path: str, user_id: Optional[str] = None) -> dict:
        return self._send("GET", path, None, user_id)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            if client.get("/health").get("status") == "ok":
                print("  API is ready!\n")
                return
        except urllib.error.URLError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Create users ─────────────────────────────────────────────────────
    print("Creating users...")
    user_ids: list[str] = []
    for username, display_name in BASE_USERS:
        result = client.post("/users/", {"username": username, "display_name": display_name})
        uid = result.get("user_id", "")
        if uid:
            user_ids.append(uid)
            print(f"  ✓ {username} ({uid})")
        else:
            print(f"  ✗ Failed to create {username}")

    if len(user_ids) < 2:
        print("Not enough users created — aborting")
        return

    # ── Create friendship graph ──────────────────────────────────────────
    print("\nCreating friendships...")
    accepted = pending = 0
    for i, requester in enumerate(user_ids):
        for addressee in user_ids[i + 1:]:
            if random.random() > 0.45:
                continue
            edge = client.post("/friendships/", {"addressee_id": addressee}, user_id=requester)
            if not edge:
                continue
            if random.random() < 0.8:
                client.post(f"/friendships/{edge['id']}/accept", user_id=addressee)
                accepted += 1
            else:
                pending += 1
    print(f"  ✓ {accepted} accepted, {pending} pending")

    # ── Create posts ──────────────────────────────────────────────────────
    print("\nCreating posts...")
    post_ids: list[tuple[str, str]] = []
    for user_id in user_ids:
        for visibility in VISIBILITY_MIX:
            result = client.post(
                "/publications/",
                {"content": random.choice(SAMPLE_POSTS), "visibility": visibility},
                user_id=user_id,
            )
            if result.get("id"):
                post_ids.append((result["id"], visibility))
    print(f"  ✓ {len(post_ids)} posts created")

    # ── Communities ───────────────────────────────────────────────────────
    print("\nCreating communities...")
    for name, category, creator in (("Runners", "Deportes", user_ids[0]), ("Bakers", "Cocina", user_ids[1])):
        community = client.post("/communities/", {"name": name, "category": category}, user_id=creator)
        if not community:
            continue
        for member in random.sample([u for u in user_ids if u != creator], k=3):
            client.post(f"/communities/{community['id']}/members", user_id=member)
        print(f"  ✓ {name} ({community['id']})")

    # ── Likes on public posts ─────────────────────────────────────────────
    print("\nAdding likes...")
    likes = 0
    for post_id, visibility in post_ids:
        if visibility != "public":
            continue
        for user_id in random.sample(user_ids, k=random.randint(0, 3)):
            client.post("/reactions/", {"target_type": "post", "target_id": post_id}, user_id=user_id)
            likes += 1
    print(f"  ✓ {likes} likes added")

    # ── Print summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    u = user_ids[0]
    print(f"# Feed as '{BASE_USERS[0][0]}' (public + friends' + own posts):")
    print(f"  curl -s -H 'X-User-Id: {u}' '{api_url}/feed/?page=1&page_size=10' | python3 -m json.tool\n")
    print("# Anonymous feed (public posts only):")
    print(f"  curl -s '{api_url}/feed/' | python3 -m json.tool\n")
    print(f"# Friends of '{BASE_USERS[0][0]}':")
    print(f"  curl -s '{api_url}/users/{u}/friends' | python3 -m json.tool\n")
    print("# Check Jaeger traces: http://localhost:16686")
    print("# Check Prometheus metrics: " + f"{api_url}/metrics")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Social Feed system")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
