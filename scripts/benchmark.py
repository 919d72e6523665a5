"""
Concurrency check for the vote and comment endpoints.

Fires N simultaneous identical requests per (article, user) pair against a
running server and reports the status codes.  The expected outcome is one
success and N-1 conflicts for every pair, with the article's vote count
growing by exactly the number of pairs.
"""
import asyncio
import argparse
import statistics
import time
import uuid
from collections import Counter

import httpx

BASE_URL = "http://localhost:8001"


async def _timed(client: httpx.AsyncClient, method: str, path: str, payload: dict):
    start = time.perf_counter()
    resp = await client.request(method, f"{BASE_URL}{path}", json=payload)
    return resp.status_code, (time.perf_counter() - start) * 1000


async def hammer(client: httpx.AsyncClient, article: str, users: int, concurrency: int):
    before = (await client.get(f"{BASE_URL}/api/articulo/{article}")).json()["articulo"]["voto"]

    vote_codes: Counter = Counter()
    comment_codes: Counter = Counter()
    times: list[float] = []
    for _ in range(users):
        user_id = f"bench-{uuid.uuid4().hex[:12]}"
        vote_path = f"/api/votar/{article}/masuno"
        comment_path = f"/api/votar/{article}/comentario"
        comment = {"autor": "Benchmark", "texto": "Concurrent comment", "userId": user_id}

        results = await asyncio.gather(
            *[_timed(client, "PUT", vote_path, {"userId": user_id}) for _ in range(concurrency)],
            *[_timed(client, "POST", comment_path, comment) for _ in range(concurrency)],
        )
        for i, (code, elapsed) in enumerate(results):
            (vote_codes if i < concurrency else comment_codes)[code] += 1
            times.append(elapsed)

    after = (await client.get(f"{BASE_URL}/api/articulo/{article}")).json()["articulo"]["voto"]
    return vote_codes, comment_codes, after - before, times


async def run(article: str, users: int, concurrency: int):
    print("=" * 72)
    print(f"Vote/comment race check — {users} users x {concurrency} concurrent requests")
    print(f"Target: {BASE_URL}  article: {article}")
    print("=" * 72)

    async with httpx.AsyncClient(timeout=30) as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            print(f"Health: {resp.json()}")
        except httpx.HTTPError as e:
            print(f"ERROR: Cannot connect to {BASE_URL} — {e}")
            return

        votes, comments, delta, times = await hammer(client, article, users, concurrency)

    print(f"\nVotes:    {dict(votes)}")
    print(f"Comments: {dict(comments)}")
    print(f"Vote count delta: {delta} (expected {users})")
    if times:
        ordered = sorted(times)
        print(
            f"Latency avg {statistics.mean(times):.1f}ms "
            f"p50 {ordered[len(ordered) // 2]:.1f}ms "
            f"p95 {ordered[int(len(ordered) * 0.95)]:.1f}ms"
        )
    ok = votes[200] == users and comments[201] == users and delta == users
    print("\nRESULT:", "OK" if ok else "MISMATCH")


def main():
    global BASE_URL
    parser = argparse.ArgumentParser(description="Race-check the vote and comment endpoints")
    parser.add_argument("article", help="Name of an existing article")
    parser.add_argument("-u", "--users", type=int, default=20, help="Distinct users to simulate")
    parser.add_argument("-c", "--concurrency", type=int, default=10, help="Identical requests per user")
    parser.add_argument("--base-url", default=BASE_URL, help="API base URL")
    args = parser.parse_args()

    BASE_URL = args.base_url
    asyncio.run(run(args.article, args.users, args.concurrency))


if __name__ == "__main__":
    main()
