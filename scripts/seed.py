"""Seed the store with articles (articles are never created by the API)."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from votes_api.config import settings
from votes_api.database import Base, Store
from votes_api.models import Article, ArticleVote, Comment

TOPICS = ["python", "fastapi", "postgresql", "docker", "kubernetes",
          "react", "typescript", "testing", "performance", "security"]


async def seed(count: int, with_activity: bool = False, reset: bool = False):
    store = Store.from_settings(settings)
    print(f"Seeding {count} articles into {store.masked_url}")
    start = time.perf_counter()

    async with store.engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    total_votes = 0
    total_comments = 0
    async with store.session_factory() as session:
        for i in range(count):
            topic = random.choice(TOPICS)
            created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
            article = Article(
                name=f"articulo-{i:04d}-{topic}",
                title=f"Article {i}: notes on {topic}",
                image=f"https://picsum.photos/seed/{i}/600/400",
                content=f"This is the full content of article {i}. " * 20,
                vote_count=0,
                created_at=created,
                last_updated_at=created,
            )
            session.add(article)
            await session.flush()

            if not with_activity:
                continue

            # Votes and comments keep vote_count consistent with article_votes.
            voters = random.sample(range(500), k=random.randint(0, 20))
            for user in voters:
                session.add(ArticleVote(article_id=article.id, user_id=f"user-{user}", voted_at=created))
            article.vote_count = len(voters)
            total_votes += len(voters)

            for user in random.sample(voters, k=min(len(voters), random.randint(0, 5))):
                submitted = created + timedelta(minutes=random.randint(1, 600))
                session.add(Comment(
                    article_id=article.id,
                    user_id=f"user-{user}",
                    id=int(submitted.timestamp() * 1000),
                    author=f"User {user}",
                    text=f"Great article about {topic}!",
                    submitted_at=submitted,
                ))
                article.last_updated_at = max(article.last_updated_at, submitted)
                total_comments += 1
            await session.flush()

        await session.commit()
    await store.close()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Articles: {count}")
    print(f"  Votes: {total_votes}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the article store")
    parser.add_argument("-n", "--count", type=int, default=10, help="Number of articles")
    parser.add_argument("--with-activity", action="store_true", help="Also create votes and comments")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    args = parser.parse_args()
    asyncio.run(seed(args.count, with_activity=args.with_activity, reset=args.reset))


if __name__ == "__main__":
    main()
