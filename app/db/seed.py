"""
Seed script: creates the tables and upserts demo users and posts.

Safe to run repeatedly; existing rows (matched by email / id) are left as they are.

    python -m app.db.seed
"""
import asyncio
import logging
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import Post, User
from app.db.session import AsyncSessionLocal, Base, engine

logger = logging.getLogger(__name__)

# (email, name)
USERS: List[Tuple[str, str]] = [
    ("john@example.com", "John Doe"),
    ("jane@example.com", "Jane Smith"),
    ("bob@test.com", "Bob Johnson"),
]

# (id, title, content, published, author email)
POSTS: List[Tuple[str, str, str, bool, str]] = [
    ("post1", "Getting Started with Next.js", "Next.js is a powerful React framework...", True, "john@example.com"),
    ("post2", "Understanding TanStack Query", "TanStack Query is a powerful data fetching library...", True, "jane@example.com"),
    ("post3", "Draft Post About Prisma", "This is a draft post about Prisma...", False, "john@example.com"),
    ("post4", "Advanced TypeScript Tips", "Here are some advanced TypeScript techniques...", True, "bob@test.com"),
]


async def seed(db: AsyncSession) -> None:
    users_created = 0
    posts_created = 0
    by_email = {}

    for email, name in USERS:
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(email=email, name=name)
            db.add(user)
            users_created += 1
        by_email[email] = user
    await db.flush()

    for post_id, title, content, published, author_email in POSTS:
        existing = await db.get(Post, post_id)
        if existing is not None:
            continue
        db.add(
            Post(
                id=post_id,
                title=title,
                content=content,
                published=published,
                author_id=by_email[author_email].id,
            )
        )
        posts_created += 1

    await db.commit()
    logger.info("Seeded %d users and %d posts", users_created, posts_created)


async def main() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as db:
        await seed(db)
    await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
