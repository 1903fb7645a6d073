"""
Operator bootstrap:

    python -m board.seed --admin NAME --password PW [--sample]

Creates the schema and default settings, then an admin account (or
promotes an existing one). ``--sample`` adds a category, a subforum and a
welcome thread through the service layer so every counter starts out
consistent.
"""
import argparse
import asyncio
import logging

from sqlalchemy import func, select

from board.database import AsyncSessionLocal, atomic, engine, init_models
from board.models.user_model import User
from board.services import forum_service, structure_service
from board.utils.token_utils import hash_password

logger = logging.getLogger("board.seed")


async def ensure_admin(session, username: str, password: str) -> User:
    user = (
        await session.execute(select(User).where(func.lower(User.username) == username.lower()))
    ).scalars().first()
    async with atomic(session):
        if user is None:
            user = User(username=username, password_hash=hash_password(password), role="admin")
            session.add(user)
            logger.info("created admin %s", username)
        else:
            user.role = "admin"
            user.password_hash = hash_password(password)
            logger.info("promoted existing user %s to admin", username)
    return user


async def seed_sample(session, admin: User) -> None:
    category = await structure_service.create_category(session, admin, "General", "General discussion")
    subforum = await structure_service.create_subforum(
        session,
        admin,
        category.id,
        "Introductions",
        "Say hello to the community",
    )
    await forum_service.create_thread(
        session,
        admin,
        subforum.id,
        "Welcome to the forum",
        "Read the rules, be kind, and **have fun**.",
    )
    logger.info("sample category, subforum and thread created")


async def run(username: str, password: str, sample: bool) -> None:
    await init_models()
    async with AsyncSessionLocal() as session:
        admin = await ensure_admin(session, username, password)
        if sample:
            await seed_sample(session, admin)
    await engine.dispose()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Bootstrap the board database.")
    parser.add_argument("--admin", required=True, help="admin username")
    parser.add_argument("--password", required=True, help="admin password")
    parser.add_argument("--sample", action="store_true", help="also create sample content")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(run(args.admin, args.password, args.sample))


if __name__ == "__main__":
    main()
