import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from board.config import DATABASE_URL, SQL_ECHO

logger = logging.getLogger(__name__)


def _async_url(url: str) -> str:
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def enable_sqlite_foreign_keys(async_engine: AsyncEngine) -> None:
    """SQLite ignores FOREIGN KEY clauses unless asked per connection."""
    if async_engine.dialect.name != "sqlite":
        return

    @event.listens_for(async_engine.sync_engine, "connect")
    def _fk_pragma(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    _async_url(DATABASE_URL),
    echo=SQL_ECHO,
    future=True,
)
enable_sqlite_foreign_keys(engine)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()


# Dependency for FastAPI routes
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def atomic(session: AsyncSession):
    """
    One atomic unit: everything flushed inside the block is committed
    together, or rolled back together if anything raises.
    """
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise


async def seed_default_settings(session: AsyncSession) -> None:
    from board.models.settings_model import ForumSetting
    from board.services.settings_service import DEFAULT_SETTINGS

    count = (await session.execute(select(func.count()).select_from(ForumSetting))).scalar_one()
    if count:
        return
    async with atomic(session):
        for key, value in DEFAULT_SETTINGS.items():
            session.add(ForumSetting(key=key, value=value))
    logger.info("Seeded %d default forum settings", len(DEFAULT_SETTINGS))


async def init_models(target: AsyncEngine = engine) -> None:
    # Import every model module so the metadata is complete.
    from board.models import forum_model, moderation_model, settings_model, user_model  # noqa: F401

    # Tiny retry so a momentary DB disconnect doesn't crash the app.
    for attempt in range(2):
        try:
            async with target.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            break
        except Exception:
            if attempt == 0:
                logger.warning("DB init failed, retrying once", exc_info=True)
                await asyncio.sleep(0.5)
            else:
                # Tables should already exist from previous runs.
                logger.error("Skipping DB init after second failure", exc_info=True)
                return

    factory = async_sessionmaker(target, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await seed_default_settings(session)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
