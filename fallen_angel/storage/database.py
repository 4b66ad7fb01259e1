from pathlib import Path

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fallen_angel.config import settings
from fallen_angel.storage.models import Base


def make_session_factory(
    database_url: str,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    db_engine = create_async_engine(database_url, echo=False)
    return db_engine, async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


engine, async_session = make_session_factory(settings.database_url)


def _ensure_sqlite_dir(db_engine: AsyncEngine) -> None:
    url = db_engine.url
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def init_db(db_engine: AsyncEngine | None = None) -> None:
    """Create any missing tables; an absent database starts out empty."""
    db_engine = db_engine or engine
    _ensure_sqlite_dir(db_engine)
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
