from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings
from db.models import Base


def build_engine(dsn: str, **kwargs) -> AsyncEngine:
    engine = create_async_engine(dsn, echo=False, **kwargs)
    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_dsn)
SessionFactory = build_session_factory(engine)


async def init_models(bind: AsyncEngine | None = None) -> None:
    async with (bind or engine).begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
