from __future__ import annotations

import asyncio

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from core.config import Settings, settings
from core.logging import configure_logging
from db.session import engine, init_models

logger = structlog.get_logger(__name__)


async def bootstrap(config: Settings = settings, bind: AsyncEngine | None = None) -> bool:
    """Check the database answers and create the schema when DB_AUTO_CREATE is set.

    Returns True when tables were created.
    """
    bind = bind or engine
    async with bind.connect() as connection:
        await connection.execute(text("SELECT 1"))
    logger.info("database_reachable", dialect=bind.dialect.name)

    if not config.db_auto_create:
        return False
    await init_models(bind)
    logger.info("schema_created")
    return True


async def main() -> None:
    configure_logging(settings.log_level, json_logs=settings.json_logs)
    await bootstrap()


if __name__ == "__main__":
    asyncio.run(main())
