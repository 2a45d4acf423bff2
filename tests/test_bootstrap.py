from __future__ import annotations

import logging
import unittest

import structlog
from sqlalchemy import inspect
from sqlalchemy.pool import StaticPool

from core.config import Settings
from core.logging import configure_logging
from db.session import build_engine
from scripts.bootstrap import bootstrap


def _table_names(connection) -> list[str]:
    return inspect(connection).get_table_names()


class BootstrapTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    async def asyncTearDown(self) -> None:
        await self.engine.dispose()

    async def test_schema_is_left_alone_by_default(self) -> None:
        created = await bootstrap(Settings(_env_file=None, DB_AUTO_CREATE=False), self.engine)

        self.assertFalse(created)
        async with self.engine.connect() as connection:
            self.assertEqual(await connection.run_sync(_table_names), [])

    async def test_auto_create_builds_tables(self) -> None:
        created = await bootstrap(Settings(_env_file=None, DB_AUTO_CREATE=True), self.engine)

        self.assertTrue(created)
        async with self.engine.connect() as connection:
            tables = await connection.run_sync(_table_names)
        self.assertIn("recipes", tables)
        self.assertIn("recipe_update_proposals", tables)


class LoggingTests(unittest.TestCase):
    def tearDown(self) -> None:
        structlog.reset_defaults()

    def test_configure_logging_sets_levels(self) -> None:
        configure_logging("debug", json_logs=False)

        self.assertEqual(logging.getLogger("sqlalchemy.engine").level, logging.WARNING)
        self.assertTrue(structlog.is_configured())


if __name__ == "__main__":
    unittest.main()
