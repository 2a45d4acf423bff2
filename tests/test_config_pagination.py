from __future__ import annotations

import unittest
from unittest.mock import patch

from core.config import Settings
from core.errors import AlreadyDecidedError, EngineError, GoneError, StaleProposalError
from core.pagination import Page, page_request


class SettingsTests(unittest.TestCase):
    def test_dsn_follows_backend(self) -> None:
        with patch.dict("os.environ", {"DB_BACKEND": "mysql", "DB_DSN": ""}, clear=False):
            settings = Settings(_env_file=None)
        self.assertTrue(settings.database_dsn.startswith("mysql+asyncmy://"))

    def test_explicit_dsn_wins(self) -> None:
        with patch.dict("os.environ", {"DB_DSN": "sqlite+aiosqlite:///:memory:"}, clear=False):
            settings = Settings(_env_file=None)
        self.assertEqual(settings.database_dsn, "sqlite+aiosqlite:///:memory:")

    def test_engine_limits_from_env(self) -> None:
        with patch.dict("os.environ", {"MAX_TAGS_PER_RECIPE": "5", "ANCESTOR_WALK_MAX_DEPTH": "8"}, clear=False):
            settings = Settings(_env_file=None)
        self.assertEqual(settings.max_tags_per_recipe, 5)
        self.assertEqual(settings.ancestor_walk_max_depth, 8)


class PaginationTests(unittest.TestCase):
    def test_page_request_is_clamped(self) -> None:
        self.assertEqual(page_request(0, -5).limit, 1)
        self.assertEqual(page_request(0, -5).offset, 0)
        self.assertEqual(page_request(10_000).limit, 100)
        self.assertEqual(page_request().limit, 20)

    def test_has_more(self) -> None:
        self.assertTrue(Page(items=[1, 2], total=5, limit=2, offset=0).has_more)
        self.assertFalse(Page(items=[5], total=5, limit=2, offset=4).has_more)


class ErrorTests(unittest.TestCase):
    def test_errors_carry_code_and_status(self) -> None:
        error = StaleProposalError("PROPOSAL_003", "Recipe has been modified since proposal was created")
        self.assertEqual(str(error), "PROPOSAL_003: Recipe has been modified since proposal was created")
        self.assertEqual(error.status_code, 409)
        self.assertEqual(AlreadyDecidedError("PROPOSAL_002", "Proposal already decided").status_code, 400)
        self.assertEqual(GoneError("COMMUNITY_002", "Community has been dissolved").status_code, 410)
        self.assertIsInstance(error, EngineError)


if __name__ == "__main__":
    unittest.main()
