from __future__ import annotations

import unittest
from typing import Any

from sqlalchemy.pool import StaticPool

from core.services import (
    ActivityService,
    MembershipService,
    ProposalService,
    RecipeService,
    ShareService,
    TagService,
    TagSuggestionService,
    VariantService,
)
from db.models import MemberRole
from db.repo import IngredientRow, Store
from db.session import build_engine, build_session_factory, init_models
from schemas import CommunityDraft, ProposalDraft, RecipeDraft


class EngineTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
        await init_models(self.engine)
        self.session_factory = build_session_factory(self.engine)

        self.recipes = RecipeService(self.session_factory)
        self.proposals = ProposalService(self.session_factory)
        self.variants = VariantService(self.session_factory)
        self.members = MembershipService(self.session_factory)
        self.tags = TagService(self.session_factory)
        self.suggestions = TagSuggestionService(self.session_factory)
        self.shares = ShareService(self.session_factory)
        self.activity = ActivityService(self.session_factory)

    async def asyncTearDown(self) -> None:
        await self.engine.dispose()

    async def _user(self, username: str) -> int:
        async with self.session_factory() as session, session.begin():
            user = await Store.for_session(session).users.ensure_user(username)
            return user.id

    async def _community(self, owner_id: int, name: str = "Sunday Bakers") -> int:
        community = await self.members.create_community(owner_id, CommunityDraft(name=name))
        return community.id

    async def _join(self, community_id: int, user_id: int, role: MemberRole = MemberRole.MEMBER) -> None:
        async with self.session_factory() as session, session.begin():
            await Store.for_session(session).communities.add_membership(user_id, community_id, role)

    async def _community_recipe(self, owner_id: int, community_id: int, **fields: Any):
        payload = {"title": "Sourdough", "steps": ["Original"], "servings": 4}
        payload.update(fields)
        return await self.recipes.create_community_recipe(owner_id, community_id, RecipeDraft(**payload))

    async def _propose(self, proposer_id: int, recipe_id: int, **fields: Any):
        payload = {"title": "Sourdough", "steps": ["Better"]}
        payload.update(fields)
        return await self.proposals.create_proposal(proposer_id, recipe_id, ProposalDraft(**payload))

    async def _reload(self, model: type, ident: int):
        async with self.session_factory() as session:
            return await session.get(model, ident)

    async def _ingredients(self, recipe_id: int) -> list[IngredientRow]:
        async with self.session_factory() as session:
            return await Store.for_session(session).recipes.list_ingredient_rows(recipe_id)

    async def _tag_names(self, recipe_id: int) -> list[str]:
        async with self.session_factory() as session:
            return [tag.name for tag in await Store.for_session(session).recipes.list_tags(recipe_id)]

    async def _activity(self, **filters: Any):
        async with self.session_factory() as session:
            return await Store.for_session(session).activity.list_entries(**filters)
