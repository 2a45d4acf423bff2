from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.errors import ForbiddenError, GoneError, NotFoundError
from db.models import Community, CommunityMember, MemberRole, Recipe
from db.repo import Store
from db.session import SessionFactory


class ServiceBase:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or SessionFactory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Store]:
        async with self._session_factory() as session:
            async with session.begin():
                yield Store.for_session(session)


async def load_community(store: Store, community_id: int) -> Community:
    community = await store.communities.get_community(community_id)
    if community is None:
        raise NotFoundError("COMMUNITY_002", "Community not found")
    if community.deleted_at is not None:
        raise GoneError("COMMUNITY_002", "Community has been dissolved")
    return community


async def require_member(store: Store, user_id: int, community_id: int) -> CommunityMember:
    membership = await store.communities.get_membership(user_id, community_id)
    if membership is None:
        raise ForbiddenError("COMMUNITY_001", "Not a member of this community")
    return membership


async def require_moderator(store: Store, user_id: int, community_id: int) -> CommunityMember:
    membership = await require_member(store, user_id, community_id)
    if membership.role != MemberRole.MODERATOR:
        raise ForbiddenError("COMMUNITY_002", "Permission insufficient")
    return membership


async def load_recipe(store: Store, recipe_id: int) -> Recipe:
    recipe = await store.recipes.get_recipe(recipe_id)
    if recipe is None:
        raise NotFoundError("RECIPE_001", "Recipe not found")
    return recipe


async def require_recipe_access(store: Store, recipe: Recipe, user_id: int) -> None:
    if recipe.community_id is None:
        if recipe.creator_id != user_id:
            raise ForbiddenError("RECIPE_002", "Cannot access this recipe")
        return
    await load_community(store, recipe.community_id)
    await require_member(store, user_id, recipe.community_id)
