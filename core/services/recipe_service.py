from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from core.errors import ConflictError, ForbiddenError
from core.pagination import Page, PageRequest, page_request
from core.services.base import (
    ServiceBase,
    load_community,
    load_recipe,
    require_member,
    require_recipe_access,
)
from core.services.copy_graph import apply_content, copy_recipe, family_ids, ingredient_rows
from core.services.tag_resolution import attach_tag_names, ensure_tag_limit
from db.models import ActivityType, Community, Recipe, Tag, utcnow
from db.repo import IngredientRow, Store
from schemas import RecipeChanges, RecipeDraft

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class RecipeDetails:
    recipe: Recipe
    ingredients: list[IngredientRow] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)


@dataclass(slots=True)
class RecipeSummary:
    recipe: Recipe
    tags: list[Tag] = field(default_factory=list)


@dataclass(slots=True)
class AuthoredRecipe:
    personal: RecipeDetails
    community: RecipeDetails | None = None


async def _details(store: Store, recipe: Recipe) -> RecipeDetails:
    return RecipeDetails(
        recipe=recipe,
        ingredients=await store.recipes.list_ingredient_rows(recipe.id),
        tags=await store.recipes.list_tags(recipe.id),
    )


async def _add_from_draft(store: Store, actor_id: int, draft: RecipeDraft, **links) -> Recipe:
    recipe = await store.recipes.add_recipe(
        Recipe(
            title=draft.title,
            steps=list(draft.steps),
            servings=draft.servings,
            prep_time=draft.prep_time,
            cook_time=draft.cook_time,
            rest_time=draft.rest_time,
            creator_id=actor_id,
            **links,
        )
    )
    await store.recipes.replace_ingredients(recipe.id, ingredient_rows(draft.ingredients))
    return recipe


def _filter_names(value: str | Sequence[str] | None) -> list[str]:
    if not value:
        return []
    items = value.split(",") if isinstance(value, str) else value
    return list(dict.fromkeys(" ".join(item.split()).lower() for item in items if item.strip()))


async def _search(store: Store, request: PageRequest, **filters) -> Page[RecipeSummary]:
    recipes, total = await store.recipes.search(limit=request.limit, offset=request.offset, **filters)
    items = [RecipeSummary(recipe=recipe, tags=await store.recipes.list_tags(recipe.id)) for recipe in recipes]
    return Page(items=items, total=total, limit=request.limit, offset=request.offset)


def _require_owner(recipe: Recipe, actor_id: int) -> None:
    if recipe.creator_id != actor_id:
        raise ForbiddenError("RECIPE_002", "Cannot access this recipe")


class RecipeService(ServiceBase):
    async def create_personal_recipe(self, actor_id: int, draft: RecipeDraft) -> RecipeDetails:
        ensure_tag_limit(len(draft.tags))
        async with self.transaction() as store:
            recipe = await _add_from_draft(store, actor_id, draft)
            await attach_tag_names(store, recipe, draft.tags, actor_id)
            logger.info("recipe_created", recipe_id=recipe.id, user_id=actor_id)
            return await _details(store, recipe)

    async def create_community_recipe(self, actor_id: int, community_id: int, draft: RecipeDraft) -> AuthoredRecipe:
        ensure_tag_limit(len(draft.tags))
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_member(store, actor_id, community_id)

            personal = await _add_from_draft(store, actor_id, draft)
            shared = await _add_from_draft(
                store,
                actor_id,
                draft,
                community_id=community_id,
                origin_recipe_id=personal.id,
            )
            await attach_tag_names(store, shared, draft.tags, actor_id)
            await attach_tag_names(store, personal, draft.tags, actor_id)

            await store.activity.record(
                ActivityType.RECIPE_CREATED,
                user_id=actor_id,
                community_id=community_id,
                recipe_id=shared.id,
                payload={"recipeTitle": shared.title},
            )
            logger.info(
                "recipe_created",
                recipe_id=shared.id,
                personal_recipe_id=personal.id,
                community_id=community_id,
                user_id=actor_id,
            )
            return AuthoredRecipe(personal=await _details(store, personal), community=await _details(store, shared))

    async def publish_recipe(self, actor_id: int, recipe_id: int, community_ids: Sequence[int]) -> list[RecipeDetails]:
        async with self.transaction() as store:
            personal = await load_recipe(store, recipe_id)
            _require_owner(personal, actor_id)
            if not personal.is_personal:
                raise ForbiddenError("RECIPE_002", "Only personal recipes can be published")
            tag_names = [tag.name for tag in await store.recipes.list_tags(personal.id)]

            published: list[RecipeDetails] = []
            for community_id in dict.fromkeys(community_ids):
                await load_community(store, community_id)
                await require_member(store, actor_id, community_id)
                linked = await store.recipes.list_linked_copies(personal.id, exclude_id=personal.id)
                if any(copy.community_id == community_id for copy in linked):
                    raise ConflictError("SHARE_006", "Recipe already shared with this community")

                copy = await copy_recipe(
                    store,
                    personal,
                    creator_id=actor_id,
                    community_id=community_id,
                    origin_recipe_id=personal.id,
                )
                await attach_tag_names(store, copy, tag_names, actor_id)
                await store.activity.record(
                    ActivityType.RECIPE_CREATED,
                    user_id=actor_id,
                    community_id=community_id,
                    recipe_id=copy.id,
                    payload={"recipeTitle": copy.title, "originRecipeId": personal.id},
                )
                published.append(await _details(store, copy))

            logger.info(
                "recipe_published",
                recipe_id=personal.id,
                community_ids=[item.recipe.community_id for item in published],
            )
            return published

    async def update_recipe(self, actor_id: int, recipe_id: int, changes: RecipeChanges) -> RecipeDetails:
        async with self.transaction() as store:
            recipe = await load_recipe(store, recipe_id)
            _require_owner(recipe, actor_id)

            content = {
                name: value
                for name, value in changes.model_dump(exclude_unset=True, exclude={"ingredients"}).items()
                if value is not None or name not in ("title", "steps")
            }
            apply_content(recipe, content, utcnow())
            if changes.ingredients is not None:
                await store.recipes.replace_ingredients(recipe.id, ingredient_rows(changes.ingredients))
            await store.session.flush()

            if recipe.community_id is not None:
                await store.activity.record(
                    ActivityType.RECIPE_UPDATED,
                    user_id=actor_id,
                    community_id=recipe.community_id,
                    recipe_id=recipe.id,
                    payload={"fields": sorted(changes.model_fields_set)},
                )
            logger.info("recipe_updated", recipe_id=recipe.id, fields=sorted(changes.model_fields_set))
            return await _details(store, recipe)

    async def delete_recipe(self, actor_id: int, recipe_id: int) -> None:
        async with self.transaction() as store:
            recipe = await load_recipe(store, recipe_id)
            _require_owner(recipe, actor_id)
            recipe.deleted_at = utcnow()
            await store.session.flush()
            if recipe.community_id is not None:
                await store.activity.record(
                    ActivityType.RECIPE_DELETED,
                    user_id=actor_id,
                    community_id=recipe.community_id,
                    recipe_id=recipe.id,
                )
            logger.info("recipe_deleted", recipe_id=recipe.id, user_id=actor_id)

    async def get_recipe(self, actor_id: int, recipe_id: int) -> RecipeDetails:
        async with self.transaction() as store:
            recipe = await load_recipe(store, recipe_id)
            await require_recipe_access(store, recipe, actor_id)
            return await _details(store, recipe)

    async def recipe_family_communities(self, recipe_id: int) -> list[Community]:
        async with self.transaction() as store:
            await load_recipe(store, recipe_id)
            return await store.recipes.list_communities_of(await family_ids(store, recipe_id))

    async def list_community_recipes(
        self,
        actor_id: int,
        community_id: int,
        *,
        search: str = "",
        tags: str | Sequence[str] | None = None,
        ingredients: str | Sequence[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Page[RecipeSummary]:
        """Live recipes of a community, most recently updated first.

        ``search`` matches the title case-insensitively; every tag and ingredient
        listed must be present.
        """
        request = page_request(limit, offset)
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_member(store, actor_id, community_id)
            return await _search(
                store,
                request,
                community_id=community_id,
                title=search.strip(),
                tag_names=_filter_names(tags),
                ingredient_names=_filter_names(ingredients),
            )

    async def list_personal_recipes(
        self,
        actor_id: int,
        *,
        search: str = "",
        tags: str | Sequence[str] | None = None,
        ingredients: str | Sequence[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Page[RecipeSummary]:
        request = page_request(limit, offset)
        async with self.transaction() as store:
            return await _search(
                store,
                request,
                community_id=None,
                creator_id=actor_id,
                title=search.strip(),
                tag_names=_filter_names(tags),
                ingredient_names=_filter_names(ingredients),
            )
