from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

import structlog

from core.config import settings
from db.models import Recipe
from db.repo import IngredientRow, Store
from schemas import IngredientLine

logger = structlog.get_logger(__name__)

CONTENT_FIELDS = ("title", "steps", "servings", "prep_time", "cook_time", "rest_time")


def content_of(recipe: Recipe) -> dict[str, Any]:
    return {name: getattr(recipe, name) for name in CONTENT_FIELDS}


def apply_content(recipe: Recipe, content: Mapping[str, Any], now: datetime) -> None:
    for name in CONTENT_FIELDS:
        if name in content:
            value = content[name]
            setattr(recipe, name, list(value) if name == "steps" else value)
    recipe.updated_at = now


def ingredient_rows(lines: Sequence[IngredientLine]) -> list[IngredientRow]:
    return [IngredientRow(name=line.name, quantity=line.quantity, unit=line.unit) for line in lines]


async def copy_recipe(
    store: Store,
    source: Recipe,
    *,
    creator_id: int,
    community_id: int | None,
    origin_recipe_id: int | None,
    shared_from_community_id: int | None = None,
) -> Recipe:
    copy = await store.recipes.add_recipe(
        Recipe(
            creator_id=creator_id,
            community_id=community_id,
            origin_recipe_id=origin_recipe_id,
            shared_from_community_id=shared_from_community_id,
            is_variant=False,
            **content_of(source),
        )
    )
    await store.recipes.copy_ingredients(source.id, copy.id)
    return copy


async def origin_chain(store: Store, recipe_id: int) -> list[int]:
    """Return ``recipe_id`` followed by its ancestors, nearest first."""
    chain = [recipe_id]
    visited = {recipe_id}
    current = recipe_id
    while len(chain) < settings.ancestor_walk_max_depth:
        parent_id = await store.recipes.get_origin_id(current)
        if parent_id is None:
            break
        if parent_id in visited:
            logger.warning("ancestor_walk_cycle", recipe_id=recipe_id, revisited_id=parent_id)
            break
        chain.append(parent_id)
        visited.add(parent_id)
        current = parent_id
    return chain


async def family_ids(store: Store, recipe_id: int) -> set[int]:
    root_id = (await origin_chain(store, recipe_id))[-1]
    family = {root_id}
    frontier = [root_id]
    depth = 0
    while frontier and depth < settings.ancestor_walk_max_depth:
        children = [child_id for child_id, _ in await store.recipes.list_child_ids(frontier) if child_id not in family]
        family.update(children)
        frontier = children
        depth += 1
    return family
