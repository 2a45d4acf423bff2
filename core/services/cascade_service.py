from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from core.services.copy_graph import apply_content
from db.models import ActivityType, Recipe
from db.repo import IngredientRow, Store

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class CascadeResult:
    personal_recipe_id: int | None = None
    updated_recipe_ids: list[int] = field(default_factory=list)


async def cascade_accepted_changes(
    store: Store,
    target: Recipe,
    content: Mapping[str, Any],
    ingredients: Sequence[IngredientRow] | None,
    *,
    actor_id: int,
    proposal_id: int,
    now: datetime,
) -> CascadeResult:
    """Replicate merged content to the personal origin of ``target`` and its other community copies.

    Variants and forks never take part. Runs inside the caller's transaction,
    so any failure leaves every copy untouched.
    """
    if target.origin_recipe_id is None:
        return CascadeResult()

    origin = await store.recipes.get_recipe(target.origin_recipe_id)
    if origin is None or not origin.is_personal:
        return CascadeResult()

    siblings = await store.recipes.list_linked_copies(origin.id, exclude_id=target.id)
    result = CascadeResult(personal_recipe_id=origin.id)
    for copy in (origin, *siblings):
        apply_content(copy, content, now)
        if ingredients is not None:
            await store.recipes.replace_ingredients(copy.id, ingredients)
        result.updated_recipe_ids.append(copy.id)

        if copy.community_id is not None:
            await store.activity.record(
                ActivityType.RECIPE_UPDATED,
                user_id=actor_id,
                community_id=copy.community_id,
                recipe_id=copy.id,
                payload={"proposalId": proposal_id, "sourceRecipeId": target.id},
            )
    await store.session.flush()

    logger.info(
        "cascade_applied",
        recipe_id=target.id,
        proposal_id=proposal_id,
        personal_recipe_id=origin.id,
        updated_recipe_ids=result.updated_recipe_ids,
    )
    return result
