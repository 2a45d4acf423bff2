from __future__ import annotations

from typing import Any

import structlog

from core.pagination import Page, page_request
from core.services.base import ServiceBase, load_recipe, require_recipe_access
from db.models import ActivityType, Recipe, RecipeUpdateProposal, VariantReason
from db.repo import IngredientRow, Store

logger = structlog.get_logger(__name__)


def proposed_content(proposal: RecipeUpdateProposal, target: Recipe) -> dict[str, Any]:
    def _or_current(proposed: int | None, current: int | None) -> int | None:
        return current if proposed is None else proposed

    return {
        "title": proposal.proposed_title,
        "steps": list(proposal.proposed_steps or []),
        "servings": _or_current(proposal.proposed_servings, target.servings),
        "prep_time": _or_current(proposal.proposed_prep_time, target.prep_time),
        "cook_time": _or_current(proposal.proposed_cook_time, target.cook_time),
        "rest_time": _or_current(proposal.proposed_rest_time, target.rest_time),
    }


def proposed_ingredients(proposal: RecipeUpdateProposal) -> list[IngredientRow] | None:
    if proposal.proposed_ingredients is None:
        return None
    return [IngredientRow.from_payload(item) for item in proposal.proposed_ingredients]


async def forge_variant(
    store: Store,
    target: Recipe,
    proposal: RecipeUpdateProposal,
    *,
    reason: VariantReason,
    actor_id: int | None,
) -> Recipe:
    variant = await store.recipes.add_recipe(
        Recipe(
            creator_id=proposal.proposer_id,
            community_id=target.community_id,
            origin_recipe_id=target.id,
            is_variant=True,
            **proposed_content(proposal, target),
        )
    )
    ingredients = proposed_ingredients(proposal)
    if ingredients is not None:
        await store.recipes.replace_ingredients(variant.id, ingredients)

    await store.activity.record(
        ActivityType.VARIANT_CREATED,
        user_id=actor_id,
        community_id=target.community_id,
        recipe_id=variant.id,
        payload={
            "reason": reason,
            "proposalId": proposal.id,
            "originRecipeId": target.id,
            "proposerId": proposal.proposer_id,
        },
    )
    logger.info(
        "variant_forged",
        variant_id=variant.id,
        recipe_id=target.id,
        proposal_id=proposal.id,
        reason=reason,
    )
    return variant


class VariantService(ServiceBase):
    async def list_variants(
        self,
        actor_id: int,
        recipe_id: int,
        *,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Page[Recipe]:
        request = page_request(limit, offset)
        async with self.transaction() as store:
            recipe = await load_recipe(store, recipe_id)
            await require_recipe_access(store, recipe, actor_id)
            variants = await store.recipes.list_variants(recipe.id, recipe.community_id)

        variants.sort(key=lambda item: (item.last_activity_at, item.id), reverse=True)
        return Page(
            items=variants[request.offset : request.offset + request.limit],
            total=len(variants),
            limit=request.limit,
            offset=request.offset,
        )
