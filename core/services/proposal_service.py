from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog

from core.errors import AlreadyDecidedError, BadRequestError, ForbiddenError, NotFoundError, StaleProposalError
from core.pagination import Page, page_request
from core.services.base import ServiceBase, load_community, load_recipe, require_member
from core.services.cascade_service import CascadeResult, cascade_accepted_changes
from core.services.copy_graph import apply_content
from core.services.variant_service import forge_variant, proposed_content, proposed_ingredients
from db.models import (
    ActivityType,
    ProposalStatus,
    Recipe,
    RecipeUpdateProposal,
    VariantReason,
    utcnow,
)
from db.repo import IngredientRow, Store
from schemas import ProposalDraft

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class ProposalDecision:
    proposal: RecipeUpdateProposal
    recipe: Recipe
    cascade: CascadeResult


@dataclass(slots=True)
class ProposalRejection:
    proposal: RecipeUpdateProposal
    variant: Recipe


async def _load_proposal(store: Store, proposal_id: int) -> RecipeUpdateProposal:
    proposal = await store.proposals.get_proposal(proposal_id)
    if proposal is None:
        raise NotFoundError("PROPOSAL_004", "Proposal not found")
    return proposal


async def _load_for_decision(
    store: Store,
    proposal_id: int,
    actor_id: int,
    verb: str,
) -> tuple[RecipeUpdateProposal, Recipe]:
    proposal = await _load_proposal(store, proposal_id)
    recipe = await load_recipe(store, proposal.recipe_id)
    if recipe.creator_id != actor_id:
        raise ForbiddenError("RECIPE_002", f"Only the recipe creator can {verb} proposals")
    if proposal.status != ProposalStatus.PENDING:
        raise AlreadyDecidedError("PROPOSAL_002", "Proposal already decided")
    return proposal, recipe


async def _claim(store: Store, proposal: RecipeUpdateProposal, status: ProposalStatus, now: datetime) -> None:
    if not await store.proposals.decide(proposal.id, status, now):
        raise AlreadyDecidedError("PROPOSAL_002", "Proposal already decided")


async def reject_pending_proposal(
    store: Store,
    proposal: RecipeUpdateProposal,
    target: Recipe,
    *,
    reason: VariantReason,
    actor_id: int | None,
) -> Recipe:
    await _claim(store, proposal, ProposalStatus.REJECTED, utcnow())
    return await forge_variant(store, target, proposal, reason=reason, actor_id=actor_id)


class ProposalService(ServiceBase):
    async def create_proposal(self, actor_id: int, recipe_id: int, draft: ProposalDraft) -> RecipeUpdateProposal:
        async with self.transaction() as store:
            recipe = await load_recipe(store, recipe_id)
            if recipe.community_id is None:
                raise BadRequestError("PROPOSAL_001", "Cannot propose on personal recipe")
            await load_community(store, recipe.community_id)
            await require_member(store, actor_id, recipe.community_id)
            if recipe.creator_id == actor_id:
                raise BadRequestError("PROPOSAL_001", "Cannot propose on your own recipe")

            ingredients = None
            if draft.ingredients is not None:
                ingredients = [
                    IngredientRow(name=line.name, quantity=line.quantity, unit=line.unit).as_payload()
                    for line in draft.ingredients
                ]
            proposal = await store.proposals.add_proposal(
                RecipeUpdateProposal(
                    recipe_id=recipe.id,
                    proposer_id=actor_id,
                    proposed_title=draft.title,
                    proposed_steps=list(draft.steps),
                    proposed_servings=draft.servings,
                    proposed_prep_time=draft.prep_time,
                    proposed_cook_time=draft.cook_time,
                    proposed_rest_time=draft.rest_time,
                    proposed_ingredients=ingredients,
                    status=ProposalStatus.PENDING,
                )
            )
            await store.activity.record(
                ActivityType.VARIANT_PROPOSED,
                user_id=actor_id,
                community_id=recipe.community_id,
                recipe_id=recipe.id,
                payload={"proposalId": proposal.id, "recipeTitle": recipe.title},
            )
            logger.info("proposal_created", proposal_id=proposal.id, recipe_id=recipe.id, proposer_id=actor_id)
            return proposal

    async def accept_proposal(self, actor_id: int, proposal_id: int) -> ProposalDecision:
        async with self.transaction() as store:
            proposal, recipe = await _load_for_decision(store, proposal_id, actor_id, "accept")
            if recipe.updated_at > proposal.created_at:
                raise StaleProposalError("PROPOSAL_003", "Recipe has been modified since proposal was created")

            now = utcnow()
            await _claim(store, proposal, ProposalStatus.ACCEPTED, now)
            content = proposed_content(proposal, recipe)
            ingredients = proposed_ingredients(proposal)

            apply_content(recipe, content, now)
            if ingredients is not None:
                await store.recipes.replace_ingredients(recipe.id, ingredients)
            cascade = await cascade_accepted_changes(
                store,
                recipe,
                content,
                ingredients,
                actor_id=actor_id,
                proposal_id=proposal.id,
                now=now,
            )

            await store.activity.record(
                ActivityType.PROPOSAL_ACCEPTED,
                user_id=actor_id,
                community_id=recipe.community_id,
                recipe_id=recipe.id,
                payload={"proposalId": proposal.id, "proposerId": proposal.proposer_id},
            )
            logger.info(
                "proposal_accepted",
                proposal_id=proposal.id,
                recipe_id=recipe.id,
                cascaded=len(cascade.updated_recipe_ids),
            )
            return ProposalDecision(proposal=proposal, recipe=recipe, cascade=cascade)

    async def reject_proposal(self, actor_id: int, proposal_id: int) -> ProposalRejection:
        async with self.transaction() as store:
            proposal, recipe = await _load_for_decision(store, proposal_id, actor_id, "reject")
            variant = await reject_pending_proposal(
                store,
                proposal,
                recipe,
                reason=VariantReason.PROPOSAL_REJECTED,
                actor_id=actor_id,
            )
            logger.info("proposal_rejected", proposal_id=proposal.id, recipe_id=recipe.id, variant_id=variant.id)
            return ProposalRejection(proposal=proposal, variant=variant)

    async def list_proposals(
        self,
        actor_id: int,
        recipe_id: int,
        *,
        status: ProposalStatus | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Page[RecipeUpdateProposal]:
        request = page_request(limit, offset)
        async with self.transaction() as store:
            recipe = await load_recipe(store, recipe_id)
            if recipe.community_id is None:
                raise BadRequestError("PROPOSAL_001", "Cannot list proposals on personal recipe")
            await load_community(store, recipe.community_id)
            await require_member(store, actor_id, recipe.community_id)
            items, total = await store.proposals.list_for_recipe(recipe.id, status, request.limit, request.offset)
            return Page(items=items, total=total, limit=request.limit, offset=request.offset)

    async def get_proposal(self, actor_id: int, proposal_id: int) -> RecipeUpdateProposal:
        async with self.transaction() as store:
            proposal = await _load_proposal(store, proposal_id)
            recipe = await store.recipes.get_recipe(proposal.recipe_id, include_deleted=True)
            if recipe is None or recipe.community_id is None:
                raise NotFoundError("PROPOSAL_004", "Proposal not found")
            await require_member(store, actor_id, recipe.community_id)
            return proposal
