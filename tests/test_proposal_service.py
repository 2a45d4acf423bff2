from __future__ import annotations

import unittest
from datetime import datetime, timedelta
from unittest.mock import patch

from core.errors import AlreadyDecidedError, BadRequestError, ForbiddenError, StaleProposalError
from core.services import proposal_service
from db.models import ActivityType, ProposalStatus, Recipe, RecipeUpdateProposal, VariantReason
from db.repo import RecipeRepository, Store
from schemas import RecipeChanges
from tests.support import EngineTestCase


class ProposalServiceTests(EngineTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.owner_id = await self._user("olga")
        self.member_id = await self._user("mika")
        self.community_id = await self._community(self.owner_id)
        await self._join(self.community_id, self.member_id)
        self.authored = await self._community_recipe(
            self.owner_id,
            self.community_id,
            ingredients=[{"name": "Flour", "quantity": 500, "unit": "g"}],
        )
        self.recipe_id = self.authored.community.recipe.id
        self.personal_id = self.authored.personal.recipe.id

    async def test_accept_merges_into_target_and_personal_copy(self) -> None:
        proposal = await self._propose(self.member_id, self.recipe_id)

        decision = await self.proposals.accept_proposal(self.owner_id, proposal.id)

        self.assertEqual(decision.cascade.personal_recipe_id, self.personal_id)
        recipe = await self._reload(Recipe, self.recipe_id)
        personal = await self._reload(Recipe, self.personal_id)
        self.assertEqual(recipe.steps, ["Better"])
        self.assertEqual(personal.steps, ["Better"])
        self.assertEqual(personal.servings, 4)

        stored = await self._reload(RecipeUpdateProposal, proposal.id)
        self.assertEqual(stored.status, ProposalStatus.ACCEPTED)
        self.assertIsNotNone(stored.decided_at)

    async def test_accept_cascades_to_siblings_but_not_variants_or_forks(self) -> None:
        sibling_community = await self._community(self.owner_id, name="Weeknight Cooks")
        fork_community = await self._community(self.owner_id, name="Rye Lovers")
        [sibling] = await self.recipes.publish_recipe(self.owner_id, self.personal_id, [sibling_community])
        fork = await self.shares.share_recipe(self.owner_id, self.recipe_id, fork_community)

        rejected = await self._propose(self.member_id, self.recipe_id, steps=["Divergent"])
        variant = (await self.proposals.reject_proposal(self.owner_id, rejected.id)).variant

        proposal = await self._propose(
            self.member_id,
            self.recipe_id,
            title="Country Sourdough",
            servings=6,
            ingredients=[{"name": "Rye flour", "quantity": 200, "unit": "g"}],
        )
        decision = await self.proposals.accept_proposal(self.owner_id, proposal.id)

        self.assertCountEqual(decision.cascade.updated_recipe_ids, [self.personal_id, sibling.recipe.id])
        for recipe_id in (self.recipe_id, self.personal_id, sibling.recipe.id):
            recipe = await self._reload(Recipe, recipe_id)
            self.assertEqual(recipe.title, "Country Sourdough")
            self.assertEqual(recipe.steps, ["Better"])
            self.assertEqual(recipe.servings, 6)
            self.assertEqual([row.name for row in await self._ingredients(recipe_id)], ["rye flour"])

        untouched_variant = await self._reload(Recipe, variant.id)
        self.assertEqual(untouched_variant.steps, ["Divergent"])
        untouched_fork = await self._reload(Recipe, fork.recipe.id)
        self.assertEqual(untouched_fork.steps, ["Original"])
        self.assertEqual([row.name for row in await self._ingredients(fork.recipe.id)], ["flour"])

        updates = await self._activity(activity_type=ActivityType.RECIPE_UPDATED)
        self.assertEqual([entry.recipe_id for entry in updates], [sibling.recipe.id])

    async def test_accept_without_ingredients_keeps_existing_ones(self) -> None:
        proposal = await self._propose(self.member_id, self.recipe_id)
        await self.proposals.accept_proposal(self.owner_id, proposal.id)

        rows = await self._ingredients(self.recipe_id)
        self.assertEqual([(row.name, row.quantity, row.unit) for row in rows], [("flour", 500.0, "g")])

    async def test_stale_proposal_is_rejected_with_conflict(self) -> None:
        proposal = await self._propose(self.member_id, self.recipe_id)
        await self.recipes.update_recipe(self.owner_id, self.recipe_id, RecipeChanges(title="Rye"))

        with self.assertRaises(StaleProposalError) as ctx:
            await self.proposals.accept_proposal(self.owner_id, proposal.id)

        self.assertEqual(ctx.exception.code, "PROPOSAL_003")
        self.assertEqual(ctx.exception.status_code, 409)
        recipe = await self._reload(Recipe, self.recipe_id)
        self.assertEqual(recipe.title, "Rye")
        self.assertEqual(recipe.steps, ["Original"])
        stored = await self._reload(RecipeUpdateProposal, proposal.id)
        self.assertEqual(stored.status, ProposalStatus.PENDING)

    async def test_second_decision_fails_and_keeps_first_outcome(self) -> None:
        proposal = await self._propose(self.member_id, self.recipe_id)
        await self.proposals.accept_proposal(self.owner_id, proposal.id)
        first = await self._reload(RecipeUpdateProposal, proposal.id)

        with self.assertRaises(AlreadyDecidedError) as ctx:
            await self.proposals.reject_proposal(self.owner_id, proposal.id)

        self.assertEqual(ctx.exception.code, "PROPOSAL_002")
        self.assertEqual(ctx.exception.status_code, 400)
        stored = await self._reload(RecipeUpdateProposal, proposal.id)
        self.assertEqual(stored.status, ProposalStatus.ACCEPTED)
        self.assertEqual(stored.decided_at, first.decided_at)

    async def test_sub_second_edit_makes_proposal_stale(self) -> None:
        proposal = await self._reload(RecipeUpdateProposal, (await self._propose(self.member_id, self.recipe_id)).id)
        async with self.session_factory() as session, session.begin():
            recipe = await session.get(Recipe, self.recipe_id)
            recipe.updated_at = proposal.created_at + timedelta(microseconds=1)

        with self.assertRaises(StaleProposalError):
            await self.proposals.accept_proposal(self.owner_id, proposal.id)
        self.assertEqual((await self._reload(RecipeUpdateProposal, proposal.id)).status, ProposalStatus.PENDING)

    async def test_cascade_failure_rolls_back_every_copy(self) -> None:
        sibling_community = await self._community(self.owner_id, name="Weeknight Cooks")
        [sibling] = await self.recipes.publish_recipe(self.owner_id, self.personal_id, [sibling_community])
        proposal = await self._propose(
            self.member_id,
            self.recipe_id,
            title="Country Sourdough",
            ingredients=[{"name": "Rye flour", "quantity": 200, "unit": "g"}],
        )
        original = RecipeRepository.replace_ingredients

        async def failing_on_sibling(repo, recipe_id, rows):
            if recipe_id == sibling.recipe.id:
                raise RuntimeError("ingredient table locked")
            await original(repo, recipe_id, rows)

        with patch.object(RecipeRepository, "replace_ingredients", failing_on_sibling):
            with self.assertRaises(RuntimeError):
                await self.proposals.accept_proposal(self.owner_id, proposal.id)

        for recipe_id in (self.recipe_id, self.personal_id, sibling.recipe.id):
            recipe = await self._reload(Recipe, recipe_id)
            self.assertEqual(recipe.title, "Sourdough")
            self.assertEqual(recipe.steps, ["Original"])
            self.assertEqual([row.name for row in await self._ingredients(recipe_id)], ["flour"])
        stored = await self._reload(RecipeUpdateProposal, proposal.id)
        self.assertEqual(stored.status, ProposalStatus.PENDING)
        self.assertIsNone(stored.decided_at)
        self.assertEqual(await self._activity(activity_type=ActivityType.PROPOSAL_ACCEPTED), [])
        self.assertEqual(await self._activity(activity_type=ActivityType.RECIPE_UPDATED), [])

    async def test_decision_committed_concurrently_wins(self) -> None:
        proposal = await self._propose(self.member_id, self.recipe_id)
        decided_at = datetime(2026, 1, 2, 3, 4, 5, 678901)
        original = proposal_service._load_for_decision

        async def decided_elsewhere(store, proposal_id, actor_id, verb):
            loaded = await original(store, proposal_id, actor_id, verb)
            async with self.session_factory() as other, other.begin():
                await Store.for_session(other).proposals.decide(proposal_id, ProposalStatus.REJECTED, decided_at)
            return loaded

        with patch("core.services.proposal_service._load_for_decision", decided_elsewhere):
            with self.assertRaises(AlreadyDecidedError) as ctx:
                await self.proposals.accept_proposal(self.owner_id, proposal.id)

        self.assertEqual(ctx.exception.code, "PROPOSAL_002")
        stored = await self._reload(RecipeUpdateProposal, proposal.id)
        self.assertEqual(stored.status, ProposalStatus.REJECTED)
        self.assertEqual(stored.decided_at, decided_at)
        self.assertEqual((await self._reload(Recipe, self.recipe_id)).steps, ["Original"])

    async def test_reject_forges_variant_for_proposer(self) -> None:
        proposal = await self._propose(
            self.member_id,
            self.recipe_id,
            ingredients=[{"name": "Spelt", "quantity": 450, "unit": "g"}],
        )

        result = await self.proposals.reject_proposal(self.owner_id, proposal.id)

        variant = await self._reload(Recipe, result.variant.id)
        self.assertTrue(variant.is_variant)
        self.assertEqual(variant.origin_recipe_id, self.recipe_id)
        self.assertEqual(variant.creator_id, self.member_id)
        self.assertEqual(variant.community_id, self.community_id)
        self.assertEqual(variant.steps, ["Better"])
        self.assertEqual(variant.servings, 4)
        self.assertEqual([row.name for row in await self._ingredients(variant.id)], ["spelt"])

        target = await self._reload(Recipe, self.recipe_id)
        self.assertEqual(target.steps, ["Original"])
        stored = await self._reload(RecipeUpdateProposal, proposal.id)
        self.assertEqual(stored.status, ProposalStatus.REJECTED)

        [entry] = await self._activity(activity_type=ActivityType.VARIANT_CREATED)
        self.assertEqual(entry.payload["reason"], VariantReason.PROPOSAL_REJECTED)
        self.assertEqual(entry.payload["proposalId"], proposal.id)

    async def test_only_owner_decides(self) -> None:
        proposal = await self._propose(self.member_id, self.recipe_id)
        with self.assertRaises(ForbiddenError):
            await self.proposals.accept_proposal(self.member_id, proposal.id)

    async def test_cannot_propose_on_personal_or_own_recipe(self) -> None:
        with self.assertRaises(BadRequestError) as personal:
            await self._propose(self.member_id, self.personal_id)
        self.assertEqual(personal.exception.code, "PROPOSAL_001")

        with self.assertRaises(BadRequestError) as own:
            await self._propose(self.owner_id, self.recipe_id)
        self.assertEqual(own.exception.code, "PROPOSAL_001")

    async def test_outsider_cannot_propose(self) -> None:
        outsider_id = await self._user("nils")
        with self.assertRaises(ForbiddenError) as ctx:
            await self._propose(outsider_id, self.recipe_id)
        self.assertEqual(ctx.exception.code, "COMMUNITY_001")

    async def test_list_proposals_filters_and_paginates(self) -> None:
        created = [await self._propose(self.member_id, self.recipe_id, title=f"Loaf {i}") for i in range(3)]
        await self.proposals.reject_proposal(self.owner_id, created[0].id)

        page = await self.proposals.list_proposals(self.member_id, self.recipe_id, limit=1)
        self.assertEqual(page.total, 3)
        self.assertEqual([item.id for item in page.items], [created[2].id])
        self.assertTrue(page.has_more)

        pending = await self.proposals.list_proposals(
            self.owner_id,
            self.recipe_id,
            status=ProposalStatus.PENDING,
        )
        self.assertEqual([item.id for item in pending.items], [created[2].id, created[1].id])
        self.assertFalse(pending.has_more)


class VariantListingTests(EngineTestCase):
    async def test_variants_sorted_by_latest_activity(self) -> None:
        owner_id = await self._user("olga")
        member_id = await self._user("mika")
        community_id = await self._community(owner_id)
        await self._join(community_id, member_id)
        recipe_id = (await self._community_recipe(owner_id, community_id)).community.recipe.id

        first = await self._propose(member_id, recipe_id, title="First")
        second = await self._propose(member_id, recipe_id, title="Second")
        first_variant = (await self.proposals.reject_proposal(owner_id, first.id)).variant
        second_variant = (await self.proposals.reject_proposal(owner_id, second.id)).variant

        page = await self.variants.list_variants(member_id, recipe_id)
        self.assertEqual([item.id for item in page.items], [second_variant.id, first_variant.id])

        await self.recipes.update_recipe(member_id, first_variant.id, RecipeChanges(steps=["Tweaked"]))
        page = await self.variants.list_variants(owner_id, recipe_id, limit=1)
        self.assertEqual([item.id for item in page.items], [first_variant.id])
        self.assertEqual(page.total, 2)

        outsider_id = await self._user("nils")
        with self.assertRaises(ForbiddenError):
            await self.variants.list_variants(outsider_id, recipe_id)


if __name__ == "__main__":
    unittest.main()
