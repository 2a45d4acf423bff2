from __future__ import annotations

import unittest
from unittest.mock import patch

from pydantic import ValidationError
from sqlalchemy import func, select

from core.errors import BadRequestError, ConflictError, ForbiddenError, GoneError, NotFoundError
from core.services import orphan_service
from db.models import (
    ActivityType,
    Community,
    CommunityInvite,
    InviteStatus,
    MemberRole,
    ProposalStatus,
    Recipe,
    RecipeUpdateProposal,
    VariantReason,
)
from schemas import CommunityDraft
from tests.support import EngineTestCase


class LeaveAndKickTests(EngineTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.owner_id = await self._user("olga")
        self.moderator_id = await self._user("petra")
        self.member_id = await self._user("mika")
        self.community_id = await self._community(self.owner_id)
        await self._join(self.community_id, self.moderator_id, MemberRole.MODERATOR)
        await self._join(self.community_id, self.member_id)

    async def _member_ids(self, actor_id: int) -> list[int]:
        return [item.user_id for item in await self.members.list_members(actor_id, self.community_id)]

    async def test_leaving_owner_orphans_become_variants(self) -> None:
        recipe_id = (await self._community_recipe(self.owner_id, self.community_id)).community.recipe.id
        accepted = await self._propose(self.member_id, recipe_id, title="Accepted")
        await self.proposals.accept_proposal(self.owner_id, accepted.id)
        pending = await self._propose(self.member_id, recipe_id, title="Pending")

        change = await self.members.leave_community(self.owner_id, self.community_id)

        self.assertFalse(change.dissolved)
        self.assertEqual(change.status_code, 200)
        self.assertEqual(change.orphans.processed_recipes, 1)
        self.assertEqual(change.orphans.auto_rejected_proposals, 1)
        [variant_id] = change.orphans.created_variants

        variant = await self._reload(Recipe, variant_id)
        self.assertTrue(variant.is_variant)
        self.assertEqual(variant.creator_id, self.member_id)
        self.assertEqual(variant.origin_recipe_id, recipe_id)
        self.assertEqual(variant.title, "Pending")

        self.assertEqual((await self._reload(RecipeUpdateProposal, pending.id)).status, ProposalStatus.REJECTED)
        self.assertEqual((await self._reload(RecipeUpdateProposal, accepted.id)).status, ProposalStatus.ACCEPTED)
        self.assertNotIn(self.owner_id, await self._member_ids(self.moderator_id))

        [entry] = await self._activity(activity_type=ActivityType.VARIANT_CREATED)
        self.assertEqual(entry.payload["reason"], VariantReason.ORPHAN_AUTO_REJECT)
        self.assertEqual(len(await self._activity(activity_type=ActivityType.USER_LEFT)), 1)

    async def test_last_moderator_cannot_leave_while_others_remain(self) -> None:
        await self.members.kick_member(self.owner_id, self.community_id, self.member_id)
        await self.members.leave_community(self.moderator_id, self.community_id)
        await self._join(self.community_id, self.member_id)
        recipe_id = (await self._community_recipe(self.owner_id, self.community_id)).community.recipe.id
        proposal = await self._propose(self.member_id, recipe_id)

        with self.assertRaises(ForbiddenError) as ctx:
            await self.members.leave_community(self.owner_id, self.community_id)

        self.assertEqual(ctx.exception.code, "COMMUNITY_003")
        self.assertEqual((await self._reload(RecipeUpdateProposal, proposal.id)).status, ProposalStatus.PENDING)
        self.assertIn(self.owner_id, await self._member_ids(self.owner_id))

    async def test_kick_reconciles_target_recipes(self) -> None:
        recipe_id = (await self._community_recipe(self.member_id, self.community_id)).community.recipe.id
        first = await self._propose(self.owner_id, recipe_id, title="One")
        second = await self._propose(self.moderator_id, recipe_id, title="Two")

        change = await self.members.kick_member(self.moderator_id, self.community_id, self.member_id)

        self.assertEqual(change.orphans.auto_rejected_proposals, 2)
        creators = sorted([(await self._reload(Recipe, vid)).creator_id for vid in change.orphans.created_variants])
        self.assertEqual(creators, sorted([self.owner_id, self.moderator_id]))
        for proposal in (first, second):
            stored = await self._reload(RecipeUpdateProposal, proposal.id)
            self.assertEqual(stored.status, ProposalStatus.REJECTED)
            self.assertIsNotNone(stored.decided_at)
        self.assertNotIn(self.member_id, await self._member_ids(self.owner_id))
        [entry] = await self._activity(activity_type=ActivityType.USER_KICKED)
        self.assertEqual(entry.payload["targetUserId"], self.member_id)

    async def test_failed_reconciliation_aborts_leave(self) -> None:
        recipe_id = (await self._community_recipe(self.member_id, self.community_id)).community.recipe.id
        first = await self._propose(self.owner_id, recipe_id, title="One")
        second = await self._propose(self.moderator_id, recipe_id, title="Two")
        original = orphan_service.reject_pending_proposal
        calls = []

        async def failing_second(store, proposal, target, **kwargs):
            calls.append(proposal.id)
            if len(calls) == 2:
                raise RuntimeError("variant insert failed")
            return await original(store, proposal, target, **kwargs)

        with patch("core.services.orphan_service.reject_pending_proposal", failing_second):
            with self.assertRaises(RuntimeError):
                await self.members.leave_community(self.member_id, self.community_id)

        self.assertEqual(len(calls), 2)
        for proposal in (first, second):
            stored = await self._reload(RecipeUpdateProposal, proposal.id)
            self.assertEqual(stored.status, ProposalStatus.PENDING)
            self.assertIsNone(stored.decided_at)
        async with self.session_factory() as session:
            variants = await session.scalar(
                select(func.count()).select_from(Recipe).where(Recipe.is_variant.is_(True))
            )
        self.assertEqual(variants, 0)
        self.assertIn(self.member_id, await self._member_ids(self.owner_id))
        self.assertEqual(await self._activity(activity_type=ActivityType.USER_LEFT), [])

    async def test_kick_requires_moderator_and_spares_moderators(self) -> None:
        with self.assertRaises(ForbiddenError) as by_member:
            await self.members.kick_member(self.member_id, self.community_id, self.owner_id)
        self.assertEqual(by_member.exception.code, "COMMUNITY_002")

        with self.assertRaises(ForbiddenError) as moderator:
            await self.members.kick_member(self.owner_id, self.community_id, self.moderator_id)
        self.assertEqual(moderator.exception.code, "COMMUNITY_006")

        stranger_id = await self._user("nils")
        with self.assertRaises(NotFoundError) as missing:
            await self.members.kick_member(self.owner_id, self.community_id, stranger_id)
        self.assertEqual(missing.exception.code, "MEMBER_003")


class DissolveTests(EngineTestCase):
    async def test_last_member_leaving_dissolves_community(self) -> None:
        owner_id = await self._user("olga")
        member_id = await self._user("mika")
        invitee_id = await self._user("nils")
        community_id = await self._community(owner_id)
        await self._join(community_id, member_id)
        recipe_id = (await self._community_recipe(owner_id, community_id)).community.recipe.id
        proposal = await self._propose(member_id, recipe_id)
        invite = await self.members.invite(owner_id, community_id, invitee_id)
        await self.members.leave_community(member_id, community_id)

        change = await self.members.leave_community(owner_id, community_id)

        self.assertTrue(change.dissolved)
        self.assertEqual(change.status_code, 410)
        self.assertEqual(change.orphans.auto_rejected_proposals, 1)
        self.assertEqual((await self._reload(RecipeUpdateProposal, proposal.id)).status, ProposalStatus.REJECTED)
        self.assertIsNotNone((await self._reload(Community, community_id)).deleted_at)
        self.assertIsNotNone((await self._reload(Recipe, recipe_id)).deleted_at)
        variant = await self._reload(Recipe, change.orphans.created_variants[0])
        self.assertIsNotNone(variant.deleted_at)
        self.assertEqual((await self._reload(CommunityInvite, invite.id)).status, InviteStatus.CANCELLED)

        with self.assertRaises(GoneError) as ctx:
            await self.members.list_members(owner_id, community_id)
        self.assertEqual(ctx.exception.status_code, 410)


class InviteTests(EngineTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.owner_id = await self._user("olga")
        self.invitee_id = await self._user("mika")
        self.community_id = await self._community(self.owner_id)

    async def test_invite_accept_promote(self) -> None:
        invite = await self.members.invite(self.owner_id, self.community_id, self.invitee_id)
        self.assertEqual(invite.status, InviteStatus.PENDING)

        with self.assertRaises(ConflictError) as duplicate:
            await self.members.invite(self.owner_id, self.community_id, self.invitee_id)
        self.assertEqual(duplicate.exception.code, "COMMUNITY_005")

        with self.assertRaises(ForbiddenError):
            await self.members.accept_invite(self.owner_id, invite.id)

        membership = await self.members.accept_invite(self.invitee_id, invite.id)
        self.assertEqual(membership.role, MemberRole.MEMBER)

        with self.assertRaises(BadRequestError) as processed:
            await self.members.accept_invite(self.invitee_id, invite.id)
        self.assertEqual(processed.exception.code, "INVITE_002")

        with self.assertRaises(ConflictError) as member:
            await self.members.invite(self.owner_id, self.community_id, self.invitee_id)
        self.assertEqual(member.exception.code, "COMMUNITY_004")

        promoted = await self.members.promote(self.owner_id, self.community_id, self.invitee_id)
        self.assertEqual(promoted.role, MemberRole.MODERATOR)
        with self.assertRaises(BadRequestError) as again:
            await self.members.promote(self.owner_id, self.community_id, self.invitee_id)
        self.assertEqual(again.exception.code, "MEMBER_004")

    async def test_decline_invite(self) -> None:
        invite = await self.members.invite(self.owner_id, self.community_id, self.invitee_id)
        declined = await self.members.decline_invite(self.invitee_id, invite.id)
        self.assertEqual(declined.status, InviteStatus.REJECTED)
        self.assertIsNotNone(declined.responded_at)

        with self.assertRaises(ForbiddenError):
            await self.members.list_members(self.invitee_id, self.community_id)

    async def test_invite_requires_moderator_and_known_user(self) -> None:
        with self.assertRaises(NotFoundError) as unknown:
            await self.members.invite(self.owner_id, self.community_id, 9999)
        self.assertEqual(unknown.exception.code, "INVITE_003")

        await self._join(self.community_id, self.invitee_id)
        outsider_id = await self._user("nils")
        with self.assertRaises(ForbiddenError):
            await self.members.invite(self.invitee_id, self.community_id, outsider_id)

    def test_community_name_is_validated(self) -> None:
        with self.assertRaises(ValidationError):
            CommunityDraft(name="ab")
        self.assertEqual(CommunityDraft(name="  Bakers  ").name, "Bakers")


if __name__ == "__main__":
    unittest.main()
