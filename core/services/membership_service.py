from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from core.services.base import ServiceBase, load_community, require_member, require_moderator
from core.services.orphan_service import OrphanReport, reconcile_orphans
from db.models import (
    ActivityType,
    Community,
    CommunityInvite,
    CommunityMember,
    InviteStatus,
    MemberRole,
    utcnow,
)
from db.repo import Store
from schemas import CommunityDraft

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class MembershipChange:
    user_id: int
    community_id: int
    orphans: OrphanReport = field(default_factory=OrphanReport)
    dissolved: bool = False
    status_code: int = 200


async def _load_invite_for_response(store: Store, actor_id: int, invite_id: int) -> CommunityInvite:
    invite = await store.communities.get_invite(invite_id)
    if invite is None:
        raise NotFoundError("INVITE_001", "Invite not found")
    if invite.invitee_id != actor_id:
        raise ForbiddenError("INVITE_004", "Invite belongs to another user")
    if invite.status != InviteStatus.PENDING:
        raise BadRequestError("INVITE_002", "Invite already processed")
    return invite


async def _dissolve(store: Store, community: Community, actor_id: int) -> None:
    now = utcnow()
    await store.communities.soft_delete_memberships(community.id, now)
    cancelled = await store.communities.cancel_pending_invites(community.id, now)
    deleted = await store.recipes.soft_delete_community_recipes(community.id, now)
    community.deleted_at = now
    await store.activity.record(
        ActivityType.COMMUNITY_DELETED,
        user_id=actor_id,
        community_id=community.id,
        payload={"cancelledInvites": cancelled, "deletedRecipes": deleted},
    )
    logger.info(
        "community_dissolved",
        community_id=community.id,
        cancelled_invites=cancelled,
        deleted_recipes=deleted,
    )


class MembershipService(ServiceBase):
    async def create_community(self, actor_id: int, draft: CommunityDraft) -> Community:
        async with self.transaction() as store:
            community = await store.communities.add_community(draft.name, draft.description)
            await store.communities.add_membership(actor_id, community.id, MemberRole.MODERATOR)
            await store.activity.record(
                ActivityType.COMMUNITY_CREATED,
                user_id=actor_id,
                community_id=community.id,
                payload={"name": community.name},
            )
            logger.info("community_created", community_id=community.id, user_id=actor_id)
            return community

    async def invite(self, actor_id: int, community_id: int, invitee_id: int) -> CommunityInvite:
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_moderator(store, actor_id, community_id)
            if await store.users.get_user(invitee_id) is None:
                raise NotFoundError("INVITE_003", "User not found")
            if await store.communities.get_membership(invitee_id, community_id) is not None:
                raise ConflictError("COMMUNITY_004", "User already member")
            if await store.communities.get_pending_invite(community_id, invitee_id) is not None:
                raise ConflictError("COMMUNITY_005", "Invitation already pending")

            invite = await store.communities.add_invite(community_id, actor_id, invitee_id)
            await store.activity.record(
                ActivityType.USER_INVITED,
                user_id=actor_id,
                community_id=community_id,
                payload={"inviteeId": invitee_id},
            )
            logger.info("member_invited", community_id=community_id, invite_id=invite.id, invitee_id=invitee_id)
            return invite

    async def accept_invite(self, actor_id: int, invite_id: int) -> CommunityMember:
        async with self.transaction() as store:
            invite = await _load_invite_for_response(store, actor_id, invite_id)
            await load_community(store, invite.community_id)
            if await store.communities.get_membership(actor_id, invite.community_id) is not None:
                raise ConflictError("COMMUNITY_004", "User already member")

            invite.status = InviteStatus.ACCEPTED
            invite.responded_at = utcnow()
            membership = await store.communities.add_membership(actor_id, invite.community_id, MemberRole.MEMBER)
            await store.activity.record(ActivityType.USER_JOINED, user_id=actor_id, community_id=invite.community_id)
            logger.info("member_joined", community_id=invite.community_id, user_id=actor_id)
            return membership

    async def decline_invite(self, actor_id: int, invite_id: int) -> CommunityInvite:
        async with self.transaction() as store:
            invite = await _load_invite_for_response(store, actor_id, invite_id)
            invite.status = InviteStatus.REJECTED
            invite.responded_at = utcnow()
            await store.session.flush()
            logger.info("invite_declined", community_id=invite.community_id, user_id=actor_id)
            return invite

    async def promote(self, actor_id: int, community_id: int, user_id: int) -> CommunityMember:
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_moderator(store, actor_id, community_id)
            membership = await store.communities.get_membership(user_id, community_id)
            if membership is None:
                raise NotFoundError("MEMBER_003", "Member not found")
            if membership.role == MemberRole.MODERATOR:
                raise BadRequestError("MEMBER_004", "User is already MODERATOR")

            membership.role = MemberRole.MODERATOR
            await store.activity.record(
                ActivityType.USER_PROMOTED,
                user_id=actor_id,
                community_id=community_id,
                payload={"targetUserId": user_id},
            )
            logger.info("member_promoted", community_id=community_id, user_id=user_id)
            return membership

    async def list_members(self, actor_id: int, community_id: int) -> list[CommunityMember]:
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_member(store, actor_id, community_id)
            return await store.communities.list_members(community_id)

    async def leave_community(self, actor_id: int, community_id: int) -> MembershipChange:
        async with self.transaction() as store:
            community = await load_community(store, community_id)
            membership = await require_member(store, actor_id, community_id)
            remaining = await store.communities.count_members(community_id)

            if remaining <= 1:
                orphans = await reconcile_orphans(store, actor_id, community_id, actor_id=actor_id)
                await _dissolve(store, community, actor_id)
                return MembershipChange(
                    user_id=actor_id,
                    community_id=community_id,
                    orphans=orphans,
                    dissolved=True,
                    status_code=410,
                )

            if membership.role == MemberRole.MODERATOR:
                moderators = await store.communities.count_members(community_id, MemberRole.MODERATOR)
                if moderators <= 1:
                    raise ForbiddenError(
                        "COMMUNITY_003",
                        "Last moderator cannot leave. Promote another member first",
                    )

            orphans = await reconcile_orphans(store, actor_id, community_id, actor_id=actor_id)
            membership.deleted_at = utcnow()
            await store.activity.record(ActivityType.USER_LEFT, user_id=actor_id, community_id=community_id)
            logger.info(
                "member_left",
                community_id=community_id,
                user_id=actor_id,
                auto_rejected=orphans.auto_rejected_proposals,
            )
            return MembershipChange(user_id=actor_id, community_id=community_id, orphans=orphans)

    async def kick_member(self, actor_id: int, community_id: int, user_id: int) -> MembershipChange:
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_moderator(store, actor_id, community_id)
            membership = await store.communities.get_membership(user_id, community_id)
            if membership is None:
                raise NotFoundError("MEMBER_003", "Member not found")
            if membership.role == MemberRole.MODERATOR:
                raise ForbiddenError("COMMUNITY_006", "Cannot remove a moderator")

            orphans = await reconcile_orphans(store, user_id, community_id, actor_id=actor_id)
            membership.deleted_at = utcnow()
            await store.activity.record(
                ActivityType.USER_KICKED,
                user_id=actor_id,
                community_id=community_id,
                payload={"targetUserId": user_id},
            )
            logger.info(
                "member_kicked",
                community_id=community_id,
                user_id=user_id,
                actor_id=actor_id,
                auto_rejected=orphans.auto_rejected_proposals,
            )
            return MembershipChange(user_id=user_id, community_id=community_id, orphans=orphans)
