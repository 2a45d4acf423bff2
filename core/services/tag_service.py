from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import structlog

from core.errors import AlreadyDecidedError, BadRequestError, ConflictError, ForbiddenError, NotFoundError
from core.services.base import ServiceBase, load_community, require_member, require_moderator
from core.services.tag_resolution import clean_tag_name, ensure_community_tag_capacity
from db.models import ActivityType, SuggestionStatus, Tag, TagScope, TagStatus, utcnow
from db.repo import Store, TagWithUsage

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class TagDecision:
    tag_id: int
    name: str
    status: str
    cascaded_suggestion_ids: list[int] = field(default_factory=list)


@dataclass(slots=True)
class TagPreference:
    community_id: int
    community_name: str
    show_tags: bool = True


async def _load_community_tag(store: Store, community_id: int, tag_id: int) -> Tag:
    tag = await store.tags.get_tag(tag_id)
    if tag is None:
        raise NotFoundError("TAG_001", "Tag not found")
    if tag.scope != TagScope.COMMUNITY or tag.community_id != community_id:
        raise ForbiddenError("TAG_005", "Tag does not belong to this community")
    return tag


async def _load_pending_tag(store: Store, community_id: int, tag_id: int) -> Tag:
    tag = await _load_community_tag(store, community_id, tag_id)
    if tag.status != TagStatus.PENDING:
        raise AlreadyDecidedError("TAG_004", "Tag is not pending")
    return tag


async def _ensure_name_free(store: Store, name: str, community_id: int, exclude_id: int | None = None) -> None:
    if await store.tags.find_global(name) is not None:
        raise ConflictError("TAG_002", "Tag name already exists globally")
    if await store.tags.find_in_community(name, community_id, exclude_id=exclude_id) is not None:
        raise ConflictError("TAG_002", "Tag name already exists in this community")


async def cascade_tag_decision(
    store: Store,
    community_id: int,
    tag_name: str,
    status: SuggestionStatus,
    now: datetime,
) -> list[int]:
    cascaded: list[int] = []
    for suggestion in await store.suggestions.list_awaiting_moderator(community_id, tag_name):
        if await store.suggestions.decide(suggestion.id, SuggestionStatus.PENDING_MODERATOR, status, now):
            cascaded.append(suggestion.id)
    if cascaded:
        logger.info(
            "tag_suggestion_cascaded",
            community_id=community_id,
            tag_name=tag_name,
            status=status,
            suggestion_ids=cascaded,
        )
    return cascaded


class TagService(ServiceBase):
    async def create_community_tag(self, actor_id: int, community_id: int, name: str) -> Tag:
        name = clean_tag_name(name)
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_moderator(store, actor_id, community_id)
            await _ensure_name_free(store, name, community_id)
            await ensure_community_tag_capacity(store, community_id)

            tag = await store.tags.add_tag(
                name=name,
                scope=TagScope.COMMUNITY,
                status=TagStatus.APPROVED,
                community_id=community_id,
                created_by_id=actor_id,
            )
            logger.info("tag_created", tag_id=tag.id, name=name, community_id=community_id, status=tag.status)
            return tag

    async def rename_tag(self, actor_id: int, community_id: int, tag_id: int, name: str) -> Tag:
        name = clean_tag_name(name)
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_moderator(store, actor_id, community_id)
            tag = await _load_community_tag(store, community_id, tag_id)
            if tag.name == name:
                return tag
            await _ensure_name_free(store, name, community_id, exclude_id=tag.id)

            # Suggestions waiting on this tag follow it to the new name.
            for suggestion in await store.suggestions.list_awaiting_moderator(community_id, tag.name):
                suggestion.tag_name = name
            previous, tag.name = tag.name, name
            await store.session.flush()
            logger.info("tag_renamed", tag_id=tag.id, community_id=community_id, previous=previous, name=name)
            return tag

    async def delete_tag(self, actor_id: int, community_id: int, tag_id: int) -> TagDecision:
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_moderator(store, actor_id, community_id)
            tag = await _load_community_tag(store, community_id, tag_id)

            decision = TagDecision(tag_id=tag.id, name=tag.name, status="DELETED")
            decision.cascaded_suggestion_ids = await cascade_tag_decision(
                store, community_id, tag.name, SuggestionStatus.REJECTED, utcnow()
            )
            detached = await store.tags.delete_tag(tag)
            logger.info("tag_deleted", tag_id=decision.tag_id, community_id=community_id, detached=detached)
            return decision

    async def approve_tag(self, actor_id: int, community_id: int, tag_id: int) -> TagDecision:
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_moderator(store, actor_id, community_id)
            tag = await _load_pending_tag(store, community_id, tag_id)
            if not await store.tags.approve(tag.id):
                raise AlreadyDecidedError("TAG_004", "Tag is not pending")

            decision = TagDecision(tag_id=tag.id, name=tag.name, status=TagStatus.APPROVED)
            decision.cascaded_suggestion_ids = await cascade_tag_decision(
                store, community_id, tag.name, SuggestionStatus.APPROVED, utcnow()
            )
            await store.activity.record(
                ActivityType.TAG_APPROVED,
                user_id=actor_id,
                community_id=community_id,
                payload={"tagId": tag.id, "tagName": tag.name},
            )
            logger.info("tag_approved", tag_id=tag.id, community_id=community_id)
            return decision

    async def reject_tag(self, actor_id: int, community_id: int, tag_id: int) -> TagDecision:
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_moderator(store, actor_id, community_id)
            tag = await _load_pending_tag(store, community_id, tag_id)

            decision = TagDecision(tag_id=tag.id, name=tag.name, status="REJECTED")
            decision.cascaded_suggestion_ids = await cascade_tag_decision(
                store, community_id, tag.name, SuggestionStatus.REJECTED, utcnow()
            )
            detached = await store.tags.delete_tag(tag)
            await store.activity.record(
                ActivityType.TAG_REJECTED,
                user_id=actor_id,
                community_id=community_id,
                payload={"tagId": decision.tag_id, "tagName": decision.name},
            )
            logger.info("tag_rejected", tag_id=decision.tag_id, community_id=community_id, detached=detached)
            return decision

    async def list_community_tags(
        self,
        actor_id: int,
        community_id: int,
        status: TagStatus | None = None,
    ) -> list[TagWithUsage]:
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_moderator(store, actor_id, community_id)
            return await store.tags.list_community_tags(community_id, status)

    async def autocomplete(
        self,
        actor_id: int,
        search: str = "",
        *,
        community_id: int | None = None,
        limit: int = 10,
    ) -> list[Tag]:
        async with self.transaction() as store:
            if community_id is not None:
                await load_community(store, community_id)
                await require_member(store, actor_id, community_id)
                community_ids = [community_id]
            else:
                community_ids = await store.communities.list_user_community_ids(actor_id)
                hidden = await store.preferences.list_hidden_community_ids(actor_id)
                community_ids = [item for item in community_ids if item not in hidden]
            return await store.tags.autocomplete(community_ids, search, max(1, min(limit, 50)))

    async def list_tag_preferences(self, actor_id: int) -> list[TagPreference]:
        async with self.transaction() as store:
            hidden = await store.preferences.list_hidden_community_ids(actor_id)
            return [
                TagPreference(
                    community_id=community.id,
                    community_name=community.name,
                    show_tags=community.id not in hidden,
                )
                for community in await store.communities.list_user_communities(actor_id)
            ]

    async def set_tag_preference(self, actor_id: int, community_id: int, show_tags: bool) -> TagPreference:
        """Show or hide a community's tags in the actor's personal autocomplete."""
        if not isinstance(show_tags, bool):
            raise BadRequestError("TAG_001", "showTags must be a boolean")
        async with self.transaction() as store:
            community = await load_community(store, community_id)
            await require_member(store, actor_id, community_id)
            preference = await store.preferences.upsert(actor_id, community_id, show_tags)
            logger.info("tag_preference_updated", user_id=actor_id, community_id=community_id, show_tags=show_tags)
            return TagPreference(
                community_id=community.id,
                community_name=community.name,
                show_tags=preference.show_tags,
            )
