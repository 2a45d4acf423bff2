from __future__ import annotations

import structlog

from core.pagination import Page, page_request
from core.services.base import ServiceBase, load_community, require_member
from db.models import ActivityLog

logger = structlog.get_logger(__name__)


class ActivityService(ServiceBase):
    async def community_activity(
        self,
        actor_id: int,
        community_id: int,
        *,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Page[ActivityLog]:
        request = page_request(limit, offset)
        async with self.transaction() as store:
            await load_community(store, community_id)
            await require_member(store, actor_id, community_id)
            items, total = await store.activity.list_for_community(community_id, request.limit, request.offset)
            return Page(items=items, total=total, limit=request.limit, offset=request.offset)

    async def my_activity(
        self,
        actor_id: int,
        *,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Page[ActivityLog]:
        """Feed of the actor's own actions and of proposals touching recipes the actor owns."""
        request = page_request(limit, offset)
        async with self.transaction() as store:
            owned = await store.recipes.list_owned_ids(actor_id)
            items, total = await store.activity.list_for_user(actor_id, owned, request.limit, request.offset)
            logger.debug("activity_feed_loaded", user_id=actor_id, total=total)
            return Page(items=items, total=total, limit=request.limit, offset=request.offset)
