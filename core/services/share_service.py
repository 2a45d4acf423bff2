from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from core.services.base import ServiceBase, load_community, load_recipe, require_member
from core.services.copy_graph import copy_recipe, origin_chain
from core.services.tag_resolution import attach_tag_names
from db.models import ActivityType, MemberRole, Recipe, RecipeAnalytics
from db.repo import Store

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class ShareResult:
    recipe: Recipe
    credited_recipe_ids: list[int] = field(default_factory=list)


async def credit_lineage(store: Store, source_recipe_id: int) -> list[RecipeAnalytics]:
    """Count one share and one fork on the source and every ancestor it was derived from."""
    credited = []
    for recipe_id in await origin_chain(store, source_recipe_id):
        credited.append(await store.recipes.bump_share_counters(recipe_id))
    return credited


class ShareService(ServiceBase):
    async def share_recipe(self, actor_id: int, recipe_id: int, target_community_id: int) -> ShareResult:
        async with self.transaction() as store:
            source = await load_recipe(store, recipe_id)
            if source.community_id is None:
                raise BadRequestError("SHARE_002", "Cannot share personal recipes")
            if source.community_id == target_community_id:
                raise BadRequestError("SHARE_003", "Cannot share to same community")

            await load_community(store, source.community_id)
            source_membership = await require_member(store, actor_id, source.community_id)

            target = await store.communities.get_community(target_community_id)
            if target is None or target.deleted_at is not None:
                raise NotFoundError("COMMUNITY_002", "Target community not found")
            if await store.communities.get_membership(actor_id, target_community_id) is None:
                raise ForbiddenError("SHARE_004", "Not a member of target community")

            if source.creator_id != actor_id and source_membership.role != MemberRole.MODERATOR:
                raise ForbiddenError("SHARE_005", "Must be recipe creator or moderator of the source community")
            if await store.recipes.find_share(source.id, target_community_id) is not None:
                raise ConflictError("SHARE_006", "Recipe already shared with this community")

            fork = await copy_recipe(
                store,
                source,
                creator_id=actor_id,
                community_id=target_community_id,
                origin_recipe_id=source.id,
                shared_from_community_id=source.community_id,
            )
            tag_names = [tag.name for tag in await store.recipes.list_tags(source.id)]
            await attach_tag_names(store, fork, tag_names, actor_id)

            credited = await credit_lineage(store, source.id)
            payload = {
                "sourceRecipeId": source.id,
                "forkRecipeId": fork.id,
                "fromCommunityId": source.community_id,
                "toCommunityId": target_community_id,
            }
            for community_id in (source.community_id, target_community_id):
                await store.activity.record(
                    ActivityType.RECIPE_SHARED,
                    user_id=actor_id,
                    community_id=community_id,
                    recipe_id=fork.id,
                    payload=payload,
                )

            result = ShareResult(recipe=fork, credited_recipe_ids=[item.recipe_id for item in credited])
            logger.info(
                "recipe_shared",
                recipe_id=source.id,
                fork_id=fork.id,
                target_community_id=target_community_id,
                credited=result.credited_recipe_ids,
            )
            return result
