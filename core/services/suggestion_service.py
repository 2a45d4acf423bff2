from __future__ import annotations

from dataclasses import dataclass

import structlog

from core.config import settings
from core.errors import AlreadyDecidedError, BadRequestError, ConflictError, ForbiddenError, NotFoundError
from core.pagination import Page, page_request
from core.services.base import ServiceBase, load_community, load_recipe, require_member
from core.services.tag_resolution import clean_tag_name, resolve_tag
from db.models import (
    ACTIVE_SUGGESTION_STATUSES,
    ActivityType,
    Recipe,
    SuggestionStatus,
    Tag,
    TagStatus,
    TagSuggestion,
    utcnow,
)
from db.repo import Store

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class SuggestionDecision:
    suggestion: TagSuggestion
    tag: Tag | None = None


async def _load_suggestion(store: Store, suggestion_id: int) -> TagSuggestion:
    suggestion = await store.suggestions.get_suggestion(suggestion_id)
    if suggestion is None:
        raise NotFoundError("TAG_007", "Tag suggestion not found")
    return suggestion


async def _reject_if_recipe_gone(store: Store, suggestion: TagSuggestion) -> Recipe | None:
    """Return the live recipe, or reject the suggestion when its recipe was deleted."""
    recipe = await store.recipes.get_recipe(suggestion.recipe_id, include_deleted=True)
    if recipe is not None and recipe.deleted_at is None:
        return recipe
    if suggestion.status in ACTIVE_SUGGESTION_STATUSES:
        await store.suggestions.decide(suggestion.id, suggestion.status, SuggestionStatus.REJECTED, utcnow())
        logger.info("tag_suggestion_auto_rejected", suggestion_id=suggestion.id, recipe_id=suggestion.recipe_id)
    return None


def _check_owner_decision(suggestion: TagSuggestion, recipe: Recipe, actor_id: int, verb: str) -> None:
    if recipe.creator_id != actor_id:
        raise ForbiddenError("RECIPE_002", f"Only the recipe owner can {verb} suggestions")
    if suggestion.status != SuggestionStatus.PENDING_OWNER:
        raise AlreadyDecidedError("TAG_007", "Suggestion already decided")


class TagSuggestionService(ServiceBase):
    async def suggest_tag(self, actor_id: int, recipe_id: int, tag_name: str) -> TagSuggestion:
        name = clean_tag_name(tag_name)
        async with self.transaction() as store:
            recipe = await load_recipe(store, recipe_id)
            if recipe.community_id is None:
                raise BadRequestError("TAG_007", "Cannot suggest tags on personal recipes")
            await load_community(store, recipe.community_id)
            await require_member(store, actor_id, recipe.community_id)
            if recipe.creator_id == actor_id:
                raise BadRequestError("TAG_007", "Cannot suggest tags on your own recipe")
            if await store.suggestions.find_active(recipe.id, name) is not None:
                raise ConflictError("TAG_006", "Tag already suggested on this recipe")
            if any(tag.name == name for tag in await store.recipes.list_tags(recipe.id)):
                raise ConflictError("TAG_006", "Recipe already carries this tag")
            if await store.recipes.count_tags(recipe.id) >= settings.max_tags_per_recipe:
                raise BadRequestError("TAG_003", f"Maximum {settings.max_tags_per_recipe} tags per recipe")

            suggestion = await store.suggestions.add_suggestion(recipe.id, name, actor_id)
            await store.activity.record(
                ActivityType.TAG_SUGGESTED,
                user_id=actor_id,
                community_id=recipe.community_id,
                recipe_id=recipe.id,
                payload={"suggestionId": suggestion.id, "tagName": name},
            )
            logger.info("tag_suggested", suggestion_id=suggestion.id, recipe_id=recipe.id, tag_name=name)
            return suggestion

    async def accept_suggestion(self, actor_id: int, suggestion_id: int) -> SuggestionDecision:
        async with self.transaction() as store:
            suggestion = await _load_suggestion(store, suggestion_id)
            recipe = await _reject_if_recipe_gone(store, suggestion)
            if recipe is not None:
                _check_owner_decision(suggestion, recipe, actor_id, "accept")
                current = await store.recipes.list_tags(recipe.id)
                if len(current) >= settings.max_tags_per_recipe and all(
                    tag.name != suggestion.tag_name for tag in current
                ):
                    raise BadRequestError("TAG_003", f"Maximum {settings.max_tags_per_recipe} tags per recipe")

                tag = await resolve_tag(store, suggestion.tag_name, recipe.community_id, suggestion.suggested_by_id)
                await store.recipes.attach_tag(recipe.id, tag.id)
                if tag.status == TagStatus.APPROVED:
                    status, decided_at = SuggestionStatus.APPROVED, utcnow()
                else:
                    status, decided_at = SuggestionStatus.PENDING_MODERATOR, None
                if not await store.suggestions.decide(
                    suggestion.id, SuggestionStatus.PENDING_OWNER, status, decided_at
                ):
                    raise AlreadyDecidedError("TAG_007", "Suggestion already decided")
                await store.activity.record(
                    ActivityType.TAG_SUGGESTION_ACCEPTED,
                    user_id=actor_id,
                    community_id=recipe.community_id,
                    recipe_id=recipe.id,
                    payload={"suggestionId": suggestion.id, "tagName": suggestion.tag_name, "finalStatus": status},
                )

                logger.info(
                    "tag_suggestion_accepted",
                    suggestion_id=suggestion.id,
                    recipe_id=recipe.id,
                    tag_id=tag.id,
                    status=status,
                )
                return SuggestionDecision(suggestion=suggestion, tag=tag)

        # The rejection above is committed before the caller learns the recipe is gone.
        raise BadRequestError("TAG_007", "Recipe is no longer available")

    async def reject_suggestion(self, actor_id: int, suggestion_id: int) -> SuggestionDecision:
        async with self.transaction() as store:
            suggestion = await _load_suggestion(store, suggestion_id)
            recipe = await _reject_if_recipe_gone(store, suggestion)
            if recipe is not None:
                _check_owner_decision(suggestion, recipe, actor_id, "reject")
                if not await store.suggestions.decide(
                    suggestion.id, SuggestionStatus.PENDING_OWNER, SuggestionStatus.REJECTED, utcnow()
                ):
                    raise AlreadyDecidedError("TAG_007", "Suggestion already decided")
                await store.activity.record(
                    ActivityType.TAG_SUGGESTION_REJECTED,
                    user_id=actor_id,
                    community_id=recipe.community_id,
                    recipe_id=recipe.id,
                    payload={"suggestionId": suggestion.id},
                )
                logger.info("tag_suggestion_rejected", suggestion_id=suggestion.id, recipe_id=recipe.id)
                return SuggestionDecision(suggestion=suggestion)

        raise BadRequestError("TAG_007", "Recipe is no longer available")

    async def list_suggestions(
        self,
        actor_id: int,
        recipe_id: int,
        *,
        status: SuggestionStatus | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> Page[TagSuggestion]:
        request = page_request(limit, offset)
        async with self.transaction() as store:
            recipe = await load_recipe(store, recipe_id)
            if recipe.community_id is None:
                raise BadRequestError("TAG_007", "No tag suggestions on personal recipes")
            await load_community(store, recipe.community_id)
            await require_member(store, actor_id, recipe.community_id)
            items, total = await store.suggestions.list_for_recipe(recipe.id, status, request.limit, request.offset)
            return Page(items=items, total=total, limit=request.limit, offset=request.offset)
