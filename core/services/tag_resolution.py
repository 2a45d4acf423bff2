from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from core.config import settings
from core.errors import BadRequestError
from db.models import Recipe, Tag, TagScope, TagStatus
from db.repo import Store
from schemas import normalize_tag_name

logger = structlog.get_logger(__name__)


@dataclass(slots=True, frozen=True)
class Reused:
    tag: Tag


@dataclass(slots=True, frozen=True)
class Created:
    name: str
    scope: TagScope
    status: TagStatus
    community_id: int | None


TagResolution = Reused | Created


def _pick(candidates: Sequence[Tag], scope: TagScope, status: TagStatus, community_id: int | None) -> Tag | None:
    for tag in candidates:
        if tag.scope == scope and tag.status == status and tag.community_id == community_id:
            return tag
    return None


def decide_tag_resolution(name: str, community_id: int | None, candidates: Sequence[Tag]) -> TagResolution:
    """Pick the tag a name resolves to, or describe the one that must be created.

    Personal recipes only ever see GLOBAL-APPROVED tags. Community recipes try
    GLOBAL-APPROVED, then the community's APPROVED tag, then its PENDING tag,
    and otherwise stage a new PENDING tag for moderator review.
    """
    global_tag = _pick(candidates, TagScope.GLOBAL, TagStatus.APPROVED, None)
    if global_tag is not None:
        return Reused(global_tag)

    if community_id is None:
        return Created(name=name, scope=TagScope.GLOBAL, status=TagStatus.APPROVED, community_id=None)

    for status in (TagStatus.APPROVED, TagStatus.PENDING):
        local_tag = _pick(candidates, TagScope.COMMUNITY, status, community_id)
        if local_tag is not None:
            return Reused(local_tag)

    return Created(name=name, scope=TagScope.COMMUNITY, status=TagStatus.PENDING, community_id=community_id)


async def ensure_community_tag_capacity(store: Store, community_id: int) -> None:
    if await store.tags.count_community_tags(community_id) >= settings.max_community_tags:
        raise BadRequestError(
            "TAG_003",
            f"Community cannot have more than {settings.max_community_tags} tags",
        )


async def resolve_tag(store: Store, name: str, community_id: int | None, actor_id: int) -> Tag:
    resolution = decide_tag_resolution(name, community_id, await store.tags.find_candidates(name, community_id))
    if isinstance(resolution, Reused):
        return resolution.tag

    if resolution.community_id is not None:
        await ensure_community_tag_capacity(store, resolution.community_id)
    tag = await store.tags.add_tag(
        name=resolution.name,
        scope=resolution.scope,
        status=resolution.status,
        community_id=resolution.community_id,
        created_by_id=actor_id,
    )
    logger.info(
        "tag_created",
        tag_id=tag.id,
        name=tag.name,
        scope=tag.scope,
        status=tag.status,
        community_id=tag.community_id,
    )
    return tag


def ensure_tag_limit(count: int) -> None:
    if count > settings.max_tags_per_recipe:
        raise BadRequestError("TAG_003", f"Recipe cannot have more than {settings.max_tags_per_recipe} tags")


async def attach_tag_names(store: Store, recipe: Recipe, names: Sequence[str], actor_id: int) -> list[Tag]:
    ensure_tag_limit(len(names))
    tags: list[Tag] = []
    for name in names:
        tag = await resolve_tag(store, name, recipe.community_id, actor_id)
        await store.recipes.attach_tag(recipe.id, tag.id)
        tags.append(tag)
    return tags


def clean_tag_name(value: str) -> str:
    try:
        return normalize_tag_name(value)
    except ValueError as exc:
        raise BadRequestError("TAG_001", str(exc)) from exc
