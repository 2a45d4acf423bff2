from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Select, and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import (
    ACTIVE_SUGGESTION_STATUSES,
    ActivityLog,
    ActivityType,
    Community,
    CommunityInvite,
    CommunityMember,
    Ingredient,
    InviteStatus,
    MemberRole,
    ProposalStatus,
    Recipe,
    RecipeAnalytics,
    RecipeIngredient,
    RecipeTag,
    RecipeUpdateProposal,
    SuggestionStatus,
    Tag,
    TagScope,
    TagStatus,
    TagSuggestion,
    User,
    UserCommunityTagPreference,
)

PROPOSAL_ACTIVITY_TYPES = (
    ActivityType.VARIANT_PROPOSED,
    ActivityType.VARIANT_CREATED,
    ActivityType.PROPOSAL_ACCEPTED,
)


@dataclass(slots=True, frozen=True)
class IngredientRow:
    name: str
    quantity: float | None = None
    unit: str | None = None

    def as_payload(self) -> dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity, "unit": self.unit}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "IngredientRow":
        return cls(name=payload["name"], quantity=payload.get("quantity"), unit=payload.get("unit"))


@dataclass(slots=True)
class TagWithUsage:
    tag: Tag
    recipe_count: int


class UserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def ensure_user(self, username: str) -> User:
        user = await self.session.scalar(select(User).where(User.username == username))
        if user:
            return user

        user = User(username=username)
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_user(self, user_id: int) -> User | None:
        return await self.session.get(User, user_id)


class CommunityRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_community(self, name: str, description: str | None) -> Community:
        community = Community(name=name, description=description)
        self.session.add(community)
        await self.session.flush()
        return community

    async def get_community(self, community_id: int) -> Community | None:
        return await self.session.get(Community, community_id)

    async def get_membership(self, user_id: int, community_id: int) -> CommunityMember | None:
        return await self.session.scalar(
            select(CommunityMember).where(
                CommunityMember.user_id == user_id,
                CommunityMember.community_id == community_id,
                CommunityMember.deleted_at.is_(None),
            )
        )

    async def add_membership(self, user_id: int, community_id: int, role: MemberRole) -> CommunityMember:
        membership = CommunityMember(user_id=user_id, community_id=community_id, role=role)
        self.session.add(membership)
        await self.session.flush()
        return membership

    async def list_members(self, community_id: int) -> list[CommunityMember]:
        rows = await self.session.scalars(
            select(CommunityMember)
            .where(CommunityMember.community_id == community_id, CommunityMember.deleted_at.is_(None))
            .order_by(CommunityMember.joined_at.asc(), CommunityMember.id.asc())
        )
        return list(rows.all())

    async def count_members(self, community_id: int, role: MemberRole | None = None) -> int:
        query = select(func.count(CommunityMember.id)).where(
            CommunityMember.community_id == community_id,
            CommunityMember.deleted_at.is_(None),
        )
        if role is not None:
            query = query.where(CommunityMember.role == role)
        return int(await self.session.scalar(query) or 0)

    async def list_user_community_ids(self, user_id: int) -> list[int]:
        rows = await self.session.scalars(
            select(CommunityMember.community_id)
            .join(Community, Community.id == CommunityMember.community_id)
            .where(
                CommunityMember.user_id == user_id,
                CommunityMember.deleted_at.is_(None),
                Community.deleted_at.is_(None),
            )
        )
        return list(rows.all())

    async def list_user_communities(self, user_id: int) -> list[Community]:
        rows = await self.session.scalars(
            select(Community)
            .join(CommunityMember, CommunityMember.community_id == Community.id)
            .where(
                CommunityMember.user_id == user_id,
                CommunityMember.deleted_at.is_(None),
                Community.deleted_at.is_(None),
            )
            .order_by(Community.id.asc())
        )
        return list(rows.all())

    async def soft_delete_memberships(self, community_id: int, now: datetime) -> None:
        for membership in await self.list_members(community_id):
            membership.deleted_at = now
        await self.session.flush()

    async def add_invite(self, community_id: int, inviter_id: int, invitee_id: int) -> CommunityInvite:
        invite = CommunityInvite(community_id=community_id, inviter_id=inviter_id, invitee_id=invitee_id)
        self.session.add(invite)
        await self.session.flush()
        return invite

    async def get_invite(self, invite_id: int) -> CommunityInvite | None:
        return await self.session.get(CommunityInvite, invite_id)

    async def get_pending_invite(self, community_id: int, invitee_id: int) -> CommunityInvite | None:
        return await self.session.scalar(
            select(CommunityInvite).where(
                CommunityInvite.community_id == community_id,
                CommunityInvite.invitee_id == invitee_id,
                CommunityInvite.status == InviteStatus.PENDING,
            )
        )

    async def cancel_pending_invites(self, community_id: int, now: datetime) -> int:
        invites = await self.session.scalars(
            select(CommunityInvite).where(
                CommunityInvite.community_id == community_id,
                CommunityInvite.status == InviteStatus.PENDING,
            )
        )
        cancelled = 0
        for invite in invites.all():
            invite.status = InviteStatus.CANCELLED
            invite.responded_at = now
            cancelled += 1
        await self.session.flush()
        return cancelled


class RecipeRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_recipe(self, recipe: Recipe) -> Recipe:
        self.session.add(recipe)
        await self.session.flush()
        return recipe

    async def get_recipe(self, recipe_id: int, *, include_deleted: bool = False) -> Recipe | None:
        query = select(Recipe).where(Recipe.id == recipe_id)
        if not include_deleted:
            query = query.where(Recipe.deleted_at.is_(None))
        return await self.session.scalar(query)

    async def get_origin_id(self, recipe_id: int) -> int | None:
        return await self.session.scalar(select(Recipe.origin_recipe_id).where(Recipe.id == recipe_id))

    async def list_linked_copies(self, personal_recipe_id: int, *, exclude_id: int) -> list[Recipe]:
        rows = await self.session.scalars(
            select(Recipe)
            .where(
                Recipe.origin_recipe_id == personal_recipe_id,
                Recipe.id != exclude_id,
                Recipe.community_id.is_not(None),
                Recipe.deleted_at.is_(None),
                Recipe.is_variant.is_(False),
                Recipe.shared_from_community_id.is_(None),
            )
            .order_by(Recipe.id.asc())
        )
        return list(rows.all())

    async def list_variants(self, recipe_id: int, community_id: int | None) -> list[Recipe]:
        query = select(Recipe).where(
            Recipe.origin_recipe_id == recipe_id,
            Recipe.is_variant.is_(True),
            Recipe.deleted_at.is_(None),
        )
        if community_id is not None:
            query = query.where(Recipe.community_id == community_id)
        rows = await self.session.scalars(query)
        return list(rows.all())

    async def list_child_ids(self, parent_ids: Sequence[int]) -> list[tuple[int, int]]:
        if not parent_ids:
            return []
        rows = await self.session.execute(
            select(Recipe.id, Recipe.origin_recipe_id).where(
                Recipe.origin_recipe_id.in_(parent_ids),
                Recipe.deleted_at.is_(None),
            )
        )
        return [(child_id, parent_id) for child_id, parent_id in rows.all()]

    async def list_communities_of(self, recipe_ids: Iterable[int]) -> list[Community]:
        rows = await self.session.scalars(
            select(Community)
            .join(Recipe, Recipe.community_id == Community.id)
            .where(
                Recipe.id.in_(list(recipe_ids)),
                Recipe.deleted_at.is_(None),
                Community.deleted_at.is_(None),
            )
            .distinct()
            .order_by(Community.id.asc())
        )
        return list(rows.all())

    async def list_owned_in_community(self, user_id: int, community_id: int) -> list[Recipe]:
        rows = await self.session.scalars(
            select(Recipe)
            .where(
                Recipe.creator_id == user_id,
                Recipe.community_id == community_id,
                Recipe.deleted_at.is_(None),
            )
            .order_by(Recipe.id.asc())
        )
        return list(rows.all())

    async def list_owned_ids(self, user_id: int) -> list[int]:
        rows = await self.session.scalars(
            select(Recipe.id).where(Recipe.creator_id == user_id, Recipe.deleted_at.is_(None))
        )
        return list(rows.all())

    async def search(
        self,
        *,
        community_id: int | None,
        creator_id: int | None = None,
        title: str = "",
        tag_names: Sequence[str] = (),
        ingredient_names: Sequence[str] = (),
        limit: int,
        offset: int,
    ) -> tuple[list[Recipe], int]:
        """Live recipes of one community, or personal copies when ``community_id`` is None.

        Every tag and every ingredient named must be present on a recipe.
        """
        if community_id is None:
            query = select(Recipe).where(Recipe.community_id.is_(None))
        else:
            query = select(Recipe).where(Recipe.community_id == community_id)
        query = query.where(Recipe.deleted_at.is_(None))
        if creator_id is not None:
            query = query.where(Recipe.creator_id == creator_id)
        if title:
            query = query.where(func.lower(Recipe.title).contains(title.lower()))
        for name in tag_names:
            query = query.where(
                Recipe.id.in_(
                    select(RecipeTag.recipe_id).join(Tag, Tag.id == RecipeTag.tag_id).where(Tag.name == name)
                )
            )
        for name in ingredient_names:
            query = query.where(
                Recipe.id.in_(
                    select(RecipeIngredient.recipe_id)
                    .join(Ingredient, Ingredient.id == RecipeIngredient.ingredient_id)
                    .where(Ingredient.name == name)
                )
            )

        total = await self.session.scalar(select(func.count()).select_from(query.subquery()))
        rows = await self.session.scalars(
            query.order_by(Recipe.updated_at.desc(), Recipe.id.desc()).offset(offset).limit(limit)
        )
        return list(rows.all()), int(total or 0)

    async def find_share(self, source_recipe_id: int, community_id: int) -> Recipe | None:
        return await self.session.scalar(
            select(Recipe).where(
                Recipe.origin_recipe_id == source_recipe_id,
                Recipe.community_id == community_id,
                Recipe.shared_from_community_id.is_not(None),
                Recipe.deleted_at.is_(None),
            )
        )

    async def soft_delete_community_recipes(self, community_id: int, now: datetime) -> int:
        recipes = await self.session.scalars(
            select(Recipe).where(Recipe.community_id == community_id, Recipe.deleted_at.is_(None))
        )
        deleted = 0
        for recipe in recipes.all():
            recipe.deleted_at = now
            deleted += 1
        await self.session.flush()
        return deleted

    async def ensure_ingredient(self, name: str) -> Ingredient:
        ingredient = await self.session.scalar(select(Ingredient).where(Ingredient.name == name))
        if ingredient:
            return ingredient

        ingredient = Ingredient(name=name)
        self.session.add(ingredient)
        await self.session.flush()
        return ingredient

    async def list_ingredients(self, recipe_id: int) -> list[RecipeIngredient]:
        rows = await self.session.scalars(
            select(RecipeIngredient)
            .where(RecipeIngredient.recipe_id == recipe_id)
            .order_by(RecipeIngredient.order.asc(), RecipeIngredient.id.asc())
        )
        return list(rows.all())

    async def list_ingredient_rows(self, recipe_id: int) -> list[IngredientRow]:
        return [
            IngredientRow(name=item.ingredient.name, quantity=item.quantity, unit=item.unit)
            for item in await self.list_ingredients(recipe_id)
        ]

    async def replace_ingredients(self, recipe_id: int, rows: Sequence[IngredientRow]) -> None:
        await self.session.execute(delete(RecipeIngredient).where(RecipeIngredient.recipe_id == recipe_id))
        for position, row in enumerate(rows):
            ingredient = await self.ensure_ingredient(row.name)
            self.session.add(
                RecipeIngredient(
                    recipe_id=recipe_id,
                    ingredient_id=ingredient.id,
                    ingredient=ingredient,
                    quantity=row.quantity,
                    unit=row.unit,
                    order=position,
                )
            )
        await self.session.flush()

    async def copy_ingredients(self, source_recipe_id: int, target_recipe_id: int) -> None:
        for item in await self.list_ingredients(source_recipe_id):
            self.session.add(
                RecipeIngredient(
                    recipe_id=target_recipe_id,
                    ingredient_id=item.ingredient_id,
                    ingredient=item.ingredient,
                    quantity=item.quantity,
                    unit=item.unit,
                    order=item.order,
                )
            )
        await self.session.flush()

    async def list_tags(self, recipe_id: int) -> list[Tag]:
        rows = await self.session.scalars(
            select(Tag)
            .join(RecipeTag, RecipeTag.tag_id == Tag.id)
            .where(RecipeTag.recipe_id == recipe_id)
            .order_by(Tag.name.asc())
        )
        return list(rows.all())

    async def count_tags(self, recipe_id: int) -> int:
        return int(
            await self.session.scalar(select(func.count(RecipeTag.id)).where(RecipeTag.recipe_id == recipe_id))
            or 0
        )

    async def attach_tag(self, recipe_id: int, tag_id: int) -> bool:
        existing = await self.session.scalar(
            select(RecipeTag.id).where(RecipeTag.recipe_id == recipe_id, RecipeTag.tag_id == tag_id)
        )
        if existing:
            return False
        self.session.add(RecipeTag(recipe_id=recipe_id, tag_id=tag_id))
        await self.session.flush()
        return True

    async def get_analytics(self, recipe_id: int) -> RecipeAnalytics | None:
        return await self.session.scalar(select(RecipeAnalytics).where(RecipeAnalytics.recipe_id == recipe_id))

    async def bump_share_counters(self, recipe_id: int) -> RecipeAnalytics:
        analytics = await self.get_analytics(recipe_id)
        if analytics is None:
            analytics = RecipeAnalytics(recipe_id=recipe_id, shares=0, forks=0)
            self.session.add(analytics)
        analytics.shares += 1
        analytics.forks += 1
        await self.session.flush()
        return analytics


class TagRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_tag(self, tag_id: int) -> Tag | None:
        return await self.session.get(Tag, tag_id)

    async def find_candidates(self, name: str, community_id: int | None) -> list[Tag]:
        scope_filter = and_(Tag.scope == TagScope.GLOBAL, Tag.community_id.is_(None))
        if community_id is not None:
            scope_filter = or_(
                scope_filter,
                and_(Tag.scope == TagScope.COMMUNITY, Tag.community_id == community_id),
            )
        rows = await self.session.scalars(select(Tag).where(Tag.name == name, scope_filter).order_by(Tag.id.asc()))
        return list(rows.all())

    async def find_in_community(self, name: str, community_id: int, *, exclude_id: int | None = None) -> Tag | None:
        query = select(Tag).where(
            Tag.name == name,
            Tag.scope == TagScope.COMMUNITY,
            Tag.community_id == community_id,
        )
        if exclude_id is not None:
            query = query.where(Tag.id != exclude_id)
        return await self.session.scalar(query)

    async def find_global(self, name: str) -> Tag | None:
        return await self.session.scalar(
            select(Tag).where(Tag.name == name, Tag.scope == TagScope.GLOBAL, Tag.community_id.is_(None))
        )

    async def count_community_tags(self, community_id: int) -> int:
        return int(
            await self.session.scalar(
                select(func.count(Tag.id)).where(
                    Tag.community_id == community_id,
                    Tag.scope == TagScope.COMMUNITY,
                )
            )
            or 0
        )

    async def add_tag(
        self,
        name: str,
        scope: TagScope,
        status: TagStatus,
        community_id: int | None,
        created_by_id: int | None,
    ) -> Tag:
        tag = Tag(
            name=name,
            scope=scope,
            status=status,
            community_id=community_id,
            created_by_id=created_by_id,
        )
        self.session.add(tag)
        await self.session.flush()
        return tag

    async def approve(self, tag_id: int) -> bool:
        result = await self.session.execute(
            update(Tag).where(Tag.id == tag_id, Tag.status == TagStatus.PENDING).values(status=TagStatus.APPROVED)
        )
        return result.rowcount == 1

    async def delete_tag(self, tag: Tag) -> int:
        detached = await self.session.execute(delete(RecipeTag).where(RecipeTag.tag_id == tag.id))
        await self.session.delete(tag)
        await self.session.flush()
        return detached.rowcount or 0

    async def list_community_tags(self, community_id: int, status: TagStatus | None = None) -> list[TagWithUsage]:
        recipe_count = func.count(RecipeTag.id).label("recipe_count")
        query = (
            select(Tag, recipe_count)
            .outerjoin(RecipeTag, RecipeTag.tag_id == Tag.id)
            .where(Tag.community_id == community_id, Tag.scope == TagScope.COMMUNITY)
            .group_by(Tag.id)
            .order_by(Tag.name.asc())
        )
        if status is not None:
            query = query.where(Tag.status == status)
        rows = await self.session.execute(query)
        return [TagWithUsage(tag=tag, recipe_count=int(count or 0)) for tag, count in rows.all()]

    async def autocomplete(self, community_ids: Sequence[int], search: str, limit: int) -> list[Tag]:
        scope_filter = and_(Tag.scope == TagScope.GLOBAL, Tag.community_id.is_(None))
        if community_ids:
            scope_filter = or_(
                scope_filter,
                and_(Tag.scope == TagScope.COMMUNITY, Tag.community_id.in_(list(community_ids))),
            )
        query = select(Tag).where(Tag.status == TagStatus.APPROVED, scope_filter)
        if search:
            query = query.where(Tag.name.contains(search.strip().lower()))
        rows = await self.session.scalars(query.order_by(Tag.name.asc()).limit(limit))
        return list(rows.all())


class ProposalRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_proposal(self, proposal: RecipeUpdateProposal) -> RecipeUpdateProposal:
        self.session.add(proposal)
        await self.session.flush()
        return proposal

    async def get_proposal(self, proposal_id: int) -> RecipeUpdateProposal | None:
        return await self.session.get(RecipeUpdateProposal, proposal_id)

    def _for_recipe_query(self, recipe_id: int, status: ProposalStatus | None) -> Select[tuple[RecipeUpdateProposal]]:
        query = select(RecipeUpdateProposal).where(RecipeUpdateProposal.recipe_id == recipe_id)
        if status is not None:
            query = query.where(RecipeUpdateProposal.status == status)
        return query

    async def list_for_recipe(
        self,
        recipe_id: int,
        status: ProposalStatus | None,
        limit: int,
        offset: int,
    ) -> tuple[list[RecipeUpdateProposal], int]:
        query = self._for_recipe_query(recipe_id, status)
        total = await self.session.scalar(select(func.count()).select_from(query.subquery()))
        rows = await self.session.scalars(
            query.order_by(RecipeUpdateProposal.created_at.desc(), RecipeUpdateProposal.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(rows.all()), int(total or 0)

    async def list_pending_for_recipes(self, recipe_ids: Sequence[int]) -> list[RecipeUpdateProposal]:
        if not recipe_ids:
            return []
        rows = await self.session.scalars(
            select(RecipeUpdateProposal)
            .where(
                RecipeUpdateProposal.recipe_id.in_(list(recipe_ids)),
                RecipeUpdateProposal.status == ProposalStatus.PENDING,
            )
            .order_by(RecipeUpdateProposal.id.asc())
        )
        return list(rows.all())

    async def decide(self, proposal_id: int, status: ProposalStatus, decided_at: datetime) -> bool:
        result = await self.session.execute(
            update(RecipeUpdateProposal)
            .where(
                RecipeUpdateProposal.id == proposal_id,
                RecipeUpdateProposal.status == ProposalStatus.PENDING,
            )
            .values(status=status, decided_at=decided_at)
        )
        return result.rowcount == 1


class SuggestionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add_suggestion(self, recipe_id: int, tag_name: str, suggested_by_id: int) -> TagSuggestion:
        suggestion = TagSuggestion(recipe_id=recipe_id, tag_name=tag_name, suggested_by_id=suggested_by_id)
        self.session.add(suggestion)
        await self.session.flush()
        return suggestion

    async def get_suggestion(self, suggestion_id: int) -> TagSuggestion | None:
        return await self.session.get(TagSuggestion, suggestion_id)

    async def find_active(self, recipe_id: int, tag_name: str) -> TagSuggestion | None:
        return await self.session.scalar(
            select(TagSuggestion).where(
                TagSuggestion.recipe_id == recipe_id,
                TagSuggestion.tag_name == tag_name,
                TagSuggestion.status.in_(ACTIVE_SUGGESTION_STATUSES),
            )
        )

    async def list_for_recipe(
        self,
        recipe_id: int,
        status: SuggestionStatus | None,
        limit: int,
        offset: int,
    ) -> tuple[list[TagSuggestion], int]:
        query = select(TagSuggestion).where(TagSuggestion.recipe_id == recipe_id)
        if status is not None:
            query = query.where(TagSuggestion.status == status)
        total = await self.session.scalar(select(func.count()).select_from(query.subquery()))
        rows = await self.session.scalars(
            query.order_by(TagSuggestion.created_at.desc(), TagSuggestion.id.desc()).offset(offset).limit(limit)
        )
        return list(rows.all()), int(total or 0)

    async def list_awaiting_moderator(self, community_id: int, tag_name: str) -> list[TagSuggestion]:
        rows = await self.session.scalars(
            select(TagSuggestion)
            .join(Recipe, Recipe.id == TagSuggestion.recipe_id)
            .where(
                Recipe.community_id == community_id,
                TagSuggestion.tag_name == tag_name,
                TagSuggestion.status == SuggestionStatus.PENDING_MODERATOR,
            )
            .order_by(TagSuggestion.id.asc())
        )
        return list(rows.all())

    async def decide(
        self,
        suggestion_id: int,
        expected: SuggestionStatus,
        status: SuggestionStatus,
        decided_at: datetime | None,
    ) -> bool:
        result = await self.session.execute(
            update(TagSuggestion)
            .where(TagSuggestion.id == suggestion_id, TagSuggestion.status == expected)
            .values(status=status, decided_at=decided_at)
        )
        return result.rowcount == 1


class ActivityRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record(
        self,
        activity_type: str,
        *,
        user_id: int | None,
        community_id: int | None,
        recipe_id: int | None = None,
        payload: dict[str, Any] | None = None,
    ) -> ActivityLog:
        entry = ActivityLog(
            type=activity_type,
            user_id=user_id,
            community_id=community_id,
            recipe_id=recipe_id,
            payload=payload or {},
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_entries(
        self,
        *,
        community_id: int | None = None,
        recipe_id: int | None = None,
        activity_type: str | None = None,
    ) -> list[ActivityLog]:
        query = select(ActivityLog)
        if community_id is not None:
            query = query.where(ActivityLog.community_id == community_id)
        if recipe_id is not None:
            query = query.where(ActivityLog.recipe_id == recipe_id)
        if activity_type is not None:
            query = query.where(ActivityLog.type == activity_type)
        rows = await self.session.scalars(query.order_by(ActivityLog.id.asc()))
        return list(rows.all())

    async def _page(self, query: Select[tuple[ActivityLog]], limit: int, offset: int) -> tuple[list[ActivityLog], int]:
        total = await self.session.scalar(select(func.count()).select_from(query.subquery()))
        rows = await self.session.scalars(
            query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).offset(offset).limit(limit)
        )
        return list(rows.all()), int(total or 0)

    async def list_for_community(self, community_id: int, limit: int, offset: int) -> tuple[list[ActivityLog], int]:
        return await self._page(select(ActivityLog).where(ActivityLog.community_id == community_id), limit, offset)

    async def list_for_user(
        self,
        user_id: int,
        owned_recipe_ids: Sequence[int],
        limit: int,
        offset: int,
    ) -> tuple[list[ActivityLog], int]:
        """The user's own actions plus what others did to the user's recipes through proposals."""
        relevant = ActivityLog.user_id == user_id
        if owned_recipe_ids:
            relevant = or_(
                relevant,
                and_(
                    ActivityLog.recipe_id.in_(list(owned_recipe_ids)),
                    ActivityLog.type.in_(PROPOSAL_ACTIVITY_TYPES),
                    or_(ActivityLog.user_id.is_(None), ActivityLog.user_id != user_id),
                ),
            )
        return await self._page(select(ActivityLog).where(relevant), limit, offset)


class PreferenceRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_hidden_community_ids(self, user_id: int) -> set[int]:
        rows = await self.session.scalars(
            select(UserCommunityTagPreference.community_id).where(
                UserCommunityTagPreference.user_id == user_id,
                UserCommunityTagPreference.show_tags.is_(False),
            )
        )
        return set(rows.all())

    async def upsert(self, user_id: int, community_id: int, show_tags: bool) -> UserCommunityTagPreference:
        preference = await self.session.scalar(
            select(UserCommunityTagPreference).where(
                UserCommunityTagPreference.user_id == user_id,
                UserCommunityTagPreference.community_id == community_id,
            )
        )
        if preference is None:
            preference = UserCommunityTagPreference(user_id=user_id, community_id=community_id)
            self.session.add(preference)
        preference.show_tags = show_tags
        await self.session.flush()
        return preference


@dataclass(slots=True)
class Store:
    session: AsyncSession
    users: UserRepository
    communities: CommunityRepository
    recipes: RecipeRepository
    tags: TagRepository
    proposals: ProposalRepository
    suggestions: SuggestionRepository
    activity: ActivityRepository
    preferences: PreferenceRepository

    @classmethod
    def for_session(cls, session: AsyncSession) -> "Store":
        return cls(
            session=session,
            users=UserRepository(session),
            communities=CommunityRepository(session),
            recipes=RecipeRepository(session),
            tags=TagRepository(session),
            proposals=ProposalRepository(session),
            suggestions=SuggestionRepository(session),
            activity=ActivityRepository(session),
            preferences=PreferenceRepository(session),
        )
