from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# MySQL DATETIME defaults to whole seconds; staleness checks compare sub-second edits.
Timestamp = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")


def utcnow() -> datetime:
    # Naive UTC keeps comparisons stable across backends that drop tzinfo (SQLite).
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MemberRole(StrEnum):
    MEMBER = "MEMBER"
    MODERATOR = "MODERATOR"


class InviteStatus(StrEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ProposalStatus(StrEnum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class TagScope(StrEnum):
    GLOBAL = "GLOBAL"
    COMMUNITY = "COMMUNITY"


class TagStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class SuggestionStatus(StrEnum):
    PENDING_OWNER = "PENDING_OWNER"
    PENDING_MODERATOR = "PENDING_MODERATOR"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


ACTIVE_SUGGESTION_STATUSES = (SuggestionStatus.PENDING_OWNER, SuggestionStatus.PENDING_MODERATOR)


class ActivityType(StrEnum):
    COMMUNITY_CREATED = "COMMUNITY_CREATED"
    COMMUNITY_DELETED = "COMMUNITY_DELETED"
    USER_INVITED = "USER_INVITED"
    USER_JOINED = "USER_JOINED"
    USER_LEFT = "USER_LEFT"
    USER_KICKED = "USER_KICKED"
    USER_PROMOTED = "USER_PROMOTED"
    RECIPE_CREATED = "RECIPE_CREATED"
    RECIPE_UPDATED = "RECIPE_UPDATED"
    RECIPE_DELETED = "RECIPE_DELETED"
    RECIPE_SHARED = "RECIPE_SHARED"
    VARIANT_PROPOSED = "VARIANT_PROPOSED"
    VARIANT_CREATED = "VARIANT_CREATED"
    PROPOSAL_ACCEPTED = "PROPOSAL_ACCEPTED"
    TAG_SUGGESTED = "TAG_SUGGESTED"
    TAG_SUGGESTION_ACCEPTED = "TAG_SUGGESTION_ACCEPTED"
    TAG_SUGGESTION_REJECTED = "TAG_SUGGESTION_REJECTED"
    TAG_APPROVED = "TAG_APPROVED"
    TAG_REJECTED = "TAG_REJECTED"


class VariantReason(StrEnum):
    PROPOSAL_REJECTED = "PROPOSAL_REJECTED"
    ORPHAN_AUTO_REJECT = "ORPHAN_AUTO_REJECT"


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow)


class Community(Base):
    __tablename__ = "communities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(Timestamp, nullable=True)


class CommunityMember(Base):
    __tablename__ = "community_members"
    __table_args__ = (Index("ix_community_members_community_user", "community_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    community_id: Mapped[int] = mapped_column(ForeignKey("communities.id", ondelete="CASCADE"))
    role: Mapped[str] = mapped_column(String(16), default=MemberRole.MEMBER)
    joined_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(Timestamp, nullable=True)


class CommunityInvite(Base):
    __tablename__ = "community_invites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    community_id: Mapped[int] = mapped_column(ForeignKey("communities.id", ondelete="CASCADE"), index=True)
    inviter_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    invitee_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    status: Mapped[str] = mapped_column(String(16), default=InviteStatus.PENDING)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow)
    responded_at: Mapped[datetime | None] = mapped_column(Timestamp, nullable=True)


class Recipe(Base):
    __tablename__ = "recipes"
    __table_args__ = (
        CheckConstraint(
            "community_id IS NOT NULL OR (NOT is_variant AND shared_from_community_id IS NULL)",
            name="ck_recipes_personal_copy_plain",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    steps: Mapped[list[str]] = mapped_column(JSON, default=list)
    servings: Mapped[int | None] = mapped_column(Integer, nullable=True)
    prep_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cook_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rest_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    creator_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    community_id: Mapped[int | None] = mapped_column(
        ForeignKey("communities.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    origin_recipe_id: Mapped[int | None] = mapped_column(
        ForeignKey("recipes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    is_variant: Mapped[bool] = mapped_column(Boolean, default=False)
    shared_from_community_id: Mapped[int | None] = mapped_column(
        ForeignKey("communities.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(Timestamp, nullable=True)

    @property
    def is_personal(self) -> bool:
        return self.community_id is None

    @property
    def last_activity_at(self) -> datetime:
        return max(self.created_at, self.updated_at)


class Ingredient(Base):
    __tablename__ = "ingredients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)


class RecipeIngredient(Base):
    __tablename__ = "recipe_ingredients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipe_id: Mapped[int] = mapped_column(ForeignKey("recipes.id", ondelete="CASCADE"), index=True)
    ingredient_id: Mapped[int] = mapped_column(ForeignKey("ingredients.id", ondelete="CASCADE"))
    quantity: Mapped[float | None] = mapped_column(Float, nullable=True)
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    order: Mapped[int] = mapped_column("position", Integer, default=0)

    ingredient: Mapped["Ingredient"] = relationship(lazy="joined")


class Tag(Base):
    __tablename__ = "tags"
    __table_args__ = (
        UniqueConstraint("name", "scope", "community_id", name="uq_tags_name_scope_community"),
        CheckConstraint(
            "(scope = 'GLOBAL' AND community_id IS NULL) OR (scope = 'COMMUNITY' AND community_id IS NOT NULL)",
            name="ck_tags_scope_community",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(50), index=True)
    scope: Mapped[str] = mapped_column(String(16), default=TagScope.GLOBAL)
    status: Mapped[str] = mapped_column(String(16), default=TagStatus.APPROVED)
    community_id: Mapped[int | None] = mapped_column(
        ForeignKey("communities.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow)


class RecipeTag(Base):
    __tablename__ = "recipe_tags"
    __table_args__ = (UniqueConstraint("recipe_id", "tag_id", name="uq_recipe_tags_recipe_tag"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipe_id: Mapped[int] = mapped_column(ForeignKey("recipes.id", ondelete="CASCADE"), index=True)
    tag_id: Mapped[int] = mapped_column(ForeignKey("tags.id", ondelete="CASCADE"), index=True)

    tag: Mapped["Tag"] = relationship(lazy="joined")


class RecipeUpdateProposal(Base):
    __tablename__ = "recipe_update_proposals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipe_id: Mapped[int] = mapped_column(ForeignKey("recipes.id", ondelete="CASCADE"), index=True)
    proposer_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    proposed_title: Mapped[str] = mapped_column(String(255))
    proposed_steps: Mapped[list[str]] = mapped_column(JSON, default=list)
    proposed_servings: Mapped[int | None] = mapped_column(Integer, nullable=True)
    proposed_prep_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    proposed_cook_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    proposed_rest_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # None means "leave ingredients untouched"; a list (even empty) replaces them.
    proposed_ingredients: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default=ProposalStatus.PENDING, index=True)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow)
    decided_at: Mapped[datetime | None] = mapped_column(Timestamp, nullable=True)


class TagSuggestion(Base):
    __tablename__ = "tag_suggestions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipe_id: Mapped[int] = mapped_column(ForeignKey("recipes.id", ondelete="CASCADE"), index=True)
    tag_name: Mapped[str] = mapped_column(String(50), index=True)
    suggested_by_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    status: Mapped[str] = mapped_column(String(24), default=SuggestionStatus.PENDING_OWNER)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow)
    decided_at: Mapped[datetime | None] = mapped_column(Timestamp, nullable=True)


class RecipeAnalytics(Base):
    __tablename__ = "recipe_analytics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recipe_id: Mapped[int] = mapped_column(ForeignKey("recipes.id", ondelete="CASCADE"), unique=True)
    shares: Mapped[int] = mapped_column(Integer, default=0)
    forks: Mapped[int] = mapped_column(Integer, default=0)


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(48), index=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    community_id: Mapped[int | None] = mapped_column(
        ForeignKey("communities.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    recipe_id: Mapped[int | None] = mapped_column(ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow)


class UserCommunityTagPreference(Base):
    __tablename__ = "user_community_tag_preferences"
    __table_args__ = (UniqueConstraint("user_id", "community_id", name="uq_tag_preferences_user_community"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    community_id: Mapped[int] = mapped_column(ForeignKey("communities.id", ondelete="CASCADE"))
    show_tags: Mapped[bool] = mapped_column(Boolean, default=True)
