"""Initial schema.

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 12:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None

TIMESTAMP = sa.DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("created_at", TIMESTAMP, nullable=False),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "communities",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", TIMESTAMP, nullable=False),
        sa.Column("deleted_at", TIMESTAMP, nullable=True),
    )

    op.create_table(
        "community_members",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("community_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("joined_at", TIMESTAMP, nullable=False),
        sa.Column("deleted_at", TIMESTAMP, nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["community_id"], ["communities.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_community_members_user_id", "community_members", ["user_id"], unique=False)
    op.create_index(
        "ix_community_members_community_user",
        "community_members",
        ["community_id", "user_id"],
        unique=False,
    )

    op.create_table(
        "community_invites",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("community_id", sa.Integer(), nullable=False),
        sa.Column("inviter_id", sa.Integer(), nullable=False),
        sa.Column("invitee_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", TIMESTAMP, nullable=False),
        sa.Column("responded_at", TIMESTAMP, nullable=True),
        sa.ForeignKeyConstraint(["community_id"], ["communities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["inviter_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["invitee_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_community_invites_community_id", "community_invites", ["community_id"], unique=False)
    op.create_index("ix_community_invites_invitee_id", "community_invites", ["invitee_id"], unique=False)

    op.create_table(
        "recipes",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("steps", sa.JSON(), nullable=False),
        sa.Column("servings", sa.Integer(), nullable=True),
        sa.Column("prep_time", sa.Integer(), nullable=True),
        sa.Column("cook_time", sa.Integer(), nullable=True),
        sa.Column("rest_time", sa.Integer(), nullable=True),
        sa.Column("creator_id", sa.Integer(), nullable=False),
        sa.Column("community_id", sa.Integer(), nullable=True),
        sa.Column("origin_recipe_id", sa.Integer(), nullable=True),
        sa.Column("is_variant", sa.Boolean(), nullable=False),
        sa.Column("shared_from_community_id", sa.Integer(), nullable=True),
        sa.Column("created_at", TIMESTAMP, nullable=False),
        sa.Column("updated_at", TIMESTAMP, nullable=False),
        sa.Column("deleted_at", TIMESTAMP, nullable=True),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["community_id"], ["communities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["origin_recipe_id"], ["recipes.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["shared_from_community_id"], ["communities.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "community_id IS NOT NULL OR (NOT is_variant AND shared_from_community_id IS NULL)",
            name="ck_recipes_personal_copy_plain",
        ),
    )
    op.create_index("ix_recipes_creator_id", "recipes", ["creator_id"], unique=False)
    op.create_index("ix_recipes_community_id", "recipes", ["community_id"], unique=False)
    op.create_index("ix_recipes_origin_recipe_id", "recipes", ["origin_recipe_id"], unique=False)

    op.create_table(
        "ingredients",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
    )
    op.create_index("ix_ingredients_name", "ingredients", ["name"], unique=True)

    op.create_table(
        "recipe_ingredients",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("recipe_id", sa.Integer(), nullable=False),
        sa.Column("ingredient_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=True),
        sa.Column("unit", sa.String(length=32), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["ingredient_id"], ["ingredients.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_recipe_ingredients_recipe_id", "recipe_ingredients", ["recipe_id"], unique=False)

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("scope", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("community_id", sa.Integer(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", TIMESTAMP, nullable=False),
        sa.ForeignKeyConstraint(["community_id"], ["communities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("name", "scope", "community_id", name="uq_tags_name_scope_community"),
        sa.CheckConstraint(
            "(scope = 'GLOBAL' AND community_id IS NULL) OR (scope = 'COMMUNITY' AND community_id IS NOT NULL)",
            name="ck_tags_scope_community",
        ),
    )
    op.create_index("ix_tags_name", "tags", ["name"], unique=False)
    op.create_index("ix_tags_community_id", "tags", ["community_id"], unique=False)

    op.create_table(
        "recipe_tags",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("recipe_id", sa.Integer(), nullable=False),
        sa.Column("tag_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("recipe_id", "tag_id", name="uq_recipe_tags_recipe_tag"),
    )
    op.create_index("ix_recipe_tags_recipe_id", "recipe_tags", ["recipe_id"], unique=False)
    op.create_index("ix_recipe_tags_tag_id", "recipe_tags", ["tag_id"], unique=False)

    op.create_table(
        "recipe_update_proposals",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("recipe_id", sa.Integer(), nullable=False),
        sa.Column("proposer_id", sa.Integer(), nullable=False),
        sa.Column("proposed_title", sa.String(length=255), nullable=False),
        sa.Column("proposed_steps", sa.JSON(), nullable=False),
        sa.Column("proposed_servings", sa.Integer(), nullable=True),
        sa.Column("proposed_prep_time", sa.Integer(), nullable=True),
        sa.Column("proposed_cook_time", sa.Integer(), nullable=True),
        sa.Column("proposed_rest_time", sa.Integer(), nullable=True),
        sa.Column("proposed_ingredients", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", TIMESTAMP, nullable=False),
        sa.Column("decided_at", TIMESTAMP, nullable=True),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["proposer_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_recipe_update_proposals_recipe_id",
        "recipe_update_proposals",
        ["recipe_id"],
        unique=False,
    )
    op.create_index(
        "ix_recipe_update_proposals_proposer_id",
        "recipe_update_proposals",
        ["proposer_id"],
        unique=False,
    )
    op.create_index("ix_recipe_update_proposals_status", "recipe_update_proposals", ["status"], unique=False)

    op.create_table(
        "tag_suggestions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("recipe_id", sa.Integer(), nullable=False),
        sa.Column("tag_name", sa.String(length=50), nullable=False),
        sa.Column("suggested_by_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
        sa.Column("created_at", TIMESTAMP, nullable=False),
        sa.Column("decided_at", TIMESTAMP, nullable=True),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["suggested_by_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_tag_suggestions_recipe_id", "tag_suggestions", ["recipe_id"], unique=False)
    op.create_index("ix_tag_suggestions_tag_name", "tag_suggestions", ["tag_name"], unique=False)

    op.create_table(
        "recipe_analytics",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("recipe_id", sa.Integer(), nullable=False),
        sa.Column("shares", sa.Integer(), nullable=False),
        sa.Column("forks", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("recipe_id", name="uq_recipe_analytics_recipe_id"),
    )

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("type", sa.String(length=48), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("community_id", sa.Integer(), nullable=True),
        sa.Column("recipe_id", sa.Integer(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", TIMESTAMP, nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["community_id"], ["communities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["recipe_id"], ["recipes.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_activity_logs_type", "activity_logs", ["type"], unique=False)
    op.create_index("ix_activity_logs_community_id", "activity_logs", ["community_id"], unique=False)

    op.create_table(
        "user_community_tag_preferences",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("community_id", sa.Integer(), nullable=False),
        sa.Column("show_tags", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["community_id"], ["communities.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "community_id", name="uq_tag_preferences_user_community"),
    )
    op.create_index(
        "ix_user_community_tag_preferences_user_id",
        "user_community_tag_preferences",
        ["user_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_user_community_tag_preferences_user_id", table_name="user_community_tag_preferences")
    op.drop_table("user_community_tag_preferences")

    op.drop_index("ix_activity_logs_community_id", table_name="activity_logs")
    op.drop_index("ix_activity_logs_type", table_name="activity_logs")
    op.drop_table("activity_logs")

    op.drop_table("recipe_analytics")

    op.drop_index("ix_tag_suggestions_tag_name", table_name="tag_suggestions")
    op.drop_index("ix_tag_suggestions_recipe_id", table_name="tag_suggestions")
    op.drop_table("tag_suggestions")

    op.drop_index("ix_recipe_update_proposals_status", table_name="recipe_update_proposals")
    op.drop_index("ix_recipe_update_proposals_proposer_id", table_name="recipe_update_proposals")
    op.drop_index("ix_recipe_update_proposals_recipe_id", table_name="recipe_update_proposals")
    op.drop_table("recipe_update_proposals")

    op.drop_index("ix_recipe_tags_tag_id", table_name="recipe_tags")
    op.drop_index("ix_recipe_tags_recipe_id", table_name="recipe_tags")
    op.drop_table("recipe_tags")

    op.drop_index("ix_tags_community_id", table_name="tags")
    op.drop_index("ix_tags_name", table_name="tags")
    op.drop_table("tags")

    op.drop_index("ix_recipe_ingredients_recipe_id", table_name="recipe_ingredients")
    op.drop_table("recipe_ingredients")

    op.drop_index("ix_ingredients_name", table_name="ingredients")
    op.drop_table("ingredients")

    op.drop_index("ix_recipes_origin_recipe_id", table_name="recipes")
    op.drop_index("ix_recipes_community_id", table_name="recipes")
    op.drop_index("ix_recipes_creator_id", table_name="recipes")
    op.drop_table("recipes")

    op.drop_index("ix_community_invites_invitee_id", table_name="community_invites")
    op.drop_index("ix_community_invites_community_id", table_name="community_invites")
    op.drop_table("community_invites")

    op.drop_index("ix_community_members_community_user", table_name="community_members")
    op.drop_index("ix_community_members_user_id", table_name="community_members")
    op.drop_table("community_members")

    op.drop_table("communities")

    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
