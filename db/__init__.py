from db.models import (
    ActivityLog,
    Community,
    CommunityInvite,
    CommunityMember,
    Recipe,
    RecipeAnalytics,
    RecipeUpdateProposal,
    Tag,
    TagSuggestion,
    User,
    UserCommunityTagPreference,
)
from db.repo import IngredientRow, RecipeRepository, Store, TagWithUsage
from db.session import SessionFactory, build_engine, build_session_factory, engine, init_models

__all__ = [
    "ActivityLog",
    "Community",
    "CommunityInvite",
    "CommunityMember",
    "IngredientRow",
    "Recipe",
    "RecipeAnalytics",
    "RecipeRepository",
    "RecipeUpdateProposal",
    "SessionFactory",
    "Store",
    "Tag",
    "TagSuggestion",
    "TagWithUsage",
    "User",
    "UserCommunityTagPreference",
    "build_engine",
    "build_session_factory",
    "engine",
    "init_models",
]
