from schemas.community import CommunityDraft
from schemas.recipe import IngredientLine, ProposalDraft, RecipeChanges, RecipeDraft
from schemas.tag import normalize_tag_name, normalize_tag_names

__all__ = [
    "CommunityDraft",
    "IngredientLine",
    "ProposalDraft",
    "RecipeChanges",
    "RecipeDraft",
    "normalize_tag_name",
    "normalize_tag_names",
]
