from core.services.activity_service import ActivityService
from core.services.cascade_service import CascadeResult, cascade_accepted_changes
from core.services.membership_service import MembershipChange, MembershipService
from core.services.orphan_service import OrphanReport, reconcile_orphans
from core.services.proposal_service import ProposalDecision, ProposalRejection, ProposalService
from core.services.recipe_service import AuthoredRecipe, RecipeDetails, RecipeService, RecipeSummary
from core.services.share_service import ShareResult, ShareService, credit_lineage
from core.services.suggestion_service import SuggestionDecision, TagSuggestionService
from core.services.tag_resolution import Created, Reused, decide_tag_resolution, resolve_tag
from core.services.tag_service import TagDecision, TagPreference, TagService
from core.services.variant_service import VariantService, forge_variant

__all__ = [
    "ActivityService",
    "AuthoredRecipe",
    "CascadeResult",
    "Created",
    "MembershipChange",
    "MembershipService",
    "OrphanReport",
    "ProposalDecision",
    "ProposalRejection",
    "ProposalService",
    "RecipeDetails",
    "RecipeService",
    "RecipeSummary",
    "Reused",
    "ShareResult",
    "ShareService",
    "SuggestionDecision",
    "TagDecision",
    "TagPreference",
    "TagService",
    "TagSuggestionService",
    "VariantService",
    "cascade_accepted_changes",
    "credit_lineage",
    "decide_tag_resolution",
    "forge_variant",
    "reconcile_orphans",
    "resolve_tag",
]
