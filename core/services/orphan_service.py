from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from core.services.proposal_service import reject_pending_proposal
from db.models import VariantReason
from db.repo import Store

logger = structlog.get_logger(__name__)


@dataclass(slots=True)
class OrphanReport:
    processed_recipes: int = 0
    auto_rejected_proposals: int = 0
    created_variants: list[int] = field(default_factory=list)


async def reconcile_orphans(store: Store, user_id: int, community_id: int, *, actor_id: int) -> OrphanReport:
    """Forge every pending proposal on ``user_id``'s recipes in the community into a variant.

    The departing owner can no longer decide them, so each proposal is rejected
    and its content handed to the proposer. Must run before the membership is
    removed, inside the same transaction.
    """
    recipes = await store.recipes.list_owned_in_community(user_id, community_id)
    report = OrphanReport(processed_recipes=len(recipes))
    by_id = {recipe.id: recipe for recipe in recipes}

    for proposal in await store.proposals.list_pending_for_recipes(list(by_id)):
        variant = await reject_pending_proposal(
            store,
            proposal,
            by_id[proposal.recipe_id],
            reason=VariantReason.ORPHAN_AUTO_REJECT,
            actor_id=actor_id,
        )
        report.auto_rejected_proposals += 1
        report.created_variants.append(variant.id)

    logger.info(
        "orphan_reconciled",
        user_id=user_id,
        community_id=community_id,
        processed_recipes=report.processed_recipes,
        auto_rejected_proposals=report.auto_rejected_proposals,
    )
    return report
