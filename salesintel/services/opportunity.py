"""
Opportunity Scorer Service

Ranks cross-sell / upsell candidates for a client (or a prospect) from its
segment's adoption profile.

Scoring Rules:
1. A candidate is any product in the segment profile with
   adoption_rate >= threshold that the client is not using
   (zero cumulative revenue, i.e. not in products_used)
2. Priority is derived purely from adoption_rate:
   - >= 0.7 -> high
   - >= 0.5 -> medium
   - else   -> low
3. estimated_monthly_revenue is the segment's average revenue per adopter,
   an optimistic proxy rather than a forecast
4. Candidates are sorted by priority bucket, then adoption_rate descending.
   The sort is stable: exact ties keep the profile's catalog order.

Edge Cases:
- No profile for the segment (e.g. 'Unknown' absent from the map) -> []
- Threshold outside [0, 1] -> []
- A threshold of 0 returns every profiled product the client lacks
"""

from typing import Iterable, List, Optional

from salesintel.models.enums import Priority
from salesintel.models.schemas import (
    Client,
    OpportunitySummary,
    ProductAdoption,
    RecommendationCandidate,
    SegmentAdoptionProfile,
)


DEFAULT_ADOPTION_THRESHOLD: float = 0.4

HIGH_PRIORITY_MIN_RATE: float = 0.7
MEDIUM_PRIORITY_MIN_RATE: float = 0.5

# Adopters cited as evidence per candidate
SUPPORTING_CLIENTS_LIMIT: int = 5


def priority_for_rate(adoption_rate: float) -> Priority:
    if adoption_rate >= HIGH_PRIORITY_MIN_RATE:
        return Priority.HIGH
    elif adoption_rate >= MEDIUM_PRIORITY_MIN_RATE:
        return Priority.MEDIUM
    else:
        return Priority.LOW


def _reasoning(adoption: ProductAdoption, profile: SegmentAdoptionProfile) -> str:
    return (
        f"{round(adoption.adoption_rate * 100)}% of {profile.segment_name} clients "
        f"({adoption.adopter_count} of {profile.client_count}) use {adoption.product_name}, "
        f"averaging {adoption.avg_revenue_per_adopter:,.0f}/month per adopter"
    )


def _candidate(
    adoption: ProductAdoption,
    profile: SegmentAdoptionProfile,
    exclude_client: Optional[str] = None,
) -> RecommendationCandidate:
    supporting = [name for name in adoption.adopters if name != exclude_client]
    return RecommendationCandidate(
        product_name=adoption.product_name,
        priority=priority_for_rate(adoption.adoption_rate),
        adoption_rate=adoption.adoption_rate,
        reasoning=_reasoning(adoption, profile),
        estimated_monthly_revenue=adoption.avg_revenue_per_adopter,
        supporting_clients=supporting[:SUPPORTING_CLIENTS_LIMIT],
    )


def _rank(candidates: Iterable[RecommendationCandidate]) -> List[RecommendationCandidate]:
    return sorted(candidates, key=lambda c: (c.priority.rank, -c.adoption_rate))


def _valid_threshold(threshold: float) -> bool:
    return 0.0 <= threshold <= 1.0


def score_opportunities(
    client: Client,
    profile: Optional[SegmentAdoptionProfile],
    threshold: float = DEFAULT_ADOPTION_THRESHOLD,
) -> List[RecommendationCandidate]:
    """
    Rank the products a client's segment peers use but the client does not.

    Products the client already uses never appear, whatever their adoption
    rate.

    Args:
        client: The client being upsold
        profile: Adoption profile of the client's segment (None if absent)
        threshold: Minimum adoption rate for a product to be a candidate

    Returns:
        Candidates in priority-then-adoption-rate order
    """
    if profile is None or not _valid_threshold(threshold):
        return []

    candidates = [
        _candidate(adoption, profile, exclude_client=client.client_name)
        for name, adoption in profile.products.items()
        if adoption.adoption_rate >= threshold and name not in client.products_used
    ]
    return _rank(candidates)


def score_defaults(
    profile: Optional[SegmentAdoptionProfile],
    threshold: float = DEFAULT_ADOPTION_THRESHOLD,
) -> List[RecommendationCandidate]:
    """
    Candidates for a company with no usage history (a prospect).

    Args:
        profile: Adoption profile of the prospect's segment (None if absent)
        threshold: Minimum adoption rate for a product to be a candidate

    Returns:
        Candidates in priority-then-adoption-rate order
    """
    if profile is None or not _valid_threshold(threshold):
        return []

    candidates = [
        _candidate(adoption, profile)
        for adoption in profile.products.values()
        if adoption.adoption_rate >= threshold
    ]
    return _rank(candidates)


def summarize_opportunity(candidates: List[RecommendationCandidate]) -> OpportunitySummary:
    """Total revenue opportunity implied by a candidate list."""
    monthly = sum(c.estimated_monthly_revenue for c in candidates)
    return OpportunitySummary(
        candidate_count=len(candidates),
        high_priority_count=sum(1 for c in candidates if c.priority == Priority.HIGH),
        estimated_monthly_revenue=monthly,
        estimated_annual_revenue=monthly * 12,
    )
