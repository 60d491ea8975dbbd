"""
Prospect Profiler Service

Builds a synthetic recommendation set for a company that is not yet a client,
purely from segment-level statistics.

Segment Identification:
1. If the caller's text names a known segment (case-insensitive), use it
2. Otherwise evaluate SEGMENT_KEYWORD_RULES in order; the first rule with a
   keyword appearing in the text wins
   - the rule's first candidate segment present in the adoption map is used,
     else its first candidate
3. No rule matches -> the configured default segment

Keywords match whole words, plurals included, so 'loan' matches
"payday loans" but 'sim' does not match "similar".

Outputs:
- ideal_customer_profile: derived from the segment's adoption profile
- recommendations: Opportunity Scorer default path (score_defaults); for a
  segment with no clients in the book, the rule's typical products as
  low-priority candidates
- estimated_monthly_opportunity: sum of candidate revenue x size multiplier
- fit_score: 0-100 heuristic from segment depth, size and geography
"""

import logging
import re
from typing import Dict, List, NamedTuple, Optional, Tuple

from salesintel.models.enums import Priority, ProspectSize, SegmentSource
from salesintel.models.schemas import (
    ProspectProfile,
    RecommendationCandidate,
    SegmentAdoptionProfile,
    SegmentOption,
)
from salesintel.services.adoption import find_segment, ideal_customer_profile
from salesintel.services.opportunity import DEFAULT_ADOPTION_THRESHOLD, score_defaults

logger = logging.getLogger(__name__)


DEFAULT_PROSPECT_SEGMENT: str = 'Fintech'


class SegmentRule(NamedTuple):
    """
    Keyword rule mapping free text to a segment.

    critical_products / common_products are the segment's typical needs,
    used only when the book has no clients in the chosen segment.
    """
    keywords: Tuple[str, ...]
    segments: Tuple[str, ...]
    critical_products: Tuple[str, ...] = ()
    common_products: Tuple[str, ...] = ()


# Ordered; first matching rule wins
SEGMENT_KEYWORD_RULES: List[SegmentRule] = [
    SegmentRule(
        ('nbfc', 'lending', 'lender', 'loan', 'microfinance', 'credit', 'finance company', 'bnpl'),
        ('Lending', 'Digital Lenders', 'NBFC'),
        ('Aadhaar OKYC with OTP', 'PAN Verification', 'Bank Account Verification', 'CKYC Search & Download'),
        ('Face Match', 'Selfie Validation', 'AML Search', 'Credit Bureau'),
    ),
    SegmentRule(
        ('payment', 'psp', 'wallet', 'upi', 'payment gateway'),
        ('Payment Service Provider', 'Payments'),
        ('Bank Account Verification', 'Aadhaar OKYC with OTP', 'PAN Verification'),
        ('Selfie Validation', 'Liveness Check', 'AML Search'),
    ),
    SegmentRule(
        ('insurance', 'insurer', 'insurtech'),
        ('Insurance',),
        ('Aadhaar OKYC with OTP', 'PAN Verification', 'Face Match', 'Selfie Validation'),
        ('Document OCR', 'Bank Account Verification', 'CKYC Search & Download'),
    ),
    SegmentRule(
        ('brokerage', 'broker', 'stock', 'trading', 'securities', 'demat'),
        ('Brokerage',),
        ('PAN Verification', 'Bank Account Verification', 'CKYC Search & Download', 'Aadhaar OKYC with OTP'),
        ('AML Search', 'Face Match', 'Document OCR'),
    ),
    SegmentRule(
        ('wealth', 'asset management', 'portfolio', 'investment advisory', 'pms'),
        ('Wealth Management',),
        ('AML Search', 'PAN Verification', 'Bank Account Verification', 'CKYC Search & Download'),
        ('Aadhaar OKYC with OTP', 'Face Match', 'Company Verification'),
    ),
    SegmentRule(
        ('gig', 'delivery', 'ride', 'freelance', 'workforce', 'driver'),
        ('Gig Economy', 'Gig economy'),
        ('Selfie Validation', 'Liveness Check', 'Aadhaar OKYC with OTP'),
        ('DL Verification', 'RC Verification', 'Bank Account Verification'),
    ),
    SegmentRule(
        ('ecommerce', 'e-commerce', 'marketplace', 'online retail', 'seller', 'd2c'),
        ('E-commerce',),
        ('Selfie Validation', 'Bank Account Verification', 'GST Verification'),
        ('Aadhaar OKYC with OTP', 'PAN Verification', 'Address Verification'),
    ),
    SegmentRule(
        ('gaming', 'fantasy', 'esports', 'real money gaming', 'casino'),
        ('Gaming',),
        ('Aadhaar OKYC with OTP', 'PAN Verification', 'Bank Account Verification'),
        ('Selfie Validation', 'Face Match', 'AML Search'),
    ),
    SegmentRule(
        ('telecom', 'mobile', 'sim', 'connectivity', 'network operator'),
        ('Telecom',),
        ('Aadhaar OKYC with OTP', 'Selfie Validation', 'Liveness Check'),
        ('PAN Verification', 'Document OCR', 'Address Verification'),
    ),
    SegmentRule(
        ('healthcare', 'hospital', 'clinic', 'healthtech', 'medical', 'pharma'),
        ('Healthcare',),
        ('Aadhaar OKYC with OTP', 'Face Match', 'Document OCR'),
        ('PAN Verification', 'Bank Account Verification'),
    ),
    SegmentRule(
        ('bank', 'banking'),
        ('Banking',),
        ('Aadhaar OKYC with OTP', 'PAN Verification', 'CKYC Search & Download', 'Bank Account Verification'),
        ('Face Match', 'AML Search', 'Document OCR'),
    ),
    SegmentRule(
        ('crypto', 'bitcoin', 'blockchain', 'web3'),
        ('Crypto',),
        ('PAN Verification', 'Aadhaar OKYC with OTP', 'AML Search'),
        ('Bank Account Verification', 'Selfie Validation', 'Liveness Check'),
    ),
    SegmentRule(
        ('fintech',),
        ('Fintech',),
        ('PAN Verification', 'Aadhaar OKYC with OTP', 'Bank Account Verification'),
        ('Selfie Validation', 'Face Match', 'AML Search'),
    ),
]

# Monthly revenue of a typical large adopter, for segments without peers
BASE_PRODUCT_REVENUE: Dict[str, float] = {
    'Selfie Validation': 5000,
    'Liveness Check': 3000,
    'Aadhaar OKYC with OTP': 4000,
    'PAN Verification': 2000,
    'Bank Account Verification': 3500,
    'Face Match': 2500,
    'AML Search': 1500,
    'CKYC Search & Download': 2000,
    'Document OCR': 1800,
}
DEFAULT_PRODUCT_REVENUE: float = 2000

# Scales the segment's per-adopter revenue to the prospect's size
SIZE_MULTIPLIERS: Dict[ProspectSize, float] = {
    ProspectSize.SMALL: 0.2,
    ProspectSize.MEDIUM: 0.5,
    ProspectSize.LARGE: 1.0,
    ProspectSize.ENTERPRISE: 2.5,
}

FIT_BASE_SCORE: int = 50

SIZE_FIT_BONUS: Dict[ProspectSize, int] = {
    ProspectSize.SMALL: 5,
    ProspectSize.MEDIUM: 15,
    ProspectSize.LARGE: 15,
    ProspectSize.ENTERPRISE: 10,
}

SOUTH_EAST_ASIA_MARKERS: Tuple[str, ...] = ('asean', 'sea', 'south-east asia', 'southeast asia', 'vietnam', 'indonesia')


# =============================================================================
# Segment Identification
# =============================================================================


def _mentions(text: str, keyword: str) -> bool:
    return re.search(r'\b' + re.escape(keyword) + r'(?:s|es)?\b', text) is not None


def _rule_segment(rule: SegmentRule, adoption: Dict[str, SegmentAdoptionProfile]) -> str:
    """The rule's first candidate segment present in the book, else its first candidate."""
    for candidate in rule.segments:
        present = find_segment(adoption, candidate)
        if present is not None:
            return present
    return rule.segments[0]


def identify_segment(
    segment_or_description: Optional[str],
    adoption: Dict[str, SegmentAdoptionProfile],
    default_segment: str = DEFAULT_PROSPECT_SEGMENT,
) -> Tuple[str, SegmentSource]:
    """
    Map a segment tag or free-text description to a segment name.

    Example:
        >>> identify_segment("we do payday loans", {"Lending": profile})
        ('Lending', <SegmentSource.KEYWORD: 'keyword'>)

    Returns:
        (segment name, where it came from)
    """
    known = find_segment(adoption, segment_or_description)
    if known is not None:
        return known, SegmentSource.SUPPLIED

    text = ' '.join((segment_or_description or '').lower().split())
    if text:
        for rule in SEGMENT_KEYWORD_RULES:
            if any(_mentions(text, kw) for kw in rule.keywords):
                return _rule_segment(rule, adoption), SegmentSource.KEYWORD

    logger.debug(f"No segment rule matched {segment_or_description!r}; using {default_segment}")
    return find_segment(adoption, default_segment) or default_segment, SegmentSource.DEFAULT


def rule_for_segment(segment: Optional[str]) -> Optional[SegmentRule]:
    """The keyword rule naming `segment` among its segments (case-insensitive)."""
    wanted = ' '.join((segment or '').split()).lower()
    for rule in SEGMENT_KEYWORD_RULES:
        if any(' '.join(s.split()).lower() == wanted for s in rule.segments):
            return rule
    return None


def segment_needs_candidates(segment: Optional[str]) -> List[RecommendationCandidate]:
    """
    Low-priority candidates from a segment's typical products, for a segment
    with no clients in the book.

    Critical products come first, then common ones. adoption_rate is 0 and
    there are no supporting clients; estimated_monthly_revenue is the base
    estimate for a large adopter.
    """
    rule = rule_for_segment(segment)
    if rule is None:
        return []

    candidates = []
    for products, label in (
        (rule.critical_products, 'Critical for'),
        (rule.common_products, 'Commonly used by'),
    ):
        for product_name in products:
            candidates.append(RecommendationCandidate(
                product_name=product_name,
                priority=Priority.LOW,
                adoption_rate=0.0,
                reasoning=f"{label} {segment} companies; no {segment} clients in the book yet",
                estimated_monthly_revenue=BASE_PRODUCT_REVENUE.get(product_name, DEFAULT_PRODUCT_REVENUE),
            ))
    return candidates


def segment_options(adoption: Dict[str, SegmentAdoptionProfile]) -> List[SegmentOption]:
    """
    Segments a prospect can be profiled as.

    One option per keyword rule, in rule order, named as identify_segment
    would name it against this book, then any book segment not yet listed.
    """
    options: Dict[str, SegmentOption] = {}
    for rule in SEGMENT_KEYWORD_RULES:
        segment = _rule_segment(rule, adoption)
        if segment in options:
            continue
        profile = adoption.get(segment)
        options[segment] = SegmentOption(
            segment=segment,
            client_count=profile.client_count if profile is not None else 0,
            keywords=list(rule.keywords),
            critical_products=list(rule.critical_products),
        )
    for segment, profile in adoption.items():
        if segment not in options:
            options[segment] = SegmentOption(segment=segment, client_count=profile.client_count)
    return list(options.values())


# =============================================================================
# Scoring
# =============================================================================


def estimate_monthly_opportunity(
    recommendations: List[RecommendationCandidate],
    size: ProspectSize,
) -> float:
    monthly = sum(c.estimated_monthly_revenue for c in recommendations)
    return round(monthly * SIZE_MULTIPLIERS[size], 2)


def _geography_bonus(geography: Optional[str]) -> int:
    geo = (geography or '').strip().lower()
    if geo == 'india':
        return 15
    if geo in SOUTH_EAST_ASIA_MARKERS or any(_mentions(geo, m) for m in SOUTH_EAST_ASIA_MARKERS):
        return 10
    return 5


def fit_score(
    profile: Optional[SegmentAdoptionProfile],
    size: ProspectSize,
    geography: Optional[str],
) -> int:
    """
    Heuristic 0-100 fit of a prospect.

    Base 50; +20 if the segment has more than 10 clients (+10 if more than 5);
    size bonus; geography bonus (India highest, then South-East Asia).
    """
    score = FIT_BASE_SCORE
    client_count = profile.client_count if profile is not None else 0
    if client_count > 10:
        score += 20
    elif client_count > 5:
        score += 10

    score += SIZE_FIT_BONUS[size]
    score += _geography_bonus(geography)
    return min(100, score)


# =============================================================================
# Profiling
# =============================================================================


def profile_prospect(
    segment_or_description: Optional[str],
    size: ProspectSize,
    geography: Optional[str],
    adoption: Dict[str, SegmentAdoptionProfile],
    threshold: float = DEFAULT_ADOPTION_THRESHOLD,
    default_segment: str = DEFAULT_PROSPECT_SEGMENT,
    company_name: Optional[str] = None,
) -> ProspectProfile:
    """
    Profile a prospect from its segment's peers.

    Never raises for an unknown or empty segment. When the chosen segment has
    no adoption profile, the segment's typical products from its keyword rule
    are returned as low-priority candidates instead; a segment no rule knows
    gets none.

    Args:
        segment_or_description: Segment tag or free-text description
        size: Estimated company size
        geography: Primary geography of the prospect
        adoption: Segment adoption map for the current snapshot
        threshold: Minimum adoption rate for a recommendation
        default_segment: Used when no keyword rule matches
        company_name: Display name of the prospect, if known

    Returns:
        ProspectProfile
    """
    segment, source = identify_segment(segment_or_description, adoption, default_segment)
    profile = adoption.get(segment)
    recommendations = score_defaults(profile, threshold)

    if profile is None:
        recommendations = segment_needs_candidates(segment)
        logger.info(
            f"Segment {segment!r} has no adoption profile; "
            f"using {len(recommendations)} typical products"
        )

    return ProspectProfile(
        company_name=company_name,
        segment=segment,
        segment_source=source,
        size=size,
        geography=geography or 'Unknown',
        ideal_customer_profile=ideal_customer_profile(profile, segment=segment),
        recommendations=recommendations,
        estimated_monthly_opportunity=estimate_monthly_opportunity(recommendations, size),
        fit_score=fit_score(profile, size, geography),
    )
