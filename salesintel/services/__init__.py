"""
Sales Intelligence Services Module

Business logic for the scoring core. Every service is a pure function of a
snapshot and its explicit arguments.

Services:
- client_index: normalization boundary and Client Index
- fuzzy_resolver: free-text company name -> client
- adoption: per-segment adoption profiles and Ideal Customer Profiles
- opportunity: cross-sell / upsell candidate scoring
- similarity: comparable-company search
- prospect: prospect profiling from segment statistics
- browse: segment and product roll-ups, filtered client listings, stats
- snapshot_loader: file-backed raw snapshot source
- engine: the operations above bound to one snapshot
"""

# =============================================================================
# Client Index
# =============================================================================

from salesintel.services.client_index import (
    ClientIndex,
    build_client_index,
    build_product_catalog,
    normalize_client,
    to_number,
    to_string_list,
)

# =============================================================================
# Scoring Components
# =============================================================================

from salesintel.services.fuzzy_resolver import (
    EditDistanceSimilarity,
    NameSimilarity,
    TokenSetSimilarity,
    normalize_company_name,
    resolve,
    search,
)
from salesintel.services.adoption import (
    compute_adoption,
    find_segment,
    ideal_customer_profile,
)
from salesintel.services.opportunity import (
    priority_for_rate,
    score_defaults,
    score_opportunities,
    summarize_opportunity,
)
from salesintel.services.similarity import (
    SimilarityWeights,
    build_incidence,
    find_similar,
)
from salesintel.services.prospect import (
    SEGMENT_KEYWORD_RULES,
    SegmentRule,
    fit_score,
    identify_segment,
    segment_needs_candidates,
    segment_options,
    profile_prospect,
)
from salesintel.services.browse import (
    filter_clients,
    index_stats,
    summarize_products,
    summarize_segments,
)

# =============================================================================
# Snapshot and Engine
# =============================================================================

from salesintel.services.snapshot_loader import RawSnapshot, load_snapshot
from salesintel.services.engine import SalesIntelEngine, build_engine

__all__ = [
    'ClientIndex',
    'build_client_index',
    'build_product_catalog',
    'normalize_client',
    'to_number',
    'to_string_list',
    'EditDistanceSimilarity',
    'NameSimilarity',
    'TokenSetSimilarity',
    'normalize_company_name',
    'resolve',
    'search',
    'compute_adoption',
    'find_segment',
    'ideal_customer_profile',
    'priority_for_rate',
    'score_defaults',
    'score_opportunities',
    'summarize_opportunity',
    'SimilarityWeights',
    'build_incidence',
    'find_similar',
    'SEGMENT_KEYWORD_RULES',
    'SegmentRule',
    'fit_score',
    'identify_segment',
    'segment_needs_candidates',
    'segment_options',
    'profile_prospect',
    'filter_clients',
    'index_stats',
    'summarize_products',
    'summarize_segments',
    'RawSnapshot',
    'load_snapshot',
    'SalesIntelEngine',
    'build_engine',
]
