"""
Package initialization file for Sales Intelligence models.

Exports all Pydantic schemas and enumerations from schemas.py and enums.py so
other modules can import data models from salesintel.models directly.

Usage:
    from salesintel.models import Client, Priority, RecommendationCandidate
"""

# =============================================================================
# Enums
# =============================================================================

from salesintel.models.enums import (
    MatchType,
    Priority,
    ProspectSize,
    SegmentSource,
)

# =============================================================================
# Schemas
# =============================================================================

from salesintel.models.schemas import (
    UNKNOWN_SEGMENT,
    # Snapshot records
    ProductUsage,
    MonthlyUsage,
    Client,
    ProductCatalogEntry,
    # Adoption analytics
    ProductAdoption,
    SegmentAdoptionProfile,
    IdealCustomerProfile,
    # Browse views
    SegmentSummary,
    ProductSummary,
    ClientSummary,
    ClientFilter,
    IndexStats,
    SegmentOption,
    # Scoring outputs
    RecommendationCandidate,
    OpportunitySummary,
    SimilarityResult,
    ResolveResult,
    ProspectProfile,
    CompanyIntelligence,
)

__all__ = [
    # Enums
    'MatchType',
    'Priority',
    'ProspectSize',
    'SegmentSource',
    # Schemas
    'UNKNOWN_SEGMENT',
    'ProductUsage',
    'MonthlyUsage',
    'Client',
    'ProductCatalogEntry',
    'ProductAdoption',
    'SegmentAdoptionProfile',
    'IdealCustomerProfile',
    'SegmentSummary',
    'ProductSummary',
    'ClientSummary',
    'ClientFilter',
    'IndexStats',
    'SegmentOption',
    'RecommendationCandidate',
    'OpportunitySummary',
    'SimilarityResult',
    'ResolveResult',
    'ProspectProfile',
    'CompanyIntelligence',
]
