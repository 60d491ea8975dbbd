"""
Sales Intelligence Engine

Binds the scoring components to one immutable snapshot (Client Index plus
product catalog) and exposes the operations the request layer calls:

- resolve(name)                      -> ResolveResult | None
- compute_adoption()                 -> segment -> SegmentAdoptionProfile
- get_recommendations(name_or_segment) -> [RecommendationCandidate]
- get_similar(client_name, limit)    -> [SimilarityResult]
- profile_prospect(segment_or_description, size, geography) -> ProspectProfile
- segment_options()                  -> [SegmentOption]
- segment_summaries()                -> [SegmentSummary]
- product_summaries()                -> [ProductSummary]
- segment_profiles()                 -> [SegmentAdoptionProfile], highest revenue first
- find_clients(criteria)             -> [ClientSummary]
- stats()                            -> IndexStats
- company_intelligence(name)         -> CompanyIntelligence

Every operation is a pure function of the snapshot and its arguments and
performs no I/O. Derived state (the adoption map and the product incidence
matrix) is memoised per engine and keyed by the index's built_at, so a new
snapshot always means a new engine and never a half-updated one.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from salesintel.core.config import Settings
from salesintel.models.enums import ProspectSize
from salesintel.models.schemas import (
    ClientFilter,
    ClientSummary,
    CompanyIntelligence,
    IndexStats,
    ProductCatalogEntry,
    ProductSummary,
    ProspectProfile,
    RecommendationCandidate,
    ResolveResult,
    SegmentAdoptionProfile,
    SegmentOption,
    SegmentSummary,
    SimilarityResult,
)
from salesintel.services import adoption as adoption_service
from salesintel.services import browse
from salesintel.services import fuzzy_resolver
from salesintel.services.client_index import ClientIndex, build_client_index, build_product_catalog
from salesintel.services.opportunity import score_defaults, score_opportunities, summarize_opportunity
from salesintel.services import prospect as prospect_service
from salesintel.services.similarity import (
    ProductIncidence,
    SimilarityWeights,
    build_incidence,
    find_similar,
)
from salesintel.services.snapshot_loader import RawSnapshot

logger = logging.getLogger(__name__)


class SalesIntelEngine:
    """The scoring core over one snapshot."""

    def __init__(
        self,
        index: ClientIndex,
        catalog: Sequence[ProductCatalogEntry],
        settings: Settings,
    ):
        self.index = index
        self.catalog = tuple(catalog)
        self.settings = settings
        self.weights = SimilarityWeights(
            products=settings.similarity_product_weight,
            segment=settings.similarity_segment_weight,
            geography=settings.similarity_geography_weight,
        )
        self._adoption: Optional[Dict[str, SegmentAdoptionProfile]] = None
        self._adoption_built_at: Optional[datetime] = None
        self._incidence: Optional[ProductIncidence] = None

    @property
    def built_at(self) -> datetime:
        return self.index.built_at

    def __repr__(self) -> str:
        return f"SalesIntelEngine({self.index!r}, catalog={len(self.catalog)})"

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(self, name: str) -> Optional[ResolveResult]:
        return fuzzy_resolver.resolve(
            name, self.index, threshold=self.settings.fuzzy_acceptance_threshold
        )

    def search(self, query: str, limit: int = 20) -> List[ResolveResult]:
        return fuzzy_resolver.search(
            query, self.index, limit=limit, threshold=self.settings.fuzzy_acceptance_threshold
        )

    # =========================================================================
    # Adoption
    # =========================================================================

    def compute_adoption(self) -> Dict[str, SegmentAdoptionProfile]:
        """Segment adoption map, computed once per snapshot."""
        if self._adoption is None or self._adoption_built_at != self.index.built_at:
            self._adoption = adoption_service.compute_adoption(self.index, self.catalog)
            self._adoption_built_at = self.index.built_at
        return self._adoption

    def segment_profile(self, segment: Optional[str]) -> Optional[SegmentAdoptionProfile]:
        adoption = self.compute_adoption()
        key = adoption_service.find_segment(adoption, segment)
        return adoption.get(key) if key is not None else None

    # =========================================================================
    # Recommendations
    # =========================================================================

    def get_recommendations(self, name_or_segment: str) -> List[RecommendationCandidate]:
        """
        Cross-sell candidates for a client, or default candidates for a segment.

        A known segment name is treated as a segment; anything else is
        resolved as a client name. Unknown names yield [].
        """
        threshold = self.settings.min_adoption_threshold
        adoption = self.compute_adoption()

        segment = adoption_service.find_segment(adoption, name_or_segment)
        if segment is not None:
            return score_defaults(adoption[segment], threshold)

        resolved = self.resolve(name_or_segment)
        if resolved is None:
            return []
        client = resolved.client
        return score_opportunities(client, adoption.get(client.segment), threshold)

    # =========================================================================
    # Similarity
    # =========================================================================

    def _product_incidence(self) -> ProductIncidence:
        if self._incidence is None or not self._incidence.is_current(self.index):
            self._incidence = build_incidence(self.index)
        return self._incidence

    def get_similar(self, client_name: str, limit: Optional[int] = None) -> List[SimilarityResult]:
        """Most similar clients to a named client; [] if unresolved or limit out of range."""
        if limit is None:
            limit = self.settings.default_similar_limit
        if limit <= 0 or limit > self.settings.max_similar_limit:
            return []

        resolved = self.resolve(client_name)
        if resolved is None:
            return []
        return find_similar(
            resolved.client,
            self.index,
            limit=limit,
            weights=self.weights,
            incidence=self._product_incidence(),
        )

    # =========================================================================
    # Prospects
    # =========================================================================

    def profile_prospect(
        self,
        segment_or_description: Optional[str],
        size: ProspectSize = ProspectSize.MEDIUM,
        geography: Optional[str] = None,
        company_name: Optional[str] = None,
    ) -> ProspectProfile:
        return prospect_service.profile_prospect(
            segment_or_description,
            size,
            geography,
            self.compute_adoption(),
            threshold=self.settings.min_adoption_threshold,
            default_segment=self.settings.default_prospect_segment,
            company_name=company_name,
        )

    def segment_options(self) -> List[SegmentOption]:
        return prospect_service.segment_options(self.compute_adoption())

    # =========================================================================
    # Browse
    # =========================================================================

    def segment_summaries(self) -> List[SegmentSummary]:
        return browse.summarize_segments(self.index)

    def product_summaries(self) -> List[ProductSummary]:
        return browse.summarize_products(self.index)

    def segment_profiles(self) -> List[SegmentAdoptionProfile]:
        """Adoption profiles ordered by total revenue, highest first."""
        return sorted(
            self.compute_adoption().values(),
            key=lambda p: (-p.total_revenue, p.segment_name),
        )

    def find_clients(self, criteria: Optional[ClientFilter] = None) -> List[ClientSummary]:
        return browse.filter_clients(
            self.index,
            criteria or ClientFilter(),
            threshold=self.settings.fuzzy_acceptance_threshold,
        )

    def stats(self) -> IndexStats:
        return browse.index_stats(self.index, self.catalog)

    # =========================================================================
    # Combined View
    # =========================================================================

    def company_intelligence(
        self,
        company_name: str,
        description: Optional[str] = None,
        size: ProspectSize = ProspectSize.MEDIUM,
        geography: Optional[str] = None,
    ) -> CompanyIntelligence:
        """
        Everything known about a company.

        Existing clients get upsell candidates and similar companies; anything
        that does not resolve is profiled as a prospect from `description`
        (or the name itself when no description is given).
        """
        resolved = self.resolve(company_name)

        if resolved is None:
            prospect = self.profile_prospect(
                description or company_name, size, geography, company_name=company_name
            )
            return CompanyIntelligence(
                query=company_name,
                is_existing_client=False,
                recommendations=prospect.recommendations,
                opportunity=summarize_opportunity(prospect.recommendations),
                prospect=prospect,
                snapshot_built_at=self.built_at,
            )

        client = resolved.client
        recommendations = score_opportunities(
            client,
            self.compute_adoption().get(client.segment),
            self.settings.min_adoption_threshold,
        )
        similar = find_similar(
            client,
            self.index,
            limit=self.settings.default_similar_limit,
            weights=self.weights,
            incidence=self._product_incidence(),
        )
        return CompanyIntelligence(
            query=company_name,
            is_existing_client=True,
            resolved=resolved,
            recommendations=recommendations,
            similar_companies=similar,
            opportunity=summarize_opportunity(recommendations),
            snapshot_built_at=self.built_at,
        )


def build_engine(
    raw: RawSnapshot,
    settings: Settings,
    built_at: Optional[datetime] = None,
) -> SalesIntelEngine:
    """Normalize a raw snapshot and bind a new engine to it."""
    index = build_client_index(raw.clients, built_at=built_at)
    catalog = build_product_catalog(raw.catalog)
    engine = SalesIntelEngine(index, catalog, settings)
    logger.info(f"Built {engine!r}")
    return engine
