"""
Pydantic models for the Sales Intelligence backend.

This module provides type-safe data validation and serialization for the
snapshot records (clients, product catalog), the computed analytics
(segment adoption profiles, ideal customer profiles) and the outputs the
scoring core hands to the request layer (recommendation candidates,
similarity results, prospect profiles).

Snapshot records are frozen: a Client is built once per refresh cycle and is
superseded wholesale by the next refresh, never mutated in place.

All models use Pydantic v2 syntax.
"""

from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from salesintel.models.enums import (
    MatchType,
    Priority,
    ProspectSize,
    SegmentSource,
)


UNKNOWN_SEGMENT = "Unknown"


# =============================================================================
# Snapshot Records
# =============================================================================


class ProductUsage(BaseModel):
    """One product's usage within a single month."""
    model_config = ConfigDict(frozen=True)

    product_name: str = Field(..., min_length=1, description="Product (API) name")
    revenue: float = Field(default=0.0, description="Revenue billed for the month")
    call_volume: float = Field(default=0.0, ge=0, description="Calls made in the month")


class MonthlyUsage(BaseModel):
    """A month-record: the set of products a client used that month."""
    model_config = ConfigDict(frozen=True)

    month: str = Field(default="", description="Month label, e.g. 'Jan 2026'")
    products: Tuple[ProductUsage, ...] = Field(
        default=(),
        description="Per-product usage for the month"
    )

    @property
    def total_revenue(self) -> float:
        return sum(p.revenue for p in self.products)

    def revenue_for(self, product_name: str) -> Optional[float]:
        """Revenue for a product this month, or None if there is no record for it."""
        found = None
        for usage in self.products:
            if usage.product_name == product_name:
                found = (found or 0.0) + usage.revenue
        return found


class Client(BaseModel):
    """
    Canonical account record.

    `monthly_usage` is ordered most-recent-first. The aggregates
    (`total_revenue`, `monthly_avg_revenue`, `products_used`,
    `per_product_revenue`) are computed from `monthly_usage` by the Client
    Index builder; the validator rejects any record whose `products_used`
    disagrees with `per_product_revenue`.
    """
    model_config = ConfigDict(frozen=True)

    client_id: str = Field(..., min_length=1, description="Stable identifier")
    client_name: str = Field(..., min_length=1, description="Display name")
    legal_name: Optional[str] = Field(default=None, description="Registered legal name")
    aliases: Tuple[str, ...] = Field(default=(), description="Other known names")
    segment: str = Field(default=UNKNOWN_SEGMENT, description="Segment label")
    geography: str = Field(default="Unknown", description="Primary geography")
    payment_model: Optional[str] = Field(default=None, description="Prepaid / postpaid etc.")

    monthly_usage: Tuple[MonthlyUsage, ...] = Field(
        default=(),
        description="Month-records, most recent first"
    )

    total_revenue: float = Field(default=0.0, description="Sum of all monthly product revenue")
    monthly_avg_revenue: float = Field(default=0.0, description="total_revenue / months")
    products_used: FrozenSet[str] = Field(
        default=frozenset(),
        description="Products with nonzero cumulative revenue"
    )
    per_product_revenue: Dict[str, float] = Field(
        default_factory=dict,
        description="Product -> cumulative revenue"
    )

    unrecognized_fields: Dict[str, Any] = Field(
        default_factory=dict,
        description="Unrecognised upstream fields, preserved but ignored",
        exclude=True,
    )

    @model_validator(mode="after")
    def check_products_used(self) -> "Client":
        expected = {p for p, revenue in self.per_product_revenue.items() if revenue > 0}
        if set(self.products_used) != expected:
            raise ValueError(
                "products_used must equal the products with positive cumulative revenue"
            )
        return self

    @property
    def latest_month(self) -> Optional[MonthlyUsage]:
        return self.monthly_usage[0] if self.monthly_usage else None

    @property
    def names(self) -> Tuple[str, ...]:
        """Display name, legal name and aliases, in that order, without blanks."""
        found = [self.client_name]
        if self.legal_name:
            found.append(self.legal_name)
        found.extend(self.aliases)
        return tuple(n for n in found if n)


class ProductCatalogEntry(BaseModel):
    """One row of the master product list (sellable products, not observed usage)."""
    model_config = ConfigDict(frozen=True)

    product_name: str = Field(..., min_length=1, description="Product (API) name")
    billing_unit: str = Field(default="per call", description="Billing unit")
    owner: Optional[str] = Field(default=None, description="Product owner")


# =============================================================================
# Adoption Analytics
# =============================================================================


class ProductAdoption(BaseModel):
    """Adoption statistics for one product within one segment."""

    product_name: str
    adopter_count: int = Field(..., ge=1)
    adoption_rate: float = Field(..., ge=0.0, le=1.0)
    total_revenue: float = 0.0
    avg_revenue_per_adopter: float = 0.0
    adopters: List[str] = Field(
        default_factory=list,
        description="Adopting client names, highest revenue first"
    )


class SegmentAdoptionProfile(BaseModel):
    """
    Per-segment product adoption. Products with zero adopters are omitted.

    Regenerated whenever the Client Index refreshes; never persisted.
    """

    segment_name: str
    client_count: int = Field(..., ge=0)
    products: Dict[str, ProductAdoption] = Field(default_factory=dict)
    total_revenue: float = Field(default=0.0, description="Lifetime revenue of the segment")
    avg_monthly_revenue: float = Field(
        default=0.0,
        description="Mean of the segment clients' monthly average revenue"
    )
    top_clients: List[str] = Field(
        default_factory=list,
        description="Client names by lifetime revenue, highest first"
    )
    top_geography: Optional[str] = None


class IdealCustomerProfile(BaseModel):
    """Aggregate characteristics of a segment's high-adopting clients."""

    segment: str
    client_count: int = 0
    typical_products: List[str] = Field(default_factory=list)
    typical_monthly_revenue: float = 0.0
    top_geography: Optional[str] = None
    example_clients: List[str] = Field(default_factory=list)


# =============================================================================
# Browse Views
# =============================================================================


class SegmentSummary(BaseModel):
    """Client count and revenue of one segment."""

    segment: str
    client_count: int = Field(default=0, ge=0)
    total_revenue: float = 0.0


class ProductSummary(BaseModel):
    """Number of clients using a product and the revenue it brings in."""

    product_name: str
    client_count: int = Field(default=0, ge=0)
    total_revenue: float = 0.0


class ClientSummary(BaseModel):
    """Listing row for a client, without its month-records."""

    client_id: str
    client_name: str
    segment: str = UNKNOWN_SEGMENT
    geography: str = "Unknown"
    total_revenue: float = 0.0
    monthly_avg_revenue: float = 0.0
    products_used: List[str] = Field(default_factory=list)

    @classmethod
    def from_client(cls, client: Client) -> "ClientSummary":
        return cls(
            client_id=client.client_id,
            client_name=client.client_name,
            segment=client.segment,
            geography=client.geography,
            total_revenue=client.total_revenue,
            monthly_avg_revenue=client.monthly_avg_revenue,
            products_used=sorted(client.products_used),
        )


class ClientFilter(BaseModel):
    """
    Criteria for listing clients. Every criterion left as None is ignored.

    - query: fuzzy company-name match
    - segment: exact segment name, case-insensitive
    - geography / product: case-insensitive substring
    - min_revenue / max_revenue: inclusive bounds on total_revenue
    """

    query: Optional[str] = None
    segment: Optional[str] = None
    geography: Optional[str] = None
    product: Optional[str] = None
    min_revenue: Optional[float] = None
    max_revenue: Optional[float] = None
    limit: int = Field(default=50, ge=1)


class IndexStats(BaseModel):
    """Headline numbers for the current snapshot."""

    built_at: Optional[datetime] = None
    client_count: int = 0
    segment_count: int = 0
    product_count: int = 0
    catalog_size: int = 0
    total_revenue: float = 0.0
    top_segments: List[SegmentSummary] = Field(default_factory=list)
    top_products: List[ProductSummary] = Field(default_factory=list)


class SegmentOption(BaseModel):
    """A segment a prospect can be profiled as, with what the book knows about it."""

    segment: str
    client_count: int = 0
    keywords: List[str] = Field(default_factory=list)
    critical_products: List[str] = Field(default_factory=list)


# =============================================================================
# Scoring Outputs
# =============================================================================


class RecommendationCandidate(BaseModel):
    """A product the client (or prospect) is not using, ranked by peer adoption."""

    product_name: str
    priority: Priority
    adoption_rate: float = Field(..., ge=0.0, le=1.0)
    reasoning: str
    estimated_monthly_revenue: float = 0.0
    supporting_clients: List[str] = Field(default_factory=list)


class OpportunitySummary(BaseModel):
    """Revenue opportunity implied by a list of candidates."""

    candidate_count: int = 0
    high_priority_count: int = 0
    estimated_monthly_revenue: float = 0.0
    estimated_annual_revenue: float = 0.0


class SimilarityResult(BaseModel):
    """A comparable company and what it shares with the target."""

    client_name: str
    similarity_score: float = Field(..., ge=0.0, le=1.0)
    shared_products: List[str] = Field(default_factory=list)
    products_only_in_comparator: List[str] = Field(default_factory=list)
    segment: str = UNKNOWN_SEGMENT
    total_revenue: float = 0.0


class ResolveResult(BaseModel):
    """Outcome of resolving a free-text name to a client."""

    client: Client
    confidence: float = Field(..., ge=0.0, le=100.0)
    match_type: MatchType
    matched_name: str = Field(..., description="Client name or alias that matched")


class ProspectProfile(BaseModel):
    """Synthetic recommendation set for a company with no client record."""

    company_name: Optional[str] = None
    segment: str
    segment_source: SegmentSource
    size: ProspectSize
    geography: str
    ideal_customer_profile: IdealCustomerProfile
    recommendations: List[RecommendationCandidate] = Field(default_factory=list)
    estimated_monthly_opportunity: float = 0.0
    fit_score: int = Field(default=0, ge=0, le=100)


class CompanyIntelligence(BaseModel):
    """Everything the core knows about a company, existing client or prospect."""

    query: str
    is_existing_client: bool
    resolved: Optional[ResolveResult] = None
    recommendations: List[RecommendationCandidate] = Field(default_factory=list)
    similar_companies: List[SimilarityResult] = Field(default_factory=list)
    opportunity: OpportunitySummary = Field(default_factory=OpportunitySummary)
    prospect: Optional[ProspectProfile] = None
    snapshot_built_at: Optional[datetime] = None
