"""
FastAPI router module for Sales Intelligence endpoints.

Thin request layer over SalesIntelEngine. Handlers translate HTTP
parameters into engine calls and engine results into HTTP responses; no
scoring logic lives here.

Endpoints:
- GET  /resolve?name=                       Resolve a company name to a client
- GET  /search?q=&limit=                    All accepted name matches, best first
- GET  /adoption                            Segment adoption profiles
- GET  /recommendations/{name_or_segment}   Cross-sell candidates
- GET  /similar/{client_name}?limit=        Comparable companies
- POST /prospects/profile                   Profile a non-client company
- GET  /intelligence/{company_name}         Combined view (cached per snapshot)
- GET  /segments                            Segment roll-up, highest revenue first
- GET  /segments/profiles                   Adoption profiles, highest revenue first
- GET  /products                            Product roll-up, highest revenue first
- GET  /clients?q=&segment=&geography=&product=&min_revenue=&max_revenue=&limit=
                                            Filtered client listing
- GET  /stats                               Headline numbers for the snapshot
- GET  /prospects/segments                  Segments a prospect can be profiled as
- POST /snapshot/refresh                    Force a snapshot rebuild

Error Mapping:
- Resolver miss on /resolve and /similar -> 404
- No snapshot available -> 503 (raised by the engine dependency)
- Unknown segment, out-of-range limit -> empty result, 200
- Invalid /clients bounds (limit outside 1-500, min_revenue > max_revenue) -> 422
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from salesintel.core.dependencies import (
    EngineDep,
    ResponseCacheDep,
    SettingsDep,
    load_engine,
)
from salesintel.core.snapshot import SnapshotUnavailableError, get_snapshot_cache
from salesintel.models.enums import ProspectSize
from salesintel.models.schemas import (
    ClientFilter,
    ClientSummary,
    CompanyIntelligence,
    IndexStats,
    ProductSummary,
    ProspectProfile,
    RecommendationCandidate,
    ResolveResult,
    SegmentAdoptionProfile,
    SegmentOption,
    SegmentSummary,
    SimilarityResult,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Router Configuration
# =============================================================================

router = APIRouter(
    tags=["sales-intelligence"],
    responses={
        404: {"description": "Company not found"},
        503: {"description": "Client snapshot unavailable"},
    },
)


# =============================================================================
# Request / Response Models
# =============================================================================


class ProspectRequest(BaseModel):
    """Body of POST /prospects/profile."""

    company_name: Optional[str] = None
    segment_or_description: Optional[str] = Field(
        default=None,
        description="Known segment tag or free-text description of the business",
    )
    size: ProspectSize = ProspectSize.MEDIUM
    geography: Optional[str] = None


class RefreshResponse(BaseModel):
    """Outcome of a forced snapshot refresh."""

    refreshed: bool
    built_at: Optional[datetime] = None
    client_count: int = 0
    segment_count: int = 0
    error: Optional[str] = None


# =============================================================================
# Resolution
# =============================================================================


@router.get("/resolve", response_model=ResolveResult)
async def resolve_company(
    engine: EngineDep,
    name: str = Query(..., min_length=1, description="Company name to resolve"),
) -> ResolveResult:
    """
    Resolve a free-text company name to a client.

    Raises:
        HTTPException 404: If no client is a plausible match
    """
    result = engine.resolve(name)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No client matches '{name}'")
    return result


@router.get("/search", response_model=List[ResolveResult])
async def search_companies(
    engine: EngineDep,
    q: str = Query(..., min_length=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> List[ResolveResult]:
    return engine.search(q, limit=limit)


# =============================================================================
# Adoption and Recommendations
# =============================================================================


@router.get("/adoption", response_model=Dict[str, SegmentAdoptionProfile])
async def get_adoption(engine: EngineDep) -> Dict[str, SegmentAdoptionProfile]:
    return engine.compute_adoption()


@router.get("/recommendations/{name_or_segment}", response_model=List[RecommendationCandidate])
async def get_recommendations(name_or_segment: str, engine: EngineDep) -> List[RecommendationCandidate]:
    """
    Cross-sell candidates for a client name, or default candidates for a
    segment name. Unknown names return an empty list.
    """
    return engine.get_recommendations(name_or_segment)


# =============================================================================
# Browse
# =============================================================================


@router.get("/segments", response_model=List[SegmentSummary])
async def list_segments(engine: EngineDep) -> List[SegmentSummary]:
    return engine.segment_summaries()


@router.get("/segments/profiles", response_model=List[SegmentAdoptionProfile])
async def list_segment_profiles(engine: EngineDep) -> List[SegmentAdoptionProfile]:
    return engine.segment_profiles()


@router.get("/products", response_model=List[ProductSummary])
async def list_products(engine: EngineDep) -> List[ProductSummary]:
    return engine.product_summaries()


@router.get("/clients", response_model=List[ClientSummary])
async def list_clients(
    engine: EngineDep,
    q: Optional[str] = Query(default=None, description="Fuzzy company-name filter"),
    segment: Optional[str] = None,
    geography: Optional[str] = None,
    product: Optional[str] = None,
    min_revenue: Optional[float] = None,
    max_revenue: Optional[float] = None,
    limit: int = Query(default=50, ge=1, le=500),
) -> List[ClientSummary]:
    """
    Clients matching every given filter, highest revenue first.

    Raises:
        HTTPException 422: If min_revenue is greater than max_revenue
    """
    if min_revenue is not None and max_revenue is not None and min_revenue > max_revenue:
        raise HTTPException(status_code=422, detail="min_revenue must not exceed max_revenue")
    return engine.find_clients(ClientFilter(
        query=q,
        segment=segment,
        geography=geography,
        product=product,
        min_revenue=min_revenue,
        max_revenue=max_revenue,
        limit=limit,
    ))


@router.get("/stats", response_model=IndexStats)
async def get_stats(engine: EngineDep) -> IndexStats:
    return engine.stats()


# =============================================================================
# Similarity
# =============================================================================


@router.get("/similar/{client_name}", response_model=List[SimilarityResult])
async def get_similar(
    client_name: str,
    engine: EngineDep,
    limit: Optional[int] = Query(default=None, description="Maximum number of results"),
) -> List[SimilarityResult]:
    """
    Companies most similar to an existing client.

    Raises:
        HTTPException 404: If the client name does not resolve
    """
    if engine.resolve(client_name) is None:
        raise HTTPException(status_code=404, detail=f"No client matches '{client_name}'")
    return engine.get_similar(client_name, limit)


# =============================================================================
# Prospects and Combined View
# =============================================================================


@router.get("/prospects/segments", response_model=List[SegmentOption])
async def list_prospect_segments(engine: EngineDep) -> List[SegmentOption]:
    return engine.segment_options()


@router.post("/prospects/profile", response_model=ProspectProfile)
async def profile_prospect(request: ProspectRequest, engine: EngineDep) -> ProspectProfile:
    return engine.profile_prospect(
        request.segment_or_description or request.company_name,
        size=request.size,
        geography=request.geography,
        company_name=request.company_name,
    )


@router.get("/intelligence/{company_name}", response_model=CompanyIntelligence)
async def get_company_intelligence(
    company_name: str,
    engine: EngineDep,
    cache: ResponseCacheDep,
    description: Optional[str] = None,
    size: ProspectSize = ProspectSize.MEDIUM,
    geography: Optional[str] = None,
) -> CompanyIntelligence:
    """
    Everything known about a company: upsell candidates and similar companies
    for an existing client, or a prospect profile otherwise.

    Responses are cached for the configured TTL and dropped when the
    snapshot changes.
    """
    key = ('intelligence', company_name.strip().lower(), description, size, geography)
    cached = cache.get(key, tag=engine.built_at)
    if cached is not None:
        return cached

    result = engine.company_intelligence(
        company_name, description=description, size=size, geography=geography
    )
    cache.set(key, result, tag=engine.built_at)
    return result


# =============================================================================
# Snapshot
# =============================================================================


@router.post("/snapshot/refresh", response_model=RefreshResponse)
async def refresh_snapshot(settings: SettingsDep, cache: ResponseCacheDep) -> RefreshResponse:
    """
    Rebuild the snapshot now.

    A failed rebuild keeps serving the previous snapshot and reports the
    error; with no previous snapshot the request fails.

    Raises:
        HTTPException 503: If no snapshot could be built and none is cached
    """
    try:
        snapshot = get_snapshot_cache()
        before = snapshot.generation
        engine = await snapshot.refresh_or_serve_stale(lambda: load_engine(settings), force=True)
    except SnapshotUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))

    refreshed = snapshot.generation != before
    if refreshed:
        cache.clear()
    else:
        logger.warning(f"Forced refresh did not produce a new snapshot: {snapshot.last_error}")

    return RefreshResponse(
        refreshed=refreshed,
        built_at=engine.built_at,
        client_count=len(engine.index),
        segment_count=len(engine.index.segments()),
        error=None if refreshed else snapshot.last_error,
    )
