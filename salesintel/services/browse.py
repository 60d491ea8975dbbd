"""
Client Browser Service

Read-only views over the Client Index for exploring the book without a
specific company in mind: segment and product roll-ups, filtered client
listings and headline stats.

Ordering:
- Every list is sorted by total revenue, highest first, with ties broken
  by name so the same snapshot always lists in the same order
- Filtered listings are sorted the same way after filtering, fuzzy name
  matches included

Filter Rules (ClientFilter):
- segment: exact segment name, case- and whitespace-insensitive
- geography, product: case-insensitive substring of the client's geography
  or of any product in products_used
- min_revenue / max_revenue: inclusive bounds on total_revenue
- query: accepted by the fuzzy resolver among the remaining clients
"""

import logging
from typing import List, Optional, Sequence

import pandas as pd

from salesintel.models.schemas import (
    Client,
    ClientFilter,
    ClientSummary,
    IndexStats,
    ProductCatalogEntry,
    ProductSummary,
    SegmentSummary,
)
from salesintel.services import fuzzy_resolver
from salesintel.services.client_index import ClientIndex

logger = logging.getLogger(__name__)


# Number of segments / products listed in IndexStats
TOP_STATS_LIMIT: int = 10


def _folded(text: Optional[str]) -> str:
    return ' '.join((text or '').split()).lower()


def _ranked(frame: pd.DataFrame, name_column: str) -> pd.DataFrame:
    return frame.sort_values(
        ['total_revenue', name_column], ascending=[False, True], kind='mergesort'
    )


# =============================================================================
# Roll-ups
# =============================================================================


def summarize_segments(index: ClientIndex) -> List[SegmentSummary]:
    """Client count and total revenue per segment, highest revenue first."""
    if len(index) == 0:
        return []

    clients = pd.DataFrame(
        [(c.segment, c.total_revenue) for c in index],
        columns=['segment', 'total_revenue'],
    )
    grouped = clients.groupby('segment', sort=False).agg(
        client_count=('total_revenue', 'size'),
        total_revenue=('total_revenue', 'sum'),
    ).reset_index()

    return [
        SegmentSummary(
            segment=row.segment,
            client_count=int(row.client_count),
            total_revenue=float(row.total_revenue),
        )
        for row in _ranked(grouped, 'segment').itertuples(index=False)
    ]


def summarize_products(index: ClientIndex) -> List[ProductSummary]:
    """
    Clients using each product and the product's cumulative revenue.

    Only products in some client's products_used are listed.
    """
    rows = [
        (product_name, revenue, product_name in client.products_used)
        for client in index
        for product_name, revenue in client.per_product_revenue.items()
    ]
    if not rows:
        return []

    usage = pd.DataFrame(rows, columns=['product_name', 'revenue', 'used'])
    grouped = usage.groupby('product_name', sort=False).agg(
        client_count=('used', 'sum'),
        total_revenue=('revenue', 'sum'),
    ).reset_index()
    grouped = grouped[grouped['client_count'] > 0]

    return [
        ProductSummary(
            product_name=row.product_name,
            client_count=int(row.client_count),
            total_revenue=float(row.total_revenue),
        )
        for row in _ranked(grouped, 'product_name').itertuples(index=False)
    ]


# =============================================================================
# Filtered Listing
# =============================================================================


def _matches(client: Client, criteria: ClientFilter) -> bool:
    if criteria.segment is not None and _folded(client.segment) != _folded(criteria.segment):
        return False
    if criteria.geography and _folded(criteria.geography) not in _folded(client.geography):
        return False
    if criteria.product:
        wanted = _folded(criteria.product)
        if not any(wanted in _folded(p) for p in client.products_used):
            return False
    if criteria.min_revenue is not None and client.total_revenue < criteria.min_revenue:
        return False
    if criteria.max_revenue is not None and client.total_revenue > criteria.max_revenue:
        return False
    return True


def filter_clients(
    index: ClientIndex,
    criteria: ClientFilter,
    threshold: float = fuzzy_resolver.FUZZY_ACCEPTANCE_THRESHOLD,
) -> List[ClientSummary]:
    """
    Clients meeting every criterion, highest revenue first.

    Args:
        index: Client Index to list from
        criteria: Filters and result limit
        threshold: Fuzzy acceptance threshold for criteria.query

    Returns:
        At most criteria.limit ClientSummary rows
    """
    selected = [c for c in index if _matches(c, criteria)]

    if criteria.query and selected:
        candidates = ClientIndex(selected, built_at=index.built_at)
        matched = {
            r.client.client_id
            for r in fuzzy_resolver.search(
                criteria.query, candidates, limit=len(candidates), threshold=threshold
            )
        }
        selected = [c for c in selected if c.client_id in matched]

    selected.sort(key=lambda c: (-c.total_revenue, c.client_name))
    logger.debug(f"Client filter {criteria.model_dump(exclude_none=True)} matched {len(selected)}")
    return [ClientSummary.from_client(c) for c in selected[:criteria.limit]]


# =============================================================================
# Stats
# =============================================================================


def index_stats(
    index: ClientIndex,
    catalog: Optional[Sequence[ProductCatalogEntry]] = None,
    top: int = TOP_STATS_LIMIT,
) -> IndexStats:
    """Headline numbers for a snapshot, with its top segments and products."""
    segments = summarize_segments(index)
    products = summarize_products(index)
    return IndexStats(
        built_at=index.built_at,
        client_count=len(index),
        segment_count=len(segments),
        product_count=len(products),
        catalog_size=len(catalog or ()),
        total_revenue=float(sum(c.total_revenue for c in index)),
        top_segments=segments[:top],
        top_products=products[:top],
    )
