"""
Adoption Analyzer Service

Computes per-segment product adoption rates and revenue statistics from the
Client Index and the master product catalog.

Adopter Rule:
- A client adopts a product if its most-recent month record for that product
  has nonzero revenue
- If the most-recent month has no record for the product, the lifetime
  per_product_revenue total is used instead (upstream data is sometimes only
  available as a lifetime total)

Profile Rules:
- adoption_rate = adopter_count / client_count for the segment
- Products with zero adopters in a segment are omitted from its profile
- adopter_count <= client_count always holds (one row per client and product)

The result is a pure function of the index and catalog: computing it twice
against the same snapshot yields identical profiles.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from salesintel.models.schemas import (
    Client,
    IdealCustomerProfile,
    ProductAdoption,
    ProductCatalogEntry,
    SegmentAdoptionProfile,
)
from salesintel.services.client_index import ClientIndex

logger = logging.getLogger(__name__)


ADOPTION_COLUMNS: List[str] = ['segment', 'client_name', 'product_name', 'catalog_pos', 'revenue']
CLIENT_COLUMNS: List[str] = ['segment', 'client_name', 'geography', 'total_revenue', 'monthly_avg_revenue']

# Number of names kept for top clients / example clients
TOP_CLIENTS_LIMIT: int = 10


def adoption_revenue(client: Client, product_name: str) -> float:
    """
    Revenue used to decide whether a client adopts a product.

    Most-recent month first; lifetime total only when that month has no
    record for the product.
    """
    latest = client.latest_month
    current = latest.revenue_for(product_name) if latest is not None else None
    if current is not None:
        return current
    return client.per_product_revenue.get(product_name, 0.0)


def _catalog_names(index: ClientIndex, catalog: Optional[Sequence[ProductCatalogEntry]]) -> List[str]:
    names = [entry.product_name for entry in catalog or []]
    if names:
        return names
    logger.warning("Product catalog is empty; using products observed in the client index")
    return index.observed_products()


def _build_adoption_frame(index: ClientIndex, catalog_names: List[str]) -> pd.DataFrame:
    positions = {name: pos for pos, name in enumerate(catalog_names)}
    rows = []
    for client in index:
        candidates = set(client.per_product_revenue)
        if client.latest_month is not None:
            candidates.update(p.product_name for p in client.latest_month.products)
        for product_name in candidates:
            pos = positions.get(product_name)
            if pos is None:
                continue
            revenue = adoption_revenue(client, product_name)
            if revenue > 0:
                rows.append((client.segment, client.client_name, product_name, pos, revenue))

    frame = pd.DataFrame(rows, columns=ADOPTION_COLUMNS)
    # Deterministic order: catalog position, then highest revenue, then name
    return frame.sort_values(
        ['catalog_pos', 'revenue', 'client_name'],
        ascending=[True, False, True],
        kind='mergesort',
    ).reset_index(drop=True)


def _build_client_frame(index: ClientIndex) -> pd.DataFrame:
    rows = [
        (c.segment, c.client_name, c.geography, c.total_revenue, c.monthly_avg_revenue)
        for c in index
    ]
    return pd.DataFrame(rows, columns=CLIENT_COLUMNS)


def _top_geography(geographies: pd.Series) -> Optional[str]:
    known = geographies[geographies != 'Unknown']
    counts = (known if not known.empty else geographies).value_counts()
    if counts.empty:
        return None
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return ranked[0][0]


def compute_adoption(
    index: ClientIndex,
    catalog: Optional[Sequence[ProductCatalogEntry]] = None,
) -> Dict[str, SegmentAdoptionProfile]:
    """
    Compute the adoption profile of every segment in the index.

    Args:
        index: Client Index snapshot
        catalog: Master product list; when empty, observed products are used

    Returns:
        Mapping of segment name to SegmentAdoptionProfile, segments in
        first-seen order
    """
    if len(index) == 0:
        return {}

    catalog_names = _catalog_names(index, catalog)
    clients = _build_client_frame(index)
    usage = _build_adoption_frame(index, catalog_names)

    profiles: Dict[str, SegmentAdoptionProfile] = {}
    for segment, seg_clients in clients.groupby('segment', sort=False):
        ranked = seg_clients.sort_values(
            ['total_revenue', 'client_name'], ascending=[False, True], kind='mergesort'
        )
        profiles[segment] = SegmentAdoptionProfile(
            segment_name=segment,
            client_count=len(seg_clients),
            total_revenue=float(seg_clients['total_revenue'].sum()),
            avg_monthly_revenue=float(seg_clients['monthly_avg_revenue'].mean()),
            top_clients=ranked['client_name'].head(TOP_CLIENTS_LIMIT).tolist(),
            top_geography=_top_geography(seg_clients['geography']),
        )

    for (segment, product_name), adopters in usage.groupby(['segment', 'product_name'], sort=False):
        profile = profiles[segment]
        adopter_count = len(adopters)
        total_revenue = float(adopters['revenue'].sum())
        profile.products[product_name] = ProductAdoption(
            product_name=product_name,
            adopter_count=adopter_count,
            adoption_rate=adopter_count / profile.client_count,
            total_revenue=total_revenue,
            avg_revenue_per_adopter=total_revenue / adopter_count,
            adopters=adopters['client_name'].tolist(),
        )

    positions = {name: pos for pos, name in enumerate(catalog_names)}
    for profile in profiles.values():
        # Keep catalog order within each segment
        profile.products = dict(
            sorted(profile.products.items(), key=lambda kv: positions[kv[0]])
        )

    logger.info(
        f"Computed adoption for {len(profiles)} segments over {len(catalog_names)} products"
    )
    return profiles


def find_segment(adoption: Dict[str, SegmentAdoptionProfile], name: Optional[str]) -> Optional[str]:
    """Case- and whitespace-insensitive lookup of a segment name in an adoption map."""
    if not name:
        return None
    wanted = ' '.join(name.split()).lower()
    for segment in adoption:
        if ' '.join(segment.split()).lower() == wanted:
            return segment
    return None


def ideal_customer_profile(
    profile: Optional[SegmentAdoptionProfile],
    segment: Optional[str] = None,
    top_n: int = 5,
) -> IdealCustomerProfile:
    """
    Derive the Ideal Customer Profile of a segment from its adoption profile.

    Typical products are the most widely adopted ones; ties keep catalog order.
    """
    if profile is None:
        return IdealCustomerProfile(segment=segment or 'Unknown')

    ranked: Iterable[ProductAdoption] = sorted(
        profile.products.values(), key=lambda p: -p.adoption_rate
    )
    return IdealCustomerProfile(
        segment=profile.segment_name,
        client_count=profile.client_count,
        typical_products=[p.product_name for p in ranked][:top_n],
        typical_monthly_revenue=profile.avg_monthly_revenue,
        top_geography=profile.top_geography,
        example_clients=profile.top_clients[:top_n],
    )
