"""
Similarity Finder Service

Ranks the other clients in the index by how similar they are to a target
client, for "companies like this one" lists and peer-evidence in pitches.

Score (normalized to [0, 1]):
    (w_products * jaccard(products_used)
     + w_segment * same_segment
     + w_geography * same_geography) / (w_products + w_segment + w_geography)

Default weights are 0.7 / 0.2 / 0.1 so the product-overlap term dominates.
'Unknown' segments and geographies never count as a match.

Rules:
- A client is never compared against itself
- Clients with zero product overlap and a different segment are excluded
  entirely rather than returned with a near-zero score
- Results are sorted by score descending (ties: higher revenue, then name)
  and truncated to the limit; a limit <= 0 returns []

Algorithm:
1. Encode every client's products_used as a boolean incidence row
   (scikit-learn MultiLabelBinarizer)
2. Jaccard distances from the target row to all rows
   (scikit-learn pairwise_distances, metric='jaccard')
3. Blend with the segment/geography bonuses and rank
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional

import numpy as np
from sklearn.metrics import pairwise_distances
from sklearn.preprocessing import MultiLabelBinarizer

from salesintel.models.schemas import UNKNOWN_SEGMENT, Client, SimilarityResult
from salesintel.services.client_index import ClientIndex

logger = logging.getLogger(__name__)


class SimilarityWeights(NamedTuple):
    """Blend weights; only their ratios matter."""
    products: float = 0.7
    segment: float = 0.2
    geography: float = 0.1

    @property
    def total(self) -> float:
        return self.products + self.segment + self.geography


DEFAULT_WEIGHTS = SimilarityWeights()


@dataclass
class ProductIncidence:
    """
    Boolean client x product matrix for one Client Index snapshot.

    Keyed by the index's built_at so a caller holding an incidence built
    for an older snapshot can detect it is stale.
    """
    built_at: datetime
    client_ids: List[str]
    products: List[str]
    matrix: np.ndarray
    row_of: Dict[str, int] = field(default_factory=dict)

    def is_current(self, index: ClientIndex) -> bool:
        return self.built_at == index.built_at and len(self.client_ids) == len(index)


def build_incidence(index: ClientIndex) -> ProductIncidence:
    """Encode products_used of every client as a boolean incidence matrix."""
    clients = index.clients
    encoder = MultiLabelBinarizer()
    matrix = encoder.fit_transform([sorted(c.products_used) for c in clients]).astype(bool)
    client_ids = [c.client_id for c in clients]
    return ProductIncidence(
        built_at=index.built_at,
        client_ids=client_ids,
        products=list(encoder.classes_),
        matrix=matrix,
        row_of={client_id: row for row, client_id in enumerate(client_ids)},
    )


def jaccard_to_all(target: Client, incidence: ProductIncidence) -> np.ndarray:
    """Jaccard similarity of the target's products to every row of the incidence."""
    rows = incidence.matrix.shape[0]
    if not target.products_used or incidence.matrix.shape[1] == 0:
        return np.zeros(rows)

    row = incidence.row_of.get(target.client_id)
    if row is not None:
        distances = pairwise_distances(incidence.matrix[row:row + 1], incidence.matrix, metric='jaccard')
        return 1.0 - distances[0]

    # Target outside the index: its unseen products still count toward the union
    columns = [i for i, p in enumerate(incidence.products) if p in target.products_used]
    shared = incidence.matrix[:, columns].sum(axis=1)
    union = incidence.matrix.sum(axis=1) + len(target.products_used) - shared
    return np.divide(shared, union, out=np.zeros(rows), where=union > 0)


def _same(a: Optional[str], b: Optional[str], unknown: str) -> bool:
    if not a or not b:
        return False
    a_norm, b_norm = a.strip().lower(), b.strip().lower()
    return a_norm == b_norm and a_norm != unknown.lower()


def find_similar(
    client: Client,
    index: ClientIndex,
    limit: int = 10,
    weights: SimilarityWeights = DEFAULT_WEIGHTS,
    incidence: Optional[ProductIncidence] = None,
) -> List[SimilarityResult]:
    """
    Find the clients most similar to `client`.

    Args:
        client: Target client
        index: Client Index snapshot to search
        limit: Maximum number of results
        weights: Blend weights for products / segment / geography
        incidence: Precomputed incidence for this index (rebuilt if stale)

    Returns:
        SimilarityResult list, best first, never containing the target
    """
    if limit <= 0 or len(index) == 0 or weights.total <= 0:
        return []

    if incidence is None or not incidence.is_current(index):
        incidence = build_incidence(index)

    jaccard = jaccard_to_all(client, incidence)
    scored = []
    for row, other in enumerate(index.clients):
        if other.client_id == client.client_id:
            continue

        overlap = float(jaccard[row])
        same_segment = _same(client.segment, other.segment, UNKNOWN_SEGMENT)
        if overlap <= 0.0 and not same_segment:
            continue
        same_geography = _same(client.geography, other.geography, 'Unknown')

        score = (
            weights.products * overlap
            + weights.segment * float(same_segment)
            + weights.geography * float(same_geography)
        ) / weights.total
        scored.append((min(1.0, max(0.0, score)), other))

    scored.sort(key=lambda s: (-s[0], -s[1].total_revenue, s[1].client_name.lower()))

    return [
        SimilarityResult(
            client_name=other.client_name,
            similarity_score=round(score, 4),
            shared_products=sorted(client.products_used & other.products_used),
            products_only_in_comparator=sorted(other.products_used - client.products_used),
            segment=other.segment,
            total_revenue=other.total_revenue,
        )
        for score, other in scored[:limit]
    ]
