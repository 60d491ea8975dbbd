"""
Fuzzy Resolver Service

Maps a free-text company name to the closest Client Index entry with a
confidence score.

Resolution Order:
1. Exact match on the normalized name (client name, legal name or alias)
   - confidence = 100
2. Fuzzy match: every normalized name is scored by a pluggable NameSimilarity
   strategy returning a distance on a 0 (best) to 1 (worst) scale
   - the best match is accepted only if its distance is below
     FUZZY_ACCEPTANCE_THRESHOLD
   - confidence = (1 - distance) * 100, capped below 100
3. Otherwise: not found (None)

Ties at either stage go to the client with the highest cumulative revenue,
then the alphabetically first name, so results are deterministic.

Normalization strips corporate suffixes (Pvt, Private, Ltd, Limited, Inc, LLP,
LLC), lower-cases, and removes non-alphanumeric characters, so
"Swiggy Pvt. Ltd." and "swiggy" resolve identically.

The resolver is pure: it holds no state beyond the read-only index passed in
and is safe to call concurrently.
"""

import logging
import re
from typing import List, Optional, Protocol, Tuple

from fuzzywuzzy import fuzz

from salesintel.models.enums import MatchType
from salesintel.models.schemas import Client, ResolveResult
from salesintel.services.client_index import ClientIndex

logger = logging.getLogger(__name__)


# Best fuzzy distance must be strictly below this to be accepted (0=best, 1=worst)
FUZZY_ACCEPTANCE_THRESHOLD: float = 0.4

# A fuzzy match is never reported as certain
MAX_FUZZY_CONFIDENCE: float = 99.0

CORPORATE_SUFFIXES = re.compile(
    r'\b(pvt|private|ltd|limited|inc|incorporated|llp|llc)\b\.?',
    re.IGNORECASE,
)


# =============================================================================
# Name Normalization
# =============================================================================


def normalize_company_name(name: Optional[str]) -> str:
    """
    Normalize a company name for matching.

    Example:
        >>> normalize_company_name("Swiggy Pvt. Ltd.")
        'swiggy'
        >>> normalize_company_name("Acme Technologies")
        'acmetechnologies'
    """
    if not name:
        return ''
    stripped = CORPORATE_SUFFIXES.sub(' ', name.lower())
    return re.sub(r'[^a-z0-9]', '', stripped)


def _spaced_form(name: str) -> str:
    """Suffix-stripped, lower-cased name with word boundaries kept."""
    stripped = CORPORATE_SUFFIXES.sub(' ', name.lower())
    return ' '.join(re.sub(r'[^a-z0-9]+', ' ', stripped).split())


# =============================================================================
# Similarity Strategies
# =============================================================================


class NameSimilarity(Protocol):
    """
    String-similarity strategy used by the fuzzy stage.

    Implementations receive the raw query and candidate names and return a
    distance in [0, 1], 0 meaning identical.
    """

    def distance(self, query: str, candidate: str) -> float:
        ...


class EditDistanceSimilarity:
    """Levenshtein-style ratio over the compact normalized names."""

    def distance(self, query: str, candidate: str) -> float:
        a = normalize_company_name(query)
        b = normalize_company_name(candidate)
        if not a or not b:
            return 1.0
        return 1.0 - fuzz.ratio(a, b) / 100.0


class TokenSetSimilarity:
    """
    Token-set ratio over the spaced names; tolerant of word order and of
    extra words on either side ("Acme" vs "Acme Digital Services").
    """

    def distance(self, query: str, candidate: str) -> float:
        a = _spaced_form(query)
        b = _spaced_form(candidate)
        if not a or not b:
            return 1.0
        return 1.0 - fuzz.token_set_ratio(a, b) / 100.0


DEFAULT_STRATEGY: NameSimilarity = EditDistanceSimilarity()


# =============================================================================
# Resolution
# =============================================================================


def _rank_key(score: float, client: Client) -> Tuple[float, float, str]:
    # Lower sorts first: best score, then highest revenue, then name
    return (-score, -client.total_revenue, client.client_name.lower())


def _exact_matches(normalized_query: str, index: ClientIndex) -> List[Tuple[Client, str]]:
    matches = []
    for client in index:
        for name in client.names:
            if normalize_company_name(name) == normalized_query:
                matches.append((client, name))
                break
    return matches


def _fuzzy_candidates(
    query: str,
    index: ClientIndex,
    strategy: NameSimilarity,
) -> List[Tuple[float, Client, str]]:
    """Best (distance, client, matched_name) per client, unsorted."""
    candidates = []
    for client in index:
        best: Optional[Tuple[float, str]] = None
        for name in client.names:
            if not normalize_company_name(name):
                continue
            d = strategy.distance(query, name)
            if best is None or d < best[0]:
                best = (d, name)
        if best is not None:
            candidates.append((best[0], client, best[1]))
    return candidates


def resolve(
    query: str,
    index: ClientIndex,
    strategy: Optional[NameSimilarity] = None,
    threshold: float = FUZZY_ACCEPTANCE_THRESHOLD,
) -> Optional[ResolveResult]:
    """
    Resolve a free-text company name to a client.

    Args:
        query: Company name as typed by a user or extracted by the language model
        index: Current Client Index snapshot
        strategy: Similarity strategy for the fuzzy stage (edit distance by default)
        threshold: Maximum accepted distance (exclusive)

    Returns:
        ResolveResult with the client and a 0-100 confidence, or None when no
        client is a plausible match.
    """
    normalized_query = normalize_company_name(query)
    if not normalized_query or len(index) == 0:
        return None

    exact = _exact_matches(normalized_query, index)
    if exact:
        client, matched_name = min(exact, key=lambda m: _rank_key(1.0, m[0]))
        return ResolveResult(
            client=client,
            confidence=100.0,
            match_type=MatchType.EXACT,
            matched_name=matched_name,
        )

    scored = [
        (distance, client, name)
        for distance, client, name in _fuzzy_candidates(query, index, strategy or DEFAULT_STRATEGY)
        if distance < threshold
    ]
    if not scored:
        logger.debug(f"No client matched {query!r}")
        return None

    distance, client, matched_name = min(
        scored, key=lambda m: _rank_key(1.0 - m[0], m[1])
    )
    confidence = min(MAX_FUZZY_CONFIDENCE, round((1.0 - distance) * 100.0, 1))
    return ResolveResult(
        client=client,
        confidence=confidence,
        match_type=MatchType.FUZZY,
        matched_name=matched_name,
    )


def search(
    query: str,
    index: ClientIndex,
    limit: int = 20,
    strategy: Optional[NameSimilarity] = None,
    threshold: float = FUZZY_ACCEPTANCE_THRESHOLD,
) -> List[ResolveResult]:
    """
    All accepted matches for a query, best first.

    Exact matches come first with confidence 100, followed by fuzzy matches
    under the acceptance threshold.
    """
    normalized_query = normalize_company_name(query)
    if not normalized_query or limit <= 0:
        return []

    results: List[Tuple[Tuple[float, float, str], ResolveResult]] = []
    for distance, client, name in _fuzzy_candidates(query, index, strategy or DEFAULT_STRATEGY):
        exact = any(normalize_company_name(n) == normalized_query for n in client.names)
        if exact:
            result = ResolveResult(
                client=client, confidence=100.0, match_type=MatchType.EXACT, matched_name=name
            )
            results.append((_rank_key(2.0, client), result))
        elif distance < threshold:
            result = ResolveResult(
                client=client,
                confidence=min(MAX_FUZZY_CONFIDENCE, round((1.0 - distance) * 100.0, 1)),
                match_type=MatchType.FUZZY,
                matched_name=name,
            )
            results.append((_rank_key(1.0 - distance, client), result))

    results.sort(key=lambda r: r[0])
    return [r for _, r in results[:limit]]
