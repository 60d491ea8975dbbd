"""
Fuzzy Resolver Test Module

Tests for salesintel/services/fuzzy_resolver.py.

Test Coverage:
- Company name normalization (suffixes, case, punctuation)
- Exact stage: confidence 100 over names, legal names and aliases
- Fuzzy stage: acceptance threshold, confidence below 100
- Not-found for implausible queries
- Deterministic tie-breaking by revenue, then name
- Pluggable similarity strategies
"""

import pytest

from salesintel.models.enums import MatchType
from salesintel.services.client_index import build_client_index
from salesintel.services.fuzzy_resolver import (
    FUZZY_ACCEPTANCE_THRESHOLD,
    EditDistanceSimilarity,
    TokenSetSimilarity,
    normalize_company_name,
    resolve,
    search,
)
from salesintel.tests.conftest import BUILT_AT, nested_record


class TestNormalizeCompanyName:
    """Tests for normalize_company_name."""

    @pytest.mark.parametrize('raw', [
        'Swiggy Pvt. Ltd.',
        'SWIGGY PRIVATE LIMITED',
        'swiggy',
        'Swiggy, Inc.',
        'Swiggy LLP',
    ])
    def test_suffix_case_and_punctuation_variants_collapse(self, raw):
        assert normalize_company_name(raw) == 'swiggy'

    def test_suffix_inside_a_word_is_kept(self):
        """Only whole-word suffixes are stripped."""
        assert normalize_company_name('Incred Finance') == 'incredfinance'

    @pytest.mark.parametrize('raw', [None, '', '  ', 'Pvt Ltd'])
    def test_empty_names(self, raw):
        assert normalize_company_name(raw) == ''


class TestExactResolution:
    """Tests for the exact stage."""

    def test_exact_match_has_confidence_100(self, fintech_index):
        result = resolve('Acme Pvt Ltd', fintech_index)
        assert result.client.client_id == 'acme'
        assert result.confidence == 100
        assert result.match_type == MatchType.EXACT

    @pytest.mark.parametrize('query', ['acme', 'ACME PRIVATE LIMITED', 'Acme Pvt. Ltd.', ' acme, ltd '])
    def test_suffix_case_punctuation_variants_resolve_to_canonical_client(self, fintech_index, query):
        canonical = resolve('Acme Pvt Ltd', fintech_index)
        result = resolve(query, fintech_index)
        assert result.client.client_id == canonical.client.client_id
        assert result.confidence == 100

    def test_alias_and_legal_name_match_exactly(self):
        record = nested_record('Swiggy', 'Gig Economy', [{'Face Match': 10}], client_id='swiggy')
        record['profile']['legal_name'] = 'Bundl Technologies Private Limited'
        record['aliases'] = ['Instamart']
        index = build_client_index([record], built_at=BUILT_AT)

        by_legal = resolve('Bundl Technologies', index)
        by_alias = resolve('instamart', index)
        assert by_legal.client.client_id == 'swiggy'
        assert by_legal.matched_name == 'Bundl Technologies Private Limited'
        assert by_alias.confidence == 100
        assert by_alias.matched_name == 'Instamart'


class TestFuzzyResolution:
    """Tests for the fuzzy stage."""

    def test_typo_picks_the_closer_client(self, fintech_index):
        """'Acme Technolgies' is much closer to 'Acme Technologies' than to 'Acme Pvt Ltd'."""
        result = resolve('Acme Technolgies', fintech_index)

        assert result.client.client_id == 'acme-tech'
        assert result.match_type == MatchType.FUZZY
        assert (1 - FUZZY_ACCEPTANCE_THRESHOLD) * 100 < result.confidence < 100

    @pytest.mark.parametrize('query', ['xqzvwkjp', 'Completely Unrelated Holdings', '12345'])
    def test_implausible_query_is_not_found(self, fintech_index, query):
        assert resolve(query, fintech_index) is None

    @pytest.mark.parametrize('query', [None, '', 'Pvt Ltd'])
    def test_empty_query_is_not_found(self, fintech_index, query):
        assert resolve(query, fintech_index) is None

    def test_empty_index(self):
        assert resolve('acme', build_client_index([])) is None

    def test_accepted_matches_are_never_below_the_threshold_boundary(self, synthetic_index):
        for query in ['Company 0x1', 'Compnay 017', 'zzz', 'Co']:
            result = resolve(query, synthetic_index)
            if result is not None:
                assert result.confidence > (1 - FUZZY_ACCEPTANCE_THRESHOLD) * 100

    def test_equal_distance_tie_goes_to_higher_revenue(self):
        index = build_client_index([
            nested_record('Bolt Pay', 'Payments', [{'PAN': 100}], client_id='small'),
            nested_record('Bolt Pax', 'Payments', [{'PAN': 900}], client_id='large'),
        ], built_at=BUILT_AT)

        result = resolve('Bolt Paz', index)
        assert result.client.client_id == 'large'
        assert result.match_type == MatchType.FUZZY

    def test_exact_tie_goes_to_higher_revenue(self):
        index = build_client_index([
            nested_record('Nova Ltd', 'Payments', [{'PAN': 100}], client_id='nova-1'),
            nested_record('Nova Private Limited', 'Payments', [{'PAN': 500}], client_id='nova-2'),
        ], built_at=BUILT_AT)

        assert resolve('nova', index).client.client_id == 'nova-2'

    def test_stricter_threshold_rejects_weaker_match(self, fintech_index):
        assert resolve('Acme Technolgies', fintech_index, threshold=0.01) is None


class TestStrategies:
    """Tests for the pluggable similarity strategies."""

    def test_edit_distance_is_zero_for_identical_names(self):
        assert EditDistanceSimilarity().distance('Acme Ltd', 'ACME') == 0.0

    def test_distance_is_one_for_empty_names(self):
        assert EditDistanceSimilarity().distance('', 'Acme') == 1.0
        assert TokenSetSimilarity().distance('Acme', 'Pvt Ltd') == 1.0

    def test_token_set_tolerates_extra_words(self):
        strategy = TokenSetSimilarity()
        assert strategy.distance('Acme', 'Acme Digital Services') < EditDistanceSimilarity().distance(
            'Acme', 'Acme Digital Services'
        )

    def test_strategy_is_swappable(self):
        index = build_client_index([
            nested_record('Acme Digital Services', 'Fintech', [{'PAN': 10}], client_id='ads'),
        ], built_at=BUILT_AT)

        assert resolve('Services Acme Digital', index) is None
        result = resolve('Services Acme Digital', index, strategy=TokenSetSimilarity())
        assert result.client.client_id == 'ads'
        assert result.confidence == 99


class TestSearch:
    """Tests for search."""

    def test_exact_first_then_fuzzy(self, fintech_index):
        results = search('Acme Technolgies', fintech_index, threshold=0.7)
        assert results[0].client.client_id == 'acme-tech'
        assert all(r.confidence < 100 for r in results)

    def test_exact_results_have_full_confidence(self, fintech_index):
        results = search('acme', fintech_index)
        assert results[0].client.client_id == 'acme'
        assert results[0].confidence == 100

    def test_limit(self, fintech_index):
        assert len(search('Peer', fintech_index, limit=3, threshold=1.0)) == 3
        assert search('Peer', fintech_index, limit=0) == []
