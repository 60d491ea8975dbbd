"""
Client Index Test Module

Tests for salesintel/services/client_index.py: the normalization boundary
that turns loosely-typed upstream records into frozen Client models.

Test Coverage:
- Coercion helpers (currency strings, delimited product lists)
- Field priority order when several spellings are present
- Flat and nested record shapes
- Malformed record exclusion and duplicate ids
- The products_used / per_product_revenue invariant
- Product catalog normalization
"""

import pytest
from pydantic import ValidationError

from salesintel.models.schemas import Client, UNKNOWN_SEGMENT
from salesintel.services.client_index import (
    ClientIndex,
    build_client_index,
    build_product_catalog,
    compute_aggregates,
    normalize_client,
    to_number,
    to_string_list,
)
from salesintel.tests.conftest import BUILT_AT, flat_record, nested_record


class TestToNumber:
    """Tests for to_number coercion."""

    @pytest.mark.parametrize('raw,expected', [
        (1234, 1234.0),
        (12.5, 12.5),
        ('$1,234.50', 1234.5),
        ('₹ 1,200', 1200.0),
        ('INR 3,000', 3000.0),
        ('450 USD', 450.0),
        ('-20', -20.0),
        ('Rs. 1,200', 1200.0),
        ('Rs.1200', 1200.0),
        ('₹1,200.50', 1200.5),
        ('-$5', -5.0),
        ('US$ 75', 75.0),
        ('.5', 0.5),
    ])
    def test_numbers_and_currency_strings(self, raw, expected):
        """Numbers and currency strings are interchangeable."""
        assert to_number(raw) == pytest.approx(expected)

    @pytest.mark.parametrize('raw', [None, '', 'n/a', '-', True, float('nan'), float('inf'), {'a': 1}])
    def test_unusable_values_resolve_to_zero(self, raw):
        """Non-numeric, empty and non-finite values resolve to 0 instead of raising."""
        assert to_number(raw) == 0.0


class TestToStringList:
    """Tests for to_string_list coercion."""

    def test_delimited_string_is_split_and_deduplicated(self):
        """Comma, semicolon and pipe delimiters all split; duplicates collapse."""
        assert to_string_list('PAN, Aadhaar;PAN | Face Match') == ['PAN', 'Aadhaar', 'Face Match']

    def test_array_of_names_and_objects(self):
        """Arrays may mix plain names and product objects."""
        raw = ['PAN', {'name': 'Aadhaar'}, {'moduleName': 'PAN'}, '', None]
        assert to_string_list(raw) == ['PAN', 'Aadhaar']

    def test_unsupported_type_gives_empty_list(self):
        assert to_string_list(42) == []
        assert to_string_list(None) == []


class TestNormalizeClient:
    """Tests for single-record normalization."""

    def test_nested_billing_shape(self):
        """Nested records keep every month, most recent first."""
        record = nested_record(
            'Swiggy Pvt Ltd',
            'Gig Economy',
            [{'Face Match': 200, 'PAN Verification': 100}, {'Face Match': 150}],
            client_id='swiggy',
        )
        client = normalize_client(record)

        assert client.client_id == 'swiggy'
        assert client.segment == 'Gig Economy'
        assert client.geography == 'India'
        assert len(client.monthly_usage) == 2
        assert client.latest_month.revenue_for('PAN Verification') == 100
        assert client.per_product_revenue == {'Face Match': 350, 'PAN Verification': 100}
        assert client.total_revenue == 450
        assert client.monthly_avg_revenue == 225
        assert client.products_used == frozenset({'Face Match', 'PAN Verification'})

    def test_flat_shape_gets_single_synthetic_month(self):
        """Flat totals are split evenly over the listed products."""
        client = normalize_client(flat_record('Zeta', 'Fintech', '$900', 'PAN; Aadhaar|Face Match'))

        assert len(client.monthly_usage) == 1
        assert client.monthly_usage[0].month == 'lifetime'
        assert client.per_product_revenue == {'PAN': 300, 'Aadhaar': 300, 'Face Match': 300}
        assert client.total_revenue == 900
        assert client.client_id == 'zeta'

    def test_flat_record_without_products_has_no_revenue(self):
        """Revenue that cannot be attributed to any product is not counted."""
        client = normalize_client(flat_record('Bare', 'Fintech', 5000, None))
        assert client.total_revenue == 0.0
        assert client.products_used == frozenset()
        assert client.monthly_usage == ()

    def test_most_specific_revenue_spelling_wins(self):
        """totalRevenue takes priority over annualRevenue and revenue."""
        record = {
            'name': 'Multi', 'apis': ['PAN'],
            'revenue': 10, 'annualRevenue': 20, 'totalRevenue': 30,
        }
        assert normalize_client(record).total_revenue == 30

    def test_zero_in_the_most_specific_spelling_is_kept(self):
        """A present totalRevenue of 0 is not replaced by a less specific revenue."""
        record = {'name': 'Zero', 'apis': ['PAN'], 'revenue': 500, 'totalRevenue': 0}
        client = normalize_client(record)
        assert client.total_revenue == 0.0
        assert client.products_used == frozenset()

    def test_rupee_revenue_string(self):
        client = normalize_client({'name': 'X', 'revenue': 'Rs. 12,000', 'apis': 'PAN'})
        assert client.total_revenue == 12000.0
        assert client.products_used == frozenset({'PAN'})

    def test_product_list_fields_are_unioned(self):
        """apisUsed, products and apis all contribute products."""
        record = {
            'name': 'Union', 'revenue': 300,
            'apisUsed': 'PAN', 'products': ['Aadhaar'], 'apis': 'PAN,Face Match',
        }
        client = normalize_client(record)
        assert client.products_used == frozenset({'PAN', 'Aadhaar', 'Face Match'})

    def test_missing_segment_defaults_to_unknown(self):
        client = normalize_client({'name': 'NoSeg', 'apis': 'PAN', 'revenue': 10})
        assert client.segment == UNKNOWN_SEGMENT
        assert client.geography == 'Unknown'

    def test_list_valued_geography_takes_first_entry(self):
        client = normalize_client({'name': 'Geo', 'geography': ['', 'Vietnam', 'India']})
        assert client.geography == 'Vietnam'

    def test_unknown_fields_are_preserved_but_not_serialized(self):
        """Unrecognised upstream fields survive on the model, outside its output."""
        client = normalize_client(flat_record('Extra', 'Fintech', 10, 'PAN', crm_owner='Priya'))
        assert client.unrecognized_fields == {'crm_owner': 'Priya'}
        assert 'unrecognized_fields' not in client.model_dump()

    def test_aliases_and_legal_name(self):
        record = nested_record('Swiggy', 'Gig Economy', [{'Face Match': 1}])
        record['profile']['legal_name'] = 'Bundl Technologies Private Limited'
        record['aliases'] = 'Swiggy, Instamart'
        client = normalize_client(record)

        assert client.legal_name == 'Bundl Technologies Private Limited'
        assert client.aliases == ('Instamart',)
        assert client.names == ('Swiggy', 'Bundl Technologies Private Limited', 'Instamart')

    @pytest.mark.parametrize('record', [None, 'Acme', 42, {}, {'name': '   '}, {'revenue': 100}])
    def test_records_without_a_usable_name_are_skipped(self, record):
        assert normalize_client(record) is None

    def test_client_rejects_inconsistent_products_used(self):
        """The model refuses products_used that disagrees with per_product_revenue."""
        with pytest.raises(ValidationError):
            Client(
                client_id='x',
                client_name='X',
                per_product_revenue={'PAN': 10.0, 'Aadhaar': 0.0},
                products_used=frozenset({'PAN', 'Aadhaar'}),
            )

    def test_client_is_frozen(self):
        client = normalize_client(flat_record('Frozen', 'Fintech', 10, 'PAN'))
        with pytest.raises(ValidationError):
            client.segment = 'Other'


class TestComputeAggregates:
    """Tests for aggregate derivation."""

    def test_zero_revenue_products_are_not_used(self):
        client = normalize_client(nested_record('Z', 'Fintech', [{'PAN': 0, 'Aadhaar': 10}]))
        assert client.per_product_revenue == {'PAN': 0, 'Aadhaar': 10}
        assert client.products_used == frozenset({'Aadhaar'})

    def test_no_months(self):
        aggregates = compute_aggregates(())
        assert aggregates['total_revenue'] == 0
        assert aggregates['monthly_avg_revenue'] == 0
        assert aggregates['products_used'] == frozenset()


class TestBuildClientIndex:
    """Tests for index construction."""

    def test_malformed_records_are_excluded_not_raised(self):
        raw = [
            flat_record('Good', 'Fintech', 100, 'PAN'),
            'not a record',
            {'monthly_data': 'garbage'},
            nested_record('Also Good', 'NBFC', [{'Aadhaar': 50}]),
        ]
        index = build_client_index(raw, built_at=BUILT_AT)

        assert len(index) == 2
        assert [c.client_name for c in index] == ['Good', 'Also Good']

    def test_empty_input_is_a_valid_index(self):
        index = build_client_index([], built_at=BUILT_AT)
        assert len(index) == 0
        assert index.segments() == []
        assert index.observed_products() == []
        assert build_client_index(None).clients == ()

    def test_duplicate_ids_keep_the_later_record(self, caplog):
        raw = [
            nested_record('Acme', 'Fintech', [{'PAN': 1}], client_id='dup'),
            nested_record('Acme Renamed', 'NBFC', [{'PAN': 2}], client_id='dup'),
        ]
        with caplog.at_level('WARNING'):
            index = build_client_index(raw)

        assert len(index) == 1
        assert index.get('dup').client_name == 'Acme Renamed'
        assert 'Duplicate client_id' in caplog.text

    def test_built_at_defaults_to_utc_now(self):
        index = build_client_index([])
        assert index.built_at.tzinfo is not None

    def test_segment_helpers(self, fintech_index):
        assert fintech_index.segments() == ['Fintech', 'Payments']
        assert len(fintech_index.clients_in_segment('Fintech')) == 10
        assert 'Aadhaar OKYC' in fintech_index.observed_products()
        assert isinstance(fintech_index, ClientIndex)

    @pytest.mark.property
    def test_products_used_matches_positive_revenue_for_every_client(self, synthetic_index):
        """No orphaned entries in either direction."""
        assert len(synthetic_index) == 60
        for client in synthetic_index:
            positive = {p for p, revenue in client.per_product_revenue.items() if revenue > 0}
            assert client.products_used == positive


class TestBuildProductCatalog:
    """Tests for catalog normalization."""

    def test_names_and_objects(self):
        catalog = build_product_catalog([
            'PAN Verification',
            {'moduleName': 'Aadhaar OKYC', 'billingUnit': 'per verification', 'owner': 'KYC team'},
            {'name': 'PAN Verification'},
            {'unit': 'no name'},
            17,
        ])

        assert [e.product_name for e in catalog] == ['PAN Verification', 'Aadhaar OKYC']
        assert catalog[0].billing_unit == 'per call'
        assert catalog[1].billing_unit == 'per verification'
        assert catalog[1].owner == 'KYC team'

    def test_empty_catalog(self):
        assert build_product_catalog(None) == ()
