"""
Pytest Configuration and Shared Fixtures for Sales Intelligence Tests.

This module provides fixtures and configuration for all tests, supporting:
- Async test execution with pytest-asyncio
- Raw client records in both upstream shapes (flat and nested billing)
- Small hand-built books for the end-to-end scenarios
- A seeded synthetic book for property-style checks over many clients
- A SalesIntelEngine bound to each book

Books:
- fintech_book: "Acme Pvt Ltd" (Fintech) using only PAN Verification; the
  Fintech segment has Aadhaar OKYC at 80% adoption (avg 500/month) and PAN
  Verification at 90%
- lending_book: a Lending segment with high KYC/bank-verification adoption
- synthetic_book: 60 clients over four segments and eight products,
  generated with numpy's default_rng(42)
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import numpy as np
import pytest

from salesintel.core.config import Settings
from salesintel.services.client_index import (
    ClientIndex,
    build_client_index,
    build_product_catalog,
)
from salesintel.services.engine import SalesIntelEngine


BUILT_AT = datetime(2026, 3, 1, tzinfo=timezone.utc)

PRODUCT_NAMES: List[str] = [
    'PAN Verification',
    'Aadhaar OKYC',
    'Bank Account Verification',
    'Face Match',
    'GST Verification',
    'CKYC Search',
    'AML Search',
    'Selfie Validation',
]

SYNTHETIC_SEGMENTS: List[str] = ['Fintech', 'NBFC', 'Insurance', 'Gaming']


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers for test organization.

    Custom markers defined:
    - scenario: end-to-end scenarios over a hand-built book
    - property: invariants checked across the synthetic book
    - api: request-layer tests through FastAPI's TestClient
    """
    config.addinivalue_line(
        'markers',
        'scenario: end-to-end scenarios over a hand-built client book'
    )
    config.addinivalue_line(
        'markers',
        'property: invariants checked across every client of the synthetic book'
    )
    config.addinivalue_line(
        'markers',
        'api: request-layer tests through the FastAPI TestClient'
    )


# ============================================================
# RECORD BUILDERS
# ============================================================

def nested_record(
    name: str,
    segment: str,
    months: List[Dict[str, float]],
    geography: str = 'India',
    client_id: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """
    Raw record in the nested billing shape.

    Args:
        months: Per-month {product: revenue}, most recent first
    """
    record: Dict[str, Any] = {
        'client_name': name,
        'profile': {'segment': segment, 'geography': geography},
        'monthly_data': [
            {
                'month': f'M{len(months) - i}',
                'apis': [
                    {'name': product, 'revenue_usd': revenue, 'usage': int(revenue * 2)}
                    for product, revenue in month.items()
                ],
            }
            for i, month in enumerate(months)
        ],
    }
    if client_id:
        record['client_id'] = client_id
    record.update(extra)
    return record


def flat_record(name: str, sector: str, revenue: Any, apis: Any, **extra: Any) -> Dict[str, Any]:
    """Raw record in the flat CRM-export shape."""
    record = {'name': name, 'sector': sector, 'revenue': revenue, 'apis': apis}
    record.update(extra)
    return record


def make_engine(raw_clients: List[Any], catalog: Optional[List[Any]] = None, **settings: Any) -> SalesIntelEngine:
    index = build_client_index(raw_clients, built_at=BUILT_AT)
    return SalesIntelEngine(
        index,
        build_product_catalog(catalog if catalog is not None else PRODUCT_NAMES),
        Settings(_env_file=None, **settings),
    )


# ============================================================
# SETTINGS FIXTURE
# ============================================================

@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of any .env file in the working directory."""
    return Settings(_env_file=None)


# ============================================================
# HAND-BUILT BOOKS
# ============================================================

@pytest.fixture
def fintech_records() -> List[Dict[str, Any]]:
    """
    Fintech segment of 10 clients.

    - Acme Pvt Ltd: PAN Verification only (1000)
    - Peer 1..8: Aadhaar OKYC (500) and PAN Verification
    - Peer 9: GST Verification only
    => Aadhaar OKYC 8/10 = 80% avg 500, PAN Verification 9/10 = 90%
    """
    records = [
        nested_record('Acme Pvt Ltd', 'Fintech', [{'PAN Verification': 1000}], client_id='acme'),
        nested_record(
            'Acme Technologies', 'Payments', [{'Bank Account Verification': 300}],
            client_id='acme-tech',
        ),
    ]
    for i in range(1, 9):
        records.append(nested_record(
            f'Peer {i}',
            'Fintech',
            [{'Aadhaar OKYC': 500, 'PAN Verification': 100 * i}],
            client_id=f'peer-{i}',
        ))
    records.append(nested_record(
        'Peer 9', 'Fintech', [{'GST Verification': 200}], geography='Singapore', client_id='peer-9',
    ))
    return records


@pytest.fixture
def fintech_index(fintech_records) -> ClientIndex:
    return build_client_index(fintech_records, built_at=BUILT_AT)


@pytest.fixture
def fintech_engine(fintech_records) -> SalesIntelEngine:
    return make_engine(fintech_records)


@pytest.fixture
def lending_records() -> List[Dict[str, Any]]:
    """
    Lending segment of 6 clients plus a small NBFC segment.

    Bank Account Verification 6/6, Aadhaar OKYC 5/6, CKYC Search 3/6,
    Face Match 1/6.
    """
    records = []
    for i in range(1, 7):
        usage = {'Bank Account Verification': 400.0}
        if i <= 5:
            usage['Aadhaar OKYC'] = 250.0
        if i <= 3:
            usage['CKYC Search'] = 150.0
        if i == 1:
            usage['Face Match'] = 90.0
        records.append(nested_record(f'QuickCash {i}', 'Lending', [usage], client_id=f'lend-{i}'))
    records.append(nested_record('Old Finance', 'NBFC', [{'PAN Verification': 50}], client_id='nbfc-1'))
    return records


@pytest.fixture
def lending_engine(lending_records) -> SalesIntelEngine:
    return make_engine(lending_records)


# ============================================================
# SYNTHETIC BOOK
# ============================================================

@pytest.fixture(scope='session')
def synthetic_records() -> List[Dict[str, Any]]:
    """
    60 nested records over four segments, three months each.

    Every segment favours a different pair of products so adoption rates
    spread across the high/medium/low buckets.
    """
    rng = np.random.default_rng(42)
    records = []
    for i in range(60):
        segment = SYNTHETIC_SEGMENTS[i % len(SYNTHETIC_SEGMENTS)]
        favoured = {PRODUCT_NAMES[(i % len(SYNTHETIC_SEGMENTS)) * 2], PRODUCT_NAMES[(i % len(SYNTHETIC_SEGMENTS)) * 2 + 1]}
        months = []
        for _ in range(3):
            usage = {}
            for product in PRODUCT_NAMES:
                p_use = 0.8 if product in favoured else 0.25
                if rng.random() < p_use:
                    usage[product] = float(np.round(rng.uniform(50, 2000), 2))
                elif rng.random() < 0.1:
                    usage[product] = 0.0
            months.append(usage)
        records.append(nested_record(
            f'Company {i:03d}',
            segment,
            months,
            geography=['India', 'Singapore', 'Indonesia'][int(rng.integers(0, 3))],
            client_id=f'c-{i:03d}',
        ))
    return records


@pytest.fixture(scope='session')
def synthetic_index(synthetic_records) -> ClientIndex:
    return build_client_index(synthetic_records, built_at=BUILT_AT)


@pytest.fixture(scope='session')
def synthetic_engine(synthetic_records) -> SalesIntelEngine:
    return make_engine(synthetic_records)
