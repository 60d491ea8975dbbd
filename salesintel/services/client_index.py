"""
Client Index Service

This module is the single normalization boundary between the upstream snapshot
collaborator and the scoring core. It turns loosely-typed client records into
frozen Client models and indexes them by client id.

Upstream records arrive in two shapes:
- Flat records (CSV exports, CRM dumps): name, sector, revenue, apis, ...
- Nested billing records: client_name, profile{segment, geography, ...},
  monthly_data[{month, apis[{name, revenue_usd, usage}]}]

Field names vary by source. Each logical field has a declared priority order in
FIELD_ALIASES; the first present, non-empty spelling wins. Unknown fields are
preserved on the Client but ignored by every computation.

Build Rules:
- Currency strings ("$1,234.50", "INR 1,200", "Rs. 1,200") and numbers are
  interchangeable; non-numeric or empty values resolve to 0, never to an error
- Product lists arriving as comma/semicolon/pipe-delimited strings or arrays
  are deduplicated into a single set
- Records without a usable name are skipped, and a malformed record never
  aborts the build
- Aggregates are computed once per client during the build
- Zero clients is a valid, well-formed index
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from salesintel.models.schemas import (
    UNKNOWN_SEGMENT,
    Client,
    MonthlyUsage,
    ProductCatalogEntry,
    ProductUsage,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS - Field Priority Order
# Dotted keys look inside nested objects ("profile.segment").
# Earlier spellings are more specific and win when several are present.
# =============================================================================

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    'name': ('client_name', 'clientName', 'name', 'company_name', 'companyName'),
    'client_id': ('client_id', 'clientId', 'id', 'account_ids.zoho_id'),
    'legal_name': ('profile.legal_name', 'legal_name', 'legalName'),
    'aliases': ('aliases', 'profile.zoho_name', 'zoho_name'),
    'segment': ('profile.segment', 'segment', 'sector', 'industry', 'vertical'),
    'geography': ('profile.geography', 'geography', 'country', 'region'),
    'payment_model': ('profile.payment_model', 'payment_model', 'paymentModel', 'billing_type'),
    'revenue': ('totalRevenue', 'total_revenue', 'annualRevenue', 'revenue'),
    'calls': ('totalCalls', 'total_calls', 'apiCalls', 'api_calls'),
    'monthly': ('monthly_data', 'monthlyData', 'monthly_usage', 'billing'),
}

# Product list fields are unioned rather than prioritized
PRODUCT_LIST_FIELDS: Tuple[str, ...] = ('apisUsed', 'apis_used', 'products', 'apis', 'summary.main_apis')

MONTH_LABEL_FIELDS: Tuple[str, ...] = ('month', 'period', 'label')
MONTH_PRODUCT_FIELDS: Tuple[str, ...] = ('apis', 'products', 'usage')
PRODUCT_NAME_FIELDS: Tuple[str, ...] = ('name', 'product_name', 'productName', 'moduleName', 'api')
PRODUCT_REVENUE_FIELDS: Tuple[str, ...] = ('revenue_usd', 'revenue', 'cost', 'amount')
PRODUCT_CALL_FIELDS: Tuple[str, ...] = ('usage', 'call_volume', 'calls', 'total')

CATALOG_NAME_FIELDS: Tuple[str, ...] = ('product_name', 'productName', 'moduleName', 'name', 'api')
CATALOG_UNIT_FIELDS: Tuple[str, ...] = ('billing_unit', 'billingUnit', 'unit')
CATALOG_OWNER_FIELDS: Tuple[str, ...] = ('owner', 'product_owner', 'productOwner')

LIST_DELIMITERS = re.compile(r'[,;|]')

# Leading currency codes ("INR", "Rs.", "US$") and symbols ("$", "₹")
CURRENCY_PREFIX = re.compile(r'^(?:[A-Za-z]+\.?|[^\d\s+\-.])+\s*')
TRAILING_UNIT = re.compile(r'[^\d.]+$')

_KNOWN_TOP_LEVEL_FIELDS = {
    key.split('.')[0]
    for aliases in FIELD_ALIASES.values()
    for key in aliases
} | {key.split('.')[0] for key in PRODUCT_LIST_FIELDS} | {'profile'}


# =============================================================================
# Coercion Helpers
# =============================================================================


def to_number(value: Any) -> float:
    """
    Coerce a loosely-typed value to a float.

    Currency symbols, codes, thousands separators and whitespace are ignored.
    Anything that is not a finite number resolves to 0.

    Example:
        >>> to_number("$1,234.50")
        1234.5
        >>> to_number("n/a")
        0.0
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    if not isinstance(value, str):
        return 0.0

    cleaned = value.replace(',', '').strip()
    sign = ''
    if cleaned[:1] in ('-', '+'):
        # "-$5": the sign may precede the currency
        sign, cleaned = cleaned[0], cleaned[1:].lstrip()
    cleaned = CURRENCY_PREFIX.sub('', cleaned)
    cleaned = TRAILING_UNIT.sub('', cleaned)
    if not cleaned or cleaned in {'-', '+', '.'}:
        return 0.0
    try:
        number = float(sign + cleaned)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def to_string_list(value: Any) -> List[str]:
    """
    Coerce a delimited string, an array, or an array of product objects into a
    deduplicated list of names, preserving first-seen order.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: List[Any] = LIST_DELIMITERS.split(value)
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        return []

    seen: Dict[str, None] = {}
    for item in items:
        if isinstance(item, dict):
            item = _first_present(item, PRODUCT_NAME_FIELDS)
        if item is None or isinstance(item, (dict, list)):
            continue
        text = str(item).strip()
        if text:
            seen.setdefault(text, None)
    return list(seen)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _lookup(record: Dict[str, Any], dotted_key: str) -> Any:
    current: Any = record
    for part in dotted_key.split('.'):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def _first_present(record: Dict[str, Any], keys: Iterable[str]) -> Any:
    """Return the value of the first key whose value is present and non-empty."""
    for key in keys:
        value = _lookup(record, key)
        if not _is_empty(value):
            return value
    return None


def _first_text(record: Dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    value = _first_present(record, keys)
    if isinstance(value, (list, tuple)):
        # geography/industry sometimes arrive as ["India", "SEA"]
        value = next((v for v in value if not _is_empty(v)), None)
    if isinstance(value, dict):
        value = value.get('value')
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _first_number(record: Dict[str, Any], keys: Iterable[str]) -> float:
    """
    The first present, non-empty spelling decides, even when it is zero or
    not numeric; a less specific spelling is never consulted after it.
    """
    return to_number(_first_present(record, keys))


def _slugify(name: str) -> str:
    return re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-') or name


# =============================================================================
# Monthly Usage Normalization
# =============================================================================


def _normalize_product_usage(raw: Any) -> Optional[ProductUsage]:
    if isinstance(raw, str):
        name = raw.strip()
        return ProductUsage(product_name=name) if name else None
    if not isinstance(raw, dict):
        return None

    name = _first_text(raw, PRODUCT_NAME_FIELDS)
    if not name:
        return None
    return ProductUsage(
        product_name=name,
        revenue=_first_number(raw, PRODUCT_REVENUE_FIELDS),
        call_volume=max(0.0, _first_number(raw, PRODUCT_CALL_FIELDS)),
    )


def _normalize_month(raw: Any) -> Optional[MonthlyUsage]:
    if not isinstance(raw, dict):
        return None
    products_raw = _first_present(raw, MONTH_PRODUCT_FIELDS) or []
    if not isinstance(products_raw, (list, tuple)):
        products_raw = to_string_list(products_raw)

    products = [p for p in (_normalize_product_usage(item) for item in products_raw) if p]
    return MonthlyUsage(
        month=_first_text(raw, MONTH_LABEL_FIELDS) or '',
        products=tuple(products),
    )


def _synthetic_month(record: Dict[str, Any]) -> Tuple[MonthlyUsage, ...]:
    """
    Build a single month-record for a flat record that carries only lifetime
    totals. Revenue and calls are split evenly across the listed products.
    """
    products: Dict[str, None] = {}
    for key in PRODUCT_LIST_FIELDS:
        for name in to_string_list(_lookup(record, key)):
            products.setdefault(name, None)
    if not products:
        return ()

    revenue_share = _first_number(record, FIELD_ALIASES['revenue']) / len(products)
    calls_share = max(0.0, _first_number(record, FIELD_ALIASES['calls'])) / len(products)
    return (
        MonthlyUsage(
            month='lifetime',
            products=tuple(
                ProductUsage(product_name=name, revenue=revenue_share, call_volume=calls_share)
                for name in products
            ),
        ),
    )


def _normalize_monthly_usage(record: Dict[str, Any]) -> Tuple[MonthlyUsage, ...]:
    monthly_raw = _first_present(record, FIELD_ALIASES['monthly'])
    if isinstance(monthly_raw, (list, tuple)):
        months = tuple(m for m in (_normalize_month(item) for item in monthly_raw) if m)
        if months:
            return months
    return _synthetic_month(record)


def compute_aggregates(monthly_usage: Tuple[MonthlyUsage, ...]) -> Dict[str, Any]:
    """
    Derive the cached aggregates of a Client from its month-records.

    Returns:
        Dict with total_revenue, monthly_avg_revenue, per_product_revenue and
        products_used (products whose cumulative revenue is positive).
    """
    per_product_revenue: Dict[str, float] = {}
    for month in monthly_usage:
        for usage in month.products:
            per_product_revenue[usage.product_name] = (
                per_product_revenue.get(usage.product_name, 0.0) + usage.revenue
            )

    total_revenue = sum(per_product_revenue.values())
    return {
        'total_revenue': total_revenue,
        'monthly_avg_revenue': total_revenue / len(monthly_usage) if monthly_usage else 0.0,
        'per_product_revenue': per_product_revenue,
        'products_used': frozenset(p for p, revenue in per_product_revenue.items() if revenue > 0),
    }


def normalize_client(record: Any) -> Optional[Client]:
    """
    Normalize one raw record into a Client.

    Returns:
        The Client, or None when the record has no usable name.

    Raises:
        pydantic.ValidationError: If the normalized values fail validation.
    """
    if not isinstance(record, dict):
        return None

    name = _first_text(record, FIELD_ALIASES['name'])
    if not name:
        return None

    monthly_usage = _normalize_monthly_usage(record)
    aliases = tuple(
        alias for alias in to_string_list(_first_present(record, FIELD_ALIASES['aliases']))
        if alias != name
    )

    return Client(
        client_id=_first_text(record, FIELD_ALIASES['client_id']) or _slugify(name),
        client_name=name,
        legal_name=_first_text(record, FIELD_ALIASES['legal_name']),
        aliases=aliases,
        segment=_first_text(record, FIELD_ALIASES['segment']) or UNKNOWN_SEGMENT,
        geography=_first_text(record, FIELD_ALIASES['geography']) or 'Unknown',
        payment_model=_first_text(record, FIELD_ALIASES['payment_model']),
        monthly_usage=monthly_usage,
        unrecognized_fields={
            k: v for k, v in record.items() if k not in _KNOWN_TOP_LEVEL_FIELDS
        },
        **compute_aggregates(monthly_usage),
    )


# =============================================================================
# Client Index
# =============================================================================


class ClientIndex:
    """
    Immutable in-memory catalog of Client records for one refresh cycle.

    Components receive the index read-only. Derived state elsewhere is keyed
    by `built_at` so staleness is detectable.
    """

    def __init__(self, clients: Iterable[Client], built_at: Optional[datetime] = None):
        by_id: Dict[str, Client] = {}
        for client in clients:
            if client.client_id in by_id:
                logger.warning(
                    f"Duplicate client_id {client.client_id!r}; keeping the later record"
                )
            by_id[client.client_id] = client
        self._by_id = by_id
        self._clients = tuple(by_id.values())
        self._built_at = built_at or datetime.now(timezone.utc)

    @property
    def built_at(self) -> datetime:
        return self._built_at

    @property
    def clients(self) -> Tuple[Client, ...]:
        return self._clients

    def get(self, client_id: str) -> Optional[Client]:
        return self._by_id.get(client_id)

    def segments(self) -> List[str]:
        """Distinct segments, in first-seen order."""
        return list(dict.fromkeys(c.segment for c in self._clients))

    def clients_in_segment(self, segment: str) -> List[Client]:
        return [c for c in self._clients if c.segment == segment]

    def observed_products(self) -> List[str]:
        """Distinct product names seen in any month-record, in first-seen order."""
        seen: Dict[str, None] = {}
        for client in self._clients:
            for product in client.per_product_revenue:
                seen.setdefault(product, None)
        return list(seen)

    def __len__(self) -> int:
        return len(self._clients)

    def __iter__(self) -> Iterator[Client]:
        return iter(self._clients)

    def __repr__(self) -> str:
        return f"ClientIndex(clients={len(self._clients)}, built_at={self._built_at.isoformat()})"


def build_client_index(
    raw_clients: Optional[Iterable[Any]],
    built_at: Optional[datetime] = None,
) -> ClientIndex:
    """
    Build a ClientIndex from raw upstream records.

    Never raises for a single bad record: it is logged and excluded, and the
    build continues.

    Args:
        raw_clients: Sequence of loosely-typed client records
        built_at: Snapshot timestamp (defaults to now, UTC)

    Returns:
        ClientIndex, possibly empty
    """
    clients: List[Client] = []
    skipped = 0

    for position, record in enumerate(raw_clients or []):
        try:
            client = normalize_client(record)
        except (ValidationError, ValueError, TypeError) as e:
            logger.debug(f"Excluding malformed client record #{position}: {e}")
            client = None
        if client is None:
            skipped += 1
            continue
        clients.append(client)

    index = ClientIndex(clients, built_at=built_at)
    logger.info(f"Built client index: {len(index)} clients, {skipped} records skipped")
    return index


# =============================================================================
# Product Catalog
# =============================================================================


def build_product_catalog(raw_catalog: Optional[Iterable[Any]]) -> Tuple[ProductCatalogEntry, ...]:
    """
    Normalize the master product list.

    Entries may be plain names or objects; unusable entries are skipped and
    duplicate names keep the first entry.
    """
    entries: Dict[str, ProductCatalogEntry] = {}
    for raw in raw_catalog or []:
        if isinstance(raw, str):
            raw = {'product_name': raw}
        if not isinstance(raw, dict):
            continue
        name = _first_text(raw, CATALOG_NAME_FIELDS)
        if not name or name in entries:
            continue
        try:
            entries[name] = ProductCatalogEntry(
                product_name=name,
                billing_unit=_first_text(raw, CATALOG_UNIT_FIELDS) or 'per call',
                owner=_first_text(raw, CATALOG_OWNER_FIELDS),
            )
        except ValidationError as e:
            logger.debug(f"Excluding malformed catalog entry {raw!r}: {e}")

    logger.info(f"Built product catalog: {len(entries)} products")
    return tuple(entries.values())
