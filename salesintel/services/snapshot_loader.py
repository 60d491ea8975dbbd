"""
Snapshot Loader Service

File-backed collaborator that supplies the raw, loosely-typed snapshot the
Client Index is built from.

Supported Sources:
- Clients: JSON file holding either a list of records or an object wrapping
  the list under 'clients' or 'data'
- Product catalog: JSON (list of names or objects, optionally wrapped under
  'products', 'apis' or 'data') or CSV parsed with pandas

The loader performs no normalization: records are handed to
build_client_index / build_product_catalog as-is.

Error Handling:
- Missing or unreadable client file -> SnapshotUnavailableError
- Missing catalog path -> empty catalog (the Adoption Analyzer falls back to
  observed products)
- Unreadable catalog file -> SnapshotUnavailableError
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from salesintel.core.config import Settings
from salesintel.core.snapshot import SnapshotUnavailableError

logger = logging.getLogger(__name__)


CLIENT_WRAPPER_KEYS: Sequence[str] = ('clients', 'data')
CATALOG_WRAPPER_KEYS: Sequence[str] = ('products', 'apis', 'data')


@dataclass
class RawSnapshot:
    """Raw client records and raw product catalog, exactly as loaded."""
    clients: List[Any] = field(default_factory=list)
    catalog: List[Any] = field(default_factory=list)


def _unwrap(payload: Any, wrapper_keys: Sequence[str], source: Path) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in wrapper_keys:
            if isinstance(payload.get(key), list):
                return payload[key]
    raise SnapshotUnavailableError(f"{source} does not contain a list of records")


def _read_json(path: Path) -> Any:
    try:
        with path.open('r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise SnapshotUnavailableError(f"Snapshot file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise SnapshotUnavailableError(f"Failed to read {path}: {e}") from e


def _read_catalog_csv(path: Path) -> List[Dict[str, Any]]:
    try:
        df = pd.read_csv(path)
    except FileNotFoundError as e:
        raise SnapshotUnavailableError(f"Snapshot file not found: {path}") from e
    except (OSError, ValueError) as e:
        raise SnapshotUnavailableError(f"Failed to parse CSV catalog {path}: {e}") from e

    # Empty cells become None rather than NaN
    df = df.astype(object).where(pd.notna(df), None)
    logger.info(f"Parsed catalog CSV with {len(df)} rows and {len(df.columns)} columns")
    return df.to_dict(orient='records')


def load_clients(path: str) -> List[Any]:
    source = Path(path)
    return _unwrap(_read_json(source), CLIENT_WRAPPER_KEYS, source)


def load_catalog(path: Optional[str]) -> List[Any]:
    if not path:
        return []
    source = Path(path)
    if not source.exists():
        logger.warning(f"Product catalog {source} not found; continuing without a catalog")
        return []
    if source.suffix.lower() == '.csv':
        return _read_catalog_csv(source)
    return _unwrap(_read_json(source), CATALOG_WRAPPER_KEYS, source)


def load_snapshot(settings: Settings) -> RawSnapshot:
    """
    Load the raw snapshot from the configured files.

    Args:
        settings: Application settings (client_data_path, product_catalog_path)

    Returns:
        RawSnapshot with unnormalized client records and catalog entries

    Raises:
        SnapshotUnavailableError: If the client data cannot be read
    """
    clients = load_clients(settings.client_data_path)
    catalog = load_catalog(settings.product_catalog_path)
    logger.info(
        f"Loaded snapshot: {len(clients)} raw client records, {len(catalog)} catalog entries"
    )
    return RawSnapshot(clients=clients, catalog=catalog)
