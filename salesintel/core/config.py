"""
Settings and environment management module for the Sales Intelligence backend.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults for development
- Singleton pattern via @lru_cache for efficient access
- Scoring defaults (adoption threshold, fuzzy acceptance threshold, similarity weights)

Environment Variables:
- CLIENT_DATA_PATH: JSON file holding the raw client records
- PRODUCT_CATALOG_PATH: JSON or CSV file holding the master product list
- SNAPSHOT_REFRESH_SECONDS: Age after which the in-memory snapshot is rebuilt
- RESPONSE_CACHE_TTL_SECONDS: Time-to-live for cached API responses
- LOG_LEVEL: Root log level for the API process

Scoring Defaults:
- min_adoption_threshold: 0.4 (Minimum segment adoption rate for a candidate)
- fuzzy_acceptance_threshold: 0.4 (Maximum name distance accepted by the resolver)
- similarity_product_weight / segment_weight / geography_weight: 0.7 / 0.2 / 0.1
- default_prospect_segment: 'Fintech'

Usage:
    from salesintel.core.config import get_settings

    settings = get_settings()
    threshold = settings.min_adoption_threshold
"""

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        client_data_path: Path to the raw client snapshot (JSON).
        product_catalog_path: Path to the master product catalog (JSON or CSV).
        snapshot_refresh_seconds: Snapshot age in seconds before a rebuild is due.
        response_cache_ttl_seconds: TTL for request-layer response caching.
        min_adoption_threshold: Minimum adoption rate for recommendation candidates.
        fuzzy_acceptance_threshold: Largest name distance (0=best, 1=worst) accepted.
        similarity_product_weight: Weight of the shared-product Jaccard term.
        similarity_segment_weight: Weight of the same-segment bonus.
        similarity_geography_weight: Weight of the same-geography bonus.
        default_similar_limit: Number of similar companies returned by default.
        max_similar_limit: Upper bound accepted for the similar-companies limit.
        default_prospect_segment: Segment used when no keyword rule matches.
        log_level: Log level for the API process.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Snapshot Source
    # =========================================================================

    client_data_path: str = 'data/clients.json'
    product_catalog_path: Optional[str] = 'data/products.json'

    # =========================================================================
    # Refresh and Caching
    # =========================================================================

    # The snapshot is rebuilt wholesale once it is older than this
    snapshot_refresh_seconds: int = 300

    response_cache_ttl_seconds: int = 600

    # =========================================================================
    # Scoring Defaults
    # =========================================================================

    # Minimum segment adoption rate for a product to become a candidate
    min_adoption_threshold: float = 0.4

    # Resolver accepts a fuzzy match only when its distance is below this
    fuzzy_acceptance_threshold: float = 0.4

    # Product overlap dominates the similarity blend
    similarity_product_weight: float = 0.7
    similarity_segment_weight: float = 0.2
    similarity_geography_weight: float = 0.1

    default_similar_limit: int = 10
    max_similar_limit: int = 100

    default_prospect_segment: str = 'Fintech'

    # =========================================================================
    # Logging
    # =========================================================================

    log_level: str = 'INFO'

    @field_validator('min_adoption_threshold', 'fuzzy_acceptance_threshold')
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError('threshold must be between 0 and 1')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid:
            raise ValueError(f'log_level must be one of {valid}')
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns a cached Settings instance so environment variables are only read
    once during the application lifecycle.

    Returns:
        Settings: The application settings instance with all configuration values.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
