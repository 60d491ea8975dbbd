"""
Sales Intelligence API package initialization.

This package contains the FastAPI router modules:
- intelligence: resolve, adoption, recommendations, similar companies,
  prospect profiling and snapshot refresh
"""

from salesintel.api.intelligence import router as intelligence_router

__all__ = [
    "intelligence_router",
]
