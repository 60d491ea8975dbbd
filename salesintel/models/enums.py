"""
Enumeration definitions for the Sales Intelligence backend.

All enums inherit from both `str` and `Enum` to ensure JSON serialization
compatibility with Pydantic models, enabling automatic serialization in API
responses.
"""

from enum import Enum


class Priority(str, Enum):
    """
    Cross-sell / upsell priority bucket, derived purely from segment adoption rate.

    - high: adoption_rate >= 0.7
    - medium: adoption_rate >= 0.5
    - low: anything else that cleared the configured minimum threshold
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank; lower ranks are listed first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}


class ProspectSize(str, Enum):
    """
    Estimated company size for a prospect.

    Scales the monthly opportunity estimate and contributes to fit score.
    """
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    ENTERPRISE = "enterprise"


class MatchType(str, Enum):
    """How the Fuzzy Resolver found a client."""
    EXACT = "exact"
    FUZZY = "fuzzy"


class SegmentSource(str, Enum):
    """
    Where a prospect's segment came from.

    - supplied: caller passed a known segment tag
    - keyword: derived from free text by the keyword rules
    - default: no rule matched; configured default segment used
    """
    SUPPLIED = "supplied"
    KEYWORD = "keyword"
    DEFAULT = "default"
