"""
Sales Intelligence backend.

Scoring core that turns a snapshot of client billing data into product
recommendations, revenue-opportunity estimates and lists of comparable
companies, plus the FastAPI request layer that serves them.
"""

__version__ = "0.1.0"
