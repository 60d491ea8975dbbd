"""Tests for the Sales Intelligence backend."""
