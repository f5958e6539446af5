"""Conversational assistant over a store of support-ticket records."""

__version__ = "1.0.0"
