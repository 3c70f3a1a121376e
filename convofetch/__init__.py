"""Bulk fetcher for conversation recording transcripts."""

__version__ = "0.1.0"
