"""Null Fake: Amazon review authenticity analysis service."""

__version__ = "0.1.0"
