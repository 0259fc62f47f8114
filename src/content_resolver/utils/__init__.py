"""Utility modules for the content resolver."""

from .clock import utcnow
from .normalization import (
    are_similar,
    normalize_for,
    normalize_name,
    normalize_program_name,
    normalize_query,
    similarity,
)

__all__ = [
    "are_similar",
    "normalize_for",
    "normalize_name",
    "normalize_program_name",
    "normalize_query",
    "similarity",
    "utcnow",
]
