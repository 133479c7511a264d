"""
app/mappers package marker.
"""

from app.mappers.header_resolver import (
    CANONICAL_FIELDS,
    DEFAULT_COLUMN_ALIASES,
    HeaderResolution,
    HeaderResolver,
    normalize_header,
)

__all__ = [
    "CANONICAL_FIELDS",
    "DEFAULT_COLUMN_ALIASES",
    "HeaderResolution",
    "HeaderResolver",
    "normalize_header",
]
