"""
app/validators package marker.
"""

from app.validators.mapping_validator import MappingErrorDetail, MappingValidator, SchemaMappingError
from app.validators.row_normalizer import FactRowNormalizer, parse_date, parse_number

__all__ = [
    "FactRowNormalizer",
    "MappingErrorDetail",
    "MappingValidator",
    "SchemaMappingError",
    "parse_date",
    "parse_number",
]
