"""
app/connectors package marker.
"""

from app.connectors.base import BaseConnector, ConnectorFetchResult, ConnectorRequestError
from app.connectors.sheet_csv_connector import PublishedSheetConnector, SheetParseError, parse_csv_text

__all__ = [
    "BaseConnector",
    "ConnectorFetchResult",
    "ConnectorRequestError",
    "PublishedSheetConnector",
    "SheetParseError",
    "parse_csv_text",
]
