"""
app/connectors/sheet_csv_connector.py

Connector for a spreadsheet published to the web as CSV.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Any

import requests

from app.config import ExternalHTTPSettings, SheetSourceSettings
from app.connectors.base import BaseConnector, ConnectorFetchResult, ConnectorRequestError

logger = logging.getLogger(__name__)


class SheetParseError(ConnectorRequestError):
    """
    Raised when the downloaded body is not a usable CSV table.
    """


def parse_csv_text(text: str, *, source: str = "sheet_csv") -> ConnectorFetchResult:
    """
    Parse CSV text with a header row into raw string records.

    Blank lines and records whose cells are all empty are skipped and counted.
    """

    reader = csv.DictReader(io.StringIO(text, newline=""))
    try:
        headers = tuple(reader.fieldnames or ())
        records: list[dict[str, Any]] = []
        blank_records = 0
        for raw_row in reader:
            values = [value for key, value in raw_row.items() if key is not None]
            if all(value is None or not str(value).strip() for value in values):
                blank_records += 1
                continue
            records.append(raw_row)
    except csv.Error as exc:
        raise SheetParseError(f"{source}: invalid CSV format: {exc}") from exc

    if not headers:
        raise SheetParseError(f"{source}: CSV header row is missing.")
    if not records:
        raise SheetParseError(f"{source}: no rows found in CSV.")

    return ConnectorFetchResult(
        source=source,
        headers=headers,
        records=records,
        blank_records=blank_records,
    )


class PublishedSheetConnector(BaseConnector):
    """
    Downloads the published CSV export and returns its raw records.
    """

    def __init__(
        self,
        *,
        settings: SheetSourceSettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="sheet_csv", http_settings=http_settings, session=session)
        self._settings = settings

    def fetch_records(self) -> ConnectorFetchResult:
        if not self._settings.csv_url:
            raise ConnectorRequestError(f"{self.source}: SHEET_CSV_URL is not configured.")

        text = self._request_text(method="GET", url=self._settings.csv_url)
        result = parse_csv_text(text, source=self.source)
        logger.info(
            "Sheet CSV fetched source=%s headers=%s records=%s blank_records=%s",
            self.source,
            len(result.headers),
            len(result.records),
            result.blank_records,
        )
        return result
