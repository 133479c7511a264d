"""
app/validators/row_normalizer.py

Row-level type coercion for spreadsheet records.

Only an unparsable or missing date rejects a row. Numeric and string
columns always degrade to well-defined defaults.
"""

from __future__ import annotations

import math
import unicodedata
from datetime import datetime
from typing import Any, Mapping

from app.domain.marketing_fact import NUMERIC_FIELDS, UNKNOWN_CHANNEL, FactRow, RowValidationError

DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
)

ZERO_TOKENS = frozenset({"", "-", "—", "–"})
_STRIPPED_NUMBER_CHARS = frozenset({",", "%"})


def parse_date(value: Any) -> datetime | None:
    """
    Parse a spreadsheet date cell into a naive datetime, or None.

    Accepts ISO dates (optionally with a time part), ``M/D/YYYY`` and long
    forms such as ``January 1, 2026``.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)

    raw = str(value).strip()
    if not raw:
        return None

    normalized = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        return datetime.fromisoformat(normalized).replace(tzinfo=None)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    return None


def parse_number(value: Any) -> float:
    """
    Coerce a spreadsheet cell into a finite float; anything unparsable is 0.0.
    """

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0

    cleaned = "".join(
        ch
        for ch in str(value)
        if ch not in _STRIPPED_NUMBER_CHARS
        and not ch.isspace()
        and unicodedata.category(ch) != "Sc"
    )
    if cleaned in ZERO_TOKENS:
        return 0.0
    try:
        parsed = float(cleaned)
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


class FactRowNormalizer:
    """
    Converts one canonical mapped record into a typed FactRow.
    """

    def is_completely_empty_row(self, row: Mapping[str, Any]) -> bool:
        """
        Return True when all values in the row are empty or whitespace.
        """

        return all(self._is_blank(value) for value in row.values())

    def normalize(
        self,
        *,
        mapped_row: Mapping[str, Any],
        row_number: int,
    ) -> tuple[FactRow | None, list[RowValidationError]]:
        """
        Normalize one mapped row; a missing or unparsable date rejects it.
        """

        raw_date = mapped_row.get("date")
        parsed_date = parse_date(raw_date)
        if parsed_date is None:
            message = (
                "Date column is not mapped."
                if "date" not in mapped_row
                else ("Required value is missing." if self._is_blank(raw_date) else "Invalid date format.")
            )
            return None, [
                RowValidationError(
                    row_number=row_number,
                    column="date",
                    message=message,
                    value=self._stringify_value(raw_date),
                )
            ]

        numbers = {name: parse_number(mapped_row.get(name)) for name in NUMERIC_FIELDS}
        return (
            FactRow(
                date=parsed_date,
                channel=self._parse_string(mapped_row.get("channel")) or UNKNOWN_CHANNEL,
                campaign=self._parse_string(mapped_row.get("campaign")),
                **numbers,
            ),
            [],
        )

    def _parse_string(self, value: Any) -> str:
        if self._is_blank(value):
            return ""
        return str(value).strip()

    @staticmethod
    def _is_blank(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, (list, tuple)):
            return all(str(item).strip() == "" for item in value)
        return str(value).strip() == ""

    @staticmethod
    def _stringify_value(value: Any) -> str | None:
        if value is None:
            return None
        return str(value)
