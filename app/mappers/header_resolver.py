"""
app/mappers/header_resolver.py

Alias-driven resolution of spreadsheet headers to canonical marketing fields.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from app.validators.mapping_validator import MappingErrorDetail, MappingValidator, SchemaMappingError

logger = logging.getLogger(__name__)

CANONICAL_FIELDS: tuple[str, ...] = (
    "date",
    "channel",
    "campaign",
    "spend",
    "impressions",
    "clicks",
    "leads",
    "booked",
    "show_ups",
    "qualified_calls",
    "deals_closed",
    "revenue",
    "cash_in",
)

# Order within each tuple is match priority.
DEFAULT_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("date", "day", "report date"),
    "channel": ("channel", "platform", "source"),
    "campaign": ("campaign", "campaign name", "ad set"),
    "spend": ("ad spend", "spend", "amount spent"),
    "impressions": ("impressions", "impr"),
    "clicks": ("clicks", "click", "link clicks"),
    "leads": ("leads", "lead"),
    "booked": ("leads booked", "booked", "booked calls"),
    "show_ups": ("show-ups", "show ups", "showups", "show"),
    "qualified_calls": (
        "qualified calls",
        "sales calls (tagged qualified)",
        "sales calls (qualified leads)",
    ),
    "deals_closed": ("deals closed", "deal closed", "closed deals"),
    "revenue": ("revenue (booked)", "revenue", "booked revenue"),
    "cash_in": ("cash-in (collected)", "cash in (collected)", "cash collected", "cash-in", "cash in"),
}

# Short aliases that match only a whole header. As substrings they would claim
# unrelated columns such as "No Shows" or "Weekday".
EXACT_ONLY_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("day",),
    "leads": ("lead",),
    "clicks": ("click",),
    "show_ups": ("show",),
}

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_header(header: str) -> str:
    """
    Trim, lowercase and collapse internal whitespace runs.
    """

    return _WHITESPACE_RE.sub(" ", header.strip().lower())


@dataclass(frozen=True)
class HeaderResolution:
    """
    Final resolved header mapping metadata.
    """

    canonical_to_source: dict[str, str]
    source_headers: tuple[str, ...]
    match_strategies: dict[str, str]
    unresolved_fields: tuple[str, ...] = ()

    def source_for(self, canonical_field: str) -> str | None:
        return self.canonical_to_source.get(canonical_field)


class HeaderResolver:
    """
    Resolves raw spreadsheet headers into canonical field mappings.

    Passes run in order: manual overrides, exact alias matches across all
    fields, then substring matches for fields still unresolved. A header is
    claimed by at most one field, so an exact match always wins over a
    substring match of another field. Aliases listed in
    ``EXACT_ONLY_ALIASES`` never take part in the substring pass.
    """

    def __init__(
        self,
        *,
        aliases: Mapping[str, Sequence[str]] | None = None,
        exact_only_aliases: Mapping[str, Sequence[str]] | None = None,
        validator: MappingValidator | None = None,
    ) -> None:
        self._aliases: dict[str, tuple[str, ...]] = {
            canonical: tuple(normalize_header(alias) for alias in values if alias.strip())
            for canonical, values in (aliases or DEFAULT_COLUMN_ALIASES).items()
        }
        self._exact_only: dict[str, frozenset[str]] = {
            canonical: frozenset(normalize_header(alias) for alias in values)
            for canonical, values in (
                EXACT_ONLY_ALIASES if exact_only_aliases is None else exact_only_aliases
            ).items()
        }
        self._validator = validator or MappingValidator(canonical_fields=CANONICAL_FIELDS)

    def resolve(
        self,
        headers: Sequence[str],
        *,
        manual_overrides: Mapping[str, str] | None = None,
    ) -> HeaderResolution:
        """
        Resolve canonical-to-source mapping from headers and optional overrides.
        """

        source_headers = tuple(header for header in headers if header and header.strip())
        if not source_headers:
            raise SchemaMappingError(
                message="Sheet headers are empty; cannot resolve columns.",
                errors=[
                    MappingErrorDetail(
                        code="empty_headers",
                        message="No sheet headers were provided.",
                    )
                ],
            )

        normalized_headers: list[tuple[str, str]] = [
            (normalize_header(header), header) for header in source_headers
        ]

        resolved: dict[str, str] = {}
        strategies: dict[str, str] = {}
        mapping_errors = self._apply_overrides(
            manual_overrides=manual_overrides or {},
            normalized_headers=normalized_headers,
            resolved=resolved,
            strategies=strategies,
        )
        used_headers = set(resolved.values())

        for canonical_field in CANONICAL_FIELDS:
            if canonical_field in resolved:
                continue
            match = self._find_match(
                canonical_field=canonical_field,
                normalized_headers=normalized_headers,
                used_headers=used_headers,
                substring=False,
            )
            if match is not None:
                resolved[canonical_field] = match
                strategies[canonical_field] = "exact"
                used_headers.add(match)

        for canonical_field in CANONICAL_FIELDS:
            if canonical_field in resolved:
                continue
            match = self._find_match(
                canonical_field=canonical_field,
                normalized_headers=normalized_headers,
                used_headers=used_headers,
                substring=True,
            )
            if match is not None:
                resolved[canonical_field] = match
                strategies[canonical_field] = "substring"
                used_headers.add(match)

        self._validator.validate(
            mapping=resolved,
            source_headers=source_headers,
            pre_errors=mapping_errors,
        )

        unresolved = tuple(field for field in CANONICAL_FIELDS if field not in resolved)
        if unresolved:
            logger.warning(
                "Sheet columns unresolved fields=%s headers=%s",
                ",".join(unresolved),
                list(source_headers),
            )

        return HeaderResolution(
            canonical_to_source=resolved,
            source_headers=source_headers,
            match_strategies=strategies,
            unresolved_fields=unresolved,
        )

    def map_row(
        self,
        *,
        raw_row: Mapping[str, Any],
        resolution: HeaderResolution,
    ) -> dict[str, Any]:
        """
        Map one raw record into canonical raw field values.
        """

        return {
            canonical_field: raw_row.get(source_column)
            for canonical_field, source_column in resolution.canonical_to_source.items()
        }

    def _find_match(
        self,
        *,
        canonical_field: str,
        normalized_headers: Sequence[tuple[str, str]],
        used_headers: set[str],
        substring: bool,
    ) -> str | None:
        for alias in self._aliases.get(canonical_field, ()):
            if substring and alias in self._exact_only.get(canonical_field, ()):
                continue
            for header_norm, header_raw in normalized_headers:
                if header_raw in used_headers:
                    continue
                if header_norm == alias or (substring and alias in header_norm):
                    return header_raw
        return None

    @staticmethod
    def _apply_overrides(
        *,
        manual_overrides: Mapping[str, str],
        normalized_headers: Sequence[tuple[str, str]],
        resolved: dict[str, str],
        strategies: dict[str, str],
    ) -> list[MappingErrorDetail]:
        errors: list[MappingErrorDetail] = []
        lookup = {header_norm: header_raw for header_norm, header_raw in normalized_headers}

        for canonical_field, source_column in manual_overrides.items():
            normalized_canonical = canonical_field.strip()
            if normalized_canonical not in CANONICAL_FIELDS:
                errors.append(
                    MappingErrorDetail(
                        code="invalid_override_field",
                        message="Manual override contains unknown canonical field.",
                        canonical_field=normalized_canonical,
                        source_column=source_column,
                    )
                )
                continue

            matched_source = lookup.get(normalize_header(source_column))
            if matched_source is None:
                errors.append(
                    MappingErrorDetail(
                        code="override_source_not_found",
                        message="Manual override points to a column not present in sheet headers.",
                        canonical_field=normalized_canonical,
                        source_column=source_column,
                        context={"source_headers": [raw for _, raw in normalized_headers]},
                    )
                )
                continue

            resolved[normalized_canonical] = matched_source
            strategies[normalized_canonical] = "override"

        return errors
