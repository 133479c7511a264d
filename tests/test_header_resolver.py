from __future__ import annotations

import unittest

from app.mappers.header_resolver import HeaderResolver, normalize_header
from app.validators.mapping_validator import SchemaMappingError

SHEET_HEADERS = [
    "Date",
    "Channel",
    "Campaign",
    "Ad Spend",
    "Impressions",
    "Clicks",
    "Leads",
    "Leads Booked",
    "Show-Ups",
    "Sales Calls (Tagged Qualified)",
    "Deals Closed",
    "Revenue (Booked)",
    "Cash-In (Collected)",
]


class TestHeaderResolver(unittest.TestCase):
    def setUp(self) -> None:
        self.resolver = HeaderResolver()

    def test_resolves_standard_sheet_headers(self) -> None:
        resolution = self.resolver.resolve(SHEET_HEADERS)

        self.assertEqual(resolution.source_for("spend"), "Ad Spend")
        self.assertEqual(resolution.source_for("booked"), "Leads Booked")
        self.assertEqual(resolution.source_for("leads"), "Leads")
        self.assertEqual(resolution.source_for("show_ups"), "Show-Ups")
        self.assertEqual(resolution.source_for("qualified_calls"), "Sales Calls (Tagged Qualified)")
        self.assertEqual(resolution.source_for("cash_in"), "Cash-In (Collected)")
        self.assertEqual(resolution.unresolved_fields, ())

    def test_headers_are_normalized_before_matching(self) -> None:
        resolution = self.resolver.resolve(["  DATE ", "Ad   Spend", "clicks"])

        self.assertEqual(resolution.source_for("date"), "  DATE ")
        self.assertEqual(resolution.source_for("spend"), "Ad   Spend")
        self.assertEqual(resolution.match_strategies["clicks"], "exact")

    def test_substring_fallback_when_no_exact_match(self) -> None:
        resolver = HeaderResolver(aliases={"date": ("date",), "spend": ("spend",)})

        resolution = resolver.resolve(["Date", "Ad Spend"])

        self.assertEqual(resolution.source_for("spend"), "Ad Spend")
        self.assertEqual(resolution.match_strategies["spend"], "substring")

    def test_exact_match_wins_over_substring_of_other_field(self) -> None:
        # "leads" is a substring of "leads booked"; the exact "Leads" column must win.
        resolution = self.resolver.resolve(["Date", "Leads Booked", "Leads"])

        self.assertEqual(resolution.source_for("leads"), "Leads")
        self.assertEqual(resolution.source_for("booked"), "Leads Booked")

    def test_each_header_maps_to_one_field(self) -> None:
        resolution = self.resolver.resolve(SHEET_HEADERS)

        sources = list(resolution.canonical_to_source.values())
        self.assertEqual(len(sources), len(set(sources)))

    def test_missing_columns_are_reported_unresolved(self) -> None:
        resolution = self.resolver.resolve(["Date", "Clicks"])

        self.assertIn("spend", resolution.unresolved_fields)
        self.assertIsNone(resolution.source_for("spend"))

    def test_manual_override_takes_precedence(self) -> None:
        resolution = self.resolver.resolve(
            ["Day", "Budget Used", "Spend"],
            manual_overrides={"spend": "budget used"},
        )

        self.assertEqual(resolution.source_for("spend"), "Budget Used")
        self.assertEqual(resolution.match_strategies["spend"], "override")
        self.assertEqual(resolution.source_for("date"), "Day")

    def test_override_to_missing_column_raises(self) -> None:
        with self.assertRaises(SchemaMappingError) as ctx:
            self.resolver.resolve(["Date"], manual_overrides={"spend": "Budget"})

        codes = {error.code for error in ctx.exception.errors}
        self.assertIn("override_source_not_found", codes)

    def test_override_for_unknown_field_raises(self) -> None:
        with self.assertRaises(SchemaMappingError) as ctx:
            self.resolver.resolve(["Date"], manual_overrides={"conversions": "Date"})

        self.assertEqual(ctx.exception.errors[0].code, "invalid_override_field")

    def test_empty_headers_raise(self) -> None:
        with self.assertRaises(SchemaMappingError) as ctx:
            self.resolver.resolve(["", "   "])

        self.assertEqual(ctx.exception.errors[0].code, "empty_headers")

    def test_map_row_uses_resolved_columns(self) -> None:
        resolution = self.resolver.resolve(["Date", "Ad Spend", "Notes"])

        mapped = self.resolver.map_row(
            raw_row={"Date": "2026-01-01", "Ad Spend": "100", "Notes": "ignored"},
            resolution=resolution,
        )

        self.assertEqual(mapped, {"date": "2026-01-01", "spend": "100"})

    def test_short_alias_does_not_claim_headers_by_substring(self) -> None:
        resolution = self.resolver.resolve(["Date", "No Shows", "Show Up Count"])

        self.assertNotEqual(resolution.source_for("show_ups"), "No Shows")
        self.assertIsNone(resolution.source_for("show_ups"))
        self.assertIn("show_ups", resolution.unresolved_fields)

    def test_short_alias_still_matches_whole_header(self) -> None:
        resolution = self.resolver.resolve(["Day", "Show", "No Shows"])

        self.assertEqual(resolution.source_for("date"), "Day")
        self.assertEqual(resolution.source_for("show_ups"), "Show")
        self.assertEqual(resolution.match_strategies["show_ups"], "exact")

    def test_weekday_column_is_not_taken_as_date(self) -> None:
        resolution = self.resolver.resolve(["Weekday", "Spend"])

        self.assertIsNone(resolution.source_for("date"))
        self.assertEqual(resolution.source_for("spend"), "Spend")

    def test_normalize_header(self) -> None:
        self.assertEqual(normalize_header("  Cash-In \t (Collected) "), "cash-in (collected)")


if __name__ == "__main__":
    unittest.main()
