from __future__ import annotations

import unittest

from app.mappers.header_resolver import CANONICAL_FIELDS
from app.validators.mapping_validator import MappingErrorDetail, MappingValidator, SchemaMappingError


class TestMappingValidator(unittest.TestCase):
    def setUp(self) -> None:
        self.validator = MappingValidator(canonical_fields=CANONICAL_FIELDS)

    def test_partial_mapping_is_valid(self) -> None:
        self.validator.validate(
            mapping={"date": "Date", "spend": "Ad Spend"},
            source_headers=("Date", "Ad Spend", "Notes"),
        )

    def test_raises_on_invalid_source_column(self) -> None:
        with self.assertRaises(SchemaMappingError) as ctx:
            self.validator.validate(
                mapping={"date": "Date", "spend": "missing_column"},
                source_headers=("Date", "Ad Spend"),
                pre_errors=[
                    MappingErrorDetail(
                        code="override_source_not_found",
                        message="manual override missing header",
                        canonical_field="spend",
                        source_column="missing_column",
                    )
                ],
            )

        codes = {error.code for error in ctx.exception.errors}
        self.assertIn("override_source_not_found", codes)
        self.assertIn("unknown_source_column", codes)

    def test_raises_on_unknown_canonical_field(self) -> None:
        with self.assertRaises(SchemaMappingError) as ctx:
            self.validator.validate(
                mapping={"conversions": "Date"},
                source_headers=("Date",),
            )

        self.assertEqual(ctx.exception.errors[0].code, "invalid_canonical_field")

    def test_to_dict_carries_every_error(self) -> None:
        with self.assertRaises(SchemaMappingError) as ctx:
            self.validator.validate(
                mapping={"date": "When"},
                source_headers=("Date",),
            )

        payload = ctx.exception.to_dict()
        self.assertIn("unknown_source_column", payload["message"])
        self.assertEqual(payload["errors"][0]["canonical_field"], "date")
        self.assertEqual(payload["errors"][0]["source_column"], "When")


if __name__ == "__main__":
    unittest.main()
