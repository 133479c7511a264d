"""
app/services/dashboard_service.py

Service layer owning the normalized marketing dataset.

``DashboardPipeline`` loads the published sheet through a connector,
resolves headers once, normalizes every row, and swaps the resulting
immutable ``Dataset`` in atomically. All query methods are pure functions of
(dataset, filter, metric, granularity) and recompute from scratch on every
call; nothing is cached between requests.

Refresh contract
----------------
Every refresh takes a monotonically increasing generation number before it
fetches. A completed fetch is installed only when its generation is newer
than the installed dataset's, so a slow, stale fetch finishing after a newer
one is discarded. A failed fetch raises ``DatasetRefreshError`` and leaves
the current dataset untouched.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Sequence

from app.config import (
    get_dashboard_settings,
    get_external_http_settings,
    get_sheet_source_settings,
)
from app.connectors.base import BaseConnector, ConnectorFetchResult, ConnectorRequestError
from app.connectors.sheet_csv_connector import PublishedSheetConnector
from app.domain.marketing_fact import Dataset, FactRow, FilterState, Metrics, RowValidationError, Totals
from app.mappers.header_resolver import HeaderResolver
from app.services.dataset_filter import date_extent, filter_rows, list_channels, search_rows
from app.services.series_builder import SeriesPoint, build_series
from app.validators.mapping_validator import SchemaMappingError
from app.validators.row_normalizer import FactRowNormalizer
from kpi.benchmarks import (
    BenchmarkClassifier,
    BenchmarkEntry,
    FocusList,
    Tier,
    focus_list,
    ladders_from_rules,
    load_benchmark_rules,
)
from kpi.funnel import FunnelKPIFormula, apply_formula_overrides, build_funnel, compute_totals

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DatasetRefreshError(RuntimeError):
    """
    Raised when the sheet cannot be fetched or mapped; the previous dataset is kept.
    """


class DatasetNotLoadedError(RuntimeError):
    """
    Raised when data is requested before any successful load.
    """


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoadSummary:
    """
    Outcome of one load or refresh.
    """

    generation: int
    rows_loaded: int
    rows_rejected: int
    rows_skipped: int
    installed: bool
    unresolved_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class RowsPage:
    total_matching: int
    rows: tuple[FactRow, ...]

# ---------------------------------------------------------------------------
# Free functions over a dataset
# ---------------------------------------------------------------------------


def get_totals(dataset: Dataset, filter_state: FilterState) -> Totals:
    return compute_totals(filter_rows(dataset.rows, filter_state))


def get_metrics(
    dataset: Dataset,
    filter_state: FilterState,
    formula: FunnelKPIFormula | None = None,
) -> Metrics:
    return (formula or FunnelKPIFormula()).compute_metrics(get_totals(dataset, filter_state))


def get_series(
    dataset: Dataset,
    filter_state: FilterState,
    metric: str,
    granularity: str,
    formula: FunnelKPIFormula | None = None,
) -> list[SeriesPoint]:
    return build_series(
        filter_rows(dataset.rows, filter_state),
        metric=metric,
        granularity=granularity,
        formula=formula,
    )


def get_channels(dataset: Dataset) -> list[str]:
    return list_channels(dataset.rows)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class DashboardPipeline:
    """
    Explicitly constructed owner of the current Dataset and its query API.
    """

    def __init__(
        self,
        *,
        connector: BaseConnector | None = None,
        resolver: HeaderResolver | None = None,
        normalizer: FactRowNormalizer | None = None,
        formula: FunnelKPIFormula | None = None,
        classifier: BenchmarkClassifier | None = None,
        column_overrides: Mapping[str, str] | None = None,
        log_validation_errors: bool = True,
        max_validation_errors: int = 500,
    ) -> None:
        self._connector = connector
        self._resolver = resolver or HeaderResolver()
        self._normalizer = normalizer or FactRowNormalizer()
        self._formula = formula or FunnelKPIFormula()
        self._classifier = classifier or BenchmarkClassifier(formulas=self._formula.formulas)
        self._column_overrides = dict(column_overrides or {})
        self._log_validation_errors = log_validation_errors
        self._max_validation_errors = max(1, max_validation_errors)

        self._lock = threading.Lock()
        self._dataset: Dataset | None = None
        self._next_generation = 0

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @property
    def dataset(self) -> Dataset | None:
        return self._dataset

    @property
    def formula(self) -> FunnelKPIFormula:
        return self._formula

    @property
    def classifier(self) -> BenchmarkClassifier:
        return self._classifier

    def begin_generation(self) -> int:
        """Reserve the next fetch generation number."""
        with self._lock:
            self._next_generation += 1
            return self._next_generation

    def refresh(self) -> LoadSummary:
        """
        Fetch the sheet and install it as the current dataset.

        Raises
        ------
        DatasetRefreshError
            When fetching, parsing or header mapping fails. The existing
            dataset is not modified.
        """
        if self._connector is None:
            raise DatasetRefreshError("No sheet connector configured.")

        generation = self.begin_generation()
        logger.info("Dataset refresh started generation=%s", generation)
        try:
            fetched = self._connector.fetch_records()
        except ConnectorRequestError as exc:
            logger.error("Dataset refresh failed generation=%s error=%s", generation, exc)
            raise DatasetRefreshError(f"Unable to load spreadsheet: {exc}") from exc

        return self.load_fetch_result(fetched, generation=generation)

    def load_fetch_result(self, fetched: ConnectorFetchResult, *, generation: int | None = None) -> LoadSummary:
        return self.load_records(
            fetched.headers,
            fetched.records,
            generation=generation,
            blank_records=fetched.blank_records,
        )

    def load_records(
        self,
        headers: Sequence[str],
        records: Sequence[Mapping[str, Any]],
        *,
        generation: int | None = None,
        blank_records: int = 0,
    ) -> LoadSummary:
        """
        Normalize raw records into a Dataset and install it if not stale.

        Raises
        ------
        DatasetRefreshError
            When the header row cannot be mapped.
        """
        if generation is None:
            generation = self.begin_generation()

        try:
            resolution = self._resolver.resolve(headers, manual_overrides=self._column_overrides)
        except SchemaMappingError as exc:
            logger.error("Dataset header mapping failed generation=%s error=%s", generation, exc.message)
            raise DatasetRefreshError(exc.message) from exc

        rows: list[FactRow] = []
        captured_errors: list[RowValidationError] = []
        rows_rejected = 0
        rows_skipped = blank_records

        # Row 1 is the header row.
        for row_number, raw_row in enumerate(records, start=2):
            if self._normalizer.is_completely_empty_row(raw_row):
                rows_skipped += 1
                continue
            mapped_row = self._resolver.map_row(raw_row=raw_row, resolution=resolution)
            fact_row, row_errors = self._normalizer.normalize(mapped_row=mapped_row, row_number=row_number)
            if fact_row is None:
                rows_rejected += 1
                for error in row_errors:
                    self._record_error(captured_errors, error)
                continue
            rows.append(fact_row)

        dataset = Dataset(
            rows=tuple(rows),
            resolution=resolution,
            rows_rejected=rows_rejected,
            rows_skipped=rows_skipped,
            validation_errors=tuple(captured_errors),
            generation=generation,
        )
        installed = self._install(dataset)

        if rows_rejected:
            logger.warning(
                "Dataset rows rejected generation=%s rejected=%s loaded=%s",
                generation,
                rows_rejected,
                len(rows),
            )
        logger.info(
            "Dataset load finished generation=%s rows=%s rejected=%s skipped=%s installed=%s",
            generation,
            len(rows),
            rows_rejected,
            rows_skipped,
            installed,
        )
        return LoadSummary(
            generation=generation,
            rows_loaded=len(rows),
            rows_rejected=rows_rejected,
            rows_skipped=rows_skipped,
            installed=installed,
            unresolved_fields=resolution.unresolved_fields,
        )

    def _install(self, dataset: Dataset) -> bool:
        with self._lock:
            current = self._dataset
            if current is not None and current.generation > dataset.generation:
                logger.info(
                    "Discarding stale dataset generation=%s current_generation=%s",
                    dataset.generation,
                    current.generation,
                )
                return False
            self._dataset = dataset
            return True

    def _record_error(
        self,
        captured_errors: list[RowValidationError],
        error: RowValidationError,
    ) -> None:
        if self._log_validation_errors:
            logger.warning(
                "Sheet row rejected row=%s column=%s message=%s value=%r",
                error.row_number,
                error.column,
                error.message,
                error.value,
            )

        if len(captured_errors) < self._max_validation_errors:
            captured_errors.append(error)

    def _require_dataset(self) -> Dataset:
        dataset = self._dataset
        if dataset is None:
            raise DatasetNotLoadedError("Dashboard data has not been loaded yet.")
        return dataset

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_filtered_rows(self, filter_state: FilterState) -> list[FactRow]:
        return filter_rows(self._require_dataset().rows, filter_state)

    def get_totals(self, filter_state: FilterState) -> Totals:
        return get_totals(self._require_dataset(), filter_state)

    def get_metrics(self, filter_state: FilterState) -> Metrics:
        return get_metrics(self._require_dataset(), filter_state, self._formula)

    def classify(self, metric: str, value: float) -> Tier:
        return self._classifier.classify(metric, value)

    def get_benchmarks(self, filter_state: FilterState) -> list[BenchmarkEntry]:
        return self._classifier.benchmark_table(self.get_metrics(filter_state))

    def get_focus_list(self, metrics: Metrics) -> FocusList:
        return focus_list(self._classifier.benchmark_table(metrics))

    def get_funnel(self, filter_state: FilterState) -> list[dict[str, Any]]:
        totals = self.get_totals(filter_state)
        return build_funnel(totals, self._formula.compute_metrics(totals))

    def get_series(self, filter_state: FilterState, metric: str, granularity: str) -> list[SeriesPoint]:
        return get_series(self._require_dataset(), filter_state, metric, granularity, self._formula)

    def get_channels(self) -> list[str]:
        return get_channels(self._require_dataset())

    def get_rows_page(self, filter_state: FilterState, *, search: str = "", limit: int = 10) -> RowsPage:
        """Filtered rows matching *search*, truncated to *limit*, with the untruncated count."""
        filtered = self.get_filtered_rows(filter_state)
        matching = search_rows(filtered, search, len(filtered))
        return RowsPage(total_matching=len(matching), rows=tuple(matching[: max(0, limit)]))

    def get_rows(self, filter_state: FilterState, *, search: str = "", limit: int = 10) -> list[FactRow]:
        return list(self.get_rows_page(filter_state, search=search, limit=limit).rows)

    def dataset_summary(self) -> dict[str, Any]:
        dataset = self._require_dataset()
        first, last = date_extent(dataset.rows)
        resolution = dataset.resolution
        return {
            "generation": dataset.generation,
            "loaded_at": dataset.loaded_at,
            "rows_loaded": len(dataset.rows),
            "rows_rejected": dataset.rows_rejected,
            "rows_skipped": dataset.rows_skipped,
            "first_date": first,
            "last_date": last,
            "column_mapping": dict(resolution.canonical_to_source) if resolution else {},
            "unresolved_fields": list(resolution.unresolved_fields) if resolution else [],
        }


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_formula_and_classifier(rules: Mapping[str, Any]) -> tuple[FunnelKPIFormula, BenchmarkClassifier]:
    """
    Build the configured formula set and classifier from benchmark rules.
    """
    overrides = rules.get("formulas")
    formulas, problems = apply_formula_overrides(overrides if isinstance(overrides, dict) else {})
    for problem in problems:
        logger.warning("Ignoring metric formula override: %s", problem)
    formula = FunnelKPIFormula(formulas)
    classifier = BenchmarkClassifier(ladders_from_rules(rules), formulas=formula.formulas)
    return formula, classifier


@lru_cache(maxsize=1)
def get_dashboard_pipeline() -> DashboardPipeline:
    """
    Build and cache the dashboard pipeline with env-driven settings.
    """
    settings = get_dashboard_settings()
    sheet_settings = get_sheet_source_settings()
    formula, classifier = build_formula_and_classifier(load_benchmark_rules(settings.benchmark_rules_path))
    return DashboardPipeline(
        connector=PublishedSheetConnector(
            settings=sheet_settings,
            http_settings=get_external_http_settings(),
        ),
        formula=formula,
        classifier=classifier,
        column_overrides=sheet_settings.column_overrides,
        log_validation_errors=settings.log_validation_errors,
        max_validation_errors=settings.max_validation_errors,
    )
