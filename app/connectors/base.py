"""
app/connectors/base.py

Base connector abstraction and shared HTTP mechanics.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import requests

from app.config import ExternalHTTPSettings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# Anything outside this tuple (InvalidURL, MissingSchema, TooManyRedirects) is permanent.
TRANSIENT_REQUEST_ERRORS: tuple[type[requests.RequestException], ...] = (
    requests.Timeout,
    requests.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
    requests.exceptions.ContentDecodingError,
)


class ConnectorRequestError(RuntimeError):
    """
    Raised when a connector cannot fetch data after retries.
    """


@dataclass(frozen=True)
class ConnectorFetchResult:
    """
    Connector fetch outcome: the header row and raw text records.
    """

    source: str
    headers: tuple[str, ...]
    records: list[dict[str, Any]] = field(default_factory=list)
    blank_records: int = 0


class BaseConnector(ABC):
    """
    Connector interface for fetching raw tabular records.
    """

    source: str

    def __init__(
        self,
        *,
        source: str,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        self.source = source
        self._session = session or requests.Session()
        self._timeout_seconds = http_settings.timeout_seconds
        self._max_retries = http_settings.max_retries
        self._backoff_initial_seconds = http_settings.backoff_initial_seconds
        self._backoff_multiplier = http_settings.backoff_multiplier
        self._min_request_interval_seconds = (
            1.0 / http_settings.rate_limit_per_second if http_settings.rate_limit_per_second > 0 else 0.0
        )
        self._last_request_monotonic: float = 0.0

    @abstractmethod
    def fetch_records(self) -> ConnectorFetchResult:
        """
        Fetch the source and return its header row and raw records.
        """

    def _request_text(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """
        Execute an HTTP request and return the UTF-8 body with retry support.
        """

        response = self._request(method=method, url=url, params=params, headers=headers)
        try:
            return response.content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ConnectorRequestError(f"{self.source}: response is not UTF-8 text.") from exc

    def _request(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        """
        Execute an HTTP request with rate limiting and exponential backoff.

        Every ``requests`` failure surfaces as ``ConnectorRequestError``.
        Transient failures (retryable status codes, timeouts, dropped
        connections, bodies cut off mid-transfer) are retried; anything else
        (bad URL, redirect loop, 4xx) fails on the first attempt.
        """

        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            self._apply_rate_limit()
            try:
                response = self._session.request(
                    method=method,
                    url=url,
                    params=params,
                    headers=headers,
                    timeout=self._timeout_seconds,
                )
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise requests.HTTPError(
                        f"Retryable HTTP status code: {response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return response
            except requests.RequestException as exc:
                last_error = exc
                if not self._is_transient(exc):
                    status_code = exc.response.status_code if exc.response is not None else None
                    logger.error(
                        "Connector request failed source=%s status=%s error_type=%s url=%s error=%s",
                        self.source,
                        status_code,
                        type(exc).__name__,
                        url,
                        exc,
                    )
                    raise ConnectorRequestError(
                        f"{self.source}: non-retryable request failure ({type(exc).__name__})."
                    ) from exc

            if attempt >= self._max_retries:
                break

            backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            logger.warning(
                "Connector request retry source=%s attempt=%s/%s error_type=%s wait_seconds=%.2f url=%s",
                self.source,
                attempt + 1,
                self._max_retries,
                type(last_error).__name__,
                backoff_seconds,
                url,
            )
            time.sleep(backoff_seconds)

        logger.error(
            "Connector request exhausted retries source=%s url=%s error=%s",
            self.source,
            url,
            last_error,
        )
        raise ConnectorRequestError(f"{self.source}: request failed after retries.") from last_error

    @staticmethod
    def _is_transient(exc: requests.RequestException) -> bool:
        if isinstance(exc, requests.HTTPError):
            return exc.response is not None and exc.response.status_code in RETRYABLE_STATUS_CODES
        return isinstance(exc, TRANSIENT_REQUEST_ERRORS)

    def _apply_rate_limit(self) -> None:
        """
        Enforce minimum interval between outbound requests.
        """

        if self._min_request_interval_seconds <= 0:
            return

        now = time.monotonic()
        elapsed = now - self._last_request_monotonic
        remaining = self._min_request_interval_seconds - elapsed
        if remaining > 0:
            time.sleep(remaining)
        self._last_request_monotonic = time.monotonic()
