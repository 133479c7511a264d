from __future__ import annotations

import pytest
import requests

from app.config import ExternalHTTPSettings, SheetSourceSettings
from app.connectors.base import ConnectorRequestError
from app.connectors.sheet_csv_connector import PublishedSheetConnector, SheetParseError, parse_csv_text

CSV_BODY = "Date,Channel,Ad Spend\n2026-01-01,Meta,\"₱1,000\"\n,,\n2026-01-02,Google,500\n"


class _FakeResponse:
    def __init__(self, status_code: int, body: bytes) -> None:
        self.status_code = status_code
        self.content = body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)  # type: ignore[arg-type]


class _FakeSession:
    def __init__(self, responses: list[_FakeResponse]) -> None:
        self._responses = list(responses)
        self.calls: list[str] = []

    def request(self, *, method: str, url: str, **_: object) -> _FakeResponse:
        self.calls.append(url)
        return self._responses.pop(0)


def _http_settings() -> ExternalHTTPSettings:
    return ExternalHTTPSettings(
        timeout_seconds=1.0,
        max_retries=2,
        backoff_initial_seconds=0.0,
        backoff_multiplier=1.0,
        rate_limit_per_second=0.0,
    )


def _connector(session: _FakeSession, url: str | None = "https://sheets.example/pub?output=csv") -> PublishedSheetConnector:
    return PublishedSheetConnector(
        settings=SheetSourceSettings(csv_url=url),
        http_settings=_http_settings(),
        session=session,  # type: ignore[arg-type]
    )


def test_parse_csv_text_skips_blank_records() -> None:
    result = parse_csv_text(CSV_BODY)

    assert result.headers == ("Date", "Channel", "Ad Spend")
    assert len(result.records) == 2
    assert result.records[0]["Ad Spend"] == "₱1,000"
    assert result.blank_records == 1


def test_parse_csv_text_rejects_header_only_body() -> None:
    with pytest.raises(SheetParseError):
        parse_csv_text("Date,Channel\n")


def test_parse_csv_text_rejects_empty_body() -> None:
    with pytest.raises(SheetParseError):
        parse_csv_text("")


def test_fetch_decodes_utf8_with_bom() -> None:
    session = _FakeSession([_FakeResponse(200, ("\ufeff" + CSV_BODY).encode("utf-8"))])

    result = _connector(session).fetch_records()

    assert result.headers[0] == "Date"
    assert len(result.records) == 2


def test_fetch_retries_retryable_status() -> None:
    session = _FakeSession([_FakeResponse(503, b""), _FakeResponse(200, CSV_BODY.encode("utf-8"))])

    result = _connector(session).fetch_records()

    assert len(session.calls) == 2
    assert len(result.records) == 2


def test_fetch_raises_on_non_retryable_status() -> None:
    session = _FakeSession([_FakeResponse(404, b"")])

    with pytest.raises(ConnectorRequestError):
        _connector(session).fetch_records()
    assert len(session.calls) == 1


def test_fetch_raises_after_exhausting_retries() -> None:
    session = _FakeSession([_FakeResponse(500, b"")] * 3)

    with pytest.raises(ConnectorRequestError):
        _connector(session).fetch_records()
    assert len(session.calls) == 3


def test_fetch_requires_configured_url() -> None:
    with pytest.raises(ConnectorRequestError):
        _connector(_FakeSession([]), url=None).fetch_records()


class _RaisingSession:
    """Raises the queued exceptions in order, then serves the queued responses."""

    def __init__(self, outcomes: list[Exception | _FakeResponse]) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0

    def request(self, **_: object) -> _FakeResponse:
        self.calls += 1
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_fetch_retries_body_cut_off_mid_transfer() -> None:
    session = _RaisingSession(
        [
            requests.exceptions.ChunkedEncodingError("connection broken"),
            _FakeResponse(200, CSV_BODY.encode("utf-8")),
        ]
    )

    result = _connector(session).fetch_records()  # type: ignore[arg-type]

    assert session.calls == 2
    assert len(result.records) == 2


@pytest.mark.parametrize(
    "error",
    [
        requests.exceptions.InvalidURL("Invalid URL 'https://': No host supplied"),
        requests.exceptions.TooManyRedirects("Exceeded 30 redirects."),
        requests.exceptions.MissingSchema("No scheme supplied."),
    ],
)
def test_permanent_request_errors_fail_without_retry(error: Exception) -> None:
    session = _RaisingSession([error, error, error])

    with pytest.raises(ConnectorRequestError) as ctx:
        _connector(session).fetch_records()  # type: ignore[arg-type]

    assert session.calls == 1
    assert ctx.value.__cause__ is error


def test_repeated_dropped_bodies_exhaust_retries() -> None:
    error = requests.exceptions.ChunkedEncodingError("connection broken")
    session = _RaisingSession([error, error, error])

    with pytest.raises(ConnectorRequestError):
        _connector(session).fetch_records()  # type: ignore[arg-type]
    assert session.calls == 3
