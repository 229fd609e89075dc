from __future__ import annotations

import pytest
import requests

from services.shelf.errors import ConfigError, DestinationWriteError, SchemaMismatchError
from services.shelf.notion_api import NotionClient, save_payload
from services.shelf.settings import Settings

SCHEMA = {
    "Title": {"type": "title"},
    "Platform": {"type": "select", "select": {"options": [{"name": "RIDI"}, {"name": "KAKAO"}]}},
    "Cover": {"type": "files"},
    "URL": {"type": "url"},
}


class _FakeResponse:
    def __init__(self, status_code: int = 200, data=None, text: str = "") -> None:
        self.status_code = status_code
        self._data = data
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._data is None:
            raise ValueError("no json body")
        return self._data


class _FakeHttp:
    """미리 정한 응답(또는 예외)을 순서대로 돌려주고 호출 내역을 남긴다."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    def request(self, method, url, headers=None, json=None, timeout=None):
        self.calls.append({"method": method, "url": url, "headers": headers, "json": json})
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


def _client(http: _FakeHttp, sleeps: list[float]) -> NotionClient:
    return NotionClient("secret-token", http=http, sleep=sleeps.append)


def test_request_sends_notion_headers() -> None:
    http = _FakeHttp(_FakeResponse(200, {"properties": SCHEMA}))

    schema = _client(http, []).describe_schema("db-1")

    assert schema == SCHEMA
    call = http.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://api.notion.com/v1/databases/db-1"
    assert call["headers"]["Authorization"] == "Bearer secret-token"
    assert call["headers"]["Notion-Version"] == "2022-06-28"


def test_retries_on_service_unavailable() -> None:
    sleeps: list[float] = []
    http = _FakeHttp(_FakeResponse(503, text="busy"), _FakeResponse(200, {"id": "page-1"}))

    assert _client(http, sleeps).request("POST", "/pages", {}) == {"id": "page-1"}
    assert sleeps == [0.5]
    assert len(http.calls) == 2


def test_client_error_is_not_retried() -> None:
    sleeps: list[float] = []
    http = _FakeHttp(_FakeResponse(400, {"code": "validation_error", "message": "bad"}))

    with pytest.raises(DestinationWriteError) as exc_info:
        _client(http, sleeps).request("POST", "/pages", {})

    err = exc_info.value
    assert err.status == 400
    assert err.details == {"code": "validation_error", "message": "bad"}
    assert err.payload()["details"]["message"] == "bad"
    assert sleeps == []


def test_gives_up_after_repeated_timeouts() -> None:
    sleeps: list[float] = []
    http = _FakeHttp(requests.Timeout(), requests.Timeout(), requests.Timeout())

    with pytest.raises(DestinationWriteError, match="timed out"):
        _client(http, sleeps).request("GET", "/databases/db-1")
    assert sleeps == [0.5, 1.0]


def test_last_retryable_status_surfaces_text_details() -> None:
    http = _FakeHttp(*[_FakeResponse(429, text="slow down") for _ in range(3)])

    with pytest.raises(DestinationWriteError) as exc_info:
        _client(http, []).request("GET", "/databases/db-1")
    assert exc_info.value.status == 429
    assert exc_info.value.details == "slow down"


def test_connection_error_fails_immediately() -> None:
    http = _FakeHttp(requests.ConnectionError("refused"))

    with pytest.raises(DestinationWriteError):
        _client(http, []).request("GET", "/databases/db-1")
    assert len(http.calls) == 1


def test_save_single_record() -> None:
    http = _FakeHttp(_FakeResponse(200, {"properties": SCHEMA}), _FakeResponse(200, {"id": "page-1"}))
    body = {
        "platform": "RIDI",
        "title": "책제목",
        "url": "https://ridibooks.com/books/1",
        "coverUrl": "https://img.example/c.png",
    }

    result = save_payload(_client(http, []), "db-1", body)

    assert result["ok"] is True
    assert result["mode"] == "single"
    assert result["pageId"] == "page-1"
    created = http.calls[1]["json"]
    assert created["parent"] == {"database_id": "db-1"}
    assert created["cover"] == {"type": "external", "external": {"url": "https://img.example/c.png"}}
    assert created["properties"]["Platform"] == {"select": {"name": "RIDI"}}


def test_save_batch_reports_item_failures() -> None:
    http = _FakeHttp(_FakeResponse(200, {"properties": SCHEMA}), _FakeResponse(200, {"id": "page-1"}))
    body = {"items": [{"title": "첫 책"}, "not-an-object", {"url": "https://ridibooks.com/books/2"}]}

    result = save_payload(_client(http, []), "db-1", body)

    assert result["mode"] == "batch"
    assert result["ok"] is False
    assert (result["total"], result["okCount"], result["failCount"]) == (3, 1, 2)
    assert result["results"][0]["pageId"] == "page-1"
    assert result["results"][1] == {"index": 1, "ok": False, "error": "item must be an object"}
    assert result["results"][2]["error"] == "title is required"
    assert len(http.calls) == 2


def test_schema_without_title_stops_before_writing() -> None:
    http = _FakeHttp(_FakeResponse(200, {"properties": {"Name": {"type": "rich_text"}}}))

    with pytest.raises(SchemaMismatchError):
        save_payload(_client(http, []), "db-1", {"title": "책"})
    assert len(http.calls) == 1


def test_from_settings_requires_token_and_database() -> None:
    with pytest.raises(ConfigError, match="NOTION_TOKEN, NOTION_DB_ID"):
        NotionClient.from_settings(Settings(notion_token="", notion_db_id=""))
