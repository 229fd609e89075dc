from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from services.shelf import api
from services.shelf.errors import UpstreamFetchError
from services.shelf.fetch import FetchResult
from services.shelf.notion_api import NotionClient
from services.shelf.settings import Settings

KP_URL = "https://page.kakao.com/content/123"
KP_HTML = (
    "<html><head>"
    '<meta property="og:title" content="작품 - 웹툰 | 카카오페이지">'
    '<meta property="og:description" content="소개">'
    '<meta property="og:image" content="https://img.example/kp.jpg">'
    "</head><body></body></html>"
)
SCHEMA = {
    "Title": {"type": "title"},
    "Platform": {"type": "select", "select": {"options": [{"name": "KAKAO"}]}},
    "URL": {"type": "url"},
}


class _FakeFetch:
    def __init__(self, pages: dict[str, str]) -> None:
        self.pages = pages
        self.calls: list[str] = []

    def __call__(self, url: str, referer: str = "") -> FetchResult:
        self.calls.append(url)
        if url not in self.pages:
            raise UpstreamFetchError(f"Upstream responded 404 for {url}", upstream_status=404)
        return FetchResult(url=url, final_url=url, status=200, html=self.pages[url])


class _FakeResponse:
    def __init__(self, status_code: int = 200, data=None) -> None:
        self.status_code = status_code
        self._data = data
        self.text = ""

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        return self._data


class _FakeNotionHttp:
    def __init__(self, schema: dict) -> None:
        self.schema = schema
        self.created: list[dict] = []

    def request(self, method, url, headers=None, json=None, timeout=None):
        if method == "GET":
            return _FakeResponse(200, {"properties": self.schema})
        self.created.append(json)
        return _FakeResponse(200, {"id": f"page-{len(self.created)}"})


@pytest.fixture
def fetch() -> _FakeFetch:
    return _FakeFetch({KP_URL: KP_HTML})


@pytest.fixture
def notion_http() -> _FakeNotionHttp:
    return _FakeNotionHttp(SCHEMA)


@pytest.fixture
def client(fetch, notion_http):
    api.app.dependency_overrides[api.get_settings] = lambda: Settings(notion_token="tok", notion_db_id="db-1")
    api.app.dependency_overrides[api.get_fetcher] = lambda: fetch
    api.app.dependency_overrides[api.get_notion_client] = lambda: NotionClient("tok", http=notion_http)
    api.app.dependency_overrides[api.get_image_fetcher] = lambda: (lambda url: (b"\x89PNG", "image/png"))
    yield TestClient(api.app)
    api.app.dependency_overrides.clear()


def test_preflight_returns_no_content(client) -> None:
    r = client.options("/api/kakaopage")
    assert r.status_code == 204


def test_browser_preflight_has_cors_headers_and_empty_body(client) -> None:
    r = client.options(
        "/api/kakaopage",
        headers={"Origin": "https://shelf.example", "Access-Control-Request-Method": "GET"},
    )

    assert r.status_code == 204
    assert r.content == b""
    assert r.headers["access-control-allow-origin"] == "*"
    assert "POST" in r.headers["access-control-allow-methods"]


def test_missing_url_is_bad_request(client) -> None:
    r = client.get("/api/kakaopage")

    assert r.status_code == 400
    assert r.json() == {"ok": False, "error": "url required"}


def test_kakaopage_success_is_not_cached(client) -> None:
    r = client.get("/api/kakaopage", params={"url": KP_URL})

    assert r.status_code == 200
    assert r.headers["cache-control"] == "no-store"
    body = r.json()
    assert body["ok"] is True
    assert body["platform"] == "카카오페이지"
    assert body["title"] == "작품"
    assert "debug" not in body


def test_debug_flag_adds_diagnostics(client) -> None:
    body = client.get("/api/parse", params={"url": KP_URL, "debug": "1"}).json()
    assert body["debug"]["tiers"]["title"] == "meta"


def test_unsupported_domain(client) -> None:
    r = client.get("/api/parse", params={"url": "https://example.com/content/1"})

    assert r.status_code == 400
    assert r.json()["error"] == "지원하지 않는 도메인"


def test_upstream_failure_maps_to_bad_gateway(client) -> None:
    r = client.get("/api/kakao-webtoon", params={"url": "https://webtoon.kakao.com/content/a/1"})

    assert r.status_code == 502
    assert r.json()["ok"] is False
    assert r.json()["status"] == 404


def test_ridi_accepts_book_id(client, fetch) -> None:
    r = client.get("/api/ridi", params={"bookId": "42"})

    assert r.status_code == 502
    assert fetch.calls == ["https://ridibooks.com/books/42"]


def test_image_proxy_validation(client) -> None:
    assert client.get("/api/image-proxy").json() == {"ok": False, "error": "Missing url"}
    r = client.get("/api/image-proxy", params={"url": "https://img.example/" + "a" * 2001})
    assert r.status_code == 400
    assert r.json()["error"] == "URL too long"


def test_image_proxy_streams_bytes(client) -> None:
    r = client.get("/api/image-proxy", params={"url": "https://img.example/kp.jpg"})

    assert r.status_code == 200
    assert r.content == b"\x89PNG"
    assert r.headers["content-type"] == "image/png"
    assert r.headers["cache-control"] == "public, max-age=86400"


def test_notion_requires_object_body(client) -> None:
    r = client.post("/api/notion", json=["not", "an", "object"])
    assert r.status_code == 400


def test_notion_single_record(client, notion_http) -> None:
    r = client.post("/api/notion", json={"title": "책", "url": KP_URL, "platform": "카카오페이지"})

    assert r.status_code == 200
    assert r.json()["pageId"] == "page-1"
    assert notion_http.created[0]["properties"]["Platform"] == {"select": {"name": "KAKAO"}}


def test_notion_schema_mismatch(client, notion_http) -> None:
    notion_http.schema = {"Name": {"type": "rich_text"}}

    r = client.post("/api/notion", json={"title": "책"})

    assert r.status_code == 500
    assert r.json()["availableProperties"] == ["Name"]


def test_webtoon_notion_proxies_cover(client, notion_http) -> None:
    r = client.post("/api/webtoon-notion", json={"url": KP_URL})

    assert r.status_code == 200
    body = r.json()
    assert body["scraped"]["title"] == "작품"
    expected = "http://testserver/api/image-proxy?url=https%3A%2F%2Fimg.example%2Fkp.jpg"
    assert body["scraped"]["coverUrl"] == expected
    assert notion_http.created[0]["cover"]["external"]["url"] == expected


def test_webtoon_notion_requires_url(client) -> None:
    r = client.post("/api/webtoon-notion", json={})
    assert r.status_code == 400
    assert r.json()["error"] == "Missing url"


def test_webtoon_notion_cover_uses_forwarded_host(client, notion_http) -> None:
    r = client.post(
        "/api/webtoon-notion",
        json={"url": KP_URL},
        headers={"X-Forwarded-Proto": "https", "X-Forwarded-Host": "shelf.example.com"},
    )

    assert r.status_code == 200
    assert r.json()["scraped"]["coverUrl"].startswith("https://shelf.example.com/api/image-proxy?url=")
