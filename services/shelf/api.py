# api.py
"""스크래핑/검색/Notion 적재/이미지 프록시 HTTP 엔드포인트(FastAPI)."""

from __future__ import annotations

from functools import partial
from typing import Any, Callable
from urllib.parse import quote

import requests
import uvicorn
from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from services.shelf import fetch as transport
from services.shelf import kakao_webtoon_scraper, kakaopage_scraper, ridi_scraper
from services.shelf.dispatch import scrape_any
from services.shelf.errors import InputError, ShelfError
from services.shelf.log import LOGGER, setup_logging
from services.shelf.notion_api import NotionClient, save_payload
from services.shelf.resolver import Fetcher, ScrapeResult
from services.shelf.search import search_kakao_webtoon, search_ridi
from services.shelf.settings import Settings, load_settings
from services.shelf.text_utils import to_boolean

MAX_PROXY_URL_LEN = 2000
IMAGE_CACHE_CONTROL = "public, max-age=86400"
NO_STORE = {"Cache-Control": "no-store"}

app = FastAPI(title="Webtoon Shelf API", version="0.1.0")

# =========================
# CORS 설정
# =========================
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


# CORSMiddleware보다 바깥에 등록되어 브라우저 preflight도 본문 없는 204로 끝낸다
@app.middleware("http")
async def short_circuit_preflight(request: Request, call_next):
    if request.method == "OPTIONS" and request.url.path.startswith("/api/"):
        return Response(status_code=204, headers=PREFLIGHT_HEADERS)
    return await call_next(request)


@app.exception_handler(ShelfError)
def handle_shelf_error(request: Request, exc: ShelfError) -> JSONResponse:
    if exc.status_code >= 500:
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


# =========================
# 의존성(테스트에서 교체)
# =========================
def get_settings() -> Settings:
    return load_settings()


def get_fetcher(settings: Settings = Depends(get_settings)) -> Fetcher:
    return partial(transport.fetch_html, timeout=settings.request_timeout)


def get_http() -> requests.Session:
    return transport.session


def get_image_fetcher(settings: Settings = Depends(get_settings)) -> Callable[[str], tuple[bytes, str]]:
    return partial(transport.fetch_image, timeout=settings.request_timeout)


def get_notion_client(settings: Settings = Depends(get_settings)) -> NotionClient:
    return NotionClient.from_settings(settings)


def _public_base_url(request: Request) -> str:
    """프록시 뒤에서는 X-Forwarded-Proto/Host를 따른다."""
    proto = request.headers.get("x-forwarded-proto", "").split(",")[0].strip() or request.url.scheme
    host = request.headers.get("x-forwarded-host", "").split(",")[0].strip() or request.url.netloc
    return f"{proto}://{host}"


def _scrape_response(result: ScrapeResult) -> JSONResponse:
    return JSONResponse(content=result.to_payload(), headers=NO_STORE)


# =========================
# 상세 추출
# =========================
@app.get("/api/kakao-webtoon")
def kakao_webtoon(
    url: str = Query("", description="https://webtoon.kakao.com/content/<slug>/<id>"),
    debug: str = Query(""),
    fetch: Fetcher = Depends(get_fetcher),
) -> JSONResponse:
    return _scrape_response(kakao_webtoon_scraper.scrape(url, fetch=fetch, debug=to_boolean(debug)))


@app.get("/api/kakaopage")
def kakaopage(
    url: str = Query(""),
    debug: str = Query(""),
    fetch: Fetcher = Depends(get_fetcher),
) -> JSONResponse:
    return _scrape_response(kakaopage_scraper.scrape(url, fetch=fetch, debug=to_boolean(debug)))


@app.get("/api/ridi")
def ridi(
    link: str = Query(""),
    book_id: str = Query("", alias="bookId"),
    debug: str = Query(""),
    fetch: Fetcher = Depends(get_fetcher),
) -> JSONResponse:
    return _scrape_response(ridi_scraper.scrape(link, fetch=fetch, debug=to_boolean(debug), book_id=book_id))


@app.get("/api/parse")
def parse_any(
    url: str = Query(""),
    debug: str = Query(""),
    fetch: Fetcher = Depends(get_fetcher),
) -> JSONResponse:
    return _scrape_response(scrape_any(url, fetch=fetch, debug=to_boolean(debug)))


# =========================
# 검색
# =========================
@app.get("/api/search/ridi")
def ridi_search(q: str = Query(""), http: requests.Session = Depends(get_http)) -> JSONResponse:
    return JSONResponse(content=search_ridi(q, http=http), headers=NO_STORE)


@app.get("/api/search/kakao-webtoon")
def kakao_webtoon_search(q: str = Query(""), fetch: Fetcher = Depends(get_fetcher)) -> JSONResponse:
    return JSONResponse(content=search_kakao_webtoon(q, fetch=fetch), headers=NO_STORE)


# =========================
# Notion 적재
# =========================
@app.post("/api/notion")
def notion_create(
    body: Any = Body(None),
    client: NotionClient = Depends(get_notion_client),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """단건(레코드 JSON) 또는 배치(`{"items": [...]}`) 저장."""
    if not isinstance(body, dict) or not body:
        raise InputError("JSON object body is required")
    return JSONResponse(content=save_payload(client, settings.notion_db_id, body))


@app.post("/api/webtoon-notion")
def webtoon_notion_create(
    request: Request,
    body: Any = Body(None),
    fetch: Fetcher = Depends(get_fetcher),
    client: NotionClient = Depends(get_notion_client),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """URL 하나를 받아 추출 → Notion 저장까지 한 번에 한다. 표지는 이미지 프록시 URL로 바꿔 넣는다."""
    url = str((body or {}).get("url") or "").strip() if isinstance(body, dict) else ""
    if not url:
        raise InputError("Missing url")

    record = scrape_any(url, fetch=fetch).to_payload()
    cover = record.get("coverUrl")
    if cover:
        record["coverUrl"] = f"{_public_base_url(request)}/api/image-proxy?url={quote(cover, safe='')}"
    result = save_payload(client, settings.notion_db_id, record)
    return JSONResponse(content={**result, "scraped": record})


# =========================
# 이미지 프록시
# =========================
@app.get("/api/image-proxy")
def image_proxy(
    url: str = Query(""),
    fetch_image: Callable[[str], tuple[bytes, str]] = Depends(get_image_fetcher),
) -> Response:
    """Notion 핫링크 차단을 피하려고 외부 이미지를 대신 받아 그대로 전달한다."""
    url = url.strip()
    if not url:
        raise InputError("Missing url")
    if len(url) > MAX_PROXY_URL_LEN:
        raise InputError("URL too long")
    content, content_type = fetch_image(url)
    return Response(content=content, media_type=content_type, headers={"Cache-Control": IMAGE_CACHE_CONTROL})


def main() -> None:
    setup_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
