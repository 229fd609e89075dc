# search.py
"""RIDI / 카카오웹툰 작품 검색."""

from __future__ import annotations

import re

import requests

from services.shelf.errors import InputError, UpstreamFetchError
from services.shelf.fetch import fetch_html, session
from services.shelf.settings import DEFAULT_REQUEST_TIMEOUT, RIDI
from services.shelf.signals import parse_html
from services.shelf.text_utils import normalize_whitespace

# --- [상수 설정] ---
RIDI_SEARCH_URL = "https://ridibooks.com/api/v2/search"
KAKAO_SEARCH_URL = "https://search.kakao.com/search"
KAKAO_SEARCH_SUFFIX = " 카카오웹툰"
KAKAO_CONTENT_ID_RE = re.compile(r"/content/(?:[^/?#]+/)?(\d+)")
MAX_KAKAO_RESULTS = 10
UNKNOWN_TITLE = "제목(추출 실패)"


def _require_query(q: str) -> str:
    q = (q or "").strip()
    if not q:
        raise InputError("q is required")
    return q


def search_ridi(
    q: str,
    http: requests.Session | None = None,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> dict:
    """RIDI 웹이 쓰는 검색 JSON API를 호출해 {title, link, bookId, coverUrl} 목록을 만든다."""
    q = _require_query(q)
    client = http or session
    try:
        r = client.get(
            RIDI_SEARCH_URL,
            params={"q": q, "types": "book"},
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise UpstreamFetchError(f"RIDI API failed: {exc}") from exc
    if not r.ok:
        raise UpstreamFetchError("RIDI API failed", upstream_status=r.status_code)
    try:
        data = r.json()
    except ValueError as exc:
        raise UpstreamFetchError("RIDI API returned non-JSON body") from exc

    items: list[dict] = []
    for it in (data or {}).get("results") or []:
        if not isinstance(it, dict):
            continue
        book = it.get("book") if isinstance(it.get("book"), dict) else {}
        book_id = str(book.get("id") or it.get("id") or "")
        title = book.get("title") or it.get("title") or ""
        if not title or not book_id:
            continue
        items.append(
            {
                "title": title,
                "link": f"{RIDI.origin}/books/{book_id}",
                "bookId": book_id,
                "coverUrl": book.get("cover_url") or it.get("cover_url") or "",
            }
        )
    return {"ok": True, "q": q, "items": items}


def parse_kakao_search(html: str) -> list[dict]:
    """검색 결과 HTML에서 webtoon.kakao.com 작품 링크만 골라 contentId 기준으로 중복 제거."""
    soup = parse_html(html)
    items: list[dict] = []
    seen: set[str] = set()
    for a in soup.find_all("a", href=True):
        href = a["href"]
        if "webtoon.kakao.com" not in href:
            continue
        m = KAKAO_CONTENT_ID_RE.search(href)
        if not m or m.group(1) in seen:
            continue
        seen.add(m.group(1))
        items.append(
            {
                "title": normalize_whitespace(a.get_text(" ")) or UNKNOWN_TITLE,
                "link": href,
                "contentId": m.group(1),
            }
        )
        if len(items) >= MAX_KAKAO_RESULTS:
            break
    return items


def search_kakao_webtoon(q: str, fetch=fetch_html) -> dict:
    q = _require_query(q)
    url = requests.Request("GET", KAKAO_SEARCH_URL, params={"w": "web", "q": q + KAKAO_SEARCH_SUFFIX}).prepare().url
    page = fetch(url, "")
    return {"ok": True, "q": q, "items": parse_kakao_search(page.html)}
