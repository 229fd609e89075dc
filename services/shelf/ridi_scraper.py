# ridi_scraper.py
"""RIDI 도서 상세 페이지에서 제목/표지/소개/가이드/작가/출판사/평점/장르/키워드를 추출한다."""

from __future__ import annotations

import argparse
import json
import re
import sys
from typing import Any, Callable, Iterable

from services.shelf.author_refiner import build_author_line, normalize_keywords
from services.shelf.embedded_state import StatePool
from services.shelf.errors import InputError, ShelfError
from services.shelf.fetch import fetch_html
from services.shelf.models import AuthorCandidateSet, ExtractionRecord
from services.shelf.resolver import Fetcher, PageSignals, ScrapeResult, merge_adult, resolve_tiers
from services.shelf.settings import RIDI, PlatformConfig
from services.shelf.signals import (
    extract_section_by_heading,
    extract_value_by_label,
    normalize_people,
    to_number,
)
from services.shelf.text_utils import (
    absolutize,
    dedupe,
    normalize_whitespace,
    strip_platform_suffix,
    truncate,
)
from services.shelf.vocab import STATE_ADULT_KEYS

# --- [상수 설정] ---
MAX_TITLE_LEN = 120
MAX_TAGS = 12
ADULT_COVER_MARKER = "cover_adult.png"
BOOK_URL_TEMPLATE = "https://ridibooks.com/books/{book_id}"

DESC_HEADINGS = ("작품 소개", "작품소개", "책 소개", "줄거리", "소개")
GUIDE_HEADINGS = ("로맨스 가이드", "로맨스가이드", "가이드")
DESC_MIN_LEN = 120
GUIDE_MIN_LEN = 80

AUTHOR_LABELS = ("작가", "작가명", "저자", "Author")
PUBLISHER_LABELS = ("출판사", "출판사명", "Publisher")
RATING_LABELS = ("평점", "별점", "Rating")

# 상태 JSON 후보 키(선언 순서 = 우선순위)
TITLE_KEYS = ("title", "bookTitle", "productTitle", "name")
COVER_KEYS = ("coverUrl", "thumbnailUrl", "thumbnail", "imageUrl", "image", "cover")
DESC_KEYS = (
    "description", "bookDescription", "synopsis", "summary",
    "intro", "introduction", "productDescription", "fullDescription",
)
GUIDE_KEYS = ("romanceGuide", "romance_guide", "romanceGuideText", "guide", "contentGuide")
AUTHOR_KEYS = ("authorName", "author", "authors", "writer", "writers", "creator", "creators")
PUBLISHER_KEYS = ("publisherName", "publisher", "imprint", "brand")
RATING_KEYS = ("averageRating", "ratingAverage", "rating", "score", "starRating")
GENRE_KEYS = ("genres", "genre", "categories", "category", "bookCategories", "classification")
KEYWORD_KEYS = ("keywords", "keyword", "tags", "tagList", "hashTags", "hashtags")


def book_url(link: str = "", book_id: str = "") -> str:
    link = (link or "").strip()
    book_id = (book_id or "").strip()
    if link:
        return link
    if book_id:
        return BOOK_URL_TEMPLATE.format(book_id=book_id)
    raise InputError("link or bookId is required")


def _scalar_text(value: Any) -> str:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return normalize_whitespace(value)
    return ""


def _string_array(value: Any, split_re: str) -> list[str]:
    """배열(문자열/이름 객체) 또는 구분자로 이어진 문자열을 최대 12개 리스트로."""
    if isinstance(value, list):
        items = []
        for x in value:
            if isinstance(x, str):
                items.append(x)
            elif isinstance(x, dict):
                items.append(x.get("name") or x.get("title") or x.get("label") or "")
        return dedupe(str(x) for x in items)[:MAX_TAGS]
    if isinstance(value, str):
        return dedupe(re.split(split_re, value))[:MAX_TAGS]
    return []


def _genres(value: Any) -> list[str]:
    return _string_array(value, r"[,/|#]")


def _tags(value: Any) -> list[str]:
    return _string_array(value, r"[,#]")


def _first_mapped(pool: StatePool, keys: Iterable[str], mapper: Callable[[Any], Any]) -> Any:
    """후보 키 값 중 mapper를 거쳐 비어 있지 않은 첫 결과."""
    for _, value in pool.iter_values(keys):
        mapped = mapper(value)
        if mapped or mapped == 0:
            return mapped
    return None


def clean_title(value: str, config: PlatformConfig = RIDI) -> str:
    return truncate(strip_platform_suffix(value, config.suffix_patterns), MAX_TITLE_LEN)


def scrape(
    url: str = "",
    fetch: Fetcher = fetch_html,
    debug: bool = False,
    config: PlatformConfig = RIDI,
    book_id: str = "",
) -> ScrapeResult:
    """
    link(상세 URL) 또는 bookId 하나만 있으면 된다.
    소개글은 상태 JSON 값보다 DOM "작품 소개" 섹션(120자 이상)을 우선하고, 둘 다 없으면 og:description.
    """
    link = book_url(url, book_id)
    resolved_id = config.content_id(link) or (book_id or "").strip()

    page = fetch(link, config.referer)
    signals = PageSignals.from_page(page)
    ld, meta, pool, soup = signals.structured, signals.meta, signals.pool, signals.soup
    trace: dict[str, str] = {}

    record = ExtractionRecord(url=link)
    record.title = clean_title(resolve_tiers("title", [
        ("meta", meta["title"]),
        ("structured", ld["title"]),
        ("state", lambda: _first_mapped(pool, TITLE_KEYS, _scalar_text)),
    ], trace), config)

    record.cover_url = absolutize(resolve_tiers("cover", [
        ("state", lambda: _first_mapped(pool, COVER_KEYS, _scalar_text)),
        ("meta", meta["cover"]),
        ("structured", ld["cover"]),
    ], trace), config.origin)

    record.desc = resolve_tiers("desc", [
        ("dom_section", lambda: extract_section_by_heading(soup, DESC_HEADINGS, DESC_MIN_LEN)),
        ("state", lambda: _first_mapped(pool, DESC_KEYS, _scalar_text)),
        ("meta", meta["desc"]),
    ], trace)

    record.guide = resolve_tiers("guide", [
        ("dom_section", lambda: extract_section_by_heading(soup, GUIDE_HEADINGS, GUIDE_MIN_LEN)),
        ("state", lambda: _first_mapped(pool, GUIDE_KEYS, _scalar_text)),
    ], trace)

    raw_author = resolve_tiers("author", [
        ("state", lambda: _first_mapped(pool, AUTHOR_KEYS, normalize_people)),
        ("structured", ld["author"]),
        ("dom_label", lambda: extract_value_by_label(soup, AUTHOR_LABELS)),
    ], trace)

    record.publisher_name = resolve_tiers("publisher", [
        ("state", lambda: _first_mapped(pool, PUBLISHER_KEYS, normalize_people)),
        ("structured", ld["publisher"]),
        ("dom_label", lambda: extract_value_by_label(soup, PUBLISHER_LABELS)),
    ], trace)

    rating = _first_mapped(pool, RATING_KEYS, to_number)
    if rating is not None:
        trace["rating"] = "state"
    elif ld["rating"] is not None:
        rating = ld["rating"]
        trace["rating"] = "structured"
    else:
        rating = to_number(extract_value_by_label(soup, RATING_LABELS))
        if rating is not None:
            trace["rating"] = "dom_label"
    record.rating = rating

    record.set_genre(_first_mapped(pool, GENRE_KEYS, _genres) or [])
    tags = _first_mapped(pool, KEYWORD_KEYS, _tags) or []
    # ld+json 키워드를 뒤에 섞는다
    tags = dedupe([*tags, *_tags(ld["keywords"])])[:MAX_TAGS]
    record.set_keywords(normalize_keywords(tags))

    # RIDI는 본문 곳곳에 "성인" 메뉴가 있어 마커 단어 대신 성인 전용 표지 이미지로 판단한다
    record.mark_adult(merge_adult(
        ADULT_COVER_MARKER in record.cover_url,
        pool.find_first_bool(STATE_ADULT_KEYS),
    ))

    credits = pool.credits()
    record.author_name = build_author_line(AuthorCandidateSet(
        raw=raw_author,
        title=record.title,
        original=credits.original,
        adapters=credits.adapter,
        artists=credits.artist,
    ))

    diagnostics = {"tiers": dict(trace), "rawAuthor": raw_author} if debug else None
    return ScrapeResult(
        record=record,
        platform=config.label,
        diagnostics=diagnostics,
        extra={"bookId": resolved_id or None, "link": link},
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="RIDI 도서 정보를 JSON으로 출력합니다")
    parser.add_argument("link", nargs="?", default="", help="https://ridibooks.com/books/<id>")
    parser.add_argument("--book-id", default="", help="link 대신 도서 ID")
    parser.add_argument("--debug", action="store_true", help="tier 진단 정보 포함")
    args = parser.parse_args()

    try:
        result = scrape(args.link, debug=args.debug, book_id=args.book_id)
    except ShelfError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(result.to_payload(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
