# kakao_webtoon_scraper.py
"""카카오웹툰 작품 페이지에서 제목/작가/표지/소개/장르/성인 여부를 추출한다."""

from __future__ import annotations

import argparse
import json
import sys

from services.shelf.author_refiner import build_author_line, normalize_keywords
from services.shelf.errors import InputError, ShelfError
from services.shelf.fetch import fetch_html
from services.shelf.models import AuthorCandidateSet, ExtractionRecord
from services.shelf.resolver import (
    Fetcher,
    PageSignals,
    ScrapeResult,
    build_diagnostics,
    enrich_from_viewer,
    find_viewer_url,
    resolve_tiers,
)
from services.shelf.settings import KAKAO_WEBTOON, PlatformConfig
from services.shelf.signals import (
    extract_copyright_credit,
    extract_loose_author,
    extract_loose_genres,
)
from services.shelf.text_utils import absolutize, normalize_multiline_text, strip_platform_suffix
from services.shelf.vocab import (
    STATE_AUTHOR_KEYS,
    STATE_COVER_KEYS,
    STATE_DESC_KEYS,
    STATE_GENRE_KEYS,
    STATE_KEYWORD_KEYS,
    STATE_TITLE_KEYS,
)


def _state_author(signals: PageSignals) -> str:
    names = signals.pool.find_string_array(STATE_AUTHOR_KEYS)
    return ", ".join(names) if names else signals.pool.find_first_string(STATE_AUTHOR_KEYS)


def scrape(
    url: str,
    fetch: Fetcher = fetch_html,
    debug: bool = False,
    config: PlatformConfig = KAKAO_WEBTOON,
) -> ScrapeResult:
    """
    우선순위
    - 제목: JSON-LD → og:title → 첫 h1~h3 → 상태 JSON
    - 표지: JSON-LD → og:image → 상태 JSON
    - 소개: JSON-LD → 메타 → 상태 JSON (viewer 쪽이 더 길면 교체)
    - 작가: JSON-LD → 상태 JSON 역할 크레딧 → 상태 JSON 작가 키 → 스크립트 정규식 → 저작권 표기
    - 장르: JSON-LD → 상태 JSON → 스크립트 정규식
    """
    url = (url or "").strip()
    if not url:
        raise InputError("url required")

    page = fetch(url, config.referer)
    signals = PageSignals.from_page(page)
    ld, meta, pool = signals.structured, signals.meta, signals.pool
    trace: dict[str, str] = {}

    record = ExtractionRecord(url=url)
    raw_title = resolve_tiers("title", [
        ("structured", ld["title"]),
        ("meta", meta["title"]),
        ("heading", signals.first_heading),
        ("state", lambda: pool.find_first_string(STATE_TITLE_KEYS)),
    ], trace)
    record.title = strip_platform_suffix(raw_title, config.suffix_patterns)

    record.cover_url = absolutize(resolve_tiers("cover", [
        ("structured", ld["cover"]),
        ("meta", meta["cover"]),
        ("state", lambda: pool.find_first_string(STATE_COVER_KEYS)),
    ], trace), config.origin)

    record.desc = normalize_multiline_text(resolve_tiers("desc", [
        ("structured", ld["desc"]),
        ("meta", meta["desc"]),
        ("state", lambda: pool.find_first_string(STATE_DESC_KEYS)),
    ], trace))

    credits = pool.credits()
    raw_author = resolve_tiers("author", [
        ("structured", ld["author"]),
        ("state_credits", ", ".join(credits.author)),
        ("state", lambda: _state_author(signals)),
        ("loose", lambda: extract_loose_author(signals.html)),
        ("copyright", lambda: extract_copyright_credit(record.desc)),
    ], trace)

    genres = resolve_tiers("genre", [
        ("structured", [ld["genre"]] if ld["genre"] else []),
        ("state", lambda: pool.find_string_array(STATE_GENRE_KEYS)),
        ("loose", lambda: extract_loose_genres(signals.html)),
    ], trace, default=[])

    record.publisher_name = ", ".join(credits.publisher) or ld["publisher"]
    record.set_keywords(normalize_keywords(
        pool.find_string_array(STATE_KEYWORD_KEYS) or ld["keywords"]
    ))
    record.mark_adult(signals.is_adult(config))

    viewer_url, viewer_step = find_viewer_url(signals, config, page.final_url or url)
    viewer = enrich_from_viewer(record, viewer_url, config, fetch) if viewer_url else None
    if viewer is not None:
        if not raw_author and viewer.author:
            raw_author = viewer.author
            trace["author"] = "viewer"
        if not genres and viewer.genres:
            genres = viewer.genres
            trace["genre"] = "viewer"

    record.set_genre(genres)
    record.author_name = build_author_line(AuthorCandidateSet(
        raw=raw_author,
        title=record.title,
        original=credits.original,
        adapters=credits.adapter,
        artists=credits.artist,
    ))

    diagnostics = None
    if debug:
        diagnostics = build_diagnostics(trace, signals, viewer_url, viewer_step, viewer, raw_author)
    return ScrapeResult(record=record, platform=config.label, diagnostics=diagnostics)


def main() -> None:
    parser = argparse.ArgumentParser(description="카카오웹툰 작품 정보를 JSON으로 출력합니다")
    parser.add_argument("url", help="https://webtoon.kakao.com/content/<slug>/<id>")
    parser.add_argument("--debug", action="store_true", help="tier/viewer 진단 정보 포함")
    args = parser.parse_args()

    try:
        result = scrape(args.url, debug=args.debug)
    except ShelfError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(result.to_payload(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
