# kakaopage_scraper.py
"""카카오페이지(page.kakao.com/content/<id>) 작품 정보 추출."""

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
from services.shelf.settings import KAKAOPAGE, PlatformConfig
from services.shelf.signals import (
    extract_author_from_title_line,
    extract_copyright_credit,
    extract_genre_from_text,
    extract_loose_author,
)
from services.shelf.text_utils import absolutize, normalize_multiline_text, strip_platform_suffix
from services.shelf.vocab import (
    STATE_COVER_KEYS,
    STATE_DESC_KEYS,
    STATE_GENRE_KEYS,
    STATE_KEYWORD_KEYS,
)


def scrape(
    url: str,
    fetch: Fetcher = fetch_html,
    debug: bool = False,
    config: PlatformConfig = KAKAOPAGE,
) -> ScrapeResult:
    """
    content 페이지를 먼저 읽고, 첫 화 viewer 페이지로 소개/성인/작가/장르를 보강한다.
    카카오페이지는 JSON-LD가 거의 없어서 메타와 본문 텍스트 휴리스틱 비중이 크다.
    """
    url = (url or "").strip()
    if not url:
        raise InputError("url required")

    page = fetch(url, config.referer)
    signals = PageSignals.from_page(page)
    meta, pool = signals.meta, signals.pool
    trace: dict[str, str] = {}

    record = ExtractionRecord(url=url)
    # 예: "학원 베이비시터즈 - 웹툰 | 카카오페이지"
    record.title = resolve_tiers("title", [
        ("meta", lambda: strip_platform_suffix(meta["title"], config.suffix_patterns)),
        ("title_tag", lambda: strip_platform_suffix(signals.title_tag(), config.suffix_patterns)),
        ("content_id", lambda: config.content_id(url)),
    ], trace)

    record.cover_url = absolutize(resolve_tiers("cover", [
        ("meta", meta["cover"]),
        ("state", lambda: pool.find_first_string(STATE_COVER_KEYS)),
    ], trace), config.origin)

    record.desc = normalize_multiline_text(resolve_tiers("desc", [
        ("meta", meta["desc"]),
        ("state", lambda: pool.find_first_string(STATE_DESC_KEYS)),
    ], trace))

    credits = pool.credits()
    raw_author = resolve_tiers("author", [
        ("state_credits", ", ".join(credits.author)),
        ("dom", lambda: extract_author_from_title_line(signals.text, record.title)),
        ("loose", lambda: extract_loose_author(signals.html)),
        ("copyright", lambda: extract_copyright_credit(record.desc)),
    ], trace)

    genres = resolve_tiers("genre", [
        ("state", lambda: pool.find_string_array(STATE_GENRE_KEYS)),
        ("dom", lambda: extract_genre_from_text(signals.text, config.category_label)),
    ], trace, default=[])

    record.publisher_name = ", ".join(credits.publisher)
    record.set_keywords(normalize_keywords(pool.find_string_array(STATE_KEYWORD_KEYS)))
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
    parser = argparse.ArgumentParser(description="카카오페이지 작품 정보를 JSON으로 출력합니다")
    parser.add_argument("url", help="https://page.kakao.com/content/<id>")
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
