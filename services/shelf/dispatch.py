# dispatch.py
"""URL 도메인으로 플랫폼 스크레이퍼를 고른다."""

from __future__ import annotations

from typing import Callable
from urllib.parse import urlparse

from services.shelf import kakao_webtoon_scraper, kakaopage_scraper, ridi_scraper
from services.shelf.errors import InputError
from services.shelf.resolver import ScrapeResult

SCRAPERS: dict[str, Callable[..., ScrapeResult]] = {
    "webtoon.kakao.com": kakao_webtoon_scraper.scrape,
    "page.kakao.com": kakaopage_scraper.scrape,
    "ridibooks.com": ridi_scraper.scrape,
}


def scraper_for(url: str) -> Callable[..., ScrapeResult]:
    url = (url or "").strip()
    if not url:
        raise InputError("url required")
    host = (urlparse(url).hostname or "").lower()
    for domain, scrape in SCRAPERS.items():
        if host == domain or host.endswith("." + domain):
            return scrape
    raise InputError("지원하지 않는 도메인")


def scrape_any(url: str, **kwargs) -> ScrapeResult:
    return scraper_for(url)(url, **kwargs)
