# resolver.py
"""
필드별 우선순위(tier) 병합과 viewer(첫 화) 페이지 보강.
플랫폼별 스크레이퍼가 공통으로 쓰는 조합 함수들을 모아 둔다.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from functools import cached_property
from typing import Any, Callable, Iterable

from bs4 import BeautifulSoup

from services.shelf.embedded_state import StatePool
from services.shelf.fetch import FetchResult
from services.shelf.log import LOGGER
from services.shelf.models import ExtractionRecord
from services.shelf.settings import PlatformConfig
from services.shelf.signals import (
    detect_adult,
    extract_author_from_title_line,
    extract_genre_from_text,
    extract_meta_tags,
    extract_structured_data,
    page_text,
    parse_html,
)
from services.shelf.text_utils import absolutize, normalize_whitespace, strip_platform_suffix
from services.shelf.vocab import STATE_ADULT_KEYS, STATE_DESC_KEYS

# fetch(url, referer) -> FetchResult
Fetcher = Callable[[str, str], FetchResult]
Tier = tuple[str, Any]


# --- [병합 규칙] ---
def _evaluate(candidate: Any) -> Any:
    return candidate() if callable(candidate) else candidate


def first_non_empty(*candidates: Any, default: Any = "") -> Any:
    """앞에서부터 평가해 처음으로 비어 있지 않은 값을 돌려준다. 호출 가능한 후보는 필요할 때만 평가한다."""
    for candidate in candidates:
        value = _evaluate(candidate)
        if value:
            return value
    return default


def resolve_tiers(
    name: str,
    tiers: Iterable[Tier],
    trace: dict[str, str] | None = None,
    default: Any = "",
) -> Any:
    """first_non_empty와 같지만 어느 tier가 값을 냈는지 trace에 남긴다."""
    for tier_name, candidate in tiers:
        value = _evaluate(candidate)
        if value:
            if trace is not None:
                trace[name] = tier_name
            return value
    return default


def prefer_longer(current: str, candidate: str) -> str:
    """보조 페이지의 소개글이 더 길면 교체한다."""
    candidate = (candidate or "").strip()
    if candidate and len(candidate) > len(current or ""):
        return candidate
    return current


def merge_adult(*flags: Any) -> bool:
    return any(bool(f) for f in flags)


# --- [페이지 신호 묶음] ---
@dataclass
class PageSignals:
    """한 페이지에서 한 번만 파싱해 두고 여러 tier가 같이 쓰는 신호들."""

    page: FetchResult
    soup: BeautifulSoup
    structured: dict[str, Any]
    meta: dict[str, str]
    pool: StatePool

    @classmethod
    def from_page(cls, page: FetchResult) -> "PageSignals":
        soup = parse_html(page.html)
        return cls(
            page=page,
            soup=soup,
            structured=extract_structured_data(soup),
            meta=extract_meta_tags(soup),
            pool=StatePool.from_soup(soup),
        )

    @property
    def html(self) -> str:
        return self.page.html

    @cached_property
    def text(self) -> str:
        return page_text(self.soup)

    def first_heading(self) -> str:
        node = self.soup.select_one("h1, h2, h3")
        return normalize_whitespace(node.get_text(" ")) if node else ""

    def title_tag(self) -> str:
        node = self.soup.find("title")
        return normalize_whitespace(node.get_text()) if node else ""

    def is_adult(self, config: PlatformConfig) -> bool:
        return merge_adult(
            detect_adult(self.html, self.soup, config.adult_markers),
            self.pool.find_first_bool(STATE_ADULT_KEYS),
        )


# --- [viewer 링크 찾기] ---
def find_viewer_url(signals: PageSignals, config: PlatformConfig, content_url: str) -> tuple[str, str]:
    """
    첫 화 viewer URL을 찾아 (url, 찾은 단계)로 돌려준다. 못 찾으면 ("", "").
    a) a[href] 패턴 → b) 원본 HTML 절대 URL → c) 상대 URL → d) 상태 JSON의 회차 id로 합성
    """
    html = signals.html
    if config.viewer_href_marker:
        for a in signals.soup.select(f'a[href*="{config.viewer_href_marker}"]'):
            href = absolutize(a.get("href"), config.origin)
            if href.startswith("http"):
                return href, "anchor"

    if config.viewer_abs_pattern is not None:
        m = config.viewer_abs_pattern.search(html)
        if m:
            return m.group(0), "absolute"

    if config.viewer_rel_pattern is not None:
        m = config.viewer_rel_pattern.search(html)
        if m:
            return absolutize(m.group(0), config.origin), "relative"

    if config.viewer_url_template and signals.pool:
        content_id = config.content_id(content_url)
        slug = config.content_slug(content_url)
        candidates = signals.pool.viewer_id_candidates()
        if content_id and candidates:
            if "{slug}" in config.viewer_url_template and not slug:
                return "", ""
            url = config.viewer_url_template.format(
                origin=config.origin,
                content_id=content_id,
                slug=slug,
                episode_id=candidates[0].episode_id,
            )
            return url, "state"
    return "", ""


# --- [viewer 페이지 보강] ---
@dataclass
class ViewerSignals:
    url: str
    title: str = ""
    desc: str = ""
    cover: str = ""
    author: str = ""
    genres: list[str] = field(default_factory=list)
    is_adult: bool = False


def read_viewer_page(page: FetchResult, config: PlatformConfig, title: str) -> ViewerSignals:
    signals = PageSignals.from_page(page)
    v_title = strip_platform_suffix(signals.meta["title"], config.suffix_patterns)
    author = extract_author_from_title_line(signals.text, title)
    if not author and v_title:
        author = extract_author_from_title_line(signals.text, v_title)
    return ViewerSignals(
        url=page.url,
        title=v_title,
        desc=signals.meta["desc"] or signals.pool.find_first_string(STATE_DESC_KEYS),
        cover=absolutize(signals.meta["cover"], config.origin),
        author=author,
        genres=extract_genre_from_text(signals.text, config.category_label),
        is_adult=signals.is_adult(config),
    )


def enrich_from_viewer(
    record: ExtractionRecord,
    viewer_url: str,
    config: PlatformConfig,
    fetch: Fetcher,
) -> ViewerSignals | None:
    """
    viewer 페이지를 가져와 소개글(더 길면 교체), 성인 여부(OR), 빈 표지를 보강한다.
    가져오기/파싱이 실패해도 경고만 남기고 None을 돌려준다(원래 결과는 그대로).
    """
    try:
        page = fetch(viewer_url, config.referer)
        viewer = read_viewer_page(page, config, record.title)
    except Exception as exc:
        LOGGER.warning("viewer enrichment skipped: %s (%s)", viewer_url, exc)
        return None

    record.desc = prefer_longer(record.desc, viewer.desc)
    record.mark_adult(viewer.is_adult)
    if not record.cover_url and viewer.cover:
        record.cover_url = viewer.cover
    return viewer


# --- [결과] ---
@dataclass
class ScrapeResult:
    record: ExtractionRecord
    platform: str
    diagnostics: dict[str, Any] | None = None
    # 플랫폼 고유 필드(예: RIDI bookId)
    extra: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload = self.record.to_payload(self.platform)
        payload.update(self.extra)
        if self.diagnostics is not None:
            payload["debug"] = self.diagnostics
        return payload


def build_diagnostics(
    trace: dict[str, str],
    signals: PageSignals,
    viewer_url: str,
    viewer_step: str,
    viewer: ViewerSignals | None,
    raw_author: str,
) -> dict[str, Any]:
    return {
        "tiers": dict(trace),
        "viewerUrl": viewer_url,
        "viewerStep": viewer_step,
        "usedViewer": viewer.url if viewer else "",
        "viewerIdCandidates": [asdict(c) for c in signals.pool.viewer_id_candidates()],
        "rawAuthor": raw_author,
    }
