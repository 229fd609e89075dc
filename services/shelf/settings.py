# settings.py
"""플랫폼별 상수와 배포 환경 변수를 불변 설정 값으로 묶어 제공한다."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

from services.shelf.errors import ConfigError

# --- [공통 상수] ---
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
ACCEPT_LANGUAGE = "ko-KR,ko;q=0.9,en-US;q=0.7,en;q=0.6"
MAX_REDIRECTS = 6
DEFAULT_REQUEST_TIMEOUT = 20
DEFAULT_NOTION_VERSION = "2022-06-28"
DEFAULT_NOTION_TIMEOUT = 120
NOTION_API_BASE = "https://api.notion.com/v1"


@dataclass(frozen=True)
class PlatformConfig:
    """한 플랫폼의 추출 규칙. 추출기/리졸버에 인자로 주입된다."""

    key: str
    label: str
    origin: str
    referer: str
    # 제목 끝에서 순서대로 떼어낼 장식 패턴
    suffix_patterns: tuple[re.Pattern, ...]
    # 첫 화(viewer) 링크를 찾는 a[href] 부분 문자열
    viewer_href_marker: str = ""
    # 원본 HTML에서 viewer 절대/상대 URL을 찾는 정규식
    viewer_abs_pattern: re.Pattern | None = None
    viewer_rel_pattern: re.Pattern | None = None
    # {origin}, {content_id}, {slug}, {episode_id} 자리표시자를 쓰는 viewer URL 템플릿
    viewer_url_template: str = ""
    content_id_pattern: re.Pattern | None = None
    # DOM 장르 휴리스틱에서 쓰는 분류 라벨(예: "웹툰")
    category_label: str = ""
    adult_markers: tuple[str, ...] = ("19세", "성인", "청소년 이용불가")
    extra_headers: dict[str, str] = field(default_factory=dict)

    def content_id(self, url: str) -> str:
        if not self.content_id_pattern or not url:
            return ""
        m = self.content_id_pattern.search(url)
        return m.group("id") if m else ""

    def content_slug(self, url: str) -> str:
        if not self.content_id_pattern or not url:
            return ""
        m = self.content_id_pattern.search(url)
        if not m or "slug" not in m.groupdict():
            return ""
        return m.group("slug") or ""


KAKAO_WEBTOON = PlatformConfig(
    key="kakao_webtoon",
    label="카카오웹툰",
    origin="https://webtoon.kakao.com",
    referer="https://webtoon.kakao.com/",
    suffix_patterns=(re.compile(r"\s*\|\s*카카오웹툰\s*$", re.I),),
    viewer_href_marker="/viewer/",
    viewer_abs_pattern=re.compile(r"https://webtoon\.kakao\.com/viewer/[^\s\"'<>/]+/\d+"),
    viewer_rel_pattern=re.compile(r"/viewer/[^\s\"'<>/]+/\d+"),
    viewer_url_template="{origin}/viewer/{slug}/{episode_id}",
    content_id_pattern=re.compile(r"/content/(?P<slug>[^/?#]+)/(?P<id>\d+)"),
    category_label="웹툰",
)

KAKAOPAGE = PlatformConfig(
    key="kakaopage",
    label="카카오페이지",
    origin="https://page.kakao.com",
    referer="https://page.kakao.com/",
    suffix_patterns=(
        re.compile(r"\s*\|\s*카카오페이지\s*$", re.I),
        re.compile(r"\s*-\s*웹툰\s*$", re.I),
        re.compile(r"\s*-\s*웹소설\s*$", re.I),
        re.compile(r"\s*-\s*책\s*$", re.I),
    ),
    viewer_href_marker="/viewer/",
    viewer_abs_pattern=re.compile(r"https://page\.kakao\.com/content/\d+/viewer/\d+"),
    viewer_rel_pattern=re.compile(r"/content/\d+/viewer/\d+"),
    viewer_url_template="{origin}/content/{content_id}/viewer/{episode_id}",
    content_id_pattern=re.compile(r"/content/(?P<id>\d+)"),
    category_label="웹툰",
)

RIDI = PlatformConfig(
    key="ridi",
    label="RIDI",
    origin="https://ridibooks.com",
    referer="https://ridibooks.com/",
    suffix_patterns=(
        re.compile(r"\s*[-|｜]\s*최신권.*$"),
        re.compile(r"\s*[-|｜]\s*독점.*$"),
        re.compile(r"\s*[-|｜]\s*리디.*$", re.I),
    ),
    content_id_pattern=re.compile(r"/books/(?P<id>\d+)"),
)

PLATFORMS: dict[str, PlatformConfig] = {
    "webtoon.kakao.com": KAKAO_WEBTOON,
    "page.kakao.com": KAKAOPAGE,
    "ridibooks.com": RIDI,
}


@dataclass(frozen=True)
class Settings:
    notion_token: str
    notion_db_id: str
    notion_version: str = DEFAULT_NOTION_VERSION
    notion_timeout: float = DEFAULT_NOTION_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number (got {raw!r})") from exc


def load_settings() -> Settings:
    """환경 변수를 읽어 Settings를 만든다. 값 검증은 ensure_notion_settings에서 한다."""
    return Settings(
        notion_token=os.environ.get("NOTION_TOKEN", "").strip(),
        notion_db_id=os.environ.get("NOTION_DB_ID", "").strip(),
        notion_version=os.environ.get("NOTION_VERSION", "").strip() or DEFAULT_NOTION_VERSION,
        notion_timeout=_float_env("NOTION_TIMEOUT", DEFAULT_NOTION_TIMEOUT),
        request_timeout=_float_env("REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
    )


def ensure_notion_settings(settings: Settings) -> None:
    """Notion 적재에 필요한 환경 변수가 모두 설정되어 있는지 확인한다."""
    missing: list[str] = []
    if not settings.notion_token:
        missing.append("NOTION_TOKEN")
    if not settings.notion_db_id:
        missing.append("NOTION_DB_ID")
    if missing:
        raise ConfigError("Missing required environment variables: " + ", ".join(missing))
