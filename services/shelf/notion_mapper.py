# notion_mapper.py
"""
추출 결과(JSON 레코드)를 대상 Notion DB 스키마의 속성 값으로 바꾼다.
속성 이름은 DB마다 다르므로 후보 이름 + 타입으로 찾고, select/multi_select 값은
DB에 이미 있는 옵션만 쓴다(새 옵션을 만들지 않는다).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable
from urllib.parse import unquote

from services.shelf.author_refiner import map_genre_to_allowed, normalize_keywords
from services.shelf.errors import InputError, SchemaMismatchError
from services.shelf.log import LOGGER
from services.shelf.settings import KAKAO_WEBTOON, KAKAOPAGE, RIDI
from services.shelf.text_utils import (
    dedupe,
    normalize_multiline_text,
    strip_platform_suffix,
    to_boolean,
    truncate,
)
from services.shelf.vocab import ADULT_KEYWORD_MARKER, WEBTOON_ADULT_TITLE_TAG

# --- [Notion 제한] ---
NOTION_TEXT_LIMIT = 2000
NOTION_RICH_TEXT_MAX_PARTS = 100

NAME_NOISE_RE = re.compile(r"[\s·:：\-–—_]+")
ADULT_TITLE_TAG_RE = re.compile(r"\[19세\s*완전판\]\s*")
KAKAO_SLUG_RE = re.compile(r"/content/([^/]+)/(\d+)")

# 속성 이름 후보(정규화 후 비교)
TITLE_NAMES = ("Title", "제목", "title", "name")
PLATFORM_NAMES = ("Platform", "플랫폼")
COVER_NAMES = ("Cover", "표지", "커버", "cover", "이미지")
AUTHOR_NAMES = ("Author", "작가명", "작가", "저자")
PUBLISHER_NAMES = ("Publisher", "출판사명", "출판사")
GENRE_NAMES = ("Genre", "장르")
KEYWORD1_NAMES = ("Keyword(1)", "Keyword1", "키워드1")
KEYWORD2_NAMES = ("Keyword(2)", "Keyword2", "키워드2")
KEYWORD3_NAMES = ("Keyword(3)", "Keyword3", "키워드3")
URL_NAMES = ("URL", "url", "링크", "link", "주소")
GUIDE_NAMES = ("가이드", "Guide")
DESC_NAMES = ("작품 소개", "Description", "소개")

PLATFORM_KAKAO = "KAKAO"
PLATFORM_RIDI = "RIDI"


def norm_name(value: str) -> str:
    return NAME_NOISE_RE.sub("", str(value or "").strip().lower())


def first_prop_of_type(schema: dict[str, dict], prop_type: str) -> str | None:
    for name, prop in schema.items():
        if isinstance(prop, dict) and prop.get("type") == prop_type:
            return name
    return None


def find_prop(schema: dict[str, dict], names: Iterable[str], prop_type: str) -> str | None:
    """이름 후보(정규화 비교)와 타입이 모두 맞는 첫 속성. 순서는 스키마 순서."""
    wanted = {norm_name(n) for n in names}
    for name, prop in schema.items():
        if not isinstance(prop, dict) or prop.get("type") != prop_type:
            continue
        if norm_name(name) in wanted:
            return name
    return None


def options_of(schema: dict[str, dict], prop_name: str | None) -> list[str]:
    """select/multi_select 속성에 이미 정의된 옵션 이름들."""
    if not prop_name:
        return []
    prop = schema.get(prop_name) or {}
    prop_type = prop.get("type")
    config = prop.get(prop_type) if prop_type in ("select", "multi_select") else None
    if not isinstance(config, dict):
        return []
    return [o["name"] for o in config.get("options") or [] if isinstance(o, dict) and o.get("name")]


def filter_to_existing_options(
    schema_options: Iterable[str], candidates: Iterable[str]
) -> tuple[list[str], list[str]]:
    """(남길 값, 버린 값). 후보 순서를 유지하고, 스키마 옵션이 없으면 전부 버린다."""
    allowed = set(schema_options)
    kept: list[str] = []
    dropped: list[str] = []
    for value in dedupe(candidates):
        (kept if value in allowed else dropped).append(value)
    return kept, dropped


def to_rich_text(value: Any) -> list[dict]:
    """
    줄바꿈을 유지한 채 2000자 단위 rich_text 조각으로 자른다(최대 100개).
    빈 줄로 나뉜 문단이 있으면 문단 단위로, 없으면 줄 단위로 나눈다.
    """
    text = normalize_multiline_text(value)
    if not text:
        return []
    split_re = r"\n{2,}" if "\n\n" in text else r"\n+"
    paragraphs = [p.strip() for p in re.split(split_re, text) if p.strip()]

    parts: list[dict] = []
    for idx, para in enumerate(paragraphs):
        chunk_src = para + "\n\n" if idx < len(paragraphs) - 1 else para
        for start in range(0, len(chunk_src), NOTION_TEXT_LIMIT):
            parts.append({"type": "text", "text": {"content": chunk_src[start : start + NOTION_TEXT_LIMIT]}})
            if len(parts) >= NOTION_RICH_TEXT_MAX_PARTS:
                return parts
    return parts


# --- [플랫폼/제목 규칙] ---
def infer_source_platform(url: str, platform: str = "") -> str:
    p = (platform or "").strip()
    u = url or ""
    if KAKAO_WEBTOON.label in p:
        return KAKAO_WEBTOON.label
    if KAKAOPAGE.label in p:
        return KAKAOPAGE.label
    if p.upper() == PLATFORM_RIDI:
        return RIDI.label
    if p.upper() == PLATFORM_KAKAO:
        return KAKAO_WEBTOON.label if "webtoon.kakao.com" in u else KAKAOPAGE.label
    if "webtoon.kakao.com" in u:
        return KAKAO_WEBTOON.label
    if "page.kakao.com" in u:
        return KAKAOPAGE.label
    if "ridibooks.com" in u:
        return RIDI.label
    return ""


def to_notion_platform_value(source_platform: str) -> str:
    if source_platform in (KAKAO_WEBTOON.label, KAKAOPAGE.label):
        return PLATFORM_KAKAO
    return PLATFORM_RIDI


def title_from_kakao_url(url: str) -> str:
    """`/content/<slug>/<id>`의 slug를 제목 대용으로 쓴다(하이픈 → 공백)."""
    m = KAKAO_SLUG_RE.search(url or "")
    if not m:
        return ""
    return unquote(m.group(1)).replace("-", " ").strip()


def clean_publisher(value: Any) -> str:
    s = str(value or "").strip()
    if not s or "AI 매칭" in s or "<" in s:
        return ""
    return s


def tag_adult_webtoon_title(title: str, is_adult: bool) -> str:
    """카카오웹툰 성인 작품은 제목 뒤에 `[19세 완전판]`을 정확히 한 번 붙인다."""
    t = strip_platform_suffix(title, KAKAO_WEBTOON.suffix_patterns)
    t = ADULT_TITLE_TAG_RE.sub("", t).strip()
    if is_adult:
        t = f"{t} {WEBTOON_ADULT_TITLE_TAG}".strip()
    return t


# --- [속성 탐색] ---
@dataclass(frozen=True)
class PropertyMap:
    title: str
    platform: str | None = None
    cover: str | None = None
    author: str | None = None
    publisher: str | None = None
    genre: str | None = None
    keyword1: str | None = None
    keyword2: str | None = None
    keyword3: str | None = None
    url: str | None = None
    guide: str | None = None
    desc: str | None = None

    def keyword_prop_for(self, genre_value: str) -> str | None:
        """BL → Keyword(2), 판타지 → Keyword(3), 나머지 → Keyword(1). 없으면 다른 키워드 속성."""
        if genre_value == "BL":
            order = (self.keyword2, self.keyword1, self.keyword3)
        elif genre_value == "판타지":
            order = (self.keyword3, self.keyword1, self.keyword2)
        else:
            order = (self.keyword1, self.keyword2, self.keyword3)
        return next((p for p in order if p), None)


def discover_properties(schema: dict[str, dict]) -> PropertyMap:
    title = find_prop(schema, TITLE_NAMES, "title") or first_prop_of_type(schema, "title")
    if not title:
        raise SchemaMismatchError("No Title property found in DB", list(schema.keys()))
    return PropertyMap(
        title=title,
        platform=find_prop(schema, PLATFORM_NAMES, "select"),
        cover=find_prop(schema, COVER_NAMES, "files") or first_prop_of_type(schema, "files"),
        author=find_prop(schema, AUTHOR_NAMES, "rich_text"),
        publisher=find_prop(schema, PUBLISHER_NAMES, "rich_text"),
        genre=find_prop(schema, GENRE_NAMES, "select"),
        keyword1=find_prop(schema, KEYWORD1_NAMES, "multi_select"),
        keyword2=find_prop(schema, KEYWORD2_NAMES, "multi_select"),
        keyword3=find_prop(schema, KEYWORD3_NAMES, "multi_select"),
        url=find_prop(schema, URL_NAMES, "url") or first_prop_of_type(schema, "url"),
        guide=find_prop(schema, GUIDE_NAMES, "rich_text"),
        desc=find_prop(schema, DESC_NAMES, "rich_text"),
    )


# --- [레코드 매핑] ---
@dataclass
class MappedRecord:
    properties: dict[str, Any]
    cover_url: str = ""
    title: str = ""
    url: str = ""
    source_platform: str = ""
    platform_value: str = ""
    genre_value: str = ""
    keyword_prop: str | None = None
    keyword_values: list[str] = field(default_factory=list)
    dropped: dict[str, list[str]] = field(default_factory=dict)
    is_adult: bool = False
    adult_marker_applied: bool = False

    def report(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "sourcePlatform": self.source_platform,
            "platformValue": self.platform_value,
            "genreValue": self.genre_value,
            "keywordPropUsed": self.keyword_prop,
            "keywordValues": list(self.keyword_values),
            "droppedOptions": {k: list(v) for k, v in self.dropped.items()},
            "isAdult": self.is_adult,
            "adultMarkerApplied": self.adult_marker_applied,
        }


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _item_is_adult(item: dict[str, Any]) -> bool:
    return (
        to_boolean(item.get("isAdult"))
        or to_boolean(item.get("adult"))
        or to_boolean(item.get("is19"))
        or "19" in _text(item.get("ageLimit"))
    )


def _select_value(
    schema: dict[str, dict], prop: str | None, value: str, dropped: dict[str, list[str]], label: str
) -> dict | None:
    if not prop or not value:
        return None
    kept, lost = filter_to_existing_options(options_of(schema, prop), [value])
    if lost:
        dropped[label] = lost
    return {"select": {"name": kept[0]}} if kept else None


def map_record(item: dict[str, Any], schema: dict[str, dict], props: PropertyMap | None = None) -> MappedRecord:
    """
    스크레이퍼 응답 형태(camelCase)의 레코드를 Notion 속성으로 바꾼다.
    `{"data": {...}}`로 감싼 입력도 받는다.
    """
    body = item.get("data") if isinstance(item.get("data"), dict) else item
    props = props or discover_properties(schema)

    url_value = _text(body.get("url") or body.get("link"))
    title = _text(body.get("title")) or title_from_kakao_url(url_value)
    if not title:
        raise InputError("title is required")

    source_platform = infer_source_platform(url_value, _text(body.get("platform")))
    platform_value = to_notion_platform_value(source_platform)
    is_adult = _item_is_adult(body)

    if source_platform == KAKAO_WEBTOON.label:
        title = tag_adult_webtoon_title(title, is_adult)
    else:
        title = strip_platform_suffix(title, KAKAO_WEBTOON.suffix_patterns)

    cover_url = _text(body.get("coverUrl"))
    author = _text(body.get("authorName") or body.get("author"))
    publisher = clean_publisher(body.get("publisherName") or body.get("publisher"))
    genre_value = map_genre_to_allowed(body.get("genre"))
    raw_keywords = body.get("tags") or body.get("keywords") or body.get("keyword") or []
    guide = normalize_multiline_text(body.get("guide") or body.get("romanceGuide"))
    desc = normalize_multiline_text(body.get("description") or body.get("desc") or body.get("meta"))

    mapped = MappedRecord(
        properties={},
        title=title,
        url=url_value,
        source_platform=source_platform,
        platform_value=platform_value,
        genre_value=genre_value,
        is_adult=is_adult,
    )
    properties = mapped.properties
    properties[props.title] = {
        "title": [{"type": "text", "text": {"content": truncate(title, NOTION_TEXT_LIMIT)}}]
    }

    platform_prop = _select_value(schema, props.platform, platform_value, mapped.dropped, "platform")
    if platform_prop:
        properties[props.platform] = platform_prop

    if props.url and url_value:
        properties[props.url] = {"url": url_value}

    # 페이지 커버는 files 속성 유무와 관계없이 넣는다
    mapped.cover_url = cover_url
    if props.cover and cover_url:
        properties[props.cover] = {
            "files": [{"type": "external", "name": "cover", "external": {"url": cover_url}}]
        }

    for prop, value in ((props.author, author), (props.publisher, publisher),
                        (props.guide, guide), (props.desc, desc)):
        if prop and value:
            properties[prop] = {"rich_text": to_rich_text(value)}

    genre_prop = _select_value(schema, props.genre, genre_value, mapped.dropped, "genre")
    if genre_prop:
        properties[props.genre] = genre_prop

    keyword_prop = props.keyword_prop_for(genre_value)
    keywords = normalize_keywords(raw_keywords)
    if keyword_prop:
        existing = options_of(schema, keyword_prop)
        kept, lost = filter_to_existing_options(existing, keywords)
        if lost:
            mapped.dropped["keywords"] = lost
        if is_adult:
            if ADULT_KEYWORD_MARKER in existing:
                kept.append(ADULT_KEYWORD_MARKER)
                mapped.adult_marker_applied = True
            else:
                LOGGER.warning(
                    "adult marker %r skipped: not an option of %r", ADULT_KEYWORD_MARKER, keyword_prop
                )
        if kept:
            properties[keyword_prop] = {"multi_select": [{"name": k} for k in kept]}
        mapped.keyword_prop = keyword_prop
        mapped.keyword_values = kept
    elif keywords:
        mapped.dropped["keywords"] = keywords

    return mapped
