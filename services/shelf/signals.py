# signals.py
"""
신호 단계(tier)별 추출기.
구조화 데이터(JSON-LD) → 메타 태그 → (embedded_state) → 스크립트 정규식 → DOM 텍스트 휴리스틱 순으로
신뢰도가 낮아진다. 모든 추출기는 입력이 깨져 있어도 예외 대신 빈 값을 돌려준다.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable

from bs4 import BeautifulSoup, Tag

from services.shelf.embedded_state import safe_json_loads
from services.shelf.text_utils import dedupe, normalize_whitespace
from services.shelf.vocab import (
    AUTHOR_DISQUALIFYING_WORDS,
    GENRE_LAYOUT_STOPLIST,
    KOREAN_PARTICLES,
    MAX_DOM_GENRES,
)

PEOPLE_NAME_KEYS = ("name", "displayName", "authorName", "writerName")
NON_TEXT_TAGS = {"script", "style", "noscript", "template"}
ROOT_TAGS = {"html", "body", "[document]"}

LOOSE_AUTHOR_KEYS = ("author", "writer", "authorName", "writerName")
LOOSE_GENRE_KEYS = ("genre", "genres", "category", "categories")
LOOSE_STRING_VALUE = r'"((?:[^"\\]|\\.){1,200})"'

COPYRIGHT_CREDIT_RE = re.compile(r"©\s*([^/\n©]+?)\s*/")
COPYRIGHT_SPLIT_RE = re.compile(r"\s*(?:,|&|，)\s*")


def parse_html(html: str) -> BeautifulSoup:
    # BeautifulSoup은 여러 파서를 지원하지만 여기서는 'lxml'을 사용
    return BeautifulSoup(html or "", "lxml")


def page_text(soup: BeautifulSoup) -> str:
    """script/style을 뺀 본문 텍스트. 원본 줄바꿈은 그대로 남긴다."""
    root = soup.body or soup
    parts = [
        str(s)
        for s in root.find_all(string=True)
        if not (s.parent and s.parent.name in NON_TEXT_TAGS)
    ]
    return " ".join(parts)


def normalize_people(value: Any) -> str:
    """작가 값(문자열/객체/배열)을 `, `로 이은 이름 문자열로 만든다."""
    if not value:
        return ""
    if isinstance(value, str):
        return normalize_whitespace(value)
    if isinstance(value, dict):
        for key in PEOPLE_NAME_KEYS:
            v = value.get(key)
            if isinstance(v, str) and v.strip():
                return normalize_whitespace(v)
        return ""
    if isinstance(value, list):
        names = [normalize_people(x) for x in value if isinstance(x, (str, dict))]
        return ", ".join(dedupe(names))
    return ""


def to_number(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    digits = re.sub(r"[^\d.]", "", str(value))
    try:
        return float(digits)
    except ValueError:
        return None


def _first_text(value: Any) -> str:
    """문자열이면 그대로, 배열이면 첫 요소, 객체면 url/name 필드."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list) and value:
        return _first_text(value[0])
    if isinstance(value, dict):
        for key in ("url", "contentUrl", "name"):
            v = value.get(key)
            if isinstance(v, str) and v.strip():
                return v.strip()
    return ""


# --- [1단계: 구조화 데이터(JSON-LD)] ---
def iter_json_ld(soup: BeautifulSoup) -> list[dict]:
    """모든 ld+json 블록을 문서 순서대로 파싱한다(배열, @graph 포함). 파싱 실패는 건너뛴다."""
    nodes: list[dict] = []
    for script in soup.find_all("script", type="application/ld+json"):
        data = safe_json_loads(script.string or script.get_text())
        for node in data if isinstance(data, list) else [data]:
            if not isinstance(node, dict):
                continue
            nodes.append(node)
            graph = node.get("@graph")
            if isinstance(graph, list):
                nodes.extend(x for x in graph if isinstance(x, dict))
    return nodes


def extract_structured_data(soup: BeautifulSoup) -> dict[str, Any]:
    """앞선 블록에서 이미 채워진 필드는 덮어쓰지 않는다."""
    out: dict[str, Any] = {
        "title": "", "desc": "", "genre": "", "cover": "", "author": "",
        "publisher": "", "keywords": [], "rating": None,
    }
    for item in iter_json_ld(soup):
        if not out["title"]:
            out["title"] = normalize_whitespace(_first_text(item.get("name")))
        if not out["desc"]:
            out["desc"] = _first_text(item.get("description"))
        if not out["genre"]:
            out["genre"] = normalize_whitespace(_first_text(item.get("genre")))
        if not out["cover"]:
            out["cover"] = _first_text(item.get("image"))
        if not out["author"]:
            out["author"] = normalize_people(item.get("author"))
        if not out["publisher"]:
            out["publisher"] = normalize_people(item.get("publisher"))
        if not out["keywords"] and item.get("keywords"):
            keywords = item["keywords"]
            if isinstance(keywords, str):
                keywords = re.split(r"[,#]", keywords)
            if isinstance(keywords, list):
                out["keywords"] = dedupe(x for x in keywords if isinstance(x, str))
        if out["rating"] is None and isinstance(item.get("aggregateRating"), dict):
            agg = item["aggregateRating"]
            out["rating"] = to_number(agg.get("ratingValue") or agg.get("rating"))
    return out


# --- [2단계: 메타 태그] ---
def meta_content(soup: BeautifulSoup, key: str) -> str:
    """property/name 어느 쪽에 키가 있어도, 속성 순서와 무관하게 content를 읽는다."""
    for attr in ("property", "name"):
        tag = soup.find("meta", attrs={attr: key})
        if tag and tag.get("content"):
            value = normalize_whitespace(tag["content"])
            if value:
                return value
    return ""


def _first_meta(soup: BeautifulSoup, keys: Iterable[str]) -> str:
    for key in keys:
        value = meta_content(soup, key)
        if value:
            return value
    return ""


def extract_meta_tags(soup: BeautifulSoup) -> dict[str, str]:
    return {
        "title": _first_meta(soup, ("og:title", "twitter:title")),
        "desc": _first_meta(soup, ("og:description", "description")),
        "cover": _first_meta(soup, ("og:image", "og:image:secure_url", "twitter:image")),
    }


# --- [4단계: 스크립트 텍스트 정규식] ---
def _decode_js_string(raw: str) -> str:
    try:
        return json.loads(f'"{raw}"')
    except ValueError:
        return raw


def _loose_string(html: str, key: str) -> str:
    m = re.search(rf'"{re.escape(key)}"\s*:\s*{LOOSE_STRING_VALUE}', html, re.I)
    return normalize_whitespace(_decode_js_string(m.group(1))) if m else ""


def _loose_array(html: str, key: str) -> list[str]:
    m = re.search(rf'"{re.escape(key)}"\s*:\s*\[([^\[\]]{{0,2000}})\]', html, re.I)
    if not m:
        return []
    body = m.group(1)
    if "{" in body:
        raw_items = re.findall(rf'"(?:name|title|label)"\s*:\s*{LOOSE_STRING_VALUE}', body)
    else:
        raw_items = re.findall(LOOSE_STRING_VALUE, body)
    return dedupe(normalize_whitespace(_decode_js_string(x)) for x in raw_items)


def extract_loose_author(html: str) -> str:
    """파싱 없이 원본 HTML에서 `"author":"..."` / `"author":[...]` 형태를 찾는다."""
    if not html:
        return ""
    for key in LOOSE_AUTHOR_KEYS:
        value = _loose_string(html, key) or ", ".join(_loose_array(html, key))
        if value:
            return value
    return ""


def extract_loose_genres(html: str) -> list[str]:
    if not html:
        return []
    for key in LOOSE_GENRE_KEYS:
        values = _loose_array(html, key)
        if not values:
            single = _loose_string(html, key)
            values = [single] if single else []
        if values:
            return values
    return []


# --- [5단계: DOM 텍스트 휴리스틱] ---
def extract_author_from_title_line(
    text: str,
    title: str,
    disqualifying: Iterable[str] = AUTHOR_DISQUALIFYING_WORDS,
) -> str:
    """
    제목을 포함하는 가장 짧은 줄에서 제목 뒤에 붙은 부분을 작가명 후보로 쓴다.
    예: "학원 베이비시터즈 HARI TOKEINO" → "HARI TOKEINO"
    """
    t = normalize_whitespace(title)
    if not t or not text:
        return ""
    lines = [normalize_whitespace(line) for line in text.split("\n")]
    candidates = sorted((line for line in lines if t in line), key=len)
    if not candidates:
        return ""

    line = candidates[0]
    after = normalize_whitespace(line[line.index(t) + len(t):])
    # 비어 있거나 상태/분류 라벨이면 제외
    if not after:
        return ""
    if any(word in after for word in disqualifying):
        return ""
    return after[:80]


def extract_genre_from_text(
    text: str,
    category_label: str,
    stoplist: Iterable[str] = GENRE_LAYOUT_STOPLIST,
) -> list[str]:
    """`웹툰 로맨스 판타지`처럼 분류 라벨 뒤에 붙는 1~3개의 짧은 토큰을 장르로 본다."""
    flat = normalize_whitespace(text)
    if not flat or not category_label:
        return []
    m = re.search(rf"{re.escape(category_label)}\s*([가-힣A-Za-z·\s]{{2,30}})", flat)
    if not m:
        return []
    blocked = set(stoplist) | KOREAN_PARTICLES
    tokens = [x for x in normalize_whitespace(m.group(1)).split(" ") if x and x not in blocked]
    return dedupe(tokens[:MAX_DOM_GENRES])


# --- [최후 수단: 소개글의 저작권 표기] ---
def extract_copyright_credit(desc: str) -> str:
    """소개글의 `© 작가A, 작가B / 출판사` 표기에서 작가 후보를 꺼낸다."""
    if not desc:
        return ""
    m = COPYRIGHT_CREDIT_RE.search(desc)
    if not m:
        return ""
    credit = re.sub(r"^\d{4}\s*", "", m.group(1).strip())
    return ", ".join(dedupe(COPYRIGHT_SPLIT_RE.split(credit)))


# --- [DOM 섹션/라벨] ---
def _clean_section_text(value: str) -> str:
    text = normalize_whitespace(value)
    text = re.sub(r"\s*더보기\s*$", "", text)
    text = re.sub(r"\s*접기\s*$", "", text)
    return text.strip()


def _find_heading(soup: BeautifulSoup, candidates: list[str], max_len: int) -> Tag | None:
    root = soup.body or soup
    for el in root.find_all(True):
        if el.name in NON_TEXT_TAGS:
            continue
        t = normalize_whitespace(el.get_text(" "))
        if not t or len(t) > max_len:
            continue
        if any(t == h or h in t for h in candidates):
            return el
    return None


def extract_section_by_heading(soup: BeautifulSoup, headings: Iterable[str], min_len: int = 80) -> str:
    """
    "작품 소개" 같은 제목 요소를 찾고, 그 조상 3단계와 뒤따르는 형제 8개 중
    가장 긴 텍스트를 섹션 본문으로 쓴다. min_len보다 짧으면 빈 문자열.
    """
    candidates = [normalize_whitespace(h) for h in headings]
    heading = _find_heading(soup, candidates, max_len=30)
    if heading is None:
        return ""

    scopes: list[Tag] = []
    node = heading
    for _ in range(3):
        node = node.parent
        if node is None or node.name in ROOT_TAGS:
            break
        scopes.append(node)
    sibling = heading.find_next_sibling()
    steps = 0
    while sibling is not None and steps < 8:
        scopes.append(sibling)
        sibling = sibling.find_next_sibling()
        steps += 1

    best = ""
    for scope in scopes:
        text = _clean_section_text(scope.get_text(" "))
        for h in candidates:
            text = text.replace(h, "", 1).strip()
        text = re.sub(r"^[:：\-–—]\s*", "", text)
        if len(text) > len(best):
            best = text
    if len(best) < min_len:
        return ""
    return best[:50000]


def extract_value_by_label(soup: BeautifulSoup, labels: Iterable[str], max_len: int = 80) -> str:
    """`작가 | 홍길동`처럼 라벨 옆에 붙은 값을 찾는다(다음 형제 → 부모 텍스트 순)."""
    ordered = sorted((normalize_whitespace(x) for x in labels), key=len, reverse=True)
    root = soup.body or soup
    for el in root.find_all(True):
        if el.name in NON_TEXT_TAGS:
            continue
        t = normalize_whitespace(el.get_text(" "))
        if not t or len(t) > 20:
            continue
        if not any(t == lb or lb in t for lb in ordered):
            continue

        nxt = el.find_next_sibling()
        if nxt is not None:
            value = normalize_whitespace(nxt.get_text(" "))
            if value and len(value) <= max_len:
                return value

        parent = el.parent
        if parent is not None and parent.name not in ROOT_TAGS:
            cleaned = normalize_whitespace(parent.get_text(" "))
            for lb in ordered:
                cleaned = cleaned.replace(lb, "", 1).strip()
            cleaned = re.sub(r"^[:：\-–—|]\s*", "", cleaned).strip()
            if cleaned and len(cleaned) <= max_len:
                return cleaned
    return ""


# --- [성인 여부] ---
def detect_adult(html: str, soup: BeautifulSoup | None, markers: Iterable[str]) -> bool:
    text = html or ""
    if soup is not None:
        text = f"{text}\n{page_text(soup)}"
    lowered = text.lower()
    return any(marker.lower() in lowered for marker in markers)
