# text_utils.py
"""문자열 정리, 배열/불리언 변환, URL 절대화 같은 순수 함수 모음."""

from __future__ import annotations

import re
from typing import Any, Iterable

SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")
STRING_ARRAY_SPLIT_RE = re.compile(r"[,|]")
TRUE_STRINGS = {"true", "1", "y", "yes"}


def normalize_whitespace(value: Any) -> str:
    """여러 공백/탭/줄바꿈/nbsp를 한 칸 공백으로 줄이고 양끝 공백 제거."""
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


def normalize_multiline_text(value: Any) -> str:
    """CRLF를 LF로 바꾸고 3줄 이상 연속 줄바꿈은 빈 줄 하나로 줄인다."""
    if value is None:
        return ""
    text = str(value).replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def absolutize(url: Any, base_origin: str) -> str:
    """상대 URL을 플랫폼 origin 기준의 절대 URL로 바꾼다(실패 시 입력 그대로)."""
    if not url:
        return ""
    s = str(url).strip()
    if not s:
        return ""
    if s.startswith("//"):
        return f"https:{s}"
    if SCHEME_RE.match(s):
        return s
    if s.startswith("/"):
        return base_origin.rstrip("/") + s
    return s


def to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return False


def dedupe(values: Iterable[Any]) -> list[str]:
    """앞쪽 순서를 유지하면서 공백 정리된 고유 문자열만 남긴다."""
    unique: list[str] = []
    seen: set[str] = set()
    for raw in values:
        if raw is None:
            continue
        item = str(raw).strip()
        if not item or item in seen:
            continue
        seen.add(item)
        unique.append(item)
    return unique


def to_string_array(value: Any) -> list[str]:
    """리스트는 요소별로, 문자열은 콤마/파이프 기준으로 나눠 고유 문자열 리스트로 만든다."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return dedupe(str(x) for x in value if x is not None)
    if isinstance(value, str):
        return dedupe(STRING_ARRAY_SPLIT_RE.split(value))
    return []


def strip_platform_suffix(title: Any, suffix_patterns: Iterable[re.Pattern]) -> str:
    """
    제목 끝에 붙는 플랫폼 장식(`| 카카오페이지`, `- 웹툰` 등)을 정해진 순서대로 떼어낸다.
    장식이 여러 겹일 수 있으므로 더 이상 바뀌지 않을 때까지 반복한다.
    """
    patterns = tuple(suffix_patterns)
    text = normalize_whitespace(title)
    while True:
        before = text
        for pattern in patterns:
            text = pattern.sub("", text).strip()
        if text == before:
            return text


def normalize_title_key(value: Any) -> str:
    """비교용 키: 소문자로 바꾸고 공백과 문장부호를 모두 제거."""
    if not value:
        return ""
    return re.sub(r"[\W_]+", "", str(value).lower())


def truncate(value: str, limit: int) -> str:
    if limit <= 0:
        return ""
    return value if len(value) <= limit else value[:limit]
