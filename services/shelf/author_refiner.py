# author_refiner.py
"""
지저분한 작가 문자열에서 장르 단어/제목 반복/역할 라벨을 걸러내고
`작가 · 원작: ... · 그림: ...` 형태의 작가 줄을 다시 만든다.
장르 매핑과 키워드 정리도 여기서 한다.
"""

from __future__ import annotations

from typing import Iterable

from services.shelf.models import AuthorCandidateSet
from services.shelf.text_utils import dedupe, normalize_title_key, normalize_whitespace, to_string_array
from services.shelf.vocab import (
    ADULT_KEYWORD_EXACT,
    ADULT_KEYWORD_PARTS,
    AUTHOR_DELIMITER_RE,
    AUTHOR_SEGMENT_JOINER,
    GENRE_SUFFIX_RE,
    GENRE_WORDS,
    LEADING_ROLE_RE,
    MAX_AUTHOR_TOKEN_LEN,
    PARENTHESIZED_RE,
    ROLE_LABEL_SET,
    ROLE_SEGMENT_LABELS,
)


def strip_role_label(value: str) -> str:
    """맨 앞의 `작가:` / `Author:` 같은 라벨을 (여러 겹이면 모두) 제거한다."""
    text = normalize_whitespace(value)
    while True:
        stripped = LEADING_ROLE_RE.sub("", text).strip()
        if stripped == text:
            return text
        text = stripped


def minimal_clean(raw: str) -> str:
    """최후의 보험 값: 라벨만 떼고 공백만 정리한 원본."""
    return strip_role_label(raw or "")


def is_genre_token(token: str) -> bool:
    lowered = token.strip().lower()
    if not lowered:
        return False
    if lowered in GENRE_WORDS:
        return True
    return bool(GENRE_SUFFIX_RE.match(lowered))


def echoes_title(token: str, title_key: str) -> bool:
    """정규화했을 때 제목과 같거나, 제목에 포함되거나, 제목을 포함하면 True."""
    if not title_key:
        return False
    key = normalize_title_key(token)
    if not key:
        return False
    return key == title_key or key in title_key or title_key in key


def is_role_label(token: str) -> bool:
    return token.strip().rstrip(":：").strip().lower() in ROLE_LABEL_SET


def filter_author_candidates(raw: str, title: str) -> list[str]:
    """
    원본 작가 문자열을 안전하게 걸러 이름 후보 리스트로 만든다.
    - 괄호 구간 제거 → 라벨 제거 → 콤마/파이프/가운뎃점/슬래시로 분리
    - 장르 단어, 제목 반복, 역할 라벨 단독, 50자 초과(설명문) 토큰은 버린다.
    """
    if not raw:
        return []
    title_key = normalize_title_key(title)
    text = PARENTHESIZED_RE.sub(" ", str(raw))
    text = strip_role_label(text)

    kept: list[str] = []
    for part in AUTHOR_DELIMITER_RE.split(text):
        token = strip_role_label(part)
        if not token:
            continue
        if is_genre_token(token):
            continue
        if echoes_title(token, title_key):
            continue
        if is_role_label(token):
            continue
        if len(token) > MAX_AUTHOR_TOKEN_LEN:
            continue
        kept.append(token)
    return dedupe(kept)


def refine_base_author(raw: str, title: str, exclude: Iterable[str] = ()) -> str:
    """걸러진 후보를 `, `로 합친 기본 작가명. 역할 구간에 이미 있는 이름은 뺀다."""
    excluded = {normalize_title_key(x) for x in exclude if x}
    names = [n for n in filter_author_candidates(raw, title) if normalize_title_key(n) not in excluded]
    return ", ".join(names)


def _role_names(values: Iterable[str], title: str) -> list[str]:
    names: list[str] = []
    for value in values:
        names.extend(filter_author_candidates(value, title))
    return dedupe(names)


def build_author_line(candidates: AuthorCandidateSet) -> str:
    """
    기본 작가명과 원작/각색/그림 역할 구간을 ` · `로 이어 붙인다.
    아무 것도 남지 않으면 라벨만 뗀 원본을 돌려줘서, 원본 신호가 있었다면 빈 값이 되지 않게 한다.
    """
    role_groups = (
        ("original", _role_names(candidates.original, candidates.title)),
        ("adapter", _role_names(candidates.adapters, candidates.title)),
        ("artist", _role_names(candidates.artists, candidates.title)),
    )
    credited = [name for _, names in role_groups for name in names]

    segments: list[str] = []
    base = refine_base_author(candidates.raw, candidates.title, exclude=credited)
    if base:
        segments.append(base)
    for role, names in role_groups:
        if names:
            segments.append(f"{ROLE_SEGMENT_LABELS[role]}: {', '.join(names)}")

    if segments:
        return AUTHOR_SEGMENT_JOINER.join(segments)
    fallback = minimal_clean(candidates.raw)
    if fallback:
        return fallback
    return minimal_clean(", ".join([*candidates.original, *candidates.adapters, *candidates.artists]))


# --- [장르 매핑] ---
def map_genre_to_allowed(raw_genres) -> str:
    """대상 DB의 고정 장르 4개(로맨스/로맨스판타지/BL/판타지) 중 하나로 매핑한다."""
    arr = [g.replace(" ", "") for g in to_string_array(raw_genres)]
    joined = " ".join(arr)
    lowered = joined.lower()

    # BL 우선
    if any(g.lower() == "bl" for g in arr) or "bl" in lowered:
        return "BL"
    if "로맨스판타지" in joined or "로판" in joined or ("로맨스" in joined and "판타지" in joined):
        return "로맨스판타지"
    if "판타지" in joined:
        return "판타지"
    return "로맨스"


# --- [키워드 정리] ---
def _is_adult_token(token: str) -> bool:
    n = token.replace(" ", "").lower()
    if not n:
        return True
    if n in ADULT_KEYWORD_EXACT:
        return True
    return any(part in n for part in ADULT_KEYWORD_PARTS)


def normalize_keywords(values) -> list[str]:
    """`#` 접두어를 떼고 19/성인 토큰을 뺀 키워드 리스트."""
    cleaned: list[str] = []
    for item in to_string_array(values):
        token = normalize_whitespace(item.lstrip("#"))
        if token and not _is_adult_token(token):
            cleaned.append(token)
    return dedupe(cleaned)
