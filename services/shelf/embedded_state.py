# embedded_state.py
"""
페이지에 박혀 있는 상태 JSON(`__NEXT_DATA__`, 클라이언트 캐시 상태)을 찾아
모든 중첩 객체를 하나의 평평한 풀(pool)로 모은 뒤 키 이름으로 값을 찾는다.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from bs4 import BeautifulSoup

from services.shelf.text_utils import dedupe, normalize_whitespace
from services.shelf.vocab import CREDIT_NAME_KEYS, CREDIT_ROLE_KEYS, CREDIT_ROLE_MAP

# 방문 노드 상한: 비정상적으로 큰 상태 JSON에서도 순회가 끝나도록
DEFAULT_NODE_BUDGET = 20000

CACHE_STATE_SCRIPT_IDS = ("__APOLLO_STATE__", "__INITIAL_STATE__", "__REDUX_STATE__")
CACHE_STATE_ASSIGN_RE = re.compile(
    r"window\.(?:__APOLLO_STATE__|__INITIAL_STATE__|__REDUX_STATE__)\s*=\s*"
)
BOOL_STRINGS = {"true": True, "1": True, "false": False, "0": False}
ARRAY_ITEM_NAME_KEYS = ("name", "title", "label")

VIEWER_ID_KEY_RE = re.compile(r"(?:episode|viewer).*id", re.I)
# 키 이름이 "대표" 회차를 가리킬수록 앞 순위
VIEWER_ID_RANKS = ("first", "opening", "default", "represent", "latest")
MIN_VIEWER_ID = 10000
VIEWER_ID_STRING_RE = re.compile(r"^\d{5,}$")


def safe_json_loads(text: str | None) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def _script_text(soup: BeautifulSoup, script_id: str) -> str:
    node = soup.find("script", id=script_id)
    if not node:
        return ""
    return node.string or node.get_text() or ""


def _assigned_object(script: str) -> Any:
    """`window.__APOLLO_STATE__ = {...};` 형태에서 객체 부분만 파싱한다."""
    m = CACHE_STATE_ASSIGN_RE.search(script)
    if not m:
        return None
    rest = script[m.end():]
    start = rest.find("{")
    end = rest.rfind("}")
    if start == -1 or end <= start:
        return None
    return safe_json_loads(rest[start : end + 1])


def locate_state_blobs(soup: BeautifulSoup) -> list[Any]:
    """렌더 데이터(`__NEXT_DATA__`)와 캐시 상태 블롭을 찾아 파싱한다. 파싱 실패는 조용히 건너뛴다."""
    trees: list[Any] = []

    next_data = safe_json_loads(_script_text(soup, "__NEXT_DATA__"))
    if next_data is not None:
        trees.append(next_data)

    cache_state = None
    for script_id in CACHE_STATE_SCRIPT_IDS:
        cache_state = safe_json_loads(_script_text(soup, script_id))
        if cache_state is not None:
            break
    if cache_state is None:
        for script in soup.find_all("script"):
            text = script.string or ""
            if "window.__" not in text:
                continue
            cache_state = _assigned_object(text)
            if cache_state is not None:
                break
    if cache_state is not None:
        trees.append(cache_state)
    return trees


def collect_objects(trees: Iterable[Any], budget: int = DEFAULT_NODE_BUDGET) -> list[dict]:
    """
    JSON 트리들을 깊이 우선(문서 순서)으로 훑어 모든 dict를 평평한 리스트로 모은다.
    재귀 대신 명시적 스택을 쓰고, 방문 노드가 budget을 넘으면 거기서 멈춘다.
    """
    pool: list[dict] = []
    stack: list[Any] = list(reversed(list(trees)))
    visited = 0
    while stack and visited < budget:
        node = stack.pop()
        if isinstance(node, dict):
            visited += 1
            pool.append(node)
            stack.extend(reversed(list(node.values())))
        elif isinstance(node, list):
            visited += 1
            stack.extend(reversed(node))
    return pool


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        return BOOL_STRINGS.get(value.strip().lower())
    return None


def _array_item_text(item: Any) -> str:
    if isinstance(item, str):
        return item.strip()
    if isinstance(item, dict):
        for key in ARRAY_ITEM_NAME_KEYS:
            v = item.get(key)
            if isinstance(v, str) and v.strip():
                return v.strip()
    return ""


@dataclass
class Credits:
    """역할(type/role) 값이 붙은 이름들을 역할별로 나눈 결과."""

    author: list[str] = field(default_factory=list)
    original: list[str] = field(default_factory=list)
    adapter: list[str] = field(default_factory=list)
    artist: list[str] = field(default_factory=list)
    publisher: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.author or self.original or self.adapter or self.artist or self.publisher)


@dataclass
class ViewerIdCandidate:
    key: str
    episode_id: str
    rank: int


class StatePool:
    """임베디드 상태 JSON의 모든 객체를 담은 풀. 키 비교는 대소문자를 무시한다."""

    def __init__(self, objects: list[dict]) -> None:
        self.objects = objects
        self._lowered = [
            {str(k).lower(): v for k, v in obj.items()} for obj in objects
        ]

    @classmethod
    def from_soup(cls, soup: BeautifulSoup, budget: int = DEFAULT_NODE_BUDGET) -> "StatePool":
        return cls(collect_objects(locate_state_blobs(soup), budget=budget))

    def __bool__(self) -> bool:
        return bool(self.objects)

    def iter_values(self, keys: Iterable[str]):
        """후보 키 선언 순서 → 풀(문서) 순서로 (키, 값)을 내보낸다."""
        for key in keys:
            lk = key.lower()
            for obj in self._lowered:
                if lk in obj:
                    yield key, obj[lk]

    def find_first_value(self, keys: Iterable[str], accept: Callable[[Any], bool] = bool) -> Any:
        for _, value in self.iter_values(keys):
            if accept(value):
                return value
        return None

    def find_first_string(self, keys: Iterable[str]) -> str:
        value = self.find_first_value(keys, lambda v: isinstance(v, str) and bool(v.strip()))
        return normalize_whitespace(value) if value else ""

    def find_first_bool(self, keys: Iterable[str]) -> bool | None:
        for _, value in self.iter_values(keys):
            parsed = _as_bool(value)
            if parsed is not None:
                return parsed
        return None

    def find_string_array(self, keys: Iterable[str]) -> list[str]:
        for _, value in self.iter_values(keys):
            if not isinstance(value, list) or not value:
                continue
            items = dedupe(_array_item_text(x) for x in value)
            if items:
                return items
        return []

    def find_number(self, keys: Iterable[str]) -> float | None:
        for _, value in self.iter_values(keys):
            if isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                return float(value)
            if isinstance(value, str):
                digits = re.sub(r"[^\d.]", "", value)
                try:
                    return float(digits)
                except ValueError:
                    continue
        return None

    def credits(self) -> Credits:
        """이름 필드와 역할 필드를 함께 가진 객체를 역할별로 분류한다."""
        buckets: dict[str, list[str]] = {
            "author": [], "original": [], "adapter": [], "artist": [], "publisher": []
        }
        name_keys = [k.lower() for k in CREDIT_NAME_KEYS]
        role_keys = [k.lower() for k in CREDIT_ROLE_KEYS]
        for obj in self._lowered:
            name = next(
                (obj[k] for k in name_keys if isinstance(obj.get(k), str) and obj[k].strip()),
                None,
            )
            if not name:
                continue
            role = next(
                (obj[k] for k in role_keys if isinstance(obj.get(k), str) and obj[k].strip()),
                None,
            )
            if not role:
                continue
            bucket = CREDIT_ROLE_MAP.get(role.strip().lower())
            if bucket:
                buckets[bucket].append(normalize_whitespace(name))
        return Credits(**{k: dedupe(v) for k, v in buckets.items()})

    def viewer_id_candidates(self) -> list[ViewerIdCandidate]:
        """
        `firstEpisodeId`, `defaultViewerId`처럼 첫 화를 가리킬 법한 키를 모두 모아
        키 이름의 "대표성" 순위(first > opening > default > represent > latest > 기타)로 정렬한다.
        """
        found: list[ViewerIdCandidate] = []
        seen: set[tuple[str, str]] = set()
        for obj in self.objects:
            for key, value in obj.items():
                key_text = str(key)
                if not VIEWER_ID_KEY_RE.search(key_text):
                    continue
                episode_id = _plausible_episode_id(value)
                if not episode_id or (key_text, episode_id) in seen:
                    continue
                seen.add((key_text, episode_id))
                found.append(ViewerIdCandidate(key_text, episode_id, _viewer_key_rank(key_text)))
        # sorted는 안정 정렬이라 같은 순위끼리는 문서 순서가 유지된다
        return sorted(found, key=lambda c: c.rank)


def _plausible_episode_id(value: Any) -> str:
    if isinstance(value, bool):
        return ""
    if isinstance(value, int) and value >= MIN_VIEWER_ID:
        return str(value)
    if isinstance(value, float) and value.is_integer() and value >= MIN_VIEWER_ID:
        return str(int(value))
    if isinstance(value, str) and VIEWER_ID_STRING_RE.match(value.strip()):
        return value.strip()
    return ""


def _viewer_key_rank(key: str) -> int:
    lowered = key.lower()
    for idx, word in enumerate(VIEWER_ID_RANKS):
        if word in lowered:
            return idx
    return len(VIEWER_ID_RANKS)
