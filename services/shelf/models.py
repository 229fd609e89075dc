# models.py
"""파이프라인이 주고받는 레코드 타입."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from services.shelf.text_utils import dedupe


@dataclass
class ExtractionRecord:
    url: str
    title: str = ""
    cover_url: str = ""
    author_name: str = ""
    publisher_name: str = ""
    genre: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    desc: str = ""
    guide: str = ""
    rating: float | None = None
    is_adult: bool = False

    def mark_adult(self, *flags: Any) -> None:
        """성인 여부는 한 번 True가 되면 되돌리지 않는다."""
        self.is_adult = self.is_adult or any(bool(f) for f in flags)

    def set_genre(self, values: list[str]) -> None:
        self.genre = dedupe(values)

    def set_keywords(self, values: list[str]) -> None:
        self.keywords = dedupe(values)

    def to_payload(self, platform: str) -> dict[str, Any]:
        """API 응답(JSON) 형태로 변환한다."""
        payload: dict[str, Any] = {
            "ok": True,
            "platform": platform,
            "title": self.title,
            "coverUrl": self.cover_url,
            "authorName": self.author_name,
            "publisherName": self.publisher_name,
            "genre": list(self.genre),
            "keywords": list(self.keywords),
            "desc": self.desc,
            "isAdult": self.is_adult,
            "url": self.url,
        }
        if self.guide:
            payload["guide"] = self.guide
        if self.rating is not None:
            payload["rating"] = self.rating
        return payload


@dataclass
class AuthorCandidateSet:
    """요청마다 만들어져 author_refiner에서 한 번 소비되는 작가 후보 묶음."""

    raw: str = ""
    title: str = ""
    original: list[str] = field(default_factory=list)
    adapters: list[str] = field(default_factory=list)
    artists: list[str] = field(default_factory=list)
