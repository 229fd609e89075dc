from __future__ import annotations

import logging

import pytest

from services.shelf.errors import InputError, SchemaMismatchError
from services.shelf.notion_mapper import (
    clean_publisher,
    discover_properties,
    filter_to_existing_options,
    infer_source_platform,
    map_record,
    tag_adult_webtoon_title,
    title_from_kakao_url,
    to_notion_platform_value,
    to_rich_text,
)


def _options(*names: str) -> list[dict]:
    return [{"name": n} for n in names]


SCHEMA = {
    "제목": {"type": "title"},
    "플랫폼": {"type": "select", "select": {"options": _options("KAKAO", "RIDI")}},
    "표지": {"type": "files"},
    "작가명": {"type": "rich_text"},
    "출판사명": {"type": "rich_text"},
    "장르": {"type": "select", "select": {"options": _options("로맨스", "로맨스판타지", "BL", "판타지")}},
    "Keyword(1)": {"type": "multi_select", "multi_select": {"options": _options("계약결혼", "후회남", "19")}},
    "Keyword(2)": {"type": "multi_select", "multi_select": {"options": _options("오메가버스")}},
    "Keyword(3)": {"type": "multi_select", "multi_select": {"options": _options("회귀")}},
    "URL": {"type": "url"},
    "작품 소개": {"type": "rich_text"},
}


def test_filter_to_existing_options_reports_dropped() -> None:
    kept, dropped = filter_to_existing_options(["Fantasy", "Drama"], ["Fantasy", "19", "Drama"])

    assert kept == ["Fantasy", "Drama"]
    assert dropped == ["19"]


@pytest.mark.parametrize(
    ("options", "candidates", "expected"),
    [
        ([], ["a", "b"], []),
        (["b", "a"], ["a", "b", "a"], ["a", "b"]),
        (["a"], [], []),
    ],
)
def test_filter_keeps_candidate_order(options, candidates, expected) -> None:
    assert filter_to_existing_options(options, candidates)[0] == expected


def test_discover_properties_by_name_and_type() -> None:
    props = discover_properties(SCHEMA)

    assert props.title == "제목"
    assert props.platform == "플랫폼"
    assert props.cover == "표지"
    assert props.author == "작가명"
    assert props.genre == "장르"
    assert props.keyword1 == "Keyword(1)"
    assert props.url == "URL"
    assert props.desc == "작품 소개"
    assert props.guide is None
    assert props.keyword_prop_for("BL") == "Keyword(2)"
    assert props.keyword_prop_for("판타지") == "Keyword(3)"
    assert props.keyword_prop_for("로맨스") == "Keyword(1)"


def test_discover_properties_falls_back_to_any_title_property() -> None:
    assert discover_properties({"작품명": {"type": "title"}}).title == "작품명"


def test_missing_title_property_lists_available_names() -> None:
    with pytest.raises(SchemaMismatchError) as exc_info:
        discover_properties({"Name": {"type": "rich_text"}, "링크": {"type": "url"}})

    payload = exc_info.value.payload()
    assert payload["ok"] is False
    assert payload["availableProperties"] == ["Name", "링크"]


def test_map_ridi_record() -> None:
    item = {
        "platform": "RIDI",
        "title": "책제목",
        "url": "https://ridibooks.com/books/1",
        "coverUrl": "https://img.example/c.png",
        "authorName": "저자1",
        "publisherName": "출판사1",
        "genre": ["로맨스", "현대물"],
        "keywords": ["계약결혼", "#후회남", "복수"],
        "desc": "소개",
        "isAdult": True,
    }
    mapped = map_record(item, SCHEMA)
    props = mapped.properties

    assert props["제목"]["title"][0]["text"]["content"] == "책제목"
    assert props["플랫폼"] == {"select": {"name": "RIDI"}}
    assert props["장르"] == {"select": {"name": "로맨스"}}
    assert props["URL"] == {"url": "https://ridibooks.com/books/1"}
    assert props["표지"]["files"][0]["external"]["url"] == "https://img.example/c.png"
    assert props["작가명"]["rich_text"][0]["text"]["content"] == "저자1"
    assert props["Keyword(1)"] == {"multi_select": [{"name": "계약결혼"}, {"name": "후회남"}, {"name": "19"}]}

    report = mapped.report()
    assert report["keywordPropUsed"] == "Keyword(1)"
    assert report["droppedOptions"] == {"keywords": ["복수"]}
    assert report["adultMarkerApplied"] is True
    assert mapped.cover_url == "https://img.example/c.png"


def test_adult_webtoon_title_tag_applied_once(caplog) -> None:
    item = {
        "data": {
            "platform": "카카오웹툰",
            "title": "작품 [19세 완전판] | 카카오웹툰",
            "url": "https://webtoon.kakao.com/content/a/1",
            "genre": "BL",
            "keywords": ["오메가버스", "19세"],
            "isAdult": "true",
        }
    }
    with caplog.at_level(logging.WARNING, logger="webtoon-shelf"):
        mapped = map_record(item, SCHEMA)

    assert mapped.title == "작품 [19세 완전판]"
    assert mapped.properties["플랫폼"] == {"select": {"name": "KAKAO"}}
    assert mapped.keyword_prop == "Keyword(2)"
    assert mapped.keyword_values == ["오메가버스"]
    assert mapped.adult_marker_applied is False
    assert "adult marker" in caplog.text


def test_unknown_select_values_are_not_created() -> None:
    schema = {
        "Title": {"type": "title"},
        "Platform": {"type": "select", "select": {"options": _options("KAKAO")}},
        "Genre": {"type": "select", "select": {"options": []}},
    }
    mapped = map_record({"title": "책", "platform": "RIDI", "genre": "판타지", "keywords": ["회귀"]}, schema)

    assert set(mapped.properties) == {"Title"}
    assert mapped.dropped == {"platform": ["RIDI"], "genre": ["판타지"], "keywords": ["회귀"]}


def test_title_falls_back_to_kakao_slug() -> None:
    mapped = map_record({"url": "https://webtoon.kakao.com/content/solo-leveling/1"}, SCHEMA)
    assert mapped.title == "solo leveling"


def test_title_is_required() -> None:
    with pytest.raises(InputError, match="title is required"):
        map_record({"url": "https://ridibooks.com/books/1"}, SCHEMA)


def test_rich_text_chunks_long_text() -> None:
    parts = to_rich_text("a" * 4500)

    assert [len(p["text"]["content"]) for p in parts] == [2000, 2000, 500]


def test_rich_text_keeps_paragraph_breaks() -> None:
    parts = to_rich_text("첫 문단\n\n둘째 문단")
    assert [p["text"]["content"] for p in parts] == ["첫 문단\n\n", "둘째 문단"]


def test_rich_text_caps_part_count() -> None:
    assert len(to_rich_text("\n\n".join(["문단"] * 250))) == 100
    assert to_rich_text("   ") == []


@pytest.mark.parametrize(
    ("url", "platform", "expected"),
    [
        ("https://page.kakao.com/content/1", "KAKAO", "카카오페이지"),
        ("https://webtoon.kakao.com/content/a/1", "KAKAO", "카카오웹툰"),
        ("", "ridi", "RIDI"),
        ("https://ridibooks.com/books/1", "", "RIDI"),
        ("", "카카오웹툰", "카카오웹툰"),
        ("https://example.com", "", ""),
    ],
)
def test_infer_source_platform(url: str, platform: str, expected: str) -> None:
    assert infer_source_platform(url, platform) == expected


def test_platform_value_and_title_helpers() -> None:
    assert to_notion_platform_value("카카오페이지") == "KAKAO"
    assert to_notion_platform_value("RIDI") == "RIDI"
    assert title_from_kakao_url("https://webtoon.kakao.com/content/%ED%95%9C%EA%B8%80-%EC%A0%9C%EB%AA%A9/9") == "한글 제목"
    assert title_from_kakao_url("https://ridibooks.com/books/1") == ""
    assert tag_adult_webtoon_title("작품", False) == "작품"
    assert tag_adult_webtoon_title("작품 [19세 완전판]", False) == "작품"


def test_clean_publisher() -> None:
    assert clean_publisher(" 출판사 ") == "출판사"
    assert clean_publisher("AI 매칭 결과") == ""
    assert clean_publisher("<b>출판사</b>") == ""
    assert clean_publisher(None) == ""


def test_page_cover_set_without_files_property() -> None:
    schema = {"Title": {"type": "title"}}
    mapped = map_record(
        {"title": "책", "url": "https://ridibooks.com/books/1", "coverUrl": "https://img.example/x.jpg"}, schema
    )

    assert mapped.cover_url == "https://img.example/x.jpg"
    assert set(mapped.properties) == {"Title"}
