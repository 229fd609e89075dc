from __future__ import annotations

import pytest

from services.shelf.settings import KAKAOPAGE, RIDI
from services.shelf.text_utils import (
    absolutize,
    dedupe,
    normalize_multiline_text,
    normalize_title_key,
    normalize_whitespace,
    strip_platform_suffix,
    to_boolean,
    to_string_array,
    truncate,
)


def test_normalize_whitespace_collapses_runs_and_nbsp() -> None:
    assert normalize_whitespace("  a \n\t b c ") == "a b c"
    assert normalize_whitespace(None) == ""


def test_normalize_multiline_text_keeps_single_blank_line() -> None:
    assert normalize_multiline_text("a\r\n\r\n\r\n\r\nb \n") == "a\n\nb"
    assert normalize_multiline_text("a\nb") == "a\nb"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("//dn-img.kakao.com/a.png", "https://dn-img.kakao.com/a.png"),
        ("/img/a.png", "https://page.kakao.com/img/a.png"),
        ("https://x.test/a.png", "https://x.test/a.png"),
        ("data:image/png;base64,AAA", "data:image/png;base64,AAA"),
        ("", ""),
        (None, ""),
    ],
)
def test_absolutize(raw, expected) -> None:
    assert absolutize(raw, "https://page.kakao.com") == expected


def test_to_boolean_accepts_common_truthy_forms() -> None:
    assert to_boolean(True) is True
    assert to_boolean("1") is True
    assert to_boolean(" Yes ") is True
    assert to_boolean("0") is False
    assert to_boolean(None) is False
    assert to_boolean(0) is False


def test_string_arrays_are_trimmed_unique_and_ordered() -> None:
    assert to_string_array("로맨스, 판타지|로맨스") == ["로맨스", "판타지"]
    assert to_string_array([" 드라마", "드라마", None, "", "액션"]) == ["드라마", "액션"]
    assert to_string_array(42) == []
    assert dedupe(["b", " a", "b", "a ", ""]) == ["b", "a"]


@pytest.mark.parametrize(
    ("title", "config", "expected"),
    [
        ("학원 베이비시터즈 - 웹툰 | 카카오페이지", KAKAOPAGE, "학원 베이비시터즈"),
        ("나 혼자만 레벨업 - 웹소설", KAKAOPAGE, "나 혼자만 레벨업"),
        ("상수리나무 아래 - 최신권 | 리디", RIDI, "상수리나무 아래"),
        ("장식 없는 제목", KAKAOPAGE, "장식 없는 제목"),
    ],
)
def test_strip_platform_suffix_is_idempotent(title, config, expected) -> None:
    once = strip_platform_suffix(title, config.suffix_patterns)
    assert once == expected
    assert strip_platform_suffix(once, config.suffix_patterns) == once


def test_title_key_and_truncate() -> None:
    assert normalize_title_key("Bar! (Season 2)") == "barseason2"
    assert truncate("abcdef", 3) == "abc"
    assert truncate("ab", 3) == "ab"
