from __future__ import annotations

import json

from services.shelf.signals import (
    detect_adult,
    extract_author_from_title_line,
    extract_copyright_credit,
    extract_genre_from_text,
    extract_loose_author,
    extract_loose_genres,
    extract_meta_tags,
    extract_section_by_heading,
    extract_structured_data,
    extract_value_by_label,
    normalize_people,
    parse_html,
    to_number,
)


def _ld(data) -> str:
    return f'<script type="application/ld+json">{json.dumps(data, ensure_ascii=False)}</script>'


def test_structured_data_earlier_blocks_win() -> None:
    html = (
        "<html><head>"
        + _ld({"name": "첫 제목"})
        + '<script type="application/ld+json">{broken</script>'
        + _ld([{"name": "둘째 제목", "description": "소개", "author": [{"name": "A"}, "B"], "genre": ["드라마", "액션"]}])
        + "</head></html>"
    )
    data = extract_structured_data(parse_html(html))

    assert data["title"] == "첫 제목"
    assert data["desc"] == "소개"
    assert data["author"] == "A, B"
    assert data["genre"] == "드라마"


def test_structured_data_graph_and_rating() -> None:
    html = _ld({"@graph": [{"@type": "Book", "image": {"url": "//img/a.jpg"}, "aggregateRating": {"ratingValue": "4.5"}}]})
    data = extract_structured_data(parse_html(html))

    assert data["cover"] == "//img/a.jpg"
    assert data["rating"] == 4.5


def test_meta_tags_tolerate_attribute_order() -> None:
    html = (
        '<head><meta content="제목 | 카카오웹툰" property="og:title">'
        '<meta name="description" content="일반 설명">'
        '<meta property="og:image" content="https://img/cover.jpg"></head>'
    )
    meta = extract_meta_tags(parse_html(html))

    assert meta == {"title": "제목 | 카카오웹툰", "desc": "일반 설명", "cover": "https://img/cover.jpg"}


def test_meta_tags_decode_entities() -> None:
    meta = extract_meta_tags(parse_html('<meta property="og:title" content="Tom &amp; Jerry">'))
    assert meta["title"] == "Tom & Jerry"


def test_loose_script_regexes() -> None:
    html = '<script>self.__next_f.push({"writer":"홍길동","genre":[{"name":"드라마"},{"name":"스릴러"}]})</script>'

    assert extract_loose_author(html) == "홍길동"
    assert extract_loose_genres(html) == ["드라마", "스릴러"]
    assert extract_loose_author("") == ""
    assert extract_loose_genres('"genres":["로맨스","판타지"]') == ["로맨스", "판타지"]


def test_author_from_shortest_title_line() -> None:
    text = "메뉴\n학원 베이비시터즈 HARI TOKEINO\n학원 베이비시터즈 웹툰 연재중 더 긴 설명 문장"

    assert extract_author_from_title_line(text, "학원 베이비시터즈") == "HARI TOKEINO"
    assert extract_author_from_title_line("학원 베이비시터즈 웹툰", "학원 베이비시터즈") == ""
    assert extract_author_from_title_line(text, "") == ""


def test_genre_after_category_label() -> None:
    assert extract_genre_from_text("홈 웹툰 로맨스 판타지 | 더보기", "웹툰") == ["로맨스", "판타지"]
    assert extract_genre_from_text("웹툰 연재 리스트 드라마", "웹툰") == ["드라마"]
    assert extract_genre_from_text("웹툰 드라마 를 보다", "웹툰") == ["드라마", "보다"]
    assert extract_genre_from_text("장르 없음", "웹툰") == []


def test_copyright_credit() -> None:
    desc = "줄거리 요약.\n© 2023 홍길동, 김철수 / 카카오엔터테인먼트"

    assert extract_copyright_credit(desc) == "홍길동, 김철수"
    assert extract_copyright_credit("표기 없음") == ""


def test_section_by_heading_picks_longest_scope() -> None:
    body = "이야기 " * 40
    html = f'<body><div id="intro"><h2>작품 소개</h2><p>{body}</p></div><div><p>푸터</p></div></body>'
    soup = parse_html(html)

    assert extract_section_by_heading(soup, ["작품 소개", "소개"], 120) == body.strip()
    assert extract_section_by_heading(soup, ["작품 소개"], 1000) == ""
    assert extract_section_by_heading(soup, ["로맨스 가이드"], 10) == ""


def test_value_by_label() -> None:
    soup = parse_html("<body><dl><dt>작가</dt><dd>홍길동</dd><dt>출판사</dt><dd>리디북스</dd></dl></body>")

    assert extract_value_by_label(soup, ["작가", "작가명"]) == "홍길동"
    assert extract_value_by_label(soup, ["출판사"]) == "리디북스"
    assert extract_value_by_label(soup, ["평점"]) == ""


def test_value_by_label_falls_back_to_parent_text() -> None:
    soup = parse_html("<body><div><p><span>평점</span> 4.5점</p></div></body>")
    assert extract_value_by_label(soup, ["평점"]) == "4.5점"


def test_detect_adult_reads_html_and_text() -> None:
    soup = parse_html("<body><p>청소년 이용불가</p></body>")

    assert detect_adult("", soup, ["청소년 이용불가"]) is True
    assert detect_adult("<p>전체 이용가</p>", None, ["19세", "성인"]) is False


def test_people_and_numbers() -> None:
    assert normalize_people([{"displayName": "A"}, "B", {"name": "A"}]) == "A, B"
    assert normalize_people({"writerName": " 작가 "}) == "작가"
    assert normalize_people(7) == ""
    assert to_number("평점 4.5") == 4.5
    assert to_number("없음") is None
    assert to_number(True) is None
