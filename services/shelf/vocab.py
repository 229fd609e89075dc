# vocab.py
"""추출/정제 규칙에서 쓰는 단어 목록. 로직을 건드리지 않고 여기만 늘리면 된다."""

import re

# --- [장르/분류 어휘] ---
# 작가 문자열에 섞여 들어오면 버리는 장르·분류 단어(소문자 비교)
GENRE_WORDS = frozenset(
    {
        "로맨스", "로맨스판타지", "로판", "판타지", "현판", "현대판타지", "무협", "무협/사극",
        "드라마", "액션", "스릴러", "공포", "호러", "코믹", "개그", "일상", "학원", "스포츠",
        "미스터리", "추리", "sf", "소년", "감성", "시대극", "사극", "라이트노벨",
        "bl", "gl", "웹툰", "웹소설", "만화", "책", "연재", "연재중", "완결", "19세", "성인",
        "drama", "romance", "fantasy", "action", "comedy", "thriller", "horror",
        "mystery", "webtoon", "novel",
    }
)
# "회귀물", "궁중로맨스", "현대판타지" 같은 장르 꼬리 패턴
GENRE_SUFFIX_RE = re.compile(r"^.{1,10}(?:물|판타지|로맨스)$")

# --- [역할 라벨] ---
ROLE_LABEL_WORDS = (
    "author", "writer", "artist", "illustrator", "illust", "original", "story", "art",
    "작가", "글", "그림", "원작", "저자", "작화", "각색", "각본", "스토리",
)
ROLE_LABEL_SET = frozenset(w.lower() for w in ROLE_LABEL_WORDS) | {"글/그림", "글·그림"}
LEADING_ROLE_RE = re.compile(
    r"^\s*(?:" + "|".join(re.escape(w) for w in ROLE_LABEL_WORDS) + r")\s*[:：]\s*",
    re.I,
)
# 출력 줄에서 역할 구간 앞에 붙는 라벨
ROLE_SEGMENT_LABELS = {"original": "원작", "adapter": "각색", "artist": "그림"}
AUTHOR_SEGMENT_JOINER = " · "

# 임베디드 상태의 역할(type/role) 값 → 작가 후보 묶음 이름
CREDIT_ROLE_MAP = {
    "author": "author", "writer": "author", "작가": "author", "저자": "author",
    "original_story": "original", "original": "original", "original_author": "original",
    "원작": "original",
    "scenario": "adapter", "adaptation": "adapter", "adapter": "adapter", "adaptor": "adapter",
    "script": "adapter", "각색": "adapter", "각본": "adapter", "글": "adapter",
    "illustrator": "artist", "artist": "artist", "painter": "artist", "art": "artist",
    "drawing": "artist", "그림": "artist", "작화": "artist",
    "publisher": "publisher", "출판사": "publisher", "label": "publisher",
}
CREDIT_NAME_KEYS = ("name", "penName", "nickname", "displayName", "authorName", "writerName")
CREDIT_ROLE_KEYS = ("type", "role", "authorType", "roleType", "job")

# 작가 후보 문자열을 나누는 구분자(콤마, 파이프, 가운뎃점, 슬래시)
AUTHOR_DELIMITER_RE = re.compile(r"\s*(?:,|，|\||·|ㆍ|/|、)\s*")
PARENTHESIZED_RE = re.compile(r"\([^()]*\)|\[[^\[\]]*\]|（[^（）]*）")
MAX_AUTHOR_TOKEN_LEN = 50

# --- [DOM 휴리스틱] ---
# 제목 줄 뒤에 이 단어가 있으면 작가명이 아니라 분류 라벨로 본다
AUTHOR_DISQUALIFYING_WORDS = ("웹툰", "웹소설", "연재")
GENRE_LAYOUT_STOPLIST = frozenset({"리스트", "구분자", "연재"})
KOREAN_PARTICLES = frozenset({"를", "을", "이", "가", "은", "는", "의", "에", "에서", "와", "과"})
MAX_DOM_GENRES = 3

# --- [성인/키워드] ---
ADULT_KEYWORD_EXACT = frozenset({"19", "19세"})
ADULT_KEYWORD_PARTS = ("19세", "미만이용불가", "성인", "청소년이용불가")
# 성인 작품일 때 키워드에 붙이는 표식. DB에 같은 옵션이 있을 때만 붙인다.
ADULT_KEYWORD_MARKER = "19"
WEBTOON_ADULT_TITLE_TAG = "[19세 완전판]"

# --- [Notion 대상 DB 고정 장르] ---
ALLOWED_GENRES = ("로맨스", "로맨스판타지", "BL", "판타지")

# --- [임베디드 상태 후보 키] ---
# 선언 순서가 곧 우선순위
STATE_TITLE_KEYS = ("seoTitle", "contentTitle", "title")
STATE_DESC_KEYS = ("synopsis", "description", "summary", "intro", "introduction", "seoDescription")
STATE_COVER_KEYS = ("thumbnailImage", "featuredCharacterImageA", "backgroundImage", "thumbnail", "coverImage", "imageUrl")
STATE_AUTHOR_KEYS = ("authors", "writers", "author", "writer", "authorName")
STATE_GENRE_KEYS = ("genres", "genre", "subGenre", "categories", "category")
STATE_KEYWORD_KEYS = ("keywords", "tags", "hashTags", "hashtags")
STATE_ADULT_KEYS = ("adult", "isAdult", "adultOnly", "is19", "isAdultContent")
