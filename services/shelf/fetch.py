# fetch.py
"""원본 페이지/이미지를 가져오는 HTTP 전송 계층."""

from __future__ import annotations

from dataclasses import dataclass

import requests
from requests.adapters import HTTPAdapter, Retry

from services.shelf.errors import UpstreamFetchError
from services.shelf.log import LOGGER
from services.shelf.settings import (
    ACCEPT_LANGUAGE,
    DEFAULT_REQUEST_TIMEOUT,
    KAKAOPAGE,
    MAX_REDIRECTS,
    USER_AGENT,
)

# 서버가 인코딩을 이렇게 선언하면 본문으로 추정한 인코딩을 대신 쓴다
UNRELIABLE_ENCODINGS = {"iso-8859-1", "latin-1", "ascii", "us-ascii"}

# --- [HTTP 세션 준비] ---
session = requests.Session()
retries = Retry(total=3, backoff_factor=0.5, status_forcelist=[429, 500, 502, 503, 504])
session.mount("https://", HTTPAdapter(max_retries=retries))
session.mount("http://", HTTPAdapter(max_retries=retries))
session.max_redirects = MAX_REDIRECTS
session.headers.update(
    {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": ACCEPT_LANGUAGE,
    }
)


@dataclass
class FetchResult:
    url: str
    final_url: str
    status: int
    html: str


def _decode_text(r: requests.Response) -> str:
    enc = (r.encoding or "").lower()
    if not enc or enc in UNRELIABLE_ENCODINGS:
        r.encoding = r.apparent_encoding or "utf-8"
    return r.text


def fetch_html(
    url: str,
    referer: str = "",
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    http: requests.Session | None = None,
) -> FetchResult:
    """
    페이지 HTML을 가져온다. 리다이렉트는 최대 6번까지 따라간다.
    네트워크 오류나 2xx가 아닌 응답은 UpstreamFetchError로 올린다.
    """
    client = http or session
    headers = {"Referer": referer} if referer else {}
    try:
        r = client.get(url, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise UpstreamFetchError(f"Failed to fetch {url}: {exc}") from exc

    if not r.ok:
        raise UpstreamFetchError(f"Upstream responded {r.status_code} for {url}", upstream_status=r.status_code)

    LOGGER.debug("fetched %s (%s, %d bytes)", r.url, r.status_code, len(r.content))
    return FetchResult(url=url, final_url=r.url or url, status=r.status_code, html=_decode_text(r))


def fetch_image(
    url: str,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    http: requests.Session | None = None,
    referer: str = KAKAOPAGE.referer,
) -> tuple[bytes, str]:
    """이미지 바이트와 content-type을 돌려준다. Referer는 기본으로 카카오페이지를 보낸다."""
    client = http or session
    try:
        r = client.get(
            url,
            headers={
                "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
                "Referer": referer,
            },
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise UpstreamFetchError(f"Failed to fetch image: {exc}") from exc
    if not r.ok:
        raise UpstreamFetchError(f"Image upstream responded {r.status_code}", upstream_status=r.status_code)
    content_type = r.headers.get("Content-Type") or "image/jpeg"
    return r.content, content_type
