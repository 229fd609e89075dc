# run_scrape.py
"""작품 URL을 스크래핑해 JSON으로 출력하고, 원하면 Notion DB에 바로 저장하는 스크립트."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from functools import partial

from services.shelf.dispatch import scrape_any
from services.shelf.errors import ShelfError
from services.shelf.fetch import fetch_html
from services.shelf.log import setup_logging
from services.shelf.notion_api import NotionClient, save_payload
from services.shelf.settings import load_settings


def main() -> None:
    """커맨드라인 인터페이스: URL 도메인으로 플랫폼을 고르고 결과를 출력/저장한다."""
    parser = argparse.ArgumentParser(description="웹툰/웹소설 작품 정보를 추출합니다")
    parser.add_argument("url", help="카카오웹툰 / 카카오페이지 / RIDI 작품 URL")
    parser.add_argument("--save", action="store_true", help="추출 결과를 Notion DB에 저장")
    parser.add_argument("--debug", action="store_true", help="tier/viewer 진단 정보 포함")
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.debug else logging.INFO)

    try:
        settings = load_settings()
        fetch = partial(fetch_html, timeout=settings.request_timeout)
        payload = scrape_any(args.url, fetch=fetch, debug=args.debug).to_payload()
        # ensure_ascii=False -> 한글도 그대로 출력
        print(json.dumps(payload, ensure_ascii=False, indent=2))

        if args.save:
            client = NotionClient.from_settings(settings)
            record = {k: v for k, v in payload.items() if k != "debug"}
            result = save_payload(client, settings.notion_db_id, record)
            print(json.dumps(result, ensure_ascii=False, indent=2))
    except ShelfError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
