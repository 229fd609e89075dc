# notion_api.py
"""Notion REST API 호출(스키마 조회, 페이지 생성)과 단건/배치 적재."""

from __future__ import annotations

import time
from typing import Any, Callable

import requests

from services.shelf.errors import DestinationWriteError, ShelfError
from services.shelf.log import LOGGER
from services.shelf.notion_mapper import discover_properties, map_record
from services.shelf.settings import (
    DEFAULT_NOTION_TIMEOUT,
    DEFAULT_NOTION_VERSION,
    NOTION_API_BASE,
    Settings,
    ensure_notion_settings,
)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _error_body(r: requests.Response) -> Any:
    try:
        return r.json()
    except ValueError:
        return r.text


class NotionClient:
    """requests 기반 최소 Notion 클라이언트. 타임아웃/429/5xx는 지수 백오프로 재시도한다."""

    def __init__(
        self,
        token: str,
        version: str = DEFAULT_NOTION_VERSION,
        timeout: float = DEFAULT_NOTION_TIMEOUT,
        http: requests.Session | None = None,
        tries: int = 3,
        base_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.token = token
        self.version = version
        self.timeout = timeout
        self.http = http or requests.Session()
        self.tries = max(1, tries)
        self.base_delay = base_delay
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "NotionClient":
        ensure_notion_settings(settings)
        return cls(
            settings.notion_token,
            version=settings.notion_version,
            timeout=settings.notion_timeout,
            **kwargs,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Notion-Version": self.version,
            "Content-Type": "application/json",
        }

    def request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{NOTION_API_BASE}{path}"
        for attempt in range(self.tries):
            last = attempt == self.tries - 1
            try:
                r = self.http.request(method, url, headers=self._headers(), json=payload, timeout=self.timeout)
            except requests.Timeout as exc:
                if last:
                    raise DestinationWriteError(f"Notion API timed out: {method} {path}") from exc
                LOGGER.info("Notion API 재시도(%s/%s): timeout", attempt + 1, self.tries - 1)
                self.sleep(self.base_delay * (2 ** attempt))
                continue
            except requests.RequestException as exc:
                raise DestinationWriteError(f"Notion API request failed: {exc}") from exc

            if r.ok:
                return r.json()
            if r.status_code in RETRYABLE_STATUS and not last:
                LOGGER.info("Notion API 재시도(%s/%s): HTTP %s", attempt + 1, self.tries - 1, r.status_code)
                self.sleep(self.base_delay * (2 ** attempt))
                continue
            raise DestinationWriteError(
                f"Notion API error: HTTP {r.status_code}",
                status=r.status_code,
                details=_error_body(r),
            )
        raise DestinationWriteError(f"Notion API gave up: {method} {path}")

    def describe_schema(self, database_id: str) -> dict[str, dict]:
        """DB 속성 정의(이름 → {type, ...옵션})를 돌려준다."""
        data = self.request("GET", f"/databases/{database_id}")
        return data.get("properties") or {}

    def create_record(
        self,
        database_id: str,
        properties: dict[str, Any],
        cover_url: str = "",
        children: list[dict] | None = None,
    ) -> dict:
        payload: dict[str, Any] = {"parent": {"database_id": database_id}, "properties": properties}
        if cover_url:
            payload["cover"] = {"type": "external", "external": {"url": cover_url}}
        if children:
            payload["children"] = children
        return self.request("POST", "/pages", payload)


# --- [적재] ---
def create_one(client: NotionClient, database_id: str, schema: dict[str, dict], item: dict[str, Any]) -> dict:
    mapped = map_record(item, schema)
    created = client.create_record(database_id, mapped.properties, cover_url=mapped.cover_url)
    LOGGER.info("Notion page created: %s (%s)", created.get("id"), mapped.title)
    return {"ok": True, "pageId": created.get("id"), **mapped.report()}


def save_payload(client: NotionClient, database_id: str, body: dict[str, Any]) -> dict:
    """
    `{items: [...]}`면 배치로, 아니면 body 자체를 한 건으로 저장한다.
    배치는 항목별 실패를 결과에 담고 계속 진행한다.
    """
    schema = client.describe_schema(database_id)
    # 제목 속성이 없으면 여기서 SchemaMismatchError
    discover_properties(schema)

    items = body.get("items")
    if isinstance(items, list) and items:
        results: list[dict] = []
        for idx, item in enumerate(items):
            try:
                if not isinstance(item, dict):
                    raise ShelfError("item must be an object")
                results.append({"index": idx, **create_one(client, database_id, schema, item)})
            except ShelfError as exc:
                LOGGER.warning("batch item %s failed: %s", idx, exc)
                results.append({"index": idx, **exc.payload()})
        ok_count = sum(1 for r in results if r.get("ok"))
        return {
            "ok": ok_count == len(results),
            "mode": "batch",
            "total": len(results),
            "okCount": ok_count,
            "failCount": len(results) - ok_count,
            "results": results,
        }

    one = create_one(client, database_id, schema, body)
    return {"mode": "single", **one}
