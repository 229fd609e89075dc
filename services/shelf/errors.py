# errors.py
"""요청 경계에서 HTTP 응답으로 바뀌는 예외들."""

from __future__ import annotations

from typing import Any


class ShelfError(RuntimeError):
    """스크래핑 또는 Notion 적재 과정에서 발생한 문제를 나타내는 기본 예외."""

    status_code = 500

    def payload(self) -> dict[str, Any]:
        return {"ok": False, "error": str(self)}


class InputError(ShelfError):
    """필수 입력(url, title 등)이 비어 있거나 잘못되었다."""

    status_code = 400


class ConfigError(ShelfError):
    """배포 환경 변수(토큰, DB ID)가 누락되었다."""

    status_code = 500


class UpstreamFetchError(ShelfError):
    """원본 페이지를 가져오지 못했거나 2xx가 아닌 응답을 받았다."""

    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status

    def payload(self) -> dict[str, Any]:
        data = super().payload()
        if self.upstream_status is not None:
            data["status"] = self.upstream_status
        return data


class SchemaMismatchError(ShelfError):
    """대상 DB에 제목(title) 속성을 찾지 못했다."""

    status_code = 500

    def __init__(self, message: str, available_properties: list[str]) -> None:
        super().__init__(message)
        self.available_properties = list(available_properties)

    def payload(self) -> dict[str, Any]:
        data = super().payload()
        data["availableProperties"] = self.available_properties
        return data


class DestinationWriteError(ShelfError):
    """Notion이 페이지 생성/조회 요청을 거절했다."""

    status_code = 502

    def __init__(self, message: str, status: int | None = None, details: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.details = details

    def payload(self) -> dict[str, Any]:
        data = super().payload()
        data["details"] = self.details
        return data
