"""GitHub 包测试 fixtures"""

import json

import httpx
import pytest

PR_URL = "https://github.com/acme/widgets/pull/42"


class RecordingTransport(httpx.MockTransport):
    """记录所有请求的 MockTransport"""

    def __init__(self, status_code: int = 200, body: dict | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.body = body if body is not None else {}
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def pr_url() -> str:
    return PR_URL


@pytest.fixture
def transport_factory() -> type[RecordingTransport]:
    return RecordingTransport


@pytest.fixture
def merged_transport() -> RecordingTransport:
    """合并成功的 GitHub 响应"""
    return RecordingTransport(
        body={"sha": "abc123", "merged": True, "message": "Pull Request successfully merged"}
    )
