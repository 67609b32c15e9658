"""테스트 공용 가짜 객체: 하이라이트 API(httpx MockTransport), Socket.IO 클라이언트"""

import json
from typing import Optional

import httpx
import pytest

from studysync.sync import HighlightApiClient

WEEK = "2025-01-28"
OTHER_WEEK = "2025-02-04"


class FakeHighlightApi:
    """/api/negotiate, /api/highlight 흉내"""

    def __init__(self, negotiate: Optional[dict] = None):
        self.negotiate_payload = negotiate or {"available": False}
        self.negotiate_status = 200
        self.current = {"questionId": None, "updatedAt": None}
        self.posts = []
        self.requests = []
        self.fail_get = False
        self.fail_post = False
        self.get_gate = None  # asyncio.Event: 설정되면 GET이 그때까지 대기
        self._writes = 0

    @property
    def current(self):
        return self._current

    @current.setter
    def current(self, value):
        """모든 주차의 저장 상태를 이 값으로 (이전 POST 기록은 지움)"""
        self._current = value
        self.by_week = {}

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        path = request.url.path
        if path == "/api/negotiate":
            return httpx.Response(self.negotiate_status, json=self.negotiate_payload)
        if path == "/api/highlight" and request.method == "POST":
            if self.fail_post:
                return httpx.Response(500, json={"error": "Internal server error"})
            body = json.loads(request.content)
            self.posts.append(body)
            self._writes += 1
            self.by_week[body["weekId"]] = {
                "questionId": body["questionId"],
                "updatedAt": f"W{self._writes}",
            }
            return httpx.Response(200, json={
                "success": True,
                "weekId": body["weekId"],
                "questionId": body["questionId"],
                "signalRBroadcast": False,
            })
        if path.startswith("/api/highlight/"):
            if self.get_gate is not None:
                await self.get_gate.wait()
            if self.fail_get:
                return httpx.Response(500, json={"error": "Internal server error"})
            week_id = path.rsplit("/", 1)[-1]
            state = self.by_week.get(week_id, self._current)
            return httpx.Response(200, json={"weekId": week_id, **state})
        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> HighlightApiClient:
        return HighlightApiClient(
            base_url="http://testserver/api",
            timeout=5.0,
            transport=httpx.MockTransport(self.handler),
        )


class FakeSocketClient:
    """socketio.AsyncClient 대역"""

    def __init__(self, fail: bool = False, **kwargs):
        self.fail = fail
        self.options = kwargs
        self.handlers = {}
        self.emitted = []
        self.connected = False
        self.connect_args = None

    def on(self, event, handler):
        self.handlers[event] = handler

    async def connect(self, url, auth=None, transports=None):
        self.connect_args = (url, auth, transports)
        if self.fail:
            raise ConnectionError("connection refused")
        self.connected = True

    async def disconnect(self):
        self.connected = False

    async def emit(self, event, data=None):
        self.emitted.append((event, data))

    async def drop(self, reason="transport close"):
        """서버 쪽에서 연결이 끊긴 상황"""
        self.connected = False
        await self.handlers["disconnect"](reason)

    async def receive(self, event, data):
        await self.handlers[event](data)


class FakeSocketFactory:
    """outcomes: 생성 순서대로 연결 실패 여부 (모자라면 성공)"""

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.clients = []

    def __call__(self, **kwargs):
        fail = self.outcomes.pop(0) if self.outcomes else False
        client = FakeSocketClient(fail=fail, **kwargs)
        self.clients.append(client)
        return client


LIVE_NEGOTIATION = {
    "available": True,
    "url": "http://testserver",
    "accessToken": "token-123",
}


@pytest.fixture
def fake_api():
    return FakeHighlightApi()


@pytest.fixture
def live_api():
    return FakeHighlightApi(negotiate=dict(LIVE_NEGOTIATION))
