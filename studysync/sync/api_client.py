"""
하이라이트 API HTTP 클라이언트
협상(/api/negotiate), 하이라이트 저장(POST /api/highlight), 조회(GET /api/highlight/{weekId})
"""

import os
import logging
from typing import Optional

import httpx

from .errors import NegotiationError, PersistenceError
from .models import HighlightSnapshot, NegotiationInfo

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://127.0.0.1:8765/api"
DEFAULT_REQUEST_TIMEOUT = 10.0  # 초


class HighlightApiClient:
    """하이라이트 동기화용 API 클라이언트"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: API 기본 URL (없으면 STUDYSYNC_API_BASE_URL, 그것도 없으면 로컬 기본값)
            timeout: 요청 타임아웃 (초)
            transport: httpx 전송 계층 (테스트에서 MockTransport 주입용)
        """
        self.base_url = (
            base_url
            or os.environ.get("STUDYSYNC_API_BASE_URL")
            or DEFAULT_API_BASE_URL
        ).rstrip("/")
        self.timeout = float(
            timeout
            if timeout is not None
            else os.environ.get("STUDYSYNC_REQUEST_TIMEOUT") or DEFAULT_REQUEST_TIMEOUT
        )
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def negotiate(self) -> NegotiationInfo:
        """
        라이브 채널 사용 가능 여부와 연결 정보 조회

        Raises:
            NegotiationError: 네트워크 오류 또는 비정상 응답
        """
        try:
            async with self._client() as client:
                response = await client.post("/negotiate")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise NegotiationError(f"협상 실패: {e}") from e
        return NegotiationInfo.from_payload(data)

    async def post_highlight(
        self,
        week_id: str,
        question_id: Optional[str],
        relayed: bool = False,
    ) -> dict:
        """
        하이라이트 상태 저장

        Args:
            relayed: 라이브 채널로 이미 전파했으면 True (서버가 다시 중계하지 않음)

        Raises:
            PersistenceError: 저장 실패
        """
        body = {"weekId": week_id, "questionId": question_id}
        if relayed:
            body["relayed"] = True
        try:
            async with self._client() as client:
                response = await client.post("/highlight", json=body)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(f"하이라이트 저장 실패 ({week_id}): {e}") from e

    async def get_highlight(self, week_id: str) -> HighlightSnapshot:
        """
        주차의 현재 하이라이트 상태 조회 (폴링용)

        Raises:
            PersistenceError: 조회 실패
        """
        try:
            async with self._client() as client:
                response = await client.get(f"/highlight/{week_id}")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(f"하이라이트 조회 실패 ({week_id}): {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"하이라이트 조회 응답 형식 오류 ({week_id})")
        return HighlightSnapshot.from_payload(week_id, data)
