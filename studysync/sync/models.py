"""
하이라이트 동기화 데이터 모델
전송 방식(라이브 채널, 폴링)에 관계없이 공통으로 쓰는 타입들
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class SyncMode(str, Enum):
    """세션의 전송 모드 (상태 표시용 문자열 값 그대로 사용)"""
    LIVE = "live"
    POLLING = "polling"
    LOCAL = "local"


class ConnectionState(str, Enum):
    """라이브 채널 연결 상태"""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class SyncEventType(str, Enum):
    """디스패치 루프가 처리하는 이벤트 종류"""
    HIGHLIGHT = "highlight"
    CHANNEL_RECONNECTING = "channel_reconnecting"
    CHANNEL_RECONNECTED = "channel_reconnected"
    CHANNEL_CLOSED = "channel_closed"


class HighlightPayload(BaseModel):
    """highlightChange / BroadcastHighlight / POST /api/highlight 공통 본문"""
    weekId: str = Field(min_length=1)
    questionId: Optional[str]


@dataclass
class HighlightMessage:
    """라이브 채널로 오가는 하이라이트 변경 메시지"""
    week_id: str
    question_id: Optional[str]

    @classmethod
    def from_payload(cls, data: Any) -> Optional["HighlightMessage"]:
        """
        수신 페이로드 형태 검사 후 메시지 생성

        문자열이면 JSON으로 파싱. 형태가 맞지 않으면 None.
        """
        try:
            if isinstance(data, str):
                payload = HighlightPayload.model_validate_json(data)
            else:
                payload = HighlightPayload.model_validate(data)
        except ValidationError as e:
            logger.debug(f"highlightChange payload 형식 오류 ({e.error_count()}건): {data!r}")
            return None
        return cls(week_id=payload.weekId, question_id=payload.questionId)

    def to_payload(self) -> dict:
        return {"weekId": self.week_id, "questionId": self.question_id}


@dataclass
class HighlightSnapshot:
    """서버에 저장된 주차별 하이라이트 상태 (GET /api/highlight/{weekId})"""
    week_id: str
    question_id: Optional[str]
    updated_at: Optional[str]  # ISO 8601 문자열, 저장된 적 없으면 None

    @classmethod
    def from_payload(cls, week_id: str, data: dict) -> "HighlightSnapshot":
        question_id = data.get("questionId")
        updated_at = data.get("updatedAt")
        return cls(
            week_id=data.get("weekId") or week_id,
            question_id=question_id if isinstance(question_id, str) else None,
            updated_at=updated_at if isinstance(updated_at, str) else None,
        )


@dataclass
class NegotiationInfo:
    """협상 엔드포인트 응답"""
    available: bool
    url: Optional[str] = None
    access_token: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Any) -> "NegotiationInfo":
        if not isinstance(data, dict):
            return cls(available=False)
        return cls(
            available=bool(data.get("available")),
            url=data.get("url") or None,
            access_token=data.get("accessToken") or None,
        )

    @property
    def usable(self) -> bool:
        """라이브 채널 연결 가능 여부 (available이어도 URL이 없으면 사용 불가)"""
        return self.available and bool(self.url)


@dataclass
class SyncEvent:
    """전송 계층 → 디스패치 루프로 전달되는 이벤트"""
    type: SyncEventType
    generation: int
    week_id: Optional[str] = None
    question_id: Optional[str] = None
    source: str = "live"  # "live" | "poll"
    updated_at: Optional[str] = None
    error: Optional[str] = None
    issued_at: float = field(default_factory=time.monotonic)


@dataclass
class SyncSession:
    """
    마운트된 주차 화면 하나에 대한 동기화 세션 (저장하지 않음)

    TransportSelector만 소유하며 주차가 바뀌면 새로 만든다.
    """
    week_id: str
    generation: int
    mode: SyncMode = SyncMode.LOCAL
    connection: Any = None
    last_seen_updated_at: Optional[str] = None
    reconnect_attempt: int = 0


@dataclass
class SyncStatus:
    """동기화 상태 표시기용 스냅샷"""
    mode: SyncMode = SyncMode.LOCAL
    connecting: bool = False
    connected: bool = False
    error: Optional[str] = None

    @property
    def label(self) -> str:
        """상태 배지 문구: Connecting / Live / Syncing / Local"""
        if self.connecting:
            return "Connecting"
        if self.mode == SyncMode.LIVE:
            return "Live"
        if self.mode == SyncMode.POLLING:
            return "Syncing"
        return "Local"
