"""
동기화 전송 계층 추상 기본 클래스
라이브 채널, 폴링 등 모든 전송 방식이 구현해야 하는 인터페이스
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from .models import SyncEvent, SyncEventType

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """지수 백오프 지연 시간: min(base * 2^attempt, cap)"""
    return min(base * (2 ** attempt), cap)


class SyncTransport(ABC):
    """동기화 전송 추상 기본 클래스

    수신한 변경은 콜백으로 바로 부르지 않고 세션 이벤트 큐에 넣는다.
    큐는 TransportSelector의 디스패치 루프 하나가 순서대로 소비한다.
    """

    def __init__(
        self,
        week_id: str,
        events: asyncio.Queue,
        generation: int = 0,
    ):
        """
        Args:
            week_id: 구독할 주차 ID
            events: 세션 이벤트 큐
            generation: 세션 세대 번호 (해체된 세션의 이벤트를 버리는 데 사용)
        """
        self.week_id = week_id
        self.events = events
        self.generation = generation

    @property
    @abstractmethod
    def transport_name(self) -> str:
        """전송 방식 이름 (예: 'live', 'poll')"""
        pass

    @abstractmethod
    async def start(self):
        """전송 시작"""
        pass

    @abstractmethod
    async def stop(self):
        """전송 중지 (여러 번 호출해도 안전해야 함)"""
        pass

    def _emit(
        self,
        event_type: SyncEventType,
        question_id: Optional[str] = None,
        updated_at: Optional[str] = None,
        error: Optional[str] = None,
        issued_at: Optional[float] = None,
    ) -> SyncEvent:
        """이벤트 생성 후 큐에 넣기"""
        event = SyncEvent(
            type=event_type,
            generation=self.generation,
            week_id=self.week_id,
            question_id=question_id,
            source=self.transport_name,
            updated_at=updated_at,
            error=error,
        )
        if issued_at is not None:
            event.issued_at = issued_at
        self.events.put_nowait(event)
        return event
