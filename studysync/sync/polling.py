"""
폴링 대체 전송
라이브 채널이 없을 때 저장된 하이라이트 상태를 주기적으로 조회해 외부 변경을 감지합니다.
"""

import asyncio
import logging
import os
import time
from typing import Optional

from .api_client import HighlightApiClient
from .base_transport import SyncTransport, backoff_delay
from .errors import PersistenceError
from .models import HighlightSnapshot, SyncEventType, SyncSession

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0  # 초
DEFAULT_POLL_MAX_INTERVAL = 60.0  # 연속 실패 시 백오프 상한


class PollingFallback(SyncTransport):
    """폴링 대체 전송

    updatedAt이 마지막으로 본 값과 다를 때만 이벤트를 발행한다 (내용 비교 없음).
    조회가 연속으로 실패하면 간격을 두 배씩 늘리고 (상한 max_interval), 성공하면 원래 간격으로.
    """

    @property
    def transport_name(self) -> str:
        return "poll"

    def __init__(
        self,
        api: HighlightApiClient,
        session: SyncSession,
        events: asyncio.Queue,
        interval: Optional[float] = None,
        max_interval: Optional[float] = None,
    ):
        """
        Args:
            api: 하이라이트 API 클라이언트
            session: 이 폴러가 속한 세션 (last_seen_updated_at 갱신 대상)
            events: 세션 이벤트 큐
            interval: 폴링 간격 (초)
            max_interval: 실패 백오프 상한 (초)
        """
        super().__init__(session.week_id, events, session.generation)
        self.api = api
        self.session = session
        self.interval = float(
            interval
            if interval is not None
            else os.environ.get("STUDYSYNC_POLL_INTERVAL") or DEFAULT_POLL_INTERVAL
        )
        self.max_interval = float(
            max_interval
            if max_interval is not None
            else os.environ.get("STUDYSYNC_POLL_MAX_INTERVAL") or DEFAULT_POLL_MAX_INTERVAL
        )
        self.failures = 0
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_delay(self) -> float:
        """다음 조회까지 대기 시간"""
        if self.failures == 0:
            return self.interval
        return backoff_delay(self.failures, self.interval, max(self.interval, self.max_interval))

    async def start(self):
        """즉시 한 번 조회한 뒤 주기적 조회 태스크 시작"""
        self._stopped = False
        await self.poll_once()
        if self._stopped:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"[{self.transport_name}] 폴링 시작: {self.week_id} ({self.interval}초 간격)")

    async def stop(self):
        """폴링 중지. 진행 중인 조회 결과는 버려진다."""
        self._stopped = True
        task, self._task = self._task, None
        if task is None:
            return
        if task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info(f"[{self.transport_name}] 폴링 중지: {self.week_id}")

    async def _run(self):
        while not self._stopped:
            await asyncio.sleep(self.next_delay())
            if self._stopped:
                break
            await self.poll_once()

    async def poll_once(self) -> Optional[HighlightSnapshot]:
        """
        저장된 상태 한 번 조회

        Returns:
            조회한 스냅샷. 실패했거나 중지된 뒤 도착한 응답이면 None.
        """
        issued_at = time.monotonic()
        try:
            snapshot = await self.api.get_highlight(self.week_id)
        except PersistenceError as e:
            self.failures += 1
            logger.warning(
                f"[{self.transport_name}] 조회 실패 ({self.failures}회 연속), "
                f"{self.next_delay()}초 후 재시도: {e}"
            )
            return None

        if self._stopped or self.session.generation != self.generation:
            logger.debug(f"[{self.transport_name}] 중지된 세션의 응답 폐기: {self.week_id}")
            return None
        self.failures = 0

        if snapshot.updated_at is None:
            return snapshot
        if snapshot.updated_at == self.session.last_seen_updated_at:
            return snapshot

        self.session.last_seen_updated_at = snapshot.updated_at
        self._emit(
            SyncEventType.HIGHLIGHT,
            question_id=snapshot.question_id,
            updated_at=snapshot.updated_at,
            issued_at=issued_at,
        )
        return snapshot
