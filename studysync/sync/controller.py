"""
주차 화면 하이라이트 동기화 컨트롤러
HighlightStore와 TransportSelector를 연결: 로컬 토글은 즉시 적용 후 전파, 외부 변경은 직접 설정.
"""

import logging
from typing import Optional

from studysync.store.highlights import HighlightStore

from .models import SyncStatus
from .selector import TransportSelector

logger = logging.getLogger(__name__)


class HighlightSyncController:
    """마운트된 주차 화면 하나의 하이라이트 동기화"""

    def __init__(
        self,
        store: HighlightStore,
        selector: Optional[TransportSelector] = None,
    ):
        self.store = store
        self.selector = selector or TransportSelector()
        self.week_id: Optional[str] = None

    @property
    def status(self) -> SyncStatus:
        return self.selector.status

    @property
    def active_question_id(self) -> Optional[str]:
        if self.week_id is None:
            return None
        return self.store.get_active_question_id(self.week_id)

    def _on_remote_change(self, question_id: Optional[str]) -> None:
        if self.week_id is None:
            return
        self.store.set_active_question_direct(self.week_id, question_id)

    async def mount(self, week_id: str) -> None:
        """화면 마운트: 세션 시작"""
        self.week_id = week_id
        await self.selector.connect(week_id, self._on_remote_change)

    def toggle(self, question_id: str) -> Optional[str]:
        """
        질문 클릭. 로컬 상태는 네트워크 왕복 전에 바로 바뀐다.

        Returns:
            새 활성 질문 ID (해제됐으면 None)
        """
        if self.week_id is None:
            raise RuntimeError("mount 전에는 토글할 수 없습니다")
        new_active = self.store.set_active_question(self.week_id, question_id)
        self.selector.broadcast(self.week_id, new_active)
        return new_active

    async def change_week(self, week_id: str) -> None:
        """보는 주차 변경"""
        if self.week_id is None:
            await self.mount(week_id)
            return
        self.week_id = week_id
        await self.selector.change_week(week_id)

    async def unmount(self) -> None:
        """화면 언마운트: 세션 해체. 보내는 중인 저장 요청은 끝까지 보낸다."""
        await self.selector.disconnect()
        await self.selector.flush()
        self.week_id = None
