"""
전송 선택기
세션마다 라이브 채널 / 폴링 / 로컬 중 하나의 전송을 골라 유지하고, 장애 시 하위 모드로 전환합니다.

상태 전이: Connecting → {Live, Polling} → Disconnected, Live ⇄ Polling
- 협상 실패/불가 → Polling
- 라이브 연결 실패 → Polling
- 라이브 일시 끊김 → Live 유지 (connecting 표시), 재연결 동안 임시 폴링, 성공 시 임시 폴링 중지
- 재연결 한도 초과 → 세션이 끝날 때까지 Polling
"""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Optional

from .api_client import HighlightApiClient
from .errors import ChannelConnectError, NegotiationError, PersistenceError
from .live_channel import (
    DEFAULT_MAX_RECONNECT_ATTEMPTS,
    DEFAULT_MAX_RECONNECT_DELAY,
    DEFAULT_RECONNECT_DELAY,
    LiveChannelAdapter,
)
from .models import (
    ConnectionState,
    NegotiationInfo,
    SyncEvent,
    SyncEventType,
    SyncMode,
    SyncSession,
    SyncStatus,
)
from .polling import PollingFallback

logger = logging.getLogger(__name__)

_NO_ECHO = object()


class TransportSelector:
    """하이라이트 동기화 전송 선택기 (마운트된 화면 하나당 하나)"""

    def __init__(
        self,
        api: Optional[HighlightApiClient] = None,
        enabled: bool = True,
        poll_interval: Optional[float] = None,
        poll_max_interval: Optional[float] = None,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        max_reconnect_delay: float = DEFAULT_MAX_RECONNECT_DELAY,
        client_factory: Optional[Callable[..., Any]] = None,
        on_status_change: Optional[Callable[[SyncStatus], None]] = None,
    ):
        """
        Args:
            api: 하이라이트 API 클라이언트 (없으면 환경 변수 설정으로 생성)
            enabled: False면 네트워크 없이 로컬 모드
            poll_interval: 폴링 간격 (초)
            poll_max_interval: 폴링 실패 백오프 상한 (초)
            max_reconnect_attempts: 라이브 채널 최대 재연결 횟수
            reconnect_delay: 첫 재연결 지연 (초)
            max_reconnect_delay: 재연결 지연 상한 (초)
            client_factory: Socket.IO 클라이언트 생성 함수 (테스트용 주입)
            on_status_change: 상태 변경 콜백 (상태 표시기용, 동기 함수)
        """
        self.api = api or HighlightApiClient()
        self.enabled = enabled
        self.poll_interval = poll_interval
        self.poll_max_interval = poll_max_interval
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.client_factory = client_factory
        self.on_status_change = on_status_change

        self.session: Optional[SyncSession] = None
        self.status = SyncStatus()
        self._on_highlight_change: Optional[Callable[[Optional[str]], Any]] = None
        self._generation = 0
        self._events: Optional[asyncio.Queue] = None
        self._dispatch_task: Optional[asyncio.Task] = None
        self._channel: Optional[LiveChannelAdapter] = None
        self._poller: Optional[PollingFallback] = None
        self._broadcast_tasks: set[asyncio.Task] = set()
        # 마지막으로 적용한 변경의 발생 시각 (time.monotonic). 이보다 먼저 발생한 결과는 폐기
        self._last_applied_at = float("-inf")
        # 이 클라이언트가 마지막으로 전파한 값. 서버에서 되돌아온 같은 값은 콜백 없이 흡수
        self._pending_echo: Any = _NO_ECHO

    @property
    def mode(self) -> SyncMode:
        return self.session.mode if self.session else SyncMode.LOCAL

    @property
    def poller(self) -> Optional[PollingFallback]:
        return self._poller

    @property
    def channel(self) -> Optional[LiveChannelAdapter]:
        return self._channel

    def _update_status(self, **changes):
        self.status = replace(self.status, **changes)
        if self.on_status_change:
            self.on_status_change(self.status)

    def _set_mode(self, mode: SyncMode, **changes):
        if self.session is not None:
            self.session.mode = mode
        self._update_status(mode=mode, **changes)

    def _is_current(self, session: SyncSession) -> bool:
        return self.session is session

    async def connect(
        self,
        week_id: str,
        on_highlight_change: Callable[[Optional[str]], Any],
    ):
        """
        세션 시작: 협상 → 라이브 연결 시도 → 실패 시 폴링

        Args:
            week_id: 주차 ID (빈 문자열 불가)
            on_highlight_change: 외부 변경 수신 시 호출 (동기/비동기 함수 모두 가능)

        Raises:
            ValueError: week_id가 비어 있는 경우
        """
        if not week_id:
            raise ValueError("week_id가 필요합니다")

        await self.disconnect()

        self._on_highlight_change = on_highlight_change
        self._generation += 1
        session = SyncSession(week_id=week_id, generation=self._generation)
        self.session = session
        self._last_applied_at = float("-inf")
        self._pending_echo = _NO_ECHO
        self._events = asyncio.Queue()
        self._dispatch_task = asyncio.get_running_loop().create_task(
            self._dispatch_loop(self._events)
        )

        if not self.enabled:
            self._set_mode(SyncMode.LOCAL, connecting=False, connected=False, error=None)
            logger.info(f"[sync] 동기화 비활성화, 로컬 모드: {week_id}")
            return

        self._update_status(connecting=True, error=None)
        try:
            info = await self.api.negotiate()
        except NegotiationError as e:
            logger.info(f"[sync] {e}, 폴링으로 전환")
            info = NegotiationInfo(available=False)
        if not self._is_current(session):
            return

        if not info.usable:
            logger.info(f"[sync] 라이브 채널 사용 불가, 폴링으로 전환: {week_id}")
            await self._start_polling(session)
            return

        channel = LiveChannelAdapter(
            url=info.url,
            access_token=info.access_token,
            week_id=week_id,
            events=self._events,
            generation=session.generation,
            max_reconnect_attempts=self.max_reconnect_attempts,
            reconnect_delay=self.reconnect_delay,
            max_reconnect_delay=self.max_reconnect_delay,
            client_factory=self.client_factory,
            on_state_change=self._on_channel_state,
        )
        try:
            await channel.start()
        except ChannelConnectError as e:
            if self._is_current(session):
                logger.warning(f"[sync] 라이브 채널 연결 실패, 폴링으로 전환: {e}")
                await self._start_polling(session, error=str(e))
            return
        if not self._is_current(session):
            await channel.stop()
            return

        self._channel = channel
        session.connection = channel
        session.reconnect_attempt = 0
        self._set_mode(SyncMode.LIVE, connecting=False, connected=True, error=None)
        logger.info(f"[sync] 라이브 모드: {week_id}")

    async def _start_polling(
        self,
        session: SyncSession,
        error: Optional[str] = None,
        connecting: bool = False,
        mode: SyncMode = SyncMode.POLLING,
    ):
        """
        세션용 폴러 시작 (이미 있으면 교체)

        라이브 재연결 중의 임시 폴링은 mode=LIVE로 시작해 모드를 바꾸지 않는다.
        """
        if self._poller is not None:
            await self._poller.stop()
        poller = PollingFallback(
            self.api,
            session,
            self._events,
            interval=self.poll_interval,
            max_interval=self.poll_max_interval,
        )
        self._poller = poller
        changes = {"connecting": connecting, "connected": False}
        if error is not None:
            changes["error"] = error
        self._set_mode(mode, **changes)
        await poller.start()

    def _on_channel_state(self, state: ConnectionState):
        """라이브 채널 상태 변경 (표시용 상태만 갱신, 모드 전환은 디스패치 루프에서)"""
        if self.session is not None and self._channel is not None:
            self.session.reconnect_attempt = self._channel.reconnect_attempts
        if state == ConnectionState.RECONNECTING:
            self._update_status(connecting=True, connected=False)

    def broadcast(self, week_id: str, question_id: Optional[str]) -> asyncio.Task:
        """
        로컬 하이라이트 변경 전파 (fire-and-forget)

        항상 HTTP로 저장하고, 라이브 모드면 채널로도 전파한다.
        실패는 로그만 남기고 호출자에게 올리지 않는다.

        Returns:
            백그라운드 태스크 (필요하면 await 가능, 예외를 던지지 않음)
        """
        self._last_applied_at = time.monotonic()
        if self.session is not None and self.session.week_id == week_id:
            self._pending_echo = question_id
        task = asyncio.get_running_loop().create_task(self._broadcast(week_id, question_id))
        self._broadcast_tasks.add(task)
        task.add_done_callback(self._broadcast_tasks.discard)
        return task

    async def _broadcast(self, week_id: str, question_id: Optional[str]):
        if not self.enabled:
            return
        relayed = False
        channel = self._channel
        if channel is not None and self.mode == SyncMode.LIVE:
            relayed = await channel.publish(week_id, question_id)
        try:
            await self.api.post_highlight(week_id, question_id, relayed=relayed)
        except PersistenceError as e:
            logger.warning(f"[sync] 하이라이트 저장 실패 (로컬 상태 유지): {e}")

    async def change_week(self, week_id: str):
        """
        보는 주차 변경: 이전 세션을 해체하고 새 주차로 세션을 다시 만든다

        라이브 연결은 유지한 채 그룹만 바꾸고, 그 외에는 새로 connect.
        """
        if not week_id:
            raise ValueError("week_id가 필요합니다")
        old = self.session
        if old is None:
            logger.debug("[sync] 연결된 세션 없음, 주차 변경 무시")
            return
        if old.week_id == week_id:
            return

        channel = self._channel
        if channel is None:
            await self.connect(week_id, self._on_highlight_change)
            return

        self._generation += 1
        session = SyncSession(
            week_id=week_id,
            generation=self._generation,
            mode=old.mode,
            connection=channel,
            reconnect_attempt=old.reconnect_attempt,
        )
        self.session = session
        self._last_applied_at = float("-inf")
        self._pending_echo = _NO_ECHO

        poller, self._poller = self._poller, None
        if poller is not None:
            await poller.stop()
        await channel.switch_week(week_id, session.generation)
        logger.info(f"[sync] 주차 변경: {old.week_id} → {week_id}")
        if poller is not None and self._is_current(session):
            # 재연결 중이던 임시 폴링은 새 주차로 다시 시작
            await self._start_polling(
                session, connecting=self.status.connecting, mode=session.mode
            )

    async def disconnect(self):
        """세션 해체 (여러 번 호출해도 안전, connect 전에 호출해도 안전)"""
        self._generation += 1
        session, self.session = self.session, None
        poller, self._poller = self._poller, None
        channel, self._channel = self._channel, None
        task, self._dispatch_task = self._dispatch_task, None
        self._events = None

        if poller is not None:
            await poller.stop()
        if channel is not None:
            await channel.stop()
        if task is not None and not task.done():
            task.cancel()
            if task is not asyncio.current_task():
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        if session is not None:
            logger.info(f"[sync] 세션 종료: {session.week_id}")
            self._update_status(
                mode=SyncMode.LOCAL, connecting=False, connected=False, error=None
            )

    async def flush(self):
        """보내는 중인 전파 요청이 모두 끝날 때까지 대기"""
        pending = list(self._broadcast_tasks)
        if pending:
            await asyncio.gather(*pending)

    async def wait_idle(self):
        """큐에 쌓인 이벤트가 모두 처리될 때까지 대기"""
        if self._events is not None:
            await self._events.join()

    async def _dispatch_loop(self, events: asyncio.Queue):
        """세션 이벤트를 도착 순서대로 하나씩 처리"""
        while True:
            event = await events.get()
            try:
                await self._handle_event(event)
            except Exception as e:
                logger.exception(f"[sync] 이벤트 처리 오류: {e}")
            finally:
                events.task_done()

    async def _handle_event(self, event: SyncEvent):
        session = self.session
        if session is None or event.generation != session.generation:
            logger.debug(f"[sync] 이전 세션 이벤트 폐기: {event.type.value} ({event.week_id})")
            return

        if event.type == SyncEventType.HIGHLIGHT:
            await self._apply_highlight(session, event)

        elif event.type == SyncEventType.CHANNEL_RECONNECTING:
            logger.info(f"[sync] 라이브 채널 재연결 중, 임시 폴링: {session.week_id}")
            await self._start_polling(session, connecting=True, mode=SyncMode.LIVE)

        elif event.type == SyncEventType.CHANNEL_RECONNECTED:
            poller, self._poller = self._poller, None
            if poller is not None:
                await poller.stop()
            session.reconnect_attempt = 0
            self._set_mode(SyncMode.LIVE, connecting=False, connected=True, error=None)
            logger.info(f"[sync] 라이브 모드 복귀: {session.week_id}")

        elif event.type == SyncEventType.CHANNEL_CLOSED:
            channel, self._channel = self._channel, None
            session.connection = None
            if channel is not None:
                await channel.stop()
            logger.warning(f"[sync] 라이브 채널 종료, 폴링 유지: {event.error}")
            if self._poller is None or not self._poller.running:
                await self._start_polling(session, error=event.error)
            else:
                self._set_mode(
                    SyncMode.POLLING, connecting=False, connected=False, error=event.error
                )

    async def _apply_highlight(self, session: SyncSession, event: SyncEvent):
        if event.week_id != session.week_id:
            return
        if event.issued_at < self._last_applied_at:
            logger.debug(f"[sync] 오래된 {event.source} 결과 폐기: {event.question_id}")
            return
        self._last_applied_at = event.issued_at

        if self._pending_echo is not _NO_ECHO:
            echo, self._pending_echo = self._pending_echo, _NO_ECHO
            if echo == event.question_id:
                logger.debug(f"[sync] 자신이 보낸 변경 수신, 무시: {event.question_id}")
                return

        logger.info(
            f"[sync] 외부 하이라이트 변경 ({event.source}): "
            f"{session.week_id} → {event.question_id}"
        )
        if self._on_highlight_change:
            cb = self._on_highlight_change(event.question_id)
            if asyncio.iscoroutine(cb):
                await cb
