"""
라이브 채널 Socket.IO 어댑터
주차별 그룹에 가입해 highlightChange 이벤트를 실시간으로 수신합니다.

연결 URL과 액세스 토큰은 협상 엔드포인트(/api/negotiate)에서 받습니다.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import socketio

from .base_transport import SyncTransport, backoff_delay
from .errors import ChannelConnectError
from .models import ConnectionState, HighlightMessage, SyncEventType

logger = logging.getLogger(__name__)

HIGHLIGHT_EVENT = "highlightChange"
DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_RECONNECT_DELAY = 1.0  # 초 (1s, 2s, 4s, 8s, 16s)
DEFAULT_MAX_RECONNECT_DELAY = 30.0


class LiveChannelAdapter(SyncTransport):
    """라이브 채널 어댑터

    Socket.IO 자체 재연결은 끄고 직접 관리합니다.
    재연결 한도를 넘으면 CHANNEL_CLOSED 이벤트로 폴링 전환을 알립니다.
    """

    @property
    def transport_name(self) -> str:
        return "live"

    def __init__(
        self,
        url: str,
        access_token: Optional[str],
        week_id: str,
        events: asyncio.Queue,
        generation: int = 0,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        max_reconnect_delay: float = DEFAULT_MAX_RECONNECT_DELAY,
        client_factory: Optional[Callable[..., Any]] = None,
        on_state_change: Optional[Callable[[ConnectionState], None]] = None,
    ):
        """
        Args:
            url: 협상에서 받은 연결 URL
            access_token: 협상에서 받은 액세스 토큰
            week_id: 가입할 주차 그룹
            events: 세션 이벤트 큐
            generation: 세션 세대 번호
            max_reconnect_attempts: 최대 재연결 시도 횟수
            reconnect_delay: 첫 재연결 지연 (초)
            max_reconnect_delay: 재연결 지연 상한 (초)
            client_factory: Socket.IO 클라이언트 생성 함수 (테스트용 주입)
            on_state_change: 연결 상태 변경 콜백 (상태 표시용)
        """
        super().__init__(week_id, events, generation)
        self.url = url
        self.access_token = access_token
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.client_factory = client_factory or socketio.AsyncClient
        self.on_state_change = on_state_change

        self.sio: Optional[Any] = None
        self.state = ConnectionState.CLOSED
        self.is_connected = False
        self.reconnect_attempts = 0
        self._closing = False
        self._reconnect_task: Optional[asyncio.Task] = None

    def _set_state(self, state: ConnectionState):
        if state == self.state:
            return
        self.state = state
        logger.debug(f"[{self.transport_name}] 연결 상태: {state.value}")
        if self.on_state_change:
            self.on_state_change(state)

    async def _open(self):
        """새 Socket.IO 클라이언트를 만들어 연결"""
        sio = self.client_factory(
            reconnection=False,  # 수동 재연결 관리
            logger=False,
            engineio_logger=False,
        )
        sio.on("disconnect", self._on_disconnect)
        sio.on(HIGHLIGHT_EVENT, self._on_highlight_change)

        await sio.connect(
            self.url,
            auth={"accessToken": self.access_token or ""},
            transports=["websocket"],
        )
        self.sio = sio
        self.is_connected = True

    async def start(self):
        """
        라이브 채널 연결 후 현재 주차 그룹 가입

        Raises:
            ChannelConnectError: 연결 실패
        """
        self._closing = False
        self.reconnect_attempts = 0
        self._set_state(ConnectionState.CONNECTING)
        try:
            await self._open()
        except Exception as e:
            logger.warning(f"[{self.transport_name}] 연결 실패: {e}")
            self.is_connected = False
            self._set_state(ConnectionState.CLOSED)
            raise ChannelConnectError(str(e)) from e

        logger.info(f"[{self.transport_name}] 라이브 채널 연결 성공")
        self._set_state(ConnectionState.CONNECTED)
        await self._join_group(self.week_id)

    async def stop(self):
        """라이브 채널 연결 종료"""
        self._closing = True
        task, self._reconnect_task = self._reconnect_task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        sio, self.sio = self.sio, None
        if sio is not None:
            try:
                await sio.disconnect()
            except Exception as e:
                logger.debug(f"[{self.transport_name}] 연결 종료 중 오류 무시: {e}")
            logger.info(f"[{self.transport_name}] 라이브 채널 연결 종료")
        self.is_connected = False
        self._set_state(ConnectionState.CLOSED)

    async def _on_disconnect(self, reason=None):
        """Socket.IO 연결 끊김 시 호출"""
        self.is_connected = False
        if self._closing:
            return
        logger.warning(f"[{self.transport_name}] 라이브 채널 연결 끊김: {reason}")
        if self._reconnect_task is None or self._reconnect_task.done():
            self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect())

    async def _reconnect(self):
        """재연결 시도 (지수 백오프). 한도 초과 시 CHANNEL_CLOSED 발행"""
        self._set_state(ConnectionState.RECONNECTING)
        self._emit(SyncEventType.CHANNEL_RECONNECTING)
        last_error: Optional[Exception] = None

        while self.reconnect_attempts < self.max_reconnect_attempts:
            delay = backoff_delay(
                self.reconnect_attempts, self.reconnect_delay, self.max_reconnect_delay
            )
            self.reconnect_attempts += 1
            logger.info(
                f"[{self.transport_name}] 재연결 시도 "
                f"{self.reconnect_attempts}/{self.max_reconnect_attempts} "
                f"({delay}초 후)"
            )
            await asyncio.sleep(delay)
            if self._closing:
                return
            try:
                await self._open()
            except Exception as e:
                last_error = e
                logger.warning(f"[{self.transport_name}] 재연결 실패: {e}")
                continue

            self.reconnect_attempts = 0
            logger.info(f"[{self.transport_name}] 재연결 성공")
            self._set_state(ConnectionState.CONNECTED)
            await self._join_group(self.week_id)
            self._emit(SyncEventType.CHANNEL_RECONNECTED)
            return

        logger.error(
            f"[{self.transport_name}] 최대 재연결 시도 횟수 "
            f"({self.max_reconnect_attempts}) 초과"
        )
        self.sio = None
        self._set_state(ConnectionState.CLOSED)
        self._emit(
            SyncEventType.CHANNEL_CLOSED,
            error=f"재연결 실패: {last_error}" if last_error else "재연결 실패",
        )

    async def _join_group(self, week_id: str):
        """주차 그룹 가입 (서버 미지원일 수 있으므로 실패는 무시)"""
        if not self.sio or not self.is_connected:
            return
        try:
            await self.sio.emit("JoinGroup", week_id)
            logger.debug(f"[{self.transport_name}] 그룹 가입: {week_id}")
        except Exception as e:
            logger.debug(f"[{self.transport_name}] 그룹 가입 실패 (무시): {e}")

    async def _leave_group(self, week_id: str):
        """주차 그룹 탈퇴 (실패는 무시)"""
        if not self.sio or not self.is_connected:
            return
        try:
            await self.sio.emit("LeaveGroup", week_id)
            logger.debug(f"[{self.transport_name}] 그룹 탈퇴: {week_id}")
        except Exception as e:
            logger.debug(f"[{self.transport_name}] 그룹 탈퇴 실패 (무시): {e}")

    async def switch_week(self, week_id: str, generation: int):
        """구독 주차 변경: 이전 그룹 탈퇴 후 새 그룹 가입"""
        old_week_id = self.week_id
        self.week_id = week_id
        self.generation = generation
        if old_week_id == week_id:
            return
        await self._leave_group(old_week_id)
        await self._join_group(week_id)

    async def publish(self, week_id: str, question_id: Optional[str]) -> bool:
        """
        하이라이트 변경을 채널로 전파 (BroadcastHighlight)

        Returns:
            전송 성공 여부. 실패해도 예외를 던지지 않음.
        """
        if not self.sio or not self.is_connected:
            return False
        try:
            await self.sio.emit("BroadcastHighlight", (week_id, question_id))
            return True
        except Exception as e:
            logger.warning(f"[{self.transport_name}] 하이라이트 전파 실패: {e}")
            return False

    async def _on_highlight_change(self, data):
        """
        highlightChange 수신 핸들러
        현재 주차와 weekId가 같은 메시지만 큐에 넣는다 (그룹 라우팅과 별개로 방어적 필터링)
        """
        message = HighlightMessage.from_payload(data)
        if message is None:
            logger.debug(f"[{self.transport_name}] 형식이 맞지 않는 메시지 무시: {data!r}")
            return
        if message.week_id != self.week_id:
            logger.debug(
                f"[{self.transport_name}] 다른 주차 메시지 무시: {message.week_id}"
            )
            return
        self._emit(SyncEventType.HIGHLIGHT, question_id=message.question_id)
