"""
라이브 채널 허브 (Socket.IO 서버)
주차별 그룹(room) 가입/탈퇴와 highlightChange 중계. 협상에서 발급한 토큰으로만 연결 허용.
"""

from __future__ import annotations

import logging
import os
import secrets
import time
from typing import Dict, Optional

import socketio

from studysync.sync.models import HighlightMessage

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL = 3600  # 초 (1시간)


class HighlightHub:
    """Socket.IO 기반 하이라이트 허브"""

    def __init__(self, public_url: Optional[str] = None, token_ttl: Optional[float] = None):
        """
        Args:
            public_url: 클라이언트가 접속할 채널 URL (없으면 LIVE_CHANNEL_URL, 둘 다 없으면 라이브 채널 비활성)
            token_ttl: 액세스 토큰 유효 시간 (초)
        """
        self.public_url = public_url or os.environ.get("LIVE_CHANNEL_URL") or None
        self.token_ttl = float(
            token_ttl
            if token_ttl is not None
            else os.environ.get("LIVE_TOKEN_TTL_SEC") or DEFAULT_TOKEN_TTL
        )
        self._tokens: Dict[str, float] = {}  # 토큰 → 만료 시각

        self.sio = socketio.AsyncServer(
            async_mode="asgi",
            cors_allowed_origins="*",
            logger=False,
            engineio_logger=False,
        )
        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on("JoinGroup", self._on_join_group)
        self.sio.on("LeaveGroup", self._on_leave_group)
        self.sio.on("BroadcastHighlight", self._on_broadcast_highlight)

    @property
    def available(self) -> bool:
        return bool(self.public_url)

    def issue_token(self) -> str:
        """협상용 액세스 토큰 발급 (만료된 토큰 정리 포함)"""
        now = time.time()
        self._tokens = {t: exp for t, exp in self._tokens.items() if exp > now}
        token = secrets.token_urlsafe(32)
        self._tokens[token] = now + self.token_ttl
        return token

    def check_token(self, token: Optional[str]) -> bool:
        if not token:
            return False
        expires_at = self._tokens.get(token)
        return expires_at is not None and expires_at > time.time()

    async def _on_connect(self, sid, environ, auth=None):
        token = auth.get("accessToken") if isinstance(auth, dict) else None
        if not self.check_token(token):
            logger.warning(f"Hub: 토큰 검증 실패, 연결 거부 ({sid})")
            return False
        logger.info(f"Hub: 연결 {sid}")
        return True

    async def _on_disconnect(self, sid, reason=None):
        logger.info(f"Hub: 연결 종료 {sid} ({reason})")

    async def _on_join_group(self, sid, week_id=None):
        if not isinstance(week_id, str) or not week_id:
            return
        await self.sio.enter_room(sid, week_id)
        logger.debug(f"Hub: {sid} 그룹 가입 {week_id}")

    async def _on_leave_group(self, sid, week_id=None):
        if not isinstance(week_id, str) or not week_id:
            return
        await self.sio.leave_room(sid, week_id)
        logger.debug(f"Hub: {sid} 그룹 탈퇴 {week_id}")

    async def _on_broadcast_highlight(self, sid, week_id=None, question_id=None):
        message = HighlightMessage.from_payload({"weekId": week_id, "questionId": question_id})
        if message is None:
            logger.debug(f"Hub: 잘못된 BroadcastHighlight 무시 ({sid})")
            return
        await self.relay(message, skip_sid=sid)

    async def relay(self, message: HighlightMessage, skip_sid: Optional[str] = None):
        """주차 그룹에 highlightChange 전송 (보낸 클라이언트 제외 가능)"""
        await self.sio.emit(
            "highlightChange",
            message.to_payload(),
            room=message.week_id,
            skip_sid=skip_sid,
        )
        logger.info(f"Hub: highlightChange 중계 {message.week_id} → {message.question_id}")
