"""
하이라이트 동기화 모듈
라이브 채널 → 폴링 → 로컬 순으로 전송을 골라 여러 화면의 활성 질문을 맞춘다
"""

from .models import (
    ConnectionState,
    HighlightMessage,
    HighlightPayload,
    HighlightSnapshot,
    NegotiationInfo,
    SyncEvent,
    SyncEventType,
    SyncMode,
    SyncSession,
    SyncStatus,
)
from .errors import SyncError, NegotiationError, ChannelConnectError, PersistenceError
from .api_client import HighlightApiClient
from .live_channel import LiveChannelAdapter
from .polling import PollingFallback
from .selector import TransportSelector
from .controller import HighlightSyncController

__all__ = [
    "ConnectionState",
    "HighlightMessage",
    "HighlightPayload",
    "HighlightSnapshot",
    "NegotiationInfo",
    "SyncEvent",
    "SyncEventType",
    "SyncMode",
    "SyncSession",
    "SyncStatus",
    "SyncError",
    "NegotiationError",
    "ChannelConnectError",
    "PersistenceError",
    "HighlightApiClient",
    "LiveChannelAdapter",
    "PollingFallback",
    "TransportSelector",
    "HighlightSyncController",
]
