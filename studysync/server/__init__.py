"""
하이라이트 동기화 서버: 협상, 하이라이트 저장/조회, 라이브 채널 허브.

실행: python examples/sync_server_example.py
"""

from .app import create_api, create_app
from .hub import HighlightHub
from .storage import (
    HighlightRepository,
    InMemoryHighlightRepository,
    JsonFileHighlightRepository,
    create_repository,
)

__all__ = [
    "create_api",
    "create_app",
    "HighlightHub",
    "HighlightRepository",
    "InMemoryHighlightRepository",
    "JsonFileHighlightRepository",
    "create_repository",
]
