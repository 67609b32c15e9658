"""
studysync 로깅 설정.

- 콘솔: LOG_CONSOLE_LEVEL (기본 WARNING)
- logs/app.log: INFO 이상 전체
- logs/error.log: ERROR 이상
- logs/sync.log: 클라이언트 동기화 (선택기/라이브 채널/폴링/캐시, socketio 클라이언트)
- logs/server.log: 하이라이트 서버 (FastAPI 라우트, 허브, uvicorn)

로그 디렉터리는 인자 → STUDYSYNC_LOG_DIR → <프로젝트>/logs 순.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# 파일 이름 → 담을 logger 이름 접두사
CATEGORY_LOGS: Dict[str, Tuple[str, ...]] = {
    "sync.log": ("studysync.sync", "studysync.store", "socketio.client", "engineio.client"),
    "server.log": ("studysync.server", "uvicorn", "socketio.server", "engineio.server"),
}

NOISY_LOGGERS = ("engineio", "socketio", "httpx", "httpcore")


class _PrefixFilter(logging.Filter):
    """logger 이름 접두사가 맞는 레코드만 통과"""

    def __init__(self, *prefixes: str):
        super().__init__()
        self.prefixes = tuple(p for p in prefixes if p)

    def filter(self, record: logging.LogRecord) -> bool:
        return (record.name or "").startswith(self.prefixes)


def _level(env_name: str, default: int) -> int:
    name = (os.environ.get(env_name) or "").upper()
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default


def _default_log_dir() -> Path:
    env_dir = os.environ.get("STUDYSYNC_LOG_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(__file__).resolve().parents[2] / "logs"


def _file_handler(path: Path, level: int, fmt: logging.Formatter) -> RotatingFileHandler:
    max_mb = int(os.environ.get("LOG_MAX_MB", "10"))
    backups = int(os.environ.get("LOG_BACKUP_COUNT", "5"))
    handler = RotatingFileHandler(
        filename=str(path),
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def setup_logging(log_dir: Optional[Union[Path, str]] = None) -> Path:
    """루트 로거 핸들러를 새로 구성하고 로그 디렉터리 경로 반환"""
    log_dir = Path(log_dir) if log_dir else _default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    fmt = logging.Formatter(LOG_FORMAT)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler()
    console.setLevel(_level("LOG_CONSOLE_LEVEL", logging.WARNING))
    console.setFormatter(fmt)
    root.addHandler(console)

    root.addHandler(_file_handler(log_dir / "app.log", logging.INFO, fmt))
    root.addHandler(_file_handler(log_dir / "error.log", logging.ERROR, fmt))
    for filename, prefixes in CATEGORY_LOGS.items():
        handler = _file_handler(log_dir / filename, logging.DEBUG, fmt)
        handler.addFilter(_PrefixFilter(*prefixes))
        root.addHandler(handler)

    # socketio/engineio/httpx는 요청마다 로그가 많아 상한을 둔다
    noisy_level = _level("ENGINEIO_LOG_LEVEL", logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    return log_dir
