"""
하이라이트 저장소. 서버 설정에 따라 메모리 맵 또는 JSON 파일(영속)을 사용.
HIGHLIGHT_STORE_PATH가 있으면 파일, 없으면 메모리.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class HighlightRepository(ABC):
    """주차 ID → {questionId, updatedAt}"""

    @abstractmethod
    async def get(self, week_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def put(self, week_id: str, question_id: Optional[str]) -> Dict[str, Any]:
        """저장 후 {questionId, updatedAt} 반환 (last-write-wins)"""
        pass


class InMemoryHighlightRepository(HighlightRepository):
    """프로세스 메모리 저장소 (재시작하면 사라짐)"""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}

    async def get(self, week_id: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(week_id)
        return dict(record) if record else None

    async def put(self, week_id: str, question_id: Optional[str]) -> Dict[str, Any]:
        record = {"questionId": question_id, "updatedAt": _now_iso()}
        self._records[week_id] = record
        return dict(record)


class JsonFileHighlightRepository(HighlightRepository):
    """JSON 파일 저장소. 쓰기는 임시 파일 후 교체."""

    def __init__(self, path: Union[Path, str]):
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self._records: Optional[Dict[str, Dict[str, Any]]] = None

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if self._records is not None:
            return self._records
        records: Dict[str, Dict[str, Any]] = {}
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(data, dict):
                    records = {
                        str(k): v for k, v in data.items() if isinstance(v, dict)
                    }
            except json.JSONDecodeError as e:
                logger.warning(f"하이라이트 저장 파일 파싱 실패, 빈 상태로 시작: {e}")
        self._records = records
        return records

    def _write(self, records: Dict[str, Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    async def get(self, week_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            record = self._load().get(week_id)
            return dict(record) if record else None

    async def put(self, week_id: str, question_id: Optional[str]) -> Dict[str, Any]:
        async with self._lock:
            records = self._load()
            record = {"questionId": question_id, "updatedAt": _now_iso()}
            records[week_id] = record
            self._write(records)
            return dict(record)


def create_repository(path: Optional[Union[Path, str]] = None) -> HighlightRepository:
    """설정에 맞는 저장소 생성"""
    path = path or os.environ.get("HIGHLIGHT_STORE_PATH")
    if path:
        logger.info(f"하이라이트 저장소: JSON 파일 ({path})")
        return JsonFileHighlightRepository(path)
    logger.info("하이라이트 저장소: 메모리")
    return InMemoryHighlightRepository()
