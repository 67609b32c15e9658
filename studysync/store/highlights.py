"""
활성 토론 질문 상태 저장소
주차별로 활성 질문 하나만 유지 (단일 선택, 같은 질문을 다시 누르면 해제).
로컬 JSON 캐시에 저장해 새로고침 후에도 마지막 상태를 보여준다. 서버 상태가 오면 서버가 우선.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

Listener = Callable[[str, Optional[str]], None]


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent.parent


def default_cache_path() -> Path:
    env_path = os.environ.get("STUDYSYNC_HIGHLIGHTS_CACHE")
    if env_path:
        return Path(env_path)
    return _project_root() / "data" / "highlights.json"


class HighlightStore:
    """
    주차 ID → 활성 질문 ID (없으면 None)

    set_active_question: 로컬 클릭 (토글)
    set_active_question_direct: 동기화로 받은 값 적용 (토글 아님)
    """

    def __init__(
        self,
        cache_path: Optional[Union[Path, str]] = None,
        persist: bool = True,
    ):
        """
        Args:
            cache_path: 캐시 파일 경로 (없으면 STUDYSYNC_HIGHLIGHTS_CACHE 또는 data/highlights.json)
            persist: False면 파일에 저장하지 않음
        """
        self.persist = persist
        self.cache_path = Path(cache_path) if cache_path else default_cache_path()
        self._active: Dict[str, Optional[str]] = {}
        self._listeners: List[Listener] = []
        if self.persist:
            self._load()

    def _load(self) -> None:
        if not self.cache_path.exists():
            return
        try:
            data = json.loads(self.cache_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"하이라이트 캐시 로드 실패: {e}")
            return
        active = data.get("activeQuestionByWeek") if isinstance(data, dict) else None
        if not isinstance(active, dict):
            return
        self._active = {
            str(week_id): (question_id if isinstance(question_id, str) else None)
            for week_id, question_id in active.items()
        }

    def _save(self) -> None:
        if not self.persist:
            return
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.cache_path.with_suffix(self.cache_path.suffix + ".tmp")
            tmp.write_text(
                json.dumps({"activeQuestionByWeek": self._active}, ensure_ascii=False),
                encoding="utf-8",
            )
            os.replace(tmp, self.cache_path)
        except OSError as e:
            logger.warning(f"하이라이트 캐시 저장 실패: {e}")

    def _set(self, week_id: str, question_id: Optional[str]) -> None:
        self._active[week_id] = question_id
        self._save()
        for listener in list(self._listeners):
            listener(week_id, question_id)

    def set_active_question(self, week_id: str, question_id: str) -> Optional[str]:
        """활성 질문 토글. 이미 활성이면 해제, 아니면 이 질문으로 교체. 새 활성 값 반환."""
        current = self._active.get(week_id)
        new_active = None if current == question_id else question_id
        self._set(week_id, new_active)
        return new_active

    def set_active_question_direct(self, week_id: str, question_id: Optional[str]) -> None:
        """동기화 메시지 적용용. 같은 값이 와도 해제하지 않는다."""
        if week_id in self._active and self._active[week_id] == question_id:
            return
        self._set(week_id, question_id)

    def clear_active_question(self, week_id: str) -> None:
        self._set(week_id, None)

    def get_active_question_id(self, week_id: str) -> Optional[str]:
        return self._active.get(week_id)

    def is_active(self, week_id: str, question_id: str) -> bool:
        return self._active.get(week_id) == question_id

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """변경 리스너 등록. 해제 함수 반환."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
