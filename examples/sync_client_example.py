"""
하이라이트 동기화 클라이언트 예제

같은 주차로 두 개를 띄우고 한쪽에서 질문 ID를 입력하면 다른 쪽에 반영됩니다.
- 질문 ID 입력: 토글 (같은 ID를 다시 입력하면 해제)
- "/week 2025-02-04": 주차 변경
- "/quit": 종료

실행: python examples/sync_client_example.py 2025-01-28  (프로젝트 루트에서, 서버 먼저 실행)
"""

import sys
from pathlib import Path

# 프로젝트 루트를 path에 넣어서 'import studysync' 가능하게 함
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncio

from dotenv import load_dotenv

from studysync.store import HighlightStore
from studysync.sync import HighlightSyncController, SyncStatus, TransportSelector
from studysync.utils import setup_logging

load_dotenv(Path(__file__).resolve().parent.parent / ".env")
LOG_DIR = setup_logging()


def on_status_change(status: SyncStatus):
    print(f"[상태] {status.label}" + (f" ({status.error})" if status.error else ""))


async def main():
    week_id = sys.argv[1] if len(sys.argv) > 1 else "2025-01-28"
    store = HighlightStore()
    store.subscribe(lambda w, q: print(f"[{w}] 활성 질문: {q}"))
    controller = HighlightSyncController(
        store, TransportSelector(on_status_change=on_status_change)
    )

    print(f"주차: {week_id}, 로그 저장 경로: {LOG_DIR}")
    await controller.mount(week_id)
    loop = asyncio.get_running_loop()
    try:
        while True:
            line = (await loop.run_in_executor(None, sys.stdin.readline)).strip()
            if not line:
                continue
            if line == "/quit":
                break
            if line.startswith("/week "):
                await controller.change_week(line.split(maxsplit=1)[1])
                print(f"주차 변경: {controller.week_id} (활성: {controller.active_question_id})")
                continue
            controller.toggle(line)
    except KeyboardInterrupt:
        pass
    finally:
        await controller.unmount()


if __name__ == "__main__":
    asyncio.run(main())
