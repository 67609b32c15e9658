"""
하이라이트 동기화 서버 실행 예제

.env에 LIVE_CHANNEL_URL(예: http://127.0.0.1:8765)을 넣으면 라이브 채널 활성,
없으면 클라이언트는 폴링으로 동기화합니다.
HIGHLIGHT_STORE_PATH를 넣으면 하이라이트를 JSON 파일에 영속 저장합니다.

실행: python examples/sync_server_example.py  (프로젝트 루트에서)
"""

import sys
from pathlib import Path

# 프로젝트 루트를 path에 넣어서 'import studysync' 가능하게 함
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import os

import uvicorn
from dotenv import load_dotenv

from studysync.server import create_app
from studysync.utils import setup_logging

load_dotenv(Path(__file__).resolve().parent.parent / ".env")
LOG_DIR = setup_logging()


def main():
    port = int(os.getenv("STUDYSYNC_PORT", "8765"))
    app = create_app()
    print(f"하이라이트 서버: http://127.0.0.1:{port}/api")
    print(f"로그 저장 경로: {LOG_DIR}")
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="warning")


if __name__ == "__main__":
    main()
