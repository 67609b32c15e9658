"""
하이라이트 동기화 HTTP 서버. /api/negotiate, /api/highlight JSON + Socket.IO 허브.
uvicorn으로 create_app() 결과(ASGI 앱)를 실행.
"""

from __future__ import annotations

import logging
from typing import Optional

import socketio
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from studysync.server.hub import HighlightHub
from studysync.server.storage import HighlightRepository, create_repository
from studysync.sync.models import HighlightMessage, HighlightPayload

logger = logging.getLogger(__name__)


class HighlightRequest(HighlightPayload):
    """POST /api/highlight 본문. relayed: 클라이언트가 이미 채널로 중계한 경우 true"""
    relayed: bool = False


def create_api(repository: HighlightRepository, hub: HighlightHub) -> FastAPI:
    """HTTP 라우트만 있는 FastAPI 앱 (테스트에서 직접 사용)"""
    app = FastAPI(title="studysync", docs_url=None, redoc_url=None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
    )

    @app.api_route("/api/negotiate", methods=["GET", "POST"])
    async def negotiate():
        """라이브 채널 연결 정보. 설정이 없으면 available=false."""
        if not hub.available:
            logger.info("API: negotiate → 라이브 채널 미설정")
            return JSONResponse({"available": False})
        return JSONResponse({
            "available": True,
            "url": hub.public_url,
            "accessToken": hub.issue_token(),
        })

    @app.post("/api/highlight")
    async def post_highlight(request: Request):
        """하이라이트 저장. 라이브 채널이 있으면 주차 그룹에 중계 (클라이언트가 이미 중계한 경우 제외)."""
        try:
            body = await request.json()
        except ValueError:
            body = None
        try:
            req = HighlightRequest.model_validate(body)
        except ValidationError as e:
            logger.info(f"API: 잘못된 요청 본문 ({e.error_count()}건)")
            return JSONResponse(
                {
                    "error": "Invalid request body",
                    "details": "Required fields: weekId (string), questionId (string | null)",
                },
                status_code=400,
            )

        week_id, question_id = req.weekId, req.questionId
        try:
            await repository.put(week_id, question_id)
        except OSError as e:
            logger.exception("API: 하이라이트 저장 오류")
            return JSONResponse(
                {"error": "Internal server error", "details": str(e)},
                status_code=500,
            )

        if hub.available and not req.relayed:
            await hub.relay(HighlightMessage(week_id=week_id, question_id=question_id))

        logger.info(f"API: highlight {week_id} → {question_id}")
        return JSONResponse({
            "success": True,
            "weekId": week_id,
            "questionId": question_id,
            "signalRBroadcast": hub.available,
        })

    @app.get("/api/highlight/{week_id}")
    async def get_highlight(week_id: str):
        """주차의 현재 하이라이트 (폴링용). 저장된 적 없으면 questionId/updatedAt 모두 null."""
        try:
            record = await repository.get(week_id)
        except OSError as e:
            logger.exception("API: 하이라이트 조회 오류")
            return JSONResponse(
                {"error": "Internal server error", "details": str(e)},
                status_code=500,
            )
        record = record or {}
        return JSONResponse({
            "weekId": week_id,
            "questionId": record.get("questionId"),
            "updatedAt": record.get("updatedAt"),
        })

    return app


def create_app(
    repository: Optional[HighlightRepository] = None,
    hub: Optional[HighlightHub] = None,
) -> socketio.ASGIApp:
    """HTTP API와 Socket.IO 허브를 합친 ASGI 앱"""
    repository = repository or create_repository()
    hub = hub or HighlightHub()
    api = create_api(repository, hub)
    if hub.available:
        logger.info(f"라이브 채널 활성: {hub.public_url}")
    else:
        logger.info("라이브 채널 비활성 (LIVE_CHANNEL_URL 없음), 클라이언트는 폴링 사용")
    return socketio.ASGIApp(hub.sio, other_asgi_app=api)
