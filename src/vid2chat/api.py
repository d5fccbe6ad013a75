"""FastAPI application exposing vid2chat over HTTP.

Routes mirror the original JSON API:
- POST /api/start-session     {videoUrl}
- POST /api/chat              {sessionId, message}
- POST /api/reset-session     {sessionId}
- POST /api/search-videos     {query}          (rate limited)
- POST /api/recommend-playlist {topic}         (rate limited)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from vid2chat import __version__
from vid2chat.config import Settings
from vid2chat.errors import InvalidInputError, RateLimitExceeded, Vid2ChatError
from vid2chat.service import Vid2ChatService, build_service

logger = logging.getLogger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StartSessionRequest(_CamelModel):
    video_url: str = Field(alias="videoUrl")


class ChatRequest(_CamelModel):
    session_id: str = Field(alias="sessionId")
    message: str


class ResetSessionRequest(_CamelModel):
    session_id: str = Field(alias="sessionId")


class SearchRequest(_CamelModel):
    query: str


class RecommendRequest(_CamelModel):
    topic: str


def client_identity(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_service(request: Request) -> Vid2ChatService:
    return request.app.state.service


router = APIRouter(prefix="/api", tags=["vid2chat"])


@router.post("/start-session")
async def start_session(request: Request, payload: StartSessionRequest) -> Dict[str, Any]:
    started = await get_service(request).start_session(payload.video_url)
    return started.to_dict()


@router.post("/chat")
async def chat(request: Request, payload: ChatRequest) -> Dict[str, Any]:
    result = await get_service(request).chat(payload.session_id, payload.message)
    return result.to_dict()


@router.post("/reset-session")
async def reset_session(request: Request, payload: ResetSessionRequest) -> Dict[str, Any]:
    await get_service(request).reset_session(payload.session_id)
    return {"message": "Session reset successfully"}


@router.post("/search-videos")
async def search_videos(request: Request, payload: SearchRequest) -> Dict[str, Any]:
    result = await get_service(request).search_media(payload.query, client_identity(request))
    return result.to_dict()


@router.post("/recommend-playlist")
async def recommend_playlist(request: Request, payload: RecommendRequest) -> Dict[str, Any]:
    result = await get_service(request).recommend(payload.topic, client_identity(request))
    return result.to_dict()


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[Vid2ChatService] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    When `service` is not given, one wired to the real OpenAI and YouTube
    collaborators is built from `settings` (or the environment) at startup.
    """
    settings = settings or (service.settings if service else Settings.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.service = service or build_service(settings)
        await app.state.service.start()
        try:
            yield
        finally:
            await app.state.service.close()

    app = FastAPI(title="vid2chat", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=settings.cors_origin_regex,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        allow_credentials=True,
    )

    @app.exception_handler(Vid2ChatError)
    async def vid2chat_error_handler(request: Request, exc: Vid2ChatError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
        else:
            logger.info("%s on %s: %s", exc.code, request.url.path, exc.message)
        headers = None
        if isinstance(exc, RateLimitExceeded):
            headers = {"Retry-After": str(exc.retry_after_seconds)}
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = InvalidInputError(
            "Request validation failed",
            details={"validation_errors": jsonable_errors(exc)},
        )
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=True)
        error = Vid2ChatError("Internal server error", status_code=500, code="INTERNAL_ERROR")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error.to_dict())

    @app.get("/")
    async def root() -> Dict[str, Any]:
        return {"message": "API is running"}

    @app.get("/health")
    async def health(request: Request) -> Dict[str, Any]:
        return {
            "status": "ok",
            "version": __version__,
            "sessions": len(get_service(request).store),
        }

    app.include_router(router)
    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
