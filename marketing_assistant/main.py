import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from sqlalchemy import text

from marketing_assistant.config import settings
from marketing_assistant.db.base import engine
from marketing_assistant.errors import (
    NotFoundError,
    OracleError,
    RateLimitError,
    StoreError,
    ToolValidationError,
)
from marketing_assistant.llm.client import LLMClient
from marketing_assistant.observability import initialize_langfuse, shutdown_langfuse
from marketing_assistant.routers import campaigns, chat, users, ws
from marketing_assistant.services.connections import ConnectionRegistry
from marketing_assistant.services.rate_limiter import NewChatLimiter, RateLimiter, TurnLimiters

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    initialize_langfuse()
    try:
        yield
    finally:
        shutdown_langfuse()


def _error_body(exc, **extra) -> dict:
    return {"success": False, "error": exc.message, "code": exc.code, **extra}


def create_app() -> FastAPI:
    app = FastAPI(
        title="Marketing Assistant API",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
    )

    app.state.oracle = LLMClient()
    app.state.limiters = TurnLimiters(messages=RateLimiter(), new_chats=NewChatLimiter())
    app.state.connections = ConnectionRegistry()

    allow_origins = sorted(set(settings.BACKEND_CORS_ORIGINS))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RateLimitError)
    async def rate_limit_error_handler(_request: Request, exc: RateLimitError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=429,
            content=_error_body(exc, retryAfter=exc.retry_after, limitType=exc.limit_type),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(_request: Request, exc: NotFoundError) -> ORJSONResponse:
        return ORJSONResponse(status_code=404, content=_error_body(exc))

    @app.exception_handler(ToolValidationError)
    async def validation_error_handler(_request: Request, exc: ToolValidationError) -> ORJSONResponse:
        return ORJSONResponse(status_code=400, content=_error_body(exc, details=exc.details))

    @app.exception_handler(StoreError)
    async def store_error_handler(_request: Request, exc: StoreError) -> ORJSONResponse:
        logger.error("Store failure reached the HTTP boundary", extra={"error": exc.message})
        return ORJSONResponse(status_code=503, content=_error_body(exc))

    @app.exception_handler(OracleError)
    async def oracle_error_handler(_request: Request, exc: OracleError) -> ORJSONResponse:
        logger.error("Oracle failure reached the HTTP boundary", extra={"error": exc.message})
        return ORJSONResponse(status_code=502, content=_error_body(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as exc:  # pragma: no cover - simple runtime check
            return {"db": f"error: {exc}"}

    app.include_router(users.router)
    app.include_router(chat.router)
    app.include_router(campaigns.router)
    app.include_router(ws.router)

    return app


app = create_app()
