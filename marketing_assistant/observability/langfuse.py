from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Iterator

from langfuse import Langfuse
from openai import OpenAI as OpenAIClient

from marketing_assistant.config import settings


logger = logging.getLogger(__name__)


class LangfuseConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class TurnTraceContext:
    """Trace attributes shared by every span recorded during one chat turn."""

    name: str
    session_id: str | None = None
    user_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)


_langfuse_client: Langfuse | None = None
_langfuse_initialized = False
_turn_context: ContextVar[TurnTraceContext | None] = ContextVar("turn_trace_context", default=None)


def langfuse_enabled() -> bool:
    return bool(settings.LANGFUSE_ENABLED)


def _langfuse_runtime_environment() -> str:
    return settings.LANGFUSE_ENVIRONMENT or settings.ENVIRONMENT


def _langfuse_host() -> str:
    return settings.LANGFUSE_BASE_URL or settings.LANGFUSE_HOST


def _validate_settings() -> None:
    if not settings.LANGFUSE_PUBLIC_KEY or not settings.LANGFUSE_SECRET_KEY:
        raise LangfuseConfigError(
            "LANGFUSE_ENABLED is true but LANGFUSE_PUBLIC_KEY/LANGFUSE_SECRET_KEY are not configured."
        )
    sample_rate = float(settings.LANGFUSE_SAMPLE_RATE)
    if not 0.0 <= sample_rate <= 1.0:
        raise LangfuseConfigError("LANGFUSE_SAMPLE_RATE must be between 0.0 and 1.0.")


def _client_kwargs() -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "public_key": settings.LANGFUSE_PUBLIC_KEY,
        "secret_key": settings.LANGFUSE_SECRET_KEY,
        "tracing_enabled": True,
        "environment": _langfuse_runtime_environment(),
        "release": settings.LANGFUSE_RELEASE,
        "sample_rate": float(settings.LANGFUSE_SAMPLE_RATE),
        "timeout": int(settings.LANGFUSE_TIMEOUT_SECONDS),
        "debug": bool(settings.LANGFUSE_DEBUG),
    }
    if settings.LANGFUSE_BASE_URL:
        kwargs["base_url"] = settings.LANGFUSE_BASE_URL
    else:
        kwargs["host"] = settings.LANGFUSE_HOST
    return kwargs


def initialize_langfuse() -> None:
    global _langfuse_client
    global _langfuse_initialized

    if _langfuse_initialized:
        return

    if not langfuse_enabled():
        if bool(settings.LANGFUSE_REQUIRED):
            raise LangfuseConfigError(
                "LANGFUSE_REQUIRED is true but LANGFUSE_ENABLED is false. "
                "Set LANGFUSE_ENABLED=true and configure Langfuse credentials."
            )
        _langfuse_initialized = True
        logger.info("Langfuse tracing disabled", extra={"environment": _langfuse_runtime_environment()})
        return

    _validate_settings()
    client = Langfuse(**_client_kwargs())
    if bool(settings.LANGFUSE_AUTH_CHECK):
        try:
            ok = bool(client.auth_check())
        except Exception as exc:  # noqa: BLE001
            raise LangfuseConfigError("Langfuse auth check failed during initialization.") from exc
        if not ok:
            raise LangfuseConfigError("Langfuse auth check returned false. Verify the project API keys.")

    _langfuse_client = client
    _langfuse_initialized = True
    logger.info(
        "Langfuse initialized",
        extra={
            "host": _langfuse_host(),
            "environment": _langfuse_runtime_environment(),
            "sample_rate": settings.LANGFUSE_SAMPLE_RATE,
        },
    )


def get_langfuse_client() -> Langfuse | None:
    initialize_langfuse()
    if not langfuse_enabled():
        return None
    if _langfuse_client is None:
        raise LangfuseConfigError("Langfuse client is not initialized.")
    return _langfuse_client


def shutdown_langfuse() -> None:
    client = get_langfuse_client()
    if client is not None:
        client.shutdown()


def get_openai_client_class() -> type[OpenAIClient]:
    """OpenAI client class to instantiate; the Langfuse drop-in records generations automatically."""
    if langfuse_enabled():
        initialize_langfuse()
        from langfuse.openai import OpenAI as LangfuseOpenAI

        return LangfuseOpenAI
    return OpenAIClient


def current_turn_context() -> TurnTraceContext | None:
    return _turn_context.get()


@contextmanager
def bind_turn_context(context: TurnTraceContext | None) -> Iterator[None]:
    token = _turn_context.set(context)
    try:
        yield
    finally:
        _turn_context.reset(token)


def _update_trace(client: Langfuse, *, fallback_name: str | None, metadata: dict[str, Any] | None) -> None:
    context = current_turn_context()
    if context is None and fallback_name is None:
        return

    merged_metadata: dict[str, Any] = dict(context.metadata) if context else {}
    merged_metadata.update(metadata or {})
    client.update_current_trace(
        name=(context.name if context else None) or fallback_name,
        session_id=context.session_id if context else None,
        user_id=context.user_id if context else None,
        metadata=merged_metadata or None,
        tags=list(dict.fromkeys(context.tags)) if context and context.tags else None,
    )


@contextmanager
def start_langfuse_span(
    *,
    name: str,
    input: Any | None = None,
    metadata: dict[str, Any] | None = None,
    trace_name: str | None = None,
) -> Iterator[Any | None]:
    client = get_langfuse_client()
    if client is None:
        yield None
        return

    with client.start_as_current_span(name=name, input=input, metadata=metadata) as span:
        _update_trace(client, fallback_name=trace_name, metadata=metadata)
        try:
            yield span
        except Exception as exc:  # noqa: BLE001
            span.update(level="ERROR", status_message=str(exc))
            raise


@contextmanager
def start_langfuse_generation(
    *,
    name: str,
    model: str,
    input: Any | None = None,
    metadata: dict[str, Any] | None = None,
    model_parameters: dict[str, Any] | None = None,
) -> Iterator[Any | None]:
    client = get_langfuse_client()
    if client is None:
        yield None
        return

    with client.start_as_current_generation(
        name=name,
        input=input,
        model=model,
        metadata=metadata,
        model_parameters=model_parameters,
    ) as generation:
        _update_trace(client, fallback_name=name, metadata=metadata)
        try:
            yield generation
        except Exception as exc:  # noqa: BLE001
            generation.update(level="ERROR", status_message=str(exc))
            raise
