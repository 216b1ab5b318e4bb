from .langfuse import (
    LangfuseConfigError,
    TurnTraceContext,
    bind_turn_context,
    get_openai_client_class,
    initialize_langfuse,
    shutdown_langfuse,
    start_langfuse_generation,
    start_langfuse_span,
)

__all__ = [
    "LangfuseConfigError",
    "TurnTraceContext",
    "bind_turn_context",
    "get_openai_client_class",
    "initialize_langfuse",
    "shutdown_langfuse",
    "start_langfuse_generation",
    "start_langfuse_span",
]
