from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from openai import OpenAI, OpenAIError

from marketing_assistant.config import settings
from marketing_assistant.errors import OracleError
from marketing_assistant.observability import get_openai_client_class, start_langfuse_generation


logger = logging.getLogger(__name__)


@dataclass
class LLMGenerationParams:
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None


@dataclass(frozen=True)
class OracleToolCall:
    id: str
    name: str
    # Parsed JSON object, or the raw argument string when the model produced invalid JSON.
    arguments: Any
    raw_arguments: str = "{}"


@dataclass
class OracleReply:
    content: Optional[str] = None
    tool_calls: list[OracleToolCall] = field(default_factory=list)

    def as_message(self) -> dict[str, Any]:
        """Chat-completions assistant message that replays this reply in the next request."""
        message: dict[str, Any] = {"role": "assistant", "content": self.content or ""}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.raw_arguments},
                }
                for call in self.tool_calls
            ]
        return message


class Oracle(Protocol):
    def chat(
        self,
        messages: list[dict[str, Any]],
        tools: Optional[list[dict[str, Any]]] = None,
        params: Optional[LLMGenerationParams] = None,
    ) -> OracleReply: ...

    def generate_text(self, prompt: str, params: Optional[LLMGenerationParams] = None) -> str: ...


def parse_tool_arguments(raw: Optional[str]) -> Any:
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


class LLMClient:
    """
    Chat-completions wrapper used by the agent.
    Every SDK or configuration failure is raised as OracleError so callers handle one type.
    """

    def __init__(self, default_model: Optional[str] = None, client: Optional[OpenAI] = None) -> None:
        self.default_model = default_model or settings.OPENAI_CHAT_MODEL
        self._openai_client = client

    def _client(self) -> OpenAI:
        if self._openai_client is not None:
            return self._openai_client
        if not settings.OPENAI_API_KEY:
            raise OracleError("OPENAI_API_KEY not configured")
        client_kwargs: dict[str, Any] = {
            "api_key": settings.OPENAI_API_KEY,
            "timeout": float(settings.LLM_REQUEST_TIMEOUT),
            "max_retries": int(settings.LLM_REQUEST_RETRIES),
        }
        if settings.OPENAI_BASE_URL:
            client_kwargs["base_url"] = settings.OPENAI_BASE_URL
        self._openai_client = get_openai_client_class()(**client_kwargs)
        return self._openai_client

    def _completion_kwargs(self, messages: list[dict[str, Any]], params: Optional[LLMGenerationParams]) -> dict:
        model = (params.model if params else None) or self.default_model
        temperature = params.temperature if params and params.temperature is not None else None
        kwargs: dict[str, Any] = {"model": model, "messages": messages}
        if temperature is not None:
            kwargs["temperature"] = temperature
        if params and params.max_tokens:
            kwargs["max_tokens"] = params.max_tokens
        return kwargs

    def _create(self, completion_kwargs: dict[str, Any]):
        client = self._client()
        model = completion_kwargs["model"]
        with start_langfuse_generation(
            name="llm.chat_completion",
            model=model,
            input=completion_kwargs["messages"],
            model_parameters={"temperature": completion_kwargs.get("temperature")},
            metadata={"toolCount": len(completion_kwargs.get("tools") or [])},
        ) as generation:
            try:
                completion = client.chat.completions.create(**completion_kwargs)
            except OpenAIError as exc:
                logger.warning(
                    "OpenAI chat completion failed",
                    extra={"model": model, "error_type": type(exc).__name__},
                )
                raise OracleError(f"OpenAI request failed: {exc}", details={"model": model}) from exc
            if generation is not None:
                generation.update(output=_first_message_content(completion))
        if not completion or not completion.choices:
            raise OracleError(f"OpenAI chat completion returned no choices for model {model}")
        return completion.choices[0].message

    def chat(
        self,
        messages: list[dict[str, Any]],
        tools: Optional[list[dict[str, Any]]] = None,
        params: Optional[LLMGenerationParams] = None,
    ) -> OracleReply:
        completion_kwargs = self._completion_kwargs(messages, params)
        if tools:
            completion_kwargs["tools"] = tools
            completion_kwargs["tool_choice"] = "auto"
        message = self._create(completion_kwargs)

        tool_calls: list[OracleToolCall] = []
        for call in getattr(message, "tool_calls", None) or []:
            function = getattr(call, "function", None)
            if function is None:
                continue
            raw = function.arguments or "{}"
            tool_calls.append(
                OracleToolCall(
                    id=call.id,
                    name=function.name,
                    arguments=parse_tool_arguments(raw),
                    raw_arguments=raw,
                )
            )
        return OracleReply(content=getattr(message, "content", None), tool_calls=tool_calls)

    def generate_text(self, prompt: str, params: Optional[LLMGenerationParams] = None) -> str:
        completion_kwargs = self._completion_kwargs([{"role": "user", "content": prompt}], params)
        message = self._create(completion_kwargs)
        text = getattr(message, "content", None)
        if text:
            return text
        raise OracleError(f"OpenAI chat completion returned no content for model {completion_kwargs['model']}")


def _first_message_content(completion: Any) -> Optional[str]:
    choices = getattr(completion, "choices", None)
    if not choices:
        return None
    return getattr(choices[0].message, "content", None)
