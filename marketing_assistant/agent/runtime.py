from __future__ import annotations

import logging
import time
from collections.abc import Callable, Generator
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from marketing_assistant.agent.types import ToolContext, ToolInvocation, ToolName, ToolResult, ToolStatus
from marketing_assistant.errors import NotFoundError, StoreError, ToolValidationError
from marketing_assistant.observability import start_langfuse_span


logger = logging.getLogger(__name__)

ArgsT = TypeVar("ArgsT", bound=BaseModel)
ReturnT = TypeVar("ReturnT")

EventCallback = Callable[[dict[str, Any]], None]

# Failures that degrade a single step instead of the whole turn.
STEP_ERRORS = (ToolValidationError, NotFoundError, StoreError)


class BaseTool(Generic[ArgsT]):
    name: ToolName
    description: str = ""
    ArgsModel: type[ArgsT]

    def run(self, *, ctx: ToolContext, args: ArgsT) -> ToolResult:
        raise NotImplementedError

    def run_stream(self, *, ctx: ToolContext, args: ArgsT) -> Generator[dict[str, Any], None, ToolResult]:
        """
        Streaming-capable tool entrypoint.

        Default implementation yields no events and delegates to `run`.
        """
        result = self.run(ctx=ctx, args=args)
        if False:  # pragma: no cover - makes this method a generator without yielding in normal execution
            yield {}
        return result

    @classmethod
    def function_schema(cls) -> dict[str, Any]:
        parameters = cls.ArgsModel.model_json_schema()
        parameters.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": cls.name.value,
                "description": cls.description,
                "parameters": parameters,
            },
        }


def drain(
    stream: Generator[dict[str, Any], None, ReturnT],
    on_event: Optional[EventCallback] = None,
) -> ReturnT:
    """Exhaust an event generator, forwarding each event, and return its result."""
    while True:
        try:
            event = next(stream)
        except StopIteration as stop:
            return stop.value
        if on_event is not None:
            on_event(event)


class AgentRuntime:
    def __init__(
        self,
        *,
        session: Session,
        user_id: str,
        tools: dict[ToolName, BaseTool],
        session_id: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.session_id = session_id
        self.locale = locale
        self.tools = tools

    def resolve_tool(self, tool_name: Any) -> BaseTool:
        try:
            key = ToolName(tool_name)
        except ValueError as exc:
            raise ToolValidationError(f"Unknown tool: {tool_name}", details={"toolName": tool_name}) from exc
        return self.tools[key]

    def _validate_args(self, *, tool: BaseTool, raw_args: Any) -> BaseModel:
        try:
            return tool.ArgsModel.model_validate(raw_args)
        except ValidationError as exc:
            raise ToolValidationError(
                f"Invalid args for tool {tool.name.value}",
                details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
            ) from exc

    def _event(self, event_type: str, tool_name: str, **fields: Any) -> dict[str, Any]:
        return {"type": event_type, "sessionId": self.session_id, "toolName": tool_name, **fields}

    def invoke_tool_stream(
        self,
        *,
        tool_name: Any,
        raw_args: Any,
    ) -> Generator[dict[str, Any], None, ToolInvocation]:
        """
        Invoke one tool while emitting tool_called/tool_result/tool_error events.

        Validation, lookup and persistence failures end up in the returned step
        with status `failed`; they are never raised to the caller.
        """
        name = tool_name.value if isinstance(tool_name, ToolName) else str(tool_name)
        yield self._event("tool_called", name, args=raw_args)

        started = time.monotonic()
        try:
            tool = self.resolve_tool(tool_name)
            args = self._validate_args(tool=tool, raw_args=raw_args)
            ctx = ToolContext(
                session=self.session,
                user_id=self.user_id,
                session_id=self.session_id,
                locale=self.locale,
                tool_name=name,
            )
            with start_langfuse_span(
                name=f"agent.tool.{name}",
                input={"args": raw_args},
                metadata={"toolName": name, "userId": self.user_id},
            ) as tool_span:
                result = yield from tool.run_stream(ctx=ctx, args=args)
                if tool_span is not None:
                    tool_span.update(output={"status": "pending" if result.pending else "completed"})
        except STEP_ERRORS as exc:
            duration_ms = int((time.monotonic() - started) * 1000)
            logger.warning(
                "Tool call failed",
                extra={
                    "tool_name": name,
                    "user_id": self.user_id,
                    "error_type": type(exc).__name__,
                    "duration_ms": duration_ms,
                },
            )
            yield self._event("tool_error", name, message=exc.message)
            return ToolInvocation(
                toolName=name,
                args=raw_args,
                status=ToolStatus.failed,
                error=exc.to_dict(),
            )

        status = ToolStatus.pending_confirmation if result.pending is not None else ToolStatus.completed
        yield self._event("tool_result", name, status=status.value, ui_details=result.ui_details)
        return ToolInvocation(
            toolName=name,
            args=args.model_dump(mode="json", exclude_none=True),
            status=status,
            result=result.to_payload(),
        )

    def invoke_tool(
        self,
        *,
        tool_name: Any,
        raw_args: Any,
        on_event: Optional[EventCallback] = None,
    ) -> ToolInvocation:
        return drain(self.invoke_tool_stream(tool_name=tool_name, raw_args=raw_args), on_event)
