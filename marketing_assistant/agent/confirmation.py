"""
Two-phase confirmation for mutating tools.

A confirmable tool always builds its plan first. Without `confirmationReceived`
the plan is rendered as a preview and nothing is written; with the flag the same
plan is committed. Only `confirm_tool_call` sets the flag: calls requested by the
model are always previews. Nothing is stored between the two calls: the pending payload
carries the resolved arguments the caller re-submits on approval.
"""

from __future__ import annotations

import logging
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel

from marketing_assistant.agent.runtime import AgentRuntime, BaseTool, EventCallback
from marketing_assistant.agent.types import (
    ConfirmationPreview,
    PendingConfirmation,
    ToolContext,
    ToolInvocation,
    ToolName,
    ToolResult,
    ToolStatus,
)
from marketing_assistant.errors import ToolValidationError
from marketing_assistant.messages import get_message


logger = logging.getLogger(__name__)

ArgsT = TypeVar("ArgsT", bound=BaseModel)
PlanT = TypeVar("PlanT")

ConfirmationAction = Literal["confirm", "cancel"]

CONFIRMATION_FLAG = "confirmationReceived"


class ConfirmableTool(BaseTool[ArgsT], Generic[ArgsT, PlanT]):
    next_tool: Optional[ToolName] = None

    @classmethod
    def function_schema(cls) -> dict[str, Any]:
        # The model only ever previews; committing is reserved for confirm_tool_call.
        schema = super().function_schema()
        parameters = schema["function"]["parameters"]
        parameters.get("properties", {}).pop(CONFIRMATION_FLAG, None)
        if CONFIRMATION_FLAG in parameters.get("required", []):
            parameters["required"].remove(CONFIRMATION_FLAG)
        return schema

    def plan(self, *, ctx: ToolContext, args: ArgsT) -> PlanT:
        raise NotImplementedError

    def resolved_args(self, plan: PlanT) -> BaseModel:
        raise NotImplementedError

    def preview(self, plan: PlanT) -> ConfirmationPreview:
        raise NotImplementedError

    def commit(self, *, ctx: ToolContext, plan: PlanT) -> ToolResult:
        raise NotImplementedError

    def pending_input(self, plan: PlanT) -> dict[str, Any]:
        resolved = self.resolved_args(plan).model_copy(update={CONFIRMATION_FLAG: True})
        return resolved.model_dump(mode="json", exclude_none=True)

    def run(self, *, ctx: ToolContext, args: ArgsT) -> ToolResult:
        plan = self.plan(ctx=ctx, args=args)
        if getattr(args, CONFIRMATION_FLAG, False):
            result = self.commit(ctx=ctx, plan=plan)
            if result.next_tool is None and self.next_tool is not None:
                result = result.model_copy(update={"next_tool": self.next_tool})
            return result

        preview = self.preview(plan)
        pending = PendingConfirmation(toolName=self.name, toolInput=self.pending_input(plan), preview=preview)
        return ToolResult(
            llm_output={
                "status": "pending_confirmation",
                "message": f"{preview.title}. Waiting for the user to confirm before anything is saved.",
                "details": preview.details,
            },
            ui_details={"action": "confirm_tool", "preview": preview.model_dump(mode="json")},
            pending=pending,
        )


def confirm_tool_call(
    *,
    runtime: AgentRuntime,
    tool_name: str,
    tool_input: dict[str, Any],
    action: ConfirmationAction,
    on_event: Optional[EventCallback] = None,
) -> dict[str, Any]:
    """Apply a user's decision on a pending tool call."""
    tool = runtime.resolve_tool(tool_name)
    if not isinstance(tool, ConfirmableTool):
        raise ToolValidationError(
            f"Tool {tool.name.value} does not require confirmation.",
            details={"toolName": tool.name.value},
        )

    if action == "cancel":
        logger.info("Tool call cancelled", extra={"tool_name": tool.name.value, "user_id": runtime.user_id})
        return {
            "success": True,
            "message": get_message("tool_cancelled", runtime.locale, tool=tool.name.value),
            "toolInvocation": None,
        }

    confirmed_input = {**tool_input, CONFIRMATION_FLAG: True}
    invocation: ToolInvocation = runtime.invoke_tool(
        tool_name=tool.name,
        raw_args=confirmed_input,
        on_event=on_event,
    )
    if invocation.status == ToolStatus.failed:
        error_message = (invocation.error or {}).get("message", "")
        message = get_message("tool_failed", runtime.locale, tool=tool.name.value, error=error_message)
    else:
        message = get_message("tool_confirmed", runtime.locale, tool=tool.name.value)
    return {
        "success": invocation.status != ToolStatus.failed,
        "message": message,
        "toolInvocation": invocation.model_dump(mode="json"),
    }



def preview_only_args(runtime: AgentRuntime, tool_name: Any, raw_args: Any) -> Any:
    """Arguments for a model-requested call, with the confirmation flag cleared on confirmable tools."""
    try:
        tool = runtime.resolve_tool(tool_name)
    except ToolValidationError:
        return raw_args
    if isinstance(tool, ConfirmableTool) and isinstance(raw_args, dict):
        return {**raw_args, CONFIRMATION_FLAG: False}
    return raw_args
