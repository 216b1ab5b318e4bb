from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session


class ToolName(str, Enum):
    show_onboarding_form = "Show_Onboarding_Form"
    add_onboarding_data = "Add_Onboarding_Data"
    show_campaign_form = "Show_Campaign_Form"
    create_campaign = "Create_Campaign"
    create_content_schedule = "Create_Content_Schedule"
    get_campaign = "Get_Campaign"
    get_schedule = "Get_Schedule"


class ToolStatus(str, Enum):
    completed = "completed"
    failed = "failed"
    pending_confirmation = "pending_confirmation"


class SampleTable(BaseModel):
    columns: list[str]
    rows: list[list[Any]]
    truncated: bool = False


class ConfirmationPreview(BaseModel):
    title: str
    details: list[str] = Field(default_factory=list)
    sample: Optional[SampleTable] = None


class PendingConfirmation(BaseModel):
    """Everything the caller needs to re-submit a mutating tool once the user approves."""

    toolName: ToolName
    toolInput: dict[str, Any]
    preview: ConfirmationPreview


class ToolResult(BaseModel):
    """
    Every tool must return:
    - llm_output: compact content fed back to the model as the tool message
    - ui_details: structured UI-friendly payload
    - pending: set when the tool stopped at the confirmation gate
    - next_tool: follow-up tool suggested after a committed mutation
    """

    model_config = ConfigDict(extra="forbid")

    llm_output: Any | None = None
    ui_details: dict[str, Any] = Field(default_factory=dict)
    pending: Optional[PendingConfirmation] = None
    next_tool: Optional[ToolName] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"output": self.llm_output, "uiDetails": self.ui_details}
        if self.pending is not None:
            payload["pending"] = self.pending.model_dump(mode="json")
        if self.next_tool is not None:
            payload["nextTool"] = self.next_tool.value
        return payload


class ToolInvocation(BaseModel):
    """One step of a turn's trace; returned to the caller and never stored."""

    toolName: str
    args: Any = None
    status: ToolStatus
    result: Optional[dict[str, Any]] = None
    error: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class ToolContext:
    session: Session
    user_id: str
    session_id: Optional[str] = None
    locale: Optional[str] = None
    tool_name: Optional[str] = None
