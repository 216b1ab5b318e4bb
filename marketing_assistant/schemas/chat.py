from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from marketing_assistant.agent.types import ToolInvocation

# Matches the width of chat_history.chat_session_id.
SESSION_ID_MAX_LENGTH = 64


class TurnRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    userId: str = Field(..., min_length=1)
    sessionId: Optional[str] = Field(None, max_length=SESSION_ID_MAX_LENGTH)
    message: Optional[str] = None
    priorOnboardingData: Optional[dict[str, Any]] = None
    campaignFormData: Optional[dict[str, Any]] = None
    isWelcomeMessage: bool = False
    locale: Optional[str] = None


class TurnResponse(BaseModel):
    success: bool
    response: str
    toolInvocations: list[ToolInvocation] = Field(default_factory=list)
    sessionId: str
    fallback: bool = False
    error: Optional[str] = None
    waitingForCampaignForm: bool = False


class ToolConfirmationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    userId: str = Field(..., min_length=1)
    toolName: str = Field(..., min_length=1)
    toolInput: dict[str, Any] = Field(default_factory=dict)
    action: Literal["confirm", "cancel"] = "confirm"
    sessionId: Optional[str] = Field(None, max_length=SESSION_ID_MAX_LENGTH)
    locale: Optional[str] = None


class ToolConfirmationResponse(BaseModel):
    success: bool
    message: str
    toolInvocation: Optional[ToolInvocation] = None


class SuggestionsRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    userId: str = Field(..., min_length=1)
    sessionId: Optional[str] = Field(None, max_length=SESSION_ID_MAX_LENGTH)
    locale: Optional[str] = None


class SuggestionsResponse(BaseModel):
    success: bool = True
    suggestions: list[str]
    isAIGenerated: bool


class ChatMessageOut(BaseModel):
    id: str
    sessionId: str
    question: Optional[str] = None
    aiResponse: str
    createdAt: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int
    hasMore: bool


class ChatHistoryResponse(BaseModel):
    success: bool = True
    messages: list[ChatMessageOut]
    pagination: Pagination


class ChatSessionOut(BaseModel):
    sessionId: str
    createdAt: str
    firstMessage: Optional[str] = None
    messageCount: int


class ChatSessionsResponse(BaseModel):
    success: bool = True
    sessions: list[ChatSessionOut]
