import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketing_assistant.agent.confirmation import confirm_tool_call
from marketing_assistant.agent.orchestrator import MarketingAgent
from marketing_assistant.agent.suggestions import SuggestionAgent
from marketing_assistant.agent.tools import build_runtime
from marketing_assistant.config import settings
from marketing_assistant.db.deps import get_session
from marketing_assistant.db.repositories import ChatMessagesRepository, UsersRepository
from marketing_assistant.dependencies import get_agent, get_connections, get_suggestion_agent
from marketing_assistant.errors import NotFoundError, StoreError
from marketing_assistant.messages import get_message
from marketing_assistant.schemas.chat import (
    ChatHistoryResponse,
    ChatMessageOut,
    ChatSessionOut,
    ChatSessionsResponse,
    Pagination,
    SuggestionsRequest,
    SuggestionsResponse,
    ToolConfirmationRequest,
    ToolConfirmationResponse,
    TurnRequest,
    TurnResponse,
)
from marketing_assistant.services.connections import ConnectionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


def _require_user(session: Session, user_id: str) -> None:
    if UsersRepository(session).get(user_id) is None:
        raise NotFoundError(f"User {user_id} not found", details={"userId": user_id})


# Sync handlers run in the threadpool; ConnectionRegistry.publish hands events back to the event loop.
@router.post("/chat", response_model=TurnResponse)
def chat_turn(
    payload: TurnRequest,
    session: Session = Depends(get_session),
    agent: MarketingAgent = Depends(get_agent),
    connections: ConnectionRegistry = Depends(get_connections),
) -> TurnResponse:
    if payload.message and len(payload.message) > settings.MAX_MESSAGE_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=get_message("message_too_long", payload.locale, limit=settings.MAX_MESSAGE_LENGTH),
        )
    return agent.process_turn(
        session,
        payload,
        on_event=lambda event: connections.publish(payload.userId, event),
    )


@router.post("/tool-confirmation", response_model=ToolConfirmationResponse)
def tool_confirmation(
    payload: ToolConfirmationRequest,
    session: Session = Depends(get_session),
    connections: ConnectionRegistry = Depends(get_connections),
) -> ToolConfirmationResponse:
    _require_user(session, payload.userId)
    runtime = build_runtime(
        session=session,
        user_id=payload.userId,
        session_id=payload.sessionId,
        locale=payload.locale,
    )
    outcome = confirm_tool_call(
        runtime=runtime,
        tool_name=payload.toolName,
        tool_input=payload.toolInput,
        action=payload.action,
        on_event=lambda event: connections.publish(payload.userId, event),
    )
    if payload.sessionId:
        try:
            ChatMessagesRepository(session).append(
                user_id=payload.userId,
                session_id=payload.sessionId,
                question=None,
                ai_response=outcome["message"],
            )
        except StoreError as exc:
            logger.warning(
                "Confirmation outcome not saved to chat history",
                extra={"user_id": payload.userId, "session_id": payload.sessionId, "error": exc.message},
            )
    return ToolConfirmationResponse(**outcome)


@router.post("/suggestions", response_model=SuggestionsResponse)
def suggestions(
    payload: SuggestionsRequest,
    session: Session = Depends(get_session),
    agent: SuggestionAgent = Depends(get_suggestion_agent),
) -> SuggestionsResponse:
    result = agent.suggest(session, user_id=payload.userId, session_id=payload.sessionId, locale=payload.locale)
    return SuggestionsResponse(suggestions=result.suggestions, isAIGenerated=result.is_ai_generated)


@router.get("/chat-history/{user_id}", response_model=ChatHistoryResponse)
def chat_history(
    user_id: str,
    session_id: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: Session = Depends(get_session),
) -> ChatHistoryResponse:
    _require_user(session, user_id)
    rows, total = ChatMessagesRepository(session).page(
        user_id=user_id,
        session_id=session_id,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return ChatHistoryResponse(
        messages=[
            ChatMessageOut(
                id=row.id,
                sessionId=row.chat_session_id,
                question=row.question,
                aiResponse=row.ai_response,
                createdAt=row.created_at.isoformat(),
            )
            for row in rows
        ],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            totalPages=math.ceil(total / limit) if total else 0,
            hasMore=page * limit < total,
        ),
    )


@router.get("/chat-sessions/{user_id}", response_model=ChatSessionsResponse)
def chat_sessions(user_id: str, session: Session = Depends(get_session)) -> ChatSessionsResponse:
    _require_user(session, user_id)
    grouped = ChatMessagesRepository(session).sessions(user_id=user_id)
    return ChatSessionsResponse(
        sessions=[
            ChatSessionOut(
                sessionId=entry["session_id"],
                createdAt=entry["created_at"].isoformat(),
                firstMessage=entry["first_message"],
                messageCount=entry["message_count"],
            )
            for entry in grouped
        ]
    )


@router.delete("/chat-session/{user_id}/{session_id}")
def delete_chat_session(user_id: str, session_id: str, session: Session = Depends(get_session)) -> dict:
    deleted = ChatMessagesRepository(session).delete_session(user_id=user_id, session_id=session_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat session not found")
    return {"success": True, "deleted": deleted}
