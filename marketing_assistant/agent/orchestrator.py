from __future__ import annotations

import json
import logging
from collections.abc import Generator
from datetime import date
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from marketing_assistant.agent.prompts import (
    build_system_prompt,
    business_paragraph_prompt,
    profile_text,
    welcome_instruction,
)
from marketing_assistant.agent.confirmation import preview_only_args
from marketing_assistant.agent.runtime import AgentRuntime, EventCallback, drain
from marketing_assistant.agent.tools import build_runtime, tool_schemas
from marketing_assistant.agent.types import ToolInvocation, ToolName, ToolStatus
from marketing_assistant.config import settings
from marketing_assistant.db.models import User
from marketing_assistant.db.repositories import ChatMessagesRepository, UsersRepository
from marketing_assistant.db.repositories.chat_messages import history_to_messages
from marketing_assistant.errors import NotFoundError, OracleError, StoreError, ToolValidationError
from marketing_assistant.llm.client import LLMGenerationParams, Oracle
from marketing_assistant.messages import get_message
from marketing_assistant.observability import TurnTraceContext, bind_turn_context
from marketing_assistant.schemas.chat import TurnRequest, TurnResponse
from marketing_assistant.services.rate_limiter import TurnLimiters


logger = logging.getLogger(__name__)

_TRANSCRIPT_OUTPUT_LIMIT = 600
_CAMPAIGN_FORM_ALIASES = {
    "name": ("name", "campaignName", "campaign_name"),
    "objectives": ("objectives", "goals", "goal", "objective"),
    "target_audience": ("target_audience", "targetAudience", "audience"),
    "budget": ("budget",),
    "startDate": ("startDate", "start_date"),
    "endDate": ("endDate", "end_date"),
    "notes": ("notes", "description"),
}
_FORM_MARKERS = ("Show_Campaign_Form", "show_campaign_form")
_CREATE_MARKERS = ("Create_Campaign", "create_campaign")


def campaign_data_from_form(form: dict[str, Any]) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for field_name, aliases in _CAMPAIGN_FORM_ALIASES.items():
        for alias in aliases:
            value = form.get(alias)
            if value not in (None, ""):
                data[field_name] = value
                break
    return data


def waiting_for_campaign_form(history: list[dict[str, str]]) -> bool:
    """True when the campaign form was shown after the last campaign creation attempt."""
    last_form = last_create = -1
    for index, message in enumerate(history):
        content = message.get("content") or ""
        if any(marker in content for marker in _FORM_MARKERS):
            last_form = index
        if any(marker in content for marker in _CREATE_MARKERS):
            last_create = index
    return last_form > last_create


def _short_json(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)
    if len(text) > _TRANSCRIPT_OUTPUT_LIMIT:
        return text[:_TRANSCRIPT_OUTPUT_LIMIT].rstrip() + "..."
    return text


def render_transcript(steps: list[ToolInvocation], conclusion: Optional[str], locale: Optional[str]) -> str:
    lines = [get_message("transcript_heading", locale), ""]
    for index, step in enumerate(steps, start=1):
        lines.append(f"{index}. **{step.toolName}** ({step.status.value})")
        lines.append(f"   - Input: `{_short_json(step.args)}`")
        if step.status == ToolStatus.failed:
            lines.append(f"   - Error: {(step.error or {}).get('message', '')}")
        else:
            lines.append(f"   - Output: `{_short_json((step.result or {}).get('output'))}`")
    if conclusion:
        lines.extend(["", conclusion.strip()])
    return "\n".join(lines)


def _tool_message(call_id: str, step: ToolInvocation) -> dict[str, Any]:
    if step.status == ToolStatus.failed:
        body: dict[str, Any] = {"status": "failed", "error": step.error}
    else:
        body = {"status": step.status.value, "output": (step.result or {}).get("output")}
        next_tool = (step.result or {}).get("nextTool")
        if next_tool:
            body["nextTool"] = next_tool
    return {"role": "tool", "tool_call_id": call_id, "content": json.dumps(body, ensure_ascii=False, default=str)}


class MarketingAgent:
    """
    Drives one chat turn: context assembly, a bounded model/tool loop and the reply.

    Model failures degrade the turn to a fixed localized reply. Tool failures only
    mark their own step as failed.
    """

    def __init__(
        self,
        oracle: Oracle,
        *,
        limiters: Optional[TurnLimiters] = None,
        max_iterations: Optional[int] = None,
    ) -> None:
        self.oracle = oracle
        self.limiters = limiters
        self.max_iterations = max_iterations or settings.AGENT_MAX_ITERATIONS

    def process_turn(
        self,
        session: Session,
        request: TurnRequest,
        on_event: Optional[EventCallback] = None,
    ) -> TurnResponse:
        return drain(self.run_turn_stream(session, request), on_event)

    def run_turn_stream(
        self,
        session: Session,
        request: TurnRequest,
    ) -> Generator[dict[str, Any], None, TurnResponse]:
        has_input = bool(
            (request.message and request.message.strip())
            or request.priorOnboardingData
            or request.campaignFormData
        )
        if not request.isWelcomeMessage and not has_input:
            raise ToolValidationError("A message is required.")

        if self.limiters is not None:
            self.limiters.check_turn(
                request.userId,
                is_welcome=request.isWelcomeMessage,
                is_new_chat=request.sessionId is None,
                locale=request.locale,
            )

        user = UsersRepository(session).get(request.userId)
        if user is None:
            raise NotFoundError(f"User {request.userId} not found", details={"userId": request.userId})

        session_id = request.sessionId or str(uuid4())
        runtime = build_runtime(session=session, user_id=user.id, session_id=session_id, locale=request.locale)
        trace_context = TurnTraceContext(
            name="chat.turn",
            session_id=session_id,
            user_id=user.id,
            metadata={"welcome": request.isWelcomeMessage},
            tags=["chat"],
        )

        with bind_turn_context(trace_context):
            yield {"type": "turn_started", "sessionId": session_id}
            if request.priorOnboardingData:
                response = yield from self._submit_onboarding(session, runtime, user, request, session_id)
            elif request.campaignFormData:
                response = yield from self._submit_campaign_form(session, runtime, request, session_id)
            else:
                response = yield from self._converse(session, runtime, user, request, session_id)
            yield {
                "type": "turn_finished",
                "sessionId": session_id,
                "fallback": response.fallback,
                "toolCount": len(response.toolInvocations),
            }
        return response

    # --- direct form paths ----------------------------------------------------

    def _business_paragraph(self, data: dict[str, Any], locale: Optional[str], user_id: str) -> str:
        try:
            paragraph = self.oracle.generate_text(
                business_paragraph_prompt(data, locale=locale),
                LLMGenerationParams(
                    model=settings.OPENAI_CHAT_MODEL,
                    temperature=settings.OPENAI_CHAT_TEMPERATURE,
                ),
            )
        except OracleError as exc:
            logger.warning(
                "Business paragraph generation failed; saving the plain profile",
                extra={"user_id": user_id, "error": exc.message},
            )
            return profile_text(data)
        return paragraph.strip() or profile_text(data)

    def _submit_onboarding(
        self,
        session: Session,
        runtime: AgentRuntime,
        user: User,
        request: TurnRequest,
        session_id: str,
    ) -> Generator[dict[str, Any], None, TurnResponse]:
        paragraph = self._business_paragraph(request.priorOnboardingData or {}, request.locale, user.id)
        step = yield from runtime.invoke_tool_stream(
            tool_name=ToolName.add_onboarding_data,
            raw_args={"businessInfo": paragraph, "isUpdate": bool(user.notes)},
        )
        if step.status == ToolStatus.failed:
            conclusion = get_message(
                "tool_failed",
                request.locale,
                tool=step.toolName,
                error=(step.error or {}).get("message", ""),
            )
        else:
            conclusion = get_message("onboarding_saved", request.locale)
        return self._finish(session, request, session_id, [step], conclusion)

    def _submit_campaign_form(
        self,
        session: Session,
        runtime: AgentRuntime,
        request: TurnRequest,
        session_id: str,
    ) -> Generator[dict[str, Any], None, TurnResponse]:
        step = yield from runtime.invoke_tool_stream(
            tool_name=ToolName.create_campaign,
            raw_args={
                "campaignData": campaign_data_from_form(request.campaignFormData or {}),
                "confirmationReceived": False,
            },
        )
        if step.status == ToolStatus.failed:
            conclusion = get_message(
                "tool_failed",
                request.locale,
                tool=step.toolName,
                error=(step.error or {}).get("message", ""),
            )
        else:
            conclusion = get_message("campaign_pending", request.locale)
        return self._finish(session, request, session_id, [step], conclusion)

    # --- conversation loop ----------------------------------------------------

    def _converse(
        self,
        session: Session,
        runtime: AgentRuntime,
        user: User,
        request: TurnRequest,
        session_id: str,
    ) -> Generator[dict[str, Any], None, TurnResponse]:
        history: list[dict[str, str]] = []
        if not request.isWelcomeMessage and request.sessionId:
            rows = ChatMessagesRepository(session).recent(
                user_id=user.id,
                session_id=session_id,
                limit=settings.CHAT_HISTORY_LIMIT,
            )
            history = history_to_messages(rows)

        if history and waiting_for_campaign_form(history):
            last_answer = next(
                (message["content"] for message in reversed(history) if message["role"] == "assistant"),
                "",
            )
            reminder = get_message("campaign_form_reminder", request.locale)
            return TurnResponse(
                success=True,
                response=f"{last_answer}\n\n{reminder}" if last_answer else reminder,
                sessionId=session_id,
                waitingForCampaignForm=True,
            )

        if request.isWelcomeMessage:
            user_content = welcome_instruction(has_profile=bool(user.notes))
        else:
            user_content = (request.message or "").strip()

        messages: list[dict[str, Any]] = [
            {
                "role": "system",
                "content": build_system_prompt(notes=user.notes, locale=request.locale, today=date.today()),
            },
            *history[-settings.CHAT_HISTORY_WINDOW :],
            {"role": "user", "content": user_content},
        ]
        schemas = tool_schemas(runtime.tools)
        params = LLMGenerationParams(model=settings.OPENAI_CHAT_MODEL, temperature=settings.OPENAI_CHAT_TEMPERATURE)

        steps: list[ToolInvocation] = []
        answer: Optional[str] = None
        try:
            for _ in range(self.max_iterations):
                reply = self.oracle.chat(messages, tools=schemas, params=params)
                if reply.content:
                    answer = reply.content
                if not reply.tool_calls:
                    break
                messages.append(reply.as_message())
                for call in reply.tool_calls:
                    step = yield from runtime.invoke_tool_stream(
                        tool_name=call.name,
                        raw_args=preview_only_args(runtime, call.name, call.arguments),
                    )
                    steps.append(step)
                    messages.append(_tool_message(call.id, step))
            else:
                logger.info(
                    "Agent loop reached its iteration cap",
                    extra={"user_id": user.id, "session_id": session_id, "iterations": self.max_iterations},
                )
        except OracleError as exc:
            logger.warning(
                "Oracle call failed; returning fallback reply",
                extra={"user_id": user.id, "session_id": session_id, "error": exc.message, "steps": len(steps)},
            )
            yield {"type": "oracle_error", "sessionId": session_id, "message": exc.message}
            return self._fallback(user, request, session_id, steps)

        response_text = render_transcript(steps, answer, request.locale) if steps else (answer or "")
        return self._finish(session, request, session_id, steps, response_text, transcript=False)

    # --- replies --------------------------------------------------------------

    def _fallback(
        self,
        user: User,
        request: TurnRequest,
        session_id: str,
        steps: list[ToolInvocation],
    ) -> TurnResponse:
        guidance_key = "capabilities_overview" if user.notes else "onboarding_guidance"
        response = (
            f"{get_message('oracle_apology', request.locale)}\n\n{get_message(guidance_key, request.locale)}"
        )
        return TurnResponse(
            success=True,
            response=response,
            toolInvocations=steps,
            sessionId=session_id,
            fallback=True,
            error=OracleError.code,
        )

    def _finish(
        self,
        session: Session,
        request: TurnRequest,
        session_id: str,
        steps: list[ToolInvocation],
        text: str,
        *,
        transcript: bool = True,
    ) -> TurnResponse:
        response_text = render_transcript(steps, text, request.locale) if transcript and steps else text
        question = None if request.isWelcomeMessage or not request.message else request.message
        try:
            ChatMessagesRepository(session).append(
                user_id=request.userId,
                session_id=session_id,
                question=question,
                ai_response=response_text,
            )
        except StoreError as exc:
            logger.warning(
                "Chat history append failed; reply is still returned",
                extra={"user_id": request.userId, "session_id": session_id, "error": exc.message},
            )
        return TurnResponse(
            success=True,
            response=response_text,
            toolInvocations=steps,
            sessionId=session_id,
        )
