from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from marketing_assistant.config import settings
from marketing_assistant.db.models import ChatMessage
from marketing_assistant.db.repositories import ChatMessagesRepository, UsersRepository
from marketing_assistant.errors import NotFoundError, OracleError
from marketing_assistant.llm.client import LLMGenerationParams, Oracle
from marketing_assistant.messages import fallback_suggestions, resolve_locale


logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[\s\S]*?\]")
_SUGGESTION_COUNT = 4

_BUSINESS_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("coffee_shop", ("quán cà phê", "café", "cafe", "coffee")),
    ("nail_salon", ("tiệm nail", "nail salon", "làm nail")),
    ("restaurant", ("nhà hàng", "restaurant", "ăn uống", "bistro")),
    ("spa", ("spa", "massage", "thẩm mỹ")),
    ("retail", ("shop", "cửa hàng", "bán hàng", "store", "boutique")),
)


def detect_business_type(notes: Optional[str]) -> str:
    if not notes:
        return "unknown"
    lowered = notes.lower()
    for business_type, keywords in _BUSINESS_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return business_type
    return "general_business"


def parse_suggestions(text: Optional[str]) -> Optional[list[str]]:
    """
    Best-effort parse of model output into reply suggestions.

    Tries every JSON array in the text first, then `-` bullet lines. Returns
    None when neither yields a non-empty string.
    """
    if not text:
        return None

    for match in _JSON_ARRAY.finditer(text):
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, list):
            items = [item.strip() for item in parsed if isinstance(item, str) and item.strip()]
            if items:
                return items

    bullets = [
        line.strip()[1:].strip()
        for line in text.splitlines()
        if line.strip().startswith("-") and line.strip()[1:].strip()
    ]
    return bullets or None


def build_suggestion_prompt(
    *,
    notes: Optional[str],
    business_type: str,
    last_message: Optional[ChatMessage],
    locale: Optional[str],
) -> str:
    language = "Vietnamese" if resolve_locale(locale) == "vi" else "English"
    lines = [
        "You write quick-reply suggestions for a marketing assistant chat.",
        "",
        "CONTEXT:",
        f"- Onboarding: {'COMPLETED' if notes else 'NOT COMPLETED'}",
        f"- Business type: {business_type}",
    ]
    if notes:
        lines.append(f"- Business profile: {notes}")
    lines.extend(["", "LAST EXCHANGE:"])
    if last_message is None:
        lines.append("No messages yet")
    else:
        if last_message.question:
            lines.append(f"User: {last_message.question}")
        lines.append(f"Assistant: {last_message.ai_response}")
    lines.extend(
        [
            "",
            f"Write {_SUGGESTION_COUNT} short replies (8-15 words) the user might send next, in {language}.",
            'Return only a JSON array of strings, for example: ["Create a new campaign", "Show my campaigns"]',
        ]
    )
    return "\n".join(lines)


@dataclass(frozen=True)
class SuggestionResult:
    suggestions: list[str]
    is_ai_generated: bool


class SuggestionAgent:
    """Reply suggestions for the chat input; always returns something usable."""

    def __init__(self, oracle: Oracle) -> None:
        self.oracle = oracle

    def suggest(
        self,
        session: Session,
        *,
        user_id: str,
        session_id: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> SuggestionResult:
        user = UsersRepository(session).get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found", details={"userId": user_id})

        recent = ChatMessagesRepository(session).recent(user_id=user_id, session_id=session_id, limit=1)
        prompt = build_suggestion_prompt(
            notes=user.notes,
            business_type=detect_business_type(user.notes),
            last_message=recent[-1] if recent else None,
            locale=locale,
        )
        try:
            text = self.oracle.generate_text(
                prompt,
                LLMGenerationParams(
                    model=settings.OPENAI_SUGGESTION_MODEL,
                    temperature=settings.OPENAI_SUGGESTION_TEMPERATURE,
                ),
            )
        except OracleError as exc:
            logger.warning("Suggestion generation failed", extra={"user_id": user_id, "error": exc.message})
            return SuggestionResult(fallback_suggestions(bool(user.notes), locale), is_ai_generated=False)

        parsed = parse_suggestions(text)
        if not parsed:
            logger.info("Suggestion output was not parseable", extra={"user_id": user_id})
            return SuggestionResult(fallback_suggestions(bool(user.notes), locale), is_ai_generated=False)
        return SuggestionResult(parsed[:_SUGGESTION_COUNT], is_ai_generated=True)
