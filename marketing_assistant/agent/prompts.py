from __future__ import annotations

import re
from datetime import date
from typing import Any, Optional

from marketing_assistant.messages import resolve_locale

_LANGUAGE_NAMES = {"en": "English", "vi": "Vietnamese"}

SYSTEM_PROMPT = """You are a friendly AI marketing assistant for local businesses that have no marketing expertise.
You help them understand their customers, create campaigns, plan content schedules and keep improving.

Guide the user step by step: onboarding -> campaign -> content schedule -> optimisation.
Speak simply and warmly, like a friend who knows marketing. Avoid jargon.
Always end with one concrete suggestion for the next step.

Tool rules:
- If the user has no business profile yet, call Show_Onboarding_Form before anything else.
- After the user shares business details, write a 3-4 sentence brand paragraph and save it with Add_Onboarding_Data.
  Use isUpdate=true when adding to an existing profile.
- When the user wants a new campaign and has not given the details, call Show_Campaign_Form instead of asking one question at a time.
- Create_Campaign and Create_Content_Schedule only prepare a preview. The user confirms in the interface; never claim
  that something was saved while it is still waiting for confirmation.
- After a campaign is created, offer to build its content schedule with Create_Content_Schedule.
- Use Get_Campaign and Get_Schedule to look up existing data. Summarise results in natural language and do not
  list internal ids unless the user asks for them.
- Never invent campaign ids. Look them up with Get_Campaign first.
- Do not thank the user for the business context below; answer only their actual message."""


def build_system_prompt(*, notes: Optional[str], locale: Optional[str], today: date) -> str:
    language = _LANGUAGE_NAMES[resolve_locale(locale)]
    sections = [
        SYSTEM_PROMPT,
        "CURRENT CONTEXT:",
        f"- Today: {today.isoformat()}",
        f"- Onboarding status: {'COMPLETED' if notes else 'NOT COMPLETED'}",
        f"- Reply language: {language}",
    ]
    if notes:
        sections.append(f"BUSINESS PROFILE:\n{notes}")
    return "\n\n".join(sections)


def welcome_instruction(*, has_profile: bool) -> str:
    if has_profile:
        return (
            "The user just opened a new chat. Greet them briefly and ask what they would like to work on today. "
            "Do not show the onboarding form."
        )
    return (
        "The user just opened a new chat for the first time. Introduce yourself in two sentences, explain how you "
        "can help with marketing content and campaigns, and offer to set up their business profile."
    )


def _label(key: str) -> str:
    spaced = re.sub(r"(?<=[a-z0-9])([A-Z])", r" \1", key).replace("_", " ").strip()
    return spaced[:1].upper() + spaced[1:].lower()


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item).strip() for item in value if str(item).strip())
    return str(value).strip()


def profile_text(data: dict[str, Any]) -> str:
    """Plain profile built straight from form fields, used when no paragraph can be written."""
    parts = []
    for key, value in data.items():
        if value is None:
            continue
        formatted = _format_value(value)
        if formatted:
            parts.append(f"{_label(key)}: {formatted}")
    return ". ".join(parts) + ("." if parts else "")


def business_paragraph_prompt(data: dict[str, Any], *, locale: Optional[str]) -> str:
    language = _LANGUAGE_NAMES[resolve_locale(locale)]
    return (
        "Rewrite the business information below into one brand profile paragraph of 3-4 sentences, "
        f"written in {language}. Make it natural and warm, tell the brand's story, and keep every concrete fact. "
        "Return only the paragraph.\n\n"
        f"BUSINESS INFORMATION:\n{profile_text(data)}"
    )
