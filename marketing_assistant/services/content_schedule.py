from __future__ import annotations

import math
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any, Sequence

from marketing_assistant.db.enums import ContentCategoryEnum

# Sunday-is-0 weekday indices: Monday, Wednesday, Friday.
OPTIMAL_POSTING_DAYS = frozenset({1, 3, 5})
PROMOTIONAL_WEEK_PERIOD = 4

DEFAULT_PILLARS: tuple[str, ...] = (
    "Brand Story",
    "Product Showcase",
    "Customer Stories",
    "Tips & Education",
    "Promotions & Offers",
    "Behind the Scenes",
    "Community Engagement",
)

SAMPLE_COLUMNS = ["date", "week", "platform", "pillar", "category", "angle"]

_PILLAR_TEMPLATES: dict[str, tuple[str, ...]] = {
    "Brand Story": (
        "Tell the story of how the business started and why it matters to {audience}. "
        "Tie the founding moment back to the campaign goal: {goal}. Keep it personal and suited to {platform}.",
        "Share the values behind the brand with one concrete example {audience} will recognise. "
        "Close with a line connecting those values to {goal}. Format for {platform}.",
        "Introduce a person from the team and what they care about. Show how their work helps "
        "{audience} and supports {goal}. Use a warm, first-person tone on {platform}.",
    ),
    "Product Showcase": (
        "Feature one product or service up close: what it is, who it is for and the problem it solves for "
        "{audience}. Include a clear call to action that moves toward {goal}. Optimise visuals for {platform}.",
        "Show the product in real use with a short step-by-step. Highlight the detail {audience} "
        "cares about most and link it to {goal}. Keep captions short for {platform}.",
        "Compare two popular options side by side and help {audience} pick the right one. "
        "End with an invitation that supports {goal} on {platform}.",
    ),
    "Customer Stories": (
        "Share a real customer review and the result they got. Explain why it matters to {audience} "
        "and how it reflects {goal}. Ask permission and tag the customer on {platform} where possible.",
        "Post a before/after or first-visit story from a regular customer. Make it relatable for "
        "{audience} and finish with a prompt tied to {goal} on {platform}.",
        "Invite {audience} to share their own experience in the comments. Feature the best reply "
        "later in the week to support {goal}. Adapt the prompt for {platform}.",
    ),
    "Tips & Education": (
        "Teach {audience} one practical tip they can use today, related to what the business does. "
        "Position the business as the expert that helps them reach {goal}. Make it skimmable on {platform}.",
        "Bust a common myth {audience} believes about the category. Explain the truth in three short "
        "points and mention how it connects to {goal}. Suit the format to {platform}.",
        "Create a quick checklist or how-to that {audience} will want to save. Add a soft call to "
        "action toward {goal} at the end. Design it for {platform}.",
    ),
    "Promotions & Offers": (
        "Announce a time-limited offer for {audience} with the exact benefit, dates and how to claim it. "
        "Make the urgency clear and measure it against {goal}. Use a bold visual on {platform}.",
        "Promote a bundle or combo that gives {audience} more value. Explain the saving in one line "
        "and drive sign-ups or visits for {goal} on {platform}.",
        "Reward loyal customers with a members-only perk. Tell {audience} how to join and connect "
        "the perk to {goal}. Keep the message short for {platform}.",
    ),
    "Behind the Scenes": (
        "Take {audience} behind the counter: show how a product is prepared or a service is delivered. "
        "Let the craft speak for itself and hint at {goal}. Use short video on {platform} if possible.",
        "Show a day in the life of the team with three quick moments. Keep it honest and fun for "
        "{audience} while reinforcing {goal} on {platform}.",
        "Reveal something new being prepared for {audience}. Build anticipation and invite them to "
        "follow along, supporting {goal} on {platform}.",
    ),
    "Community Engagement": (
        "Ask {audience} a simple question or poll about their preferences. Reply to every answer and "
        "use the input to support {goal}. Use the native poll format on {platform}.",
        "Celebrate a local event, partner or cause that matters to {audience}. Show the business as "
        "part of the community and link it to {goal} on {platform}.",
        "Run a small giveaway: ask {audience} to comment, share or tag a friend. Keep the rules clear "
        "and the prize tied to {goal}. Follow {platform} promotion rules.",
    ),
}

_GENERIC_TEMPLATES: tuple[str, ...] = (
    "Create a {pillar} post for {audience} that supports the campaign goal: {goal}. "
    "Lead with one strong idea and finish with a clear next step. Format it for {platform}.",
    "Share a useful {pillar} moment that {audience} can relate to. Keep it authentic, add one visual "
    "and connect it back to {goal} on {platform}.",
    "Start a conversation with {audience} around {pillar}. Ask an open question and use the replies "
    "to move toward {goal}. Adapt the tone for {platform}.",
)

_PILLAR_ANGLES: dict[str, tuple[str, ...]] = {
    "Brand Story": ("Origin story", "Core values", "Meet the team", "Mission"),
    "Product Showcase": ("Close-up", "How it works", "Best seller", "Comparison"),
    "Customer Stories": ("Testimonial", "Before & after", "Customer spotlight", "User-generated content"),
    "Tips & Education": ("How-to", "Myth busting", "Checklist", "Expert tip"),
    "Promotions & Offers": ("Limited time", "Bundle value", "Loyalty reward", "Exclusive deal"),
    "Behind the Scenes": ("Process", "Day in the life", "Sneak peek", "Workspace"),
    "Community Engagement": ("Poll", "Local spotlight", "Giveaway", "Question of the week"),
}

_GENERIC_ANGLES: tuple[str, ...] = ("Informative", "Engaging", "Authentic", "Relatable")


@dataclass(frozen=True)
class ScheduleDraft:
    scheduled_date: date
    week_number: int
    platform: str
    content_pillar: str
    content_category: ContentCategoryEnum
    content_angle: str
    content_brief: str

    def to_row(self) -> dict[str, Any]:
        return asdict(self)

    def to_payload(self) -> dict[str, Any]:
        return {
            "scheduledDate": self.scheduled_date.isoformat(),
            "weekNumber": self.week_number,
            "platform": self.platform,
            "contentPillar": self.content_pillar,
            "contentCategory": self.content_category.value,
            "contentAngle": self.content_angle,
            "contentBrief": self.content_brief,
        }


def total_weeks(start_date: date, end_date: date) -> int:
    if end_date < start_date:
        return 0
    return math.ceil(((end_date - start_date).days + 1) / 7)


def _sunday_index(day: date) -> int:
    return (day.weekday() + 1) % 7


def category_for_week(week_index: int) -> ContentCategoryEnum:
    if week_index % PROMOTIONAL_WEEK_PERIOD == PROMOTIONAL_WEEK_PERIOD - 1:
        return ContentCategoryEnum.promotional
    return ContentCategoryEnum.organic


def render_brief(*, pillar: str, index: int, goal: str, audience: str, platform: str) -> str:
    templates = _PILLAR_TEMPLATES.get(pillar)
    if templates is None:
        template = _GENERIC_TEMPLATES[index % len(_GENERIC_TEMPLATES)]
    else:
        template = templates[index % len(templates)]
    return template.format(pillar=pillar, goal=goal, audience=audience, platform=platform)


def pick_angle(*, pillar: str, index: int) -> str:
    angles = _PILLAR_ANGLES.get(pillar, _GENERIC_ANGLES)
    return angles[index % len(angles)]


def generate_schedule(
    *,
    start_date: date,
    end_date: date,
    platforms: Sequence[str],
    pillars: Sequence[str],
    frequency: int,
    goal: str,
    target_audience: str,
) -> list[ScheduleDraft]:
    """
    Expand a campaign date range into dated content items.

    Each week posts on at most `frequency` of its Monday/Wednesday/Friday dates,
    and every posting date gets one item per platform. Pillars rotate on the
    running item count, so the rotation carries across week boundaries.
    """
    if not platforms or not pillars or frequency <= 0:
        return []

    drafts: list[ScheduleDraft] = []
    emitted = 0
    for week_index in range(total_weeks(start_date, end_date)):
        category = category_for_week(week_index)
        posting_days = 0
        for offset in range(7):
            day = start_date + timedelta(days=week_index * 7 + offset)
            if day > end_date:
                break
            if _sunday_index(day) not in OPTIMAL_POSTING_DAYS or posting_days >= frequency:
                continue
            for platform in platforms:
                pillar = pillars[emitted % len(pillars)]
                drafts.append(
                    ScheduleDraft(
                        scheduled_date=day,
                        week_number=week_index + 1,
                        platform=platform,
                        content_pillar=pillar,
                        content_category=category,
                        content_angle=pick_angle(pillar=pillar, index=emitted),
                        content_brief=render_brief(
                            pillar=pillar,
                            index=emitted,
                            goal=goal,
                            audience=target_audience,
                            platform=platform,
                        ),
                    )
                )
                emitted += 1
            posting_days += 1
    return drafts


def summarize_schedule(
    drafts: Sequence[ScheduleDraft],
    *,
    start_date: date,
    end_date: date,
    frequency: int,
) -> dict[str, Any]:
    days_per_week = Counter(week for week, _day in {(draft.week_number, draft.scheduled_date) for draft in drafts})

    # Measured in posting days, the unit `frequency` is expressed in.
    below_target = []
    for week_number in range(1, total_weeks(start_date, end_date) + 1):
        posted = days_per_week.get(week_number, 0)
        if posted < frequency:
            below_target.append({"week": week_number, "postingDays": posted, "target": frequency})

    return {
        "totalItems": len(drafts),
        "totalWeeks": total_weeks(start_date, end_date),
        "byPlatform": dict(Counter(draft.platform for draft in drafts)),
        "byPillar": dict(Counter(draft.content_pillar for draft in drafts)),
        "byCategory": dict(Counter(draft.content_category.value for draft in drafts)),
        "weeksBelowTarget": below_target,
    }


def sample_weeks(drafts: Sequence[ScheduleDraft], weeks: int) -> dict[str, Any]:
    """Preview table limited to the first `weeks` weeks."""
    rows = [
        [
            draft.scheduled_date.isoformat(),
            draft.week_number,
            draft.platform,
            draft.content_pillar,
            draft.content_category.value,
            draft.content_angle,
        ]
        for draft in drafts
        if draft.week_number <= weeks
    ]
    return {"columns": list(SAMPLE_COLUMNS), "rows": rows, "truncated": len(rows) < len(drafts)}
