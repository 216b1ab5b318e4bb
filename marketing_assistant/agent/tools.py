from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy.orm import Session

from marketing_assistant.agent.confirmation import ConfirmableTool
from marketing_assistant.agent.runtime import AgentRuntime, BaseTool
from marketing_assistant.agent.types import (
    ConfirmationPreview,
    SampleTable,
    ToolContext,
    ToolName,
    ToolResult,
)
from marketing_assistant.config import settings
from marketing_assistant.db.models import Campaign, ScheduleItem
from marketing_assistant.db.repositories import (
    CampaignsRepository,
    ScheduleRepository,
    UsersRepository,
)
from marketing_assistant.errors import NotFoundError, ToolValidationError
from marketing_assistant.messages import get_message
from marketing_assistant.services.content_schedule import (
    DEFAULT_PILLARS,
    ScheduleDraft,
    generate_schedule,
    sample_weeks,
    summarize_schedule,
)


def _today() -> date:
    return date.today()


def campaign_payload(campaign: Campaign, schedule_count: Optional[int] = None) -> dict[str, Any]:
    summary = {
        "id": campaign.id,
        "name": campaign.name,
        "objectives": campaign.objectives,
        "targetAudience": campaign.target_audience,
        "budget": float(campaign.budget) if campaign.budget is not None else None,
        "startDate": campaign.start_date.isoformat(),
        "endDate": campaign.end_date.isoformat(),
        "status": campaign.status.value,
        "notes": campaign.notes,
    }
    if schedule_count is not None:
        summary["scheduleItemCount"] = schedule_count
    return summary


def schedule_item_payload(item: ScheduleItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "campaignId": item.campaign_id,
        "scheduledDate": item.scheduled_date.isoformat(),
        "weekNumber": item.week_number,
        "platform": item.platform,
        "contentPillar": item.content_pillar,
        "contentCategory": item.content_category.value,
        "contentAngle": item.content_angle,
        "contentBrief": item.content_brief,
        "status": item.status.value,
    }


def _owned_campaign(ctx: ToolContext, campaign_id: str) -> Campaign:
    campaign = CampaignsRepository(ctx.session).get(ctx.user_id, campaign_id)
    if campaign is None:
        raise NotFoundError(f"Campaign {campaign_id} not found", details={"campaignId": campaign_id})
    return campaign


# --- Form tools ---------------------------------------------------------------


class ShowOnboardingFormArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    reason: str = Field(..., min_length=1, description="Why the business information is needed.")


class ShowOnboardingFormTool(BaseTool[ShowOnboardingFormArgs]):
    name = ToolName.show_onboarding_form
    description = (
        "Show the business onboarding form so the user can describe their business in one go. "
        "Use this whenever the user has no business profile yet."
    )
    ArgsModel = ShowOnboardingFormArgs

    def run(self, *, ctx: ToolContext, args: ShowOnboardingFormArgs) -> ToolResult:
        message = get_message("onboarding_form_message", ctx.locale, reason=args.reason)
        return ToolResult(
            llm_output={"status": "form_shown", "form": "onboarding"},
            ui_details={"action": "show_onboarding_form", "reason": args.reason, "message": message},
        )


class ShowCampaignFormArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    userRequest: str = Field(..., description="The user's request that led to showing the campaign form.")


class ShowCampaignFormTool(BaseTool[ShowCampaignFormArgs]):
    name = ToolName.show_campaign_form
    description = (
        "Show the new-campaign form (name, objectives, audience, dates, budget). "
        "Use this instead of asking for campaign details one question at a time."
    )
    ArgsModel = ShowCampaignFormArgs

    def run(self, *, ctx: ToolContext, args: ShowCampaignFormArgs) -> ToolResult:
        return ToolResult(
            llm_output={"status": "form_shown", "form": "campaign"},
            ui_details={
                "action": "show_campaign_form",
                "userRequest": args.userRequest,
                "message": get_message("campaign_form_message", ctx.locale),
            },
        )


# --- Onboarding ---------------------------------------------------------------


class AddOnboardingDataArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    businessInfo: str = Field(..., min_length=1, description="Short paragraph describing the business.")
    isUpdate: bool = Field(False, description="Append to the existing profile instead of replacing it.")


def merge_business_notes(existing: Optional[str], business_info: str, *, is_update: bool, today: date) -> str:
    if is_update and existing and existing.strip():
        return f"{existing.rstrip()}\n\n[Update {today.isoformat()}]\n{business_info}"
    return business_info


class AddOnboardingDataTool(BaseTool[AddOnboardingDataArgs]):
    name = ToolName.add_onboarding_data
    description = (
        "Save the business profile paragraph after the user shares their business information. "
        "Set isUpdate=true to add new details to an existing profile."
    )
    ArgsModel = AddOnboardingDataArgs

    def run(self, *, ctx: ToolContext, args: AddOnboardingDataArgs) -> ToolResult:
        repo = UsersRepository(ctx.session)
        user = repo.get(ctx.user_id)
        if user is None:
            raise NotFoundError(f"User {ctx.user_id} not found", details={"userId": ctx.user_id})

        notes = merge_business_notes(user.notes, args.businessInfo, is_update=args.isUpdate, today=_today())
        repo.set_notes(ctx.user_id, notes)
        return ToolResult(
            llm_output={"status": "saved", "isUpdate": args.isUpdate},
            ui_details={
                "action": "onboarding_saved",
                "notes": notes,
                "message": get_message("onboarding_saved", ctx.locale),
            },
        )


# --- Campaign creation --------------------------------------------------------


class CampaignData(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    objectives: str = Field(..., min_length=1)
    target_audience: str = Field(..., min_length=1)
    budget: Optional[float] = Field(None, ge=0)
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "CampaignData":
        if self.startDate and self.endDate and self.startDate > self.endDate:
            raise ValueError("startDate must be on or before endDate")
        return self


class CreateCampaignArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    campaignData: CampaignData
    confirmationReceived: bool = False


@dataclass(frozen=True)
class CampaignPlan:
    args: CreateCampaignArgs


class CreateCampaignTool(ConfirmableTool[CreateCampaignArgs, CampaignPlan]):
    name = ToolName.create_campaign
    description = (
        "Create a marketing campaign. Shows the user a preview; the campaign is only saved after "
        "the user confirms it in the interface."
    )
    ArgsModel = CreateCampaignArgs
    next_tool = ToolName.create_content_schedule

    def plan(self, *, ctx: ToolContext, args: CreateCampaignArgs) -> CampaignPlan:
        data = args.campaignData
        start = data.startDate or _today()
        end = data.endDate or start + timedelta(days=settings.CAMPAIGN_DEFAULT_DURATION_DAYS - 1)
        if start > end:
            raise ToolValidationError(
                "Campaign start date must be on or before the end date.",
                details={"startDate": start.isoformat(), "endDate": end.isoformat()},
            )
        resolved = data.model_copy(update={"startDate": start, "endDate": end})
        return CampaignPlan(args=args.model_copy(update={"campaignData": resolved}))

    def resolved_args(self, plan: CampaignPlan) -> BaseModel:
        return plan.args

    def preview(self, plan: CampaignPlan) -> ConfirmationPreview:
        data = plan.args.campaignData
        details = [
            f"Name: {data.name}",
            f"Objectives: {data.objectives}",
            f"Target audience: {data.target_audience}",
            f"Dates: {data.startDate.isoformat()} to {data.endDate.isoformat()}",
            f"Budget: {data.budget:,.2f}" if data.budget is not None else "Budget: not set",
        ]
        if data.notes:
            details.append(f"Notes: {data.notes}")
        return ConfirmationPreview(title=f"Create campaign '{data.name}'", details=details)

    def commit(self, *, ctx: ToolContext, plan: CampaignPlan) -> ToolResult:
        data = plan.args.campaignData
        campaign = CampaignsRepository(ctx.session).create(
            ctx.user_id,
            data.name,
            objectives=data.objectives,
            target_audience=data.target_audience,
            budget=data.budget,
            start_date=data.startDate,
            end_date=data.endDate,
            notes=data.notes,
        )
        summary = campaign_payload(campaign)
        return ToolResult(
            llm_output={
                "status": "created",
                "campaignId": campaign.id,
                "name": campaign.name,
                "startDate": summary["startDate"],
                "endDate": summary["endDate"],
            },
            ui_details={"action": "campaign_created", "campaign": summary},
        )


# --- Content schedule ---------------------------------------------------------


def _clean_list(values: Optional[list[str]], *, lower: bool = False) -> Optional[list[str]]:
    if values is None:
        return None
    cleaned: list[str] = []
    for value in values:
        item = value.strip()
        if lower:
            item = item.lower()
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned or None


class ContentStrategy(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pillars: Optional[list[str]] = None
    platforms: Optional[list[str]] = None
    frequency: Optional[int] = Field(None, ge=1, le=14, description="Posting days per week.")

    @field_validator("pillars")
    @classmethod
    def _clean_pillars(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return _clean_list(value)

    @field_validator("platforms")
    @classmethod
    def _clean_platforms(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return _clean_list(value, lower=True)


class CreateContentScheduleArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    campaignId: str = Field(..., min_length=1)
    analysisNotes: Optional[str] = None
    contentStrategy: Optional[ContentStrategy] = None
    confirmationReceived: bool = False


@dataclass(frozen=True)
class SchedulePlan:
    args: CreateContentScheduleArgs
    campaign: Campaign
    pillars: list[str]
    platforms: list[str]
    frequency: int
    drafts: list[ScheduleDraft]
    stats: dict[str, Any]


class CreateContentScheduleTool(ConfirmableTool[CreateContentScheduleArgs, SchedulePlan]):
    name = ToolName.create_content_schedule
    description = (
        "Generate a content calendar for one of the user's campaigns: posts on Mondays, Wednesdays and "
        "Fridays across the chosen platforms, rotating content pillars. Shows a "
        "preview; items are only saved after the user confirms it in the interface."
    )
    ArgsModel = CreateContentScheduleArgs
    next_tool = ToolName.get_schedule

    def plan(self, *, ctx: ToolContext, args: CreateContentScheduleArgs) -> SchedulePlan:
        campaign = _owned_campaign(ctx, args.campaignId)
        strategy = args.contentStrategy or ContentStrategy()
        pillars = strategy.pillars or list(DEFAULT_PILLARS)
        platforms = strategy.platforms or list(settings.SCHEDULE_DEFAULT_PLATFORMS)
        frequency = strategy.frequency or settings.SCHEDULE_DEFAULT_FREQUENCY

        drafts = generate_schedule(
            start_date=campaign.start_date,
            end_date=campaign.end_date,
            platforms=platforms,
            pillars=pillars,
            frequency=frequency,
            goal=campaign.objectives,
            target_audience=campaign.target_audience,
        )
        stats = summarize_schedule(
            drafts,
            start_date=campaign.start_date,
            end_date=campaign.end_date,
            frequency=frequency,
        )
        resolved = args.model_copy(
            update={
                "contentStrategy": ContentStrategy(pillars=pillars, platforms=platforms, frequency=frequency),
            }
        )
        return SchedulePlan(
            args=resolved,
            campaign=campaign,
            pillars=pillars,
            platforms=platforms,
            frequency=frequency,
            drafts=drafts,
            stats=stats,
        )

    def resolved_args(self, plan: SchedulePlan) -> BaseModel:
        return plan.args

    def preview(self, plan: SchedulePlan) -> ConfirmationPreview:
        campaign = plan.campaign
        stats = plan.stats
        details = [
            f"Campaign: {campaign.name}",
            f"Dates: {campaign.start_date.isoformat()} to {campaign.end_date.isoformat()} ({stats['totalWeeks']} weeks)",
            f"Platforms: {', '.join(plan.platforms)}",
            f"Content pillars: {', '.join(plan.pillars)}",
            f"Posting days per week: {plan.frequency} (Monday, Wednesday, Friday)",
            f"Total posts: {stats['totalItems']}",
        ]
        if stats["weeksBelowTarget"]:
            weeks = ", ".join(str(entry["week"]) for entry in stats["weeksBelowTarget"])
            details.append(f"Weeks with fewer posts than the target: {weeks}")
        sample = sample_weeks(plan.drafts, settings.SCHEDULE_SAMPLE_WEEKS)
        return ConfirmationPreview(
            title=f"Create content schedule for '{campaign.name}'",
            details=details,
            sample=SampleTable(**sample),
        )

    def commit(self, *, ctx: ToolContext, plan: SchedulePlan) -> ToolResult:
        items = ScheduleRepository(ctx.session).bulk_create(
            ctx.user_id,
            plan.campaign.id,
            [draft.to_row() for draft in plan.drafts],
        )
        limit = settings.SCHEDULE_PREVIEW_ITEM_LIMIT
        return ToolResult(
            llm_output={
                "status": "created",
                "campaignId": plan.campaign.id,
                "createdCount": len(items),
                "byPlatform": plan.stats["byPlatform"],
                "byPillar": plan.stats["byPillar"],
                "weeksBelowTarget": plan.stats["weeksBelowTarget"],
            },
            ui_details={
                "action": "schedule_created",
                "campaignId": plan.campaign.id,
                "campaignName": plan.campaign.name,
                "createdCount": len(items),
                "items": [schedule_item_payload(item) for item in items[:limit]],
                "itemsTruncated": len(items) > limit,
                "stats": plan.stats,
            },
        )


# --- Read-only tools ----------------------------------------------------------


class GetCampaignArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    filter: Optional[str] = Field(None, description="Case-insensitive text to match in name or objectives.")


class GetCampaignTool(BaseTool[GetCampaignArgs]):
    name = ToolName.get_campaign
    description = "List the user's campaigns, newest first, optionally filtered by name or objectives."
    ArgsModel = GetCampaignArgs

    def run(self, *, ctx: ToolContext, args: GetCampaignArgs) -> ToolResult:
        repo = CampaignsRepository(ctx.session)
        campaigns = repo.list(ctx.user_id, search=args.filter or None)
        counts = repo.schedule_counts(ctx.user_id, [campaign.id for campaign in campaigns])
        summaries = [campaign_payload(campaign, counts.get(campaign.id, 0)) for campaign in campaigns]
        return ToolResult(
            llm_output={"count": len(summaries), "campaigns": summaries},
            ui_details={"action": "campaign_list", "campaigns": summaries},
        )


class GetScheduleArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    campaign_id: str = Field(..., min_length=1)


class GetScheduleTool(BaseTool[GetScheduleArgs]):
    name = ToolName.get_schedule
    description = "Get the content schedule of one campaign, ordered by date and platform."
    ArgsModel = GetScheduleArgs

    def run(self, *, ctx: ToolContext, args: GetScheduleArgs) -> ToolResult:
        campaign = _owned_campaign(ctx, args.campaign_id)
        items = ScheduleRepository(ctx.session).list(ctx.user_id, campaign_id=campaign.id)
        payloads = [schedule_item_payload(item) for item in items]
        limit = settings.SCHEDULE_PREVIEW_ITEM_LIMIT
        compact = [
            {key: entry[key] for key in ("scheduledDate", "platform", "contentPillar", "contentCategory", "contentAngle")}
            for entry in payloads[:limit]
        ]
        return ToolResult(
            llm_output={"campaignId": campaign.id, "campaignName": campaign.name, "total": len(items), "items": compact},
            ui_details={"action": "schedule_list", "campaign": campaign_payload(campaign), "items": payloads},
        )


# --- Registry -----------------------------------------------------------------


TOOL_CLASSES: dict[ToolName, type[BaseTool]] = {
    ToolName.show_onboarding_form: ShowOnboardingFormTool,
    ToolName.add_onboarding_data: AddOnboardingDataTool,
    ToolName.show_campaign_form: ShowCampaignFormTool,
    ToolName.create_campaign: CreateCampaignTool,
    ToolName.create_content_schedule: CreateContentScheduleTool,
    ToolName.get_campaign: GetCampaignTool,
    ToolName.get_schedule: GetScheduleTool,
}


def _check_registry() -> None:
    missing = set(ToolName) - set(TOOL_CLASSES)
    if missing:
        raise RuntimeError(f"Tools without an implementation: {sorted(name.value for name in missing)}")
    for key, tool_cls in TOOL_CLASSES.items():
        if tool_cls.name is not key:
            raise RuntimeError(f"Tool class {tool_cls.__name__} is registered under {key.value}")


_check_registry()


def build_tool_registry() -> dict[ToolName, BaseTool]:
    return {name: tool_cls() for name, tool_cls in TOOL_CLASSES.items()}


def tool_schemas(registry: dict[ToolName, BaseTool]) -> list[dict[str, Any]]:
    return [tool.function_schema() for tool in registry.values()]


def build_runtime(
    *,
    session: Session,
    user_id: str,
    session_id: Optional[str] = None,
    locale: Optional[str] = None,
) -> AgentRuntime:
    """Runtime scoped to one user; every tool it runs reads and writes only that user's rows."""
    return AgentRuntime(
        session=session,
        user_id=user_id,
        tools=build_tool_registry(),
        session_id=session_id,
        locale=locale,
    )
