from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from marketing_assistant.agent import tools as tools_module
from marketing_assistant.agent.confirmation import confirm_tool_call
from marketing_assistant.agent.tools import build_runtime
from marketing_assistant.agent.types import ToolName, ToolStatus
from marketing_assistant.db.models import Campaign, ScheduleItem
from marketing_assistant.db.repositories import CampaignsRepository
from marketing_assistant.errors import ToolValidationError


CAMPAIGN_DATA = {
    "name": "New Year Launch",
    "objectives": "Bring in weekday visitors",
    "target_audience": "Office workers nearby",
    "budget": 500,
    "startDate": "2024-01-01",
    "endDate": "2024-01-21",
}


def _runtime(db_session, user_id: str):
    return build_runtime(session=db_session, user_id=user_id, session_id="session-1", locale="en")


def _count(db_session, model) -> int:
    return db_session.scalar(select(func.count()).select_from(model))


def _campaign(db_session, user_id: str) -> Campaign:
    return CampaignsRepository(db_session).create(
        user_id,
        "New Year Launch",
        objectives="Bring in weekday visitors",
        target_audience="Office workers nearby",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 21),
    )


def test_campaign_preview_writes_nothing(db_session, seed_user) -> None:
    runtime = _runtime(db_session, seed_user.id)

    step = runtime.invoke_tool(
        tool_name=ToolName.create_campaign,
        raw_args={"campaignData": CAMPAIGN_DATA, "confirmationReceived": False},
    )

    assert step.status == ToolStatus.pending_confirmation
    assert _count(db_session, Campaign) == 0
    pending = step.result["pending"]
    assert pending["toolName"] == "Create_Campaign"
    assert pending["toolInput"]["confirmationReceived"] is True
    assert pending["toolInput"]["campaignData"]["name"] == "New Year Launch"
    assert any("2024-01-01 to 2024-01-21" in line for line in pending["preview"]["details"])
    assert step.result["uiDetails"]["action"] == "confirm_tool"


def test_campaign_confirm_inserts_exactly_once(db_session, seed_user) -> None:
    runtime = _runtime(db_session, seed_user.id)
    preview = runtime.invoke_tool(
        tool_name=ToolName.create_campaign,
        raw_args={"campaignData": CAMPAIGN_DATA},
    )

    outcome = confirm_tool_call(
        runtime=runtime,
        tool_name="Create_Campaign",
        tool_input=preview.result["pending"]["toolInput"],
        action="confirm",
    )

    assert outcome["success"] is True
    assert _count(db_session, Campaign) == 1
    invocation = outcome["toolInvocation"]
    assert invocation["status"] == "completed"
    assert invocation["result"]["nextTool"] == "Create_Content_Schedule"
    campaign = db_session.scalars(select(Campaign)).one()
    assert campaign.start_date == date(2024, 1, 1)
    assert float(campaign.budget) == 500.0


def test_cancel_writes_nothing(db_session, seed_user) -> None:
    runtime = _runtime(db_session, seed_user.id)

    outcome = confirm_tool_call(
        runtime=runtime,
        tool_name="Create_Campaign",
        tool_input={"campaignData": CAMPAIGN_DATA, "confirmationReceived": True},
        action="cancel",
    )

    assert outcome == {
        "success": True,
        "message": "Okay, I cancelled Create_Campaign. Nothing was changed.",
        "toolInvocation": None,
    }
    assert _count(db_session, Campaign) == 0


def test_preview_resolves_default_dates(db_session, seed_user, monkeypatch) -> None:
    monkeypatch.setattr(tools_module, "_today", lambda: date(2024, 6, 3))
    runtime = _runtime(db_session, seed_user.id)
    data = {key: value for key, value in CAMPAIGN_DATA.items() if key not in ("startDate", "endDate")}

    step = runtime.invoke_tool(tool_name=ToolName.create_campaign, raw_args={"campaignData": data})

    resolved = step.result["pending"]["toolInput"]["campaignData"]
    assert resolved["startDate"] == "2024-06-03"
    assert resolved["endDate"] == (date(2024, 6, 3) + timedelta(days=27)).isoformat()


def test_reversed_dates_fail_validation(db_session, seed_user) -> None:
    runtime = _runtime(db_session, seed_user.id)
    data = {**CAMPAIGN_DATA, "startDate": "2024-02-01", "endDate": "2024-01-01"}

    step = runtime.invoke_tool(tool_name=ToolName.create_campaign, raw_args={"campaignData": data})

    assert step.status == ToolStatus.failed
    assert step.error["code"] == "validation_error"


def test_schedule_preview_then_confirm(db_session, seed_user) -> None:
    campaign = _campaign(db_session, seed_user.id)
    runtime = _runtime(db_session, seed_user.id)

    preview = runtime.invoke_tool(
        tool_name=ToolName.create_content_schedule,
        raw_args={
            "campaignId": campaign.id,
            "contentStrategy": {"platforms": ["Facebook", "instagram", "facebook"], "frequency": 3},
        },
    )

    assert preview.status == ToolStatus.pending_confirmation
    assert _count(db_session, ScheduleItem) == 0
    pending = preview.result["pending"]
    strategy = pending["toolInput"]["contentStrategy"]
    assert strategy["platforms"] == ["facebook", "instagram"]
    assert strategy["frequency"] == 3
    assert len(strategy["pillars"]) == 7
    assert "Total posts: 18" in pending["preview"]["details"]
    assert pending["preview"]["sample"]["columns"][0] == "date"

    outcome = confirm_tool_call(
        runtime=runtime,
        tool_name=ToolName.create_content_schedule.value,
        tool_input=pending["toolInput"],
        action="confirm",
    )

    assert outcome["success"] is True
    assert _count(db_session, ScheduleItem) == 18
    result = outcome["toolInvocation"]["result"]
    assert result["output"]["createdCount"] == 18
    assert result["nextTool"] == "Get_Schedule"


def test_confirming_a_read_only_tool_is_rejected(db_session, seed_user) -> None:
    runtime = _runtime(db_session, seed_user.id)

    with pytest.raises(ToolValidationError):
        confirm_tool_call(runtime=runtime, tool_name="Get_Campaign", tool_input={}, action="confirm")


def test_confirm_for_missing_campaign_reports_failure(db_session, seed_user) -> None:
    runtime = _runtime(db_session, seed_user.id)

    outcome = confirm_tool_call(
        runtime=runtime,
        tool_name="Create_Content_Schedule",
        tool_input={"campaignId": "does-not-exist"},
        action="confirm",
    )

    assert outcome["success"] is False
    assert outcome["toolInvocation"]["status"] == "failed"
    assert "could not be completed" in outcome["message"]
    assert _count(db_session, ScheduleItem) == 0
