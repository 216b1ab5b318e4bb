import pytest
from sqlalchemy import func, select

from conftest import FakeOracle, tool_call

from marketing_assistant.agent.orchestrator import (
    MarketingAgent,
    campaign_data_from_form,
    render_transcript,
    waiting_for_campaign_form,
)
from marketing_assistant.agent.types import ToolInvocation, ToolStatus
from marketing_assistant.db.models import Campaign, ChatMessage
from marketing_assistant.db.repositories import ChatMessagesRepository
from marketing_assistant.errors import NotFoundError, OracleError, RateLimitError, ToolValidationError
from marketing_assistant.llm.client import OracleReply
from marketing_assistant.messages import get_message
from marketing_assistant.schemas.chat import TurnRequest
from marketing_assistant.services.rate_limiter import NewChatLimiter, RateLimiter, TurnLimiters


def _request(user_id: str, **fields) -> TurnRequest:
    return TurnRequest(userId=user_id, **fields)


def _history(db_session) -> list[ChatMessage]:
    return list(db_session.scalars(select(ChatMessage).order_by(ChatMessage.created_at)).all())


def test_plain_answer_is_returned_and_saved(db_session, onboarded_user) -> None:
    oracle = FakeOracle(replies=[OracleReply(content="Try a latte art workshop this weekend!")])
    agent = MarketingAgent(oracle)

    response = agent.process_turn(db_session, _request(onboarded_user.id, message="Any ideas for this week?"))

    assert response.success is True
    assert response.fallback is False
    assert response.response == "Try a latte art workshop this weekend!"
    assert response.toolInvocations == []
    rows = _history(db_session)
    assert len(rows) == 1
    assert rows[0].question == "Any ideas for this week?"
    assert rows[0].chat_session_id == response.sessionId


def test_system_prompt_carries_profile_and_tools(db_session, onboarded_user) -> None:
    oracle = FakeOracle(replies=[OracleReply(content="Hello!")])

    MarketingAgent(oracle).process_turn(db_session, _request(onboarded_user.id, message="Hi"))

    call = oracle.chat_calls[0]
    system = call["messages"][0]
    assert system["role"] == "system"
    assert "Onboarding status: COMPLETED" in system["content"]
    assert onboarded_user.notes in system["content"]
    assert call["messages"][-1] == {"role": "user", "content": "Hi"}
    assert len(call["tools"]) == 7


def test_tool_calls_are_executed_and_transcribed(db_session, onboarded_user) -> None:
    oracle = FakeOracle(
        replies=[
            OracleReply(tool_calls=[tool_call("Get_Campaign", {})]),
            OracleReply(content="You have no campaigns yet. Shall we create one?"),
        ]
    )
    events: list[dict] = []

    response = MarketingAgent(oracle).process_turn(
        db_session,
        _request(onboarded_user.id, message="Show my campaigns"),
        on_event=events.append,
    )

    assert [step.toolName for step in response.toolInvocations] == ["Get_Campaign"]
    assert response.toolInvocations[0].status == ToolStatus.completed
    assert response.response.startswith(get_message("transcript_heading", "en"))
    assert "**Get_Campaign** (completed)" in response.response
    assert response.response.endswith("You have no campaigns yet. Shall we create one?")
    second_call = oracle.chat_calls[1]["messages"]
    assert second_call[-1]["role"] == "tool"
    assert second_call[-1]["tool_call_id"] == "call_Get_Campaign"
    assert second_call[-2]["tool_calls"][0]["function"]["name"] == "Get_Campaign"
    assert [event["type"] for event in events] == ["turn_started", "tool_called", "tool_result", "turn_finished"]


def test_loop_stops_at_iteration_cap(db_session, onboarded_user) -> None:
    replies = [OracleReply(tool_calls=[tool_call("Get_Campaign", {}, call_id=f"call_{index}")]) for index in range(5)]
    oracle = FakeOracle(replies=replies)

    response = MarketingAgent(oracle, max_iterations=3).process_turn(
        db_session, _request(onboarded_user.id, message="Loop forever")
    )

    assert len(oracle.chat_calls) == 3
    assert len(response.toolInvocations) == 3
    assert response.success is True


def test_failed_tool_does_not_fail_the_turn(db_session, onboarded_user) -> None:
    oracle = FakeOracle(
        replies=[
            OracleReply(tool_calls=[tool_call("Get_Schedule", {"campaign_id": "nope"})]),
            OracleReply(content="I couldn't find that campaign."),
        ]
    )

    response = MarketingAgent(oracle).process_turn(db_session, _request(onboarded_user.id, message="Schedule?"))

    assert response.success is True
    assert response.toolInvocations[0].status == ToolStatus.failed
    assert response.toolInvocations[0].error["code"] == "not_found"
    assert "(failed)" in response.response


def test_oracle_timeout_returns_fallback_for_new_user(db_session, seed_user, failing_oracle) -> None:
    response = MarketingAgent(failing_oracle).process_turn(db_session, _request(seed_user.id, message="Hello"))

    assert response.success is True
    assert response.fallback is True
    assert response.error == "oracle_unavailable"
    assert response.response.startswith(get_message("oracle_apology", "en"))
    assert get_message("onboarding_guidance", "en") in response.response
    assert _history(db_session) == []


def test_oracle_failure_for_onboarded_user_lists_capabilities(db_session, onboarded_user, failing_oracle) -> None:
    response = MarketingAgent(failing_oracle).process_turn(
        db_session, _request(onboarded_user.id, message="Xin chào", locale="vi")
    )

    assert response.fallback is True
    assert get_message("oracle_apology", "vi") in response.response
    assert get_message("capabilities_overview", "vi") in response.response


def test_oracle_failure_mid_loop_keeps_completed_steps(db_session, onboarded_user) -> None:
    oracle = FakeOracle(
        replies=[
            OracleReply(tool_calls=[tool_call("Get_Campaign", {})]),
            OracleError("Connection reset"),
        ]
    )

    response = MarketingAgent(oracle).process_turn(db_session, _request(onboarded_user.id, message="Campaigns?"))

    assert response.fallback is True
    assert [step.toolName for step in response.toolInvocations] == ["Get_Campaign"]


def test_welcome_turn_has_no_question(db_session, seed_user) -> None:
    oracle = FakeOracle(replies=[OracleReply(content="Welcome! I'm your marketing assistant.")])

    response = MarketingAgent(oracle).process_turn(db_session, _request(seed_user.id, isWelcomeMessage=True))

    rows = _history(db_session)
    assert rows[0].question is None
    assert rows[0].ai_response == response.response
    assert "first time" in oracle.chat_calls[0]["messages"][-1]["content"]


def test_empty_message_is_rejected(db_session, seed_user) -> None:
    with pytest.raises(ToolValidationError):
        MarketingAgent(FakeOracle()).process_turn(db_session, _request(seed_user.id, message="   "))


def test_unknown_user_is_not_found(db_session) -> None:
    with pytest.raises(NotFoundError):
        MarketingAgent(FakeOracle()).process_turn(db_session, _request("ghost", message="Hi"))


def test_rate_limit_is_checked_before_the_oracle(db_session, seed_user) -> None:
    oracle = FakeOracle()
    limiters = TurnLimiters(
        messages=RateLimiter(min_interval=60, max_per_minute=10),
        new_chats=NewChatLimiter(min_interval=0, max_per_hour=10),
    )
    agent = MarketingAgent(oracle, limiters=limiters)

    first = agent.process_turn(db_session, _request(seed_user.id, message="One"))
    with pytest.raises(RateLimitError):
        agent.process_turn(db_session, _request(seed_user.id, message="Two", sessionId=first.sessionId))

    assert len(oracle.chat_calls) == 1


def test_history_is_replayed_for_existing_session(db_session, onboarded_user) -> None:
    ChatMessagesRepository(db_session).append(
        user_id=onboarded_user.id,
        session_id="session-9",
        question="What is a content pillar?",
        ai_response="A recurring theme for your posts.",
    )
    oracle = FakeOracle(replies=[OracleReply(content="Sure.")])

    MarketingAgent(oracle).process_turn(
        db_session, _request(onboarded_user.id, message="Give me an example", sessionId="session-9")
    )

    messages = oracle.chat_calls[0]["messages"]
    assert messages[1] == {"role": "user", "content": "What is a content pillar?"}
    assert messages[2] == {"role": "assistant", "content": "A recurring theme for your posts."}


def test_waiting_for_campaign_form_skips_the_oracle(db_session, onboarded_user) -> None:
    oracle = FakeOracle(
        replies=[
            OracleReply(tool_calls=[tool_call("Show_Campaign_Form", {"userRequest": "new campaign"})]),
            OracleReply(content="Please fill in the form."),
        ]
    )
    agent = MarketingAgent(oracle)
    first = agent.process_turn(db_session, _request(onboarded_user.id, message="I want a new campaign"))

    second = agent.process_turn(
        db_session, _request(onboarded_user.id, message="What now?", sessionId=first.sessionId)
    )

    assert second.waitingForCampaignForm is True
    assert get_message("campaign_form_reminder", "en") in second.response
    assert len(oracle.chat_calls) == 2


def test_onboarding_form_submission_saves_profile(db_session, seed_user) -> None:
    oracle = FakeOracle(text="Lan's Coffee is a cozy neighbourhood cafe.")

    response = MarketingAgent(oracle).process_turn(
        db_session,
        _request(seed_user.id, priorOnboardingData={"businessName": "Lan's Coffee", "products": ["coffee", "tea"]}),
    )

    assert oracle.chat_calls == []
    assert "Business name: Lan's Coffee" in oracle.text_calls[0]
    assert response.toolInvocations[0].toolName == "Add_Onboarding_Data"
    db_session.refresh(seed_user)
    assert seed_user.notes == "Lan's Coffee is a cozy neighbourhood cafe."


def test_onboarding_paragraph_falls_back_to_plain_profile(db_session, seed_user) -> None:
    oracle = FakeOracle(text=OracleError("Request timed out."))

    response = MarketingAgent(oracle).process_turn(
        db_session,
        _request(seed_user.id, priorOnboardingData={"businessName": "Lan's Coffee", "location": "District 1"}),
    )

    assert response.fallback is False
    db_session.refresh(seed_user)
    assert seed_user.notes == "Business name: Lan's Coffee. Location: District 1."


def test_campaign_form_submission_stops_at_preview(db_session, onboarded_user) -> None:
    response = MarketingAgent(FakeOracle()).process_turn(
        db_session,
        _request(
            onboarded_user.id,
            campaignFormData={
                "campaignName": "Summer Cold Brew",
                "goals": "Sell more cold brew",
                "targetAudience": "Students",
                "startDate": "2024-06-03",
                "endDate": "2024-06-30",
            },
        ),
    )

    step = response.toolInvocations[0]
    assert step.toolName == "Create_Campaign"
    assert step.status == ToolStatus.pending_confirmation
    assert step.result["pending"]["toolInput"]["campaignData"]["name"] == "Summer Cold Brew"
    assert db_session.scalar(select(func.count()).select_from(Campaign)) == 0


def test_campaign_data_from_form_maps_aliases() -> None:
    assert campaign_data_from_form(
        {"campaignName": "A", "goal": "B", "audience": "C", "budget": 10, "description": ""}
    ) == {"name": "A", "objectives": "B", "target_audience": "C", "budget": 10}


def test_waiting_for_campaign_form_tracks_latest_marker() -> None:
    shown = {"role": "assistant", "content": "1. **Show_Campaign_Form** (completed)"}
    created = {"role": "assistant", "content": "1. **Create_Campaign** (pending_confirmation)"}

    assert waiting_for_campaign_form([shown]) is True
    assert waiting_for_campaign_form([shown, created]) is False
    assert waiting_for_campaign_form([]) is False


def test_render_transcript_lists_errors() -> None:
    step = ToolInvocation(
        toolName="Get_Schedule",
        args={"campaign_id": "x"},
        status=ToolStatus.failed,
        error={"message": "Campaign x not found"},
    )

    text = render_transcript([step], "Done.", "en")

    assert "1. **Get_Schedule** (failed)" in text
    assert "Error: Campaign x not found" in text
    assert text.endswith("Done.")


SUMMER_CAMPAIGN = {
    "name": "Cold Brew Summer",
    "objectives": "Sell more cold brew",
    "target_audience": "Students",
    "startDate": "2024-06-03",
    "endDate": "2024-06-30",
}


def test_model_cannot_confirm_its_own_tool_call(db_session, onboarded_user) -> None:
    oracle = FakeOracle(
        replies=[
            OracleReply(
                tool_calls=[
                    tool_call("Create_Campaign", {"campaignData": SUMMER_CAMPAIGN, "confirmationReceived": True})
                ]
            ),
            OracleReply(content="Campaign created!"),
        ]
    )

    response = MarketingAgent(oracle).process_turn(
        db_session, _request(onboarded_user.id, message="Create it, no need to ask")
    )

    step = response.toolInvocations[0]
    assert step.status == ToolStatus.pending_confirmation
    assert step.args["confirmationReceived"] is False
    assert step.result["pending"]["toolInput"]["confirmationReceived"] is True
    assert db_session.scalar(select(func.count()).select_from(Campaign)) == 0


def test_preview_then_self_confirm_in_one_turn_still_waits(db_session, onboarded_user) -> None:
    oracle = FakeOracle(
        replies=[
            OracleReply(tool_calls=[tool_call("Create_Campaign", {"campaignData": SUMMER_CAMPAIGN})]),
            OracleReply(
                tool_calls=[
                    tool_call("Create_Campaign", {"campaignData": SUMMER_CAMPAIGN, "confirmationReceived": True})
                ]
            ),
            OracleReply(content="All set."),
        ]
    )

    response = MarketingAgent(oracle).process_turn(db_session, _request(onboarded_user.id, message="Go"))

    assert [step.status for step in response.toolInvocations] == [
        ToolStatus.pending_confirmation,
        ToolStatus.pending_confirmation,
    ]
    assert db_session.scalar(select(func.count()).select_from(Campaign)) == 0
