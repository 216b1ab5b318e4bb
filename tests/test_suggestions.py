import pytest

from conftest import FakeOracle

from marketing_assistant.agent.suggestions import SuggestionAgent, detect_business_type, parse_suggestions
from marketing_assistant.db.repositories import ChatMessagesRepository
from marketing_assistant.errors import NotFoundError, OracleError
from marketing_assistant.messages import fallback_suggestions


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('["Create a campaign", "Show my schedule"]', ["Create a campaign", "Show my schedule"]),
        ('Here you go:\n["One idea", " Two ideas "]\nEnjoy!', ["One idea", "Two ideas"]),
        ("- First reply\n- Second reply\nnot a bullet", ["First reply", "Second reply"]),
        ("Nothing useful here.", None),
        ("", None),
        ("[1, 2, 3]", None),
    ],
)
def test_parse_suggestions(text: str, expected) -> None:
    assert parse_suggestions(text) == expected


@pytest.mark.parametrize(
    ("notes", "expected"),
    [
        (None, "unknown"),
        ("Quán cà phê nhỏ ở Quận 1", "coffee_shop"),
        ("We run a family Restaurant", "restaurant"),
        ("Day spa with massage packages", "spa"),
        ("Online shop for handmade bags", "retail"),
        ("Accounting services for freelancers", "general_business"),
    ],
)
def test_detect_business_type(notes, expected: str) -> None:
    assert detect_business_type(notes) == expected


def test_ai_suggestions_are_capped(db_session, onboarded_user) -> None:
    oracle = FakeOracle(text='["a", "b", "c", "d", "e"]')
    ChatMessagesRepository(db_session).append(
        user_id=onboarded_user.id,
        session_id="s1",
        question="How do I get more customers?",
        ai_response="Let's start with a campaign.",
    )

    result = SuggestionAgent(oracle).suggest(db_session, user_id=onboarded_user.id, session_id="s1")

    assert result.is_ai_generated is True
    assert result.suggestions == ["a", "b", "c", "d"]
    prompt = oracle.text_calls[0]
    assert "Business type: coffee_shop" in prompt
    assert "User: How do I get more customers?" in prompt


def test_oracle_failure_uses_fallback(db_session, seed_user) -> None:
    oracle = FakeOracle(text=OracleError("Request timed out."))

    result = SuggestionAgent(oracle).suggest(db_session, user_id=seed_user.id, locale="vi")

    assert result.is_ai_generated is False
    assert result.suggestions == fallback_suggestions(False, "vi")


def test_unparseable_output_uses_fallback(db_session, onboarded_user) -> None:
    result = SuggestionAgent(FakeOracle(text="I cannot help with that.")).suggest(
        db_session, user_id=onboarded_user.id
    )

    assert result.is_ai_generated is False
    assert result.suggestions == fallback_suggestions(True, "en")


def test_unknown_user_raises(db_session) -> None:
    with pytest.raises(NotFoundError):
        SuggestionAgent(FakeOracle()).suggest(db_session, user_id="ghost")
