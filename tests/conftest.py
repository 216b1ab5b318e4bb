import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_marketing_assistant.db")
os.environ.setdefault("LANGFUSE_ENABLED", "false")
os.environ.setdefault("LANGFUSE_REQUIRED", "false")
os.environ.setdefault("OPENAI_API_KEY", "")

from fastapi.testclient import TestClient  # noqa: E402

from marketing_assistant.db.base import Base, SessionLocal, engine, init_db  # noqa: E402
from marketing_assistant.db.deps import get_session  # noqa: E402
from marketing_assistant.db.models import User  # noqa: E402
from marketing_assistant.dependencies import get_limiters, get_oracle  # noqa: E402
from marketing_assistant.errors import OracleError  # noqa: E402
from marketing_assistant.llm.client import LLMGenerationParams, OracleReply, OracleToolCall  # noqa: E402
from marketing_assistant.main import app  # noqa: E402
from marketing_assistant.services.rate_limiter import NewChatLimiter, RateLimiter, TurnLimiters  # noqa: E402


TEST_USER_ID = "user_test_123"


@pytest.fixture(scope="session", autouse=True)
def create_schema() -> None:
    Base.metadata.drop_all(bind=engine)
    init_db()


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture()
def seed_user(db_session) -> User:
    user = User(id=TEST_USER_ID, email="owner@example.com", name="Test Owner")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def onboarded_user(db_session, seed_user) -> User:
    seed_user.notes = "Lan's Coffee is a cozy coffee shop in District 1 serving specialty Vietnamese coffee."
    db_session.commit()
    db_session.refresh(seed_user)
    return seed_user


def tool_call(name: str, arguments: Any, call_id: Optional[str] = None) -> OracleToolCall:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return OracleToolCall(id=call_id or f"call_{name}", name=name, arguments=arguments, raw_arguments=raw)


class FakeOracle:
    """Scripted Oracle: pops one reply per chat call; an exception in the script is raised instead."""

    def __init__(self, replies: Optional[list] = None, text: Any = "Generated text.") -> None:
        self.replies = list(replies or [])
        self.text = text
        self.chat_calls: list[dict[str, Any]] = []
        self.text_calls: list[str] = []

    def chat(self, messages, tools=None, params: Optional[LLMGenerationParams] = None) -> OracleReply:
        self.chat_calls.append({"messages": [dict(message) for message in messages], "tools": tools})
        if not self.replies:
            return OracleReply(content="Done.")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def generate_text(self, prompt: str, params: Optional[LLMGenerationParams] = None) -> str:
        self.text_calls.append(prompt)
        if isinstance(self.text, Exception):
            raise self.text
        return self.text


@pytest.fixture()
def fake_oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture()
def failing_oracle() -> FakeOracle:
    return FakeOracle(replies=[OracleError("Request timed out.")], text=OracleError("Request timed out."))


@pytest.fixture()
def open_limiters() -> TurnLimiters:
    return TurnLimiters(
        messages=RateLimiter(min_interval=0, max_per_minute=1000),
        new_chats=NewChatLimiter(min_interval=0, max_per_hour=1000),
    )


@pytest.fixture()
def override_dependencies(db_session, fake_oracle, open_limiters):
    def get_session_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_oracle] = lambda: fake_oracle
    app.dependency_overrides[get_limiters] = lambda: open_limiters
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def api_client(override_dependencies):
    with TestClient(app) as client:
        yield client
