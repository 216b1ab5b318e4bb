import json
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load env values for components that read os.environ directly (e.g., the OpenAI SDK).
_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)


def _coerce_json(value: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"

    DATABASE_URL: str = "sqlite:///./marketing_assistant.db"
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30

    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    OPENAI_CHAT_MODEL: str = "gpt-4o-mini"
    OPENAI_SUGGESTION_MODEL: str = "gpt-4o-mini"
    OPENAI_CHAT_TEMPERATURE: float = 0.7
    OPENAI_SUGGESTION_TEMPERATURE: float = 0.5
    # Retries are left to the outer HTTP boundary; the agent loop calls the model once per iteration.
    LLM_REQUEST_TIMEOUT: float = 45.0
    LLM_REQUEST_RETRIES: int = 0

    AGENT_MAX_ITERATIONS: int = 3
    CHAT_HISTORY_LIMIT: int = 10
    CHAT_HISTORY_WINDOW: int = 6
    DEFAULT_LOCALE: str = "en"

    SCHEDULE_PREVIEW_ITEM_LIMIT: int = 50
    SCHEDULE_SAMPLE_WEEKS: int = 3
    SCHEDULE_DEFAULT_FREQUENCY: int = 3
    SCHEDULE_DEFAULT_PLATFORMS: list[str] = ["facebook", "instagram"]
    CAMPAIGN_DEFAULT_DURATION_DAYS: int = 28

    RATE_LIMIT_MIN_INTERVAL_SECONDS: float = 2.0
    RATE_LIMIT_MAX_PER_MINUTE: int = 10
    NEW_CHAT_MIN_INTERVAL_SECONDS: float = 30.0
    NEW_CHAT_MAX_PER_HOUR: int = 5
    MAX_MESSAGE_LENGTH: int = 10000

    LANGFUSE_ENABLED: bool = False
    LANGFUSE_PUBLIC_KEY: str | None = None
    LANGFUSE_SECRET_KEY: str | None = None
    LANGFUSE_HOST: str = "https://cloud.langfuse.com"
    LANGFUSE_BASE_URL: str | None = None
    LANGFUSE_ENVIRONMENT: str | None = None
    LANGFUSE_RELEASE: str | None = None
    LANGFUSE_SAMPLE_RATE: float = 1.0
    LANGFUSE_DEBUG: bool = False
    LANGFUSE_REQUIRED: bool = False
    LANGFUSE_AUTH_CHECK: bool = True
    LANGFUSE_TIMEOUT_SECONDS: int = 20

    @field_validator("BACKEND_CORS_ORIGINS", "SCHEDULE_DEFAULT_PLATFORMS", mode="before")
    @classmethod
    def split_csv(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    model_config = SettingsConfigDict(env_file=".env", env_json_loads=_coerce_json, extra="ignore")


settings = Settings()
