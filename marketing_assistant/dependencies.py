from fastapi import Depends, Request

from marketing_assistant.agent.orchestrator import MarketingAgent
from marketing_assistant.agent.suggestions import SuggestionAgent
from marketing_assistant.llm.client import Oracle
from marketing_assistant.services.connections import ConnectionRegistry
from marketing_assistant.services.rate_limiter import TurnLimiters


def get_oracle(request: Request) -> Oracle:
    return request.app.state.oracle


def get_limiters(request: Request) -> TurnLimiters:
    return request.app.state.limiters


def get_connections(request: Request) -> ConnectionRegistry:
    return request.app.state.connections


def get_agent(
    oracle: Oracle = Depends(get_oracle),
    limiters: TurnLimiters = Depends(get_limiters),
) -> MarketingAgent:
    return MarketingAgent(oracle, limiters=limiters)


def get_suggestion_agent(oracle: Oracle = Depends(get_oracle)) -> SuggestionAgent:
    return SuggestionAgent(oracle)
