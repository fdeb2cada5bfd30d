from fastapi import Request
from promptrelay.agents.orchestrator import AgentOrchestrator
from promptrelay.providers.registry import ProviderStore

def get_provider_store(request: Request) -> ProviderStore:
    return request.app.state.provider_store

def get_agents(request: Request) -> AgentOrchestrator:
    return request.app.state.agents
