# contract between the pipeline and whatever runs the local CLI agents
# the pipeline only needs is_agent_provider() and execute(); is_installed() serves the UI

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from promptrelay.providers.base import ProviderError, TextStream
from promptrelay.services.cancellation import CancellationSignal


@dataclass(frozen=True)
class AgentPolicy:
    binary: str
    # False when the CLI keeps the conversation itself (session resume)
    inject_history: bool
    api_key_env: Optional[str] = None
    api_key_required: bool = False


AGENT_POLICIES: Dict[str, AgentPolicy] = {
    "claude-code": AgentPolicy(binary="claude", inject_history=False),
    "codex": AgentPolicy(binary="codex", inject_history=True, api_key_env="OPENAI_API_KEY", api_key_required=True),
    "gemini-sdk": AgentPolicy(binary="gemini", inject_history=True, api_key_env="GOOGLE_API_KEY"),
}

AGENT_PROVIDER_IDS = tuple(AGENT_POLICIES)


def is_agent_provider(provider_id: Optional[str]) -> bool:
    return provider_id in AGENT_POLICIES


@dataclass
class AgentExecuteRequest:
    tool_type: str
    user_message: str
    system_prompt: Optional[str] = None
    history: Optional[List[Dict[str, str]]] = None
    session_id: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    signal: Optional[CancellationSignal] = field(default=None, repr=False)


class AgentExecutionError(ProviderError):
    pass


class AgentExecutor(Protocol):
    def is_agent_provider(self, provider_id: str) -> bool:
        ...

    def execute(self, request: AgentExecuteRequest) -> TextStream:
        """Stream the agent's reply. Same contract as the HTTP pipeline."""
        ...

    async def is_installed(self, tool_type: str) -> bool:
        ...
