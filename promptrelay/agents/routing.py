from typing import Mapping, Optional, Sequence

from promptrelay.agents.base import AGENT_POLICIES, AgentExecuteRequest
from promptrelay.providers.variables import normalize_variables
from promptrelay.schemas.chat import Message
from promptrelay.services.cancellation import CancellationSignal

API_KEY_VARIABLES = ("OPENAI_API_KEY", "GOOGLE_API_KEY", "API_KEY")
MODEL_VARIABLES = ("MODEL",)


def _first_value(variables: Mapping[str, str], names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = variables.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def build_agent_request(
    provider_id: str,
    *,
    variables: Optional[Mapping[str, str]],
    user_message: str,
    system_prompt: Optional[str] = None,
    history: Sequence[Message] = (),
    conversation_id: Optional[str] = None,
    signal: Optional[CancellationSignal] = None,
) -> AgentExecuteRequest:
    resolved = normalize_variables(variables)
    policy = AGENT_POLICIES[provider_id]
    shaped_history = (
        [{"role": m.role, "content": m.content} for m in history] if policy.inject_history else None
    )
    return AgentExecuteRequest(
        tool_type=provider_id,
        user_message=user_message,
        system_prompt=system_prompt or None,
        history=shaped_history,
        session_id=conversation_id,
        api_key=_first_value(resolved, API_KEY_VARIABLES),
        model=_first_value(resolved, MODEL_VARIABLES),
        signal=signal,
    )
