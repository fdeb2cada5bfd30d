import logging
import os
from typing import AsyncIterator, Callable, Dict, Optional
from uuid import uuid4

from promptrelay.agents.base import (
    AGENT_POLICIES,
    AgentExecuteRequest,
    AgentExecutionError,
    AgentPolicy,
    is_agent_provider,
)
from promptrelay.agents.cli import INSTALL_HINTS, AgentEvent, build_command, resolve_binary, run_agent_cli
from promptrelay.core import config
from promptrelay.providers.base import AgentUnavailableError, MissingVariableError
from promptrelay.services.cancellation import OperationAborted, is_cancelled
from promptrelay.services.prompt import build_agent_prompt

logger = logging.getLogger(__name__)

Runner = Callable[..., AsyncIterator[AgentEvent]]


class AgentOrchestrator:
    """
    Default agent-execution collaborator: runs the provider's CLI and streams its text.

    - claude-code resumes its own CLI session (ids remembered per conversation), so only
      the new message is sent
    - codex / gemini-sdk get the system prompt and recent history folded into the prompt
    """

    def __init__(
        self,
        *,
        runner: Optional[Runner] = None,
        idle_timeout: Optional[float] = None,
        max_sessions: Optional[int] = None,
    ) -> None:
        self._runner = runner or run_agent_cli
        self._idle_timeout = config.AGENT_IDLE_TIMEOUT if idle_timeout is None else idle_timeout
        # conversation id -> CLI session id reported by claude, least recently used first
        self._resume_ids: Dict[str, str] = {}
        self._max_sessions = max(1, config.AGENT_MAX_SESSIONS if max_sessions is None else max_sessions)

    def is_agent_provider(self, provider_id: str) -> bool:
        return is_agent_provider(provider_id)

    async def is_installed(self, tool_type: str) -> bool:
        policy = AGENT_POLICIES.get(tool_type)
        binary = policy.binary if policy else tool_type
        return resolve_binary(binary) is not None

    def _remember(self, conversation_id: str, agent_session_id: str) -> None:
        self._resume_ids.pop(conversation_id, None)
        self._resume_ids[conversation_id] = agent_session_id
        while len(self._resume_ids) > self._max_sessions:
            oldest = next(iter(self._resume_ids))
            self._resume_ids.pop(oldest)

    def _prompt(self, request: AgentExecuteRequest, policy: AgentPolicy) -> str:
        if not policy.inject_history:
            return request.user_message
        return build_agent_prompt(request.user_message, request.history, request.system_prompt)

    def _api_key(self, request: AgentExecuteRequest, policy: AgentPolicy) -> Optional[str]:
        if not policy.api_key_env:
            return None
        api_key = request.api_key or os.getenv(policy.api_key_env) or None
        if policy.api_key_required and not api_key:
            raise MissingVariableError(policy.api_key_env)
        return api_key

    async def execute(self, request: AgentExecuteRequest) -> AsyncIterator[str]:
        if is_cancelled(request.signal):
            return
        policy = AGENT_POLICIES.get(request.tool_type)
        if policy is None:
            raise AgentExecutionError(f"Unknown agent provider: {request.tool_type}")

        api_key = self._api_key(request, policy)
        binary_path = resolve_binary(policy.binary)
        if binary_path is None:
            raise AgentUnavailableError(
                f"{policy.binary} CLI is not installed or not on PATH. "
                f"Install it with: {INSTALL_HINTS.get(policy.binary, policy.binary)}"
            )

        session_id = request.session_id or str(uuid4())
        argv, env = build_command(
            policy.binary,
            binary_path,
            self._prompt(request, policy),
            model=request.model,
            resume_session=None if policy.inject_history else self._resume_ids.get(session_id),
            api_key=api_key,
            api_key_env=policy.api_key_env,
        )
        logger.info("running %s agent for session %s", request.tool_type, session_id)

        emitted = False
        try:
            async for event in self._runner(argv, env=env, signal=request.signal, idle_timeout=self._idle_timeout):
                if event.agent_session_id and not policy.inject_history:
                    self._remember(session_id, event.agent_session_id)
                if event.kind == "error":
                    logger.warning("%s agent failed: %s", request.tool_type, event.error)
                    yield f"Agent error: {event.error}"
                    return
                # the final result repeats what the partial events already streamed
                if event.kind == "result" and emitted:
                    continue
                if event.text:
                    emitted = True
                    yield event.text
        except OperationAborted:
            return
        except AgentExecutionError as e:
            yield str(e)
