"""
Entry point callers use to get a reply from any configured provider.

stream_response() is an async generator with one contract for every transport:
text chunks in order, then the end of the iteration.

- problems found before the request is sent (missing variables, images the provider
  cannot take, a broken template) are raised on the first ``__anext__``
- problems after that (network, HTTP status, unreadable body) arrive as one final
  text chunk
- cancellation ends the iteration quietly
"""

import json
import logging
from contextlib import aclosing, asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Sequence

import httpx

from promptrelay.agents.base import AgentExecutor
from promptrelay.agents.orchestrator import AgentOrchestrator
from promptrelay.agents.routing import build_agent_request
from promptrelay.core import config
from promptrelay.providers.base import DiagnosticError, EmptyMessageError, NetworkError, ProviderNotConfiguredError
from promptrelay.providers.messages import build_request_body, ensure_image_support
from promptrelay.providers.response import CONSUMERS, ResponseMode
from promptrelay.providers.template import IMAGE, SYSTEM_PROMPT, TEXT, parse_curl
from promptrelay.providers.variables import normalize_variables, substitute, validate_required_variables
from promptrelay.schemas.chat import Message, ProviderConfig, RequestDescriptor, SelectedProvider
from promptrelay.services.cancellation import CancellationSignal, OperationAborted, is_cancelled, race

logger = logging.getLogger(__name__)

_default_agents: Optional[AgentOrchestrator] = None


def get_default_agents() -> AgentOrchestrator:
    global _default_agents
    if _default_agents is None:
        _default_agents = AgentOrchestrator()
    return _default_agents


def prepare_request(
    provider: ProviderConfig,
    variables: Optional[Dict[str, str]],
    *,
    user_message: str,
    system_prompt: Optional[str] = None,
    history: Sequence[Message] = (),
    images: Sequence[str] = (),
) -> RequestDescriptor:
    """Validate and build the concrete request. Raises only ProviderError subclasses."""
    template = provider.curl
    validate_required_variables(template, variables)
    ensure_image_support(template, images, provider.id)
    if not user_message or not user_message.strip():
        raise EmptyMessageError()

    descriptor = parse_curl(template)
    resolved = normalize_variables(variables)
    string_vars = {
        **resolved,
        SYSTEM_PROMPT: system_prompt or "",
        TEXT: user_message,
        IMAGE: images[0] if images else "",
    }
    body = build_request_body(
        descriptor.body,
        variables=resolved,
        system_prompt=system_prompt or "",
        history=history,
        user_message=user_message,
        images=images,
        streaming=provider.streaming,
    )
    headers = substitute(descriptor.headers, string_vars)
    if body is not None and not isinstance(body, str):
        if not any(name.lower() == "content-type" for name in headers):
            headers["Content-Type"] = "application/json"
    return RequestDescriptor(
        method=descriptor.method,
        url=substitute(descriptor.url, string_vars),
        headers=headers,
        body=body,
    )


def _encode_body(request: RequestDescriptor) -> Optional[bytes]:
    if request.body is None or request.method in ("GET", "HEAD"):
        return None
    if isinstance(request.body, str):
        return request.body.encode("utf-8")
    return json.dumps(request.body).encode("utf-8")


@asynccontextmanager
async def _http_client(client: Optional[httpx.AsyncClient], streaming: bool):
    if client is not None:
        yield client
        return
    timeout = httpx.Timeout(config.STREAM_TIMEOUT if streaming else config.REQUEST_TIMEOUT, connect=config.CONNECT_TIMEOUT)
    async with httpx.AsyncClient(timeout=timeout) as owned:
        yield owned


async def _send(
    http: httpx.AsyncClient, request: RequestDescriptor, signal: Optional[CancellationSignal]
) -> httpx.Response:
    try:
        outgoing = http.build_request(request.method, request.url, headers=request.headers, content=_encode_body(request))
        return await race(http.send(outgoing, stream=True), signal)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise NetworkError(str(e) or e.__class__.__name__) from e


async def stream_response(
    *,
    provider: Optional[ProviderConfig],
    selected: SelectedProvider,
    user_message: str,
    system_prompt: Optional[str] = None,
    history: Sequence[Message] = (),
    images: Sequence[str] = (),
    signal: Optional[CancellationSignal] = None,
    conversation_id: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    agents: Optional[AgentExecutor] = None,
) -> AsyncIterator[str]:
    if is_cancelled(signal):
        return

    executor = agents or get_default_agents()
    if selected.provider and executor.is_agent_provider(selected.provider):
        logger.info("routing %s to agent executor", selected.provider)
        agent_request = build_agent_request(
            selected.provider,
            variables=selected.variables,
            user_message=user_message,
            system_prompt=system_prompt,
            history=history,
            conversation_id=conversation_id,
            signal=signal,
        )
        async with aclosing(executor.execute(agent_request)) as agent_chunks:
            async for chunk in agent_chunks:
                yield chunk
        return

    if provider is None:
        raise ProviderNotConfiguredError("Provider not provided")

    request = prepare_request(
        provider,
        selected.variables,
        user_message=user_message,
        system_prompt=system_prompt,
        history=history,
        images=images,
    )
    consume = CONSUMERS[ResponseMode.for_streaming(provider.streaming)]

    async with _http_client(client, provider.streaming) as http:
        try:
            response = await _send(http, request, signal)
        except OperationAborted:
            return
        except NetworkError as e:
            logger.warning("request to %s failed: %s", provider.id, e)
            yield str(e)
            return

        chunks = consume(response, provider.response_content_path, signal)
        try:
            async for chunk in chunks:
                yield chunk
        except OperationAborted:
            logger.debug("stream from %s aborted", provider.id)
        except DiagnosticError as e:
            logger.warning("provider %s: %s", provider.id, e)
            yield str(e)
        finally:
            await chunks.aclose()
            await response.aclose()
