import logging
from typing import AsyncIterator, Optional
from uuid import uuid4
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from promptrelay.agents.orchestrator import AgentOrchestrator
from promptrelay.api.deps import get_agents, get_provider_store
from promptrelay.providers.base import AgentUnavailableError, ProviderError, ProviderNotConfiguredError
from promptrelay.providers.registry import ProviderStore
from promptrelay.schemas.chat import ChatRequest, SelectedProvider
from promptrelay.services.cancellation import CancellationSignal
from promptrelay.services.pipeline import stream_response
from promptrelay.services.prompt import build_system_prompt

router = APIRouter(tags=["chat"])
logger = logging.getLogger(__name__)


def _status_for(exc: ProviderError) -> int:
    if isinstance(exc, ProviderNotConfiguredError):
        return 404
    if isinstance(exc, AgentUnavailableError):
        return 503
    return 400


@router.post("/chat")
async def chat(
    req: ChatRequest,
    request: Request,
    store: ProviderStore = Depends(get_provider_store),
    agents: AgentOrchestrator = Depends(get_agents),
):
    provider = store.get(req.provider)
    if provider is None and not agents.is_agent_provider(req.provider):
        raise HTTPException(status_code=404, detail="unknown provider")

    convo_id = req.conversation_id or str(uuid4())
    signal = CancellationSignal()
    gen = stream_response(
        provider=provider,
        selected=SelectedProvider(provider=req.provider, variables=req.variables),
        user_message=req.message,
        system_prompt=build_system_prompt(req.system_prompt),
        history=req.history,
        images=req.images,
        signal=signal,
        conversation_id=convo_id,
        agents=agents,
    )

    # pull the first chunk now so validation failures become HTTP errors, not stream text
    first: Optional[str]
    try:
        first = await gen.__anext__()
    except StopAsyncIteration:
        first = None
    except ProviderError as e:
        raise HTTPException(status_code=_status_for(e), detail=str(e))

    async def streamer() -> AsyncIterator[bytes]:
        try:
            if first is None:
                return
            yield first.encode("utf-8")
            async for chunk in gen:
                if await request.is_disconnected():
                    logger.info("client disconnected, stopping stream")
                    signal.cancel()
                    break
                yield chunk.encode("utf-8")
        except Exception as e:
            logger.exception("streaming error occurred: %s", e)
        finally:
            await gen.aclose()

    headers = {"X-Conversation-Id": convo_id}
    return StreamingResponse(streamer(), media_type="text/plain; charset=utf-8", headers=headers)
