# promptrelay/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from promptrelay.core import config
from promptrelay.agents.orchestrator import AgentOrchestrator
from promptrelay.api.routers.health import router as health_router
from promptrelay.api.routers.agents import router as agents_router
from promptrelay.api.routers.chat import router as chat_router
from promptrelay.providers.registry import ProviderStore


def create_app(
    *,
    provider_store: ProviderStore | None = None,
    agents: AgentOrchestrator | None = None,
) -> FastAPI:
    logging.basicConfig(level=config.LOG_LEVEL)
    app = FastAPI(title="promptrelay", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Conversation-Id"],
    )

    # shared, read-only collaborators; routers reach them through Depends()
    app.state.provider_store = provider_store or ProviderStore.from_file(config.PROVIDERS_FILE)
    app.state.agents = agents or AgentOrchestrator()

    app.include_router(health_router)
    app.include_router(agents_router)
    app.include_router(chat_router)

    return app


app = create_app()
