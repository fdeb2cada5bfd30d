from typing import List
from fastapi import APIRouter, Depends
from promptrelay.agents.base import AGENT_PROVIDER_IDS
from promptrelay.agents.orchestrator import AgentOrchestrator
from promptrelay.api.deps import get_agents, get_provider_store
from promptrelay.providers.registry import ProviderStore
from promptrelay.providers.template import references_image, required_variables
from promptrelay.schemas.chat import AgentInfo, ProviderInfo

router = APIRouter(tags=["providers"])

@router.get("/providers")
def list_providers(store: ProviderStore = Depends(get_provider_store)) -> dict:
    providers: List[ProviderInfo] = [
        ProviderInfo(
            id=p.id,
            streaming=p.streaming,
            required_variables=required_variables(p.curl),
            supports_images=references_image(p.curl),
        )
        for p in store.all()
    ]
    return {"providers": [p.model_dump() for p in providers], "agents": list(AGENT_PROVIDER_IDS)}

@router.get("/agents")
async def list_agents(agents: AgentOrchestrator = Depends(get_agents)) -> dict:
    # capability query for the settings UI; the pipeline never calls this
    found = [AgentInfo(id=tool, installed=await agents.is_installed(tool)) for tool in AGENT_PROVIDER_IDS]
    return {"agents": [a.model_dump() for a in found]}
