from fastapi import APIRouter, Depends
from promptrelay.api.deps import get_provider_store
from promptrelay.providers.registry import ProviderStore

router = APIRouter(tags=["meta"])

@router.get("/health")
def health(store: ProviderStore = Depends(get_provider_store)):
    # liveness plus a quick look at whether any provider file was loaded
    return {"status": "ok", "providers": len(store.all())}
