# read-only provider store backed by a JSON file (list of provider configs)
# the settings UI owns the file; we only load it

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from promptrelay.providers.base import ProviderError
from promptrelay.schemas.chat import ProviderConfig

logger = logging.getLogger(__name__)


class ProviderStore:
    def __init__(self, providers: Iterable[ProviderConfig] = ()) -> None:
        self._providers: Dict[str, ProviderConfig] = {p.id: p for p in providers}

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ProviderStore":
        p = Path(path)
        if not p.exists():
            logger.info("provider file %s not found, starting with no providers", p)
            return cls()
        try:
            raw = json.loads(p.read_text(encoding="utf-8"))
            entries = raw.get("providers", []) if isinstance(raw, dict) else raw
            return cls(ProviderConfig.model_validate(entry) for entry in entries)
        except (ValueError, ValidationError) as e:
            raise ProviderError(f"Invalid provider file {p}: {e}") from e

    def get(self, provider_id: str) -> Optional[ProviderConfig]:
        return self._providers.get(provider_id)

    def all(self) -> List[ProviderConfig]:
        return list(self._providers.values())
