# placeholder substitution and content-path lookup over JSON-like values
# values are treated as a tagged union: dict / list / str / any other scalar (passed through)

import logging
import re
from typing import Any, List, Mapping, Optional, Union

from promptrelay.providers.base import MissingVariableError
from promptrelay.providers.template import PLACEHOLDER, required_variables

logger = logging.getLogger(__name__)

PathPart = Union[str, int]

# delta locations tried when the configured path finds nothing in a stream event
_STREAM_FALLBACK_PATHS = (
    "choices[0].delta.content",
    "choices[0].text",
    "delta.text",
    "candidates[0].content.parts[0].text",
    "message.content",
    "response",
)


def normalize_variables(variables: Optional[Mapping[str, str]]) -> dict:
    return {str(k).upper(): v for k, v in (variables or {}).items()}


def validate_required_variables(template: str, variables: Optional[Mapping[str, str]]) -> None:
    """Fail on the first non-reserved placeholder without a usable value."""
    resolved = normalize_variables(variables)
    for name in required_variables(template):
        value = resolved.get(name)
        if not isinstance(value, str) or not value.strip():
            raise MissingVariableError(name)


def _replace_in_string(text: str, variables: Mapping[str, str]) -> str:
    def swap(match: "re.Match[str]") -> str:
        name = match.group(1).upper()
        if name in variables:
            return str(variables[name])
        logger.debug("leaving unresolved placeholder %s", name)
        return match.group(0)

    return PLACEHOLDER.sub(swap, text)


def substitute(value: Any, variables: Mapping[str, str]) -> Any:
    """
    Deep copy of ``value`` with every ``{{NAME}}`` replaced by ``variables[NAME]``.
    ``variables`` must already be upper-cased (see normalize_variables). Replacement is
    a single pass per string, so inserted values are never scanned again.
    """
    if isinstance(value, str):
        return _replace_in_string(value, variables)
    if isinstance(value, dict):
        return {
            (_replace_in_string(k, variables) if isinstance(k, str) else k): substitute(v, variables)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [substitute(item, variables) for item in value]
    return value


def contains_placeholder(value: Any, name: str) -> bool:
    if isinstance(value, str):
        return any(m.group(1).upper() == name for m in PLACEHOLDER.finditer(value))
    if isinstance(value, dict):
        return any(contains_placeholder(v, name) for v in value.values())
    if isinstance(value, list):
        return any(contains_placeholder(item, name) for item in value)
    return False


_PATH_TOKEN = re.compile(r"\[(\d+)\]|([^.\[\]]+)")


def split_path(path: str) -> List[PathPart]:
    parts: List[PathPart] = []
    for index, key in _PATH_TOKEN.findall(path or ""):
        if index:
            parts.append(int(index))
        elif key.isdigit():
            parts.append(int(key))
        else:
            parts.append(key)
    return parts


def resolve_path(value: Any, path: str) -> Any:
    # None on any miss; never raises
    current = value
    for part in split_path(path):
        if isinstance(current, dict):
            if str(part) not in current:
                return None
            current = current[str(part)]
        elif isinstance(current, list) and isinstance(part, int):
            if part >= len(current):
                return None
            current = current[part]
        else:
            return None
    return current


def resolve_text(value: Any, path: str) -> str:
    found = resolve_path(value, path)
    return found if isinstance(found, str) else ""


def resolve_stream_delta(event: Any, path: str) -> str:
    delta = resolve_text(event, path) if path else ""
    if delta:
        return delta
    candidates = []
    if path and "message" in path:
        candidates.append(path.replace("message", "delta"))
    candidates.extend(p for p in _STREAM_FALLBACK_PATHS if p != path)
    for candidate in candidates:
        delta = resolve_text(event, candidate)
        if delta:
            return delta
    return ""
