"""
Builds the request body for one call.

When the template body holds a conversation array (``messages``, ``contents``, ...)
that array is rebuilt from the template's own entries, the caller's history and the
new user message. Placeholders outside the array are substituted in place.
"""

import copy
from typing import Any, Dict, List, Mapping, Optional, Sequence

from promptrelay.providers.base import UnsupportedImageInputError
from promptrelay.providers.template import IMAGE, SYSTEM_PROMPT, TEXT, references_image
from promptrelay.providers.variables import contains_placeholder, substitute
from promptrelay.schemas.chat import Message

# closed set, checked in body key order; the first list-valued match wins
MESSAGE_KEYS = ("messages", "contents", "conversation", "history")
_PART_KEYS = ("content", "parts")


def ensure_image_support(template: str, images: Sequence[str], provider_id: Optional[str] = None) -> None:
    if images and not references_image(template):
        raise UnsupportedImageInputError(provider_id)


def find_messages_key(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    for key in body:
        if key in MESSAGE_KEYS and isinstance(body[key], list):
            return key
    return None


def _history_entry(message: Message, user_template: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    # mirror the shape of the template's user entry
    if isinstance(user_template, dict) and isinstance(user_template.get("parts"), list):
        role = {"assistant": "model", "system": "user"}.get(message.role, message.role)
        return {"role": role, "parts": [{"text": message.content}]}
    if isinstance(user_template, dict) and isinstance(user_template.get("content"), list):
        return {"role": message.role, "content": [{"type": "text", "text": message.content}]}
    return {"role": message.role, "content": message.content}


def _fill_parts(parts: List[Any], text_vars: Mapping[str, str], images: Sequence[str]) -> List[Any]:
    filled: List[Any] = []
    for part in parts:
        if contains_placeholder(part, IMAGE):
            for image in images:
                filled.append(substitute(part, {**text_vars, IMAGE: image}))
        else:
            filled.append(substitute(part, text_vars))
    return filled


def _fill_user_entry(template_entry: Dict[str, Any], text_vars: Mapping[str, str],
                     images: Sequence[str]) -> Dict[str, Any]:
    entry: Dict[str, Any] = {}
    scalar_vars = {**text_vars, IMAGE: images[0] if images else ""}
    for key, value in template_entry.items():
        if key in _PART_KEYS and isinstance(value, list):
            entry[key] = _fill_parts(value, text_vars, images)
        else:
            entry[key] = substitute(value, scalar_vars)
    return entry


def build_messages(
    template_messages: List[Any],
    history: Sequence[Message],
    user_message: str,
    images: Sequence[str],
    variables: Mapping[str, str],
) -> List[Any]:
    """
    prefix entries + history + filled user entry + suffix entries.
    ``variables`` are the upper-cased caller values plus SYSTEM_PROMPT; history content
    is inserted as-is and never substituted.
    """
    user_index = next(
        (i for i, entry in enumerate(template_messages) if contains_placeholder(entry, TEXT)),
        None,
    )
    if user_index is None:
        return [_history_entry(m, None) for m in history] + [{"role": "user", "content": user_message}]

    user_template = template_messages[user_index]
    prefix = [substitute(entry, variables) for entry in template_messages[:user_index]]
    suffix = [substitute(entry, variables) for entry in template_messages[user_index + 1:]]
    converted = [_history_entry(m, user_template) for m in history]

    text_vars = {**variables, TEXT: user_message}
    if isinstance(user_template, dict):
        user_entry = _fill_user_entry(user_template, text_vars, images)
    else:
        user_entry = substitute(user_template, {**text_vars, IMAGE: images[0] if images else ""})
    return prefix + converted + [user_entry] + suffix


def force_stream_flag(body: Any) -> Any:
    if not isinstance(body, dict):
        return body
    key = next((k for k in body if isinstance(k, str) and k.lower() == "stream"), "stream")
    body[key] = True
    return body


def build_request_body(
    body: Any,
    *,
    variables: Mapping[str, str],
    system_prompt: str,
    history: Sequence[Message],
    user_message: str,
    images: Sequence[str],
    streaming: bool,
) -> Any:
    base_vars = {**variables, SYSTEM_PROMPT: system_prompt}
    flat_vars = {**base_vars, TEXT: user_message, IMAGE: images[0] if images else ""}
    body = copy.deepcopy(body)

    key = find_messages_key(body)
    if key is None:
        # completion-style provider: the whole request is encoded by placeholders
        result = substitute(body, flat_vars)
    else:
        result = {}
        for k, v in body.items():
            if k == key:
                result[k] = build_messages(v, history, user_message, images, base_vars)
            else:
                result[substitute(k, flat_vars)] = substitute(v, flat_vars)

    if streaming:
        result = force_stream_flag(result)
    return result
