from typing import Dict, Iterable, List, Optional

from promptrelay.core import config

RESPONSE_LENGTH_PROMPTS: Dict[str, str] = {
    "short": "Keep responses brief: a few sentences at most, no preamble.",
    "medium": "Give moderately detailed responses: cover the key points without padding.",
    "detailed": "Give thorough, detailed responses with explanations and examples where useful.",
}

LANGUAGES: Dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
    "hi": "Hindi",
    "ar": "Arabic",
}

MARKDOWN_FORMATTING_INSTRUCTIONS = (
    "Format responses in Markdown. Use fenced code blocks with a language tag for code, "
    "and $...$ or $$...$$ for math."
)


def build_system_prompt(
    base: Optional[str] = None,
    *,
    length: Optional[str] = None,
    language: Optional[str] = None,
    markdown: Optional[bool] = None,
) -> str:
    """Base prompt followed by the configured response-length, language and formatting hints."""
    length = (length if length is not None else config.RESPONSE_LENGTH).lower()
    language = (language if language is not None else config.RESPONSE_LANGUAGE).lower()
    markdown = config.MARKDOWN_FORMATTING if markdown is None else markdown

    parts: List[str] = []
    if base and base.strip():
        parts.append(base.strip())
    if length in RESPONSE_LENGTH_PROMPTS:
        parts.append(RESPONSE_LENGTH_PROMPTS[length])
    if language in LANGUAGES:
        parts.append(f"Always respond in {LANGUAGES[language]}.")
    if markdown:
        parts.append(MARKDOWN_FORMATTING_INSTRUCTIONS)
    return " ".join(parts)


def _render_history(history: Iterable[Dict[str, str]]) -> str:
    parts: List[str] = []
    for turn in history:
        role = (turn.get("role") or "user").strip().lower()
        # keep message text from closing the surrounding block
        content = (turn.get("content") or "").replace("</", "&lt;/")
        parts.append(f"[{role}]: {content}")
    return "\n\n".join(parts)


def build_agent_prompt(
    user: str,
    history: Optional[List[Dict[str, str]]] = None,
    system: Optional[str] = None,
    max_history: Optional[int] = None,
) -> str:
    """
    Prompt for CLI agents that cannot resume a session:
    <system_prompt>...</system_prompt>
    <conversation_history>...</conversation_history>
    user message
    """
    limit = config.AGENT_MAX_HISTORY if max_history is None else max_history
    blocks: List[str] = []
    if system and system.strip():
        blocks.append(f"<system_prompt>\n{system.strip()}\n</system_prompt>")
    recent = (history or [])[-limit:] if limit > 0 else []
    hist = _render_history(recent)
    if hist:
        blocks.append(f"<conversation_history>\n{hist}\n</conversation_history>")
    blocks.append(user)
    return "\n\n".join(blocks)
