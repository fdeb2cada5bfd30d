# centralized configuration loader
# runs load_dotenv() to read .env
# decouples code from environment so providers/timeouts/prompt tweaks change without code change

import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "y"}


# Provider storage (read-only JSON list of provider configs)
PROVIDERS_FILE = os.getenv("PROVIDERS_FILE", "providers.json")

# Outbound HTTP
CONNECT_TIMEOUT = float(os.getenv("CONNECT_TIMEOUT", "10"))
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60"))
STREAM_TIMEOUT = float(os.getenv("STREAM_TIMEOUT", "120"))

# System prompt shaping
RESPONSE_LENGTH = os.getenv("RESPONSE_LENGTH", "auto").strip().lower()
RESPONSE_LANGUAGE = os.getenv("RESPONSE_LANGUAGE", "auto").strip().lower()
MARKDOWN_FORMATTING = _flag("MARKDOWN_FORMATTING", "true")

# Agent providers
AGENT_IDLE_TIMEOUT = float(os.getenv("AGENT_IDLE_TIMEOUT", "30"))
AGENT_MAX_HISTORY = int(os.getenv("AGENT_MAX_HISTORY", "20"))
AGENT_MAX_SESSIONS = int(os.getenv("AGENT_MAX_SESSIONS", "500"))  # remembered claude resume ids
AGENT_LINE_LIMIT = int(os.getenv("AGENT_LINE_LIMIT", str(16 * 1024 * 1024)))  # bytes per stdout line

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
