# tests/helpers.py
# shared templates and fakes; imported by conftest and the test modules
import httpx

from promptrelay.agents.base import AGENT_PROVIDER_IDS

OPENAI_URL = "https://api.example.com/v1/chat/completions"

OPENAI_CURL = f"""curl {OPENAI_URL} \\
  -H "Content-Type: application/json" \\
  -H "Authorization: Bearer {{{{API_KEY}}}}" \\
  -d '{{"model": "{{{{MODEL}}}}", "messages": [{{"role": "system", "content": "{{{{SYSTEM_PROMPT}}}}"}}, {{"role": "user", "content": "{{{{TEXT}}}}"}}]}}'"""

SIMPLE_URL = "https://llm.example.com/generate"

# single-shot completion provider: no conversation array
SIMPLE_CURL = f"""curl -X POST {SIMPLE_URL} -H 'x-api-key: {{{{API_KEY}}}}' -d '{{"prompt": "{{{{TEXT}}}}"}}'"""

VISION_URL = "https://vision.example.com/v1/chat"

VISION_CURL = f"""curl {VISION_URL} -H "Authorization: Bearer {{{{API_KEY}}}}" -d '{{"messages": [{{"role": "user", "content": [{{"type": "text", "text": "{{{{TEXT}}}}"}}, {{"type": "image_url", "image_url": {{"url": "data:image/png;base64,{{{{IMAGE}}}}"}}}}]}}]}}'"""


class FakeAgents:
    """Stands in for the agent orchestrator; records every execute() request."""

    def __init__(self, chunks=("agent ", "reply"), fail_after=None):
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.requests = []

    def is_agent_provider(self, provider_id):
        return provider_id in AGENT_PROVIDER_IDS

    async def execute(self, request):
        self.requests.append(request)
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise RuntimeError("network dropped")
            yield chunk

    async def is_installed(self, tool_type):
        return tool_type == "claude-code"


def stream_transport(chunks, status=200, calls=None):
    """MockTransport whose response body arrives in several reads."""
    async def body():
        for chunk in chunks:
            yield chunk

    def handler(request):
        if calls is not None:
            calls.append(request)
        return httpx.Response(status, content=body(), headers={"Content-Type": "text/event-stream"})

    return httpx.MockTransport(handler)


async def collect(stream):
    return [chunk async for chunk in stream]

