# tests/conftest.py
import os
import logging
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Ensure test-friendly env before promptrelay.core.config is imported
os.environ.setdefault("PROVIDERS_FILE", os.path.join(os.path.dirname(__file__), "no-providers.json"))
os.environ.setdefault("MARKDOWN_FORMATTING", "false")
os.environ.setdefault("RESPONSE_LENGTH", "auto")
os.environ.setdefault("RESPONSE_LANGUAGE", "auto")

from helpers import OPENAI_CURL, SIMPLE_CURL, VISION_CURL, FakeAgents  # noqa: E402
from promptrelay.main import create_app  # noqa: E402
from promptrelay.providers.registry import ProviderStore  # noqa: E402
from promptrelay.schemas.chat import ProviderConfig  # noqa: E402


@pytest.fixture
def openai_provider():
    return ProviderConfig(id="openai", curl=OPENAI_CURL, streaming=False, responseContentPath="choices[0].message.content")


@pytest.fixture
def simple_provider():
    return ProviderConfig(id="simple", curl=SIMPLE_CURL, streaming=False, response_content_path="text")


@pytest.fixture
def vision_provider():
    return ProviderConfig(id="vision", curl=VISION_CURL, streaming=True, response_content_path="choices[0].delta.content")


@pytest.fixture
def fake_agents():
    return FakeAgents()


@pytest_asyncio.fixture
async def app(openai_provider, simple_provider, fake_agents):
    store = ProviderStore([openai_provider, simple_provider])
    return create_app(provider_store=store, agents=fake_agents)


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def caplog_info(caplog):
    caplog.set_level(logging.INFO)
    return caplog


@pytest.fixture
def caplog_debug(caplog):
    caplog.set_level(logging.DEBUG)
    return caplog
