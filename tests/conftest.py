import json

import httpx
import pytest

from Registry.Adapters.Outbound.recherche_entreprises_adapter import RechercheEntreprisesClient
from Registry.config import get_settings


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class RecordingHandler:
    """httpx.MockTransport handler that records requests and replays one response."""

    def __init__(self, status_code=200, payload=None, content=None):
        self.status_code = status_code
        self.payload = payload if payload is not None else {"results": []}
        self.content = content
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, content=json.dumps(self.payload).encode())


@pytest.fixture
def handler():
    return RecordingHandler()


@pytest.fixture
def registry_client(handler):
    return RechercheEntreprisesClient(
        base_url="https://registry.test",
        transport=httpx.MockTransport(handler),
    )
