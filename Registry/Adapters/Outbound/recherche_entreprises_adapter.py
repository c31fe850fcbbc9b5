"""
Recherche d'entreprises HTTP adapter.
Single GET per call against https://recherche-entreprises.api.gouv.fr, no auth.
"""
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import PrivateAttr

from Registry.config import DEFAULT_REGISTRY_API_URL
from Registry.Domain.errors import RemoteApiError
from Registry.Ports.Outbound.registry_interface import CompanyRegistry

logger = logging.getLogger(__name__)

HEADERS = {"Accept": "application/json"}


def error_message(response: httpx.Response) -> str:
    """`message` from a JSON error body, else the status reason phrase."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    message = payload.get("message") if isinstance(payload, dict) else None
    return str(message) if message else response.reason_phrase


class RechercheEntreprisesClient(CompanyRegistry):
    """
    Async client for the public French company registry.

    No retry and no timeout override: the httpx defaults apply and each tool
    call issues exactly one request.
    """
    base_url: str = DEFAULT_REGISTRY_API_URL
    transport: Optional[httpx.AsyncBaseTransport] = None
    _client: httpx.AsyncClient = PrivateAttr()

    def __init__(self, **data):
        super().__init__(**data)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=HEADERS,
            transport=self.transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def get(self, path_and_query: str) -> Dict[str, Any]:
        logger.debug("GET %s%s", self.base_url, path_and_query)
        try:
            response = await self._client.get(path_and_query)
        except httpx.HTTPError as e:
            logger.warning("Registry API request failed: %r", e)
            raise RemoteApiError(str(e) or type(e).__name__) from e

        if not response.is_success:
            message = error_message(response)
            logger.warning("Registry API returned %s: %s", response.status_code, message)
            raise RemoteApiError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise RemoteApiError(
                "Invalid JSON in registry API response", status_code=response.status_code
            ) from e

    async def close(self):
        await self._client.aclose()
