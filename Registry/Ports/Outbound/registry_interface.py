from pydantic import BaseModel, ConfigDict
from abc import abstractmethod
from typing import Any, Dict

SEARCH_ENDPOINT = "/search"
NEAR_POINT_ENDPOINT = "/near_point"


class CompanyRegistry(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    @abstractmethod
    async def get(self, path_and_query: str) -> Dict[str, Any]:
        """GET `path_and_query` and return the decoded JSON body, or raise RemoteApiError."""
        ...

    @abstractmethod
    async def close(self):
        ...
