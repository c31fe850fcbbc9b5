# Registry/Domain/errors.py
from typing import Optional


class RegistryError(Exception):
    """Base class for errors raised by the registry adapter."""


class RemoteApiError(RegistryError):
    """The registry API answered with a non-success status or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TransportError(RegistryError):
    """The MCP stdio transport could not be established or was lost."""
