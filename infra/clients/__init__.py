"""
Async HTTP clients for external services.

Every client raises infra.errors types (ApiError, ResponseSchemaError, ...)
rather than httpx exceptions, and accepts an injected httpx.AsyncClient so
tests can route requests through httpx.MockTransport.
"""

from .http import create_http_client
from .gyazo import GyazoClient

__all__ = [
    "create_http_client",
    "GyazoClient",
]
