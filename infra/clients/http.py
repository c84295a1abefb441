from typing import Any, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from infra.errors import ApiError, ResponseSchemaError

M = TypeVar('M', bound=BaseModel)

USER_AGENT = "scanwiki/0.1"


def create_http_client(timeout: float = 60.0, **kwargs) -> httpx.AsyncClient:
    headers = kwargs.pop("headers", {})
    headers.setdefault("User-Agent", USER_AGENT)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=min(timeout, 30.0)),
        follow_redirects=True,
        headers=headers,
        **kwargs
    )


async def request(
    http: httpx.AsyncClient,
    method: str,
    url: str,
    what: str,
    **kwargs
) -> httpx.Response:
    """Send a request; transport failures and non-2xx become ApiError."""
    try:
        response = await http.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        raise ApiError(f"Failed to {what}", cause=e)

    if not response.is_success:
        raise ApiError(
            f"{what} failed: {response.status_code} {response.reason_phrase}",
            status_code=response.status_code,
        )
    return response


def response_json(response: httpx.Response, what: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ResponseSchemaError(f"Failed to parse {what} response", cause=e)


def parse_model(model: Type[M], data: Any, what: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ResponseSchemaError(f"Invalid {what} response format", cause=e)


def parse_optional(model: Type[M], data: Any) -> Optional[M]:
    try:
        return model.model_validate(data)
    except ValidationError:
        return None
