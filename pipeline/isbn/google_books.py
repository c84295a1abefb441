from typing import Any, List, Optional

import httpx
from pydantic import BaseModel, Field

from infra.clients.http import create_http_client, parse_model, parse_optional, response_json
from infra.errors import ApiError, IsbnNotFoundError
from pipeline.schemas import BookInfo


VOLUMES_URL = "https://www.googleapis.com/books/v1/volumes"

# preferred first
IDENTIFIER_PREFERENCE = ("ISBN_10", "ISBN_13")


class IndustryIdentifier(BaseModel):
    type: str
    identifier: str


class VolumeInfo(BaseModel):
    title: str
    authors: List[str] = Field(default_factory=list)
    industryIdentifiers: List[IndustryIdentifier] = Field(default_factory=list)


class Volume(BaseModel):
    volumeInfo: VolumeInfo


class VolumesResponse(BaseModel):
    totalItems: int
    items: List[Volume] = Field(default_factory=list)


class ErrorDetail(BaseModel):
    code: int
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail


def pick_identifier(info: VolumeInfo) -> Optional[str]:
    for wanted in IDENTIFIER_PREFERENCE:
        for ident in info.industryIdentifiers:
            if ident.type == wanted and ident.identifier:
                return ident.identifier
    return None


def parse_volumes(data: Any, title: str) -> BookInfo:
    error = parse_optional(ErrorResponse, data)
    if error is not None:
        raise ApiError(error.error.message, status_code=error.error.code)

    volumes = parse_model(VolumesResponse, data, "Google Books")

    for volume in volumes.items:
        isbn = pick_identifier(volume.volumeInfo)
        if isbn:
            return BookInfo(
                isbn=isbn,
                title=volume.volumeInfo.title,
                authors=tuple(volume.volumeInfo.authors),
            )

    raise IsbnNotFoundError(title)


class GoogleBooksSearch:
    name = "google-books"

    def __init__(
        self,
        http: Optional[httpx.AsyncClient] = None,
        max_results: int = 5,
        timeout: float = 10.0,
    ):
        self._owns_http = http is None
        self.http = http or create_http_client(timeout=timeout)
        self.max_results = max_results

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def search_by_title(self, title: str) -> BookInfo:
        try:
            response = await self.http.get(
                VOLUMES_URL,
                params={"q": title, "maxResults": self.max_results},
            )
        except httpx.HTTPError as e:
            raise ApiError("Failed to search Google Books", cause=e)

        # error bodies carry a structured message; parse before checking status
        data = response_json(response, "Google Books")
        if not response.is_success and parse_optional(ErrorResponse, data) is None:
            raise ApiError(
                f"search Google Books failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return parse_volumes(data, title)
