"""
Gyazo image hosting + OCR.

Uploading an image starts OCR on Gyazo's side; the text shows up in the
image metadata some seconds later. fetch_ocr() raises OcrPendingError while
the text is still missing so callers can poll with backoff.
"""

from typing import Any, Optional

import httpx
from pydantic import BaseModel

from infra.errors import OcrPendingError
from .http import create_http_client, parse_model, request, response_json


UPLOAD_URL = "https://upload.gyazo.com/api/upload"
IMAGES_URL = "https://api.gyazo.com/api/images"
PERMALINK_URL = "https://gyazo.com"


class UploadResponse(BaseModel):
    image_id: str


class OcrMetadata(BaseModel):
    locale: Optional[Any] = None
    description: str


class ImageMetadata(BaseModel):
    ocr: Optional[OcrMetadata] = None


class ImageResponse(BaseModel):
    image_id: str
    metadata: ImageMetadata


class GyazoClient:
    def __init__(
        self,
        access_token: str,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.access_token = access_token
        self._owns_http = http is None
        self.http = http or create_http_client(timeout=timeout)

    async def upload(self, data: bytes, filename: str) -> str:
        """Upload image bytes, returning the hosted image id."""
        response = await request(
            self.http,
            "POST",
            UPLOAD_URL,
            "upload to Gyazo",
            data={"access_token": self.access_token},
            files={"imagedata": (filename, data, "application/octet-stream")},
        )
        parsed = parse_model(UploadResponse, response_json(response, "upload"), "upload")
        return parsed.image_id

    async def fetch_ocr(self, image_id: str) -> str:
        response = await request(
            self.http,
            "GET",
            f"{IMAGES_URL}/{image_id}",
            "fetch Gyazo image data",
            params={"access_token": self.access_token},
        )
        parsed = parse_model(ImageResponse, response_json(response, "image"), "image")

        text = parsed.metadata.ocr.description if parsed.metadata.ocr else ""
        if text.strip() == "":
            raise OcrPendingError(image_id)
        return text

    @staticmethod
    def image_url(image_id: str) -> str:
        return f"{PERMALINK_URL}/{image_id}"

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
