"""
Tests for infra/clients/gyazo.py against httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

from infra.clients import GyazoClient
from infra.errors import ApiError, OcrPendingError, ResponseSchemaError


def client_for(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GyazoClient("token-123", http=http)


class TestUpload:

    def test_upload_returns_image_id(self):
        """Test that an upload posts the token and image data and returns the image id."""
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            return httpx.Response(200, json={"image_id": "abc123", "type": "png"})

        gyazo = client_for(handler)
        image_id = asyncio.run(gyazo.upload(b"PNGDATA", "1.png"))

        assert image_id == "abc123"
        assert seen["url"] == "https://upload.gyazo.com/api/upload"
        assert b"token-123" in seen["body"]
        assert b'name="imagedata"' in seen["body"]
        assert b"PNGDATA" in seen["body"]

    def test_upload_http_error(self):
        """Test that a non-2xx upload raises ApiError with the status code."""
        gyazo = client_for(lambda request: httpx.Response(503))

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(gyazo.upload(b"x", "1.png"))

        assert exc_info.value.status_code == 503
        assert not isinstance(exc_info.value, ResponseSchemaError)

    def test_upload_invalid_response(self):
        """Test that an upload response without image_id is a schema error."""
        gyazo = client_for(lambda request: httpx.Response(200, json={"unexpected": True}))

        with pytest.raises(ResponseSchemaError):
            asyncio.run(gyazo.upload(b"x", "1.png"))

    def test_transport_failure_is_api_error(self):
        """Test that connection failures surface as ApiError."""
        def handler(request):
            raise httpx.ConnectError("connection refused")

        gyazo = client_for(handler)

        with pytest.raises(ApiError):
            asyncio.run(gyazo.upload(b"x", "1.png"))


class TestFetchOcr:

    @staticmethod
    def image(description=None):
        metadata = {}
        if description is not None:
            metadata["ocr"] = {"locale": "ja", "description": description}
        return {"image_id": "abc123", "metadata": metadata}

    def test_returns_text(self):
        """Test fetching the OCR description of an image."""
        def handler(request):
            assert request.url.path == "/api/images/abc123"
            assert request.url.params["access_token"] == "token-123"
            return httpx.Response(200, json=self.image("Hello\nWorld"))

        text = asyncio.run(client_for(handler).fetch_ocr("abc123"))

        assert text == "Hello\nWorld"

    @pytest.mark.parametrize("description", [None, "", "   \n"])
    def test_missing_or_blank_text_is_pending(self, description):
        """Test that missing or blank OCR text means not ready yet."""
        gyazo = client_for(lambda request: httpx.Response(200, json=self.image(description)))

        with pytest.raises(OcrPendingError):
            asyncio.run(gyazo.fetch_ocr("abc123"))

    def test_malformed_payload_is_schema_error(self):
        """Test that a non-JSON payload raises ResponseSchemaError."""
        gyazo = client_for(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(ResponseSchemaError):
            asyncio.run(gyazo.fetch_ocr("abc123"))

    def test_not_found_is_api_error(self):
        """Test that a 404 on image lookup is an ApiError, not pending."""
        gyazo = client_for(lambda request: httpx.Response(404, text=json.dumps({"message": "nope"})))

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(gyazo.fetch_ocr("abc123"))

        assert exc_info.value.status_code == 404


def test_image_url():
    """Test the public image URL embedded in pages."""
    assert GyazoClient.image_url("abc123") == "https://gyazo.com/abc123"
