"""
Tests for pipeline/wiki/cosense_api.py against httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

from infra.config import WikiConfig
from infra.errors import ApiError, ResponseSchemaError
from pipeline.schemas import Page, Project
from pipeline.wiki.cosense_api import CosenseApiClient


class FakeCosense:
    """Routes /api requests and records every import POST."""

    def __init__(self, fail_import_call=None):
        self.fail_import_call = fail_import_call
        self.imports = []
        self.token_requests = 0

    def __call__(self, request):
        path = request.url.path
        if path == "/api/users/me":
            self.token_requests += 1
            return httpx.Response(200, json={"csrfToken": "csrf-123"})
        if path.startswith("/api/page-data/import/"):
            self.imports.append(request)
            if self.fail_import_call == len(self.imports):
                return httpx.Response(503, text="busy")
            return httpx.Response(200, json={"message": "Imported"})
        if path == "/api/pages/someone/profile":
            return httpx.Response(200, json={
                "title": "profile",
                "lines": [{"text": "profile"}, {"text": "I scan books."}],
            })
        return httpx.Response(404, json={"message": "Page not found."})


def make_client(server, no_sleep, sid="s%3Asecret", **config):
    http = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return CosenseApiClient(sid, http=http, config=WikiConfig(**config), sleep=no_sleep)


def project_of(count):
    return Project(pages=[Page(title=str(i), lines=[str(i), "> text"]) for i in range(count)])


def imported_titles(request):
    body = request.content
    start = body.index(b'{"pages"')
    end = body.rindex(b"}") + 1
    return [page["title"] for page in json.loads(body[start:end])["pages"]]


class TestFetchPage:

    def test_fetch_page(self, no_sleep):
        """Test fetching a page and flattening its line objects to text."""
        client = make_client(FakeCosense(), no_sleep)

        page = asyncio.run(client.fetch_page("someone/profile"))

        assert page == Page(title="profile", lines=["profile", "I scan books."])

    def test_missing_page(self, no_sleep):
        """Test that a missing page raises ApiError with status 404."""
        client = make_client(FakeCosense(), no_sleep)

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(client.fetch_page("someone/missing"))

        assert exc_info.value.status_code == 404

    def test_unexpected_payload(self, no_sleep):
        """Test that a page without title or lines is a schema error."""
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"oops": 1}))
        )
        client = CosenseApiClient("sid", http=http, sleep=no_sleep)

        with pytest.raises(ResponseSchemaError):
            asyncio.run(client.fetch_page("someone/profile"))


class TestImport:

    def test_sends_session_cookie_and_csrf_token(self, no_sleep):
        """Test the import request: session cookie, CSRF header and multipart file."""
        server = FakeCosense()
        client = make_client(server, no_sleep)

        asyncio.run(client.import_pages("book-4297129140", project_of(3)))

        assert len(server.imports) == 1
        sent = server.imports[0]
        assert sent.method == "POST"
        assert sent.url.path == "/api/page-data/import/book-4297129140.json"
        assert sent.headers["X-CSRF-TOKEN"] == "csrf-123"
        assert "connect.sid=s%3Asecret" in sent.headers["Cookie"]
        assert sent.headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="import-file"' in sent.content
        assert imported_titles(sent) == ["0", "1", "2"]

    def test_chunks_with_pause_between(self, no_sleep):
        """Test that large projects are imported in paced chunks with one token fetch."""
        server = FakeCosense()
        client = make_client(server, no_sleep, batch_size=100, inter_batch_delay=1.0)

        asyncio.run(client.import_pages("book-1", project_of(250)))

        assert len(server.imports) == 3
        assert [len(imported_titles(r)) for r in server.imports] == [100, 100, 50]
        assert imported_titles(server.imports[2])[0] == "200"
        assert no_sleep.delays == [1.0, 1.0]
        # token fetched once for the whole import
        assert server.token_requests == 1

    def test_failed_chunk_stops_the_rest(self, no_sleep):
        """Test that a failed chunk raises and sends no further chunks."""
        server = FakeCosense(fail_import_call=2)
        client = make_client(server, no_sleep, batch_size=100)

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(client.import_pages("book-1", project_of(300)))

        assert exc_info.value.status_code == 503
        assert len(server.imports) == 2

    def test_no_cookie_without_sid(self, no_sleep):
        """Test that no Cookie header is sent when the sid is empty."""
        server = FakeCosense()
        client = make_client(server, no_sleep, sid="")

        asyncio.run(client.import_pages("book-1", project_of(1)))

        assert "Cookie" not in server.imports[0].headers
