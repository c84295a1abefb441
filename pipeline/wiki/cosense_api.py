"""
Cosense (Scrapbox) HTTP API.

Page import needs the session cookie (connect.sid) plus a CSRF token from
/api/users/me. Large projects are sent in chunks of pages, one request at a
time with a pause in between, to stay under the import rate limit.
"""

import asyncio
import json
from typing import Awaitable, Callable, List, Optional

import httpx
from pydantic import BaseModel

from infra.batcher import BatchConfig, RateLimitedBatcher, chunked
from infra.clients.http import create_http_client, parse_model, request, response_json
from infra.config import WikiConfig
from infra.errors import ApiError, ShutdownRequested
from infra.logger import PipelineLogger, create_logger
from infra.result import Err
from pipeline.schemas import Page, Project


BASE_URL = "https://scrapbox.io"


class PageLine(BaseModel):
    text: str


class PageDetail(BaseModel):
    title: str
    lines: List[PageLine]


class UserInfo(BaseModel):
    csrfToken: str


class CosenseApiClient:
    def __init__(
        self,
        sid: str = "",
        http: Optional[httpx.AsyncClient] = None,
        config: Optional[WikiConfig] = None,
        logger: Optional[PipelineLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.sid = sid
        self.config = config or WikiConfig()
        self.logger = logger or create_logger("import", json_output=False)
        self.sleep = sleep
        self._owns_http = http is None
        self.http = http or create_http_client(timeout=self.config.timeout_seconds)
        self._batcher: Optional[RateLimitedBatcher] = None

    def _headers(self) -> dict:
        if not self.sid:
            return {}
        return {"Cookie": f"connect.sid={self.sid}"}

    async def fetch_page(self, path: str) -> Page:
        """Fetch 'project/page' as a Page (title + plain line texts)."""
        response = await request(
            self.http,
            "GET",
            f"{BASE_URL}/api/pages/{path}",
            f"fetch page {path}",
            headers=self._headers(),
        )
        detail = parse_model(PageDetail, response_json(response, "page"), "page")
        return Page(title=detail.title, lines=[line.text for line in detail.lines])

    async def csrf_token(self) -> str:
        response = await request(
            self.http,
            "GET",
            f"{BASE_URL}/api/users/me",
            "fetch CSRF token",
            headers=self._headers(),
        )
        return parse_model(UserInfo, response_json(response, "user"), "user").csrfToken

    async def _post_import(self, project_name: str, pages: List[Page], token: str) -> None:
        payload = json.dumps(
            {"pages": [page.model_dump() for page in pages]},
            ensure_ascii=False,
        ).encode("utf-8")
        await request(
            self.http,
            "POST",
            f"{BASE_URL}/api/page-data/import/{project_name}.json",
            f"import pages into {project_name}",
            headers={
                **self._headers(),
                "Accept": "application/json, text/plain, */*",
                "X-CSRF-TOKEN": token,
            },
            data={"name": "import.json"},
            files={"import-file": ("import.json", payload, "application/octet-stream")},
        )

    def request_stop(self) -> None:
        if self._batcher:
            self._batcher.request_stop()

    async def import_pages(self, project_name: str, project: Project) -> None:
        chunks = list(chunked(project.pages, self.config.batch_size))
        token = await self.csrf_token()

        async def send(indexed):
            index, pages = indexed
            self.logger.info(
                f"Batch {index + 1}/{len(chunks)} ({len(pages)} pages)",
                project=project_name,
            )
            await self._post_import(project_name, list(pages), token)

        # one request per batcher chunk; any failure aborts the rest
        self._batcher = RateLimitedBatcher(
            BatchConfig(
                concurrency=1,
                batch_size=1,
                inter_batch_delay=self.config.inter_batch_delay,
                fatal=(ApiError,),
            ),
            logger=self.logger,
            sleep=self.sleep,
        )
        try:
            results = await self._batcher.run(list(enumerate(chunks)), send)
        finally:
            self._batcher = None

        if len(results) < len(chunks):
            raise ShutdownRequested(
                f"Stopped after {len(results)}/{len(chunks)} import batches for {project_name}"
            )

        for result in results:
            if isinstance(result, Err):
                raise result.error

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()
