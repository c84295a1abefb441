"""
Per-image OCR pipeline.

    PENDING_UPLOAD -> UPLOADED -> AWAITING_OCR -> OCR_READY
                 \\                           \\-> OCR_FAILED
                  \\-> OCR_FAILED

Upload retries transient HTTP failures on a fixed delay. After a successful
upload the pipeline waits a fixed quiescence period (the hosting service runs
OCR asynchronously), then polls with exponential backoff while the text is
still missing. Only "not ready yet" is retried during polling; an HTTP or
schema failure ends the page immediately.

A page that ends in OCR_FAILED is still rendered, with empty text, so one bad
image never blocks the rest of the book.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Protocol, Set

from infra.batcher import BatchConfig, RateLimitedBatcher
from infra.config import OcrConfig
from infra.errors import ApiError, OcrPendingError, ResponseSchemaError, ShutdownRequested, WorkspaceIOError
from infra.logger import PipelineLogger, create_logger
from infra.result import Err, Result, attempt, recover
from infra.retry import RetryPolicy
from pipeline import workspace as ws
from pipeline.schemas import Page, Project, WorkItem

from .render import render_page


class ImageHost(Protocol):
    def upload(self, data: bytes, filename: str) -> Awaitable[str]:
        ...

    def fetch_ocr(self, image_id: str) -> Awaitable[str]:
        ...

    def image_url(self, image_id: str) -> str:
        ...


class PageState(str, Enum):
    PENDING_UPLOAD = "pending_upload"
    UPLOADED = "uploaded"
    AWAITING_OCR = "awaiting_ocr"
    OCR_READY = "ocr_ready"
    OCR_FAILED = "ocr_failed"


@dataclass
class PageOutcome:
    index: int
    state: PageState
    image_id: Optional[str] = None
    text: str = ""
    error: Optional[BaseException] = None


def is_transient_upload_error(error: BaseException) -> bool:
    return isinstance(error, ApiError) and not isinstance(error, ResponseSchemaError)


def is_ocr_pending(error: BaseException) -> bool:
    return isinstance(error, OcrPendingError)


async def read_image(path: Path) -> bytes:
    try:
        return await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        raise WorkspaceIOError(f"Cannot read image {path.name}", cause=e)


class OcrPagePipeline:
    def __init__(
        self,
        host: ImageHost,
        config: Optional[OcrConfig] = None,
        logger: Optional[PipelineLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.host = host
        self.config = config or OcrConfig()
        self.logger = logger or create_logger("build-ocr", json_output=False)
        self.sleep = sleep

        self.upload_policy = RetryPolicy.fixed(
            self.config.upload_attempts,
            self.config.upload_retry_delay,
            retryable=is_transient_upload_error,
            name="upload",
            logger=self.logger,
            sleep=sleep,
        )
        self.poll_policy = RetryPolicy.exponential(
            self.config.poll_attempts,
            self.config.poll_base_delay,
            retryable=is_ocr_pending,
            name="OCR poll",
            logger=self.logger,
            sleep=sleep,
        )
        self._batchers: Set[RateLimitedBatcher] = set()
        self._stop_requested = False

    def request_stop(self) -> None:
        """Let running page batches finish their current chunk, start nothing new."""
        self._stop_requested = True
        for batcher in self._batchers:
            batcher.request_stop()

    async def upload(self, item: WorkItem) -> Result:
        if not item.path.exists():
            return Err(WorkspaceIOError(f"Image not found: {item.path}"))

        data = await attempt(read_image, item.path)
        if isinstance(data, Err):
            return data

        return await self.upload_policy.run(
            lambda: attempt(self.host.upload, data.value, item.name),
            page=item.index,
            item=item.name,
        )

    async def poll(self, image_id: str, index: int) -> Result:
        return await self.poll_policy.run(
            lambda: attempt(self.host.fetch_ocr, image_id),
            page=index,
        )

    async def process_image(self, item: WorkItem) -> PageOutcome:
        outcome = PageOutcome(index=item.index, state=PageState.PENDING_UPLOAD)

        uploaded = await self.upload(item)
        if isinstance(uploaded, Err):
            self.logger.warning(
                "Upload failed, page will have no image or text",
                page=item.index,
                item=item.name,
                error=str(uploaded.error),
            )
            outcome.state = PageState.OCR_FAILED
            outcome.error = uploaded.error
            return outcome

        outcome.image_id = uploaded.value
        outcome.state = PageState.UPLOADED
        self.logger.debug(f"Uploaded as {outcome.image_id}", page=item.index, item=item.name)

        outcome.state = PageState.AWAITING_OCR
        await self.sleep(self.config.quiescence_delay)

        polled = await self.poll(outcome.image_id, item.index)
        if isinstance(polled, Err):
            self.logger.warning(
                "OCR text unavailable, page will have empty text",
                page=item.index,
                item=item.name,
                error=str(polled.error),
            )
            outcome.state = PageState.OCR_FAILED
            outcome.error = polled.error
        else:
            outcome.state = PageState.OCR_READY

        # a page whose OCR never arrived is still rendered, with empty text
        outcome.text = recover(polled, lambda error: "").value
        return outcome

    def render(self, outcome: PageOutcome, total: int) -> Page:
        image_url = self.host.image_url(outcome.image_id) if outcome.image_id else None
        return render_page(outcome.index, total, image_url, outcome.text)

    async def build_pages(self, images: List[Path]) -> List[Page]:
        """One page per image, in image order, regardless of individual failures."""
        items = [WorkItem(path=path, index=i) for i, path in enumerate(images)]
        total = len(items)

        batcher = RateLimitedBatcher(
            BatchConfig(
                concurrency=self.config.concurrency,
                batch_size=self.config.batch_size,
                inter_batch_delay=self.config.inter_batch_delay,
                keep_failures=True,
                description="OCR pages",
                show_progress=self.config.show_progress,
            ),
            logger=self.logger,
            sleep=self.sleep,
        )
        if self._stop_requested:
            batcher.request_stop()

        self._batchers.add(batcher)
        try:
            results = await batcher.run(items, self.process_image)
        finally:
            self._batchers.discard(batcher)

        if len(results) < total:
            raise ShutdownRequested(f"Stopped after {len(results)}/{total} pages")

        outcomes: List[PageOutcome] = []
        for result in results:
            if isinstance(result, Err):
                raise result.error
            outcomes.append(result.value)

        failed = sum(1 for outcome in outcomes if outcome.state == PageState.OCR_FAILED)
        if failed:
            self.logger.warning(f"{failed}/{total} page(s) have no OCR text")

        return [self.render(outcome, total) for outcome in outcomes]

    async def build_project(self, image_dir: Path, profile: Optional[Page] = None) -> Project:
        images = ws.list_images(image_dir)
        self.logger.info(f"Building {len(images)} page(s)", item=image_dir.name)

        pages = await self.build_pages(images)
        if profile is not None:
            pages.insert(0, profile)

        self.logger.info(f"Built {len(pages)} page(s)", item=image_dir.name)
        return Project(pages=pages)
