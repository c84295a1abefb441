"""
Tests for pipeline/ocr_pages/pipeline.py with an in-memory image host.

Key behaviors to verify:
1. Upload -> quiescence wait -> poll, with the configured retry schedules
2. "Not ready" is polled again, schema/HTTP failures are not
3. A failed page is still rendered (empty text) so the book has N pages
4. Profile page is prepended
"""

import asyncio

import pytest

from infra.config import OcrConfig
from infra.errors import ApiError, OcrPendingError, ResponseSchemaError, ShutdownRequested
from pipeline.ocr_pages import OcrPagePipeline, PageState
from pipeline.schemas import Page, WorkItem


class FakeHost:
    """upload() hands out ids img-1, img-2, ...; fetch_ocr() follows a script per id."""

    def __init__(self, text="Hello", pending_polls=0, upload_errors=None, fetch_errors=None):
        self.text = text
        self.pending_polls = pending_polls
        self.upload_errors = dict(upload_errors or {})
        self.fetch_errors = dict(fetch_errors or {})
        self.uploads = []
        self.polls = {}

    async def upload(self, data, filename):
        errors = self.upload_errors.get(filename)
        self.uploads.append(filename)
        if errors:
            raise errors.pop(0)
        return f"img-{filename.split('.')[0]}"

    async def fetch_ocr(self, image_id):
        self.polls[image_id] = self.polls.get(image_id, 0) + 1
        if image_id in self.fetch_errors:
            raise self.fetch_errors[image_id]
        if self.polls[image_id] <= self.pending_polls:
            raise OcrPendingError(image_id)
        return self.text

    def image_url(self, image_id):
        return f"https://gyazo.com/{image_id}"


def make_pipeline(host, no_sleep, **config):
    return OcrPagePipeline(host, OcrConfig(**config), sleep=no_sleep)


class TestProcessImage:

    def test_happy_path(self, image_dir, no_sleep):
        """Test upload, quiescence wait and a single successful poll."""
        host = FakeHost(text="Hello")
        pipeline = make_pipeline(host, no_sleep)

        outcome = asyncio.run(pipeline.process_image(WorkItem(image_dir / "1.png", 0)))

        assert outcome.state == PageState.OCR_READY
        assert outcome.image_id == "img-1"
        assert outcome.text == "Hello"
        # quiescence wait before the first poll, no retries
        assert no_sleep.delays == [10.0]

    def test_polls_with_backoff_until_ready(self, image_dir, no_sleep):
        """Test that pending OCR is polled again with doubling delays."""
        host = FakeHost(pending_polls=3)
        pipeline = make_pipeline(host, no_sleep)

        outcome = asyncio.run(pipeline.process_image(WorkItem(image_dir / "1.png", 0)))

        assert outcome.state == PageState.OCR_READY
        assert host.polls["img-1"] == 4
        assert no_sleep.delays == [10.0, 2.0, 4.0, 8.0]

    def test_gives_up_after_poll_attempts(self, image_dir, no_sleep):
        """Test that a page still pending after every poll gets empty text."""
        host = FakeHost(pending_polls=100)
        pipeline = make_pipeline(host, no_sleep)

        outcome = asyncio.run(pipeline.process_image(WorkItem(image_dir / "1.png", 0)))

        assert outcome.state == PageState.OCR_FAILED
        assert outcome.text == ""
        assert outcome.image_id == "img-1"
        assert host.polls["img-1"] == 6

    @pytest.mark.parametrize("error", [
        ResponseSchemaError("bad payload"),
        ApiError("server error", status_code=500),
    ])
    def test_poll_failure_not_retried(self, image_dir, no_sleep, error):
        """Test that schema and HTTP failures during polling are not retried."""
        host = FakeHost(fetch_errors={"img-1": error})
        pipeline = make_pipeline(host, no_sleep)

        outcome = asyncio.run(pipeline.process_image(WorkItem(image_dir / "1.png", 0)))

        assert outcome.state == PageState.OCR_FAILED
        assert host.polls["img-1"] == 1
        assert outcome.error is error

    def test_upload_retried_on_fixed_delay(self, image_dir, no_sleep):
        """Test that failed uploads are retried on the fixed upload delay."""
        host = FakeHost(upload_errors={"1.png": [ApiError("503"), ApiError("503")]})
        pipeline = make_pipeline(host, no_sleep)

        outcome = asyncio.run(pipeline.process_image(WorkItem(image_dir / "1.png", 0)))

        assert outcome.state == PageState.OCR_READY
        assert host.uploads == ["1.png"] * 3
        assert no_sleep.delays == [3.0, 3.0, 10.0]

    def test_upload_gives_up_after_attempts(self, image_dir, no_sleep):
        """Test that an upload failing every attempt is never polled."""
        host = FakeHost(upload_errors={"1.png": [ApiError("503")] * 10})
        pipeline = make_pipeline(host, no_sleep)

        outcome = asyncio.run(pipeline.process_image(WorkItem(image_dir / "1.png", 0)))

        assert outcome.state == PageState.OCR_FAILED
        assert outcome.image_id is None
        assert host.uploads == ["1.png"] * 4
        assert host.polls == {}

    def test_missing_image_fails_fast(self, image_dir, no_sleep):
        """Test that a missing image file fails without uploading or waiting."""
        host = FakeHost()
        pipeline = make_pipeline(host, no_sleep)

        outcome = asyncio.run(pipeline.process_image(WorkItem(image_dir / "99.png", 0)))

        assert outcome.state == PageState.OCR_FAILED
        assert host.uploads == []
        assert no_sleep.delays == []


class TestBuildProject:

    def test_one_page_per_image_in_numeric_order(self, workspace, make_png, no_sleep):
        """Test that pages follow the numeric order of image names."""
        book = workspace / "book"
        for n in (10, 2, 1):
            make_png(book / f"{n}.png")
        host = FakeHost(text="Hello")

        project = asyncio.run(make_pipeline(host, no_sleep).build_project(book))

        assert [p.title for p in project.pages] == ["0", "1", "2"]
        # 1.png, 2.png, 10.png
        assert project.pages[0].lines[3] == "[[https://gyazo.com/img-1]]"
        assert project.pages[2].lines[3] == "[[https://gyazo.com/img-10]]"
        assert all("> Hello" in p.lines for p in project.pages)

    def test_failed_page_kept_with_empty_text(self, image_dir, no_sleep):
        """Test that a page whose OCR failed keeps its image and empty text."""
        host = FakeHost(text="Hello", fetch_errors={"img-2": ResponseSchemaError("bad")})

        project = asyncio.run(make_pipeline(host, no_sleep).build_project(image_dir))

        assert len(project.pages) == 3
        middle = project.pages[1]
        assert middle.lines[3] == "[[https://gyazo.com/img-2]]"
        assert middle.lines[-1] == "> "
        assert "> Hello" in project.pages[0].lines

    def test_profile_page_prepended(self, image_dir, no_sleep):
        """Test that the profile page comes before the scanned pages."""
        profile = Page(title="me", lines=["me", "about this project"])

        project = asyncio.run(
            make_pipeline(FakeHost(), no_sleep).build_project(image_dir, profile)
        )

        assert len(project.pages) == 4
        assert project.pages[0] == profile
        assert project.pages[1].title == "0"

    def test_concurrency_bound(self, workspace, make_png, no_sleep):
        """Test page batching with the pause between page batches."""
        book = workspace / "book"
        for n in range(1, 9):
            make_png(book / f"{n}.png")

        pipeline = make_pipeline(FakeHost(), no_sleep, concurrency=3, batch_size=4, inter_batch_delay=0.5)
        project = asyncio.run(pipeline.build_project(book))

        assert len(project.pages) == 8
        # 8 pages, quiescence per page, one pause between the two batches
        assert no_sleep.delays.count(10.0) == 8
        assert no_sleep.delays.count(0.5) == 1

    def test_stop_before_start_raises(self, image_dir, no_sleep):
        """Test that a stop requested before the book starts skips it."""
        pipeline = make_pipeline(FakeHost(), no_sleep)
        pipeline.request_stop()

        with pytest.raises(ShutdownRequested):
            asyncio.run(pipeline.build_project(image_dir))
