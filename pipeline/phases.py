"""
Phase handlers: what the driver does for one pending item of each phase.

Every handler writes its completion marker as the very last step, and only
after everything before it succeeded:

    rasterize     .<name>.rasterizing/ renamed to <name>/
    resolve-isbn  <dir>/.isbn
    build-ocr     <dir>-ocr.json
    import        <dir>/.imported
"""

import asyncio
import os
import shutil
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from infra.batcher import BatchConfig
from infra.config import IsbnConfig, OcrConfig, RasterizeConfig, WikiConfig
from infra.errors import ApiError, RasterizerMissingError, ToolError, WorkspaceIOError
from infra.logger import PipelineLogger, create_logger
from infra.result import Ok, Result, attempt, map_err, unwrap
from infra.utils import MutoolRasterizer

from . import workspace as ws
from .isbn import IsbnResolutionChain
from .ocr_pages import OcrPagePipeline
from .scanner import Phase
from .schemas import Page, Project, WorkItem
from .wiki import CosenseApiClient, CosenseWorkspace


class PhaseHandler:
    phase: Phase = None

    def __init__(
        self,
        logger: Optional[PipelineLogger] = None,
        check_credentials: Optional[Callable[[], Any]] = None,
    ):
        self.logger = logger or create_logger(self.phase.value, json_output=False)
        self.check_credentials = check_credentials

    def batch_config(self) -> BatchConfig:
        return BatchConfig()

    async def before(self) -> None:
        """Checks that must pass before any item of the phase runs."""
        if self.check_credentials:
            self.check_credentials()

    async def handle(self, item: WorkItem) -> None:
        raise NotImplementedError

    def request_stop(self) -> None:
        pass


class RasterizePhase(PhaseHandler):
    phase = Phase.RASTERIZE

    def __init__(
        self,
        rasterizer: MutoolRasterizer,
        config: Optional[RasterizeConfig] = None,
        logger: Optional[PipelineLogger] = None,
    ):
        super().__init__(logger)
        self.rasterizer = rasterizer
        self.config = config or RasterizeConfig()

    def batch_config(self) -> BatchConfig:
        return BatchConfig(
            concurrency=self.config.concurrency,
            batch_size=self.config.concurrency,
            fatal=(RasterizerMissingError,),
            description="Rasterizing",
        )

    async def before(self) -> None:
        self.rasterizer.ensure_available()

    async def handle(self, item: WorkItem) -> None:
        pdf_path = item.path
        staging = ws.staging_dir_for_pdf(pdf_path)
        target = ws.image_dir_for_pdf(pdf_path)

        await asyncio.to_thread(_reset_dir, staging)
        try:
            await self.rasterizer.rasterize(pdf_path, staging)

            images = await asyncio.to_thread(ws.list_images, staging)
            if not images:
                raise ToolError(f"{self.rasterizer.command} produced no images for {pdf_path.name}")

            await asyncio.to_thread(_rename_dir, staging, target)
        except BaseException:
            await asyncio.to_thread(shutil.rmtree, staging, True)
            raise

        self.logger.info(f"Rasterized {len(images)} page(s)", item=item.name)


def _reset_dir(path: Path) -> None:
    try:
        if path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True)
    except OSError as e:
        raise WorkspaceIOError(f"Cannot prepare {path}", cause=e)


def _rename_dir(source: Path, target: Path) -> None:
    try:
        os.rename(source, target)
    except OSError as e:
        raise WorkspaceIOError(f"Cannot move {source.name} to {target.name}", cause=e)


class ResolveIsbnPhase(PhaseHandler):
    phase = Phase.RESOLVE_ISBN

    def __init__(
        self,
        chain: IsbnResolutionChain,
        config: Optional[IsbnConfig] = None,
        logger: Optional[PipelineLogger] = None,
    ):
        super().__init__(logger)
        self.chain = chain
        self.config = config or IsbnConfig()

    def batch_config(self) -> BatchConfig:
        return BatchConfig(
            concurrency=self.config.concurrency,
            batch_size=self.config.concurrency,
            description="Resolving ISBNs",
        )

    async def handle(self, item: WorkItem) -> None:
        book = unwrap(await self.chain.resolve(item.name))
        await asyncio.to_thread(ws.write_isbn, item.path, book.isbn)
        self.logger.info(f"ISBN {book.isbn}", item=item.name)


class BuildOcrPhase(PhaseHandler):
    phase = Phase.BUILD_OCR

    def __init__(
        self,
        pipeline: OcrPagePipeline,
        config: Optional[OcrConfig] = None,
        pages_api: Optional[CosenseApiClient] = None,
        profile_page: Optional[str] = None,
        check_credentials: Optional[Callable[[], Any]] = None,
        logger: Optional[PipelineLogger] = None,
    ):
        super().__init__(logger, check_credentials)
        self.pipeline = pipeline
        self.config = config or OcrConfig()
        self.pages_api = pages_api
        self.profile_page = profile_page

        self._profile: Optional[Result] = None
        self._profile_lock = asyncio.Lock()

    def batch_config(self) -> BatchConfig:
        return BatchConfig(
            concurrency=self.config.book_concurrency,
            batch_size=self.config.book_concurrency,
        )

    async def profile(self) -> Optional[Page]:
        """The configured profile page, fetched at most once per run."""
        if not self.profile_page or self.pages_api is None:
            return None

        async with self._profile_lock:
            if self._profile is None:
                fetched = await attempt(self.pages_api.fetch_page, self.profile_page)
                self._profile = map_err(fetched, self._profile_error)
                if isinstance(self._profile, Ok):
                    self.logger.debug(f"Profile page: {self._profile.value.title}")
        return unwrap(self._profile)

    def _profile_error(self, error: BaseException) -> BaseException:
        if not isinstance(error, ApiError):
            return error
        return ApiError(
            f"Profile page {self.profile_page} unavailable",
            cause=error,
            status_code=error.status_code,
        )

    async def handle(self, item: WorkItem) -> None:
        profile = await self.profile()
        project = await self.pipeline.build_project(item.path, profile)

        json_path = ws.ocr_json_path(item.path)
        await asyncio.to_thread(ws.atomic_write_text, json_path, project.to_json())
        self.logger.info(f"Saved {json_path.name} ({len(project.pages)} pages)", item=item.name)

    def request_stop(self) -> None:
        self.pipeline.request_stop()


class ImportPhase(PhaseHandler):
    phase = Phase.IMPORT

    def __init__(
        self,
        wiki: CosenseWorkspace,
        config: Optional[WikiConfig] = None,
        check_credentials: Optional[Callable[[], Any]] = None,
        logger: Optional[PipelineLogger] = None,
    ):
        super().__init__(logger, check_credentials)
        self.wiki = wiki
        self.config = config or WikiConfig()

    def batch_config(self) -> BatchConfig:
        return BatchConfig(
            concurrency=self.config.concurrency,
            batch_size=self.config.concurrency,
        )

    async def handle(self, item: WorkItem) -> None:
        image_dir = ws.image_dir_for_json(item.path)
        isbn = await asyncio.to_thread(ws.read_isbn, image_dir)
        project = load_project(await asyncio.to_thread(ws.read_text, item.path), item.path)

        project_name = await self.wiki.create_project(isbn)
        await self.wiki.import_pages(project_name, project)

        await asyncio.to_thread(ws.atomic_write_text, ws.imported_marker(image_dir), project_name)
        self.logger.info(f"Imported into {project_name}", item=item.name, project=project_name)

    def request_stop(self) -> None:
        importer = self.wiki.importer
        if hasattr(importer, "request_stop"):
            importer.request_stop()


def load_project(text: str, path: Path) -> Project:
    try:
        return Project.model_validate_json(text)
    except ValidationError as e:
        raise WorkspaceIOError(f"{path.name} is not a valid project file", cause=e)
