"""
Cosense (Scrapbox) through a real browser.

Project creation has no public API, and the GUI importer avoids the API's
rate limits, so both are driven with Playwright. The browser profile
directory keeps the logged-in session between runs; log in once with a
headed browser and later runs reuse it.
"""

import asyncio
import json
import re
import tempfile
from pathlib import Path
from typing import Optional

from playwright.async_api import (
    BrowserContext,
    Error as PlaywrightError,
    Page as BrowserPage,
    Playwright,
    async_playwright,
)

from infra.errors import ApiError
from infra.logger import PipelineLogger, create_logger
from pipeline.schemas import Project


BASE_URL = "https://scrapbox.io"
LAUNCH_ARGS = ["--disable-blink-features=AutomationControlled"]


class CosenseBrowser:
    def __init__(
        self,
        profile_dir: Path,
        headless: bool = False,
        create_timeout: float = 10.0,
        import_timeout: float = 60.0,
        logger: Optional[PipelineLogger] = None,
    ):
        self.profile_dir = Path(profile_dir)
        self.headless = headless
        self.create_timeout = create_timeout
        self.import_timeout = import_timeout
        self.logger = logger or create_logger("import", json_output=False)

        self._playwright: Optional[Playwright] = None
        self._context: Optional[BrowserContext] = None
        self._launch_lock = asyncio.Lock()

    async def _ensure_context(self) -> BrowserContext:
        async with self._launch_lock:
            if self._context is None:
                await self._launch()
        return self._context

    async def _launch(self) -> None:
        try:
            self._playwright = await async_playwright().start()
            self._context = await self._playwright.chromium.launch_persistent_context(
                str(self.profile_dir),
                headless=self.headless,
                args=LAUNCH_ARGS,
            )
        except PlaywrightError as e:
            await self.aclose()
            raise ApiError("Failed to launch browser", cause=e)

        self.logger.debug("Browser launched", profile_dir=str(self.profile_dir))

    async def _new_page(self) -> BrowserPage:
        context = await self._ensure_context()
        return await context.new_page()

    async def create_project(self, project_name: str) -> str:
        self.logger.info(f"Creating project {project_name}", project=project_name)
        page = await self._new_page()
        try:
            await page.goto(f"{BASE_URL}/projects/new")
            await page.wait_for_load_state("networkidle")

            await page.get_by_role("textbox", name="Project URL").fill(project_name)
            await page.get_by_role("radio", name="Private Project").click()
            await page.get_by_role("radio", name=re.compile("Personal")).click()
            await page.get_by_role("radio", name="gyazo.com").click()
            await page.get_by_role("button", name="Create").click()

            await page.wait_for_url(
                f"**/scrapbox.io/{project_name}/**",
                timeout=self.create_timeout * 1000,
            )
        except PlaywrightError as e:
            raise ApiError(f"Failed to create project {project_name}", cause=e)
        finally:
            await page.close()

        return project_name

    async def import_file(self, project_name: str, json_path: Path) -> None:
        page = await self._new_page()
        try:
            await page.goto(f"{BASE_URL}/projects/{project_name}/settings/page-data")
            await page.wait_for_load_state("networkidle")

            async with page.expect_file_chooser() as chooser_info:
                await page.get_by_role("button", name="Choose File").click()
            chooser = await chooser_info.value
            await chooser.set_files(str(Path(json_path).resolve()))

            await page.get_by_role("button", name="Import Pages").click()

            # the importer redirects to the project top page when it is done
            await page.wait_for_url(
                f"{BASE_URL}/{project_name}/",
                timeout=self.import_timeout * 1000,
            )
        except PlaywrightError as e:
            raise ApiError(f"Failed to import pages into {project_name}", cause=e)
        finally:
            await page.close()

    async def import_pages(self, project_name: str, project: Project) -> None:
        self.logger.info(
            f"Importing {len(project.pages)} page(s) via GUI",
            project=project_name,
        )
        with tempfile.TemporaryDirectory(prefix="scanwiki-") as tmp:
            json_path = Path(tmp) / f"{project_name}.json"
            json_path.write_text(
                json.dumps(project.model_dump(), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            await self.import_file(project_name, json_path)

    async def aclose(self) -> None:
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
