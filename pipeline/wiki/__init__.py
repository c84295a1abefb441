"""
Wiki workspace (Cosense/Scrapbox): create one project per book and import
its pages.

Two import transports share the same import_pages(project_name, project)
shape: the browser GUI importer and the HTTP page-data API. Project
creation always goes through the browser.
"""

from typing import Awaitable, Optional, Protocol

from infra.logger import PipelineLogger, create_logger
from pipeline.schemas import Project

from .browser import CosenseBrowser
from .cosense_api import CosenseApiClient, PageDetail


class ProjectCreator(Protocol):
    def create_project(self, project_name: str) -> Awaitable[str]:
        ...


class PageImporter(Protocol):
    def import_pages(self, project_name: str, project: Project) -> Awaitable[None]:
        ...


class CosenseWorkspace:
    def __init__(
        self,
        creator: ProjectCreator,
        importer: PageImporter,
        project_prefix: str = "book-",
        logger: Optional[PipelineLogger] = None,
    ):
        self.creator = creator
        self.importer = importer
        self.project_prefix = project_prefix
        self.logger = logger or create_logger("import", json_output=False)

    def project_name(self, isbn: str) -> str:
        return f"{self.project_prefix}{isbn}"

    async def create_project(self, isbn: str) -> str:
        return await self.creator.create_project(self.project_name(isbn))

    async def import_pages(self, project_name: str, project: Project) -> None:
        await self.importer.import_pages(project_name, project)
        self.logger.info(
            f"Imported {len(project.pages)} page(s)",
            project=project_name,
        )


__all__ = [
    "CosenseApiClient",
    "CosenseBrowser",
    "CosenseWorkspace",
    "PageDetail",
    "PageImporter",
    "ProjectCreator",
]
