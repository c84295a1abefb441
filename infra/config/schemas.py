"""
Configuration schemas for scanwiki.

A workspace may carry an optional {workspace}/config.yaml; anything it leaves
out falls back to the defaults below. String values may reference
environment variables with ${VAR} syntax (secrets normally come from .env).
"""

from pathlib import Path
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

import os
import re

from infra.errors import CredentialsMissingError


class RasterizeConfig(BaseModel):
    """PDF -> page images (external mutool process)."""
    command: str = Field("mutool", description="Rasterizer executable")
    resolution: int = Field(600, ge=72, description="Render resolution in DPI")
    concurrency: int = Field(2, ge=1, le=3, description="PDFs rasterized at once (CPU bound)")


class IsbnConfig(BaseModel):
    """Title -> ISBN lookup chain."""
    concurrency: int = Field(1, ge=1, description="Directories resolved at once")
    interactive: bool = Field(True, description="Prompt the operator when every lookup fails")
    max_results: int = Field(5, ge=1, description="Search results scanned per lookup")
    timeout_seconds: float = Field(10.0, gt=0)


class OcrConfig(BaseModel):
    """Image upload + OCR polling against the hosting service."""
    concurrency: int = Field(10, ge=1, description="Pages in flight at once")
    batch_size: Optional[int] = Field(None, ge=1, description="Pages per batch (None = one batch)")
    inter_batch_delay: float = Field(0.0, ge=0, description="Seconds between batches")
    book_concurrency: int = Field(1, ge=1, description="Books built at once")
    show_progress: bool = Field(False, description="Progress bar per book (interactive terminals)")

    upload_attempts: int = Field(4, ge=1)
    upload_retry_delay: float = Field(3.0, ge=0)
    quiescence_delay: float = Field(10.0, ge=0, description="Wait after upload before the first poll")
    poll_attempts: int = Field(6, ge=1)
    poll_base_delay: float = Field(2.0, ge=0, description="First poll backoff, doubled each retry")
    timeout_seconds: float = Field(60.0, gt=0)


class WikiConfig(BaseModel):
    """Import of built projects into the wiki workspace."""
    concurrency: int = Field(1, ge=1, description="Books imported at once")
    batch_size: int = Field(100, ge=1, description="Pages per API import request")
    inter_batch_delay: float = Field(1.0, ge=0, description="Seconds between API import requests")
    timeout_seconds: float = Field(60.0, gt=0)


class WorkspaceConfig(BaseModel):
    """
    Workspace-level configuration.

    Stored at: {workspace_dir}/config.yaml (optional)
    """
    model_config = ConfigDict(validate_default=True)

    workspace_dir: Path = Field(Path("./workspace"), description="Directory holding PDFs and artifacts")

    gyazo_token: str = Field("${GYAZO_TOKEN}", description="Hosting/OCR access token")
    cosense_sid: str = Field("${COSENSE_SID}", description="Wiki session cookie (connect.sid)")

    profile_page: Optional[str] = Field(None, description="'project/page' prepended to every book")
    project_prefix: str = Field("book-", description="Wiki project name = prefix + ISBN")
    import_transport: Literal["gui", "api", "none"] = Field("gui")
    browser_profile_dir: Path = Field(Path("./browser-profile"))
    headless: bool = Field(False)
    log_level: str = Field("INFO")

    rasterize: RasterizeConfig = Field(default_factory=RasterizeConfig)
    isbn: IsbnConfig = Field(default_factory=IsbnConfig)
    ocr: OcrConfig = Field(default_factory=OcrConfig)
    wiki: WikiConfig = Field(default_factory=WikiConfig)

    @field_validator("gyazo_token", "cosense_sid", mode="after")
    @classmethod
    def _expand_env(cls, value: str) -> str:
        return resolve_env_vars(value)

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"Unknown log level: {value}")
        return value

    @property
    def log_dir(self) -> Path:
        return self.workspace_dir / ".logs"

    def require_gyazo_token(self) -> str:
        if not self.gyazo_token:
            raise CredentialsMissingError(
                "GYAZO_TOKEN is not set. Add it to .env or to config.yaml (gyazo_token)."
            )
        return self.gyazo_token

    def require_cosense_sid(self) -> str:
        if not self.cosense_sid:
            raise CredentialsMissingError(
                "COSENSE_SID is not set. Add it to .env or to config.yaml (cosense_sid)."
            )
        return self.cosense_sid


def resolve_env_vars(value: str) -> str:
    """
    Resolve ${ENV_VAR} references in a string.

    Examples:
        "${GYAZO_TOKEN}" -> actual value from environment
        "literal-value" -> "literal-value"
        "${MISSING_VAR}" -> "" (empty string if not set)
    """
    if not isinstance(value, str):
        return value

    pattern = r'\$\{([^}]+)\}'

    def replace(match):
        var_name = match.group(1)
        return os.environ.get(var_name, "")

    return re.sub(pattern, replace, value)
