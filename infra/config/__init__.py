"""
Configuration management for scanwiki.

Usage:
    from infra.config import load_config

    config = load_config(Path("./workspace"))
    config.ocr.concurrency        # 10
    config.require_gyazo_token()  # from .env / environment
"""

from .schemas import (
    RasterizeConfig,
    IsbnConfig,
    OcrConfig,
    WikiConfig,
    WorkspaceConfig,
    resolve_env_vars,
)

from .workspace_config import (
    CONFIG_FILENAME,
    default_workspace_dir,
    load_config,
)


__all__ = [
    "RasterizeConfig",
    "IsbnConfig",
    "OcrConfig",
    "WikiConfig",
    "WorkspaceConfig",
    "resolve_env_vars",
    "CONFIG_FILENAME",
    "default_workspace_dir",
    "load_config",
]
