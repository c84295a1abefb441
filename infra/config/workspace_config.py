"""
Workspace configuration loading.

Resolution order (later wins):
1. WorkspaceConfig defaults
2. {workspace_dir}/config.yaml
3. explicit overrides (CLI flags)

.env is loaded first so ${VAR} references in defaults and config.yaml see it.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .schemas import WorkspaceConfig


CONFIG_FILENAME = "config.yaml"
WORKSPACE_ENV_VAR = "SCANWIKI_WORKSPACE"


def default_workspace_dir() -> Path:
    return Path(os.getenv(WORKSPACE_ENV_VAR, "./workspace")).expanduser()


def load_config(
    workspace_dir: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    load_env: bool = True,
) -> WorkspaceConfig:
    """
    Load the workspace config.

    Args:
        workspace_dir: Workspace root (default: $SCANWIKI_WORKSPACE or ./workspace)
        overrides: Top-level or dotted keys ("ocr.concurrency") applied last
        load_env: Whether to read .env from the current directory

    Returns:
        Validated WorkspaceConfig
    """
    if load_env:
        load_dotenv()

    workspace_dir = Path(workspace_dir).expanduser() if workspace_dir else default_workspace_dir()
    config_path = workspace_dir / CONFIG_FILENAME

    data: Dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{config_path} must contain a mapping, got {type(data).__name__}")

    data["workspace_dir"] = workspace_dir

    for key, value in (overrides or {}).items():
        _set_dotted(data, key, value)

    return WorkspaceConfig.model_validate(data)


def _set_dotted(data: Dict[str, Any], key: str, value: Any) -> None:
    parts = key.split(".")
    target = data
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value
