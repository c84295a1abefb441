"""
Tests for infra/config/ module.

- Defaults when no config.yaml exists
- config.yaml values and dotted overrides
- ${VAR} expansion for secrets
- Validation errors

All tests use temporary directories and load_env=False so a developer's
.env never leaks in.
"""

import pytest
import yaml
from pydantic import ValidationError

from infra.errors import CredentialsMissingError
from infra.config import (
    CONFIG_FILENAME,
    WorkspaceConfig,
    default_workspace_dir,
    load_config,
    resolve_env_vars,
)


def write_config(workspace, data):
    with open(workspace / CONFIG_FILENAME, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f)


class TestDefaults:

    def test_defaults_without_file(self, workspace, monkeypatch):
        """Test defaults when the workspace has no config.yaml."""
        monkeypatch.delenv("GYAZO_TOKEN", raising=False)

        config = load_config(workspace, load_env=False)

        assert config.workspace_dir == workspace
        assert config.log_dir == workspace / ".logs"
        assert config.import_transport == "gui"
        assert config.project_prefix == "book-"
        assert config.rasterize.concurrency == 2
        assert config.isbn.concurrency == 1
        assert config.ocr.upload_attempts == 4
        assert config.ocr.upload_retry_delay == 3.0
        assert config.ocr.quiescence_delay == 10.0
        assert config.ocr.poll_attempts == 6
        assert config.ocr.poll_base_delay == 2.0
        assert config.wiki.batch_size == 100
        assert config.wiki.inter_batch_delay == 1.0
        assert config.gyazo_token == ""

    def test_workspace_from_env(self, tmp_path, monkeypatch):
        """Test that SCANWIKI_WORKSPACE picks the default workspace."""
        monkeypatch.setenv("SCANWIKI_WORKSPACE", str(tmp_path / "scans"))
        assert default_workspace_dir() == tmp_path / "scans"


class TestConfigFile:

    def test_values_from_yaml(self, workspace):
        """Test that config.yaml values are applied over the defaults."""
        write_config(workspace, {
            "project_prefix": "scan-",
            "import_transport": "api",
            "ocr": {"concurrency": 4, "batch_size": 20},
        })

        config = load_config(workspace, load_env=False)

        assert config.project_prefix == "scan-"
        assert config.import_transport == "api"
        assert config.ocr.concurrency == 4
        assert config.ocr.batch_size == 20
        # untouched nested defaults survive
        assert config.ocr.poll_attempts == 6

    def test_dotted_overrides_win(self, workspace):
        """Test that dotted overrides beat config.yaml."""
        write_config(workspace, {"isbn": {"interactive": True, "max_results": 3}})

        config = load_config(
            workspace,
            overrides={"isbn.interactive": False, "import_transport": "none"},
            load_env=False,
        )

        assert config.isbn.interactive is False
        assert config.isbn.max_results == 3
        assert config.import_transport == "none"

    def test_non_mapping_rejected(self, workspace):
        """Test that a config.yaml holding a list is rejected."""
        (workspace / CONFIG_FILENAME).write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            load_config(workspace, load_env=False)

    def test_invalid_values_rejected(self, workspace):
        """Test that out-of-range values fail validation."""
        write_config(workspace, {"rasterize": {"concurrency": 8}})

        with pytest.raises(ValidationError):
            load_config(workspace, load_env=False)

    def test_unknown_transport_rejected(self, workspace):
        """Test that an unknown import transport fails validation."""
        write_config(workspace, {"import_transport": "ftp"})

        with pytest.raises(ValidationError):
            load_config(workspace, load_env=False)


class TestSecrets:

    def test_default_token_from_environment(self, workspace, monkeypatch):
        """Test that tokens default to the environment variables."""
        monkeypatch.setenv("GYAZO_TOKEN", "gyazo-secret")
        monkeypatch.setenv("COSENSE_SID", "s%3Asid")

        config = load_config(workspace, load_env=False)

        assert config.require_gyazo_token() == "gyazo-secret"
        assert config.require_cosense_sid() == "s%3Asid"

    def test_yaml_reference_expanded(self, workspace, monkeypatch):
        """Test ${VAR} expansion inside config.yaml."""
        monkeypatch.setenv("MY_TOKEN", "from-env")
        write_config(workspace, {"gyazo_token": "${MY_TOKEN}"})

        config = load_config(workspace, load_env=False)

        assert config.gyazo_token == "from-env"

    def test_missing_token_raises(self, monkeypatch):
        """Test that an empty Gyazo token raises CredentialsMissingError."""
        monkeypatch.delenv("GYAZO_TOKEN", raising=False)
        config = WorkspaceConfig()

        with pytest.raises(CredentialsMissingError, match="GYAZO_TOKEN"):
            config.require_gyazo_token()

    def test_resolve_env_vars(self, monkeypatch):
        """Test ${VAR} expansion, including unset variables."""
        monkeypatch.setenv("A", "1")
        monkeypatch.delenv("MISSING_VAR", raising=False)

        assert resolve_env_vars("${A}-x") == "1-x"
        assert resolve_env_vars("${MISSING_VAR}") == ""
        assert resolve_env_vars("literal") == "literal"

    def test_log_level_normalized(self):
        """Test that the log level is upper-cased and validated."""
        assert WorkspaceConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            WorkspaceConfig(log_level="loud")
