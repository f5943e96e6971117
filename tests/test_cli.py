"""Tests for reposeek.cli module."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest
from conftest import FakeEmbedder
from typer.testing import CliRunner

from reposeek import __version__
from reposeek.cli import app
from reposeek.config import load_config
from reposeek.project import CONFIG_FILE, PROJECT_DIR
from reposeek.registry import ProviderRegistry
from reposeek.service import create_service

if TYPE_CHECKING:
    from pathlib import Path

runner = CliRunner()


@pytest.fixture
def fake_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    """Route service creation through an in-memory embedding provider."""
    registry = ProviderRegistry()
    registry.register("embedding", "fake", lambda cfg: FakeEmbedder())
    monkeypatch.setenv("EMBEDDING_PROVIDER", "fake")
    monkeypatch.setattr(
        "reposeek.cli.create_service",
        lambda config, pm: create_service(config, pm, registry),
    )


@pytest.fixture
def in_project(initialized_project: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(initialized_project)
    return initialized_project


class TestVersion:
    def test_prints_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestInit:
    def test_init_creates_project_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0
        assert (tmp_path / PROJECT_DIR / CONFIG_FILE).is_file()
        assert "Initialized" in result.output

    def test_init_with_root(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["init", "--root", "services/api"])
        assert result.exit_code == 0
        config = load_config(tmp_path / PROJECT_DIR / CONFIG_FILE)
        assert config.index.root == "services/api"

    def test_init_idempotent(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        runner.invoke(app, ["init"])
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0

    def test_init_error_shows_friendly_message(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        def _fail_init(*_a: object, **_kw: object) -> None:
            raise OSError("Permission denied")

        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("reposeek.cli.ProjectManager.init", _fail_init)
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 1
        assert "Permission denied" in result.output


class TestStatus:
    def test_status_uninitialized_uses_defaults(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "No reposeek project found" in result.output

    def test_status_initialized(self, in_project: Path):
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "sentence-transformers" in result.output
        assert "reposeek index" in result.output

    def test_status_after_index(self, in_project: Path, fake_provider: None):
        assert runner.invoke(app, ["index"]).exit_code == 0
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Nothing indexed yet" not in result.output


class TestIndex:
    def test_cold_then_unchanged(self, in_project: Path, fake_provider: None):
        first = runner.invoke(app, ["index"])
        assert first.exit_code == 0
        assert "cold" in first.output
        assert (in_project / PROJECT_DIR / "index.json").is_file()

        second = runner.invoke(app, ["index"])
        assert second.exit_code == 0
        assert "Index up to date" in second.output

    def test_provider_failure_exits(self, in_project: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("EMBEDDING_PROVIDER", "does-not-exist")
        result = runner.invoke(app, ["index"])
        assert result.exit_code == 1
        assert "Failed to initialize" in result.output


class TestSearch:
    def test_finds_matching_file(self, in_project: Path, fake_provider: None):
        result = runner.invoke(app, ["search", "print hello world", "-k", "3"])
        assert result.exit_code == 0
        assert "src/app.py" in result.output

    def test_no_results(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, fake_provider: None):
        monkeypatch.chdir(tmp_path)
        runner.invoke(app, ["init"])
        result = runner.invoke(app, ["search", "anything"])
        assert result.exit_code == 0
        assert "No results found" in result.output


class TestRead:
    def test_prints_file(self, in_project: Path, fake_provider: None):
        result = runner.invoke(app, ["read", "src/app.py"])
        assert result.exit_code == 0
        assert "print('hello world')" in result.output

    def test_line_range(self, in_project: Path, fake_provider: None):
        (in_project / "src" / "multi.py").write_text("a = 1\nb = 2\nc = 3\n", encoding="utf-8")
        result = runner.invoke(app, ["read", "src/multi.py", "--start", "2", "--end", "2"])
        assert result.exit_code == 0
        assert "b = 2" in result.output
        assert "a = 1" not in result.output
        assert "c = 3" not in result.output

    def test_outside_root_fails(self, in_project: Path, fake_provider: None):
        result = runner.invoke(app, ["read", "../../etc/passwd"])
        assert result.exit_code == 1
        assert "outside root" in result.output


class TestLs:
    def test_lists_root(self, in_project: Path, fake_provider: None):
        result = runner.invoke(app, ["ls"])
        assert result.exit_code == 0
        assert "src/" in result.output

    def test_recursive_with_extension(self, in_project: Path, fake_provider: None):
        result = runner.invoke(app, ["ls", "-r", "--ext", "py"])
        assert result.exit_code == 0
        assert "src/app.py" in result.output

    def test_missing_directory(self, in_project: Path, fake_provider: None):
        result = runner.invoke(app, ["ls", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestServe:
    def test_rejects_unknown_transport(self, in_project: Path):
        result = runner.invoke(app, ["serve", "--transport", "carrier-pigeon"])
        assert result.exit_code == 1

    def test_passes_options_to_server(self, in_project: Path, fake_provider: None):
        with patch("reposeek.server.run_server") as mock_run:
            result = runner.invoke(app, ["serve", "-t", "HTTP", "-p", "8123"])
        assert result.exit_code == 0
        _, kwargs = mock_run.call_args
        assert kwargs["transport"] == "http"
        assert kwargs["port"] == 8123
        assert kwargs["folder_info_name"] == "REPO_ROOT"
        assert kwargs["allowed_hosts"] == []
        assert kwargs["dns_rebinding_protection"] is True

    def test_host_allow_list_from_env(
        self, in_project: Path, fake_provider: None, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setenv("ALLOWED_HOSTS", "code.internal:3000")
        monkeypatch.setenv("ENABLE_DNS_REBINDING_PROTECTION", "false")
        with patch("reposeek.server.run_server") as mock_run:
            result = runner.invoke(app, ["serve", "-t", "http"])
        assert result.exit_code == 0
        _, kwargs = mock_run.call_args
        assert kwargs["allowed_hosts"] == ["code.internal:3000"]
        assert kwargs["dns_rebinding_protection"] is False


class TestConfigCommand:
    def test_lists_all_keys(self, in_project: Path):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "index.chunk_size = 800" in result.output
        assert "server.transport = 'stdio'" in result.output

    def test_get_value(self, in_project: Path):
        result = runner.invoke(app, ["config", "embedding.provider"])
        assert result.exit_code == 0
        assert "'sentence-transformers'" in result.output

    def test_set_int_value(self, in_project: Path):
        result = runner.invoke(app, ["config", "index.chunk_size", "400"])
        assert result.exit_code == 0
        assert load_config(in_project / PROJECT_DIR / CONFIG_FILE).index.chunk_size == 400

    def test_set_list_value(self, in_project: Path):
        result = runner.invoke(app, ["config", "index.allowed_ext", "py, md"])
        assert result.exit_code == 0
        config = load_config(in_project / PROJECT_DIR / CONFIG_FILE)
        assert config.index.allowed_ext == ["py", "md"]

    def test_set_bool_value(self, in_project: Path):
        runner.invoke(app, ["config", "logging.verbose", "yes"])
        assert load_config(in_project / PROJECT_DIR / CONFIG_FILE).logging.verbose is True

    def test_invalid_int(self, in_project: Path):
        result = runner.invoke(app, ["config", "server.port", "many"])
        assert result.exit_code == 1
        assert "Invalid value" in result.output

    def test_unknown_key(self, in_project: Path):
        result = runner.invoke(app, ["config", "index.nope"])
        assert result.exit_code == 1
        assert "Unknown config key" in result.output

    def test_set_requires_project(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["config", "index.chunk_size", "400"])
        assert result.exit_code == 1
        assert not (tmp_path / PROJECT_DIR).exists()
