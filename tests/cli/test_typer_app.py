"""Tests for the Typer command line interface."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from reelvault import __version__
from reelvault.cli import organize_handler, typer_app
from reelvault.cli.typer_app import app, build_settings
from tests.fakes import FakeImageService, FakeMetadataProvider, make_image_bytes, make_record

runner = CliRunner()


class _StubProvider(FakeMetadataProvider):
    """Stands in for the JavDB client inside the organize command."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__({"ABC-123": make_record("ABC-123", "ABC-123 Summer Story")})
        self.http = SimpleNamespace(proxy=None)

    async def close(self) -> None:
        return None


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(typer_app, "configure_logging", lambda settings, log_level=None: None)


@pytest.fixture
def offline_services(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(organize_handler, "JavdbClient", _StubProvider)
    monkeypatch.setattr(
        organize_handler,
        "CoverImageService",
        lambda http, settings: FakeImageService(make_image_bytes()),
    )


class TestGlobalOptions:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"reelvault {__version__}" in result.stdout

    def test_no_arguments_shows_help(self) -> None:
        result = runner.invoke(app, [])

        assert "organize" in result.output


class TestScanCommand:
    def test_json_listing(self, library: Path) -> None:
        result = runner.invoke(app, ["scan", "--source", str(library), "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["success"] is True
        assert payload["data"]["total"] == 2
        assert sorted(f["identifier"] for f in payload["data"]["files"]) == ["ABC-123", "XYZ-999"]

    def test_table_listing(self, library: Path) -> None:
        result = runner.invoke(app, ["scan", "--source", str(library)])

        assert result.exit_code == 0
        assert "Found 2 media file(s)" in result.stdout


class TestCacheCleanupCommand:
    def test_reports_removed_entries(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["cache-cleanup", "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["data"]["removed"] == 0
        assert (tmp_path / ".cache").is_dir()


class TestOrganizeCommand:
    def test_invalid_config_exits_with_failure(self, tmp_path: Path) -> None:
        config = tmp_path / "config.toml"
        config.write_text("[queue]\nconcurrency = 0\n", encoding="utf-8")

        result = runner.invoke(app, ["organize", "--config", str(config), "--json"])

        assert result.exit_code == 1
        payload = json.loads(result.stdout)
        assert payload["success"] is False
        assert payload["errors"][0].startswith("Configuration or data error")

    def test_batch_outcome(self, library: Path, offline_services: None) -> None:
        # When
        result = runner.invoke(app, ["organize", "--source", str(library), "--json", "-j", "2"])

        # Then
        assert result.exit_code == 0
        data = json.loads(result.stdout)["data"]
        assert (data["total"], data["success"], data["failed"]) == (2, 1, 1)
        failed = next(r for r in data["results"] if not r["success"])
        assert failed["identifier"] == "XYZ-999"
        assert failed["error_kind"] == "METADATA_NOT_FOUND"
        assert (library / "output" / "ABC-123" / "ABC-123.mp4").exists()
        assert (library / "XYZ-999.mkv").exists()

    def test_empty_library_warns(self, tmp_path: Path, offline_services: None) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()

        result = runner.invoke(app, ["organize", "--source", str(empty), "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["data"]["total"] == 0
        assert payload["warnings"] == ["No media files found to organize"]


class TestBuildSettings:
    def test_overrides_applied(self, tmp_path: Path) -> None:
        settings = build_settings(None, source=tmp_path / "in", output=tmp_path / "out", concurrency=3)

        assert settings.library.source_dir == str(tmp_path / "in")
        assert settings.library.output_dir == str(tmp_path / "out")
        assert settings.queue.concurrency == 3
