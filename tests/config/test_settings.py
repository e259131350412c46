"""Tests for settings models and the settings loader."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from reelvault.config import load_settings
from reelvault.config.models import LibrarySettings, RetryProfile, Settings
from reelvault.shared.errors import ErrorCode, InvalidConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REELVAULT_QUEUE__CONCURRENCY", raising=False)
    monkeypatch.delenv("REELVAULT_LIBRARY__SOURCE_DIR", raising=False)


class TestDefaults:
    def test_section_defaults(self) -> None:
        settings = Settings()

        assert settings.queue.concurrency == 32
        assert settings.queue.enqueue_timeout == 0.0
        assert settings.cache.max_memory_items == 1000
        assert settings.cache.max_age == 86400.0
        assert settings.scraper.base_url == "https://javdb.com"
        assert settings.scraper.rate_limit_rps == 2.0
        assert settings.images.right_half is True
        assert settings.logging.filename == "app.log"
        assert settings.retry.local.max_attempts == 3

    def test_network_profile_backs_off_longer(self) -> None:
        retry = Settings().retry

        assert retry.network.base_delay > retry.local.base_delay

    def test_extensions_normalized(self) -> None:
        library = LibrarySettings(video_extensions=["MP4", ".mkv", " "])

        assert library.video_extensions == [".mp4", ".mkv"]

    @pytest.mark.parametrize(
        "section",
        [
            {"queue": {"concurrency": 0}},
            {"cache": {"max_age": 0}},
            {"retry": {"local": {"max_attempts": 0}}},
        ],
    )
    def test_invalid_values_rejected(self, section: dict) -> None:
        with pytest.raises(ValidationError):
            Settings(**section)

    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RetryProfile(base_delay=-1)


class TestEnvironment:
    def test_env_fills_missing_fields(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REELVAULT_QUEUE__CONCURRENCY", "4")

        assert Settings().queue.concurrency == 4


class TestTomlFiles:
    def test_round_trip(self, tmp_path: Path) -> None:
        # Given
        original = Settings(queue={"concurrency": 8}, library={"source_dir": "/media/in"})
        path = tmp_path / "config" / "config.toml"

        # When
        original.to_toml_file(path)
        loaded = Settings.from_toml_file(path)

        # Then
        assert loaded.queue.concurrency == 8
        assert loaded.library.source_dir == "/media/in"
        assert loaded.scraper.proxy is None

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Settings.from_toml_file(tmp_path / "absent.toml")


class TestResolvePaths:
    def test_relative_layout(self, tmp_path: Path) -> None:
        settings = Settings(library={"source_dir": "library", "output_dir": "organized"})

        paths = settings.resolve_paths(cwd=tmp_path)

        source = (tmp_path / "library").resolve()
        assert paths.source_dir == source
        assert paths.output_dir == source / "organized"
        assert paths.cache_dir == source / ".cache"
        assert paths.log_file == source / ".log" / "app.log"

    def test_absolute_directories_kept(self, tmp_path: Path) -> None:
        settings = Settings(
            library={"source_dir": str(tmp_path / "in"), "output_dir": str(tmp_path / "out" / "movies")},
            cache={"dir": str(tmp_path / "cache")},
        )

        paths = settings.resolve_paths(cwd=Path("/"))

        assert paths.output_dir == tmp_path / "out" / "movies"
        assert paths.cache_dir == tmp_path / "cache"
        assert paths.log_file == tmp_path / "out" / ".log" / "app.log"


class TestLoadSettings:
    def test_explicit_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("[queue]\nconcurrency = 2\n", encoding="utf-8")

        assert load_settings(path).queue.concurrency == 2

    def test_defaults_without_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)

        assert load_settings().queue.concurrency == 32

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(InvalidConfigError) as exc_info:
            load_settings(tmp_path / "absent.toml")

        assert exc_info.value.code is ErrorCode.CONFIG_FILE_NOT_FOUND

    @pytest.mark.parametrize(
        "content",
        ["[queue\nconcurrency = 2", "[queue]\nconcurrency = -1\n"],
    )
    def test_invalid_file(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "config.toml"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(InvalidConfigError) as exc_info:
            load_settings(path)

        assert exc_info.value.code is ErrorCode.INVALID_CONFIG
