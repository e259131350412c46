"""Tests for FileRelocator."""

from __future__ import annotations

import os
from pathlib import Path
from types import SimpleNamespace

import pytest

from reelvault.core.organizer.file_mover import FileRelocator


@pytest.fixture
def source(tmp_path: Path) -> Path:
    path = tmp_path / "incoming" / "ABC-123.mp4"
    path.parent.mkdir()
    path.write_bytes(b"movie")
    return path


class TestRelocate:
    @pytest.mark.asyncio
    async def test_moves_into_created_directory(self, tmp_path: Path, source: Path) -> None:
        destination = tmp_path / "output" / "ABC-123"

        result = await FileRelocator().relocate(source, destination)

        assert result.success
        assert result.path == destination / "ABC-123.mp4"
        assert result.path.read_bytes() == b"movie"
        assert not source.exists()

    @pytest.mark.asyncio
    async def test_collision_gets_numbered_name(self, tmp_path: Path, source: Path) -> None:
        destination = tmp_path / "output"
        destination.mkdir()
        (destination / "ABC-123.mp4").write_bytes(b"old")
        (destination / "ABC-123 (1).mp4").write_bytes(b"older")

        result = await FileRelocator().relocate(source, destination)

        assert result.path == destination / "ABC-123 (2).mp4"
        assert (destination / "ABC-123.mp4").read_bytes() == b"old"

    @pytest.mark.asyncio
    async def test_overwrite_replaces_existing(self, tmp_path: Path, source: Path) -> None:
        destination = tmp_path / "output"
        destination.mkdir()
        (destination / "ABC-123.mp4").write_bytes(b"old")

        result = await FileRelocator().relocate(source, destination, overwrite=True)

        assert result.path == destination / "ABC-123.mp4"
        assert result.path.read_bytes() == b"movie"

    @pytest.mark.asyncio
    async def test_new_name_is_used(self, tmp_path: Path, source: Path) -> None:
        result = await FileRelocator().relocate(source, tmp_path / "back", new_name="original.mp4")

        assert result.path == tmp_path / "back" / "original.mp4"

    @pytest.mark.asyncio
    async def test_missing_source_fails_without_raising(self, tmp_path: Path) -> None:
        result = await FileRelocator().relocate(tmp_path / "absent.mp4", tmp_path / "output")

        assert not result.success
        assert "does not exist" in result.error
        assert not (tmp_path / "output").exists()

    @pytest.mark.asyncio
    async def test_missing_directory_without_create_fails(self, tmp_path: Path, source: Path) -> None:
        result = await FileRelocator().relocate(source, tmp_path / "nowhere", create_dir=False)

        assert not result.success
        assert source.exists()


class TestCrossDevice:
    """Moves between devices copy then delete the source."""

    @staticmethod
    def _fake_devices(mocker, source: Path) -> None:
        real_stat = Path.stat

        def _stat(self, *args, **kwargs):
            result = real_stat(self, *args, **kwargs)
            if self == source:
                return SimpleNamespace(st_dev=result.st_dev + 1, st_mode=result.st_mode)
            return result

        mocker.patch.object(Path, "stat", _stat)

    def test_copy_then_unlink(self, mocker, tmp_path: Path, source: Path) -> None:
        self._fake_devices(mocker, source)
        trash = mocker.patch("reelvault.core.organizer.file_mover.send2trash")
        destination = tmp_path / "output"
        destination.mkdir()

        result = FileRelocator().relocate_sync(source, destination)

        assert result.success
        assert (destination / "ABC-123.mp4").read_bytes() == b"movie"
        assert not os.path.exists(source)
        trash.assert_not_called()

    def test_safe_delete_sends_source_to_trash(self, mocker, tmp_path: Path, source: Path) -> None:
        self._fake_devices(mocker, source)
        trash = mocker.patch("reelvault.core.organizer.file_mover.send2trash")
        destination = tmp_path / "output"
        destination.mkdir()

        result = FileRelocator().relocate_sync(source, destination, safe_delete=True)

        assert result.success
        trash.assert_called_once_with(str(source))
