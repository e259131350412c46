"""
Pytest configuration and shared fixtures for ReelVault tests.

Collaborators that would touch the network are replaced by the in-memory
fakes of :mod:`tests.fakes`; filesystem work happens under ``tmp_path``.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from reelvault.core.organizer.file_mover import FileRelocator
from reelvault.core.organizer.pipeline import ItemPipeline, PipelineExecutors
from reelvault.core.retry import RetryPolicy
from reelvault.services.cache import ResultCache
from reelvault.services.nfo_writer import NfoWriter
from reelvault.shared.cancellation import CancellationToken
from tests.fakes import (
    FakeClock,
    FakeImageService,
    FakeMetadataProvider,
    RecordingObserver,
    make_image_bytes,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def token() -> CancellationToken:
    return CancellationToken()


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Three attempts without real waiting."""
    return RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def cover_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def library(tmp_path: Path) -> Path:
    """Source directory with a media file per identifier used in tests."""
    source = tmp_path / "library"
    source.mkdir()
    for name in ("ABC-123.mp4", "XYZ-999.mkv"):
        (source / name).write_bytes(b"video-" + name.encode())
    return source


@pytest.fixture
def result_cache(tmp_path: Path, clock: FakeClock) -> ResultCache:
    return ResultCache(tmp_path / ".cache", max_memory_items=10, default_max_age=3600, clock=clock)


@pytest.fixture
def pipeline_factory(
    tmp_path: Path,
    result_cache: ResultCache,
    token: CancellationToken,
    fast_policy: RetryPolicy,
    observer: RecordingObserver,
) -> Callable[..., ItemPipeline]:
    """Build an ItemPipeline around fakes; keyword arguments override parts."""

    def _build(**overrides) -> ItemPipeline:
        parts = {
            "output_dir": tmp_path / "output",
            "cache": result_cache,
            "provider": FakeMetadataProvider(),
            "writer": NfoWriter(),
            "images": FakeImageService(make_image_bytes()),
            "relocator": FileRelocator(),
            "executors": PipelineExecutors.from_policies(
                network=fast_policy,
                image=fast_policy,
                local=fast_policy,
                token=token,
                observer=observer,
            ),
            "observer": observer,
        }
        parts.update(overrides)
        return ItemPipeline(**parts)

    return _build
