"""Protocol definitions for dependency inversion.

The core pipeline depends only on these interfaces; the concrete adapters
(JavDB provider, NFO writer, Pillow image service, file relocator, step
event log) live in the services layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from reelvault.core.models import CoverPaths, MetadataRecord, RelocationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepEvent:
    """A step-level progress notification.

    Attributes:
        task_id: Item the step belongs to (usually the identifier)
        step: Step name, see ``PipelineSteps``
        status: started, completed, failed or progress
        message: Human readable detail
    """

    task_id: str
    step: str
    status: str
    message: str = ""


class StepObserver(Protocol):
    """Receives step events. Must never block or raise."""

    def on_step_event(self, event: StepEvent) -> None: ...


class MetadataProviderProtocol(Protocol):
    async def fetch_metadata(self, identifier: str) -> MetadataRecord:
        """Fetch the metadata record for an identifier.

        Raises:
            MetadataNotFoundError: No record matches the identifier
            NetworkError: Transient transport failure
        """
        ...


class DescriptionWriterProtocol(Protocol):
    async def write(self, record: MetadataRecord, destination_dir: Path) -> Path: ...


class ImageServiceProtocol(Protocol):
    async def fetch_image(self, url: str) -> bytes: ...

    def derive_secondary_image(self, data: bytes, right_half: bool = True) -> bytes: ...

    async def save_covers(
        self,
        data: bytes,
        destination_dir: Path,
        extension: str,
    ) -> CoverPaths: ...


class FileRelocatorProtocol(Protocol):
    async def relocate(
        self,
        source: Path,
        destination_dir: Path,
        *,
        safe_delete: bool = False,
        overwrite: bool = False,
        new_name: str | None = None,
    ) -> RelocationResult: ...


def notify(observer: StepObserver | None, event: StepEvent) -> None:
    """Deliver an event without letting the observer affect the caller."""
    if observer is None:
        return
    try:
        observer.on_step_event(event)
    except Exception:  # noqa: BLE001
        logger.debug("Step observer failed", exc_info=True)
