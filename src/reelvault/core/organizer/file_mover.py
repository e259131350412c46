"""File relocation service.

This module provides the FileRelocator class used by the organizing
pipeline to move media files into their destination directory (and back
again during rollback).
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path

from send2trash import send2trash

from reelvault.core.models import RelocationResult
from reelvault.shared.logging import log_file_operation

logger = logging.getLogger(__name__)


class FileRelocator:
    """Moves files into a directory with collision handling.

    Responsibilities:
    - Validate that the source is readable
    - Create the destination directory when needed
    - Pick a free name (``name (1).ext``, ``name (2).ext``...) unless
      overwriting
    - Rename on the same device; copy then delete across devices, sending
      the source to the recycle bin when ``safe_delete`` is set

    Failures are reported through :class:`RelocationResult`, never raised.
    """

    async def relocate(
        self,
        source: Path,
        destination_dir: Path,
        *,
        safe_delete: bool = False,
        overwrite: bool = False,
        new_name: str | None = None,
        create_dir: bool = True,
    ) -> RelocationResult:
        """Move ``source`` into ``destination_dir``.

        Args:
            source: File to move
            destination_dir: Target directory
            safe_delete: Recycle the source after a cross-device copy
            overwrite: Replace an existing file with the same name
            new_name: File name to use in the destination
            create_dir: Create the destination directory if missing

        Returns:
            RelocationResult with the final path or an error message
        """
        return await asyncio.to_thread(
            self.relocate_sync,
            Path(source),
            Path(destination_dir),
            safe_delete=safe_delete,
            overwrite=overwrite,
            new_name=new_name,
            create_dir=create_dir,
        )

    def relocate_sync(
        self,
        source: Path,
        destination_dir: Path,
        *,
        safe_delete: bool = False,
        overwrite: bool = False,
        new_name: str | None = None,
        create_dir: bool = True,
    ) -> RelocationResult:
        if not source.is_file() or not os.access(source, os.R_OK):
            return self._failure(source, f"Source file does not exist or is not readable: {source}")

        if create_dir:
            try:
                destination_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                return self._failure(source, f"Failed to create destination directory: {e}")
        elif not destination_dir.is_dir() or not os.access(destination_dir, os.W_OK):
            return self._failure(
                source,
                f"Destination directory does not exist or is not writable: {destination_dir}",
            )

        target = destination_dir / (new_name or source.name)
        if not overwrite:
            target = self._free_name(target)
        elif target.exists() and not os.access(target, os.W_OK):
            return self._failure(source, f"Target exists and cannot be overwritten: {target}")

        try:
            if source.stat().st_dev != destination_dir.stat().st_dev:
                shutil.copy2(source, target)
                if safe_delete:
                    send2trash(str(source))
                else:
                    source.unlink()
            else:
                os.replace(source, target)
        except OSError as e:
            return self._failure(source, f"Failed to move file: {e}", target)

        log_file_operation(logger, "move", source, target)
        return RelocationResult(success=True, path=target)

    @staticmethod
    def _free_name(target: Path) -> Path:
        candidate = target
        counter = 1
        while candidate.exists():
            candidate = target.with_name(f"{target.stem} ({counter}){target.suffix}")
            counter += 1
        return candidate

    @staticmethod
    def _failure(source: Path, message: str, target: Path | None = None) -> RelocationResult:
        log_file_operation(
            logger,
            "move",
            source,
            target,
            success=False,
            error_message=message,
        )
        return RelocationResult(success=False, error=message)
