"""Media file scanner.

Lazily walks a directory tree and yields candidate media files, so large
libraries are never materialised in memory.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Collection, Iterator
from pathlib import Path

from reelvault.core.models import ScannedFile

logger = logging.getLogger(__name__)


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def scan_media_files(
    root: str | Path,
    exclude_dirs: Collection[str],
    allowed_extensions: Collection[str],
    *,
    skip_hidden: bool = True,
) -> Iterator[ScannedFile]:
    """Yield media files found under ``root``.

    Args:
        root: Directory to scan
        exclude_dirs: Directory names that are never descended into
        allowed_extensions: File extensions to accept (case-insensitive)
        skip_hidden: Skip entries whose name starts with a dot

    Yields:
        ScannedFile for every matching file, in sorted walk order.
        Unreadable directories are logged and skipped.
    """
    root_path = Path(root)
    if not root_path.is_dir():
        logger.warning("Scan root is not a directory: %s", root_path)
        return

    excluded = set(exclude_dirs)
    extensions = {ext.lower() for ext in allowed_extensions}

    def _on_error(error: OSError) -> None:
        logger.warning("Failed to scan directory %s: %s", error.filename, error.strerror)

    found = 0
    for current, dirs, files in os.walk(root_path, onerror=_on_error):
        # Prune in place so os.walk never enters skipped directories
        kept = []
        for name in sorted(dirs):
            if skip_hidden and _is_hidden(name):
                continue
            if name in excluded:
                logger.debug("Skipping excluded directory: %s", name)
                continue
            kept.append(name)
        dirs[:] = kept

        for name in sorted(files):
            if skip_hidden and _is_hidden(name):
                continue
            if os.path.splitext(name)[1].lower() not in extensions:
                continue
            found += 1
            yield ScannedFile(path=Path(current) / name, name=name)

    logger.info("Scan of %s finished, %d media file(s) found", root_path, found)
