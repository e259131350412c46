"""Identifier extraction from media filenames."""

from __future__ import annotations

import os
import re

# Ordered by priority; the first pattern that matches wins
_FC2_PATTERN = re.compile(r"FC2[^\d]*(\d+)", re.IGNORECASE)
_CODE_PATTERNS = (
    re.compile(r"([A-Z]{2,6})-(\d{2,5})(?:-[A-Z])?", re.IGNORECASE),
    re.compile(r"([A-Z]{2,6})(\d{2,5})(?:-[A-Z])?", re.IGNORECASE),
)


def extract_identifier(filename: str) -> str:
    """Derive the canonical identifier of a media file.

    ``FC2`` releases become ``FC2-PPV-<number>``; other names are reduced
    to ``<LETTERS>-<DIGITS>``. Names matching no pattern fall back to the
    filename stem.

    Examples:
        >>> extract_identifier("abc-123.mp4")
        'ABC-123'
        >>> extract_identifier("FC2-PPV-1234567.mkv")
        'FC2-PPV-1234567'
        >>> extract_identifier("holiday.mp4")
        'holiday'
    """
    stem = os.path.splitext(os.path.basename(filename))[0]

    match = _FC2_PATTERN.search(stem)
    if match:
        return f"FC2-PPV-{match.group(1)}"

    for pattern in _CODE_PATTERNS:
        match = pattern.search(stem)
        if match:
            return f"{match.group(1)}-{match.group(2)}".upper()

    return stem
