"""Kodi-style ``.nfo`` description files."""

from __future__ import annotations

import asyncio
import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path

from reelvault.core.models import MetadataRecord
from reelvault.shared.constants import NfoDefaults

logger = logging.getLogger(__name__)

_XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes" ?>'


def _sub(parent: ET.Element, tag: str, text: str | None) -> ET.Element:
    element = ET.SubElement(parent, tag)
    element.text = text or ""
    return element


def build_nfo_document(record: MetadataRecord) -> str:
    """Render a metadata record as a ``<movie>`` document.

    Optional rating fields are omitted when unknown; text is XML-escaped
    and the output contains no blank lines.
    """
    movie = ET.Element("movie")
    _sub(movie, "title", record.title)
    _sub(movie, "sorttitle", record.code)
    _sub(movie, "num", record.code)
    _sub(movie, "studio", record.maker)
    _sub(movie, "release", record.release_date)
    _sub(movie, "premiered", record.release_date)
    _sub(movie, "year", record.year)
    _sub(movie, "runtime", re.sub(r"[^0-9]", "", record.duration))
    _sub(movie, "mpaa", NfoDefaults.MPAA)
    _sub(movie, "country", NfoDefaults.COUNTRY)
    _sub(movie, "poster", NfoDefaults.POSTER_FILE)
    _sub(movie, "thumb", NfoDefaults.POSTER_FILE)
    _sub(movie, "fanart", NfoDefaults.FANART_FILE)

    if record.rating is not None:
        rating = f"{record.rating:.2f}"
        _sub(movie, "rating", rating)
        _sub(movie, "userrating", rating)
    if record.votes is not None:
        _sub(movie, "votes", str(record.votes))

    for actor in record.actors:
        element = ET.SubElement(movie, "actor")
        _sub(element, "name", actor)
        _sub(element, "role", actor)
    for category in record.categories:
        _sub(movie, "tag", category)
    for category in record.categories:
        _sub(movie, "genre", category)

    _sub(movie, "set", record.series)
    _sub(movie, "cover", record.cover_url)
    _sub(movie, "website", record.detail_url)

    ET.indent(movie, space="  ")
    body = ET.tostring(movie, encoding="unicode", short_empty_elements=False)
    lines = [line for line in f"{_XML_DECLARATION}\n{body}".splitlines() if line.strip()]
    return "\n".join(lines)


class NfoWriter:
    """Writes ``<code>.nfo`` into a destination directory."""

    async def write(self, record: MetadataRecord, destination_dir: Path) -> Path:
        """Write the description file for ``record``.

        Raises:
            OSError: If the file cannot be written
        """
        target = Path(destination_dir) / f"{record.code}{NfoDefaults.EXTENSION}"
        content = build_nfo_document(record)
        await asyncio.to_thread(target.write_text, content, encoding="utf-8")
        logger.debug("Wrote description file %s", target)
        return target
