"""JavDB metadata provider."""

from __future__ import annotations

from reelvault.services.javdb.client import JavdbClient

__all__ = ["JavdbClient"]
