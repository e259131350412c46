"""Cookie and proxy file loading for the JavDB client."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from reelvault.shared.constants import ScraperDefaults

logger = logging.getLogger(__name__)

_NETSCAPE_FIELDS = 7


def parse_cookie_file(path: str | Path | None, domain: str = ScraperDefaults.COOKIE_DOMAIN) -> dict[str, str]:
    """Read a Netscape cookie file and keep the cookies for ``domain``.

    A missing or unreadable file yields no cookies; a later duplicate of
    a cookie name replaces the earlier one.

    Args:
        path: Cookie file path (None means no cookies)
        domain: Domain substring a cookie must belong to

    Returns:
        Mapping of cookie name to value
    """
    if not path:
        logger.info("No cookie file configured, continuing without cookies")
        return {}

    cookie_path = Path(path)
    if not cookie_path.exists():
        logger.info("Cookie file %s not found, continuing without cookies", cookie_path)
        return {}

    try:
        content = cookie_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read cookie file %s: %s", cookie_path, e)
        return {}

    cookies: dict[str, str] = {}
    for line in content.splitlines():
        if not line or line.startswith("#"):
            continue
        fields = line.split("\t")
        if len(fields) < _NETSCAPE_FIELDS:
            continue
        cookie_domain, name, value = fields[0], fields[5].strip(), fields[6].strip()
        if domain not in cookie_domain or not name or not value:
            continue
        cookies[name] = value

    logger.info("Loaded %d cookie(s) from %s", len(cookies), cookie_path)
    return cookies


def format_cookie_header(cookies: dict[str, str]) -> str:
    return "; ".join(f"{name}={value}" for name, value in cookies.items())


def load_proxy_url(path: str | Path | None) -> str | None:
    """Read a proxy definition (``{"protocol", "host", "port"}``) as a URL.

    Returns None when the file is absent or invalid.
    """
    if not path:
        return None
    proxy_path = Path(path)
    if not proxy_path.exists():
        return None

    try:
        data = json.loads(proxy_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Failed to read proxy file %s: %s", proxy_path, e)
        return None

    if not isinstance(data, dict) or not data.get("host"):
        logger.warning("Proxy file %s has no host, ignoring it", proxy_path)
        return None

    protocol = data.get("protocol") or "http"
    port = data.get("port")
    url = f"{protocol}://{data['host']}"
    return f"{url}:{port}" if port else url
