"""HTML parsing for JavDB search and detail pages.

Pages are parsed with the standard library ``html.parser`` into a small
element tree; the handful of class-based lookups the scraper needs are
implemented on top of it.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from html.parser import HTMLParser
from urllib.parse import urljoin

from reelvault.core.models import MetadataRecord
from reelvault.shared.errors import ErrorContext, MetadataParseError

_VOID_ELEMENTS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "param", "source", "track", "wbr",
    }
)

_LEADING_CODE = re.compile(r"^([a-zA-Z0-9-]+)")
_RATING = re.compile(r"(\d+(?:\.\d+)?)分.*?(\d+)人")
_WHITESPACE = re.compile(r"\s+")

# Detail panel labels (traditional Chinese locale)
LABEL_CODE = "番號"
LABEL_DATE = "日期"
LABEL_DURATION = "時長"
LABEL_MAKER = "片商"
LABEL_SERIES = "系列"
LABEL_RATING = "評分"
LABEL_CATEGORIES = "類別"
LABEL_ACTORS = "演員"


@dataclass
class Element:
    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    children: list[Element | str] = field(default_factory=list)

    @property
    def classes(self) -> set[str]:
        return set(self.attrs.get("class", "").split())

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def iter(self) -> Iterator[Element]:
        """Depth-first iteration over descendant elements."""
        for child in self.children:
            if isinstance(child, Element):
                yield child
                yield from child.iter()

    def find_all(self, predicate: Callable[[Element], bool]) -> list[Element]:
        return [el for el in self.iter() if predicate(el)]

    def find(self, predicate: Callable[[Element], bool]) -> Element | None:
        return next((el for el in self.iter() if predicate(el)), None)

    def select_class(self, *names: str) -> list[Element]:
        """Descendants matching a chain of class names (``.a .b .c``)."""
        current = [self]
        for name in names:
            matches: list[Element] = []
            seen: set[int] = set()
            for scope in current:
                for el in scope.iter():
                    if el.has_class(name) and id(el) not in seen:
                        seen.add(id(el))
                        matches.append(el)
            current = matches
        return current

    def text(self) -> str:
        parts: list[str] = []
        for child in self.children:
            parts.append(child if isinstance(child, str) else child.text())
        return "".join(parts)


class _TreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = Element("document")
        self._stack = [self.root]

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        element = Element(tag, {name: value or "" for name, value in attrs})
        self._stack[-1].children.append(element)
        if tag not in _VOID_ELEMENTS:
            self._stack.append(element)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._stack[-1].children.append(Element(tag, {name: value or "" for name, value in attrs}))

    def handle_endtag(self, tag: str) -> None:
        # Close up to the nearest open element with this tag; stray end tags are ignored
        for index in range(len(self._stack) - 1, 0, -1):
            if self._stack[index].tag == tag:
                del self._stack[index:]
                return

    def handle_data(self, data: str) -> None:
        self._stack[-1].children.append(data)


def parse_html(markup: str) -> Element:
    builder = _TreeBuilder()
    builder.feed(markup)
    builder.close()
    return builder.root


def normalize_code(code: str) -> str:
    return _WHITESPACE.sub("", code).lower()


def find_detail_url(markup: str, identifier: str, base_url: str) -> str | None:
    """Return the detail page URL of the search result matching ``identifier``.

    The match is on the leading code of the result title, ignoring case
    and whitespace.
    """
    wanted = normalize_code(identifier)
    document = parse_html(markup)
    for item in document.select_class("movie-list", "item"):
        title = item.select_class("video-title")
        if not title:
            continue
        match = _LEADING_CODE.match(title[0].text().strip())
        if not match or normalize_code(match.group(1)) != wanted:
            continue
        link = item.find(lambda el: el.tag == "a" and "href" in el.attrs)
        if link is None:
            continue
        return urljoin(base_url, link.attrs["href"])
    return None


def _panel_value(document: Element, label: str) -> Element | None:
    for block in document.select_class("movie-panel-info", "panel-block"):
        if label in block.text():
            values = block.select_class("value")
            if values:
                return values[0]
    return None


def _panel_text(document: Element, label: str) -> str:
    value = _panel_value(document, label)
    return value.text().strip() if value is not None else ""


def _panel_links(document: Element, label: str) -> list[str]:
    value = _panel_value(document, label)
    if value is None:
        return []
    links = (el.text().strip() for el in value.find_all(lambda el: el.tag == "a"))
    return [text for text in links if text]


def parse_rating(text: str) -> tuple[float | None, int | None]:
    """Parse ``"3.43分, 由35人評價"`` into a 10-point rating and a vote count."""
    match = _RATING.search(text)
    if not match:
        return None, None
    return round(float(match.group(1)) * 2, 2), int(match.group(2))


def parse_detail_page(markup: str, detail_url: str) -> MetadataRecord:
    """Build a metadata record from a detail page.

    Raises:
        MetadataParseError: If the page carries no identifier
    """
    document = parse_html(markup)

    code = _panel_text(document, LABEL_CODE)
    if not code:
        raise MetadataParseError(
            "Detail page has no identifier",
            context=ErrorContext(operation="parse_detail_page", additional_data={"url": detail_url}),
        )

    title_text = ""
    for class_name in ("origin-title", "current-title"):
        found = document.select_class("video-detail", "title", class_name)
        if found and found[0].text().strip():
            title_text = found[0].text().strip()
            break

    rating, votes = parse_rating(_panel_text(document, LABEL_RATING))

    cover_url: str | None = None
    for container in document.select_class("column-video-cover"):
        image = container.find(lambda el: el.tag == "img")
        if image is not None and image.attrs.get("src"):
            cover_url = urljoin(detail_url, image.attrs["src"])
            break

    return MetadataRecord(
        code=code,
        title=f"{code} {title_text}".strip(),
        release_date=_panel_text(document, LABEL_DATE),
        duration=_panel_text(document, LABEL_DURATION),
        maker=_panel_text(document, LABEL_MAKER),
        series=_panel_text(document, LABEL_SERIES),
        rating=rating,
        votes=votes,
        categories=_panel_links(document, LABEL_CATEGORIES),
        actors=_panel_links(document, LABEL_ACTORS),
        cover_url=cover_url,
        detail_url=detail_url,
    )
