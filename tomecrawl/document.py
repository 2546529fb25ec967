"""Parsed HTML with CSS-selector queries (BeautifulSoup + lxml)."""

import copy

from bs4 import BeautifulSoup
from bs4.element import Tag

# Tree builder used for every page; _deps checks it is registered with bs4
HTML_PARSER = "lxml"


class Element:
    """One matched element. Queries are scoped to its descendants."""

    def __init__(self, tag: Tag) -> None:
        self._tag = tag

    def query(self, selector: str) -> list["Element"]:
        """All descendants matching selector, in document order."""
        return [Element(t) for t in self._tag.select(selector)]

    def attr(self, name: str) -> str | None:
        """Attribute value, or None when missing. Multi-valued attributes are space-joined."""
        value = self._tag.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def text(self, *, separator: str = "", exclude: tuple[str, ...] = ()) -> str:
        """
        Text content, stripped. Elements matching any selector in exclude
        (e.g. script, style) are dropped first; the parsed tree is left untouched.
        """
        tag = self._tag
        if exclude:
            tag = copy.copy(tag)
            for junk in tag.select(", ".join(exclude)):
                junk.decompose()
        return tag.get_text(separator=separator).strip()

    def __repr__(self) -> str:
        return f"<Element {self._tag.name}>"


class Document:
    """A parsed page."""

    def __init__(self, html: str | bytes) -> None:
        self._soup = BeautifulSoup(html, HTML_PARSER)

    def query(self, selector: str) -> list[Element]:
        """All elements matching selector, in document order."""
        return [Element(t) for t in self._soup.select(selector)]

    def first(self, selector: str) -> Element | None:
        tag = self._soup.select_one(selector)
        return Element(tag) if tag is not None else None

    def title(self) -> str:
        """Text of the page <title>, or empty string."""
        tag = self._soup.find("title")
        return tag.get_text().strip() if tag is not None else ""
