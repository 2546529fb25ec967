"""Shared fixtures: a small fake book site served by an in-memory fetcher."""

from __future__ import annotations

import copy
import threading

import pytest

from tomecrawl.fetcher import FetchError
from tomecrawl.ruleset import RuleSet, parse_ruleset

BASE = "https://books.example.com"

RULES = {
    "baseUrl": BASE,
    "selectors": {
        "bookTitle": "#info h1",
        "chapterList": {"container": "#list", "list": "dl", "item": "dd", "link": "a"},
        "chapterPagination": {"selector": "select.pages"},
        "chapterContent": {
            "title": "h1.chapter",
            "content": "#content",
            "nextPage": "a.next",
        },
    },
    "concurrency": 4,
    "retry": {"maxAttempts": 2, "delays": [0]},
}


def index_html(
    links: list[tuple[str, str]],
    options: tuple[str, ...] = (),
    title: str = "Moon Book",
) -> str:
    """An index page listing chapter links, optionally with a chapter-group <select>."""
    select = ""
    if options:
        opts = "".join(f'<option value="{o}">page</option>' for o in options)
        select = f'<select class="pages">{opts}</select>'
    items = "".join(f'<dd><a href="{href}">{text}</a></dd>' for href, text in links)
    return (
        f"<html><head><title>{title}_Example Books</title></head><body>"
        f'<div id="info"><h1>{title}</h1></div>{select}'
        f'<div id="list"><dl>{items}</dl></div></body></html>'
    )


def chapter_html(title: str | None, content: str, next_href: str | None = None) -> str:
    """One content page of a chapter."""
    heading = f'<h1 class="chapter">{title}</h1>' if title is not None else ""
    nxt = f'<a class="next" href="{next_href}">next page</a>' if next_href else ""
    return f'<html><body>{heading}<div id="content">{content}</div>{nxt}</body></html>'


class FakeFetcher:
    """Serves pages from a dict; missing URLs and Exception values raise."""

    def __init__(self, pages: dict[str, str | Exception]) -> None:
        self.pages = pages
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def fetch(self, url: str) -> str:
        with self._lock:
            self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise FetchError(url, 2, "HTTP 404")
        if isinstance(page, Exception):
            raise page
        return page

    def spawn(self) -> "FakeFetcher":
        return self

    def close(self) -> None:
        pass


@pytest.fixture
def rules() -> RuleSet:
    return parse_ruleset(RULES)


@pytest.fixture
def rules_dict() -> dict:
    return copy.deepcopy(RULES)
