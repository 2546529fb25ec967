"""Extract book title, chapter links, index pagination and chapter pages from parsed HTML."""

import re
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urljoin

from tomecrawl.document import Document
from tomecrawl.ruleset import RuleSet
from tomecrawl.storage import UNKNOWN_TITLE, sanitize_filename

# "(1 / 3)", "1/3", "（2 / 5）": page counters sites append to chapter titles
_PAGE_MARKER_RE = re.compile(r"\s*[(（]?\d+\s*/\s*\d+[)）]?\s*")
# Page <title> is usually "Book name_Site name" or "Book name - Site"
_TITLE_SPLIT_RE = re.compile(r"^(.+?)[_\-|]")
_CONTENT_JUNK = ("script", "style")


@dataclass
class ChapterPage:
    """What one content page of a chapter yields."""
    title: str = ""
    content: str = ""
    next_url: str | None = None


def resolve_url(url: str | None, base_url: str) -> str | None:
    """Absolute URL for url (relative to base_url); None for empty input."""
    if not url or not url.strip():
        return None
    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(base_url, url)


def canonical_key(url: str) -> str:
    """Identity of a chapter URL for dedup: the URL without its query string."""
    return url.split("?", 1)[0]


def clean_title(title: str | None) -> str:
    """Strip page counters such as "(1 / 3)" from a title."""
    if not title:
        return ""
    return _PAGE_MARKER_RE.sub("", title).strip()


def _normalize_text(s: str) -> str:
    """Trim each line; runs of blank lines become one paragraph break."""
    out: list[str] = []
    for line in s.splitlines():
        line = line.strip()
        if line or (out and out[-1]):
            out.append(line)
    return "\n".join(out).strip()


def extract_book_title(doc: Document, ruleset: RuleSet) -> str:
    """
    Book title from the configured selector, else from the page <title>
    (cut at the first _, - or |), else "unknown". Safe for use as a file name.
    """
    selector = ruleset.selectors.book_title
    if selector:
        el = doc.first(selector)
        title = el.text() if el is not None else ""
        if title:
            return sanitize_filename(title)
    page_title = doc.title()
    if page_title:
        m = _TITLE_SPLIT_RE.match(page_title)
        if m:
            return sanitize_filename(m.group(1))
        return sanitize_filename(page_title)
    return UNKNOWN_TITLE


def extract_pagination_options(doc: Document, ruleset: RuleSet) -> list[str]:
    """Absolute URLs of the other index pages listed in the chapter-group control, in page order."""
    pagination = ruleset.selectors.chapter_pagination
    if pagination is None:
        return []
    urls: list[str] = []
    seen: set[str] = set()
    for control in doc.query(pagination.selector):
        for option in control.query(pagination.option):
            url = resolve_url(option.attr(pagination.value_attr), ruleset.base_url)
            if url and url not in seen:
                seen.add(url)
                urls.append(url)
    return urls


def extract_chapter_links(doc: Document, ruleset: RuleSet) -> list[tuple[str, str]]:
    """(href, anchor text) for every chapter item on an index page; items missing either are skipped."""
    sel = ruleset.selectors.chapter_list
    links: list[tuple[str, str]] = []
    for container in doc.query(sel.container):
        for lst in container.query(sel.list):
            for item in lst.query(sel.item):
                found = item.query(sel.link)
                if not found:
                    continue
                link = found[0]
                href = (link.attr(sel.link_attr) or "").strip()
                text = link.text()
                if href and text:
                    links.append((href, text))
    return links


def extract_chapter_page(
    doc: Document,
    page_url: str,
    ruleset: RuleSet,
    is_next_page: Callable[[str], bool] | None = None,
) -> ChapterPage:
    """
    Title, body text and next-page URL of one chapter content page.

    The next page is the first next-page link that resolves to a URL other
    than page_url and passes is_next_page (default: the ruleset's URL pattern).
    Script and style text never reaches the body.
    """
    sel = ruleset.selectors.chapter_content
    page = ChapterPage()

    if sel.title:
        el = doc.first(sel.title)
        if el is not None:
            page.title = clean_title(el.text())

    body = doc.first(sel.content)
    if body is not None:
        page.content = _normalize_text(body.text(separator="\n", exclude=_CONTENT_JUNK))

    if sel.next_page:
        accept = is_next_page or ruleset.next_page_predicate()
        for link in doc.query(sel.next_page):
            candidate = resolve_url(link.attr(sel.next_page_attr), page_url)
            if candidate and candidate != page_url and accept(candidate):
                page.next_url = candidate
                break

    return page
