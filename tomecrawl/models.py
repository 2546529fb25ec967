"""Data passed between the crawl stages."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ChapterRef:
    """A chapter found on an index page, in discovery order."""

    url: str
    title: str


@dataclass
class ChapterResult:
    """Outcome of downloading one chapter. index is its position in the discovered list."""

    index: int
    title: str
    content: str = ""
    success: bool = True
    error: str | None = None


@dataclass
class CrawlReport:
    """Summary of a finished crawl."""

    book_title: str
    output_path: str
    total: int
    succeeded: int
    failed: int
