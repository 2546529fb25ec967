"""Merge downloaded chapters, in discovery order, into one text document."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from tomecrawl.models import ChapterResult
from tomecrawl.storage import path_for_book, write_text

RULE = "=" * 80
UNKNOWN_ERROR = "unknown error"


@dataclass
class MergeSummary:
    total: int
    succeeded: int
    failed: int


def _is_rendered(result: ChapterResult) -> bool:
    return result.success and bool(result.content)


def render_chapter(result: ChapterResult) -> str:
    """One chapter block: title, then content or a failure placeholder, then a rule."""
    if _is_rendered(result):
        body = result.content
    else:
        body = f"[download failed: {result.error or UNKNOWN_ERROR}]"
    return f"{result.title}\n{body}\n\n{RULE}\n\n"


def render_document(results: Iterable[ChapterResult], book_title: str) -> str:
    """
    Banner plus every chapter sorted by index. Failed chapters keep their
    place and show a placeholder instead of being dropped.
    """
    ordered = sorted(results, key=lambda r: r.index)
    out = [f"{RULE}\n{book_title}\n{RULE}\n\n\n"]
    out.extend(render_chapter(r) for r in ordered)
    return "".join(out)


def summarize(results: Iterable[ChapterResult]) -> MergeSummary:
    results = list(results)
    ok = sum(1 for r in results if r.success)
    return MergeSummary(total=len(results), succeeded=ok, failed=len(results) - ok)


def write_document(results: Iterable[ChapterResult], book_title: str, out_dir: Path) -> Path:
    """Render and write <out_dir>/<book_title>.txt (UTF-8). Returns the path written."""
    path = path_for_book(out_dir, book_title)
    write_text(path, render_document(results, book_title))
    return path
