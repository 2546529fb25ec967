"""Crawl pipeline: collect chapter list, download chapters in parallel, merge. Used by CLI and programmatic callers."""

import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable

from tqdm import tqdm

from tomecrawl.document import Document
from tomecrawl.extractors import (
    canonical_key,
    extract_book_title,
    extract_chapter_links,
    extract_chapter_page,
    extract_pagination_options,
    resolve_url,
)
from tomecrawl.fetcher import Fetcher, FetchError
from tomecrawl.merge import summarize, write_document
from tomecrawl.models import ChapterRef, ChapterResult, CrawlReport
from tomecrawl.ruleset import RuleSet
from tomecrawl.storage import UNKNOWN_TITLE

EMPTY_CONTENT_REASON = "empty content"
PAGE_SEPARATOR = "\n\n"


class ChapterFailure(RuntimeError):
    """The first page of a chapter could not be fetched."""


class NoChaptersFound(RuntimeError):
    """The index pages yielded no chapter links."""


def collect_chapter_list(
    main_url: str,
    ruleset: RuleSet,
    fetcher: Fetcher,
    *,
    main_doc: Document | None = None,
) -> list[ChapterRef]:
    """
    Walk the index pages (main page first, then the chapter-group options)
    one at a time and return chapters in discovery order, deduplicated by
    URL without query string. A failing secondary index page is skipped.
    """
    if main_doc is None:
        main_doc = Document(fetcher.fetch(main_url))

    index_urls = [main_url]
    for u in extract_pagination_options(main_doc, ruleset):
        if u not in index_urls:
            index_urls.append(u)
    if len(index_urls) > 1:
        print(f"  Found {len(index_urls)} index pages", file=sys.stderr)

    chapters: list[ChapterRef] = []
    seen: set[str] = set()
    for page_url in index_urls:
        if page_url == main_url:
            doc = main_doc
        else:
            try:
                doc = Document(fetcher.fetch(page_url))
            except FetchError as e:
                print(f"  Skipping index page {page_url}: {e}", file=sys.stderr)
                continue
        for href, title in extract_chapter_links(doc, ruleset):
            url = resolve_url(href, ruleset.base_url)
            if url is None:
                continue
            key = canonical_key(url)
            if key in seen:
                continue
            seen.add(key)
            chapters.append(ChapterRef(url=url, title=title))

    print(f"  Found {len(chapters)} chapters", file=sys.stderr)
    return chapters


def download_chapter_pages(
    url: str,
    ruleset: RuleSet,
    fetcher: Fetcher,
    *,
    is_next_page: Callable[[str], bool] | None = None,
) -> tuple[str, str]:
    """
    Follow a chapter's own pagination from url; returns (title, content).

    Stops at the last page, on a link back to a visited page, or on an error
    after the first page (content gathered so far is kept). Raises
    ChapterFailure when the first page cannot be fetched or parsed. The
    title comes from the first page only, else "unknown".
    """
    title = ""
    parts: list[str] = []
    visited: set[str] = set()
    current: str | None = url

    while current and current not in visited:
        visited.add(current)
        first = len(visited) == 1
        try:
            html = fetcher.fetch(current)
        except FetchError as e:
            if first:
                raise ChapterFailure(str(e)) from e
            print(f"  Chapter page failed, keeping {len(visited) - 1} page(s): {current} - {e}", file=sys.stderr)
            break
        try:
            page = extract_chapter_page(Document(html), current, ruleset, is_next_page)
        except Exception as e:
            if first:
                raise ChapterFailure(f"cannot parse {current}: {e}") from e
            print(f"  Could not parse chapter page {current}: {e}", file=sys.stderr)
            break
        if first:
            title = page.title
        if page.content:
            parts.append(page.content)
        current = page.next_url

    return title or UNKNOWN_TITLE, PAGE_SEPARATOR.join(parts)


def _download_one(
    index: int,
    chapter: ChapterRef,
    ruleset: RuleSet,
    fetcher: Fetcher,
    is_next_page: Callable[[str], bool] | None,
) -> ChapterResult:
    try:
        title, content = download_chapter_pages(chapter.url, ruleset, fetcher, is_next_page=is_next_page)
    except ChapterFailure as e:
        return ChapterResult(index=index, title=chapter.title, success=False, error=str(e))
    if not content and not ruleset.selectors.chapter_content.allow_empty:
        return ChapterResult(index=index, title=title, success=False, error=EMPTY_CONTENT_REASON)
    return ChapterResult(index=index, title=title, content=content)


def _progress_line(result: ChapterResult, done: int, total: int) -> str:
    pct = done / total * 100 if total else 100.0
    prefix = f"  [{done}/{total}] ({pct:.1f}%)"
    if result.success:
        return f"{prefix} ok   {result.title}"
    return f"{prefix} fail {result.title}: {result.error}"


def download_all_chapters(
    chapters: list[ChapterRef],
    ruleset: RuleSet,
    fetcher: Fetcher,
    *,
    concurrency: int | None = None,
    use_progress: bool = False,
    is_next_page: Callable[[str], bool] | None = None,
    on_result: Callable[[ChapterResult, int, int], None] | None = None,
) -> list[ChapterResult]:
    """
    Download every chapter with at most `concurrency` chapters in flight
    (default: ruleset.concurrency). Each worker thread uses its own Fetcher
    from fetcher.spawn(). Every chapter runs to completion; results come back
    in completion order, one per chapter, tagged with the chapter's index.
    """
    workers = concurrency if concurrency is not None else ruleset.concurrency
    if workers < 1:
        raise ValueError("concurrency must be >= 1")
    total = len(chapters)
    if total == 0:
        return []
    print(f"  → Downloading {total} chapters ({workers} in parallel)...", file=sys.stderr)

    _thread_local = threading.local()
    _fetchers_to_close: list[Fetcher] = []
    _fetchers_lock = threading.Lock()

    def _get_thread_fetcher() -> Fetcher:
        f = getattr(_thread_local, "fetcher", None)
        if f is None:
            f = fetcher.spawn()
            with _fetchers_lock:
                _fetchers_to_close.append(f)
            _thread_local.fetcher = f
        return f

    def _run(index: int, chapter: ChapterRef) -> ChapterResult:
        return _download_one(index, chapter, ruleset, _get_thread_fetcher(), is_next_page)

    results: list[ChapterResult] = []
    pbar = tqdm(total=total, desc="Chapters", unit=" ch", file=sys.stderr, disable=not use_progress)
    try:
        with ThreadPoolExecutor(max_workers=min(workers, total)) as ex:
            futures = {ex.submit(_run, i, ch): (i, ch) for i, ch in enumerate(chapters)}
            for fut in as_completed(futures):
                index, chapter = futures[fut]
                try:
                    result = fut.result()
                except Exception as e:
                    result = ChapterResult(index=index, title=chapter.title, success=False, error=str(e) or type(e).__name__)
                results.append(result)
                done = len(results)
                pbar.update(1)
                tqdm.write(_progress_line(result, done, total), file=sys.stderr)
                if on_result is not None:
                    on_result(result, done, total)
    finally:
        pbar.close()
        for f in _fetchers_to_close:
            if f is not fetcher:
                f.close()
    return results


def crawl_book(
    url: str,
    ruleset: RuleSet,
    out_dir: Path,
    *,
    fetcher: Fetcher | None = None,
    concurrency: int | None = None,
    use_progress: bool = True,
) -> CrawlReport:
    """
    Full run: fetch the main page, read the book title, collect chapters,
    download them, write <out_dir>/<title>.txt. Raises FetchError when the
    main page is unreachable and NoChaptersFound when the index is empty.
    """
    own_fetcher = fetcher is None
    if fetcher is None:
        fetcher = Fetcher(retry=ruleset.retry)
    try:
        print("  → Fetching main page...", file=sys.stderr)
        main_doc = Document(fetcher.fetch(url))
        book_title = extract_book_title(main_doc, ruleset)
        print(f"  Book: {book_title}", file=sys.stderr)

        print("  → Collecting chapter list...", file=sys.stderr)
        chapters = collect_chapter_list(url, ruleset, fetcher, main_doc=main_doc)
        if not chapters:
            raise NoChaptersFound(f"no chapters found at {url}")

        results = download_all_chapters(
            chapters, ruleset, fetcher,
            concurrency=concurrency, use_progress=use_progress,
        )
    finally:
        if own_fetcher:
            fetcher.close()

    print("  → Merging chapters...", file=sys.stderr)
    path = write_document(results, book_title, out_dir)
    summary = summarize(results)
    return CrawlReport(
        book_title=book_title,
        output_path=str(path),
        total=summary.total,
        succeeded=summary.succeeded,
        failed=summary.failed,
    )
