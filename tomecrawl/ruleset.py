"""
Site ruleset: base URL, CSS selectors, concurrency and retry policy for one site.

Loaded from JSON (camelCase keys) into frozen dataclasses with defaults
applied, so the crawl code never has to look at raw dicts.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from tomecrawl.fetcher import DEFAULT_DELAYS_MS, DEFAULT_MAX_ATTEMPTS, RetryPolicy

DEFAULT_CONCURRENCY = 15
# Content pages of one chapter look like .../123_2.html
DEFAULT_NEXT_PAGE_PATTERN = r"\d+_\d+\.html$"


class ConfigError(ValueError):
    """Ruleset file missing, unreadable, or malformed."""


@dataclass(frozen=True)
class ChapterListSelectors:
    """container -> list -> item -> link chain on an index page."""

    container: str
    list: str
    item: str
    link: str
    link_attr: str = "href"


@dataclass(frozen=True)
class PaginationSelectors:
    """Chapter-group control (usually a <select>) listing the other index pages."""

    selector: str
    option: str = "option"
    value_attr: str = "value"


@dataclass(frozen=True)
class ChapterContentSelectors:
    content: str
    title: str | None = None
    next_page: str | None = None
    next_page_attr: str = "href"
    next_page_pattern: str = DEFAULT_NEXT_PAGE_PATTERN
    allow_empty: bool = False


@dataclass(frozen=True)
class Selectors:
    chapter_list: ChapterListSelectors
    chapter_content: ChapterContentSelectors
    book_title: str | None = None
    chapter_pagination: PaginationSelectors | None = None


@dataclass(frozen=True)
class RuleSet:
    base_url: str
    selectors: Selectors
    concurrency: int = DEFAULT_CONCURRENCY
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def next_page_predicate(self) -> Callable[[str], bool]:
        """Default test for "this URL is the next page of the same chapter"."""
        return url_pattern_predicate(self.selectors.chapter_content.next_page_pattern)


def url_pattern_predicate(pattern: str) -> Callable[[str], bool]:
    """Accept URLs that contain an underscore and match pattern."""
    compiled = re.compile(pattern)

    def is_next_page(url: str) -> bool:
        return "_" in url and compiled.search(url) is not None

    return is_next_page


def _require(data: dict[str, Any], key: str, where: str) -> Any:
    if key not in data or data[key] in (None, ""):
        raise ConfigError(f"missing '{key}' in {where}")
    return data[key]


def _opt_str(data: dict[str, Any], key: str, where: str, default: str | None = None) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        raise ConfigError(f"'{key}' in {where} must be a string")
    return value


def _req_str(data: dict[str, Any], key: str, where: str) -> str:
    value = _require(data, key, where)
    if not isinstance(value, str):
        raise ConfigError(f"'{key}' in {where} must be a string")
    return value


def _section(data: dict[str, Any], key: str, where: str, *, required: bool) -> dict[str, Any] | None:
    value = data.get(key)
    if value is None:
        if required:
            raise ConfigError(f"missing '{key}' in {where}")
        return None
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' in {where} must be an object")
    return value


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"'{name}' must be an integer >= 1")
    return value


def _parse_retry(data: dict[str, Any] | None) -> RetryPolicy:
    if data is None:
        return RetryPolicy()
    max_attempts = _positive_int(data.get("maxAttempts", DEFAULT_MAX_ATTEMPTS), "retry.maxAttempts")
    delays = data.get("delays", list(DEFAULT_DELAYS_MS))
    if not isinstance(delays, list) or not delays:
        raise ConfigError("'retry.delays' must be a non-empty list")
    for d in delays:
        if isinstance(d, bool) or not isinstance(d, int) or d < 0:
            raise ConfigError("'retry.delays' entries must be integers >= 0 (milliseconds)")
    return RetryPolicy(max_attempts=max_attempts, delays=tuple(delays))


def parse_ruleset(data: Any) -> RuleSet:
    """Build a RuleSet from decoded JSON. Raises ConfigError on bad input."""
    if not isinstance(data, dict):
        raise ConfigError("ruleset must be a JSON object")
    base_url = _req_str(data, "baseUrl", "ruleset")
    if not base_url.startswith(("http://", "https://")):
        raise ConfigError("'baseUrl' must be an http(s) URL")
    sel = _section(data, "selectors", "ruleset", required=True)

    cl = _section(sel, "chapterList", "selectors", required=True)
    chapter_list = ChapterListSelectors(
        container=_req_str(cl, "container", "selectors.chapterList"),
        list=_req_str(cl, "list", "selectors.chapterList"),
        item=_req_str(cl, "item", "selectors.chapterList"),
        link=_req_str(cl, "link", "selectors.chapterList"),
        link_attr=_opt_str(cl, "linkAttr", "selectors.chapterList", "href"),
    )

    cc = _section(sel, "chapterContent", "selectors", required=True)
    pattern = _opt_str(cc, "nextPagePattern", "selectors.chapterContent", DEFAULT_NEXT_PAGE_PATTERN)
    try:
        re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"'nextPagePattern' is not a valid regex: {e}") from e
    allow_empty = cc.get("allowEmpty", False)
    if not isinstance(allow_empty, bool):
        raise ConfigError("'allowEmpty' in selectors.chapterContent must be true or false")
    chapter_content = ChapterContentSelectors(
        content=_req_str(cc, "content", "selectors.chapterContent"),
        title=_opt_str(cc, "title", "selectors.chapterContent"),
        next_page=_opt_str(cc, "nextPage", "selectors.chapterContent"),
        next_page_attr=_opt_str(cc, "nextPageAttr", "selectors.chapterContent", "href"),
        next_page_pattern=pattern,
        allow_empty=allow_empty,
    )

    pagination = None
    cp = _section(sel, "chapterPagination", "selectors", required=False)
    if cp is not None and cp.get("selector"):
        pagination = PaginationSelectors(
            selector=_req_str(cp, "selector", "selectors.chapterPagination"),
            option=_opt_str(cp, "option", "selectors.chapterPagination", "option"),
            value_attr=_opt_str(cp, "valueAttr", "selectors.chapterPagination", "value"),
        )

    return RuleSet(
        base_url=base_url,
        selectors=Selectors(
            chapter_list=chapter_list,
            chapter_content=chapter_content,
            book_title=_opt_str(sel, "bookTitle", "selectors"),
            chapter_pagination=pagination,
        ),
        concurrency=_positive_int(data.get("concurrency", DEFAULT_CONCURRENCY), "concurrency"),
        retry=_parse_retry(_section(data, "retry", "ruleset", required=False)),
    )


def load_ruleset(path: str | Path) -> RuleSet:
    """Read and validate a JSON ruleset file."""
    p = Path(path)
    try:
        raw = p.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"config file not found: {p}") from e
    except OSError as e:
        raise ConfigError(f"cannot read config file {p}: {e}") from e
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"config file {p} is not valid JSON: {e}") from e
    return parse_ruleset(data)
