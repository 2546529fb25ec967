"""Tomecrawl CLI. Invoked as `tomecrawl` when installed with pip install -e ."""

import argparse
import dataclasses
import os
import sys
from pathlib import Path

from tomecrawl._deps import check_required

CONFIG_ENV = "TOMECRAWL_CONFIG"
DEFAULT_CONFIG = "config.json"


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}")
    if n < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tomecrawl",
        description="Download every chapter of a web book and merge them into one text file.",
    )
    parser.add_argument("url", nargs="?", default=None, metavar="URL", help="Book index page URL")
    parser.add_argument(
        "--config",
        default=None,
        metavar="PATH",
        help=f"Site ruleset JSON (default: ${CONFIG_ENV} or {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--concurrency",
        type=_positive_int,
        default=None,
        metavar="N",
        help="Chapters downloaded in parallel (default from the ruleset, usually 15)",
    )
    parser.add_argument("--out-dir", default=".", help="Directory for the merged text file (default: .)")
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bar (e.g. for scripting)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    check_required()

    from tomecrawl.fetcher import FetchError
    from tomecrawl.pipeline import NoChaptersFound, crawl_book
    from tomecrawl.ruleset import ConfigError, load_ruleset

    parser = build_parser()
    args = parser.parse_args(argv)

    url = (args.url or "").strip()
    if not url:
        parser.error("a book URL is required, e.g. tomecrawl https://example.com/book/123.html")
    if not url.startswith(("http://", "https://")):
        parser.error(f"not an http(s) URL: {url}")

    config_path = args.config or os.environ.get(CONFIG_ENV, "").strip() or DEFAULT_CONFIG
    print(f"Loading config: {config_path}", file=sys.stderr)
    try:
        ruleset = load_ruleset(config_path)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if args.concurrency is not None:
        ruleset = dataclasses.replace(ruleset, concurrency=args.concurrency)
        print(f"  Concurrency: {ruleset.concurrency}", file=sys.stderr)

    print(f"Crawl: {url}", file=sys.stderr)
    try:
        report = crawl_book(url, ruleset, Path(args.out_dir), use_progress=not args.no_progress)
    except NoChaptersFound as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except FetchError as e:
        print(f"Error: cannot fetch {e.url}: {e}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Error: cannot write output: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"\nDone. {report.total} chapters: {report.succeeded} ok, {report.failed} failed.", file=sys.stderr)
    print(f"  Output: {report.output_path}", file=sys.stderr)


if __name__ == "__main__":
    main()
