"""Filename sanitization, output path building, and file writing."""

import re
from pathlib import Path

UNKNOWN_TITLE = "unknown"

# Characters Windows/macOS/Linux refuse (or mangle) in file names
_UNSAFE_FILENAME_RE = re.compile(r'[<>:"/\\|?*]')


def sanitize_filename(name: str) -> str:
    """Replace characters that are unsafe in file names with _, collapse whitespace."""
    name = _UNSAFE_FILENAME_RE.sub("_", name)
    name = re.sub(r"\s+", " ", name)
    return name.strip()


def path_for_book(out_dir: Path, book_title: str) -> Path:
    """Return <out_dir>/<sanitized title>.txt."""
    stem = sanitize_filename(book_title) or UNKNOWN_TITLE
    if len(stem) > 200:
        stem = stem[:200]
    return out_dir / f"{stem}.txt"


def write_text(path: Path, text: str) -> None:
    """Write text as UTF-8."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
