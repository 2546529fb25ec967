"""Tests for merging chapter results into the final document."""

from __future__ import annotations

from pathlib import Path

from tomecrawl.merge import RULE, render_chapter, render_document, summarize, write_document
from tomecrawl.models import ChapterResult


def _ok(index: int, title: str, content: str) -> ChapterResult:
    return ChapterResult(index=index, title=title, content=content)


class TestRenderDocument:
    def test_banner(self) -> None:
        text = render_document([], "Moon Book")
        assert text == f"{RULE}\nMoon Book\n{RULE}\n\n\n"

    def test_chapter_block(self) -> None:
        assert render_chapter(_ok(0, "Ch1", "Hello")) == f"Ch1\nHello\n\n{RULE}\n\n"

    def test_sorted_by_index_not_input_order(self) -> None:
        results = [_ok(2, "C", "c"), _ok(0, "A", "a"), _ok(1, "B", "b")]
        text = render_document(results, "Book")
        assert text.index("A\na") < text.index("B\nb") < text.index("C\nc")

    def test_failure_placeholder_shows_reason(self) -> None:
        failed = ChapterResult(index=1, title="Ch2", success=False, error="timeout")
        text = render_document([_ok(0, "Ch1", "one"), failed, _ok(2, "Ch3", "three")], "Book")
        assert "Ch2\n[download failed: timeout]\n" in text
        assert text.index("Ch1") < text.index("Ch2") < text.index("Ch3")

    def test_placeholder_without_reason(self) -> None:
        failed = ChapterResult(index=0, title="Ch1", success=False)
        assert "[download failed: unknown error]" in render_chapter(failed)

    def test_successful_but_empty_chapter_uses_placeholder(self) -> None:
        assert "[download failed:" in render_chapter(_ok(0, "Ch1", ""))


class TestSummarize:
    def test_counts(self) -> None:
        results = [
            _ok(0, "A", "a"),
            ChapterResult(index=1, title="B", success=False, error="x"),
            _ok(2, "C", "c"),
        ]
        s = summarize(results)
        assert (s.total, s.succeeded, s.failed) == (3, 2, 1)


class TestWriteDocument:
    def test_writes_utf8_file_named_after_title(self, tmp_path: Path) -> None:
        path = write_document([_ok(0, "第一章", "月光")], "月之书", tmp_path / "out")
        assert path == tmp_path / "out" / "月之书.txt"
        text = path.read_text(encoding="utf-8")
        assert text.startswith(f"{RULE}\n月之书\n")
        assert "第一章\n月光\n" in text

    def test_title_is_sanitized(self, tmp_path: Path) -> None:
        path = write_document([], "A/B: C?", tmp_path)
        assert path.name == "A_B_ C_.txt"
