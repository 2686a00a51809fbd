"""
Tests for line ranges, line edits, checksums and diffs.
"""

import pytest

from mountfs.filesystem import ConcurrencyError, RangeError
from mountfs.filesystem.checksum import checksum, require_checksum, verify_checksum
from mountfs.filesystem.diff import NO_CHANGES, count_diff_lines, generate_diff
from mountfs.filesystem.lines import (
    LineAction,
    LineRange,
    add_line_numbers,
    apply_line_edit,
    count_lines,
    ensure_trailing_newline,
    extract_lines,
    get_context_lines,
    parse_line_range,
    try_parse_line_range,
)

FIVE_LINES = "line1\nline2\nline3\nline4\nline5\n"


class TestLineRange:
    """Test line range parsing."""

    @pytest.mark.parametrize(
        "spec,expected",
        [
            ("5", LineRange(5, 5)),
            ("5-10", LineRange(5, 10)),
            ("10-15", LineRange(10, 15)),
            (" 3-3 ", LineRange(3, 3)),
        ],
    )
    def test_valid(self, spec, expected):
        """Test well-formed ranges."""
        assert parse_line_range(spec) == expected

    @pytest.mark.parametrize("spec", ["0", "10-5", "15-10", "abc", "", "1-", "-3", "1-2-3", "1.5"])
    def test_invalid(self, spec):
        """Test malformed ranges."""
        assert try_parse_line_range(spec) is None
        with pytest.raises(RangeError) as exc:
            parse_line_range(spec)
        assert exc.value.code == "INVALID_RANGE"

    def test_str(self):
        """Test the display form."""
        assert str(LineRange(4, 4)) == "4"
        assert str(LineRange(4, 9)) == "4-9"
        assert LineRange(4, 9).count == 6


class TestApplyLineEdit:
    """Test apply_line_edit."""

    def test_replace_range(self):
        """Test replacing lines 2-4 with a single line."""
        edit = apply_line_edit(FIVE_LINES, LineRange(2, 4), LineAction.REPLACE, "NEW")
        assert edit.content == "line1\nNEW\nline5\n"
        assert edit.lines_affected == 3

    def test_replaced_text_extracts_back(self):
        """Test that the replaced range reads back as the new text."""
        new_text = "x\ny"
        edit = apply_line_edit(FIVE_LINES, LineRange(2, 4), LineAction.REPLACE, new_text)
        assert extract_lines(edit.content, 2, 2 + count_lines(new_text) - 1).text == new_text

    def test_insert_before(self):
        """Test inserting before a line."""
        edit = apply_line_edit("a\nb\n", LineRange(2, 2), LineAction.INSERT_BEFORE, "x")
        assert edit.content == "a\nx\nb\n"
        assert edit.lines_affected == 1

    def test_insert_after(self):
        """Test inserting after the end of a range."""
        edit = apply_line_edit("a\nb\nc", LineRange(1, 2), LineAction.INSERT_AFTER, "x\ny")
        assert edit.content == "a\nb\nx\ny\nc"
        assert edit.lines_affected == 2

    def test_delete_lines(self):
        """Test deleting lines."""
        edit = apply_line_edit(FIVE_LINES, LineRange(1, 2), LineAction.DELETE_LINES)
        assert edit.content == "line3\nline4\nline5\n"
        assert edit.lines_affected == 2

    def test_end_is_clamped(self):
        """Test that an end past the last line is clamped."""
        edit = apply_line_edit("a\nb", LineRange(2, 99), LineAction.REPLACE, "z")
        assert edit.content == "a\nz"
        assert edit.range == LineRange(2, 2)

    def test_start_beyond_end(self):
        """Test that a start past the last line fails."""
        with pytest.raises(RangeError) as exc:
            apply_line_edit("a\nb", LineRange(5, 6), LineAction.REPLACE, "z")
        assert exc.value.code == "OUT_OF_RANGE"

    def test_delete_then_insert_restores(self):
        """Test that deleting lines and inserting them back is a no-op."""
        deleted = apply_line_edit(FIVE_LINES, LineRange(2, 3), LineAction.DELETE_LINES)
        restored = apply_line_edit(deleted.content, LineRange(2, 2), LineAction.INSERT_BEFORE, "line2\nline3")
        assert restored.content == FIVE_LINES

    def test_action_accepts_string(self):
        """Test that actions can be given by value."""
        edit = apply_line_edit("a\n", LineRange(1, 1), "replace", "b")
        assert edit.content == "b\n"


class TestLineHelpers:
    """Test numbering, extraction and newline helpers."""

    def test_count_lines_counts_trailing_newline(self):
        """Test that a trailing newline adds an empty final line."""
        assert count_lines("a\nb") == 2
        assert count_lines("a\nb\n") == 3
        assert count_lines("") == 1

    def test_add_line_numbers_aligns(self):
        """Test right-aligned line numbers."""
        text = add_line_numbers("x\ny", start_line=9)
        assert text == " 9|x\n10|y"

    def test_extract_lines_clamps(self):
        """Test clamped extraction."""
        extracted = extract_lines("a\nb\nc", 2, 10)
        assert extracted.text == "b\nc"
        assert (extracted.start, extracted.end) == (2, 3)

    def test_context_lines(self):
        """Test lines around a target line."""
        before, after = get_context_lines("1\n2\n3\n4\n5", 3, 1, 5)
        assert before == ["2"]
        assert after == ["4", "5"]

    def test_ensure_trailing_newline(self):
        """Test newline normalization."""
        assert ensure_trailing_newline("a") == "a\n"
        assert ensure_trailing_newline("a\n") == "a\n"


class TestChecksum:
    """Test checksums."""

    def test_checksum_format(self):
        """Test that checksums are 12 lowercase hex characters."""
        value = checksum("hello")
        assert len(value) == 12
        assert value == checksum(b"hello")
        assert all(c in "0123456789abcdef" for c in value)

    def test_checksum_roundtrip(self):
        """Test verify against the value it produced."""
        assert verify_checksum("content", checksum("content"))
        assert not verify_checksum("content", checksum("content!"))

    def test_single_byte_change(self):
        """Test that changing any one byte changes the checksum."""
        original = b"line1\nline2\n"
        digest = checksum(original)
        for position in range(len(original)):
            mutated = bytearray(original)
            mutated[position] ^= 0x01
            assert checksum(bytes(mutated)) != digest

    def test_require_checksum_mismatch(self):
        """Test that a stale checksum raises with both values."""
        with pytest.raises(ConcurrencyError) as exc:
            require_checksum("new", checksum("old"), "vault/a.md")
        assert exc.value.code == "CHECKSUM_MISMATCH"
        assert exc.value.expected == checksum("old")
        assert exc.value.actual == checksum("new")


class TestDiff:
    """Test diff generation."""

    def test_identical(self):
        """Test that identical content yields the no-changes marker."""
        assert generate_diff("a\n", "a\n") == NO_CHANGES

    def test_headers_and_counts(self):
        """Test header lines and change counts."""
        diff = generate_diff("a\nb\nc\n", "a\nB\nc\nd\n", "vault/x.md")
        assert diff.startswith("--- a/vault/x.md\n+++ b/vault/x.md\n")
        stats = count_diff_lines(diff)
        assert stats.added == 2
        assert stats.removed == 1

    def test_counts_lines_that_look_like_headers(self):
        """Test that changed lines starting with -- or ++ are still counted."""
        diff = generate_diff("-- comment\nkeep\n", "++x\nkeep\n")
        assert "\n---- comment\n" in diff
        assert "\n+++x\n" in diff
        stats = count_diff_lines(diff)
        assert (stats.added, stats.removed) == (1, 1)

    def test_distant_changes_make_two_hunks(self):
        """Test that far-apart changes are separate hunks."""
        old = "\n".join(str(i) for i in range(1, 31))
        new = old.replace("2\n", "two\n", 1).replace("28", "twenty-eight")
        diff = generate_diff(old, new, context_lines=3)
        assert diff.count("@@ -") == 2

    def test_close_changes_merge(self):
        """Test that nearby changes share a hunk."""
        old = "\n".join(str(i) for i in range(1, 31))
        new = old.replace("10", "ten").replace("14", "fourteen")
        diff = generate_diff(old, new, context_lines=3)
        assert diff.count("@@ -") == 1
