"""
Line-based content editing.

Lines are 1-indexed and content is split on ``"\\n"`` only, so a trailing
newline shows up as a final empty line.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from mountfs.filesystem.exceptions import RangeError

_SINGLE_LINE = re.compile(r"^\d+$")
_LINE_SPAN = re.compile(r"^(\d+)-(\d+)$")


class LineAction(str, Enum):
    """Edit applied to a line range."""

    REPLACE = "replace"
    INSERT_BEFORE = "insert_before"
    INSERT_AFTER = "insert_after"
    DELETE_LINES = "delete_lines"


@dataclass(frozen=True)
class LineRange:
    start: int
    end: int

    @property
    def count(self) -> int:
        return self.end - self.start + 1

    def __str__(self) -> str:
        return str(self.start) if self.start == self.end else f"{self.start}-{self.end}"


@dataclass(frozen=True)
class LineEdit:
    """Result of applying a line action, before any newline normalization."""

    content: str
    range: LineRange
    lines_affected: int


@dataclass(frozen=True)
class ExtractedLines:
    text: str
    start: int
    end: int


def split_lines(content: str) -> list[str]:
    return content.split("\n")


def count_lines(content: str) -> int:
    return len(split_lines(content))


def try_parse_line_range(spec: str) -> Optional[LineRange]:
    """Parse ``"N"`` or ``"N-M"``; return None when malformed."""
    trimmed = spec.strip()
    if _SINGLE_LINE.match(trimmed):
        line = int(trimmed)
        return LineRange(line, line) if line >= 1 else None
    match = _LINE_SPAN.match(trimmed)
    if match:
        start, end = int(match.group(1)), int(match.group(2))
        if 1 <= start <= end:
            return LineRange(start, end)
    return None


def parse_line_range(spec: str) -> LineRange:
    """
    Parse a line range specification.

    Raises:
        RangeError: ``INVALID_RANGE`` for anything but ``N`` or ``N-M``
            with ``1 <= N <= M``.
    """
    parsed = try_parse_line_range(spec)
    if parsed is None:
        raise RangeError(f"Invalid line range: {spec!r}", code=RangeError.INVALID_RANGE)
    return parsed


def resolve_range(line_range: LineRange, total_lines: int) -> LineRange:
    """
    Check a range against the content length, clamping the end.

    Raises:
        RangeError: ``OUT_OF_RANGE`` if the start is beyond the last line.
    """
    if line_range.start > total_lines:
        raise RangeError(
            f"Line {line_range.start} is beyond end of file ({total_lines} lines)",
            code=RangeError.OUT_OF_RANGE,
        )
    return LineRange(line_range.start, min(line_range.end, total_lines))


def splice(lines: list[str], index: int, remove: int, insert: list[str]) -> list[str]:
    """Return a copy of ``lines`` with ``remove`` items at ``index`` replaced by ``insert``."""
    return lines[:index] + insert + lines[index + remove:]


def apply_line_edit(
    content: str,
    line_range: LineRange,
    action: LineAction,
    new_text: str = "",
) -> LineEdit:
    """
    Apply one line action to ``content``.

    All four actions are expressed as a single splice:

    ==============  =========  ======================
    action          index      removed
    ==============  =========  ======================
    replace         start-1    end-start+1
    insert_before   start-1    0
    insert_after    end        0
    delete_lines    start-1    end-start+1
    ==============  =========  ======================

    Raises:
        RangeError: If the range starts beyond the last line.
    """
    action = LineAction(action)
    lines = split_lines(content)
    resolved = resolve_range(line_range, len(lines))
    inserted = [] if action is LineAction.DELETE_LINES else split_lines(new_text)

    if action is LineAction.INSERT_BEFORE:
        index, remove = resolved.start - 1, 0
    elif action is LineAction.INSERT_AFTER:
        index, remove = resolved.end, 0
    else:
        index, remove = resolved.start - 1, resolved.count

    result = splice(lines, index, remove, inserted)
    return LineEdit(
        content="\n".join(result),
        range=resolved,
        lines_affected=max(remove, len(inserted)),
    )


def ensure_trailing_newline(content: str) -> str:
    return content if content.endswith("\n") else content + "\n"


def add_line_numbers(content: str, start_line: int = 1) -> str:
    """Prefix each line with a right-aligned number: ``" 9|foo"``, ``"10|bar"``."""
    lines = split_lines(content)
    width = len(str(start_line + len(lines) - 1))
    return "\n".join(
        f"{start_line + i:>{width}}|{line}" for i, line in enumerate(lines)
    )


def extract_lines(content: str, start: int, end: int) -> ExtractedLines:
    """Extract lines ``start..end`` (inclusive), clamped to the content bounds."""
    lines = split_lines(content)
    actual_start = max(1, start)
    actual_end = min(len(lines), end)
    return ExtractedLines(
        text="\n".join(lines[actual_start - 1:actual_end]),
        start=actual_start,
        end=actual_end,
    )


def get_context_lines(
    content: str, line: int, before: int, after: int
) -> tuple[list[str], list[str]]:
    """Lines surrounding ``line``, not including it."""
    lines = split_lines(content)
    index = line - 1
    return (
        lines[max(0, index - before):max(0, index)],
        lines[index + 1:min(len(lines), index + 1 + after)],
    )
