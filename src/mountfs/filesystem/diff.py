"""
Unified diff generation for edit previews.
"""

import difflib
from dataclasses import dataclass

NO_CHANGES = "(no changes)"


@dataclass(frozen=True)
class DiffStats:
    added: int
    removed: int


def generate_diff(
    old: str,
    new: str,
    filename: str = "file",
    context_lines: int = 3,
) -> str:
    """
    Generate a unified diff between two texts.

    Args:
        old: Original content
        new: Modified content
        filename: Name used in the ``--- a/`` and ``+++ b/`` header lines
        context_lines: Unchanged lines shown around each change; changes
            closer together than twice this are merged into one hunk

    Returns:
        The diff text, or ``NO_CHANGES`` if the inputs are identical.
    """
    if old == new:
        return NO_CHANGES
    lines = list(
        difflib.unified_diff(
            old.split("\n"),
            new.split("\n"),
            fromfile=f"a/{filename}",
            tofile=f"b/{filename}",
            n=context_lines,
            lineterm="",
        )
    )
    if not lines:
        return NO_CHANGES
    return "\n".join(lines)


def count_diff_lines(diff: str) -> DiffStats:
    """Count added and removed lines inside the hunks; file headers are skipped."""
    added = removed = 0
    in_hunk = False
    for line in diff.split("\n"):
        if line.startswith("@@"):
            in_hunk = True
        elif not in_hunk:
            continue
        elif line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            removed += 1
    return DiffStats(added=added, removed=removed)
