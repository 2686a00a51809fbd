"""
Pattern matching shared by content search and pattern-targeted writes.

Three modes compile to a regular expression:

- ``literal``: every metacharacter escaped, exact substring semantics.
- ``regex``: used as given, after a static screen for catastrophic
  backtracking.
- ``fuzzy``: whitespace in the pattern becomes flexible, so a snippet
  still matches after reindentation or rewrapping.

Named presets cover common Markdown structures (headings, tasks, tags...).
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from mountfs.filesystem.exceptions import PatternError, UnsafeRegexError
from mountfs.filesystem.lines import LineRange

logger = logging.getLogger(__name__)

MAX_PATTERN_LENGTH = 1000
MAX_ALTERNATIONS = 50
DEFAULT_MAX_MATCHES = 1000
UNIQUE_MATCH_LIMIT = 10


class PatternMode(str, Enum):
    LITERAL = "literal"
    REGEX = "regex"
    FUZZY = "fuzzy"


# name -> (pattern, flags)
PRESET_PATTERNS: dict[str, tuple[str, int]] = {
    "wikilinks": (r"\[\[([^\]|]+)(\|[^\]]+)?\]\]", 0),
    "tags": (r"(?:(?<=\s)|^)#[a-zA-Z][a-zA-Z0-9_/]*", re.MULTILINE),
    "tasks": (r"^\s*-\s*\[([ xX])\]\s+(.*)$", re.MULTILINE),
    "tasks_open": (r"^\s*-\s*\[ \]\s+(.*)$", re.MULTILINE),
    "tasks_done": (r"^\s*-\s*\[[xX]\]\s+(.*)$", re.MULTILINE),
    "headings": (r"^(#{1,6})\s+(.+)$", re.MULTILINE),
    "codeblocks": (r"```[\s\S]*?```", 0),
    "frontmatter": (r"\A---\n[\s\S]*?\n---", 0),
}


def is_preset(name: str) -> bool:
    return name in PRESET_PATTERNS


def compile_preset(name: str) -> re.Pattern:
    """
    Compile a named preset.

    Raises:
        PatternError: If the preset name is unknown.
    """
    if not is_preset(name):
        raise PatternError(
            f"Unknown preset: {name}",
            hint=f"Available presets: {', '.join(sorted(PRESET_PATTERNS))}",
        )
    pattern, flags = PRESET_PATTERNS[name]
    return re.compile(pattern, flags)


# --- Regex safety screen ---------------------------------------------------

_BRACE_QUANTIFIER = re.compile(r"\{(\d*)(,(\d*))?\}")


def _quantifier_at(pattern: str, i: int) -> Optional[tuple[int, bool]]:
    """Return ``(length, repeats)`` if a quantifier starts at ``i``."""
    if i >= len(pattern):
        return None
    c = pattern[i]
    if c in "*+":
        return 1, True
    if c == "?":
        return 1, False
    if c == "{":
        m = _BRACE_QUANTIFIER.match(pattern, i)
        if m and (m.group(1) or m.group(3)):
            if m.group(2) is None:
                upper = int(m.group(1))
            else:
                upper = int(m.group(3)) if m.group(3) else None
            return m.end() - i, upper is None or upper > 1
    return None


def _skip_class(pattern: str, i: int) -> int:
    """Return the index just past the character class starting at ``i``."""
    i += 1
    if i < len(pattern) and pattern[i] == "^":
        i += 1
    if i < len(pattern) and pattern[i] == "]":
        i += 1
    while i < len(pattern):
        if pattern[i] == "\\":
            i += 2
            continue
        if pattern[i] == "]":
            return i + 1
        i += 1
    return i


def unsafe_regex_reason(pattern: str) -> Optional[str]:
    """
    Statically screen a regex for catastrophic-backtracking shapes.

    Returns a short reason when the pattern is rejected, otherwise None.
    Flags nested quantifiers such as ``(a+)+``, stacked quantifiers such as
    ``a{2}*``, more than ``MAX_ALTERNATIONS`` alternations, and patterns
    longer than ``MAX_PATTERN_LENGTH``.
    """
    if len(pattern) > MAX_PATTERN_LENGTH:
        return f"pattern longer than {MAX_PATTERN_LENGTH} characters"

    # One flag per open group: does it contain a repeating quantifier?
    stack = [False]
    alternations = 0
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        group_repeats = False
        if c == "\\":
            i += 2
        elif c == "[":
            i = _skip_class(pattern, i)
        elif c == "(":
            stack.append(False)
            i += 1
            if i < n and pattern[i] == "?":
                i += 1
            continue
        elif c == ")":
            group_repeats = stack.pop() if len(stack) > 1 else False
            i += 1
        elif c == "|":
            alternations += 1
            if alternations > MAX_ALTERNATIONS:
                return f"more than {MAX_ALTERNATIONS} alternations"
            i += 1
            continue
        else:
            i += 1

        quantifier = _quantifier_at(pattern, i)
        if quantifier is None:
            if group_repeats:
                stack[-1] = True
            continue

        length, repeats = quantifier
        if repeats and group_repeats:
            return "nested quantifiers"
        if repeats or group_repeats:
            stack[-1] = True
        i += length
        # lazy / possessive modifier
        if i < n and pattern[i] in "?+":
            i += 1
        if _quantifier_at(pattern, i) is not None:
            return "stacked quantifiers"
    return None


def is_unsafe_regex(pattern: str) -> bool:
    return unsafe_regex_reason(pattern) is not None


def check_regex_safety(pattern: str) -> None:
    """
    Raises:
        UnsafeRegexError: If the pattern fails the static screen.
    """
    reason = unsafe_regex_reason(pattern)
    if reason is not None:
        logger.warning(f"Rejected unsafe regex ({reason}): {pattern!r}")
        raise UnsafeRegexError(pattern, reason)


# --- Compilation -----------------------------------------------------------


def normalize_whitespace(text: str) -> str:
    text = text.replace("\r\n", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = text.replace("\n ", "\n").replace(" \n", "\n")
    return text.strip()


def fuzzy_source(pattern: str) -> str:
    normalized = normalize_whitespace(pattern)
    escaped = re.escape(normalized)
    # re.escape escapes spaces and newlines
    escaped = escaped.replace("\\ ", " ").replace("\\\n", "\n")
    return escaped.replace(" ", r"\s+").replace("\n", r"\s*\n\s*")


def compile_pattern(
    pattern: str,
    mode: Union[PatternMode, str] = PatternMode.LITERAL,
    *,
    multiline: bool = False,
    whole_word: bool = False,
    case_insensitive: bool = False,
) -> re.Pattern:
    """
    Compile ``pattern`` according to ``mode``.

    Args:
        pattern: The search text or expression
        mode: ``literal``, ``regex`` or ``fuzzy``
        multiline: Let ``.`` match newlines
        whole_word: Wrap the expression in word boundaries
        case_insensitive: Ignore case

    Raises:
        UnsafeRegexError: For regex mode patterns that fail the safety screen
        PatternError: If the pattern is empty or does not compile
    """
    mode = PatternMode(mode)
    if not pattern:
        raise PatternError("Pattern must not be empty")

    if mode is PatternMode.LITERAL:
        source = re.escape(pattern)
    elif mode is PatternMode.FUZZY:
        source = fuzzy_source(pattern)
    else:
        check_regex_safety(pattern)
        source = pattern

    if whole_word:
        source = rf"\b(?:{source})\b"

    flags = 0
    if multiline:
        flags |= re.DOTALL
    if case_insensitive:
        flags |= re.IGNORECASE

    try:
        return re.compile(source, flags)
    except re.error as e:
        raise PatternError(f"Invalid {mode.value} pattern {pattern!r}: {e}")


# --- Matching --------------------------------------------------------------


@dataclass(frozen=True)
class MatchResult:
    """One match: absolute offset plus 1-indexed line and column."""

    offset: int
    text: str
    line: int
    column: int

    @property
    def end_line(self) -> int:
        return self.line + self.text.count("\n")


def get_line_number(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def get_line_bounds(content: str, offset: int) -> tuple[int, int]:
    """Start and end offsets of the line containing ``offset``."""
    start = content.rfind("\n", 0, offset) + 1
    end = content.find("\n", offset)
    return start, len(content) if end == -1 else end


def find_matches(
    content: str,
    matcher: re.Pattern,
    max_matches: int = DEFAULT_MAX_MATCHES,
) -> list[MatchResult]:
    matches: list[MatchResult] = []
    line = 1
    line_start = 0
    scanned = 0
    for m in matcher.finditer(content):
        if len(matches) >= max_matches:
            break
        offset = m.start()
        # offsets only increase, so count newlines incrementally
        newlines = content.count("\n", scanned, offset)
        if newlines:
            line += newlines
            line_start = content.rfind("\n", scanned, offset) + 1
        scanned = offset
        matches.append(
            MatchResult(
                offset=offset,
                text=m.group(0),
                line=line,
                column=offset - line_start + 1,
            )
        )
    return matches


def match_line_range(match: MatchResult) -> LineRange:
    """Lines spanned by a match; a match ending in a newline stops on the line before."""
    end_line = match.end_line
    if match.text.endswith("\n") and end_line > match.line:
        end_line -= 1
    return LineRange(match.line, end_line)


@dataclass(frozen=True)
class UniqueMatch:
    match: MatchResult
    kind: str = "match"


@dataclass(frozen=True)
class NoMatch:
    kind: str = "not_found"


@dataclass(frozen=True)
class MultipleMatches:
    count: int
    lines: list[int]
    kind: str = "multiple"


UniqueMatchResult = Union[UniqueMatch, NoMatch, MultipleMatches]


def find_unique_match(content: str, matcher: re.Pattern) -> UniqueMatchResult:
    """
    Find exactly one match.

    Returns ``UniqueMatch`` for a single match, ``NoMatch`` for none, and
    ``MultipleMatches`` with every matching line (up to the match limit)
    otherwise. Never picks among several matches.
    """
    matches = find_matches(content, matcher, max_matches=UNIQUE_MATCH_LIMIT)
    if not matches:
        return NoMatch()
    if len(matches) > 1:
        return MultipleMatches(count=len(matches), lines=[m.line for m in matches])
    return UniqueMatch(match=matches[0])


@dataclass(frozen=True)
class ReplaceResult:
    content: str
    count: int
    affected_lines: list[int]


def replace_all_matches(
    content: str,
    matcher: re.Pattern,
    replacement: str,
    max_matches: int = 10_000,
) -> ReplaceResult:
    """Replace every match with ``replacement`` taken literally."""
    matches = find_matches(content, matcher, max_matches=max_matches)
    if not matches:
        return ReplaceResult(content=content, count=0, affected_lines=[])
    parts = []
    cursor = 0
    for m in matches:
        parts.append(content[cursor:m.offset])
        parts.append(replacement)
        cursor = m.offset + len(m.text)
    parts.append(content[cursor:])
    return ReplaceResult(
        content="".join(parts),
        count=len(matches),
        affected_lines=sorted({m.line for m in matches}),
    )


# --- Clustering ------------------------------------------------------------


@dataclass
class MatchCluster:
    """Nearby matches reported as one region with surrounding context."""

    start_line: int
    end_line: int
    matches: list[MatchResult] = field(default_factory=list)
    before: list[str] = field(default_factory=list)
    after: list[str] = field(default_factory=list)
    lines: list[str] = field(default_factory=list)


def cluster_matches(
    matches: list[MatchResult],
    content: str,
    context_lines: int = 2,
    threshold: int = 5,
) -> list[MatchCluster]:
    """
    Merge matches within ``threshold`` lines of each other.

    Each cluster carries the matched region's lines plus up to
    ``context_lines`` lines of context on each side.
    """
    if not matches:
        return []
    all_lines = content.split("\n")
    ordered = sorted(matches, key=lambda m: m.offset)

    clusters: list[MatchCluster] = []
    current = MatchCluster(start_line=ordered[0].line, end_line=ordered[0].end_line)
    current.matches.append(ordered[0])
    for m in ordered[1:]:
        if m.line - current.end_line <= threshold:
            current.end_line = max(current.end_line, m.end_line)
            current.matches.append(m)
        else:
            clusters.append(current)
            current = MatchCluster(start_line=m.line, end_line=m.end_line)
            current.matches.append(m)
    clusters.append(current)

    for cluster in clusters:
        start = cluster.start_line - 1
        end = min(len(all_lines), cluster.end_line)
        cluster.lines = all_lines[start:end]
        cluster.before = all_lines[max(0, start - context_lines):start]
        cluster.after = all_lines[end:end + context_lines]
    return clusters
