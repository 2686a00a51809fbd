"""
Fuzzy file search over a cached index.

Scoring layers, from strongest to weakest:

1. Subsequence match quality (consecutive runs, word boundaries).
2. Fixed filename bonuses: exact > prefix > substring.
3. Depth penalty and extension affinity, which only break ties.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from rapidfuzz.distance import LCSseq

from mountfs.filesystem.filetypes import should_exclude
from mountfs.filesystem.index import FileIndexCache, IndexedFile, IndexOptions

logger = logging.getLogger(__name__)

SCORE_EXACT_MATCH = 100_000
SCORE_PREFIX_MATCH = 10_000
SCORE_SUBSTRING_MATCH = 1_000
SCORE_FILENAME_WEIGHT = 2
SCORE_DEPTH_PENALTY = 10
SCORE_LAST_TERM_IN_NAME = 5_000
EMPTY_QUERY_BASE = 100

# Subsequence scoring
CHAR_MATCH = 16
CONSECUTIVE_BONUS = 12
BOUNDARY_BONUS = 24
MAX_GAP_PENALTY = 8
MAX_START_PENALTY = 20

BOUNDARY_CHARS = frozenset("/\\_-. ")

_EXTENSION_BOOSTS = {
    **dict.fromkeys(("rs", "ts", "tsx", "svelte", "js", "jsx", "vue"), 50),
    **dict.fromkeys(("py", "go", "java", "kt", "c", "cpp", "h", "hpp", "cs"), 40),
    **dict.fromkeys(("rb", "php", "swift", "scala", "clj"), 35),
    **dict.fromkeys(("html", "css", "scss", "sass", "less"), 30),
    **dict.fromkeys(("json", "toml", "yaml", "yml"), 20),
    **dict.fromkeys(("md", "txt", "rst"), 10),
}


def extension_boost(extension: str) -> int:
    return _EXTENSION_BOOSTS.get(extension.lower(), 0)


@dataclass(frozen=True)
class SubsequenceMatch:
    score: int
    indices: tuple[int, ...]


def _covers(query: str, text: str) -> bool:
    return LCSseq.similarity(query, text) == len(query)


def subsequence_score(query: str, target: str) -> Optional[SubsequenceMatch]:
    """
    Score ``query`` as an in-order subsequence of ``target``.

    The query is a subsequence when its longest common subsequence with
    the target is the whole query. The window is narrowed to the shortest
    prefix that still contains it, then to the latest start inside that
    prefix; the LCS alignment of that window gives the matched positions.
    Both strings are expected to be lowercased.
    """
    if not query:
        return SubsequenceMatch(0, ())
    if not _covers(query, target):
        return None

    lo, hi = len(query), len(target)
    while lo < hi:
        mid = (lo + hi) // 2
        if _covers(query, target[:mid]):
            hi = mid
        else:
            lo = mid + 1
    end = lo

    lo, hi = 0, end - len(query)
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if _covers(query, target[mid:end]):
            lo = mid
        else:
            hi = mid - 1
    start = lo

    blocks = LCSseq.editops(query, target[start:end]).as_matching_blocks()
    indices = [start + block.b + k for block in blocks for k in range(block.size)]

    score = 0
    prev = -1
    for idx in indices:
        score += CHAR_MATCH
        if idx == 0 or target[idx - 1] in BOUNDARY_CHARS:
            score += BOUNDARY_BONUS
        if prev >= 0:
            if idx == prev + 1:
                score += CONSECUTIVE_BONUS
            else:
                score -= min(idx - prev - 1, MAX_GAP_PENALTY)
        prev = idx
    score -= min(start, MAX_START_PENALTY)
    return SubsequenceMatch(score, tuple(indices))


def _filename_bonus(name: str, query: str) -> int:
    if name == query:
        return SCORE_EXACT_MATCH
    if name.startswith(query):
        return SCORE_PREFIX_MATCH
    if query in name:
        return SCORE_SUBSTRING_MATCH
    return 0


@dataclass(frozen=True)
class ScoredEntry:
    entry: IndexedFile
    score: int
    indices: tuple[int, ...]


class FuzzyScorer:
    """Rank index entries against a free-text query."""

    def score(self, entry: IndexedFile, query: str) -> Optional[ScoredEntry]:
        """Score one entry, or None if it does not match."""
        query = query.strip().lower()
        if not query:
            return ScoredEntry(
                entry,
                EMPTY_QUERY_BASE
                - entry.depth * SCORE_DEPTH_PENALTY
                + extension_boost(entry.extension),
                (),
            )
        terms = query.split()
        if len(terms) > 1:
            result = self._score_terms(entry, terms)
        else:
            result = self._score_single(entry, terms[0])
        if result is None:
            return None
        score, indices = result
        score += extension_boost(entry.extension) - entry.depth * SCORE_DEPTH_PENALTY
        return ScoredEntry(entry, score, indices)

    def _score_terms(
        self, entry: IndexedFile, terms: list[str]
    ) -> Optional[tuple[int, tuple[int, ...]]]:
        total = 0
        indices: list[int] = []
        for term in terms:
            match = subsequence_score(term, entry.path_lower)
            if match is None:
                return None
            total += match.score
            indices.extend(match.indices)
        last = terms[-1]
        if last in entry.name_lower:
            total += SCORE_LAST_TERM_IN_NAME
        if entry.name_lower.startswith(last):
            total += SCORE_PREFIX_MATCH
        return total, tuple(indices)

    def _score_single(
        self, entry: IndexedFile, query: str
    ) -> Optional[tuple[int, tuple[int, ...]]]:
        name_match = subsequence_score(query, entry.name_lower)
        path_match = subsequence_score(query, entry.path_lower)
        if name_match is None and path_match is None:
            return None

        if name_match is None:
            filename_like = "." in query or "/" not in query
            if filename_like:
                return None
            return path_match.score, path_match.indices

        score = name_match.score * SCORE_FILENAME_WEIGHT
        if path_match is not None:
            score += path_match.score
        score += _filename_bonus(entry.name_lower, query)
        # indices point into the path so callers can highlight one string
        offset = len(entry.path_lower) - len(entry.name_lower)
        return score, tuple(offset + i for i in name_match.indices)

    def rank(self, entries: Sequence[IndexedFile], query: str) -> list[ScoredEntry]:
        """Score and sort descending; ties keep index order."""
        scored = [s for s in (self.score(entry, query) for entry in entries) if s is not None]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored


@dataclass(frozen=True)
class FileSearchResult:
    absolute_path: str
    relative_path: str
    file_name: str
    extension: str
    is_directory: bool
    score: int
    match_indices: tuple[int, ...]


async def search_files(
    cache: FileIndexCache,
    root: str,
    query: str,
    options: Optional[IndexOptions] = None,
    *,
    max_results: int = 50,
    extensions: Sequence[str] = (),
    max_depth: Optional[int] = None,
    exclude: Sequence[str] = (),
    scorer: Optional[FuzzyScorer] = None,
) -> list[FileSearchResult]:
    """
    Rank files under ``root`` against ``query``.

    Args:
        cache: Index cache to build or reuse the root's index
        root: Absolute directory to search
        query: Free text; whitespace separates terms that must all match
        options: Index walk options
        max_results: Maximum results returned
        extensions: Restrict files to these extensions (with or without dot)
        max_depth: Skip entries nested deeper than this (0 keeps only direct children)
        exclude: Glob patterns applied to the indexed entries
    """
    options = options or IndexOptions()
    scorer = scorer or FuzzyScorer()
    index = await cache.get_or_build(root, options)
    wanted = {e.lower().lstrip(".") for e in extensions}

    candidates = [
        entry
        for entry in index.entries
        if (options.include_directories or not entry.is_directory)
        and (not wanted or entry.is_directory or entry.extension in wanted)
        and (max_depth is None or entry.depth <= max_depth)
        and not (exclude and should_exclude(entry.relative_path, exclude))
    ]
    ranked = scorer.rank(candidates, query)
    return [
        FileSearchResult(
            absolute_path=os.path.join(index.root, *s.entry.relative_path.split("/")),
            relative_path=s.entry.relative_path,
            file_name=s.entry.file_name,
            extension=s.entry.extension,
            is_directory=s.entry.is_directory,
            score=s.score,
            match_indices=s.indices,
        )
        for s in ranked[:max_results]
    ]


@dataclass(frozen=True)
class AutoResolved:
    path: str
    kind: str = "resolved"


@dataclass(frozen=True)
class AutoAmbiguous:
    candidates: list[str]
    kind: str = "ambiguous"


@dataclass(frozen=True)
class AutoNotFound:
    kind: str = "not_found"


AutoResolveResult = Union[AutoResolved, AutoAmbiguous, AutoNotFound]


async def try_auto_resolve(
    cache: FileIndexCache,
    root: str,
    name: str,
    options: Optional[IndexOptions] = None,
) -> AutoResolveResult:
    """
    Find files under ``root`` whose name equals the basename of ``name``.

    Comparison is case-insensitive and directories are ignored. Returns
    the single match, every candidate when there are several, or
    ``AutoNotFound``.
    """
    file_name = name.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1].lower()
    if not file_name:
        return AutoNotFound()
    index = await cache.get_or_build(root, options or IndexOptions())
    matches = [
        entry.relative_path
        for entry in index.entries
        if not entry.is_directory and entry.name_lower == file_name
    ]
    if not matches:
        return AutoNotFound()
    if len(matches) == 1:
        logger.debug(f"Auto-resolved {name} to {matches[0]}")
        return AutoResolved(path=matches[0])
    return AutoAmbiguous(candidates=matches)
