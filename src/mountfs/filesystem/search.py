"""
Filename and content search across mounts.
"""

import asyncio
import logging
import os
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Union

from mountfs.filesystem.config import FileSystemAccessConfig
from mountfs.filesystem.exceptions import NotFoundError, OperationCancelledError
from mountfs.filesystem.filetypes import (
    SNIFF_BYTES,
    is_text_file,
    matches_glob,
    matches_type,
    should_exclude,
)
from mountfs.filesystem.fuzzy import search_files
from mountfs.filesystem.ignore import create_ignore_matcher
from mountfs.filesystem.index import FileIndexCache, config_index_options, is_within, scan_directory
from mountfs.filesystem.paths import PathResolver, is_root_path
from mountfs.filesystem.patterns import (
    MatchCluster,
    PatternMode,
    cluster_matches,
    compile_pattern,
    compile_preset,
    find_matches,
)
from mountfs.filesystem.symlinks import SymlinkValidator, resolve_safely

logger = logging.getLogger(__name__)


@dataclass
class SearchOptions:
    """Filters shared by filename and content search."""

    depth: int = 5
    types: list[str] = field(default_factory=list)
    glob: Optional[str] = None
    exclude: list[str] = field(default_factory=list)
    respect_ignore: bool = True
    include_hidden: bool = False
    max_results: int = 100


@dataclass(frozen=True)
class FileMatch:
    name: str
    path: str
    score: int = 0


@dataclass(frozen=True)
class ContentMatch:
    """First match on a line; ``text`` is the whole stripped line."""

    path: str
    line: int
    column: int
    text: str


@dataclass(frozen=True)
class ContentCluster:
    path: str
    cluster: MatchCluster


@dataclass
class SearchReport:
    query: str
    files: list[FileMatch] = field(default_factory=list)
    content: list[ContentMatch] = field(default_factory=list)
    clusters: list[ContentCluster] = field(default_factory=list)
    files_scanned: int = 0
    truncated: bool = False

    @property
    def total_count(self) -> int:
        return len(self.files) + len(self.content)


def _join_virtual(base: str, relative: str) -> str:
    if not base or base == ".":
        return relative
    if not relative or relative == ".":
        return base
    return f"{base}/{relative}"


def _read_text(path: str, max_size: int) -> Optional[str]:
    """Read a file as text; None for binary, oversized or unreadable files."""
    try:
        if os.path.getsize(path) > max_size:
            return None
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        logger.debug(f"Skipping unreadable file {path}: {e}")
        return None
    if not is_text_file(path, data[:SNIFF_BYTES]):
        return None
    return data.decode("utf-8", errors="replace")


class MountedSearchTools:
    """
    Search files by name (fuzzy, via the index) and by content (pattern).

    Content search reads files in batches of ``search_concurrency``; the
    optional cancel event is checked between batches.

    Usage:
        search = MountedSearchTools(config, resolver, cache)
        report = await search.search("vault", "TODO", target="content")
    """

    def __init__(
        self,
        config: FileSystemAccessConfig,
        resolver: PathResolver,
        cache: FileIndexCache,
        validator: Optional[SymlinkValidator] = None,
    ):
        self.config = config
        self.resolver = resolver
        self.cache = cache
        self.validator = validator or SymlinkValidator()

    def _search_roots(self, path: str) -> list[tuple[str, str]]:
        """``(absolute, virtual)`` pairs to search for a virtual path."""
        if is_root_path(path):
            return [(m.absolute_path, m.name) for m in self.resolver.mounts]
        resolved = resolve_safely(self.resolver, path, self.validator)
        if not os.path.exists(resolved.absolute_path):
            raise NotFoundError(
                resolved.virtual_path,
                "Path does not exist",
                hint="Use fs_read on the parent directory to see what exists.",
            )
        return [(resolved.absolute_path, resolved.virtual_path)]

    async def search(
        self,
        path: str,
        query: str,
        target: str = "all",
        pattern_mode: Union[PatternMode, str] = PatternMode.LITERAL,
        *,
        preset: Optional[str] = None,
        case_insensitive: bool = True,
        whole_word: bool = False,
        multiline: bool = False,
        cluster: bool = False,
        options: Optional[SearchOptions] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SearchReport:
        """
        Search under ``path`` ("." for every mount).

        Args:
            path: Virtual directory to search
            query: Filename query and/or content pattern
            target: ``all``, ``filename`` or ``content``
            pattern_mode: How ``query`` is compiled for content search
            preset: Named content pattern used instead of ``query``
            cluster: Also group nearby content matches per file

        Raises:
            PathError: If ``path`` is outside the mounts
            NotFoundError: If ``path`` does not exist
            PatternError: If the content pattern is unsafe or invalid
            OperationCancelledError: If ``cancel_event`` is set
        """
        if target not in ("all", "filename", "content"):
            raise ValueError(f"Unknown search target: {target}")
        options = options or SearchOptions(
            include_hidden=self.config.include_hidden,
            respect_ignore=self.config.respect_ignore,
            max_results=self.config.max_search_results,
        )

        matcher = None
        if target in ("all", "content"):
            # compile first so an unsafe pattern fails before any I/O
            if preset:
                matcher = compile_preset(preset)
            else:
                matcher = compile_pattern(
                    query,
                    pattern_mode,
                    multiline=multiline,
                    whole_word=whole_word,
                    case_insensitive=case_insensitive,
                )

        roots = self._search_roots(path)
        report = SearchReport(query=query or (preset or ""))

        if target in ("all", "filename") and query:
            for absolute, virtual in roots:
                remaining = options.max_results - len(report.files)
                if remaining <= 0:
                    report.truncated = True
                    break
                report.files.extend(await self.search_filenames(absolute, virtual, query, options, remaining))

        if matcher is not None:
            for absolute, virtual in roots:
                remaining = options.max_results - len(report.content)
                if remaining <= 0:
                    report.truncated = True
                    break
                await self.search_content(
                    absolute, virtual, matcher, options, report,
                    max_results=remaining, cluster=cluster, cancel_event=cancel_event,
                )

        report.content.sort(key=lambda m: (m.path, m.line))
        report.clusters.sort(key=lambda c: (c.path, c.cluster.start_line))
        if len(report.files) >= options.max_results or len(report.content) >= options.max_results:
            report.truncated = True
        logger.info(
            f"Search {query!r} under {path}: {len(report.files)} files, "
            f"{len(report.content)} content matches"
        )
        return report

    async def search_filenames(
        self,
        root: str,
        virtual_base: str,
        query: str,
        options: SearchOptions,
        max_results: int,
    ) -> list[FileMatch]:
        index_options = config_index_options(
            self.config,
            include_hidden=options.include_hidden,
            respect_ignore=options.respect_ignore,
        )
        # search depth counts entries directly under root as 1
        found = await search_files(
            self.cache,
            root,
            query,
            index_options,
            max_results=self.config.max_search_results,
            max_depth=options.depth - 1,
            exclude=options.exclude,
        )
        matches = []
        for item in found:
            if options.types and not matches_type(item.relative_path, options.types):
                continue
            if options.glob and not matches_glob(item.relative_path, options.glob):
                continue
            matches.append(
                FileMatch(
                    name=item.file_name,
                    path=_join_virtual(virtual_base, item.relative_path),
                    score=item.score,
                )
            )
            if len(matches) >= max_results:
                break
        return matches

    async def collect_files(
        self, root: str, options: SearchOptions
    ) -> tuple[list[tuple[str, str]], bool]:
        """
        Walk ``root`` and list candidate files as ``(absolute, relative)``.

        Returns the files and whether the ``max_files_scanned`` cap was hit.
        """
        matcher = create_ignore_matcher(
            root,
            respect_ignore=options.respect_ignore,
            include_hidden=options.include_hidden,
        )
        real_root = os.path.realpath(root)
        limit = self.config.max_files_scanned
        files: list[tuple[str, str]] = []
        worklist = deque([(root, "", 1)])

        while worklist:
            directory, relative_dir, depth = worklist.popleft()
            for name, is_dir, is_symlink in await asyncio.to_thread(scan_directory, directory):
                relative = f"{relative_dir}/{name}" if relative_dir else name
                if matcher.is_ignored(relative, is_dir=is_dir):
                    continue
                if options.exclude and should_exclude(relative, options.exclude):
                    continue
                absolute = os.path.join(directory, name)
                if is_symlink and not is_within(os.path.realpath(absolute), real_root):
                    continue
                if is_dir:
                    if depth < options.depth:
                        worklist.append((absolute, relative, depth + 1))
                    continue
                if options.types and not matches_type(name, options.types):
                    continue
                if options.glob and not matches_glob(relative, options.glob):
                    continue
                files.append((absolute, relative))
                if len(files) >= limit:
                    logger.warning(f"Reached max files scanned ({limit}) under {root}")
                    return files, True
        return files, False

    async def search_content(
        self,
        root: str,
        virtual_base: str,
        matcher: re.Pattern,
        options: SearchOptions,
        report: SearchReport,
        *,
        max_results: int,
        cluster: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Search file contents under ``root`` and append results to ``report``."""
        files, capped = await self.collect_files(root, options)
        if capped:
            report.truncated = True

        batch_size = self.config.search_concurrency
        max_size = self.config.max_file_size_bytes
        found: list[ContentMatch] = []

        for start in range(0, len(files), batch_size):
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelledError(f"Search cancelled under {virtual_base}", path=virtual_base)
            if len(found) >= max_results:
                report.truncated = True
                break
            batch = files[start:start + batch_size]
            texts = await asyncio.gather(
                *(asyncio.to_thread(_read_text, absolute, max_size) for absolute, _ in batch)
            )
            report.files_scanned += len(batch)

            for (_, relative), text in zip(batch, texts):
                if text is None:
                    continue
                virtual = _join_virtual(virtual_base, relative)
                matches = find_matches(text, matcher, max_matches=max_results)
                if not matches:
                    continue
                lines = text.split("\n")
                seen: set[int] = set()
                for m in matches:
                    if m.line in seen:
                        continue
                    seen.add(m.line)
                    found.append(ContentMatch(virtual, m.line, m.column, lines[m.line - 1].strip()))
                if cluster:
                    report.clusters.extend(
                        ContentCluster(virtual, c) for c in cluster_matches(matches, text)
                    )

        found.sort(key=lambda m: (m.path, m.line))
        if len(found) > max_results:
            report.truncated = True
        report.content.extend(found[:max_results])
