"""
Cached file index per root directory.

Each root moves through ``absent -> fresh -> stale``: a build produces a
fresh snapshot, age beyond the TTL makes it stale, and the next access
rebuilds it. ``invalidate`` drops it back to absent.
"""

import asyncio
import logging
import os
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional

from mountfs.filesystem.config import FileSystemAccessConfig
from mountfs.filesystem.exceptions import OperationCancelledError
from mountfs.filesystem.filetypes import should_exclude
from mountfs.filesystem.ignore import ALWAYS_EXCLUDE, create_ignore_matcher

logger = logging.getLogger(__name__)

DEFAULT_INDEX_TTL_SECONDS = 30.0
DEFAULT_MAX_CACHED_ROOTS = 5
DEFAULT_MAX_DEPTH = 10


class IndexState(str, Enum):
    ABSENT = "absent"
    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True)
class IndexOptions:
    """Walk options. An index built with different options is not reused."""

    max_depth: int = DEFAULT_MAX_DEPTH
    include_hidden: bool = False
    include_directories: bool = False
    respect_ignore: bool = True
    exclude: tuple[str, ...] = ()


def config_index_options(
    config: FileSystemAccessConfig,
    *,
    include_hidden: Optional[bool] = None,
    respect_ignore: Optional[bool] = None,
) -> IndexOptions:
    """
    Index options shared by filename search and auto-resolve.

    Callers filter depth and excludes on the entries afterwards, so one
    index per root serves both.
    """
    return IndexOptions(
        max_depth=config.index_max_depth,
        include_hidden=config.include_hidden if include_hidden is None else include_hidden,
        respect_ignore=config.respect_ignore if respect_ignore is None else respect_ignore,
    )


@dataclass(frozen=True)
class IndexedFile:
    relative_path: str
    file_name: str
    path_lower: str
    name_lower: str
    depth: int
    extension: str
    is_directory: bool

    @classmethod
    def create(cls, relative_path: str, is_directory: bool) -> "IndexedFile":
        name = relative_path.rsplit("/", 1)[-1]
        extension = "" if is_directory else os.path.splitext(name)[1][1:].lower()
        return cls(
            relative_path=relative_path,
            file_name=name,
            path_lower=relative_path.lower(),
            name_lower=name.lower(),
            depth=relative_path.count("/"),
            extension=extension,
            is_directory=is_directory,
        )


@dataclass(frozen=True)
class FileIndex:
    """Immutable snapshot of a root's files, replaced wholesale on rebuild."""

    root: str
    entries: tuple[IndexedFile, ...]
    built_at: float
    options: IndexOptions = field(default_factory=IndexOptions)

    @property
    def file_count(self) -> int:
        return len(self.entries)


def scan_directory(path: str) -> list[tuple[str, bool, bool]]:
    """List ``(name, is_dir, is_symlink)`` sorted by name; unreadable dirs are empty."""
    try:
        with os.scandir(path) as it:
            items = []
            for entry in it:
                try:
                    is_symlink = entry.is_symlink()
                    is_dir = entry.is_dir(follow_symlinks=False)
                    if not is_dir and not entry.is_file():
                        continue
                except OSError:
                    continue
                items.append((entry.name, is_dir, is_symlink))
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {path}: {e}")
        return []
    items.sort(key=lambda item: item[0])
    return items


def is_within(path: str, root: str) -> bool:
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


async def build_index(
    root: str,
    options: IndexOptions,
    *,
    always_exclude: Iterable[str] = ALWAYS_EXCLUDE,
    clock: Callable[[], float] = time.monotonic,
    cancel_event: Optional[asyncio.Event] = None,
) -> FileIndex:
    """
    Walk ``root`` breadth-first and return a snapshot.

    Symlinked directories are not descended into, and symlinked files
    whose target lies outside ``root`` are skipped.

    Raises:
        OperationCancelledError: If ``cancel_event`` is set during the walk.
    """
    matcher = create_ignore_matcher(
        root,
        respect_ignore=options.respect_ignore,
        include_hidden=options.include_hidden,
        always_exclude=always_exclude,
    )
    real_root = os.path.realpath(root)
    entries: list[IndexedFile] = []
    worklist: deque[tuple[str, str, int]] = deque([(root, "", 0)])

    while worklist:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(f"Index build cancelled: {root}", path=root)
        directory, relative_dir, depth = worklist.popleft()
        if depth > options.max_depth:
            continue

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
                if options.include_directories:
                    entries.append(IndexedFile.create(relative, is_directory=True))
                worklist.append((absolute, relative, depth + 1))
            else:
                entries.append(IndexedFile.create(relative, is_directory=False))

    logger.debug(f"Indexed {len(entries)} entries under {root}")
    return FileIndex(root=root, entries=tuple(entries), built_at=clock(), options=options)


class FileIndexCache:
    """
    Per-root index cache with a TTL and a bounded number of roots.

    When full, the entry with the oldest ``built_at`` is evicted: builds
    are the expensive event, lookups are not tracked.

    Concurrent callers on the same stale root may each rebuild it; the
    last build to finish wins.

    Usage:
        cache = FileIndexCache(ttl_seconds=30, max_roots=5)
        index = await cache.get_or_build("/data/vault")
        cache.invalidate("/data/vault")
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_INDEX_TTL_SECONDS,
        max_roots: int = DEFAULT_MAX_CACHED_ROOTS,
        *,
        clock: Callable[[], float] = time.monotonic,
        always_exclude: Iterable[str] = ALWAYS_EXCLUDE,
    ):
        if max_roots < 1:
            raise ValueError("max_roots must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_roots = max_roots
        self.always_exclude = frozenset(always_exclude)
        self._clock = clock
        self._indexes: dict[str, FileIndex] = {}

    @staticmethod
    def _canonical(root: str) -> str:
        return os.path.abspath(root)

    def __len__(self) -> int:
        return len(self._indexes)

    def __contains__(self, root: str) -> bool:
        return self._canonical(root) in self._indexes

    def _is_fresh(self, index: FileIndex) -> bool:
        return self._clock() - index.built_at <= self.ttl_seconds

    def state(self, root: str) -> IndexState:
        index = self._indexes.get(self._canonical(root))
        if index is None:
            return IndexState.ABSENT
        return IndexState.FRESH if self._is_fresh(index) else IndexState.STALE

    def get(self, root: str) -> Optional[FileIndex]:
        """Return the cached snapshot if fresh, without building."""
        index = self._indexes.get(self._canonical(root))
        if index is not None and self._is_fresh(index):
            return index
        return None

    async def get_or_build(
        self,
        root: str,
        options: Optional[IndexOptions] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> FileIndex:
        options = options or IndexOptions()
        canonical = self._canonical(root)
        cached = self.get(canonical)
        if cached is not None and cached.options == options:
            logger.debug(f"Index cache hit: {canonical}")
            return cached

        index = await build_index(
            canonical,
            options,
            always_exclude=self.always_exclude,
            clock=self._clock,
            cancel_event=cancel_event,
        )
        self._store(canonical, index)
        return index

    async def rebuild(
        self,
        root: str,
        options: Optional[IndexOptions] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> FileIndex:
        self.invalidate(root)
        return await self.get_or_build(root, options, cancel_event)

    def invalidate(self, root: str) -> None:
        self._indexes.pop(self._canonical(root), None)

    def clear(self) -> None:
        self._indexes.clear()

    def _store(self, canonical: str, index: FileIndex) -> None:
        self._indexes.pop(canonical, None)
        while len(self._indexes) >= self.max_roots:
            oldest = min(self._indexes, key=lambda key: self._indexes[key].built_at)
            logger.debug(f"Evicting index for {oldest}")
            del self._indexes[oldest]
        self._indexes[canonical] = index

    def invalidate_path(self, absolute_path: str) -> None:
        """Drop every cached root that contains ``absolute_path``."""
        target = self._canonical(absolute_path)
        for root in [r for r in self._indexes if is_within(target, r)]:
            del self._indexes[root]
