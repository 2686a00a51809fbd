"""
Read pipeline: file content, directory listings and the mount listing.
"""

import asyncio
import logging
import os
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from mountfs.filesystem.checksum import checksum
from mountfs.filesystem.config import FileSystemAccessConfig
from mountfs.filesystem.exceptions import (
    AmbiguityError,
    FileSizeLimitExceededError,
    ModeMismatchError,
    NotFoundError,
    NotTextError,
)
from mountfs.filesystem.filetypes import SNIFF_BYTES, is_text_file, matches_glob, matches_type, should_exclude
from mountfs.filesystem.fuzzy import AutoAmbiguous, AutoResolved, try_auto_resolve
from mountfs.filesystem.ignore import create_ignore_matcher
from mountfs.filesystem.index import FileIndexCache, config_index_options, is_within
from mountfs.filesystem.lines import add_line_numbers, count_lines, extract_lines, parse_line_range
from mountfs.filesystem.paths import PathResolver, ResolvedPath, is_root_path
from mountfs.filesystem.results import DirectoryListing, EntryKind, FileContent, LineSpan, ListingStats, TreeEntry
from mountfs.filesystem.symlinks import SymlinkValidator, resolve_safely

logger = logging.getLogger(__name__)

MAX_LISTING_ENTRIES = 10_000
MAX_CANDIDATES_SHOWN = 5

READ_MODES = ("auto", "tree", "list", "content")


@dataclass
class ListOptions:
    depth: int = 1
    limit: int = 100
    offset: int = 0
    details: bool = False
    types: list[str] = field(default_factory=list)
    glob: Optional[str] = None
    exclude: list[str] = field(default_factory=list)
    respect_ignore: bool = True
    include_hidden: bool = False
    include_files: bool = True


@dataclass(frozen=True)
class TextFile:
    """Raw bytes of a text file with their decoded text and checksum."""

    data: bytes
    text: str
    checksum: str


def load_text_file(absolute_path: str, max_size: int, display_path: Optional[str] = None) -> TextFile:
    """
    Read a file that must be text and within ``max_size`` bytes.

    Raises:
        NotFoundError: If the file does not exist
        ModeMismatchError: If the path is a directory
        FileSizeLimitExceededError: If the file is larger than ``max_size``
        NotTextError: If the content is binary or not UTF-8
    """
    shown = display_path or absolute_path
    if os.path.isdir(absolute_path):
        raise ModeMismatchError(f"Path is a directory: {shown}", path=shown)
    try:
        size = os.path.getsize(absolute_path)
    except FileNotFoundError:
        raise NotFoundError(shown, "File does not exist")
    if size > max_size:
        logger.warning(f"File too large: {shown} ({size} bytes > {max_size} bytes)")
        raise FileSizeLimitExceededError(shown, size, max_size)

    with open(absolute_path, "rb") as f:
        data = f.read()
    if not is_text_file(absolute_path, data[:SNIFF_BYTES]):
        raise NotTextError(shown)
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        raise NotTextError(shown)
    return TextFile(data=data, text=text, checksum=checksum(data))


def format_relative_time(timestamp: float, now: Optional[float] = None) -> str:
    now = datetime.now().timestamp() if now is None else now
    seconds = now - timestamp
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return datetime.fromtimestamp(timestamp).date().isoformat()


def _child_count(path: str) -> int:
    try:
        with os.scandir(path) as it:
            return sum(1 for _ in it)
    except OSError:
        return 0


def _walk_listing(
    absolute_path: str,
    virtual_base: str,
    options: ListOptions,
    mount_root: Optional[str] = None,
) -> tuple[list[TreeEntry], int, bool]:
    """
    Breadth-first listing. Returns the page of entries, the total seen and whether the cap was hit.

    Symlinks whose target lies outside ``mount_root`` are left out.
    """
    real_root = os.path.realpath(mount_root or absolute_path)
    matcher = create_ignore_matcher(
        absolute_path,
        respect_ignore=options.respect_ignore,
        include_hidden=options.include_hidden,
    )
    limit = max(1, options.limit)
    offset = max(0, options.offset)
    entries: list[TreeEntry] = []
    total = 0
    truncated = False

    def record(entry: TreeEntry) -> None:
        nonlocal total
        total += 1
        if total > offset and len(entries) < limit:
            entries.append(entry)

    worklist = deque([(absolute_path, "", 1)])
    while worklist:
        directory, relative_dir, depth = worklist.popleft()
        try:
            names = sorted(os.listdir(directory))
        except OSError:
            continue
        for name in names:
            if total >= MAX_LISTING_ENTRIES:
                truncated = True
                break
            relative = f"{relative_dir}/{name}" if relative_dir else name
            item = os.path.join(directory, name)
            if os.path.islink(item) and not is_within(os.path.realpath(item), real_root):
                continue
            is_dir = os.path.isdir(item)
            if matcher.is_ignored(relative, is_dir=is_dir):
                continue
            if options.exclude and should_exclude(relative, options.exclude):
                continue
            virtual = f"{virtual_base}/{relative}" if virtual_base else relative
            try:
                stat = os.stat(item)
            except OSError:
                continue
            if is_dir:
                if not options.glob or matches_glob(relative, options.glob):
                    record(
                        TreeEntry(
                            path=virtual,
                            kind=EntryKind.DIRECTORY,
                            children=_child_count(item),
                            modified=format_relative_time(stat.st_mtime) if options.details else None,
                        )
                    )
                if depth < options.depth and not os.path.islink(item):
                    worklist.append((item, relative, depth + 1))
            elif options.include_files:
                if options.types and not matches_type(name, options.types):
                    continue
                if options.glob and not matches_glob(relative, options.glob):
                    continue
                record(
                    TreeEntry(
                        path=virtual,
                        kind=EntryKind.FILE,
                        size=stat.st_size if options.details else None,
                        modified=format_relative_time(stat.st_mtime) if options.details else None,
                    )
                )
        if truncated:
            break
    return entries, total, truncated


class MountedFileReader:
    """
    Read files and list directories through virtual paths.

    Reading ``.`` with several mounts lists the mounts; with a single mount
    it lists that mount's contents directly. Missing files are looked up
    by name in the mount's index and read transparently when the name is
    unique.

    Usage:
        reader = MountedFileReader(config, resolver, cache)
        content = await reader.read("vault/notes/todo.md", lines="1-20")
        listing = await reader.read("vault", mode="tree", depth=2)
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

    def _list_options(self, mode: str, **kwargs) -> ListOptions:
        options = ListOptions(
            include_hidden=self.config.include_hidden,
            respect_ignore=self.config.respect_ignore,
        )
        for key, value in kwargs.items():
            if value is not None:
                setattr(options, key, value)
        options.include_files = mode != "tree"
        return options

    async def read(
        self,
        path: str,
        mode: str = "auto",
        *,
        lines: Optional[str] = None,
        depth: Optional[int] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        details: bool = False,
        types: Optional[list[str]] = None,
        glob: Optional[str] = None,
        exclude: Optional[list[str]] = None,
        respect_ignore: Optional[bool] = None,
    ) -> Union[FileContent, DirectoryListing]:
        """
        Read a file or list a directory.

        Args:
            path: Virtual path, or ``.`` for the root
            mode: ``auto`` (by entry type), ``tree`` (directories only),
                ``list`` (files and directories) or ``content`` (file text)
            lines: Line range ``"N"`` or ``"N-M"`` for file reads

        Raises:
            PathError: If the path is outside the mounts or escapes via symlink
            NotFoundError: If nothing exists at the path and auto-resolve fails
            AmbiguityError: If auto-resolve finds several files with the name
            ModeMismatchError: If ``mode`` does not fit the entry type
            RangeError, NotTextError, FileSizeLimitExceededError: On file reads
        """
        if mode not in READ_MODES:
            raise ValueError(f"Unknown read mode: {mode}")
        options = self._list_options(
            mode,
            depth=depth,
            limit=limit,
            offset=offset,
            details=details,
            types=types,
            glob=glob,
            exclude=exclude,
            respect_ignore=respect_ignore,
        )

        if is_root_path(path):
            if mode == "content":
                raise ModeMismatchError(
                    "Root path is a directory",
                    path=".",
                    hint="Use mode 'list' or 'tree' for directory exploration.",
                )
            return await self.list_root(options)

        resolved = resolve_safely(self.resolver, path, self.validator)

        if not os.path.exists(resolved.absolute_path):
            resolved = await self._auto_resolve(resolved)
            if mode not in ("auto", "content"):
                raise ModeMismatchError(
                    f"Path {path!r} auto-resolved to file {resolved.virtual_path!r}",
                    path=resolved.virtual_path,
                    hint="This path points to a file. Use mode 'content' to read it.",
                )
            content = await self.read_file(resolved, lines)
            content.resolved_from = path
            content.hint = f"Auto-resolved {path!r} to {resolved.virtual_path!r}. " + content.hint
            return content

        if os.path.isdir(resolved.absolute_path):
            if mode == "content":
                raise ModeMismatchError(
                    "Directory path cannot be read as file content",
                    path=resolved.virtual_path,
                    hint="Use mode 'list' or 'tree' for directory exploration.",
                )
            return await self.list_directory(resolved, options)

        if mode in ("tree", "list"):
            raise ModeMismatchError(
                "File path cannot be listed as a directory",
                path=resolved.virtual_path,
                hint="Use mode 'content' (or omit mode) to read files.",
            )
        return await self.read_file(resolved, lines)

    async def _auto_resolve(self, resolved: ResolvedPath) -> ResolvedPath:
        outcome = await try_auto_resolve(
            self.cache,
            resolved.mount.absolute_path,
            resolved.relative_path,
            config_index_options(self.config),
        )
        prefix = resolved.mount.name
        if isinstance(outcome, AutoResolved):
            logger.info(f"Auto-resolved {resolved.virtual_path} to {prefix}/{outcome.path}")
            return resolve_safely(self.resolver, f"{prefix}/{outcome.path}", self.validator)
        if isinstance(outcome, AutoAmbiguous):
            candidates = [f"{prefix}/{c}" for c in outcome.candidates]
            shown = "\n".join(f"  - {c}" for c in candidates[:MAX_CANDIDATES_SHOWN])
            more = len(candidates) - MAX_CANDIDATES_SHOWN
            if more > 0:
                shown += f"\n  ... and {more} more"
            error = AmbiguityError(
                f"Multiple files match {os.path.basename(resolved.relative_path)!r}",
                candidates,
                path=resolved.virtual_path,
            )
            error.hint = f"Found {len(candidates)} files with this name. Did you mean:\n{shown}"
            raise error
        raise NotFoundError(
            resolved.virtual_path,
            "Path does not exist",
            hint="Use fs_read on the parent directory to see what exists, or fs_search to locate files.",
        )

    async def read_file(self, resolved: ResolvedPath, lines: Optional[str] = None) -> FileContent:
        """
        Read a text file with line numbers.

        Without ``lines`` only the first ``preview_lines`` lines are shown.
        The checksum always covers the whole file as read.
        """
        loaded = await asyncio.to_thread(
            load_text_file,
            resolved.absolute_path,
            self.config.max_file_size_bytes,
            resolved.virtual_path,
        )
        content = loaded.text
        total_lines = count_lines(content)
        span: Optional[LineSpan] = None
        truncated = False

        if lines:
            line_range = parse_line_range(lines)
            extracted = extract_lines(content, line_range.start, line_range.end)
            text = add_line_numbers(extracted.text, extracted.start)
            span = LineSpan(start=extracted.start, end=extracted.end)
        elif total_lines > self.config.preview_lines:
            extracted = extract_lines(content, 1, self.config.preview_lines)
            text = add_line_numbers(extracted.text)
            span = LineSpan(start=1, end=extracted.end)
            truncated = True
        else:
            text = add_line_numbers(content)

        if truncated:
            hint = (
                f"Large file: {total_lines} lines, showing 1-{span.end}. "
                f"Use lines='{span.end + 1}-{span.end + self.config.preview_lines}' to read more, "
                f"or fs_search to find specific content. Checksum: {loaded.checksum}"
            )
        else:
            hint = f"Checksum: {loaded.checksum}. Pass it to fs_write to edit this file."
        logger.debug(f"Read {resolved.virtual_path} ({len(loaded.data)} bytes)")
        return FileContent(
            path=resolved.virtual_path,
            text=text,
            checksum=loaded.checksum,
            total_lines=total_lines,
            range=span,
            truncated=truncated,
            hint=hint,
        )

    async def list_directory(self, resolved: ResolvedPath, options: ListOptions) -> DirectoryListing:
        entries, total, truncated = await asyncio.to_thread(
            _walk_listing, resolved.absolute_path, resolved.virtual_path, options, resolved.mount.absolute_path
        )
        return self._listing(resolved.virtual_path, entries, total, truncated, options)

    async def list_root(self, options: ListOptions) -> DirectoryListing:
        """List the mounts, or the single mount's contents."""
        mounts = self.resolver.mounts
        if len(mounts) == 1:
            mount = mounts[0]
            entries, total, truncated = await asyncio.to_thread(
                _walk_listing, mount.absolute_path, mount.name, options
            )
            listing = self._listing(".", entries, total, truncated, options)
            if entries and not listing.stats.has_more:
                listing.hint = f"Showing contents of {mount.name!r}. Use fs_read on any path to explore deeper."
            return listing

        all_entries = []
        for mount in mounts:
            try:
                mtime = os.stat(mount.absolute_path).st_mtime
            except OSError:
                mtime = None
            all_entries.append(
                TreeEntry(
                    path=mount.name,
                    kind=EntryKind.DIRECTORY,
                    children=_child_count(mount.absolute_path),
                    modified=format_relative_time(mtime) if options.details and mtime else None,
                )
            )
        start = max(0, options.offset)
        page = all_entries[start:start + max(1, options.limit)]
        listing = self._listing(".", page, len(all_entries), False, options)
        listing.summary = f"{len(mounts)} mount point(s): {', '.join(m.name for m in mounts)}"
        listing.hint = "Use fs_read('<mount>') to explore a mount, or fs_search to locate files."
        return listing

    def _listing(
        self,
        path: str,
        entries: list[TreeEntry],
        total: int,
        truncated: bool,
        options: ListOptions,
    ) -> DirectoryListing:
        offset = max(0, options.offset)
        stats = ListingStats(
            returned=len(entries),
            total=total,
            offset=offset,
            limit=max(1, options.limit),
            has_more=truncated or total > offset + len(entries),
            truncated=truncated,
        )
        listing = DirectoryListing(path=path, entries=entries, stats=stats)
        summary = f"{len(entries)} items ({listing.file_count} files, {listing.directory_count} directories)"
        if stats.has_more:
            summary += f", showing {stats.returned} of {stats.total}"
        listing.summary = summary
        if not entries:
            listing.hint = "Directory is empty or all files are ignored."
        elif stats.has_more:
            listing.hint = (
                f"Showing {stats.returned} of {stats.total} items. "
                f"Use offset={offset + stats.returned} to see more, or mode 'tree' for an overview."
            )
        else:
            listing.hint = "Use fs_read on a file to see its content, or on a subdirectory to explore deeper."
        return listing
