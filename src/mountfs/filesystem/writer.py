"""
Write pipeline for creating and editing files, plus structural operations.

Updates follow a fixed sequence: read current bytes, verify the caller's
checksum, locate the target lines (by range or unique pattern match),
splice, normalize the trailing newline, diff, then write unless dry-run.
"""

import asyncio
import logging
import os
import shutil
from datetime import datetime
from typing import Optional, Union

from mountfs.filesystem.checksum import checksum, require_checksum
from mountfs.filesystem.config import FileSystemAccessConfig
from mountfs.filesystem.diff import count_diff_lines, generate_diff
from mountfs.filesystem.exceptions import (
    AlreadyExistsError,
    AmbiguityError,
    FileAccessDeniedError,
    FileSizeLimitExceededError,
    FileSystemError,
    NotFoundError,
)
from mountfs.filesystem.index import FileIndexCache, is_within
from mountfs.filesystem.lines import (
    LineAction,
    LineRange,
    apply_line_edit,
    count_lines,
    ensure_trailing_newline,
    parse_line_range,
)
from mountfs.filesystem.paths import PathResolver, ResolvedPath, is_root_path
from mountfs.filesystem.patterns import (
    MultipleMatches,
    NoMatch,
    PatternMode,
    compile_pattern,
    find_unique_match,
    match_line_range,
)
from mountfs.filesystem.reader import load_text_file
from mountfs.filesystem.results import ManageResult, WriteResult
from mountfs.filesystem.symlinks import SymlinkValidator, resolve_safely

logger = logging.getLogger(__name__)

MANAGE_OPERATIONS = ("delete", "rename", "move", "copy", "mkdir", "stat")


def _write_text(path: str, content: str) -> None:
    with open(path, "wb") as f:
        f.write(content.encode("utf-8"))


class MountedFileWriter:
    """
    Create, edit and manage files through virtual paths.

    Usage:
        writer = MountedFileWriter(config, resolver, cache)
        content = await reader.read("vault/todo.md")
        result = await writer.update(
            "vault/todo.md",
            action="replace",
            lines="3",
            content="- [x] done",
            expected_checksum=content.checksum,
        )
    """

    def __init__(
        self,
        config: FileSystemAccessConfig,
        resolver: PathResolver,
        cache: Optional[FileIndexCache] = None,
        validator: Optional[SymlinkValidator] = None,
    ):
        self.config = config
        self.resolver = resolver
        self.cache = cache
        self.validator = validator or SymlinkValidator()

    def _require_write(self, path: str) -> None:
        if not self.config.allow_write:
            logger.warning(f"Write denied (writes disabled): {path}")
            raise FileAccessDeniedError(path, "Write operations are disabled")

    def _resolve(self, path: str) -> ResolvedPath:
        if is_root_path(path):
            raise FileSystemError(
                "The root path cannot be modified",
                path=".",
                code="INVALID_TARGET",
                hint="Use a path inside a mount, e.g. '<mount>/file.md'.",
            )
        return resolve_safely(self.resolver, path, self.validator)

    def _check_size(self, path: str, content: str) -> None:
        size = len(content.encode("utf-8"))
        if size > self.config.max_write_size_bytes:
            logger.warning(f"Content too large: {size} bytes > {self.config.max_write_size_bytes} bytes")
            raise FileSizeLimitExceededError(path, size, self.config.max_write_size_bytes)

    def _invalidate(self, absolute_path: str) -> None:
        if self.cache is not None:
            self.cache.invalidate_path(absolute_path)

    async def create(
        self,
        path: str,
        content: str,
        *,
        create_dirs: bool = True,
        dry_run: bool = False,
        ensure_newline: bool = True,
    ) -> WriteResult:
        """
        Create a new file.

        Raises:
            AlreadyExistsError: If anything exists at ``path``
            NotFoundError: If the parent is missing and ``create_dirs`` is False
            FileAccessDeniedError: If writes are disabled
        """
        self._require_write(path)
        resolved = self._resolve(path)
        if os.path.lexists(resolved.absolute_path):
            raise AlreadyExistsError(resolved.virtual_path)

        final = ensure_trailing_newline(content) if ensure_newline else content
        self._check_size(resolved.virtual_path, final)
        diff = generate_diff("", final, resolved.virtual_path)
        stats = count_diff_lines(diff)
        lines_affected = count_lines(final)

        if dry_run:
            return WriteResult(
                path=resolved.virtual_path,
                operation="create",
                dry_run=True,
                diff=diff,
                added=stats.added,
                removed=stats.removed,
                lines_affected=lines_affected,
                hint="Dry run: nothing was written. Run again with dry_run=false to create the file.",
            )

        parent = os.path.dirname(resolved.absolute_path)
        if not os.path.isdir(parent):
            if not create_dirs:
                raise NotFoundError(
                    resolved.virtual_path,
                    "Parent directory does not exist",
                    hint="Pass create_dirs=true to create missing parent directories.",
                )
            await asyncio.to_thread(os.makedirs, parent, exist_ok=True)
            logger.debug(f"Created parent directories for {resolved.virtual_path}")

        await asyncio.to_thread(_write_text, resolved.absolute_path, final)
        self._invalidate(resolved.absolute_path)
        new_checksum = checksum(final)
        logger.info(f"Created {resolved.virtual_path} ({len(final)} chars)")
        return WriteResult(
            path=resolved.virtual_path,
            operation="create",
            diff=diff,
            added=stats.added,
            removed=stats.removed,
            lines_affected=lines_affected,
            checksum=new_checksum,
            hint=f"File created. New checksum: {new_checksum}.",
        )

    def _target_range(
        self,
        resolved: ResolvedPath,
        content: str,
        lines: Optional[str],
        pattern: Optional[str],
        pattern_mode: Union[PatternMode, str],
        case_insensitive: bool,
        whole_word: bool,
        multiline: bool,
    ) -> LineRange:
        if lines:
            return parse_line_range(lines)
        if not pattern:
            raise FileSystemError(
                "No edit target given",
                path=resolved.virtual_path,
                code="NO_TARGET",
                hint="Pass lines='10-15' or a pattern that matches exactly once.",
            )
        matcher = compile_pattern(
            pattern,
            pattern_mode,
            multiline=multiline,
            whole_word=whole_word,
            case_insensitive=case_insensitive,
        )
        outcome = find_unique_match(content, matcher)
        if isinstance(outcome, NoMatch):
            raise NotFoundError(
                resolved.virtual_path,
                f"Pattern {pattern!r} not found",
                hint="Re-read the file or try pattern_mode 'fuzzy' to tolerate whitespace changes.",
            )
        if isinstance(outcome, MultipleMatches):
            error = AmbiguityError(
                f"Pattern {pattern!r} matches {outcome.count} times (lines {outcome.lines})",
                outcome.lines,
                path=resolved.virtual_path,
            )
            error.hint = "Make the pattern more specific, or target one occurrence with lines."
            raise error
        return match_line_range(outcome.match)

    async def update(
        self,
        path: str,
        *,
        action: Union[LineAction, str] = LineAction.REPLACE,
        content: str = "",
        lines: Optional[str] = None,
        pattern: Optional[str] = None,
        pattern_mode: Union[PatternMode, str] = PatternMode.LITERAL,
        case_insensitive: bool = False,
        whole_word: bool = False,
        multiline: bool = False,
        expected_checksum: Optional[str] = None,
        dry_run: bool = False,
        ensure_newline: bool = True,
    ) -> WriteResult:
        """
        Edit an existing file by line range or unique pattern match.

        Args:
            path: Virtual path of the file
            action: ``replace``, ``insert_before``, ``insert_after`` or ``delete_lines``
            content: New text for replace and insert actions
            lines: Target range ``"N"`` or ``"N-M"``
            pattern: Alternative target: the lines of its single match
            expected_checksum: Checksum from the caller's last read

        Returns:
            WriteResult with the diff. Dry runs carry no new checksum and
            leave the file untouched.

        Raises:
            ConcurrencyError: If the file changed since ``expected_checksum``
            RangeError: If the range is malformed or starts beyond the end
            AmbiguityError: If ``pattern`` matches more than once
            NotFoundError: If the file or the pattern is missing
        """
        self._require_write(path)
        action = LineAction(action)
        resolved = self._resolve(path)
        current = await asyncio.to_thread(
            load_text_file,
            resolved.absolute_path,
            self.config.max_file_size_bytes,
            resolved.virtual_path,
        )

        if expected_checksum:
            require_checksum(current.data, expected_checksum, resolved.virtual_path)

        target = self._target_range(
            resolved, current.text, lines, pattern, pattern_mode,
            case_insensitive, whole_word, multiline,
        )
        edit = apply_line_edit(current.text, target, action, content)
        final = ensure_trailing_newline(edit.content) if ensure_newline else edit.content
        self._check_size(resolved.virtual_path, final)

        diff = generate_diff(current.text, final, resolved.virtual_path)
        stats = count_diff_lines(diff)
        result = WriteResult(
            path=resolved.virtual_path,
            operation="update",
            dry_run=dry_run,
            diff=diff,
            added=stats.added,
            removed=stats.removed,
            lines_affected=edit.lines_affected,
        )
        if dry_run:
            result.hint = "Dry run: no changes applied. Review the diff, then run with dry_run=false."
            return result

        await asyncio.to_thread(_write_text, resolved.absolute_path, final)
        self._invalidate(resolved.absolute_path)
        result.checksum = checksum(final)
        result.hint = (
            f"{action.value.replace('_', ' ')}: {edit.lines_affected} line(s) at {edit.range}. "
            f"New checksum: {result.checksum}."
        )
        logger.info(f"Updated {resolved.virtual_path}: {action.value} {edit.range}")
        return result

    async def manage(
        self,
        operation: str,
        path: str,
        target: Optional[str] = None,
        *,
        recursive: bool = False,
        force: bool = False,
    ) -> ManageResult:
        """
        Run a structural operation: delete, rename, move, copy, mkdir or stat.

        Raises:
            FileAccessDeniedError: If the operation is disabled
            NotFoundError: If the source does not exist
            AlreadyExistsError: If the target exists and ``force`` is False
        """
        if operation not in MANAGE_OPERATIONS:
            raise FileSystemError(
                f"Unknown operation: {operation}",
                path=path,
                code="INVALID_OPERATION",
                hint=f"Valid operations: {', '.join(MANAGE_OPERATIONS)}",
            )
        if operation == "delete":
            if not self.config.allow_delete:
                logger.warning(f"Delete denied (deletes disabled): {path}")
                raise FileAccessDeniedError(path, "Delete operations are disabled")
        elif operation != "stat":
            self._require_write(path)

        source = self._resolve(path)
        if operation == "stat":
            return await asyncio.to_thread(self._stat, source)
        if operation == "mkdir":
            return await asyncio.to_thread(self._mkdir, source, recursive)
        if operation == "delete":
            return await asyncio.to_thread(self._delete, source, recursive)

        if not target:
            raise FileSystemError(
                "Target path is required",
                path=source.virtual_path,
                code="INVALID_TARGET",
                hint=f"Provide a target path for {operation}.",
            )
        destination = self._resolve(target)
        if operation == "rename" and destination.mount.name != source.mount.name:
            raise FileSystemError(
                "Rename cannot cross mounts",
                path=source.virtual_path,
                code="CROSS_MOUNT",
                hint="Use operation 'move' to move across mounts.",
            )
        return await asyncio.to_thread(self._transfer, operation, source, destination, recursive, force)

    def _require_exists(self, resolved: ResolvedPath) -> None:
        if not os.path.lexists(resolved.absolute_path):
            raise NotFoundError(
                resolved.virtual_path,
                "Path does not exist",
                hint="Use fs_read to locate the path or check the spelling.",
            )

    def _stat(self, resolved: ResolvedPath) -> ManageResult:
        self._require_exists(resolved)
        st = os.stat(resolved.absolute_path)
        return ManageResult(
            operation="stat",
            path=resolved.virtual_path,
            details={
                "size": st.st_size,
                "modified": datetime.fromtimestamp(st.st_mtime).isoformat(),
                "is_directory": os.path.isdir(resolved.absolute_path),
            },
        )

    def _mkdir(self, resolved: ResolvedPath, recursive: bool) -> ManageResult:
        if os.path.exists(resolved.absolute_path):
            if not recursive:
                raise AlreadyExistsError(resolved.virtual_path)
            return ManageResult(
                operation="mkdir",
                path=resolved.virtual_path,
                hint="Directory already exists; recursive=true treated as success.",
            )
        if recursive:
            os.makedirs(resolved.absolute_path)
        else:
            try:
                os.mkdir(resolved.absolute_path)
            except FileNotFoundError:
                raise NotFoundError(
                    resolved.virtual_path,
                    "Parent directory does not exist",
                    hint="Set recursive=true to create parent directories.",
                )
        self._invalidate(resolved.absolute_path)
        logger.info(f"Created directory {resolved.virtual_path}")
        return ManageResult(operation="mkdir", path=resolved.virtual_path, hint="Directory created.")

    def _delete(self, resolved: ResolvedPath, recursive: bool) -> ManageResult:
        self._require_exists(resolved)
        if resolved.is_mount_root:
            raise FileSystemError(
                "A mount root cannot be deleted",
                path=resolved.virtual_path,
                code="INVALID_TARGET",
                hint="Delete entries inside the mount instead.",
            )
        self._remove(resolved, recursive)
        self._invalidate(resolved.absolute_path)
        logger.info(f"Deleted {resolved.virtual_path}")
        return ManageResult(operation="delete", path=resolved.virtual_path, hint="Path deleted.")

    def _remove(self, resolved: ResolvedPath, recursive: bool) -> None:
        path = resolved.absolute_path
        if os.path.isdir(path) and not os.path.islink(path):
            if not recursive:
                raise FileSystemError(
                    "Directory delete requires recursive=true",
                    path=resolved.virtual_path,
                    code="DIRECTORY_NOT_EMPTY",
                    hint="Set recursive=true to delete directories and their contents.",
                )
            shutil.rmtree(path)
        else:
            os.remove(path)

    def _transfer(
        self,
        operation: str,
        source: ResolvedPath,
        destination: ResolvedPath,
        recursive: bool,
        force: bool,
    ) -> ManageResult:
        self._require_exists(source)
        if source.is_mount_root and operation != "copy":
            raise FileSystemError(
                f"A mount root cannot be {operation}d",
                path=source.virtual_path,
                code="INVALID_TARGET",
                hint="Operate on entries inside the mount instead.",
            )
        if destination.is_mount_root:
            raise FileSystemError(
                "A mount root cannot be overwritten",
                path=destination.virtual_path,
                code="INVALID_TARGET",
                hint="Choose a target path inside the mount.",
            )
        real_source = os.path.realpath(source.absolute_path)
        real_target = os.path.realpath(destination.absolute_path)
        if is_within(real_target, real_source) or is_within(real_source, real_target):
            raise FileSystemError(
                "Target overlaps the source path",
                path=source.virtual_path,
                code="INVALID_TARGET",
                hint="Choose a target that is neither the source nor one of its parents or children.",
            )
        is_dir = os.path.isdir(source.absolute_path)
        if is_dir and operation == "copy" and not recursive:
            raise FileSystemError(
                "Directory copy requires recursive=true",
                path=source.virtual_path,
                code="DIRECTORY_NOT_EMPTY",
                hint="Set recursive=true to copy directories and their contents.",
            )

        if os.path.lexists(destination.absolute_path):
            if not force:
                error = AlreadyExistsError(destination.virtual_path)
                error.hint = "Target already exists. Use force=true to overwrite."
                raise error
            self._remove(destination, recursive=True)

        parent = os.path.dirname(destination.absolute_path)
        if not os.path.isdir(parent):
            os.makedirs(parent)

        if operation == "copy":
            if is_dir:
                shutil.copytree(source.absolute_path, destination.absolute_path, symlinks=True)
            else:
                shutil.copy2(source.absolute_path, destination.absolute_path)
        else:
            # shutil.move falls back to copy+delete across devices
            shutil.move(source.absolute_path, destination.absolute_path)
            self._invalidate(source.absolute_path)
        self._invalidate(destination.absolute_path)
        logger.info(f"{operation}: {source.virtual_path} -> {destination.virtual_path}")
        return ManageResult(
            operation=operation,
            path=source.virtual_path,
            target=destination.virtual_path,
            hint=f"{operation.capitalize()} completed.",
        )
