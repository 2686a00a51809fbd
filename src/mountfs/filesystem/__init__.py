"""
Mounted filesystem interface for LLM access.

Virtual paths of the form ``<mount>/<relative>`` are resolved against
configured host directories; every access is checked for traversal and
symlink escapes before touching disk.
"""

from mountfs.filesystem.config import FileSystemAccessConfig, Mount, mounts_from_paths
from mountfs.filesystem.exceptions import (
    AlreadyExistsError,
    AmbiguityError,
    ConcurrencyError,
    FileAccessDeniedError,
    FileSizeLimitExceededError,
    FileSystemError,
    ModeMismatchError,
    NotFoundError,
    NotTextError,
    OperationCancelledError,
    PathError,
    PatternError,
    RangeError,
    UnsafeRegexError,
)
from mountfs.filesystem.paths import PathResolver, ResolvedPath
from mountfs.filesystem.symlinks import SymlinkValidator
from mountfs.filesystem.index import FileIndexCache, IndexOptions
from mountfs.filesystem.reader import MountedFileReader
from mountfs.filesystem.writer import MountedFileWriter
from mountfs.filesystem.search import MountedSearchTools, SearchOptions
from mountfs.filesystem.tools import LLMFileSystemTools

__all__ = [
    "FileSystemAccessConfig",
    "Mount",
    "mounts_from_paths",
    "AlreadyExistsError",
    "AmbiguityError",
    "ConcurrencyError",
    "FileAccessDeniedError",
    "FileSizeLimitExceededError",
    "FileSystemError",
    "ModeMismatchError",
    "NotFoundError",
    "NotTextError",
    "OperationCancelledError",
    "PathError",
    "PatternError",
    "RangeError",
    "UnsafeRegexError",
    "PathResolver",
    "ResolvedPath",
    "SymlinkValidator",
    "FileIndexCache",
    "IndexOptions",
    "MountedFileReader",
    "MountedFileWriter",
    "MountedSearchTools",
    "SearchOptions",
    "LLMFileSystemTools",
]
