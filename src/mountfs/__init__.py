"""
MountFS - sandboxed filesystem tools for LLM agents.

This package exposes named host directories ("mounts") to an agent
through virtual paths, with line-oriented reads and edits, fuzzy file
lookup, content search and optimistic-concurrency checksums.
"""

__version__ = "0.1.0"

from mountfs.filesystem import (
    FileSystemAccessConfig,
    FileSystemError,
    LLMFileSystemTools,
    Mount,
    PathResolver,
)

from mountfs.settings import MountFSConfig

__all__ = [
    # Version
    "__version__",
    # Filesystem
    "FileSystemAccessConfig",
    "FileSystemError",
    "LLMFileSystemTools",
    "Mount",
    "PathResolver",
    # Settings
    "MountFSConfig",
]
