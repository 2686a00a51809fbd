"""
Unified LLM filesystem tools interface.

Exposes four tools (fs_read, fs_search, fs_write, fs_manage) over the
configured mounts in OpenAI function calling format. Every call returns
a ``ToolSuccess`` or ``ToolFailure`` payload; filesystem errors never
propagate to the caller.
"""

import dataclasses
import logging
from typing import Any, Optional

from mountfs.filesystem.config import FileSystemAccessConfig
from mountfs.filesystem.exceptions import FileSystemError
from mountfs.filesystem.index import FileIndexCache
from mountfs.filesystem.paths import PathResolver
from mountfs.filesystem.reader import READ_MODES, MountedFileReader
from mountfs.filesystem.results import ErrorInfo, ToolFailure, ToolSuccess
from mountfs.filesystem.search import MountedSearchTools, SearchOptions
from mountfs.filesystem.symlinks import SymlinkValidator
from mountfs.filesystem.writer import MANAGE_OPERATIONS, MountedFileWriter

logger = logging.getLogger(__name__)

TOOL_NAMES = ("fs_read", "fs_search", "fs_write", "fs_manage")


class LLMFileSystemTools:
    """
    Unified filesystem interface for LLM function calling.

    Usage:
        config = FileSystemAccessConfig.from_paths(["/home/me/notes"])
        tools = LLMFileSystemTools(config)

        # Get tool schemas for LLM
        schemas = tools.get_tool_schemas()

        # Execute tool call
        result = await tools.execute_tool(
            "fs_read",
            {"path": "notes/todo.md"},
        )
        if result["status"] == "error":
            print(result["error"]["hint"])
    """

    def __init__(self, config: FileSystemAccessConfig, cache: Optional[FileIndexCache] = None):
        """
        Initialize LLM filesystem tools.

        Args:
            config: Mounts and limits
            cache: Shared file index cache (one is created if omitted)
        """
        self.config = config
        self.resolver = PathResolver(config.mounts)
        self.cache = cache or FileIndexCache(
            ttl_seconds=config.index_ttl_seconds,
            max_roots=config.index_max_roots,
        )
        validator = SymlinkValidator()
        self.reader = MountedFileReader(config, self.resolver, self.cache, validator)
        self.search = MountedSearchTools(config, self.resolver, self.cache, validator)
        self.writer = MountedFileWriter(config, self.resolver, self.cache, validator)

    def get_tool_schemas(self) -> list[dict[str, Any]]:
        """
        Get OpenAI function calling schemas for all available tools.

        fs_write is omitted when writes are disabled; fs_manage is always
        present because ``stat`` is read-only.
        """
        mount_names = ", ".join(m.name for m in self.config.mounts) or "(none)"
        schemas = [
            {
                "type": "function",
                "function": {
                    "name": "fs_read",
                    "description": "Read a file with line numbers and a checksum, or list a directory. "
                    f"Paths start with a mount name (mounts: {mount_names}); '.' lists the root. "
                    "A missing file name is looked up in the mount and read when it is unique.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "path": {
                                "type": "string",
                                "description": "Virtual path, e.g. '<mount>/notes/todo.md' or '.'",
                            },
                            "mode": {
                                "type": "string",
                                "enum": list(READ_MODES),
                                "description": "auto (default), tree (directories only), list or content",
                            },
                            "lines": {
                                "type": "string",
                                "description": "Line range for files: 'N' or 'N-M' (1-indexed, inclusive)",
                            },
                            "depth": {"type": "integer", "description": "Listing depth (default: 1)"},
                            "limit": {"type": "integer", "description": "Entries per page (default: 100)"},
                            "offset": {"type": "integer", "description": "Entries to skip (default: 0)"},
                            "details": {
                                "type": "boolean",
                                "description": "Include size and modification time",
                            },
                            "types": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "File types to include, e.g. ['md', 'py']",
                            },
                            "glob": {"type": "string", "description": "Glob filter, e.g. '*.md'"},
                            "exclude": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "Glob patterns to exclude",
                            },
                            "respect_ignore": {
                                "type": "boolean",
                                "description": "Honor .gitignore/.ignore files (default: true)",
                            },
                        },
                        "required": ["path"],
                    },
                },
            },
            {
                "type": "function",
                "function": {
                    "name": "fs_search",
                    "description": "Search file names (fuzzy) and file contents (literal, regex, "
                    "fuzzy or preset patterns). Returns matching lines with line numbers.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "path": {"type": "string", "description": "Directory to search ('.' for all mounts)"},
                            "query": {"type": "string", "description": "File name query and/or content pattern"},
                            "target": {
                                "type": "string",
                                "enum": ["all", "filename", "content"],
                                "description": "What to search (default: all)",
                            },
                            "pattern_mode": {
                                "type": "string",
                                "enum": ["literal", "regex", "fuzzy"],
                                "description": "How the query is matched against content (default: literal)",
                            },
                            "preset": {
                                "type": "string",
                                "description": "Named pattern: wikilinks, tags, tasks, tasks_open, "
                                "tasks_done, headings, codeblocks, frontmatter",
                            },
                            "case_insensitive": {"type": "boolean", "description": "Default: true"},
                            "whole_word": {"type": "boolean"},
                            "multiline": {"type": "boolean", "description": "Let '.' match newlines"},
                            "types": {"type": "array", "items": {"type": "string"}},
                            "glob": {"type": "string"},
                            "exclude": {"type": "array", "items": {"type": "string"}},
                            "depth": {"type": "integer", "description": "Maximum directory depth (default: 5)"},
                            "max_results": {"type": "integer", "description": "Default: 100"},
                            "respect_ignore": {"type": "boolean"},
                            "cluster": {
                                "type": "boolean",
                                "description": "Group nearby content matches with context",
                            },
                        },
                        "required": ["path"],
                    },
                },
            },
        ]

        if self.config.allow_write:
            schemas.append({
                "type": "function",
                "function": {
                    "name": "fs_write",
                    "description": "Create a file, or edit one by line range or by a pattern that matches "
                    "exactly once. Pass the checksum from your last fs_read to guard against "
                    "concurrent changes. Use dry_run to preview the diff.",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "path": {"type": "string", "description": "Virtual path of the file"},
                            "operation": {
                                "type": "string",
                                "enum": ["create", "update"],
                            },
                            "content": {"type": "string", "description": "New text"},
                            "action": {
                                "type": "string",
                                "enum": ["replace", "insert_before", "insert_after", "delete_lines"],
                                "description": "Line action for update (default: replace)",
                            },
                            "lines": {"type": "string", "description": "Target lines 'N' or 'N-M'"},
                            "pattern": {"type": "string", "description": "Alternative target: unique match"},
                            "pattern_mode": {
                                "type": "string",
                                "enum": ["literal", "regex", "fuzzy"],
                            },
                            "checksum": {"type": "string", "description": "Checksum from the last read"},
                            "dry_run": {"type": "boolean", "description": "Preview only (default: false)"},
                            "create_dirs": {
                                "type": "boolean",
                                "description": "Create missing parent directories (default: true)",
                            },
                            "ensure_trailing_newline": {"type": "boolean", "description": "Default: true"},
                        },
                        "required": ["path", "operation"],
                    },
                },
            })

        schemas.append({
            "type": "function",
            "function": {
                "name": "fs_manage",
                "description": "Structural operations: delete, rename, move, copy, mkdir, stat.",
                "parameters": {
                    "type": "object",
                    "properties": {
                        "operation": {"type": "string", "enum": list(MANAGE_OPERATIONS)},
                        "path": {"type": "string", "description": "Source path"},
                        "target": {"type": "string", "description": "Destination for rename, move and copy"},
                        "recursive": {
                            "type": "boolean",
                            "description": "Required for directory delete and copy; mkdir creates parents",
                        },
                        "force": {"type": "boolean", "description": "Overwrite an existing target"},
                    },
                    "required": ["operation", "path"],
                },
            },
        })
        return schemas

    async def execute_tool(self, tool_name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """
        Execute a tool call from an LLM.

        Returns:
            ``ToolSuccess`` or ``ToolFailure`` as a dict

        Raises:
            ValueError: If tool name is unknown
        """
        handlers = {
            "fs_read": self._fs_read,
            "fs_search": self._fs_search,
            "fs_write": self._fs_write,
            "fs_manage": self._fs_manage,
        }
        handler = handlers.get(tool_name)
        if handler is None:
            raise ValueError(f"Unknown tool: {tool_name}")

        try:
            result = await handler(**arguments)
        except FileSystemError as e:
            logger.warning(f"LLM {tool_name} failed: [{e.code}] {e.message}")
            return ToolFailure(tool=tool_name, error=ErrorInfo.from_exception(e)).model_dump()
        except OSError as e:
            logger.error(f"LLM {tool_name} I/O error: {e}")
            error = FileSystemError(str(e), path=arguments.get("path"))
            return ToolFailure(tool=tool_name, error=ErrorInfo.from_exception(error)).model_dump()
        except (TypeError, ValueError) as e:
            logger.warning(f"LLM {tool_name} invalid arguments: {e}")
            error = FileSystemError(
                str(e),
                path=arguments.get("path"),
                code="INVALID_ARGUMENTS",
                hint="Check the tool schema for parameter names and allowed values.",
            )
            return ToolFailure(tool=tool_name, error=ErrorInfo.from_exception(error)).model_dump()
        return ToolSuccess(tool=tool_name, result=result).model_dump()

    async def _fs_read(
        self,
        path: str = ".",
        mode: str = "auto",
        lines: Optional[str] = None,
        depth: Optional[int] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        details: bool = False,
        types: Optional[list[str]] = None,
        glob: Optional[str] = None,
        exclude: Optional[list[str]] = None,
        respect_ignore: Optional[bool] = None,
    ) -> dict[str, Any]:
        """Read tool implementation."""
        result = await self.reader.read(
            path,
            mode,
            lines=lines,
            depth=depth,
            limit=limit,
            offset=offset,
            details=details,
            types=types,
            glob=glob,
            exclude=exclude,
            respect_ignore=respect_ignore,
        )
        return result.model_dump(mode="json")

    async def _fs_search(
        self,
        path: str = ".",
        query: str = "",
        target: str = "all",
        pattern_mode: str = "literal",
        preset: Optional[str] = None,
        case_insensitive: bool = True,
        whole_word: bool = False,
        multiline: bool = False,
        types: Optional[list[str]] = None,
        glob: Optional[str] = None,
        exclude: Optional[list[str]] = None,
        depth: int = 5,
        max_results: Optional[int] = None,
        respect_ignore: Optional[bool] = None,
        cluster: bool = False,
    ) -> dict[str, Any]:
        """Search tool implementation."""
        if not query and not preset:
            raise FileSystemError(
                "Either query or preset is required",
                path=path,
                code="INVALID_ARGUMENTS",
                hint="Pass a query string, or a preset such as 'tasks_open'.",
            )
        options = SearchOptions(
            depth=depth,
            types=types or [],
            glob=glob,
            exclude=exclude or [],
            respect_ignore=self.config.respect_ignore if respect_ignore is None else respect_ignore,
            include_hidden=self.config.include_hidden,
            max_results=min(max_results or self.config.max_search_results, self.config.max_search_results),
        )
        report = await self.search.search(
            path,
            query,
            target,
            pattern_mode,
            preset=preset,
            case_insensitive=case_insensitive,
            whole_word=whole_word,
            multiline=multiline,
            cluster=cluster,
            options=options,
        )
        result = dataclasses.asdict(report)
        result["total_count"] = report.total_count
        return result

    async def _fs_write(
        self,
        path: str,
        operation: str = "update",
        content: str = "",
        action: str = "replace",
        lines: Optional[str] = None,
        pattern: Optional[str] = None,
        pattern_mode: str = "literal",
        case_insensitive: bool = False,
        whole_word: bool = False,
        multiline: bool = False,
        checksum: Optional[str] = None,
        dry_run: bool = False,
        create_dirs: bool = True,
        ensure_trailing_newline: bool = True,
    ) -> dict[str, Any]:
        """Write tool implementation."""
        if operation == "create":
            result = await self.writer.create(
                path,
                content,
                create_dirs=create_dirs,
                dry_run=dry_run,
                ensure_newline=ensure_trailing_newline,
            )
        elif operation == "update":
            result = await self.writer.update(
                path,
                action=action,
                content=content,
                lines=lines,
                pattern=pattern,
                pattern_mode=pattern_mode,
                case_insensitive=case_insensitive,
                whole_word=whole_word,
                multiline=multiline,
                expected_checksum=checksum,
                dry_run=dry_run,
                ensure_newline=ensure_trailing_newline,
            )
        else:
            raise ValueError(f"Unknown write operation: {operation}")
        return result.model_dump(mode="json")

    async def _fs_manage(
        self,
        operation: str,
        path: str,
        target: Optional[str] = None,
        recursive: bool = False,
        force: bool = False,
    ) -> dict[str, Any]:
        """Manage tool implementation."""
        result = await self.writer.manage(operation, path, target, recursive=recursive, force=force)
        return result.model_dump(mode="json")

    def get_summary(self) -> dict[str, Any]:
        """
        Get a summary of the filesystem access configuration.

        Returns:
            Dict with configuration summary
        """
        return {
            "mounts": {m.name: m.absolute_path for m in self.config.mounts},
            "max_file_size_mb": self.config.max_file_size_bytes / (1024 * 1024),
            "max_search_results": self.config.max_search_results,
            "allow_write": self.config.allow_write,
            "allow_delete": self.config.allow_delete,
            "max_write_size_mb": self.config.max_write_size_bytes / (1024 * 1024) if self.config.allow_write else 0,
            "cached_indexes": len(self.cache),
            "tools": [schema["function"]["name"] for schema in self.get_tool_schemas()],
        }
