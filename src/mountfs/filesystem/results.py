"""
Result models returned by the read, write and manage pipelines.

Tool calls produce a discriminated union on ``status``: ``ToolSuccess``
wraps a payload, ``ToolFailure`` carries an error code and recovery hint.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from mountfs.filesystem.exceptions import FileSystemError


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class TreeEntry(BaseModel):
    """One entry in a directory listing."""

    path: str = Field(description="Virtual path of the entry")
    kind: EntryKind = Field(description="File or directory")
    size: Optional[int] = Field(default=None, description="Size in bytes (details only)")
    modified: Optional[str] = Field(default=None, description="Relative modification time (details only)")
    children: Optional[int] = Field(default=None, description="Direct child count for directories")


class ListingStats(BaseModel):
    returned: int
    total: int
    offset: int
    limit: int
    has_more: bool
    truncated: bool = Field(default=False, description="Walk stopped at the entry cap")


class DirectoryListing(BaseModel):
    type: Literal["directory"] = "directory"
    path: str
    entries: list[TreeEntry] = Field(default_factory=list)
    stats: ListingStats
    summary: str = ""
    hint: str = ""

    @property
    def file_count(self) -> int:
        return sum(1 for e in self.entries if e.kind is EntryKind.FILE)

    @property
    def directory_count(self) -> int:
        return sum(1 for e in self.entries if e.kind is EntryKind.DIRECTORY)


class LineSpan(BaseModel):
    start: int
    end: int


class FileContent(BaseModel):
    """File text with line numbers and the checksum of the bytes read."""

    type: Literal["file"] = "file"
    path: str
    text: str = Field(description="Content prefixed with line numbers")
    checksum: str = Field(description="Checksum of the full file content")
    total_lines: int
    range: Optional[LineSpan] = None
    truncated: bool = False
    resolved_from: Optional[str] = Field(
        default=None, description="Requested path when the file was auto-resolved"
    )
    hint: str = ""


class WriteResult(BaseModel):
    """Outcome of a create or update."""

    path: str
    operation: Literal["create", "update"]
    dry_run: bool = False
    diff: str
    added: int = 0
    removed: int = 0
    lines_affected: int = 0
    checksum: Optional[str] = Field(
        default=None, description="Checksum of the new content; absent for dry runs"
    )
    hint: str = ""


class ManageResult(BaseModel):
    operation: str
    path: str
    target: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    hint: str = ""


class ErrorInfo(BaseModel):
    code: str
    message: str
    hint: str
    path: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, error: FileSystemError) -> "ErrorInfo":
        details: dict[str, Any] = {}
        for attr in ("candidates", "expected", "actual", "size", "limit", "reason"):
            value = getattr(error, attr, None)
            if value is not None:
                details[attr] = value
        return cls(
            code=error.code,
            message=error.message,
            hint=error.hint,
            path=error.path,
            details=details,
        )


class ToolSuccess(BaseModel):
    status: Literal["ok"] = "ok"
    tool: str
    result: dict[str, Any]


class ToolFailure(BaseModel):
    status: Literal["error"] = "error"
    tool: str
    error: ErrorInfo


ToolResult = Annotated[Union[ToolSuccess, ToolFailure], Field(discriminator="status")]
