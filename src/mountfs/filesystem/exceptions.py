"""
Exceptions for mounted filesystem operations.

Every error carries a stable ``code`` and a recovery ``hint`` so the tool
layer can turn it into a structured result for the agent.
"""

from typing import Optional


class FileSystemError(Exception):
    """Base exception for filesystem operations."""

    code: str = "IO_ERROR"
    hint: str = "Retry the operation or check the path."

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        code: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        self.message = message
        self.path = path
        if code is not None:
            self.code = code
        if hint is not None:
            self.hint = hint
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "hint": self.hint,
            "path": self.path,
        }


class PathError(FileSystemError):
    """Raised when a virtual path cannot be mapped inside a mount."""

    OUT_OF_SCOPE = "OUT_OF_SCOPE"
    TRAVERSAL = "TRAVERSAL"
    SYMLINK_ESCAPE = "SYMLINK_ESCAPE"

    _HINTS = {
        OUT_OF_SCOPE: "Use a path relative to a mount, e.g. '<mount>/dir/file'. Read '.' to list mounts.",
        TRAVERSAL: "Remove '..' segments; paths must stay inside a mount.",
        SYMLINK_ESCAPE: "The path goes through a symlink that points outside the mount.",
    }

    def __init__(self, path: str, code: str, reason: Optional[str] = None):
        self.reason = reason or code.replace("_", " ").lower()
        super().__init__(
            f"{self.reason}: {path}",
            path=path,
            code=code,
            hint=self._HINTS.get(code),
        )


class FileAccessDeniedError(FileSystemError):
    """Raised when an operation is disabled by configuration."""

    code = "ACCESS_DENIED"
    hint = "This operation is disabled for the configured mounts."

    def __init__(self, path: str, reason: str = "Access denied"):
        self.reason = reason
        super().__init__(f"{reason}: {path}", path=path)


class NotFoundError(FileSystemError):
    """Raised when a file or directory does not exist."""

    code = "NOT_FOUND"
    hint = "Check the path, or search for the file by name with fs_search."

    def __init__(self, path: str, reason: str = "Not found", hint: Optional[str] = None):
        super().__init__(f"{reason}: {path}", path=path, hint=hint)


class AlreadyExistsError(FileSystemError):
    """Raised when a create would overwrite an existing entry."""

    code = "ALREADY_EXISTS"
    hint = "Use operation 'update' to modify an existing file."

    def __init__(self, path: str):
        super().__init__(f"Already exists: {path}", path=path)


class NotTextError(FileSystemError):
    """Raised when a file is binary and cannot be read or edited as text."""

    code = "NOT_TEXT"
    hint = "Only text files can be read or edited."

    def __init__(self, path: str):
        super().__init__(f"Not a text file: {path}", path=path)


class FileSizeLimitExceededError(FileSystemError):
    """Raised when a file exceeds the size limit."""

    code = "FILE_TOO_LARGE"
    hint = "Read a smaller line range or search inside the file instead."

    def __init__(self, path: str, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"File too large ({size} bytes > {limit} bytes): {path}", path=path
        )


class ModeMismatchError(FileSystemError):
    """Raised when a file operation targets a directory or vice versa."""

    code = "MODE_MISMATCH"
    hint = "Use a directory listing for directories and content reads for files."


class RangeError(FileSystemError):
    """Raised for malformed or unsatisfiable line ranges."""

    INVALID_RANGE = "INVALID_RANGE"
    OUT_OF_RANGE = "OUT_OF_RANGE"

    code = INVALID_RANGE
    hint = "Use 'N' or 'N-M' with 1 <= N <= M. Re-read the file to see current line numbers."


class ConcurrencyError(FileSystemError):
    """Raised when a file changed since the caller last read it."""

    code = "CHECKSUM_MISMATCH"
    hint = "The file changed since it was read. Re-read it to get a fresh checksum, then retry."

    def __init__(self, path: Optional[str], expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch (expected {expected}, actual {actual})",
            path=path,
        )


class PatternError(FileSystemError):
    """Raised when a search pattern cannot be compiled."""

    code = "INVALID_PATTERN"
    hint = "Check the regex syntax, or use pattern_mode 'literal'."


class UnsafeRegexError(PatternError):
    """Raised when a regex is rejected by the safety screen."""

    code = "UNSAFE_REGEX"
    hint = "Simplify the regex: avoid nested quantifiers like (a+)+ and long alternations."

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Unsafe regex ({reason}): {pattern}")


class AmbiguityError(FileSystemError):
    """Raised when a target matches more than one candidate."""

    code = "AMBIGUOUS"
    hint = "Be more specific: pass a full path or a line range."

    def __init__(self, message: str, candidates: list, path: Optional[str] = None):
        self.candidates = list(candidates)
        super().__init__(message, path=path)


class OperationCancelledError(FileSystemError):
    """Raised when a long-running operation observes its cancel signal."""

    code = "CANCELLED"
    hint = "The operation was cancelled before completing."
