"""
File type detection and path filters.
"""

import os
import re
from functools import lru_cache
from typing import Iterable, Optional

TYPE_MAP: dict[str, list[str]] = {
    # Languages
    "ts": [".ts", ".tsx", ".mts", ".cts"],
    "js": [".js", ".jsx", ".mjs", ".cjs"],
    "py": [".py", ".pyw", ".pyi"],
    "rs": [".rs"],
    "go": [".go"],
    "java": [".java"],
    "c": [".c", ".h"],
    "cpp": [".cpp", ".cc", ".cxx", ".hpp", ".hh", ".hxx"],
    "cs": [".cs"],
    "rb": [".rb"],
    "php": [".php"],
    "swift": [".swift"],
    "kt": [".kt", ".kts"],
    "scala": [".scala"],
    "lua": [".lua"],
    "sh": [".sh", ".bash", ".zsh"],
    # Markup and data
    "md": [".md", ".markdown", ".mdx"],
    "html": [".html", ".htm"],
    "css": [".css"],
    "scss": [".scss", ".sass"],
    "json": [".json", ".jsonc"],
    "yaml": [".yaml", ".yml"],
    "xml": [".xml"],
    "toml": [".toml"],
    "ini": [".ini", ".cfg"],
    "config": [".config", ".conf", ".cfg", ".ini", ".env"],
    "doc": [".md", ".markdown", ".txt", ".rst", ".adoc"],
    "text": [".txt", ".text"],
    "test": ["_test.py", ".test.ts", ".test.js", ".spec.ts", ".spec.js", "_test.go"],
}

TEXT_EXTENSIONS = frozenset(
    ext for extensions in TYPE_MAP.values() for ext in extensions if ext.count(".") == 1
) | frozenset(
    {
        ".rst", ".adoc", ".r", ".pl", ".pm", ".vue", ".svelte", ".clj",
        ".less", ".sql", ".graphql", ".gql", ".csv", ".tsv", ".log",
        ".gitignore", ".ignore", ".editorconfig", ".lock", ".tex",
    }
)

TEXT_FILENAMES = frozenset(
    {
        "Makefile", "Dockerfile", "Jenkinsfile", "Vagrantfile", "Procfile",
        "LICENSE", "README", "CHANGELOG", "AUTHORS",
    }
)

SNIFF_BYTES = 8192


def is_text_file(path: str, sample: Optional[bytes] = None) -> bool:
    """
    Guess whether ``path`` is a text file.

    Known extensions and names are trusted. Anything else is decided by
    ``sample`` (leading bytes of the file): text unless it contains a NUL
    byte or is not valid UTF-8.
    """
    name = os.path.basename(path)
    ext = os.path.splitext(name)[1].lower()
    if ext in TEXT_EXTENSIONS or name in TEXT_FILENAMES:
        return True
    if name.startswith(".") and not os.path.splitext(name[1:])[1]:
        return True
    if sample is None:
        return False
    if b"\x00" in sample:
        return False
    try:
        sample.decode("utf-8")
    except UnicodeDecodeError as e:
        # a multi-byte sequence cut off by the sample boundary is fine
        return e.start >= len(sample) - 3
    return True


def get_extensions_for_type(type_name: str) -> Optional[list[str]]:
    return TYPE_MAP.get(type_name.lower())


def matches_type(path: str, types: Iterable[str]) -> bool:
    """True if ``path`` matches any type alias or bare extension in ``types``."""
    for type_name in types:
        extensions = get_extensions_for_type(type_name)
        if extensions:
            if any(path.endswith(ext) for ext in extensions):
                return True
        else:
            ext = type_name if type_name.startswith(".") else f".{type_name}"
            if path.endswith(ext):
                return True
    return False


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> re.Pattern:
    """``*`` stays within a path segment, ``**`` crosses segments, ``?`` is one character."""
    parts = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(parts) + "$")


def matches_glob(path: str, pattern: str) -> bool:
    """
    Match a relative path against a glob.

    Patterns without a ``/`` are matched against the basename as well, so
    ``*.md`` selects Markdown files at any depth.
    """
    path = path.replace(os.sep, "/")
    regex = compile_glob(pattern)
    if regex.match(path):
        return True
    return "/" not in pattern and bool(regex.match(path.rsplit("/", 1)[-1]))


def should_exclude(path: str, exclude_patterns: Iterable[str]) -> bool:
    return any(matches_glob(path, pattern) for pattern in exclude_patterns)
