"""
Ignore rules for listings, indexing and search.

Combines a root's ``.gitignore`` and ``.ignore`` files (gitignore
semantics via pathspec), a fixed set of always-excluded directory names,
editor/OS junk patterns and the hidden-file policy.
"""

import logging
import os
from typing import Iterable, Optional

import pathspec

logger = logging.getLogger(__name__)

IGNORE_FILES = (".gitignore", ".ignore")

ALWAYS_EXCLUDE = frozenset(
    {
        ".git",
        "node_modules",
        ".svelte-kit",
        ".next",
        ".nuxt",
        "__pycache__",
        "target",
        "dist",
        ".venv",
        ".agent-data",
    }
)

DEFAULT_IGNORE = ["Thumbs.db", ".DS_Store", "*.swp", "*.swo", "*~"]


def load_ignore_patterns(directory: str) -> list[str]:
    """Read non-comment lines from ``.gitignore`` and ``.ignore`` in ``directory``."""
    patterns: list[str] = []
    for filename in IGNORE_FILES:
        path = os.path.join(directory, filename)
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#"):
                        patterns.append(line)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.debug(f"Could not read {path}: {e}")
    return patterns


class IgnoreMatcher:
    """
    Decide whether a root-relative path is excluded.

    Paths under ``include_paths`` prefixes are never ignored.
    """

    def __init__(
        self,
        patterns: Iterable[str] = (),
        *,
        include_hidden: bool = False,
        always_exclude: Iterable[str] = ALWAYS_EXCLUDE,
        include_paths: Iterable[str] = (),
    ):
        self.patterns = list(DEFAULT_IGNORE) + list(patterns)
        self.include_hidden = include_hidden
        self.always_exclude = frozenset(always_exclude)
        self.include_paths = [p.strip("/") for p in include_paths if p.strip("/")]
        self._spec = pathspec.GitIgnoreSpec.from_lines(self.patterns)

    def _is_included(self, relative_path: str) -> bool:
        return any(
            relative_path == prefix or relative_path.startswith(prefix + "/")
            for prefix in self.include_paths
        )

    def is_ignored(self, relative_path: str, is_dir: bool = False) -> bool:
        normalized = relative_path.replace(os.sep, "/").strip("/")
        if not normalized or normalized == ".":
            return False
        if self._is_included(normalized):
            return False
        segments = normalized.split("/")
        if any(segment in self.always_exclude for segment in segments):
            return True
        if not self.include_hidden and any(s.startswith(".") for s in segments):
            return True
        return self._spec.match_file(normalized + "/" if is_dir else normalized)


def create_ignore_matcher(
    root: str,
    *,
    respect_ignore: bool = True,
    include_hidden: bool = False,
    always_exclude: Iterable[str] = ALWAYS_EXCLUDE,
    include_paths: Optional[Iterable[str]] = None,
) -> IgnoreMatcher:
    """Build a matcher for ``root``, reading its ignore files when ``respect_ignore``."""
    patterns = load_ignore_patterns(root) if respect_ignore else []
    return IgnoreMatcher(
        patterns,
        include_hidden=include_hidden,
        always_exclude=always_exclude,
        include_paths=include_paths or (),
    )
