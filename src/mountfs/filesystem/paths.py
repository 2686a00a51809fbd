"""
Virtual path resolution across mounts.

A virtual path starts with a mount name (``vault/notes/todo.md``). The
resolver maps it onto the host filesystem and refuses anything that could
leave the mount: absolute host paths, ``..`` segments, and unknown mounts.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional

from mountfs.filesystem.config import Mount
from mountfs.filesystem.exceptions import PathError

logger = logging.getLogger(__name__)

WINDOWS_ABSOLUTE_PATTERN = re.compile(r"^[a-zA-Z]:[\\/]")

ROOT_PATHS = frozenset({"", ".", "/"})


@dataclass(frozen=True)
class ResolvedPath:
    """A virtual path mapped onto a mount. Computed per call."""

    mount: Mount
    absolute_path: str
    relative_path: str
    virtual_path: str

    @property
    def is_root(self) -> bool:
        """True for the root sentinel (``.``, empty string or ``/``)."""
        return self.virtual_path == "."

    @property
    def is_mount_root(self) -> bool:
        return self.relative_path == "."


def is_root_path(path: str) -> bool:
    return path.strip() in ROOT_PATHS


def _is_absolute(path: str) -> bool:
    return path.startswith("/") or bool(WINDOWS_ABSOLUTE_PATTERN.match(path))


def _has_traversal(path: str) -> bool:
    return any(segment == ".." for segment in re.split(r"[/\\]", path))


def _within(absolute_path: str, root: str) -> bool:
    return absolute_path == root or absolute_path.startswith(root.rstrip(os.sep) + os.sep)


class PathResolver:
    """
    Translate virtual paths to host paths inside configured mounts.

    Usage:
        resolver = PathResolver([Mount(name="vault", absolute_path="/data/vault")])
        resolved = resolver.resolve("vault/notes/todo.md")
        resolved.absolute_path  # "/data/vault/notes/todo.md"
    """

    def __init__(self, mounts: list[Mount]):
        self._mounts = list(mounts)
        self._by_name = {mount.name: mount for mount in self._mounts}

    @property
    def mounts(self) -> list[Mount]:
        return list(self._mounts)

    @property
    def is_single_mount(self) -> bool:
        return len(self._mounts) == 1

    def get_mount(self, name: str) -> Optional[Mount]:
        return self._by_name.get(name)

    def resolve(self, virtual_path: str) -> ResolvedPath:
        """
        Resolve a virtual path.

        Args:
            virtual_path: Path starting with a mount name. With a single
                mount configured the mount name may be omitted.

        Returns:
            The resolved path. For the root forms (``.``, ``""``, ``/``) a
            sentinel on the first mount with ``virtual_path == "."``.

        Raises:
            PathError: ``OUT_OF_SCOPE`` for absolute host paths, unknown
                mounts or results outside the mount; ``TRAVERSAL`` for
                ``..`` segments.
        """
        trimmed = virtual_path.strip()

        if trimmed in ROOT_PATHS:
            if not self._mounts:
                raise PathError(trimmed, PathError.OUT_OF_SCOPE, "No filesystem mounts configured")
            mount = self._mounts[0]
            return ResolvedPath(
                mount=mount,
                absolute_path=mount.absolute_path,
                relative_path=".",
                virtual_path=".",
            )

        if _is_absolute(trimmed):
            logger.warning(f"Rejected absolute path: {trimmed}")
            raise PathError(
                trimmed,
                PathError.OUT_OF_SCOPE,
                f"Absolute paths are not allowed (mounts: {self._mount_names()})",
            )

        if _has_traversal(trimmed):
            logger.warning(f"Rejected traversal attempt: {trimmed}")
            raise PathError(trimmed, PathError.TRAVERSAL, "Path cannot contain '..' segments")

        if not self._mounts:
            raise PathError(trimmed, PathError.OUT_OF_SCOPE, "No filesystem mounts configured")

        segments = [s for s in trimmed.replace("\\", "/").split("/") if s not in ("", ".")]
        if not segments:
            # e.g. "./." collapses to the root sentinel
            return self.resolve(".")

        mount = self._by_name.get(segments[0])
        if mount is not None:
            rest = segments[1:]
        elif self.is_single_mount:
            mount = self._mounts[0]
            rest = segments
        else:
            raise PathError(
                trimmed,
                PathError.OUT_OF_SCOPE,
                f"Path does not start with a mount name (mounts: {self._mount_names()})",
            )

        relative_path = "/".join(rest) if rest else "."
        absolute_path = os.path.normpath(os.path.join(mount.absolute_path, *rest))

        if not _within(absolute_path, mount.absolute_path):
            logger.warning(f"Resolved path escapes mount {mount.name}: {absolute_path}")
            raise PathError(trimmed, PathError.OUT_OF_SCOPE, "Path is outside allowed directory")

        return ResolvedPath(
            mount=mount,
            absolute_path=absolute_path,
            relative_path=relative_path,
            virtual_path=mount.name if not rest else f"{mount.name}/{relative_path}",
        )

    def to_virtual_path(self, absolute_path: str) -> Optional[str]:
        """Map a host path back to a virtual path, or None if outside every mount."""
        absolute_path = os.path.normpath(absolute_path)
        best: Optional[Mount] = None
        for mount in self._mounts:
            if _within(absolute_path, mount.absolute_path):
                if best is None or len(mount.absolute_path) > len(best.absolute_path):
                    best = mount
        if best is None:
            return None
        if absolute_path == best.absolute_path:
            return best.name
        relative = os.path.relpath(absolute_path, best.absolute_path)
        return f"{best.name}/{relative.replace(os.sep, '/')}"

    def _mount_names(self) -> str:
        return ", ".join(m.name for m in self._mounts) or "none"
