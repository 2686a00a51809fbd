"""
Symlink escape detection.
"""

import logging
import os
from typing import Optional

from mountfs.filesystem.config import Mount
from mountfs.filesystem.exceptions import PathError
from mountfs.filesystem.paths import PathResolver, ResolvedPath

logger = logging.getLogger(__name__)


class SymlinkValidator:
    """
    Ensure no existing symlink along a path points outside its mount.

    Lexical resolution cannot see symlinks, so every read and write checks
    the on-disk chain from the mount root down to the target. Components
    that do not exist yet end the walk.
    """

    def validate(self, absolute_path: str, mount: Mount) -> None:
        """
        Walk ``absolute_path`` component by component from the mount root.

        Raises:
            PathError: ``SYMLINK_ESCAPE`` if a symlink component resolves
                outside the mount.
        """
        root = mount.absolute_path
        real_root = os.path.realpath(root)
        relative = os.path.relpath(absolute_path, root)
        if relative == ".":
            return
        if relative == ".." or relative.startswith(".." + os.sep):
            raise PathError(absolute_path, PathError.OUT_OF_SCOPE, "Path is outside allowed directory")

        current = root
        for part in relative.split(os.sep):
            current = os.path.join(current, part)
            if not os.path.lexists(current):
                return
            if not os.path.islink(current):
                continue
            target = os.path.realpath(current)
            if not (target == real_root or target.startswith(real_root.rstrip(os.sep) + os.sep)):
                logger.warning(f"Symlink escape via {current} -> {target}")
                raise PathError(
                    absolute_path,
                    PathError.SYMLINK_ESCAPE,
                    f"Symlink {part} points outside mount {mount.name}",
                )

    def is_safe(self, absolute_path: str, mount: Mount) -> bool:
        try:
            self.validate(absolute_path, mount)
        except PathError:
            return False
        return True


def resolve_safely(
    resolver: PathResolver,
    virtual_path: str,
    validator: Optional[SymlinkValidator] = None,
) -> ResolvedPath:
    """Resolve a virtual path and check its on-disk symlink chain."""
    resolved = resolver.resolve(virtual_path)
    (validator or SymlinkValidator()).validate(resolved.absolute_path, resolved.mount)
    return resolved
