"""
Settings and configuration for MountFS.

Example:
    ```python
    from mountfs.settings import MountFSConfig

    config = MountFSConfig.from_file("~/.mountfs/config.yaml")
    access = config.to_access_config()
    ```
"""

from mountfs.settings.config import EnvSettings, MountFSConfig, split_roots

__all__ = [
    "EnvSettings",
    "MountFSConfig",
    "split_roots",
]
