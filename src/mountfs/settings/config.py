"""
MountFS configuration.

This module loads mounts and access limits from a YAML/JSON file, a
dictionary, or environment variables, and turns them into a
``FileSystemAccessConfig``.
"""

import json
import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mountfs.filesystem.config import FileSystemAccessConfig, Mount, mounts_from_paths


def split_roots(value: Optional[str]) -> list[str]:
    """Split a comma separated list of directories, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


class EnvSettings(BaseSettings):
    """
    Settings read from ``MOUNTFS_*`` environment variables.

    ``MOUNTFS_ROOTS`` is a comma separated list of host directories.
    ``FS_ROOTS`` and ``FS_ROOT`` are accepted when it is unset.
    """

    model_config = SettingsConfigDict(env_prefix="MOUNTFS_", extra="ignore")

    roots: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MOUNTFS_ROOTS", "FS_ROOTS", "FS_ROOT"),
    )
    max_file_size: int = 1_000_000
    max_write_size: int = 1_000_000
    allow_write: bool = True
    allow_delete: bool = False
    include_hidden: bool = False
    log_level: str = "INFO"


class MountFSConfig(BaseModel):
    """
    Complete MountFS configuration.

    Example:
        ```python
        config = MountFSConfig(
            mounts=[{"name": "vault", "path": "~/notes"}],
            allow_delete=True,
        )
        tools = LLMFileSystemTools(config.to_access_config())

        # Load from file
        config = MountFSConfig.from_file("~/.mountfs/config.yaml")
        ```
    """

    model_config = {"extra": "forbid"}

    mounts: list[dict[str, str]] = Field(
        default_factory=list,
        description="Explicit mounts as {name, path}",
    )
    roots: list[str] = Field(
        default_factory=list,
        description="Host directories mounted under their folder names",
    )
    max_file_size: int = Field(default=1_000_000, ge=0)
    max_write_size: int = Field(default=1_000_000, ge=0)
    allow_write: bool = True
    allow_delete: bool = False
    include_hidden: bool = False
    respect_ignore: bool = True
    index_ttl_seconds: float = Field(default=30.0, gt=0)
    max_search_results: int = Field(default=100, ge=1, le=10000)
    log_level: str = Field(default="INFO", description="Log level for the CLI")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("mounts")
    @classmethod
    def check_mount_entries(cls, v: list[dict[str, str]]) -> list[dict[str, str]]:
        for entry in v:
            if "path" not in entry:
                raise ValueError(f"Mount entry is missing 'path': {entry}")
        return v

    def __repr__(self) -> str:
        names = [m.name for m in self.build_mounts()]
        return f"MountFSConfig(mounts={names}, allow_write={self.allow_write}, allow_delete={self.allow_delete})"

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "MountFSConfig":
        """
        Load configuration from a YAML or JSON file.

        File format (YAML):
            ```yaml
            mounts:
              - name: vault
                path: ~/notes
            roots:
              - ~/projects/site
            allow_delete: false
            max_file_size: 2000000
            ```

        Raises:
            FileNotFoundError: If the config file doesn't exist
        """
        path = Path(path).expanduser().resolve()

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text()

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        elif path.suffix == ".json":
            data = json.loads(content)
        else:
            # Try YAML first, then JSON
            try:
                data = yaml.safe_load(content)
            except yaml.YAMLError:
                data = json.loads(content)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict) -> "MountFSConfig":
        return cls(**data)

    @classmethod
    def from_env(cls) -> "MountFSConfig":
        """
        Create configuration from environment variables.

        Raises:
            ValueError: If no root directory is configured
        """
        env = EnvSettings()
        roots = split_roots(env.roots)
        if not roots:
            raise ValueError("Missing required environment variable: MOUNTFS_ROOTS")
        return cls(
            roots=roots,
            max_file_size=env.max_file_size,
            max_write_size=env.max_write_size,
            allow_write=env.allow_write,
            allow_delete=env.allow_delete,
            include_hidden=env.include_hidden,
            log_level=env.log_level,
        )

    def with_roots(self, roots: list[str]) -> "MountFSConfig":
        """Return a copy with extra root directories appended."""
        return self.model_copy(update={"roots": [*self.roots, *roots]})

    def build_mounts(self) -> list[Mount]:
        """Explicit mounts first, then roots named after their folders."""
        mounts = [
            Mount(
                name=entry.get("name") or os.path.basename(os.path.normpath(os.path.expanduser(entry["path"]))),
                absolute_path=entry["path"],
            )
            for entry in self.mounts
        ]
        taken = {m.name for m in mounts}
        for mount in mounts_from_paths(self.roots):
            name = mount.name
            suffix = 2
            while name in taken:
                name = f"{mount.name}_{suffix}"
                suffix += 1
            taken.add(name)
            mounts.append(Mount(name=name, absolute_path=mount.absolute_path))
        return mounts

    def to_access_config(self) -> FileSystemAccessConfig:
        return FileSystemAccessConfig(
            mounts=self.build_mounts(),
            max_file_size_bytes=self.max_file_size,
            max_write_size_bytes=self.max_write_size,
            allow_write=self.allow_write,
            allow_delete=self.allow_delete,
            include_hidden=self.include_hidden,
            respect_ignore=self.respect_ignore,
            index_ttl_seconds=self.index_ttl_seconds,
            max_search_results=self.max_search_results,
        )
