"""
Configuration for mounted filesystem access.
"""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Mount(BaseModel):
    """A named host directory exposed to the agent."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Mount name, the first segment of virtual paths")
    absolute_path: str = Field(description="Absolute, normalized host directory")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v or v in (".", ".."):
            raise ValueError("Mount name must not be empty")
        if "/" in v or "\\" in v:
            raise ValueError(f"Mount name must not contain path separators: {v}")
        return v

    @field_validator("absolute_path", mode="before")
    @classmethod
    def normalize_path(cls, v) -> str:
        """Expand and normalize to an absolute path."""
        return os.path.abspath(os.path.expanduser(str(v)))


def mounts_from_paths(paths: list[str]) -> list[Mount]:
    """
    Build mounts from host directories, naming each after its basename.

    Duplicate basenames get ``_2``, ``_3``... suffixes in order of appearance.
    """
    mounts: list[Mount] = []
    used: set[str] = set()
    for raw in paths:
        raw = raw.strip()
        if not raw:
            continue
        absolute = os.path.abspath(os.path.expanduser(raw))
        base = os.path.basename(absolute.rstrip(os.sep)) or "root"
        name = base
        counter = 2
        while name in used:
            name = f"{base}_{counter}"
            counter += 1
        used.add(name)
        mounts.append(Mount(name=name, absolute_path=absolute))
    return mounts


class FileSystemAccessConfig(BaseModel):
    """
    Configuration for agent filesystem access.

    Defines the mounts the agent can see, size limits, index and search
    bounds, and which mutating operations are permitted.
    """

    mounts: list[Mount] = Field(
        default_factory=list,
        description="Mounted host directories",
    )

    max_file_size_bytes: int = Field(
        default=1_000_000,  # 1 MB
        ge=0,
        description="Maximum file size that can be read or edited (bytes)",
    )

    max_write_size_bytes: int = Field(
        default=1_000_000,
        ge=0,
        description="Maximum size for content being written (bytes)",
    )

    allow_write: bool = Field(
        default=True,
        description="Allow create/update/rename/move/copy/mkdir operations",
    )

    allow_delete: bool = Field(
        default=False,
        description="Allow delete operations",
    )

    include_hidden: bool = Field(
        default=False,
        description="Include dotfiles in listings, indexes and searches",
    )

    respect_ignore: bool = Field(
        default=True,
        description="Honor .gitignore and .ignore files",
    )

    index_ttl_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long a built file index stays fresh (seconds)",
    )

    index_max_roots: int = Field(
        default=5,
        ge=1,
        description="Maximum number of cached file indexes",
    )

    index_max_depth: int = Field(
        default=10,
        ge=0,
        description="Maximum directory depth walked when indexing",
    )

    max_search_results: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum number of search results to return",
    )

    max_files_scanned: int = Field(
        default=10_000,
        ge=1,
        description="Maximum number of files read by one content search",
    )

    search_concurrency: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Files read concurrently per content search batch",
    )

    preview_lines: int = Field(
        default=100,
        ge=1,
        description="Lines shown when a file is read without a line range",
    )

    @model_validator(mode="after")
    def check_unique_names(self) -> "FileSystemAccessConfig":
        seen: set[str] = set()
        for mount in self.mounts:
            if mount.name in seen:
                raise ValueError(f"Duplicate mount name: {mount.name}")
            seen.add(mount.name)
        return self

    @classmethod
    def from_paths(cls, paths: list[str], **kwargs) -> "FileSystemAccessConfig":
        """Create a config whose mounts are derived from host directories."""
        return cls(mounts=mounts_from_paths(paths), **kwargs)

    def get_mount(self, name: str) -> Optional[Mount]:
        for mount in self.mounts:
            if mount.name == name:
                return mount
        return None

    def __repr__(self) -> str:
        """Safe representation."""
        return (
            f"FileSystemAccessConfig("
            f"mounts={[m.name for m in self.mounts]}, "
            f"max_size={self.max_file_size_bytes}, "
            f"allow_write={self.allow_write}, "
            f"allow_delete={self.allow_delete})"
        )
