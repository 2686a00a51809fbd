"""
Tests for MountFS configuration loading.
"""

import json
import tempfile
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from mountfs.settings import MountFSConfig, split_roots


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove root variables that could leak in from the environment."""
    for name in ("MOUNTFS_ROOTS", "FS_ROOTS", "FS_ROOT", "MOUNTFS_ALLOW_DELETE", "MOUNTFS_MAX_FILE_SIZE"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestMountFSConfig:
    """Test MountFSConfig."""

    def test_from_dict(self, temp_dir):
        """Test explicit mounts and roots together."""
        config = MountFSConfig.from_dict(
            {
                "mounts": [{"name": "vault", "path": str(temp_dir / "notes")}],
                "roots": [str(temp_dir / "site"), str(temp_dir / "other" / "site")],
                "allow_delete": True,
            }
        )
        mounts = config.build_mounts()
        assert [m.name for m in mounts] == ["vault", "site", "site_2"]
        access = config.to_access_config()
        assert access.allow_delete is True
        assert access.mounts[0].absolute_path == str(temp_dir / "notes")

    def test_root_name_conflicts_with_mount(self, temp_dir):
        """Test that roots never reuse an explicit mount name."""
        config = MountFSConfig(
            mounts=[{"name": "site", "path": str(temp_dir / "a")}],
            roots=[str(temp_dir / "site")],
        )
        assert [m.name for m in config.build_mounts()] == ["site", "site_2"]

    def test_mount_name_defaults_to_folder(self, temp_dir):
        """Test a mount entry without a name."""
        config = MountFSConfig(mounts=[{"path": str(temp_dir / "journal")}])
        assert config.build_mounts()[0].name == "journal"

    def test_invalid_values(self):
        """Test validation failures."""
        with pytest.raises(ValidationError):
            MountFSConfig(log_level="LOUD")
        with pytest.raises(ValidationError):
            MountFSConfig(mounts=[{"name": "x"}])
        with pytest.raises(ValidationError):
            MountFSConfig(unknown_key=True)

    def test_log_level_normalized(self):
        """Test that log levels are upper-cased."""
        assert MountFSConfig(log_level="debug").log_level == "DEBUG"

    def test_from_yaml_file(self, temp_dir):
        """Test loading YAML."""
        path = temp_dir / "config.yaml"
        path.write_text(yaml.safe_dump({"roots": [str(temp_dir / "notes")], "max_file_size": 500}))
        config = MountFSConfig.from_file(path)
        assert config.to_access_config().max_file_size_bytes == 500

    def test_from_json_file(self, temp_dir):
        """Test loading JSON."""
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"roots": [str(temp_dir / "notes")], "allow_write": False}))
        assert MountFSConfig.from_file(path).allow_write is False

    def test_missing_file(self, temp_dir):
        """Test a config path that does not exist."""
        with pytest.raises(FileNotFoundError):
            MountFSConfig.from_file(temp_dir / "missing.yaml")

    def test_with_roots(self, temp_dir):
        """Test appending roots."""
        config = MountFSConfig(roots=[str(temp_dir / "a")]).with_roots([str(temp_dir / "b")])
        assert [m.name for m in config.build_mounts()] == ["a", "b"]


class TestFromEnv:
    """Test environment loading."""

    def test_split_roots(self):
        """Test comma separated parsing."""
        assert split_roots(" /a, ,/b ,") == ["/a", "/b"]
        assert split_roots(None) == []

    def test_mountfs_roots(self, clean_env, temp_dir):
        """Test MOUNTFS_* variables."""
        clean_env.setenv("MOUNTFS_ROOTS", f"{temp_dir / 'one'},{temp_dir / 'two'}")
        clean_env.setenv("MOUNTFS_ALLOW_DELETE", "true")
        clean_env.setenv("MOUNTFS_MAX_FILE_SIZE", "1234")
        config = MountFSConfig.from_env()
        assert [m.name for m in config.build_mounts()] == ["one", "two"]
        assert config.allow_delete is True
        assert config.max_file_size == 1234

    def test_legacy_fs_root(self, clean_env, temp_dir):
        """Test the FS_ROOT fallback."""
        clean_env.setenv("FS_ROOT", str(temp_dir / "legacy"))
        assert MountFSConfig.from_env().roots == [str(temp_dir / "legacy")]

    def test_missing_roots(self, clean_env):
        """Test that some root is required."""
        with pytest.raises(ValueError):
            MountFSConfig.from_env()
