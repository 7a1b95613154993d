"""
Unit tests for backend selection and factories.
"""

from unittest.mock import AsyncMock, patch

import pytest

from frameworkkit.core.exceptions import ConfigurationError
from frameworkkit.framework.backends import (
    Backend,
    create_resolver,
    create_source,
    get_backend,
    resolve_version,
)
from frameworkkit.framework.cache_mode import CacheMode
from frameworkkit.framework.openui5 import OpenUI5Source
from frameworkkit.framework.resolver import LibraryResolver
from frameworkkit.framework.sapui5 import SAPUI5Source
from frameworkkit.framework.sapui5_maven_snapshot import SAPUI5MavenSnapshotSource

ENDPOINT = "https://repo.example.com/snapshots/"


class TestGetBackend:
    """Tests for get_backend."""

    @pytest.mark.parametrize(
        "framework_name,version,expected",
        [
            ("OpenUI5", "1.120.0", Backend.OPENUI5_NPM),
            ("OpenUI5", "1-SNAPSHOT", Backend.OPENUI5_NPM),
            ("SAPUI5", "1.120.0", Backend.SAPUI5_NPM),
            ("SAPUI5", "latest", Backend.SAPUI5_NPM),
            ("SAPUI5", None, Backend.SAPUI5_NPM),
            ("SAPUI5", "1.121.0-SNAPSHOT", Backend.SAPUI5_MAVEN_SNAPSHOT),
            ("SAPUI5", "1-snapshot", Backend.SAPUI5_MAVEN_SNAPSHOT),
        ],
    )
    def test_selection(self, framework_name, version, expected):
        """Test the backend matrix."""
        assert get_backend(framework_name, version) is expected

    def test_unknown_framework(self):
        """Test unsupported framework names are rejected."""
        with pytest.raises(ConfigurationError, match="Unknown framework name 'UI5'"):
            get_backend("UI5", "1.120.0")


class TestCreateSource:
    """Tests for create_source."""

    def test_openui5(self, project_dir, home_dir):
        """Test the OpenUI5 source installs below the home directory."""
        source = create_source(Backend.OPENUI5_NPM, cwd=project_dir, home_dir=home_dir, version="1.120.0")

        assert isinstance(source, OpenUI5Source)
        assert source.version == "1.120.0"
        assert source.installer.layout.dirs.root == home_dir.resolve() / "framework"

    def test_sapui5(self, project_dir, home_dir):
        """Test the SAPUI5 npm source."""
        source = create_source(Backend.SAPUI5_NPM, cwd=project_dir, home_dir=home_dir)

        assert isinstance(source, SAPUI5Source)

    def test_maven_snapshot_cache_mode_from_config(self, project_dir, home_dir, tmp_path):
        """Test the cache mode falls back to the configuration file."""
        (tmp_path / "frameworkkit.yaml").write_text("cache_mode: Force\n")

        source = create_source(
            Backend.SAPUI5_MAVEN_SNAPSHOT,
            cwd=project_dir,
            home_dir=home_dir,
            version="1.121.0-SNAPSHOT",
            snapshot_endpoint_url=ENDPOINT,
        )

        assert isinstance(source, SAPUI5MavenSnapshotSource)
        assert source.installer.cache_mode == CacheMode.FORCE

    def test_maven_snapshot_explicit_cache_mode(self, project_dir, home_dir, tmp_path):
        """Test an explicit cache mode wins over the configuration."""
        (tmp_path / "frameworkkit.yaml").write_text("cache_mode: Force\n")

        source = create_source(
            Backend.SAPUI5_MAVEN_SNAPSHOT,
            cwd=project_dir,
            home_dir=home_dir,
            snapshot_endpoint_url=ENDPOINT,
            cache_mode=CacheMode.OFF,
        )

        assert source.installer.cache_mode == CacheMode.OFF

    def test_home_dir_from_environment(self, project_dir, tmp_path, monkeypatch):
        """Test FRAMEWORKKIT_HOME is honored."""
        monkeypatch.setenv("FRAMEWORKKIT_HOME", str(tmp_path / "env-home"))

        source = create_source(Backend.OPENUI5_NPM, cwd=project_dir)

        assert source.installer.layout.home_dir == (tmp_path / "env-home").resolve()


class TestCreateResolver:
    """Tests for create_resolver."""

    def test_resolver_for_snapshot(self, project_dir, home_dir):
        """Test SNAPSHOT versions of SAPUI5 use the Maven source."""
        resolver = create_resolver(
            "SAPUI5",
            "1.121.0-SNAPSHOT",
            cwd=project_dir,
            home_dir=home_dir,
            snapshot_endpoint_url=ENDPOINT,
            sources=True,
        )

        assert isinstance(resolver, LibraryResolver)
        assert isinstance(resolver.source, SAPUI5MavenSnapshotSource)
        assert resolver.source.sources is True

    def test_provided_metadata_passed(self, project_dir, home_dir):
        """Test provided library metadata reaches the resolver."""
        resolver = create_resolver(
            "OpenUI5",
            "1.120.0",
            cwd=project_dir,
            home_dir=home_dir,
            provided_library_metadata={
                "my.lib": {"id": "my.lib", "version": "1.0.0", "path": "/ws/my.lib"}
            },
        )

        assert "my.lib" in resolver.provided_library_metadata


class TestResolveVersion:
    """Tests for resolve_version."""

    @pytest.mark.asyncio
    async def test_resolves_against_backend_catalog(self, project_dir, home_dir):
        """Test the specifier is resolved with the selected backend's catalog."""
        with patch.object(
            OpenUI5Source, "fetch_all_versions", AsyncMock(return_value=["1.119.0", "1.120.3"])
        ):
            version = await resolve_version("OpenUI5", "1.120", cwd=project_dir, home_dir=home_dir)

        assert version == "1.120.3"
