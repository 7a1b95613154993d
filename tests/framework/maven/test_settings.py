"""
Unit tests for snapshot endpoint discovery.
"""

from unittest.mock import patch

import pytest

from frameworkkit.config.configuration import Configuration
from frameworkkit.core.exceptions import ConfigurationError
from frameworkkit.framework.maven.installer import SNAPSHOT_ENDPOINT_ENV
from frameworkkit.framework.maven.settings import (
    read_snapshot_url_from_settings,
    resolve_snapshot_endpoint_url,
)

SETTINGS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<settings xmlns="http://maven.apache.org/SETTINGS/1.0.0">
  <profiles>
    <profile>
      <id>release.build</id>
      <repositories>
        <repository><url>https://repo.example.com/releases/</url></repository>
      </repositories>
    </profile>
    <profile>
      <id>snapshot.build</id>
      <repositories>
        <repository><url>https://repo.example.com/repositories/</url></repository>
      </repositories>
      <pluginRepositories>
        <pluginRepository><url>https://repo.example.com/snapshots/</url></pluginRepository>
      </pluginRepositories>
    </profile>
  </profiles>
</settings>
"""


@pytest.fixture
def settings_xml(tmp_path):
    path = tmp_path / "settings.xml"
    path.write_text(SETTINGS_XML)
    return path


class TestReadSnapshotUrl:
    """Tests for read_snapshot_url_from_settings."""

    def test_plugin_repository_preferred(self, settings_xml):
        """Test the plugin repository of the snapshot profile is used."""
        assert read_snapshot_url_from_settings(settings_xml) == (
            "https://repo.example.com/snapshots/"
        )

    def test_repository_fallback(self, tmp_path):
        """Test repositories are used without plugin repositories."""
        path = tmp_path / "settings.xml"
        path.write_text(
            "<settings><profiles><profile><id>snapshot.build</id>"
            "<repositories><repository><url>https://r/</url></repository></repositories>"
            "</profile></profiles></settings>"
        )

        assert read_snapshot_url_from_settings(path) == "https://r/"

    def test_missing_profile(self, tmp_path):
        """Test None without a snapshot profile."""
        path = tmp_path / "settings.xml"
        path.write_text("<settings><profiles/></settings>")

        assert read_snapshot_url_from_settings(path) is None

    def test_missing_file(self, tmp_path):
        """Test None without a settings file."""
        assert read_snapshot_url_from_settings(tmp_path / "missing.xml") is None

    def test_invalid_xml(self, tmp_path):
        """Test malformed settings raise ConfigurationError."""
        path = tmp_path / "settings.xml"
        path.write_text("<settings>")

        with pytest.raises(ConfigurationError):
            read_snapshot_url_from_settings(path)


class TestResolveSnapshotEndpointUrl:
    """Tests for resolve_snapshot_endpoint_url precedence."""

    def test_configured_url(self, tmp_path, settings_xml, monkeypatch):
        """Test the configuration wins over the environment."""
        config_path = tmp_path / "config.yaml"
        Configuration(maven_snapshot_endpoint_url="https://configured/").to_file(config_path)
        monkeypatch.setenv(SNAPSHOT_ENDPOINT_ENV, "https://env/")

        assert resolve_snapshot_endpoint_url(settings_xml, config_path=config_path) == (
            "https://configured/"
        )

    def test_environment_url(self, tmp_path, settings_xml, monkeypatch):
        """Test the environment variable is used without configuration."""
        monkeypatch.setenv(SNAPSHOT_ENDPOINT_ENV, "https://env/")

        assert (
            resolve_snapshot_endpoint_url(settings_xml, config_path=tmp_path / "c.yaml")
            == "https://env/"
        )

    def test_non_interactive_skips_settings(self, tmp_path, settings_xml):
        """Test settings.xml is not used without a terminal."""
        with patch(
            "frameworkkit.framework.maven.settings.is_interactive", return_value=False
        ):
            url = resolve_snapshot_endpoint_url(settings_xml, config_path=tmp_path / "c.yaml")

        assert url is None

    def test_confirmed_url_saved(self, tmp_path, settings_xml):
        """Test a confirmed settings.xml URL is saved to the configuration."""
        config_path = tmp_path / "c.yaml"
        with patch(
            "frameworkkit.framework.maven.settings.is_interactive", return_value=True
        ), patch(
            "frameworkkit.framework.maven.settings.confirm", return_value=True
        ) as mock_confirm:
            url = resolve_snapshot_endpoint_url(settings_xml, config_path=config_path)

        assert url == "https://repo.example.com/snapshots/"
        mock_confirm.assert_called_once()
        assert Configuration.from_file(config_path).maven_snapshot_endpoint_url == url

    def test_declined_url_not_saved(self, tmp_path, settings_xml):
        """Test a declined URL is neither returned nor saved."""
        config_path = tmp_path / "c.yaml"
        with patch(
            "frameworkkit.framework.maven.settings.is_interactive", return_value=True
        ), patch("frameworkkit.framework.maven.settings.confirm", return_value=False):
            url = resolve_snapshot_endpoint_url(settings_xml, config_path=config_path)

        assert url is None
        assert not config_path.exists()

    def test_skip_confirmation(self, tmp_path, settings_xml):
        """Test skip_confirmation uses settings.xml without asking."""
        config_path = tmp_path / "c.yaml"
        with patch("frameworkkit.framework.maven.settings.confirm") as mock_confirm:
            url = resolve_snapshot_endpoint_url(
                settings_xml, skip_confirmation=True, config_path=config_path
            )

        assert url == "https://repo.example.com/snapshots/"
        mock_confirm.assert_not_called()
        assert config_path.exists()
