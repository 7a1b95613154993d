"""
Pytest configuration and shared fixtures for FrameworkKit tests.
"""

import pytest
from pathlib import Path


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch):
    """Keep tests away from the user's configuration and home directory."""
    monkeypatch.setenv("FRAMEWORKKIT_CONFIG", str(tmp_path / "frameworkkit.yaml"))
    monkeypatch.delenv("FRAMEWORKKIT_HOME", raising=False)
    monkeypatch.delenv("FRAMEWORKKIT_MAVEN_SNAPSHOT_ENDPOINT", raising=False)
    for key in ("NPM_CONFIG_USERCONFIG", "npm_config_registry", "NPM_CONFIG_REGISTRY"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def home_dir(tmp_path: Path) -> Path:
    """FrameworkKit home directory below the test's temp dir."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Empty project directory used as working directory."""
    project = tmp_path / "project"
    project.mkdir()
    return project
