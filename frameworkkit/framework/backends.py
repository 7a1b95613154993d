"""
Backend selection.

A framework name and a version specifier select one of the backends:

=================  =====================  ==========================
Framework          Version                Backend
=================  =====================  ==========================
OpenUI5            any                    ``Backend.OPENUI5_NPM``
SAPUI5             ends with -SNAPSHOT    ``Backend.SAPUI5_MAVEN_SNAPSHOT``
SAPUI5             otherwise              ``Backend.SAPUI5_NPM``
=================  =====================  ==========================
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from frameworkkit.core.directory import get_home_dir
from frameworkkit.core.exceptions import ConfigurationError
from frameworkkit.framework.cache_mode import CacheMode
from frameworkkit.framework.openui5 import OpenUI5Source
from frameworkkit.framework.resolver import LibraryResolver, ProvidedMetadata
from frameworkkit.framework.sapui5 import SAPUI5Source
from frameworkkit.framework.sapui5_maven_snapshot import SAPUI5MavenSnapshotSource
from frameworkkit.framework.versions import is_snapshot_version_or_range
from frameworkkit.framework.versions import resolve_version as resolve_catalog_version

logger = logging.getLogger(__name__)

FRAMEWORK_NAMES = ("OpenUI5", "SAPUI5")


class Backend(Enum):
    OPENUI5_NPM = "openui5-npm"
    SAPUI5_NPM = "sapui5-npm"
    SAPUI5_MAVEN_SNAPSHOT = "sapui5-maven-snapshot"


def get_backend(framework_name: str, version: Optional[str] = None) -> Backend:
    """
    Select the backend for a framework and version.

    Raises:
        ConfigurationError: If the framework name is not supported
    """
    if framework_name not in FRAMEWORK_NAMES:
        raise ConfigurationError(
            f"Unknown framework name '{framework_name}'. "
            f"Supported: {', '.join(FRAMEWORK_NAMES)}"
        )
    if framework_name == "OpenUI5":
        return Backend.OPENUI5_NPM
    if version and is_snapshot_version_or_range(version):
        return Backend.SAPUI5_MAVEN_SNAPSHOT
    return Backend.SAPUI5_NPM


def create_source(
    backend: Backend,
    cwd: Optional[Union[str, Path]] = None,
    home_dir: Optional[Union[str, Path]] = None,
    version: Optional[str] = None,
    snapshot_endpoint_url: Optional[str] = None,
    cache_mode: Optional[Union[CacheMode, str]] = None,
    sources: bool = False,
):
    """Build the version catalog and library source of a backend."""
    cwd = Path(cwd).resolve() if cwd else Path.cwd()
    home_dir = get_home_dir(home_dir)

    if backend == Backend.OPENUI5_NPM:
        return OpenUI5Source(cwd=cwd, home_dir=home_dir, version=version)
    if backend == Backend.SAPUI5_NPM:
        return SAPUI5Source(cwd=cwd, home_dir=home_dir, version=version)

    if cache_mode is None:
        from frameworkkit.config.configuration import Configuration

        cache_mode = Configuration.from_file().cache_mode or CacheMode.DEFAULT
    return SAPUI5MavenSnapshotSource(
        cwd=cwd,
        home_dir=home_dir,
        version=version,
        snapshot_endpoint_url=snapshot_endpoint_url,
        cache_mode=cache_mode,
        sources=sources,
    )


def create_resolver(
    framework_name: str,
    version: Optional[str],
    cwd: Optional[Union[str, Path]] = None,
    home_dir: Optional[Union[str, Path]] = None,
    provided_library_metadata: Optional[ProvidedMetadata] = None,
    snapshot_endpoint_url: Optional[str] = None,
    cache_mode: Optional[Union[CacheMode, str]] = None,
    sources: bool = False,
) -> LibraryResolver:
    """
    Build a resolver for a concrete framework version.

    Example:
        >>> resolver = create_resolver("OpenUI5", "1.120.0")
        >>> result = await resolver.install(["sap.m"])
    """
    backend = get_backend(framework_name, version)
    logger.debug(f"Using backend {backend.value} for {framework_name} {version}")
    source = create_source(
        backend,
        cwd=cwd,
        home_dir=home_dir,
        version=version,
        snapshot_endpoint_url=snapshot_endpoint_url,
        cache_mode=cache_mode,
        sources=sources,
    )
    return LibraryResolver(source, provided_library_metadata=provided_library_metadata)


async def resolve_version(
    framework_name: str,
    specifier: Optional[str],
    cwd: Optional[Union[str, Path]] = None,
    home_dir: Optional[Union[str, Path]] = None,
    snapshot_endpoint_url: Optional[str] = None,
) -> str:
    """
    Resolve a version specifier for a framework.

    Raises:
        VersionResolutionError: If the specifier cannot be resolved
    """
    backend = get_backend(framework_name, specifier)
    catalog = create_source(
        backend, cwd=cwd, home_dir=home_dir, snapshot_endpoint_url=snapshot_endpoint_url
    )
    return await resolve_catalog_version(catalog, specifier)
