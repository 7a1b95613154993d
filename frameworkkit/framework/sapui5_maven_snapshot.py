"""
SAPUI5 SNAPSHOT libraries from a Maven repository.

The distribution metadata is deployed as ``com.sap.ui5.dist:sapui5-sdk-dist``
and names the Maven coordinates (GAV) of every library. Libraries are
installed either as sources or prebuilt; prebuilt packages carry a build
manifest and get a ``-prebuilt`` suffix so they never collide with sources.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from frameworkkit.core.exceptions import SnapshotEndpointError
from frameworkkit.core.interfaces import LibrarySource, VersionCatalog
from frameworkkit.framework.cache_mode import CacheMode
from frameworkkit.framework.dist_metadata import DIST_PKG_NAME, DistributionMetadata
from frameworkkit.framework.maven.installer import MavenInstaller
from frameworkkit.framework.maven.settings import resolve_snapshot_endpoint_url
from frameworkkit.framework.models import (
    InstalledPackage,
    LibraryHandle,
    LibraryMetadata,
    MavenPackageCoordinates,
)

logger = logging.getLogger(__name__)

DIST_GROUP_ID = "com.sap.ui5.dist"
DIST_ARTIFACT_ID = "sapui5-sdk-dist"
SOURCES_CLASSIFIER = "npm-sources"
PREBUILT_SUFFIX = "-prebuilt"


class SAPUI5MavenSnapshotSource(VersionCatalog, LibrarySource):
    """
    Provides SAPUI5 SNAPSHOT libraries of one version.

    Tags are not supported; ``latest`` and ``latest-snapshot`` resolve to
    the newest SNAPSHOT version.
    """

    framework_name = "SAPUI5"
    minimum_version = None

    def __init__(
        self,
        cwd: Union[str, Path],
        home_dir: Union[str, Path],
        version: Optional[str] = None,
        snapshot_endpoint_url: Optional[str] = None,
        cache_mode: Union[CacheMode, str] = CacheMode.DEFAULT,
        sources: bool = False,
        installer: Optional[MavenInstaller] = None,
    ):
        self.version = version
        self.sources = sources
        if installer is None:
            snapshot_endpoint_url = snapshot_endpoint_url or resolve_snapshot_endpoint_url()
            if not snapshot_endpoint_url:
                raise SnapshotEndpointError(
                    "Maven snapshot endpoint URL could not be resolved. "
                    "Set 'maven_snapshot_endpoint_url' in the configuration file or the "
                    "FRAMEWORKKIT_MAVEN_SNAPSHOT_ENDPOINT environment variable."
                )
            installer = MavenInstaller(
                cwd=cwd,
                home_dir=home_dir,
                endpoint_url=snapshot_endpoint_url,
                cache_mode=cache_mode,
            )
        self.installer = installer
        self._dist_metadata: Optional["asyncio.Future[DistributionMetadata]"] = None

    async def fetch_all_versions(self) -> List[str]:
        return await asyncio.to_thread(
            self.installer.fetch_package_versions, DIST_GROUP_ID, DIST_ARTIFACT_ID
        )

    async def fetch_all_tags(self) -> Optional[Dict[str, str]]:
        return None

    def load_dist_metadata(self) -> "asyncio.Future[DistributionMetadata]":
        """Install and read the distribution metadata once per instance."""
        if self._dist_metadata is None:
            self._dist_metadata = asyncio.ensure_future(self._load_dist_metadata())
        return self._dist_metadata

    async def _load_dist_metadata(self) -> DistributionMetadata:
        logger.debug(f"Installing {DIST_ARTIFACT_ID} in version {self.version}...")
        installed = await asyncio.to_thread(
            self.installer.install_package,
            MavenPackageCoordinates(
                pkg_name=DIST_PKG_NAME,
                group_id=DIST_GROUP_ID,
                artifact_id=DIST_ARTIFACT_ID,
                version=self.version,
                classifier=SOURCES_CLASSIFIER,
                extension="zip",
            ),
        )
        return await asyncio.to_thread(DistributionMetadata.from_package, installed.pkg_path)

    def _get_package_name(self, dist_metadata: DistributionMetadata, library_name: str) -> str:
        pkg_name = dist_metadata.get_library(library_name)["npmPackageName"]
        return pkg_name if self.sources else pkg_name + PREBUILT_SUFFIX

    async def _get_library_metadata(self, library_name: str) -> LibraryMetadata:
        dist_metadata = await self.load_dist_metadata()
        dist_metadata.get_gav(library_name)
        return dist_metadata.get_library_metadata(
            library_name, pkg_name=self._get_package_name(dist_metadata, library_name)
        )

    async def _install_library(self, library_name: str) -> InstalledPackage:
        dist_metadata = await self.load_dist_metadata()
        group_id, artifact_id, _ = dist_metadata.get_gav(library_name)
        coordinates = MavenPackageCoordinates(
            pkg_name=self._get_package_name(dist_metadata, library_name),
            group_id=group_id,
            artifact_id=artifact_id,
            version=dist_metadata.get_library(library_name)["version"],
            classifier=SOURCES_CLASSIFIER if self.sources else None,
            extension="zip" if self.sources else "jar",
        )
        return await asyncio.to_thread(self.installer.install_package, coordinates)

    def handle_library(self, library_name: str) -> LibraryHandle:
        return LibraryHandle(
            metadata=asyncio.ensure_future(self._get_library_metadata(library_name)),
            install=asyncio.ensure_future(self._install_library(library_name)),
        )

    async def is_known_library(self, library_name: str) -> bool:
        return library_name in await self.load_dist_metadata()
