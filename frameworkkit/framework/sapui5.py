"""
SAPUI5 libraries from the npm registry.

Library metadata comes from the ``@sapui5/distribution-metadata`` package
of the requested version, which is installed first.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from frameworkkit.core.interfaces import LibrarySource, VersionCatalog
from frameworkkit.framework.dist_metadata import DIST_PKG_NAME, DistributionMetadata
from frameworkkit.framework.models import (
    InstalledPackage,
    LibraryHandle,
    PackageCoordinates,
)
from frameworkkit.framework.npm.installer import NpmInstaller

logger = logging.getLogger(__name__)


class SAPUI5Source(VersionCatalog, LibrarySource):
    """Provides SAPUI5 libraries of one version."""

    framework_name = "SAPUI5"
    minimum_version = "1.76.0"

    def __init__(
        self,
        cwd: Union[str, Path],
        home_dir: Union[str, Path],
        version: Optional[str] = None,
        installer: Optional[NpmInstaller] = None,
    ):
        self.version = version
        self.installer = installer or NpmInstaller(cwd=cwd, home_dir=home_dir)
        self._dist_metadata: Optional["asyncio.Future[DistributionMetadata]"] = None

    async def fetch_all_versions(self) -> List[str]:
        return await asyncio.to_thread(self.installer.fetch_package_versions, DIST_PKG_NAME)

    async def fetch_all_tags(self) -> Optional[Dict[str, str]]:
        return await asyncio.to_thread(self.installer.fetch_package_dist_tags, DIST_PKG_NAME)

    def load_dist_metadata(self) -> "asyncio.Future[DistributionMetadata]":
        """Install and read the distribution metadata once per instance."""
        if self._dist_metadata is None:
            self._dist_metadata = asyncio.ensure_future(self._load_dist_metadata())
        return self._dist_metadata

    async def _load_dist_metadata(self) -> DistributionMetadata:
        logger.debug(f"Installing {DIST_PKG_NAME} in version {self.version}...")
        installed = await asyncio.to_thread(
            self.installer.install_package, PackageCoordinates(DIST_PKG_NAME, self.version)
        )
        return await asyncio.to_thread(DistributionMetadata.from_package, installed.pkg_path)

    async def _install_library(self, library_name: str) -> InstalledPackage:
        dist_metadata = await self.load_dist_metadata()
        library = dist_metadata.get_library(library_name)
        coordinates = PackageCoordinates(library["npmPackageName"], library["version"])
        return await asyncio.to_thread(self.installer.install_package, coordinates)

    async def _get_library_metadata(self, library_name: str):
        dist_metadata = await self.load_dist_metadata()
        return dist_metadata.get_library_metadata(library_name)

    def handle_library(self, library_name: str) -> LibraryHandle:
        return LibraryHandle(
            metadata=asyncio.ensure_future(self._get_library_metadata(library_name)),
            install=asyncio.ensure_future(self._install_library(library_name)),
        )

    async def is_known_library(self, library_name: str) -> bool:
        return library_name in await self.load_dist_metadata()
