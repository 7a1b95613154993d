"""
OpenUI5 libraries from the npm registry.

Every library is published as ``@openui5/<library>``. Its npm
``dependencies`` are the library's dependencies and its
``devDependencies`` are its optional dependencies.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from frameworkkit.core.interfaces import LibrarySource, VersionCatalog
from frameworkkit.framework.models import (
    LibraryHandle,
    LibraryMetadata,
    PackageCoordinates,
)
from frameworkkit.framework.npm.installer import NpmInstaller

logger = logging.getLogger(__name__)

OPENUI5_SCOPE = "@openui5/"
OPENUI5_CORE_PACKAGE = "@openui5/sap.ui.core"


class OpenUI5Source(VersionCatalog, LibrarySource):
    """
    Provides OpenUI5 libraries of one version.

    The version catalog and tags are those of ``@openui5/sap.ui.core``.
    """

    framework_name = "OpenUI5"
    minimum_version = "1.52.5"

    def __init__(
        self,
        cwd: Union[str, Path],
        home_dir: Union[str, Path],
        version: Optional[str] = None,
        installer: Optional[NpmInstaller] = None,
    ):
        self.version = version
        self.installer = installer or NpmInstaller(cwd=cwd, home_dir=home_dir)

    @staticmethod
    def get_package_name(library_name: str) -> str:
        return f"{OPENUI5_SCOPE}{library_name}"

    async def fetch_all_versions(self) -> List[str]:
        return await asyncio.to_thread(
            self.installer.fetch_package_versions, OPENUI5_CORE_PACKAGE
        )

    async def fetch_all_tags(self) -> Optional[Dict[str, str]]:
        return await asyncio.to_thread(
            self.installer.fetch_package_dist_tags, OPENUI5_CORE_PACKAGE
        )

    def _library_names(self, dependencies: Dict[str, str]) -> List[str]:
        names = []
        for pkg_name in dependencies:
            if pkg_name.startswith(OPENUI5_SCOPE):
                names.append(pkg_name[len(OPENUI5_SCOPE):])
        return names

    async def _get_library_metadata(self, library_name: str) -> LibraryMetadata:
        coordinates = PackageCoordinates(self.get_package_name(library_name), self.version)
        manifest = await asyncio.to_thread(self.installer.fetch_package_manifest, coordinates)
        return LibraryMetadata(
            id=manifest.get("name") or coordinates.pkg_name,
            version=self.version,
            dependencies=self._library_names(manifest["dependencies"]),
            optional_dependencies=self._library_names(manifest["devDependencies"]),
        )

    def handle_library(self, library_name: str) -> LibraryHandle:
        coordinates = PackageCoordinates(self.get_package_name(library_name), self.version)
        return LibraryHandle(
            metadata=asyncio.ensure_future(self._get_library_metadata(library_name)),
            install=asyncio.ensure_future(
                asyncio.to_thread(self.installer.install_package, coordinates)
            ),
        )

    async def is_known_library(self, library_name: str) -> bool:
        # Any library published under the OpenUI5 scope
        return await asyncio.to_thread(
            self.installer.package_exists, self.get_package_name(library_name)
        )
