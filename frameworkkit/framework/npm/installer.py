"""
Installer for framework packages published to an npm registry.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from frameworkkit.core.exceptions import PackageInstallError
from frameworkkit.core.filesystem import FilesystemError, promote_directory, safe_rmtree
from frameworkkit.core.interfaces import PackageInstaller
from frameworkkit.core.locking import LockManager
from frameworkkit.framework.installer import InstallLayout
from frameworkkit.framework.models import InstalledPackage, PackageCoordinates
from frameworkkit.framework.npm.registry import NpmRegistry

logger = logging.getLogger(__name__)


class NpmInstaller(PackageInstaller):
    """
    Installs npm packages into ``<home>/framework/packages``.

    Example:
        >>> installer = NpmInstaller(cwd=Path.cwd(), home_dir=Path.home() / ".frameworkkit")
        >>> installer.install_package(PackageCoordinates("@openui5/sap.m", "1.120.0"))
        InstalledPackage(pkg_path=PosixPath('.../packages/@openui5/sap.m/1.120.0'))
    """

    def __init__(
        self,
        cwd: Union[str, Path],
        home_dir: Union[str, Path],
        registry: Optional[NpmRegistry] = None,
        lock_manager: Optional[LockManager] = None,
    ):
        self.layout = InstallLayout(home_dir, lock_manager=lock_manager)
        self.registry = registry or NpmRegistry(
            cwd=cwd, cache_dir=self.layout.dirs.cacache
        )
        logger.debug(f"Installing to: {self.layout.dirs.packages}")

    def fetch_package_versions(self, pkg_name: str) -> List[str]:
        packument = self.registry.request_package_packument(pkg_name)
        return list((packument.get("versions") or {}).keys())

    def fetch_package_dist_tags(self, pkg_name: str) -> Dict[str, str]:
        packument = self.registry.request_package_packument(pkg_name)
        return dict(packument.get("dist-tags") or {})

    def package_exists(self, pkg_name: str) -> bool:
        return self.registry.package_exists(pkg_name)

    def fetch_package_manifest(self, coordinates: PackageCoordinates) -> Dict[str, Any]:
        """
        Return name, dependencies and devDependencies of a package version.

        An installed copy is preferred over a registry request.
        """
        target_dir = self.get_target_dir(coordinates)
        manifest_path = target_dir / "package.json"
        try:
            with open(manifest_path, "r", encoding="utf-8") as f:
                manifest = json.load(f)
        except FileNotFoundError:
            manifest = self.registry.request_package_manifest(
                coordinates.pkg_name, coordinates.version
            )
        except (OSError, json.JSONDecodeError) as e:
            raise PackageInstallError(f"Failed to read {manifest_path}: {e}") from e

        return {
            "name": manifest.get("name"),
            "dependencies": dict(manifest.get("dependencies") or {}),
            "devDependencies": dict(manifest.get("devDependencies") or {}),
        }

    def get_target_dir(self, coordinates: PackageCoordinates) -> Path:
        return self.layout.get_target_dir_for_package(
            coordinates.pkg_name, coordinates.version
        )

    def is_installed(self, target_dir: Path) -> bool:
        return (target_dir / "package.json").exists()

    def install_package(self, coordinates: PackageCoordinates) -> InstalledPackage:
        """
        Install a package unless it is installed already.

        Raises:
            RegistryError: If the package cannot be fetched
            PackageInstallError: If the staged package cannot be promoted
            LockTimeoutError: If another process holds the package lock
        """
        pkg_name, version = coordinates.pkg_name, coordinates.version
        target_dir = self.get_target_dir(coordinates)

        if self.is_installed(target_dir):
            logger.debug(f"Already installed: {pkg_name} in version {version}")
            return InstalledPackage(pkg_path=target_dir)

        with self.layout.lock_manager.named_lock(f"package-{pkg_name}@{version}"):
            # Another process may have finished while we were waiting
            if self.is_installed(target_dir):
                logger.debug(f"Already installed: {pkg_name} in version {version}")
                return InstalledPackage(pkg_path=target_dir)

            logger.info(f"Installing missing package {coordinates.log_id}...")
            staging_dir = self.layout.get_staging_dir_for_package(pkg_name, version)
            try:
                safe_rmtree(staging_dir)
                safe_rmtree(target_dir)
            except FilesystemError as e:
                raise PackageInstallError(
                    f"Failed to clean up directories of {coordinates.log_id}: {e}"
                ) from e

            logger.debug(f"Installing {pkg_name} in version {version} to {staging_dir}...")
            self.registry.extract_package(pkg_name, version, staging_dir)

            logger.debug(f"Promoting staging directory {staging_dir} to {target_dir}...")
            try:
                promote_directory(staging_dir, target_dir)
            except FilesystemError as e:
                raise PackageInstallError(str(e)) from e

        return InstalledPackage(pkg_path=target_dir)
