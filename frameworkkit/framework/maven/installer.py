"""
Installer for framework artifacts deployed to a Maven snapshot repository.

Snapshot versions are mutable: each deployment gets a new *revision*. The
installer caches the latest known revision per artifact coordinate in a
``LocalMetadata`` JSON document and refreshes it from the repository after
the cache time expires. Superseded revisions are kept as fallbacks, but
only the most recent few; older ones are deleted from disk.
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from frameworkkit.core.exceptions import (
    ArtifactNotCachedError,
    InstallerError,
    MetadataIntegrityError,
    PackageInstallError,
    RegistryConnectionError,
    SnapshotEndpointError,
)
from frameworkkit.core.filesystem import (
    FilesystemError,
    atomic_write,
    extract_zip,
    promote_directory,
    safe_rmtree,
)
from frameworkkit.core.interfaces import PackageInstaller
from frameworkkit.core.locking import LockManager
from frameworkkit.framework.cache_mode import CacheMode
from frameworkkit.framework.installer import InstallLayout, is_project_installed
from frameworkkit.framework.maven.registry import MavenRegistry
from frameworkkit.framework.models import (
    ArtifactCoordinates,
    InstalledPackage,
    MavenPackageCoordinates,
)

logger = logging.getLogger(__name__)

SNAPSHOT_ENDPOINT_ENV = "FRAMEWORKKIT_MAVEN_SNAPSHOT_ENDPOINT"

STANDARD_CACHE_TIME = 9 * 60 * 60
RELAXED_CACHE_TIME = 4 * 60 * 60
RELAXED_MAX_CACHE_TIME = 6 * 24 * 60 * 60

MAX_STALE_REVISIONS = 3


@dataclass
class LocalMetadata:
    """
    Cached repository metadata of one artifact coordinate.

    Timestamps are POSIX seconds. ``last_check`` is the last time a refresh
    was attempted, ``last_update`` the last time the local data changed and
    ``last_repository_update`` the deployment time reported by the
    repository.
    """

    last_check: float = 0
    last_update: float = 0
    last_repository_update: float = 0
    revision: Optional[str] = None
    stale_revisions: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "LocalMetadata":
        return cls(
            last_check=data.get("lastCheck", 0),
            last_update=data.get("lastUpdate", 0),
            last_repository_update=data.get("lastRepositoryUpdate", 0),
            revision=data.get("revision"),
            stale_revisions=list(data.get("staleRevisions") or []),
        )

    def to_dict(self) -> dict:
        return {
            "lastCheck": self.last_check,
            "lastUpdate": self.last_update,
            "lastRepositoryUpdate": self.last_repository_update,
            "revision": self.revision,
            "staleRevisions": list(self.stale_revisions),
        }


@dataclass
class InstalledArtifact:
    """A downloaded artifact file."""

    artifact_path: Path

    def remove(self):
        """Delete the artifact file once it is no longer needed."""
        self.artifact_path.unlink(missing_ok=True)


class MavenInstaller(PackageInstaller):
    """
    Installs Maven snapshot artifacts and the packages contained in them.

    Example:
        >>> installer = MavenInstaller(
        ...     cwd=Path.cwd(),
        ...     home_dir=Path.home() / ".frameworkkit",
        ...     endpoint_url="https://repository.corp/build-snapshots/",
        ... )
        >>> installer.install_package(MavenPackageCoordinates(
        ...     pkg_name="@sapui5/sap.m",
        ...     group_id="com.sap.ui5",
        ...     artifact_id="sap.m",
        ...     version="1.120.0-SNAPSHOT",
        ...     classifier="npm-sources",
        ...     extension="zip",
        ... ))
    """

    def __init__(
        self,
        cwd: Union[str, Path],
        home_dir: Union[str, Path],
        endpoint_url: Optional[str] = None,
        cache_mode: Union[CacheMode, str] = CacheMode.DEFAULT,
        registry: Optional[MavenRegistry] = None,
        lock_manager: Optional[LockManager] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cwd = Path(cwd)
        self.layout = InstallLayout(home_dir, lock_manager=lock_manager)
        self.cache_mode = CacheMode.from_value(cache_mode)
        self._clock = clock

        if registry is None:
            endpoint_url = endpoint_url or os.environ.get(SNAPSHOT_ENDPOINT_ENV)
            if not endpoint_url:
                raise SnapshotEndpointError(
                    "MavenInstaller: Missing repository endpoint URL"
                )
            registry = MavenRegistry(endpoint_url)
        self.registry = registry

        logger.debug(f"Installing Maven artifacts to: {self.layout.dirs.artifacts}")
        logger.debug(f"Installing packages to: {self.layout.dirs.packages}")
        logger.debug(f"Caching mode: {self.cache_mode.value}")

    def fetch_package_versions(self, group_id: str, artifact_id: str) -> List[str]:
        """
        List the SNAPSHOT versions of an artifact.

        Raises:
            MetadataIntegrityError: If the repository lists no versions
        """
        metadata = self.registry.request_maven_metadata(group_id, artifact_id)
        if metadata.versions is None:
            raise MetadataIntegrityError(
                f"Missing Maven metadata for artifact {group_id}:{artifact_id}"
            )
        return [version for version in metadata.versions if version.endswith("-SNAPSHOT")]

    # ------------------------------------------------------------------
    # Metadata cache
    # ------------------------------------------------------------------

    def _get_metadata_path(self, fs_id: str) -> Path:
        return self.layout.dirs.metadata / f"{fs_id}.json"

    def _read_local_metadata(self, fs_id: str) -> LocalMetadata:
        metadata_path = self._get_metadata_path(fs_id)
        try:
            with open(metadata_path, "r", encoding="utf-8") as f:
                return LocalMetadata.from_dict(json.load(f))
        except FileNotFoundError:
            return LocalMetadata()
        except (OSError, json.JSONDecodeError) as e:
            raise InstallerError(
                f"Failed to read cached metadata {metadata_path}: {e}"
            ) from e

    def _write_local_metadata(self, fs_id: str, metadata: LocalMetadata):
        atomic_write(self._get_metadata_path(fs_id), json.dumps(metadata.to_dict(), indent=2))

    def _fetch_artifact_metadata(
        self, coordinates: ArtifactCoordinates, pkg_name: Optional[str] = None
    ) -> LocalMetadata:
        """
        Return cached metadata of an artifact, refreshing it when due.

        Args:
            coordinates: Artifact coordinates with a SNAPSHOT version
            pkg_name: Package extracted from the artifact, if any. Its
                directories are removed together with evicted revisions.

        Raises:
            ArtifactNotCachedError: If cache mode is FORCE and nothing is cached
            RegistryError: If the refresh fails
        """
        fs_id = coordinates.fs_id()
        log_id = coordinates.log_id()

        with self.layout.lock_manager.named_lock(f"metadata-{fs_id}"):
            local_metadata = self._read_local_metadata(fs_id)

            if self.cache_mode == CacheMode.FORCE:
                if not local_metadata.revision:
                    raise ArtifactNotCachedError(log_id)
                logger.debug(f"Using metadata for artifact {log_id} from local cache")
                return local_metadata

            # Never move the last check backwards, even if the clock does
            now = max(self._clock(), local_metadata.last_check)
            cache_time = (
                RELAXED_CACHE_TIME
                if self.cache_mode == CacheMode.RELAXED
                else STANDARD_CACHE_TIME
            )
            time_since_last_check = now - local_metadata.last_check

            if not (
                local_metadata.last_check == 0
                or time_since_last_check > cache_time
                or self.cache_mode == CacheMode.OFF
            ):
                logger.debug(f"Using metadata for artifact {log_id} from local cache")
                return local_metadata

            if local_metadata.last_check == 0:
                logger.debug(
                    f"Could not find metadata for artifact {log_id} in local cache. "
                    "Fetching from repository..."
                )
            else:
                logger.debug(
                    f"Refreshing metadata cache for artifact {log_id} "
                    f"(last checked {time_since_last_check:.0f} seconds ago)"
                )

            logger.info(
                f"Attempting to fetch latest metadata for artifact "
                f"{coordinates.artifact_id} version {coordinates.version} "
                "from Maven repository..."
            )
            try:
                last_repository_update, revision = self._get_remote_artifact_metadata(
                    coordinates
                )
            except RegistryConnectionError:
                if not self._may_fall_back_to_cache(local_metadata, now):
                    raise
                logger.info("Could not connect to Maven repository. Falling back to cache...")
            else:
                if revision == local_metadata.revision:
                    logger.info(
                        f"Metadata for artifact {coordinates.artifact_id} "
                        f"version {coordinates.version} is already up-to-date"
                    )
                else:
                    logger.info(
                        f"Retrieved new revision for artifact {coordinates.artifact_id} "
                        f"version {coordinates.version}: {revision}"
                    )
                    self._rotate_revision(local_metadata, revision)
                    self._remove_stale_revisions(local_metadata, coordinates, pkg_name)
                    local_metadata.last_repository_update = last_repository_update
                local_metadata.last_update = now

            local_metadata.last_check = now
            self._write_local_metadata(fs_id, local_metadata)
            return local_metadata

    def _may_fall_back_to_cache(self, local_metadata: LocalMetadata, now: float) -> bool:
        return (
            self.cache_mode == CacheMode.RELAXED
            and bool(local_metadata.revision)
            and now - local_metadata.last_update <= RELAXED_MAX_CACHE_TIME
        )

    def _get_remote_artifact_metadata(
        self, coordinates: ArtifactCoordinates
    ) -> Tuple[float, str]:
        metadata = self.registry.request_maven_metadata(
            coordinates.group_id, coordinates.artifact_id, coordinates.version
        )
        gav = f"{coordinates.group_id}:{coordinates.artifact_id}:{coordinates.version}"
        if not metadata.snapshot_versions:
            raise MetadataIntegrityError(
                f"Missing Maven snapshot metadata for artifact {gav}"
            )

        for deployment in metadata.snapshot_versions:
            if deployment.matches(coordinates.classifier, coordinates.extension):
                logger.debug(
                    f"Retrieved metadata for {coordinates.log_id()}:\n"
                    f"  Last update was at: {deployment.updated.isoformat()}\n"
                    f"  Current deployment version is: {deployment.value}"
                )
                return deployment.updated.timestamp(), deployment.value

        available = ", ".join(
            f"{d.classifier}.{d.extension}" if d.classifier else d.extension
            for d in metadata.snapshot_versions
        )
        raise MetadataIntegrityError(
            f"Could not find deployment {coordinates.classifier}.{coordinates.extension} "
            f"for artifact {gav} in snapshot metadata (available: {available})"
        )

    @staticmethod
    def _rotate_revision(metadata: LocalMetadata, new_revision: str):
        if new_revision in metadata.stale_revisions:
            metadata.stale_revisions.remove(new_revision)
        if metadata.revision and metadata.revision != new_revision:
            if metadata.revision in metadata.stale_revisions:
                metadata.stale_revisions.remove(metadata.revision)
            metadata.stale_revisions.append(metadata.revision)
        metadata.revision = new_revision

    def _remove_stale_revisions(
        self,
        metadata: LocalMetadata,
        coordinates: ArtifactCoordinates,
        pkg_name: Optional[str],
    ):
        if len(metadata.stale_revisions) <= MAX_STALE_REVISIONS:
            return

        logger.info(
            f"Cleaning up stale revisions of artifact {coordinates.artifact_id} "
            f"version {coordinates.version}..."
        )
        while len(metadata.stale_revisions) > MAX_STALE_REVISIONS:
            revision = metadata.stale_revisions.pop(0)
            artifact_path = self.get_target_path_for_artifact(coordinates, revision)
            logger.debug(f"Removing artifact {artifact_path}...")
            artifact_path.unlink(missing_ok=True)

            if pkg_name:
                package_dir = self.layout.get_target_dir_for_package(pkg_name, revision)
                logger.debug(f"Removing package directory {package_dir}...")
                safe_rmtree(package_dir, require_prefix=self.layout.dirs.packages)

    # ------------------------------------------------------------------
    # Installation
    # ------------------------------------------------------------------

    def get_target_path_for_artifact(
        self, coordinates: ArtifactCoordinates, revision: Optional[str] = None
    ) -> Path:
        # Flat hierarchy, artifacts are removed right after extraction
        return self.layout.dirs.artifacts / coordinates.fs_id(revision)

    def get_staging_path_for_artifact(
        self, coordinates: ArtifactCoordinates, revision: Optional[str] = None
    ) -> Path:
        return self.layout.dirs.staging / coordinates.fs_id(revision)

    def is_installed(self, target_dir: Path) -> bool:
        return is_project_installed(target_dir)

    def install_artifact(
        self, coordinates: ArtifactCoordinates, revision: Optional[str] = None
    ) -> InstalledArtifact:
        """
        Download an artifact deployment unless it is present already.

        Args:
            coordinates: Artifact coordinates
            revision: Revision to install; the latest known revision is
                looked up when omitted
        """
        if not revision:
            revision = self._fetch_artifact_metadata(coordinates).revision

        target_path = self.get_target_path_for_artifact(coordinates, revision)
        if target_path.exists():
            logger.debug(f"Already installed: {coordinates.artifact_id} in version {revision}")
            return InstalledArtifact(artifact_path=target_path)

        fs_id = coordinates.fs_id(revision)
        with self.layout.lock_manager.named_lock(f"artifact-{fs_id}"):
            if target_path.exists():
                logger.debug(
                    f"Already installed: {coordinates.artifact_id} in version {revision}"
                )
                return InstalledArtifact(artifact_path=target_path)

            logger.info(f"Installing missing artifact {coordinates.log_id(revision)}...")
            staging_path = self.get_staging_path_for_artifact(coordinates, revision)
            staging_path.unlink(missing_ok=True)
            staging_path.parent.mkdir(parents=True, exist_ok=True)

            logger.debug(
                f"Installing {coordinates.artifact_id} in version "
                f"{coordinates.version} to {staging_path}..."
            )
            self.registry.request_artifact(coordinates, revision, staging_path)

            target_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Promoting artifact from {staging_path} to {target_path}...")
            os.replace(staging_path, target_path)

        return InstalledArtifact(artifact_path=target_path)

    def install_package(self, coordinates: MavenPackageCoordinates) -> InstalledPackage:
        """
        Install the package contained in a Maven artifact.

        The package directory is named after the deployment revision, so a
        new snapshot deployment is installed next to older ones.
        """
        artifact = coordinates.artifact
        pkg_name = coordinates.pkg_name
        revision = self._fetch_artifact_metadata(artifact, pkg_name=pkg_name).revision

        target_dir = self.layout.get_target_dir_for_package(pkg_name, revision)
        if self.is_installed(target_dir):
            logger.debug(f"Already installed: {pkg_name} in SNAPSHOT version {revision}")
            return InstalledPackage(pkg_path=target_dir)

        with self.layout.lock_manager.named_lock(f"package-{pkg_name}@{revision}"):
            if self.is_installed(target_dir):
                logger.debug(
                    f"Already installed: {pkg_name} in SNAPSHOT version {revision}"
                )
                return InstalledPackage(pkg_path=target_dir)

            staging_dir = self.layout.get_staging_dir_for_package(pkg_name, revision)
            try:
                safe_rmtree(staging_dir)
                installed_artifact = self.install_artifact(artifact, revision=revision)

                logger.debug(
                    f"Extracting archive at {installed_artifact.artifact_path} "
                    f"to {staging_dir}..."
                )
                # Prebuilt jars carry the package below META-INF
                extract_zip(
                    installed_artifact.artifact_path,
                    staging_dir,
                    subtree="META-INF" if artifact.extension == "jar" else None,
                )

                safe_rmtree(target_dir)
                logger.debug(f"Promoting staging directory {staging_dir} to {target_dir}...")
                promote_directory(staging_dir, target_dir)
            except FilesystemError as e:
                raise PackageInstallError(
                    f"Failed to install package {pkg_name}@{revision}: {e}"
                ) from e

            installed_artifact.remove()

        return InstalledPackage(pkg_path=target_dir)
