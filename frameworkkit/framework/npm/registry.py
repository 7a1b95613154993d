"""
npm registry client.

Fetches packuments (full package documents) and extracts package tarballs
into a directory, the same way ``npm install`` lays out a package.
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Set, Union

import requests
from requests.exceptions import ConnectionError, RequestException

from frameworkkit.core.download import (
    ChecksumError,
    DownloadConnectionError,
    DownloadError,
    compute_file_hash,
    download_file,
)
from frameworkkit.core.exceptions import (
    PackageNotFoundError,
    RegistryConnectionError,
    RegistryError,
)
from frameworkkit.core.filesystem import FilesystemError, extract_tarball
from frameworkkit.framework.npm.config import NpmConfig, load_npm_config

logger = logging.getLogger(__name__)

# devDependencies are not part of the abbreviated install document
PACKUMENT_HEADERS = {"Accept": "application/json"}


class NpmRegistry:
    """
    Client for an npm compatible registry.

    The npm configuration is loaded lazily from the working directory
    (see :func:`load_npm_config`) unless one is passed in.

    Attributes:
        cwd: Project directory used to look up ``.npmrc``
        cache_dir: Directory holding downloaded tarballs
    """

    def __init__(
        self,
        cwd: Union[str, Path],
        cache_dir: Union[str, Path],
        config: Optional[NpmConfig] = None,
        timeout: int = 60,
    ):
        self.cwd = Path(cwd)
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self._config = config
        self._session: Optional[requests.Session] = None
        self._packuments: Dict[str, Dict[str, Any]] = {}
        self._missing_packages: Set[str] = set()
        self._lock = threading.Lock()

    @property
    def config(self) -> NpmConfig:
        if self._config is None:
            self._config = load_npm_config(self.cwd)
        return self._config

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            session = requests.Session()
            session.proxies.update(self.config.proxies)
            session.verify = self.config.strict_ssl
            self._session = session
        return self._session

    def get_package_url(self, pkg_name: str) -> str:
        # Scoped names are requested as "@scope%2fname"
        return self.config.registry_for(pkg_name) + pkg_name.replace("/", "%2f")

    def _headers_for(self, url: str, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        result = dict(headers or {})
        token = self.config.auth_token_for(url)
        if token:
            result["Authorization"] = f"Bearer {token}"
        return result

    def _connection_error(self, pkg_name: str, error: Exception) -> RegistryConnectionError:
        registry = self.config.registry_for(pkg_name)
        return RegistryConnectionError(
            f"Failed to connect to npm registry at {registry}: {error}. "
            "Please check the correct registry URL is configured and can be reached. "
            "To change it, run: npm config set registry <url>",
            url=registry,
        )

    def request_package_packument(self, pkg_name: str) -> Dict[str, Any]:
        """
        Fetch the full package document of a package.

        Documents are cached for the lifetime of the registry instance.

        Raises:
            RegistryConnectionError: If the registry cannot be reached
            PackageNotFoundError: If the registry does not know the package
            RegistryError: If the request fails
        """
        with self._lock:
            cached = self._packuments.get(pkg_name)
            missing = pkg_name in self._missing_packages
        if cached is not None:
            return cached
        if missing:
            raise PackageNotFoundError(f"Package {pkg_name} not found in registry")

        url = self.get_package_url(pkg_name)
        logger.debug(f"Fetching: {url}")
        try:
            response = self.session.get(
                url, headers=self._headers_for(url, PACKUMENT_HEADERS), timeout=self.timeout
            )
        except ConnectionError as e:
            raise self._connection_error(pkg_name, e) from e
        except RequestException as e:
            raise RegistryError(f"Failed to fetch package {pkg_name}: {e}") from e

        if response.status_code == 404:
            with self._lock:
                self._missing_packages.add(pkg_name)
            raise PackageNotFoundError(
                f"Failed to fetch package {pkg_name}: "
                f"[HTTP Error] {response.status_code} {response.reason}"
            )
        if not response.ok:
            raise RegistryError(
                f"Failed to fetch package {pkg_name}: "
                f"[HTTP Error] {response.status_code} {response.reason}"
            )
        try:
            packument = response.json()
        except ValueError as e:
            raise RegistryError(
                f"Failed to fetch package {pkg_name}: invalid JSON response"
            ) from e

        with self._lock:
            self._packuments[pkg_name] = packument
        return packument

    def package_exists(self, pkg_name: str) -> bool:
        """
        Check whether the registry publishes a package.

        Only a 404 response means "no"; other failures propagate.
        """
        try:
            self.request_package_packument(pkg_name)
        except PackageNotFoundError:
            return False
        return True

    def request_package_manifest(self, pkg_name: str, version: str) -> Dict[str, Any]:
        """
        Return the manifest of one published version.

        Raises:
            RegistryError: If the version is not published
        """
        packument = self.request_package_packument(pkg_name)
        manifest = (packument.get("versions") or {}).get(version)
        if manifest is None:
            raise RegistryError(
                f"No matching version found for {pkg_name}@{version}"
            )
        return manifest

    def extract_package(
        self, pkg_name: str, version: str, target_dir: Union[str, Path]
    ) -> Path:
        """
        Download (or reuse a cached) tarball and extract it to ``target_dir``.

        Raises:
            RegistryConnectionError: If the registry cannot be reached
            RegistryError: If fetching or extracting fails
        """
        target_dir = Path(target_dir)
        try:
            tarball = self._fetch_tarball(pkg_name, version)
            extract_tarball(tarball, target_dir, strip_components=1)
        except RegistryConnectionError:
            raise
        except DownloadConnectionError as e:
            raise self._connection_error(pkg_name, e) from e
        except (RegistryError, DownloadError, ChecksumError, FilesystemError) as e:
            raise RegistryError(
                f"Failed to extract package {pkg_name}@{version}: {e}"
            ) from e
        return target_dir

    def _fetch_tarball(self, pkg_name: str, version: str) -> Path:
        manifest = self.request_package_manifest(pkg_name, version)
        dist = manifest.get("dist") or {}
        url = dist.get("tarball")
        if not url:
            raise RegistryError(f"Manifest of {pkg_name}@{version} has no tarball URL")
        shasum = dist.get("shasum")

        cache_path = self.cache_dir / f"{pkg_name.replace('/', '-')}-{version}.tgz"
        if cache_path.exists():
            if not shasum or compute_file_hash(cache_path, "sha1") == shasum.lower():
                logger.debug(f"Using cached tarball {cache_path}")
                return cache_path
            logger.warning(f"Cached tarball {cache_path} is corrupted, re-downloading")

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        temp_fd, temp_name = tempfile.mkstemp(
            dir=self.cache_dir, prefix=f".{cache_path.name}.", suffix=".tmp"
        )
        os.close(temp_fd)
        temp_path = Path(temp_name)
        try:
            download_file(
                url,
                temp_path,
                expected_hash=shasum,
                hash_algorithm="sha1",
                session=self.session,
                headers=self._headers_for(url),
                timeout=self.timeout,
            )
            temp_path.replace(cache_path)
        finally:
            temp_path.unlink(missing_ok=True)
        return cache_path
