"""
Capability interfaces for FrameworkKit.

Concrete backends implement these interfaces and are composed into the
resolver instead of extending a common base class. A backend that serves
both version lookups and libraries (all shipped backends do) implements
both :class:`VersionCatalog` and :class:`LibrarySource`.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from frameworkkit.framework.models import InstalledPackage, LibraryHandle


class VersionCatalog(ABC):
    """
    Remote listing of the versions a framework is published in.

    Attributes:
        framework_name: Display name used in error messages
        minimum_version: Oldest supported version, if any
    """

    framework_name: str = ""
    minimum_version: Optional[str] = None

    @abstractmethod
    async def fetch_all_versions(self) -> List[str]:
        """
        Fetch all published versions.

        Returns:
            List of version strings in registry order
        """
        pass

    @abstractmethod
    async def fetch_all_tags(self) -> Optional[Dict[str, str]]:
        """
        Fetch distribution tags.

        Returns:
            Mapping of tag name to version, or None if the backend does not
            support tags
        """
        pass


class LibrarySource(ABC):
    """Provides metadata and installation for the libraries of one version."""

    version: Optional[str] = None

    @abstractmethod
    def handle_library(self, library_name: str) -> LibraryHandle:
        """
        Start fetching metadata and installing a library.

        Must be called from a running event loop. Both operations of the
        returned handle progress independently.

        Args:
            library_name: Library name, e.g. ``sap.m``

        Returns:
            Handle with the metadata and install operations
        """
        pass

    @abstractmethod
    async def is_known_library(self, library_name: str) -> bool:
        """
        Check whether a library name belongs to this backend.

        Optional dependencies on unknown libraries are not resolved.
        """
        pass


class PackageInstaller(ABC):
    """Installs packages into the shared packages directory."""

    @abstractmethod
    def install_package(self, coordinates: Any) -> InstalledPackage:
        """
        Install a package if it is not installed yet.

        Args:
            coordinates: Backend specific package coordinates

        Returns:
            The installed package
        """
        pass

    @abstractmethod
    def is_installed(self, target_dir: Path) -> bool:
        """Check whether a package directory holds a complete installation."""
        pass
