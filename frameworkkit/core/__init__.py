"""
Core functionality for FrameworkKit.

This package contains the foundational modules that the framework
installers and resolvers depend on.
"""

from .directory import FrameworkDirs, get_framework_dirs, get_home_dir
from .exceptions import (
    ArtifactNotCachedError,
    ConfigurationError,
    FrameworkKitError,
    FrameworkResolutionError,
    IllegalFileNameError,
    InstallerError,
    InvalidVersionSpecifierError,
    LibraryResolutionError,
    LockError,
    LockTimeoutError,
    MetadataIntegrityError,
    PackageInstallError,
    RegistryConnectionError,
    RegistryError,
    SnapshotEndpointError,
    UnknownVersionTagError,
    UnresolvableVersionError,
    VersionResolutionError,
)
from .locking import LockManager, sanitize_file_name
