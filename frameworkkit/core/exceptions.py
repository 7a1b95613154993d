"""
Centralized exception hierarchy for FrameworkKit.

This module defines the custom exceptions shared by the resolver, the
installers and the registry clients so that callers can handle failures
by category instead of by origin.
"""

from typing import List, Optional, Sequence


# ============================================================================
# Base Exceptions
# ============================================================================


class FrameworkKitError(Exception):
    """Base exception for all FrameworkKit errors."""

    pass


class ConfigurationError(FrameworkKitError):
    """Raised when the configuration file or an option value is invalid."""

    pass


# ============================================================================
# Locking Exceptions
# ============================================================================


class LockError(FrameworkKitError):
    """Base exception for cross-process locking errors."""

    pass


class LockTimeoutError(LockError):
    """Raised when a named lock cannot be acquired within its retry budget."""

    def __init__(self, lock_name: str, attempts: int, wait: float):
        self.lock_name = lock_name
        self.attempts = attempts
        self.wait = wait
        super().__init__(
            f"Could not acquire lock '{lock_name}' after {attempts} attempts "
            f"of {wait}s each. Another process may be installing the same resource."
        )


class IllegalFileNameError(LockError):
    """Raised when a lock or cache name cannot be mapped to a safe file name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Illegal file name: "{name}"')


# ============================================================================
# Installer Exceptions
# ============================================================================


class InstallerError(FrameworkKitError):
    """Base exception for package and artifact installation errors."""

    pass


class ArtifactNotCachedError(InstallerError):
    """Raised when cache mode 'Force' is requested but nothing is cached."""

    def __init__(self, artifact: str):
        self.artifact = artifact
        super().__init__(
            f"Could not find artifact {artifact} in local cache "
            "while cache mode is set to 'Force'"
        )


class PackageInstallError(InstallerError):
    """Raised when a package could not be extracted or promoted."""

    pass


# ============================================================================
# Registry Exceptions
# ============================================================================


class RegistryError(FrameworkKitError):
    """Base exception for npm and Maven registry errors."""

    pass


class PackageNotFoundError(RegistryError):
    """Raised when a registry does not know a package."""

    pass


class RegistryConnectionError(RegistryError):
    """Raised when a registry endpoint cannot be reached."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(message)


class MetadataIntegrityError(RegistryError):
    """Raised when a remote metadata document lacks an expected field."""

    pass


# ============================================================================
# Version Resolution Exceptions
# ============================================================================


class VersionResolutionError(FrameworkKitError):
    """Base exception for version specifier resolution errors."""

    pass


class InvalidVersionSpecifierError(VersionResolutionError):
    """Raised for empty or malformed version specifiers."""

    def __init__(self, specifier):
        self.specifier = specifier
        super().__init__(
            f'Framework version specifier "{specifier}" is incorrect or not supported'
        )


class UnknownVersionTagError(VersionResolutionError):
    """Raised when a distribution tag does not exist for the framework."""

    pass


class UnresolvableVersionError(VersionResolutionError):
    """Raised when no catalog version satisfies the requested range."""

    pass


# ============================================================================
# Library Resolution Exceptions
# ============================================================================


class LibraryResolutionError(FrameworkKitError):
    """Raised when a single library could not be resolved or installed."""

    def __init__(self, library_name: str, message: str):
        self.library_name = library_name
        super().__init__(message)


class FrameworkResolutionError(FrameworkKitError):
    """Raised when several libraries failed during one resolution run."""

    def __init__(self, errors: Sequence[Exception]):
        self.errors: List[Exception] = list(errors)
        lines = "\n".join(
            f"  {index}. {error}" for index, error in enumerate(self.errors, start=1)
        )
        super().__init__(f"Resolution of framework libraries failed with errors:\n{lines}")


class SnapshotEndpointError(FrameworkKitError):
    """Raised when no Maven snapshot endpoint URL could be determined."""

    pass
