"""
Data model shared by the framework resolver, sources and installers.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Dict, List, Optional


@dataclass(frozen=True)
class PackageCoordinates:
    """npm package coordinates."""

    pkg_name: str
    version: str

    @property
    def log_id(self) -> str:
        return f"{self.pkg_name}@{self.version}"


@dataclass(frozen=True)
class ArtifactCoordinates:
    """
    Maven artifact coordinates.

    ``classifier`` and ``extension`` distinguish the flavors of one
    deployment: ``npm-sources``/``zip`` for sources, no classifier and
    ``jar`` for prebuilt libraries.
    """

    group_id: str
    artifact_id: str
    version: str
    classifier: Optional[str] = None
    extension: str = "jar"

    def _join(self, separator: str, revision: Optional[str] = None) -> str:
        classifier = f"{self.classifier}." if self.classifier else ""
        return separator.join(
            [self.group_id, self.artifact_id, revision or self.version]
        ) + f"{separator}{classifier}{self.extension}"

    def fs_id(self, revision: Optional[str] = None) -> str:
        """Identifier usable as a file name, e.g. for cache metadata."""
        return self._join("_", revision)

    def log_id(self, revision: Optional[str] = None) -> str:
        """Human readable identifier."""
        return self._join(":", revision)


@dataclass(frozen=True)
class MavenPackageCoordinates:
    """A library installed from a Maven artifact under an npm-like name."""

    pkg_name: str
    group_id: str
    artifact_id: str
    version: str
    classifier: Optional[str] = None
    extension: str = "jar"

    @property
    def artifact(self) -> ArtifactCoordinates:
        return ArtifactCoordinates(
            group_id=self.group_id,
            artifact_id=self.artifact_id,
            version=self.version,
            classifier=self.classifier,
            extension=self.extension,
        )


@dataclass
class InstalledPackage:
    """Result of a package installation."""

    pkg_path: Path


@dataclass
class LibraryMetadata:
    """Metadata of a single library as reported by a source."""

    id: str
    version: str
    dependencies: List[str] = field(default_factory=list)
    optional_dependencies: List[str] = field(default_factory=list)


@dataclass
class LibraryMetadataEntry:
    """A fully resolved and installed library."""

    id: str
    version: str
    path: Path
    dependencies: List[str] = field(default_factory=list)
    optional_dependencies: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LibraryMetadataEntry":
        """Create an entry from externally provided (camelCase) metadata."""
        return cls(
            id=data["id"],
            version=data["version"],
            path=Path(data["path"]),
            dependencies=list(data.get("dependencies") or []),
            optional_dependencies=list(data.get("optionalDependencies") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "path": str(self.path),
            "dependencies": list(self.dependencies),
            "optionalDependencies": list(self.optional_dependencies),
        }


@dataclass
class LibraryHandle:
    """
    Two independently progressing operations for one library.

    ``metadata`` resolves to the library's :class:`LibraryMetadata` and
    ``install`` to its :class:`InstalledPackage`.
    """

    metadata: "asyncio.Future[LibraryMetadata]"
    install: "Awaitable[InstalledPackage]"


@dataclass
class ResolverInstallResult:
    """Resolved libraries keyed by library name."""

    library_metadata: Dict[str, LibraryMetadataEntry] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "libraryMetadata": {
                name: entry.to_dict() for name, entry in self.library_metadata.items()
            }
        }
