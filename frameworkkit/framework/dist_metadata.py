"""
SAPUI5 distribution metadata.

The ``@sapui5/distribution-metadata`` package lists every library of one
SAPUI5 version in its ``metadata.json``::

    {
        "libraries": {
            "sap.m": {
                "npmPackageName": "@sapui5/sap.m",
                "version": "1.120.0",
                "dependencies": ["sap.ui.core"],
                "optionalDependencies": [],
                "gav": "com.sap.ui5:sap.m:1.120.0-SNAPSHOT"
            }
        }
    }
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple

from frameworkkit.core.exceptions import MetadataIntegrityError
from frameworkkit.framework.models import LibraryMetadata

DIST_PKG_NAME = "@sapui5/distribution-metadata"


@dataclass
class DistributionMetadata:
    """Parsed ``metadata.json`` of a distribution."""

    libraries: Dict[str, Dict[str, Any]]

    @classmethod
    def from_package(cls, pkg_path: Path) -> "DistributionMetadata":
        metadata_path = Path(pkg_path) / "metadata.json"
        try:
            with open(metadata_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise MetadataIntegrityError(
                f"Failed to read distribution metadata {metadata_path}: {e}"
            ) from e
        libraries = data.get("libraries") if isinstance(data, dict) else None
        if not isinstance(libraries, dict):
            raise MetadataIntegrityError(
                f"Distribution metadata {metadata_path} does not list any libraries"
            )
        return cls(libraries=libraries)

    def __contains__(self, library_name: str) -> bool:
        return library_name in self.libraries

    def get_library(self, library_name: str) -> Dict[str, Any]:
        metadata = self.libraries.get(library_name)
        if not metadata:
            raise MetadataIntegrityError(f'Could not find library "{library_name}"')
        return metadata

    def get_library_metadata(self, library_name: str, pkg_name: str = None) -> LibraryMetadata:
        metadata = self.get_library(library_name)
        return LibraryMetadata(
            id=pkg_name or metadata["npmPackageName"],
            version=metadata["version"],
            dependencies=list(metadata.get("dependencies") or []),
            optional_dependencies=list(metadata.get("optionalDependencies") or []),
        )

    def get_gav(self, library_name: str) -> Tuple[str, str, str]:
        """Return group id, artifact id and version of a library."""
        gav = self.get_library(library_name).get("gav")
        parts = gav.split(":") if gav else []
        if len(parts) < 3:
            raise MetadataIntegrityError(
                "Metadata is missing GAV information. "
                "This might indicate an unsupported SNAPSHOT version."
            )
        return parts[0], parts[1], parts[2]
