"""
Maven snapshot repository backend.
"""

from .installer import InstalledArtifact, LocalMetadata, MavenInstaller
from .registry import MavenMetadata, MavenRegistry, SnapshotVersion

__all__ = [
    "InstalledArtifact",
    "LocalMetadata",
    "MavenInstaller",
    "MavenMetadata",
    "MavenRegistry",
    "SnapshotVersion",
]
