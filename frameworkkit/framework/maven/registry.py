"""
Maven repository client.

Builds Maven coordinate URLs, requests and parses ``maven-metadata.xml``
and streams artifacts to disk.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

import requests
from requests.exceptions import ConnectionError, RequestException

from frameworkkit.core.download import (
    DownloadConnectionError,
    DownloadError,
    download_file,
)
from frameworkkit.core.exceptions import RegistryConnectionError, RegistryError
from frameworkkit.framework.models import ArtifactCoordinates

logger = logging.getLogger(__name__)

MAVEN_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


@dataclass
class SnapshotVersion:
    """One deployment listed in snapshot metadata."""

    classifier: Optional[str]
    extension: str
    value: str
    updated: datetime

    def matches(self, classifier: Optional[str], extension: str) -> bool:
        # Without a requested classifier any deployment of the extension matches
        return (not classifier or self.classifier == classifier) and (
            self.extension == extension
        )


@dataclass
class MavenMetadata:
    """Parsed ``maven-metadata.xml``."""

    group_id: Optional[str] = None
    artifact_id: Optional[str] = None
    version: Optional[str] = None
    versions: Optional[List[str]] = None
    snapshot_versions: Optional[List[SnapshotVersion]] = None


def parse_maven_timestamp(value: str) -> datetime:
    """
    Parse a Maven ``yyyyMMddHHmmss`` UTC timestamp.

    Example:
        >>> parse_maven_timestamp("20220828080910")
        datetime.datetime(2022, 8, 28, 8, 9, 10, tzinfo=datetime.timezone.utc)
    """
    return datetime.strptime(value, MAVEN_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def _strip_namespaces(root: ET.Element) -> ET.Element:
    for element in root.iter():
        if isinstance(element.tag, str) and element.tag.startswith("{"):
            element.tag = element.tag.split("}", 1)[1]
    return root


def _text(element: Optional[ET.Element]) -> Optional[str]:
    if element is None or element.text is None:
        return None
    return element.text.strip() or None


def parse_maven_metadata(content: Union[str, bytes]) -> MavenMetadata:
    """
    Parse the content of a ``maven-metadata.xml`` document.

    Raises:
        RegistryError: If the document is not Maven metadata
    """
    try:
        root = _strip_namespaces(ET.fromstring(content))
    except ET.ParseError as e:
        raise RegistryError(f"Empty or unexpected response body: {e}") from e

    if root.tag != "metadata":
        text = content.decode("utf-8", "replace") if isinstance(content, bytes) else content
        raise RegistryError(f"Empty or unexpected response body:\n{text}")

    metadata = MavenMetadata(
        group_id=_text(root.find("groupId")),
        artifact_id=_text(root.find("artifactId")),
        version=_text(root.find("version")),
    )

    versions = root.find("versioning/versions")
    if versions is not None:
        metadata.versions = [
            text for text in (_text(item) for item in versions.findall("version")) if text
        ]

    snapshot_versions = root.find("versioning/snapshotVersions")
    if snapshot_versions is not None:
        metadata.snapshot_versions = []
        for item in snapshot_versions.findall("snapshotVersion"):
            value = _text(item.find("value"))
            updated = _text(item.find("updated"))
            extension = _text(item.find("extension"))
            if not (value and updated and extension):
                continue
            metadata.snapshot_versions.append(
                SnapshotVersion(
                    classifier=_text(item.find("classifier")),
                    extension=extension,
                    value=value,
                    updated=parse_maven_timestamp(updated),
                )
            )
    return metadata


class MavenRegistry:
    """
    Client for a Maven repository.

    Attributes:
        endpoint_url: Repository URL, always ending with ``/``
    """

    def __init__(
        self,
        endpoint_url: str,
        session: Optional[requests.Session] = None,
        timeout: int = 60,
    ):
        if not endpoint_url:
            raise ValueError("MavenRegistry: Missing endpoint URL")
        self.endpoint_url = endpoint_url if endpoint_url.endswith("/") else endpoint_url + "/"
        self.session = session or requests.Session()
        self.timeout = timeout

    def _connection_error(self, error: Exception) -> RegistryConnectionError:
        return RegistryConnectionError(
            f"Failed to connect to Maven registry at {self.endpoint_url}: {error}. "
            "Please check the correct endpoint URL is maintained and can be reached. "
            "It can be set as 'maven_snapshot_endpoint_url' in the configuration file "
            "or through the FRAMEWORKKIT_MAVEN_SNAPSHOT_ENDPOINT environment variable. "
            "You may be able to continue working offline by setting the cache mode to 'Force'.",
            url=self.endpoint_url,
        )

    def get_metadata_url(
        self, group_id: str, artifact_id: str, version: Optional[str] = None
    ) -> str:
        optional_version = f"{version}/" if version else ""
        return (
            f"{self.endpoint_url}{group_id.replace('.', '/')}/{artifact_id}/"
            f"{optional_version}maven-metadata.xml"
        )

    def get_artifact_url(self, coordinates: ArtifactCoordinates, revision: str) -> str:
        optional_classifier = f"-{coordinates.classifier}" if coordinates.classifier else ""
        return (
            f"{self.endpoint_url}{coordinates.group_id.replace('.', '/')}/"
            f"{coordinates.artifact_id}/{coordinates.version}/"
            f"{coordinates.artifact_id}-{revision}{optional_classifier}."
            f"{coordinates.extension}"
        )

    def request_maven_metadata(
        self, group_id: str, artifact_id: str, version: Optional[str] = None
    ) -> MavenMetadata:
        """
        Request ``maven-metadata.xml`` of an artifact.

        Without a version the metadata lists all versions of the artifact.
        With a SNAPSHOT version it lists the deployments of that snapshot.

        Raises:
            RegistryConnectionError: If the repository cannot be reached
            RegistryError: If the request fails or the response is invalid
        """
        url = self.get_metadata_url(group_id, artifact_id, version)
        log_id = ":".join(part for part in (group_id, artifact_id, version) if part)
        logger.debug(f"Fetching: {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
        except ConnectionError as e:
            raise self._connection_error(e) from e
        except RequestException as e:
            raise RegistryError(
                f"Failed to retrieve maven-metadata.xml for {log_id}: {e}"
            ) from e

        if not response.ok:
            raise RegistryError(
                f"Failed to retrieve maven-metadata.xml for {log_id}: "
                f"[HTTP Error] {response.status_code} {response.reason}"
            )
        try:
            return parse_maven_metadata(response.content)
        except RegistryError as e:
            raise RegistryError(
                f"Failed to retrieve maven-metadata.xml for {log_id}: {e}"
            ) from e

    def request_artifact(
        self,
        coordinates: ArtifactCoordinates,
        revision: str,
        target_path: Union[str, Path],
    ) -> Path:
        """
        Stream an artifact deployment to ``target_path``.

        Raises:
            RegistryConnectionError: If the repository cannot be reached
            RegistryError: If the download fails
        """
        url = self.get_artifact_url(coordinates, revision)
        logger.debug(f"Fetching: {url}")
        try:
            return download_file(
                url, target_path, session=self.session, timeout=self.timeout
            )
        except DownloadConnectionError as e:
            raise self._connection_error(e) from e
        except DownloadError as e:
            raise RegistryError(
                f"Failed to retrieve artifact {coordinates.log_id(revision)}: {e}"
            ) from e
