"""
Streaming downloads with checksum verification.

Registry clients use :func:`download_file` to stream npm tarballs and Maven
artifacts to disk. Checksums are verified while the data is written, and a
partially written or corrupted file is removed before the error propagates.
"""

import hashlib
import logging
from pathlib import Path
from typing import Dict, Optional, Union

import requests
from requests.exceptions import ConnectionError, RequestException

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192
DEFAULT_TIMEOUT = 60


class DownloadError(Exception):
    """Exception raised when a download fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class DownloadConnectionError(DownloadError):
    """Exception raised when the remote host cannot be reached."""

    pass


class ChecksumError(Exception):
    """Exception raised when checksum verification fails."""

    pass


class StreamingHasher:
    """Compute a hash incrementally for streaming downloads."""

    SUPPORTED_ALGORITHMS = ("sha1", "sha256", "sha512")

    def __init__(self, algorithm: str = "sha256"):
        """
        Initialize streaming hasher.

        Args:
            algorithm: Hash algorithm ('sha1', 'sha256', 'sha512')

        Raises:
            ValueError: If algorithm is not supported
        """
        self.algorithm = algorithm.lower()
        if self.algorithm not in self.SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        self.hasher = hashlib.new(self.algorithm)

    def update(self, data: bytes):
        """Add data to hash computation."""
        self.hasher.update(data)

    def finalize(self) -> str:
        """Get final hash value as hex string."""
        return self.hasher.hexdigest()

    def verify(self, expected_hash: str) -> bool:
        """Check if the computed hash matches the expected hex digest."""
        return self.finalize().lower() == expected_hash.lower()


def compute_file_hash(file_path: Union[str, Path], algorithm: str = "sha256") -> str:
    """
    Compute the hex digest of a file.

    Args:
        file_path: File to hash
        algorithm: Hash algorithm supported by :class:`StreamingHasher`
    """
    hasher = StreamingHasher(algorithm)
    with open(file_path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.finalize()


def download_file(
    url: str,
    destination: Union[str, Path],
    expected_hash: Optional[str] = None,
    hash_algorithm: str = "sha256",
    session: Optional[requests.Session] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> Path:
    """
    Stream a URL to a local file.

    Args:
        url: URL to download from
        destination: Local path to save the file (parents are created)
        expected_hash: Expected digest, verified during download
        hash_algorithm: Algorithm of ``expected_hash``
        session: Session carrying proxy and authentication settings
        headers: Additional request headers
        timeout: Request timeout in seconds

    Returns:
        Path to downloaded file

    Raises:
        DownloadConnectionError: If the host cannot be reached
        DownloadError: If the request fails or returns an error status
        ChecksumError: If the checksum doesn't match

    Example:
        >>> download_file(
        ...     "https://registry.npmjs.org/@openui5/sap.m/-/sap.m-1.120.0.tgz",
        ...     Path("cacache/sap.m-1.120.0.tgz"),
        ...     expected_hash="0f1e...",
        ...     hash_algorithm="sha1",
        ... )
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    http = session or requests

    logger.debug(f"Downloading {url}")
    try:
        response = http.get(
            url, headers=headers, stream=True, timeout=timeout, allow_redirects=True
        )
    except ConnectionError as e:
        raise DownloadConnectionError(f"Unable to connect to {url}: {e}") from e
    except RequestException as e:
        raise DownloadError(f"Download of {url} failed: {e}") from e

    with response:
        if not response.ok:
            raise DownloadError(
                f"[HTTP Error] {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        hasher = StreamingHasher(hash_algorithm) if expected_hash else None
        try:
            with open(destination, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        if hasher:
                            hasher.update(chunk)
        except (OSError, RequestException) as e:
            destination.unlink(missing_ok=True)
            raise DownloadError(f"Download of {url} failed: {e}") from e

    if expected_hash and hasher and not hasher.verify(expected_hash):
        actual_hash = hasher.finalize()
        destination.unlink(missing_ok=True)
        raise ChecksumError(
            f"Checksum mismatch for {destination.name}: "
            f"expected {expected_hash}, got {actual_hash}"
        )

    logger.debug(f"Download complete: {destination}")
    return destination
