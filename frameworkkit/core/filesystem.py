"""
File system helpers used by the framework installers.

This module provides the few file operations the installers rely on:
- Safe archive extraction (zip/jar with optional subtree, npm tarballs)
- Atomic writes for metadata documents
- Guarded recursive deletion
- Rename-based promotion of staged directories
"""

import os
import shutil
import sys
import tarfile
import tempfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Optional, Union


class FilesystemError(Exception):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains a member that would escape the destination."""

    pass


IS_WINDOWS = os.name == "nt"


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check whether a path lies below a parent directory.

    Args:
        path: Path to check
        parent: Potential parent directory

    Returns:
        True if path is parent or a descendant of it
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def _validate_archive_path(path: str, destination: Path) -> Path:
    """
    Resolve an archive member below the destination.

    Raises:
        InsecureArchiveError: If the member attempts directory traversal
    """
    member_path = (destination / path).resolve()
    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )
    return member_path


def extract_zip(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
    subtree: Optional[str] = None,
) -> None:
    """
    Extract a zip (or jar) archive.

    Args:
        archive_path: Archive to extract
        destination: Directory to extract into (created if missing)
        subtree: If given, only members below this directory are extracted,
            relative to it (``META-INF/x`` is written to ``destination/x``)

    Raises:
        ArchiveExtractionError: If the archive cannot be read
        InsecureArchiveError: If a member escapes the destination

    Example:
        >>> extract_zip('lib.jar', 'staging/lib', subtree='META-INF')
    """
    archive_path = Path(archive_path)
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    prefix = subtree.strip("/") + "/" if subtree else ""

    try:
        with zipfile.ZipFile(archive_path, "r") as zf:
            members = []
            for info in zf.infolist():
                if not info.filename.startswith(prefix):
                    continue
                relative_name = info.filename[len(prefix):]
                if not relative_name:
                    continue
                members.append(
                    (info, _validate_archive_path(relative_name, destination))
                )

            for info, member_path in members:
                if info.is_dir():
                    member_path.mkdir(parents=True, exist_ok=True)
                    continue
                member_path.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as source, open(member_path, "wb") as target:
                    shutil.copyfileobj(source, target)
    except InsecureArchiveError:
        raise
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e


def extract_tarball(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
    strip_components: int = 0,
) -> None:
    """
    Extract a gzip-compressed tarball, optionally stripping leading path parts.

    npm tarballs wrap their content in a single ``package/`` directory, so
    they are extracted with ``strip_components=1``.

    Args:
        archive_path: Tarball to extract
        destination: Directory to extract into (created if missing)
        strip_components: Number of leading path components to drop

    Raises:
        ArchiveExtractionError: If the archive cannot be read
        InsecureArchiveError: If a member escapes the destination
    """
    archive_path = Path(archive_path)
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)

    try:
        with tarfile.open(archive_path, "r:*") as tar:
            members = []
            for member in tar.getmembers():
                if member.issym() or member.islnk():
                    # Links are not part of published npm packages
                    continue
                parts = PurePosixPath(member.name).parts[strip_components:]
                if not parts:
                    continue
                member.name = str(PurePosixPath(*parts))
                _validate_archive_path(member.name, destination)
                members.append(member)

            if sys.version_info >= (3, 12):
                tar.extractall(destination, members=members, filter="data")
            else:
                tar.extractall(destination, members=members)
    except InsecureArchiveError:
        raise
    except (tarfile.TarError, OSError) as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    The file is never observed in a partially-written state. If the write
    fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Remove a directory tree if it exists.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If the path is not a directory or deletion fails
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def promote_directory(staging_dir: Union[str, Path], target_dir: Union[str, Path]) -> None:
    """
    Publish a staged directory by renaming it to its final location.

    The target's parent directories are created first. The target itself
    must not exist; callers clear it while holding the install lock.

    Raises:
        FilesystemError: If the rename fails
    """
    staging_dir = Path(staging_dir)
    target_dir = Path(target_dir)
    target_dir.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(staging_dir, target_dir)
    except OSError as e:
        raise FilesystemError(
            f"Failed to move '{staging_dir}' to '{target_dir}': {e}"
        ) from e
