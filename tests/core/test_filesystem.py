"""
Unit tests for filesystem utilities.

Tests cover:
- Zip/jar extraction with subtree selection
- Tarball extraction with stripped components
- Path traversal protection
- Atomic writes, guarded deletion and directory promotion
"""

import io
import tarfile
import zipfile
from pathlib import Path

import pytest

from frameworkkit.core.filesystem import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
    atomic_write,
    extract_tarball,
    extract_zip,
    is_relative_to,
    promote_directory,
    safe_rmtree,
)


def _make_zip(path: Path, members: dict) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return path


def _make_tarball(path: Path, members: dict) -> Path:
    with tarfile.open(path, "w:gz") as tar:
        for name, content in members.items():
            data = content.encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


class TestIsRelativeTo:
    """Test is_relative_to helper."""

    def test_child_path(self, tmp_path):
        """Test descendants are relative to their parent."""
        assert is_relative_to(tmp_path / "a" / "b", tmp_path)

    def test_same_path(self, tmp_path):
        """Test a path is relative to itself."""
        assert is_relative_to(tmp_path, tmp_path)

    def test_unrelated_path(self, tmp_path):
        """Test siblings are not relative to each other."""
        assert not is_relative_to(tmp_path / "a", tmp_path / "b")


class TestExtractZip:
    """Test extract_zip function."""

    def test_extract_all_members(self, tmp_path):
        """Test extracting a complete archive."""
        archive = _make_zip(
            tmp_path / "lib.zip",
            {"package.json": "{}", "src/lib.js": "x"},
        )
        dest = tmp_path / "out"

        extract_zip(archive, dest)

        assert (dest / "package.json").read_text() == "{}"
        assert (dest / "src" / "lib.js").read_text() == "x"

    def test_extract_subtree(self, tmp_path):
        """Test only the META-INF subtree is extracted, without its prefix."""
        archive = _make_zip(
            tmp_path / "lib.jar",
            {
                "META-INF/package.json": "{}",
                "META-INF/.ui5/build-manifest.json": "{}",
                "com/sap/Other.class": "x",
            },
        )
        dest = tmp_path / "out"

        extract_zip(archive, dest, subtree="META-INF")

        assert (dest / "package.json").exists()
        assert (dest / ".ui5" / "build-manifest.json").exists()
        assert not (dest / "com").exists()
        assert not (dest / "META-INF").exists()

    def test_traversal_blocked(self, tmp_path):
        """Test members escaping the destination are rejected."""
        archive = _make_zip(tmp_path / "evil.zip", {"../evil.txt": "x"})

        with pytest.raises(InsecureArchiveError):
            extract_zip(archive, tmp_path / "out")

        assert not (tmp_path / "evil.txt").exists()

    def test_corrupt_archive(self, tmp_path):
        """Test unreadable archives raise ArchiveExtractionError."""
        archive = tmp_path / "broken.zip"
        archive.write_bytes(b"not a zip")

        with pytest.raises(ArchiveExtractionError):
            extract_zip(archive, tmp_path / "out")


class TestExtractTarball:
    """Test extract_tarball function."""

    def test_strip_package_directory(self, tmp_path):
        """Test npm's package/ prefix is removed."""
        archive = _make_tarball(
            tmp_path / "pkg.tgz",
            {"package/package.json": '{"name": "x"}', "package/lib/a.js": "a"},
        )
        dest = tmp_path / "out"

        extract_tarball(archive, dest, strip_components=1)

        assert (dest / "package.json").read_text() == '{"name": "x"}'
        assert (dest / "lib" / "a.js").read_text() == "a"

    def test_traversal_blocked(self, tmp_path):
        """Test tar members escaping the destination are rejected."""
        archive = _make_tarball(tmp_path / "evil.tgz", {"package/../../evil": "x"})

        with pytest.raises(InsecureArchiveError):
            extract_tarball(archive, tmp_path / "out", strip_components=1)

    def test_corrupt_tarball(self, tmp_path):
        """Test unreadable tarballs raise ArchiveExtractionError."""
        archive = tmp_path / "broken.tgz"
        archive.write_bytes(b"garbage")

        with pytest.raises(ArchiveExtractionError):
            extract_tarball(archive, tmp_path / "out")


class TestAtomicWrite:
    """Test atomic_write function."""

    def test_write_text(self, tmp_path):
        """Test writing text content creates parent directories."""
        target = tmp_path / "nested" / "file.json"

        atomic_write(target, '{"a": 1}')

        assert target.read_text() == '{"a": 1}'

    def test_write_bytes_replaces_existing(self, tmp_path):
        """Test bytes content replaces an existing file."""
        target = tmp_path / "file.bin"
        target.write_bytes(b"old")

        atomic_write(target, b"new")

        assert target.read_bytes() == b"new"

    def test_no_temp_files_left(self, tmp_path):
        """Test temp files are renamed away."""
        atomic_write(tmp_path / "file.txt", "content")

        assert [p.name for p in tmp_path.iterdir()] == ["file.txt"]


class TestSafeRmtree:
    """Test safe_rmtree function."""

    def test_remove_directory(self, tmp_path):
        """Test removing a directory tree."""
        target = tmp_path / "dir"
        (target / "sub").mkdir(parents=True)
        (target / "sub" / "file").write_text("x")

        safe_rmtree(target)

        assert not target.exists()

    def test_missing_directory_is_noop(self, tmp_path):
        """Test removing a missing directory does nothing."""
        safe_rmtree(tmp_path / "missing")

    def test_require_prefix(self, tmp_path):
        """Test paths outside the required prefix are refused."""
        outside = tmp_path / "outside"
        outside.mkdir()

        with pytest.raises(ValueError, match="Refusing to delete"):
            safe_rmtree(outside, require_prefix=tmp_path / "packages")

        assert outside.exists()

    def test_file_is_rejected(self, tmp_path):
        """Test regular files are not removed."""
        target = tmp_path / "file"
        target.write_text("x")

        with pytest.raises(FilesystemError):
            safe_rmtree(target)


class TestPromoteDirectory:
    """Test promote_directory function."""

    def test_promote_creates_parents(self, tmp_path):
        """Test staged content moves to a new nested location."""
        staging = tmp_path / "staging" / "pkg"
        staging.mkdir(parents=True)
        (staging / "package.json").write_text("{}")
        target = tmp_path / "packages" / "@openui5" / "sap.m" / "1.0.0"

        promote_directory(staging, target)

        assert (target / "package.json").exists()
        assert not staging.exists()

    def test_promote_missing_staging(self, tmp_path):
        """Test a missing staging directory raises FilesystemError."""
        with pytest.raises(FilesystemError):
            promote_directory(tmp_path / "missing", tmp_path / "target")
