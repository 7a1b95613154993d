"""
Shared fixtures for framework tests.
"""

import hashlib
import io
import json
import tarfile
import zipfile
from pathlib import Path

import pytest


def build_npm_tarball(manifest: dict, files: dict = None) -> bytes:
    """Build a gzipped npm tarball with everything below ``package/``."""
    members = {"package/package.json": json.dumps(manifest)}
    for name, content in (files or {}).items():
        members[f"package/{name}"] = content
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in members.items():
            data = content.encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def build_zip(members: dict) -> bytes:
    """Build a zip (or jar) archive in memory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def npm_tarball():
    """Factory returning ``(tarball bytes, sha1 shasum)``."""

    def _make(manifest: dict, files: dict = None):
        data = build_npm_tarball(manifest, files)
        return data, hashlib.sha1(data).hexdigest()

    return _make


@pytest.fixture
def zip_archive():
    """Factory building zip/jar archives in memory."""
    return build_zip


@pytest.fixture
def installed_npm_package():
    """Factory writing a package.json into an installed package directory."""

    def _install(target_dir: Path, manifest: dict) -> Path:
        target_dir.mkdir(parents=True, exist_ok=True)
        (target_dir / "package.json").write_text(json.dumps(manifest))
        return target_dir

    return _install
