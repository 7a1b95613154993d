"""
Directory layout management for FrameworkKit.

Directory Structure:
    Home directory (~/.frameworkkit/ unless configured otherwise):
        framework/
            artifacts/  : Downloaded Maven artifacts, one file per coordinate
            packages/   : Installed libraries (<name segments>/<version>/)
            metadata/   : One LocalMetadata JSON document per Maven coordinate
            staging/    : Not-yet-promoted downloads and extractions
            locks/      : Cross-process lock files
            cacache/    : Cached npm tarballs
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

HOME_DIR_ENV = "FRAMEWORKKIT_HOME"


def get_default_home_dir() -> Path:
    """
    Get the default FrameworkKit home directory.

    Returns:
        Path: ``~/.frameworkkit``
    """
    return Path.home() / ".frameworkkit"


def get_home_dir(home_dir: Optional[Union[str, Path]] = None) -> Path:
    """
    Resolve the FrameworkKit home directory.

    Precedence: explicit argument, ``FRAMEWORKKIT_HOME``, the ``home_dir``
    option of the configuration file, then the default location. Relative
    paths are resolved against the current working directory.

    Args:
        home_dir: Explicit home directory

    Returns:
        Absolute home directory path
    """
    if home_dir is None:
        home_dir = os.environ.get(HOME_DIR_ENV) or None
    if home_dir is None:
        from frameworkkit.config.configuration import Configuration

        home_dir = Configuration.from_file().home_dir
    if home_dir is None:
        return get_default_home_dir()
    return Path(home_dir).expanduser().resolve()


@dataclass(frozen=True)
class FrameworkDirs:
    """Directories used by the framework installers."""

    root: Path
    artifacts: Path
    packages: Path
    metadata: Path
    staging: Path
    locks: Path
    cacache: Path


def get_framework_dirs(home_dir: Union[str, Path]) -> FrameworkDirs:
    """
    Build the framework directory layout below a home directory.

    The directories are not created; installers create what they need
    lazily.

    Example:
        >>> dirs = get_framework_dirs("/home/user/.frameworkkit")
        >>> dirs.packages
        PosixPath('/home/user/.frameworkkit/framework/packages')
    """
    root = Path(home_dir) / "framework"
    return FrameworkDirs(
        root=root,
        artifacts=root / "artifacts",
        packages=root / "packages",
        metadata=root / "metadata",
        staging=root / "staging",
        locks=root / "locks",
        cacache=root / "cacache",
    )
