"""
On-disk layout and locking shared by the npm and Maven installers.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from frameworkkit.core.directory import get_framework_dirs
from frameworkkit.core.locking import LockManager

logger = logging.getLogger(__name__)

PROJECT_MARKERS = ("package.json", str(Path(".ui5") / "build-manifest.json"))


class InstallLayout:
    """
    Directory layout of the framework cache below a home directory.

    Installers compose an ``InstallLayout`` to compute staging and target
    locations and to serialize work on them across processes.

    Attributes:
        home_dir: FrameworkKit home directory
        dirs: Framework directories (see :func:`get_framework_dirs`)
        lock_manager: Lock manager rooted in the ``locks`` directory
    """

    def __init__(
        self,
        home_dir: Union[str, Path],
        lock_manager: Optional[LockManager] = None,
    ):
        self.home_dir = Path(home_dir)
        self.dirs = get_framework_dirs(self.home_dir)
        self.lock_manager = lock_manager or LockManager(self.dirs.locks)

    def get_target_dir_for_package(self, pkg_name: str, version: str) -> Path:
        """``packages/<name segments>/<version>``"""
        return self.dirs.packages.joinpath(*pkg_name.split("/"), version)

    def get_staging_dir_for_package(self, pkg_name: str, version: str) -> Path:
        # Flat hierarchy so cleanups never leave empty parent directories
        return self.dirs.staging / f"{pkg_name.replace('/', '-')}-{version}"


def is_project_installed(target_dir: Path) -> bool:
    """Check whether a directory holds an installed project."""
    return any((target_dir / marker).exists() for marker in PROJECT_MARKERS)
