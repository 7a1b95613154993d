"""
Framework library resolution.

:class:`LibraryResolver` walks the dependency graph of the requested
libraries, installing every reachable library exactly once. Metadata
fetches and installations of independent libraries run concurrently.

The walk never stops at the first failure: each library's error is
recorded and the remaining branches continue. One failure is raised as-is,
several are combined into a single numbered report.

Example:
    >>> source = OpenUI5Source(cwd=Path.cwd(), home_dir=home, version="1.120.0")
    >>> result = await LibraryResolver(source).install(["sap.m", "sap.ui.core"])
    >>> result.library_metadata["sap.m"].path
    PosixPath('.../framework/packages/@openui5/sap.m/1.120.0')
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Union

from frameworkkit.core.exceptions import (
    FrameworkResolutionError,
    LibraryResolutionError,
)
from frameworkkit.core.interfaces import LibrarySource
from frameworkkit.framework.models import (
    LibraryMetadata,
    LibraryMetadataEntry,
    ResolverInstallResult,
)

logger = logging.getLogger(__name__)

ProvidedMetadata = Mapping[str, Union[LibraryMetadataEntry, Dict[str, Any]]]


@dataclass
class ResolutionContext:
    """
    Shared state of one resolution run.

    ``library_metadata`` maps each library name seen so far to ``None``
    while it is being processed and to its entry once done. Names not in
    the map have not been reached yet.
    """

    library_metadata: Dict[str, Optional[LibraryMetadataEntry]] = field(
        default_factory=dict
    )
    errors: List[Exception] = field(default_factory=list)
    error_messages: Set[str] = field(default_factory=set)

    def claim(self, library_name: str) -> bool:
        """Mark a library as pending; False if it was seen before."""
        if library_name in self.library_metadata:
            return False
        self.library_metadata[library_name] = None
        return True

    def add_error(self, library_name: str, error: Exception):
        message = f"Failed to resolve library {library_name}: {error}"
        if message in self.error_messages:
            return
        self.error_messages.add(message)
        resolution_error = LibraryResolutionError(library_name, message)
        resolution_error.__cause__ = error
        self.errors.append(resolution_error)


class LibraryResolver:
    """
    Resolves and installs framework libraries and their dependencies.

    Attributes:
        source: Provides metadata and installation of single libraries
        provided_library_metadata: Libraries resolved elsewhere (e.g. in a
            workspace). They are used as-is and never installed.
    """

    def __init__(
        self,
        source: LibrarySource,
        provided_library_metadata: Optional[ProvidedMetadata] = None,
    ):
        self.source = source
        self.provided_library_metadata: Dict[str, LibraryMetadataEntry] = {
            name: entry
            if isinstance(entry, LibraryMetadataEntry)
            else LibraryMetadataEntry.from_dict(entry)
            for name, entry in (provided_library_metadata or {}).items()
        }

    async def install(self, library_names: Sequence[str]) -> ResolverInstallResult:
        """
        Resolve and install libraries with all their dependencies.

        Args:
            library_names: Names of the requested libraries

        Returns:
            Metadata of every reachable library

        Raises:
            LibraryResolutionError: If exactly one library failed
            FrameworkResolutionError: If several libraries failed
        """
        context = ResolutionContext()
        await self._process_libraries(library_names, context)

        if len(context.errors) == 1:
            raise context.errors[0]
        if context.errors:
            raise FrameworkResolutionError(context.errors)

        return ResolverInstallResult(
            library_metadata={
                name: entry
                for name, entry in context.library_metadata.items()
                if entry is not None
            }
        )

    async def _process_libraries(
        self, library_names: Sequence[str], context: ResolutionContext
    ):
        await asyncio.gather(
            *(self._process_library_safely(name, context) for name in library_names)
        )

    async def _process_library_safely(self, library_name: str, context: ResolutionContext):
        try:
            await self._process_library(library_name, context)
        except Exception as e:
            logger.debug(f"Failed to resolve library {library_name}: {e}")
            context.add_error(library_name, e)

    async def _process_library(self, library_name: str, context: ResolutionContext):
        # Completed or in progress in another branch
        if not context.claim(library_name):
            return

        logger.debug(f"Processing {library_name}")
        provided = self.provided_library_metadata.get(library_name)
        if provided:
            logger.debug(f"Skipping install for {library_name} (provided)")
            await self._process_dependencies(library_name, provided, context)
            context.library_metadata[library_name] = provided
            return

        if not self.source.version:
            raise LibraryResolutionError(
                library_name,
                f"Unable to install library {library_name}. No framework version provided.",
            )

        handle = self.source.handle_library(library_name)

        async def _metadata_with_dependencies() -> LibraryMetadata:
            metadata = await handle.metadata
            await self._process_dependencies(library_name, metadata, context)
            return metadata

        metadata, installed = await asyncio.gather(
            _metadata_with_dependencies(), handle.install, return_exceptions=True
        )
        for outcome in (metadata, installed):
            if isinstance(outcome, BaseException):
                raise outcome

        context.library_metadata[library_name] = LibraryMetadataEntry(
            id=metadata.id,
            version=metadata.version,
            path=installed.pkg_path,
            dependencies=list(metadata.dependencies),
            optional_dependencies=list(metadata.optional_dependencies),
        )

    async def _process_dependencies(
        self,
        library_name: str,
        metadata: Union[LibraryMetadata, LibraryMetadataEntry],
        context: ResolutionContext,
    ):
        optional = []
        for dependency in metadata.optional_dependencies:
            if await self._is_known_library(dependency):
                optional.append(dependency)
            else:
                logger.warning(
                    f"Ignoring optional dependency {dependency} of {library_name}: "
                    "not a known framework library"
                )
        await self._process_libraries([*metadata.dependencies, *optional], context)

    async def _is_known_library(self, library_name: str) -> bool:
        if library_name in self.provided_library_metadata:
            return True
        if not self.source.version:
            return False
        return await self.source.is_known_library(library_name)
