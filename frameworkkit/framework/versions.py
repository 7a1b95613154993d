"""
Framework version specifier resolution.

A specifier is one of:

- a version or npm-style range (``1.120.0``, ``^1.120.0``, ``1``)
- a snapshot range (``1-SNAPSHOT``, ``1.120-SNAPSHOT``), normalized to
  ``1.x.x-SNAPSHOT`` / ``1.120.x-SNAPSHOT``
- a distribution tag (``latest``), looked up in the catalog's tag map

The best matching version of the catalog is returned. Pre-release
versions are only considered for snapshot specifiers, and then
exclusively.
"""

import logging
import re
from typing import Dict, Iterable, Optional
from urllib.parse import quote

import semantic_version

from frameworkkit.core.exceptions import (
    InvalidVersionSpecifierError,
    UnknownVersionTagError,
    UnresolvableVersionError,
)
from frameworkkit.core.interfaces import VersionCatalog

logger = logging.getLogger(__name__)

SNAPSHOT_SUFFIX = "-SNAPSHOT"
SNAPSHOT_RANGE_PATTERN = re.compile(r"^(0|[1-9]\d*)(?:\.(0|[1-9]\d*))?-SNAPSHOT$", re.IGNORECASE)

# Accepted by catalogs without tag support, both mean "newest version"
WILDCARD_TAGS = ("latest", "latest-snapshot")


def is_snapshot_version_or_range(specifier: str) -> bool:
    return specifier.lower().endswith(SNAPSHOT_SUFFIX.lower())


def normalize_snapshot_range(specifier: str) -> Optional[str]:
    """
    Turn a bare MAJOR or MAJOR.MINOR snapshot range into an x-range.

    Example:
        >>> normalize_snapshot_range("1-SNAPSHOT")
        '1.x.x-SNAPSHOT'
        >>> normalize_snapshot_range("1.120-SNAPSHOT")
        '1.120.x-SNAPSHOT'
    """
    match = SNAPSHOT_RANGE_PATTERN.match(specifier)
    if not match:
        return None
    major, minor = match.groups()
    return f"{major}.{minor or 'x'}.x{SNAPSHOT_SUFFIX}"


def _parse_range(range_spec: str) -> Optional[semantic_version.NpmSpec]:
    try:
        return semantic_version.NpmSpec(" ".join(range_spec.split()))
    except ValueError:
        return None


def _parse_version(version: str) -> Optional[semantic_version.Version]:
    try:
        return semantic_version.Version(version)
    except ValueError:
        return None


def _strip_snapshot_suffix(range_spec: str) -> str:
    if is_snapshot_version_or_range(range_spec):
        return range_spec[: -len(SNAPSHOT_SUFFIX)]
    return range_spec


def is_valid_range(range_spec: str) -> bool:
    return _parse_range(_strip_snapshot_suffix(range_spec)) is not None


def max_satisfying(
    versions: Iterable[str], range_spec: str, snapshot: bool = False
) -> Optional[str]:
    """
    Pick the highest version satisfying a range.

    Args:
        versions: Candidate version strings; unparsable ones are ignored
        range_spec: npm-style range
        snapshot: Only consider ``-SNAPSHOT`` pre-releases, matching them by
            their release part

    Example:
        >>> max_satisfying(["1.0.0", "1.2.3", "2.0.0"], "1")
        '1.2.3'
    """
    spec = _parse_range(_strip_snapshot_suffix(range_spec) if snapshot else range_spec)
    if spec is None:
        return None

    candidates: Dict[semantic_version.Version, str] = {}
    for raw in versions:
        version = _parse_version(raw)
        if version is None:
            continue
        if snapshot:
            if not (version.prerelease and is_snapshot_version_or_range(raw)):
                continue
            if not spec.match(version.truncate()):
                continue
        elif not spec.match(version):
            continue
        candidates[version] = raw

    if not candidates:
        return None
    return candidates[max(candidates)]


async def _get_version_spec(catalog: VersionCatalog, specifier: str) -> Optional[str]:
    if is_snapshot_version_or_range(specifier):
        snapshot_range = normalize_snapshot_range(specifier)
        if snapshot_range:
            return snapshot_range

    if is_valid_range(specifier):
        return specifier

    # Same tag name check as npm does
    if quote(specifier, safe="-_.!~*'()") != specifier:
        return None

    tags = await catalog.fetch_all_tags()
    if tags is None:
        if specifier in WILDCARD_TAGS:
            return "*"
        return None

    if specifier not in tags:
        raise UnknownVersionTagError(
            f"Could not resolve framework version via tag '{specifier}'. "
            "Make sure the tag is available in the configured registry."
        )
    return tags[specifier]


async def resolve_version(catalog: VersionCatalog, specifier: Optional[str]) -> str:
    """
    Resolve a version specifier against a version catalog.

    Args:
        catalog: Catalog providing versions and tags
        specifier: Version, range, snapshot range or tag

    Returns:
        The concrete version

    Raises:
        InvalidVersionSpecifierError: For empty or malformed specifiers
        UnknownVersionTagError: If the tag does not exist
        UnresolvableVersionError: If no version satisfies the specifier

    Example:
        >>> await resolve_version(OpenUI5Source(cwd, home_dir), "1.120")
        '1.120.12'
    """
    if not specifier:
        raise InvalidVersionSpecifierError(specifier)

    range_spec = await _get_version_spec(catalog, specifier)
    if range_spec is None:
        raise InvalidVersionSpecifierError(specifier)

    versions = await catalog.fetch_all_versions()
    snapshot = is_snapshot_version_or_range(specifier)
    resolved = max_satisfying(versions, range_spec, snapshot=snapshot)
    if resolved:
        logger.debug(f"Resolved {catalog.framework_name} version {specifier} to {resolved}")
        return resolved

    exact = _parse_version(range_spec)
    if (
        exact is not None
        and catalog.minimum_version
        and exact < semantic_version.Version(catalog.minimum_version)
    ):
        raise UnresolvableVersionError(
            f"Could not resolve framework version {specifier}. "
            f"Note that {catalog.framework_name} framework libraries can only be "
            f"consumed starting with {catalog.framework_name} "
            f"v{catalog.minimum_version}"
        )
    raise UnresolvableVersionError(
        f"Could not resolve framework version {specifier}. "
        "Make sure the version is valid and available in the configured registry."
    )
