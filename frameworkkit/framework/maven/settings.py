"""
Snapshot endpoint discovery.

The endpoint of the Maven snapshot repository is taken from the
FrameworkKit configuration. If it is missing, the URL of the
``snapshot.build`` profile in the local Maven ``settings.xml`` is offered
to the user and, once confirmed, saved to the configuration.
"""

import logging
import os
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional, Union

from frameworkkit.config.configuration import Configuration
from frameworkkit.core.exceptions import ConfigurationError
from frameworkkit.core.prompt import DEFAULT_CONFIRMATION_TIMEOUT, confirm, is_interactive
from frameworkkit.framework.maven.installer import SNAPSHOT_ENDPOINT_ENV

logger = logging.getLogger(__name__)

SNAPSHOT_PROFILE_ID = "snapshot.build"


def get_default_settings_xml() -> Path:
    return Path.home() / ".m2" / "settings.xml"


def _local_name(tag: str) -> str:
    return tag.split("}", 1)[1] if tag.startswith("{") else tag


def _children(element: ET.Element, name: str):
    return [child for child in element if _local_name(child.tag) == name]


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    for child in _children(element, name):
        if child.text and child.text.strip():
            return child.text.strip()
    return None


def read_snapshot_url_from_settings(
    settings_xml: Optional[Union[str, Path]] = None,
) -> Optional[str]:
    """
    Read the snapshot repository URL from a Maven ``settings.xml``.

    The first plugin repository (or, lacking one, repository) of the
    ``snapshot.build`` profile is used.

    Returns:
        The URL, or None if the file or the profile does not exist

    Raises:
        ConfigurationError: If the file is not valid XML
    """
    settings_path = Path(settings_xml) if settings_xml else get_default_settings_xml()
    try:
        root = ET.parse(settings_path).getroot()
    except FileNotFoundError:
        logger.debug(f"Maven settings not found at {settings_path}")
        return None
    except ET.ParseError as e:
        raise ConfigurationError(f"Failed to parse {settings_path}: {e}") from e

    for profiles in _children(root, "profiles"):
        for profile in _children(profiles, "profile"):
            if _child_text(profile, "id") != SNAPSHOT_PROFILE_ID:
                continue
            for container, entry in (
                ("pluginRepositories", "pluginRepository"),
                ("repositories", "repository"),
            ):
                for repositories in _children(profile, container):
                    for repository in _children(repositories, entry):
                        url = _child_text(repository, "url")
                        if url:
                            return url
    return None


def resolve_snapshot_endpoint_url(
    settings_xml: Optional[Union[str, Path]] = None,
    skip_confirmation: bool = False,
    config_path: Optional[Union[str, Path]] = None,
    timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
) -> Optional[str]:
    """
    Determine the Maven snapshot endpoint URL.

    Order of precedence: the ``maven_snapshot_endpoint_url`` configuration
    option, the ``FRAMEWORKKIT_MAVEN_SNAPSHOT_ENDPOINT`` environment
    variable, then ``settings.xml`` after confirmation on an interactive
    terminal. Non-interactive sessions never read ``settings.xml`` unless
    ``skip_confirmation`` is set.

    Returns:
        The endpoint URL or None if it could not be determined
    """
    config = Configuration.from_file(config_path)
    if config.maven_snapshot_endpoint_url:
        return config.maven_snapshot_endpoint_url

    env_url = os.environ.get(SNAPSHOT_ENDPOINT_ENV)
    if env_url:
        return env_url

    if not skip_confirmation and not is_interactive():
        logger.debug("Not an interactive terminal, skipping settings.xml lookup")
        return None

    url = read_snapshot_url_from_settings(settings_xml)
    if not url:
        return None

    if not skip_confirmation:
        question = (
            "The Maven snapshot endpoint URL is not configured. "
            f"Use '{url}' from your Maven settings.xml and save it to the configuration?"
        )
        if not confirm(question, timeout=timeout):
            return None

    config.maven_snapshot_endpoint_url = url
    saved_path = config.to_file(config_path)
    logger.info(f"Saved Maven snapshot endpoint URL to {saved_path}")
    return url
