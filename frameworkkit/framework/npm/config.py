"""
npm configuration loading.

Settings are read the way npm reads them: the user ``.npmrc``
(``$NPM_CONFIG_USERCONFIG`` or ``~/.npmrc``), the project ``.npmrc`` in
the working directory, then ``npm_config_*`` environment variables. Later
sources win. Values may reference environment variables as ``${NAME}``.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Union
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY = "https://registry.npmjs.org/"

_ENV_REFERENCE = re.compile(r"(?<!\\)\$\{([^}]+)\}")


def _expand_env(value: str, environ: Mapping[str, str]) -> str:
    return _ENV_REFERENCE.sub(lambda match: environ.get(match.group(1), ""), value)


def _ensure_trailing_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def parse_npmrc(content: str, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Parse the ``key=value`` lines of an ``.npmrc`` file.

    Comment lines start with ``#`` or ``;``. Surrounding quotes are removed.

    Example:
        >>> parse_npmrc("registry=https://npm.corp/\\n; comment")
        {'registry': 'https://npm.corp/'}
    """
    environ = os.environ if environ is None else environ
    values = {}
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("#", ";")) or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = _expand_env(key.strip(), environ)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        values[key] = _expand_env(value, environ)
    return values


@dataclass
class NpmConfig:
    """Effective npm settings relevant for fetching packages."""

    registry: str = DEFAULT_REGISTRY
    scoped_registries: Dict[str, str] = field(default_factory=dict)
    proxy: Optional[str] = None
    https_proxy: Optional[str] = None
    strict_ssl: bool = True
    auth_tokens: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_values(cls, values: Mapping[str, str]) -> "NpmConfig":
        config = cls()
        for key, value in values.items():
            if key == "registry":
                config.registry = _ensure_trailing_slash(value)
            elif key.startswith("@") and key.endswith(":registry"):
                config.scoped_registries[key[: -len(":registry")]] = (
                    _ensure_trailing_slash(value)
                )
            elif key == "proxy":
                config.proxy = value or None
            elif key == "https-proxy":
                config.https_proxy = value or None
            elif key == "strict-ssl":
                config.strict_ssl = value.lower() not in ("false", "0", "no")
            elif key.startswith("//") and key.endswith(":_authToken"):
                config.auth_tokens[key[: -len(":_authToken")]] = value
        return config

    def registry_for(self, pkg_name: str) -> str:
        """Registry URL serving a package, honoring scoped registries."""
        if pkg_name.startswith("@") and "/" in pkg_name:
            scope = pkg_name.split("/", 1)[0]
            if scope in self.scoped_registries:
                return self.scoped_registries[scope]
        return self.registry

    def auth_token_for(self, url: str) -> Optional[str]:
        """Return the token whose ``//host/path/`` prefix best matches a URL."""
        parsed = urlparse(url)
        nerf_url = f"//{parsed.netloc}{parsed.path}"
        best = None
        for prefix, token in self.auth_tokens.items():
            if nerf_url.startswith(_ensure_trailing_slash(prefix)) or nerf_url == prefix:
                if best is None or len(prefix) > len(best[0]):
                    best = (prefix, token)
        return best[1] if best else None

    @property
    def proxies(self) -> Dict[str, str]:
        proxies = {}
        if self.proxy:
            proxies["http"] = self.proxy
        if self.https_proxy or self.proxy:
            proxies["https"] = self.https_proxy or self.proxy
        return proxies


def _read_npmrc(path: Path, environ: Mapping[str, str]) -> Dict[str, str]:
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    logger.debug(f"Reading npm configuration from {path}")
    return parse_npmrc(content, environ)


def _env_values(environ: Mapping[str, str]) -> Dict[str, str]:
    values = {}
    for name, value in environ.items():
        if name.lower().startswith("npm_config_"):
            key = name[len("npm_config_"):].lower()
            # Scoped and auth keys keep their spelling, plain keys use dashes
            if not key.startswith(("@", "//")):
                key = key.replace("_", "-")
            values[key] = value
    return values


def load_npm_config(
    cwd: Union[str, Path], environ: Optional[Mapping[str, str]] = None
) -> NpmConfig:
    """
    Load the effective npm configuration for a working directory.

    Args:
        cwd: Project directory whose ``.npmrc`` is considered
        environ: Environment to read (defaults to ``os.environ``)
    """
    environ = os.environ if environ is None else environ
    user_config = environ.get("NPM_CONFIG_USERCONFIG") or environ.get(
        "npm_config_userconfig"
    )
    sources: Iterable[Dict[str, str]] = (
        _read_npmrc(
            Path(user_config).expanduser() if user_config else Path.home() / ".npmrc",
            environ,
        ),
        _read_npmrc(Path(cwd) / ".npmrc", environ),
        _env_values(environ),
    )

    values: Dict[str, str] = {}
    for source in sources:
        values.update(source)

    config = NpmConfig.from_values(values)

    # Never log auth tokens
    logger.debug("Using npm configuration:")
    logger.debug(f"   registry: {config.registry}")
    for scope, registry in sorted(config.scoped_registries.items()):
        logger.debug(f"   {scope}:registry: {registry}")
    if config.proxy:
        logger.debug(f"   proxy: {config.proxy}")
    if config.https_proxy:
        logger.debug(f"   https-proxy: {config.https_proxy}")
    return config
