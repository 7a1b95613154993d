"""
npm registry backend.
"""

from .config import NpmConfig, load_npm_config
from .installer import NpmInstaller
from .registry import NpmRegistry

__all__ = ["NpmConfig", "NpmInstaller", "NpmRegistry", "load_npm_config"]
