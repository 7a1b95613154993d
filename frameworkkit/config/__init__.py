"""
Configuration for FrameworkKit.
"""

from .configuration import Configuration, get_config_path

__all__ = ["Configuration", "get_config_path"]
