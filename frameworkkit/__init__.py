"""
FrameworkKit - resolves and installs UI5 framework libraries.
"""

__version__ = "0.1.0"
