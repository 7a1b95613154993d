"""
Framework library resolution and installation.

Entry points live in :mod:`frameworkkit.framework.backends`
(``create_resolver``, ``resolve_version``). Submodules are imported
explicitly since the core interfaces depend on :mod:`.models`.
"""
