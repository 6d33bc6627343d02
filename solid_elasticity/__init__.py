"""Package utilities for solid-elasticity.

The plugin itself lives in top-level packages like `geometry/`, `modules/`,
and `runtime/`. This package exposes the installed version and a helper that
sets up a host and its plugin instances from a scene file.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("solid-elasticity")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"


def load_scene(path):
    """Return ``(model, data, manager)`` for a JSON/YAML scene file.

    The manager is initialized; call ``manager.close()`` (or use it as a
    context manager) to destroy the plugin instances.
    """
    from geometry.geom_io import load_data, parse_scene
    from runtime.plugin_manager import PluginInstanceManager

    model, data = parse_scene(load_data(path))
    return model, data, PluginInstanceManager(model, data).init()


__all__ = ["__version__", "load_scene"]
