# runtime/plugin_manager.py

import importlib
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence, Type

from runtime.host import HostData, HostModel

logger = logging.getLogger("solid_elasticity")

CAPABILITY_PASSIVE = "passive"

PLUGIN_REGISTRY: Dict[str, Type["PassiveForcePlugin"]] = {}


class PassiveForcePlugin(ABC):
    """Interface of a plugin that adds forces to ``data.qfrc_passive``.

    Subclasses declare ``name``, ``attributes`` and ``capabilities`` and are
    made available to the host with :func:`register_plugin`.
    """

    name: str = ""
    attributes: Sequence[str] = ()
    capabilities: Sequence[str] = (CAPABILITY_PASSIVE,)

    @classmethod
    @abstractmethod
    def create(
        cls, model: HostModel, data: HostData, instance: int
    ) -> Optional["PassiveForcePlugin"]:
        """Build an instance, or return ``None`` if it cannot be configured."""

    @abstractmethod
    def compute(self, model: HostModel, data: HostData, instance: int) -> None:
        """Accumulate this instance's forces into the host buffers."""

    @classmethod
    def nstate(cls, model: HostModel, instance: int) -> int:
        """Number of host state entries the plugin needs."""
        return 0

    def destroy(self) -> None:
        """Release per-instance resources."""

    def __repr__(self) -> str:  # pragma: no cover - simple utility
        return f"{self.__class__.__name__}(name={self.name!r})"


def register_plugin(cls: Type[PassiveForcePlugin]) -> Type[PassiveForcePlugin]:
    """Class decorator adding ``cls`` to :data:`PLUGIN_REGISTRY`."""
    if not cls.name:
        raise ValueError(f"{cls.__name__} has no plugin name")
    existing = PLUGIN_REGISTRY.get(cls.name)
    if existing is not None and existing is not cls:
        logger.warning(
            f"Plugin '{cls.name}' registered twice; replacing {existing.__name__}."
        )
    PLUGIN_REGISTRY[cls.name] = cls
    return cls


def get_plugin(name: str) -> Type[PassiveForcePlugin]:
    """Look up a plugin class, importing ``modules.<name>`` on first use."""
    if name not in PLUGIN_REGISTRY:
        try:
            importlib.import_module(f"modules.{name}")
        except ImportError as e:
            logger.error(f"Could not load plugin module '{name}': {e}")
            raise
    if name not in PLUGIN_REGISTRY:
        raise KeyError(f"Plugin '{name}' not found.")
    return PLUGIN_REGISTRY[name]


class PluginInstanceManager:
    """Owns the plugin instances of one host model/data pair.

    Instances are created in :meth:`init` and destroyed by :meth:`close`; use
    the manager as a context manager to tie their lifetime to a block.
    """

    def __init__(self, model: HostModel, data: HostData):
        self.model = model
        self.data = data
        self.instances: Dict[int, PassiveForcePlugin] = {}
        self._initialized = False

    def init(self) -> "PluginInstanceManager":
        if self._initialized:
            return self
        for instance, name in enumerate(self.model.plugin_names):
            cls = get_plugin(name)
            plugin = cls.create(self.model, self.data, instance)
            if plugin is None:
                logger.warning(
                    f"Plugin '{name}' instance {instance} was not created; "
                    "it will not contribute forces."
                )
                continue
            self.instances[instance] = plugin
            logger.info(f"Initialized plugin '{name}' instance {instance}")
        self._initialized = True
        return self

    def get_instance(self, instance: int) -> PassiveForcePlugin:
        if instance in self.instances:
            return self.instances[instance]
        raise KeyError(f"Plugin instance {instance} not found.")

    def compute_passive(self) -> None:
        """Run every live instance with the passive capability once."""
        if not self._initialized:
            self.init()
        for instance, plugin in self.instances.items():
            if CAPABILITY_PASSIVE in plugin.capabilities:
                plugin.compute(self.model, self.data, instance)

    def close(self) -> None:
        for instance in sorted(self.instances):
            self.instances[instance].destroy()
            logger.debug(f"Destroyed plugin instance {instance}")
        self.instances.clear()
        self._initialized = False

    def __enter__(self) -> "PluginInstanceManager":
        return self.init()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self.instances)


__all__ = [
    "CAPABILITY_PASSIVE",
    "PLUGIN_REGISTRY",
    "PassiveForcePlugin",
    "PluginInstanceManager",
    "get_plugin",
    "register_plugin",
]
